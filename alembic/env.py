# alembic/env.py
# Migrações do Faccao-Hub: a URL do banco vem da configuração da aplicação (.env), não do alembic.ini.
import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from faccao_hub.config import config as app_config  # noqa: E402
from faccao_hub.database.base import Base  # noqa: E402
import faccao_hub.domain  # noqa: E402,F401  (modelos no metadata)

alembic_config = context.config
if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)

if not app_config.SQLALCHEMY_DATABASE_URI:
    sys.exit("SQLALCHEMY_DATABASE_URI não configurado: defina DB_TYPE e a conexão no .env")
alembic_config.set_main_option('sqlalchemy.url', app_config.SQLALCHEMY_DATABASE_URI)

def _configure_kwargs(dialect_name: str) -> dict:
    # Índices parciais e ALTERs no SQLite exigem batch mode
    return {
        'target_metadata': Base.metadata,
        'compare_type': True,
        'render_as_batch': dialect_name == 'sqlite',
    }

def run_migrations_offline() -> None:
    url = alembic_config.get_main_option("sqlalchemy.url")
    context.configure(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"},
                      **_configure_kwargs(url.split(':', 1)[0].split('+', 1)[0]))
    with context.begin_transaction():
        context.run_migrations()

def run_migrations_online() -> None:
    connectable = engine_from_config(
        alembic_config.get_section(alembic_config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(connection.dialect.name))
        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
