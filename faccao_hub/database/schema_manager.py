# faccao_hub/database/schema_manager.py
# Cria as tabelas que ainda não existem. Alterações de esquema vão por migração Alembic.

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .base import Base
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import DatabaseError

class SchemaManager:
    def __init__(self, engine: Engine):
        self.engine = engine

    def missing_tables(self):
        existing = set(inspect(self.engine).get_table_names())
        return sorted(name for name in Base.metadata.tables if name not in existing)

    def initialize_schema(self):
        import faccao_hub.domain  # noqa: F401  (registra os modelos no metadata)
        try:
            missing = self.missing_tables()
            if not missing:
                logger.debug("ORM: esquema completo, nada a criar.")
                return
            logger.info(f"ORM: criando tabelas ausentes: {missing}")
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            logger.critical(f"ORM: falha ao criar o esquema: {e}", exc_info=True)
            raise DatabaseError(f"Schema initialization failed: {e}") from e
