# faccao_hub/database/__init__.py
# Ciclo de vida do engine SQLAlchemy e da fábrica de sessões (unidade de trabalho).
# Logger e erros são importados localmente: o Alembic importa este pacote sem a aplicação.

import threading
from typing import Optional, Generator
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError

from .base import Base

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker[Session]] = None
_lock = threading.Lock()

def _build_engine(database_uri: str, pool_size: int, max_overflow: int) -> Engine:
    if database_uri.startswith('sqlite'):
        # Sem pool dimensionado; a mesma conexão pode atender threads diferentes (varredura em background)
        return create_engine(database_uri, connect_args={"check_same_thread": False})
    return create_engine(database_uri, pool_size=pool_size, max_overflow=max_overflow,
                         pool_recycle=3600, pool_pre_ping=True)

def init_sqlalchemy(database_uri: str, pool_size: int = 10, max_overflow: int = 20) -> Engine:
    """
    Cria o engine, a fábrica de sessões e garante o esquema.
    Chamadas repetidas devolvem o engine já criado.
    """
    from faccao_hub.utils.logger import logger
    from faccao_hub.api.errors import DatabaseError, ConfigurationError

    global _engine, _session_factory
    with _lock:
        if _engine is not None:
            logger.debug("ORM: engine já inicializado, reutilizando.")
            return _engine
        if not database_uri:
            raise ConfigurationError("Database URI is missing in configuration.")

        logger.info(f"ORM: inicializando engine ({database_uri.split(':', 1)[0]})...")
        engine = _build_engine(database_uri, pool_size, max_overflow)
        try:
            with engine.connect():
                pass
            from .schema_manager import SchemaManager
            SchemaManager(engine).initialize_schema()
        except (SQLAlchemyError, DatabaseError) as e:
            engine.dispose()
            logger.critical(f"ORM: falha ao conectar/preparar o banco: {e}", exc_info=True)
            if isinstance(e, DatabaseError):
                raise
            raise DatabaseError(f"Failed to connect to the database: {e}") from e

        _session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        _engine = engine
        logger.info("ORM: engine e fábrica de sessões prontos.")
        return _engine

@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Unidade de trabalho: commit ao sair sem erro, rollback em qualquer exceção, close sempre.
    Erros de negócio (ApiError) voltam inalterados; falhas do SQLAlchemy viram DatabaseError.
    """
    from faccao_hub.utils.logger import logger
    from faccao_hub.api.errors import ApiError, DatabaseError

    if _session_factory is None:
        raise RuntimeError("Database session factory has not been initialized.")

    db = _session_factory()
    try:
        yield db
        db.commit()
    except ApiError as api_ex:
        db.rollback()
        logger.debug(f"ORM: rollback por {type(api_ex).__name__}: {api_ex.message}")
        raise
    except SQLAlchemyError as sql_ex:
        db.rollback()
        logger.error(f"ORM: erro de banco, rollback executado: {sql_ex}", exc_info=True)
        raise DatabaseError(f"Database operation failed: {sql_ex}") from sql_ex
    except Exception:
        db.rollback()
        logger.error("ORM: exceção inesperada na sessão, rollback executado.", exc_info=True)
        raise
    finally:
        db.close()

def get_engine() -> Optional[Engine]:
    return _engine

def dispose_sqlalchemy_engine():
    """Fecha o pool de conexões e esquece o engine (shutdown e testes)."""
    from faccao_hub.utils.logger import logger

    global _engine, _session_factory
    with _lock:
        if _engine is None:
            return
        logger.info("ORM: liberando o pool de conexões.")
        try:
            _engine.dispose()
        finally:
            _engine = None
            _session_factory = None

__all__ = [
    "init_sqlalchemy",
    "get_db_session",
    "get_engine",
    "dispose_sqlalchemy_engine",
    "Base",
]
