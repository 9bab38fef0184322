# faccao_hub/database/base_repository.py
# Provides a base class for ORM repositories.

from typing import Optional
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import DatabaseError, ConflictError

class BaseRepository:
    """
    Base class for data repositories using SQLAlchemy ORM Sessions.
    Methods receive the Session of the caller's unit of work (get_db_session());
    repositories flush but never commit.
    """

    def __init__(self, engine: Engine):
        if not isinstance(engine, Engine):
             raise TypeError("engine must be an instance of sqlalchemy.engine.Engine")
        self.engine = engine
        logger.debug(f"{self.__class__.__name__} initialized with SQLAlchemy engine: {engine.url.database}")

    def _flush(self, db: Session, context: str, conflict_message: Optional[str] = None):
        """
        Envia as alterações pendentes da sessão. Violação de índice único vira ConflictError
        quando `conflict_message` é informado; demais falhas viram DatabaseError.
        O rollback fica a cargo do get_db_session().
        """
        try:
            db.flush()
        except IntegrityError as e:
            if conflict_message:
                logger.warning(f"ORM: Violação de unicidade ao {context}: {e.orig if e.orig else e}")
                raise ConflictError(conflict_message) from e
            logger.error(f"ORM: Erro de integridade ao {context}: {e}", exc_info=True)
            raise DatabaseError(f"Falha de integridade ao {context}: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao {context}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao {context}: {e}") from e
