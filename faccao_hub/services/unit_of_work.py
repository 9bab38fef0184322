# faccao_hub/services/unit_of_work.py
# Transação de serviço: uma sessão por operação, erros de regra propagados como estão
# e falhas de armazenamento convertidas em ServiceError.

from contextlib import contextmanager
from typing import Generator
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from faccao_hub.database import get_db_session
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import DOMAIN_ERRORS, DatabaseError, ServiceError

@contextmanager
def unit_of_work(action: str) -> Generator[Session, None, None]:
    """
    Envolve get_db_session(): tudo o que for feito no bloco é confirmado ou desfeito junto.

    Args:
        action: descrição da operação para logs/mensagens (ex.: "criar credencial").
    """
    try:
        with get_db_session() as db:
            yield db
    except DOMAIN_ERRORS as e:
        logger.warning(f"Operação '{action}' recusada: {type(e).__name__} - {e}")
        raise
    except (DatabaseError, SQLAlchemyError) as e:
        logger.error(f"Falha de armazenamento ao {action}: {e}", exc_info=True)
        raise ServiceError(f"Não foi possível {action}.") from e
