# faccao_hub/services/access.py
# Regras de papel e de posse compartilhadas pelos serviços. ADMIN passa em todas.

from typing import Optional

from faccao_hub.domain.actor import Actor, ActorRole
from faccao_hub.api.errors import ForbiddenError, ValidationError
from faccao_hub.utils.logger import logger

def require_role(actor: Actor, role: ActorRole, message: Optional[str] = None):
    if actor.is_admin or actor.role == role:
        return
    logger.warning(f"Acesso negado: ator {actor.id} ({actor.role.value}) precisa do papel {role.value}.")
    raise ForbiddenError(message or f"Only {role.value.lower()} users can perform this action.")

def require_company(actor: Actor, company_id: str, message: Optional[str] = None):
    """Garante que o ator pertence à empresa dona do recurso."""
    if actor.is_admin or (actor.company_id and actor.company_id == company_id):
        return
    logger.warning(f"Acesso negado: ator {actor.id} (empresa {actor.company_id}) não pertence à empresa {company_id}.")
    raise ForbiddenError(message or "You do not have access to this resource.")

def require_party(actor: Actor, brand_id: str, supplier_id: str, message: Optional[str] = None):
    """Garante que o ator é uma das partes (marca ou facção) do vínculo."""
    if actor.is_admin or actor.company_id in (brand_id, supplier_id):
        return
    logger.warning(f"Acesso negado: ator {actor.id} não é parte do vínculo {brand_id} <-> {supplier_id}.")
    raise ForbiddenError(message or "You are not a party of this relationship.")

def resolve_company_scope(actor: Actor, role: ActorRole, company_id: Optional[str] = None) -> str:
    """
    Empresa sobre a qual a operação atua: a do próprio ator, ou a informada quando o ator é ADMIN.
    """
    if actor.is_admin:
        if not company_id:
            raise ValidationError(f"Administrators must specify the {role.value.lower()} company.",
                                  payload={'field': f"{role.value.lower()}_id"})
        return company_id
    require_role(actor, role)
    if company_id and company_id != actor.company_id:
        require_company(actor, company_id)
    return actor.company_id
