# faccao_hub/domain/actor.py
# Contexto de identidade de quem executa uma operação (vem das claims do JWT).

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from faccao_hub.utils.logger import logger

class ActorRole(str, Enum):
    BRAND = 'BRAND'
    SUPPLIER = 'SUPPLIER'
    ADMIN = 'ADMIN'

@dataclass(frozen=True)
class Actor:
    """
    Usuário autenticado agindo em nome de uma empresa. Imutável.
    ADMIN não precisa de empresa vinculada.
    """
    id: str
    company_id: Optional[str]
    role: ActorRole
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_brand(self) -> bool:
        return self.role == ActorRole.BRAND

    @property
    def is_supplier(self) -> bool:
        return self.role == ActorRole.SUPPLIER

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'company_id': self.company_id,
            'role': self.role.value,
            'name': self.name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Actor':
        """Cria um Actor a partir das claims de um token (ou de um dicionário equivalente)."""
        if not isinstance(data, dict):
            logger.error(f"Invalid data type for Actor.from_dict: {type(data)}")
            raise ValueError("Invalid data format for Actor")
        actor_id = data.get('sub') or data.get('id')
        role_raw = data.get('role')
        if not actor_id or not role_raw:
            raise ValueError("Actor claims must include 'sub' and 'role'")
        try:
            role = ActorRole(str(role_raw).upper())
        except ValueError as e:
            raise ValueError(f"Unknown actor role: {role_raw}") from e
        company_id = data.get('company_id')
        if role != ActorRole.ADMIN and not company_id:
            raise ValueError("Non-admin actors must carry a company_id")
        return cls(id=str(actor_id), company_id=company_id, role=role, name=data.get('name'))

    def __repr__(self):
        return f"<Actor(id={self.id}, role={self.role.value}, company={self.company_id})>"
