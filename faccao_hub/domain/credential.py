# faccao_hub/domain/credential.py
# Define os modelos ORM de credenciamento (credencial, histórico de status, validações)
# e a máquina de estados da credencial.

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from sqlalchemy import (
    Integer, String, Text, Boolean, ForeignKey, Index, JSON, text, Enum as SqlEnum
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.dialects.postgresql import TIMESTAMP

from faccao_hub.database.base import Base, generate_id
from faccao_hub.config.settings import TRANSITION_POLICIES
from faccao_hub.utils.data_conversion import utc_now, isoformat_or_none

class CredentialStatus(str, Enum):
    DRAFT = 'DRAFT'
    PENDING_VALIDATION = 'PENDING_VALIDATION'
    VALIDATION_FAILED = 'VALIDATION_FAILED'
    INVITATION_SENT = 'INVITATION_SENT'
    INVITATION_EXPIRED = 'INVITATION_EXPIRED'
    ONBOARDING_STARTED = 'ONBOARDING_STARTED'
    CONTRACT_PENDING = 'CONTRACT_PENDING'
    CONTRACT_SIGNED = 'CONTRACT_SIGNED'
    ACTIVE = 'ACTIVE'
    BLOCKED = 'BLOCKED'

# Ordem do funil. BLOCKED fica fora da ordem.
CREDENTIAL_STATUS_ORDER: List[CredentialStatus] = [
    CredentialStatus.DRAFT,
    CredentialStatus.PENDING_VALIDATION,
    CredentialStatus.VALIDATION_FAILED,
    CredentialStatus.INVITATION_SENT,
    CredentialStatus.INVITATION_EXPIRED,
    CredentialStatus.ONBOARDING_STARTED,
    CredentialStatus.CONTRACT_PENDING,
    CredentialStatus.CONTRACT_SIGNED,
    CredentialStatus.ACTIVE,
]

_STRICT_EDGES: Dict[CredentialStatus, frozenset] = {
    CredentialStatus.DRAFT: frozenset({CredentialStatus.PENDING_VALIDATION}),
    CredentialStatus.PENDING_VALIDATION: frozenset({CredentialStatus.INVITATION_SENT, CredentialStatus.VALIDATION_FAILED}),
    CredentialStatus.VALIDATION_FAILED: frozenset({CredentialStatus.PENDING_VALIDATION}),
    CredentialStatus.INVITATION_SENT: frozenset({CredentialStatus.ONBOARDING_STARTED, CredentialStatus.INVITATION_EXPIRED}),
    CredentialStatus.INVITATION_EXPIRED: frozenset({CredentialStatus.INVITATION_SENT}),
    CredentialStatus.ONBOARDING_STARTED: frozenset({CredentialStatus.CONTRACT_PENDING}),
    CredentialStatus.CONTRACT_PENDING: frozenset({CredentialStatus.CONTRACT_SIGNED}),
    CredentialStatus.CONTRACT_SIGNED: frozenset({CredentialStatus.ACTIVE}),
    CredentialStatus.ACTIVE: frozenset(),
    CredentialStatus.BLOCKED: frozenset(),
}

# Status que exigem ação da marca / resposta da facção (métricas do painel)
PENDING_ACTION_STATUSES = frozenset({
    CredentialStatus.DRAFT,
    CredentialStatus.VALIDATION_FAILED,
    CredentialStatus.INVITATION_EXPIRED,
    CredentialStatus.CONTRACT_SIGNED,
})
AWAITING_RESPONSE_STATUSES = frozenset({
    CredentialStatus.INVITATION_SENT,
    CredentialStatus.ONBOARDING_STARTED,
    CredentialStatus.CONTRACT_PENDING,
})



def is_transition_allowed(current: CredentialStatus, target: CredentialStatus, policy: str = 'forward') -> bool:
    """
    Diz se uma credencial pode ir de `current` para `target` sob a política dada.

    strict:     apenas as arestas do fluxo de credenciamento, mais BLOCKED.
    forward:    strict mais qualquer salto para um status posterior na ordem.
    permissive: qualquer destino (override administrativo), exceto sair de BLOCKED.

    Em todas as políticas: auto-transição é recusada, nada sai de BLOCKED e ACTIVE nunca vai para BLOCKED.
    """
    if policy not in TRANSITION_POLICIES:
        raise ValueError(f"Unknown credential transition policy: {policy}")
    if current == target or current == CredentialStatus.BLOCKED:
        return False
    if target == CredentialStatus.BLOCKED:
        return current != CredentialStatus.ACTIVE
    if policy == 'permissive':
        return True
    if target in _STRICT_EDGES[current]:
        return True
    if policy == 'forward':
        return CREDENTIAL_STATUS_ORDER.index(target) > CREDENTIAL_STATUS_ORDER.index(current)
    return False

_BLOCKED_SQL = text("status <> 'BLOCKED'")

class Credential(Base):
    """
    Registro privado de uma marca sobre uma facção candidata/parceira, identificado pelo CNPJ.
    """
    __tablename__ = 'supplier_credentials'
    __table_args__ = (
        # No máximo uma credencial não bloqueada por (marca, CNPJ)
        Index(
            'uq_supplier_credentials_brand_tax_id_open',
            'brand_id', 'tax_id',
            unique=True,
            postgresql_where=_BLOCKED_SQL,
            sqlite_where=_BLOCKED_SQL,
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    brand_id: Mapped[str] = mapped_column(ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    tax_id: Mapped[str] = mapped_column(String(14), nullable=False, index=True)
    legal_name: Mapped[Optional[str]] = mapped_column(Text)
    trade_name: Mapped[Optional[str]] = mapped_column(Text)
    contact_name: Mapped[str] = mapped_column(Text, nullable=False)
    contact_email: Mapped[str] = mapped_column(Text, nullable=False)
    contact_phone: Mapped[str] = mapped_column(String(11), nullable=False)
    contact_whatsapp: Mapped[Optional[str]] = mapped_column(String(11))
    internal_code: Mapped[Optional[str]] = mapped_column(String(50))
    category: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[CredentialStatus] = mapped_column(
        SqlEnum(CredentialStatus, native_enum=False, length=32),
        default=CredentialStatus.DRAFT, nullable=False, index=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    created_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    history: Mapped[List["CredentialStatusHistory"]] = relationship(
        back_populates="credential",
        cascade="all, delete-orphan",
        order_by="CredentialStatusHistory.id",
    )
    validations: Mapped[List["CredentialValidation"]] = relationship(
        back_populates="credential",
        cascade="all, delete-orphan",
        order_by="CredentialValidation.id",
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'brand_id': self.brand_id,
            'tax_id': self.tax_id,
            'legal_name': self.legal_name,
            'trade_name': self.trade_name,
            'contact_name': self.contact_name,
            'contact_email': self.contact_email,
            'contact_phone': self.contact_phone,
            'contact_whatsapp': self.contact_whatsapp,
            'internal_code': self.internal_code,
            'category': self.category,
            'notes': self.notes,
            'priority': self.priority,
            'status': self.status.value if self.status else None,
            'completed_at': isoformat_or_none(self.completed_at),
            'created_by_id': self.created_by_id,
            'created_at': isoformat_or_none(self.created_at),
            'updated_at': isoformat_or_none(self.updated_at),
        }

    def __repr__(self):
        return f"<Credential(id={self.id}, brand={self.brand_id}, status={self.status})>"

class CredentialStatusHistory(Base):
    """Linha de auditoria imutável: uma por mudança de status."""
    __tablename__ = 'credential_status_history'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    credential_id: Mapped[str] = mapped_column(ForeignKey('supplier_credentials.id', ondelete='CASCADE'), nullable=False, index=True)
    from_status: Mapped[Optional[CredentialStatus]] = mapped_column(SqlEnum(CredentialStatus, native_enum=False, length=32))
    to_status: Mapped[CredentialStatus] = mapped_column(SqlEnum(CredentialStatus, native_enum=False, length=32), nullable=False)
    performed_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    credential: Mapped["Credential"] = relationship(back_populates="history")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'credential_id': self.credential_id,
            'from_status': self.from_status.value if self.from_status else None,
            'to_status': self.to_status.value if self.to_status else None,
            'performed_by_id': self.performed_by_id,
            'reason': self.reason,
            'created_at': isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f"<CredentialStatusHistory(id={self.id}, {self.from_status} -> {self.to_status})>"

class CredentialValidation(Base):
    """Resultado de uma verificação (consulta de CNPJ) executada sobre uma credencial."""
    __tablename__ = 'credential_validations'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    credential_id: Mapped[str] = mapped_column(ForeignKey('supplier_credentials.id', ondelete='CASCADE'), nullable=False, index=True)
    tax_id: Mapped[str] = mapped_column(String(14), nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    is_valid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payload: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    checked_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    credential: Mapped["Credential"] = relationship(back_populates="validations")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'credential_id': self.credential_id,
            'tax_id': self.tax_id,
            'source': self.source,
            'is_valid': self.is_valid,
            'payload': self.payload,
            'error_message': self.error_message,
            'checked_at': isoformat_or_none(self.checked_at),
        }

    def __repr__(self):
        return f"<CredentialValidation(id={self.id}, credential={self.credential_id}, valid={self.is_valid})>"
