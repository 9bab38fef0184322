# faccao_hub/domain/contract.py
# Define os modelos ORM de contratos de relacionamento e suas revisões.

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, Any
from sqlalchemy import String, Text, Date, Numeric, ForeignKey, JSON, Enum as SqlEnum
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.dialects.postgresql import TIMESTAMP

from faccao_hub.database.base import Base, generate_id
from faccao_hub.utils.data_conversion import utc_now, isoformat_or_none

class ContractType(str, Enum):
    SERVICE_AGREEMENT = 'SERVICE_AGREEMENT'
    SUPPLY_AGREEMENT = 'SUPPLY_AGREEMENT'
    NDA = 'NDA'
    AMENDMENT = 'AMENDMENT'

class ContractStatus(str, Enum):
    DRAFT = 'DRAFT'
    PENDING_SIGNATURE = 'PENDING_SIGNATURE'
    REVISION_REQUESTED = 'REVISION_REQUESTED'
    SIGNED = 'SIGNED'
    REJECTED = 'REJECTED'

class RevisionStatus(str, Enum):
    PENDING = 'PENDING'
    ACCEPTED = 'ACCEPTED'
    REJECTED = 'REJECTED'

# Contrato "em aberto": impede gerar outro para o mesmo relacionamento
OPEN_CONTRACT_STATUSES = frozenset({
    ContractStatus.DRAFT,
    ContractStatus.PENDING_SIGNATURE,
    ContractStatus.REVISION_REQUESTED,
})

class Contract(Base):
    """
    Contrato gerado para um relacionamento. Aditivos referenciam o contrato pai
    (parent_contract_id) sem alterá-lo.
    """
    __tablename__ = 'relationship_contracts'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    display_id: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    relationship_id: Mapped[str] = mapped_column(ForeignKey('supplier_brand_relationships.id', ondelete='CASCADE'), nullable=False, index=True)
    brand_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    supplier_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    parent_contract_id: Mapped[Optional[str]] = mapped_column(ForeignKey('relationship_contracts.id', ondelete='SET NULL'))
    type: Mapped[ContractType] = mapped_column(SqlEnum(ContractType, native_enum=False, length=24), nullable=False)
    status: Mapped[ContractStatus] = mapped_column(
        SqlEnum(ContractStatus, native_enum=False, length=24),
        default=ContractStatus.DRAFT, nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    value: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2))
    terms: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[date] = mapped_column(Date, nullable=False)

    sent_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    brand_signed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    brand_signed_by_id: Mapped[Optional[str]] = mapped_column(String(36))
    brand_signer_name: Mapped[Optional[str]] = mapped_column(Text)
    supplier_signed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    supplier_signed_by_id: Mapped[Optional[str]] = mapped_column(String(36))
    supplier_signer_name: Mapped[Optional[str]] = mapped_column(Text)

    created_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    revisions: Mapped[List["ContractRevision"]] = relationship(
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractRevision.created_at",
    )

    @property
    def is_amendment(self) -> bool:
        return self.parent_contract_id is not None or self.type == ContractType.AMENDMENT

    @property
    def fully_signed(self) -> bool:
        return self.brand_signed_at is not None and self.supplier_signed_at is not None

    def has_pending_revision(self) -> bool:
        return any(r.status == RevisionStatus.PENDING for r in self.revisions)

    def clear_signatures(self):
        self.brand_signed_at = None
        self.brand_signed_by_id = None
        self.brand_signer_name = None
        self.supplier_signed_at = None
        self.supplier_signed_by_id = None
        self.supplier_signer_name = None

    def to_dict(self, include_revisions: bool = False) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'display_id': self.display_id,
            'relationship_id': self.relationship_id,
            'brand_id': self.brand_id,
            'supplier_id': self.supplier_id,
            'parent_contract_id': self.parent_contract_id,
            'type': self.type.value if self.type else None,
            'status': self.status.value if self.status else None,
            'title': self.title,
            'description': self.description,
            'value': float(self.value) if self.value is not None else None,
            'terms': self.terms,
            'valid_from': isoformat_or_none(self.valid_from),
            'valid_until': isoformat_or_none(self.valid_until),
            'sent_at': isoformat_or_none(self.sent_at),
            'brand_signed_at': isoformat_or_none(self.brand_signed_at),
            'brand_signed_by_id': self.brand_signed_by_id,
            'brand_signer_name': self.brand_signer_name,
            'supplier_signed_at': isoformat_or_none(self.supplier_signed_at),
            'supplier_signed_by_id': self.supplier_signed_by_id,
            'supplier_signer_name': self.supplier_signer_name,
            'created_by_id': self.created_by_id,
            'created_at': isoformat_or_none(self.created_at),
            'updated_at': isoformat_or_none(self.updated_at),
        }
        if include_revisions:
            data['revisions'] = [r.to_dict() for r in self.revisions]
        return data

    def __repr__(self):
        return f"<Contract(id={self.id}, display_id='{self.display_id}', status={self.status})>"

class ContractRevision(Base):
    """Pedido de revisão da facção e a resposta da marca."""
    __tablename__ = 'contract_revisions'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    contract_id: Mapped[str] = mapped_column(ForeignKey('relationship_contracts.id', ondelete='CASCADE'), nullable=False, index=True)
    requested_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[RevisionStatus] = mapped_column(
        SqlEnum(RevisionStatus, native_enum=False, length=16),
        default=RevisionStatus.PENDING, nullable=False
    )
    response_notes: Mapped[Optional[str]] = mapped_column(Text)
    responded_by_id: Mapped[Optional[str]] = mapped_column(String(36))
    responded_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    contract: Mapped["Contract"] = relationship(back_populates="revisions")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'contract_id': self.contract_id,
            'requested_by_id': self.requested_by_id,
            'message': self.message,
            'status': self.status.value if self.status else None,
            'response_notes': self.response_notes,
            'responded_by_id': self.responded_by_id,
            'responded_at': isoformat_or_none(self.responded_at),
            'created_at': isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f"<ContractRevision(id={self.id}, contract={self.contract_id}, status={self.status})>"
