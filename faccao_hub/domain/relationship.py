# faccao_hub/domain/relationship.py
# Define o modelo ORM do relacionamento marca <-> facção e seu histórico de status.

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from sqlalchemy import Integer, String, Text, Boolean, ForeignKey, Index, text, Enum as SqlEnum
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.dialects.postgresql import TIMESTAMP

from faccao_hub.database.base import Base, generate_id
from faccao_hub.domain.actor import ActorRole
from faccao_hub.utils.data_conversion import utc_now, isoformat_or_none

class RelationshipStatus(str, Enum):
    CONTRACT_PENDING = 'CONTRACT_PENDING'
    PENDING = 'PENDING'
    ACTIVE = 'ACTIVE'
    SUSPENDED = 'SUSPENDED'
    TERMINATED = 'TERMINATED'

RELATIONSHIP_TRANSITIONS: Dict[RelationshipStatus, frozenset] = {
    RelationshipStatus.CONTRACT_PENDING: frozenset({RelationshipStatus.PENDING, RelationshipStatus.ACTIVE, RelationshipStatus.TERMINATED}),
    RelationshipStatus.PENDING: frozenset({RelationshipStatus.ACTIVE, RelationshipStatus.TERMINATED}),
    RelationshipStatus.ACTIVE: frozenset({RelationshipStatus.SUSPENDED, RelationshipStatus.TERMINATED}),
    RelationshipStatus.SUSPENDED: frozenset({RelationshipStatus.ACTIVE, RelationshipStatus.TERMINATED}),
    RelationshipStatus.TERMINATED: frozenset(),
}

def is_relationship_transition_allowed(current: RelationshipStatus, target: RelationshipStatus) -> bool:
    return target in RELATIONSHIP_TRANSITIONS[current]

_OPEN_SQL = text("status <> 'TERMINATED'")

class SupplierBrandRelationship(Base):
    """
    Aresta durável entre uma marca e uma facção. TERMINATED é absorvente.
    """
    __tablename__ = 'supplier_brand_relationships'
    __table_args__ = (
        # Um relacionamento não encerrado por par; após o encerramento o par pode ser refeito
        Index(
            'uq_supplier_brand_relationships_pair_open',
            'brand_id', 'supplier_id',
            unique=True,
            postgresql_where=_OPEN_SQL,
            sqlite_where=_OPEN_SQL,
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    brand_id: Mapped[str] = mapped_column(ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    supplier_id: Mapped[str] = mapped_column(ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    status: Mapped[RelationshipStatus] = mapped_column(
        SqlEnum(RelationshipStatus, native_enum=False, length=20),
        default=RelationshipStatus.CONTRACT_PENDING, nullable=False, index=True
    )
    initiated_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    initiated_by_role: Mapped[ActorRole] = mapped_column(SqlEnum(ActorRole, native_enum=False, length=16), nullable=False)
    internal_code: Mapped[Optional[str]] = mapped_column(String(50))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Consentimento de compartilhamento de documentos (LGPD)
    document_sharing_consent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    document_sharing_consent_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    document_sharing_revoked_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    document_sharing_revoked_reason: Mapped[Optional[str]] = mapped_column(Text)

    activated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    suspended_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    suspension_reason: Mapped[Optional[str]] = mapped_column(Text)
    terminated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    termination_reason: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    history: Mapped[List["RelationshipStatusHistory"]] = relationship(
        back_populates="supplier_relationship",
        cascade="all, delete-orphan",
        order_by="RelationshipStatusHistory.id",
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'brand_id': self.brand_id,
            'supplier_id': self.supplier_id,
            'status': self.status.value if self.status else None,
            'initiated_by_id': self.initiated_by_id,
            'initiated_by_role': self.initiated_by_role.value if self.initiated_by_role else None,
            'internal_code': self.internal_code,
            'notes': self.notes,
            'priority': self.priority,
            'document_sharing_consent': self.document_sharing_consent,
            'document_sharing_consent_at': isoformat_or_none(self.document_sharing_consent_at),
            'document_sharing_revoked_at': isoformat_or_none(self.document_sharing_revoked_at),
            'document_sharing_revoked_reason': self.document_sharing_revoked_reason,
            'activated_at': isoformat_or_none(self.activated_at),
            'suspended_at': isoformat_or_none(self.suspended_at),
            'suspension_reason': self.suspension_reason,
            'terminated_at': isoformat_or_none(self.terminated_at),
            'termination_reason': self.termination_reason,
            'created_at': isoformat_or_none(self.created_at),
            'updated_at': isoformat_or_none(self.updated_at),
        }

    def __repr__(self):
        return f"<SupplierBrandRelationship(id={self.id}, brand={self.brand_id}, supplier={self.supplier_id}, status={self.status})>"

class RelationshipStatusHistory(Base):
    __tablename__ = 'relationship_status_history'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    relationship_id: Mapped[str] = mapped_column(ForeignKey('supplier_brand_relationships.id', ondelete='CASCADE'), nullable=False, index=True)
    from_status: Mapped[Optional[RelationshipStatus]] = mapped_column(SqlEnum(RelationshipStatus, native_enum=False, length=20))
    to_status: Mapped[RelationshipStatus] = mapped_column(SqlEnum(RelationshipStatus, native_enum=False, length=20), nullable=False)
    performed_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    supplier_relationship: Mapped["SupplierBrandRelationship"] = relationship(back_populates="history")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'relationship_id': self.relationship_id,
            'from_status': self.from_status.value if self.from_status else None,
            'to_status': self.to_status.value if self.to_status else None,
            'performed_by_id': self.performed_by_id,
            'reason': self.reason,
            'created_at': isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f"<RelationshipStatusHistory(id={self.id}, {self.from_status} -> {self.to_status})>"
