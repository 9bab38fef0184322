# faccao_hub/domain/partnership_request.py
# Define o modelo ORM de solicitações de parceria (marca -> facção do pool).

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from sqlalchemy import String, Text, Boolean, ForeignKey, Index, text, Enum as SqlEnum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import TIMESTAMP

from faccao_hub.database.base import Base, generate_id
from faccao_hub.utils.data_conversion import utc_now, ensure_utc, isoformat_or_none

class PartnershipRequestStatus(str, Enum):
    PENDING = 'PENDING'
    ACCEPTED = 'ACCEPTED'
    REJECTED = 'REJECTED'
    CANCELLED = 'CANCELLED'
    EXPIRED = 'EXPIRED'

_PENDING_SQL = text("status = 'PENDING'")

class PartnershipRequest(Base):
    """
    Solicitação de parceria com prazo. Todos os status além de PENDING são terminais.
    A expiração é avaliada na leitura (effective_status); o sweep apenas a persiste.
    """
    __tablename__ = 'partnership_requests'
    __table_args__ = (
        # Uma única solicitação PENDING por par (marca, facção)
        Index(
            'uq_partnership_requests_pair_pending',
            'brand_id', 'supplier_id',
            unique=True,
            postgresql_where=_PENDING_SQL,
            sqlite_where=_PENDING_SQL,
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    brand_id: Mapped[str] = mapped_column(ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    supplier_id: Mapped[str] = mapped_column(ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    requested_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[PartnershipRequestStatus] = mapped_column(
        SqlEnum(PartnershipRequestStatus, native_enum=False, length=16),
        default=PartnershipRequestStatus.PENDING, nullable=False, index=True
    )
    message: Mapped[Optional[str]] = mapped_column(Text)
    responded_by_id: Mapped[Optional[str]] = mapped_column(String(36))
    responded_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    document_sharing_consent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, index=True)
    relationship_id: Mapped[Optional[str]] = mapped_column(ForeignKey('supplier_brand_relationships.id', ondelete='SET NULL'))
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    def is_expired(self, now: datetime) -> bool:
        return (self.status == PartnershipRequestStatus.PENDING
                and ensure_utc(self.expires_at) <= ensure_utc(now))

    def effective_status(self, now: datetime) -> PartnershipRequestStatus:
        """Status para fins de consulta: PENDING vencido conta como EXPIRED."""
        if self.is_expired(now):
            return PartnershipRequestStatus.EXPIRED
        return self.status

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        status = self.effective_status(now) if now is not None else self.status
        return {
            'id': self.id,
            'brand_id': self.brand_id,
            'supplier_id': self.supplier_id,
            'requested_by_id': self.requested_by_id,
            'status': status.value if status else None,
            'message': self.message,
            'responded_by_id': self.responded_by_id,
            'responded_at': isoformat_or_none(self.responded_at),
            'rejection_reason': self.rejection_reason,
            'document_sharing_consent': self.document_sharing_consent,
            'expires_at': isoformat_or_none(self.expires_at),
            'relationship_id': self.relationship_id,
            'created_at': isoformat_or_none(self.created_at),
            'updated_at': isoformat_or_none(self.updated_at),
        }

    def __repr__(self):
        return f"<PartnershipRequest(id={self.id}, brand={self.brand_id}, supplier={self.supplier_id}, status={self.status})>"
