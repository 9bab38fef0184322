# faccao_hub/domain/supplier_document.py
# Documentos de conformidade das facções. O status NÃO é armazenado:
# é sempre derivado de expires_at + presença de arquivo no momento da leitura.

from datetime import datetime, date, timedelta
from enum import Enum
from typing import Optional, Dict, Any, Union
from sqlalchemy import Integer, String, Text, ForeignKey, Index, Enum as SqlEnum, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import TIMESTAMP

from faccao_hub.database.base import Base, generate_id
from faccao_hub.utils.data_conversion import utc_now, ensure_utc, isoformat_or_none

class SupplierDocumentType(str, Enum):
    CONTRATO_SOCIAL = 'CONTRATO_SOCIAL'
    CARTAO_CNPJ = 'CARTAO_CNPJ'
    CND_FEDERAL = 'CND_FEDERAL'
    CRF_FGTS = 'CRF_FGTS'
    CND_ESTADUAL = 'CND_ESTADUAL'
    CND_MUNICIPAL = 'CND_MUNICIPAL'
    CNDT_TRABALHISTA = 'CNDT_TRABALHISTA'
    ALVARA_FUNCIONAMENTO = 'ALVARA_FUNCIONAMENTO'
    LICENCA_AMBIENTAL = 'LICENCA_AMBIENTAL'
    AVCB = 'AVCB'
    LAUDO_NR = 'LAUDO_NR'
    GUIA_INSS = 'GUIA_INSS'
    GUIA_FGTS = 'GUIA_FGTS'

# Guias mensais: exigem competência (mês/ano)
MONTHLY_DOCUMENT_TYPES = frozenset({SupplierDocumentType.GUIA_INSS, SupplierDocumentType.GUIA_FGTS})

class DocumentStatus(str, Enum):
    PENDING = 'PENDING'
    VALID = 'VALID'
    EXPIRING_SOON = 'EXPIRING_SOON'
    EXPIRED = 'EXPIRED'

DEFAULT_EXPIRING_SOON_DAYS = 30

def compute_document_status(expires_at: Union[datetime, date, None],
                            has_file: bool,
                            now: Union[datetime, date],
                            expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS) -> DocumentStatus:
    """
    Deriva o status de conformidade de um documento. Função pura.

    - sem arquivo                         -> PENDING (independente da validade)
    - com arquivo, sem validade           -> VALID
    - now >= expires_at                   -> EXPIRED
    - now >= expires_at - N dias          -> EXPIRING_SOON
    - caso contrário                      -> VALID
    """
    if not has_file:
        return DocumentStatus.PENDING
    if expires_at is None:
        return DocumentStatus.VALID
    expires = ensure_utc(expires_at)
    current = ensure_utc(now)
    if current >= expires:
        return DocumentStatus.EXPIRED
    if current >= expires - timedelta(days=expiring_soon_days):
        return DocumentStatus.EXPIRING_SOON
    return DocumentStatus.VALID

_NO_COMPETENCE_SQL = text("competence_month IS NULL AND competence_year IS NULL")
_WITH_COMPETENCE_SQL = text("competence_month IS NOT NULL AND competence_year IS NOT NULL")

class SupplierDocument(Base):
    """
    Um documento de conformidade por (empresa, tipo[, competência]).
    """
    __tablename__ = 'supplier_documents'
    __table_args__ = (
        # Competência é toda nula ou toda preenchida; NULL não colide num UNIQUE simples
        Index(
            'uq_supplier_documents_company_type',
            'company_id', 'type',
            unique=True,
            postgresql_where=_NO_COMPETENCE_SQL,
            sqlite_where=_NO_COMPETENCE_SQL,
        ),
        Index(
            'uq_supplier_documents_company_type_competence',
            'company_id', 'type', 'competence_month', 'competence_year',
            unique=True,
            postgresql_where=_WITH_COMPETENCE_SQL,
            sqlite_where=_WITH_COMPETENCE_SQL,
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    company_id: Mapped[str] = mapped_column(ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    type: Mapped[SupplierDocumentType] = mapped_column(SqlEnum(SupplierDocumentType, native_enum=False, length=32), nullable=False, index=True)
    competence_month: Mapped[Optional[int]] = mapped_column(Integer)
    competence_year: Mapped[Optional[int]] = mapped_column(Integer)
    file_url: Mapped[Optional[str]] = mapped_column(Text)
    file_name: Mapped[Optional[str]] = mapped_column(Text)
    expires_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    uploaded_by_id: Mapped[Optional[str]] = mapped_column(String(36))
    # Última janela de alerta notificada pelo sweep (30/15/7, 0 = vencido); não é status.
    last_expiry_alert_days: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    @property
    def has_file(self) -> bool:
        return bool(self.file_url)

    def status_at(self, now: Union[datetime, date], expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS) -> DocumentStatus:
        return compute_document_status(self.expires_at, self.has_file, now, expiring_soon_days)

    def to_dict(self, now: Union[datetime, date], expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS) -> Dict[str, Any]:
        """Serializa com o status recalculado para `now`."""
        return {
            'id': self.id,
            'company_id': self.company_id,
            'type': self.type.value if self.type else None,
            'competence_month': self.competence_month,
            'competence_year': self.competence_year,
            'file_url': self.file_url,
            'file_name': self.file_name,
            'has_file': self.has_file,
            'expires_at': isoformat_or_none(self.expires_at),
            'notes': self.notes,
            'uploaded_by_id': self.uploaded_by_id,
            'status': self.status_at(now, expiring_soon_days).value,
            'created_at': isoformat_or_none(self.created_at),
            'updated_at': isoformat_or_none(self.updated_at),
        }

    def __repr__(self):
        return f"<SupplierDocument(id={self.id}, company={self.company_id}, type={self.type})>"
