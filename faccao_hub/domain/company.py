# faccao_hub/domain/company.py
# Define o modelo ORM de empresas (marcas e facções) do marketplace.

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from sqlalchemy import String, Text, Boolean, Enum as SqlEnum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import TIMESTAMP

from faccao_hub.database.base import Base, generate_id
from faccao_hub.utils.data_conversion import utc_now, isoformat_or_none

class CompanyType(str, Enum):
    BRAND = 'BRAND'
    SUPPLIER = 'SUPPLIER'

class Company(Base):
    """
    Empresa cadastrada na plataforma. Facções ativas formam o pool de fornecedores.
    """
    __tablename__ = 'companies'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    type: Mapped[CompanyType] = mapped_column(SqlEnum(CompanyType, native_enum=False, length=16), nullable=False, index=True)
    cnpj: Mapped[str] = mapped_column(String(14), unique=True, nullable=False, index=True)
    legal_name: Mapped[str] = mapped_column(Text, nullable=False)
    trade_name: Mapped[Optional[str]] = mapped_column(Text)
    city: Mapped[Optional[str]] = mapped_column(Text)
    state: Mapped[Optional[str]] = mapped_column(String(2))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value if self.type else None,
            'cnpj': self.cnpj,
            'legal_name': self.legal_name,
            'trade_name': self.trade_name,
            'city': self.city,
            'state': self.state,
            'is_active': self.is_active,
            'created_at': isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f"<Company(id={self.id}, type={self.type}, trade_name='{self.trade_name}')>"
