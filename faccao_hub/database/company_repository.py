# faccao_hub/database/company_repository.py
# Operações de banco de dados para empresas (marcas e facções).

from typing import List, Optional, Iterable
from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from .base_repository import BaseRepository
from faccao_hub.domain.company import Company, CompanyType
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import DatabaseError

class CompanyRepository(BaseRepository):

    def find_by_id(self, db: Session, company_id: str) -> Optional[Company]:
        logger.debug(f"ORM: Buscando empresa ID {company_id}")
        try:
            return db.get(Company, company_id)
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar empresa ID {company_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar empresa: {e}") from e

    def find_active_supplier(self, db: Session, company_id: str) -> Optional[Company]:
        """Retorna a empresa apenas se for uma facção ativa (membro do pool)."""
        company = self.find_by_id(db, company_id)
        if company and company.type == CompanyType.SUPPLIER and company.is_active:
            return company
        return None

    def list_active_suppliers(self, db: Session, exclude_ids: Iterable[str] = ()) -> List[Company]:
        """Pool de facções ativas, opcionalmente excluindo IDs."""
        exclude = list(exclude_ids)
        logger.debug(f"ORM: Listando facções ativas do pool (excluindo {len(exclude)})")
        try:
            stmt = (
                select(Company)
                .where(Company.type == CompanyType.SUPPLIER)
                .where(Company.is_active == True)
                .order_by(Company.trade_name, Company.legal_name)
            )
            if exclude:
                stmt = stmt.where(Company.id.not_in(exclude))
            return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao listar o pool de facções: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao listar facções: {e}") from e
