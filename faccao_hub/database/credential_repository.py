# faccao_hub/database/credential_repository.py
# Gerencia operações de banco de dados de credenciais, histórico de status e validações.

from datetime import datetime
from typing import List, Optional, Dict, Tuple
from sqlalchemy import select, func, update, or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from .base_repository import BaseRepository
from faccao_hub.domain.credential import (
    Credential, CredentialStatus, CredentialStatusHistory, CredentialValidation
)
from faccao_hub.domain.filters import CredentialFilters
from faccao_hub.utils.data_conversion import only_digits
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import DatabaseError

DUPLICATE_TAX_ID_MESSAGE = "Já existe uma credencial ativa para este CNPJ nesta marca."

_SORT_COLUMNS = {
    'created_at': Credential.created_at,
    'updated_at': Credential.updated_at,
    'trade_name': Credential.trade_name,
    'status': Credential.status,
    'priority': Credential.priority,
}

class CredentialRepository(BaseRepository):
    """
    Repositório de credenciais. A unicidade (marca, CNPJ) entre registros não bloqueados
    é garantida pelo índice parcial; a checagem prévia só antecipa a mensagem.
    """

    def find_by_id(self, db: Session, credential_id: str) -> Optional[Credential]:
        logger.debug(f"ORM: Buscando credencial ID {credential_id}")
        try:
            return db.get(Credential, credential_id)
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar credencial ID {credential_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar credencial: {e}") from e

    def find_open_by_tax_id(self, db: Session, brand_id: str, tax_id: str,
                            exclude_id: Optional[str] = None) -> Optional[Credential]:
        """Credencial não bloqueada da marca para o CNPJ (opcionalmente ignorando um ID)."""
        try:
            stmt = (
                select(Credential)
                .where(Credential.brand_id == brand_id)
                .where(Credential.tax_id == tax_id)
                .where(Credential.status != CredentialStatus.BLOCKED)
            )
            if exclude_id:
                stmt = stmt.where(Credential.id != exclude_id)
            return db.scalars(stmt).first()
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao verificar CNPJ duplicado: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao verificar CNPJ duplicado: {e}") from e

    def add(self, db: Session, credential: Credential) -> Credential:
        logger.debug(f"ORM: Adicionando credencial da marca {credential.brand_id} à sessão")
        db.add(credential)
        self._flush(db, "adicionar credencial", conflict_message=DUPLICATE_TAX_ID_MESSAGE)
        logger.info(f"ORM: Credencial adicionada (ID: {credential.id}). Commit pendente.")
        return credential

    def save(self, db: Session, credential: Credential) -> Credential:
        self._flush(db, f"atualizar credencial {credential.id}", conflict_message=DUPLICATE_TAX_ID_MESSAGE)
        logger.debug(f"ORM: Credencial ID {credential.id} atualizada na sessão. Commit pendente.")
        return credential

    # --- Histórico ---

    def add_history(self, db: Session, entry: CredentialStatusHistory) -> CredentialStatusHistory:
        db.add(entry)
        self._flush(db, f"registrar histórico da credencial {entry.credential_id}")
        return entry

    def get_history(self, db: Session, credential_id: str) -> List[CredentialStatusHistory]:
        try:
            stmt = (
                select(CredentialStatusHistory)
                .where(CredentialStatusHistory.credential_id == credential_id)
                .order_by(CredentialStatusHistory.created_at, CredentialStatusHistory.id)
            )
            return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar histórico da credencial {credential_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar histórico: {e}") from e

    # --- Validações ---

    def add_validation(self, db: Session, validation: CredentialValidation) -> CredentialValidation:
        db.add(validation)
        self._flush(db, f"registrar validação da credencial {validation.credential_id}")
        return validation

    def list_validations(self, db: Session, credential_id: str) -> List[CredentialValidation]:
        try:
            stmt = (
                select(CredentialValidation)
                .where(CredentialValidation.credential_id == credential_id)
                .order_by(CredentialValidation.checked_at.desc(), CredentialValidation.id.desc())
            )
            return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao listar validações da credencial {credential_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao listar validações: {e}") from e

    def invalidate_validations(self, db: Session, credential_id: str) -> int:
        """Marca todas as validações da credencial como inválidas. Retorna o número de linhas afetadas."""
        try:
            result = db.execute(
                update(CredentialValidation)
                .where(CredentialValidation.credential_id == credential_id)
                .values(is_valid=False)
                .execution_options(synchronize_session='fetch')
            )
            logger.debug(f"ORM: {result.rowcount} validações invalidadas para a credencial {credential_id}")
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao invalidar validações da credencial {credential_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao invalidar validações: {e}") from e

    # --- Listagem / estatísticas ---

    def list_paginated(self, db: Session, brand_id: str, filters: CredentialFilters) -> Tuple[List[Credential], int]:
        logger.debug(f"ORM: Listando credenciais da marca {brand_id} com filtros {filters}")
        try:
            stmt = select(Credential).where(Credential.brand_id == brand_id)

            if filters.search:
                term = f"%{filters.search.lower()}%"
                conditions = [
                    func.lower(Credential.trade_name).like(term),
                    func.lower(Credential.legal_name).like(term),
                    func.lower(Credential.internal_code).like(term),
                    func.lower(Credential.contact_name).like(term),
                ]
                digits = only_digits(filters.search)
                if digits:
                    conditions.append(Credential.tax_id.like(f"%{digits}%"))
                stmt = stmt.where(or_(*conditions))
            if filters.status:
                stmt = stmt.where(Credential.status == filters.status)
            if filters.statuses:
                stmt = stmt.where(Credential.status.in_(filters.statuses))
            if filters.category:
                stmt = stmt.where(Credential.category == filters.category)
            if filters.created_from:
                stmt = stmt.where(Credential.created_at >= filters.created_from)
            if filters.created_to:
                stmt = stmt.where(Credential.created_at <= filters.created_to)

            total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0

            sort_column = _SORT_COLUMNS[filters.sort_by]
            order = sort_column.asc() if filters.sort_order == 'asc' else sort_column.desc()
            stmt = stmt.order_by(order, Credential.id).offset(filters.offset).limit(filters.limit)
            items = list(db.scalars(stmt).all())
            logger.debug(f"ORM: {len(items)} de {total} credenciais retornadas para a marca {brand_id}")
            return items, total
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao listar credenciais da marca {brand_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao listar credenciais: {e}") from e

    def count_by_status(self, db: Session, brand_id: str) -> Dict[CredentialStatus, int]:
        try:
            stmt = (
                select(Credential.status, func.count(Credential.id))
                .where(Credential.brand_id == brand_id)
                .group_by(Credential.status)
            )
            return {status: count for status, count in db.execute(stmt).all()}
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao contar credenciais por status: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao contar credenciais: {e}") from e

    def count_created_since(self, db: Session, brand_id: str, since: datetime) -> int:
        try:
            stmt = (
                select(func.count(Credential.id))
                .where(Credential.brand_id == brand_id)
                .where(Credential.created_at >= since)
            )
            return db.scalar(stmt) or 0
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao contar credenciais criadas: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao contar credenciais: {e}") from e

    def count_completed_since(self, db: Session, brand_id: str, since: datetime) -> int:
        try:
            stmt = (
                select(func.count(Credential.id))
                .where(Credential.brand_id == brand_id)
                .where(Credential.completed_at.is_not(None))
                .where(Credential.completed_at >= since)
            )
            return db.scalar(stmt) or 0
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao contar credenciais concluídas: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao contar credenciais: {e}") from e
