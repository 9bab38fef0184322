# faccao_hub/database/supplier_document_repository.py
# Operações de banco de dados para documentos de conformidade das facções.

from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from .base_repository import BaseRepository
from faccao_hub.domain.supplier_document import SupplierDocument, SupplierDocumentType
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import DatabaseError

DUPLICATE_DOCUMENT_MESSAGE = "Já existe um documento deste tipo para esta competência."

class SupplierDocumentRepository(BaseRepository):

    def find_by_id(self, db: Session, document_id: str) -> Optional[SupplierDocument]:
        logger.debug(f"ORM: Buscando documento ID {document_id}")
        try:
            return db.get(SupplierDocument, document_id)
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar documento {document_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar documento: {e}") from e

    def find_duplicate(self, db: Session, company_id: str, doc_type: SupplierDocumentType,
                       competence_month: Optional[int], competence_year: Optional[int],
                       exclude_id: Optional[str] = None) -> Optional[SupplierDocument]:
        # Mesma regra dos índices únicos parciais; o IntegrityError no flush cobre a corrida
        try:
            stmt = (
                select(SupplierDocument)
                .where(SupplierDocument.company_id == company_id)
                .where(SupplierDocument.type == doc_type)
            )
            stmt = stmt.where(SupplierDocument.competence_month.is_(None) if competence_month is None
                              else SupplierDocument.competence_month == competence_month)
            stmt = stmt.where(SupplierDocument.competence_year.is_(None) if competence_year is None
                              else SupplierDocument.competence_year == competence_year)
            if exclude_id:
                stmt = stmt.where(SupplierDocument.id != exclude_id)
            return db.scalars(stmt).first()
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao verificar documento duplicado: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao verificar documento duplicado: {e}") from e

    def list_documents(self, db: Session, company_id: Optional[str] = None,
                       doc_type: Optional[SupplierDocumentType] = None) -> List[SupplierDocument]:
        try:
            stmt = select(SupplierDocument)
            if company_id:
                stmt = stmt.where(SupplierDocument.company_id == company_id)
            if doc_type:
                stmt = stmt.where(SupplierDocument.type == doc_type)
            stmt = stmt.order_by(
                SupplierDocument.company_id,
                SupplierDocument.type,
                SupplierDocument.competence_year.desc(),
                SupplierDocument.competence_month.desc(),
                SupplierDocument.created_at.desc(),
            )
            return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao listar documentos: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao listar documentos: {e}") from e

    def list_with_file_and_expiry(self, db: Session) -> List[SupplierDocument]:
        """Documentos enviados e com validade (candidatos a alerta de vencimento)."""
        try:
            stmt = (
                select(SupplierDocument)
                .where(SupplierDocument.file_url.is_not(None))
                .where(SupplierDocument.expires_at.is_not(None))
            )
            return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao listar documentos com validade: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao listar documentos: {e}") from e

    def add(self, db: Session, document: SupplierDocument) -> SupplierDocument:
        logger.debug(f"ORM: Adicionando documento {document.type} da empresa {document.company_id} à sessão")
        db.add(document)
        self._flush(db, "adicionar documento", conflict_message=DUPLICATE_DOCUMENT_MESSAGE)
        logger.info(f"ORM: Documento adicionado (ID: {document.id}). Commit pendente.")
        return document

    def save(self, db: Session, document: SupplierDocument) -> SupplierDocument:
        self._flush(db, f"atualizar documento {document.id}", conflict_message=DUPLICATE_DOCUMENT_MESSAGE)
        return document

    def delete(self, db: Session, document: SupplierDocument):
        logger.debug(f"ORM: Excluindo documento ID {document.id}")
        db.delete(document)
        self._flush(db, f"excluir documento {document.id}")
        logger.info(f"ORM: Documento ID {document.id} marcado para exclusão. Commit pendente.")
