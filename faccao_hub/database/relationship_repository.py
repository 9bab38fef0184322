# faccao_hub/database/relationship_repository.py
# Operações de banco de dados para relacionamentos marca <-> facção.

from typing import List, Optional, Dict, Set
from sqlalchemy import select, func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from .base_repository import BaseRepository
from faccao_hub.domain.relationship import (
    SupplierBrandRelationship, RelationshipStatus, RelationshipStatusHistory
)
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import DatabaseError

DUPLICATE_RELATIONSHIP_MESSAGE = "Já existe um relacionamento em aberto entre esta marca e esta facção."

class RelationshipRepository(BaseRepository):

    def find_by_id(self, db: Session, relationship_id: str) -> Optional[SupplierBrandRelationship]:
        logger.debug(f"ORM: Buscando relacionamento ID {relationship_id}")
        try:
            return db.get(SupplierBrandRelationship, relationship_id)
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar relacionamento {relationship_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar relacionamento: {e}") from e

    def find_open_for_pair(self, db: Session, brand_id: str, supplier_id: str) -> Optional[SupplierBrandRelationship]:
        """Relacionamento não encerrado do par, se houver."""
        try:
            stmt = (
                select(SupplierBrandRelationship)
                .where(SupplierBrandRelationship.brand_id == brand_id)
                .where(SupplierBrandRelationship.supplier_id == supplier_id)
                .where(SupplierBrandRelationship.status != RelationshipStatus.TERMINATED)
            )
            return db.scalars(stmt).first()
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar relacionamento do par: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar relacionamento: {e}") from e

    def add(self, db: Session, rel: SupplierBrandRelationship) -> SupplierBrandRelationship:
        logger.debug(f"ORM: Adicionando relacionamento {rel.brand_id} <-> {rel.supplier_id} à sessão")
        db.add(rel)
        self._flush(db, "adicionar relacionamento", conflict_message=DUPLICATE_RELATIONSHIP_MESSAGE)
        logger.info(f"ORM: Relacionamento adicionado (ID: {rel.id}). Commit pendente.")
        return rel

    def save(self, db: Session, rel: SupplierBrandRelationship) -> SupplierBrandRelationship:
        self._flush(db, f"atualizar relacionamento {rel.id}", conflict_message=DUPLICATE_RELATIONSHIP_MESSAGE)
        return rel

    def add_history(self, db: Session, entry: RelationshipStatusHistory) -> RelationshipStatusHistory:
        db.add(entry)
        self._flush(db, f"registrar histórico do relacionamento {entry.relationship_id}")
        return entry

    def get_history(self, db: Session, relationship_id: str) -> List[RelationshipStatusHistory]:
        try:
            stmt = (
                select(RelationshipStatusHistory)
                .where(RelationshipStatusHistory.relationship_id == relationship_id)
                .order_by(RelationshipStatusHistory.created_at, RelationshipStatusHistory.id)
            )
            return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar histórico do relacionamento {relationship_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar histórico: {e}") from e

    def list_for_company(self, db: Session, brand_id: Optional[str] = None, supplier_id: Optional[str] = None,
                         status: Optional[RelationshipStatus] = None) -> List[SupplierBrandRelationship]:
        try:
            stmt = select(SupplierBrandRelationship)
            if brand_id:
                stmt = stmt.where(SupplierBrandRelationship.brand_id == brand_id)
            if supplier_id:
                stmt = stmt.where(SupplierBrandRelationship.supplier_id == supplier_id)
            if status:
                stmt = stmt.where(SupplierBrandRelationship.status == status)
            stmt = stmt.order_by(SupplierBrandRelationship.priority, SupplierBrandRelationship.created_at.desc())
            return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao listar relacionamentos: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao listar relacionamentos: {e}") from e

    def open_supplier_ids_for_brand(self, db: Session, brand_id: str) -> Set[str]:
        try:
            stmt = (
                select(SupplierBrandRelationship.supplier_id)
                .where(SupplierBrandRelationship.brand_id == brand_id)
                .where(SupplierBrandRelationship.status != RelationshipStatus.TERMINATED)
            )
            return set(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao listar facções relacionadas: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao listar facções relacionadas: {e}") from e

    def count_by_status(self, db: Session, brand_id: Optional[str] = None,
                        supplier_id: Optional[str] = None) -> Dict[RelationshipStatus, int]:
        try:
            stmt = select(SupplierBrandRelationship.status, func.count(SupplierBrandRelationship.id))
            if brand_id:
                stmt = stmt.where(SupplierBrandRelationship.brand_id == brand_id)
            if supplier_id:
                stmt = stmt.where(SupplierBrandRelationship.supplier_id == supplier_id)
            stmt = stmt.group_by(SupplierBrandRelationship.status)
            return {status: count for status, count in db.execute(stmt).all()}
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao contar relacionamentos: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao contar relacionamentos: {e}") from e
