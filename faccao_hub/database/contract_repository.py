# faccao_hub/database/contract_repository.py
# Operações de banco de dados para contratos e revisões de contrato.

from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import SQLAlchemyError

from .base_repository import BaseRepository
from faccao_hub.domain.contract import Contract, ContractRevision, OPEN_CONTRACT_STATUSES
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import DatabaseError

class ContractRepository(BaseRepository):

    def find_by_id(self, db: Session, contract_id: str) -> Optional[Contract]:
        logger.debug(f"ORM: Buscando contrato ID {contract_id}")
        try:
            return db.get(Contract, contract_id, options=[selectinload(Contract.revisions)])
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar contrato {contract_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar contrato: {e}") from e

    def find_revision_by_id(self, db: Session, revision_id: str) -> Optional[ContractRevision]:
        try:
            return db.get(ContractRevision, revision_id)
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar revisão {revision_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar revisão: {e}") from e

    def find_open_for_relationship(self, db: Session, relationship_id: str) -> Optional[Contract]:
        """Contrato em rascunho, aguardando assinatura ou em revisão."""
        try:
            stmt = (
                select(Contract)
                .where(Contract.relationship_id == relationship_id)
                .where(Contract.status.in_(OPEN_CONTRACT_STATUSES))
            )
            return db.scalars(stmt).first()
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar contrato em aberto: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar contrato em aberto: {e}") from e

    def list_for_relationship(self, db: Session, relationship_id: str) -> List[Contract]:
        """Contratos do relacionamento, mais recentes primeiro."""
        try:
            stmt = (
                select(Contract)
                .options(selectinload(Contract.revisions))
                .where(Contract.relationship_id == relationship_id)
                .order_by(Contract.created_at.desc(), Contract.display_id.desc())
            )
            return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao listar contratos do relacionamento {relationship_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao listar contratos: {e}") from e

    def next_display_id(self, db: Session, year: int) -> str:
        """Próximo identificador legível CTR-AAAA-NNNNN (sequência anual)."""
        prefix = f"CTR-{year}-"
        try:
            last = db.scalar(select(func.max(Contract.display_id)).where(Contract.display_id.like(f"{prefix}%")))
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao gerar número do contrato: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao gerar número do contrato: {e}") from e
        sequence = int(last[len(prefix):]) + 1 if last else 1
        return f"{prefix}{sequence:05d}"

    def add(self, db: Session, contract: Contract) -> Contract:
        logger.debug(f"ORM: Adicionando contrato {contract.display_id} à sessão")
        db.add(contract)
        self._flush(db, "adicionar contrato", conflict_message="Número de contrato já utilizado; tente novamente.")
        logger.info(f"ORM: Contrato {contract.display_id} adicionado (ID: {contract.id}). Commit pendente.")
        return contract

    def save(self, db: Session, contract: Contract) -> Contract:
        self._flush(db, f"atualizar contrato {contract.id}")
        return contract

    def add_revision(self, db: Session, revision: ContractRevision) -> ContractRevision:
        db.add(revision)
        self._flush(db, f"registrar revisão do contrato {revision.contract_id}")
        return revision
