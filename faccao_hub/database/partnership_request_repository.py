# faccao_hub/database/partnership_request_repository.py
# Operações de banco de dados para solicitações de parceria.

from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import select, func, and_, or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from .base_repository import BaseRepository
from faccao_hub.domain.partnership_request import PartnershipRequest, PartnershipRequestStatus
from faccao_hub.domain.filters import PartnershipRequestFilters
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import DatabaseError

DUPLICATE_PENDING_MESSAGE = "Já existe uma solicitação pendente para esta facção."

def _effective_status_clause(status: PartnershipRequestStatus, now: datetime):
    """Filtro SQL equivalente a PartnershipRequest.effective_status(now) == status."""
    pending = PartnershipRequest.status == PartnershipRequestStatus.PENDING
    if status == PartnershipRequestStatus.PENDING:
        return and_(pending, PartnershipRequest.expires_at > now)
    if status == PartnershipRequestStatus.EXPIRED:
        return or_(
            PartnershipRequest.status == PartnershipRequestStatus.EXPIRED,
            and_(pending, PartnershipRequest.expires_at <= now),
        )
    return PartnershipRequest.status == status

class PartnershipRequestRepository(BaseRepository):

    def find_by_id(self, db: Session, request_id: str) -> Optional[PartnershipRequest]:
        logger.debug(f"ORM: Buscando solicitação de parceria ID {request_id}")
        try:
            return db.get(PartnershipRequest, request_id)
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar solicitação {request_id}: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar solicitação: {e}") from e

    def find_pending_for_pair(self, db: Session, brand_id: str, supplier_id: str) -> Optional[PartnershipRequest]:
        """Linha gravada como PENDING para o par (pode estar vencida; o chamador decide)."""
        try:
            stmt = (
                select(PartnershipRequest)
                .where(PartnershipRequest.brand_id == brand_id)
                .where(PartnershipRequest.supplier_id == supplier_id)
                .where(PartnershipRequest.status == PartnershipRequestStatus.PENDING)
            )
            return db.scalars(stmt).first()
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar solicitação pendente do par: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar solicitação pendente: {e}") from e

    def add(self, db: Session, request: PartnershipRequest) -> PartnershipRequest:
        logger.debug(f"ORM: Adicionando solicitação {request.brand_id} -> {request.supplier_id} à sessão")
        db.add(request)
        self._flush(db, "adicionar solicitação de parceria", conflict_message=DUPLICATE_PENDING_MESSAGE)
        logger.info(f"ORM: Solicitação de parceria adicionada (ID: {request.id}). Commit pendente.")
        return request

    def save(self, db: Session, request: PartnershipRequest) -> PartnershipRequest:
        self._flush(db, f"atualizar solicitação {request.id}")
        return request

    def list_paginated(self, db: Session, now: datetime, filters: PartnershipRequestFilters,
                       brand_id: Optional[str] = None,
                       supplier_id: Optional[str] = None) -> Tuple[List[PartnershipRequest], int]:
        """Lista solicitações enviadas (brand_id) ou recebidas (supplier_id), mais recentes primeiro."""
        try:
            stmt = select(PartnershipRequest)
            if brand_id:
                stmt = stmt.where(PartnershipRequest.brand_id == brand_id)
            if supplier_id:
                stmt = stmt.where(PartnershipRequest.supplier_id == supplier_id)
            if filters.status:
                stmt = stmt.where(_effective_status_clause(filters.status, now))

            total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
            stmt = (
                stmt.order_by(PartnershipRequest.created_at.desc(), PartnershipRequest.id)
                .offset((filters.page - 1) * filters.limit)
                .limit(filters.limit)
            )
            return list(db.scalars(stmt).all()), total
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao listar solicitações de parceria: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao listar solicitações: {e}") from e

    def count_live_pending(self, db: Session, supplier_id: str, now: datetime) -> int:
        try:
            stmt = (
                select(func.count(PartnershipRequest.id))
                .where(PartnershipRequest.supplier_id == supplier_id)
                .where(_effective_status_clause(PartnershipRequestStatus.PENDING, now))
            )
            return db.scalar(stmt) or 0
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao contar solicitações pendentes: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao contar solicitações: {e}") from e

    def find_stale_pending(self, db: Session, now: datetime) -> List[PartnershipRequest]:
        """Solicitações ainda gravadas como PENDING cujo prazo já passou."""
        try:
            stmt = (
                select(PartnershipRequest)
                .where(PartnershipRequest.status == PartnershipRequestStatus.PENDING)
                .where(PartnershipRequest.expires_at <= now)
            )
            return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"ORM: Erro de banco de dados ao buscar solicitações vencidas: {e}", exc_info=True)
            raise DatabaseError(f"Erro de banco de dados ao buscar solicitações vencidas: {e}") from e
