# faccao_hub/services/partnership_request_service.py
# Fluxo de solicitação de parceria: marca solicita, facção aceita/recusa, marca cancela.

from datetime import datetime, timedelta
from typing import Callable, Dict, Any, Optional

from faccao_hub.database.company_repository import CompanyRepository
from faccao_hub.database.partnership_request_repository import (
    PartnershipRequestRepository, DUPLICATE_PENDING_MESSAGE,
)
from faccao_hub.database.relationship_repository import RelationshipRepository
from faccao_hub.domain.actor import Actor, ActorRole
from faccao_hub.domain.filters import PartnershipRequestFilters, build_page_meta
from faccao_hub.domain.partnership_request import PartnershipRequest, PartnershipRequestStatus
from faccao_hub.domain.relationship import RelationshipStatus
from faccao_hub.services.access import require_company, require_party, resolve_company_scope
from faccao_hub.services.notification_service import (
    NotificationDispatcher, PARTNERSHIP_REQUEST_CREATED, PARTNERSHIP_REQUEST_RESPONDED,
    PARTNERSHIP_REQUEST_CANCELLED, PARTNERSHIP_REQUEST_EXPIRED, RELATIONSHIP_STATUS_CHANGED,
)
from faccao_hub.services.relationship_service import RelationshipService
from faccao_hub.services.unit_of_work import unit_of_work
from faccao_hub.utils.data_conversion import utc_now
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import NotFoundError, ConflictError, InvalidStateError, ValidationError

MESSAGE_MAX_LENGTH = 1000
REJECTION_REASON_MAX_LENGTH = 500

def _optional_text(value: Optional[str], field_name: str, max_len: int) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a string.", payload={'field': field_name})
    value = value.strip()
    if len(value) > max_len:
        raise ValidationError(f"'{field_name}' must have at most {max_len} characters.", payload={'field': field_name})
    return value or None

class PartnershipRequestService:
    """
    Camada de serviço para solicitações de parceria.

    Expiração é preguiçosa: um PENDING vencido é tratado como EXPIRED em toda leitura,
    e gravado como EXPIRED quando alguém tenta agir sobre ele (ou pelo sweep).
    """

    def __init__(self, request_repository: PartnershipRequestRepository,
                 relationship_repository: RelationshipRepository,
                 company_repository: CompanyRepository,
                 relationship_service: RelationshipService,
                 notifier: Optional[NotificationDispatcher] = None,
                 ttl_days: int = 30,
                 clock: Callable[[], datetime] = utc_now):
        self.request_repository = request_repository
        self.relationship_repository = relationship_repository
        self.company_repository = company_repository
        self.relationship_service = relationship_service
        self.notifier = notifier or NotificationDispatcher()
        self.ttl_days = ttl_days
        self.clock = clock
        logger.info(f"PartnershipRequestService inicializado (validade: {ttl_days} dias).")

    def _event(self, request: PartnershipRequest) -> Dict[str, Any]:
        return {
            'request_id': request.id,
            'brand_id': request.brand_id,
            'supplier_id': request.supplier_id,
            'status': request.status.value,
            'relationship_id': request.relationship_id,
        }

    def _mark_expired(self, db, request: PartnershipRequest, now: datetime):
        request.status = PartnershipRequestStatus.EXPIRED
        request.updated_at = now
        self.request_repository.save(db, request)
        logger.info(f"Solicitação {request.id} vencida em {request.expires_at}; gravada como EXPIRED.")

    def _load_pending(self, db, request_id: str, actor: Actor, owner_company_id_attr: str,
                      forbidden_message: str):
        """Carrega a solicitação para resposta/cancelamento. Retorna (request, expired)."""
        request = self.request_repository.find_by_id(db, request_id)
        if not request:
            raise NotFoundError(f"Partnership request {request_id} not found.")
        require_company(actor, getattr(request, owner_company_id_attr), forbidden_message)
        if request.status != PartnershipRequestStatus.PENDING:
            raise InvalidStateError(
                f"Partnership request is no longer pending (status: {request.status.value}).",
                payload={'status': request.status.value}
            )
        now = self.clock()
        if request.is_expired(now):
            self._mark_expired(db, request, now)
            return request, True
        return request, False

    # --- Operações ---

    def create(self, actor: Actor, supplier_id: str, message: Optional[str] = None,
               brand_id: Optional[str] = None) -> PartnershipRequest:
        brand_id = resolve_company_scope(actor, ActorRole.BRAND, brand_id)
        message = _optional_text(message, 'message', MESSAGE_MAX_LENGTH)
        if not supplier_id:
            raise ValidationError("'supplier_id' is required.", payload={'field': 'supplier_id'})
        if supplier_id == brand_id:
            raise ValidationError("A brand cannot send a partnership request to itself.", payload={'field': 'supplier_id'})

        expired_events = []
        with unit_of_work("criar solicitação de parceria") as db:
            if not self.company_repository.find_active_supplier(db, supplier_id):
                raise NotFoundError(f"Supplier {supplier_id} not found.")

            rel = self.relationship_repository.find_open_for_pair(db, brand_id, supplier_id)
            if rel and rel.status == RelationshipStatus.ACTIVE:
                raise ConflictError("An active relationship already exists with this supplier.",
                                    payload={'relationship_id': rel.id})

            now = self.clock()
            existing = self.request_repository.find_pending_for_pair(db, brand_id, supplier_id)
            if existing:
                if not existing.is_expired(now):
                    raise ConflictError(DUPLICATE_PENDING_MESSAGE, payload={'pending_request_id': existing.id})
                # Libera o índice parcial antes de inserir a nova
                self._mark_expired(db, existing, now)
                expired_events.append(self._event(existing))

            request = PartnershipRequest(
                brand_id=brand_id,
                supplier_id=supplier_id,
                requested_by_id=actor.id,
                status=PartnershipRequestStatus.PENDING,
                message=message,
                expires_at=now + timedelta(days=self.ttl_days),
                created_at=now,
                updated_at=now,
            )
            self.request_repository.add(db, request)
            event = self._event(request)

        for expired in expired_events:
            self.notifier.emit(PARTNERSHIP_REQUEST_EXPIRED, expired)
        self.notifier.emit(PARTNERSHIP_REQUEST_CREATED, event)
        logger.info(f"Solicitação de parceria {request.id} criada: {brand_id} -> {supplier_id}.")
        return request

    def respond(self, request_id: str, actor: Actor, accepted: bool,
                rejection_reason: Optional[str] = None,
                document_sharing_consent: Optional[bool] = False) -> PartnershipRequest:
        """A facção alvo aceita (cria/vincula o relacionamento) ou recusa a solicitação."""
        if not isinstance(accepted, bool):
            raise ValidationError("'accepted' must be a boolean.", payload={'field': 'accepted'})
        rejection_reason = _optional_text(rejection_reason, 'rejection_reason', REJECTION_REASON_MAX_LENGTH)
        if document_sharing_consent is None:
            document_sharing_consent = False
        if not isinstance(document_sharing_consent, bool):
            raise ValidationError("'document_sharing_consent' must be a boolean.",
                                  payload={'field': 'document_sharing_consent'})
        consent = document_sharing_consent

        relationship_event = None
        with unit_of_work("responder solicitação de parceria") as db:
            request, expired = self._load_pending(
                db, request_id, actor, 'supplier_id', "Only the target supplier can respond to this request."
            )
            if not expired:
                now = self.clock()
                request.responded_by_id = actor.id
                request.responded_at = now
                request.updated_at = now
                if accepted:
                    request.status = PartnershipRequestStatus.ACCEPTED
                    request.document_sharing_consent = consent
                    rel = self.relationship_repository.find_open_for_pair(db, request.brand_id, request.supplier_id)
                    if rel is None:
                        rel = self.relationship_service.create_in_session(
                            db, request.brand_id, request.supplier_id, actor,
                            initiated_by_id=request.requested_by_id,
                            initiated_by_role=ActorRole.BRAND,
                            document_sharing_consent=consent,
                        )
                    else:
                        logger.info(f"Solicitação {request.id} aceita; vinculando relacionamento existente {rel.id} ({rel.status.value}).")
                        if consent and not rel.document_sharing_consent:
                            rel.document_sharing_consent = True
                            rel.document_sharing_consent_at = now
                            rel.document_sharing_revoked_at = None
                            rel.document_sharing_revoked_reason = None
                            rel.updated_at = now
                            self.relationship_repository.save(db, rel)
                        if rel.status == RelationshipStatus.SUSPENDED:
                            relationship_event = self.relationship_service.transition(
                                db, rel, RelationshipStatus.ACTIVE, actor, 'Reativado por solicitação de parceria aceita'
                            )
                    request.relationship_id = rel.id
                else:
                    request.status = PartnershipRequestStatus.REJECTED
                    request.rejection_reason = rejection_reason
                self.request_repository.save(db, request)
            event = self._event(request)

        if expired:
            self.notifier.emit(PARTNERSHIP_REQUEST_EXPIRED, event)
            raise InvalidStateError("Partnership request has expired.", payload={'status': PartnershipRequestStatus.EXPIRED.value})
        self.notifier.emit(PARTNERSHIP_REQUEST_RESPONDED, event)
        if relationship_event:
            self.notifier.emit(RELATIONSHIP_STATUS_CHANGED, relationship_event)
        logger.info(f"Solicitação {request_id} {'aceita' if accepted else 'recusada'} por {actor.id}.")
        return request

    def cancel(self, request_id: str, actor: Actor) -> PartnershipRequest:
        with unit_of_work("cancelar solicitação de parceria") as db:
            request, expired = self._load_pending(
                db, request_id, actor, 'brand_id', "Only the requesting brand can cancel this request."
            )
            if not expired:
                request.status = PartnershipRequestStatus.CANCELLED
                request.updated_at = self.clock()
                self.request_repository.save(db, request)
            event = self._event(request)

        if expired:
            self.notifier.emit(PARTNERSHIP_REQUEST_EXPIRED, event)
            raise InvalidStateError("Partnership request has expired.", payload={'status': PartnershipRequestStatus.EXPIRED.value})
        self.notifier.emit(PARTNERSHIP_REQUEST_CANCELLED, event)
        logger.info(f"Solicitação {request_id} cancelada por {actor.id}.")
        return request

    def get_by_id(self, request_id: str, actor: Actor) -> PartnershipRequest:
        with unit_of_work("buscar solicitação de parceria") as db:
            request = self.request_repository.find_by_id(db, request_id)
            if not request:
                raise NotFoundError(f"Partnership request {request_id} not found.")
            require_party(actor, request.brand_id, request.supplier_id)
            return request

    def _list(self, actor: Actor, filters: Optional[PartnershipRequestFilters], **scope) -> Dict[str, Any]:
        filters = filters or PartnershipRequestFilters()
        now = self.clock()
        with unit_of_work("listar solicitações de parceria") as db:
            items, total = self.request_repository.list_paginated(db, now, filters, **scope)
            return {
                'data': [r.to_dict(now=now) for r in items],
                'meta': build_page_meta(filters.page, filters.limit, total),
            }

    def get_sent(self, actor: Actor, filters: Optional[PartnershipRequestFilters] = None,
                 brand_id: Optional[str] = None) -> Dict[str, Any]:
        brand_id = resolve_company_scope(actor, ActorRole.BRAND, brand_id)
        return self._list(actor, filters, brand_id=brand_id)

    def get_received(self, actor: Actor, filters: Optional[PartnershipRequestFilters] = None,
                     supplier_id: Optional[str] = None) -> Dict[str, Any]:
        supplier_id = resolve_company_scope(actor, ActorRole.SUPPLIER, supplier_id)
        return self._list(actor, filters, supplier_id=supplier_id)

    def get_pending_count(self, actor: Actor, supplier_id: Optional[str] = None) -> int:
        supplier_id = resolve_company_scope(actor, ActorRole.SUPPLIER, supplier_id)
        with unit_of_work("contar solicitações pendentes") as db:
            return self.request_repository.count_live_pending(db, supplier_id, self.clock())

    def check_existing(self, actor: Actor, supplier_id: str, brand_id: Optional[str] = None) -> Dict[str, Any]:
        """Situação do par (marca, facção): relacionamento em aberto e solicitação pendente viva."""
        brand_id = resolve_company_scope(actor, ActorRole.BRAND, brand_id)
        now = self.clock()
        with unit_of_work("verificar vínculo existente") as db:
            rel = self.relationship_repository.find_open_for_pair(db, brand_id, supplier_id)
            pending = self.request_repository.find_pending_for_pair(db, brand_id, supplier_id)
            if pending and pending.is_expired(now):
                pending = None
            return {
                'has_active_relationship': bool(rel and rel.status == RelationshipStatus.ACTIVE),
                'has_pending_request': pending is not None,
                'pending_request_id': pending.id if pending else None,
                'relationship_status': rel.status.value if rel else None,
            }

    def expire_stale(self) -> int:
        """Grava EXPIRED em todas as solicitações PENDING vencidas. Usado pelo sweep."""
        now = self.clock()
        with unit_of_work("expirar solicitações vencidas") as db:
            stale = self.request_repository.find_stale_pending(db, now)
            for request in stale:
                self._mark_expired(db, request, now)
            events = [self._event(r) for r in stale]
        for event in events:
            self.notifier.emit(PARTNERSHIP_REQUEST_EXPIRED, event)
        if events:
            logger.info(f"{len(events)} solicitações de parceria expiradas.")
        return len(events)
