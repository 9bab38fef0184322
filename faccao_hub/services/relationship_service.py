# faccao_hub/services/relationship_service.py
# Regras de negócio do relacionamento marca <-> facção: ciclo de vida e consentimento (LGPD).

from datetime import datetime
from typing import Callable, Dict, Any, List, Optional, Tuple
from sqlalchemy.orm import Session

from faccao_hub.database.company_repository import CompanyRepository
from faccao_hub.database.relationship_repository import RelationshipRepository, DUPLICATE_RELATIONSHIP_MESSAGE
from faccao_hub.domain.actor import Actor, ActorRole
from faccao_hub.domain.company import Company, CompanyType
from faccao_hub.domain.payloads import validate_relationship_patch
from faccao_hub.domain.relationship import (
    SupplierBrandRelationship, RelationshipStatus, RelationshipStatusHistory,
    is_relationship_transition_allowed,
)
from faccao_hub.services.access import require_party, require_role, require_company, resolve_company_scope
from faccao_hub.services.notification_service import (
    NotificationDispatcher, RELATIONSHIP_STATUS_CHANGED, CONSENT_REVOKED,
)
from faccao_hub.services.unit_of_work import unit_of_work
from faccao_hub.utils.data_conversion import utc_now
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import NotFoundError, ConflictError, InvalidStateError, ValidationError

REASON_MAX_LENGTH = 500

def _require_reason(reason: Optional[str], field_name: str = 'reason') -> str:
    if reason is None or not str(reason).strip():
        raise ValidationError(f"'{field_name}' is required.", payload={'field': field_name})
    reason = str(reason).strip()
    if len(reason) > REASON_MAX_LENGTH:
        raise ValidationError(f"'{field_name}' must have at most {REASON_MAX_LENGTH} characters.", payload={'field': field_name})
    return reason

class RelationshipService:
    """
    Camada de serviço para relacionamentos.

    Toda mudança de status passa por transition(), que consulta a allow-list e grava o
    histórico na mesma sessão. TERMINATED é absorvente.
    """

    def __init__(self, relationship_repository: RelationshipRepository, company_repository: CompanyRepository,
                 notifier: Optional[NotificationDispatcher] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.relationship_repository = relationship_repository
        self.company_repository = company_repository
        self.notifier = notifier or NotificationDispatcher()
        self.clock = clock
        logger.info("RelationshipService inicializado.")

    # --- Helpers de sessão (usados também por solicitações e contratos) ---

    def load_for_party(self, db: Session, relationship_id: str, actor: Actor) -> SupplierBrandRelationship:
        rel = self.relationship_repository.find_by_id(db, relationship_id)
        if not rel:
            raise NotFoundError(f"Relationship {relationship_id} not found.")
        require_party(actor, rel.brand_id, rel.supplier_id)
        return rel

    def create_in_session(self, db: Session, brand_id: str, supplier_id: str, actor: Actor,
                          initiated_by_id: Optional[str] = None,
                          initiated_by_role: Optional[ActorRole] = None,
                          document_sharing_consent: bool = False,
                          fields: Optional[Dict[str, Any]] = None) -> SupplierBrandRelationship:
        if self.relationship_repository.find_open_for_pair(db, brand_id, supplier_id):
            raise ConflictError(DUPLICATE_RELATIONSHIP_MESSAGE)
        now = self.clock()
        rel = SupplierBrandRelationship(
            brand_id=brand_id,
            supplier_id=supplier_id,
            status=RelationshipStatus.CONTRACT_PENDING,
            initiated_by_id=initiated_by_id or actor.id,
            initiated_by_role=initiated_by_role or actor.role,
            document_sharing_consent=bool(document_sharing_consent),
            document_sharing_consent_at=now if document_sharing_consent else None,
            created_at=now,
            updated_at=now,
            **(fields or {}),
        )
        if rel.priority is None:
            rel.priority = 0
        self.relationship_repository.add(db, rel)
        self.relationship_repository.add_history(db, RelationshipStatusHistory(
            relationship_id=rel.id,
            from_status=None,
            to_status=RelationshipStatus.CONTRACT_PENDING,
            performed_by_id=actor.id,
            reason='Relacionamento criado',
            created_at=now,
        ))
        logger.info(f"Relacionamento {rel.id} criado ({brand_id} <-> {supplier_id}) em CONTRACT_PENDING por {actor.id}.")
        return rel

    def transition(self, db: Session, rel: SupplierBrandRelationship, target: RelationshipStatus,
                   actor: Actor, reason: Optional[str] = None) -> Dict[str, Any]:
        """Aplica a transição e devolve o payload do evento. Levanta InvalidStateError se recusada."""
        current = rel.status
        if not is_relationship_transition_allowed(current, target):
            logger.warning(f"Transição recusada para relacionamento {rel.id}: {current.value} -> {target.value}.")
            raise InvalidStateError(
                f"Cannot change relationship status from {current.value} to {target.value}.",
                payload={'from_status': current.value, 'to_status': target.value}
            )
        now = self.clock()
        rel.status = target
        rel.updated_at = now
        if target == RelationshipStatus.ACTIVE:
            rel.activated_at = rel.activated_at or now
            rel.suspended_at = None
            rel.suspension_reason = None
        elif target == RelationshipStatus.SUSPENDED:
            rel.suspended_at = now
            rel.suspension_reason = reason
        elif target == RelationshipStatus.TERMINATED:
            rel.terminated_at = now
            rel.termination_reason = reason
        self.relationship_repository.save(db, rel)
        self.relationship_repository.add_history(db, RelationshipStatusHistory(
            relationship_id=rel.id,
            from_status=current,
            to_status=target,
            performed_by_id=actor.id,
            reason=reason,
            created_at=now,
        ))
        logger.info(f"Relacionamento {rel.id}: {current.value} -> {target.value} por {actor.id}.")
        return {
            'relationship_id': rel.id,
            'brand_id': rel.brand_id,
            'supplier_id': rel.supplier_id,
            'from_status': current.value,
            'to_status': target.value,
            'performed_by_id': actor.id,
            'reason': reason,
        }

    def _resolve_pair(self, db: Session, actor: Actor, brand_id: Optional[str],
                      supplier_id: Optional[str]) -> Tuple[Company, Company]:
        if actor.is_brand:
            brand_id = actor.company_id if not brand_id else brand_id
            require_company(actor, brand_id)
        elif actor.is_supplier:
            supplier_id = actor.company_id if not supplier_id else supplier_id
            require_company(actor, supplier_id)
        if not brand_id or not supplier_id:
            raise ValidationError("Both brand_id and supplier_id are required.",
                                  payload={'field': 'supplier_id' if brand_id else 'brand_id'})
        brand = self.company_repository.find_by_id(db, brand_id)
        if not brand or brand.type != CompanyType.BRAND:
            raise NotFoundError(f"Brand {brand_id} not found.")
        supplier = self.company_repository.find_active_supplier(db, supplier_id)
        if not supplier:
            raise NotFoundError(f"Supplier {supplier_id} not found.")
        return brand, supplier

    def _change(self, relationship_id: str, actor: Actor, target: RelationshipStatus, action: str,
                reason: Optional[str] = None, brand_only: bool = False) -> SupplierBrandRelationship:
        with unit_of_work(action) as db:
            rel = self.load_for_party(db, relationship_id, actor)
            if brand_only:
                require_company(actor, rel.brand_id, "Only the brand of the relationship can do this.")
            event = self.transition(db, rel, target, actor, reason)
        self.notifier.emit(RELATIONSHIP_STATUS_CHANGED, event)
        return rel

    # --- Operações ---

    def create(self, actor: Actor, brand_id: Optional[str] = None, supplier_id: Optional[str] = None,
               data: Optional[Dict[str, Any]] = None) -> SupplierBrandRelationship:
        fields = validate_relationship_patch(data or {})
        with unit_of_work("criar relacionamento") as db:
            brand, supplier = self._resolve_pair(db, actor, brand_id, supplier_id)
            rel = self.create_in_session(db, brand.id, supplier.id, actor, fields=fields)
        return rel

    def get_one(self, relationship_id: str, actor: Actor) -> SupplierBrandRelationship:
        with unit_of_work("buscar relacionamento") as db:
            return self.load_for_party(db, relationship_id, actor)

    def get_history(self, relationship_id: str, actor: Actor) -> List[RelationshipStatusHistory]:
        with unit_of_work("buscar histórico do relacionamento") as db:
            self.load_for_party(db, relationship_id, actor)
            return self.relationship_repository.get_history(db, relationship_id)

    def get_by_brand(self, actor: Actor, brand_id: Optional[str] = None,
                     status: Optional[RelationshipStatus] = None) -> List[SupplierBrandRelationship]:
        brand_id = resolve_company_scope(actor, ActorRole.BRAND, brand_id)
        with unit_of_work("listar relacionamentos da marca") as db:
            return self.relationship_repository.list_for_company(db, brand_id=brand_id, status=status)

    def get_by_supplier(self, actor: Actor, supplier_id: Optional[str] = None,
                        status: Optional[RelationshipStatus] = None) -> List[SupplierBrandRelationship]:
        supplier_id = resolve_company_scope(actor, ActorRole.SUPPLIER, supplier_id)
        with unit_of_work("listar relacionamentos da facção") as db:
            return self.relationship_repository.list_for_company(db, supplier_id=supplier_id, status=status)

    def get_available_for_brand(self, actor: Actor, brand_id: Optional[str] = None) -> List[Company]:
        """Pool de facções ativas menos as que já têm relacionamento em aberto com a marca."""
        brand_id = resolve_company_scope(actor, ActorRole.BRAND, brand_id)
        with unit_of_work("listar facções disponíveis") as db:
            related = self.relationship_repository.open_supplier_ids_for_brand(db, brand_id)
            return self.company_repository.list_active_suppliers(db, exclude_ids=related)

    def update(self, relationship_id: str, data: Dict[str, Any], actor: Actor) -> SupplierBrandRelationship:
        fields = validate_relationship_patch(data)
        with unit_of_work("atualizar relacionamento") as db:
            rel = self.load_for_party(db, relationship_id, actor)
            if rel.status == RelationshipStatus.TERMINATED:
                raise InvalidStateError("Terminated relationships cannot be edited.", payload={'status': rel.status.value})
            for name, value in fields.items():
                setattr(rel, name, 0 if name == 'priority' and value is None else value)
            rel.updated_at = self.clock()
            self.relationship_repository.save(db, rel)
        logger.info(f"Relacionamento {relationship_id} atualizado por {actor.id}: campos {sorted(fields)}.")
        return rel

    def activate(self, relationship_id: str, actor: Actor) -> SupplierBrandRelationship:
        """CONTRACT_PENDING/PENDING -> ACTIVE. Já ACTIVE: nada a fazer."""
        with unit_of_work("ativar relacionamento") as db:
            rel = self.load_for_party(db, relationship_id, actor)
            if rel.status == RelationshipStatus.ACTIVE:
                logger.debug(f"Relacionamento {relationship_id} já está ACTIVE; ativação ignorada.")
                return rel
            if rel.status not in (RelationshipStatus.CONTRACT_PENDING, RelationshipStatus.PENDING):
                raise InvalidStateError(
                    f"Only CONTRACT_PENDING or PENDING relationships can be activated (current: {rel.status.value}).",
                    payload={'status': rel.status.value}
                )
            event = self.transition(db, rel, RelationshipStatus.ACTIVE, actor, 'Relacionamento ativado')
        self.notifier.emit(RELATIONSHIP_STATUS_CHANGED, event)
        return rel

    def suspend(self, relationship_id: str, actor: Actor, reason: Optional[str]) -> SupplierBrandRelationship:
        reason = _require_reason(reason)
        return self._change(relationship_id, actor, RelationshipStatus.SUSPENDED, "suspender relacionamento",
                            reason, brand_only=True)

    def reactivate(self, relationship_id: str, actor: Actor) -> SupplierBrandRelationship:
        with unit_of_work("reativar relacionamento") as db:
            rel = self.load_for_party(db, relationship_id, actor)
            require_company(actor, rel.brand_id, "Only the brand of the relationship can do this.")
            if rel.status != RelationshipStatus.SUSPENDED:
                raise InvalidStateError(
                    f"Only SUSPENDED relationships can be reactivated (current: {rel.status.value}).",
                    payload={'status': rel.status.value}
                )
            event = self.transition(db, rel, RelationshipStatus.ACTIVE, actor, 'Relacionamento reativado')
        self.notifier.emit(RELATIONSHIP_STATUS_CHANGED, event)
        return rel

    def terminate(self, relationship_id: str, actor: Actor, reason: Optional[str]) -> SupplierBrandRelationship:
        reason = _require_reason(reason)
        return self._change(relationship_id, actor, RelationshipStatus.TERMINATED, "encerrar relacionamento", reason)

    def get_stats(self, actor: Actor, brand_id: Optional[str] = None) -> Dict[str, Any]:
        brand_id = resolve_company_scope(actor, ActorRole.BRAND, brand_id)
        with unit_of_work("calcular estatísticas de relacionamentos") as db:
            counts = self.relationship_repository.count_by_status(db, brand_id=brand_id)
        by_status = {status.value: counts.get(status, 0) for status in RelationshipStatus}
        return {'total': sum(by_status.values()), 'by_status': by_status}

    # --- Consentimento (LGPD) ---

    def get_consent_status(self, relationship_id: str, actor: Actor) -> Dict[str, Any]:
        with unit_of_work("consultar consentimento") as db:
            rel = self.load_for_party(db, relationship_id, actor)
            return self._consent_dict(rel)

    def _consent_dict(self, rel: SupplierBrandRelationship) -> Dict[str, Any]:
        full = rel.to_dict()
        keys = ('document_sharing_consent', 'document_sharing_consent_at',
                'document_sharing_revoked_at', 'document_sharing_revoked_reason', 'status')
        return {'relationship_id': rel.id, **{k: full[k] for k in keys}}

    def update_consent(self, relationship_id: str, consent: bool, actor: Actor) -> Dict[str, Any]:
        """Liga/desliga o compartilhamento de documentos sem alterar o status."""
        if not isinstance(consent, bool):
            raise ValidationError("'consent' must be a boolean.", payload={'field': 'consent'})
        require_role(actor, ActorRole.SUPPLIER, "Only the supplier can change document sharing consent.")
        with unit_of_work("atualizar consentimento") as db:
            rel = self.load_for_party(db, relationship_id, actor)
            require_company(actor, rel.supplier_id, "Only the supplier can change document sharing consent.")
            if rel.status == RelationshipStatus.TERMINATED:
                raise InvalidStateError("Consent cannot be changed on a terminated relationship.",
                                        payload={'status': rel.status.value})
            now = self.clock()
            rel.document_sharing_consent = consent
            if consent:
                rel.document_sharing_consent_at = now
                rel.document_sharing_revoked_at = None
                rel.document_sharing_revoked_reason = None
            rel.updated_at = now
            self.relationship_repository.save(db, rel)
            result = self._consent_dict(rel)
        logger.info(f"Consentimento {'concedido' if consent else 'removido'} no relacionamento {relationship_id} por {actor.id}.")
        result['message'] = 'Consentimento concedido' if consent else 'Consentimento removido'
        return result

    def revoke_consent(self, relationship_id: str, reason: Optional[str], actor: Actor) -> Dict[str, Any]:
        """
        Revoga o consentimento e encerra o relacionamento na mesma transação.
        Apenas a facção do relacionamento pode revogar.
        """
        reason = _require_reason(reason)
        require_role(actor, ActorRole.SUPPLIER, "Only the supplier can revoke consent.")
        with unit_of_work("revogar consentimento") as db:
            rel = self.load_for_party(db, relationship_id, actor)
            require_company(actor, rel.supplier_id, "Only the supplier can revoke consent.")
            if rel.status == RelationshipStatus.TERMINATED:
                raise InvalidStateError("Relationship is already terminated.", payload={'status': rel.status.value})
            now = self.clock()
            rel.document_sharing_consent = False
            rel.document_sharing_revoked_at = now
            rel.document_sharing_revoked_reason = reason
            event = self.transition(db, rel, RelationshipStatus.TERMINATED, actor, f"Consentimento revogado: {reason}")
            result = self._consent_dict(rel)
        logger.info(f"Consentimento revogado e relacionamento {relationship_id} encerrado por {actor.id}.")
        self.notifier.emit(CONSENT_REVOKED, {'relationship_id': rel.id, 'brand_id': rel.brand_id,
                                             'supplier_id': rel.supplier_id, 'reason': reason})
        self.notifier.emit(RELATIONSHIP_STATUS_CHANGED, event)
        result['message'] = 'Consentimento revogado e relacionamento encerrado'
        return result
