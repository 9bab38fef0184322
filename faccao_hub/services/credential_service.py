# faccao_hub/services/credential_service.py
# Regras de negócio do ciclo de vida da credencial (onboarding de facções por uma marca).

from datetime import datetime
from typing import Callable, Dict, Any, List, Optional, Union
from sqlalchemy.orm import Session

from faccao_hub.database.credential_repository import CredentialRepository, DUPLICATE_TAX_ID_MESSAGE
from faccao_hub.domain.actor import Actor, ActorRole
from faccao_hub.domain.credential import (
    Credential, CredentialStatus, CredentialStatusHistory,
    PENDING_ACTION_STATUSES, AWAITING_RESPONSE_STATUSES, is_transition_allowed,
)
from faccao_hub.domain.filters import CredentialFilters, build_page_meta
from faccao_hub.domain.payloads import validate_credential_payload
from faccao_hub.services.access import require_company, resolve_company_scope
from faccao_hub.services.notification_service import NotificationDispatcher, CREDENTIAL_STATUS_CHANGED
from faccao_hub.services.unit_of_work import unit_of_work
from faccao_hub.utils.data_conversion import utc_now, mask_cnpj
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import NotFoundError, ConflictError, InvalidStateError, ValidationError

def parse_credential_status(value: Union[str, CredentialStatus, None]) -> CredentialStatus:
    if isinstance(value, CredentialStatus):
        return value
    try:
        return CredentialStatus(str(value).upper())
    except ValueError:
        raise ValidationError(f"Invalid credential status '{value}'.", payload={'field': 'status'})

class CredentialService:
    """
    Camada de serviço para credenciais.

    Toda mudança de status passa por apply_transition(), que valida a transição contra a
    política configurada e grava a linha de histórico na mesma transação.
    """

    def __init__(self, credential_repository: CredentialRepository,
                 notifier: Optional[NotificationDispatcher] = None,
                 transition_policy: str = 'forward',
                 clock: Callable[[], datetime] = utc_now):
        self.credential_repository = credential_repository
        self.notifier = notifier or NotificationDispatcher()
        self.transition_policy = transition_policy
        self.clock = clock
        logger.info(f"CredentialService inicializado (política de transição: {transition_policy}).")

    # --- Helpers ---

    def load_owned(self, db: Session, credential_id: str, actor: Actor) -> Credential:
        credential = self.credential_repository.find_by_id(db, credential_id)
        if not credential:
            raise NotFoundError(f"Credential {credential_id} not found.")
        require_company(actor, credential.brand_id, "Credential belongs to another brand.")
        return credential

    def apply_transition(self, db: Session, credential: Credential, target: CredentialStatus,
                         actor: Actor, reason: Optional[str] = None) -> CredentialStatusHistory:
        """Muda o status e grava o histórico na sessão corrente. Levanta InvalidStateError se recusada."""
        current = credential.status
        if not is_transition_allowed(current, target, self.transition_policy):
            logger.warning(f"Transição recusada para credencial {credential.id}: {current.value} -> {target.value} (política {self.transition_policy}).")
            raise InvalidStateError(
                f"Cannot change credential status from {current.value} to {target.value}.",
                payload={'from_status': current.value, 'to_status': target.value}
            )
        now = self.clock()
        credential.status = target
        credential.updated_at = now
        if target == CredentialStatus.ACTIVE and credential.completed_at is None:
            credential.completed_at = now
        self.credential_repository.save(db, credential)

        entry = CredentialStatusHistory(
            credential_id=credential.id,
            from_status=current,
            to_status=target,
            performed_by_id=actor.id,
            reason=reason,
            created_at=now,
        )
        self.credential_repository.add_history(db, entry)
        logger.info(f"Credencial {credential.id}: {current.value} -> {target.value} por {actor.id}.")
        return entry

    def status_event(self, credential: Credential, entry: CredentialStatusHistory) -> Dict[str, Any]:
        return {
            'credential_id': credential.id,
            'brand_id': credential.brand_id,
            'from_status': entry.from_status.value if entry.from_status else None,
            'to_status': entry.to_status.value,
            'performed_by_id': entry.performed_by_id,
            'reason': entry.reason,
        }

    # --- Operações ---

    def create(self, data: Dict[str, Any], actor: Actor, brand_id: Optional[str] = None) -> Credential:
        """Cria a credencial em DRAFT. Conflito se já houver credencial não bloqueada para (marca, CNPJ)."""
        brand_id = resolve_company_scope(actor, ActorRole.BRAND, brand_id)
        fields = validate_credential_payload(data)
        logger.info(f"Criando credencial para CNPJ {mask_cnpj(fields['tax_id'])} na marca {brand_id}.")

        with unit_of_work("criar credencial") as db:
            if self.credential_repository.find_open_by_tax_id(db, brand_id, fields['tax_id']):
                raise ConflictError(DUPLICATE_TAX_ID_MESSAGE, payload={'field': 'tax_id'})
            now = self.clock()
            credential = Credential(
                brand_id=brand_id,
                status=CredentialStatus.DRAFT,
                created_by_id=actor.id,
                created_at=now,
                updated_at=now,
                **fields,
            )
            self.credential_repository.add(db, credential)
            entry = CredentialStatusHistory(
                credential_id=credential.id,
                from_status=None,
                to_status=CredentialStatus.DRAFT,
                performed_by_id=actor.id,
                reason='Credencial criada',
                created_at=now,
            )
            self.credential_repository.add_history(db, entry)
        logger.info(f"Credencial {credential.id} criada em DRAFT.")
        return credential

    def get(self, credential_id: str, actor: Actor) -> Credential:
        with unit_of_work("buscar credencial") as db:
            return self.load_owned(db, credential_id, actor)

    def get_history(self, credential_id: str, actor: Actor) -> List[CredentialStatusHistory]:
        with unit_of_work("buscar histórico da credencial") as db:
            self.load_owned(db, credential_id, actor)
            return self.credential_repository.get_history(db, credential_id)

    def update(self, credential_id: str, data: Dict[str, Any], actor: Actor) -> Credential:
        """
        Edita uma credencial em DRAFT. Troca de CNPJ refaz a checagem de duplicidade
        e invalida as validações anteriores.
        """
        fields = validate_credential_payload(data, partial=True)
        with unit_of_work("atualizar credencial") as db:
            credential = self.load_owned(db, credential_id, actor)
            if credential.status != CredentialStatus.DRAFT:
                raise InvalidStateError(
                    f"Only DRAFT credentials can be edited (current status: {credential.status.value}).",
                    payload={'status': credential.status.value}
                )
            new_tax_id = fields.get('tax_id')
            if new_tax_id and new_tax_id != credential.tax_id:
                if self.credential_repository.find_open_by_tax_id(db, credential.brand_id, new_tax_id, exclude_id=credential.id):
                    raise ConflictError(DUPLICATE_TAX_ID_MESSAGE, payload={'field': 'tax_id'})
                invalidated = self.credential_repository.invalidate_validations(db, credential.id)
                logger.info(f"CNPJ da credencial {credential.id} alterado para {mask_cnpj(new_tax_id)}; {invalidated} validações invalidadas.")
                # Dados cadastrais obtidos do CNPJ anterior não valem mais
                if 'legal_name' not in fields:
                    fields['legal_name'] = None
            for name, value in fields.items():
                setattr(credential, name, value)
            credential.updated_at = self.clock()
            self.credential_repository.save(db, credential)
        logger.info(f"Credencial {credential_id} atualizada por {actor.id}: campos {sorted(fields)}.")
        return credential

    def change_status(self, credential_id: str, new_status: Union[str, CredentialStatus], actor: Actor,
                      reason: Optional[str] = None) -> Credential:
        target = parse_credential_status(new_status)
        with unit_of_work("alterar status da credencial") as db:
            credential = self.load_owned(db, credential_id, actor)
            entry = self.apply_transition(db, credential, target, actor, reason)
            event = self.status_event(credential, entry)
        self.notifier.emit(CREDENTIAL_STATUS_CHANGED, event)
        return credential

    def remove(self, credential_id: str, actor: Actor) -> Credential:
        """Exclusão lógica: apenas DRAFT, que passa a BLOCKED com histórico."""
        with unit_of_work("remover credencial") as db:
            credential = self.load_owned(db, credential_id, actor)
            if credential.status != CredentialStatus.DRAFT:
                raise InvalidStateError(
                    f"Only DRAFT credentials can be removed (current status: {credential.status.value}).",
                    payload={'status': credential.status.value}
                )
            entry = self.apply_transition(db, credential, CredentialStatus.BLOCKED, actor, reason='Credencial removida')
            event = self.status_event(credential, entry)
        self.notifier.emit(CREDENTIAL_STATUS_CHANGED, event)
        return credential

    def list(self, actor: Actor, filters: Optional[CredentialFilters] = None,
             brand_id: Optional[str] = None) -> Dict[str, Any]:
        brand_id = resolve_company_scope(actor, ActorRole.BRAND, brand_id)
        filters = filters or CredentialFilters()
        with unit_of_work("listar credenciais") as db:
            items, total = self.credential_repository.list_paginated(db, brand_id, filters)
            return {
                'data': [c.to_dict() for c in items],
                'meta': build_page_meta(filters.page, filters.limit, total),
            }

    def get_stats(self, actor: Actor, brand_id: Optional[str] = None) -> Dict[str, Any]:
        brand_id = resolve_company_scope(actor, ActorRole.BRAND, brand_id)
        now = self.clock()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        with unit_of_work("calcular estatísticas de credenciais") as db:
            counts = self.credential_repository.count_by_status(db, brand_id)
            created_this_month = self.credential_repository.count_created_since(db, brand_id, month_start)
            completed_this_month = self.credential_repository.count_completed_since(db, brand_id, month_start)

        by_status = {status.value: counts.get(status, 0) for status in CredentialStatus}
        total = sum(by_status.values())
        active_count = by_status[CredentialStatus.ACTIVE.value]
        conversion_rate = round(active_count / total * 100, 2) if total > 0 else 0
        return {
            'total': total,
            'by_status': by_status,
            'active_count': active_count,
            'conversion_rate': conversion_rate,
            'created_this_month': created_this_month,
            'completed_this_month': completed_this_month,
            'pending_action': sum(by_status[s.value] for s in PENDING_ACTION_STATUSES),
            'awaiting_response': sum(by_status[s.value] for s in AWAITING_RESPONSE_STATUSES),
        }
