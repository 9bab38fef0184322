# faccao_hub/services/contract_service.py
# Contratos de relacionamento: geração, envio, assinatura das partes e revisões.

from datetime import datetime, timedelta
from typing import Callable, Dict, Any, List, Optional

from faccao_hub.database.contract_repository import ContractRepository
from faccao_hub.domain.actor import Actor, ActorRole
from faccao_hub.domain.contract import (
    Contract, ContractRevision, ContractStatus, ContractType, RevisionStatus,
)
from faccao_hub.domain.payloads import validate_contract_payload
from faccao_hub.domain.relationship import RelationshipStatus
from faccao_hub.services.access import require_company, require_role, require_party
from faccao_hub.services.notification_service import (
    NotificationDispatcher, CONTRACT_SENT, CONTRACT_SIGNED, CONTRACT_REVISION_REQUESTED,
    CONTRACT_REVISION_RESPONDED, CONTRACT_REJECTED, RELATIONSHIP_STATUS_CHANGED,
)
from faccao_hub.services.relationship_service import RelationshipService
from faccao_hub.services.unit_of_work import unit_of_work
from faccao_hub.utils.data_conversion import utc_now
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import NotFoundError, ConflictError, InvalidStateError, ValidationError, ForbiddenError

REVISION_MESSAGE_MIN = 10
REVISION_MESSAGE_MAX = 2000
SIGNER_NAME_MAX = 200

class ContractService:
    """
    Camada de serviço para contratos.

    Um relacionamento tem no máximo um contrato em aberto por vez. A assinatura completa
    (marca + facção) de um contrato que não é aditivo ativa o relacionamento na mesma transação.
    """

    def __init__(self, contract_repository: ContractRepository,
                 relationship_service: RelationshipService,
                 notifier: Optional[NotificationDispatcher] = None,
                 default_validity_days: int = 365,
                 clock: Callable[[], datetime] = utc_now):
        self.contract_repository = contract_repository
        self.relationship_service = relationship_service
        self.notifier = notifier or NotificationDispatcher()
        self.default_validity_days = default_validity_days
        self.clock = clock
        logger.info("ContractService inicializado.")

    def _load(self, db, contract_id: str, actor: Actor) -> Contract:
        contract = self.contract_repository.find_by_id(db, contract_id)
        if not contract:
            raise NotFoundError(f"Contract {contract_id} not found.")
        require_party(actor, contract.brand_id, contract.supplier_id)
        return contract

    def _require_status(self, contract: Contract, *allowed: ContractStatus):
        if contract.status not in allowed:
            raise InvalidStateError(
                f"Operation not allowed while contract is {contract.status.value}.",
                payload={'status': contract.status.value}
            )

    def _event(self, contract: Contract, **extra) -> Dict[str, Any]:
        return {
            'contract_id': contract.id,
            'display_id': contract.display_id,
            'relationship_id': contract.relationship_id,
            'brand_id': contract.brand_id,
            'supplier_id': contract.supplier_id,
            'status': contract.status.value,
            **extra,
        }

    # --- Operações ---

    def generate_contract(self, relationship_id: str, data: Optional[Dict[str, Any]], actor: Actor) -> Contract:
        fields = validate_contract_payload(data or {})
        with unit_of_work("gerar contrato") as db:
            rel = self.relationship_service.load_for_party(db, relationship_id, actor)
            require_company(actor, rel.brand_id, "Only the brand of the relationship can generate contracts.")
            if rel.status == RelationshipStatus.TERMINATED:
                raise InvalidStateError("Cannot generate a contract for a terminated relationship.",
                                        payload={'status': rel.status.value})
            open_contract = self.contract_repository.find_open_for_relationship(db, rel.id)
            if open_contract:
                raise ConflictError("This relationship already has an open contract.",
                                    payload={'contract_id': open_contract.id, 'status': open_contract.status.value})

            parent_id = fields.pop('parent_contract_id', None)
            if parent_id:
                parent = self.contract_repository.find_by_id(db, parent_id)
                if not parent or parent.relationship_id != rel.id:
                    raise NotFoundError(f"Parent contract {parent_id} not found for this relationship.")
                if parent.status != ContractStatus.SIGNED:
                    raise InvalidStateError("Amendments can only reference a signed contract.",
                                            payload={'parent_status': parent.status.value})
                fields['type'] = ContractType.AMENDMENT
            elif fields.get('type') == ContractType.AMENDMENT:
                raise ValidationError("Amendments require 'parent_contract_id'.", payload={'field': 'parent_contract_id'})

            now = self.clock()
            valid_from = fields.pop('valid_from', None) or now.date()
            valid_until = fields.pop('valid_until', None) or valid_from + timedelta(days=self.default_validity_days)
            if valid_until <= valid_from:
                raise ValidationError("'valid_until' must be after 'valid_from'.", payload={'field': 'valid_until'})

            contract = Contract(
                display_id=self.contract_repository.next_display_id(db, now.year),
                relationship_id=rel.id,
                brand_id=rel.brand_id,
                supplier_id=rel.supplier_id,
                parent_contract_id=parent_id,
                type=fields.pop('type', None) or ContractType.SERVICE_AGREEMENT,
                status=ContractStatus.DRAFT,
                valid_from=valid_from,
                valid_until=valid_until,
                created_by_id=actor.id,
                created_at=now,
                updated_at=now,
                revisions=[],
                **fields,
            )
            self.contract_repository.add(db, contract)
        logger.info(f"Contrato {contract.display_id} gerado para relacionamento {relationship_id} por {actor.id}.")
        return contract

    def update_contract(self, contract_id: str, data: Dict[str, Any], actor: Actor) -> Contract:
        fields = validate_contract_payload(data, partial=True)
        with unit_of_work("atualizar contrato") as db:
            contract = self._load(db, contract_id, actor)
            require_company(actor, contract.brand_id, "Only the brand can edit the contract.")
            self._require_status(contract, ContractStatus.DRAFT)
            if fields.get('type') == ContractType.AMENDMENT and not contract.parent_contract_id:
                raise ValidationError("Amendments require 'parent_contract_id'.", payload={'field': 'type'})
            if contract.parent_contract_id:
                fields.pop('type', None)
            valid_from = fields.get('valid_from') or contract.valid_from
            valid_until = fields.get('valid_until') or contract.valid_until
            if valid_until <= valid_from:
                raise ValidationError("'valid_until' must be after 'valid_from'.", payload={'field': 'valid_until'})
            for name, value in fields.items():
                if name in ('valid_from', 'valid_until') and value is None:
                    continue
                setattr(contract, name, value)
            contract.updated_at = self.clock()
            self.contract_repository.save(db, contract)
        logger.info(f"Contrato {contract.display_id} atualizado por {actor.id}: campos {sorted(fields)}.")
        return contract

    def send_for_signature(self, contract_id: str, actor: Actor, message: Optional[str] = None) -> Contract:
        with unit_of_work("enviar contrato para assinatura") as db:
            contract = self._load(db, contract_id, actor)
            require_company(actor, contract.brand_id, "Only the brand can send the contract for signature.")
            self._require_status(contract, ContractStatus.DRAFT)
            now = self.clock()
            contract.status = ContractStatus.PENDING_SIGNATURE
            contract.sent_at = now
            contract.updated_at = now
            self.contract_repository.save(db, contract)
            event = self._event(contract, message=message)
        self.notifier.emit(CONTRACT_SENT, event)
        logger.info(f"Contrato {contract.display_id} enviado para assinatura por {actor.id}.")
        return contract

    def sign_contract(self, contract_id: str, actor: Actor, accepted: Any, signer_name: Optional[str]) -> Contract:
        """
        Registra a assinatura da parte do ator. Exige aceite explícito (accepted is True).
        Quando as duas partes assinam, o contrato vira SIGNED e, se não for aditivo,
        o relacionamento é ativado na mesma transação.
        """
        if accepted is not True:
            raise ValidationError("The contract terms must be explicitly accepted ('accepted': true).",
                                  payload={'field': 'accepted'})
        if not isinstance(signer_name, str) or not signer_name.strip():
            raise ValidationError("'signer_name' is required.", payload={'field': 'signer_name'})
        signer_name = signer_name.strip()
        if len(signer_name) > SIGNER_NAME_MAX:
            raise ValidationError(f"'signer_name' must have at most {SIGNER_NAME_MAX} characters.",
                                  payload={'field': 'signer_name'})

        relationship_event = None
        with unit_of_work("assinar contrato") as db:
            contract = self._load(db, contract_id, actor)
            if contract.has_pending_revision():
                raise InvalidStateError("Contract has a pending revision request.",
                                        payload={'status': contract.status.value})
            self._require_status(contract, ContractStatus.PENDING_SIGNATURE)

            if actor.company_id == contract.brand_id:
                side = 'brand'
            elif actor.company_id == contract.supplier_id:
                side = 'supplier'
            else:
                raise ForbiddenError("Only the parties of the contract can sign it.")
            if getattr(contract, f'{side}_signed_at') is not None:
                raise ConflictError(f"The {side} has already signed this contract.", payload={'side': side})

            now = self.clock()
            setattr(contract, f'{side}_signed_at', now)
            setattr(contract, f'{side}_signed_by_id', actor.id)
            setattr(contract, f'{side}_signer_name', signer_name)
            contract.updated_at = now

            if contract.fully_signed:
                contract.status = ContractStatus.SIGNED
            self.contract_repository.save(db, contract)

            if contract.fully_signed and not contract.is_amendment:
                rel = self.relationship_service.load_for_party(db, contract.relationship_id, actor)
                if rel.status in (RelationshipStatus.CONTRACT_PENDING, RelationshipStatus.PENDING):
                    relationship_event = self.relationship_service.transition(
                        db, rel, RelationshipStatus.ACTIVE, actor, f"Contrato {contract.display_id} assinado"
                    )
            event = self._event(contract, side=side, signer_name=signer_name)

        logger.info(f"Contrato {contract.display_id} assinado pela {'marca' if side == 'brand' else 'facção'} ({actor.id}).")
        self.notifier.emit(CONTRACT_SIGNED, event)
        if relationship_event:
            self.notifier.emit(RELATIONSHIP_STATUS_CHANGED, relationship_event)
        return contract

    def reject_contract(self, contract_id: str, actor: Actor, reason: Optional[str] = None) -> Contract:
        """A facção recusa o contrato; um novo contrato pode ser gerado depois."""
        require_role(actor, ActorRole.SUPPLIER, "Only the supplier can reject the contract.")
        with unit_of_work("recusar contrato") as db:
            contract = self._load(db, contract_id, actor)
            require_company(actor, contract.supplier_id, "Only the supplier can reject the contract.")
            self._require_status(contract, ContractStatus.PENDING_SIGNATURE, ContractStatus.REVISION_REQUESTED)
            now = self.clock()
            contract.status = ContractStatus.REJECTED
            contract.updated_at = now
            for revision in contract.revisions:
                if revision.status == RevisionStatus.PENDING:
                    revision.status = RevisionStatus.REJECTED
                    revision.responded_at = now
                    revision.responded_by_id = actor.id
                    revision.response_notes = 'Contrato recusado pela facção'
            self.contract_repository.save(db, contract)
            event = self._event(contract, reason=reason)
        self.notifier.emit(CONTRACT_REJECTED, event)
        logger.info(f"Contrato {contract.display_id} recusado por {actor.id}.")
        return contract

    def request_revision(self, contract_id: str, message: Optional[str], actor: Actor) -> ContractRevision:
        require_role(actor, ActorRole.SUPPLIER, "Only the supplier can request a revision.")
        if not isinstance(message, str) or not (REVISION_MESSAGE_MIN <= len(message.strip()) <= REVISION_MESSAGE_MAX):
            raise ValidationError(
                f"'message' must have between {REVISION_MESSAGE_MIN} and {REVISION_MESSAGE_MAX} characters.",
                payload={'field': 'message'}
            )
        with unit_of_work("solicitar revisão de contrato") as db:
            contract = self._load(db, contract_id, actor)
            require_company(actor, contract.supplier_id, "Only the supplier can request a revision.")
            self._require_status(contract, ContractStatus.PENDING_SIGNATURE)
            now = self.clock()
            revision = ContractRevision(
                contract_id=contract.id,
                requested_by_id=actor.id,
                message=message.strip(),
                status=RevisionStatus.PENDING,
                created_at=now,
            )
            contract.revisions.append(revision)
            contract.status = ContractStatus.REVISION_REQUESTED
            contract.updated_at = now
            self.contract_repository.add_revision(db, revision)
            event = self._event(contract, revision_id=revision.id)
        self.notifier.emit(CONTRACT_REVISION_REQUESTED, event)
        logger.info(f"Revisão {revision.id} solicitada no contrato {contract.display_id} por {actor.id}.")
        return revision

    def respond_revision(self, revision_id: str, status: Any, actor: Actor,
                         notes: Optional[str] = None) -> ContractRevision:
        """ACCEPTED devolve o contrato a DRAFT (assinaturas limpas); REJECTED devolve a PENDING_SIGNATURE."""
        try:
            decision = RevisionStatus(str(status).upper())
        except ValueError:
            decision = None
        if decision not in (RevisionStatus.ACCEPTED, RevisionStatus.REJECTED):
            raise ValidationError("'status' must be ACCEPTED or REJECTED.", payload={'field': 'status'})
        if notes is not None and (not isinstance(notes, str) or len(notes) > REVISION_MESSAGE_MAX):
            raise ValidationError(f"'notes' must have at most {REVISION_MESSAGE_MAX} characters.", payload={'field': 'notes'})

        with unit_of_work("responder revisão de contrato") as db:
            revision = self.contract_repository.find_revision_by_id(db, revision_id)
            if not revision:
                raise NotFoundError(f"Contract revision {revision_id} not found.")
            contract = self._load(db, revision.contract_id, actor)
            require_company(actor, contract.brand_id, "Only the brand can respond to a revision request.")
            if revision.status != RevisionStatus.PENDING:
                raise InvalidStateError("This revision request was already answered.",
                                        payload={'status': revision.status.value})
            now = self.clock()
            revision.status = decision
            revision.response_notes = notes.strip() if notes else None
            revision.responded_by_id = actor.id
            revision.responded_at = now
            if decision == RevisionStatus.ACCEPTED:
                contract.status = ContractStatus.DRAFT
                contract.clear_signatures()
            else:
                contract.status = ContractStatus.PENDING_SIGNATURE
            contract.updated_at = now
            self.contract_repository.save(db, contract)
            event = self._event(contract, revision_id=revision.id, decision=decision.value)
        self.notifier.emit(CONTRACT_REVISION_RESPONDED, event)
        logger.info(f"Revisão {revision_id} {decision.value} por {actor.id}; contrato {contract.display_id} em {contract.status.value}.")
        return revision

    def get_by_id(self, contract_id: str, actor: Actor) -> Contract:
        with unit_of_work("buscar contrato") as db:
            return self._load(db, contract_id, actor)

    def get_contract(self, relationship_id: str, actor: Actor) -> Contract:
        """Contrato mais recente do relacionamento, com revisões."""
        with unit_of_work("buscar contrato do relacionamento") as db:
            self.relationship_service.load_for_party(db, relationship_id, actor)
            contracts = self.contract_repository.list_for_relationship(db, relationship_id)
            if not contracts:
                raise NotFoundError(f"No contract found for relationship {relationship_id}.")
            return contracts[0]

    def list_contracts(self, relationship_id: str, actor: Actor) -> List[Contract]:
        with unit_of_work("listar contratos do relacionamento") as db:
            self.relationship_service.load_for_party(db, relationship_id, actor)
            return self.contract_repository.list_for_relationship(db, relationship_id)
