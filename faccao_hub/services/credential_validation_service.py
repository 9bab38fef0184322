# faccao_hub/services/credential_validation_service.py
# Validação cadastral do CNPJ de uma credencial (consulta à Receita via BrasilAPI).

from typing import Dict, Any, List

from faccao_hub.database.credential_repository import CredentialRepository
from faccao_hub.domain.actor import Actor
from faccao_hub.domain.credential import CredentialStatus, CredentialValidation
from faccao_hub.integrations.cnpj_lookup_service import CnpjLookupService
from faccao_hub.services.credential_service import CredentialService
from faccao_hub.services.notification_service import CREDENTIAL_STATUS_CHANGED
from faccao_hub.services.unit_of_work import unit_of_work
from faccao_hub.utils.data_conversion import mask_cnpj
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import InvalidStateError, ConflictError

VALIDATION_START_STATUSES = frozenset({CredentialStatus.DRAFT, CredentialStatus.VALIDATION_FAILED})

class CredentialValidationService:
    """
    Executa a consulta de CNPJ em duas transações: a primeira move a credencial para
    PENDING_VALIDATION; a consulta roda fora da transação; a segunda grava o resultado
    e, se reprovado, move para VALIDATION_FAILED.
    """

    def __init__(self, credential_service: CredentialService, credential_repository: CredentialRepository,
                 cnpj_lookup_service: CnpjLookupService):
        self.credential_service = credential_service
        self.credential_repository = credential_repository
        self.cnpj_lookup_service = cnpj_lookup_service
        logger.info("CredentialValidationService inicializado.")

    def start_validation(self, credential_id: str, actor: Actor) -> Dict[str, Any]:
        events = []
        with unit_of_work("iniciar validação da credencial") as db:
            credential = self.credential_service.load_owned(db, credential_id, actor)
            if credential.status not in VALIDATION_START_STATUSES:
                raise InvalidStateError(
                    f"Validation can only start from DRAFT or VALIDATION_FAILED (current status: {credential.status.value}).",
                    payload={'status': credential.status.value}
                )
            entry = self.credential_service.apply_transition(
                db, credential, CredentialStatus.PENDING_VALIDATION, actor, reason='Validação de CNPJ iniciada'
            )
            events.append(self.credential_service.status_event(credential, entry))
            tax_id = credential.tax_id

        logger.info(f"Consultando CNPJ {mask_cnpj(tax_id)} para a credencial {credential_id}.")
        result = self.cnpj_lookup_service.lookup(tax_id)

        with unit_of_work("registrar resultado da validação") as db:
            credential = self.credential_service.load_owned(db, credential_id, actor)
            if credential.status != CredentialStatus.PENDING_VALIDATION or credential.tax_id != tax_id:
                raise ConflictError("Credential changed while its validation was running.")
            validation = CredentialValidation(
                credential_id=credential.id,
                tax_id=tax_id,
                source=result.source,
                is_valid=result.is_valid,
                payload=result.raw,
                error_message=result.error,
                checked_at=self.credential_service.clock(),
            )
            self.credential_repository.add_validation(db, validation)

            if result.is_valid:
                if result.data:
                    credential.legal_name = result.data.legal_name or credential.legal_name
                    if not credential.trade_name and result.data.trade_name:
                        credential.trade_name = result.data.trade_name
                    credential.updated_at = self.credential_service.clock()
                    self.credential_repository.save(db, credential)
                logger.info(f"CNPJ {mask_cnpj(tax_id)} válido para a credencial {credential_id}.")
            else:
                entry = self.credential_service.apply_transition(
                    db, credential, CredentialStatus.VALIDATION_FAILED, actor, reason=result.error
                )
                events.append(self.credential_service.status_event(credential, entry))
                logger.warning(f"CNPJ {mask_cnpj(tax_id)} reprovado para a credencial {credential_id}: {result.error}")

        self.credential_service.notifier.emit_all([(CREDENTIAL_STATUS_CHANGED, e) for e in events])
        return {
            'credential': credential.to_dict(),
            'validation': validation.to_dict(),
            'result': result.to_dict(),
        }

    def get_validations(self, credential_id: str, actor: Actor) -> List[CredentialValidation]:
        with unit_of_work("listar validações da credencial") as db:
            self.credential_service.load_owned(db, credential_id, actor)
            return self.credential_repository.list_validations(db, credential_id)
