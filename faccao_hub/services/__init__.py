# faccao_hub/services/__init__.py
# Makes 'services' a package. Exports service classes.

from .auth_service import AuthService
from .credential_service import CredentialService
from .credential_validation_service import CredentialValidationService
from .partnership_request_service import PartnershipRequestService
from .relationship_service import RelationshipService
from .contract_service import ContractService
from .document_compliance_service import DocumentComplianceService
from .expiration_sweep_service import ExpirationSweepService
from .notification_service import NotificationDispatcher

__all__ = [
    "AuthService",
    "CredentialService",
    "CredentialValidationService",
    "PartnershipRequestService",
    "RelationshipService",
    "ContractService",
    "DocumentComplianceService",
    "ExpirationSweepService",
    "NotificationDispatcher",
]
