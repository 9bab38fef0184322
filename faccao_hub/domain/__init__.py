# faccao_hub/domain/__init__.py
# Makes 'domain' a package. Exports ORM models, status enums and DTOs.

# --- ORM Models ---
from .company import Company, CompanyType
from .credential import (
    Credential, CredentialStatusHistory, CredentialValidation, CredentialStatus,
    CREDENTIAL_STATUS_ORDER, PENDING_ACTION_STATUSES, AWAITING_RESPONSE_STATUSES,
    is_transition_allowed,
)
from .partnership_request import PartnershipRequest, PartnershipRequestStatus
from .relationship import (
    SupplierBrandRelationship, RelationshipStatusHistory, RelationshipStatus,
    RELATIONSHIP_TRANSITIONS, is_relationship_transition_allowed,
)
from .contract import (
    Contract, ContractRevision, ContractType, ContractStatus, RevisionStatus, OPEN_CONTRACT_STATUSES,
)
from .supplier_document import (
    SupplierDocument, SupplierDocumentType, DocumentStatus, MONTHLY_DOCUMENT_TYPES,
    compute_document_status,
)

# --- Dataclasses (DTOs) ---
from .actor import Actor, ActorRole
from .filters import CredentialFilters, PartnershipRequestFilters, DocumentFilters, build_page_meta

__all__ = [
    # ORM Models
    "Company", "CompanyType",
    "Credential", "CredentialStatusHistory", "CredentialValidation", "CredentialStatus",
    "CREDENTIAL_STATUS_ORDER", "PENDING_ACTION_STATUSES", "AWAITING_RESPONSE_STATUSES",
    "is_transition_allowed",
    "PartnershipRequest", "PartnershipRequestStatus",
    "SupplierBrandRelationship", "RelationshipStatusHistory", "RelationshipStatus",
    "RELATIONSHIP_TRANSITIONS", "is_relationship_transition_allowed",
    "Contract", "ContractRevision", "ContractType", "ContractStatus", "RevisionStatus", "OPEN_CONTRACT_STATUSES",
    "SupplierDocument", "SupplierDocumentType", "DocumentStatus", "MONTHLY_DOCUMENT_TYPES",
    "compute_document_status",

    # Dataclasses / DTOs
    "Actor", "ActorRole",
    "CredentialFilters", "PartnershipRequestFilters", "DocumentFilters", "build_page_meta",
]
