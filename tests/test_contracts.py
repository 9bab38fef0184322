# tests/test_contracts.py

from datetime import date

import pytest

from faccao_hub.api.errors import ConflictError, InvalidStateError, ForbiddenError, ValidationError, NotFoundError
from faccao_hub.domain.contract import ContractStatus, ContractType, RevisionStatus
from faccao_hub.domain.relationship import RelationshipStatus
from faccao_hub.services.notification_service import (
    CONTRACT_SENT, CONTRACT_SIGNED, CONTRACT_REJECTED, RELATIONSHIP_STATUS_CHANGED,
)
from tests.conftest import SUPPLIER_ID

CONTRACT_DATA = {'title': 'Contrato de prestação de serviços de costura', 'value': 15000.5}

@pytest.fixture
def rel(services, brand):
    return services.relationships.create(brand, supplier_id=SUPPLIER_ID)

@pytest.fixture
def sent_contract(services, brand, rel):
    contract = services.contracts.generate_contract(rel.id, CONTRACT_DATA, brand)
    return services.contracts.send_for_signature(contract.id, brand)

def _sign_both(services, contract_id, brand, supplier):
    services.contracts.sign_contract(contract_id, brand, True, 'Ana Marca')
    return services.contracts.sign_contract(contract_id, supplier, True, 'Carla Facção')

def test_generate_defaults(services, brand, rel):
    contract = services.contracts.generate_contract(rel.id, CONTRACT_DATA, brand)

    assert contract.status == ContractStatus.DRAFT
    assert contract.type == ContractType.SERVICE_AGREEMENT
    assert contract.display_id == 'CTR-2025-00001'
    assert contract.valid_from == date(2025, 3, 10)
    assert contract.valid_until == date(2026, 3, 10)
    assert contract.to_dict()['value'] == 15000.5
    assert contract.to_dict(include_revisions=True)['revisions'] == []

def test_only_one_open_contract(services, brand, rel):
    services.contracts.generate_contract(rel.id, CONTRACT_DATA, brand)
    with pytest.raises(ConflictError):
        services.contracts.generate_contract(rel.id, CONTRACT_DATA, brand)

def test_supplier_cannot_generate(services, supplier, rel):
    with pytest.raises(ForbiddenError):
        services.contracts.generate_contract(rel.id, CONTRACT_DATA, supplier)

def test_title_is_required(services, brand, rel):
    with pytest.raises(ValidationError):
        services.contracts.generate_contract(rel.id, {'title': ''}, brand)

def test_invalid_validity_window(services, brand, rel):
    data = dict(CONTRACT_DATA, valid_from='2025-05-01', valid_until='2025-04-01')
    with pytest.raises(ValidationError):
        services.contracts.generate_contract(rel.id, data, brand)

def test_update_only_while_draft(services, brand, rel):
    contract = services.contracts.generate_contract(rel.id, CONTRACT_DATA, brand)
    updated = services.contracts.update_contract(contract.id, {'description': 'Inclui acabamento'}, brand)
    assert updated.description == 'Inclui acabamento'

    services.contracts.send_for_signature(contract.id, brand)
    with pytest.raises(InvalidStateError):
        services.contracts.update_contract(contract.id, {'description': 'Outra'}, brand)

def test_full_signature_activates_relationship(services, brand, supplier, rel, sent_contract, notifier):
    assert sent_contract.status == ContractStatus.PENDING_SIGNATURE
    assert sent_contract.sent_at is not None

    half = services.contracts.sign_contract(sent_contract.id, brand, True, 'Ana Marca')
    assert half.status == ContractStatus.PENDING_SIGNATURE
    assert services.relationships.get_one(rel.id, brand).status == RelationshipStatus.CONTRACT_PENDING

    signed = services.contracts.sign_contract(sent_contract.id, supplier, True, 'Carla Facção')
    assert signed.status == ContractStatus.SIGNED
    assert signed.supplier_signer_name == 'Carla Facção'

    relationship = services.relationships.get_one(rel.id, brand)
    assert relationship.status == RelationshipStatus.ACTIVE
    assert relationship.activated_at is not None
    assert notifier.names()[-3:] == [CONTRACT_SIGNED, CONTRACT_SIGNED, RELATIONSHIP_STATUS_CHANGED]
    assert CONTRACT_SENT in notifier.names()

def test_signature_requires_explicit_acceptance(services, brand, sent_contract):
    with pytest.raises(ValidationError):
        services.contracts.sign_contract(sent_contract.id, brand, 'true', 'Ana Marca')
    with pytest.raises(ValidationError):
        services.contracts.sign_contract(sent_contract.id, brand, True, '   ')

def test_same_side_cannot_sign_twice(services, brand, sent_contract):
    services.contracts.sign_contract(sent_contract.id, brand, True, 'Ana Marca')
    with pytest.raises(ConflictError):
        services.contracts.sign_contract(sent_contract.id, brand, True, 'Ana Marca')

def test_draft_cannot_be_signed(services, brand, rel):
    contract = services.contracts.generate_contract(rel.id, CONTRACT_DATA, brand)
    with pytest.raises(InvalidStateError):
        services.contracts.sign_contract(contract.id, brand, True, 'Ana Marca')

def test_non_party_cannot_sign(services, other_brand, sent_contract):
    with pytest.raises(ForbiddenError):
        services.contracts.sign_contract(sent_contract.id, other_brand, True, 'Intrusa')

def test_accepted_revision_returns_to_draft_and_clears_signatures(services, brand, supplier, sent_contract):
    services.contracts.sign_contract(sent_contract.id, brand, True, 'Ana Marca')

    with pytest.raises(ValidationError):
        services.contracts.request_revision(sent_contract.id, 'curta', supplier)
    revision = services.contracts.request_revision(sent_contract.id, 'Ajustar o prazo de pagamento para 45 dias', supplier)
    assert revision.status == RevisionStatus.PENDING
    assert services.contracts.get_by_id(sent_contract.id, brand).status == ContractStatus.REVISION_REQUESTED

    with pytest.raises(InvalidStateError):
        services.contracts.sign_contract(sent_contract.id, supplier, True, 'Carla Facção')
    with pytest.raises(ForbiddenError):
        services.contracts.respond_revision(revision.id, 'ACCEPTED', supplier)

    answered = services.contracts.respond_revision(revision.id, 'accepted', brand, notes='Prazo ajustado')
    assert answered.status == RevisionStatus.ACCEPTED

    contract = services.contracts.get_by_id(sent_contract.id, brand)
    assert contract.status == ContractStatus.DRAFT
    assert contract.brand_signed_at is None
    assert contract.revisions[0].response_notes == 'Prazo ajustado'

    with pytest.raises(InvalidStateError):
        services.contracts.respond_revision(revision.id, 'REJECTED', brand)

def test_rejected_revision_returns_to_pending_signature(services, brand, supplier, sent_contract):
    revision = services.contracts.request_revision(sent_contract.id, 'Gostaria de rever a cláusula 4', supplier)
    services.contracts.respond_revision(revision.id, 'REJECTED', brand)

    signed = _sign_both(services, sent_contract.id, brand, supplier)
    assert signed.status == ContractStatus.SIGNED

def test_invalid_revision_decision(services, brand, supplier, sent_contract):
    revision = services.contracts.request_revision(sent_contract.id, 'Gostaria de rever a cláusula 4', supplier)
    with pytest.raises(ValidationError):
        services.contracts.respond_revision(revision.id, 'PENDING', brand)
    with pytest.raises(NotFoundError):
        services.contracts.respond_revision('missing', 'ACCEPTED', brand)

def test_supplier_rejects_contract(services, brand, supplier, rel, sent_contract, notifier):
    with pytest.raises(ForbiddenError):
        services.contracts.reject_contract(sent_contract.id, brand)

    rejected = services.contracts.reject_contract(sent_contract.id, supplier, reason='Valor abaixo do combinado')
    assert rejected.status == ContractStatus.REJECTED
    assert notifier.names()[-1] == CONTRACT_REJECTED

    replacement = services.contracts.generate_contract(rel.id, CONTRACT_DATA, brand)
    assert replacement.display_id == 'CTR-2025-00002'
    assert services.contracts.get_contract(rel.id, brand).id == replacement.id
    assert len(services.contracts.list_contracts(rel.id, supplier)) == 2

def test_amendment_requires_signed_parent(services, brand, supplier, rel, sent_contract):
    services.contracts.reject_contract(sent_contract.id, supplier)

    with pytest.raises(ValidationError):
        services.contracts.generate_contract(rel.id, dict(CONTRACT_DATA, type='AMENDMENT'), brand)
    with pytest.raises(InvalidStateError):
        services.contracts.generate_contract(rel.id, dict(CONTRACT_DATA, parent_contract_id=sent_contract.id), brand)

def test_amendment_keeps_relationship_status(services, brand, supplier, rel, sent_contract):
    _sign_both(services, sent_contract.id, brand, supplier)

    amendment = services.contracts.generate_contract(
        rel.id, {'title': 'Aditivo de valor', 'parent_contract_id': sent_contract.id}, brand
    )
    assert amendment.type == ContractType.AMENDMENT
    assert amendment.is_amendment

    services.contracts.send_for_signature(amendment.id, brand)
    signed = _sign_both(services, amendment.id, brand, supplier)
    assert signed.status == ContractStatus.SIGNED
    assert len(services.relationships.get_history(rel.id, brand)) == 2

def test_terminated_relationship_rejects_new_contracts(services, brand, rel):
    services.relationships.terminate(rel.id, brand, reason='Encerrado')
    with pytest.raises(InvalidStateError):
        services.contracts.generate_contract(rel.id, CONTRACT_DATA, brand)

def test_get_contract_without_any(services, brand, rel):
    with pytest.raises(NotFoundError):
        services.contracts.get_contract(rel.id, brand)
