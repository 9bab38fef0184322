# tests/test_relationships.py

import pytest

from faccao_hub.api.errors import ConflictError, InvalidStateError, ForbiddenError, ValidationError, NotFoundError
from faccao_hub.domain.relationship import RelationshipStatus, is_relationship_transition_allowed
from faccao_hub.services.notification_service import CONSENT_REVOKED, RELATIONSHIP_STATUS_CHANGED
from tests.conftest import SUPPLIER_ID, OTHER_SUPPLIER_ID, INACTIVE_SUPPLIER_ID, OTHER_BRAND_ID

@pytest.fixture
def rel(services, brand):
    return services.relationships.create(brand, supplier_id=SUPPLIER_ID, data={'internal_code': 'FAC-01'})

def test_create_starts_contract_pending(rel, brand):
    assert rel.status == RelationshipStatus.CONTRACT_PENDING
    assert rel.brand_id == brand.company_id
    assert rel.internal_code == 'FAC-01'
    assert rel.document_sharing_consent is False

def test_duplicate_open_pair_conflicts(services, brand, rel):
    with pytest.raises(ConflictError):
        services.relationships.create(brand, supplier_id=SUPPLIER_ID)

def test_supplier_can_create_with_a_brand(services, supplier):
    created = services.relationships.create(supplier, brand_id=OTHER_BRAND_ID)
    assert created.supplier_id == SUPPLIER_ID
    assert created.initiated_by_role.value == 'SUPPLIER'

def test_inactive_supplier_cannot_be_linked(services, brand):
    with pytest.raises(NotFoundError):
        services.relationships.create(brand, supplier_id=INACTIVE_SUPPLIER_ID)

def test_lifecycle_and_history(services, brand, rel, notifier):
    services.relationships.activate(rel.id, brand)
    with pytest.raises(ValidationError):
        services.relationships.suspend(rel.id, brand, reason='  ')
    suspended = services.relationships.suspend(rel.id, brand, reason='Atraso nas entregas')
    assert suspended.status == RelationshipStatus.SUSPENDED
    assert suspended.suspension_reason == 'Atraso nas entregas'

    reactivated = services.relationships.reactivate(rel.id, brand)
    assert reactivated.status == RelationshipStatus.ACTIVE
    assert reactivated.suspended_at is None

    terminated = services.relationships.terminate(rel.id, brand, reason='Fim da parceria')
    assert terminated.status == RelationshipStatus.TERMINATED
    assert terminated.terminated_at is not None

    history = services.relationships.get_history(rel.id, brand)
    assert [h.to_status for h in history] == [
        RelationshipStatus.CONTRACT_PENDING, RelationshipStatus.ACTIVE, RelationshipStatus.SUSPENDED,
        RelationshipStatus.ACTIVE, RelationshipStatus.TERMINATED,
    ]
    assert notifier.names().count(RELATIONSHIP_STATUS_CHANGED) == 4

def test_terminated_is_absorbing(services, brand, rel):
    services.relationships.terminate(rel.id, brand, reason='Encerrado')
    with pytest.raises(InvalidStateError):
        services.relationships.reactivate(rel.id, brand)
    with pytest.raises(InvalidStateError):
        services.relationships.terminate(rel.id, brand, reason='De novo')
    with pytest.raises(InvalidStateError):
        services.relationships.update(rel.id, {'notes': 'x'}, brand)

    again = services.relationships.create(brand, supplier_id=SUPPLIER_ID)
    assert again.id != rel.id

def test_activate_is_idempotent(services, brand, rel):
    services.relationships.activate(rel.id, brand)
    again = services.relationships.activate(rel.id, brand)
    assert again.status == RelationshipStatus.ACTIVE
    assert len(services.relationships.get_history(rel.id, brand)) == 2

def test_cannot_suspend_before_activation(services, brand, rel):
    with pytest.raises(InvalidStateError):
        services.relationships.suspend(rel.id, brand, reason='Motivo qualquer')

def test_supplier_cannot_suspend(services, brand, supplier, rel):
    services.relationships.activate(rel.id, brand)
    with pytest.raises(ForbiddenError):
        services.relationships.suspend(rel.id, supplier, reason='Tentativa')

def test_non_party_is_forbidden(services, other_brand, other_supplier, rel):
    with pytest.raises(ForbiddenError):
        services.relationships.get_one(rel.id, other_brand)
    with pytest.raises(ForbiddenError):
        services.relationships.get_one(rel.id, other_supplier)

def test_available_suppliers_exclude_linked_and_inactive(services, brand, rel):
    available = services.relationships.get_available_for_brand(brand)
    assert [c.id for c in available] == [OTHER_SUPPLIER_ID]

def test_listings_and_stats(services, brand, supplier, rel):
    services.relationships.create(brand, supplier_id=OTHER_SUPPLIER_ID)
    services.relationships.activate(rel.id, brand)

    assert len(services.relationships.get_by_brand(brand)) == 2
    assert len(services.relationships.get_by_brand(brand, status=RelationshipStatus.ACTIVE)) == 1
    assert [r.id for r in services.relationships.get_by_supplier(supplier)] == [rel.id]

    stats = services.relationships.get_stats(brand)
    assert stats['total'] == 2
    assert stats['by_status']['ACTIVE'] == 1
    assert stats['by_status']['CONTRACT_PENDING'] == 1

def test_update_patch_fields(services, brand, rel):
    updated = services.relationships.update(rel.id, {'notes': 'Especialista em jeans', 'priority': 3}, brand)
    assert updated.notes == 'Especialista em jeans'
    assert updated.priority == 3
    assert updated.internal_code == 'FAC-01'

def test_consent_is_managed_by_supplier(services, brand, supplier, rel):
    with pytest.raises(ForbiddenError):
        services.relationships.update_consent(rel.id, True, brand)
    with pytest.raises(ValidationError):
        services.relationships.update_consent(rel.id, 'yes', supplier)

    granted = services.relationships.update_consent(rel.id, True, supplier)
    assert granted['document_sharing_consent'] is True
    assert granted['document_sharing_consent_at'] is not None
    assert granted['status'] == RelationshipStatus.CONTRACT_PENDING.value

    status = services.relationships.get_consent_status(rel.id, brand)
    assert status['document_sharing_consent'] is True

def test_revoking_consent_terminates_relationship(services, brand, supplier, rel, notifier):
    services.relationships.update_consent(rel.id, True, supplier)
    services.relationships.activate(rel.id, brand)

    with pytest.raises(ValidationError):
        services.relationships.revoke_consent(rel.id, None, supplier)
    with pytest.raises(ForbiddenError):
        services.relationships.revoke_consent(rel.id, 'Sou a marca', brand)

    result = services.relationships.revoke_consent(rel.id, 'Não desejo mais compartilhar', supplier)

    assert result['document_sharing_consent'] is False
    assert result['document_sharing_revoked_reason'] == 'Não desejo mais compartilhar'
    assert result['status'] == RelationshipStatus.TERMINATED.value
    assert services.relationships.get_one(rel.id, brand).status == RelationshipStatus.TERMINATED
    assert CONSENT_REVOKED in notifier.names()
    with pytest.raises(InvalidStateError):
        services.relationships.update_consent(rel.id, True, supplier)

@pytest.mark.parametrize('current,target,expected', [
    (RelationshipStatus.CONTRACT_PENDING, RelationshipStatus.ACTIVE, True),
    (RelationshipStatus.CONTRACT_PENDING, RelationshipStatus.SUSPENDED, False),
    (RelationshipStatus.PENDING, RelationshipStatus.ACTIVE, True),
    (RelationshipStatus.ACTIVE, RelationshipStatus.CONTRACT_PENDING, False),
    (RelationshipStatus.SUSPENDED, RelationshipStatus.ACTIVE, True),
    (RelationshipStatus.TERMINATED, RelationshipStatus.ACTIVE, False),
])
def test_relationship_transition_table(current, target, expected):
    assert is_relationship_transition_allowed(current, target) is expected
