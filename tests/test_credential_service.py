# tests/test_credential_service.py

import pytest
from werkzeug.datastructures import MultiDict

from faccao_hub.api.errors import (
    ConflictError, InvalidStateError, ValidationError, ForbiddenError, NotFoundError, DatabaseError, ServiceError,
)
from faccao_hub.domain.credential import CredentialStatus, is_transition_allowed
from faccao_hub.domain.filters import CredentialFilters
from faccao_hub.services.notification_service import CREDENTIAL_STATUS_CHANGED
from tests.conftest import OTHER_BRAND_ID

def test_create_normalizes_tax_id_and_starts_in_draft(services, brand, credential_payload):
    credential = services.credentials.create(credential_payload, brand)

    assert credential.tax_id == '12345678000190'
    assert credential.status == CredentialStatus.DRAFT
    assert credential.brand_id == brand.company_id
    assert credential.contact_email == 'maria@costurafina.com.br'
    assert credential.contact_phone == '47999990000'

    history = services.credentials.get_history(credential.id, brand)
    assert len(history) == 1
    assert history[0].from_status is None
    assert history[0].to_status == CredentialStatus.DRAFT

def test_duplicate_tax_id_for_same_brand_conflicts(services, brand, credential_payload):
    services.credentials.create(credential_payload, brand)
    with pytest.raises(ConflictError):
        services.credentials.create(dict(credential_payload, tax_id='12345678000190'), brand)

def test_same_tax_id_allowed_for_another_brand(services, brand, other_brand, credential_payload):
    services.credentials.create(credential_payload, brand)
    other = services.credentials.create(credential_payload, other_brand)
    assert other.brand_id == OTHER_BRAND_ID

def test_blocked_credential_frees_the_tax_id(services, brand, credential_payload):
    first = services.credentials.create(credential_payload, brand)
    services.credentials.remove(first.id, brand)

    second = services.credentials.create(credential_payload, brand)
    assert second.id != first.id
    assert services.credentials.get(first.id, brand).status == CredentialStatus.BLOCKED

def test_status_flow_records_history_and_completion(services, brand, credential_payload, clock, notifier):
    credential = services.credentials.create(credential_payload, brand)

    services.credentials.change_status(credential.id, 'PENDING_VALIDATION', brand)
    clock.advance(days=2)
    active = services.credentials.change_status(credential.id, CredentialStatus.ACTIVE, brand, reason='Aprovada')

    assert active.status == CredentialStatus.ACTIVE
    assert active.completed_at is not None
    history = services.credentials.get_history(credential.id, brand)
    assert [h.to_status for h in history] == [
        CredentialStatus.DRAFT, CredentialStatus.PENDING_VALIDATION, CredentialStatus.ACTIVE,
    ]
    assert history[-1].from_status == CredentialStatus.PENDING_VALIDATION
    assert history[-1].reason == 'Aprovada'
    assert notifier.names().count(CREDENTIAL_STATUS_CHANGED) == 2

def test_active_credential_cannot_be_blocked(services, brand, credential_payload):
    credential = services.credentials.create(credential_payload, brand)
    services.credentials.change_status(credential.id, 'ACTIVE', brand)

    with pytest.raises(InvalidStateError):
        services.credentials.change_status(credential.id, 'BLOCKED', brand)
    assert len(services.credentials.get_history(credential.id, brand)) == 2

def test_backward_transition_refused_under_forward_policy(services, brand, credential_payload):
    credential = services.credentials.create(credential_payload, brand)
    services.credentials.change_status(credential.id, 'INVITATION_SENT', brand)

    with pytest.raises(InvalidStateError):
        services.credentials.change_status(credential.id, 'DRAFT', brand)

def test_unknown_status_is_a_validation_error(services, brand, credential_payload):
    credential = services.credentials.create(credential_payload, brand)
    with pytest.raises(ValidationError):
        services.credentials.change_status(credential.id, 'APPROVED', brand)

def test_update_only_in_draft(services, brand, credential_payload):
    credential = services.credentials.create(credential_payload, brand)
    updated = services.credentials.update(credential.id, {'notes': 'Visita agendada', 'priority': 5}, brand)
    assert updated.notes == 'Visita agendada'
    assert updated.priority == 5

    services.credentials.change_status(credential.id, 'PENDING_VALIDATION', brand)
    with pytest.raises(InvalidStateError):
        services.credentials.update(credential.id, {'notes': 'tarde demais'}, brand)

def test_update_tax_id_checks_duplicates(services, brand, credential_payload):
    services.credentials.create(credential_payload, brand)
    second = services.credentials.create(dict(credential_payload, tax_id='98765432000110'), brand)

    with pytest.raises(ConflictError):
        services.credentials.update(second.id, {'tax_id': '12.345.678/0001-90'}, brand)

def test_failed_history_write_rolls_back_status(services, brand, credential_payload, monkeypatch):
    credential = services.credentials.create(credential_payload, brand)

    def unavailable_history(db, entry):
        raise DatabaseError("credential history unavailable")

    monkeypatch.setattr(services.credentials.credential_repository, 'add_history', unavailable_history)
    with pytest.raises(ServiceError):
        services.credentials.change_status(credential.id, 'PENDING_VALIDATION', brand)
    monkeypatch.undo()

    assert services.credentials.get(credential.id, brand).status == CredentialStatus.DRAFT
    assert [h.to_status for h in services.credentials.get_history(credential.id, brand)] == [CredentialStatus.DRAFT]

def test_invalid_payload_reports_field(services, brand, credential_payload):
    with pytest.raises(ValidationError) as exc_info:
        services.credentials.create(dict(credential_payload, tax_id='123'), brand)
    assert exc_info.value.payload == {'field': 'tax_id'}

    with pytest.raises(ValidationError) as exc_info:
        services.credentials.create(dict(credential_payload, contact_email='sem-arroba'), brand)
    assert exc_info.value.payload == {'field': 'contact_email'}

def test_other_brand_cannot_read_credential(services, brand, other_brand, supplier, credential_payload):
    credential = services.credentials.create(credential_payload, brand)
    with pytest.raises(ForbiddenError):
        services.credentials.get(credential.id, other_brand)
    with pytest.raises(ForbiddenError):
        services.credentials.create(credential_payload, supplier)

def test_missing_credential_is_not_found(services, brand):
    with pytest.raises(NotFoundError):
        services.credentials.get('does-not-exist', brand)

def test_admin_must_name_the_brand(services, admin, brand, credential_payload):
    with pytest.raises(ValidationError):
        services.credentials.create(credential_payload, admin)
    credential = services.credentials.create(credential_payload, admin, brand_id=brand.company_id)
    assert credential.brand_id == brand.company_id

def test_list_filters_and_paginates(services, brand, credential_payload):
    for index, tax_id in enumerate(('11111111000111', '22222222000122', '33333333000133')):
        services.credentials.create(dict(credential_payload, tax_id=tax_id, trade_name=f"Facção {index}"), brand)
    services.credentials.create(dict(credential_payload, tax_id='44444444000144', trade_name='Bordados Sul'), brand)

    page = services.credentials.list(brand, CredentialFilters.from_dict({'limit': '2', 'page': '1'}))
    assert len(page['data']) == 2
    assert page['meta']['total'] == 4
    assert page['meta']['total_pages'] == 2

    found = services.credentials.list(brand, CredentialFilters.from_dict({'search': 'bordados'}))
    assert [c['trade_name'] for c in found['data']] == ['Bordados Sul']

def test_repeated_statuses_query_param_keeps_every_value():
    args = MultiDict([('statuses', 'DRAFT'), ('statuses', 'active,blocked')])

    filters = CredentialFilters.from_dict(args)

    assert filters.statuses == [CredentialStatus.DRAFT, CredentialStatus.ACTIVE, CredentialStatus.BLOCKED]
    assert CredentialFilters.from_dict({'statuses': 'DRAFT, ACTIVE'}).statuses == [CredentialStatus.DRAFT, CredentialStatus.ACTIVE]
    assert CredentialFilters.from_dict(MultiDict()).statuses == []

def test_filtering_by_several_statuses(services, brand, credential_payload):
    draft = services.credentials.create(credential_payload, brand)
    active = services.credentials.create(dict(credential_payload, tax_id='98765432000110'), brand)
    services.credentials.create(dict(credential_payload, tax_id='11111111000111'), brand)
    services.credentials.change_status(active.id, 'ACTIVE', brand)
    services.credentials.change_status(draft.id, 'PENDING_VALIDATION', brand)

    args = MultiDict([('statuses', 'PENDING_VALIDATION'), ('statuses', 'ACTIVE')])
    listed = services.credentials.list(brand, CredentialFilters.from_dict(args))

    assert sorted(c['id'] for c in listed['data']) == sorted([draft.id, active.id])

def test_stats_count_by_status(services, brand, credential_payload):
    first = services.credentials.create(credential_payload, brand)
    services.credentials.create(dict(credential_payload, tax_id='98765432000110'), brand)
    services.credentials.change_status(first.id, 'ACTIVE', brand)

    stats = services.credentials.get_stats(brand)
    assert stats['total'] == 2
    assert stats['by_status']['ACTIVE'] == 1
    assert stats['by_status']['DRAFT'] == 1
    assert stats['conversion_rate'] == 50.0
    assert stats['created_this_month'] == 2
    assert stats['completed_this_month'] == 1

@pytest.mark.parametrize('policy,current,target,expected', [
    ('strict', CredentialStatus.DRAFT, CredentialStatus.PENDING_VALIDATION, True),
    ('strict', CredentialStatus.DRAFT, CredentialStatus.ACTIVE, False),
    ('forward', CredentialStatus.DRAFT, CredentialStatus.ACTIVE, True),
    ('forward', CredentialStatus.INVITATION_SENT, CredentialStatus.DRAFT, False),
    ('forward', CredentialStatus.VALIDATION_FAILED, CredentialStatus.PENDING_VALIDATION, True),
    ('permissive', CredentialStatus.CONTRACT_SIGNED, CredentialStatus.DRAFT, True),
    ('permissive', CredentialStatus.BLOCKED, CredentialStatus.DRAFT, False),
    ('permissive', CredentialStatus.ACTIVE, CredentialStatus.BLOCKED, False),
    ('strict', CredentialStatus.DRAFT, CredentialStatus.BLOCKED, True),
    ('forward', CredentialStatus.DRAFT, CredentialStatus.DRAFT, False),
])
def test_transition_policies(policy, current, target, expected):
    assert is_transition_allowed(current, target, policy) is expected

def test_unknown_policy_is_rejected():
    with pytest.raises(ValueError):
        is_transition_allowed(CredentialStatus.DRAFT, CredentialStatus.ACTIVE, 'anything')
