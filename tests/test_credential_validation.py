# tests/test_credential_validation.py

import pytest
import requests

from faccao_hub.api.errors import InvalidStateError
from faccao_hub.domain.credential import CredentialStatus
from faccao_hub.integrations import CnpjLookupService, is_valid_cnpj
from faccao_hub.services import CredentialService
from tests.conftest import FakeResponse, brasil_api_payload, VALID_CNPJ

@pytest.fixture
def valid_credential(services, brand, credential_payload):
    return services.credentials.create(dict(credential_payload, tax_id='11.222.333/0001-81'), brand)

def test_checksum():
    assert is_valid_cnpj('11.222.333/0001-81')
    assert not is_valid_cnpj('11.222.333/0001-82')
    assert not is_valid_cnpj('00000000000000')
    assert not is_valid_cnpj('123')

def test_active_registry_keeps_credential_pending_and_fills_legal_name(services, brand, valid_credential, http_session):
    http_session.responses.append(FakeResponse(200, brasil_api_payload()))

    result = services.validations.start_validation(valid_credential.id, brand)

    assert result['result']['is_valid'] is True
    assert result['credential']['status'] == CredentialStatus.PENDING_VALIDATION.value
    assert result['credential']['legal_name'] == 'CONFECCOES EXEMPLO LTDA'
    assert result['validation']['source'] == 'BRASIL_API'
    assert http_session.calls == [f"https://brasilapi.test/api/cnpj/v1/{VALID_CNPJ}"]

    validations = services.validations.get_validations(valid_credential.id, brand)
    assert len(validations) == 1
    assert validations[0].is_valid

def test_inactive_registry_fails_validation(services, brand, valid_credential, http_session):
    http_session.responses.append(FakeResponse(200, brasil_api_payload(status='BAIXADA')))

    result = services.validations.start_validation(valid_credential.id, brand)

    assert result['credential']['status'] == CredentialStatus.VALIDATION_FAILED.value
    assert 'BAIXADA' in result['validation']['error_message']
    history = services.credentials.get_history(valid_credential.id, brand)
    assert [h.to_status for h in history][-2:] == [CredentialStatus.PENDING_VALIDATION, CredentialStatus.VALIDATION_FAILED]

def test_bad_checksum_fails_without_calling_the_registry(services, brand, credential_payload, http_session):
    credential = services.credentials.create(credential_payload, brand)

    result = services.validations.start_validation(credential.id, brand)

    assert result['result']['source'] == 'CHECKSUM'
    assert result['credential']['status'] == CredentialStatus.VALIDATION_FAILED.value
    assert http_session.calls == []

def test_registry_outage_is_recorded_as_failed_validation(services, brand, valid_credential, http_session):
    http_session.responses.extend([
        requests.exceptions.ConnectionError('boom'),
        requests.exceptions.ConnectionError('boom again'),
    ])

    result = services.validations.start_validation(valid_credential.id, brand)

    assert result['result']['is_valid'] is False
    assert result['credential']['status'] == CredentialStatus.VALIDATION_FAILED.value
    assert len(http_session.calls) == 2

def test_server_error_is_retried(services, brand, valid_credential, http_session):
    http_session.responses.extend([FakeResponse(503), FakeResponse(200, brasil_api_payload())])

    result = services.validations.start_validation(valid_credential.id, brand)

    assert result['result']['is_valid'] is True
    assert len(http_session.calls) == 2

def test_retries_wait_longer_after_each_failure(http_session):
    waits = []
    lookup = CnpjLookupService('https://brasilapi.test/api/cnpj/v1', max_retries=2, session=http_session,
                               retry_backoff_seconds=0.5, sleep=waits.append)
    http_session.responses.extend([
        requests.exceptions.ConnectionError('boom'),
        FakeResponse(502),
        FakeResponse(200, brasil_api_payload()),
    ])

    result = lookup.lookup(VALID_CNPJ)

    assert result.is_valid
    assert waits == [0.5, 1.0]
    assert len(http_session.calls) == 3

def test_exhausted_retries_do_not_wait_after_the_last_attempt(http_session):
    waits = []
    lookup = CnpjLookupService('https://brasilapi.test/api/cnpj/v1', max_retries=1, session=http_session,
                               sleep=waits.append)
    http_session.responses.extend([FakeResponse(503), FakeResponse(503)])

    result = lookup.lookup(VALID_CNPJ)

    assert not result.is_valid
    assert waits == [1.0]

def test_failed_validation_can_be_retried(services, brand, valid_credential, http_session):
    http_session.responses.extend([FakeResponse(404), FakeResponse(200, brasil_api_payload())])

    first = services.validations.start_validation(valid_credential.id, brand)
    assert first['credential']['status'] == CredentialStatus.VALIDATION_FAILED.value

    services.cnpj_lookup.clear_cache()
    second = services.validations.start_validation(valid_credential.id, brand)
    assert second['credential']['status'] == CredentialStatus.PENDING_VALIDATION.value
    assert len(services.validations.get_validations(valid_credential.id, brand)) == 2

def test_successful_lookups_are_cached(services, brand, valid_credential, other_brand, http_session):
    http_session.responses.append(FakeResponse(200, brasil_api_payload()))
    services.validations.start_validation(valid_credential.id, brand)

    other = services.credentials.create({
        'tax_id': VALID_CNPJ, 'contact_name': 'João', 'contact_email': 'joao@exemplo.com',
        'contact_phone': '4733334444',
    }, other_brand)
    services.validations.start_validation(other.id, other_brand)

    assert len(http_session.calls) == 1

def test_validation_only_starts_from_draft_or_failed(services, brand, valid_credential):
    services.credentials.change_status(valid_credential.id, 'INVITATION_SENT', brand)
    with pytest.raises(InvalidStateError):
        services.validations.start_validation(valid_credential.id, brand)

def test_tax_id_change_invalidates_earlier_validations(services, brand, valid_credential, http_session):
    http_session.responses.append(FakeResponse(200, brasil_api_payload()))
    services.validations.start_validation(valid_credential.id, brand)
    permissive = CredentialService(services.credentials.credential_repository, transition_policy='permissive')
    permissive.change_status(valid_credential.id, 'DRAFT', brand, reason='CNPJ digitado errado')

    updated = services.credentials.update(valid_credential.id, {'tax_id': '98.765.432/0001-10'}, brand)

    assert updated.tax_id == '98765432000110'
    assert updated.legal_name is None
    validations = services.validations.get_validations(valid_credential.id, brand)
    assert [(v.tax_id, v.is_valid) for v in validations] == [(VALID_CNPJ, False)]
