# tests/test_api.py
# Camada HTTP: autenticação por token, papéis e formato dos erros.

from contextlib import contextmanager

import pytest
from sqlalchemy.exc import OperationalError

from faccao_hub.app import create_app
from faccao_hub.config import config
from tests.conftest import SUPPLIER_ID

@pytest.fixture
def app(engine, companies):
    flask_app = create_app(config, start_scheduler=False)
    flask_app.config['TESTING'] = True
    return flask_app

@pytest.fixture
def client(app):
    return app.test_client()

@pytest.fixture
def auth(app):
    def _headers(actor):
        token = app.config['auth_service'].issue_token(actor)
        return {'Authorization': f'Bearer {token}'}
    return _headers

def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'ok'
    assert body['database'] == 'ok'

def test_missing_token_is_unauthorized(client, credential_payload):
    response = client.post('/api/credentials', json=credential_payload)
    assert response.status_code == 401
    assert 'error' in response.get_json()

def test_invalid_token_is_unauthorized(client, credential_payload):
    response = client.post('/api/credentials', json=credential_payload,
                           headers={'Authorization': 'Bearer not-a-token'})
    assert response.status_code == 401

def test_wrong_role_is_forbidden(client, auth, supplier, credential_payload):
    response = client.post('/api/credentials', json=credential_payload, headers=auth(supplier))
    assert response.status_code == 403

def test_create_credential_and_duplicate(client, auth, brand, credential_payload):
    created = client.post('/api/credentials', json=credential_payload, headers=auth(brand))
    assert created.status_code == 201
    body = created.get_json()
    assert body['tax_id'] == '12345678000190'
    assert body['status'] == 'DRAFT'

    duplicate = client.post('/api/credentials', json=credential_payload, headers=auth(brand))
    assert duplicate.status_code == 409
    assert 'error' in duplicate.get_json()

def test_non_json_body_is_rejected(client, auth, brand):
    response = client.post('/api/credentials', data='tax_id=1', headers=auth(brand))
    assert response.status_code == 400

def test_partnership_request_flow(client, auth, brand, supplier):
    created = client.post('/api/partnership-requests', json={'supplier_id': SUPPLIER_ID, 'message': 'Olá'},
                          headers=auth(brand))
    assert created.status_code == 201
    request_id = created.get_json()['id']

    count = client.get('/api/partnership-requests/pending-count', headers=auth(supplier))
    assert count.get_json() == {'count': 1}

    missing_flag = client.post(f'/api/partnership-requests/{request_id}/respond', json={}, headers=auth(supplier))
    assert missing_flag.status_code == 400

    accepted = client.post(f'/api/partnership-requests/{request_id}/respond',
                           json={'accepted': True, 'document_sharing_consent': True}, headers=auth(supplier))
    assert accepted.status_code == 200
    relationship_id = accepted.get_json()['relationship_id']

    relationship = client.get(f'/api/relationships/{relationship_id}', headers=auth(brand))
    assert relationship.status_code == 200
    assert relationship.get_json()['status'] == 'CONTRACT_PENDING'

    again = client.post(f'/api/partnership-requests/{request_id}/cancel', headers=auth(brand))
    assert again.status_code == 422

def test_platform_summary_requires_admin(client, auth, supplier, admin):
    assert client.get('/api/supplier-documents/platform-summary', headers=auth(supplier)).status_code == 403
    response = client.get('/api/supplier-documents/platform-summary', headers=auth(admin))
    assert response.status_code == 200
    assert response.get_json()['total'] == 0

def test_unknown_route_returns_json(client):
    response = client.get('/api/nao-existe')
    assert response.status_code == 404
    assert 'error' in response.get_json()

def test_string_consent_is_rejected(client, auth, brand, supplier):
    created = client.post('/api/partnership-requests', json={'supplier_id': SUPPLIER_ID}, headers=auth(brand))
    request_id = created.get_json()['id']

    response = client.post(f'/api/partnership-requests/{request_id}/respond',
                           json={'accepted': True, 'document_sharing_consent': 'false'}, headers=auth(supplier))

    assert response.status_code == 400
    assert response.get_json()['field'] == 'document_sharing_consent'
    still_pending = client.get(f'/api/partnership-requests/{request_id}', headers=auth(supplier))
    assert still_pending.get_json()['status'] == 'PENDING'
    assert still_pending.get_json()['relationship_id'] is None

def test_health_reports_unreachable_database(client, monkeypatch):
    class UnreachableSession:
        def execute(self, statement):
            raise OperationalError(str(statement), {}, Exception('connection refused'))

    @contextmanager
    def unreachable_session():
        yield UnreachableSession()

    monkeypatch.setattr('faccao_hub.app.get_db_session', unreachable_session)
    response = client.get('/health')

    assert response.status_code == 503
    body = response.get_json()
    assert body['database'] == 'error'
    assert 'connection refused' in body['database_error']
