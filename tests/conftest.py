# tests/conftest.py
# Fixtures compartilhadas: banco SQLite temporário, empresas semeadas, atores, relógio fixo e serviços.

import os
import tempfile
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import requests

# O ambiente precisa estar pronto antes do primeiro import de faccao_hub (config é carregada no import)
_TEST_DB_DIR = tempfile.mkdtemp(prefix='faccao_hub_tests_')
os.environ['DB_TYPE'] = 'SQLITE'
os.environ['DATABASE_PATH'] = os.path.join(_TEST_DB_DIR, 'test.db')
os.environ['LOG_LEVEL'] = 'WARNING'
os.environ['APP_DEBUG'] = 'False'
os.environ['SECRET_KEY'] = 'test-secret-key'
os.environ['EXPIRATION_SWEEP_ENABLED'] = 'False'
os.environ.pop('NOTIFICATION_WEBHOOK_URL', None)

from faccao_hub.config import config  # noqa: E402
from faccao_hub.database import init_sqlalchemy, dispose_sqlalchemy_engine, get_db_session, Base  # noqa: E402
from faccao_hub.database.company_repository import CompanyRepository  # noqa: E402
from faccao_hub.database.credential_repository import CredentialRepository  # noqa: E402
from faccao_hub.database.partnership_request_repository import PartnershipRequestRepository  # noqa: E402
from faccao_hub.database.relationship_repository import RelationshipRepository  # noqa: E402
from faccao_hub.database.contract_repository import ContractRepository  # noqa: E402
from faccao_hub.database.supplier_document_repository import SupplierDocumentRepository  # noqa: E402
from faccao_hub.domain.actor import Actor, ActorRole  # noqa: E402
from faccao_hub.domain.company import Company, CompanyType  # noqa: E402
from faccao_hub.integrations import CnpjLookupService  # noqa: E402
from faccao_hub.services import (  # noqa: E402
    CredentialService, CredentialValidationService, PartnershipRequestService, RelationshipService,
    ContractService, DocumentComplianceService, ExpirationSweepService, NotificationDispatcher,
)

BRAND_ID = 'brand-0001'
OTHER_BRAND_ID = 'brand-0002'
SUPPLIER_ID = 'supplier-0001'
OTHER_SUPPLIER_ID = 'supplier-0002'
INACTIVE_SUPPLIER_ID = 'supplier-0003'

VALID_CNPJ = '11222333000181'

class FixedClock:
    """Relógio controlável injetado nos serviços."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)

class RecordingNotifier(NotificationDispatcher):
    """Guarda os eventos emitidos em vez de entregá-los."""

    def __init__(self):
        super().__init__(webhook_url=None)
        self.events = []

    def emit(self, event, payload):
        self.events.append((event, payload))
        return True

    def names(self):
        return [event for event, _ in self.events]

    def clear(self):
        self.events.clear()

class FakeResponse:
    def __init__(self, status_code=200, json_data=None):
        self.status_code = status_code
        self._json = json_data
        self.text = str(json_data)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        return self._json

class FakeHttpSession:
    """Substitui requests.Session: devolve as respostas enfileiradas e registra as URLs pedidas."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append(url)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

def brasil_api_payload(cnpj=VALID_CNPJ, status='ATIVA'):
    return {
        'cnpj': cnpj,
        'razao_social': 'CONFECCOES EXEMPLO LTDA',
        'nome_fantasia': 'Exemplo Confecções',
        'descricao_situacao_cadastral': status,
        'municipio': 'BLUMENAU',
        'uf': 'SC',
        'data_inicio_atividade': '2010-05-04',
    }

@pytest.fixture(scope='session')
def engine():
    dispose_sqlalchemy_engine()
    db_engine = init_sqlalchemy(config.SQLALCHEMY_DATABASE_URI)
    yield db_engine
    dispose_sqlalchemy_engine()

@pytest.fixture(autouse=True)
def clean_database(engine):
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())

@pytest.fixture
def companies(engine):
    seed = [
        Company(id=BRAND_ID, type=CompanyType.BRAND, cnpj='11444777000161', legal_name='Marca Um S.A.', trade_name='Marca Um'),
        Company(id=OTHER_BRAND_ID, type=CompanyType.BRAND, cnpj='22333444000110', legal_name='Marca Dois S.A.', trade_name='Marca Dois'),
        Company(id=SUPPLIER_ID, type=CompanyType.SUPPLIER, cnpj='33444555000120', legal_name='Facção Um Ltda', trade_name='Facção Um'),
        Company(id=OTHER_SUPPLIER_ID, type=CompanyType.SUPPLIER, cnpj='44555666000130', legal_name='Facção Dois Ltda', trade_name='Facção Dois'),
        Company(id=INACTIVE_SUPPLIER_ID, type=CompanyType.SUPPLIER, cnpj='55666777000140', legal_name='Facção Inativa Ltda',
                trade_name='Facção Inativa', is_active=False),
    ]
    with get_db_session() as db:
        db.add_all(seed)
    return {c.id: c for c in seed}

@pytest.fixture
def brand():
    return Actor(id='user-brand-1', company_id=BRAND_ID, role=ActorRole.BRAND, name='Ana Marca')

@pytest.fixture
def other_brand():
    return Actor(id='user-brand-2', company_id=OTHER_BRAND_ID, role=ActorRole.BRAND, name='Bruno Marca')

@pytest.fixture
def supplier():
    return Actor(id='user-supplier-1', company_id=SUPPLIER_ID, role=ActorRole.SUPPLIER, name='Carla Facção')

@pytest.fixture
def other_supplier():
    return Actor(id='user-supplier-2', company_id=OTHER_SUPPLIER_ID, role=ActorRole.SUPPLIER, name='Davi Facção')

@pytest.fixture
def admin():
    return Actor(id='user-admin', company_id=None, role=ActorRole.ADMIN, name='Admin')

@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc))

@pytest.fixture
def notifier():
    return RecordingNotifier()

@pytest.fixture
def http_session():
    return FakeHttpSession()

@pytest.fixture
def retry_sleeps():
    return []

@pytest.fixture
def services(engine, companies, clock, notifier, http_session, retry_sleeps):
    company_repo = CompanyRepository(engine)
    credential_repo = CredentialRepository(engine)
    request_repo = PartnershipRequestRepository(engine)
    relationship_repo = RelationshipRepository(engine)
    contract_repo = ContractRepository(engine)
    document_repo = SupplierDocumentRepository(engine)

    cnpj_lookup = CnpjLookupService('https://brasilapi.test/api/cnpj/v1', max_retries=1, session=http_session,
                                    sleep=retry_sleeps.append)
    credential_svc = CredentialService(credential_repo, notifier, transition_policy='forward', clock=clock)
    relationship_svc = RelationshipService(relationship_repo, company_repo, notifier, clock=clock)
    request_svc = PartnershipRequestService(request_repo, relationship_repo, company_repo, relationship_svc,
                                            notifier, ttl_days=30, clock=clock)
    contract_svc = ContractService(contract_repo, relationship_svc, notifier, default_validity_days=365, clock=clock)
    document_svc = DocumentComplianceService(document_repo, relationship_repo, company_repo,
                                             expiring_soon_days=30, clock=clock)
    return SimpleNamespace(
        credentials=credential_svc,
        validations=CredentialValidationService(credential_svc, credential_repo, cnpj_lookup),
        relationships=relationship_svc,
        requests=request_svc,
        contracts=contract_svc,
        documents=document_svc,
        sweep=ExpirationSweepService(request_svc, document_repo, notifier, clock=clock),
        cnpj_lookup=cnpj_lookup,
    )

@pytest.fixture
def credential_payload():
    return {
        'tax_id': '12.345.678/0001-90',
        'trade_name': 'Costura Fina',
        'contact_name': 'Maria Silva',
        'contact_email': 'Maria@CosturaFina.com.br',
        'contact_phone': '(47) 99999-0000',
        'category': 'JEANS',
    }
