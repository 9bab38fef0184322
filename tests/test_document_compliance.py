# tests/test_document_compliance.py

from datetime import datetime, date, timedelta, timezone

import pytest

from faccao_hub.api.errors import ConflictError, ForbiddenError, ValidationError, NotFoundError
from faccao_hub.domain.filters import DocumentFilters
from faccao_hub.domain.supplier_document import DocumentStatus, SupplierDocumentType, compute_document_status
from tests.conftest import SUPPLIER_ID, OTHER_SUPPLIER_ID

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

def _iso(dt: datetime) -> str:
    return dt.isoformat().replace('+00:00', 'Z')

class TestComputeDocumentStatus:

    def test_missing_file_is_pending_even_when_expired(self):
        assert compute_document_status(NOW - timedelta(days=10), False, NOW) == DocumentStatus.PENDING

    def test_file_without_expiry_is_valid(self):
        assert compute_document_status(None, True, NOW) == DocumentStatus.VALID

    def test_expires_exactly_now(self):
        assert compute_document_status(NOW, True, NOW) == DocumentStatus.EXPIRED

    def test_start_of_warning_window(self):
        expires = NOW + timedelta(days=30)
        assert compute_document_status(expires, True, NOW) == DocumentStatus.EXPIRING_SOON
        assert compute_document_status(expires + timedelta(seconds=1), True, NOW) == DocumentStatus.VALID

    def test_custom_window(self):
        expires = NOW + timedelta(days=10)
        assert compute_document_status(expires, True, NOW, expiring_soon_days=7) == DocumentStatus.VALID
        assert compute_document_status(expires, True, NOW, expiring_soon_days=15) == DocumentStatus.EXPIRING_SOON

    def test_naive_and_date_values_are_treated_as_utc(self):
        naive_expiry = datetime(2025, 3, 10, 11, 59)
        assert compute_document_status(naive_expiry, True, NOW) == DocumentStatus.EXPIRED
        assert compute_document_status(date(2025, 6, 1), True, date(2025, 3, 1)) == DocumentStatus.VALID

@pytest.fixture
def cnd(services, supplier):
    return services.documents.create_document({
        'type': 'CND_FEDERAL',
        'file_url': 'https://files.test/cnd.pdf',
        'file_name': 'cnd.pdf',
        'expires_at': _iso(NOW + timedelta(days=90)),
    }, supplier)

@pytest.fixture
def shared_relationship(services, brand, supplier):
    rel = services.relationships.create(brand, supplier_id=SUPPLIER_ID)
    services.relationships.update_consent(rel.id, True, supplier)
    return rel

def test_create_and_serialize(services, cnd, supplier):
    assert cnd.company_id == SUPPLIER_ID
    assert cnd.uploaded_by_id == supplier.id
    data = services.documents.serialize(cnd)
    assert data['status'] == DocumentStatus.VALID.value
    assert data['has_file'] is True

def test_duplicate_document_conflicts(services, supplier, cnd):
    with pytest.raises(ConflictError):
        services.documents.create_document({'type': 'cnd_federal'}, supplier)

def test_monthly_documents_need_competence(services, supplier):
    with pytest.raises(ValidationError):
        services.documents.create_document({'type': 'GUIA_INSS'}, supplier)

    january = services.documents.create_document({'type': 'GUIA_INSS', 'competence_month': 1, 'competence_year': 2025}, supplier)
    february = services.documents.create_document({'type': 'GUIA_INSS', 'competence_month': 2, 'competence_year': 2025}, supplier)
    assert january.id != february.id
    with pytest.raises(ConflictError):
        services.documents.create_document({'type': 'GUIA_INSS', 'competence_month': 2, 'competence_year': 2025}, supplier)

def test_database_rejects_duplicates_the_lookup_missed(services, supplier, cnd, monkeypatch):
    monkeypatch.setattr(services.documents.document_repository, 'find_duplicate', lambda *args, **kwargs: None)
    services.documents.create_document({'type': 'GUIA_INSS', 'competence_month': 3, 'competence_year': 2025}, supplier)

    with pytest.raises(ConflictError):
        services.documents.create_document({'type': 'CND_FEDERAL'}, supplier)
    with pytest.raises(ConflictError):
        services.documents.create_document({'type': 'GUIA_INSS', 'competence_month': 3, 'competence_year': 2025}, supplier)

    monkeypatch.undo()
    documents = services.documents.list_documents(supplier)
    assert sorted(d['type'] for d in documents) == ['CND_FEDERAL', 'GUIA_INSS']

def test_file_name_requires_url(services, supplier):
    with pytest.raises(ValidationError):
        services.documents.create_document({'type': 'AVCB', 'file_name': 'avcb.pdf'}, supplier)

def test_unknown_type(services, supplier):
    with pytest.raises(ValidationError):
        services.documents.create_document({'type': 'PASSAPORTE'}, supplier)

def test_brands_cannot_create_documents(services, brand):
    with pytest.raises(ForbiddenError):
        services.documents.create_document({'type': 'AVCB'}, brand)

def test_attach_file_turns_pending_into_valid(services, supplier):
    document = services.documents.create_document({'type': 'ALVARA_FUNCIONAMENTO'}, supplier)
    assert services.documents.compute_status(document) == DocumentStatus.PENDING

    updated = services.documents.attach_file(document.id, 'https://files.test/alvara.pdf', 'alvara.pdf', supplier,
                                             expires_at=_iso(NOW + timedelta(days=20)))
    assert services.documents.compute_status(updated) == DocumentStatus.EXPIRING_SOON

    with pytest.raises(ValidationError):
        services.documents.attach_file(document.id, None, None, supplier)

def test_status_follows_the_clock(services, supplier, cnd, clock):
    clock.advance(days=61)
    stored = services.documents.get_document(cnd.id, supplier)
    assert services.documents.compute_status(stored) == DocumentStatus.EXPIRING_SOON
    clock.advance(days=29)
    assert services.documents.serialize(stored)['status'] == DocumentStatus.EXPIRED.value

def test_only_owner_changes_documents(services, cnd, other_supplier, supplier):
    with pytest.raises(ForbiddenError):
        services.documents.update_document(cnd.id, {'notes': 'x'}, other_supplier)
    with pytest.raises(ForbiddenError):
        services.documents.delete_document(cnd.id, other_supplier)

    updated = services.documents.update_document(cnd.id, {'notes': 'Renovada em março'}, supplier)
    assert updated.notes == 'Renovada em março'

    services.documents.delete_document(cnd.id, supplier)
    with pytest.raises(NotFoundError):
        services.documents.get_document(cnd.id, supplier)

def test_brand_needs_consent(services, brand, supplier, cnd):
    with pytest.raises(ForbiddenError):
        services.documents.get_document(cnd.id, brand)

    rel = services.relationships.create(brand, supplier_id=SUPPLIER_ID)
    with pytest.raises(ForbiddenError):
        services.documents.list_documents(brand, DocumentFilters(company_id=SUPPLIER_ID))

    services.relationships.update_consent(rel.id, True, supplier)
    listed = services.documents.list_documents(brand, DocumentFilters(company_id=SUPPLIER_ID))
    assert [d['id'] for d in listed] == [cnd.id]

    services.relationships.revoke_consent(rel.id, 'Encerrando o compartilhamento', supplier)
    with pytest.raises(ForbiddenError):
        services.documents.get_document(cnd.id, brand)

def test_brand_must_name_the_supplier(services, brand, shared_relationship):
    with pytest.raises(ValidationError):
        services.documents.list_documents(brand)

def test_list_filters_by_computed_status(services, supplier, cnd):
    services.documents.create_document({'type': 'AVCB'}, supplier)

    pending = services.documents.list_documents(supplier, DocumentFilters(status=DocumentStatus.PENDING))
    assert [d['type'] for d in pending] == ['AVCB']
    by_type = services.documents.list_documents(supplier, DocumentFilters(type=SupplierDocumentType.CND_FEDERAL))
    assert [d['id'] for d in by_type] == [cnd.id]

def test_checklist_covers_every_type(services, brand, supplier, cnd, shared_relationship):
    services.documents.create_document({'type': 'GUIA_FGTS', 'competence_month': 1, 'competence_year': 2025,
                                        'file_url': 'https://files.test/fgts-01.pdf'}, supplier)
    latest = services.documents.create_document({'type': 'GUIA_FGTS', 'competence_month': 2, 'competence_year': 2025}, supplier)

    checklist = services.documents.checklist(brand, company_id=SUPPLIER_ID)

    assert [item['type'] for item in checklist] == [t.value for t in SupplierDocumentType]
    by_type = {item['type']: item for item in checklist}
    assert by_type['CND_FEDERAL']['status'] == 'VALID'
    assert by_type['CND_FEDERAL']['document_id'] == cnd.id
    assert by_type['GUIA_FGTS']['document_id'] == latest.id
    assert by_type['GUIA_FGTS']['status'] == 'PENDING'
    assert by_type['AVCB'] == {
        'type': 'AVCB', 'document_id': None, 'status': 'PENDING',
        'expires_at': None, 'competence_month': None, 'competence_year': None,
    }

def test_supplier_summary(services, supplier, cnd, clock):
    services.documents.create_document({'type': 'AVCB'}, supplier)
    services.documents.create_document({'type': 'CRF_FGTS', 'file_url': 'https://files.test/crf.pdf',
                                        'expires_at': _iso(NOW - timedelta(days=1))}, supplier)

    summary = services.documents.get_supplier_summary(supplier)

    assert summary['company_id'] == SUPPLIER_ID
    assert summary['total'] == 3
    assert summary['by_status'] == {'PENDING': 1, 'VALID': 1, 'EXPIRING_SOON': 0, 'EXPIRED': 1}

def test_platform_summary_is_admin_only(services, admin, supplier, other_supplier, cnd):
    services.documents.create_document({'type': 'AVCB'}, other_supplier)
    with pytest.raises(ForbiddenError):
        services.documents.get_platform_summary(supplier)

    summary = services.documents.get_platform_summary(admin)

    assert summary['total'] == 2
    assert summary['by_status']['VALID'] == 1
    assert summary['by_status']['PENDING'] == 1
    assert [s['company_id'] for s in summary['suppliers']] == sorted([SUPPLIER_ID, OTHER_SUPPLIER_ID])
