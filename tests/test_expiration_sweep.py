# tests/test_expiration_sweep.py

from datetime import datetime, timedelta, timezone

import pytest

from faccao_hub.services import expiration_sweep_service
from faccao_hub.services.expiration_sweep_service import alert_window
from faccao_hub.services.notification_service import DOCUMENT_EXPIRING, DOCUMENT_EXPIRED, PARTNERSHIP_REQUEST_EXPIRED
from tests.conftest import SUPPLIER_ID

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

@pytest.mark.parametrize('delta,expected', [
    (timedelta(days=45), None),
    (timedelta(days=30, seconds=1), None),
    (timedelta(days=30), 30),
    (timedelta(days=16), 30),
    (timedelta(days=15), 15),
    (timedelta(days=8), 15),
    (timedelta(days=7), 7),
    (timedelta(hours=3), 7),
    (timedelta(0), 0),
    (timedelta(days=-2), 0),
])
def test_alert_window(delta, expected):
    assert alert_window(NOW + delta, NOW) == expected

def _document_events(notifier):
    return [(name, payload['window_days']) for name, payload in notifier.events
            if name in (DOCUMENT_EXPIRING, DOCUMENT_EXPIRED)]

def test_each_window_alerts_once(services, supplier, clock, notifier):
    services.documents.create_document({
        'type': 'CND_ESTADUAL',
        'file_url': 'https://files.test/cnd-estadual.pdf',
        'expires_at': (NOW + timedelta(days=20)).isoformat(),
    }, supplier)

    assert services.sweep.run_sweep() == {'expired_requests': 0, 'document_alerts': 1}
    assert services.sweep.run_sweep()['document_alerts'] == 0

    clock.advance(days=6)
    services.sweep.run_sweep()
    clock.advance(days=8)
    services.sweep.run_sweep()
    clock.advance(days=6)
    services.sweep.run_sweep()
    services.sweep.run_sweep()

    assert _document_events(notifier) == [
        (DOCUMENT_EXPIRING, 30), (DOCUMENT_EXPIRING, 15), (DOCUMENT_EXPIRING, 7), (DOCUMENT_EXPIRED, 0),
    ]

def test_documents_without_file_or_expiry_are_ignored(services, supplier, notifier):
    services.documents.create_document({'type': 'AVCB', 'expires_at': (NOW + timedelta(days=3)).isoformat()}, supplier)
    services.documents.create_document({'type': 'CARTAO_CNPJ', 'file_url': 'https://files.test/cartao.pdf'}, supplier)

    assert services.sweep.run_sweep()['document_alerts'] == 0
    assert _document_events(notifier) == []

def test_new_file_restarts_alerts(services, supplier, clock, notifier):
    document = services.documents.create_document({
        'type': 'LAUDO_NR',
        'file_url': 'https://files.test/laudo.pdf',
        'expires_at': (NOW + timedelta(days=5)).isoformat(),
    }, supplier)
    services.sweep.run_sweep()

    services.documents.attach_file(document.id, 'https://files.test/laudo-2025.pdf', 'laudo-2025.pdf', supplier,
                                   expires_at=(NOW + timedelta(days=25)).isoformat())
    services.sweep.run_sweep()

    assert _document_events(notifier) == [(DOCUMENT_EXPIRING, 7), (DOCUMENT_EXPIRING, 30)]

def test_sweep_expires_stale_requests(services, brand, clock, notifier):
    request = services.requests.create(brand, SUPPLIER_ID)
    clock.advance(days=31)

    assert services.sweep.run_sweep()['expired_requests'] == 1
    assert services.requests.get_by_id(request.id, brand).status.value == 'EXPIRED'
    assert PARTNERSHIP_REQUEST_EXPIRED in notifier.names()

def test_scheduler_start_and_stop(services):
    expiration_sweep_service.start_expiration_sweep_scheduler(services.sweep, initial_delay_sec=3600, interval_min=60)
    try:
        assert expiration_sweep_service._sweep_thread.is_alive()
        expiration_sweep_service.start_expiration_sweep_scheduler(services.sweep, initial_delay_sec=3600)
    finally:
        expiration_sweep_service.stop_expiration_sweep_scheduler()
    assert expiration_sweep_service._sweep_thread is None
