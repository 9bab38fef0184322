# tests/test_notifications.py

import requests

from faccao_hub.services.notification_service import NotificationDispatcher, CONTRACT_SIGNED
from tests.conftest import FakeResponse

class PostSession:
    def __init__(self, outcome):
        self.outcome = outcome
        self.posted = []

    def post(self, url, json=None, timeout=None):
        self.posted.append((url, json))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

def test_without_webhook_only_logs():
    session = PostSession(FakeResponse(200))
    dispatcher = NotificationDispatcher(session=session)

    assert dispatcher.emit(CONTRACT_SIGNED, {'contract_id': 'c-1'}) is True
    assert session.posted == []

def test_webhook_receives_event_and_payload():
    session = PostSession(FakeResponse(204))
    dispatcher = NotificationDispatcher(webhook_url='https://hooks.test/faccao', session=session)

    assert dispatcher.emit(CONTRACT_SIGNED, {'contract_id': 'c-1'}) is True
    assert session.posted == [('https://hooks.test/faccao', {'event': CONTRACT_SIGNED, 'payload': {'contract_id': 'c-1'}})]

def test_delivery_failures_do_not_raise():
    down = NotificationDispatcher(webhook_url='https://hooks.test/faccao',
                                  session=PostSession(requests.exceptions.ConnectionError('down')))
    rejected = NotificationDispatcher(webhook_url='https://hooks.test/faccao', session=PostSession(FakeResponse(500)))

    assert down.emit(CONTRACT_SIGNED, {}) is False
    assert rejected.emit(CONTRACT_SIGNED, {}) is False
