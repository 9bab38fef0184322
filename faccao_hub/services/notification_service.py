# faccao_hub/services/notification_service.py
# Disparo de notificações de eventos do ciclo de vida (fire-and-forget).

import requests
from typing import Optional, Dict, Any, List, Tuple

from faccao_hub.utils.logger import logger

# Nomes de eventos
CREDENTIAL_STATUS_CHANGED = 'credential.status_changed'
PARTNERSHIP_REQUEST_CREATED = 'partnership_request.created'
PARTNERSHIP_REQUEST_RESPONDED = 'partnership_request.responded'
PARTNERSHIP_REQUEST_CANCELLED = 'partnership_request.cancelled'
PARTNERSHIP_REQUEST_EXPIRED = 'partnership_request.expired'
RELATIONSHIP_STATUS_CHANGED = 'relationship.status_changed'
CONSENT_REVOKED = 'relationship.consent_revoked'
CONTRACT_SENT = 'contract.sent_for_signature'
CONTRACT_SIGNED = 'contract.signed'
CONTRACT_REVISION_REQUESTED = 'contract.revision_requested'
CONTRACT_REVISION_RESPONDED = 'contract.revision_responded'
CONTRACT_REJECTED = 'contract.rejected'
DOCUMENT_EXPIRING = 'document.expiring'
DOCUMENT_EXPIRED = 'document.expired'

class NotificationDispatcher:
    """
    Publica eventos depois que a transação foi confirmada.
    Registra cada evento no log e, se configurado, envia um POST JSON ao webhook.
    Falhas de entrega são registradas e nunca interrompem a operação de origem.
    """

    def __init__(self, webhook_url: Optional[str] = None, timeout: int = 5,
                 session: Optional[requests.Session] = None):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.session = session or requests.Session()
        logger.info(f"NotificationDispatcher inicializado (webhook: {'configurado' if webhook_url else 'desativado'}).")

    def emit(self, event: str, payload: Dict[str, Any]) -> bool:
        """Retorna True se o evento foi entregue (ou apenas registrado, sem webhook)."""
        logger.info(f"Evento '{event}': {payload}")
        if not self.webhook_url:
            return True
        try:
            response = self.session.post(
                self.webhook_url,
                json={'event': event, 'payload': payload},
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.debug(f"Evento '{event}' entregue ao webhook (status {response.status_code}).")
            return True
        except requests.exceptions.RequestException as e:
            logger.error(f"Falha ao entregar evento '{event}' ao webhook: {e}")
            return False

    def emit_all(self, events: List[Tuple[str, Dict[str, Any]]]):
        for event, payload in events:
            self.emit(event, payload)
