# faccao_hub/services/expiration_sweep_service.py
# Varredura periódica: persiste a expiração de solicitações vencidas e avisa sobre
# documentos perto do vencimento. Não grava status de documento.
import threading
import os
import atexit
from datetime import datetime
from math import ceil
from typing import Callable, Dict, Any, List, Optional

from faccao_hub.database.supplier_document_repository import SupplierDocumentRepository
from faccao_hub.services.notification_service import (
    NotificationDispatcher, DOCUMENT_EXPIRING, DOCUMENT_EXPIRED,
)
from faccao_hub.services.partnership_request_service import PartnershipRequestService
from faccao_hub.services.unit_of_work import unit_of_work
from faccao_hub.utils.data_conversion import utc_now, ensure_utc, isoformat_or_none
from faccao_hub.utils.logger import logger
from faccao_hub.config import config

# Janelas de alerta (dias antes do vencimento); 0 = vencido
ALERT_WINDOWS = (30, 15, 7)
SWEEP_INTERVAL_MINUTES = 60

# --- Variáveis de controle do agendador ---
_sweep_thread: Optional[threading.Thread] = None
_stop_sweep_event = threading.Event()
_scheduler_started = False
_scheduler_init_lock = threading.Lock()

def alert_window(expires_at: datetime, now: datetime) -> Optional[int]:
    """Menor janela de ALERT_WINDOWS que contém o vencimento; 0 se já venceu, None se está longe."""
    remaining = (ensure_utc(expires_at) - ensure_utc(now)).total_seconds()
    if remaining <= 0:
        return 0
    days_until = ceil(remaining / 86400)
    candidates = [w for w in ALERT_WINDOWS if days_until <= w]
    return min(candidates) if candidates else None

class ExpirationSweepService:
    _lock = threading.Lock()
    _is_running = False

    def __init__(self, partnership_request_service: PartnershipRequestService,
                 document_repository: SupplierDocumentRepository,
                 notifier: Optional[NotificationDispatcher] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.partnership_request_service = partnership_request_service
        self.document_repository = document_repository
        self.notifier = notifier or NotificationDispatcher()
        self.clock = clock
        logger.info("Serviço de varredura de expiração inicializado.")

    def _sweep_documents(self) -> List[Dict[str, Any]]:
        now = self.clock()
        events = []
        with unit_of_work("varrer vencimento de documentos") as db:
            for document in self.document_repository.list_with_file_and_expiry(db):
                window = alert_window(document.expires_at, now)
                if window is None:
                    continue
                last = document.last_expiry_alert_days
                if last is not None and window >= last:
                    continue
                document.last_expiry_alert_days = window
                self.document_repository.save(db, document)
                events.append((DOCUMENT_EXPIRED if window == 0 else DOCUMENT_EXPIRING, {
                    'document_id': document.id,
                    'company_id': document.company_id,
                    'type': document.type.value,
                    'expires_at': isoformat_or_none(document.expires_at),
                    'window_days': window,
                }))
        return events

    def run_sweep(self) -> Dict[str, int]:
        """
        Executa uma varredura. Previne execuções concorrentes dentro do mesmo processo.
        Retorna as contagens de solicitações expiradas e alertas de documento emitidos.
        """
        acquired = ExpirationSweepService._lock.acquire(blocking=False)
        if not acquired:
            logger.warning("Varredura de expiração já está em execução neste processo. Ignorando esta chamada.")
            return {'expired_requests': 0, 'document_alerts': 0}
        ExpirationSweepService._is_running = True
        try:
            logger.info("Varredura de expiração iniciada.")
            expired = self.partnership_request_service.expire_stale()
            events = self._sweep_documents()
            self.notifier.emit_all(events)
            logger.info(f"Varredura de expiração concluída: {expired} solicitações expiradas, {len(events)} alertas de documento.")
            return {'expired_requests': expired, 'document_alerts': len(events)}
        finally:
            ExpirationSweepService._is_running = False
            ExpirationSweepService._lock.release()

# --- Controle do agendador em background ---

def _expiration_sweep_task(sweep_service: ExpirationSweepService, initial_delay_sec: int, interval_min: int):
    logger.info(f"Tarefa de varredura de expiração iniciada. Atraso inicial: {initial_delay_sec}s, Intervalo: {interval_min}min.")
    wait_time = initial_delay_sec
    while not _stop_sweep_event.is_set():
        if _stop_sweep_event.wait(timeout=wait_time):
            logger.info("Tarefa de varredura de expiração interrompida pelo evento de parada.")
            break
        wait_time = interval_min * 60
        try:
            sweep_service.run_sweep()
        except Exception as e:
            logger.error(f"Erro não tratado durante varredura de expiração agendada: {e}", exc_info=True)
    logger.info("Tarefa de varredura de expiração finalizada.")

def start_expiration_sweep_scheduler(sweep_service: ExpirationSweepService, initial_delay_sec: int = 30,
                                     interval_min: int = SWEEP_INTERVAL_MINUTES):
    """Inicia a thread de varredura se ainda não estiver rodando."""
    global _sweep_thread, _scheduler_started

    if _sweep_thread and _sweep_thread.is_alive():
        logger.warning("Thread de varredura de expiração já está em execução neste processo.")
        return

    with _scheduler_init_lock:
        if _scheduler_started:
            logger.info("Agendador de varredura de expiração já foi iniciado. Não iniciar novamente.")
            return

        # No modo debug só o processo principal do reloader agenda
        if config.APP_DEBUG and os.environ.get('WERKZEUG_RUN_MAIN') != 'true':
            logger.info(f"Modo Debug: Processo {os.getpid()} não é o principal (WERKZEUG_RUN_MAIN != 'true'). Não iniciando varredura.")
            return

        _stop_sweep_event.clear()
        _sweep_thread = threading.Thread(
            target=_expiration_sweep_task,
            args=(sweep_service, initial_delay_sec, interval_min),
            daemon=True,
        )
        _sweep_thread.start()
        _scheduler_started = True
        logger.info(f"Thread de varredura de expiração iniciada pelo PID {os.getpid()}.")
        atexit.register(stop_expiration_sweep_scheduler)

def stop_expiration_sweep_scheduler():
    """Para a thread de varredura."""
    global _sweep_thread, _scheduler_started

    _stop_sweep_event.set()
    if _sweep_thread and _sweep_thread.is_alive():
        logger.info("Aguardando a thread de varredura de expiração terminar...")
        _sweep_thread.join(timeout=15)
        if _sweep_thread.is_alive():
            logger.warning("Thread de varredura de expiração não parou em 15s.")
        else:
            logger.info("Thread de varredura de expiração parada com sucesso.")
        _sweep_thread = None
    else:
        logger.debug("Thread de varredura de expiração não está em execução.")
    _scheduler_started = False
