# faccao_hub/app.py
# Application factory: banco, serviços (injetados em app.config), blueprints, handlers e varredura.
from flask import Flask, jsonify
from flask_cors import CORS
import atexit
import sys
from sqlalchemy.engine import Engine
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from faccao_hub.config import Config
from faccao_hub.api import register_blueprints
from faccao_hub.api.errors import register_error_handlers, ConfigurationError, DatabaseError
from faccao_hub.database import get_db_session, init_sqlalchemy, dispose_sqlalchemy_engine
from faccao_hub.utils.logger import logger, configure_logger

from faccao_hub.database.company_repository import CompanyRepository
from faccao_hub.database.credential_repository import CredentialRepository
from faccao_hub.database.partnership_request_repository import PartnershipRequestRepository
from faccao_hub.database.relationship_repository import RelationshipRepository
from faccao_hub.database.contract_repository import ContractRepository
from faccao_hub.database.supplier_document_repository import SupplierDocumentRepository

from faccao_hub.integrations import CnpjLookupService
from faccao_hub.services import (
    AuthService,
    CredentialService,
    CredentialValidationService,
    PartnershipRequestService,
    RelationshipService,
    ContractService,
    DocumentComplianceService,
    ExpirationSweepService,
    NotificationDispatcher,
)
from faccao_hub.services.expiration_sweep_service import start_expiration_sweep_scheduler

INSECURE_SECRET = 'default_secret_key_change_me_in_env'

def _check_secret_key(app: Flask):
    secret = app.config.get('SECRET_KEY')
    if secret and secret != INSECURE_SECRET:
        return
    if not app.config.get('APP_DEBUG', False):
        logger.critical("SECRET_KEY ausente ou padrão fora do modo debug. Abortando.")
        raise ConfigurationError("SECRET_KEY must be set to a unique value in production.")
    logger.warning("SECRET_KEY padrão em uso (aceito apenas em modo debug).")

def _build_services(cfg: Config, engine: Engine) -> dict:
    """Monta repositórios e serviços; as chaves do dicionário viram entradas de app.config."""
    company_repo = CompanyRepository(engine)
    credential_repo = CredentialRepository(engine)
    request_repo = PartnershipRequestRepository(engine)
    relationship_repo = RelationshipRepository(engine)
    contract_repo = ContractRepository(engine)
    document_repo = SupplierDocumentRepository(engine)

    notifier = NotificationDispatcher(webhook_url=cfg.NOTIFICATION_WEBHOOK_URL)
    cnpj_lookup = CnpjLookupService(
        base_url=cfg.CNPJ_API_BASE_URL,
        timeout=cfg.CNPJ_API_TIMEOUT,
        max_retries=cfg.MAX_RETRIES,
        retry_backoff_seconds=cfg.CNPJ_RETRY_BACKOFF_SECONDS,
        cache_ttl_seconds=cfg.CNPJ_CACHE_TTL_SECONDS,
    )

    credentials = CredentialService(credential_repo, notifier, transition_policy=cfg.CREDENTIAL_TRANSITION_POLICY)
    relationships = RelationshipService(relationship_repo, company_repo, notifier)
    requests_svc = PartnershipRequestService(request_repo, relationship_repo, company_repo, relationships,
                                             notifier, ttl_days=cfg.PARTNERSHIP_REQUEST_TTL_DAYS)
    return {
        'auth_service': AuthService(cfg.SECRET_KEY, cfg.TOKEN_EXPIRATION_HOURS),
        'credential_service': credentials,
        'credential_validation_service': CredentialValidationService(credentials, credential_repo, cnpj_lookup),
        'relationship_service': relationships,
        'partnership_request_service': requests_svc,
        'contract_service': ContractService(contract_repo, relationships, notifier,
                                            default_validity_days=cfg.CONTRACT_DEFAULT_VALIDITY_DAYS),
        'document_compliance_service': DocumentComplianceService(document_repo, relationship_repo, company_repo,
                                                                 expiring_soon_days=cfg.DOCUMENT_EXPIRING_SOON_DAYS),
        'expiration_sweep_service': ExpirationSweepService(requests_svc, document_repo, notifier),
    }

def create_app(config_object: Config, start_scheduler: bool = True) -> Flask:
    """
    Cria a aplicação Flask.

    Args:
        config_object: configuração carregada do ambiente.
        start_scheduler: inicia a varredura de expiração em background (se habilitada na configuração).
    """
    app = Flask("Faccao-Hub")
    app.config.from_object(config_object)

    configure_logger(config_object.LOG_LEVEL)
    logger.info(f"Iniciando Faccao-Hub (debug={app.config.get('APP_DEBUG')}).")
    _check_secret_key(app)

    CORS(app, supports_credentials=True, resources={r"/api/*": {"origins": "*"}})

    try:
        if not config_object.SQLALCHEMY_DATABASE_URI:
            raise ConfigurationError("SQLALCHEMY_DATABASE_URI is not configured.")
        db_engine = init_sqlalchemy(config_object.SQLALCHEMY_DATABASE_URI)
        atexit.register(dispose_sqlalchemy_engine)
    except (DatabaseError, ConfigurationError, SQLAlchemyError) as db_init_err:
        logger.critical(f"Banco de dados indisponível na inicialização: {db_init_err}", exc_info=True)
        sys.exit(1)

    services = _build_services(config_object, db_engine)
    app.config.update(services)
    logger.info(f"Serviços registrados: {sorted(services)}")

    register_blueprints(app)
    register_error_handlers(app)

    if start_scheduler and config_object.EXPIRATION_SWEEP_ENABLED:
        start_expiration_sweep_scheduler(services['expiration_sweep_service'],
                                         interval_min=config_object.EXPIRATION_SWEEP_INTERVAL_MINUTES)

    @app.route('/health', methods=['GET'])
    def health_check():
        db_error = None
        try:
            with get_db_session() as db:
                db.execute(text("SELECT 1"))
        except (DatabaseError, SQLAlchemyError) as e:
            logger.error(f"Health check: banco indisponível: {e}")
            db_error = str(e)

        return jsonify({
            "status": "ok",
            "database": "error" if db_error else "ok",
            "database_error": db_error,
            "sweep_running": ExpirationSweepService._is_running,
        }), 503 if db_error else 200

    return app
