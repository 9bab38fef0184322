# faccao_hub/config/settings.py
# Loads environment variables and defines the application configuration.

from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv
import os
import logging
import sys
from urllib.parse import quote_plus

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
dotenv_path = os.path.join(PROJECT_ROOT, '.env')
load_dotenv(dotenv_path=dotenv_path)

TRANSITION_POLICIES = ('strict', 'forward', 'permissive')

def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == 'true'

@dataclass
class Config:
    """
    Application configuration loaded from environment variables.
    Provides type hints and default values.
    """
    # Flask Settings
    SECRET_KEY: str = field(default_factory=lambda: os.environ.get('SECRET_KEY', 'default_secret_key_change_me_in_env'))
    APP_HOST: str = field(default_factory=lambda: os.environ.get('APP_HOST', '0.0.0.0'))
    APP_PORT: int = field(default_factory=lambda: int(os.environ.get('APP_PORT', 5010)))
    APP_DEBUG: bool = field(default_factory=lambda: _env_bool('APP_DEBUG', 'True'))
    TOKEN_EXPIRATION_HOURS: int = field(default_factory=lambda: int(os.environ.get('TOKEN_EXPIRATION_HOURS', 24)))
    LOG_LEVEL: str = field(default_factory=lambda: os.environ.get('LOG_LEVEL', 'DEBUG').upper())

    # --- Database Settings ---
    DB_TYPE: str = field(default_factory=lambda: os.environ.get('DB_TYPE', 'POSTGRES').upper())
    POSTGRES_HOST: str = field(default_factory=lambda: os.environ.get('POSTGRES_HOST', 'localhost'))
    POSTGRES_PORT: int = field(default_factory=lambda: int(os.environ.get('POSTGRES_PORT', 5432)))
    POSTGRES_USER: str = field(default_factory=lambda: os.environ.get('POSTGRES_USER', ''))
    POSTGRES_PASSWORD: str = field(default_factory=lambda: os.environ.get('POSTGRES_PASSWORD', ''))
    POSTGRES_DB: str = field(default_factory=lambda: os.environ.get('POSTGRES_DB', ''))
    SQLALCHEMY_DATABASE_URI: Optional[str] = None

    # --- Partner lifecycle rules ---
    PARTNERSHIP_REQUEST_TTL_DAYS: int = field(default_factory=lambda: int(os.environ.get('PARTNERSHIP_REQUEST_TTL_DAYS', 30)))
    DOCUMENT_EXPIRING_SOON_DAYS: int = field(default_factory=lambda: int(os.environ.get('DOCUMENT_EXPIRING_SOON_DAYS', 30)))
    CREDENTIAL_TRANSITION_POLICY: str = field(default_factory=lambda: os.environ.get('CREDENTIAL_TRANSITION_POLICY', 'forward').lower())
    CONTRACT_DEFAULT_VALIDITY_DAYS: int = field(default_factory=lambda: int(os.environ.get('CONTRACT_DEFAULT_VALIDITY_DAYS', 365)))

    # --- Background sweep ---
    EXPIRATION_SWEEP_ENABLED: bool = field(default_factory=lambda: _env_bool('EXPIRATION_SWEEP_ENABLED', 'True'))
    EXPIRATION_SWEEP_INTERVAL_MINUTES: int = field(default_factory=lambda: int(os.environ.get('EXPIRATION_SWEEP_INTERVAL_MINUTES', 60)))

    # --- Integrations ---
    CNPJ_API_BASE_URL: str = field(default_factory=lambda: os.environ.get('CNPJ_API_BASE_URL', 'https://brasilapi.com.br/api/cnpj/v1'))
    CNPJ_API_TIMEOUT: int = field(default_factory=lambda: int(os.environ.get('CNPJ_API_TIMEOUT', 10)))
    CNPJ_CACHE_TTL_SECONDS: int = field(default_factory=lambda: int(os.environ.get('CNPJ_CACHE_TTL_SECONDS', 30 * 24 * 3600)))
    MAX_RETRIES: int = field(default_factory=lambda: int(os.environ.get('MAX_RETRIES', 2)))
    CNPJ_RETRY_BACKOFF_SECONDS: float = field(default_factory=lambda: float(os.environ.get('CNPJ_RETRY_BACKOFF_SECONDS', 1.0)))
    NOTIFICATION_WEBHOOK_URL: Optional[str] = field(default_factory=lambda: os.environ.get('NOTIFICATION_WEBHOOK_URL') or None)

    def __post_init__(self):
        valid_levels = list(logging._nameToLevel.keys())
        if self.LOG_LEVEL not in valid_levels:
            print(f"Warning: Invalid LOG_LEVEL '{self.LOG_LEVEL}'. Valid levels: {valid_levels}. Defaulting to DEBUG.", file=sys.stderr)
            self.LOG_LEVEL = 'DEBUG'

        if self.CREDENTIAL_TRANSITION_POLICY not in TRANSITION_POLICIES:
            print(f"Warning: Unknown CREDENTIAL_TRANSITION_POLICY '{self.CREDENTIAL_TRANSITION_POLICY}'. Using 'forward'.", file=sys.stderr)
            self.CREDENTIAL_TRANSITION_POLICY = 'forward'

        for name, fallback in (('PARTNERSHIP_REQUEST_TTL_DAYS', 30),
                               ('DOCUMENT_EXPIRING_SOON_DAYS', 30),
                               ('CONTRACT_DEFAULT_VALIDITY_DAYS', 365),
                               ('EXPIRATION_SWEEP_INTERVAL_MINUTES', 60)):
            if getattr(self, name) < 1:
                print(f"Warning: {name} ({getattr(self, name)}) must be positive. Setting to default {fallback}.", file=sys.stderr)
                setattr(self, name, fallback)

        if self.CNPJ_RETRY_BACKOFF_SECONDS < 0:
            print(f"Warning: CNPJ_RETRY_BACKOFF_SECONDS ({self.CNPJ_RETRY_BACKOFF_SECONDS}) cannot be negative. Setting to 1.0.", file=sys.stderr)
            self.CNPJ_RETRY_BACKOFF_SECONDS = 1.0

        self.SQLALCHEMY_DATABASE_URI = self._database_uri()

    def _database_uri(self) -> Optional[str]:
        if self.DB_TYPE == 'SQLITE':
            db_path = os.environ.get('DATABASE_PATH')
            if not db_path:
                print("Warning: DB_TYPE=SQLITE sem DATABASE_PATH; banco não configurado.", file=sys.stderr)
                return None
            if not os.path.isabs(db_path):
                db_path = os.path.join(PROJECT_ROOT, db_path)
            os.makedirs(os.path.dirname(db_path), exist_ok=True)
            return f"sqlite:///{db_path}"

        if self.DB_TYPE != 'POSTGRES':
            print(f"Warning: DB_TYPE '{self.DB_TYPE}' não suportado (use POSTGRES ou SQLITE).", file=sys.stderr)
            return None
        missing = [name for name in ('POSTGRES_HOST', 'POSTGRES_USER', 'POSTGRES_PASSWORD', 'POSTGRES_DB')
                   if not getattr(self, name)]
        if missing:
            print(f"Warning: conexão PostgreSQL incompleta, faltando {missing}.", file=sys.stderr)
            return None
        return (f"postgresql+psycopg://{self.POSTGRES_USER}:{quote_plus(self.POSTGRES_PASSWORD)}"
                f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}")

    def masked_database_uri(self) -> str:
        uri = str(self.SQLALCHEMY_DATABASE_URI)
        if self.POSTGRES_PASSWORD:
            uri = uri.replace(quote_plus(self.POSTGRES_PASSWORD), '********')
        return uri

_SUMMARY_FIELDS = (
    'APP_HOST', 'APP_PORT', 'APP_DEBUG', 'LOG_LEVEL', 'DB_TYPE', 'CREDENTIAL_TRANSITION_POLICY',
    'PARTNERSHIP_REQUEST_TTL_DAYS', 'DOCUMENT_EXPIRING_SOON_DAYS', 'EXPIRATION_SWEEP_ENABLED', 'CNPJ_API_BASE_URL',
)

_config_instance: Optional[Config] = None

def load_config() -> Config:
    """Cria (na primeira chamada) e retorna a configuração da aplicação."""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
        print("--- Configuração carregada ---")
        for name in _SUMMARY_FIELDS:
            print(f"  {name}: {getattr(_config_instance, name)}")
        print(f"  SQLALCHEMY_DATABASE_URI: {_config_instance.masked_database_uri()}")
        print(f"  NOTIFICATION_WEBHOOK_URL: {'definida' if _config_instance.NOTIFICATION_WEBHOOK_URL else 'não definida'}")
    return _config_instance

config = load_config()
