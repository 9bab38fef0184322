# faccao_hub/utils/logger.py
# Logger único do processo: console + arquivo rotativo seguro entre processos (gunicorn com vários workers).

import logging
import os
import sys
from concurrent_log_handler import ConcurrentRotatingFileHandler

LOGGER_NAME = "FaccaoHub"
LOG_DIRECTORY = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), "logs")
LOG_FILENAME = "app.log"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d | %(funcName)s] - %(message)s'
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 10

def _resolve_level(level_name: str) -> int:
    level = logging.getLevelName(str(level_name).upper())
    if not isinstance(level, int):
        print(f"Aviso: nível de log inválido '{level_name}', usando DEBUG.", file=sys.stderr)
        return logging.DEBUG
    return level

def _initial_level() -> str:
    # config importa este módulo indiretamente; a leitura direta do ambiente evita o ciclo
    return os.environ.get('LOG_LEVEL', 'DEBUG')

def _build_logger() -> logging.Logger:
    built = logging.getLogger(LOGGER_NAME)
    built.setLevel(_resolve_level(_initial_level()))
    built.propagate = False
    if built.handlers:
        return built

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    built.addHandler(console)

    try:
        os.makedirs(LOG_DIRECTORY, exist_ok=True)
        file_handler = ConcurrentRotatingFileHandler(
            filename=os.path.join(LOG_DIRECTORY, LOG_FILENAME),
            mode='a',
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8',
        )
    except OSError as e:
        # Diretório somente leitura (containers): segue só com o console
        built.warning(f"Log em arquivo desativado: {e}")
    else:
        file_handler.setFormatter(formatter)
        built.addHandler(file_handler)
    return built

logger = _build_logger()

def configure_logger(level: str):
    """Aplica o nível configurado (LOG_LEVEL) ao logger global."""
    logger.setLevel(_resolve_level(level))
