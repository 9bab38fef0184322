# run.py
# Sobe o servidor de desenvolvimento do Faccao-Hub (use gunicorn/waitress em produção).
import sys

from faccao_hub.app import create_app
from faccao_hub.config.settings import load_config
from faccao_hub.utils.logger import logger

config = load_config()

def main() -> int:
    app = create_app(config)
    logger.info(
        f"Faccao-Hub em {config.APP_HOST}:{config.APP_PORT} "
        f"(banco: {config.DB_TYPE}, política de credenciamento: {config.CREDENTIAL_TRANSITION_POLICY}, "
        f"varredura: {'ligada' if config.EXPIRATION_SWEEP_ENABLED else 'desligada'})"
    )
    try:
        app.run(host=config.APP_HOST, port=config.APP_PORT, debug=config.APP_DEBUG)
    except OSError as e:
        logger.critical(f"Não foi possível abrir a porta {config.APP_PORT}: {e}", exc_info=True)
        return 1
    return 0

if __name__ == '__main__':
    sys.exit(main())
