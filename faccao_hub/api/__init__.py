# faccao_hub/api/__init__.py
# Initializes the API layer and registers blueprints.

from flask import Flask

from faccao_hub.utils.logger import logger

def _blueprints():
    # Import tardio: os modelos de domínio importam faccao_hub.api.errors
    from .routes.credentials import credentials_bp
    from .routes.partnership_requests import partnership_requests_bp
    from .routes.relationships import relationships_bp
    from .routes.contracts import contracts_bp
    from .routes.supplier_documents import supplier_documents_bp
    return [
        (credentials_bp, '/api/credentials'),
        (partnership_requests_bp, '/api/partnership-requests'),
        (relationships_bp, '/api/relationships'),
        (contracts_bp, '/api/contracts'),
        (supplier_documents_bp, '/api/supplier-documents'),
    ]

def register_blueprints(app: Flask):
    """
    Registers all defined blueprints with the Flask application.

    Args:
        app: The Flask application instance.
    """
    logger.info("Registering API blueprints...")
    for bp, prefix in _blueprints():
        app.register_blueprint(bp, url_prefix=prefix)
        logger.debug(f"Blueprint '{bp.name}' registered with prefix '{prefix}'.")
    logger.info("All API blueprints registered.")

__all__ = ["register_blueprints"]
