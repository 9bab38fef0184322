# faccao_hub/api/routes/__init__.py
# Helpers compartilhados pelos blueprints.

from typing import Any, Dict, Optional
from flask import request, current_app

from faccao_hub.domain.actor import Actor
from faccao_hub.api.errors import ServiceError, ValidationError
from faccao_hub.utils.logger import logger

def get_service(name: str):
    """Instância registrada em app.config pelo create_app."""
    service = current_app.config.get(name)
    if not service:
        logger.critical(f"{name} not found in application config!")
        raise ServiceError(f"Service '{name}' is unavailable.", 503)
    return service

def json_body(required: bool = True) -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        if required:
            raise ValidationError("Request must be JSON.")
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data

def current_actor() -> Actor:
    return request.current_actor

def optional_arg(name: str) -> Optional[str]:
    value = request.args.get(name)
    return value.strip() if value and value.strip() else None
