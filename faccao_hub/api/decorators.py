# faccao_hub/api/decorators.py
# Decorators de autenticação e de papel para os endpoints.

from functools import wraps
from flask import request, current_app
from faccao_hub.domain.actor import ActorRole
from faccao_hub.services.auth_service import AuthService
from faccao_hub.api.errors import AuthenticationError, ForbiddenError, ApiError
from faccao_hub.utils.logger import logger

def _get_auth_service() -> AuthService:
    service = current_app.config.get('auth_service')
    if not service:
        logger.critical("AuthService not found in application config!")
        raise ApiError("Authentication service is unavailable.", 503)
    return service

def login_required(f):
    """
    Garante um token válido e anexa o ator em request.current_actor.
    Erros de autenticação seguem para os error handlers da aplicação.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = _get_auth_service().get_current_actor_from_request()
        if not actor:
            logger.debug("Acesso negado: nenhum token encontrado.")
            raise AuthenticationError("Authentication required. Please log in.")
        request.current_actor = actor
        logger.debug(f"Acesso concedido ao ator {actor.id} ({actor.role.value}).")
        return f(*args, **kwargs)
    return decorated_function

def _role_required(role: ActorRole, error_message: str):
    """Factory de decorators por papel. ADMIN passa em todos."""
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            actor = request.current_actor
            if not (actor.is_admin or actor.role == role):
                logger.warning(f"Acesso negado ao ator {actor.id}: papel {actor.role.value}, exigido {role.value}.")
                raise ForbiddenError(error_message)
            return f(*args, **kwargs)
        return decorated_function
    return decorator

brand_required = _role_required(ActorRole.BRAND, 'Brand access required.')

supplier_required = _role_required(ActorRole.SUPPLIER, 'Supplier access required.')

admin_required = _role_required(ActorRole.ADMIN, 'Admin privileges required.')
