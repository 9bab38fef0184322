# faccao_hub/api/errors.py
# Exceções da aplicação (com status HTTP) e os handlers que as convertem em JSON.

from flask import jsonify, request
from werkzeug.exceptions import HTTPException
from faccao_hub.utils.logger import logger

class ApiError(Exception):
    """
    Base de todos os erros que a API devolve ao cliente.
    Corpo da resposta: {"error": message, ...payload}.
    """
    status_code = 500
    message = "An internal server error occurred."

    def __init__(self, message=None, status_code=None, payload=None):
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload
        super().__init__(self.message)

    def to_dict(self):
        body = dict(self.payload or ())
        body['error'] = self.message
        return body

    def __str__(self):
        return self.message

class ValidationError(ApiError):
    status_code = 400
    message = "Validation failed."

class AuthenticationError(ApiError):
    status_code = 401
    message = "Authentication required."

class InvalidTokenError(AuthenticationError):
    message = "Invalid authentication token."

class ExpiredTokenError(AuthenticationError):
    message = "Authentication token has expired."

class ForbiddenError(ApiError):
    """Papel errado ou recurso de outra empresa."""
    status_code = 403
    message = "You do not have permission to perform this action."

class NotFoundError(ApiError):
    status_code = 404
    message = "Resource not found."

class ConflictError(ApiError):
    """CNPJ duplicado na marca, solicitação pendente repetida, assinatura em dobro..."""
    status_code = 409
    message = "The request conflicts with the current state of the resource."

class InvalidStateError(ApiError):
    """Operação pedida fora dos status que a permitem."""
    status_code = 422
    message = "The resource is not in a state that allows this operation."

class ServiceError(ApiError):
    status_code = 500
    message = "A service error occurred."

class DatabaseError(ApiError):
    status_code = 500
    message = "A database error occurred."

class ConfigurationError(ApiError):
    status_code = 500
    message = "Application configuration error."

class IntegrationError(ApiError):
    """Falha ao falar com um serviço externo (consulta de CNPJ)."""
    status_code = 502
    message = "Error communicating with an external service."

# Erros de regra de negócio: propagam inalterados pelas camadas de serviço.
DOMAIN_ERRORS = (
    ValidationError, AuthenticationError, ForbiddenError, NotFoundError,
    ConflictError, InvalidStateError, IntegrationError,
)

def _json_error(body, status_code):
    response = jsonify(body)
    response.status_code = status_code
    return response

def register_error_handlers(app):
    """Registra os handlers de ApiError, HTTPException e exceções não tratadas."""

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            logger.error(f"{type(error).__name__} em {request.method} {request.path}: {error.message}")
        else:
            logger.warning(f"{type(error).__name__} ({error.status_code}) em {request.method} {request.path}: {error.message}")
        return _json_error(error.to_dict(), error.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        logger.warning(f"HTTP {error.code} em {request.path}: {error.description}")
        return _json_error({"error": f"{error.name}: {error.description}"}, error.code)

    @app.errorhandler(Exception)
    def handle_generic_exception(error):
        logger.error(f"Exceção não tratada em {request.method} {request.path}: {error}", exc_info=True)
        return _json_error({"error": "An unexpected internal server error occurred."}, 500)

    logger.debug("Error handlers registrados.")
