# faccao_hub/services/auth_service.py
# Emissão e verificação de tokens JWT e resolução do ator da requisição atual.

import jwt
from datetime import datetime, timedelta, timezone
from flask import request
from typing import Optional, Dict, Any

from faccao_hub.domain.actor import Actor
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import InvalidTokenError, ExpiredTokenError, ConfigurationError

class AuthService:
    """
    Tokens HS256 carregando as claims do ator (sub, company_id, role, name).
    A identidade é emitida por um provedor externo; este serviço só confia no que assinou.
    """

    def __init__(self, secret_key: str, expiration_hours: int = 24):
        if not secret_key:
            logger.critical("Chave Secreta JWT não está configurada!")
            raise ConfigurationError("JWT Secret Key is missing.")
        self.secret_key = secret_key
        self.expiration_hours = expiration_hours
        logger.info("AuthService inicializado.")

    def issue_token(self, actor: Actor) -> str:
        """Gera um token JWT para o ator."""
        now = datetime.now(timezone.utc)
        payload = {
            'sub': actor.id,
            'company_id': actor.company_id,
            'role': actor.role.value,
            'name': actor.name,
            'iat': now,
            'exp': now + timedelta(hours=self.expiration_hours),
        }
        logger.debug(f"Gerando token JWT para o ator {actor.id} ({actor.role.value}).")
        return jwt.encode(payload, self.secret_key, algorithm='HS256')

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Verifica o token e retorna o payload. Levanta ExpiredTokenError/InvalidTokenError."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=['HS256'])
            logger.debug(f"Token verificado com sucesso para sub: {payload.get('sub')}")
            return payload
        except jwt.ExpiredSignatureError:
            logger.warning(f"Verificação de token falhou: Token expirado. Token: {token[:10]}...")
            raise ExpiredTokenError("Authentication token has expired.")
        except jwt.InvalidTokenError as e:
            logger.warning(f"Verificação de token falhou: Token inválido. Erro: {e}. Token: {token[:10]}...")
            raise InvalidTokenError(f"Invalid authentication token: {e}")

    def actor_from_token(self, token: str) -> Actor:
        payload = self.verify_token(token)
        try:
            return Actor.from_dict(payload)
        except ValueError as e:
            logger.warning(f"Payload de token inválido: {e}")
            raise InvalidTokenError(f"Invalid token claims: {e}")

    def get_current_actor_from_request(self) -> Optional[Actor]:
        """
        Ator da requisição atual, a partir do cabeçalho 'Authorization: Bearer <token>'.
        Retorna None se não houver token; token inválido ou expirado levanta erro.
        """
        auth_header = request.headers.get('Authorization')
        if not auth_header or not auth_header.startswith('Bearer '):
            logger.debug("Nenhum token de autenticação encontrado no cabeçalho da requisição.")
            return None
        token = auth_header.split(' ', 1)[1].strip()
        if not token:
            return None
        return self.actor_from_token(token)
