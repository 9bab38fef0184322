# faccao_hub/integrations/cnpj_lookup_service.py
# Consulta a situação cadastral de um CNPJ na BrasilAPI (Receita Federal).

import time
import requests
from cachetools import TTLCache
from dataclasses import dataclass
from threading import Lock
from typing import Optional, Dict, Any, Callable

from faccao_hub.utils.data_conversion import only_digits, mask_cnpj
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import IntegrationError

SOURCE_NAME = 'BRASIL_API'
ACTIVE_REGISTRY_STATUS = 'ATIVA'

_FIRST_WEIGHTS = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
_SECOND_WEIGHTS = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)

def _check_digit(digits: str, weights) -> int:
    remainder = sum(int(d) * w for d, w in zip(digits, weights)) % 11
    return 0 if remainder < 2 else 11 - remainder

def is_valid_cnpj(cnpj: Optional[str]) -> bool:
    """Verifica os dígitos verificadores de um CNPJ (14 dígitos, não repetidos)."""
    digits = only_digits(cnpj)
    if len(digits) != 14 or digits == digits[0] * 14:
        return False
    first = _check_digit(digits[:12], _FIRST_WEIGHTS)
    second = _check_digit(digits[:12] + str(first), _SECOND_WEIGHTS)
    return digits[12:] == f"{first}{second}"

@dataclass(frozen=True)
class CnpjData:
    """Dados cadastrais relevantes retornados pela consulta. Imutável."""
    cnpj: str
    legal_name: str
    trade_name: Optional[str]
    registry_status: str
    city: Optional[str] = None
    state: Optional[str] = None
    opening_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.__dict__

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CnpjData':
        """Cria a partir da resposta da BrasilAPI."""
        if not isinstance(data, dict):
            logger.error(f"Invalid data type for CnpjData.from_dict: {type(data)}")
            raise ValueError("Invalid data format for CnpjData")
        status = (data.get('descricao_situacao_cadastral') or data.get('situacao_cadastral') or '')
        return cls(
            cnpj=only_digits(data.get('cnpj')),
            legal_name=data.get('razao_social') or '',
            trade_name=data.get('nome_fantasia') or None,
            registry_status=str(status).upper(),
            city=data.get('municipio') or None,
            state=data.get('uf') or None,
            opening_date=data.get('data_inicio_atividade') or None,
        )

@dataclass(frozen=True)
class CnpjLookupResult:
    is_valid: bool
    source: str
    data: Optional[CnpjData] = None
    error: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'source': self.source,
            'data': self.data.to_dict() if self.data else None,
            'error': self.error,
        }

class CnpjLookupService:
    """
    Cliente da BrasilAPI para validação de CNPJ.
    Consultas bem-sucedidas ficam em cache (TTL) por instância.
    """

    def __init__(self, base_url: str, timeout: int = 10, max_retries: int = 2,
                 cache_ttl_seconds: int = 30 * 24 * 3600, cache_maxsize: int = 1024,
                 session: Optional[requests.Session] = None,
                 retry_backoff_seconds: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self.sleep = sleep
        self.session = session or requests.Session()
        self._cache: TTLCache = TTLCache(maxsize=cache_maxsize, ttl=cache_ttl_seconds)
        self._cache_lock = Lock()
        logger.info(f"CnpjLookupService inicializado (base: {self.base_url}).")

    def _wait_before_retry(self, attempt: int):
        # Espera linear: backoff, 2x backoff, ...
        delay = self.retry_backoff_seconds * attempt
        if delay > 0:
            logger.debug(f"Aguardando {delay:.1f}s antes da próxima consulta de CNPJ.")
            self.sleep(delay)

    def clear_cache(self):
        logger.info("Limpando o cache de consultas de CNPJ.")
        with self._cache_lock:
            self._cache.clear()

    def _make_request(self, cnpj: str) -> Optional[Dict[str, Any]]:
        """
        GET {base}/{cnpj} com novas tentativas (espera crescente) em erros de rede e 5xx.
        Retorna None quando a Receita não conhece o CNPJ (404).

        Raises:
            IntegrationError: erro HTTP não recuperável ou tentativas esgotadas.
        """
        url = f"{self.base_url}/{cnpj}"
        attempt = 0
        while attempt <= self.max_retries:
            attempt += 1
            logger.debug(f"Tentativa {attempt}/{self.max_retries + 1} de consulta de CNPJ {mask_cnpj(cnpj)}")
            try:
                response = self.session.get(url, headers={'Accept': 'application/json'}, timeout=self.timeout)

                if response.status_code == 404:
                    logger.warning(f"BrasilAPI retornou 404 para o CNPJ {mask_cnpj(cnpj)}")
                    return None

                response.raise_for_status()
                try:
                    return response.json()
                except requests.exceptions.JSONDecodeError:
                    logger.error(f"Resposta não-JSON da BrasilAPI. Status: {response.status_code}, Resposta: {response.text[:200]}")
                    raise IntegrationError("Resposta inválida do serviço de consulta de CNPJ.")

            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else None
                if status_code is not None and status_code >= 500 and attempt <= self.max_retries:
                    logger.warning(f"BrasilAPI retornou {status_code} (tentativa {attempt}). Tentando novamente.")
                    self._wait_before_retry(attempt)
                    continue
                if status_code == 429:
                    raise IntegrationError("Limite de requisições excedido. Tente novamente em alguns minutos.") from e
                if status_code == 400:
                    raise IntegrationError("CNPJ rejeitado pelo serviço de consulta.") from e
                logger.error(f"Erro HTTP {status_code} da BrasilAPI: {e}", exc_info=True)
                raise IntegrationError(f"Serviço de consulta de CNPJ indisponível (status {status_code}).") from e

            except requests.exceptions.RequestException as e:
                logger.error(f"Erro de rede ao consultar a BrasilAPI: {e}", exc_info=True)
                if attempt <= self.max_retries:
                    logger.warning(f"Repetindo consulta de CNPJ após erro de rede (tentativa {attempt}).")
                    self._wait_before_retry(attempt)
                    continue
                raise IntegrationError(f"Não foi possível conectar ao serviço de consulta de CNPJ após {attempt} tentativas.") from e

        raise IntegrationError("Tentativas esgotadas na consulta de CNPJ.")

    def lookup(self, cnpj: str) -> CnpjLookupResult:
        """
        Valida um CNPJ: dígitos verificadores localmente, depois situação cadastral na Receita.
        Falhas de integração voltam como resultado inválido com a mensagem de erro.
        """
        digits = only_digits(cnpj)
        if not is_valid_cnpj(digits):
            logger.info(f"CNPJ {mask_cnpj(digits)} reprovado na verificação dos dígitos.")
            return CnpjLookupResult(is_valid=False, source='CHECKSUM', error='CNPJ inválido: dígitos verificadores não conferem.')

        with self._cache_lock:
            cached = self._cache.get(digits)
        if cached is not None:
            logger.debug(f"Consulta de CNPJ {mask_cnpj(digits)} atendida pelo cache.")
            return cached

        try:
            raw = self._make_request(digits)
        except IntegrationError as e:
            logger.warning(f"Consulta de CNPJ {mask_cnpj(digits)} falhou: {e.message}")
            return CnpjLookupResult(is_valid=False, source=SOURCE_NAME, error=e.message)

        if raw is None:
            return CnpjLookupResult(is_valid=False, source=SOURCE_NAME, error='CNPJ não encontrado na base da Receita Federal.')

        try:
            data = CnpjData.from_dict(raw)
        except ValueError as e:
            return CnpjLookupResult(is_valid=False, source=SOURCE_NAME, error=str(e))

        is_active = data.registry_status == ACTIVE_REGISTRY_STATUS
        result = CnpjLookupResult(
            is_valid=is_active,
            source=SOURCE_NAME,
            data=data,
            error=None if is_active else f"Situação cadastral: {data.registry_status or 'desconhecida'}",
            raw=raw,
        )
        logger.info(f"CNPJ {mask_cnpj(digits)} consultado - Situação: {data.registry_status}")
        with self._cache_lock:
            self._cache[digits] = result
        return result
