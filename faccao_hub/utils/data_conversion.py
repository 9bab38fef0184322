# faccao_hub/utils/data_conversion.py
import re
from datetime import datetime, date, timezone
from typing import Any, Optional, Union
from .logger import logger

_NON_DIGITS = re.compile(r'\D')

def utc_now() -> datetime:
    """Relógio padrão da aplicação (UTC, com fuso)."""
    return datetime.now(timezone.utc)

def only_digits(value: Optional[str]) -> str:
    """Remove todos os caracteres não numéricos (CNPJ, telefone)."""
    if value is None:
        return ''
    return _NON_DIGITS.sub('', str(value))

def mask_cnpj(cnpj: Optional[str]) -> str:
    """Mascara um CNPJ para logs: 12.345.***/****-90."""
    digits = only_digits(cnpj)
    if len(digits) != 14:
        return '***'
    return f"{digits[:2]}.{digits[2:5]}.***/****-{digits[12:]}"

def ensure_utc(value: Union[datetime, date, None]) -> Optional[datetime]:
    """
    Normaliza datas para datetime UTC com fuso.
    Datas puras viram meia-noite UTC; datetimes sem fuso (ex.: lidos do SQLite) são tratados como UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    raise TypeError(f"Valor de data não suportado: {value!r}")

def isoformat_or_none(value: Union[datetime, date, None]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    return value.isoformat()

def safe_int(value: Any) -> Optional[int]:
    """Converte um valor para inteiro de forma segura, retornando None em caso de falha."""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                float_val = float(value)
                if float_val.is_integer():
                    return int(float_val)
            except ValueError:
                pass
        return int(value)
    except (ValueError, TypeError) as e:
        logger.debug(f"Não foi possível converter o valor '{value}' (tipo: {type(value)}) para inteiro: {e}")
        return None

def parse_optional_datetime(value: Optional[str]) -> Optional[datetime]:
    """Converte uma string ISO 8601 para um objeto datetime com fuso horário UTC, retornando None em caso de falha."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed_dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
        return ensure_utc(parsed_dt)
    except (ValueError, TypeError) as e:
        logger.warning(f"Não foi possível converter '{value}' para datetime: {e}")
        return None

def parse_optional_date(value: Optional[str]) -> Optional[date]:
    """Converte uma string (YYYY-MM-DD) para um objeto date, retornando None em caso de falha."""
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.split('T')[0])
    except (ValueError, TypeError) as e:
        logger.warning(f"Não foi possível converter '{value}' para date: {e}")
        return None
