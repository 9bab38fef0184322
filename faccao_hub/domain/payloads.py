# faccao_hub/domain/payloads.py
# Validação e normalização dos payloads de criação/edição.
# Cada função devolve um dicionário limpo (chaves snake_case) ou levanta ValidationError com o campo.

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from faccao_hub.api.errors import ValidationError
from faccao_hub.domain.contract import ContractType
from faccao_hub.domain.supplier_document import SupplierDocumentType, MONTHLY_DOCUMENT_TYPES
from faccao_hub.utils.data_conversion import only_digits, parse_optional_datetime, parse_optional_date

_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

def _fail(field_name: str, message: str):
    raise ValidationError(message, payload={'field': field_name})

def _require_mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValidationError("Request body must be a JSON object.")
    return data

def _text(data: Mapping[str, Any], name: str, min_len: int = 0, max_len: Optional[int] = None,
          required: bool = False) -> Optional[str]:
    raw = data.get(name)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if required:
            _fail(name, f"'{name}' is required.")
        return None
    if not isinstance(raw, str):
        _fail(name, f"'{name}' must be a string.")
    value = raw.strip()
    if len(value) < min_len:
        _fail(name, f"'{name}' must have at least {min_len} characters.")
    if max_len is not None and len(value) > max_len:
        _fail(name, f"'{name}' must have at most {max_len} characters.")
    return value

def _int_in_range(data: Mapping[str, Any], name: str, low: int, high: int) -> Optional[int]:
    raw = data.get(name)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        _fail(name, f"'{name}' must be an integer.")
    if not low <= raw <= high:
        _fail(name, f"'{name}' must be between {low} and {high}.")
    return raw

def normalize_tax_id(raw: Any) -> str:
    """CNPJ apenas com dígitos; exige 14 dígitos."""
    if raw is None or not isinstance(raw, str):
        _fail('tax_id', "'tax_id' is required and must be a string.")
    digits = only_digits(raw)
    if len(digits) != 14:
        _fail('tax_id', "'tax_id' must contain exactly 14 digits.")
    return digits

def _phone(data: Mapping[str, Any], name: str, required: bool) -> Optional[str]:
    raw = data.get(name)
    if raw is None or raw == '':
        if required:
            _fail(name, f"'{name}' is required.")
        return None
    digits = only_digits(raw)
    if len(digits) not in (10, 11):
        _fail(name, f"'{name}' must have 10 or 11 digits.")
    return digits

# --- Credenciais ---

def validate_credential_payload(data: Any, partial: bool = False) -> Dict[str, Any]:
    """
    Valida os campos de uma credencial. Com partial=True (edição), só os campos presentes
    são validados e devolvidos; campos desconhecidos são ignorados.
    """
    data = _require_mapping(data)
    cleaned: Dict[str, Any] = {}
    present = lambda name: (not partial) or name in data

    if present('tax_id'):
        cleaned['tax_id'] = normalize_tax_id(data.get('tax_id'))
    if present('contact_name'):
        cleaned['contact_name'] = _text(data, 'contact_name', 2, 100, required=True)
    if present('contact_email'):
        email = _text(data, 'contact_email', required=True).lower()
        if not _EMAIL_RE.match(email):
            _fail('contact_email', "'contact_email' must be a valid e-mail address.")
        cleaned['contact_email'] = email
    if present('contact_phone'):
        cleaned['contact_phone'] = _phone(data, 'contact_phone', required=True)
    if present('contact_whatsapp'):
        cleaned['contact_whatsapp'] = _phone(data, 'contact_whatsapp', required=False)
    if present('trade_name'):
        cleaned['trade_name'] = _text(data, 'trade_name', 2, 150)
    if present('legal_name'):
        cleaned['legal_name'] = _text(data, 'legal_name', 2, 200)
    if present('internal_code'):
        cleaned['internal_code'] = _text(data, 'internal_code', 0, 50)
    if present('category'):
        cleaned['category'] = _text(data, 'category', 0, 50)
    if present('notes'):
        cleaned['notes'] = _text(data, 'notes', 0, 1000)
    if present('priority'):
        priority = _int_in_range(data, 'priority', 0, 100)
        cleaned['priority'] = priority if priority is not None else 0
    return cleaned

# --- Relacionamentos ---

def validate_relationship_patch(data: Any) -> Dict[str, Any]:
    data = _require_mapping(data)
    cleaned: Dict[str, Any] = {}
    if 'internal_code' in data:
        cleaned['internal_code'] = _text(data, 'internal_code', 0, 50)
    if 'notes' in data:
        cleaned['notes'] = _text(data, 'notes', 0, 1000)
    if 'priority' in data:
        priority = _int_in_range(data, 'priority', 0, 100)
        cleaned['priority'] = priority if priority is not None else 0
    return cleaned

# --- Contratos ---

def _as_date(data: Mapping[str, Any], name: str) -> Optional[date]:
    raw = data.get(name)
    if raw is None or raw == '':
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    parsed = parse_optional_date(raw) if isinstance(raw, str) else None
    if parsed is None:
        _fail(name, f"'{name}' must be an ISO 8601 date (YYYY-MM-DD).")
    return parsed

def validate_contract_payload(data: Any, partial: bool = False) -> Dict[str, Any]:
    data = _require_mapping(data)
    cleaned: Dict[str, Any] = {}
    present = lambda name: (not partial) or name in data

    if present('title'):
        cleaned['title'] = _text(data, 'title', 3, 200, required=True)
    if present('type') and data.get('type') is not None:
        try:
            cleaned['type'] = ContractType(str(data['type']).upper())
        except ValueError:
            _fail('type', f"Invalid contract type '{data['type']}'.")
    if present('description'):
        cleaned['description'] = _text(data, 'description', 0, 5000)
    if present('value') and data.get('value') is not None:
        raw_value = data['value']
        if isinstance(raw_value, bool):
            _fail('value', "'value' must be a number.")
        try:
            value = Decimal(str(raw_value))
        except (InvalidOperation, ValueError):
            _fail('value', "'value' must be a number.")
        if not value.is_finite() or value < 0:
            _fail('value', "'value' must be zero or positive.")
        cleaned['value'] = value.quantize(Decimal('0.01'))
    if present('valid_from'):
        cleaned['valid_from'] = _as_date(data, 'valid_from')
    if present('valid_until'):
        cleaned['valid_until'] = _as_date(data, 'valid_until')
    if present('terms') and data.get('terms') is not None:
        if not isinstance(data['terms'], dict):
            _fail('terms', "'terms' must be an object.")
        cleaned['terms'] = data['terms']
    if not partial and data.get('parent_contract_id'):
        cleaned['parent_contract_id'] = str(data['parent_contract_id'])

    valid_from, valid_until = cleaned.get('valid_from'), cleaned.get('valid_until')
    if valid_from and valid_until and valid_until <= valid_from:
        _fail('valid_until', "'valid_until' must be after 'valid_from'.")
    return cleaned

# --- Documentos ---

def validate_document_payload(data: Any, partial: bool = False) -> Dict[str, Any]:
    data = _require_mapping(data)
    cleaned: Dict[str, Any] = {}

    if not partial:
        raw_type = data.get('type')
        if not raw_type:
            _fail('type', "'type' is required.")
        try:
            cleaned['type'] = SupplierDocumentType(str(raw_type).upper())
        except ValueError:
            _fail('type', f"Invalid document type '{raw_type}'.")
        month = _int_in_range(data, 'competence_month', 1, 12)
        year = _int_in_range(data, 'competence_year', 2000, 2100)
        if cleaned['type'] in MONTHLY_DOCUMENT_TYPES:
            if month is None or year is None:
                _fail('competence_month', "Monthly documents require 'competence_month' and 'competence_year'.")
        else:
            month = year = None
        cleaned['competence_month'] = month
        cleaned['competence_year'] = year

    if not partial or 'expires_at' in data:
        raw = data.get('expires_at')
        if raw in (None, ''):
            cleaned['expires_at'] = None
        else:
            expires = parse_optional_datetime(raw) if isinstance(raw, str) else None
            if expires is None:
                _fail('expires_at', "'expires_at' must be an ISO 8601 date.")
            cleaned['expires_at'] = expires
    if not partial or 'notes' in data:
        cleaned['notes'] = _text(data, 'notes', 0, 1000)
    if not partial or 'file_url' in data:
        cleaned['file_url'] = _text(data, 'file_url', 0, 2000)
    if not partial or 'file_name' in data:
        cleaned['file_name'] = _text(data, 'file_name', 0, 255)
    return cleaned
