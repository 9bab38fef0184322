# faccao_hub/domain/filters.py
# Filtros de listagem e metadados de paginação.

from dataclasses import dataclass, field
from datetime import datetime
from math import ceil
from typing import Optional, List, Dict, Any, Mapping

from faccao_hub.api.errors import ValidationError
from faccao_hub.domain.credential import CredentialStatus
from faccao_hub.domain.partnership_request import PartnershipRequestStatus
from faccao_hub.domain.supplier_document import SupplierDocumentType, DocumentStatus
from faccao_hub.utils.data_conversion import safe_int, parse_optional_datetime

MAX_PAGE_LIMIT = 100

def _page_and_limit(data: Mapping[str, Any], default_limit: int) -> tuple:
    page = safe_int(data.get('page')) if data.get('page') not in (None, '') else 1
    limit = safe_int(data.get('limit')) if data.get('limit') not in (None, '') else default_limit
    if page is None or page < 1:
        raise ValidationError("'page' must be an integer >= 1.", payload={'field': 'page'})
    if limit is None or not 1 <= limit <= MAX_PAGE_LIMIT:
        raise ValidationError(f"'limit' must be an integer between 1 and {MAX_PAGE_LIMIT}.", payload={'field': 'limit'})
    return page, limit

def _parse_enum(enum_cls, raw: Any, field_name: str):
    try:
        return enum_cls(str(raw).upper())
    except ValueError:
        allowed = ', '.join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid value '{raw}' for '{field_name}'. Allowed: {allowed}.", payload={'field': field_name})

def _multi_value(data: Mapping[str, Any], key: str) -> List[str]:
    """
    Valores de um parâmetro repetível: `?k=A&k=B`, `?k=A,B` ou lista em dict comum.
    """
    if hasattr(data, 'getlist'):
        raw_values = data.getlist(key)
    else:
        raw = data.get(key) or []
        raw_values = [raw] if isinstance(raw, str) else list(raw)
    values = []
    for raw in raw_values:
        if isinstance(raw, str):
            values.extend(s.strip() for s in raw.split(',') if s.strip())
        else:
            values.append(raw)
    return values

def build_page_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = ceil(total / limit) if limit else 0
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'total_pages': total_pages,
        'has_next_page': page < total_pages,
        'has_previous_page': page > 1,
    }

CREDENTIAL_SORT_FIELDS = ('created_at', 'updated_at', 'trade_name', 'status', 'priority')

@dataclass(frozen=True)
class CredentialFilters:
    search: Optional[str] = None
    status: Optional[CredentialStatus] = None
    statuses: List[CredentialStatus] = field(default_factory=list)
    category: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    page: int = 1
    limit: int = 20
    sort_by: str = 'created_at'
    sort_order: str = 'desc'

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'CredentialFilters':
        """Cria filtros a partir de query params (ex.: request.args). Levanta ValidationError."""
        data = data or {}
        page, limit = _page_and_limit(data, default_limit=20)

        status = _parse_enum(CredentialStatus, data['status'], 'status') if data.get('status') else None
        statuses_raw = _multi_value(data, 'statuses')
        statuses = [_parse_enum(CredentialStatus, s, 'statuses') for s in statuses_raw]

        created_from = created_to = None
        if data.get('created_from'):
            created_from = parse_optional_datetime(data['created_from'])
            if created_from is None:
                raise ValidationError("'created_from' must be an ISO 8601 date.", payload={'field': 'created_from'})
        if data.get('created_to'):
            created_to = parse_optional_datetime(data['created_to'])
            if created_to is None:
                raise ValidationError("'created_to' must be an ISO 8601 date.", payload={'field': 'created_to'})

        sort_by = data.get('sort_by') or 'created_at'
        if sort_by not in CREDENTIAL_SORT_FIELDS:
            raise ValidationError(f"'sort_by' must be one of {', '.join(CREDENTIAL_SORT_FIELDS)}.", payload={'field': 'sort_by'})
        sort_order = str(data.get('sort_order') or 'desc').lower()
        if sort_order not in ('asc', 'desc'):
            raise ValidationError("'sort_order' must be 'asc' or 'desc'.", payload={'field': 'sort_order'})

        search = (data.get('search') or '').strip() or None
        category = (data.get('category') or '').strip() or None
        return cls(search=search, status=status, statuses=statuses, category=category,
                   created_from=created_from, created_to=created_to, page=page, limit=limit,
                   sort_by=sort_by, sort_order=sort_order)

@dataclass(frozen=True)
class PartnershipRequestFilters:
    status: Optional[PartnershipRequestStatus] = None
    page: int = 1
    limit: int = 10

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'PartnershipRequestFilters':
        data = data or {}
        page, limit = _page_and_limit(data, default_limit=10)
        status = _parse_enum(PartnershipRequestStatus, data['status'], 'status') if data.get('status') else None
        return cls(status=status, page=page, limit=limit)

@dataclass(frozen=True)
class DocumentFilters:
    company_id: Optional[str] = None
    type: Optional[SupplierDocumentType] = None
    status: Optional[DocumentStatus] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'DocumentFilters':
        data = data or {}
        doc_type = _parse_enum(SupplierDocumentType, data['type'], 'type') if data.get('type') else None
        status = _parse_enum(DocumentStatus, data['status'], 'status') if data.get('status') else None
        return cls(company_id=data.get('company_id') or None, type=doc_type, status=status)
