# faccao_hub/utils/__init__.py
# Makes 'utils' a package. Exports utility functions/classes.

from .logger import logger
from .data_conversion import (
    utc_now,
    only_digits,
    mask_cnpj,
    ensure_utc,
    isoformat_or_none,
    safe_int,
    parse_optional_datetime,
    parse_optional_date,
)

__all__ = [
    "logger",
    "utc_now",
    "only_digits",
    "mask_cnpj",
    "ensure_utc",
    "isoformat_or_none",
    "safe_int",
    "parse_optional_datetime",
    "parse_optional_date",
]
