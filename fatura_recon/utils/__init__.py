"""Utility modules."""

from .audit_logger import AuditLogger
from .formatting import format_brl, format_currency, format_month, format_signed_brl
from .log_config import setup_logging
from .text import compact_key, descriptions_similar, normalize_description

__all__ = [
    "AuditLogger",
    "compact_key",
    "descriptions_similar",
    "format_brl",
    "format_currency",
    "format_month",
    "format_signed_brl",
    "normalize_description",
    "setup_logging",
]
