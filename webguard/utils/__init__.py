"""Input sanitization helpers."""

from webguard.utils.sanitize import (
    is_safe_from_sql_injection,
    is_valid_id,
    sanitize_attribute,
    sanitize_id,
    sanitize_path,
    sanitize_sql_input,
)

__all__ = [
    "is_safe_from_sql_injection",
    "is_valid_id",
    "sanitize_attribute",
    "sanitize_id",
    "sanitize_path",
    "sanitize_sql_input",
]
