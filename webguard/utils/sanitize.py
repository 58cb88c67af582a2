"""Shared sanitization utilities.

Every function here is total: bad or dangerous input maps to a safe default
(empty string or ``False``) instead of raising, so callers have no error
channel to forget about.

The SQL helpers are a best-effort pattern filter layered on top of
parameterized queries in the data layer. They are not a substitute for them.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

# Control characters: C0 (\x00-\x1f), DEL and C1 (\x7f-\x9f),
# line/paragraph separators, zero-width and bidi overrides, BOM.
CONTROL_CHARS_RE = re.compile(
    r"[\x00-\x1f\x7f-\x9f\u2028\u2029\u200b-\u200f\u202a-\u202e\u2066-\u2069\ufeff]"
)

_TAG_RE = re.compile(r"<.*?>")
_ATTRIBUTE_UNSAFE_RE = re.compile(r"[^\w\s\-.]")
_ID_RE = re.compile(r"^[a-zA-Z0-9\-]+$")
_SQL_LINE_COMMENT_RE = re.compile(r"--.*")
_SQL_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)

_HTML_ENTITIES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "+": "&#x2B;",
}

# Lowercase substrings that mark input as a likely injection attempt
SQL_DENYLIST = (
    "';", "--", "/*", "*/", "xp_", "sp_",
    "exec", "execute", "union", "select", "insert", "update", "delete",
    "drop", "create", "alter", "truncate", "declare", "cast", "convert",
    "script",
    "'1'='1", "'1'='1'", "1'='1", "1'='1'",
    "or '1'='1", "or 1=1", "or 1=1--", "or '1'='1'--",
)


def strip_control_chars(value: str) -> str:
    """Strip all control characters from a string."""
    if not isinstance(value, str):
        return ""
    return CONTROL_CHARS_RE.sub("", value)


def html_encode(value: str) -> str:
    """Entity-encode markup-significant and non-ASCII characters.

    Stricter than ``html.escape``: ``+`` and every non-ASCII character are
    encoded as numeric references too.
    """
    if not isinstance(value, str):
        return ""
    out = []
    for ch in value:
        if ch in _HTML_ENTITIES:
            out.append(_HTML_ENTITIES[ch])
        elif ord(ch) > 0x7E or (ord(ch) < 0x20 and ch not in "\t\n\r"):
            out.append(f"&#x{ord(ch):X};")
        else:
            out.append(ch)
    return "".join(out)


def sanitize_attribute(value: str | None) -> str:
    """Make a string safe to place inside a double-quoted HTML attribute.

    Tags are stripped, the rest is entity-encoded, and anything outside
    word characters, whitespace, hyphen and dot is removed. The result never
    contains ``<``, ``>``, ``&`` or quotes.
    """
    if not value or not isinstance(value, str):
        return ""
    value = _TAG_RE.sub("", value)
    value = html_encode(value)
    value = _ATTRIBUTE_UNSAFE_RE.sub("", value)
    return value.strip()


def sanitize_id(value: Any) -> str:
    """Return ``str(value)`` if it is a route-safe token, else ``""``."""
    if value is None:
        return ""
    try:
        text = str(value)
    except Exception:
        return ""
    if _ID_RE.fullmatch(text):
        return text
    return ""


def is_valid_id(value: int | None) -> bool:
    """True iff an integer id is present and strictly positive."""
    if value is None or isinstance(value, bool) or not isinstance(value, int):
        return False
    return value > 0


def _is_within(path: Path, base: Path) -> bool:
    candidate = str(path).casefold()
    root = str(base).casefold()
    if candidate == root:
        return True
    return candidate.startswith(root.rstrip("/\\") + "/") or candidate.startswith(
        root.rstrip("/\\") + "\\"
    )


def sanitize_path(raw_path: str | None, base_directory: str) -> str:
    """Confine ``raw_path`` to ``base_directory``.

    Returns the resolved absolute path when it stays inside the base
    directory, otherwise ``""``. Confinement is checked on resolved paths,
    both for the path as given and after traversal sequences are stripped.
    """
    if not isinstance(raw_path, str) or not isinstance(base_directory, str):
        return ""
    if not raw_path or not base_directory or "\x00" in raw_path:
        return ""
    try:
        base = Path(base_directory).resolve()

        # Reject outright anything that escapes the base as written
        if not _is_within((base / raw_path.lstrip("/\\")).resolve(), base):
            return ""

        cleaned = raw_path.replace("..", "")
        cleaned = re.sub(r"/{2,}", "/", cleaned)
        cleaned = re.sub(r"\\{2,}", r"\\", cleaned)
        cleaned = cleaned.lstrip("/\\")

        full = (base / cleaned).resolve()
    except (OSError, ValueError, RuntimeError):
        return ""

    if not _is_within(full, base):
        return ""
    return str(full)


def is_safe_from_sql_injection(value: str | None) -> bool:
    """Heuristic check for SQL injection shapes.

    Known false positives: any text with an apostrophe next to ``and``/``or``
    (``O'Brien and Sons``) and words containing a denylisted keyword
    (``broadcast`` contains ``cast``). Those rejections are accepted.
    """
    if value is None:
        return True
    if not isinstance(value, str):
        return False
    if not value:
        return True

    if "'" in value and ("=" in value or "or" in value or "and" in value):
        return False

    lowered = value.lower()
    return not any(marker in lowered for marker in SQL_DENYLIST)


def sanitize_sql_input(value: str | None) -> str:
    """Strip SQL comments and statement terminators, then entity-encode."""
    if not value or not isinstance(value, str):
        return ""
    value = _SQL_LINE_COMMENT_RE.sub("", value)
    value = _SQL_BLOCK_COMMENT_RE.sub("", value)
    value = value.replace(";", "")
    value = html_encode(value)
    return value.strip()
