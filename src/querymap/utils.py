"""
Shared helpers for field paths and SQL ``LIKE`` patterns.

These are pure-Python helpers with no dependency on the catalog.
"""

from __future__ import annotations

import re
from typing import Any

# ---------------------------------------------------------------------------
# Field paths
# ---------------------------------------------------------------------------

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def normalize_path(value: Any) -> str | None:
    """
    Normalize a field reference to dot-path notation.

    Accepts ``"address.city"`` or ``["address", "city"]``. Returns ``None``
    when the reference is empty or has an empty segment.
    """
    if isinstance(value, (list, tuple)):
        segments = [str(s).strip() for s in value]
    elif isinstance(value, str):
        segments = [s.strip() for s in value.split(".")]
    else:
        return None
    if not segments or any(not s for s in segments):
        return None
    return ".".join(segments)


def is_bare_key(key: str) -> bool:
    """True when *key* can be written unquoted in shell syntax."""
    return bool(_IDENTIFIER_RE.match(key))


def group_output_name(key: str) -> str:
    """Output field name for a grouping key inside a compound ``_id``."""
    return key.replace(".", "_")


# ---------------------------------------------------------------------------
# LIKE patterns
# ---------------------------------------------------------------------------

_REGEX_SPECIAL_RE = re.compile(r"([\\.^$*+?()\[\]{}|/])")


# Line terminators are not allowed inside a regex literal
_LINE_TERMINATORS = str.maketrans(
    {"\n": "\\n", "\r": "\\r", "\u2028": "\\u2028", "\u2029": "\\u2029"}
)


def escape_regex(text: str) -> str:
    """Escape regex metacharacters, ``/`` and line terminators for a ``/.../`` literal."""
    return _REGEX_SPECIAL_RE.sub(r"\\\1", text).translate(_LINE_TERMINATORS)


def _has_wildcards(text: str) -> bool:
    return "%" in text or "_" in text


def like_class(pattern: str) -> str:
    """
    Classify a ``LIKE`` operand by wildcard placement.

    - ``"wrapped"``: ``%x%`` or a bare literal (implicitly wrapped)
    - ``"prefix"``: ``x%``
    - ``"suffix"``: ``%x``
    - ``"general"``: any other use of ``%`` / ``_``
    """
    if not _has_wildcards(pattern):
        return "wrapped"
    inner = pattern
    leading = inner.startswith("%")
    trailing = len(inner) > 1 and inner.endswith("%")
    core = inner[1 if leading else 0 : len(inner) - 1 if trailing else len(inner)]
    if core and not _has_wildcards(core):
        if leading and trailing:
            return "wrapped"
        if trailing:
            return "prefix"
        if leading:
            return "suffix"
    return "general"


def like_literal(pattern: str) -> str:
    """Return the literal part of a wrapped/prefix/suffix ``LIKE`` operand."""
    text = pattern
    if text.startswith("%"):
        text = text[1:]
    if text.endswith("%"):
        text = text[:-1]
    return text


def like_to_regex(pattern: str) -> str:
    """Convert a general SQL ``LIKE`` pattern (``%``, ``_``) to an anchored regex."""
    parts: list[str] = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(escape_regex(char))
    return "^" + "".join(parts) + "$"


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def parse_order_item(item: str) -> tuple[str, int] | None:
    """
    Parse ``"-field"``, ``"field"``, ``"field DESC"`` or ``"field asc"``.

    Returns ``(path, direction)`` or ``None`` when malformed.
    """
    text = item.strip()
    if not text:
        return None
    if text.startswith("-"):
        path = normalize_path(text[1:])
        return (path, -1) if path else None
    tokens = text.split()
    if len(tokens) == 2 and tokens[1].lower() in ("asc", "desc"):
        path = normalize_path(tokens[0])
        direction = -1 if tokens[1].lower() == "desc" else 1
        return (path, direction) if path else None
    if len(tokens) == 1:
        path = normalize_path(tokens[0])
        return (path, 1) if path else None
    return None
