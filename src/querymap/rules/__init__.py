"""
Built-in pattern rules.

Predicate rules translate single predicate-tree nodes; statement rules
translate whole descriptors and delegate their predicates back to the
catalog. Order matters: the first matching rule wins, so guarded
special cases are registered before their general fallbacks.
"""

from __future__ import annotations

from ..catalog import PatternCatalog
from .predicates import PREDICATE_RULES
from .statements import STATEMENT_RULES

__all__ = [
    "PREDICATE_RULES",
    "STATEMENT_RULES",
    "build_default_catalog",
]


def build_default_catalog() -> PatternCatalog:
    """Create a frozen catalog with every built-in rule registered."""
    catalog = PatternCatalog()
    catalog.register_all(*PREDICATE_RULES, *STATEMENT_RULES)
    return catalog.freeze()
