"""
querymap: translate relational query descriptions into MongoDB shell queries.

Usage::

    from querymap import translate_description

    translate_description(
        {
            "collection": "Products",
            "predicate": {"kind": "like", "field": "description", "value": "BOOK"},
        }
    )
    # 'db.Products.find({description: /.*BOOK.*/})'
"""

from __future__ import annotations

from typing import Any

from .ast import (
    Aggregation,
    Junction,
    Leaf,
    Predicate,
    QueryDescriptor,
    UpdateAssignment,
)
from .catalog import PatternCatalog, PatternRule
from .exceptions import (
    BindingArityMismatch,
    CatalogError,
    CatalogFrozen,
    DescriptorError,
    DuplicateRuleId,
    NoMatchingPattern,
    PlaceholderMismatch,
    TranslationError,
    UnrenderableShape,
    UnsupportedPredicateShape,
)
from .kinds import AggregateFunction, ArrayTarget, Operation, PredicateKind
from .parser import DescriptorParser, parse
from .renderer import Renderer, RenderOptions
from .rules import build_default_catalog
from .translator import TranslatedQuery, Translator

__all__ = [
    # Descriptor model
    "Aggregation",
    "AggregateFunction",
    "ArrayTarget",
    "Junction",
    "Leaf",
    "Operation",
    "Predicate",
    "PredicateKind",
    "QueryDescriptor",
    "UpdateAssignment",
    # Pipeline
    "DescriptorParser",
    "PatternCatalog",
    "PatternRule",
    "RenderOptions",
    "Renderer",
    "TranslatedQuery",
    "Translator",
    "build_default_catalog",
    "parse",
    "translate_description",
    # Errors
    "BindingArityMismatch",
    "CatalogError",
    "CatalogFrozen",
    "DescriptorError",
    "DuplicateRuleId",
    "NoMatchingPattern",
    "PlaceholderMismatch",
    "TranslationError",
    "UnrenderableShape",
    "UnsupportedPredicateShape",
]

_default_catalog: PatternCatalog | None = None


def _shared_catalog() -> PatternCatalog:
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = build_default_catalog()
    return _default_catalog


def translate_description(
    raw: dict[str, Any] | str,
    *,
    catalog: PatternCatalog | None = None,
    options: RenderOptions | None = None,
) -> str:
    """
    Parse, translate and render a raw description in one call.

    Raises:
        DescriptorError: Malformed description.
        UnsupportedPredicateShape: Unknown predicate node kind.
        NoMatchingPattern: No rule covers the query shape.
        BindingArityMismatch: A matched rule lacks a required value.
        UnrenderableShape: The output contains a value with no shell syntax.
    """
    descriptor = parse(raw)
    translated = Translator(catalog or _shared_catalog()).translate(descriptor)
    return Renderer(options).render(translated)
