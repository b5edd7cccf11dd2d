"""Translator: ``QueryDescriptor`` -> concrete document IR."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .ast import Junction, Leaf, QueryDescriptor
from .document import substitute
from .exceptions import BindingArityMismatch, NoMatchingPattern
from .shapes import FEATURES, resolve

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .catalog import PatternCatalog, PatternRule

logger = logging.getLogger("querymap.translator")


@dataclass(frozen=True)
class TranslatedQuery:
    """
    Result of a translation.

    Attributes:
        rule_id: The statement-level rule that matched.
        document: Concrete IR, free of placeholders.
        bindings: Statement-level placeholder bindings.
        rules_applied: Every rule used, statement first, then predicate
            nodes depth-first.
    """

    rule_id: str
    document: Any
    bindings: Mapping[str, Any]
    rules_applied: tuple[str, ...]


class Translator:
    """
    Match descriptors against a ``PatternCatalog`` and fill in templates.

    Holds no per-request state; a single instance may serve concurrent
    callers as long as its catalog is frozen.
    """

    def __init__(self, catalog: PatternCatalog) -> None:
        if catalog is None:
            raise ValueError(
                "catalog parameter is required. "
                "Use build_default_catalog() from querymap.rules to create one."
            )
        self._catalog = catalog

    @property
    def catalog(self) -> PatternCatalog:
        return self._catalog

    def translate(self, descriptor: QueryDescriptor) -> TranslatedQuery:
        trail: list[str] = []
        rule, bindings, document = self._apply(descriptor, trail)
        logger.debug(
            "Translated '%s' via %s", descriptor.collection, " -> ".join(trail)
        )
        return TranslatedQuery(
            rule_id=rule.id,
            document=document,
            bindings=MappingProxyType(bindings),
            rules_applied=tuple(trail),
        )

    # -- internals -----------------------------------------------------------

    def _apply(
        self, subject: Any, trail: list[str]
    ) -> tuple[PatternRule, dict[str, Any], Any]:
        rule = self._catalog.lookup(subject)
        if rule is None:
            raise NoMatchingPattern(_describe(subject))
        trail.append(rule.id)
        bindings = self._bind(rule, subject, trail)
        return rule, bindings, substitute(rule.document_shape, bindings)

    def _bind(
        self, rule: PatternRule, subject: Any, trail: list[str]
    ) -> dict[str, Any]:
        slots = rule.relational_shape.slots

        missing: list[str] = []
        for slot in slots:
            absent = [path for path in slot.requires if resolve(subject, path) is None]
            if resolve(subject, slot.source) is None and not slot.optional:
                missing.append(slot.name)
            elif absent:
                missing.append(f"{slot.name} ({', '.join(absent)})")
        if missing:
            raise BindingArityMismatch(rule.id, missing)

        bindings: dict[str, Any] = {}
        for slot in slots:
            raw = resolve(subject, slot.source)
            if raw is None:
                bindings[slot.name] = copy.deepcopy(slot.default)
                continue
            value = self._translate_value(raw, trail) if slot.translate else raw
            if slot.transform is not None:
                value = slot.transform(value)
            bindings[slot.name] = value
        return bindings

    def _translate_value(self, raw: Any, trail: list[str]) -> Any:
        if isinstance(raw, (Leaf, Junction)):
            return self._apply(raw, trail)[2]
        if isinstance(raw, (list, tuple)):
            return [self._translate_value(item, trail) for item in raw]
        return raw


def _describe(subject: Any) -> str:
    if isinstance(subject, QueryDescriptor):
        clauses = [name for name, check in FEATURES.items() if check(subject)]
        return (
            f"{subject.operation.value} on '{subject.collection}' "
            f"with [{', '.join(clauses)}]"
        )
    if isinstance(subject, Leaf):
        return f"predicate '{subject.kind.value}' on '{subject.field}'"
    if isinstance(subject, Junction):
        return f"connective '{subject.kind.value}' with {len(subject.operands)} operands"
    return repr(subject)
