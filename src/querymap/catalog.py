"""
Pattern catalog: ordered registry of translation rules.

Rules are registered at start-up, then the catalog is frozen. After
``freeze()`` lookups read an immutable tuple, so one catalog can be
shared by any number of concurrent translators.

Usage::

    catalog = PatternCatalog()
    catalog.register(rule)
    catalog.freeze()

    rule = catalog.lookup(descriptor)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from .document import placeholders
from .exceptions import CatalogFrozen, DuplicateRuleId, PlaceholderMismatch
from .shapes import NodeShape, StatementShape

logger = logging.getLogger("querymap.catalog")


@dataclass(frozen=True, eq=False)
class PatternRule:
    """
    One relational idiom paired with its document-store equivalent.

    Attributes:
        id: Unique rule identifier.
        relational_shape: Structural pattern plus slot binding rules.
        document_shape: Document template containing ``Placeholder``s.
        summary: One-line explanation of the pattern.
        sql: The relational idiom, for reference.
        example: Raw descriptor exercising the rule.
        expected: Rendered output for ``example``.
    """

    id: str
    relational_shape: NodeShape | StatementShape
    document_shape: Any
    summary: str = ""
    sql: str = ""
    example: dict[str, Any] | None = None
    expected: str | None = None

    @property
    def slot_names(self) -> set[str]:
        return {slot.name for slot in self.relational_shape.slots}

    @property
    def placeholder_names(self) -> set[str]:
        return placeholders(self.document_shape)

    def matches(self, subject: Any) -> bool:
        return self.relational_shape.matches(subject)


class PatternCatalog:
    """Registry of ``PatternRule`` instances; first registered match wins."""

    def __init__(self) -> None:
        self._rules: dict[str, PatternRule] = {}
        self._ordered: tuple[PatternRule, ...] = ()
        self._frozen = False

    # -- registration --------------------------------------------------------

    def register(self, rule: PatternRule) -> None:
        """
        Register a rule.

        Raises:
            CatalogFrozen: If ``freeze()`` was already called.
            DuplicateRuleId: If a rule with the same id exists.
            PlaceholderMismatch: If slots and template placeholders differ.
        """
        if self._frozen:
            raise CatalogFrozen(rule.id)
        if rule.id in self._rules:
            raise DuplicateRuleId(rule.id)
        slots = rule.slot_names
        document = rule.placeholder_names
        if slots != document:
            raise PlaceholderMismatch(rule.id, slots - document, document - slots)

        self._rules[rule.id] = rule
        self._ordered = (*self._ordered, rule)
        logger.debug("Registered pattern rule '%s'", rule.id)

    def register_all(self, *rules: PatternRule) -> None:
        """Register multiple rules at once, in order."""
        for rule in rules:
            self.register(rule)

    def freeze(self) -> PatternCatalog:
        """Disallow further registration and return ``self``."""
        if not self._frozen:
            self._frozen = True
            logger.debug("Pattern catalog frozen with %d rules", len(self._ordered))
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    # -- look-up -------------------------------------------------------------

    def lookup(self, subject: Any) -> PatternRule | None:
        """
        Return the first registered rule whose shape matches *subject*.

        *subject* is a ``QueryDescriptor`` or a predicate node.
        """
        for rule in self._ordered:
            if rule.matches(subject):
                return rule
        return None

    def get(self, rule_id: str) -> PatternRule | None:
        return self._rules.get(rule_id)

    @property
    def rules(self) -> tuple[PatternRule, ...]:
        """Rules in registration order."""
        return self._ordered

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __iter__(self) -> Iterator[PatternRule]:
        return iter(self._ordered)
