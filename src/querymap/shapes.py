"""
Relational-side shapes.

A shape decides *structural* matches (kind, presence of clauses, a guard
over the structural class) and declares the slots a rule binds. Slots
ignore literal values during matching; their values are read only when
the translator binds them.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from .ast import Junction, Leaf, QueryDescriptor
from .kinds import Operation, PredicateKind


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass(frozen=True)
class Slot:
    """
    Relational placeholder plus its binding rule.

    Attributes:
        name: Placeholder name used by the document template.
        source: Dotted attribute path on the matched subject
            (``""`` binds the subject itself).
        transform: Optional callable applied to the (translated) value.
        translate: Translate the value (a predicate node or a sequence of
            them) through the catalog before ``transform``.
        default: Value bound when the source is ``None``. Without a
            default a ``None`` source is a binding-arity error.
        requires: Extra dotted paths that must be non-``None`` for the
            slot to bind.
    """

    name: str
    source: str
    transform: Callable[[Any], Any] | None = None
    translate: bool = False
    default: Any = MISSING
    requires: tuple[str, ...] = ()

    @property
    def optional(self) -> bool:
        return self.default is not MISSING


def resolve(subject: Any, path: str) -> Any:
    """Resolve a dotted attribute path; ``None`` if any step is missing."""
    obj = subject
    if not path:
        return obj
    for part in path.split("."):
        if obj is None:
            return None
        obj = getattr(obj, part, None)
    return obj


def _check_slots(slots: tuple[Slot, ...]) -> None:
    names = [s.name for s in slots]
    if len(names) != len(set(names)):
        raise ValueError(f"Duplicate slot names: {names}")


@dataclass(frozen=True)
class NodeShape:
    """Shape of a single predicate-tree node."""

    kinds: frozenset[PredicateKind]
    slots: tuple[Slot, ...] = ()
    guard: Callable[[Any], bool] | None = None

    def __post_init__(self) -> None:
        _check_slots(self.slots)

    def matches(self, subject: Any) -> bool:
        if not isinstance(subject, (Leaf, Junction)):
            return False
        if subject.kind not in self.kinds:
            return False
        return self.guard is None or bool(self.guard(subject))


# Descriptor clauses a StatementShape can require or forbid
FEATURES: dict[str, Callable[[QueryDescriptor], bool]] = {
    "predicate": lambda d: d.predicate is not None,
    "projection": lambda d: d.has_projection,
    "distinct": lambda d: d.distinct is not None,
    "grouping": lambda d: bool(d.grouping_keys),
    "aggregation": lambda d: d.aggregation is not None,
    "having": lambda d: d.having is not None,
    "update": lambda d: d.update is not None,
    "cursor": lambda d: d.has_cursor_modifiers,
}


@dataclass(frozen=True)
class StatementShape:
    """Shape of a whole descriptor: operation plus clause presence."""

    operation: Operation
    slots: tuple[Slot, ...] = ()
    requires: frozenset[str] = field(default_factory=frozenset)
    forbids: frozenset[str] = field(default_factory=frozenset)
    guard: Callable[[QueryDescriptor], bool] | None = None

    def __post_init__(self) -> None:
        _check_slots(self.slots)
        unknown = (self.requires | self.forbids) - FEATURES.keys()
        if unknown:
            raise ValueError(f"Unknown descriptor features: {sorted(unknown)}")

    def matches(self, subject: Any) -> bool:
        if not isinstance(subject, QueryDescriptor):
            return False
        if subject.operation != self.operation:
            return False
        if not all(FEATURES[f](subject) for f in self.requires):
            return False
        if any(FEATURES[f](subject) for f in self.forbids):
            return False
        return self.guard is None or bool(self.guard(subject))


def node(
    kinds: PredicateKind | Iterable[PredicateKind],
    *slots: Slot,
    guard: Callable[[Any], bool] | None = None,
) -> NodeShape:
    """Shorthand for building a ``NodeShape``."""
    kind_set = frozenset([kinds] if isinstance(kinds, PredicateKind) else kinds)
    return NodeShape(kinds=kind_set, slots=slots, guard=guard)


def statement(
    operation: Operation,
    *slots: Slot,
    requires: Iterable[str] = (),
    forbids: Iterable[str] = (),
    guard: Callable[[QueryDescriptor], bool] | None = None,
) -> StatementShape:
    """Shorthand for building a ``StatementShape``."""
    return StatementShape(
        operation=operation,
        slots=slots,
        requires=frozenset(requires),
        forbids=frozenset(forbids),
        guard=guard,
    )
