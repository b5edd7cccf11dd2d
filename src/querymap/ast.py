"""
Query descriptor and predicate-tree nodes.

Nodes are frozen dataclasses so a parsed descriptor can be shared
freely; the parser is the only place that constructs them from raw input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from .kinds import AggregateFunction, ArrayTarget, Operation, PredicateKind


@dataclass(frozen=True)
class Leaf:
    """
    A single comparison.

    ``value`` holds the literal operand; for ``elem_match`` it holds the
    nested predicate applied to each array element. ``comparator`` is only
    used by ``group_having`` leaves.
    """

    kind: PredicateKind
    field: str
    value: Any = None
    comparator: PredicateKind | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "field": self.field}
        if isinstance(self.value, (Leaf, Junction)):
            data["value"] = self.value.to_dict()
        else:
            data["value"] = self.value
        if self.comparator is not None:
            data["comparator"] = self.comparator.value
        return data


@dataclass(frozen=True)
class Junction:
    """Boolean connective over two or more operands."""

    kind: PredicateKind
    operands: tuple[Predicate, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "operands": [op.to_dict() for op in self.operands],
        }


Predicate = Union[Leaf, Junction]


@dataclass(frozen=True)
class Aggregation:
    function: AggregateFunction
    field: str | None = None
    alias: str = "count"


@dataclass(frozen=True)
class UpdateAssignment:
    """
    SET clause of an update.

    ``values`` maps field names to new values. With ``target`` other than
    ``field`` the names are relative to the elements of ``array``.
    """

    values: tuple[tuple[str, Any], ...]
    array: str | None = None
    target: ArrayTarget = ArrayTarget.FIELD
    multi: bool = True


@dataclass(frozen=True)
class QueryDescriptor:
    """Normalized, immutable description of one relational query."""

    collection: str
    operation: Operation = Operation.SELECT
    predicate: Predicate | None = None
    projected_fields: tuple[str, ...] = ()
    excluded_fields: tuple[str, ...] = ()
    exclude_id: bool = False
    distinct: str | None = None
    grouping_keys: tuple[str, ...] = ()
    aggregation: Aggregation | None = None
    having: Predicate | None = None
    update: UpdateAssignment | None = None
    order_by: tuple[tuple[str, int], ...] = field(default_factory=tuple)
    limit: int | None = None
    offset: int | None = None

    @property
    def has_projection(self) -> bool:
        return bool(self.projected_fields or self.excluded_fields or self.exclude_id)

    @property
    def has_cursor_modifiers(self) -> bool:
        return bool(self.order_by) or self.limit is not None or self.offset is not None
