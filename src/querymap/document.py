"""
Document-side intermediate representation.

Translated queries are plain Python values (``dict``, ``list``, scalars)
mixed with the node types below. Rule templates use the same vocabulary
plus :class:`Placeholder` and :class:`Merge`, which substitution removes.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

from .exceptions import UnrenderableShape
from .kinds import ArrayTarget


@dataclass(frozen=True)
class Placeholder:
    """Named slot in a document template."""

    name: str


@dataclass(frozen=True)
class Merge:
    """Template node: merge a bound list of documents into one document."""

    operands: Any


@dataclass(frozen=True)
class Regex:
    pattern: Any
    flags: Any = ""


@dataclass(frozen=True)
class Projection:
    include: Any = ()
    exclude: Any = ()
    exclude_id: Any = False


@dataclass(frozen=True)
class ArrayPath:
    """Update key addressing fields inside array elements."""

    array: str
    field: str
    target: ArrayTarget

    @property
    def text(self) -> str:
        if self.target == ArrayTarget.POSITIONAL:
            return f"{self.array}.$.{self.field}"
        if self.target == ArrayTarget.ALL:
            return f"{self.array}.$[].{self.field}"
        return f"{self.array}.{self.field}"


@dataclass(frozen=True)
class Pipeline:
    """
    Aggregation pipeline with named stages.

    Stages are emitted in :data:`STAGE_ORDER`; ``None`` stages are
    skipped, so the grouping stage always precedes the aggregate filter.
    """

    match: Any = None
    group: Any = None
    having: Any = None
    sort: Any = None
    skip: Any = None
    limit: Any = None


STAGE_ORDER: tuple[tuple[str, str], ...] = (
    ("match", "$match"),
    ("group", "$group"),
    ("having", "$match"),
    ("sort", "$sort"),
    ("skip", "$skip"),
    ("limit", "$limit"),
)


@dataclass(frozen=True)
class Statement:
    """``db.<collection>.<method>(<arguments>)<modifiers>``."""

    collection: Any
    method: Any
    arguments: Any = ()
    modifiers: Any = ()


_IR_NODES = (Regex, Projection, ArrayPath, Pipeline, Statement)


# ---------------------------------------------------------------------------
# Template helpers
# ---------------------------------------------------------------------------


def placeholders(template: Any) -> set[str]:
    """Collect every placeholder name used in *template*."""
    found: set[str] = set()
    _collect(template, found)
    return found


def _collect(node: Any, found: set[str]) -> None:
    if isinstance(node, Placeholder):
        found.add(node.name)
    elif isinstance(node, dict):
        for key, value in node.items():
            _collect(key, found)
            _collect(value, found)
    elif isinstance(node, (list, tuple)):
        for item in node:
            _collect(item, found)
    elif isinstance(node, Merge):
        _collect(node.operands, found)
    elif isinstance(node, _IR_NODES):
        for f in dataclasses.fields(node):
            _collect(getattr(node, f.name), found)


def substitute(template: Any, bindings: dict[str, Any]) -> Any:
    """
    Replace placeholders in *template* with their bound values.

    Bound values are inserted as-is; they are already concrete.
    """
    if isinstance(template, Placeholder):
        return bindings[template.name]
    if isinstance(template, dict):
        return {
            substitute(k, bindings): substitute(v, bindings)
            for k, v in template.items()
        }
    if isinstance(template, list):
        return [substitute(item, bindings) for item in template]
    if isinstance(template, tuple):
        return tuple(substitute(item, bindings) for item in template)
    if isinstance(template, Merge):
        return _merge(substitute(template.operands, bindings))
    if isinstance(template, _IR_NODES):
        changes = {
            f.name: substitute(getattr(template, f.name), bindings)
            for f in dataclasses.fields(template)
        }
        return dataclasses.replace(template, **changes)
    return template


def _merge(documents: Any) -> dict[Any, Any]:
    merged: dict[Any, Any] = {}
    for doc in documents:
        if not isinstance(doc, dict):
            raise UnrenderableShape(doc, "only documents can be merged")
        for key, value in doc.items():
            if key in merged:
                raise UnrenderableShape(key, "duplicate key while merging documents")
            merged[key] = value
    return merged
