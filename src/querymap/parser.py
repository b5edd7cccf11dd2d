"""
Query descriptor parser: raw description -> ``QueryDescriptor``.

Example::

    descriptor = DescriptorParser().parse(
        {
            "collection": "Products",
            "predicate": {"kind": "like", "field": "description", "value": "BOOK"},
        }
    )

The predicate tree is validated fail-fast: the first unknown node kind
raises ``UnsupportedPredicateShape`` and no descriptor is produced.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .ast import (
    Aggregation,
    Junction,
    Leaf,
    Predicate,
    QueryDescriptor,
    UpdateAssignment,
)
from .exceptions import DescriptorError, UnsupportedPredicateShape
from .kinds import (
    COMPARISONS,
    CONNECTIVES,
    KIND_ALIASES,
    AggregateFunction,
    PredicateKind,
)
from .payload import DescriptorPayload
from .utils import group_output_name, normalize_path, parse_order_item

logger = logging.getLogger("querymap.parser")

_VALID_KINDS: list[str] = [k.value for k in PredicateKind]
_HAVING_COMPARATORS: frozenset[PredicateKind] = COMPARISONS | {PredicateKind.EQUALS}
# "elemMatch" -> "elem_match"
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class DescriptorParser:
    """Parse raw descriptions (dict or JSON text) into ``QueryDescriptor``."""

    # ------------------------------------------------------------------ #
    # Public API                                                          #
    # ------------------------------------------------------------------ #

    def parse(self, raw: dict[str, Any] | str) -> QueryDescriptor:
        data = self._load(raw)
        try:
            payload = DescriptorPayload.model_validate(data)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            loc = ".".join(str(part) for part in first["loc"])
            raise DescriptorError(
                first["msg"], path=f"<root>.{loc}" if loc else "<root>"
            ) from exc

        predicate, having = self._parse_predicate(payload.predicate)
        aggregation = self._aggregation(payload)
        if having is not None:
            having = self._bind_having(having, payload, aggregation)

        grouping_keys = self._paths(payload.grouping_keys, "groupingKeys")
        self._check_group_names(grouping_keys, aggregation)

        if payload.projected_fields and payload.excluded_fields:
            raise DescriptorError(
                "cannot mix projectedFields and excludedFields",
                path="<root>",
            )

        descriptor = QueryDescriptor(
            collection=payload.collection,
            operation=payload.operation,
            predicate=predicate,
            projected_fields=self._paths(payload.projected_fields, "projectedFields"),
            excluded_fields=self._paths(payload.excluded_fields, "excludedFields"),
            exclude_id=payload.exclude_id,
            distinct=self._path(payload.distinct, "<root>.distinct")
            if payload.distinct is not None
            else None,
            grouping_keys=grouping_keys,
            aggregation=aggregation,
            having=having,
            update=self._update(payload),
            order_by=self._order_by(payload.order_by),
            limit=payload.limit,
            offset=payload.offset,
        )
        logger.debug(
            "Parsed descriptor for '%s' (%s)",
            descriptor.collection,
            descriptor.operation.value,
        )
        return descriptor

    # ------------------------------------------------------------------ #
    # Internal: top level                                                 #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _load(raw: dict[str, Any] | str) -> dict[str, Any]:
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise DescriptorError(f"Invalid JSON: {exc}", path="<root>") from exc
        if not isinstance(raw, dict):
            raise DescriptorError(
                f"Expected an object, got {type(raw).__name__}", path="<root>"
            )
        return raw

    @staticmethod
    def _path(value: Any, path: str) -> str:
        normalized = normalize_path(value)
        if normalized is None:
            raise DescriptorError(f"Invalid field path: {value!r}", path=path)
        return normalized

    def _paths(self, values: list[str], key: str) -> tuple[str, ...]:
        return tuple(
            self._path(v, f"<root>.{key}[{idx}]") for idx, v in enumerate(values)
        )

    def _order_by(self, items: list[str]) -> tuple[tuple[str, int], ...]:
        out: list[tuple[str, int]] = []
        for idx, item in enumerate(items):
            parsed = parse_order_item(item)
            if parsed is None:
                raise DescriptorError(
                    f"Invalid ordering item: {item!r}", path=f"<root>.orderBy[{idx}]"
                )
            out.append(parsed)
        return tuple(out)

    def _aggregation(self, payload: DescriptorPayload) -> Aggregation | None:
        agg = payload.aggregation
        if agg is None:
            return None
        field = None
        if agg.field is not None:
            field = self._path(agg.field, "<root>.aggregation.field")
        elif agg.function != AggregateFunction.COUNT:
            raise DescriptorError(
                f"'{agg.function.value}' requires a field",
                path="<root>.aggregation.field",
            )
        return Aggregation(
            function=agg.function,
            field=field,
            alias=agg.alias or agg.function.value,
        )

    @staticmethod
    def _check_group_names(
        keys: tuple[str, ...], aggregation: Aggregation | None
    ) -> None:
        """Reject ``$group`` output names that would overwrite each other."""
        if len(keys) > 1:
            seen: dict[str, str] = {}
            for idx, key in enumerate(keys):
                name = group_output_name(key)
                if name in seen:
                    raise DescriptorError(
                        f"grouping keys '{seen[name]}' and '{key}' both "
                        f"produce the output name '{name}'",
                        path=f"<root>.groupingKeys[{idx}]",
                    )
                seen[name] = key
        if aggregation is None:
            return
        alias = aggregation.alias
        if alias == "_id":
            raise DescriptorError(
                "alias '_id' is reserved for the group key",
                path="<root>.aggregation.alias",
            )
        if "." in alias or alias.startswith("$"):
            raise DescriptorError(
                f"alias {alias!r} is not a valid output field name",
                path="<root>.aggregation.alias",
            )

    @staticmethod
    def _update(payload: DescriptorPayload) -> UpdateAssignment | None:
        upd = payload.update
        if upd is None:
            return None
        for key in upd.values:
            if normalize_path(key) is None:
                raise DescriptorError(
                    f"Invalid field path: {key!r}", path="<root>.update.set"
                )
        array = normalize_path(upd.array) if upd.array is not None else None
        return UpdateAssignment(
            values=tuple((normalize_path(k) or k, v) for k, v in upd.values.items()),
            array=array,
            target=upd.target,
            multi=upd.multi,
        )

    def _bind_having(
        self,
        having: Predicate,
        payload: DescriptorPayload,
        aggregation: Aggregation | None,
    ) -> Predicate:
        if not payload.grouping_keys:
            raise DescriptorError(
                "'group_having' requires groupingKeys", path="<root>.predicate"
            )
        if aggregation is None:
            raise DescriptorError(
                "'group_having' requires an aggregation", path="<root>.predicate"
            )
        alias = aggregation.alias

        def _point(leaf: Predicate) -> Predicate:
            if not isinstance(leaf, Leaf):
                return leaf
            if leaf.field and leaf.field != alias:
                # Only the accumulated alias exists after $group
                raise DescriptorError(
                    f"'group_having' field '{leaf.field}' must be the "
                    f"aggregation alias '{alias}'",
                    path="<root>.predicate",
                )
            return dataclasses.replace(leaf, field=alias)

        if isinstance(having, Junction):
            return Junction(having.kind, tuple(_point(op) for op in having.operands))
        return _point(having)

    # ------------------------------------------------------------------ #
    # Internal: predicate tree                                            #
    # ------------------------------------------------------------------ #

    def _parse_predicate(
        self, data: dict[str, Any] | None
    ) -> tuple[Predicate | None, Predicate | None]:
        """Return ``(row_predicate, having_predicate)``."""
        if data is None:
            return None, None
        root = self._parse_node(data, path="<root>.predicate", allow_having=True)

        if isinstance(root, Leaf) and root.kind == PredicateKind.GROUP_HAVING:
            return None, root
        if not (isinstance(root, Junction) and root.kind == PredicateKind.AND):
            return root, None

        rows: list[Predicate] = []
        havings: list[Predicate] = []
        for op in root.operands:
            if isinstance(op, Leaf) and op.kind == PredicateKind.GROUP_HAVING:
                havings.append(op)
            else:
                rows.append(op)
        return _conjoin(rows), _conjoin(havings)

    def _parse_node(
        self,
        data: Any,
        *,
        path: str,
        allow_having: bool = False,
    ) -> Predicate:
        if not isinstance(data, dict):
            raise DescriptorError(
                f"Expected a dict, got {type(data).__name__}", path=path
            )

        raw_kind = data.get("kind", data.get("op"))
        if not raw_kind or not isinstance(raw_kind, str):
            raise DescriptorError("Missing or empty 'kind' key", path=path)
        kind = self._resolve_kind(raw_kind, path)

        if kind in CONNECTIVES:
            return self._parse_junction(data, kind, path, allow_having)
        return self._parse_leaf(data, kind, path, allow_having)

    @staticmethod
    def _resolve_kind(raw_kind: str, path: str) -> PredicateKind:
        text = _CAMEL_BOUNDARY.sub("_", raw_kind.strip()).lower()
        if text in KIND_ALIASES:
            return KIND_ALIASES[text]
        try:
            return PredicateKind(text)
        except ValueError:
            raise UnsupportedPredicateShape(raw_kind, _VALID_KINDS, path=path) from None

    def _parse_junction(
        self,
        data: dict[str, Any],
        kind: PredicateKind,
        path: str,
        allow_having: bool,
    ) -> Predicate:
        operands = data.get("operands", data.get("conditions"))
        if not isinstance(operands, list) or not operands:
            raise DescriptorError(
                f"Connective '{kind.value}' requires a non-empty 'operands' list",
                path=path,
            )
        # HAVING leaves may only sit directly under a top-level AND
        child_having = allow_having and kind == PredicateKind.AND
        children: list[Predicate] = []
        for idx, child in enumerate(operands):
            node = self._parse_node(
                child, path=f"{path}.operands[{idx}]", allow_having=child_having
            )
            if isinstance(node, Junction) and node.kind == kind:
                children.extend(node.operands)
            else:
                children.append(node)
        if len(children) == 1:
            return children[0]
        return Junction(kind, tuple(children))

    def _parse_leaf(
        self,
        data: dict[str, Any],
        kind: PredicateKind,
        path: str,
        allow_having: bool,
    ) -> Leaf:
        if kind == PredicateKind.GROUP_HAVING:
            if not allow_having:
                raise UnsupportedPredicateShape(
                    kind.value,
                    _VALID_KINDS,
                    path=path,
                    reason="'group_having' is only valid as a top-level conjunct",
                )
            return self._parse_having(data, path)

        raw_field = data.get("field", data.get("attr"))
        field = self._path(raw_field, f"{path}.field")
        value = data.get("value", data.get("val"))

        if kind == PredicateKind.ELEM_MATCH:
            condition = data.get("condition", value)
            value = self._parse_node(condition, path=f"{path}.condition")
        elif kind in (PredicateKind.IN, PredicateKind.NOT_IN):
            if not isinstance(value, (list, tuple)):
                value = [value]
            value = tuple(value)
        elif kind == PredicateKind.SIZE:
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise DescriptorError(
                    f"'size' requires a non-negative integer, got {value!r}",
                    path=f"{path}.value",
                )
        elif kind == PredicateKind.EXISTS:
            value = True if value is None else value
            if not isinstance(value, bool):
                raise DescriptorError(
                    f"'exists' requires a boolean, got {value!r}",
                    path=f"{path}.value",
                )
        elif kind in (PredicateKind.LIKE, PredicateKind.ILIKE):
            if not isinstance(value, str) or not value:
                raise DescriptorError(
                    f"'{kind.value}' requires a non-empty string pattern",
                    path=f"{path}.value",
                )
        return Leaf(kind=kind, field=field, value=value)

    def _parse_having(self, data: dict[str, Any], path: str) -> Leaf:
        raw_cmp = data.get("comparator", "equals")
        if not isinstance(raw_cmp, str):
            raise DescriptorError("'comparator' must be a string", path=path)
        comparator = self._resolve_kind(raw_cmp, f"{path}.comparator")
        if comparator not in _HAVING_COMPARATORS:
            raise UnsupportedPredicateShape(
                raw_cmp,
                sorted(k.value for k in _HAVING_COMPARATORS),
                path=f"{path}.comparator",
            )
        if "value" not in data and "val" not in data:
            raise DescriptorError("'group_having' requires a value", path=path)
        raw_field = data.get("field")
        field = self._path(raw_field, f"{path}.field") if raw_field else ""
        return Leaf(
            kind=PredicateKind.GROUP_HAVING,
            field=field,
            value=data.get("value", data.get("val")),
            comparator=comparator,
        )


def _conjoin(nodes: list[Predicate]) -> Predicate | None:
    if not nodes:
        return None
    if len(nodes) == 1:
        return nodes[0]
    return Junction(PredicateKind.AND, tuple(nodes))


_default_parser = DescriptorParser()


def parse(raw: dict[str, Any] | str) -> QueryDescriptor:
    """Parse with a module-level ``DescriptorParser``."""
    return _default_parser.parse(raw)
