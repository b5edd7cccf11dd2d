"""Tests for DescriptorParser (normalization and fail-fast validation)."""

from __future__ import annotations

import json

import pytest

from querymap import (
    AggregateFunction,
    ArrayTarget,
    DescriptorError,
    Junction,
    Leaf,
    Operation,
    PredicateKind,
    UnsupportedPredicateShape,
    parse,
)

# -- top level ---------------------------------------------------------------


def test_minimal_descriptor(parser):
    descriptor = parser.parse({"collection": "Orders"})
    assert descriptor.collection == "Orders"
    assert descriptor.operation == Operation.SELECT
    assert descriptor.predicate is None
    assert descriptor.has_projection is False
    assert descriptor.has_cursor_modifiers is False


def test_json_text_is_accepted(parser):
    descriptor = parser.parse(json.dumps({"table": "Orders", "operation": "COUNT"}))
    assert descriptor.collection == "Orders"
    assert descriptor.operation == Operation.COUNT


def test_module_level_parse():
    assert parse({"collection": "Users"}).collection == "Users"


def test_invalid_json(parser):
    with pytest.raises(DescriptorError, match="Invalid JSON"):
        parser.parse("not json {")


def test_non_object(parser):
    with pytest.raises(DescriptorError, match="object"):
        parser.parse('"just a string"')


def test_missing_collection(parser):
    with pytest.raises(DescriptorError) as exc_info:
        parser.parse({"predicate": None})
    assert exc_info.value.path == "<root>.collection"


def test_unknown_top_level_key(parser):
    with pytest.raises(DescriptorError):
        parser.parse({"collection": "Orders", "joins": []})


def test_negative_limit(parser):
    with pytest.raises(DescriptorError) as exc_info:
        parser.parse({"collection": "Orders", "limit": -1})
    assert exc_info.value.path == "<root>.limit"


def test_snake_and_camel_keys(parser):
    camel = parser.parse({"collection": "A", "projectedFields": ["x"], "excludeId": True})
    snake = parser.parse({"collection": "A", "projected_fields": ["x"], "exclude_id": True})
    assert camel == snake
    assert camel.projected_fields == ("x",)
    assert camel.exclude_id is True


def test_mixed_projection_rejected(parser):
    with pytest.raises(DescriptorError, match="cannot mix"):
        parser.parse(
            {"collection": "A", "projectedFields": ["x"], "excludedFields": ["y"]}
        )


def test_field_path_segments_are_joined(parser):
    descriptor = parser.parse(
        {
            "collection": "Users",
            "predicate": {"kind": "equals", "field": ["address", "city"], "value": "Paris"},
        }
    )
    assert descriptor.predicate == Leaf(PredicateKind.EQUALS, "address.city", "Paris")


def test_empty_path_segment_rejected(parser):
    with pytest.raises(DescriptorError) as exc_info:
        parser.parse(
            {
                "collection": "Users",
                "predicate": {"kind": "equals", "field": "address..city", "value": 1},
            }
        )
    assert exc_info.value.path == "<root>.predicate.field"


@pytest.mark.parametrize(
    ("item", "expected"),
    [("-createdAt", ("createdAt", -1)), ("name", ("name", 1)), ("age DESC", ("age", -1))],
)
def test_order_by_forms(parser, item, expected):
    descriptor = parser.parse({"collection": "Users", "orderBy": [item]})
    assert descriptor.order_by == (expected,)


def test_order_by_malformed(parser):
    with pytest.raises(DescriptorError) as exc_info:
        parser.parse({"collection": "Users", "orderBy": ["a b c"]})
    assert exc_info.value.path == "<root>.orderBy[0]"


# -- predicate kinds -----------------------------------------------------------


@pytest.mark.parametrize(
    ("raw_kind", "kind"),
    [
        ("EQUALS", PredicateKind.EQUALS),
        ("eq", PredicateKind.EQUALS),
        ("like_wildcard", PredicateKind.LIKE),
        ("inList", PredicateKind.IN),
        ("not_in_list", PredicateKind.NOT_IN),
        ("<>", PredicateKind.NOT_EQUALS),
        (">=", PredicateKind.GTE),
        ("notEquals", PredicateKind.NOT_EQUALS),
    ],
)
def test_kind_aliases(parser, raw_kind, kind):
    descriptor = parser.parse(
        {"collection": "A", "predicate": {"kind": raw_kind, "field": "f", "value": "v"}}
    )
    assert descriptor.predicate.kind == kind


def test_op_attr_val_keys(parser):
    descriptor = parser.parse(
        {"collection": "A", "predicate": {"op": "gt", "attr": "age", "val": 30}}
    )
    assert descriptor.predicate == Leaf(PredicateKind.GT, "age", 30)


def test_unknown_kind_has_suggestions(parser):
    with pytest.raises(UnsupportedPredicateShape) as exc_info:
        parser.parse(
            {"collection": "A", "predicate": {"kind": "equal", "field": "f", "value": 1}}
        )
    assert "equals" in exc_info.value.suggestions
    assert "Did you mean" in str(exc_info.value)


def test_unknown_kind_nested_path(parser):
    with pytest.raises(UnsupportedPredicateShape) as exc_info:
        parser.parse(
            {
                "collection": "A",
                "predicate": {
                    "kind": "or",
                    "operands": [
                        {"kind": "equals", "field": "f", "value": 1},
                        {"kind": "soundex", "field": "g", "value": "x"},
                    ],
                },
            }
        )
    assert exc_info.value.path == "<root>.predicate.operands[1]"


def test_missing_kind(parser):
    with pytest.raises(DescriptorError, match="kind"):
        parser.parse({"collection": "A", "predicate": {"field": "f"}})


def test_in_wraps_scalar(parser):
    descriptor = parser.parse(
        {"collection": "A", "predicate": {"kind": "in", "field": "f", "value": "x"}}
    )
    assert descriptor.predicate.value == ("x",)


def test_exists_defaults_to_true(parser):
    descriptor = parser.parse(
        {"collection": "A", "predicate": {"kind": "exists", "field": "orders"}}
    )
    assert descriptor.predicate.value is True


def test_exists_requires_bool(parser):
    with pytest.raises(DescriptorError, match="boolean"):
        parser.parse(
            {"collection": "A", "predicate": {"kind": "exists", "field": "o", "value": 1}}
        )


@pytest.mark.parametrize("value", [-1, True, "3", None])
def test_size_requires_non_negative_int(parser, value):
    with pytest.raises(DescriptorError, match="non-negative integer"):
        parser.parse(
            {"collection": "A", "predicate": {"kind": "size", "field": "f", "value": value}}
        )


def test_like_requires_pattern(parser):
    with pytest.raises(DescriptorError, match="non-empty string"):
        parser.parse(
            {"collection": "A", "predicate": {"kind": "like", "field": "f", "value": ""}}
        )


def test_elem_match_condition_is_parsed(parser):
    descriptor = parser.parse(
        {
            "collection": "Orders",
            "predicate": {
                "kind": "elemMatch",
                "field": "items",
                "condition": {"kind": "gte", "field": "qty", "value": 2},
            },
        }
    )
    assert descriptor.predicate.value == Leaf(PredicateKind.GTE, "qty", 2)


# -- connectives ---------------------------------------------------------------


def test_nested_and_is_flattened(parser):
    descriptor = parser.parse(
        {
            "collection": "A",
            "predicate": {
                "kind": "and",
                "operands": [
                    {"kind": "equals", "field": "a", "value": 1},
                    {
                        "kind": "and",
                        "conditions": [
                            {"kind": "equals", "field": "b", "value": 2},
                            {"kind": "equals", "field": "c", "value": 3},
                        ],
                    },
                ],
            },
        }
    )
    assert isinstance(descriptor.predicate, Junction)
    assert [op.field for op in descriptor.predicate.operands] == ["a", "b", "c"]


def test_single_operand_is_unwrapped(parser):
    descriptor = parser.parse(
        {
            "collection": "A",
            "predicate": {
                "kind": "or",
                "operands": [{"kind": "equals", "field": "a", "value": 1}],
            },
        }
    )
    assert descriptor.predicate == Leaf(PredicateKind.EQUALS, "a", 1)


def test_empty_operands_rejected(parser):
    with pytest.raises(DescriptorError, match="non-empty 'operands'"):
        parser.parse({"collection": "A", "predicate": {"kind": "and", "operands": []}})


# -- having / aggregation ------------------------------------------------------


def _grouped(predicate, **extra):
    return {
        "collection": "Orders",
        "groupingKeys": ["customerId"],
        "aggregation": {"function": "sum", "field": "total", "alias": "spent"},
        "predicate": predicate,
        **extra,
    }


def test_having_is_split_from_row_predicate(parser):
    descriptor = parser.parse(
        _grouped(
            {
                "kind": "and",
                "operands": [
                    {"kind": "equals", "field": "status", "value": "shipped"},
                    {"kind": "having", "comparator": ">=", "value": 500},
                ],
            }
        )
    )
    assert descriptor.predicate == Leaf(PredicateKind.EQUALS, "status", "shipped")
    assert descriptor.having == Leaf(
        PredicateKind.GROUP_HAVING, "spent", 500, comparator=PredicateKind.GTE
    )


def test_having_comparator_defaults_to_equals(parser):
    descriptor = parser.parse(_grouped({"kind": "group_having", "value": 3}))
    assert descriptor.predicate is None
    assert descriptor.having.comparator == PredicateKind.EQUALS


def test_having_below_or_rejected(parser):
    with pytest.raises(UnsupportedPredicateShape, match="top-level conjunct"):
        parser.parse(
            _grouped(
                {
                    "kind": "or",
                    "operands": [
                        {"kind": "equals", "field": "status", "value": "x"},
                        {"kind": "group_having", "value": 1},
                    ],
                }
            )
        )


def test_having_requires_grouping(parser):
    with pytest.raises(DescriptorError, match="groupingKeys"):
        parser.parse(
            {
                "collection": "Orders",
                "aggregation": {"function": "count"},
                "predicate": {"kind": "group_having", "value": 1},
            }
        )


def test_having_requires_aggregation(parser):
    with pytest.raises(DescriptorError, match="aggregation"):
        parser.parse(
            {
                "collection": "Orders",
                "groupingKeys": ["customerId"],
                "predicate": {"kind": "group_having", "value": 1},
            }
        )


def test_having_rejects_like_comparator(parser):
    with pytest.raises(UnsupportedPredicateShape):
        parser.parse(_grouped({"kind": "group_having", "comparator": "like", "value": 1}))


def test_having_requires_value(parser):
    with pytest.raises(DescriptorError, match="requires a value"):
        parser.parse(_grouped({"kind": "group_having", "comparator": "gt"}))


def test_count_alias_defaults_to_function(parser):
    descriptor = parser.parse(
        {"collection": "Orders", "groupingKeys": ["x"], "aggregation": {"function": "COUNT"}}
    )
    assert descriptor.aggregation.function == AggregateFunction.COUNT
    assert descriptor.aggregation.alias == "count"
    assert descriptor.aggregation.field is None


def test_sum_requires_field(parser):
    with pytest.raises(DescriptorError) as exc_info:
        parser.parse({"collection": "Orders", "aggregation": {"function": "sum"}})
    assert exc_info.value.path == "<root>.aggregation.field"


# -- update ------------------------------------------------------------------


def test_update_assignment(parser):
    descriptor = parser.parse(
        {
            "collection": "Orders",
            "operation": "update",
            "updateAssignment": {
                "set": {"qty": 5},
                "arrayField": "items",
                "target": "Positional",
            },
        }
    )
    assert descriptor.update.values == (("qty", 5),)
    assert descriptor.update.array == "items"
    assert descriptor.update.target == ArrayTarget.POSITIONAL
    assert descriptor.update.multi is True


def test_update_requires_values(parser):
    with pytest.raises(DescriptorError):
        parser.parse({"collection": "Orders", "operation": "update", "update": {"set": {}}})


# -- cursor bounds ---------------------------------------------------------------


@pytest.mark.parametrize("key", ["limit", "offset"])
def test_cursor_bounds_reject_booleans(parser, key):
    with pytest.raises(DescriptorError) as exc_info:
        parser.parse({"collection": "Orders", key: True})
    assert exc_info.value.path == f"<root>.{key}"


@pytest.mark.parametrize(
    "extra", [{}, {"groupingKeys": ["status"]}], ids=["find", "aggregate"]
)
def test_zero_limit_rejected(parser, extra):
    with pytest.raises(DescriptorError) as exc_info:
        parser.parse({"collection": "Orders", "limit": 0, **extra})
    assert exc_info.value.path == "<root>.limit"


def test_zero_offset_allowed(parser):
    assert parser.parse({"collection": "Orders", "offset": 0}).offset == 0


# -- group output names ----------------------------------------------------------


def test_alias_cannot_replace_group_key(parser):
    with pytest.raises(DescriptorError, match="reserved") as exc_info:
        parser.parse(
            {
                "collection": "Orders",
                "groupingKeys": ["customerId"],
                "aggregation": {"function": "count", "alias": "_id"},
            }
        )
    assert exc_info.value.path == "<root>.aggregation.alias"


@pytest.mark.parametrize("alias", ["a.b", "$total"])
def test_alias_must_be_output_name(parser, alias):
    with pytest.raises(DescriptorError, match="not a valid output field name"):
        parser.parse(
            {
                "collection": "Orders",
                "aggregation": {"function": "sum", "field": "total", "alias": alias},
            }
        )


def test_grouping_keys_with_same_output_name(parser):
    with pytest.raises(DescriptorError, match="'a.b' and 'a_b'") as exc_info:
        parser.parse({"collection": "Orders", "groupingKeys": ["a.b", "a_b"]})
    assert exc_info.value.path == "<root>.groupingKeys[1]"


def test_single_dotted_grouping_key_allowed(parser):
    descriptor = parser.parse({"collection": "Users", "groupingKeys": ["address.city"]})
    assert descriptor.grouping_keys == ("address.city",)


def test_having_field_must_be_alias(parser):
    with pytest.raises(DescriptorError, match="must be the aggregation alias 'spent'"):
        parser.parse(
            _grouped({"kind": "group_having", "field": "total", "comparator": "gt", "value": 1})
        )


def test_having_field_naming_alias_accepted(parser):
    descriptor = parser.parse(
        _grouped({"kind": "group_having", "field": "spent", "comparator": "gt", "value": 1})
    )
    assert descriptor.having.field == "spent"
