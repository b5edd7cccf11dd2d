"""Predicate-node rules: WHERE / HAVING idioms -> query-document fragments."""

from __future__ import annotations

from typing import Any

from ..ast import Junction, Leaf
from ..catalog import PatternRule
from ..document import Merge, Placeholder, Regex
from ..kinds import PredicateKind
from ..shapes import Slot, node
from ..utils import escape_regex, like_class, like_literal, like_to_regex

P = Placeholder

FIELD = Slot("field", "field")
VALUE = Slot("value", "value")
OPERANDS = Slot("operands", "operands", translate=True)

_LIKE_KINDS = (PredicateKind.LIKE, PredicateKind.ILIKE)
_LIKE_FLAGS = Slot("flags", "kind", transform=lambda k: "i" if k == PredicateKind.ILIKE else "")

_COMPARISON_OPERATORS: dict[PredicateKind, str] = {
    PredicateKind.EQUALS: "$eq",
    PredicateKind.NOT_EQUALS: "$ne",
    PredicateKind.GT: "$gt",
    PredicateKind.GTE: "$gte",
    PredicateKind.LT: "$lt",
    PredicateKind.LTE: "$lte",
}


def _find(collection: str, predicate: dict[str, Any]) -> dict[str, Any]:
    return {"collection": collection, "predicate": predicate}


# -- guards ------------------------------------------------------------------


def _operand_key(operand: Any) -> str | None:
    """Top-level key an operand contributes to its parent document."""
    if isinstance(operand, Leaf):
        return operand.field
    if isinstance(operand, Junction) and operand.kind == PredicateKind.OR:
        return "$or"
    return None


def _distinct_operand_keys(junction: Junction) -> bool:
    keys = [_operand_key(op) for op in junction.operands]
    return None not in keys and len(keys) == len(set(keys))


def _operator_keys(leaf: Leaf) -> bool:
    """Value is a document the query language would read as operators."""
    value = leaf.value
    return isinstance(value, dict) and any(
        isinstance(key, str) and key.startswith("$") for key in value
    )


def _like_is(structural_class: str):
    return lambda leaf: like_class(leaf.value) == structural_class


# -- boolean composition -----------------------------------------------------

BOOLEAN_RULES = (
    PatternRule(
        id="and-merge",
        relational_shape=node(PredicateKind.AND, OPERANDS, guard=_distinct_operand_keys),
        document_shape=Merge(P("operands")),
        summary="AND over distinct fields folds into a single query document.",
        sql="SELECT * FROM Orders WHERE status = 'shipped' AND total > 100",
        example=_find(
            "Orders",
            {
                "kind": "and",
                "operands": [
                    {"kind": "equals", "field": "status", "value": "shipped"},
                    {"kind": "gt", "field": "total", "value": 100},
                ],
            },
        ),
        expected='db.Orders.find({status: "shipped", total: {$gt: 100}})',
    ),
    PatternRule(
        id="and",
        relational_shape=node(PredicateKind.AND, OPERANDS),
        document_shape={"$and": P("operands")},
        summary="AND whose operands share a field needs an explicit $and.",
        sql="SELECT * FROM Products WHERE price >= 10 AND price <= 100",
        example=_find(
            "Products",
            {
                "kind": "and",
                "operands": [
                    {"kind": "gte", "field": "price", "value": 10},
                    {"kind": "lte", "field": "price", "value": 100},
                ],
            },
        ),
        expected="db.Products.find({$and: [{price: {$gte: 10}}, {price: {$lte: 100}}]})",
    ),
    PatternRule(
        id="or",
        relational_shape=node(PredicateKind.OR, OPERANDS),
        document_shape={"$or": P("operands")},
        summary="OR becomes $or over the translated operands.",
        sql="SELECT * FROM Users WHERE role = 'admin' OR role = 'owner'",
        example=_find(
            "Users",
            {
                "kind": "or",
                "operands": [
                    {"kind": "equals", "field": "role", "value": "admin"},
                    {"kind": "equals", "field": "role", "value": "owner"},
                ],
            },
        ),
        expected='db.Users.find({$or: [{role: "admin"}, {role: "owner"}]})',
    ),
)


# -- equality and comparison -------------------------------------------------

EQUALITY_RULES = (
    PatternRule(
        id="equals-document",
        relational_shape=node(
            PredicateKind.EQUALS, FIELD, VALUE, guard=_operator_keys
        ),
        document_shape={P("field"): {"$eq": P("value")}},
        summary="A document literal with $-prefixed keys is compared with $eq.",
        sql="SELECT * FROM Events WHERE payload = '{\"$ne\": null}'::jsonb",
        example=_find(
            "Events",
            {"kind": "equals", "field": "payload", "value": {"$ne": None}},
        ),
        expected="db.Events.find({payload: {$eq: {$ne: null}}})",
    ),
    PatternRule(
        id="nested-field-equals",
        relational_shape=node(
            PredicateKind.EQUALS,
            FIELD,
            Slot("value", "value", default=None),
            guard=lambda leaf: "." in leaf.field,
        ),
        document_shape={P("field"): P("value")},
        summary="A joined/embedded column is addressed with a quoted dot path.",
        sql=(
            "SELECT u.* FROM Users u JOIN Addresses a ON a.user_id = u.id "
            "WHERE a.city = 'Paris'"
        ),
        example=_find(
            "Users", {"kind": "equals", "field": "address.city", "value": "Paris"}
        ),
        expected='db.Users.find({"address.city": "Paris"})',
    ),
    PatternRule(
        id="equals",
        relational_shape=node(
            PredicateKind.EQUALS, FIELD, Slot("value", "value", default=None)
        ),
        document_shape={P("field"): P("value")},
        summary="Equality is an implicit match on the field.",
        sql="SELECT * FROM Accounts WHERE active = TRUE",
        example=_find("Accounts", {"kind": "equals", "field": "active", "value": True}),
        expected="db.Accounts.find({active: true})",
    ),
)

_COMPARISON_EXAMPLES: dict[PredicateKind, tuple[str, str, str, Any, str]] = {
    # kind: (collection, sql, field, value, expected)
    PredicateKind.NOT_EQUALS: (
        "Orders",
        "SELECT * FROM Orders WHERE status <> 'cancelled'",
        "status",
        "cancelled",
        'db.Orders.find({status: {$ne: "cancelled"}})',
    ),
    PredicateKind.GT: (
        "Orders",
        "SELECT * FROM Orders WHERE total > 100",
        "total",
        100,
        "db.Orders.find({total: {$gt: 100}})",
    ),
    PredicateKind.GTE: (
        "Products",
        "SELECT * FROM Products WHERE stock >= 1",
        "stock",
        1,
        "db.Products.find({stock: {$gte: 1}})",
    ),
    PredicateKind.LT: (
        "Products",
        "SELECT * FROM Products WHERE price < 5",
        "price",
        5,
        "db.Products.find({price: {$lt: 5}})",
    ),
    PredicateKind.LTE: (
        "Users",
        "SELECT * FROM Users WHERE age <= 17",
        "age",
        17,
        "db.Users.find({age: {$lte: 17}})",
    ),
}


def _comparison_rule(kind: PredicateKind) -> PatternRule:
    collection, sql, field, value, expected = _COMPARISON_EXAMPLES[kind]
    operator = _COMPARISON_OPERATORS[kind]
    return PatternRule(
        id=kind.value.replace("_", "-"),
        relational_shape=node(kind, FIELD, VALUE),
        document_shape={P("field"): {operator: P("value")}},
        summary=f"Comparison maps to {operator}.",
        sql=sql,
        example=_find(collection, {"kind": kind.value, "field": field, "value": value}),
        expected=expected,
    )


COMPARISON_RULES = tuple(_comparison_rule(kind) for kind in _COMPARISON_EXAMPLES)


# -- LIKE ------------------------------------------------------------------

LIKE_RULES = (
    PatternRule(
        id="like-wrapped",
        relational_shape=node(
            _LIKE_KINDS,
            FIELD,
            Slot("pattern", "value", transform=lambda v: f".*{escape_regex(like_literal(v))}.*"),
            _LIKE_FLAGS,
            guard=_like_is("wrapped"),
        ),
        document_shape={P("field"): Regex(P("pattern"), P("flags"))},
        summary="LIKE '%x%' is an unanchored regex match.",
        sql="SELECT * FROM Products WHERE description LIKE '%BOOK%'",
        example=_find(
            "Products", {"kind": "like", "field": "description", "value": "BOOK"}
        ),
        expected="db.Products.find({description: /.*BOOK.*/})",
    ),
    PatternRule(
        id="like-prefix",
        relational_shape=node(
            _LIKE_KINDS,
            FIELD,
            Slot("pattern", "value", transform=lambda v: "^" + escape_regex(like_literal(v))),
            _LIKE_FLAGS,
            guard=_like_is("prefix"),
        ),
        document_shape={P("field"): Regex(P("pattern"), P("flags"))},
        summary="LIKE 'x%' anchors the regex at the start.",
        sql="SELECT * FROM Users WHERE name LIKE 'Jo%'",
        example=_find("Users", {"kind": "like", "field": "name", "value": "Jo%"}),
        expected="db.Users.find({name: /^Jo/})",
    ),
    PatternRule(
        id="like-suffix",
        relational_shape=node(
            _LIKE_KINDS,
            FIELD,
            Slot("pattern", "value", transform=lambda v: escape_regex(like_literal(v)) + "$"),
            _LIKE_FLAGS,
            guard=_like_is("suffix"),
        ),
        document_shape={P("field"): Regex(P("pattern"), P("flags"))},
        summary="LIKE '%x' anchors the regex at the end; ILIKE adds the i flag.",
        sql="SELECT * FROM Users WHERE email ILIKE '%@example.com'",
        example=_find(
            "Users", {"kind": "ilike", "field": "email", "value": "%@example.com"}
        ),
        expected="db.Users.find({email: /@example\\.com$/i})",
    ),
    PatternRule(
        id="like-general",
        relational_shape=node(
            _LIKE_KINDS,
            FIELD,
            Slot("pattern", "value", transform=like_to_regex),
            _LIKE_FLAGS,
            guard=_like_is("general"),
        ),
        document_shape={P("field"): Regex(P("pattern"), P("flags"))},
        summary="Other wildcard layouts become a fully anchored regex.",
        sql="SELECT * FROM Products WHERE sku LIKE 'AB_%-X'",
        example=_find("Products", {"kind": "like", "field": "sku", "value": "AB_%-X"}),
        expected="db.Products.find({sku: /^AB..*-X$/})",
    ),
)


# -- membership and embedded collections -------------------------------------

COLLECTION_RULES = (
    PatternRule(
        id="in",
        relational_shape=node(
            PredicateKind.IN, FIELD, Slot("values", "value", transform=list)
        ),
        document_shape={P("field"): {"$in": P("values")}},
        summary="Membership (also in an embedded array) uses $in.",
        sql=(
            "SELECT * FROM ShoppingCarts sc JOIN ShoppingCartProducts p "
            "ON p.cart_id = sc.id WHERE p.product_id IN ('5cd1a0475334fe0009133102')"
        ),
        example=_find(
            "ShoppingCarts",
            {
                "kind": "in",
                "field": "shoppingCartProducts",
                "value": ["5cd1a0475334fe0009133102"],
            },
        ),
        expected=(
            "db.ShoppingCarts.find("
            '{shoppingCartProducts: {$in: ["5cd1a0475334fe0009133102"]}})'
        ),
    ),
    PatternRule(
        id="not-in",
        relational_shape=node(
            PredicateKind.NOT_IN, FIELD, Slot("values", "value", transform=list)
        ),
        document_shape={P("field"): {"$nin": P("values")}},
        summary="Negated membership uses $nin.",
        sql="SELECT * FROM Orders WHERE status NOT IN ('cancelled', 'refunded')",
        example=_find(
            "Orders",
            {"kind": "not_in", "field": "status", "value": ["cancelled", "refunded"]},
        ),
        expected='db.Orders.find({status: {$nin: ["cancelled", "refunded"]}})',
    ),
    PatternRule(
        id="exists-non-empty",
        relational_shape=node(
            PredicateKind.EXISTS, FIELD, guard=lambda leaf: leaf.value is True
        ),
        document_shape={P("field"): {"$exists": True, "$ne": []}},
        summary="EXISTS (child rows) checks the embedded array is present and non-empty.",
        sql=(
            "SELECT * FROM Users u WHERE EXISTS "
            "(SELECT 1 FROM Orders o WHERE o.user_id = u.id)"
        ),
        example=_find("Users", {"kind": "exists", "field": "orders", "value": True}),
        expected="db.Users.find({orders: {$exists: true, $ne: []}})",
    ),
    PatternRule(
        id="exists-empty",
        relational_shape=node(
            PredicateKind.EXISTS, FIELD, guard=lambda leaf: leaf.value is False
        ),
        document_shape={P("field"): {"$in": [None, []]}},
        summary="NOT EXISTS matches a missing, null or empty embedded array.",
        sql=(
            "SELECT * FROM Users u WHERE NOT EXISTS "
            "(SELECT 1 FROM Orders o WHERE o.user_id = u.id)"
        ),
        example=_find("Users", {"kind": "exists", "field": "orders", "value": False}),
        expected="db.Users.find({orders: {$in: [null, []]}})",
    ),
    PatternRule(
        id="size",
        relational_shape=node(PredicateKind.SIZE, FIELD, Slot("size", "value")),
        document_shape={P("field"): {"$size": P("size")}},
        summary="A child-row count equality is an array $size match.",
        sql=(
            "SELECT sc.* FROM ShoppingCarts sc JOIN ShoppingCartProducts p "
            "ON p.cart_id = sc.id GROUP BY sc.id HAVING COUNT(*) = 3"
        ),
        example=_find(
            "ShoppingCarts",
            {"kind": "size", "field": "shoppingCartProducts", "value": 3},
        ),
        expected="db.ShoppingCarts.find({shoppingCartProducts: {$size: 3}})",
    ),
    PatternRule(
        id="elem-match",
        relational_shape=node(
            PredicateKind.ELEM_MATCH,
            FIELD,
            Slot("condition", "value", translate=True),
        ),
        document_shape={P("field"): {"$elemMatch": P("condition")}},
        summary="Several conditions on the same child row need $elemMatch.",
        sql=(
            "SELECT o.* FROM Orders o JOIN OrderItems i ON i.order_id = o.id "
            "WHERE i.sku = 'A-1' AND i.qty >= 2"
        ),
        example=_find(
            "Orders",
            {
                "kind": "elem_match",
                "field": "items",
                "condition": {
                    "kind": "and",
                    "operands": [
                        {"kind": "equals", "field": "sku", "value": "A-1"},
                        {"kind": "gte", "field": "qty", "value": 2},
                    ],
                },
            },
        ),
        expected='db.Orders.find({items: {$elemMatch: {sku: "A-1", qty: {$gte: 2}}}})',
    ),
)


# -- aggregate filter ----------------------------------------------------------

HAVING_RULES = (
    PatternRule(
        id="having-comparison",
        relational_shape=node(
            PredicateKind.GROUP_HAVING,
            FIELD,
            Slot("operator", "comparator", transform=_COMPARISON_OPERATORS.__getitem__),
            VALUE,
        ),
        document_shape={P("field"): {P("operator"): P("value")}},
        summary="HAVING compares the accumulated alias after $group.",
        sql=(
            "SELECT customer_id, COUNT(*) AS orders FROM Orders "
            "GROUP BY customer_id HAVING COUNT(*) > 1"
        ),
        example={
            "collection": "Orders",
            "groupingKeys": ["customerId"],
            "aggregation": {"function": "count", "alias": "orders"},
            "predicate": {"kind": "group_having", "comparator": "gt", "value": 1},
        },
        expected=(
            "db.Orders.aggregate(["
            '{$group: {_id: "$customerId", orders: {$sum: 1}}}, '
            "{$match: {orders: {$gt: 1}}}])"
        ),
    ),
)


PREDICATE_RULES: tuple[PatternRule, ...] = (
    *BOOLEAN_RULES,
    *EQUALITY_RULES,
    *COMPARISON_RULES,
    *LIKE_RULES,
    *COLLECTION_RULES,
    *HAVING_RULES,
)
