"""Statement rules: whole-query idioms -> shell statements."""

from __future__ import annotations

from typing import Any

from ..ast import Aggregation, QueryDescriptor, UpdateAssignment
from ..catalog import PatternRule
from ..document import ArrayPath, Pipeline, Placeholder, Projection, Statement
from ..kinds import AggregateFunction, ArrayTarget, Operation
from ..shapes import Slot, statement
from ..utils import group_output_name

P = Placeholder

COLLECTION = Slot("collection", "collection")
CRITERIA = Slot("criteria", "predicate", translate=True, default={})
REQUIRED_CRITERIA = Slot("criteria", "predicate", translate=True)

_ACCUMULATORS: dict[AggregateFunction, str] = {
    AggregateFunction.COUNT: "$sum",
    AggregateFunction.SUM: "$sum",
    AggregateFunction.AVG: "$avg",
    AggregateFunction.MIN: "$min",
    AggregateFunction.MAX: "$max",
}

# Clauses that never combine with the statement families below
_NOT_SELECT = ("update",)
_NOT_GROUPED = ("grouping", "aggregation", "having")


# -- binding transforms ------------------------------------------------------


def _cursor(descriptor: QueryDescriptor) -> tuple[tuple[str, Any], ...]:
    modifiers: list[tuple[str, Any]] = []
    if descriptor.order_by:
        modifiers.append(("sort", dict(descriptor.order_by)))
    if descriptor.offset is not None:
        modifiers.append(("skip", descriptor.offset))
    if descriptor.limit is not None:
        modifiers.append(("limit", descriptor.limit))
    return tuple(modifiers)


def _projection(descriptor: QueryDescriptor) -> Projection:
    return Projection(
        include=descriptor.projected_fields,
        exclude=descriptor.excluded_fields,
        exclude_id=descriptor.exclude_id,
    )


def _group_id(keys: tuple[str, ...]) -> Any:
    if len(keys) == 1:
        return f"${keys[0]}"
    return {group_output_name(key): f"${key}" for key in keys}


def _accumulator(function: AggregateFunction) -> str:
    return _ACCUMULATORS[function]


def _operand(aggregation: Aggregation) -> Any:
    if aggregation.function == AggregateFunction.COUNT:
        return 1
    return f"${aggregation.field}"


def _sort_stage(order_by: tuple[tuple[str, int], ...]) -> dict[str, int] | None:
    return dict(order_by) or None


def _update_method(multi: bool) -> str:
    return "updateMany" if multi else "updateOne"


def _assignments(target: ArrayTarget):
    def build(update: UpdateAssignment) -> dict[Any, Any]:
        if target == ArrayTarget.FIELD and update.array is None:
            return dict(update.values)
        return {
            ArrayPath(update.array or "", field, target): value
            for field, value in update.values
        }

    return build


def _targets(target: ArrayTarget):
    def guard(descriptor: QueryDescriptor) -> bool:
        if descriptor.update is None:
            # Let the catch-all update rule report the missing assignment
            return target == ArrayTarget.FIELD
        return descriptor.update.target == target

    return guard


# -- shared slots --------------------------------------------------------------

CURSOR = Slot("cursor", "", transform=_cursor)
GROUP_ID = Slot("group_id", "grouping_keys", transform=_group_id)
ALIAS = Slot("alias", "aggregation.alias")
ACCUMULATOR = Slot("accumulator", "aggregation.function", transform=_accumulator)
OPERAND = Slot("operand", "aggregation", transform=_operand)
SORT = Slot("sort", "order_by", transform=_sort_stage)
SKIP = Slot("skip", "offset", default=None)
LIMIT = Slot("limit", "limit", default=None)
MATCH = Slot("match", "predicate", translate=True, default=None)
UPDATE_METHOD = Slot("method", "update.multi", transform=_update_method)


def _aggregate(pipeline: Pipeline) -> Statement:
    return Statement(collection=P("collection"), method="aggregate", arguments=(pipeline,))


# -- distinct ------------------------------------------------------------------

DISTINCT_RULES = (
    PatternRule(
        id="distinct-criteria",
        relational_shape=statement(
            Operation.SELECT,
            COLLECTION,
            Slot("field", "distinct"),
            REQUIRED_CRITERIA,
            requires=("distinct", "predicate"),
            forbids=("projection", "cursor", *_NOT_GROUPED, *_NOT_SELECT),
        ),
        document_shape=Statement(
            collection=P("collection"),
            method="distinct",
            arguments=(P("field"), P("criteria")),
        ),
        summary="SELECT DISTINCT with a WHERE clause passes the filter to distinct().",
        sql="SELECT DISTINCT customer_id FROM Orders WHERE status = 'shipped'",
        example={
            "collection": "Orders",
            "distinct": "customerId",
            "predicate": {"kind": "equals", "field": "status", "value": "shipped"},
        },
        expected='db.Orders.distinct("customerId", {status: "shipped"})',
    ),
    PatternRule(
        id="distinct",
        relational_shape=statement(
            Operation.SELECT,
            COLLECTION,
            Slot("field", "distinct"),
            requires=("distinct",),
            forbids=("predicate", "projection", "cursor", *_NOT_GROUPED, *_NOT_SELECT),
        ),
        document_shape=Statement(
            collection=P("collection"), method="distinct", arguments=(P("field"),)
        ),
        summary="SELECT DISTINCT over a single column.",
        sql="SELECT DISTINCT category FROM Products",
        example={"collection": "Products", "distinct": "category"},
        expected='db.Products.distinct("category")',
    ),
)


# -- group / having ------------------------------------------------------------

_GROUP_FORBIDS = ("distinct", "projection", *_NOT_SELECT)

GROUP_RULES = (
    PatternRule(
        id="group-having",
        relational_shape=statement(
            Operation.SELECT,
            COLLECTION,
            MATCH,
            GROUP_ID,
            ALIAS,
            ACCUMULATOR,
            OPERAND,
            Slot("having", "having", translate=True),
            SORT,
            SKIP,
            LIMIT,
            requires=("grouping", "aggregation", "having"),
            forbids=_GROUP_FORBIDS,
        ),
        document_shape=_aggregate(
            Pipeline(
                match=P("match"),
                group={"_id": P("group_id"), P("alias"): {P("accumulator"): P("operand")}},
                having=P("having"),
                sort=P("sort"),
                skip=P("skip"),
                limit=P("limit"),
            )
        ),
        summary="GROUP BY ... HAVING filters after the $group stage.",
        sql=(
            "SELECT customer_id, SUM(total) AS spent FROM Orders "
            "WHERE status = 'shipped' GROUP BY customer_id HAVING SUM(total) >= 500"
        ),
        example={
            "collection": "Orders",
            "predicate": {
                "kind": "and",
                "operands": [
                    {"kind": "equals", "field": "status", "value": "shipped"},
                    {"kind": "group_having", "comparator": "gte", "value": 500},
                ],
            },
            "groupingKeys": ["customerId"],
            "aggregation": {"function": "sum", "field": "total", "alias": "spent"},
        },
        expected=(
            "db.Orders.aggregate(["
            '{$match: {status: "shipped"}}, '
            '{$group: {_id: "$customerId", spent: {$sum: "$total"}}}, '
            "{$match: {spent: {$gte: 500}}}])"
        ),
    ),
    PatternRule(
        id="group-aggregate",
        relational_shape=statement(
            Operation.SELECT,
            COLLECTION,
            MATCH,
            GROUP_ID,
            ALIAS,
            ACCUMULATOR,
            OPERAND,
            SORT,
            SKIP,
            LIMIT,
            requires=("grouping", "aggregation"),
            forbids=("having", *_GROUP_FORBIDS),
        ),
        document_shape=_aggregate(
            Pipeline(
                match=P("match"),
                group={"_id": P("group_id"), P("alias"): {P("accumulator"): P("operand")}},
                sort=P("sort"),
                skip=P("skip"),
                limit=P("limit"),
            )
        ),
        summary="GROUP BY with an aggregate column becomes a $group accumulator.",
        sql=(
            "SELECT status, AVG(total) AS avgTotal FROM Orders "
            "GROUP BY status ORDER BY avgTotal DESC LIMIT 3"
        ),
        example={
            "collection": "Orders",
            "groupingKeys": ["status"],
            "aggregation": {"function": "avg", "field": "total", "alias": "avgTotal"},
            "orderBy": ["-avgTotal"],
            "limit": 3,
        },
        expected=(
            "db.Orders.aggregate(["
            '{$group: {_id: "$status", avgTotal: {$avg: "$total"}}}, '
            "{$sort: {avgTotal: -1}}, {$limit: 3}])"
        ),
    ),
    PatternRule(
        id="group-keys",
        relational_shape=statement(
            Operation.SELECT,
            COLLECTION,
            MATCH,
            GROUP_ID,
            SORT,
            SKIP,
            LIMIT,
            requires=("grouping",),
            forbids=("aggregation", "having", *_GROUP_FORBIDS),
        ),
        document_shape=_aggregate(
            Pipeline(
                match=P("match"),
                group={"_id": P("group_id")},
                sort=P("sort"),
                skip=P("skip"),
                limit=P("limit"),
            )
        ),
        summary="GROUP BY without aggregates lists the distinct key combinations.",
        sql="SELECT status, channel FROM Orders GROUP BY status, channel",
        example={"collection": "Orders", "groupingKeys": ["status", "channel"]},
        expected=(
            "db.Orders.aggregate(["
            '{$group: {_id: {status: "$status", channel: "$channel"}}}])'
        ),
    ),
    PatternRule(
        id="aggregate-all",
        relational_shape=statement(
            Operation.SELECT,
            COLLECTION,
            MATCH,
            ALIAS,
            ACCUMULATOR,
            OPERAND,
            requires=("aggregation",),
            forbids=("grouping", "having", "cursor", *_GROUP_FORBIDS),
        ),
        document_shape=_aggregate(
            Pipeline(
                match=P("match"),
                group={"_id": None, P("alias"): {P("accumulator"): P("operand")}},
            )
        ),
        summary="An aggregate over the whole table groups on a null key.",
        sql="SELECT SUM(total) AS revenue FROM Orders",
        example={
            "collection": "Orders",
            "aggregation": {"function": "sum", "field": "total", "alias": "revenue"},
        },
        expected=(
            'db.Orders.aggregate([{$group: {_id: null, revenue: {$sum: "$total"}}}])'
        ),
    ),
)


# -- count / delete ------------------------------------------------------------

_PLAIN_FORBIDS = ("projection", "distinct", "cursor", *_NOT_GROUPED, "update")

COUNT_DELETE_RULES = (
    PatternRule(
        id="count",
        relational_shape=statement(
            Operation.COUNT, COLLECTION, CRITERIA, forbids=_PLAIN_FORBIDS
        ),
        document_shape=Statement(
            collection=P("collection"), method="countDocuments", arguments=(P("criteria"),)
        ),
        summary="SELECT COUNT(*) becomes countDocuments().",
        sql=(
            "SELECT COUNT(*) FROM Users u WHERE NOT EXISTS "
            "(SELECT 1 FROM Orders o WHERE o.user_id = u.id)"
        ),
        example={
            "collection": "Users",
            "operation": "count",
            "predicate": {"kind": "exists", "field": "orders", "value": False},
        },
        expected="db.Users.countDocuments({orders: {$in: [null, []]}})",
    ),
    PatternRule(
        id="delete",
        relational_shape=statement(
            Operation.DELETE, COLLECTION, CRITERIA, forbids=_PLAIN_FORBIDS
        ),
        document_shape=Statement(
            collection=P("collection"), method="deleteMany", arguments=(P("criteria"),)
        ),
        summary="DELETE ... WHERE becomes deleteMany().",
        sql="DELETE FROM Sessions WHERE expires_at < '2024-01-01'",
        example={
            "collection": "Sessions",
            "operation": "delete",
            "predicate": {"kind": "lt", "field": "expiresAt", "value": "2024-01-01"},
        },
        expected='db.Sessions.deleteMany({expiresAt: {$lt: "2024-01-01"}})',
    ),
)


# -- update ----------------------------------------------------------------

_UPDATE_FORBIDS = ("projection", "distinct", "cursor", *_NOT_GROUPED)

UPDATE_RULES = (
    PatternRule(
        id="update-positional",
        relational_shape=statement(
            Operation.UPDATE,
            COLLECTION,
            UPDATE_METHOD,
            REQUIRED_CRITERIA,
            Slot(
                "assignments",
                "update",
                transform=_assignments(ArrayTarget.POSITIONAL),
                requires=("update.array",),
            ),
            requires=("predicate",),
            forbids=_UPDATE_FORBIDS,
            guard=_targets(ArrayTarget.POSITIONAL),
        ),
        document_shape=Statement(
            collection=P("collection"),
            method=P("method"),
            arguments=(P("criteria"), {"$set": P("assignments")}),
        ),
        summary="Updating the matched child row uses the positional $ operator.",
        sql="UPDATE OrderItems SET qty = 5 WHERE sku = 'A-1'",
        example={
            "collection": "Orders",
            "operation": "update",
            "predicate": {"kind": "equals", "field": "items.sku", "value": "A-1"},
            "update": {"set": {"qty": 5}, "array": "items", "target": "positional"},
        },
        expected='db.Orders.updateMany({"items.sku": "A-1"}, {$set: {"items.$.qty": 5}})',
    ),
    PatternRule(
        id="update-all-elements",
        relational_shape=statement(
            Operation.UPDATE,
            COLLECTION,
            UPDATE_METHOD,
            CRITERIA,
            Slot(
                "assignments",
                "update",
                transform=_assignments(ArrayTarget.ALL),
                requires=("update.array",),
            ),
            forbids=_UPDATE_FORBIDS,
            guard=_targets(ArrayTarget.ALL),
        ),
        document_shape=Statement(
            collection=P("collection"),
            method=P("method"),
            arguments=(P("criteria"), {"$set": P("assignments")}),
        ),
        summary="Updating every child row uses the all-positional $[] operator.",
        sql=(
            "UPDATE OrderItems SET shipped = FALSE WHERE order_id IN "
            "(SELECT id FROM Orders WHERE status = 'open')"
        ),
        example={
            "collection": "Orders",
            "operation": "update",
            "predicate": {"kind": "equals", "field": "status", "value": "open"},
            "update": {"set": {"shipped": False}, "array": "items", "target": "all"},
        },
        expected=(
            'db.Orders.updateMany({status: "open"}, {$set: {"items.$[].shipped": false}})'
        ),
    ),
    PatternRule(
        id="update-set",
        relational_shape=statement(
            Operation.UPDATE,
            COLLECTION,
            UPDATE_METHOD,
            CRITERIA,
            Slot("assignments", "update", transform=_assignments(ArrayTarget.FIELD)),
            forbids=_UPDATE_FORBIDS,
            guard=_targets(ArrayTarget.FIELD),
        ),
        document_shape=Statement(
            collection=P("collection"),
            method=P("method"),
            arguments=(P("criteria"), {"$set": P("assignments")}),
        ),
        summary="UPDATE ... SET ... WHERE becomes $set with the same criteria.",
        sql="UPDATE Accounts SET active = FALSE WHERE last_login < '2020-01-01'",
        example={
            "collection": "Accounts",
            "operation": "update",
            "predicate": {"kind": "lt", "field": "lastLogin", "value": "2020-01-01"},
            "update": {"set": {"active": False}},
        },
        expected=(
            'db.Accounts.updateMany({lastLogin: {$lt: "2020-01-01"}}, '
            "{$set: {active: false}})"
        ),
    ),
)


# -- select ------------------------------------------------------------------

_SELECT_FORBIDS = ("distinct", *_NOT_GROUPED, *_NOT_SELECT)

SELECT_RULES = (
    PatternRule(
        id="select-projection",
        relational_shape=statement(
            Operation.SELECT,
            COLLECTION,
            CRITERIA,
            Slot("projection", "", transform=_projection),
            CURSOR,
            requires=("projection",),
            forbids=_SELECT_FORBIDS,
        ),
        document_shape=Statement(
            collection=P("collection"),
            method="find",
            arguments=(P("criteria"), P("projection")),
            modifiers=P("cursor"),
        ),
        summary="Selected columns become a projection; _id is implied unless excluded.",
        sql="SELECT createdAt, updatedAt FROM Accounts",
        example={
            "collection": "Accounts",
            "projectedFields": ["createdAt", "updatedAt"],
            "excludeId": True,
        },
        expected="db.Accounts.find({}, {_id: 0, createdAt: 1, updatedAt: 1})",
    ),
    PatternRule(
        id="select",
        relational_shape=statement(
            Operation.SELECT,
            COLLECTION,
            CRITERIA,
            CURSOR,
            forbids=("projection", *_SELECT_FORBIDS),
        ),
        document_shape=Statement(
            collection=P("collection"),
            method="find",
            arguments=(P("criteria"),),
            modifiers=P("cursor"),
        ),
        summary="SELECT * ... WHERE becomes find(); ORDER BY/OFFSET/LIMIT chain on the cursor.",
        sql=(
            "SELECT * FROM Orders WHERE status = 'shipped' "
            "ORDER BY createdAt DESC LIMIT 10 OFFSET 20"
        ),
        example={
            "collection": "Orders",
            "predicate": {"kind": "equals", "field": "status", "value": "shipped"},
            "orderBy": ["-createdAt"],
            "offset": 20,
            "limit": 10,
        },
        expected=(
            'db.Orders.find({status: "shipped"}).sort({createdAt: -1}).skip(20).limit(10)'
        ),
    ),
)


STATEMENT_RULES: tuple[PatternRule, ...] = (
    *DISTINCT_RULES,
    *GROUP_RULES,
    *COUNT_DELETE_RULES,
    *UPDATE_RULES,
    *SELECT_RULES,
)
