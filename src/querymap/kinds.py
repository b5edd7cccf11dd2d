from enum import Enum


class PredicateKind(str, Enum):
    """Recognized predicate-tree node kinds."""

    # Membership / equality
    EQUALS = "equals"
    IN = "in"
    NOT_IN = "not_in"

    # Comparison
    NOT_EQUALS = "not_equals"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"

    # Pattern matching
    LIKE = "like"
    ILIKE = "ilike"

    # Embedded collections
    EXISTS = "exists"
    SIZE = "size"
    ELEM_MATCH = "elem_match"

    # Aggregate filter (HAVING)
    GROUP_HAVING = "group_having"

    # Connectives
    AND = "and"
    OR = "or"


class Operation(str, Enum):
    """Statement kinds a descriptor can describe."""

    SELECT = "select"
    COUNT = "count"
    UPDATE = "update"
    DELETE = "delete"


class ArrayTarget(str, Enum):
    """How an update assignment addresses its field."""

    FIELD = "field"
    POSITIONAL = "positional"
    ALL = "all"


class AggregateFunction(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"


CONNECTIVES: frozenset[PredicateKind] = frozenset({PredicateKind.AND, PredicateKind.OR})

COMPARISONS: frozenset[PredicateKind] = frozenset(
    {
        PredicateKind.NOT_EQUALS,
        PredicateKind.GT,
        PredicateKind.GTE,
        PredicateKind.LT,
        PredicateKind.LTE,
    }
)

# Aliases accepted in raw descriptions, mapped to canonical kinds
KIND_ALIASES: dict[str, PredicateKind] = {
    "eq": PredicateKind.EQUALS,
    "=": PredicateKind.EQUALS,
    "like_wildcard": PredicateKind.LIKE,
    "in_list": PredicateKind.IN,
    "not_in_list": PredicateKind.NOT_IN,
    "nin": PredicateKind.NOT_IN,
    "exists_subquery": PredicateKind.EXISTS,
    "size_equals": PredicateKind.SIZE,
    "having": PredicateKind.GROUP_HAVING,
    "ne": PredicateKind.NOT_EQUALS,
    "!=": PredicateKind.NOT_EQUALS,
    "<>": PredicateKind.NOT_EQUALS,
    ">": PredicateKind.GT,
    ">=": PredicateKind.GTE,
    "<": PredicateKind.LT,
    "<=": PredicateKind.LTE,
    "elemmatch": PredicateKind.ELEM_MATCH,
}
