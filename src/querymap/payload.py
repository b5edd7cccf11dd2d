"""Raw descriptor payload schema (camelCase and snake_case keys)."""

from __future__ import annotations

from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    ValidationInfo,
    field_validator,
)

from .kinds import AggregateFunction, ArrayTarget, Operation

_ENUM_FIELDS = frozenset({"operation", "function", "target"})


def _aliases(name: str, *extra: str) -> AliasChoices:
    head, *rest = name.split("_")
    camel = head + "".join(part.title() for part in rest)
    choices = [name] if camel == name else [name, camel]
    return AliasChoices(*choices, *extra)


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("*", mode="before")
    @classmethod
    def _lower_enum_text(cls, value: Any, info: ValidationInfo) -> Any:
        if info.field_name in _ENUM_FIELDS and isinstance(value, str):
            return value.strip().lower()
        return value


class AggregationPayload(_Payload):
    function: AggregateFunction
    field: str | None = None
    alias: str | None = None


class UpdatePayload(_Payload):
    values: dict[str, Any] = Field(
        ..., min_length=1, validation_alias=AliasChoices("set", "values")
    )
    array: str | None = Field(default=None, validation_alias=_aliases("array", "arrayField"))
    target: ArrayTarget = ArrayTarget.FIELD
    multi: bool = True


class DescriptorPayload(_Payload):
    """Top-level shape of a raw query description.

    ``predicate`` stays a plain dict here; the parser walks it so that
    unknown node kinds surface as ``UnsupportedPredicateShape`` rather than
    as a generic validation error.
    """

    collection: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("collection", "table", "collectionOrTable"),
    )
    operation: Operation = Operation.SELECT
    predicate: dict[str, Any] | None = None
    projected_fields: list[str] = Field(
        default_factory=list, validation_alias=_aliases("projected_fields")
    )
    excluded_fields: list[str] = Field(
        default_factory=list, validation_alias=_aliases("excluded_fields")
    )
    exclude_id: bool = Field(default=False, validation_alias=_aliases("exclude_id"))
    distinct: str | None = None
    grouping_keys: list[str] = Field(
        default_factory=list, validation_alias=_aliases("grouping_keys", "groupBy")
    )
    aggregation: AggregationPayload | None = None
    update: UpdatePayload | None = Field(
        default=None,
        validation_alias=AliasChoices("update", "updateAssignment", "update_assignment"),
    )
    order_by: list[str] = Field(default_factory=list, validation_alias=_aliases("order_by"))
    limit: StrictInt | None = Field(default=None, ge=1)
    offset: StrictInt | None = Field(default=None, ge=0)
