"""
Renderer: document IR -> MongoDB shell text.

Compact output by default::

    db.Products.find({description: /.*BOOK.*/})

Pass ``RenderOptions(indent=2)`` for multi-line documents.
"""

from __future__ import annotations

import datetime
import json
import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from .document import (
    STAGE_ORDER,
    ArrayPath,
    Merge,
    Pipeline,
    Placeholder,
    Projection,
    Regex,
    Statement,
)
from .exceptions import UnrenderableShape
from .translator import TranslatedQuery
from .utils import is_bare_key

logger = logging.getLogger("querymap.renderer")


@dataclass(frozen=True)
class RenderOptions:
    """
    Rendering configuration.

    Attributes:
        handle: Name of the database handle in the shell (``db``).
        indent: Spaces per nesting level; ``None`` renders on one line.
    """

    handle: str = "db"
    indent: int | None = None


class Renderer:
    """Serialize translated queries; pure and repeatable."""

    def __init__(self, options: RenderOptions | None = None) -> None:
        self._options = options or RenderOptions()

    @property
    def options(self) -> RenderOptions:
        return self._options

    def render(self, translated: TranslatedQuery | Any) -> str:
        node = (
            translated.document
            if isinstance(translated, TranslatedQuery)
            else translated
        )
        text = self._value(node, 0)
        logger.debug("Rendered %d characters", len(text))
        return text

    # -- values --------------------------------------------------------------

    def _value(self, node: Any, level: int) -> str:
        if isinstance(node, (Placeholder, Merge)):
            raise UnrenderableShape(node, "template node left in translated output")
        if isinstance(node, Statement):
            return self._statement(node, level)
        if isinstance(node, Pipeline):
            return self._sequence(self._stages(node), level)
        if isinstance(node, Projection):
            return self._document(self._projection(node), level)
        if isinstance(node, Regex):
            return f"/{node.pattern}/{node.flags}"
        if node is None:
            return "null"
        if isinstance(node, bool):
            return "true" if node else "false"
        if isinstance(node, Enum):
            return self._value(node.value, level)
        if isinstance(node, int):
            return str(node)
        if isinstance(node, float):
            if not math.isfinite(node):
                raise UnrenderableShape(node, "non-finite number")
            return repr(node)
        if isinstance(node, Decimal):
            return f'NumberDecimal("{node}")'
        if isinstance(node, datetime.datetime):
            return f'ISODate("{node.isoformat()}")'
        if isinstance(node, str):
            return json.dumps(node, ensure_ascii=False)
        if isinstance(node, dict):
            return self._document(node, level)
        if isinstance(node, (list, tuple)):
            return self._sequence(list(node), level)
        raise UnrenderableShape(node)

    def _key(self, key: Any) -> str:
        if isinstance(key, ArrayPath):
            return json.dumps(key.text)
        if isinstance(key, Enum):
            key = key.value
        if not isinstance(key, str):
            raise UnrenderableShape(key, "document keys must be strings")
        return key if is_bare_key(key) else json.dumps(key, ensure_ascii=False)

    def _document(self, doc: dict[Any, Any], level: int) -> str:
        if not doc:
            return "{}"
        items = [f"{self._key(k)}: {self._value(v, level + 1)}" for k, v in doc.items()]
        return self._wrap("{", items, "}", level)

    def _sequence(self, items: list[Any], level: int) -> str:
        if not items:
            return "[]"
        rendered = [self._value(item, level + 1) for item in items]
        return self._wrap("[", rendered, "]", level)

    def _wrap(self, opener: str, items: list[str], closer: str, level: int) -> str:
        indent = self._options.indent
        if indent is None:
            return opener + ", ".join(items) + closer
        inner = " " * (indent * (level + 1))
        outer = " " * (indent * level)
        body = ",\n".join(inner + item for item in items)
        return f"{opener}\n{body}\n{outer}{closer}"

    # -- structures ----------------------------------------------------------

    def _statement(self, node: Statement, level: int) -> str:
        if not isinstance(node.collection, str) or not node.collection:
            raise UnrenderableShape(node.collection, "collection name must be a string")
        if not isinstance(node.method, str) or not is_bare_key(node.method):
            raise UnrenderableShape(node.method, "method name must be an identifier")
        handle = self._options.handle
        if is_bare_key(node.collection):
            target = f"{handle}.{node.collection}"
        else:
            target = f"{handle}.getCollection({json.dumps(node.collection)})"
        args = ", ".join(self._value(arg, level) for arg in node.arguments)
        text = f"{target}.{node.method}({args})"
        for name, arg in node.modifiers:
            text += f".{name}({self._value(arg, level)})"
        return text

    @staticmethod
    def _stages(node: Pipeline) -> list[dict[str, Any]]:
        stages: list[dict[str, Any]] = []
        for attr, operator in STAGE_ORDER:
            body = getattr(node, attr)
            if body is not None:
                stages.append({operator: body})
        return stages

    @staticmethod
    def _projection(node: Projection) -> dict[str, int]:
        include = list(node.include)
        exclude = list(node.exclude)
        if include and exclude:
            raise UnrenderableShape(
                node, "projection cannot mix inclusion and exclusion"
            )
        if node.exclude_id and "_id" in include:
            raise UnrenderableShape(node, "'_id' is both included and excluded")
        doc: dict[str, int] = {}
        if node.exclude_id:
            doc["_id"] = 0
        for field in include:
            doc[field] = 1
        for field in exclude:
            doc[field] = 0
        return doc
