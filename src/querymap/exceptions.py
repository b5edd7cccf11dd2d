"""
Translation exception hierarchy with fuzzy-match suggestions.

All exceptions inherit from ``TranslationError`` and provide
``to_dict()`` for API-friendly error responses.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class TranslationError(Exception):
    """Base exception for all translation errors."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class DescriptorError(TranslationError):
    """Raw query description is structurally invalid."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(message if path is None else f"{path}: {message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "DESCRIPTOR_ERROR",
            "message": self.message,
            "path": self.path,
        }


class UnsupportedPredicateShape(TranslationError):
    """
    Predicate node kind outside the recognized set.

    Provides fuzzy-matched suggestions for likely intended kinds.
    """

    def __init__(
        self,
        kind: str,
        valid_kinds: list[str],
        path: str | None = None,
        reason: str | None = None,
    ) -> None:
        self.kind = kind
        self.valid_kinds = valid_kinds
        self.path = path
        self.suggestions = get_close_matches(
            kind.lower(), valid_kinds, n=3, cutoff=0.6
        )

        message = reason or f"Unsupported predicate kind: '{kind}'."
        if path:
            message = f"{path}: {message}"
        if reason is None:
            if self.suggestions:
                message += f" Did you mean: {', '.join(self.suggestions)}?"
            message += f" Recognized kinds: {', '.join(sorted(valid_kinds))}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNSUPPORTED_PREDICATE_SHAPE",
            "kind": self.kind,
            "path": self.path,
            "suggestions": self.suggestions,
            "valid_kinds": sorted(self.valid_kinds),
        }


class NoMatchingPattern(TranslationError):
    """No catalog rule structurally matches the subject."""

    def __init__(self, subject: str) -> None:
        self.subject = subject
        super().__init__(f"No pattern rule matches {subject}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "NO_MATCHING_PATTERN",
            "subject": self.subject,
        }


class BindingArityMismatch(TranslationError):
    """The subject does not supply a value for every placeholder a rule needs."""

    def __init__(self, rule_id: str, missing: list[str]) -> None:
        self.rule_id = rule_id
        self.missing = missing
        super().__init__(
            f"Rule '{rule_id}' requires values for: {', '.join(missing)}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "BINDING_ARITY_MISMATCH",
            "rule_id": self.rule_id,
            "missing": list(self.missing),
        }


class UnrenderableShape(TranslationError):
    """The renderer has no serialization rule for a construct."""

    def __init__(self, construct: Any, reason: str | None = None) -> None:
        self.construct = construct
        self.reason = reason
        message = f"Cannot render {type(construct).__name__}: {construct!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNRENDERABLE_SHAPE",
            "construct": type(self.construct).__name__,
            "reason": self.reason,
        }


class CatalogError(TranslationError):
    """Base for pattern-catalog registration errors."""


class DuplicateRuleId(CatalogError):
    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"Pattern rule '{rule_id}' is already registered")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "DUPLICATE_RULE_ID",
            "rule_id": self.rule_id,
        }


class PlaceholderMismatch(CatalogError):
    """
    Placeholder sets of the relational and document shapes differ.

    ``relational_only`` are slots never used by the document shape;
    ``document_only`` are document placeholders no slot binds.
    """

    def __init__(
        self,
        rule_id: str,
        relational_only: set[str],
        document_only: set[str],
    ) -> None:
        self.rule_id = rule_id
        self.relational_only = sorted(relational_only)
        self.document_only = sorted(document_only)

        parts = [f"Placeholder mismatch in rule '{rule_id}'."]
        if self.relational_only:
            parts.append(f"Unused slots: {', '.join(self.relational_only)}.")
        if self.document_only:
            parts.append(f"Unbound placeholders: {', '.join(self.document_only)}.")
        super().__init__(" ".join(parts))

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "PLACEHOLDER_MISMATCH",
            "rule_id": self.rule_id,
            "relational_only": self.relational_only,
            "document_only": self.document_only,
        }


class CatalogFrozen(CatalogError):
    """Registration attempted after the catalog was frozen."""

    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        super().__init__(
            f"Cannot register '{rule_id}': the pattern catalog is frozen"
        )
