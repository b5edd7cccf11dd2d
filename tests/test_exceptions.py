"""Tests for exceptions module."""

from __future__ import annotations

from querymap import (
    BindingArityMismatch,
    CatalogError,
    CatalogFrozen,
    DescriptorError,
    DuplicateRuleId,
    NoMatchingPattern,
    PlaceholderMismatch,
    TranslationError,
    UnrenderableShape,
    UnsupportedPredicateShape,
)

# -- UnsupportedPredicateShape -------------------------------------------------


def test_unsupported_shape_fuzzy_suggestion():
    err = UnsupportedPredicateShape("ilkie", ["like", "ilike", "equals"])
    assert "ilkie" in str(err)
    assert "ilike" in err.suggestions
    assert "Did you mean" in str(err)


def test_unsupported_shape_no_matches():
    err = UnsupportedPredicateShape("FULL_TEXT_SEARCH", ["equals", "in"])
    d = err.to_dict()
    assert d["error"] == "UNSUPPORTED_PREDICATE_SHAPE"
    assert d["kind"] == "FULL_TEXT_SEARCH"
    assert d["suggestions"] == []
    assert d["valid_kinds"] == ["equals", "in"]


def test_unsupported_shape_with_reason():
    err = UnsupportedPredicateShape(
        "group_having", ["group_having"], path="<root>.x", reason="not here"
    )
    assert str(err) == "<root>.x: not here"


# -- DescriptorError -----------------------------------------------------------


def test_descriptor_error_with_path():
    err = DescriptorError("Missing 'kind'", path="<root>.predicate.operands[0]")
    assert str(err) == "<root>.predicate.operands[0]: Missing 'kind'"
    d = err.to_dict()
    assert d["error"] == "DESCRIPTOR_ERROR"
    assert d["path"] == "<root>.predicate.operands[0]"


def test_descriptor_error_no_path():
    err = DescriptorError("Something broke")
    assert str(err) == "Something broke"
    assert err.to_dict()["path"] is None


# -- translation and rendering -------------------------------------------------


def test_no_matching_pattern_to_dict():
    d = NoMatchingPattern("select on 'A' with [distinct]").to_dict()
    assert d == {
        "error": "NO_MATCHING_PATTERN",
        "subject": "select on 'A' with [distinct]",
    }


def test_binding_arity_mismatch():
    err = BindingArityMismatch("update-set", ["assignments"])
    assert "update-set" in str(err)
    assert err.to_dict()["missing"] == ["assignments"]


def test_unrenderable_shape():
    err = UnrenderableShape(object(), "no shell syntax")
    d = err.to_dict()
    assert d["construct"] == "object"
    assert d["reason"] == "no shell syntax"


# -- catalog -------------------------------------------------------------------


def test_placeholder_mismatch_sorted():
    err = PlaceholderMismatch("r", {"b", "a"}, {"z"})
    d = err.to_dict()
    assert d["relational_only"] == ["a", "b"]
    assert d["document_only"] == ["z"]
    assert "Unbound placeholders: z." in str(err)


def test_hierarchy():
    for err in (DuplicateRuleId("r"), CatalogFrozen("r"), PlaceholderMismatch("r", set(), set())):
        assert isinstance(err, CatalogError)
        assert isinstance(err, TranslationError)
    assert DuplicateRuleId("r").to_dict() == {"error": "DUPLICATE_RULE_ID", "rule_id": "r"}


def test_base_to_dict():
    d = CatalogFrozen("late").to_dict()
    assert d["error"] == "CatalogFrozen"
    assert "frozen" in d["message"]
