"""End-to-end translations of the reference scenarios."""

from __future__ import annotations

import json
import re

import pytest

from querymap import UnsupportedPredicateShape, translate_description


def _squash(text: str) -> str:
    return re.sub(r"\s+", "", text)


def test_regex_match(translate):
    out = translate(
        {
            "collection": "Products",
            "predicate": {"kind": "like", "field": "description", "value": "BOOK"},
        }
    )
    assert _squash(out) == _squash("db.Products.find({description: /.*BOOK.*/})")


def test_membership(translate):
    out = translate(
        {
            "collection": "ShoppingCarts",
            "predicate": {
                "kind": "inList",
                "field": "shoppingCartProducts",
                "value": "5cd1a0475334fe0009133102",
            },
        }
    )
    assert _squash(out) == _squash(
        'db.ShoppingCarts.find({shoppingCartProducts: {$in: ["5cd1a0475334fe0009133102"]}})'
    )


def test_unsupported_shape(parser):
    with pytest.raises(UnsupportedPredicateShape) as exc_info:
        parser.parse(
            {
                "collection": "Articles",
                "predicate": {"kind": "FULL_TEXT_SEARCH", "field": "body", "value": "x"},
            }
        )
    assert exc_info.value.kind == "FULL_TEXT_SEARCH"
    assert exc_info.value.path == "<root>.predicate"


def test_projection(translate):
    out = translate(
        {
            "collection": "Accounts",
            "projectedFields": ["createdAt", "updatedAt"],
            "excludeId": True,
        }
    )
    assert _squash(out) == _squash(
        "db.Accounts.find({}, {_id:0, createdAt:1, updatedAt:1})"
    )


# -- one-call helper -----------------------------------------------------------


def test_translate_description_accepts_json():
    raw = json.dumps(
        {
            "table": "Orders",
            "predicate": {
                "kind": "and",
                "operands": [
                    {"kind": "eq", "field": "status", "value": "shipped"},
                    {"kind": ">", "field": "total", "value": 100},
                ],
            },
        }
    )
    assert (
        translate_description(raw)
        == 'db.Orders.find({status: "shipped", total: {$gt: 100}})'
    )


def test_translate_description_uses_given_catalog(catalog):
    out = translate_description(
        {"collection": "Products", "distinct": "category"}, catalog=catalog
    )
    assert out == 'db.Products.distinct("category")'
