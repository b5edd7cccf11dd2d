"""Shared fixtures for querymap tests."""

from __future__ import annotations

import pytest

from querymap import (
    DescriptorParser,
    Renderer,
    Translator,
    build_default_catalog,
)


@pytest.fixture
def catalog():
    """Default frozen pattern catalog."""
    return build_default_catalog()


@pytest.fixture
def parser() -> DescriptorParser:
    return DescriptorParser()


@pytest.fixture
def translator(catalog) -> Translator:
    return Translator(catalog)


@pytest.fixture
def renderer() -> Renderer:
    return Renderer()


@pytest.fixture
def translate(parser, translator, renderer):
    """Parse, translate and render a raw description."""

    def _run(raw):
        return renderer.render(translator.translate(parser.parse(raw)))

    return _run
