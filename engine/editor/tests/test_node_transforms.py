"""
Pug and Less through the real Node bridge.

Skipped unless `node` is on PATH and `npm install` has been run at the repo root.
"""

from __future__ import annotations

import shutil

import pytest

from engine.editor.compiler import compile_pen_source
from engine.editor.node_bridge import COMPILE_SCRIPT
from engine.editor.preprocessors import PreprocessorAdapter
from engine.editor.types import MarkupPreprocessor, PreprocessorSelection, StylePreprocessor

NODE_MODULES = COMPILE_SCRIPT.parent.parent / "node_modules"
REQUIRED_PACKAGES = ("pug", "less", "typescript", "@babel/core", "coffeescript")

pytestmark = [
    pytest.mark.asyncio,
    pytest.mark.skipif(
        shutil.which("node") is None or not all((NODE_MODULES / name).is_dir() for name in REQUIRED_PACKAGES),
        reason="node and the npm packages from package.json are required",
    ),
]


@pytest.fixture
def adapter() -> PreprocessorAdapter:
    return PreprocessorAdapter()


class TestPug:
    async def test_renders_tags_and_attributes(self, adapter):
        out = await adapter.compile_markup('a(href="/x") Go', MarkupPreprocessor.PUG)
        assert out.error is None
        assert out.code == '<a href="/x">Go</a>'

    async def test_expressions_are_javascript(self, adapter):
        out = await adapter.compile_markup("p= [1, 2].map(n => n * 2).join(',')", MarkupPreprocessor.PUG)
        assert out.code == "<p>2,4</p>"

    async def test_python_expression_fails_in_javascript(self, adapter):
        out = await adapter.compile_markup("p= __import__('os').getpid()", MarkupPreprocessor.PUG)
        assert out.code == ""
        assert out.error.pane == "html"
        assert "__import__" in out.error.message


class TestLess:
    async def test_variables_and_math(self, adapter):
        out = await adapter.compile_style("@w: 10px;\na { width: @w * 2; }", StylePreprocessor.LESS)
        assert out.error is None
        assert "width: 20px;" in out.code

    @pytest.mark.parametrize("source", ["a { color: red", ".a { .b; }"])
    async def test_invalid_source_is_one_css_error(self, adapter, source):
        result = await compile_pen_source(
            {"html": "", "css": source, "js": ""},
            PreprocessorSelection(css=StylePreprocessor.LESS),
            adapter=adapter,
        )
        assert [e.pane for e in result.errors] == ["css"]
        assert result.compiled_css == ""

    async def test_inline_javascript_is_disabled(self, adapter):
        out = await adapter.compile_style("@x: `1 + 1`;\na { b: @x; }", StylePreprocessor.LESS)
        assert out.code == ""
        assert out.error.pane == "css"
