"""Compile orchestrator: runs the three pane transforms concurrently and aggregates errors."""

from __future__ import annotations

import asyncio
from typing import Mapping

from engine.editor.preprocessors import PreprocessorAdapter, default_adapter
from engine.editor.types import CompileError, CompileResult, PreprocessorSelection


async def compile_pen_source(
    code: Mapping[str, str],
    preprocessors: PreprocessorSelection | None = None,
    adapter: PreprocessorAdapter | None = None,
) -> CompileResult:
    """
    Compile markup, style and script in parallel.

    Stateless per call. No pane's failure blocks or alters another pane's
    output; failed panes come back with empty output. Errors are listed in
    pane order (html, css, js) regardless of completion order.

    Args:
        code: Mapping with "html", "css" and "js" source strings
        preprocessors: Selection per pane (defaults to none everywhere)
        adapter: Preprocessor adapter (defaults to the module-level adapter)

    Returns:
        CompileResult with compiled output and zero to three errors
    """
    preprocessors = preprocessors or PreprocessorSelection()
    adapter = adapter or default_adapter

    html_out, css_out, js_out = await asyncio.gather(
        adapter.compile_markup(code.get("html", ""), preprocessors.html),
        adapter.compile_style(code.get("css", ""), preprocessors.css),
        adapter.compile_script(code.get("js", ""), preprocessors.js),
    )

    errors: list[CompileError] = [out.error for out in (html_out, css_out, js_out) if out.error is not None]

    return CompileResult(
        compiled_html=html_out.code,
        compiled_css=css_out.code,
        compiled_js=js_out.code,
        errors=errors,
    )
