"""
Codezoo Editor: Preprocessor Adapter

Maps (pane, preprocessor, source) to compiled output or a per-pane error.
One handler per enum variant; every exception raised by a transform is
converted into a CompileError and never escapes the adapter.

Markdown and SCSS are pure-Python libraries run in a worker thread. Pug,
Less and the script transforms run in Node through the bridge; Pug template
code is JavaScript and is never evaluated by Python.
"""

from __future__ import annotations

import asyncio
import logging

import sass
from markdown_it import MarkdownIt

from engine.editor.node_bridge import NodeBridge
from engine.editor.types import (
    UNKNOWN_COMPILE_ERROR,
    CompileError,
    MarkupPreprocessor,
    PaneId,
    PaneOutput,
    ScriptPreprocessor,
    StylePreprocessor,
)

logger = logging.getLogger(__name__)

# GFM-compatible: commonmark plus tables, strikethrough and bare-URL autolinks; raw HTML passes through.
_markdown = MarkdownIt("commonmark", {"html": True, "linkify": True}).enable(["table", "strikethrough", "linkify"])


def safe_error(pane: PaneId, error: BaseException) -> CompileError:
    """Convert an exception into a CompileError, falling back to a generic message."""
    message = str(error).strip()
    return CompileError(pane=pane, message=message or UNKNOWN_COMPILE_ERROR)


# ---------------------------------------------------------------------------
# Synchronous transforms
# ---------------------------------------------------------------------------


def render_markdown(source: str) -> str:
    return _markdown.render(source)


def render_scss(source: str) -> str:
    """SCSS to expanded CSS, no source map."""
    return sass.compile(string=source, output_style="expanded")


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class PreprocessorAdapter:
    """Runs a single pane through its selected preprocessor."""

    def __init__(self, node_bridge: NodeBridge | None = None):
        self.node_bridge = node_bridge or NodeBridge()

    async def compile_markup(self, source: str, preprocessor: MarkupPreprocessor) -> PaneOutput:
        try:
            match preprocessor:
                case MarkupPreprocessor.NONE:
                    code = source
                case MarkupPreprocessor.PUG:
                    code = await self.node_bridge.transform("pug", source)
                case MarkupPreprocessor.MARKDOWN:
                    code = await asyncio.to_thread(render_markdown, source)
        except Exception as e:
            logger.debug("preprocessor: markup/%s failed: %s", preprocessor, e)
            return PaneOutput(code="", error=safe_error("html", e))
        return PaneOutput(code=code)

    async def compile_style(self, source: str, preprocessor: StylePreprocessor) -> PaneOutput:
        try:
            match preprocessor:
                case StylePreprocessor.NONE:
                    code = source
                case StylePreprocessor.SCSS:
                    code = await asyncio.to_thread(render_scss, source)
                case StylePreprocessor.LESS:
                    code = await self.node_bridge.transform("less", source)
        except Exception as e:
            logger.debug("preprocessor: style/%s failed: %s", preprocessor, e)
            return PaneOutput(code="", error=safe_error("css", e))
        return PaneOutput(code=code)

    async def compile_script(self, source: str, preprocessor: ScriptPreprocessor) -> PaneOutput:
        try:
            match preprocessor:
                case ScriptPreprocessor.NONE:
                    code = source
                case ScriptPreprocessor.TYPESCRIPT | ScriptPreprocessor.BABEL | ScriptPreprocessor.COFFEESCRIPT:
                    code = await self.node_bridge.transform(preprocessor.value, source)
        except Exception as e:
            logger.debug("preprocessor: script/%s failed: %s", preprocessor, e)
            return PaneOutput(code="", error=safe_error("js", e))
        return PaneOutput(code=code)

    async def compile_pane(self, pane: PaneId, preprocessor: str, source: str) -> PaneOutput:
        """Dispatch on pane role. Raises ValueError for an unknown pane or preprocessor name."""
        match pane:
            case "html":
                return await self.compile_markup(source, MarkupPreprocessor(preprocessor))
            case "css":
                return await self.compile_style(source, StylePreprocessor(preprocessor))
            case "js":
                return await self.compile_script(source, ScriptPreprocessor(preprocessor))
        raise ValueError(f"Unknown pane: {pane!r}")


# Default adapter, reconfigured by the host at startup (see configure()).
default_adapter = PreprocessorAdapter()


def configure(node_binary: str = "node", timeout: float = 10.0) -> PreprocessorAdapter:
    """Point the default adapter's Node bridge at a specific binary and timeout."""
    default_adapter.node_bridge = NodeBridge(node_binary=node_binary, timeout=timeout)
    return default_adapter
