"""
Codezoo Editor: Preview Renderer

Combines compiled html/css/js into one document and hands it to a
script-sandboxed context. Every render is a full document replace: the
preview's JS state is destroyed and recreated, nothing is patched in place.
"""

from __future__ import annotations

import html as html_lib
from dataclasses import dataclass
from typing import Callable

from engine.editor.types import PreviewPayload

# Scripts run, but the document gets an opaque origin (no same-origin trust).
IFRAME_SANDBOX = "allow-scripts"
SANDBOX_CSP = "sandbox allow-scripts"


def build_preview_document(html: str, css: str, js: str) -> str:
    """Compose the preview document: styles in head, markup then script in body."""
    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<style>{css}</style>
</head>
<body>
{html}
<script>{js}</script>
</body>
</html>"""


def iframe_markup(document: str, title: str = "Preview") -> str:
    """Sandboxed iframe element carrying the document inline via srcdoc."""
    return (
        f'<iframe title="{html_lib.escape(title)}" sandbox="{IFRAME_SANDBOX}" '
        f'srcdoc="{html_lib.escape(document, quote=True)}"></iframe>'
    )


@dataclass(frozen=True)
class RenderedPreview:
    document: str
    generation: int


class PreviewRenderer:
    """Holds the currently displayed preview document."""

    def __init__(self, on_render: Callable[[RenderedPreview], None] | None = None):
        self.on_render = on_render
        self._current: RenderedPreview | None = None
        self._generation = 0

    @property
    def current(self) -> RenderedPreview | None:
        return self._current

    def render(self, payload: PreviewPayload) -> RenderedPreview:
        self._generation += 1
        self._current = RenderedPreview(
            document=build_preview_document(payload.html, payload.css, payload.js),
            generation=self._generation,
        )
        if self.on_render is not None:
            self.on_render(self._current)
        return self._current

    def reset(self) -> None:
        self._current = None
