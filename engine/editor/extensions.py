"""
Editor extension registry.

Holds the editor-side language configuration the client needs: which editor
language each (pane, preprocessor) pair uses and which characters trigger
abbreviation expansion in each language. Registration happens once, through
an explicit, idempotent ensure_initialized() call made by the host at startup.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from engine.editor.types import (
    EDITOR_PANES,
    PREPROCESSOR_ENUMS,
    MarkupPreprocessor,
    PaneId,
    ScriptPreprocessor,
    StylePreprocessor,
)

logger = logging.getLogger(__name__)

_DIGITS = list("0123456789")
_MARKUP_TRIGGERS = ["!", ".", "}", ":", "*", "$", "]", "/", ">", *_DIGITS]

ABBREVIATION_TRIGGERS: dict[str, list[str]] = {
    "html": _MARKUP_TRIGGERS,
    "pug": _MARKUP_TRIGGERS,
    "xml": [".", "}", "*", "$", "]", "/", ">", *_DIGITS],
    "css": [":", "!", "-", *_DIGITS],
    "scss": [":", "!", "-", *_DIGITS],
    "less": [":", "!", "-", *_DIGITS],
    "javascript": ["!", ".", "}", "*", "$", "]", "/", ">", *_DIGITS],
    "typescript": ["!", ".", "}", "*", "$", "]", "/", ">", *_DIGITS],
}

# Languages that borrow another language's abbreviation rules.
MAPPED_LANGUAGES: dict[str, str] = {"handlebars": "html", "php": "html", "twig": "html"}

EDITOR_LANGUAGES: dict[tuple[PaneId, str], str] = {
    ("html", MarkupPreprocessor.NONE): "html",
    ("html", MarkupPreprocessor.PUG): "pug",
    ("html", MarkupPreprocessor.MARKDOWN): "markdown",
    ("css", StylePreprocessor.NONE): "css",
    ("css", StylePreprocessor.SCSS): "scss",
    ("css", StylePreprocessor.LESS): "less",
    ("js", ScriptPreprocessor.NONE): "javascript",
    ("js", ScriptPreprocessor.TYPESCRIPT): "typescript",
    ("js", ScriptPreprocessor.BABEL): "javascript",
    ("js", ScriptPreprocessor.COFFEESCRIPT): "coffeescript",
}


class EditorExtensions:
    """Registry of per-language editor features, populated once."""

    def __init__(self):
        self._lock = threading.Lock()
        self._initialized = False
        self._triggers: dict[str, list[str]] = {}
        self._languages: dict[tuple[PaneId, str], str] = {}

    @property
    def initialized(self) -> bool:
        return self._initialized

    def ensure_initialized(self) -> bool:
        """
        Register abbreviation triggers and editor languages.

        Safe to call any number of times.

        Returns:
            True if this call performed the registration
        """
        with self._lock:
            if self._initialized:
                return False
            self._triggers = {language: list(chars) for language, chars in ABBREVIATION_TRIGGERS.items()}
            for alias, target in MAPPED_LANGUAGES.items():
                self._triggers[alias] = list(ABBREVIATION_TRIGGERS[target])
            self._languages = dict(EDITOR_LANGUAGES)
            self._initialized = True
        logger.info("extensions: registered %d abbreviation languages", len(self._triggers))
        return True

    def _require(self) -> None:
        if not self._initialized:
            raise RuntimeError("Editor extensions not initialized. Call ensure_initialized() first.")

    def triggers_for(self, language: str) -> list[str] | None:
        self._require()
        chars = self._triggers.get(language)
        return list(chars) if chars is not None else None

    def language_for(self, pane: PaneId, preprocessor: str) -> str:
        self._require()
        return self._languages[(pane, PREPROCESSOR_ENUMS[pane](preprocessor))]

    def config(self) -> dict[str, Any]:
        """Pane, preprocessor and language configuration for the editor client."""
        self._require()
        return {
            "panes": [
                {
                    "id": pane.id,
                    "label": pane.label,
                    "language": pane.language,
                    "preprocessors": [
                        {"id": option.value, "language": self._languages[(pane.id, option)]}
                        for option in PREPROCESSOR_ENUMS[pane.id]
                    ],
                }
                for pane in EDITOR_PANES
            ],
            "abbreviation_triggers": {language: list(chars) for language, chars in self._triggers.items()},
        }


editor_extensions = EditorExtensions()
