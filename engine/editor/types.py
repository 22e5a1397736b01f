"""
Codezoo Editor: Shared Types

Data classes and closed enums used across the preprocessor adapter, compile
orchestrator, layout engine, edit pipeline, preview renderer and save state
machine. These are the contracts that bind the editor core together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Panes
# ---------------------------------------------------------------------------

PaneId = Literal["html", "css", "js"]

# Fixed pane order: markup, style, script.
PANE_IDS: tuple[PaneId, ...] = ("html", "css", "js")


@dataclass(frozen=True)
class PaneSpec:
    """Static description of one editor pane."""

    id: PaneId
    label: str
    language: str


EDITOR_PANES: tuple[PaneSpec, ...] = (
    PaneSpec(id="html", label="HTML", language="html"),
    PaneSpec(id="css", label="CSS", language="css"),
    PaneSpec(id="js", label="JavaScript", language="javascript"),
)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

MIN_PANE_PERCENT: float = 10
DEBOUNCE_MS: int = 350
AUTOSAVE_DELAY_MS: int = 4000
UNKNOWN_COMPILE_ERROR = "Unknown compile error"

Layout = Literal["horizontal", "vertical"]
SaveMode = Literal["manual", "autosave"]


# ---------------------------------------------------------------------------
# Preprocessors (one closed enum per pane role)
# ---------------------------------------------------------------------------


class MarkupPreprocessor(StrEnum):
    NONE = "none"
    PUG = "pug"
    MARKDOWN = "markdown"


class StylePreprocessor(StrEnum):
    NONE = "none"
    SCSS = "scss"
    LESS = "less"


class ScriptPreprocessor(StrEnum):
    NONE = "none"
    TYPESCRIPT = "typescript"
    BABEL = "babel"
    COFFEESCRIPT = "coffeescript"


PREPROCESSOR_ENUMS: dict[PaneId, type[StrEnum]] = {
    "html": MarkupPreprocessor,
    "css": StylePreprocessor,
    "js": ScriptPreprocessor,
}


@dataclass
class PreprocessorSelection:
    """Which preprocessor each pane runs before preview compilation."""

    html: MarkupPreprocessor = MarkupPreprocessor.NONE
    css: StylePreprocessor = StylePreprocessor.NONE
    js: ScriptPreprocessor = ScriptPreprocessor.NONE

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PreprocessorSelection:
        """
        Build a selection from a plain mapping.

        Missing keys fall back to ``none``. Unknown values raise ValueError.
        """
        data = data or {}
        return cls(
            html=MarkupPreprocessor(data.get("html", "none")),
            css=StylePreprocessor(data.get("css", "none")),
            js=ScriptPreprocessor(data.get("js", "none")),
        )

    def to_dict(self) -> dict[str, str]:
        return {"html": self.html.value, "css": self.css.value, "js": self.js.value}

    def for_pane(self, pane: PaneId) -> StrEnum:
        return getattr(self, pane)


# ---------------------------------------------------------------------------
# Pane sources
# ---------------------------------------------------------------------------


@dataclass
class PaneSources:
    """
    Current raw source per pane.

    Owned by the edit pipeline; compile and save operations read it through
    snapshot() so they never see a half-applied edit.
    """

    html: str = ""
    css: str = ""
    js: str = ""

    def get(self, pane: PaneId) -> str:
        if pane not in PANE_IDS:
            raise ValueError(f"Unknown pane: {pane!r}")
        return getattr(self, pane)

    def set(self, pane: PaneId, source: str) -> None:
        if pane not in PANE_IDS:
            raise ValueError(f"Unknown pane: {pane!r}")
        setattr(self, pane, source)

    def replace(self, other: PaneSources) -> None:
        self.html, self.css, self.js = other.html, other.css, other.js

    def snapshot(self) -> dict[str, str]:
        return {"html": self.html, "css": self.css, "js": self.js}


# ---------------------------------------------------------------------------
# Compile results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompileError:
    """A per-pane compile failure."""

    pane: PaneId
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"pane": self.pane, "message": self.message}


@dataclass(frozen=True)
class PaneOutput:
    """Result of running one pane through its preprocessor."""

    code: str
    error: CompileError | None = None


@dataclass
class CompileResult:
    """Aggregated result of compiling all three panes."""

    compiled_html: str
    compiled_css: str
    compiled_js: str
    errors: list[CompileError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def payload(self) -> PreviewPayload:
        return PreviewPayload(html=self.compiled_html, css=self.compiled_css, js=self.compiled_js)

    def to_dict(self) -> dict[str, Any]:
        return {
            "compiled_html": self.compiled_html,
            "compiled_css": self.compiled_css,
            "compiled_js": self.compiled_js,
            "errors": [e.to_dict() for e in self.errors] or None,
        }


@dataclass(frozen=True)
class PreviewPayload:
    """Compiled html/css/js handed to the preview renderer as one unit."""

    html: str
    css: str
    js: str


# ---------------------------------------------------------------------------
# Persistence contracts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RevisionDraft:
    """What the save state machine hands to the persistence collaborator."""

    pen_id: str
    html: str
    css: str
    js: str
    preprocessors: dict[str, str]
    kind: Literal["SNAPSHOT", "AUTOSAVE"]


@dataclass(frozen=True)
class SavedRevision:
    """What the persistence collaborator reports back after a save."""

    rev_number: int
    updated_at: datetime


@dataclass
class PenState:
    """Initial state for an editing session, as supplied by the load collaborator."""

    pen_id: str
    title: str
    sources: PaneSources
    preprocessors: PreprocessorSelection = field(default_factory=PreprocessorSelection)
    updated_at: datetime | None = None
