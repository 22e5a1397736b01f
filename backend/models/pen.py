"""Pen models: pens, their immutable revisions, and editor/compile payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from engine.editor.types import (
    CompileResult,
    MarkupPreprocessor,
    PaneSources,
    PenState,
    PreprocessorSelection,
    ScriptPreprocessor,
    StylePreprocessor,
)

Visibility = Literal["PRIVATE", "UNLISTED", "PUBLIC"]
RevisionKind = Literal["SNAPSHOT", "AUTOSAVE"]

DEFAULT_TITLE = "Untitled Pen"
DEFAULT_HTML = "<!-- Start building your pen -->"
DEFAULT_CSS = "/* Add your styles */"
DEFAULT_JS = "// Write JavaScript here"
DEFAULT_PANEL_LAYOUT = "stacked"


class Preprocessors(BaseModel):
    """Preprocessor choice per pane, as stored in revision meta and sent over the wire."""

    model_config = {"extra": "forbid"}

    html: MarkupPreprocessor = MarkupPreprocessor.NONE
    css: StylePreprocessor = StylePreprocessor.NONE
    js: ScriptPreprocessor = ScriptPreprocessor.NONE

    def to_selection(self) -> PreprocessorSelection:
        return PreprocessorSelection(html=self.html, css=self.css, js=self.js)

    @classmethod
    def from_meta(cls, meta: dict[str, Any] | None) -> Preprocessors:
        """Read preprocessors from revision meta. Older revisions without meta get none everywhere."""
        return cls.model_validate((meta or {}).get("preprocessors") or {})


class Pen(BaseModel):
    """Core pen model. Represents a row in the pens table."""

    id: UUID
    owner_id: UUID
    title: str = DEFAULT_TITLE
    slug: str | None = None
    visibility: Visibility = "PRIVATE"
    created_at: datetime
    updated_at: datetime


class PenRevision(BaseModel):
    """One immutable row in the pen_revisions table."""

    id: UUID
    pen_id: UUID
    author_id: UUID
    rev_number: int
    kind: RevisionKind
    html: str
    css: str
    js: str
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class PenSummary(BaseModel):
    """Pen list entry for the dashboard."""

    id: UUID
    title: str
    slug: str | None
    visibility: Visibility
    updated_at: datetime

    @classmethod
    def from_model(cls, pen: Pen) -> PenSummary:
        return cls(
            id=pen.id,
            title=pen.title,
            slug=pen.slug,
            visibility=pen.visibility,
            updated_at=pen.updated_at,
        )


class EditorRevisionPayload(BaseModel):
    """Latest revision as the editor sees it."""

    id: UUID
    rev_number: int
    kind: RevisionKind
    html: str
    css: str
    js: str
    preprocessors: Preprocessors
    panel_layout: str | None = None
    updated_at: datetime


class PenEditorPayload(BaseModel):
    """Everything the editor needs to open a pen."""

    id: UUID
    title: str
    slug: str | None
    visibility: Visibility
    latest_revision: EditorRevisionPayload

    @classmethod
    def from_records(cls, pen: Pen, revision: PenRevision) -> PenEditorPayload:
        """Serialize a pen plus its newest revision."""
        return cls(
            id=pen.id,
            title=pen.title,
            slug=pen.slug,
            visibility=pen.visibility,
            latest_revision=EditorRevisionPayload(
                id=revision.id,
                rev_number=revision.rev_number,
                kind=revision.kind,
                html=revision.html,
                css=revision.css,
                js=revision.js,
                preprocessors=Preprocessors.from_meta(revision.meta),
                panel_layout=revision.meta.get("panelLayout"),
                updated_at=revision.updated_at,
            ),
        )

    def to_pen_state(self) -> PenState:
        """Initial state for an editor session."""
        rev = self.latest_revision
        return PenState(
            pen_id=str(self.id),
            title=self.title,
            sources=PaneSources(html=rev.html, css=rev.css, js=rev.js),
            preprocessors=rev.preprocessors.to_selection(),
            updated_at=rev.updated_at,
        )


class CreatePenResponse(BaseModel):
    """What POST /api/pens returns."""

    id: UUID


class SavePenRevisionRequest(BaseModel):
    """What the client sends to save the editor contents as a new revision."""

    model_config = {"extra": "forbid"}

    html: str
    css: str
    js: str
    preprocessors: Preprocessors | None = None
    kind: RevisionKind = "SNAPSHOT"


class PaneCode(BaseModel):
    model_config = {"extra": "forbid"}

    html: str = ""
    css: str = ""
    js: str = ""


class CompilePenRequest(BaseModel):
    """What the client sends to POST /api/compile."""

    model_config = {"extra": "forbid"}

    code: PaneCode
    preprocessors: Preprocessors = Field(default_factory=Preprocessors)


class CompileErrorResponse(BaseModel):
    pane: Literal["html", "css", "js"]
    message: str


class CompileResultResponse(BaseModel):
    """Compiled panes plus per-pane errors. errors is null when everything compiled."""

    compiled_html: str
    compiled_css: str
    compiled_js: str
    errors: list[CompileErrorResponse] | None = None

    @classmethod
    def from_result(cls, result: CompileResult) -> CompileResultResponse:
        return cls.model_validate(result.to_dict())
