"""
Codezoo Editor: Editing Session

One EditorSession per open editor. It wires the layout engine, edit
pipeline, preview renderer and save state machine together for a single pen,
and resets all of them when the editor navigates to another pen.

Outward notifications go through a single on_event(type, payload) callback
so a host (the WebSocket route) can forward them to the client.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from engine.editor.autosave import SaveFn, SaveStateMachine
from engine.editor.compiler import compile_pen_source
from engine.editor.layout import LayoutEngine
from engine.editor.pipeline import CompileFn, EditPipeline
from engine.editor.preview import PreviewRenderer, RenderedPreview
from engine.editor.timers import AsyncioScheduler, TimerScheduler
from engine.editor.types import (
    AUTOSAVE_DELAY_MS,
    DEBOUNCE_MS,
    MIN_PANE_PERCENT,
    CompileError,
    Layout,
    PaneId,
    PenState,
    PreprocessorSelection,
    RevisionDraft,
    SavedRevision,
    SaveMode,
)

logger = logging.getLogger(__name__)

EventFn = Callable[[str, dict[str, Any]], None]


class PenNotLoaded(RuntimeError):
    """Raised when a session is used before load()."""


async def _no_persistence(draft: RevisionDraft) -> SavedRevision:
    raise RuntimeError("No persistence configured for this editor session")


class EditorSession:
    """Editor core for one pen at a time."""

    def __init__(
        self,
        save_fn: SaveFn | None = None,
        *,
        scheduler: TimerScheduler | None = None,
        compile_fn: CompileFn = compile_pen_source,
        debounce_ms: int = DEBOUNCE_MS,
        autosave_delay_ms: int = AUTOSAVE_DELAY_MS,
        min_pane_percent: float = MIN_PANE_PERCENT,
        on_event: EventFn | None = None,
        on_code_change: Callable[[dict[str, str]], None] | None = None,
    ):
        self.scheduler = scheduler or AsyncioScheduler()
        self.min_pane_percent = min_pane_percent
        self.on_event = on_event
        self.on_code_change = on_code_change

        self.pen: PenState | None = None
        self.editor_generation = 0
        self.layout = LayoutEngine(min_pane_percent=min_pane_percent)
        self.renderer = PreviewRenderer(on_render=self._on_render)
        self.pipeline = EditPipeline(
            self.scheduler,
            compile_fn=compile_fn,
            debounce_ms=debounce_ms,
            on_code_change=self._on_code_change,
            on_compile_errors_change=self._on_compile_errors_change,
            on_preview=self.renderer.render,
        )
        self.saves = SaveStateMachine(
            save_fn or _no_persistence,
            snapshot_fn=self._save_snapshot,
            scheduler=self.scheduler,
            autosave_delay_ms=autosave_delay_ms,
            on_status_change=self._on_save_status,
        )

    # -- lifecycle ----------------------------------------------------------

    def load(self, pen: PenState) -> None:
        """
        Open a pen, discarding all state that belonged to the previous one.

        The overall editor/preview split is a host preference and survives;
        pane collapse state and sizes start fresh.
        """
        logger.info("session: loading pen_id=%s", pen.pen_id)
        self.pen = pen
        self.editor_generation += 1
        self.layout = LayoutEngine(layout=self.layout.layout, min_pane_percent=self.min_pane_percent)
        self.renderer.reset()
        self.saves.reset(pen.pen_id, pen.updated_at)
        self.pipeline.reset(pen.pen_id, pen.sources, pen.preprocessors)
        self._emit(
            "session.ready",
            {
                "pen_id": pen.pen_id,
                "title": pen.title,
                "editor_generation": self.editor_generation,
                "code": self.pipeline.sources.snapshot(),
                "preprocessors": self.pipeline.preprocessors.to_dict(),
                "layout": self.layout.snapshot(),
                "save": self.saves.to_dict(),
            },
        )

    def close(self) -> None:
        self.pipeline.close()
        self.saves.close()
        close = getattr(self.scheduler, "close", None)
        if close is not None:
            close()

    async def flush(self) -> None:
        await self.pipeline.flush()

    def _require_pen(self) -> PenState:
        if self.pen is None:
            raise PenNotLoaded("No pen loaded. Call load() first.")
        return self.pen

    # -- edits --------------------------------------------------------------

    def on_edit(self, pane: PaneId, source: str) -> None:
        self._require_pen()
        self.pipeline.on_edit(pane, source)

    def set_preprocessors(self, preprocessors: PreprocessorSelection) -> None:
        self._require_pen()
        self.pipeline.set_preprocessors(preprocessors)
        self.saves.mark_dirty()

    async def save(self, mode: SaveMode = "manual") -> bool:
        self._require_pen()
        return await self.saves.save(mode)

    # -- layout -------------------------------------------------------------

    def set_layout(self, layout: Layout) -> None:
        self.layout.set_orientation(layout)
        self._emit_layout()

    def toggle_layout(self) -> None:
        self.layout.toggle_orientation()
        self._emit_layout()

    def collapse(self, pane: PaneId) -> bool:
        return self._layout_changed(self.layout.collapse(pane))

    def expand(self, pane: PaneId) -> bool:
        return self._layout_changed(self.layout.expand(pane))

    def toggle_collapse(self, pane: PaneId) -> bool:
        return self._layout_changed(self.layout.toggle_collapse(pane))

    def begin_resize(self, divider_index: int, pointer_position: float, container_size: float) -> bool:
        return self._layout_changed(self.layout.begin_resize(divider_index, pointer_position, container_size))

    def update_resize(self, pointer_position: float) -> bool:
        return self._layout_changed(self.layout.update_resize(pointer_position))

    def end_resize(self) -> None:
        was_dragging = self.layout.dragging_divider is not None
        self.layout.end_resize()
        self._layout_changed(was_dragging)

    def _layout_changed(self, changed: bool) -> bool:
        if changed:
            self._emit_layout()
        return changed

    def _emit_layout(self) -> None:
        self._emit("layout", self.layout.snapshot())

    # -- collaborator hooks -------------------------------------------------

    def _on_code_change(self, code: dict[str, str]) -> None:
        self.saves.mark_dirty()
        if self.on_code_change is not None:
            self.on_code_change(code)

    def _on_compile_errors_change(self, errors: list[CompileError] | None) -> None:
        self._emit("compile.errors", {"errors": [e.to_dict() for e in errors] if errors else None})

    def _on_render(self, rendered: RenderedPreview) -> None:
        self._emit("preview", {"document": rendered.document, "generation": rendered.generation})

    def _on_save_status(self, saves: SaveStateMachine) -> None:
        self._emit("save.status", saves.to_dict())

    def _save_snapshot(self) -> tuple[dict[str, str], dict[str, str]]:
        return self.pipeline.sources.snapshot(), self.pipeline.preprocessors.to_dict()

    def _emit(self, event_type: str, payload: dict[str, Any]) -> None:
        if self.on_event is not None:
            self.on_event(event_type, payload)
