"""
Codezoo Editor: Debounced Edit Pipeline

Decouples keystroke-level edits from recompilation:

  on_edit()        store source now, notify the code-changed collaborator now,
                   (re)start the single shared debounce timer
  timer fires      compile a snapshot of all three panes
  result arrives   apply it unless it is stale; keep last-good on failure

Stale results are discarded by sequence number: a compile that started
earlier than the latest applied compile never overwrites it. Results that
belong to a previous pen (before reset()) are dropped silently.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Awaitable, Callable, Mapping

from engine.editor.compiler import compile_pen_source
from engine.editor.timers import TimerHandle, TimerScheduler
from engine.editor.types import (
    DEBOUNCE_MS,
    UNKNOWN_COMPILE_ERROR,
    CompileError,
    CompileResult,
    PaneId,
    PaneSources,
    PreprocessorSelection,
    PreviewPayload,
)

logger = logging.getLogger(__name__)

CompileFn = Callable[[Mapping[str, str], PreprocessorSelection], Awaitable[CompileResult]]


class EditPipeline:
    """Per-session buffer between pane edits and the compile orchestrator."""

    def __init__(
        self,
        scheduler: TimerScheduler,
        compile_fn: CompileFn = compile_pen_source,
        debounce_ms: int = DEBOUNCE_MS,
        on_code_change: Callable[[dict[str, str]], None] | None = None,
        on_compile_errors_change: Callable[[list[CompileError] | None], None] | None = None,
        on_preview: Callable[[PreviewPayload], None] | None = None,
    ):
        self.scheduler = scheduler
        self.compile_fn = compile_fn
        self.debounce_ms = debounce_ms
        self.on_code_change = on_code_change
        self.on_compile_errors_change = on_compile_errors_change
        self.on_preview = on_preview

        self.pen_id: str | None = None
        self.sources = PaneSources()
        self.preprocessors = PreprocessorSelection()

        self._timer: TimerHandle | None = None
        self._seq = 0
        self._applied_seq = 0
        self._epoch = 0
        self._last_good: PreviewPayload | None = None
        self._errors: list[CompileError] = []
        self._in_flight: set[asyncio.Task] = set()

    # -- read access --------------------------------------------------------

    @property
    def last_good(self) -> PreviewPayload | None:
        return self._last_good

    @property
    def errors(self) -> list[CompileError]:
        return list(self._errors)

    @property
    def is_compiling(self) -> bool:
        return bool(self._in_flight)

    @property
    def has_pending_compile(self) -> bool:
        return self._timer is not None

    # -- session lifecycle --------------------------------------------------

    def reset(self, pen_id: str, sources: PaneSources, preprocessors: PreprocessorSelection) -> None:
        """
        Start over for a (possibly different) pen.

        Cancels the debounce timer, invalidates in-flight compiles, clears
        last-good and errors, then compiles the new sources immediately.
        """
        self._invalidate()
        self.pen_id = pen_id
        self.sources.replace(sources)
        self.preprocessors = dataclasses.replace(preprocessors)
        self._last_good = None
        self._set_errors([])
        self._schedule(0)

    def close(self) -> None:
        self._invalidate()

    def _invalidate(self) -> None:
        self.scheduler.cancel(self._timer)
        self._timer = None
        self._epoch += 1
        for task in list(self._in_flight):
            task.cancel()
        self._in_flight.clear()

    # -- edits --------------------------------------------------------------

    def on_edit(self, pane: PaneId, source: str) -> None:
        """Apply an edit now; recompile after the shared quiet period."""
        self.sources.set(pane, source)
        self._schedule(self.debounce_ms)
        if self.on_code_change is not None:
            self.on_code_change(self.sources.snapshot())

    def set_preprocessors(self, preprocessors: PreprocessorSelection) -> None:
        self.preprocessors = dataclasses.replace(preprocessors)
        self._schedule(self.debounce_ms)

    def _schedule(self, delay_ms: float) -> None:
        self.scheduler.cancel(self._timer)
        self._timer = self.scheduler.schedule(delay_ms / 1000, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._start_compile()

    # -- compile ------------------------------------------------------------

    async def compile_now(self) -> CompileResult | None:
        """Skip the debounce and compile the current sources. Returns None if the result was stale."""
        self.scheduler.cancel(self._timer)
        self._timer = None
        return await self._start_compile()

    async def flush(self) -> None:
        """Wait for every in-flight compile to settle."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def _start_compile(self) -> asyncio.Task:
        self._seq += 1
        task = asyncio.ensure_future(
            self._run_compile(
                self._seq,
                self._epoch,
                self.sources.snapshot(),
                dataclasses.replace(self.preprocessors),
            )
        )
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _run_compile(
        self,
        seq: int,
        epoch: int,
        code: dict[str, str],
        preprocessors: PreprocessorSelection,
    ) -> CompileResult | None:
        try:
            result = await self.compile_fn(code, preprocessors)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("pipeline: compile raised for pen_id=%s seq=%d", self.pen_id, seq)
            result = CompileResult(
                compiled_html="",
                compiled_css="",
                compiled_js="",
                errors=[CompileError(pane="html", message=UNKNOWN_COMPILE_ERROR)],
            )

        if epoch != self._epoch:
            logger.debug("pipeline: dropping result for previous pen seq=%d", seq)
            return None
        if seq < self._applied_seq:
            logger.debug("pipeline: discarding stale compile seq=%d (applied=%d)", seq, self._applied_seq)
            return None

        self._applied_seq = seq
        self._apply(result)
        return result

    def _apply(self, result: CompileResult) -> None:
        self._set_errors(result.errors)
        if not result.ok:
            # Keep the previous payload for all three panes.
            return
        self._last_good = result.payload()
        if self.on_preview is not None:
            self.on_preview(self._last_good)

    def _set_errors(self, errors: list[CompileError]) -> None:
        if errors == self._errors:
            return
        self._errors = list(errors)
        if self.on_compile_errors_change is not None:
            self.on_compile_errors_change(self.errors or None)
