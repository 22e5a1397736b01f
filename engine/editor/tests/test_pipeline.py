"""
Edit pipeline tests: shared debounce, immediate code notifications,
last-good retention, stale-result discard and reset semantics.
"""

from __future__ import annotations

import asyncio
import functools
from unittest.mock import AsyncMock

import pytest

from engine.editor.compiler import compile_pen_source
from engine.editor.node_bridge import PreprocessorError
from engine.editor.pipeline import EditPipeline
from engine.editor.preprocessors import PreprocessorAdapter
from engine.editor.types import (
    UNKNOWN_COMPILE_ERROR,
    CompileError,
    CompileResult,
    PaneSources,
    PreprocessorSelection,
    PreviewPayload,
    StylePreprocessor,
)

pytestmark = pytest.mark.asyncio


class FakeCompiler:
    """compile_fn that echoes its input. A css pane containing 'broken' fails."""

    def __init__(self):
        self.calls: list[dict[str, str]] = []
        self.preprocessors: list[PreprocessorSelection] = []
        self.hold = False
        self.gates: list[asyncio.Event] = []
        self.raise_error: Exception | None = None

    async def __call__(self, code, preprocessors):
        self.calls.append(dict(code))
        self.preprocessors.append(preprocessors)
        if self.hold:
            gate = asyncio.Event()
            self.gates.append(gate)
            await gate.wait()
        if self.raise_error is not None:
            raise self.raise_error
        errors = [CompileError("css", "broken stylesheet")] if "broken" in code["css"] else []
        return CompileResult(
            compiled_html=code["html"],
            compiled_css="" if errors else code["css"],
            compiled_js=code["js"],
            errors=errors,
        )


class Recorder:
    def __init__(self):
        self.code_changes: list[dict[str, str]] = []
        self.errors: list[list[CompileError] | None] = []
        self.previews: list[PreviewPayload] = []


@pytest.fixture
def compiler() -> FakeCompiler:
    return FakeCompiler()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def pipeline(scheduler, compiler, recorder) -> EditPipeline:
    return EditPipeline(
        scheduler,
        compile_fn=compiler,
        on_code_change=recorder.code_changes.append,
        on_compile_errors_change=recorder.errors.append,
        on_preview=recorder.previews.append,
    )


async def load(pipeline: EditPipeline, scheduler, html="<p>a</p>", css="p{}", js="1") -> None:
    pipeline.reset("pen-1", PaneSources(html=html, css=css, js=js), PreprocessorSelection())
    await scheduler.advance(0)
    await pipeline.flush()


async def settle(scheduler, pipeline: EditPipeline, seconds: float = 0.35) -> None:
    await scheduler.advance(seconds)
    await pipeline.flush()


async def spin(times: int = 5) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


class TestReset:
    async def test_reset_compiles_immediately(self, pipeline, scheduler, compiler, recorder):
        await load(pipeline, scheduler)

        assert len(compiler.calls) == 1
        assert recorder.previews == [PreviewPayload(html="<p>a</p>", css="p{}", js="1")]
        assert pipeline.last_good == recorder.previews[0]

    async def test_reset_does_not_notify_code_change(self, pipeline, scheduler, recorder):
        await load(pipeline, scheduler)
        assert recorder.code_changes == []


class TestDebounce:
    async def test_single_timer_shared_across_panes(self, pipeline, scheduler, compiler):
        await load(pipeline, scheduler)

        pipeline.on_edit("html", "<p>b</p>")
        await scheduler.advance(0.2)
        pipeline.on_edit("css", "p{color:red}")
        await scheduler.advance(0.2)
        assert len(compiler.calls) == 1
        assert pipeline.has_pending_compile

        await settle(scheduler, pipeline, 0.15)

        assert len(compiler.calls) == 2
        assert compiler.calls[-1] == {"html": "<p>b</p>", "css": "p{color:red}", "js": "1"}
        assert not pipeline.has_pending_compile

    async def test_burst_of_edits_compiles_once(self, pipeline, scheduler, compiler):
        await load(pipeline, scheduler)
        for i in range(10):
            pipeline.on_edit("js", f"console.log({i})")
            await scheduler.advance(0.1)

        await settle(scheduler, pipeline)

        assert len(compiler.calls) == 2
        assert compiler.calls[-1]["js"] == "console.log(9)"

    async def test_code_change_is_reported_before_debounce(self, pipeline, scheduler, recorder):
        await load(pipeline, scheduler)

        pipeline.on_edit("html", "<p>now</p>")

        assert recorder.code_changes == [{"html": "<p>now</p>", "css": "p{}", "js": "1"}]

    async def test_unknown_pane_rejected(self, pipeline, scheduler):
        await load(pipeline, scheduler)
        with pytest.raises(ValueError):
            pipeline.on_edit("python", "print()")

    async def test_preprocessor_change_recompiles(self, pipeline, scheduler, compiler):
        await load(pipeline, scheduler)

        pipeline.set_preprocessors(PreprocessorSelection(css=StylePreprocessor.SCSS))
        await settle(scheduler, pipeline)

        assert compiler.preprocessors[-1].css is StylePreprocessor.SCSS


class TestLastGood:
    async def test_failure_keeps_previous_preview(self, pipeline, scheduler, recorder):
        await load(pipeline, scheduler)
        good = pipeline.last_good

        pipeline.on_edit("css", "broken {")
        pipeline.on_edit("html", "<p>new markup</p>")
        await settle(scheduler, pipeline)

        assert pipeline.last_good == good
        assert len(recorder.previews) == 1
        assert recorder.errors == [[CompileError("css", "broken stylesheet")]]

    async def test_recovery_clears_errors_and_renders(self, pipeline, scheduler, recorder):
        await load(pipeline, scheduler)
        pipeline.on_edit("css", "broken {")
        await settle(scheduler, pipeline)

        pipeline.on_edit("css", "p{color:blue}")
        await settle(scheduler, pipeline)

        assert recorder.errors[-1] is None
        assert pipeline.errors == []
        assert recorder.previews[-1].css == "p{color:blue}"

    async def test_unchanged_errors_are_not_reannounced(self, pipeline, scheduler, recorder):
        await load(pipeline, scheduler)
        pipeline.on_edit("css", "broken {")
        await settle(scheduler, pipeline)
        pipeline.on_edit("css", "broken { still")
        await settle(scheduler, pipeline)

        assert len(recorder.errors) == 1

    async def test_compile_exception_becomes_markup_error(self, pipeline, scheduler, compiler, recorder):
        compiler.raise_error = RuntimeError("orchestrator exploded")
        await load(pipeline, scheduler)

        assert pipeline.errors == [CompileError("html", UNKNOWN_COMPILE_ERROR)]
        assert pipeline.last_good is None
        assert recorder.previews == []

    async def test_broken_less_keeps_last_good_through_real_adapter(self, scheduler, recorder):
        adapter = PreprocessorAdapter()
        adapter.node_bridge.transform = AsyncMock(
            side_effect=["a {\n  color: red;\n}\n", PreprocessorError("missing closing `}`")]
        )
        pipeline = EditPipeline(
            scheduler,
            compile_fn=functools.partial(compile_pen_source, adapter=adapter),
            on_compile_errors_change=recorder.errors.append,
            on_preview=recorder.previews.append,
        )
        pipeline.reset(
            "pen-1",
            PaneSources(html="<p>a</p>", css="@c: red;\na { color: @c; }", js="1"),
            PreprocessorSelection(css=StylePreprocessor.LESS),
        )
        await scheduler.advance(0)
        await pipeline.flush()
        good = pipeline.last_good
        assert good == PreviewPayload(html="<p>a</p>", css="a {\n  color: red;\n}\n", js="1")

        pipeline.on_edit("css", "a { color: red")
        await settle(scheduler, pipeline)

        assert pipeline.last_good == good
        assert pipeline.errors == [CompileError("css", "missing closing `}`")]
        assert recorder.previews == [good]
        assert adapter.node_bridge.transform.await_count == 2


class TestStaleResults:
    async def test_older_compile_never_overwrites_newer(self, pipeline, scheduler, compiler, recorder):
        await load(pipeline, scheduler)
        compiler.hold = True

        pipeline.on_edit("html", "<p>second</p>")
        await scheduler.advance(0.35)
        pipeline.on_edit("html", "<p>third</p>")
        await scheduler.advance(0.35)
        await spin()
        assert len(compiler.gates) == 2

        compiler.gates[1].set()
        await spin()
        assert pipeline.last_good.html == "<p>third</p>"

        compiler.gates[0].set()
        await pipeline.flush()

        assert pipeline.last_good.html == "<p>third</p>"
        assert [p.html for p in recorder.previews] == ["<p>a</p>", "<p>third</p>"]

    async def test_in_order_results_both_apply(self, pipeline, scheduler, compiler, recorder):
        await load(pipeline, scheduler)
        compiler.hold = True

        pipeline.on_edit("html", "<p>second</p>")
        await scheduler.advance(0.35)
        pipeline.on_edit("html", "<p>third</p>")
        await scheduler.advance(0.35)
        await spin()

        compiler.gates[0].set()
        await spin()
        compiler.gates[1].set()
        await pipeline.flush()

        assert [p.html for p in recorder.previews] == ["<p>a</p>", "<p>second</p>", "<p>third</p>"]

    async def test_reset_drops_in_flight_results(self, pipeline, scheduler, compiler, recorder):
        await load(pipeline, scheduler)
        compiler.hold = True
        pipeline.on_edit("html", "<p>old pen</p>")
        await scheduler.advance(0.35)
        await spin()
        assert pipeline.is_compiling

        compiler.hold = False
        pipeline.reset("pen-2", PaneSources(html="<p>new pen</p>"), PreprocessorSelection())
        await scheduler.advance(0)
        await pipeline.flush()

        assert pipeline.pen_id == "pen-2"
        assert pipeline.last_good.html == "<p>new pen</p>"
        assert "<p>old pen</p>" not in [p.html for p in recorder.previews]

    async def test_reset_cancels_pending_debounce(self, pipeline, scheduler, compiler):
        await load(pipeline, scheduler)
        pipeline.on_edit("html", "<p>typed</p>")

        pipeline.reset("pen-2", PaneSources(html="<p>fresh</p>"), PreprocessorSelection())
        await settle(scheduler, pipeline, 1.0)

        assert [c["html"] for c in compiler.calls] == ["<p>a</p>", "<p>fresh</p>"]


class TestCompileNow:
    async def test_skips_debounce(self, pipeline, scheduler, compiler):
        await load(pipeline, scheduler)
        pipeline.on_edit("js", "2")

        result = await pipeline.compile_now()

        assert result.compiled_js == "2"
        assert not pipeline.has_pending_compile
        assert len(compiler.calls) == 2
