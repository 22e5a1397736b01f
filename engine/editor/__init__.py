"""
Codezoo Editor: the in-process editor core.

Components:
  preprocessors (pane, preprocessor, source) → output | error
  compiler      three panes compiled concurrently, errors aggregated
  layout        collapsible, resizable N-pane stack
  pipeline      debounced edits, stale-result guard, last-good preview
  preview       sandboxed preview document
  autosave      dirty tracking, manual and timed saves
  session       all of the above bound to one pen
  extensions    one-time editor language registration
"""

from engine.editor.autosave import SaveStateMachine
from engine.editor.compiler import compile_pen_source
from engine.editor.extensions import editor_extensions
from engine.editor.layout import LayoutEngine
from engine.editor.pipeline import EditPipeline
from engine.editor.preview import PreviewRenderer, build_preview_document
from engine.editor.session import EditorSession, PenNotLoaded

__all__ = [
    "compile_pen_source",
    "LayoutEngine",
    "EditPipeline",
    "PreviewRenderer",
    "build_preview_document",
    "SaveStateMachine",
    "EditorSession",
    "PenNotLoaded",
    "editor_extensions",
]
