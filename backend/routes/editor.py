"""Editor support routes: stateless compile and client configuration."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from backend import config
from backend.auth import get_current_user
from backend.models.pen import CompilePenRequest, CompileResultResponse
from backend.models.user import User
from engine.editor.compiler import compile_pen_source
from engine.editor.extensions import editor_extensions
from engine.editor.preview import IFRAME_SANDBOX
from engine.editor.types import MIN_PANE_PERCENT

router = APIRouter(prefix="/api", tags=["editor"])


@router.post("/compile", status_code=200)
async def compile_code(
    req: CompilePenRequest,
    user: User = Depends(get_current_user),
) -> CompileResultResponse:
    """Compile html/css/js with the chosen preprocessors. Nothing is stored."""
    result = await compile_pen_source(req.code.model_dump(), req.preprocessors.to_selection())
    return CompileResultResponse.from_result(result)


@router.get("/editor/config", status_code=200)
async def editor_config() -> dict[str, Any]:
    """Pane languages, preprocessor options, abbreviation triggers and timing for the editor client."""
    editor_extensions.ensure_initialized()
    return {
        **editor_extensions.config(),
        "preview_debounce_ms": config.settings.PREVIEW_DEBOUNCE_MS,
        "autosave_delay_ms": config.settings.AUTOSAVE_DELAY_MS,
        "min_pane_percent": MIN_PANE_PERCENT,
        "iframe_sandbox": IFRAME_SANDBOX,
    }
