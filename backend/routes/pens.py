"""Pen routes for the dashboard, the editor and the standalone preview."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import HTMLResponse, JSONResponse

from backend.auth import get_current_user
from backend.models.pen import (
    CompileResultResponse,
    CreatePenResponse,
    PenEditorPayload,
    PenSummary,
    SavePenRevisionRequest,
)
from backend.models.user import User
from backend.repos.pen_repo import PenRepo
from engine.editor.compiler import compile_pen_source
from engine.editor.preview import SANDBOX_CSP, build_preview_document

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pens", tags=["pens"])
pen_repo = PenRepo()

PEN_NOT_FOUND = "Pen not found."


@router.get("", status_code=200)
async def list_pens(user: User = Depends(get_current_user)) -> list[PenSummary]:
    """List the current user's pens, most recently updated first."""
    pens = await pen_repo.list_for_user(user.id)
    return [PenSummary.from_model(p) for p in pens]


@router.post("", status_code=201)
async def create_pen(user: User = Depends(get_current_user)) -> CreatePenResponse:
    """Create a new private pen with starter sources."""
    pen = await pen_repo.create(user.id)
    logger.info("pens: created pen_id=%s user_id=%s", pen.id, user.id)
    return CreatePenResponse(id=pen.id)


@router.get("/{pen_id}", status_code=200)
async def get_pen(
    pen_id: UUID,
    user: User = Depends(get_current_user),
) -> PenEditorPayload:
    """Load a pen and its latest revision for the editor."""
    pen = await pen_repo.get_for_editor(user.id, pen_id)
    if not pen:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PEN_NOT_FOUND)
    return pen


@router.post("/{pen_id}/revisions", status_code=201)
async def save_pen_revision(
    pen_id: UUID,
    req: SavePenRevisionRequest,
    user: User = Depends(get_current_user),
) -> PenEditorPayload:
    """Save the editor contents as a new immutable revision."""
    pen = await pen_repo.save_revision(user.id, pen_id, req)
    if not pen:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PEN_NOT_FOUND)
    return pen


@router.get("/{pen_id}/preview", status_code=200, response_model=None)
async def preview_pen(
    pen_id: UUID,
    user: User = Depends(get_current_user),
) -> HTMLResponse | JSONResponse:
    """
    Render the latest revision as a standalone preview document.

    The response carries a sandbox CSP so scripts run with an opaque origin.
    422 with the compile errors when any pane fails to compile.
    """
    pen = await pen_repo.get_for_editor(user.id, pen_id)
    if not pen:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PEN_NOT_FOUND)

    rev = pen.latest_revision
    result = await compile_pen_source(
        {"html": rev.html, "css": rev.css, "js": rev.js},
        rev.preprocessors.to_selection(),
    )
    if not result.ok:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            content=CompileResultResponse.from_result(result).model_dump(mode="json"),
        )

    document = build_preview_document(result.compiled_html, result.compiled_css, result.compiled_js)
    return HTMLResponse(content=document, headers={"Content-Security-Policy": SANDBOX_CSP})
