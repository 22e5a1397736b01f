"""
WebSocket endpoint for live pen editing.

Accepts connections at /ws/pens/{pen_id}. Each connection owns one
EditorSession: client messages drive edits, layout and saves; session events
(preview documents, compile errors, layout, save status) stream back.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from backend.auth import SESSION_COOKIE, get_user_from_session
from backend.config import settings
from backend.models.pen import Preprocessors, SavePenRevisionRequest
from backend.models.user import User
from backend.repos.pen_repo import PenRepo
from engine.editor.session import EditorSession
from engine.editor.types import PreprocessorSelection, RevisionDraft, SavedRevision

logger = logging.getLogger(__name__)

# Application-defined close codes (4000-4999)
CLOSE_UNAUTHENTICATED = 4401
CLOSE_PEN_NOT_FOUND = 4404

pen_repo = PenRepo()

router = APIRouter(tags=["websocket"])


async def _authenticate(websocket: WebSocket) -> User | None:
    """Resolve the user from the session cookie. None if missing or invalid."""
    token = websocket.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    try:
        return await get_user_from_session(token)
    except HTTPException:
        return None


def _make_save_fn(user_id: UUID):
    """Persistence collaborator for the session's save state machine."""

    async def save(draft: RevisionDraft) -> SavedRevision:
        payload = await pen_repo.save_revision(
            user_id,
            UUID(draft.pen_id),
            SavePenRevisionRequest(
                html=draft.html,
                css=draft.css,
                js=draft.js,
                preprocessors=Preprocessors.model_validate(draft.preprocessors),
                kind=draft.kind,
            ),
        )
        if payload is None:
            raise LookupError(f"Pen {draft.pen_id} not found")
        rev = payload.latest_revision
        return SavedRevision(rev_number=rev.rev_number, updated_at=rev.updated_at)

    return save


async def _pump(websocket: WebSocket, outbox: asyncio.Queue[dict[str, Any]]) -> None:
    """Forward queued session events to the client in order."""
    while True:
        message = await outbox.get()
        try:
            await websocket.send_text(json.dumps(message))
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("ws: send after close dropped type=%s", message.get("type"))
            return


async def _dispatch(session: EditorSession, msg: dict[str, Any], tasks: set[asyncio.Task]) -> None:
    """
    Apply one client message to the session.

    Raises:
        ValueError, KeyError, TypeError: If the message is malformed
    """
    msg_type = msg.get("type")
    match msg_type:
        case "edit":
            source = msg["source"]
            if not isinstance(source, str):
                raise TypeError("source must be a string")
            session.on_edit(msg["pane"], source)
        case "set_preprocessors":
            session.set_preprocessors(PreprocessorSelection.from_dict(msg.get("preprocessors")))
        case "toggle_layout":
            session.toggle_layout()
        case "set_layout":
            session.set_layout(msg["layout"])
        case "collapse":
            session.collapse(msg["pane"])
        case "expand":
            session.expand(msg["pane"])
        case "toggle_collapse":
            session.toggle_collapse(msg["pane"])
        case "resize.begin":
            session.begin_resize(int(msg["divider"]), float(msg["position"]), float(msg["container_size"]))
        case "resize.update":
            session.update_resize(float(msg["position"]))
        case "resize.end":
            session.end_resize()
        case "save":
            task = asyncio.create_task(session.save("manual"))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
        case _:
            raise ValueError(f"Unknown message type: {msg_type!r}")


@router.websocket("/ws/pens/{pen_id}")
async def pen_websocket(websocket: WebSocket, pen_id: str) -> None:
    """
    Live editing session for one pen.

    Protocol:
      Client → Server:  edit, set_preprocessors, toggle_layout, set_layout,
                        collapse, expand, toggle_collapse,
                        resize.begin, resize.update, resize.end, save
      Server → Client:  session.ready, preview, compile.errors, layout,
                        save.status, error

    Closes with 4401 when the session cookie is missing or invalid and 4404
    when the pen does not exist or belongs to someone else.
    """
    await websocket.accept()

    user = await _authenticate(websocket)
    if user is None:
        logger.info("ws: rejecting unauthenticated connection pen_id=%s", pen_id)
        await websocket.close(code=CLOSE_UNAUTHENTICATED)
        return

    try:
        pen_uuid = UUID(pen_id)
    except ValueError:
        await websocket.close(code=CLOSE_PEN_NOT_FOUND)
        return

    pen = await pen_repo.get_for_editor(user.id, pen_uuid)
    if pen is None:
        logger.info("ws: pen not found pen_id=%s user_id=%s", pen_id, user.id)
        await websocket.close(code=CLOSE_PEN_NOT_FOUND)
        return

    outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def on_event(event_type: str, payload: dict[str, Any]) -> None:
        outbox.put_nowait({"type": event_type, **payload})

    session = EditorSession(
        _make_save_fn(user.id),
        debounce_ms=settings.PREVIEW_DEBOUNCE_MS,
        autosave_delay_ms=settings.AUTOSAVE_DELAY_MS,
        on_event=on_event,
    )
    save_tasks: set[asyncio.Task] = set()
    sender = asyncio.create_task(_pump(websocket, outbox))
    session.load(pen.to_pen_state())
    logger.info("ws: session opened pen_id=%s user_id=%s", pen_id, user.id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("ws: malformed message from client: %r", raw[:200])
                on_event("error", {"error": "Malformed message"})
                continue

            if not isinstance(msg, dict):
                on_event("error", {"error": "Malformed message"})
                continue

            try:
                await _dispatch(session, msg, save_tasks)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("ws: rejected %s message: %s", msg.get("type"), e)
                on_event("error", {"error": f"Invalid {msg.get('type')} message: {e}"})

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected: pen_id=%s", pen_id)
    finally:
        session.close()
        for task in list(save_tasks):
            task.cancel()
        await asyncio.gather(*save_tasks, return_exceptions=True)
        sender.cancel()
        logger.info("ws: session closed pen_id=%s", pen_id)
