"""
Integration tests for the WebSocket editor endpoint.

Tests /ws/pens/{pen_id}: authentication, session start, edits flowing to
previews, protocol errors, saves and disconnect cleanup.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from backend.auth import SESSION_COOKIE
from backend.main import app
from backend.routes.ws import pen_websocket
from engine.editor.preview import build_preview_document


@pytest.fixture
def client():
    """Return a synchronous TestClient for WS testing."""
    return TestClient(app)


@pytest.fixture
def signed_in(test_user):
    with patch("backend.routes.ws.get_user_from_session", AsyncMock(return_value=test_user)):
        yield {"cookie": f"{SESSION_COOKIE}=token"}


@pytest.fixture(autouse=True)
def fast_timers():
    with (
        patch("backend.routes.ws.settings.PREVIEW_DEBOUNCE_MS", 0),
        patch("backend.routes.ws.settings.AUTOSAVE_DELAY_MS", 60_000),
    ):
        yield


def receive_until(ws, msg_type: str, limit: int = 20) -> dict:
    """Read messages until one of the wanted type arrives."""
    for _ in range(limit):
        msg = json.loads(ws.receive_text())
        if msg["type"] == msg_type:
            return msg
    pytest.fail(f"{msg_type} never received")


class TestWebSocketConnect:
    def test_rejects_missing_cookie(self, client):
        with client.websocket_connect(f"/ws/pens/{uuid4()}") as ws:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_text()
        assert exc_info.value.code == 4401

    def test_rejects_invalid_session(self, client):
        invalid = AsyncMock(side_effect=HTTPException(status_code=401, detail="Invalid session token."))
        with (
            patch("backend.routes.ws.get_user_from_session", invalid),
            client.websocket_connect(f"/ws/pens/{uuid4()}", headers={"cookie": f"{SESSION_COOKIE}=bad"}) as ws,
        ):
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_text()
        assert exc_info.value.code == 4401

    def test_rejects_bad_pen_id(self, client, signed_in):
        with client.websocket_connect("/ws/pens/not-a-uuid", headers=signed_in) as ws:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_text()
        assert exc_info.value.code == 4404

    def test_rejects_unknown_pen(self, client, signed_in):
        with (
            patch("backend.routes.ws.pen_repo.get_for_editor", AsyncMock(return_value=None)),
            client.websocket_connect(f"/ws/pens/{uuid4()}", headers=signed_in) as ws,
        ):
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_text()
        assert exc_info.value.code == 4404

    def test_session_ready_then_preview(self, client, signed_in, make_pen):
        """Connecting loads the pen and compiles it right away."""
        pen = make_pen(html="<b>x</b>", css="b{}", js="", preprocessors={"css": "scss"}, rev_number=4)
        with (
            patch("backend.routes.ws.pen_repo.get_for_editor", AsyncMock(return_value=pen)),
            client.websocket_connect(f"/ws/pens/{pen.id}", headers=signed_in) as ws,
        ):
            ready = json.loads(ws.receive_text())
            assert ready["type"] == "session.ready"
            assert ready["pen_id"] == str(pen.id)
            assert ready["code"] == {"html": "<b>x</b>", "css": "b{}", "js": ""}
            assert ready["preprocessors"] == {"html": "none", "css": "scss", "js": "none"}
            assert ready["save"]["status"] == "idle"
            assert ready["save"]["has_unsaved_changes"] is False
            assert ready["layout"]["layout"] in ("horizontal", "vertical")

            preview = receive_until(ws, "preview")
            assert "<b>x</b>" in preview["document"]
            assert preview["generation"] == 1


class TestWebSocketEditing:
    def test_edit_marks_dirty_and_recompiles(self, client, signed_in, make_pen):
        pen = make_pen(html="<p>a</p>", css="", js="")
        with (
            patch("backend.routes.ws.pen_repo.get_for_editor", AsyncMock(return_value=pen)),
            client.websocket_connect(f"/ws/pens/{pen.id}", headers=signed_in) as ws,
        ):
            receive_until(ws, "preview")

            ws.send_text(json.dumps({"type": "edit", "pane": "html", "source": "<p>b</p>"}))

            status = receive_until(ws, "save.status")
            assert status["status"] == "dirty"
            assert status["has_unsaved_changes"] is True

            preview = receive_until(ws, "preview")
            assert preview["document"] == build_preview_document("<p>b</p>", "", "")
            assert preview["generation"] == 2

    def test_compile_errors_reported(self, client, signed_in, make_pen):
        pen = make_pen(html="", css="", js="")
        with (
            patch("backend.routes.ws.pen_repo.get_for_editor", AsyncMock(return_value=pen)),
            client.websocket_connect(f"/ws/pens/{pen.id}", headers=signed_in) as ws,
        ):
            receive_until(ws, "preview")

            ws.send_text(json.dumps({"type": "set_preprocessors", "preprocessors": {"css": "scss"}}))
            ws.send_text(json.dumps({"type": "edit", "pane": "css", "source": "a { color: $nope; }"}))

            errors = receive_until(ws, "compile.errors")
            assert [e["pane"] for e in errors["errors"]] == ["css"]

    def test_collapse_emits_layout(self, client, signed_in, make_pen):
        pen = make_pen()
        with (
            patch("backend.routes.ws.pen_repo.get_for_editor", AsyncMock(return_value=pen)),
            client.websocket_connect(f"/ws/pens/{pen.id}", headers=signed_in) as ws,
        ):
            receive_until(ws, "preview")

            ws.send_text(json.dumps({"type": "collapse", "pane": "css"}))

            layout = receive_until(ws, "layout")
            css = next(p for p in layout["panes"] if p["id"] == "css")
            assert css["collapsed"] is True


class TestWebSocketErrors:
    def test_malformed_json(self, client, signed_in, make_pen):
        pen = make_pen()
        with (
            patch("backend.routes.ws.pen_repo.get_for_editor", AsyncMock(return_value=pen)),
            client.websocket_connect(f"/ws/pens/{pen.id}", headers=signed_in) as ws,
        ):
            receive_until(ws, "preview")
            ws.send_text("this is not json{{{")
            error = receive_until(ws, "error")
            assert error["error"] == "Malformed message"

    def test_unknown_message_type(self, client, signed_in, make_pen):
        pen = make_pen()
        with (
            patch("backend.routes.ws.pen_repo.get_for_editor", AsyncMock(return_value=pen)),
            client.websocket_connect(f"/ws/pens/{pen.id}", headers=signed_in) as ws,
        ):
            receive_until(ws, "preview")
            ws.send_text(json.dumps({"type": "publish"}))
            error = receive_until(ws, "error")
            assert error["error"].startswith("Invalid publish message")

    def test_edit_missing_source(self, client, signed_in, make_pen):
        pen = make_pen()
        with (
            patch("backend.routes.ws.pen_repo.get_for_editor", AsyncMock(return_value=pen)),
            client.websocket_connect(f"/ws/pens/{pen.id}", headers=signed_in) as ws,
        ):
            receive_until(ws, "preview")
            ws.send_text(json.dumps({"type": "edit", "pane": "html"}))
            error = receive_until(ws, "error")
            assert error["error"].startswith("Invalid edit message")


class TestWebSocketSave:
    def test_manual_save(self, client, signed_in, make_pen, test_user):
        """save → saving, then idle once the revision is written."""
        pen = make_pen(html="<p>a</p>", css="", js="")
        saved = make_pen(html="<p>b</p>", css="", js="", rev_number=2)
        save_revision = AsyncMock(return_value=saved)
        with (
            patch("backend.routes.ws.pen_repo.get_for_editor", AsyncMock(return_value=pen)),
            patch("backend.routes.ws.pen_repo.save_revision", save_revision),
            client.websocket_connect(f"/ws/pens/{pen.id}", headers=signed_in) as ws,
        ):
            receive_until(ws, "preview")
            ws.send_text(json.dumps({"type": "edit", "pane": "html", "source": "<p>b</p>"}))
            assert receive_until(ws, "save.status")["status"] == "dirty"

            ws.send_text(json.dumps({"type": "save"}))

            saving = receive_until(ws, "save.status")
            assert saving["status"] == "saving"
            assert saving["mode"] == "manual"
            idle = receive_until(ws, "save.status")
            assert idle["status"] == "idle"
            assert idle["has_unsaved_changes"] is False

        user_id, pen_id, req = save_revision.call_args.args
        assert user_id == test_user.id
        assert pen_id == pen.id
        assert req.html == "<p>b</p>"
        assert req.kind == "SNAPSHOT"

    def test_failed_save_reports_error(self, client, signed_in, make_pen):
        pen = make_pen()
        with (
            patch("backend.routes.ws.pen_repo.get_for_editor", AsyncMock(return_value=pen)),
            patch("backend.routes.ws.pen_repo.save_revision", AsyncMock(return_value=None)),
            client.websocket_connect(f"/ws/pens/{pen.id}", headers=signed_in) as ws,
        ):
            receive_until(ws, "preview")
            ws.send_text(json.dumps({"type": "edit", "pane": "js", "source": "x()"}))
            receive_until(ws, "save.status")
            ws.send_text(json.dumps({"type": "save"}))

            assert receive_until(ws, "save.status")["status"] == "saving"
            failed = receive_until(ws, "save.status")
            assert failed["status"] == "error"
            assert failed["error"]


class FakeSocket:
    """Server-side WebSocket stand-in: replays messages, then disconnects once released."""

    def __init__(self, messages: list[dict], release: asyncio.Event):
        self.cookies = {SESSION_COOKIE: "token"}
        self.accept = AsyncMock()
        self.close = AsyncMock()
        self.send_text = AsyncMock()
        self._messages = list(messages)
        self._release = release

    async def receive_text(self) -> str:
        if self._messages:
            return json.dumps(self._messages.pop(0))
        await self._release.wait()
        raise WebSocketDisconnect(1000)


class TestWebSocketClose:
    @pytest.mark.asyncio(loop_scope="session")
    async def test_disconnect_cancels_in_flight_save(self, signed_in, make_pen):
        pen = make_pen()
        save_started = asyncio.Event()
        events: list[str] = []

        async def hanging_save(*args):
            save_started.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                events.append("save cancelled")
                raise

        socket = FakeSocket(
            [{"type": "edit", "pane": "html", "source": "<p>b</p>"}, {"type": "save"}],
            release=save_started,
        )
        with (
            patch("backend.routes.ws.pen_repo.get_for_editor", AsyncMock(return_value=pen)),
            patch("backend.routes.ws.pen_repo.save_revision", AsyncMock(side_effect=hanging_save)),
        ):
            await asyncio.wait_for(pen_websocket(socket, str(pen.id)), timeout=5)

        assert events == ["save cancelled"]
        socket.close.assert_not_awaited()
