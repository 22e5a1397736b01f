"""Repository for pens and their revisions."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

import asyncpg

from backend.db import user_conn
from backend.models.pen import (
    DEFAULT_CSS,
    DEFAULT_HTML,
    DEFAULT_JS,
    DEFAULT_PANEL_LAYOUT,
    DEFAULT_TITLE,
    Pen,
    PenEditorPayload,
    PenRevision,
    Preprocessors,
    SavePenRevisionRequest,
)


def _row_to_pen(row: asyncpg.Record) -> Pen:
    """Convert a database row to a Pen model."""
    return Pen(
        id=row["id"],
        owner_id=row["owner_id"],
        title=row["title"],
        slug=row["slug"],
        visibility=row["visibility"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_revision(row: asyncpg.Record) -> PenRevision:
    """Convert a database row to a PenRevision model."""
    return PenRevision(
        id=row["id"],
        pen_id=row["pen_id"],
        author_id=row["author_id"],
        rev_number=row["rev_number"],
        kind=row["kind"],
        html=row["html"],
        css=row["css"],
        js=row["js"],
        meta=row["meta"] or {},
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


async def _latest_revision(conn: asyncpg.Connection, pen_id: UUID) -> PenRevision | None:
    row = await conn.fetchrow(
        """
        SELECT * FROM pen_revisions
        WHERE pen_id = $1
        ORDER BY rev_number DESC
        LIMIT 1
        """,
        pen_id,
    )
    return _row_to_revision(row) if row else None


class PenRepo:
    """All pen-related database operations. RLS limits every query to the owner's pens."""

    async def create(self, user_id: UUID) -> Pen:
        """
        Create a new private pen with a starter revision.

        Args:
            user_id: Owner UUID

        Returns:
            Newly created Pen
        """
        pen_id = uuid4()
        now = datetime.now(UTC)
        meta = {
            "panelLayout": DEFAULT_PANEL_LAYOUT,
            "preprocessors": Preprocessors().model_dump(mode="json"),
        }

        async with user_conn(user_id) as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO pens (id, owner_id, title, visibility, created_at, updated_at)
                VALUES ($1, $2, $3, 'PRIVATE', $4, $4)
                RETURNING *
                """,
                pen_id,
                user_id,
                DEFAULT_TITLE,
                now,
            )
            await conn.execute(
                """
                INSERT INTO pen_revisions
                    (id, pen_id, author_id, rev_number, kind, html, css, js, meta, created_at, updated_at)
                VALUES ($1, $2, $3, 1, 'SNAPSHOT', $4, $5, $6, $7, $8, $8)
                """,
                uuid4(),
                pen_id,
                user_id,
                DEFAULT_HTML,
                DEFAULT_CSS,
                DEFAULT_JS,
                meta,
                now,
            )
            return _row_to_pen(row)

    async def list_for_user(self, user_id: UUID) -> list[Pen]:
        """
        List a user's pens.

        Args:
            user_id: Owner UUID

        Returns:
            List of Pen objects ordered by updated_at DESC
        """
        async with user_conn(user_id) as conn:
            rows = await conn.fetch("SELECT * FROM pens WHERE owner_id = $1 ORDER BY updated_at DESC", user_id)
            return [_row_to_pen(row) for row in rows]

    async def get_for_editor(self, user_id: UUID, pen_id: UUID) -> PenEditorPayload | None:
        """
        Load a pen and its newest revision for the editor.

        Args:
            user_id: Owner UUID
            pen_id: Pen UUID

        Returns:
            PenEditorPayload if found and owned by user, None otherwise
        """
        async with user_conn(user_id) as conn:
            row = await conn.fetchrow("SELECT * FROM pens WHERE id = $1 AND owner_id = $2", pen_id, user_id)
            if not row:
                return None
            revision = await _latest_revision(conn, pen_id)
            if revision is None:
                raise RuntimeError(f"Pen {pen_id} has no revisions")
            return PenEditorPayload.from_records(_row_to_pen(row), revision)

    async def save_revision(
        self, user_id: UUID, pen_id: UUID, req: SavePenRevisionRequest
    ) -> PenEditorPayload | None:
        """
        Append a new immutable revision and bump the pen's updated_at.

        The next revision number is computed under a row lock on the pen, so
        concurrent saves for the same pen get distinct numbers.

        Args:
            user_id: Author UUID (must own the pen)
            pen_id: Pen UUID
            req: Sources, optional preprocessors, and revision kind

        Returns:
            Serialized editor payload after the save, None if the pen is not owned by the user
        """
        now = datetime.now(UTC)

        async with user_conn(user_id) as conn:
            pen_row = await conn.fetchrow(
                "SELECT * FROM pens WHERE id = $1 AND owner_id = $2 FOR UPDATE",
                pen_id,
                user_id,
            )
            if not pen_row:
                return None

            previous = await _latest_revision(conn, pen_id)
            next_rev = (previous.rev_number if previous else 0) + 1
            meta = dict(previous.meta) if previous else {"panelLayout": DEFAULT_PANEL_LAYOUT}
            if req.preprocessors is not None:
                meta["preprocessors"] = req.preprocessors.model_dump(mode="json")

            rev_row = await conn.fetchrow(
                """
                INSERT INTO pen_revisions
                    (id, pen_id, author_id, rev_number, kind, html, css, js, meta, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $10)
                RETURNING *
                """,
                uuid4(),
                pen_id,
                user_id,
                next_rev,
                req.kind,
                req.html,
                req.css,
                req.js,
                meta,
                now,
            )
            pen_row = await conn.fetchrow(
                "UPDATE pens SET updated_at = $2 WHERE id = $1 RETURNING *",
                pen_id,
                now,
            )
            return PenEditorPayload.from_records(_row_to_pen(pen_row), _row_to_revision(rev_row))
