"""
Postgres pool for pens, revisions and users.

Repos open connections through user_conn() or system_conn(), each wrapped
in a transaction with app.user_id set for the row-level security policies
on users, pens and pen_revisions.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from uuid import UUID

import asyncpg

from backend import config

pool: asyncpg.Pool | None = None


async def init_pool() -> None:
    global pool
    pool = await asyncpg.create_pool(
        dsn=config.settings.DATABASE_URL,
        min_size=2,
        max_size=20,
        command_timeout=60,
        init=_init_connection,
    )


async def close_pool() -> None:
    global pool
    if pool is not None:
        await pool.close()
        pool = None


async def _init_connection(conn: asyncpg.Connection) -> None:
    """UUID columns decode to uuid.UUID; pen meta (jsonb) decodes to dicts."""
    await conn.set_type_codec("uuid", encoder=str, decoder=UUID, schema="pg_catalog")
    for json_type in ("jsonb", "json"):
        await conn.set_type_codec(json_type, encoder=json.dumps, decoder=json.loads, schema="pg_catalog")


def _require_pool() -> asyncpg.Pool:
    if pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")
    return pool


@asynccontextmanager
async def user_conn(user_id: str | UUID):
    """
    Connection that only sees the given user's pens and revisions.

    Revisions are insert/select only under RLS, so a pen save through this
    connection cannot rewrite history.
    """
    async with _require_pool().acquire() as conn:
        async with conn.transaction():
            await conn.execute("SELECT set_config('app.user_id', $1, true)", str(user_id))
            yield conn


@asynccontextmanager
async def system_conn():
    """Unscoped connection for account lookup at login and registration."""
    async with _require_pool().acquire() as conn:
        async with conn.transaction():
            # Empty app.user_id makes get_app_user_id() NULL, which every policy
            # treats as system access. Transaction-local (true).
            await conn.execute("SELECT set_config('app.user_id', '', true)")
            yield conn
