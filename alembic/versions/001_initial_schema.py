"""Initial schema: users, pens, pen revisions, and RLS policies.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Resolves app.user_id to a uuid, or NULL for system connections.
    # Policies call this instead of casting current_setting() directly.
    op.execute("""
        CREATE OR REPLACE FUNCTION get_app_user_id() RETURNS uuid AS $$
        DECLARE
            val text;
        BEGIN
            val := current_setting('app.user_id', true);
            IF val IS NULL OR val = '' THEN
                RETURN NULL;
            END IF;
            RETURN val::uuid;
        END;
        $$ LANGUAGE plpgsql STABLE;
    """)

    # Create users table
    op.execute("""
        CREATE TABLE users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email TEXT UNIQUE NOT NULL,
            display_name TEXT NOT NULL,
            password_hash TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    op.execute("ALTER TABLE users ENABLE ROW LEVEL SECURITY")
    op.execute("ALTER TABLE users FORCE ROW LEVEL SECURITY")

    op.execute("""
        CREATE POLICY users_select_own ON users
        FOR SELECT
        USING (get_app_user_id() IS NULL OR id = get_app_user_id());
    """)

    op.execute("""
        CREATE POLICY users_update_own ON users
        FOR UPDATE
        USING (get_app_user_id() IS NULL OR id = get_app_user_id());
    """)

    # Registration runs on a system connection
    op.execute("""
        CREATE POLICY users_insert_allow ON users
        FOR INSERT
        WITH CHECK (true);
    """)

    # Create pens table
    op.execute("""
        CREATE TABLE pens (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            owner_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title TEXT NOT NULL DEFAULT 'Untitled Pen',
            slug TEXT UNIQUE,
            visibility TEXT NOT NULL DEFAULT 'PRIVATE'
                CHECK (visibility IN ('PRIVATE', 'UNLISTED', 'PUBLIC')),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    op.execute("CREATE INDEX idx_pens_owner_updated ON pens(owner_id, updated_at DESC)")

    op.execute("ALTER TABLE pens ENABLE ROW LEVEL SECURITY")
    op.execute("ALTER TABLE pens FORCE ROW LEVEL SECURITY")

    op.execute("""
        CREATE POLICY pens_all_own ON pens
        FOR ALL
        USING (get_app_user_id() IS NULL OR owner_id = get_app_user_id())
        WITH CHECK (get_app_user_id() IS NULL OR owner_id = get_app_user_id());
    """)

    # Create pen_revisions table. Rows are immutable once written.
    op.execute("""
        CREATE TABLE pen_revisions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            pen_id UUID NOT NULL REFERENCES pens(id) ON DELETE CASCADE,
            author_id UUID NOT NULL REFERENCES users(id),
            rev_number INTEGER NOT NULL CHECK (rev_number > 0),
            kind TEXT NOT NULL DEFAULT 'SNAPSHOT' CHECK (kind IN ('SNAPSHOT', 'AUTOSAVE')),
            html TEXT NOT NULL DEFAULT '',
            css TEXT NOT NULL DEFAULT '',
            js TEXT NOT NULL DEFAULT '',
            meta JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            UNIQUE (pen_id, rev_number)
        );
    """)

    op.execute("ALTER TABLE pen_revisions ENABLE ROW LEVEL SECURITY")
    op.execute("ALTER TABLE pen_revisions FORCE ROW LEVEL SECURITY")

    # SELECT and INSERT only: no policy grants UPDATE or DELETE
    op.execute("""
        CREATE POLICY pen_revisions_select_own ON pen_revisions
        FOR SELECT
        USING (
            get_app_user_id() IS NULL OR
            pen_id IN (SELECT id FROM pens WHERE owner_id = get_app_user_id())
        );
    """)

    op.execute("""
        CREATE POLICY pen_revisions_insert_own ON pen_revisions
        FOR INSERT
        WITH CHECK (
            get_app_user_id() IS NULL OR (
                author_id = get_app_user_id()
                AND pen_id IN (SELECT id FROM pens WHERE owner_id = get_app_user_id())
            )
        );
    """)


def downgrade():
    op.execute("DROP TABLE IF EXISTS pen_revisions CASCADE")
    op.execute("DROP TABLE IF EXISTS pens CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
    op.execute("DROP FUNCTION IF EXISTS get_app_user_id()")
