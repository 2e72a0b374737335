"""Initial schema — users and ai_audits.

Revision ID: eduaudit_001
Revises:
Create Date: 2026-10-18
"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "eduaudit_001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("""
    CREATE TABLE IF NOT EXISTS users (
        id              SERIAL PRIMARY KEY,
        email           VARCHAR(255) UNIQUE NOT NULL,
        password_hash   VARCHAR(255) NOT NULL,
        created_at      TIMESTAMP NOT NULL DEFAULT (NOW() AT TIME ZONE 'utc')
    )
    """)

    # Audits are written once and only read back by owner
    op.execute("""
    CREATE TABLE IF NOT EXISTS ai_audits (
        id                      SERIAL PRIMARY KEY,
        user_id                 INTEGER NOT NULL REFERENCES users(id),
        business_description    TEXT NOT NULL,
        current_revenue         TEXT,
        ai_response             TEXT NOT NULL,
        result                  JSONB,
        mode                    VARCHAR(20) NOT NULL DEFAULT 'structured',
        created_at              TIMESTAMP NOT NULL DEFAULT (NOW() AT TIME ZONE 'utc')
    )
    """)

    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_ai_audits_user_created "
        "ON ai_audits (user_id, created_at)"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_ai_audits_user_created")
    op.execute("DROP TABLE IF EXISTS ai_audits")
    op.execute("DROP TABLE IF EXISTS users")
