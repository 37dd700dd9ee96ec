"""Personal goals.

Revision ID: 002_goals
Revises: 001_core_tables
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_goals"
down_revision: str | None = "001_core_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS goals (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            type VARCHAR(16) NOT NULL,
            category VARCHAR(32) NOT NULL,
            target_value DOUBLE PRECISION NOT NULL CHECK (target_value > 0),
            target_unit VARCHAR(32) NOT NULL,
            action_type VARCHAR(32),
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL,
            progress DOUBLE PRECISION NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            priority VARCHAR(16) NOT NULL DEFAULT 'medium',
            reward_points INTEGER NOT NULL DEFAULT 0,
            reward_badge JSON,
            reward_title VARCHAR(128),
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_goals_user_status ON goals(user_id, status)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_goals_end_date ON goals(end_date)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS goals CASCADE")
