"""Core tables.

Creates users, user_gamification, user_badges, user_titles, challenges,
challenge_participants, user_challenges, actions, rewards,
reward_redemptions and rankings.

Revision ID: 001_core_tables
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_core_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            username VARCHAR(30) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)

    # --- User Gamification (denormalized, one row per user) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_gamification (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            experience BIGINT NOT NULL DEFAULT 0,
            points BIGINT NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_action_date DATE,
            total_actions INTEGER NOT NULL DEFAULT 0,
            co2_saved DOUBLE PRECISION NOT NULL DEFAULT 0,
            water_saved DOUBLE PRECISION NOT NULL DEFAULT 0,
            goals_completed INTEGER NOT NULL DEFAULT 0,
            challenges_completed INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ
        )
    """)

    # --- User Badges / Titles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            icon VARCHAR(64),
            source VARCHAR(32) NOT NULL,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_badges_user_id_name_key UNIQUE (user_id, name)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_titles (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title VARCHAR(128) NOT NULL,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_titles_user_id_title_key UNIQUE (user_id, title)
        )
    """)

    # --- Challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenges (
            id SERIAL PRIMARY KEY,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            recurrence VARCHAR(16) NOT NULL,
            category VARCHAR(32) NOT NULL,
            target_value DOUBLE PRECISION NOT NULL CHECK (target_value > 0),
            target_unit VARCHAR(32) NOT NULL,
            target_description VARCHAR(256),
            reward_points INTEGER NOT NULL DEFAULT 0,
            reward_badge JSON,
            reward_title VARCHAR(128),
            difficulty VARCHAR(16) NOT NULL DEFAULT 'medium',
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ,
            is_active BOOLEAN NOT NULL DEFAULT true,
            min_level INTEGER NOT NULL DEFAULT 1,
            created_by_system BOOLEAN NOT NULL DEFAULT true,
            created_by_user_id BIGINT REFERENCES users(id) ON DELETE SET NULL,
            total_participants INTEGER NOT NULL DEFAULT 0,
            completed_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_challenges_recurrence_active
        ON challenges(recurrence, is_active)
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_challenges_category ON challenges(category)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_challenges_end_date ON challenges(end_date)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS challenge_participants (
            challenge_id INTEGER NOT NULL REFERENCES challenges(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            progress DOUBLE PRECISION NOT NULL DEFAULT 0,
            completed BOOLEAN NOT NULL DEFAULT false,
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            ever_completed BOOLEAN NOT NULL DEFAULT false,
            times_completed INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (challenge_id, user_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_participants_user ON challenge_participants(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_participants_challenge ON challenge_participants(challenge_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_challenges (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            challenge_id INTEGER NOT NULL REFERENCES challenges(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            times_completed INTEGER NOT NULL DEFAULT 0,
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_completed_at TIMESTAMPTZ,
            CONSTRAINT user_challenges_user_id_challenge_id_key UNIQUE (user_id, challenge_id)
        )
    """)

    # --- Action log ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS actions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            action_type VARCHAR(32) NOT NULL,
            quantity DOUBLE PRECISION NOT NULL DEFAULT 1,
            unit VARCHAR(32) NOT NULL DEFAULT 'times',
            co2_saved DOUBLE PRECISION NOT NULL DEFAULT 0,
            water_saved DOUBLE PRECISION NOT NULL DEFAULT 0,
            performed_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_actions_user_performed
        ON actions(user_id, performed_at)
    """)

    # --- Rewards ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS rewards (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(100) NOT NULL,
            description VARCHAR(500) NOT NULL DEFAULT '',
            type VARCHAR(16) NOT NULL,
            value VARCHAR(128) NOT NULL DEFAULT '',
            points_cost INTEGER NOT NULL DEFAULT 0 CHECK (points_cost >= 0),
            rarity VARCHAR(16) NOT NULL DEFAULT 'common',
            category VARCHAR(32) NOT NULL DEFAULT 'milestones',
            criteria JSON NOT NULL DEFAULT '{}',
            is_active BOOLEAN NOT NULL DEFAULT true,
            is_repeatable BOOLEAN NOT NULL DEFAULT false,
            available_until TIMESTAMPTZ,
            max_recipients INTEGER,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS reward_redemptions (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            reward_id INTEGER NOT NULL REFERENCES rewards(id) ON DELETE CASCADE,
            points_cost INTEGER NOT NULL,
            redeemed_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_redemptions_user ON reward_redemptions(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_redemptions_reward ON reward_redemptions(reward_id)")

    # --- Rankings ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS rankings (
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            category VARCHAR(16) NOT NULL,
            score DOUBLE PRECISION NOT NULL DEFAULT 0,
            rank INTEGER NOT NULL DEFAULT 0,
            previous_rank INTEGER NOT NULL DEFAULT 0,
            rank_change VARCHAR(8) NOT NULL DEFAULT 'new',
            goals_completed INTEGER NOT NULL DEFAULT 0,
            actions_completed INTEGER NOT NULL DEFAULT 0,
            challenges_completed INTEGER NOT NULL DEFAULT 0,
            streak_days INTEGER NOT NULL DEFAULT 0,
            co2_saved DOUBLE PRECISION NOT NULL DEFAULT 0,
            last_updated TIMESTAMPTZ,
            PRIMARY KEY (user_id, category)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_rankings_category_rank
        ON rankings(category, rank)
    """)


def downgrade() -> None:
    for table in [
        "rankings",
        "reward_redemptions",
        "rewards",
        "actions",
        "user_challenges",
        "challenge_participants",
        "challenges",
        "user_titles",
        "user_badges",
        "user_gamification",
        "users",
    ]:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
