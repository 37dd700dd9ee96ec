"""ORM models for the challenge, reward and ranking engine."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from greenquest.db.base import Base, BigIntPK, UTCDateTime
from greenquest.challenges.creator import Creator, SystemCreator, UserCreator


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table. Profile data lives outside this service."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    gamification: Mapped[UserGamification | None] = relationship(
        "UserGamification", back_populates="user", uselist=False
    )


class UserGamification(Base):
    """Denormalized gamification block, one row per user."""

    __tablename__ = "user_gamification"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    experience: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_action_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_actions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    co2_saved: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")
    water_saved: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")
    goals_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    challenges_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    user: Mapped[User] = relationship("User", back_populates="gamification")


class UserBadge(Base):
    """Badges held by users, unique per (user_id, name)."""

    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="user_badges_user_id_name_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class UserTitle(Base):
    """Display titles unlocked by users."""

    __tablename__ = "user_titles"
    __table_args__ = (
        UniqueConstraint("user_id", "title", name="user_titles_user_id_title_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


class Challenge(Base):
    """Time-boxed goal with a numeric target."""

    __tablename__ = "challenges"
    __table_args__ = (
        Index("idx_challenges_recurrence_active", "recurrence", "is_active"),
        Index("idx_challenges_category", "category"),
        Index("idx_challenges_end_date", "end_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    recurrence: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    target_value: Mapped[float] = mapped_column(Float, nullable=False)
    target_unit: Mapped[str] = mapped_column(String(32), nullable=False)
    target_description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    reward_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reward_badge: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    reward_title: Mapped[str | None] = mapped_column(String(128), nullable=True)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    min_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_by_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_user_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    total_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    @property
    def creator(self) -> Creator:
        if self.created_by_system:
            return SystemCreator()
        return UserCreator(self.created_by_user_id or 0)

    @creator.setter
    def creator(self, value: Creator) -> None:
        if isinstance(value, UserCreator):
            self.created_by_system = False
            self.created_by_user_id = value.user_id
        else:
            self.created_by_system = True
            self.created_by_user_id = None

    @property
    def completion_rate(self) -> float:
        if self.total_participants <= 0:
            return 0.0
        return round(self.completed_count / self.total_participants * 100, 2)


class ChallengeParticipation(Base):
    """A user's membership and progress within one challenge."""

    __tablename__ = "challenge_participants"
    __table_args__ = (
        Index("idx_participants_user", "user_id"),
        Index("idx_participants_challenge", "challenge_id"),
    )

    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    # Historical record that survives recurring resets
    ever_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    times_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class UserChallenge(Base):
    """User-side challenge reference (active or completed set)."""

    __tablename__ = "user_challenges"
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="user_challenges_user_id_challenge_id_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    times_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    last_completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Action log
# ---------------------------------------------------------------------------


class Action(Base):
    """Logged sustainable action feeding progress, streaks and rankings."""

    __tablename__ = "actions"
    __table_args__ = (
        Index("idx_actions_user_performed", "user_id", "performed_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action_type: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="times")
    co2_saved: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    water_saved: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    performed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


class Goal(Base):
    """Personal target whose progress is derived from the action log."""

    __tablename__ = "goals"
    __table_args__ = (
        Index("idx_goals_user_status", "user_id", "status"),
        Index("idx_goals_end_date", "end_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    target_value: Mapped[float] = mapped_column(Float, nullable=False)
    target_unit: Mapped[str] = mapped_column(String(32), nullable=False)
    action_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    reward_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reward_badge: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    reward_title: Mapped[str | None] = mapped_column(String(128), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    @property
    def percentage(self) -> float:
        if self.target_value <= 0:
            return 0.0
        return round(min(self.progress / self.target_value * 100, 100.0), 1)


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


class Reward(Base):
    """Criteria-gated reward catalog entry."""

    __tablename__ = "rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    value: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    points_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rarity: Mapped[str] = mapped_column(String(16), nullable=False, default="common")
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="milestones")
    criteria: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_repeatable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    available_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    max_recipients: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class RewardRedemption(Base):
    """Redemption ledger, also the reward's recipient list."""

    __tablename__ = "reward_redemptions"
    __table_args__ = (
        Index("idx_redemptions_user", "user_id"),
        Index("idx_redemptions_reward", "reward_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reward_id: Mapped[int] = mapped_column(Integer, ForeignKey("rewards.id", ondelete="CASCADE"), nullable=False)
    points_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    redeemed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    reward: Mapped[Reward] = relationship("Reward", lazy="joined")


# ---------------------------------------------------------------------------
# Rankings
# ---------------------------------------------------------------------------


class Ranking(Base):
    """Per-category leaderboard row keyed by (user_id, category)."""

    __tablename__ = "rankings"
    __table_args__ = (
        Index("idx_rankings_category_rank", "category", "rank"),
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    category: Mapped[str] = mapped_column(String(16), primary_key=True)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    previous_rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rank_change: Mapped[str] = mapped_column(String(8), nullable=False, default="new")
    goals_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actions_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    challenges_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    co2_saved: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_updated: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
