"""ORM models for the gamification engine and the activity tables it reads.

The activity tables (lesson progress, quiz attempts, ...) are owned by the
content services; the engine only counts rows in them.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learnhub.db.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


class RewardDefinition(Base):
    """Reward catalogue entry and the criteria that earn it."""

    __tablename__ = "reward_definitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    icon: Mapped[str] = mapped_column(String(64), nullable=False)
    color: Mapped[str] = mapped_column(String(32), nullable=False)
    points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tier: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    criteria_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    criteria_target: Mapped[float] = mapped_column(Float, nullable=False)
    criteria_subject_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    criteria_category_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    is_repeatable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class UserReward(Base):
    """Rewards earned by users: UNIQUE(user_id, reward_id); repeats bump times_earned."""

    __tablename__ = "user_rewards"
    __table_args__ = (UniqueConstraint("user_id", "reward_id", name="user_rewards_user_id_reward_id_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    reward_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reward_definitions.id", ondelete="CASCADE"), nullable=False
    )
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    times_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    reward_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)

    reward: Mapped[RewardDefinition] = relationship("RewardDefinition", lazy="joined")


class RewardPointValues(Base):
    """Persisted point-rate overrides: a single row (id=1)."""

    __tablename__ = "reward_point_values"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    lesson_completed: Mapped[float] = mapped_column(Float, nullable=False)
    quiz_question_correct: Mapped[float] = mapped_column(Float, nullable=False)
    quiz_question_wrong: Mapped[float] = mapped_column(Float, nullable=False)
    quiz_perfect_score: Mapped[float] = mapped_column(Float, nullable=False)
    puzzle_solved: Mapped[float] = mapped_column(Float, nullable=False)
    coding_problem_solved: Mapped[float] = mapped_column(Float, nullable=False)
    coding_problem_perfect: Mapped[float] = mapped_column(Float, nullable=False)
    streak_day_bonus: Mapped[float] = mapped_column(Float, nullable=False)
    subject_enrolled: Mapped[float] = mapped_column(Float, nullable=False)
    achievement_earned: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------


class UserPoints(Base):
    """Denormalized points summary: single row per user, O(1) reads.

    ``version`` is the optimistic-lock counter: a concurrent writer that
    loaded an older version fails its UPDATE with StaleDataError.
    """

    __tablename__ = "user_points"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    total_points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, index=True)
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    points_to_next_level: Mapped[float] = mapped_column(Float, nullable=False, default=10.0)
    tier: Mapped[str] = mapped_column(String(16), nullable=False, default="bronze", index=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Breakdown by category
    lessons_points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    quizzes_points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    puzzles_points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    coding_points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    achievements_points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bonuses_points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Reward counters
    badges_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    achievements_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    milestones_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


class PointsLedger(Base):
    """Append-only log of every point delta applied to a user."""

    __tablename__ = "points_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    activity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    points: Mapped[float] = mapped_column(Float, nullable=False)
    entry_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Activity tables (written by content services)
# ---------------------------------------------------------------------------


class LessonProgress(Base):
    """Per-user lesson progress."""

    __tablename__ = "user_lesson_progress"
    __table_args__ = (UniqueConstraint("user_id", "lesson_id", name="uq_user_lesson_progress"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    lesson_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    time_spent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # minutes
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class QuizAttempt(Base):
    """One submitted quiz attempt."""

    __tablename__ = "user_quiz_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    quiz_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    time_spent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # minutes
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class AttemptedQuestion(Base):
    """Individual question answers across quizzes, puzzles and coding."""

    __tablename__ = "user_attempted_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    question_id: Mapped[str] = mapped_column(String(64), nullable=False)
    question_type: Mapped[str] = mapped_column(String(16), nullable=False, default="quiz")
    subject_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    category_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class PuzzleAttempt(Base):
    """Puzzle attempt; status is solved | attempted | failed."""

    __tablename__ = "user_puzzle_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    puzzle_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class CodingAttempt(Base):
    """Coding submission; status is passed | failed | partial."""

    __tablename__ = "user_coding_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    question_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    accuracy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class SubjectEnrollment(Base):
    """User enrollment in a subject."""

    __tablename__ = "user_subject_enrollments"
    __table_args__ = (UniqueConstraint("user_id", "subject_id", name="uq_user_subject_enrollment"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    category_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
