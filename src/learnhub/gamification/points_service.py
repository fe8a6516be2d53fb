"""Points award service: ledger, streak, level/tier and achievement bonuses.

Every write to a UserPoints row goes through the optimistic version check on
the model; a concurrent writer for the same user makes the flush fail with
StaleDataError and the whole award is replayed from a fresh read.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from learnhub.config import Settings, get_settings
from learnhub.db.models import PointsLedger, UserPoints
from learnhub.gamification.achievements import AchievementEvaluator
from learnhub.gamification.exceptions import ConcurrencyConflict, PersistenceFailure
from learnhub.gamification.levels import derive_level_tier
from learnhub.gamification.points import (
    ActivityType,
    PointValues,
    breakdown_column,
    calculate_points,
)
from learnhub.gamification.streaks import StreakState, advance_streak

logger = structlog.get_logger()

T = TypeVar("T")

# Tables whose unique keys two concurrent awards for one user can both try to claim.
_RACE_TABLES = ("user_points", "user_rewards")


def refresh_derived(record: UserPoints, settings: Settings | None = None) -> dict:
    """Recompute level, tier and points-to-next-level from total_points."""
    settings = settings or get_settings()
    level_info = derive_level_tier(
        record.total_points,
        settings.level_base_points,
        settings.level_scaling_factor,
    )
    record.current_level = level_info["level"]
    record.points_to_next_level = level_info["points_to_next_level"]
    record.tier = level_info["tier"]
    return level_info


def _new_user_points(user_id: str, settings: Settings) -> UserPoints:
    record = UserPoints(
        user_id=user_id,
        total_points=0.0,
        current_streak=0,
        longest_streak=0,
        lessons_points=0.0,
        quizzes_points=0.0,
        puzzles_points=0.0,
        coding_points=0.0,
        achievements_points=0.0,
        bonuses_points=0.0,
        badges_count=0,
        achievements_count=0,
        milestones_count=0,
        updated_at=datetime.now(timezone.utc),
    )
    refresh_derived(record, settings)
    return record


async def _select_user_points(db: AsyncSession, user_id: str) -> UserPoints | None:
    result = await db.execute(
        select(UserPoints)
        .where(UserPoints.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_user_points(db: AsyncSession, user_id: str) -> UserPoints:
    """Get or create the points row for a user (flushed, not committed)."""
    record = await _select_user_points(db, user_id)
    if record is None:
        record = _new_user_points(user_id, get_settings())
        db.add(record)
        await db.flush()
    return record


async def get_user_points(db: AsyncSession, user_id: str) -> UserPoints:
    """Read a user's points, lazily creating a zero record."""
    record = await _select_user_points(db, user_id)
    if record is not None:
        return record
    try:
        record = await get_or_create_user_points(db, user_id)
        await db.commit()
    except IntegrityError:
        # Another request created it first
        await db.rollback()
        record = await _select_user_points(db, user_id)
        if record is None:
            raise
    except SQLAlchemyError as e:
        await db.rollback()
        msg = "Failed to create user points"
        raise PersistenceFailure(msg) from e
    return record


def _add_points(record: UserPoints, column: str, points: float, now: datetime) -> None:
    record.total_points = round(record.total_points + points, 2)
    setattr(record, column, round(getattr(record, column) + points, 2))
    record.updated_at = now


def _advance_record_streak(record: UserPoints, now: datetime) -> None:
    state = advance_streak(
        StreakState(record.current_streak, record.longest_streak, record.last_activity_date),
        now,
    )
    record.current_streak = state.current_streak
    record.longest_streak = state.longest_streak
    record.last_activity_date = state.last_activity_date


def _apply_bonuses(
    db: AsyncSession,
    record: UserPoints,
    grants: list[dict],
    now: datetime,
) -> float:
    """Apply achievement bonuses as one batch; no further evaluation."""
    total_bonus = 0.0
    for grant in grants:
        bonus = grant["bonus_points"]
        total_bonus += bonus
        _add_points(record, breakdown_column(ActivityType.ACHIEVEMENT_EARNED), bonus, now)
        db.add(PointsLedger(
            user_id=record.user_id,
            activity_type=ActivityType.ACHIEVEMENT_EARNED.value,
            points=bonus,
            entry_metadata={"reward_id": grant["reward"].id, "reward_name": grant["reward"].name},
            created_at=now,
        ))
    return round(total_bonus, 2)


def _is_write_race(error: Exception) -> bool:
    """True for a lost optimistic-lock race or a duplicate user_points/user_rewards key."""
    if isinstance(error, StaleDataError):
        return True
    message = str(getattr(error, "orig", error)).lower()
    duplicate = "unique" in message or "duplicate key" in message
    return duplicate and any(table in message for table in _RACE_TABLES)


async def _run_with_retry(db: AsyncSession, attempt_fn: Callable[[], Awaitable[T]], user_id: str) -> T:
    """Run ``attempt_fn`` and commit, replaying it on write conflicts.

    All-or-nothing: any failure rolls the session back.
    """
    max_attempts = get_settings().award_max_retries
    for attempt in range(1, max_attempts + 1):
        try:
            result = await attempt_fn()
            await db.commit()
            return result
        except (StaleDataError, IntegrityError) as e:
            await db.rollback()
            if not _is_write_race(e):
                msg = f"Failed to persist points for user {user_id}"
                raise PersistenceFailure(msg) from e
            logger.warning(
                "award_conflict_retry",
                user_id=user_id,
                attempt=attempt,
                max_attempts=max_attempts,
                error=e.__class__.__name__,
            )
            if attempt == max_attempts:
                msg = f"Could not update points for user {user_id} after {max_attempts} attempts"
                raise ConcurrencyConflict(msg) from e
        except SQLAlchemyError as e:
            await db.rollback()
            msg = f"Failed to persist points for user {user_id}"
            raise PersistenceFailure(msg) from e
        except Exception:
            await db.rollback()
            raise
    msg = "unreachable"
    raise AssertionError(msg)


async def award_points(
    db: AsyncSession,
    user_id: str,
    activity_type: str | ActivityType,
    metadata: dict[str, Any] | None = None,
    *,
    rates: PointValues,
    redis: object | None = None,
    now: datetime | None = None,
) -> dict:
    """Award points for an activity and run one achievement pass.

    Commits the session. Returns ``points_earned`` (the activity itself),
    ``bonus_points`` (achievement bonuses), ``user_points``, ``level_up``,
    ``previous_level`` and ``rewards`` (grant dicts).

    Malformed metadata earns 0 points but still counts as activity for the
    streak.
    """
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    metadata = metadata or {}
    points = calculate_points(activity_type, metadata, rates)
    activity_value = getattr(activity_type, "value", str(activity_type))[:32]

    async def attempt() -> dict:
        record = await get_or_create_user_points(db, user_id)
        previous_level = record.current_level

        _add_points(record, breakdown_column(activity_type), points, now)
        _advance_record_streak(record, now)
        db.add(PointsLedger(
            user_id=user_id,
            activity_type=activity_value,
            points=points,
            entry_metadata=_json_safe(metadata),
            created_at=now,
        ))

        grants = await AchievementEvaluator(db, rates).evaluate(record, now)
        bonus = _apply_bonuses(db, record, grants, now)
        refresh_derived(record, settings)
        await db.flush()

        return {
            "points_earned": points,
            "bonus_points": bonus,
            "user_points": record,
            "previous_level": previous_level,
            "level_up": record.current_level > previous_level,
            "rewards": grants,
        }

    result = await _run_with_retry(db, attempt, user_id)

    logger.info(
        "points_awarded",
        user_id=user_id,
        activity_type=activity_value,
        points=points,
        bonus_points=result["bonus_points"],
        total_points=result["user_points"].total_points,
        level=result["user_points"].current_level,
        level_up=result["level_up"],
    )
    await _publish_events(redis, user_id, result)
    return result


async def check_achievements(
    db: AsyncSession,
    user_id: str,
    *,
    rates: PointValues,
    redis: object | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """Forced achievement pass for a user. Commits; returns grant dicts."""
    settings = get_settings()
    now = now or datetime.now(timezone.utc)

    async def attempt() -> dict:
        record = await get_or_create_user_points(db, user_id)
        previous_level = record.current_level
        grants = await AchievementEvaluator(db, rates).evaluate(record, now)
        bonus = _apply_bonuses(db, record, grants, now)
        if grants:
            refresh_derived(record, settings)
        await db.flush()
        return {
            "points_earned": 0.0,
            "bonus_points": bonus,
            "user_points": record,
            "previous_level": previous_level,
            "level_up": record.current_level > previous_level,
            "rewards": grants,
        }

    result = await _run_with_retry(db, attempt, user_id)
    await _publish_events(redis, user_id, result)
    return result["rewards"]


async def get_points_history(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[PointsLedger], int]:
    """Paginated ledger entries for a user, newest first."""
    total_result = await db.execute(
        select(func.count()).select_from(PointsLedger).where(PointsLedger.user_id == user_id)
    )
    result = await db.execute(
        select(PointsLedger)
        .where(PointsLedger.user_id == user_id)
        .order_by(PointsLedger.created_at.desc(), PointsLedger.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total_result.scalar_one()


def _json_safe(metadata: dict[str, Any]) -> dict[str, Any]:
    """Coerce metadata to strict JSON: unknown objects become strings, NaN and
    infinities become null.
    """
    return json.loads(json.dumps(metadata, default=str), parse_constant=lambda _: None)


async def _publish_events(redis: object | None, user_id: str, result: dict) -> None:
    """Broadcast level-ups and rewards for realtime clients (best-effort)."""
    if redis is None:
        return
    record = result["user_points"]
    try:
        if result["level_up"]:
            await redis.publish(  # type: ignore[attr-defined]
                "pubsub:level_up",
                json.dumps({
                    "user_id": user_id,
                    "old_level": result["previous_level"],
                    "new_level": record.current_level,
                    "tier": record.tier,
                }),
            )
        for grant in result["rewards"]:
            reward = grant["reward"]
            await redis.publish(  # type: ignore[attr-defined]
                "pubsub:reward_earned",
                json.dumps({
                    "user_id": user_id,
                    "reward_id": reward.id,
                    "reward_name": reward.name,
                    "tier": reward.tier,
                    "bonus_points": grant["bonus_points"],
                    "times_earned": grant["user_reward"].times_earned,
                }),
            )
    except Exception:
        logger.warning("gamification_publish_failed", user_id=user_id, exc_info=True)
