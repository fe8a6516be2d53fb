"""Reward catalogue CRUD and earned-reward queries."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.db.models import RewardDefinition, UserReward
from learnhub.gamification.exceptions import NotFoundFailure, PersistenceFailure
from learnhub.gamification.levels import TIERS

logger = structlog.get_logger()

# bronze first, diamond last
_TIER_ORDER = case({tier: index for index, tier in enumerate(TIERS)}, value=RewardDefinition.tier, else_=len(TIERS))


async def _commit(db: AsyncSession, action: str) -> None:
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        msg = "A reward with this name already exists"
        raise ValueError(msg) from e
    except SQLAlchemyError as e:
        await db.rollback()
        msg = f"Failed to {action} reward"
        raise PersistenceFailure(msg) from e


async def get_reward_by_id(db: AsyncSession, reward_id: int) -> RewardDefinition:
    """Fetch a reward definition. Raises NotFoundFailure if absent."""
    reward = await db.get(RewardDefinition, reward_id)
    if reward is None:
        msg = f"Reward {reward_id} not found"
        raise NotFoundFailure(msg)
    return reward


async def create_reward(db: AsyncSession, data: dict[str, Any]) -> RewardDefinition:
    """Insert a reward definition from flat column values."""
    reward = RewardDefinition(**data)
    db.add(reward)
    await _commit(db, "create")
    await db.refresh(reward)
    logger.info("reward_created", reward_id=reward.id, reward_name=reward.name)
    return reward


async def update_reward(db: AsyncSession, reward_id: int, changes: dict[str, Any]) -> RewardDefinition:
    """Apply a partial update. Raises NotFoundFailure if absent."""
    reward = await get_reward_by_id(db, reward_id)
    for field, value in changes.items():
        setattr(reward, field, value)
    await _commit(db, "update")
    await db.refresh(reward)
    logger.info("reward_updated", reward_id=reward.id, fields=sorted(changes))
    return reward


async def delete_reward(db: AsyncSession, reward_id: int) -> None:
    """Delete a reward and every grant of it. Raises NotFoundFailure if absent."""
    reward = await get_reward_by_id(db, reward_id)
    await db.execute(delete(UserReward).where(UserReward.reward_id == reward_id))
    await db.delete(reward)
    await _commit(db, "delete")
    logger.info("reward_deleted", reward_id=reward_id)


async def get_all_rewards(
    db: AsyncSession,
    category: str | None = None,
    tier: str | None = None,
) -> list[RewardDefinition]:
    """Active rewards, cheapest tier first, then by points."""
    query = select(RewardDefinition).where(RewardDefinition.is_active.is_(True))
    if category:
        query = query.where(RewardDefinition.category == category)
    if tier:
        query = query.where(RewardDefinition.tier == tier)
    result = await db.execute(
        query.order_by(_TIER_ORDER, RewardDefinition.points, RewardDefinition.id)
    )
    return list(result.scalars().all())


async def get_user_rewards(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[UserReward], int]:
    """A user's earned rewards (with definitions), most recent first."""
    total_result = await db.execute(
        select(func.count()).select_from(UserReward).where(UserReward.user_id == user_id)
    )
    result = await db.execute(
        select(UserReward)
        .where(UserReward.user_id == user_id)
        .order_by(UserReward.earned_at.desc(), UserReward.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().unique().all()), total_result.scalar_one()
