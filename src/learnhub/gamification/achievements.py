"""Achievement evaluator: matches a user's stats against reward criteria."""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.db.models import RewardDefinition, UserPoints, UserReward
from learnhub.gamification.exceptions import CriteriaMisconfiguration
from learnhub.gamification.points import ActivityType, PointValues, calculate_points
from learnhub.gamification.stats import StatsSnapshot

logger = structlog.get_logger()

# reward.type -> UserPoints counter column
REWARD_COUNT_COLUMNS: dict[str, str] = {
    "badge": "badges_count",
    "achievement": "achievements_count",
    "milestone": "milestones_count",
}


def is_satisfied(reward: RewardDefinition, value: float, existing: UserReward | None) -> bool:
    """Whether ``value`` earns ``reward`` given any previous grant.

    First grant: value >= target. A repeatable reward is granted again only
    once the metric has grown by another full target since the last grant.
    """
    if existing is None:
        return value >= reward.criteria_target
    if not reward.is_repeatable or reward.criteria_target <= 0:
        return False
    last_value = float((existing.reward_metadata or {}).get("stat_value", 0))
    return value - last_value >= reward.criteria_target


class AchievementEvaluator:
    """Single bounded evaluation pass over all active rewards for one user.

    The pass writes UserReward rows and bumps reward counters on the given
    UserPoints record. Bonus points are computed but NOT applied; the caller
    applies them in one batch without re-entering evaluation.
    """

    def __init__(self, db: AsyncSession, rates: PointValues) -> None:
        self.db = db
        self.rates = rates

    async def _load_rewards(self) -> list[RewardDefinition]:
        result = await self.db.execute(
            select(RewardDefinition)
            .where(RewardDefinition.is_active.is_(True))
            .order_by(RewardDefinition.id)
        )
        return list(result.scalars().unique())

    async def _load_earned(self, user_id: str) -> dict[int, UserReward]:
        result = await self.db.execute(
            select(UserReward)
            .where(UserReward.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return {ur.reward_id: ur for ur in result.scalars().unique()}

    async def evaluate(self, record: UserPoints, now: datetime) -> list[dict]:
        """Grant every reward newly satisfied by the current stats.

        Returns one dict per grant: ``user_reward``, ``reward``,
        ``bonus_points`` and ``repeat`` (True when a repeatable reward was
        re-granted).
        """
        rewards = await self._load_rewards()
        if not rewards:
            return []
        earned = await self._load_earned(record.user_id)
        snapshot = StatsSnapshot(self.db, record.user_id, record.current_streak)
        grants: list[dict] = []

        for reward in rewards:
            existing = earned.get(reward.id)
            if existing is not None and not reward.is_repeatable:
                continue

            try:
                value = await snapshot.get(
                    reward.criteria_type,
                    reward.criteria_subject_id,
                    reward.criteria_category_id,
                )
            except CriteriaMisconfiguration as e:
                logger.warning(
                    "reward_criteria_misconfigured",
                    reward_id=reward.id,
                    reward_name=reward.name,
                    error=str(e),
                )
                continue

            if not is_satisfied(reward, value, existing):
                continue

            grants.append(self._grant(record, reward, existing, value, now))

        return grants

    def _grant(
        self,
        record: UserPoints,
        reward: RewardDefinition,
        existing: UserReward | None,
        value: float,
        now: datetime,
    ) -> dict:
        metadata = {
            "metric": reward.criteria_type,
            "stat_value": value,
            "target": reward.criteria_target,
            "streak_days": record.current_streak,
            "total_points": record.total_points,
        }
        if reward.criteria_subject_id:
            metadata["subject_id"] = reward.criteria_subject_id
        if reward.criteria_category_id:
            metadata["category_id"] = reward.criteria_category_id

        if existing is None:
            user_reward = UserReward(
                user_id=record.user_id,
                reward_id=reward.id,
                reward=reward,
                earned_at=now,
                times_earned=1,
                reward_metadata=metadata,
            )
            self.db.add(user_reward)
        else:
            user_reward = existing
            user_reward.times_earned += 1
            user_reward.earned_at = now
            user_reward.reward_metadata = metadata

        column = REWARD_COUNT_COLUMNS.get(reward.type)
        if column is not None:
            setattr(record, column, getattr(record, column) + 1)

        bonus = calculate_points(ActivityType.ACHIEVEMENT_EARNED, {"points": reward.points}, self.rates)

        logger.info(
            "reward_granted",
            user_id=record.user_id,
            reward_id=reward.id,
            reward_name=reward.name,
            times_earned=user_reward.times_earned,
            bonus_points=bonus,
        )
        return {
            "user_reward": user_reward,
            "reward": reward,
            "bonus_points": bonus,
            "repeat": existing is not None,
        }
