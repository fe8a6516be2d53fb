"""Reward catalogue service tests."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from learnhub.db.models import LessonProgress, RewardDefinition, UserReward
from learnhub.gamification.exceptions import NotFoundFailure
from learnhub.gamification.points_service import check_achievements
from learnhub.gamification.rewards_service import (
    create_reward,
    delete_reward,
    get_all_rewards,
    get_reward_by_id,
    get_user_rewards,
    update_reward,
)
from learnhub.gamification.seed import REWARD_SEED_DATA, seed_rewards
from tests.conftest import make_reward

REWARD = {
    "name": "Quiz Whiz",
    "description": "Complete ten quizzes",
    "type": "achievement",
    "category": "quiz",
    "icon": "star",
    "color": "#FFD700",
    "points": 20.0,
    "tier": "gold",
    "criteria_type": "quizzes_completed",
    "criteria_target": 10,
}


@pytest.mark.asyncio
async def test_create_and_get(db_session):
    reward = await create_reward(db_session, REWARD)
    fetched = await get_reward_by_id(db_session, reward.id)
    assert fetched.name == "Quiz Whiz"
    assert fetched.is_active is True
    assert fetched.is_repeatable is False


@pytest.mark.asyncio
async def test_duplicate_name_rejected(db_session):
    await create_reward(db_session, REWARD)
    with pytest.raises(ValueError, match="already exists"):
        await create_reward(db_session, REWARD)


@pytest.mark.asyncio
async def test_partial_update(db_session):
    reward = await create_reward(db_session, REWARD)
    updated = await update_reward(db_session, reward.id, {"points": 35.0, "tier": "platinum"})
    assert updated.points == 35.0
    assert updated.tier == "platinum"
    assert updated.name == "Quiz Whiz"


@pytest.mark.asyncio
async def test_missing_reward_raises_not_found(db_session):
    with pytest.raises(NotFoundFailure):
        await get_reward_by_id(db_session, 999)
    with pytest.raises(NotFoundFailure):
        await update_reward(db_session, 999, {"points": 1.0})
    with pytest.raises(NotFoundFailure):
        await delete_reward(db_session, 999)


@pytest.mark.asyncio
async def test_delete_removes_grants(db_session, rates, day_one):
    reward = await make_reward(db_session)
    db_session.add(LessonProgress(user_id="u1", lesson_id="l1", completed=True))
    await db_session.commit()
    await check_achievements(db_session, "u1", rates=rates, now=day_one)

    await delete_reward(db_session, reward.id)

    remaining = await db_session.execute(select(func.count()).select_from(UserReward))
    assert remaining.scalar_one() == 0
    with pytest.raises(NotFoundFailure):
        await get_reward_by_id(db_session, reward.id)


@pytest.mark.asyncio
async def test_all_rewards_filtered_and_sorted(db_session):
    await make_reward(db_session, name="Gold Cheap", tier="gold", points=5)
    await make_reward(db_session, name="Bronze Rich", tier="bronze", points=50)
    await make_reward(db_session, name="Bronze Cheap", tier="bronze", points=1)
    await make_reward(db_session, name="Quiz Silver", tier="silver", category="quiz")
    await make_reward(db_session, name="Hidden", tier="bronze", is_active=False)

    names = [r.name for r in await get_all_rewards(db_session)]
    assert names == ["Bronze Cheap", "Bronze Rich", "Quiz Silver", "Gold Cheap"]

    assert [r.name for r in await get_all_rewards(db_session, category="quiz")] == ["Quiz Silver"]
    assert [r.name for r in await get_all_rewards(db_session, tier="gold")] == ["Gold Cheap"]


@pytest.mark.asyncio
async def test_user_rewards_paginated_newest_first(db_session):
    first = await make_reward(db_session, name="One")
    second = await make_reward(db_session, name="Two")
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    db_session.add_all([
        UserReward(user_id="u1", reward_id=first.id, earned_at=base, times_earned=1, reward_metadata={}),
        UserReward(user_id="u1", reward_id=second.id, earned_at=base + timedelta(days=1), times_earned=1,
                   reward_metadata={}),
        UserReward(user_id="u2", reward_id=first.id, earned_at=base, times_earned=1, reward_metadata={}),
    ])
    await db_session.commit()

    rewards, total = await get_user_rewards(db_session, "u1", page=1, limit=1)
    assert total == 2
    assert len(rewards) == 1
    assert rewards[0].reward.name == "Two"


@pytest.mark.asyncio
async def test_seed_is_idempotent_and_keeps_edits(db_session):
    inserted = await seed_rewards(db_session)
    assert inserted == len(REWARD_SEED_DATA)

    result = await db_session.execute(select(RewardDefinition).where(RewardDefinition.name == "First Steps"))
    first_steps = result.scalar_one()
    await update_reward(db_session, first_steps.id, {"points": 99.0})

    assert await seed_rewards(db_session) == 0
    refreshed = await get_reward_by_id(db_session, first_steps.id)
    assert refreshed.points == 99.0
