"""Leaderboard and rank queries over user points."""

from __future__ import annotations

import math

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.db.models import UserPoints
from learnhub.gamification.points_service import get_user_points

# Deterministic across pages: ties fall back to record age, then user id.
_RANKING_ORDER = (UserPoints.total_points.desc(), UserPoints.created_at, UserPoints.user_id)


def percentile_for_rank(rank: int, total_users: int) -> int:
    """Share of users ranked below, rounded half up to a whole percent."""
    if total_users <= 0:
        return 0
    return math.floor((1 - rank / total_users) * 100 + 0.5)


async def get_leaderboard(
    db: AsyncSession,
    limit: int = 100,
    tier: str | None = None,
) -> list[UserPoints]:
    """Top users by total points, optionally within one tier.

    Equal totals are ordered by who got a points record first.
    """
    query = select(UserPoints)
    if tier:
        query = query.where(UserPoints.tier == tier)
    query = query.order_by(*_RANKING_ORDER).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_user_rank(db: AsyncSession, user_id: str) -> dict:
    """Rank of a user: 1 + number of users with strictly more points."""
    record = await get_user_points(db, user_id)

    higher = await db.execute(
        select(func.count())
        .select_from(UserPoints)
        .where(UserPoints.total_points > record.total_points)
    )
    total = await db.execute(select(func.count()).select_from(UserPoints))

    rank = higher.scalar_one() + 1
    total_users = total.scalar_one()
    return {
        "rank": rank,
        "total_users": total_users,
        "percentile": percentile_for_rank(rank, total_users),
        "user_points": record,
    }


async def get_all_user_points(
    db: AsyncSession,
    page: int = 1,
    limit: int = 50,
    tier: str | None = None,
) -> tuple[list[UserPoints], int]:
    """All user points records, highest first, paginated."""
    query = select(UserPoints)
    count_query = select(func.count()).select_from(UserPoints)
    if tier:
        query = query.where(UserPoints.tier == tier)
        count_query = count_query.where(UserPoints.tier == tier)

    total_result = await db.execute(count_query)
    result = await db.execute(
        query.order_by(*_RANKING_ORDER)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total_result.scalar_one()
