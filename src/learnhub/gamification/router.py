"""Rewards and points API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.auth.dependencies import CurrentUser, get_current_user, require_admin
from learnhub.config import get_settings
from learnhub.database import get_session
from learnhub.gamification.leaderboard import get_all_user_points, get_leaderboard, get_user_rank
from learnhub.gamification.levels import level_thresholds
from learnhub.gamification.point_values import PointValuesStore
from learnhub.gamification.points import PointValues
from learnhub.gamification.points_service import (
    award_points,
    check_achievements,
    get_points_history,
    get_user_points,
)
from learnhub.gamification.rewards_service import (
    create_reward,
    delete_reward,
    get_all_rewards,
    get_reward_by_id,
    get_user_rewards,
    update_reward,
)
from learnhub.gamification.schemas import (
    ActivityEventRequest,
    AllLevelsResponse,
    AllUserPointsResponse,
    AwardResponse,
    CheckAchievementsResponse,
    GrantedRewardItem,
    LeaderboardEntry,
    LeaderboardResponse,
    LevelEntry,
    PointsHistoryResponse,
    PointValuesUpdate,
    RankResponse,
    RewardCategory,
    RewardCreate,
    RewardListResponse,
    RewardResponse,
    RewardUpdate,
    Tier,
    UserPointsResponse,
    UserRewardResponse,
    UserRewardsResponse,
    total_pages,
)
from learnhub.redis_client import get_redis_or_none

router = APIRouter(prefix="/api/v1/rewards", tags=["Rewards"])


def get_point_values_store(request: Request) -> PointValuesStore:
    """Active point-rate store, created at startup."""
    return request.app.state.point_values


# ── Public endpoints ──


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels(max_level: int = Query(50, ge=1, le=200)):
    """Level thresholds and tiers."""
    settings = get_settings()
    rows = level_thresholds(max_level, settings.level_base_points, settings.level_scaling_factor)
    return AllLevelsResponse(levels=[LevelEntry(**row) for row in rows])


@router.get("/all", response_model=RewardListResponse)
async def list_rewards(
    category: RewardCategory | None = None,
    tier: Tier | None = None,
    db: AsyncSession = Depends(get_session),
):
    """All active rewards, optionally filtered."""
    rewards = await get_all_rewards(db, category, tier)
    return RewardListResponse(rewards=[RewardResponse.from_model(r) for r in rewards])


# ── Authenticated endpoints ──


@router.get("/points", response_model=UserPointsResponse)
async def get_my_points(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Current user's points, level, tier and streak."""
    record = await get_user_points(db, user.user_id)
    return UserPointsResponse.from_model(record)


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    limit: int | None = Query(None, ge=1),
    tier: Tier | None = None,
    _user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Top users by total points."""
    settings = get_settings()
    limit = min(limit or settings.leaderboard_default_limit, settings.leaderboard_max_limit)
    records = await get_leaderboard(db, limit, tier)
    return LeaderboardResponse(
        entries=[
            LeaderboardEntry(
                rank=i + 1,
                user_id=r.user_id,
                total_points=r.total_points,
                current_level=r.current_level,
                tier=r.tier,
                current_streak=r.current_streak,
            )
            for i, r in enumerate(records)
        ],
        tier=tier,
    )


@router.get("/rank", response_model=RankResponse)
async def my_rank(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Current user's rank and percentile."""
    result = await get_user_rank(db, user.user_id)
    return RankResponse(
        rank=result["rank"],
        total_users=result["total_users"],
        percentile=result["percentile"],
        user_points=UserPointsResponse.from_model(result["user_points"]),
    )


@router.get("/user", response_model=UserRewardsResponse)
async def my_rewards(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Rewards earned by the current user, most recent first."""
    rewards, total = await get_user_rewards(db, user.user_id, page, limit)
    return UserRewardsResponse(
        rewards=[UserRewardResponse.from_model(r) for r in rewards],
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages(total, limit),
    )


@router.get("/history", response_model=PointsHistoryResponse)
async def my_points_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Points ledger of the current user."""
    entries, total = await get_points_history(db, user.user_id, page, per_page)
    return PointsHistoryResponse.from_models(entries, total, page, per_page)


@router.post("/check-achievements", response_model=CheckAchievementsResponse)
async def run_achievement_check(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    store: PointValuesStore = Depends(get_point_values_store),
):
    """Evaluate all rewards for the current user now."""
    grants = await check_achievements(db, user.user_id, rates=store.current, redis=get_redis_or_none())
    return CheckAchievementsResponse(
        rewards=[GrantedRewardItem.from_grant(g) for g in grants],
        count=len(grants),
    )


# ── Admin endpoints ──


@router.post("/events", response_model=AwardResponse)
async def ingest_activity_event(
    body: ActivityEventRequest,
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    store: PointValuesStore = Depends(get_point_values_store),
):
    """Award points for an activity reported by another platform service."""
    result = await award_points(
        db,
        body.user_id,
        body.activity_type,
        body.metadata,
        rates=store.current,
        redis=get_redis_or_none(),
    )
    return AwardResponse(
        points_earned=result["points_earned"],
        bonus_points=result["bonus_points"],
        level_up=result["level_up"],
        user_points=UserPointsResponse.from_model(result["user_points"]),
        rewards=[GrantedRewardItem.from_grant(g) for g in result["rewards"]],
    )


@router.get("/admin/user-points", response_model=AllUserPointsResponse)
async def admin_list_user_points(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    tier: Tier | None = None,
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    records, total = await get_all_user_points(db, page, limit, tier)
    return AllUserPointsResponse(
        users=[UserPointsResponse.from_model(r) for r in records],
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages(total, limit),
    )


@router.get("/admin/user-points/{user_id}", response_model=UserPointsResponse)
async def admin_get_user_points(
    user_id: str,
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    record = await get_user_points(db, user_id)
    return UserPointsResponse.from_model(record)


@router.get("/admin/user-rewards/{user_id}", response_model=UserRewardsResponse)
async def admin_get_user_rewards(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    rewards, total = await get_user_rewards(db, user_id, page, limit)
    return UserRewardsResponse(
        rewards=[UserRewardResponse.from_model(r) for r in rewards],
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages(total, limit),
    )


@router.get("/admin/point-values", response_model=PointValues)
async def admin_get_point_values(
    _admin: CurrentUser = Depends(require_admin),
    store: PointValuesStore = Depends(get_point_values_store),
):
    return store.current


@router.put("/admin/point-values", response_model=PointValues)
async def admin_update_point_values(
    body: PointValuesUpdate,
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    store: PointValuesStore = Depends(get_point_values_store),
):
    """Change some point rates; unspecified rates keep their value."""
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No point values provided")
    try:
        return await store.update(db, changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/{reward_id}", response_model=RewardResponse)
async def admin_get_reward(
    reward_id: int,
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    return RewardResponse.from_model(await get_reward_by_id(db, reward_id))


@router.post("/", response_model=RewardResponse, status_code=201)
async def admin_create_reward(
    body: RewardCreate,
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    try:
        reward = await create_reward(db, body.to_columns())
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return RewardResponse.from_model(reward)


@router.put("/{reward_id}", response_model=RewardResponse)
async def admin_update_reward(
    reward_id: int,
    body: RewardUpdate,
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    changes = body.to_columns()
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")
    try:
        reward = await update_reward(db, reward_id, changes)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return RewardResponse.from_model(reward)


@router.delete("/{reward_id}", status_code=204)
async def admin_delete_reward(
    reward_id: int,
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    await delete_reward(db, reward_id)
    return Response(status_code=204)
