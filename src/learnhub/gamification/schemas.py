"""Pydantic request/response models for reward endpoints."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from learnhub.db.models import PointsLedger, RewardDefinition, UserPoints, UserReward

Tier = Literal["bronze", "silver", "gold", "platinum", "diamond"]
RewardType = Literal["badge", "achievement", "milestone", "streak", "completion", "performance"]
RewardCategory = Literal["learning", "quiz", "coding", "puzzle", "social", "consistency", "special"]
MetricType = Literal[
    "lessons_completed",
    "quizzes_completed",
    "correct_answers",
    "streak_days",
    "subjects_enrolled",
    "accuracy_threshold",
    "puzzles_solved",
    "coding_problems",
    "time_spent",
    "perfect_score",
]
ActivityTypeName = Literal[
    "lesson_completed",
    "quiz_completed",
    "puzzle_solved",
    "coding_solved",
    "subject_enrolled",
    "achievement_earned",
    "streak_bonus",
]


def total_pages(total: int, per_page: int) -> int:
    return math.ceil(total / per_page) if per_page else 0


# --- Rewards ---


class RewardCriteria(BaseModel):
    type: MetricType
    target: float = Field(..., ge=0, allow_inf_nan=False)
    subject_id: str | None = Field(None, max_length=64)
    category_id: str | None = Field(None, max_length=64)


class RewardCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=128)
    description: str = Field(..., min_length=1)
    type: RewardType
    category: RewardCategory
    icon: str = Field(..., min_length=1, max_length=64)
    color: str = Field(..., min_length=1, max_length=32)
    points: float = Field(0.0, ge=0, allow_inf_nan=False)
    tier: Tier
    criteria: RewardCriteria
    is_active: bool = True
    is_repeatable: bool = False

    def to_columns(self) -> dict[str, Any]:
        data = self.model_dump(exclude={"criteria"})
        data.update(criteria_columns(self.criteria))
        return data


class RewardUpdate(BaseModel):
    """Partial update; only fields present in the body are changed."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = Field(None, min_length=1)
    type: RewardType | None = None
    category: RewardCategory | None = None
    icon: str | None = Field(None, min_length=1, max_length=64)
    color: str | None = Field(None, min_length=1, max_length=32)
    points: float | None = Field(None, ge=0, allow_inf_nan=False)
    tier: Tier | None = None
    criteria: RewardCriteria | None = None
    is_active: bool | None = None
    is_repeatable: bool | None = None

    def to_columns(self) -> dict[str, Any]:
        data = {k: v for k, v in self.model_dump(exclude_unset=True, exclude={"criteria"}).items() if v is not None}
        if self.criteria is not None:
            data.update(criteria_columns(self.criteria))
        return data


def criteria_columns(criteria: RewardCriteria) -> dict[str, Any]:
    return {
        "criteria_type": criteria.type,
        "criteria_target": criteria.target,
        "criteria_subject_id": criteria.subject_id,
        "criteria_category_id": criteria.category_id,
    }


class RewardResponse(BaseModel):
    id: int
    name: str
    description: str
    type: str
    category: str
    icon: str
    color: str
    points: float
    tier: str
    criteria: dict
    is_active: bool
    is_repeatable: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, reward: RewardDefinition) -> RewardResponse:
        criteria: dict[str, Any] = {"type": reward.criteria_type, "target": reward.criteria_target}
        if reward.criteria_subject_id:
            criteria["subject_id"] = reward.criteria_subject_id
        if reward.criteria_category_id:
            criteria["category_id"] = reward.criteria_category_id
        return cls(
            id=reward.id,
            name=reward.name,
            description=reward.description,
            type=reward.type,
            category=reward.category,
            icon=reward.icon,
            color=reward.color,
            points=reward.points,
            tier=reward.tier,
            criteria=criteria,
            is_active=reward.is_active,
            is_repeatable=reward.is_repeatable,
            created_at=reward.created_at,
            updated_at=reward.updated_at,
        )


class RewardListResponse(BaseModel):
    rewards: list[RewardResponse]


class UserRewardResponse(BaseModel):
    id: int
    reward_id: int
    earned_at: datetime
    times_earned: int
    metadata: dict = {}
    reward: RewardResponse | None = None

    @classmethod
    def from_model(cls, user_reward: UserReward) -> UserRewardResponse:
        return cls(
            id=user_reward.id,
            reward_id=user_reward.reward_id,
            earned_at=user_reward.earned_at,
            times_earned=user_reward.times_earned,
            metadata=user_reward.reward_metadata or {},
            reward=RewardResponse.from_model(user_reward.reward) if user_reward.reward else None,
        )


class UserRewardsResponse(BaseModel):
    rewards: list[UserRewardResponse]
    page: int
    limit: int
    total: int
    total_pages: int


# --- Points ---


class PointsBreakdown(BaseModel):
    lessons: float
    quizzes: float
    puzzles: float
    coding: float
    achievements: float
    bonuses: float


class UserPointsResponse(BaseModel):
    user_id: str
    total_points: float
    current_level: int
    points_to_next_level: float
    tier: str
    current_streak: int
    longest_streak: int
    last_activity_date: date | None = None
    breakdown: PointsBreakdown
    badges_count: int
    achievements_count: int
    milestones_count: int
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, record: UserPoints) -> UserPointsResponse:
        return cls(
            user_id=record.user_id,
            total_points=record.total_points,
            current_level=record.current_level,
            points_to_next_level=record.points_to_next_level,
            tier=record.tier,
            current_streak=record.current_streak,
            longest_streak=record.longest_streak,
            last_activity_date=record.last_activity_date,
            breakdown=PointsBreakdown(
                lessons=record.lessons_points,
                quizzes=record.quizzes_points,
                puzzles=record.puzzles_points,
                coding=record.coding_points,
                achievements=record.achievements_points,
                bonuses=record.bonuses_points,
            ),
            badges_count=record.badges_count,
            achievements_count=record.achievements_count,
            milestones_count=record.milestones_count,
            updated_at=record.updated_at,
        )


class AllUserPointsResponse(BaseModel):
    users: list[UserPointsResponse]
    page: int
    limit: int
    total: int
    total_pages: int


class PointsHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    activity_type: str
    points: float
    metadata: dict = Field({}, validation_alias="entry_metadata")
    created_at: datetime


class PointsHistoryResponse(BaseModel):
    entries: list[PointsHistoryEntry]
    total: int
    page: int
    per_page: int

    @classmethod
    def from_models(cls, entries: list[PointsLedger], total: int, page: int, per_page: int) -> PointsHistoryResponse:
        return cls(
            entries=[PointsHistoryEntry.model_validate(e) for e in entries],
            total=total,
            page=page,
            per_page=per_page,
        )


# --- Leaderboard ---


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    total_points: float
    current_level: int
    tier: str
    current_streak: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]
    tier: str | None = None


class RankResponse(BaseModel):
    rank: int
    total_users: int
    percentile: int
    user_points: UserPointsResponse


# --- Awards ---


class ActivityEventRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128)
    activity_type: ActivityTypeName
    metadata: dict[str, Any] = {}


class GrantedRewardItem(BaseModel):
    reward: RewardResponse
    times_earned: int
    bonus_points: float
    repeat: bool

    @classmethod
    def from_grant(cls, grant: dict) -> GrantedRewardItem:
        return cls(
            reward=RewardResponse.from_model(grant["reward"]),
            times_earned=grant["user_reward"].times_earned,
            bonus_points=grant["bonus_points"],
            repeat=grant["repeat"],
        )


class AwardResponse(BaseModel):
    points_earned: float
    bonus_points: float
    level_up: bool
    user_points: UserPointsResponse
    rewards: list[GrantedRewardItem]


class CheckAchievementsResponse(BaseModel):
    rewards: list[GrantedRewardItem]
    count: int


# --- Point values ---


class PointValuesUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lesson_completed: float | None = Field(None, ge=0, allow_inf_nan=False)
    quiz_question_correct: float | None = Field(None, ge=0, allow_inf_nan=False)
    quiz_question_wrong: float | None = Field(None, ge=0, allow_inf_nan=False)
    quiz_perfect_score: float | None = Field(None, ge=0, allow_inf_nan=False)
    puzzle_solved: float | None = Field(None, ge=0, allow_inf_nan=False)
    coding_problem_solved: float | None = Field(None, ge=0, allow_inf_nan=False)
    coding_problem_perfect: float | None = Field(None, ge=0, allow_inf_nan=False)
    streak_day_bonus: float | None = Field(None, ge=0, allow_inf_nan=False)
    subject_enrolled: float | None = Field(None, ge=0, allow_inf_nan=False)
    achievement_earned: float | None = Field(None, ge=0, allow_inf_nan=False)


# --- Levels ---


class LevelEntry(BaseModel):
    level: int
    tier: str
    points_required: float
    cumulative: float


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]
