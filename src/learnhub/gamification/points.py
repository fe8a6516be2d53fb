"""Point rates and the activity -> points calculation.

The rates are an immutable ``PointValues`` value handed to the calculator on
every call. Reloading rates means building a new value, never mutating one in
place.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from learnhub.config import Settings
from learnhub.gamification.exceptions import ValidationFailure

logger = structlog.get_logger()


class ActivityType(str, Enum):
    LESSON_COMPLETED = "lesson_completed"
    QUIZ_COMPLETED = "quiz_completed"
    PUZZLE_SOLVED = "puzzle_solved"
    CODING_SOLVED = "coding_solved"
    SUBJECT_ENROLLED = "subject_enrolled"
    ACHIEVEMENT_EARNED = "achievement_earned"
    STREAK_BONUS = "streak_bonus"


# Which breakdown bucket (UserPoints column) each activity accumulates into.
BREAKDOWN_COLUMNS: dict[ActivityType, str] = {
    ActivityType.LESSON_COMPLETED: "lessons_points",
    ActivityType.QUIZ_COMPLETED: "quizzes_points",
    ActivityType.PUZZLE_SOLVED: "puzzles_points",
    ActivityType.CODING_SOLVED: "coding_points",
    ActivityType.ACHIEVEMENT_EARNED: "achievements_points",
}
DEFAULT_BREAKDOWN_COLUMN = "bonuses_points"


class PointValues(BaseModel):
    """Point rates per activity. Frozen: replace, don't mutate."""

    model_config = ConfigDict(frozen=True)

    lesson_completed: float = Field(1.0, ge=0, allow_inf_nan=False)
    quiz_question_correct: float = Field(0.5, ge=0, allow_inf_nan=False)
    quiz_question_wrong: float = Field(0.1, ge=0, allow_inf_nan=False)
    quiz_perfect_score: float = Field(2.0, ge=0, allow_inf_nan=False)
    puzzle_solved: float = Field(1.5, ge=0, allow_inf_nan=False)
    coding_problem_solved: float = Field(2.5, ge=0, allow_inf_nan=False)
    coding_problem_perfect: float = Field(4.0, ge=0, allow_inf_nan=False)
    streak_day_bonus: float = Field(0.5, ge=0, allow_inf_nan=False)
    subject_enrolled: float = Field(0.5, ge=0, allow_inf_nan=False)
    achievement_earned: float = Field(5.0, ge=0, allow_inf_nan=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> PointValues:
        """Default rates from configuration."""
        return cls(
            lesson_completed=settings.points_lesson_completed,
            quiz_question_correct=settings.points_quiz_question_correct,
            quiz_question_wrong=settings.points_quiz_question_wrong,
            quiz_perfect_score=settings.points_quiz_perfect_score,
            puzzle_solved=settings.points_puzzle_solved,
            coding_problem_solved=settings.points_coding_problem_solved,
            coding_problem_perfect=settings.points_coding_problem_perfect,
            streak_day_bonus=settings.points_streak_day_bonus,
            subject_enrolled=settings.points_subject_enrolled,
            achievement_earned=settings.points_achievement_earned,
        )

    def merged(self, changes: dict[str, float]) -> PointValues:
        """Return a new value with ``changes`` applied (validated)."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            msg = f"Unknown point value(s): {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        return type(self).model_validate({**self.model_dump(), **changes})


def parse_activity_type(activity_type: str | ActivityType) -> ActivityType:
    """Resolve an activity type string. Raises ValidationFailure if unknown."""
    try:
        return ActivityType(activity_type)
    except ValueError as e:
        msg = f"Unknown activity type: {activity_type!r}"
        raise ValidationFailure(msg) from e


def _number(metadata: dict[str, Any], *keys: str, required: bool = True) -> float | None:
    """Read the first present key as a finite, non-negative number."""
    for key in keys:
        if key in metadata and metadata[key] is not None:
            value = metadata[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                msg = f"{key} must be a number, got {value!r}"
                raise ValidationFailure(msg)
            try:
                number = float(value)
            except OverflowError:
                number = math.inf
            if not math.isfinite(number):
                msg = f"{key} must be finite"
                raise ValidationFailure(msg)
            if number < 0:
                msg = f"{key} must not be negative"
                raise ValidationFailure(msg)
            return number
    if required:
        msg = f"Missing {keys[0]}"
        raise ValidationFailure(msg)
    return None


def compute_points(
    activity_type: str | ActivityType,
    metadata: dict[str, Any] | None,
    rates: PointValues,
) -> float:
    """Strict calculation. Raises ValidationFailure on malformed input.

    Metadata keys accept snake_case or camelCase (``correct_answers`` /
    ``correctAnswers``) since events come from several collaborators.
    """
    activity = parse_activity_type(activity_type)
    metadata = metadata or {}

    if activity is ActivityType.LESSON_COMPLETED:
        points = rates.lesson_completed

    elif activity is ActivityType.QUIZ_COMPLETED:
        correct = _number(metadata, "correct_answers", "correctAnswers")
        total = _number(metadata, "total_questions", "totalQuestions")
        if total == 0 or correct > total or not correct.is_integer() or not total.is_integer():
            msg = f"Invalid quiz result {correct}/{total}"
            raise ValidationFailure(msg)
        points = correct * rates.quiz_question_correct + (total - correct) * rates.quiz_question_wrong
        if correct == total and total >= 2:
            points += rates.quiz_perfect_score

    elif activity is ActivityType.PUZZLE_SOLVED:
        points = rates.puzzle_solved

    elif activity is ActivityType.CODING_SOLVED:
        accuracy = _number(metadata, "accuracy", required=False)
        points = rates.coding_problem_perfect if accuracy == 100 else rates.coding_problem_solved

    elif activity is ActivityType.SUBJECT_ENROLLED:
        points = rates.subject_enrolled

    elif activity is ActivityType.ACHIEVEMENT_EARNED:
        bonus = _number(metadata, "points", required=False)
        points = rates.achievement_earned if bonus is None else bonus

    else:  # STREAK_BONUS
        days = _number(metadata, "streak_days", "streakDays")
        points = days * rates.streak_day_bonus

    return round(points, 2)


def calculate_points(
    activity_type: str | ActivityType,
    metadata: dict[str, Any] | None,
    rates: PointValues,
) -> float:
    """Points earned for an activity; malformed or unknown input earns 0."""
    try:
        return compute_points(activity_type, metadata, rates)
    except ValidationFailure as e:
        logger.warning(
            "activity_metadata_invalid",
            activity_type=getattr(activity_type, "value", activity_type),
            error=str(e),
        )
        return 0.0


def breakdown_column(activity_type: str | ActivityType) -> str:
    """UserPoints column that accumulates points for this activity."""
    try:
        activity = ActivityType(activity_type)
    except ValueError:
        return DEFAULT_BREAKDOWN_COLUMN
    return BREAKDOWN_COLUMNS.get(activity, DEFAULT_BREAKDOWN_COLUMN)
