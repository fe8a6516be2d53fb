"""Aggregated learning stats read from the activity tables.

Reads are not transactionally consistent across tables; a reward can be
detected one award cycle late, never early.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.db.models import (
    AttemptedQuestion,
    CodingAttempt,
    LessonProgress,
    PuzzleAttempt,
    QuizAttempt,
    SubjectEnrollment,
)
from learnhub.gamification.exceptions import CriteriaMisconfiguration

METRIC_TYPES: tuple[str, ...] = (
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
)


class StatsSnapshot:
    """Per-pass, memoized view of one user's stats.

    Each (metric, subject, category) combination is queried at most once,
    so every reward in an evaluation pass sees the same numbers.
    """

    def __init__(self, db: AsyncSession, user_id: str, current_streak: int) -> None:
        self.db = db
        self.user_id = user_id
        self.current_streak = current_streak
        self._cache: dict[tuple[str, str | None, str | None], float] = {}

    async def get(
        self,
        metric: str,
        subject_id: str | None = None,
        category_id: str | None = None,
    ) -> float:
        """Value of ``metric`` for this user. Raises CriteriaMisconfiguration if unknown."""
        key = (metric, subject_id, category_id)
        if key not in self._cache:
            self._cache[key] = await self._query(metric, subject_id, category_id)
        return self._cache[key]

    async def _scalar(self, stmt: Any) -> float:
        result = await self.db.execute(stmt)
        return float(result.scalar_one() or 0)

    async def _query(self, metric: str, subject_id: str | None, category_id: str | None) -> float:
        if metric == "streak_days":
            return float(self.current_streak)

        if metric == "lessons_completed":
            stmt = select(func.count()).select_from(LessonProgress).where(
                LessonProgress.user_id == self.user_id,
                LessonProgress.completed.is_(True),
            )
            if subject_id:
                stmt = stmt.where(LessonProgress.subject_id == subject_id)
            return await self._scalar(stmt)

        if metric == "quizzes_completed":
            stmt = select(func.count()).select_from(QuizAttempt).where(QuizAttempt.user_id == self.user_id)
            if subject_id:
                stmt = stmt.where(QuizAttempt.subject_id == subject_id)
            return await self._scalar(stmt)

        if metric == "perfect_score":
            stmt = select(func.count()).select_from(QuizAttempt).where(
                QuizAttempt.user_id == self.user_id,
                QuizAttempt.total_questions > 0,
                QuizAttempt.correct_answers == QuizAttempt.total_questions,
            )
            if subject_id:
                stmt = stmt.where(QuizAttempt.subject_id == subject_id)
            return await self._scalar(stmt)

        if metric in ("correct_answers", "accuracy_threshold"):
            conditions = [AttemptedQuestion.user_id == self.user_id]
            if subject_id:
                conditions.append(AttemptedQuestion.subject_id == subject_id)
            if category_id:
                conditions.append(AttemptedQuestion.category_id == category_id)
            correct = await self._scalar(
                select(func.count()).select_from(AttemptedQuestion).where(
                    *conditions, AttemptedQuestion.is_correct.is_(True)
                )
            )
            if metric == "correct_answers":
                return correct
            attempted = await self._scalar(
                select(func.count()).select_from(AttemptedQuestion).where(*conditions)
            )
            return correct / attempted * 100 if attempted else 0.0

        if metric == "subjects_enrolled":
            stmt = select(func.count()).select_from(SubjectEnrollment).where(
                SubjectEnrollment.user_id == self.user_id
            )
            if category_id:
                stmt = stmt.where(SubjectEnrollment.category_id == category_id)
            return await self._scalar(stmt)

        if metric == "puzzles_solved":
            return await self._scalar(
                select(func.count(distinct(PuzzleAttempt.puzzle_id))).where(
                    PuzzleAttempt.user_id == self.user_id,
                    PuzzleAttempt.status == "solved",
                )
            )

        if metric == "coding_problems":
            return await self._scalar(
                select(func.count(distinct(CodingAttempt.question_id))).where(
                    CodingAttempt.user_id == self.user_id,
                    CodingAttempt.status == "passed",
                )
            )

        if metric == "time_spent":
            lesson_stmt = select(func.coalesce(func.sum(LessonProgress.time_spent), 0)).where(
                LessonProgress.user_id == self.user_id
            )
            quiz_stmt = select(func.coalesce(func.sum(QuizAttempt.time_spent), 0)).where(
                QuizAttempt.user_id == self.user_id
            )
            if subject_id:
                lesson_stmt = lesson_stmt.where(LessonProgress.subject_id == subject_id)
                quiz_stmt = quiz_stmt.where(QuizAttempt.subject_id == subject_id)
            return await self._scalar(lesson_stmt) + await self._scalar(quiz_stmt)

        msg = f"Unknown metric type: {metric!r}"
        raise CriteriaMisconfiguration(msg)
