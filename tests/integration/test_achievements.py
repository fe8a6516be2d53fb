"""Achievement evaluation tests: grants, bonuses, repeatable rewards."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from learnhub.db.models import (
    AttemptedQuestion,
    CodingAttempt,
    LessonProgress,
    PuzzleAttempt,
    QuizAttempt,
    SubjectEnrollment,
    UserReward,
)
from learnhub.gamification.points_service import award_points, check_achievements, get_points_history
from learnhub.gamification.stats import StatsSnapshot
from tests.conftest import make_reward


async def _complete_lessons(db, user_id: str, count: int, subject_id: str = "python") -> None:
    for i in range(count):
        db.add(LessonProgress(
            user_id=user_id,
            lesson_id=f"{subject_id}-{i}",
            subject_id=subject_id,
            progress=100,
            completed=True,
            time_spent=15,
        ))
    await db.commit()


async def _user_reward_count(db, user_id: str, reward_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(UserReward).where(
            UserReward.user_id == user_id, UserReward.reward_id == reward_id
        )
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_first_lesson_reward_granted_once(db_session, rates, day_one):
    reward = await make_reward(db_session)
    await _complete_lessons(db_session, "u1", 1)

    result = await award_points(db_session, "u1", "lesson_completed", rates=rates, now=day_one)

    assert [g["reward"].id for g in result["rewards"]] == [reward.id]
    assert await _user_reward_count(db_session, "u1", reward.id) == 1

    again = await check_achievements(db_session, "u1", rates=rates, now=day_one)
    assert again == []
    assert await _user_reward_count(db_session, "u1", reward.id) == 1


@pytest.mark.asyncio
async def test_bonus_applied_once_without_reevaluation(db_session, rates, day_one):
    await make_reward(db_session, points=25)
    await _complete_lessons(db_session, "u1", 1)

    result = await award_points(db_session, "u1", "lesson_completed", rates=rates, now=day_one)

    record = result["user_points"]
    assert result["points_earned"] == 1.0
    assert result["bonus_points"] == 25.0
    assert record.total_points == 26.0
    assert record.lessons_points == 1.0
    assert record.achievements_points == 25.0
    assert record.badges_count == 1
    assert record.current_level == 3

    entries, total = await get_points_history(db_session, "u1")
    assert total == 2
    assert {e.activity_type for e in entries} == {"lesson_completed", "achievement_earned"}


@pytest.mark.asyncio
async def test_reward_counters_follow_reward_type(db_session, rates, day_one):
    await make_reward(db_session, name="Badge", type="badge")
    await make_reward(db_session, name="Achievement", type="achievement")
    await make_reward(db_session, name="Milestone", type="milestone")
    await make_reward(db_session, name="Streak", type="streak", criteria_type="streak_days")
    await _complete_lessons(db_session, "u1", 1)

    result = await award_points(db_session, "u1", "lesson_completed", rates=rates, now=day_one)
    record = result["user_points"]

    assert len(result["rewards"]) == 4
    assert (record.badges_count, record.achievements_count, record.milestones_count) == (1, 1, 1)


@pytest.mark.asyncio
async def test_unmet_criteria_grants_nothing(db_session, rates, day_one):
    await make_reward(db_session, criteria_target=5)
    await _complete_lessons(db_session, "u1", 4)

    result = await award_points(db_session, "u1", "lesson_completed", rates=rates, now=day_one)
    assert result["rewards"] == []


@pytest.mark.asyncio
async def test_inactive_rewards_are_ignored(db_session, rates, day_one):
    await make_reward(db_session, is_active=False)
    await _complete_lessons(db_session, "u1", 1)

    result = await award_points(db_session, "u1", "lesson_completed", rates=rates, now=day_one)
    assert result["rewards"] == []


@pytest.mark.asyncio
async def test_misconfigured_reward_is_skipped(db_session, rates, day_one):
    broken = await make_reward(db_session, name="Broken", criteria_type="videos_watched")
    working = await make_reward(db_session, name="Working")
    await _complete_lessons(db_session, "u1", 1)

    result = await award_points(db_session, "u1", "lesson_completed", rates=rates, now=day_one)

    granted = [g["reward"].id for g in result["rewards"]]
    assert granted == [working.id]
    assert await _user_reward_count(db_session, "u1", broken.id) == 0


@pytest.mark.asyncio
async def test_streak_reward(db_session, rates, day_one):
    reward = await make_reward(db_session, name="Three Days", criteria_type="streak_days", criteria_target=3)

    for offset in range(2):
        result = await award_points(
            db_session, "u1", "lesson_completed", rates=rates, now=day_one + timedelta(days=offset)
        )
        assert result["rewards"] == []

    result = await award_points(db_session, "u1", "lesson_completed", rates=rates, now=day_one + timedelta(days=2))
    assert [g["reward"].id for g in result["rewards"]] == [reward.id]
    assert result["rewards"][0]["user_reward"].reward_metadata["streak_days"] == 3


class TestRepeatableRewards:
    @pytest.mark.asyncio
    async def test_regranted_only_after_another_full_target(self, db_session, rates, day_one):
        reward = await make_reward(db_session, name="Every Five", criteria_target=5, is_repeatable=True)
        await _complete_lessons(db_session, "u1", 5)

        first = await check_achievements(db_session, "u1", rates=rates, now=day_one)
        assert len(first) == 1
        assert first[0]["repeat"] is False

        assert await check_achievements(db_session, "u1", rates=rates, now=day_one) == []

        await _complete_lessons(db_session, "u1", 4, subject_id="go")
        assert await check_achievements(db_session, "u1", rates=rates, now=day_one) == []

        await _complete_lessons(db_session, "u1", 1, subject_id="rust")
        again = await check_achievements(db_session, "u1", rates=rates, now=day_one)
        assert len(again) == 1
        assert again[0]["repeat"] is True
        assert again[0]["user_reward"].times_earned == 2
        assert await _user_reward_count(db_session, "u1", reward.id) == 1


class TestScopedCriteria:
    @pytest.mark.asyncio
    async def test_subject_scope(self, db_session, rates, day_one):
        reward = await make_reward(
            db_session, name="Python Pro", criteria_target=3, criteria_subject_id="python"
        )
        await _complete_lessons(db_session, "u1", 2, subject_id="python")
        await _complete_lessons(db_session, "u1", 5, subject_id="go")
        assert await check_achievements(db_session, "u1", rates=rates, now=day_one) == []

        db_session.add(LessonProgress(user_id="u1", lesson_id="python-extra", subject_id="python", completed=True))
        await db_session.commit()
        granted = await check_achievements(db_session, "u1", rates=rates, now=day_one)
        assert [g["reward"].id for g in granted] == [reward.id]
        assert granted[0]["user_reward"].reward_metadata["subject_id"] == "python"


class TestStatsSnapshot:
    @pytest.mark.asyncio
    async def test_metrics(self, db_session):
        db_session.add_all([
            LessonProgress(user_id="u1", lesson_id="a", subject_id="s1", completed=True, time_spent=20),
            LessonProgress(user_id="u1", lesson_id="b", subject_id="s1", completed=False, time_spent=5),
            QuizAttempt(user_id="u1", quiz_id="q1", subject_id="s1", total_questions=4, correct_answers=4, time_spent=10),
            QuizAttempt(user_id="u1", quiz_id="q2", subject_id="s2", total_questions=4, correct_answers=2),
            AttemptedQuestion(user_id="u1", question_id="1", subject_id="s1", category_id="c1", is_correct=True),
            AttemptedQuestion(user_id="u1", question_id="2", subject_id="s1", category_id="c1", is_correct=True),
            AttemptedQuestion(user_id="u1", question_id="3", subject_id="s2", category_id="c2", is_correct=False),
            AttemptedQuestion(user_id="u1", question_id="4", subject_id="s2", category_id="c2", is_correct=True),
            SubjectEnrollment(user_id="u1", subject_id="s1", category_id="c1"),
            SubjectEnrollment(user_id="u1", subject_id="s2", category_id="c2"),
            PuzzleAttempt(user_id="u1", puzzle_id="p1", status="solved"),
            PuzzleAttempt(user_id="u1", puzzle_id="p1", status="solved"),
            PuzzleAttempt(user_id="u1", puzzle_id="p2", status="attempted"),
            CodingAttempt(user_id="u1", question_id="c1", status="passed", accuracy=100),
            CodingAttempt(user_id="u1", question_id="c2", status="partial", accuracy=60),
            LessonProgress(user_id="someone-else", lesson_id="a", completed=True),
        ])
        await db_session.commit()

        snapshot = StatsSnapshot(db_session, "u1", current_streak=6)
        assert await snapshot.get("streak_days") == 6
        assert await snapshot.get("lessons_completed") == 1
        assert await snapshot.get("quizzes_completed") == 2
        assert await snapshot.get("quizzes_completed", subject_id="s2") == 1
        assert await snapshot.get("perfect_score") == 1
        assert await snapshot.get("correct_answers") == 3
        assert await snapshot.get("correct_answers", category_id="c2") == 1
        assert await snapshot.get("accuracy_threshold") == 75.0
        assert await snapshot.get("accuracy_threshold", subject_id="s1") == 100.0
        assert await snapshot.get("subjects_enrolled") == 2
        assert await snapshot.get("subjects_enrolled", category_id="c1") == 1
        assert await snapshot.get("puzzles_solved") == 1
        assert await snapshot.get("coding_problems") == 1
        assert await snapshot.get("time_spent") == 35.0

    @pytest.mark.asyncio
    async def test_accuracy_without_attempts_is_zero(self, db_session):
        snapshot = StatsSnapshot(db_session, "u1", current_streak=0)
        assert await snapshot.get("accuracy_threshold") == 0.0
