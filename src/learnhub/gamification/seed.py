"""Default reward catalogue seeded at startup."""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.db.models import RewardDefinition

logger = structlog.get_logger()

REWARD_SEED_DATA: list[dict] = [
    # Learning
    {
        "name": "First Steps",
        "description": "Complete your first lesson",
        "type": "badge",
        "category": "learning",
        "icon": "footprints",
        "color": "#CD7F32",
        "points": 5,
        "tier": "bronze",
        "criteria_type": "lessons_completed",
        "criteria_target": 1,
    },
    {
        "name": "Bookworm",
        "description": "Complete 25 lessons",
        "type": "achievement",
        "category": "learning",
        "icon": "book-open",
        "color": "#C0C0C0",
        "points": 20,
        "tier": "silver",
        "criteria_type": "lessons_completed",
        "criteria_target": 25,
    },
    {
        "name": "Scholar",
        "description": "Complete 100 lessons",
        "type": "milestone",
        "category": "learning",
        "icon": "graduation-cap",
        "color": "#FFD700",
        "points": 50,
        "tier": "gold",
        "criteria_type": "lessons_completed",
        "criteria_target": 100,
    },
    {
        "name": "Explorer",
        "description": "Enroll in 3 subjects",
        "type": "badge",
        "category": "learning",
        "icon": "compass",
        "color": "#CD7F32",
        "points": 5,
        "tier": "bronze",
        "criteria_type": "subjects_enrolled",
        "criteria_target": 3,
    },
    {
        "name": "Dedicated Learner",
        "description": "Spend 10 hours learning",
        "type": "milestone",
        "category": "learning",
        "icon": "clock",
        "color": "#C0C0C0",
        "points": 25,
        "tier": "silver",
        "criteria_type": "time_spent",
        "criteria_target": 600,
    },
    # Quiz
    {
        "name": "Quiz Taker",
        "description": "Complete your first quiz",
        "type": "badge",
        "category": "quiz",
        "icon": "clipboard-check",
        "color": "#CD7F32",
        "points": 5,
        "tier": "bronze",
        "criteria_type": "quizzes_completed",
        "criteria_target": 1,
    },
    {
        "name": "Flawless",
        "description": "Score 100% on a quiz",
        "type": "achievement",
        "category": "quiz",
        "icon": "star",
        "color": "#C0C0C0",
        "points": 10,
        "tier": "silver",
        "criteria_type": "perfect_score",
        "criteria_target": 1,
    },
    {
        "name": "Know-It-All",
        "description": "Answer 500 questions correctly",
        "type": "milestone",
        "category": "quiz",
        "icon": "brain",
        "color": "#FFD700",
        "points": 40,
        "tier": "gold",
        "criteria_type": "correct_answers",
        "criteria_target": 500,
    },
    {
        "name": "Sharpshooter",
        "description": "Keep your answer accuracy at 90% or higher",
        "type": "achievement",
        "category": "quiz",
        "icon": "target",
        "color": "#E5E4E2",
        "points": 60,
        "tier": "platinum",
        "criteria_type": "accuracy_threshold",
        "criteria_target": 90,
    },
    # Puzzles and coding
    {
        "name": "Puzzle Solver",
        "description": "Solve 10 puzzles",
        "type": "badge",
        "category": "puzzle",
        "icon": "puzzle",
        "color": "#C0C0C0",
        "points": 15,
        "tier": "silver",
        "criteria_type": "puzzles_solved",
        "criteria_target": 10,
    },
    {
        "name": "Code Warrior",
        "description": "Solve 25 coding problems",
        "type": "achievement",
        "category": "coding",
        "icon": "code",
        "color": "#FFD700",
        "points": 40,
        "tier": "gold",
        "criteria_type": "coding_problems",
        "criteria_target": 25,
    },
    # Consistency
    {
        "name": "On a Roll",
        "description": "Learn 7 days in a row",
        "type": "streak",
        "category": "consistency",
        "icon": "flame",
        "color": "#C0C0C0",
        "points": 15,
        "tier": "silver",
        "criteria_type": "streak_days",
        "criteria_target": 7,
    },
    {
        "name": "Unstoppable",
        "description": "Learn 30 days in a row",
        "type": "streak",
        "category": "consistency",
        "icon": "zap",
        "color": "#B9F2FF",
        "points": 100,
        "tier": "diamond",
        "criteria_type": "streak_days",
        "criteria_target": 30,
    },
    {
        "name": "Weekly Regular",
        "description": "Every further 7-day streak earns this again",
        "type": "streak",
        "category": "consistency",
        "icon": "repeat",
        "color": "#CD7F32",
        "points": 5,
        "tier": "bronze",
        "criteria_type": "streak_days",
        "criteria_target": 7,
        "is_repeatable": True,
    },
]


async def seed_rewards(db: AsyncSession) -> int:
    """Insert catalogue rewards that do not exist yet (matched by name).

    Existing rows are left alone so admin edits survive restarts. Returns the
    number of rewards inserted.
    """
    existing = set((await db.execute(select(RewardDefinition.name))).scalars().all())
    seeded = 0
    for reward_data in REWARD_SEED_DATA:
        if reward_data["name"] in existing:
            continue
        db.add(RewardDefinition(**reward_data))
        seeded += 1

    await db.commit()
    logger.info("rewards_seeded", inserted=seeded, total=len(REWARD_SEED_DATA))
    return seeded
