"""Achievement definitions and server-side evaluation logic."""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Literal

from app.config import settings
from app.db.achievement_catalog import AchievementCatalog
from app.db.progression_store import ProgressionStore
from app.errors import ConflictError, EvaluationFailure
from app.models.achievement import (
    Achievement,
    PuzzleCompletedRequirement,
    QuizCompletedRequirement,
    ReadingCompletedRequirement,
    Requirement,
    RunesLearnedRequirement,
    StreakRequirement,
)
from app.models.progression import Progression, UnlockedAchievement

logger = logging.getLogger(__name__)

ActivityType = Literal["quiz", "puzzle", "reading", "login"]

ALL_ACHIEVEMENTS: dict[str, dict] = {
    "rune_novice": {
        "name": "Rune Novice",
        "description": "Complete your first quiz",
        "category": "quiz",
        "icon": "novice-badge.svg",
        "requirement": {"type": "quiz_completed", "count": 1},
        "points": 10,
    },
    "rune_apprentice": {
        "name": "Rune Apprentice",
        "description": "Complete 10 quizzes of any difficulty",
        "category": "quiz",
        "icon": "apprentice-badge.svg",
        "requirement": {"type": "quiz_completed", "count": 10},
        "points": 25,
    },
    "rune_scholar": {
        "name": "Rune Scholar",
        "description": "Complete 5 hard quizzes with perfect scores",
        "category": "quiz",
        "icon": "scholar-badge.svg",
        "requirement": {"type": "quiz_completed", "count": 5, "difficulty": "hard", "perfectScore": True},
        "points": 50,
    },
    "curious_mind": {
        "name": "Curious Mind",
        "description": "Read your first rune cast",
        "category": "reading",
        "icon": "curious-badge.svg",
        "requirement": {"type": "reading_completed", "count": 1},
        "points": 10,
    },
    "rune_historian": {
        "name": "Rune Historian",
        "description": "Complete 10 readings",
        "category": "reading",
        "icon": "historian-badge.svg",
        "requirement": {"type": "reading_completed", "count": 10},
        "points": 30,
    },
    "puzzle_solver": {
        "name": "Puzzle Solver",
        "description": "Complete your first puzzle",
        "category": "puzzle",
        "icon": "puzzle-badge.svg",
        "requirement": {"type": "puzzle_completed", "count": 1},
        "points": 15,
    },
    "puzzle_master": {
        "name": "Puzzle Master",
        "description": "Complete 10 puzzles",
        "category": "puzzle",
        "icon": "master-badge.svg",
        "requirement": {"type": "puzzle_completed", "count": 10},
        "points": 35,
    },
    "dedicated_student": {
        "name": "Dedicated Student",
        "description": "Achieve a 7-day streak",
        "category": "general",
        "icon": "streak-badge.svg",
        "requirement": {"type": "streak", "days": 7},
        "points": 20,
    },
    "rune_devotee": {
        "name": "Rune Devotee",
        "description": "Achieve a 30-day streak",
        "category": "general",
        "icon": "devotee-badge.svg",
        "requirement": {"type": "streak", "days": 30},
        "points": 100,
    },
    "elder_futhark_collector": {
        "name": "Elder Futhark Collector",
        "description": "Learn all runes from the Elder Futhark set",
        "category": "general",
        "icon": "elder-futhark-badge.svg",
        "requirement": {"type": "runes_learned", "category": "elder-futhark", "count": 24},
        "points": 75,
    },
    "younger_futhark_collector": {
        "name": "Younger Futhark Collector",
        "description": "Learn all runes from the Younger Futhark set",
        "category": "general",
        "icon": "younger-futhark-badge.svg",
        "requirement": {"type": "runes_learned", "category": "younger-futhark", "count": 16},
        "points": 75,
    },
    "anglo_saxon_collector": {
        "name": "Anglo-Saxon Collector",
        "description": "Learn all runes from the Anglo-Saxon set",
        "category": "general",
        "icon": "anglo-saxon-badge.svg",
        "requirement": {"type": "runes_learned", "category": "anglo-saxon", "count": 33},
        "points": 75,
    },
}


def default_achievements() -> list[Achievement]:
    """Return the built-in catalog as ``Achievement`` models."""
    return [Achievement.model_validate({"id": k, **v}) for k, v in ALL_ACHIEVEMENTS.items()]


# ---------------------------------------------------------------------------
# Requirement checks
# ---------------------------------------------------------------------------

def _quiz_completed(req: QuizCompletedRequirement, progression: Progression, activity_type: str) -> bool:
    if activity_type != "quiz":
        return False
    quizzes = progression.quizzes
    if req.difficulty:
        quizzes = [q for q in quizzes if q.difficulty == req.difficulty]
    if req.perfect_score:
        quizzes = [q for q in quizzes if q.is_perfect]
    return len(quizzes) >= req.count


def _puzzle_completed(req: PuzzleCompletedRequirement, progression: Progression, activity_type: str) -> bool:
    return activity_type == "puzzle" and len(progression.puzzles) >= req.count


def _reading_completed(req: ReadingCompletedRequirement, progression: Progression, activity_type: str) -> bool:
    if activity_type != "reading":
        return False
    return sum(1 for r in progression.readings if r.is_completed) >= req.count


def _streak(req: StreakRequirement, progression: Progression, activity_type: str) -> bool:
    stats = progression.stats
    return stats.login_streak >= req.days or stats.quiz_streak >= req.days


def _runes_learned(req: RunesLearnedRequirement, progression: Progression, activity_type: str) -> bool:
    # Only an aggregate counter is tracked, so req.category is not checked.
    return progression.stats.runes_learned >= req.count


_CHECKS: dict[type, Callable[..., bool]] = {
    QuizCompletedRequirement: _quiz_completed,
    PuzzleCompletedRequirement: _puzzle_completed,
    ReadingCompletedRequirement: _reading_completed,
    StreakRequirement: _streak,
    RunesLearnedRequirement: _runes_learned,
}


def requirement_met(requirement: Requirement, progression: Progression, activity_type: str) -> bool:
    """Return whether *requirement* holds for *progression* after an activity of *activity_type*.

    Raises ``EvaluationFailure`` for a requirement variant with no check.
    """
    check = _CHECKS.get(type(requirement))
    if check is None:
        raise EvaluationFailure(f"No check for requirement type {type(requirement).__name__}")
    return check(requirement, progression, activity_type)


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------

class AchievementEvaluator:
    """Unlocks catalog achievements a user's progression newly satisfies."""

    def __init__(
        self,
        store: ProgressionStore,
        catalog: AchievementCatalog,
        clock: Callable[[], datetime] | None = None,
        max_retries: int | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.max_retries = settings.PROGRESSION_SAVE_RETRIES if max_retries is None else max_retries

    def evaluate(self, user_id: str, activity_data: dict, activity_type: ActivityType) -> list[Achievement]:
        """Evaluate and persist newly unlocked achievements.

        Never raises: any failure is logged and reported as no unlocks, so a
        broken rule cannot fail the activity that triggered it.
        """
        try:
            return self._evaluate(user_id, activity_data, activity_type)
        except Exception:
            logger.exception("Achievement evaluation failed for %s after %s activity", user_id, activity_type)
            return []

    def _evaluate(self, user_id: str, activity_data: dict, activity_type: str) -> list[Achievement]:
        catalog = self.catalog.all()
        for attempt in range(1, self.max_retries + 1):
            progression = self.store.get(user_id)
            if progression is None:
                return []

            newly_unlocked = self._unlock(progression, catalog, activity_type)
            if not newly_unlocked:
                return []
            try:
                self.store.save(progression)
            except ConflictError:
                # Reload so achievements a rival writer unlocked are skipped
                logger.warning(
                    "Concurrent update while unlocking achievements for %s (attempt %d/%d)",
                    user_id, attempt, self.max_retries,
                )
                continue
            logger.info(
                "User %s unlocked %s",
                user_id,
                ", ".join(a.id for a in newly_unlocked),
            )
            return newly_unlocked

        logger.warning("Gave up unlocking achievements for %s after %d attempts", user_id, self.max_retries)
        return []

    def _unlock(self, progression: Progression, catalog: list[Achievement], activity_type: str) -> list[Achievement]:
        unlocked_ids = progression.unlocked_ids()
        now = self.clock()
        newly_unlocked: list[Achievement] = []

        for achievement in catalog:
            if achievement.id in unlocked_ids:
                continue
            if not requirement_met(achievement.requirement, progression, activity_type):
                continue
            progression.achievements.append(
                UnlockedAchievement(achievement_ref=achievement.id, unlocked_at=now)
            )
            progression.stats.total_points += achievement.points
            unlocked_ids.add(achievement.id)
            newly_unlocked.append(achievement)
        return newly_unlocked
