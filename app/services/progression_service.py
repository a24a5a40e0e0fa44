"""Business logic for recording learning activity and reading progression.

Every recorder follows the same cycle: load-or-create the user's record,
append the activity and update stats, save with a version check (reloading
and retrying on conflict), then run achievement evaluation against the saved
record before returning.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from app.config import settings
from app.db.achievement_catalog import AchievementCatalog, get_achievement_catalog
from app.db.progression_store import ProgressionStore, get_progression_store
from app.errors import ConflictError, Forbidden, InvalidInput, NotFound, StorageFailure
from app.models.auth import Actor
from app.models.progression import (
    ActivityResult,
    LoginProgressRequest,
    Progression,
    ProgressionDetail,
    PuzzleEntry,
    PuzzleProgressRequest,
    QuizEntry,
    QuizProgressRequest,
    ReadingEntry,
    ReadingProgressRequest,
    UnlockedAchievementDetail,
)
from app.services.achievement_service import AchievementEvaluator, ActivityType

logger = logging.getLogger(__name__)

_Payload = TypeVar("_Payload", bound=BaseModel)


def _utc_date(value: datetime) -> date:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).date()


def next_quiz_streak(
    previous_completed_at: datetime | None,
    completed_at: datetime,
    current_streak: int,
    window: timedelta = timedelta(hours=24),
) -> int:
    """Return the quiz streak after a quiz completed at *completed_at*.

    The streak grows while consecutive quizzes are less than *window* apart
    and restarts at 1 otherwise.
    """
    if previous_completed_at is None:
        return 1
    if completed_at - previous_completed_at < window:
        return current_streak + 1
    return 1


def next_login_streak(last_active: datetime, now: datetime, current_streak: int) -> int:
    """Return the login streak for a login at *now*, compared by UTC calendar day."""
    if current_streak <= 0:
        return 1
    gap_days = (_utc_date(now) - _utc_date(last_active)).days
    if gap_days <= 0:
        return current_streak
    if gap_days == 1:
        return current_streak + 1
    return 1


class ProgressionService:
    """Activity recorders and progression reads for one store/catalog pair."""

    def __init__(
        self,
        store: ProgressionStore,
        catalog: AchievementCatalog,
        clock: Callable[[], datetime] | None = None,
        evaluator: AchievementEvaluator | None = None,
        max_retries: int | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.max_retries = settings.PROGRESSION_SAVE_RETRIES if max_retries is None else max_retries
        self.evaluator = evaluator or AchievementEvaluator(
            store, catalog, clock=self.clock, max_retries=self.max_retries,
        )

    # -- authorization --

    @staticmethod
    def authorize(actor: Actor, user_id: str) -> None:
        """Raise ``Forbidden`` unless *actor* owns *user_id* or is an admin."""
        if actor.uid == user_id or actor.is_admin:
            return
        logger.warning("User %s denied access to progression of %s", actor.uid, user_id)
        raise Forbidden("You are not allowed to access this user's progression data")

    # -- reads --

    def get_progression(self, user_id: str, actor: Actor) -> ProgressionDetail:
        """Return *user_id*'s progression with achievements resolved.

        Authorization is checked first so that a denied caller cannot probe
        which users have progression records.
        """
        self.authorize(actor, user_id)
        progression = self.store.get(user_id)
        if progression is None:
            raise NotFound("User progress not found", code="progression_not_found")

        by_id = {a.id: a for a in self.catalog.all()}
        detail = ProgressionDetail.model_validate(progression.model_dump())
        detail.achievements = [
            UnlockedAchievementDetail(
                achievement_ref=entry.achievement_ref,
                unlocked_at=entry.unlocked_at,
                achievement=by_id.get(entry.achievement_ref),
            )
            for entry in progression.achievements
        ]
        return detail

    def reset_all(self, actor: Actor) -> int:
        """Delete every progression record. Admin only."""
        if not actor.is_admin:
            raise Forbidden("Only administrators can reset progression data")
        count = self.store.delete_all()
        logger.warning("Admin %s reset %d progression records", actor.uid, count)
        return count

    # -- recorders --

    def record_quiz(self, user_id: str, payload: QuizProgressRequest | dict) -> ActivityResult:
        """Append a completed quiz, award its score and update the quiz streak."""
        quiz = self._validate(QuizProgressRequest, user_id, payload)
        window = timedelta(hours=settings.QUIZ_STREAK_WINDOW_HOURS)

        def apply(progression: Progression, now: datetime) -> None:
            previous = progression.quizzes[-1].completed_at if progression.quizzes else None
            progression.quizzes.append(QuizEntry(
                quiz_ref=quiz.quiz_id,
                score=quiz.score,
                correct_answers=quiz.correct_answers,
                total_questions=quiz.total_questions,
                difficulty=quiz.difficulty,
                completed_at=now,
            ))
            progression.stats.last_active = now
            progression.stats.total_points += quiz.score
            progression.stats.quiz_streak = next_quiz_streak(
                previous, now, progression.stats.quiz_streak, window,
            )

        return self._record(user_id, apply, quiz, "quiz")

    def record_puzzle(self, user_id: str, payload: PuzzleProgressRequest | dict) -> ActivityResult:
        """Append a solved puzzle and award the flat puzzle reward."""
        puzzle = self._validate(PuzzleProgressRequest, user_id, payload)

        def apply(progression: Progression, now: datetime) -> None:
            progression.puzzles.append(PuzzleEntry(
                puzzle_ref=puzzle.puzzle_id,
                completed_at=now,
                time_spent_seconds=puzzle.time_spent,
            ))
            progression.stats.last_active = now
            progression.stats.total_points += settings.PUZZLE_POINTS

        return self._record(user_id, apply, puzzle, "puzzle")

    def record_reading(self, user_id: str, payload: ReadingProgressRequest | dict) -> ActivityResult:
        """Save a reading, or update the completion flag of one already saved."""
        reading = self._validate(ReadingProgressRequest, user_id, payload)

        def apply(progression: Progression, now: datetime) -> None:
            existing = progression.find_reading(reading.reading_id)
            if existing is not None:
                if reading.is_completed and not existing.is_completed:
                    existing.read_at = now
                existing.is_completed = reading.is_completed
            else:
                progression.readings.append(ReadingEntry(
                    reading_ref=reading.reading_id,
                    saved_at=now,
                    read_at=now if reading.is_completed else None,
                    is_completed=reading.is_completed,
                ))
            progression.stats.last_active = now

        return self._record(user_id, apply, reading, "reading")

    def record_login(self, user_id: str) -> ActivityResult:
        """Update the calendar-day login streak and stamp ``last_active``."""
        login = self._validate(LoginProgressRequest, user_id, {})

        def apply(progression: Progression, now: datetime) -> None:
            if not progression.is_new:
                progression.stats.login_streak = next_login_streak(
                    progression.stats.last_active, now, progression.stats.login_streak,
                )
            progression.stats.last_active = now

        return self._record(user_id, apply, login, "login", login_streak=1)

    # -- internals --

    @staticmethod
    def _validate(model: type[_Payload], user_id: str, payload: BaseModel | dict) -> _Payload:
        if not user_id:
            raise InvalidInput("userId is required")
        if isinstance(payload, model):
            validated = payload
        else:
            data = payload.model_dump(by_alias=True) if isinstance(payload, BaseModel) else dict(payload)
            data.setdefault("userId", user_id)
            try:
                validated = model.model_validate(data)
            except ValidationError as e:
                fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
                raise InvalidInput(f"Invalid or missing fields: {', '.join(fields)}") from e
        if validated.user_id not in (None, user_id):
            raise InvalidInput("userId in payload does not match the target user")
        return validated

    def _record(
        self,
        user_id: str,
        apply: Callable[[Progression, datetime], None],
        payload: BaseModel,
        activity_type: ActivityType,
        login_streak: int = 0,
    ) -> ActivityResult:
        progression = self._update(user_id, apply, login_streak=login_streak)
        activity_data = payload.model_dump(by_alias=True)
        new_achievements = self.evaluator.evaluate(user_id, activity_data, activity_type)
        if new_achievements:
            progression = self.store.get(user_id) or progression
        logger.info(
            "Recorded %s activity for %s (points=%d, unlocked=%d)",
            activity_type, user_id, progression.stats.total_points, len(new_achievements),
        )
        return ActivityResult(progression=progression, new_achievements=new_achievements)

    def _update(
        self,
        user_id: str,
        apply: Callable[[Progression, datetime], None],
        login_streak: int = 0,
    ) -> Progression:
        """Run load, mutate and save, retrying the whole cycle on version conflicts."""
        for attempt in range(1, self.max_retries + 1):
            now = self.clock()
            progression = self.store.get_or_create(user_id, now=now, login_streak=login_streak)
            apply(progression, now)
            try:
                return self.store.save(progression)
            except ConflictError:
                logger.warning(
                    "Concurrent update of %s's progression (attempt %d/%d)",
                    user_id, attempt, self.max_retries,
                )
        raise StorageFailure(f"Could not save progression for {user_id} after {self.max_retries} attempts")


# ---------------------------------------------------------------------------
# Singleton factory
# ---------------------------------------------------------------------------
_service: ProgressionService | None = None


def get_progression_service() -> ProgressionService:
    """Return the singleton ``ProgressionService`` wired to the configured backends."""
    global _service
    if _service is None:
        _service = ProgressionService(get_progression_store(), get_achievement_catalog())
    return _service
