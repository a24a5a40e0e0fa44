"""Pydantic models for user progression, activity payloads and results."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.models.achievement import Achievement


class QuizEntry(BaseModel):
    """A completed quiz in the user's log."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    quiz_ref: str = Field(..., description="Quiz ID")
    score: int = Field(..., ge=0, description="Points scored on the quiz")
    correct_answers: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=0)
    difficulty: str = Field(..., description="Quiz difficulty, e.g. easy/medium/hard")
    completed_at: datetime

    @property
    def is_perfect(self) -> bool:
        return self.correct_answers == self.total_questions


class PuzzleEntry(BaseModel):
    """A solved puzzle in the user's log."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    puzzle_ref: str = Field(..., description="Puzzle ID")
    completed_at: datetime
    time_spent_seconds: int = Field(0, ge=0)


class ReadingEntry(BaseModel):
    """A saved divination reading. Upserted by ``reading_ref``."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    reading_ref: str = Field(..., description="Reading ID")
    saved_at: datetime
    read_at: Optional[datetime] = None
    is_completed: bool = False


class UnlockedAchievement(BaseModel):
    """An achievement the user has unlocked."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    achievement_ref: str = Field(..., description="Achievement ID")
    unlocked_at: datetime


class ProgressionStats(BaseModel):
    """Aggregate counters for a user."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    total_points: int = Field(0, ge=0)
    quiz_streak: int = Field(0, ge=0, description="Quizzes completed with < 24h gaps")
    login_streak: int = Field(0, ge=0, description="Consecutive calendar days with a login")
    last_active: datetime
    runes_learned: int = Field(0, ge=0)


class Progression(BaseModel):
    """Per-user aggregate of activity logs and stats.

    ``version`` is the optimistic-concurrency token: ``0`` means the record
    has never been persisted, and every successful save increments it.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    user: str = Field(..., description="User ID")
    quizzes: list[QuizEntry] = Field(default_factory=list)
    puzzles: list[PuzzleEntry] = Field(default_factory=list)
    readings: list[ReadingEntry] = Field(default_factory=list)
    achievements: list[UnlockedAchievement] = Field(default_factory=list)
    stats: ProgressionStats
    version: int = Field(0, ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def new(cls, user_id: str, now: datetime, login_streak: int = 0) -> "Progression":
        """Return a fresh, unsaved record with empty logs and zeroed stats."""
        return cls(
            user=user_id,
            stats=ProgressionStats(last_active=now, login_streak=login_streak),
            created_at=now,
        )

    @property
    def is_new(self) -> bool:
        return self.version == 0

    def unlocked_ids(self) -> set[str]:
        return {a.achievement_ref for a in self.achievements}

    def find_reading(self, reading_ref: str) -> ReadingEntry | None:
        for entry in self.readings:
            if entry.reading_ref == reading_ref:
                return entry
        return None


# ---------------------------------------------------------------------------
# Activity payloads
# ---------------------------------------------------------------------------

class QuizProgressRequest(BaseModel):
    """Request schema for recording a completed quiz."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    user_id: str = Field(..., min_length=1, description="User whose progression is updated")
    quiz_id: str = Field(..., min_length=1, description="Completed quiz ID")
    score: int = Field(..., ge=0, description="Points scored")
    correct_answers: int = Field(..., ge=0)
    total_questions: int = Field(..., gt=0)
    difficulty: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _check_answers(self) -> "QuizProgressRequest":
        if self.correct_answers > self.total_questions:
            raise ValueError("correctAnswers cannot exceed totalQuestions")
        return self


class PuzzleProgressRequest(BaseModel):
    """Request schema for recording a solved puzzle."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    user_id: str = Field(..., min_length=1)
    puzzle_id: str = Field(..., min_length=1)
    time_spent: int = Field(0, ge=0, description="Seconds spent on the puzzle")


class ReadingProgressRequest(BaseModel):
    """Request schema for saving or completing a reading."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    user_id: str = Field(..., min_length=1)
    reading_id: str = Field(..., min_length=1)
    is_completed: bool


class LoginProgressRequest(BaseModel):
    """Request schema for recording a login. ``userId`` defaults to the caller."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    user_id: Optional[str] = Field(None, min_length=1)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ActivityResult(BaseModel):
    """Outcome of an activity recorder."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    progression: Progression
    new_achievements: list[Achievement] = Field(default_factory=list)


class UnlockedAchievementDetail(UnlockedAchievement):
    """Unlocked achievement with its catalog entry resolved."""

    achievement: Optional[Achievement] = None


class ProgressionDetail(Progression):
    """Progression with achievement references resolved against the catalog."""

    achievements: list[UnlockedAchievementDetail] = Field(default_factory=list)
