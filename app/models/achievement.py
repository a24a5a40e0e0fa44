"""Pydantic models for the achievement catalog."""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

AchievementCategory = Literal["quiz", "puzzle", "reading", "general"]


class _Requirement(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, frozen=True)


class QuizCompletedRequirement(_Requirement):
    """Complete ``count`` quizzes, optionally of one difficulty and with perfect scores."""

    type: Literal["quiz_completed"] = "quiz_completed"
    count: int = Field(..., gt=0, description="Quizzes required")
    difficulty: Optional[str] = Field(None, description="Only count quizzes of this difficulty")
    perfect_score: bool = Field(False, description="Only count quizzes with every answer correct")


class PuzzleCompletedRequirement(_Requirement):
    """Complete ``count`` puzzles."""

    type: Literal["puzzle_completed"] = "puzzle_completed"
    count: int = Field(..., gt=0, description="Puzzles required")


class ReadingCompletedRequirement(_Requirement):
    """Finish ``count`` readings."""

    type: Literal["reading_completed"] = "reading_completed"
    count: int = Field(..., gt=0, description="Completed readings required")


class StreakRequirement(_Requirement):
    """Reach a login or quiz streak of ``days``."""

    type: Literal["streak"] = "streak"
    days: int = Field(..., gt=0, description="Streak length required")


class RunesLearnedRequirement(_Requirement):
    """Learn ``count`` runes of a rune set."""

    type: Literal["runes_learned"] = "runes_learned"
    category: str = Field(..., description="Rune set, e.g. elder-futhark")
    count: int = Field(..., gt=0, description="Runes required")


Requirement = Annotated[
    Union[
        QuizCompletedRequirement,
        PuzzleCompletedRequirement,
        ReadingCompletedRequirement,
        StreakRequirement,
        RunesLearnedRequirement,
    ],
    Field(discriminator="type"),
]


class Achievement(BaseModel):
    """A catalog entry: a named, point-bearing unlock."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, frozen=True)

    id: str = Field(..., description="Achievement ID (slug)")
    name: str = Field(..., description="Unique display name")
    description: str = Field(..., description="What the user has to do")
    category: AchievementCategory = Field(..., description="Achievement category")
    icon: str = Field("default-achievement.svg", description="Badge icon file name")
    requirement: Requirement = Field(..., description="Unlock condition")
    points: int = Field(10, gt=0, description="Points awarded on unlock")


class AchievementCreateRequest(BaseModel):
    """Request schema for adding an achievement to the catalog (admin only)."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: Optional[str] = Field(None, description="Slug; derived from name when omitted")
    name: str = Field(..., min_length=2, max_length=60)
    description: str = Field(..., min_length=1)
    category: AchievementCategory
    icon: str = "default-achievement.svg"
    requirement: Requirement
    points: int = Field(10, gt=0)
