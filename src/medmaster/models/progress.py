"""Progress record data models."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, ConfigDict, Field, field_validator, model_validator

from medmaster.models.base import CamelModel, LocalDatetime


class QuestionMode(StrEnum):
    """Exam mode a question was answered in."""

    OBJECTIVE = "objective"
    ESSAY = "essay"

    @classmethod
    def _missing_(cls, value: object) -> "QuestionMode | None":
        # Records written by the browser client use Portuguese tags.
        legacy = {"objetiva": cls.OBJECTIVE, "dissertativa": cls.ESSAY}
        if isinstance(value, str):
            return legacy.get(value.lower())
        return None


class Priority(StrEnum):
    """Suggested topic priority tiers."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SpecialtyStats(CamelModel):
    """Running tally for one specialty."""

    total: int = Field(default=0, ge=0)
    correct: int = Field(default=0, ge=0)
    last_studied: LocalDatetime | None = None

    @model_validator(mode="after")
    def _correct_within_total(self) -> "SpecialtyStats":
        if self.correct > self.total:
            raise ValueError(
                f"correct ({self.correct}) cannot exceed total ({self.total})"
            )
        return self

    @property
    def accuracy(self) -> float:
        """Accuracy percentage (0-100), 0 when nothing was attempted."""
        if self.total == 0:
            return 0.0
        return self.correct / self.total * 100


class QuestionHistoryItem(CamelModel):
    """A single answered question. Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    question: str
    answer: str
    correct: bool
    specialty: str = Field(min_length=1)
    mode: QuestionMode = Field(validation_alias=AliasChoices("mode", "type"))
    timestamp: LocalDatetime = Field(default_factory=datetime.now)
    score: float | None = Field(default=None, ge=0, le=100)
    difficulty: str | None = None


class StudySession(CamelModel):
    """A bounded, resumable run of questions in one specialty."""

    id: str
    specialty: str
    difficulty: str
    mode: QuestionMode
    questions_completed: int = Field(default=0, ge=0)
    questions_total: int = Field(ge=1)
    started_at: LocalDatetime = Field(default_factory=datetime.now)
    last_updated: LocalDatetime = Field(default_factory=datetime.now)
    is_active: bool = True

    @model_validator(mode="after")
    def _completed_within_total(self) -> "StudySession":
        if self.questions_completed > self.questions_total:
            raise ValueError(
                f"questions_completed ({self.questions_completed}) exceeds "
                f"questions_total ({self.questions_total})"
            )
        return self

    @property
    def remaining(self) -> int:
        return self.questions_total - self.questions_completed


class UserGoals(CamelModel):
    daily_questions: int = Field(default=10, ge=0)
    weekly_questions: int = Field(default=50, ge=0)
    target_specialties: list[str] = Field(default_factory=list)
    target_level: str = "intermediate"


class UserPreferences(CamelModel):
    favorite_specialties: list[str] = Field(default_factory=list)
    preferred_difficulty: str = "medium"
    study_reminders: bool = True
    notifications_enabled: bool = True

    @field_validator("favorite_specialties")
    @classmethod
    def _drop_blank_favorites(cls, value: list[str]) -> list[str]:
        # Blank names cannot become suggestion entries.
        return [name.strip() for name in value if name.strip()]


class SuggestedTopic(CamelModel):
    """A specialty recommended for study."""

    specialty: str = Field(min_length=1)
    reason: str
    priority: Priority
    accuracy: float = Field(default=0.0, ge=0, le=100)


class ProgressRecord(CamelModel):
    """Everything tracked about one user's study progress.

    Unknown keys from older clients are kept so a rewrite never drops them.
    """

    model_config = ConfigDict(extra="allow")

    total_questions: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    streak_days: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    experience: int = Field(default=0, ge=0)
    specialties: dict[str, SpecialtyStats] = Field(default_factory=dict)
    question_history: list[QuestionHistoryItem] = Field(default_factory=list)
    current_session: StudySession | None = None
    goals: UserGoals = Field(default_factory=UserGoals)
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    suggested_topics: list[SuggestedTopic] = Field(default_factory=list)
    last_login_date: LocalDatetime = Field(default_factory=datetime.now)
    last_activity: LocalDatetime = Field(default_factory=datetime.now)

    @field_validator(
        "specialties",
        "question_history",
        "goals",
        "preferences",
        "suggested_topics",
        mode="before",
    )
    @classmethod
    def _null_to_default(cls, value: Any, info) -> Any:
        # Older records may hold null (or nothing) for these sections.
        if value is not None:
            return value
        field = cls.model_fields[info.field_name]
        return field.default_factory()

    @model_validator(mode="after")
    def _correct_within_total(self) -> "ProgressRecord":
        if self.correct_answers > self.total_questions:
            raise ValueError(
                f"correct_answers ({self.correct_answers}) cannot exceed "
                f"total_questions ({self.total_questions})"
            )
        return self

    def history_ids(self) -> set[str]:
        return {item.id for item in self.question_history}
