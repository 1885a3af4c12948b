"""Payload schemas for the question, grading and study-material generators.

Remote responses are decoded through these models; anything that does not
match is rejected before it can reach the progress record.
"""

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from medmaster.models.base import CamelModel
from medmaster.models.progress import SuggestedTopic

OBJECTIVE_OPTION_COUNT = 5


class ObjectiveQuestion(CamelModel):
    """Multiple-choice question with five options."""

    question: str = Field(min_length=1)
    options: list[str]
    correct_answer_index: int = Field(
        validation_alias=AliasChoices("correctAnswerIndex", "correctAnswer", "correct_answer_index"),
    )
    explanation: str = ""

    @field_validator("options")
    @classmethod
    def _five_options(cls, value: list[str]) -> list[str]:
        if len(value) != OBJECTIVE_OPTION_COUNT:
            raise ValueError(f"expected {OBJECTIVE_OPTION_COUNT} options, got {len(value)}")
        return value

    @model_validator(mode="after")
    def _index_in_range(self) -> "ObjectiveQuestion":
        if not 0 <= self.correct_answer_index < len(self.options):
            raise ValueError(f"correct answer index {self.correct_answer_index} out of range")
        return self


class DissertativeFeedback(CamelModel):
    """Grading result for a free-text answer."""

    score: float = Field(ge=0, le=100)
    strengths: str
    improvements: str
    detailed_feedback: str = Field(
        validation_alias=AliasChoices("detailedFeedback", "comment", "detailed_feedback"),
    )


class StudySection(CamelModel):
    title: str
    content: str
    key_points: list[str] = Field(default_factory=list)


class StudyMaterial(CamelModel):
    title: str
    introduction: str
    sections: list[StudySection] = Field(min_length=1)
    summary: str
    references: list[str] = Field(default_factory=list)


class TopicSuggestions(BaseModel):
    """Envelope the suggestion generator answers with."""

    suggestions: list[SuggestedTopic]
