"""OpenAI-backed question generator, essay grader and study-material writer.

Each call has an explicit timeout and no retry. Failures of any kind
(transport, timeout, empty or malformed content) surface as
``CollaboratorError``; cancellation of the awaiting task propagates.
"""

import asyncio
import json
from typing import TypeVar

import structlog
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from medmaster.errors import CollaboratorError
from medmaster.generation.prompts import (
    DISSERTATIVE_QUESTION_PROMPT,
    DISSERTATIVE_SYSTEM_PROMPT,
    GRADER_PROMPT,
    GRADER_SYSTEM_PROMPT,
    LANGUAGE_NOTE,
    MATERIAL_PROMPT,
    MATERIAL_SYSTEM_PROMPT,
    OBJECTIVE_QUESTION_PROMPT,
    QUESTION_SYSTEM_PROMPT,
    difficulty_instructions,
)
from medmaster.models.generation import (
    DissertativeFeedback,
    ObjectiveQuestion,
    StudyMaterial,
    TopicSuggestions,
)
from medmaster.models.progress import SuggestedTopic

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


def decode_payload(content: str, model_cls: type[ModelT]) -> ModelT:
    """Parse a JSON response into ``model_cls``.

    Raises:
        CollaboratorError: Content is not JSON or does not match the schema.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise CollaboratorError("The generator returned a response that is not valid JSON") from e
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        logger.warning(
            "collaborator_payload_rejected",
            schema=model_cls.__name__,
            errors=e.error_count(),
        )
        raise CollaboratorError(
            f"The generator response does not match the expected {model_cls.__name__} shape"
        ) from e


class OpenAIChatCollaborator:
    """Shared chat-completion plumbing.

    Args:
        api_key: OpenAI API key.
        model: Chat model name.
        timeout_seconds: Upper bound for one remote call.
        client: Pre-built client (tests inject a mock here).
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 30.0,
        client: AsyncOpenAI | None = None,
    ):
        if client is None and not api_key:
            raise CollaboratorError("OpenAI API key is not configured")
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.timeout_seconds = timeout_seconds

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        json_output: bool = True,
    ) -> str:
        kwargs = {}
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    temperature=temperature,
                    **kwargs,
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as e:
            logger.warning("collaborator_timeout", timeout_seconds=self.timeout_seconds)
            raise CollaboratorError(
                f"The generator did not answer within {self.timeout_seconds:g} seconds"
            ) from e
        except OpenAIError as e:
            logger.exception("collaborator_request_failed")
            raise CollaboratorError(f"The generator request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise CollaboratorError("The generator returned an empty response")
        return content

    async def _complete_model(
        self,
        model_cls: type[ModelT],
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
    ) -> ModelT:
        content = await self._complete(system_prompt, user_prompt, temperature)
        return decode_payload(content, model_cls)


class QuestionGenerator(OpenAIChatCollaborator):
    """Generates exam questions and topic suggestions."""

    async def generate_objective_question(self, specialty: str, difficulty: str) -> ObjectiveQuestion:
        prompt = OBJECTIVE_QUESTION_PROMPT.format(
            specialty=specialty,
            difficulty_instructions=difficulty_instructions(difficulty),
            language_note=LANGUAGE_NOTE,
        )
        question = await self._complete_model(
            ObjectiveQuestion, QUESTION_SYSTEM_PROMPT, prompt, temperature=0.8
        )
        logger.info("objective_question_generated", specialty=specialty, difficulty=difficulty)
        return question

    async def generate_dissertative_question(self, specialty: str, difficulty: str) -> str:
        prompt = DISSERTATIVE_QUESTION_PROMPT.format(
            specialty=specialty,
            difficulty_instructions=difficulty_instructions(difficulty),
            language_note=LANGUAGE_NOTE,
        )
        text = await self._complete(
            DISSERTATIVE_SYSTEM_PROMPT, prompt, temperature=0.9, json_output=False
        )
        logger.info("dissertative_question_generated", specialty=specialty, difficulty=difficulty)
        return text.strip()

    async def suggest_topics(self, system_prompt: str, user_prompt: str) -> list[SuggestedTopic]:
        """Ranked study topics for the context described in the prompts."""
        result = await self._complete_model(
            TopicSuggestions, system_prompt, user_prompt, temperature=0.8
        )
        return result.suggestions


class AnswerGrader(OpenAIChatCollaborator):
    """Grades free-text answers."""

    async def correct_dissertative_answer(
        self,
        question: str,
        answer: str,
        specialty: str,
    ) -> DissertativeFeedback:
        prompt = GRADER_PROMPT.format(
            question=question,
            answer=answer,
            specialty=specialty,
            language_note=LANGUAGE_NOTE,
        )
        feedback = await self._complete_model(
            DissertativeFeedback, GRADER_SYSTEM_PROMPT, prompt, temperature=0.7
        )
        logger.info("dissertative_answer_graded", specialty=specialty, score=feedback.score)
        return feedback


class StudyMaterialGenerator(OpenAIChatCollaborator):
    """Writes study material focused on topics the user needs to reinforce."""

    async def generate_study_material(self, specialty: str, topics: list[str]) -> StudyMaterial:
        prompt = MATERIAL_PROMPT.format(
            specialty=specialty,
            topics=", ".join(topics) if topics else specialty,
            language_note=LANGUAGE_NOTE,
        )
        material = await self._complete_model(
            StudyMaterial, MATERIAL_SYSTEM_PROMPT, prompt, temperature=0.7
        )
        logger.info("study_material_generated", specialty=specialty, sections=len(material.sections))
        return material
