"""Suggestion engine combining generator ranking with a rule-based fallback."""

import structlog

from medmaster.generation.client import QuestionGenerator
from medmaster.models.progress import ProgressRecord, SuggestedTopic
from medmaster.progress.statistics import weakest_specialties
from medmaster.storage.progress_store import ProgressStore
from medmaster.suggestions.prompts import SUGGESTION_SYSTEM_PROMPT, build_suggestion_prompt
from medmaster.suggestions.rule_based import MAX_SUGGESTIONS, MIN_SUGGESTIONS, RuleBasedSuggester

logger = structlog.get_logger()


class SuggestionEngine:
    """Ranks specialties by study priority.

    The generator is asked first; any failure, or an empty answer, falls back
    to the deterministic rules, and an answer with fewer than three topics is
    topped up from them. The engine itself never raises.

    Args:
        generator: Remote suggestion source. None means rules only.
        min_questions: Answers required before suggestions are produced.
    """

    def __init__(
        self,
        generator: QuestionGenerator | None = None,
        min_questions: int = 3,
    ):
        self.generator = generator
        self.min_questions = min_questions
        self.rule_suggester = RuleBasedSuggester()

    def should_suggest(self, record: ProgressRecord) -> bool:
        """Only fill an empty cache, and only with enough history."""
        return not record.suggested_topics and record.total_questions >= self.min_questions

    def fallback(self, record: ProgressRecord) -> list[SuggestedTopic]:
        try:
            return self.rule_suggester.suggest(record)
        except Exception:
            logger.exception("rule_based_suggestions_failed")
            return []

    @staticmethod
    def focus_specialty(record: ProgressRecord) -> str | None:
        """Specialty study material should target when none is requested.

        Weakest specialty first, then the top cached suggestion, then the
        first favourite.
        """
        weak = weakest_specialties(record)
        if weak:
            return weak[0]
        if record.suggested_topics:
            return record.suggested_topics[0].specialty
        favorites = record.preferences.favorite_specialties
        return favorites[0] if favorites else None

    async def suggest(self, record: ProgressRecord) -> list[SuggestedTopic]:
        """Between one and five distinct suggestions for ``record``."""
        if self.generator is None:
            return self.fallback(record)

        try:
            topics = await self.generator.suggest_topics(
                SUGGESTION_SYSTEM_PROMPT, build_suggestion_prompt(record)
            )
        except Exception as e:
            logger.warning("suggestion_generator_failed", error=str(e))
            return self.fallback(record)

        topics = self._normalize(topics)
        if not topics:
            logger.warning("suggestion_generator_empty")
            return self.fallback(record)

        if len(topics) < MIN_SUGGESTIONS:
            topics = self._normalize(topics + self.fallback(record))

        logger.info("suggestions_generated", count=len(topics), source="generator")
        return topics

    async def refresh(self, store: ProgressStore) -> list[SuggestedTopic]:
        """Fill the store's suggestion cache when it is empty and persist it."""
        record = store.record
        if not self.should_suggest(record):
            return record.suggested_topics

        topics = await self.suggest(record)

        def _fill(current: ProgressRecord) -> ProgressRecord:
            # Another change may have filled the cache while we were waiting.
            if current.suggested_topics:
                return current
            return current.model_copy(update={"suggested_topics": topics})

        return store.update(_fill).suggested_topics

    @staticmethod
    def _normalize(topics: list[SuggestedTopic]) -> list[SuggestedTopic]:
        unique: list[SuggestedTopic] = []
        seen: set[str] = set()
        for topic in topics:
            if topic.specialty in seen:
                continue
            seen.add(topic.specialty)
            unique.append(topic)
        return unique[:MAX_SUGGESTIONS]
