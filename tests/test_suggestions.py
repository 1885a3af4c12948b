"""Tests for the suggestion engine and its rule-based fallback."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from medmaster.errors import CollaboratorError
from medmaster.models.progress import (
    Priority,
    ProgressRecord,
    SpecialtyStats,
    SuggestedTopic,
    UserPreferences,
)
from medmaster.storage.blob_store import MemoryBlobStore
from medmaster.storage.progress_store import ProgressStore
from medmaster.suggestions.engine import SuggestionEngine
from medmaster.suggestions.prompts import build_suggestion_prompt
from medmaster.suggestions.rule_based import COMMON_SPECIALTIES, RuleBasedSuggester


def _record(specialties: dict, favorites: list[str] | None = None) -> ProgressRecord:
    total = sum(s["total"] for s in specialties.values())
    correct = sum(s["correct"] for s in specialties.values())
    return ProgressRecord(
        total_questions=total,
        correct_answers=correct,
        specialties=specialties,
        preferences=UserPreferences(favorite_specialties=favorites or []),
    )


def _topic(name: str, priority: str = "medium") -> SuggestedTopic:
    return SuggestedTopic(specialty=name, reason="generated", priority=priority, accuracy=50)


def _generator(**kwargs) -> MagicMock:
    generator = MagicMock()
    generator.suggest_topics = AsyncMock(**kwargs)
    return generator


class TestRuleBasedSuggester:
    def test_weak_specialty_ranked_first(self):
        record = _record({"Cardiologia": {"total": 5, "correct": 2}})
        suggestions = RuleBasedSuggester().suggest(record)
        assert suggestions[0].specialty == "Cardiologia"
        assert suggestions[0].priority == Priority.HIGH
        assert suggestions[0].accuracy == pytest.approx(40.0)
        assert "40%" in suggestions[0].reason

    def test_backfills_to_three_without_duplicates(self):
        record = _record({"Cardiologia": {"total": 5, "correct": 2}})
        suggestions = RuleBasedSuggester().suggest(record)
        names = [s.specialty for s in suggestions]
        assert names == ["Cardiologia", "Clínica Médica", "Pediatria"]
        assert len(set(names)) == len(names)

    def test_weak_capped_at_two_and_sorted(self):
        record = _record({
            "A": {"total": 4, "correct": 2},
            "B": {"total": 4, "correct": 0},
            "C": {"total": 4, "correct": 1},
            "D": {"total": 4, "correct": 4},
        })
        suggestions = RuleBasedSuggester().suggest(record)
        high = [s.specialty for s in suggestions if s.priority == Priority.HIGH]
        assert high == ["B", "C"]

    def test_needs_three_attempts_to_be_weak(self):
        record = _record({"Neurologia": {"total": 2, "correct": 0}})
        suggestions = RuleBasedSuggester().suggest(record)
        assert all(s.priority != Priority.HIGH for s in suggestions)
        assert "Neurologia" not in [s.specialty for s in suggestions]

    def test_untouched_favorites(self):
        record = _record(
            {"Pediatria": {"total": 3, "correct": 3}},
            favorites=["Pediatria", "Dermatologia", "Psiquiatria", "Ortopedia"],
        )
        suggestions = RuleBasedSuggester().suggest(record)
        favorites = [s.specialty for s in suggestions[:2]]
        assert favorites == ["Dermatologia", "Psiquiatria"]
        assert suggestions[0].priority == Priority.MEDIUM

    def test_favorite_in_common_list_not_duplicated(self):
        record = _record({}, favorites=["Cardiologia"])
        names = [s.specialty for s in RuleBasedSuggester().suggest(record)]
        assert names.count("Cardiologia") == 1
        assert len(names) == 3

    def test_never_more_than_five(self):
        specialties = {f"S{i}": {"total": 5, "correct": 0} for i in range(10)}
        record = _record(specialties, favorites=[f"F{i}" for i in range(10)])
        assert len(RuleBasedSuggester().suggest(record)) <= 5

    def test_all_common_studied(self):
        record = _record({name: {"total": 3, "correct": 3} for name in COMMON_SPECIALTIES})
        assert RuleBasedSuggester().suggest(record) == []


class TestSuggestionEngine:
    def test_should_suggest_policy(self):
        engine = SuggestionEngine()
        assert not engine.should_suggest(ProgressRecord(total_questions=2))
        assert engine.should_suggest(ProgressRecord(total_questions=3))
        cached = ProgressRecord(total_questions=10, suggested_topics=[_topic("A")])
        assert not engine.should_suggest(cached)

    async def test_rules_only_without_generator(self):
        record = _record({"Cardiologia": {"total": 5, "correct": 2}})
        suggestions = await SuggestionEngine().suggest(record)
        assert suggestions[0].specialty == "Cardiologia"
        assert suggestions[0].priority == Priority.HIGH

    async def test_uses_generator_result(self):
        topics = [_topic("Pediatria", "high"), _topic("Neurologia"), _topic("Ortopedia")]
        generator = _generator(return_value=topics)
        engine = SuggestionEngine(generator=generator)
        suggestions = await engine.suggest(_record({"Cardiologia": {"total": 5, "correct": 2}}))
        assert [s.specialty for s in suggestions] == ["Pediatria", "Neurologia", "Ortopedia"]
        system_prompt, user_prompt = generator.suggest_topics.call_args.args
        assert "Cardiologia" in user_prompt

    async def test_generator_result_deduplicated_and_capped(self):
        topics = [_topic(n) for n in ["A", "B", "A", "C", "D", "E", "F"]]
        engine = SuggestionEngine(generator=_generator(return_value=topics))
        suggestions = await engine.suggest(ProgressRecord(total_questions=5))
        assert [s.specialty for s in suggestions] == ["A", "B", "C", "D", "E"]

    async def test_short_generator_answer_topped_up(self):
        engine = SuggestionEngine(generator=_generator(return_value=[_topic("Pediatria")]))
        suggestions = await engine.suggest(_record({"Cardiologia": {"total": 5, "correct": 2}}))
        names = [s.specialty for s in suggestions]
        assert names == ["Pediatria", "Cardiologia", "Clínica Médica"]
        assert suggestions[1].priority == Priority.HIGH

    async def test_rule_failure_degrades_to_empty(self):
        engine = SuggestionEngine()
        engine.rule_suggester = MagicMock()
        engine.rule_suggester.suggest.side_effect = RuntimeError("broken rule")
        assert await engine.suggest(ProgressRecord(total_questions=3)) == []

    async def test_falls_back_on_collaborator_error(self):
        engine = SuggestionEngine(generator=_generator(side_effect=CollaboratorError("down")))
        record = _record({"Cardiologia": {"total": 5, "correct": 2}})
        suggestions = await engine.suggest(record)
        assert suggestions[0].specialty == "Cardiologia"
        assert suggestions[0].priority == Priority.HIGH

    async def test_falls_back_on_unexpected_error(self):
        engine = SuggestionEngine(generator=_generator(side_effect=RuntimeError("boom")))
        suggestions = await engine.suggest(ProgressRecord(total_questions=3))
        assert len(suggestions) == 3

    async def test_falls_back_on_empty_answer(self):
        engine = SuggestionEngine(generator=_generator(return_value=[]))
        suggestions = await engine.suggest(ProgressRecord(total_questions=3))
        assert [s.specialty for s in suggestions] == COMMON_SPECIALTIES[:3]

    async def test_cancellation_propagates(self):
        engine = SuggestionEngine(generator=_generator(side_effect=asyncio.CancelledError()))
        with pytest.raises(asyncio.CancelledError):
            await engine.suggest(ProgressRecord(total_questions=3))


class TestRefresh:
    async def test_fills_empty_cache_and_persists(self):
        blobs = MemoryBlobStore()
        store = ProgressStore(blobs)
        store.merge(
            total_questions=5,
            correct_answers=2,
            specialties={"Cardiologia": SpecialtyStats(total=5, correct=2)},
        )
        topics = await SuggestionEngine().refresh(store)
        assert topics[0].specialty == "Cardiologia"
        assert ProgressStore.open(blobs).record.suggested_topics == topics

    async def test_keeps_existing_cache(self):
        generator = _generator(return_value=[_topic("X")])
        store = ProgressStore(MemoryBlobStore())
        store.merge(total_questions=5, correct_answers=5, suggested_topics=[_topic("Cached")])
        topics = await SuggestionEngine(generator=generator).refresh(store)
        assert [t.specialty for t in topics] == ["Cached"]
        generator.suggest_topics.assert_not_called()

    async def test_skips_with_insufficient_history(self):
        store = ProgressStore(MemoryBlobStore())
        store.merge(total_questions=2, correct_answers=1)
        assert await SuggestionEngine().refresh(store) == []
        assert store.record.suggested_topics == []


class TestFocusSpecialty:
    def test_prefers_weakest(self):
        record = _record(
            {"Cardiologia": {"total": 5, "correct": 2}, "Pediatria": {"total": 5, "correct": 1}},
        )
        assert SuggestionEngine.focus_specialty(record) == "Pediatria"

    def test_then_cached_suggestion_then_favorite(self):
        record = ProgressRecord(suggested_topics=[_topic("Neurologia")])
        assert SuggestionEngine.focus_specialty(record) == "Neurologia"
        record = ProgressRecord(preferences=UserPreferences(favorite_specialties=["Ortopedia"]))
        assert SuggestionEngine.focus_specialty(record) == "Ortopedia"
        assert SuggestionEngine.focus_specialty(ProgressRecord()) is None


def test_prompt_describes_record():
    record = _record({"Cardiologia": {"total": 5, "correct": 2}}, favorites=["Pediatria"])
    prompt = build_suggestion_prompt(record)
    assert "Cardiologia: 5 questions, 40.0% correct" in prompt
    assert "FAVOURITE SPECIALTIES: Pediatria" in prompt
    assert "Overall accuracy: 40%" in prompt


class TestBlankFavorites:
    def _store_with_blank_favorites(self) -> ProgressStore:
        store = ProgressStore(MemoryBlobStore())
        store.merge(total_questions=3, correct_answers=3)
        store.update_preferences(favoriteSpecialties=["  ", "", " Ortopedia "])
        return store

    def test_edit_drops_blank_names(self):
        store = self._store_with_blank_favorites()
        assert store.record.preferences.favorite_specialties == ["Ortopedia"]

    async def test_rules_only_path(self):
        record = self._store_with_blank_favorites().record
        suggestions = await SuggestionEngine().suggest(record)
        assert [s.specialty for s in suggestions] == ["Ortopedia", "Cardiologia", "Clínica Médica"]

    async def test_after_generator_failure(self):
        record = self._store_with_blank_favorites().record
        engine = SuggestionEngine(generator=_generator(side_effect=CollaboratorError("down")))
        suggestions = await engine.suggest(record)
        assert all(s.specialty.strip() for s in suggestions)
        assert len(suggestions) == 3

    def test_unvalidated_blank_names_skipped(self):
        preferences = UserPreferences.model_construct(
            favorite_specialties=["", "   ", "Dermatologia"],
            preferred_difficulty="medium",
            study_reminders=True,
            notifications_enabled=True,
        )
        record = ProgressRecord(total_questions=3, correct_answers=3, preferences=preferences)
        names = [s.specialty for s in RuleBasedSuggester().suggest(record)]
        assert names == ["Dermatologia", "Cardiologia", "Clínica Médica"]
