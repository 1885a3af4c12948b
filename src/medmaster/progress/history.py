"""Question history queries."""

from enum import StrEnum

from medmaster.models.progress import ProgressRecord, QuestionHistoryItem, QuestionMode
from medmaster.models.statistics import HistorySummary
from medmaster.progress.statistics import percentage, round_half_up


class ResultFilter(StrEnum):
    ALL = "all"
    CORRECT = "correct"
    INCORRECT = "incorrect"


def filter_history(
    record: ProgressRecord,
    search: str = "",
    mode: QuestionMode | None = None,
    result: ResultFilter = ResultFilter.ALL,
    specialty: str | None = None,
) -> list[QuestionHistoryItem]:
    """Matching history items, newest first.

    Args:
        record: Progress record to query.
        search: Case-insensitive text matched against question and answer.
        mode: Restrict to one exam mode.
        result: Restrict to correct or incorrect answers.
        specialty: Restrict to one specialty (exact match).
    """
    needle = search.strip().lower()
    matches = []
    for item in record.question_history or []:
        if needle and needle not in item.question.lower() and needle not in item.answer.lower():
            continue
        if mode is not None and item.mode != mode:
            continue
        if result == ResultFilter.CORRECT and not item.correct:
            continue
        if result == ResultFilter.INCORRECT and item.correct:
            continue
        if specialty is not None and item.specialty != specialty:
            continue
        matches.append(item)
    return sorted(matches, key=lambda item: item.timestamp, reverse=True)


def summarize(items: list[QuestionHistoryItem]) -> HistorySummary:
    total = len(items)
    correct = sum(1 for item in items if item.correct)
    return HistorySummary(
        total=total,
        correct=correct,
        incorrect=total - correct,
        accuracy=round_half_up(percentage(correct, total)),
    )


def history_specialties(record: ProgressRecord) -> list[str]:
    """Distinct specialties present in the history, sorted."""
    return sorted({item.specialty for item in record.question_history or []})
