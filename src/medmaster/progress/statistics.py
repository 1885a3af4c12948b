"""Pure statistics over a progress record.

Nothing here mutates its input or performs I/O. Every ratio is guarded so an
empty history or a zero target yields 0, never a division error.
"""

import math
from collections import defaultdict
from datetime import date, datetime, timedelta

from medmaster.models.progress import ProgressRecord, QuestionHistoryItem
from medmaster.models.statistics import (
    Dashboard,
    DayBucket,
    GoalProgress,
    MonthBucket,
    SpecialtyPerformance,
)

WEEKDAY_LABELS = ["Seg", "Ter", "Qua", "Qui", "Sex", "Sáb", "Dom"]
MONTH_LABELS = [
    "Jan", "Fev", "Mar", "Abr", "Mai", "Jun",
    "Jul", "Ago", "Set", "Out", "Nov", "Dez",
]


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def percentage(part: float, whole: float) -> float:
    """``part / whole * 100``, or 0 when ``whole`` is 0."""
    if not whole:
        return 0.0
    return part / whole * 100


def _history(record: ProgressRecord) -> list[QuestionHistoryItem]:
    return record.question_history or []


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def accuracy_rate(record: ProgressRecord) -> int:
    """Overall accuracy percentage, rounded; 0 with no answers."""
    return round_half_up(percentage(record.correct_answers, record.total_questions))


def _goal(current: int, target: int) -> GoalProgress:
    return GoalProgress(
        current=current,
        target=target,
        percentage=min(100.0, percentage(current, target)),
    )


def daily_goal_progress(record: ProgressRecord, today: date | datetime) -> GoalProgress:
    """Questions answered on the calendar day ``today`` against the daily goal."""
    day = _as_date(today)
    current = sum(1 for item in _history(record) if item.timestamp.date() == day)
    return _goal(current, record.goals.daily_questions)


def weekly_goal_progress(record: ProgressRecord, now: datetime) -> GoalProgress:
    """Questions answered in the rolling 7 days before ``now``."""
    cutoff = now - timedelta(days=7)
    current = sum(1 for item in _history(record) if item.timestamp >= cutoff)
    return _goal(current, record.goals.weekly_questions)


def weekly_series(record: ProgressRecord, today: date | datetime) -> list[DayBucket]:
    """Seven daily buckets, oldest first, ending on ``today``."""
    day = _as_date(today)
    buckets = [
        DayBucket(day=WEEKDAY_LABELS[d.weekday()], date=d)
        for d in (day - timedelta(days=offset) for offset in range(6, -1, -1))
    ]
    for item in _history(record):
        days_ago = (day - item.timestamp.date()).days
        if 0 <= days_ago < 7:
            bucket = buckets[6 - days_ago]
            bucket.questions_count += 1
            if item.correct:
                bucket.correct_count += 1
    return buckets


def _months_back(now: date, count: int) -> list[tuple[int, int]]:
    months = []
    year, month = now.year, now.month
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


def monthly_series(
    record: ProgressRecord,
    now: date | datetime,
    months_back: int = 6,
) -> list[MonthBucket]:
    """One bucket per calendar month, oldest first, ending with ``now``'s month.

    Buckets match on year and month, so the same month of an earlier year
    does not fold into the current bucket.
    """
    if months_back <= 0:
        return []
    buckets = {
        key: MonthBucket(month=MONTH_LABELS[key[1] - 1], year=key[0])
        for key in _months_back(_as_date(now), months_back)
    }
    for item in _history(record):
        bucket = buckets.get((item.timestamp.year, item.timestamp.month))
        if bucket is None:
            continue
        bucket.questions_count += 1
        if item.correct:
            bucket.correct_count += 1
    return list(buckets.values())


def specialty_breakdown(record: ProgressRecord, top_n: int = 5) -> list[SpecialtyPerformance]:
    """Per-specialty accuracy from the history, most practised first."""
    totals: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for item in _history(record):
        tally = totals[item.specialty]
        tally[0] += 1
        if item.correct:
            tally[1] += 1

    breakdown = [
        SpecialtyPerformance(
            name=name,
            accuracy_percent=round_half_up(percentage(correct, total)),
            total=total,
        )
        for name, (total, correct) in totals.items()
    ]
    # sorted() is stable: ties keep first-seen order
    breakdown = sorted(breakdown, key=lambda s: s.total, reverse=True)
    return breakdown[:max(top_n, 0)]


def weakest_specialties(
    record: ProgressRecord,
    min_attempts: int = 3,
    threshold: float = 70.0,
) -> list[str]:
    """Specialties below ``threshold`` accuracy, weakest first."""
    weak = [
        (stats.accuracy, name)
        for name, stats in record.specialties.items()
        if stats.total >= min_attempts and stats.accuracy < threshold
    ]
    return [name for _, name in sorted(weak, key=lambda pair: pair[0])]


def streak_transition(record: ProgressRecord, now: datetime) -> ProgressRecord:
    """Roll the login streak forward to ``now``.

    A login the day after the previous one extends the streak; a longer gap
    restarts it at 1; a second login on the same day changes nothing.
    """
    gap = (now.date() - record.last_login_date.date()).days
    if gap < 1:
        return record
    streak = record.streak_days + 1 if gap == 1 else 1
    return record.model_copy(update={"streak_days": streak, "last_login_date": now})


def level_for_experience(experience: int) -> int:
    """Advisory level: one level per 100 experience points."""
    return 1 + max(experience, 0) // 100


def dashboard(record: ProgressRecord, now: datetime, top_n: int = 5) -> Dashboard:
    return Dashboard(
        total_questions=record.total_questions,
        correct_answers=record.correct_answers,
        accuracy=accuracy_rate(record),
        streak_days=record.streak_days,
        level=record.level,
        experience=record.experience,
        daily_goal=daily_goal_progress(record, now),
        weekly_goal=weekly_goal_progress(record, now),
        weekly_series=weekly_series(record, now),
        top_specialties=specialty_breakdown(record, top_n),
    )
