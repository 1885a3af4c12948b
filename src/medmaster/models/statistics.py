"""Derived statistics views returned by the statistics engine."""

import datetime as dt

from medmaster.models.base import CamelModel


class GoalProgress(CamelModel):
    """Progress toward a question-count target."""

    current: int
    target: int
    percentage: float


class DayBucket(CamelModel):
    day: str
    date: dt.date
    questions_count: int = 0
    correct_count: int = 0


class MonthBucket(CamelModel):
    month: str
    year: int
    questions_count: int = 0
    correct_count: int = 0


class SpecialtyPerformance(CamelModel):
    name: str
    accuracy_percent: int
    total: int


class HistorySummary(CamelModel):
    total: int
    correct: int
    incorrect: int
    accuracy: int


class Dashboard(CamelModel):
    """Everything the dashboard shows, computed in one pass."""

    total_questions: int
    correct_answers: int
    accuracy: int
    streak_days: int
    level: int
    experience: int
    daily_goal: GoalProgress
    weekly_goal: GoalProgress
    weekly_series: list[DayBucket]
    top_specialties: list[SpecialtyPerformance]
