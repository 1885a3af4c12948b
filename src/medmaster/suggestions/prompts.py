"""Prompt construction for generator-backed topic suggestions."""

from medmaster.models.progress import ProgressRecord
from medmaster.progress.statistics import accuracy_rate

SUGGESTION_SYSTEM_PROMPT = (
    "You are a medical study mentor who builds personalised study plans. "
    "Always respond with valid JSON only."
)

SUGGESTION_PROMPT = """\
As a medical education specialist, analyse the student's performance and
suggest 3-5 specialties to study.

STUDENT STATISTICS:
- Total questions: {total_questions}
- Overall accuracy: {accuracy}%
- Specialties studied: {specialty_count}
- Streak: {streak_days} days

PERFORMANCE BY SPECIALTY:
{specialty_lines}

FAVOURITE SPECIALTIES: {favorites}
GOALS: {daily_questions} questions/day, target level {target_level}
TARGET SPECIALTIES: {targets}

Consider:
1. Specialties with the lowest performance (need reinforcement)
2. Specialties not studied yet (broaden knowledge)
3. Favourite specialties (keep engagement)
4. Balance between review and new content

Write the reasons in Brazilian Portuguese. Respond ONLY with a JSON object:
{{
    "suggestions": [
        {{
            "specialty": "<specialty name>",
            "reason": "<clear, motivating reason>",
            "priority": "high|medium|low",
            "accuracy": <current accuracy 0-100>
        }}
    ]
}}
"""


def _specialty_lines(record: ProgressRecord) -> str:
    if not record.specialties:
        return "- none yet"
    lines = []
    for name, stats in record.specialties.items():
        last = stats.last_studied.date().isoformat() if stats.last_studied else "never"
        lines.append(
            f"- {name}: {stats.total} questions, {stats.accuracy:.1f}% correct, last studied: {last}"
        )
    return "\n".join(lines)


def build_suggestion_prompt(record: ProgressRecord) -> str:
    """Describe the record for the suggestion generator."""
    return SUGGESTION_PROMPT.format(
        total_questions=record.total_questions,
        accuracy=accuracy_rate(record),
        specialty_count=len(record.specialties),
        streak_days=record.streak_days,
        specialty_lines=_specialty_lines(record),
        favorites=", ".join(record.preferences.favorite_specialties) or "none set",
        daily_questions=record.goals.daily_questions,
        target_level=record.goals.target_level,
        targets=", ".join(record.goals.target_specialties) or "none set",
    )
