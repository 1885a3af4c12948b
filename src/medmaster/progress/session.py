"""Study session lifecycle and answer recording.

A record moves between three session states:

    no session --start--> active --last answer--> completed
        ^                   |                        |
        +----abandon--------+        start ----------+

Every function takes a record and returns a new one; the input is never
modified. Recording an answer updates the session, the history, the
specialty tally and the totals together, or raises and changes nothing.
"""

import uuid
from datetime import datetime

import structlog

from medmaster.errors import ConsistencyError, ValidationError
from medmaster.models.progress import (
    ProgressRecord,
    QuestionHistoryItem,
    QuestionMode,
    SpecialtyStats,
    StudySession,
)
from medmaster.progress.statistics import level_for_experience, round_half_up

logger = structlog.get_logger()

# Essay answers at or above this grade count as correct.
ESSAY_PASS_SCORE = 70

EXPERIENCE_CORRECT = 10
EXPERIENCE_INCORRECT = 5
EXPERIENCE_QUIZ_BONUS = 50


def start_session(
    record: ProgressRecord,
    specialty: str,
    difficulty: str,
    mode: QuestionMode | str,
    target_count: int,
    now: datetime | None = None,
) -> ProgressRecord:
    """Open a new session.

    Raises:
        ValidationError: Empty specialty or non-positive target.
        ConsistencyError: A session is already active.
    """
    if not specialty or not specialty.strip():
        raise ValidationError("A specialty is required to start a session")
    if target_count <= 0:
        raise ValidationError(f"Session target must be positive, got {target_count}")
    try:
        mode = QuestionMode(mode)
    except ValueError:
        raise ValidationError(f"Unknown question mode: {mode!r}")

    current = record.current_session
    if current is not None and current.is_active:
        raise ConsistencyError(
            f"A {current.specialty} session is already in progress "
            f"({current.questions_completed}/{current.questions_total}); "
            "resume or abandon it first"
        )

    now = now or datetime.now()
    session = StudySession(
        id=uuid.uuid4().hex,
        specialty=specialty,
        difficulty=difficulty,
        mode=mode,
        questions_completed=0,
        questions_total=target_count,
        started_at=now,
        last_updated=now,
        is_active=True,
    )
    logger.info(
        "session_started",
        session_id=session.id,
        specialty=specialty,
        mode=mode.value,
        target=target_count,
    )
    return record.model_copy(update={"current_session": session})


def resume_session(record: ProgressRecord) -> StudySession | None:
    """The active session, or None when there is nothing to resume."""
    session = record.current_session
    if session is None or not session.is_active:
        return None
    return session


def abandon_session(record: ProgressRecord) -> ProgressRecord:
    """Drop the active session so a new one can start."""
    session = resume_session(record)
    if session is None:
        raise ConsistencyError("There is no active session to abandon")
    logger.info(
        "session_abandoned",
        session_id=session.id,
        completed=session.questions_completed,
        total=session.questions_total,
    )
    return record.model_copy(update={"current_session": None})


def new_history_item(
    question: str,
    answer: str,
    correct: bool,
    specialty: str,
    mode: QuestionMode | str,
    difficulty: str | None = None,
    score: float | None = None,
    now: datetime | None = None,
    item_id: str | None = None,
) -> QuestionHistoryItem:
    """History item; ``item_id`` lets a retried submission be recognised."""
    return QuestionHistoryItem(
        id=item_id or uuid.uuid4().hex,
        question=question,
        answer=answer,
        correct=correct,
        specialty=specialty,
        mode=QuestionMode(mode),
        timestamp=now or datetime.now(),
        score=score,
        difficulty=difficulty,
    )


def essay_history_item(
    question: str,
    answer: str,
    specialty: str,
    score: float,
    difficulty: str | None = None,
    now: datetime | None = None,
    item_id: str | None = None,
) -> QuestionHistoryItem:
    """History item for a graded essay answer."""
    return new_history_item(
        question=question,
        answer=answer,
        correct=score >= ESSAY_PASS_SCORE,
        specialty=specialty,
        mode=QuestionMode.ESSAY,
        difficulty=difficulty,
        score=score,
        now=now,
        item_id=item_id,
    )


def experience_for(item: QuestionHistoryItem) -> int:
    if item.mode == QuestionMode.ESSAY and item.score is not None:
        return round_half_up(item.score / 10)
    return EXPERIENCE_CORRECT if item.correct else EXPERIENCE_INCORRECT


def _tally(
    record: ProgressRecord,
    specialty: str,
    total: int,
    correct: int,
    now: datetime,
) -> dict[str, SpecialtyStats]:
    specialties = {name: stats.model_copy() for name, stats in record.specialties.items()}
    previous = specialties.get(specialty, SpecialtyStats())
    specialties[specialty] = SpecialtyStats(
        total=previous.total + total,
        correct=previous.correct + correct,
        last_studied=now,
    )
    return specialties


def _apply_answer(
    record: ProgressRecord,
    item: QuestionHistoryItem,
    now: datetime,
    updates: dict | None = None,
) -> ProgressRecord:
    if item.id in record.history_ids():
        raise ConsistencyError(f"Answer {item.id} has already been recorded")

    experience = record.experience + experience_for(item)
    changes = {
        "total_questions": record.total_questions + 1,
        "correct_answers": record.correct_answers + (1 if item.correct else 0),
        "specialties": _tally(record, item.specialty, 1, 1 if item.correct else 0, now),
        "question_history": [*(record.question_history or []), item],
        "experience": experience,
        "level": level_for_experience(experience),
        "last_activity": now,
    }
    changes.update(updates or {})
    return record.model_copy(update=changes)


def _check_session(session: StudySession | None, specialty: str, mode: QuestionMode) -> None:
    if session is None:
        raise ConsistencyError("No study session has been started")
    if not session.is_active:
        raise ConsistencyError(
            f"Session {session.id} is already completed "
            f"({session.questions_completed}/{session.questions_total})"
        )
    if specialty != session.specialty:
        raise ConsistencyError(
            f"Answer specialty {specialty!r} does not match the "
            f"session specialty {session.specialty!r}"
        )
    if mode != session.mode:
        raise ConsistencyError(
            f"Answer mode {mode.value!r} does not match the "
            f"session mode {session.mode.value!r}"
        )


def ensure_answer_accepted(
    record: ProgressRecord,
    specialty: str,
    mode: QuestionMode | str,
    item_id: str | None = None,
    in_session: bool = True,
) -> None:
    """Raise the error recording such an answer would raise.

    Lets callers reject an answer before paying for a remote grade.

    Raises:
        ConsistencyError: The id is already recorded, or (in session) there
            is no matching active session.
    """
    if item_id and item_id in record.history_ids():
        raise ConsistencyError(f"Answer {item_id} has already been recorded")
    if in_session:
        _check_session(record.current_session, specialty, QuestionMode(mode))


def record_answer(
    record: ProgressRecord,
    item: QuestionHistoryItem,
    now: datetime | None = None,
) -> ProgressRecord:
    """Record an answer against the active session.

    The session advances by one and completes when it reaches its target.

    Raises:
        ConsistencyError: No active session, a specialty or mode mismatch,
            or the answer was already recorded.
    """
    now = now or datetime.now()
    session = record.current_session
    _check_session(session, item.specialty, item.mode)

    completed = session.questions_completed + 1
    finished = completed >= session.questions_total
    updated_session = session.model_copy(
        update={
            "questions_completed": completed,
            "last_updated": now,
            "is_active": not finished,
        }
    )
    result = _apply_answer(record, item, now, {"current_session": updated_session})
    if finished:
        logger.info("session_completed", session_id=session.id, total=completed)
    return result


def record_practice_answer(
    record: ProgressRecord,
    item: QuestionHistoryItem,
    now: datetime | None = None,
) -> ProgressRecord:
    """Record an answer given outside any session."""
    return _apply_answer(record, item, now or datetime.now())


def record_quiz_result(
    record: ProgressRecord,
    specialty: str,
    total: int,
    correct: int,
    now: datetime | None = None,
) -> ProgressRecord:
    """Fold a whole batch quiz into the totals without history items.

    Raises:
        ValidationError: Counts are negative or ``correct`` exceeds ``total``.
    """
    if not specialty:
        raise ValidationError("A specialty is required")
    if total <= 0 or correct < 0 or correct > total:
        raise ValidationError(f"Invalid quiz result: {correct} correct out of {total}")

    now = now or datetime.now()
    experience = record.experience + correct * EXPERIENCE_CORRECT + EXPERIENCE_QUIZ_BONUS
    return record.model_copy(
        update={
            "total_questions": record.total_questions + total,
            "correct_answers": record.correct_answers + correct,
            "specialties": _tally(record, specialty, total, correct, now),
            "experience": experience,
            "level": level_for_experience(experience),
            "last_activity": now,
        }
    )
