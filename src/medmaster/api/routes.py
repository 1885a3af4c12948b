"""REST API routes exposing progress, sessions, statistics and suggestions."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

import structlog
from fastapi import APIRouter, HTTPException, Query
from pydantic import Field

from medmaster.config import get_settings
from medmaster.errors import CollaboratorError, ConsistencyError, MedmasterError, ValidationError
from medmaster.generation.client import AnswerGrader, QuestionGenerator, StudyMaterialGenerator
from medmaster.models.base import CamelModel
from medmaster.models.progress import ProgressRecord, QuestionMode
from medmaster.models.user import User
from medmaster.progress import history, session, statistics
from medmaster.storage.blob_store import FileBlobStore
from medmaster.storage.progress_store import ProgressStore
from medmaster.suggestions.engine import SuggestionEngine

logger = structlog.get_logger()
router = APIRouter(prefix="/api")

_STATUS_CODES: dict[type[MedmasterError], int] = {
    ValidationError: 422,
    ConsistencyError: 409,
    CollaboratorError: 502,
}


@contextmanager
def core_errors() -> Iterator[None]:
    """Translate core errors into HTTP responses carrying the reason."""
    try:
        yield
    except MedmasterError as e:
        status = _STATUS_CODES.get(type(e), 400)
        logger.info("request_rejected", error=type(e).__name__, reason=e.reason)
        raise HTTPException(status_code=status, detail=e.reason)


def open_store() -> ProgressStore:
    with core_errors():
        return ProgressStore.open(FileBlobStore(get_settings().data_dir))


def _collaborator_args() -> dict:
    settings = get_settings()
    if not settings.openai_api_key:
        raise HTTPException(status_code=503, detail="Question generation is not configured")
    return {
        "api_key": settings.openai_api_key,
        "model": settings.generation_model,
        "timeout_seconds": settings.collaborator_timeout_seconds,
    }


def suggestion_engine() -> SuggestionEngine:
    settings = get_settings()
    generator = None
    if settings.openai_api_key:
        generator = QuestionGenerator(
            api_key=settings.openai_api_key,
            model=settings.generation_model,
            timeout_seconds=settings.collaborator_timeout_seconds,
        )
    return SuggestionEngine(generator=generator, min_questions=settings.suggestion_min_questions)


def _dump(record: ProgressRecord) -> dict:
    return record.model_dump(mode="json", by_alias=True)


class StartSessionRequest(CamelModel):
    specialty: str = Field(min_length=1)
    difficulty: str = "medium"
    mode: QuestionMode = QuestionMode.OBJECTIVE
    target_count: int | None = None


class AnswerRequest(CamelModel):
    id: str | None = Field(default=None, min_length=1)
    question: str
    answer: str
    correct: bool
    specialty: str = Field(min_length=1)
    mode: QuestionMode = QuestionMode.OBJECTIVE
    difficulty: str | None = None
    score: float | None = Field(default=None, ge=0, le=100)
    in_session: bool = True


class QuizResultRequest(CamelModel):
    specialty: str = Field(min_length=1)
    total: int
    correct: int


class QuestionRequest(CamelModel):
    specialty: str = Field(min_length=1)
    difficulty: str = "medium"


class GradeRequest(CamelModel):
    id: str | None = Field(default=None, min_length=1)
    question: str
    answer: str = Field(min_length=1)
    specialty: str = Field(min_length=1)
    difficulty: str | None = None
    in_session: bool = True


class MaterialRequest(CamelModel):
    specialty: str | None = None
    topics: list[str] = Field(default_factory=list)


def _record(store: ProgressStore, item, in_session: bool) -> ProgressRecord:
    recorder = session.record_answer if in_session else session.record_practice_answer
    with core_errors():
        return store.update(lambda record: recorder(record, item))


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.post("/register")
async def register(user: User) -> dict:
    settings = get_settings()
    store = open_store()
    with core_errors():
        record = store.register(
            user,
            daily_questions=settings.daily_questions_default,
            weekly_questions=settings.weekly_questions_default,
        )
    return {"user": user.model_dump(by_alias=True), "progress": _dump(record)}


@router.post("/login")
async def login(user: User) -> dict:
    store = open_store()
    with core_errors():
        record = store.login(user)
    return {
        "user": user.model_dump(by_alias=True),
        "progress": _dump(record),
        "firstLogin": record.total_questions == 0,
    }


@router.post("/logout")
async def logout() -> dict:
    open_store().logout()
    return {"status": "ok"}


@router.get("/progress")
async def get_progress() -> dict:
    return _dump(open_store().record)


@router.get("/dashboard")
async def get_dashboard() -> dict:
    record = open_store().record
    return statistics.dashboard(record, datetime.now()).model_dump(mode="json", by_alias=True)


@router.get("/statistics/monthly")
async def get_monthly(months: int = Query(default=6, ge=1, le=24)) -> list[dict]:
    record = open_store().record
    buckets = statistics.monthly_series(record, datetime.now(), months)
    return [b.model_dump(by_alias=True) for b in buckets]


@router.get("/statistics/specialties")
async def get_specialties(top: int = Query(default=5, ge=1, le=50)) -> list[dict]:
    record = open_store().record
    return [s.model_dump(by_alias=True) for s in statistics.specialty_breakdown(record, top)]


@router.get("/history")
async def get_history(
    search: str = "",
    mode: QuestionMode | None = None,
    result: history.ResultFilter = history.ResultFilter.ALL,
    specialty: str | None = None,
) -> dict:
    record = open_store().record
    items = history.filter_history(record, search, mode, result, specialty)
    return {
        "items": [item.model_dump(mode="json", by_alias=True) for item in items],
        "summary": history.summarize(items).model_dump(by_alias=True),
        "specialties": history.history_specialties(record),
    }


@router.put("/goals")
async def update_goals(changes: dict) -> dict:
    with core_errors():
        return _dump(open_store().update_goals(**changes))


@router.put("/preferences")
async def update_preferences(changes: dict) -> dict:
    with core_errors():
        return _dump(open_store().update_preferences(**changes))


@router.post("/sessions")
async def start_session(request: StartSessionRequest) -> dict:
    store = open_store()
    target = request.target_count
    if target is None:
        target = get_settings().session_question_target
    with core_errors():
        record = store.update(
            lambda r: session.start_session(
                r, request.specialty, request.difficulty, request.mode, target
            )
        )
    return record.current_session.model_dump(mode="json", by_alias=True)


@router.get("/sessions/current")
async def resume_session() -> dict:
    current = session.resume_session(open_store().record)
    if current is None:
        raise HTTPException(status_code=404, detail="There is no session to resume")
    return current.model_dump(mode="json", by_alias=True)


@router.delete("/sessions/current")
async def abandon_session() -> dict:
    store = open_store()
    with core_errors():
        store.update(session.abandon_session)
    return {"status": "abandoned"}


@router.post("/answers")
async def submit_answer(request: AnswerRequest) -> dict:
    with core_errors():
        item = session.new_history_item(
            question=request.question,
            answer=request.answer,
            correct=request.correct,
            specialty=request.specialty,
            mode=request.mode,
            difficulty=request.difficulty,
            score=request.score,
            item_id=request.id,
        )
    return _dump(_record(open_store(), item, request.in_session))


@router.post("/quizzes")
async def submit_quiz(request: QuizResultRequest) -> dict:
    store = open_store()
    with core_errors():
        record = store.update(
            lambda r: session.record_quiz_result(r, request.specialty, request.total, request.correct)
        )
    return _dump(record)


@router.get("/suggestions")
async def get_suggestions() -> list[dict]:
    store = open_store()
    with core_errors():
        topics = await suggestion_engine().refresh(store)
    return [t.model_dump(by_alias=True) for t in topics]


@router.delete("/suggestions")
async def clear_suggestions() -> dict:
    with core_errors():
        open_store().clear_suggestions()
    return {"status": "cleared"}


@router.post("/questions/objective")
async def objective_question(request: QuestionRequest) -> dict:
    with core_errors():
        generator = QuestionGenerator(**_collaborator_args())
        question = await generator.generate_objective_question(request.specialty, request.difficulty)
    return question.model_dump(by_alias=True)


@router.post("/questions/dissertative")
async def dissertative_question(request: QuestionRequest) -> dict:
    with core_errors():
        generator = QuestionGenerator(**_collaborator_args())
        text = await generator.generate_dissertative_question(request.specialty, request.difficulty)
    return {"question": text}


@router.post("/answers/dissertative/grade")
async def grade_dissertative(request: GradeRequest) -> dict:
    store = open_store()
    with core_errors():
        session.ensure_answer_accepted(
            store.record,
            request.specialty,
            QuestionMode.ESSAY,
            item_id=request.id,
            in_session=request.in_session,
        )
        grader = AnswerGrader(**_collaborator_args())
        feedback = await grader.correct_dissertative_answer(
            request.question, request.answer, request.specialty
        )
    item = session.essay_history_item(
        question=request.question,
        answer=request.answer,
        specialty=request.specialty,
        score=feedback.score,
        difficulty=request.difficulty,
        item_id=request.id,
    )
    record = _record(store, item, request.in_session)
    return {"feedback": feedback.model_dump(by_alias=True), "progress": _dump(record)}


@router.post("/materials")
async def study_material(request: MaterialRequest) -> dict:
    record = open_store().record
    specialty = request.specialty or SuggestionEngine.focus_specialty(record)
    if not specialty:
        raise HTTPException(status_code=422, detail="No specialty to build study material for")
    topics = request.topics or statistics.weakest_specialties(record) or [specialty]
    with core_errors():
        generator = StudyMaterialGenerator(**_collaborator_args())
        material = await generator.generate_study_material(specialty, topics)
    return {"specialty": specialty, "material": material.model_dump(by_alias=True)}
