"""Tests for session lifecycle and answer recording."""

from datetime import datetime

import pytest

from medmaster.errors import ConsistencyError, ValidationError
from medmaster.models.progress import ProgressRecord, QuestionMode
from medmaster.progress import session

NOW = datetime(2026, 10, 19, 10, 0)


def _answer(correct: bool = True, specialty: str = "Cardiologia", **kwargs):
    return session.new_history_item(
        question="Which drug?",
        answer="Option B",
        correct=correct,
        specialty=specialty,
        mode=kwargs.pop("mode", QuestionMode.OBJECTIVE),
        difficulty="medium",
        now=NOW,
        **kwargs,
    )


@pytest.fixture
def active() -> ProgressRecord:
    return session.start_session(
        ProgressRecord(), "Cardiologia", "medium", QuestionMode.OBJECTIVE, 10, now=NOW
    )


class TestStartSession:
    def test_creates_active_session(self, active):
        current = active.current_session
        assert current is not None
        assert current.is_active
        assert current.questions_completed == 0
        assert current.questions_total == 10
        assert current.specialty == "Cardiologia"
        assert current.started_at == NOW

    def test_input_record_untouched(self):
        record = ProgressRecord()
        session.start_session(record, "Pediatria", "easy", "objective", 5)
        assert record.current_session is None

    @pytest.mark.parametrize("target", [0, -3])
    def test_rejects_non_positive_target(self, target):
        with pytest.raises(ValidationError):
            session.start_session(ProgressRecord(), "Pediatria", "easy", "objective", target)

    def test_rejects_blank_specialty(self):
        with pytest.raises(ValidationError):
            session.start_session(ProgressRecord(), "  ", "easy", "objective", 5)

    def test_rejects_unknown_mode(self):
        with pytest.raises(ValidationError):
            session.start_session(ProgressRecord(), "Pediatria", "easy", "oral", 5)

    def test_rejects_while_active(self, active):
        with pytest.raises(ConsistencyError):
            session.start_session(active, "Pediatria", "easy", "objective", 5)

    def test_allowed_after_completion(self):
        record = session.start_session(ProgressRecord(), "Cardiologia", "medium", "objective", 1)
        record = session.record_answer(record, _answer(), now=NOW)
        assert not record.current_session.is_active
        restarted = session.start_session(record, "Pediatria", "easy", "essay", 3)
        assert restarted.current_session.specialty == "Pediatria"
        assert restarted.current_session.is_active


class TestResumeAndAbandon:
    def test_resume_active(self, active):
        assert session.resume_session(active) == active.current_session

    def test_nothing_to_resume(self):
        assert session.resume_session(ProgressRecord()) is None

    def test_completed_not_resumable(self):
        record = session.start_session(ProgressRecord(), "Cardiologia", "medium", "objective", 1)
        record = session.record_answer(record, _answer())
        assert session.resume_session(record) is None

    def test_abandon_then_start(self, active):
        record = session.abandon_session(active)
        assert record.current_session is None
        record = session.start_session(record, "Pediatria", "easy", "objective", 5)
        assert record.current_session.specialty == "Pediatria"

    def test_abandon_without_session(self):
        with pytest.raises(ConsistencyError):
            session.abandon_session(ProgressRecord())


class TestRecordAnswer:
    def test_updates_everything_together(self, active):
        record = session.record_answer(active, _answer(correct=True), now=NOW)
        assert record.total_questions == 1
        assert record.correct_answers == 1
        assert record.specialties["Cardiologia"].total == 1
        assert record.specialties["Cardiologia"].correct == 1
        assert record.specialties["Cardiologia"].last_studied == NOW
        assert len(record.question_history) == 1
        assert record.current_session.questions_completed == 1
        assert record.current_session.last_updated == NOW
        assert record.experience == session.EXPERIENCE_CORRECT
        assert record.last_activity == NOW

    def test_incorrect_answer(self, active):
        record = session.record_answer(active, _answer(correct=False))
        assert record.correct_answers == 0
        assert record.specialties["Cardiologia"].correct == 0
        assert record.experience == session.EXPERIENCE_INCORRECT

    def test_completes_after_target_and_rejects_extra(self, active):
        record = active
        for i in range(10):
            record = session.record_answer(record, _answer(correct=i % 3 == 0))
        assert record.current_session.is_active is False
        assert record.current_session.questions_completed == 10

        with pytest.raises(ConsistencyError):
            session.record_answer(record, _answer())
        assert record.current_session.questions_completed == 10
        assert record.total_questions == 10

    def test_specialty_invariant_holds(self, active):
        record = active
        for i in range(7):
            record = session.record_answer(record, _answer(correct=i % 2 == 0))
            stats = record.specialties["Cardiologia"]
            assert stats.correct <= stats.total
            assert record.correct_answers <= record.total_questions

    def test_rejects_without_session(self):
        with pytest.raises(ConsistencyError):
            session.record_answer(ProgressRecord(), _answer())

    def test_rejects_duplicate_item(self, active):
        item = _answer()
        record = session.record_answer(active, item)
        with pytest.raises(ConsistencyError):
            session.record_answer(record, item)
        assert record.total_questions == 1

    def test_rejects_other_specialty(self, active):
        with pytest.raises(ConsistencyError):
            session.record_answer(active, _answer(specialty="Pediatria"))

    def test_rejects_other_mode(self, active):
        essay = session.essay_history_item("Q", "A", "Cardiologia", score=90)
        with pytest.raises(ConsistencyError, match="mode"):
            session.record_answer(active, essay)
        assert active.current_session.questions_completed == 0

    def test_caller_supplied_id_deduplicates(self, active):
        record = session.record_answer(active, _answer(item_id="client-1"))
        with pytest.raises(ConsistencyError):
            session.record_answer(record, _answer(item_id="client-1"))
        assert record.question_history[0].id == "client-1"

    def test_history_keeps_insertion_order(self, active):
        first, second = _answer(), _answer()
        record = session.record_answer(active, first)
        record = session.record_answer(record, second)
        assert [i.id for i in record.question_history] == [first.id, second.id]

    def test_level_follows_experience(self):
        record = ProgressRecord(experience=95)
        record = session.start_session(record, "Cardiologia", "medium", "objective", 5)
        record = session.record_answer(record, _answer())
        assert record.experience == 105
        assert record.level == 2


class TestPracticeAndQuiz:
    def test_practice_answer_without_session(self):
        record = session.record_practice_answer(ProgressRecord(), _answer(specialty="Pediatria"))
        assert record.total_questions == 1
        assert record.current_session is None
        assert "Pediatria" in record.specialties

    def test_essay_item_pass_mark(self):
        passed = session.essay_history_item("Q", "A", "Neurologia", score=70)
        failed = session.essay_history_item("Q", "A", "Neurologia", score=69.5)
        assert passed.correct is True
        assert failed.correct is False
        assert passed.mode == QuestionMode.ESSAY

    def test_essay_experience_from_score(self):
        item = session.essay_history_item("Q", "A", "Neurologia", score=85)
        record = session.record_practice_answer(ProgressRecord(), item)
        assert record.experience == 9
        assert record.question_history[0].score == 85

    def test_quiz_result(self):
        record = session.record_quiz_result(ProgressRecord(), "Pediatria", 5, 3, now=NOW)
        assert record.total_questions == 5
        assert record.correct_answers == 3
        assert record.specialties["Pediatria"].total == 5
        assert record.question_history == []
        assert record.experience == 3 * session.EXPERIENCE_CORRECT + session.EXPERIENCE_QUIZ_BONUS

    @pytest.mark.parametrize("total,correct", [(0, 0), (3, 4), (3, -1)])
    def test_quiz_result_rejects_bad_counts(self, total, correct):
        with pytest.raises(ValidationError):
            session.record_quiz_result(ProgressRecord(), "Pediatria", total, correct)


class TestEnsureAnswerAccepted:
    def test_accepts_matching_session(self, active):
        session.ensure_answer_accepted(active, "Cardiologia", QuestionMode.OBJECTIVE)

    def test_rejects_without_session(self):
        with pytest.raises(ConsistencyError):
            session.ensure_answer_accepted(ProgressRecord(), "Neurologia", QuestionMode.ESSAY)

    def test_practice_needs_no_session(self):
        session.ensure_answer_accepted(
            ProgressRecord(), "Neurologia", QuestionMode.ESSAY, in_session=False
        )

    def test_rejects_mode_mismatch(self, active):
        with pytest.raises(ConsistencyError):
            session.ensure_answer_accepted(active, "Cardiologia", QuestionMode.ESSAY)

    def test_rejects_known_id(self, active):
        record = session.record_answer(active, _answer(item_id="a1"))
        with pytest.raises(ConsistencyError):
            session.ensure_answer_accepted(record, "Cardiologia", "objective", item_id="a1", in_session=False)
