"""
Tests for the submission pipeline, the countdown, and the active exam registry.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from brainary.config import NOT_ANSWERED
from brainary.fsm.handlers import (
    SubmissionFailed, finalize_submission, record_in_memory, run_countdown,
)
from brainary.fsm.transitions import ExamState
from brainary.state.progress import SubjectProgress
from brainary.state.registry import ActiveExam, ExamNotFound, ExamRegistry
from brainary.state.session import ExamSession, IncompleteExamError, InvalidTransition

from conftest import make_exam


def answer(session, correct=(), wrong=()):
    for i in correct:
        session.select_answer(i, f"A{i}")
    for i in wrong:
        session.select_answer(i, f"B{i}")


async def submit(session, progress, grade_level, manual, feedback_fn):
    session.request_submit(manual)
    return await finalize_submission(session, grade_level, record_in_memory(progress), feedback_fn)


# ─── Submission ──────────────────────────────────────────────────────────────

class TestSubmitExam:
    @pytest.mark.asyncio
    async def test_timeout_with_partial_answers(self, exam):
        session = ExamSession(exam)
        answer(session, correct=[0, 1, 2])
        feedback = AsyncMock(return_value="Nice try")

        result = await submit(session, {}, "8", manual=False, feedback_fn=feedback)

        assert result.report.score == 3
        assert result.report.total_questions == 5
        assert [r.chosen_answer for r in result.report.results[3:]] == [NOT_ANSWERED] * 2
        assert session.state is ExamState.COMPLETED
        assert session.report is result.report

    @pytest.mark.asyncio
    async def test_manual_with_unanswered_rejected_before_grading(self, exam):
        session = ExamSession(exam)
        answer(session, correct=[0, 1, 2, 3])
        feedback = AsyncMock(return_value="unused")

        with pytest.raises(IncompleteExamError):
            await submit(session, {}, "8", manual=True, feedback_fn=feedback)

        feedback.assert_not_awaited()
        assert session.state is ExamState.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_pass_resets_fails(self, exam):
        session = ExamSession(exam)
        answer(session, correct=[0, 1, 2, 3], wrong=[4])
        progress = {"Science": SubjectProgress(5, 2)}

        result = await submit(session, progress, "8", manual=True, feedback_fn=AsyncMock(return_value="ok"))

        assert result.passed is True
        assert result.progress["Science"] == SubjectProgress(5, 0)
        assert progress["Science"] == SubjectProgress(5, 2)

    @pytest.mark.asyncio
    async def test_fail_increments_at_current_level(self, exam):
        session = ExamSession(exam)
        answer(session, correct=[0, 1, 2], wrong=[3, 4])
        progress = {"Science": SubjectProgress(5, 2)}

        result = await submit(session, progress, "8", manual=True, feedback_fn=AsyncMock(return_value="ok"))

        assert result.passed is False
        assert result.progress["Science"] == SubjectProgress(5, 3)

    @pytest.mark.asyncio
    async def test_feedback_receives_graded_results(self, exam):
        session = ExamSession(exam)
        answer(session, correct=[0], wrong=[1, 2, 3, 4])
        feedback = AsyncMock(return_value="Keep practising")

        result = await submit(session, {}, "10", manual=True, feedback_fn=feedback)

        subject, grade_level, results, score, total = feedback.await_args.args
        assert (subject, grade_level, score, total) == ("Science", "10", 1, 5)
        assert len(results) == 5
        assert result.report.feedback == "Keep practising"
        assert result.report.difficulty == exam.difficulty

    @pytest.mark.asyncio
    async def test_feedback_failure_reverts_and_keeps_state(self, exam):
        session = ExamSession(exam)
        answer(session, correct=[0, 1])
        session.tick()
        feedback = AsyncMock(side_effect=RuntimeError("service down"))

        with pytest.raises(SubmissionFailed):
            await submit(session, {}, "8", manual=False, feedback_fn=feedback)

        assert session.state is ExamState.IN_PROGRESS
        assert session.answers == {0: "A0", 1: "A1"}
        assert session.time_left == exam.duration - 1
        assert session.report is None

    @pytest.mark.asyncio
    async def test_retry_after_failure_succeeds(self, exam):
        session = ExamSession(exam)
        answer(session, correct=range(5))
        feedback = AsyncMock(side_effect=[RuntimeError("timeout"), "Great work"])

        with pytest.raises(SubmissionFailed):
            await submit(session, {}, "8", manual=True, feedback_fn=feedback)
        result = await submit(session, {}, "8", manual=True, feedback_fn=feedback)

        assert result.report.score == 5
        assert session.state is ExamState.COMPLETED

    @pytest.mark.asyncio
    async def test_finalize_requires_submitting_state(self, exam):
        session = ExamSession(exam)
        with pytest.raises(InvalidTransition):
            await finalize_submission(session, "8", record_in_memory({}), AsyncMock(return_value="x"))

    @pytest.mark.asyncio
    async def test_record_failure_reverts(self, exam):
        session = ExamSession(exam)
        answer(session, correct=[0, 1])
        session.tick()
        session.request_submit(manual=False)
        record = AsyncMock(side_effect=RuntimeError("database locked"))

        with pytest.raises(SubmissionFailed):
            await finalize_submission(session, "8", record, AsyncMock(return_value="ok"))

        assert session.state is ExamState.IN_PROGRESS
        assert session.answers == {0: "A0", 1: "A1"}
        assert session.time_left == exam.duration - 1
        assert session.report is None

    @pytest.mark.asyncio
    async def test_nothing_recorded_when_feedback_fails(self, exam):
        session = ExamSession(exam)
        session.request_submit(manual=False)
        record = AsyncMock()

        with pytest.raises(SubmissionFailed):
            await finalize_submission(session, "8", record, AsyncMock(side_effect=TimeoutError()))

        record.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_record_receives_report_and_outcome(self, exam):
        session = ExamSession(exam)
        answer(session, correct=range(5))
        session.request_submit(manual=True)
        stored = {"Science": SubjectProgress(5, 0)}
        record = AsyncMock(return_value=stored)

        result = await finalize_submission(session, "8", record, AsyncMock(return_value="ok"))

        report, passed = record.await_args.args
        assert report is result.report
        assert passed is True
        assert result.progress is stored


# ─── Countdown ───────────────────────────────────────────────────────────────

class TestCountdown:
    @pytest.mark.asyncio
    async def test_expiry_triggers_one_auto_submit(self):
        session = ExamSession(make_exam(duration=3))
        answer(session, correct=[0])
        calls = []

        async def on_expire(s):
            calls.append(s.time_left)
            await submit(s, {}, "8", manual=False, feedback_fn=AsyncMock(return_value="done"))

        await run_countdown(session, on_expire, interval=0.001)

        assert calls == [0]
        assert session.state is ExamState.COMPLETED
        assert session.report.score == 1

    @pytest.mark.asyncio
    async def test_stops_when_session_leaves_in_progress(self):
        session = ExamSession(make_exam(duration=1000))
        on_expire = AsyncMock()

        task = asyncio.create_task(run_countdown(session, on_expire, interval=0.001))
        await asyncio.sleep(0.01)
        session.request_submit(manual=False)
        frozen = session.time_left
        await asyncio.wait_for(task, timeout=1)

        on_expire.assert_not_awaited()
        assert session.time_left == frozen

    @pytest.mark.asyncio
    async def test_failed_auto_submit_is_logged_not_raised(self):
        session = ExamSession(make_exam(duration=1))

        async def on_expire(s):
            await submit(s, {}, "8", manual=False, feedback_fn=AsyncMock(side_effect=RuntimeError("x")))

        await run_countdown(session, on_expire, interval=0.001)
        assert session.state is ExamState.IN_PROGRESS
        assert session.time_left == 0


# ─── Registry ────────────────────────────────────────────────────────────────

class TestRegistry:
    def test_get_checks_owner(self, exam):
        registry = ExamRegistry()
        registry.add(ActiveExam(session=ExamSession(exam), student_id="s1", grade_level="8"))
        assert registry.get(exam.id, "s1").session.exam is exam
        with pytest.raises(ExamNotFound):
            registry.get(exam.id, "s2")

    def test_discard_removes(self, exam):
        registry = ExamRegistry()
        registry.add(ActiveExam(session=ExamSession(exam), student_id="s1", grade_level="8"))
        assert exam.id in registry
        registry.discard(exam.id)
        assert exam.id not in registry
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_discard_cancels_countdown(self, exam):
        registry = ExamRegistry()
        active = registry.add(ActiveExam(session=ExamSession(exam), student_id="s1", grade_level="8"))
        on_expire = AsyncMock()
        task = registry.start_timer(exam.id, on_expire, interval=0.001)
        await asyncio.sleep(0.01)

        registry.discard(exam.id)
        await asyncio.sleep(0)
        await asyncio.sleep(0.01)

        assert task.cancelled()
        assert active.timer is None
        on_expire.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_restart_replaces_timer(self, exam):
        registry = ExamRegistry()
        registry.add(ActiveExam(session=ExamSession(exam), student_id="s1", grade_level="8"))
        first = registry.start_timer(exam.id, AsyncMock(), interval=0.001)
        second = registry.start_timer(exam.id, AsyncMock(), interval=0.001)
        await asyncio.sleep(0.01)

        assert first.cancelled()
        assert not second.done()
        registry.shutdown()
        await asyncio.sleep(0)
