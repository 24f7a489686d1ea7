"""
Brainary — Exam Handlers

The SUBMITTING step and the countdown that drives automatic submission.

finalize_submission receives a session already in SUBMITTING and:
    1. grades every question (unanswered -> NOT_ANSWERED, incorrect)
    2. derives pass/fail at the pass mark
    3. awaits feedback text from the generation service
    4. records the outcome through record_fn (in memory, or the database)
    5. success: session -> COMPLETED with the Report
       any failure in 1-4: session -> IN_PROGRESS, SubmissionFailed raised

Nothing is recorded unless every step before completion succeeded, so a
retried submission never counts the same exam twice.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Sequence

from brainary.config import TICK_INTERVAL_SECONDS
from brainary.fsm.transitions import ExamState
from brainary.state.exam import Report, UserAnswer, grade
from brainary.state.progress import ProgressMap, SubjectProgress, is_passing, record_outcome
from brainary.state.session import ExamSession
from brainary.tutor.generator import generate_feedback

logger = logging.getLogger(__name__)

FeedbackFn = Callable[[str, str, Sequence[UserAnswer], int, int], Awaitable[str]]
RecordFn = Callable[[Report, bool], Awaitable[ProgressMap]]
ExpireFn = Callable[[ExamSession], Awaitable[None]]

SUBMIT_ERROR = "There was an error submitting your exam. Please try again."


class SubmissionFailed(Exception):
    """Submission could not finish. The exam is back in progress; retry is safe."""


@dataclass
class SubmissionResult:
    report: Report
    progress: ProgressMap
    passed: bool


def record_in_memory(progress: Mapping[str, SubjectProgress]) -> RecordFn:
    """RecordFn applying the outcome to a progress map held by the caller."""
    async def record(report: Report, passed: bool) -> ProgressMap:
        return record_outcome(progress, report.subject, report.difficulty, passed)
    return record


async def finalize_submission(
    session: ExamSession,
    grade_level: str,
    record_fn: RecordFn,
    feedback_fn: FeedbackFn = generate_feedback,
) -> SubmissionResult:
    exam = session.exam
    try:
        score, results = grade(exam, session.answers)
        passed = is_passing(score, exam.question_count)
        feedback = await feedback_fn(exam.subject, grade_level, results, score, exam.question_count)
        report = Report(
            exam_id=exam.id,
            subject=exam.subject,
            score=score,
            total_questions=exam.question_count,
            results=tuple(results),
            feedback=feedback,
            difficulty=exam.difficulty,
        )
        progress = await record_fn(report, passed)
    except Exception as e:
        session.revert_submit()
        logger.warning(f"Exam {exam.id}: submission failed, back to IN_PROGRESS: {e!r}")
        raise SubmissionFailed(SUBMIT_ERROR) from e

    session.complete(report)
    logger.info(
        f"Exam {exam.id} completed: {score}/{exam.question_count} "
        f"({'pass' if passed else 'fail'}) at level {exam.difficulty}"
    )
    return SubmissionResult(report=report, progress=progress, passed=passed)


# ─── Countdown ───────────────────────────────────────────────────────────────

async def run_countdown(
    session: ExamSession,
    on_expire: ExpireFn,
    interval: float = TICK_INTERVAL_SECONDS,
) -> None:
    """
    Tick once per interval while the session is IN_PROGRESS.

    Stops as soon as the session leaves IN_PROGRESS. When the clock hits zero
    on_expire is awaited exactly once; it is expected to submit automatically.
    """
    while session.state is ExamState.IN_PROGRESS and session.time_left > 0:
        await asyncio.sleep(interval)
        if not session.tick():
            return

    if session.state is not ExamState.IN_PROGRESS:
        return

    logger.info(f"Exam {session.exam.id}: time is up, submitting automatically")
    try:
        await on_expire(session)
    except SubmissionFailed as e:
        logger.warning(f"Exam {session.exam.id}: automatic submission failed: {e}")
    except Exception:
        logger.exception(f"Exam {session.exam.id}: automatic submission crashed")
