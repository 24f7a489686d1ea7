"""
Brainary — Exam Router
Start a timed exam at the student's current difficulty, answer and navigate,
submit manually, or let the countdown submit automatically.

Pipeline on submit:
request_submit → stop countdown → grade → feedback → store outcome → COMPLETED
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.orm import Session as DBSession

from brainary.config import EXAM_QUESTION_COUNT
from brainary.database import SessionLocal, get_db
from brainary.fsm.handlers import RecordFn, SubmissionFailed, SubmissionResult, finalize_submission
from brainary.fsm.transitions import ExamState
from brainary.models import Student
from brainary.routers.auth import get_current_student
from brainary.routers.dashboard import require_subject
from brainary.state import progress as tracker
from brainary.state.exam import Exam, Report
from brainary.state.registry import ActiveExam, ExamNotFound, get_registry
from brainary.state.session import ExamSession, IncompleteExamError, InvalidTransition
from brainary import store
from brainary.tutor import generator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/exam", tags=["exam"])


# ─── Request/Response Models ─────────────────────────────────────────────────

class StartExamRequest(BaseModel):
    subject: str

class AnswerRequest(BaseModel):
    index: int
    option: str

class ExamView(BaseModel):
    exam_id: str
    subject: str
    difficulty: int
    state: str
    current_index: int
    question_count: int
    question: str
    options: list[str]
    answers: dict[str, str]
    time_left: int

class ExamStatusResponse(BaseModel):
    state: str
    exam: Optional[ExamView] = None
    report: Optional[dict] = None

class SubmitResponse(BaseModel):
    report: dict
    passed: bool
    current_difficulty: int
    consecutive_fails: int


def _view(session: ExamSession) -> ExamView:
    return ExamView(**session.to_dict())


def _get_active(exam_id: str, student: Student) -> ActiveExam:
    try:
        return get_registry().get(exam_id, student.id)
    except ExamNotFound:
        raise HTTPException(404, "Exam not found or already finished")


# ─── Submission ──────────────────────────────────────────────────────────────

def _store_outcome(student_id: str, report: Report, passed: bool) -> tracker.ProgressMap:
    db = SessionLocal()
    try:
        return store.record_exam(db, student_id, report, passed)
    finally:
        db.close()


def _outcome_writer(student_id: str) -> RecordFn:
    """Stores the report and the outcome against the progress as it is *now*."""
    async def write(report: Report, passed: bool) -> tracker.ProgressMap:
        return await run_in_threadpool(_store_outcome, student_id, report, passed)
    return write


def _expire_handler(active: ActiveExam):
    async def on_expire(session: ExamSession) -> None:
        try:
            await _submit(active, manual=False)
        except InvalidTransition:
            logger.info(f"Exam {active.exam_id}: already submitting when time ran out")
    return on_expire


async def _submit(active: ActiveExam, manual: bool) -> SubmissionResult:
    """
    Move the session to SUBMITTING, finish it, and store the outcome.

    Feedback and storage both happen before COMPLETED. If either fails the
    session is back IN_PROGRESS and the countdown is restarted if time remains.
    """
    registry = get_registry()
    session = active.session
    session.request_submit(manual)
    registry.stop_timer(active.exam_id)

    try:
        result = await finalize_submission(
            session, active.grade_level,
            _outcome_writer(active.student_id), generator.generate_feedback,
        )
    except SubmissionFailed:
        if session.time_left > 0:
            registry.start_timer(active.exam_id, _expire_handler(active))
        raise

    registry.discard(active.exam_id)
    return result


# ─── Endpoints ───────────────────────────────────────────────────────────────

@router.post("/start", response_model=ExamView, status_code=201)
async def start_exam(
    req: StartExamRequest,
    student: Student = Depends(get_current_student),
    db: DBSession = Depends(get_db),
):
    require_subject(req.subject)
    progress = await run_in_threadpool(store.load_progress, db, student.id)
    difficulty = tracker.get_current_difficulty(progress, req.subject)

    questions = await generator.generate_exam_questions(
        req.subject, student.grade, EXAM_QUESTION_COUNT, difficulty,
    )
    if not questions:
        raise HTTPException(503, "Sorry, we couldn't generate an exam right now. Please try again later.")

    exam = Exam.create(req.subject, questions, difficulty)
    registry = get_registry()
    active = registry.add(ActiveExam(
        session=ExamSession(exam=exam),
        student_id=student.id,
        grade_level=student.grade,
    ))
    registry.start_timer(exam.id, _expire_handler(active))
    logger.info(f"Exam {exam.id} started: {exam.subject} level {difficulty}, {exam.question_count} questions")
    return _view(active.session)


@router.get("/{exam_id}", response_model=ExamStatusResponse)
def get_exam(
    exam_id: str,
    student: Student = Depends(get_current_student),
    db: DBSession = Depends(get_db),
):
    registry = get_registry()
    if exam_id in registry:
        active = _get_active(exam_id, student)
        return ExamStatusResponse(state=active.session.state.value, exam=_view(active.session))

    report = store.get_report(db, student.id, exam_id)
    if report is None:
        raise HTTPException(404, "Exam not found")
    return ExamStatusResponse(state=ExamState.COMPLETED.value, report=report.to_dict())


@router.post("/{exam_id}/answer", response_model=ExamView)
async def answer_question(
    exam_id: str,
    req: AnswerRequest,
    student: Student = Depends(get_current_student),
):
    active = _get_active(exam_id, student)
    try:
        active.session.select_answer(req.index, req.option)
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    except ValueError as e:
        raise HTTPException(422, str(e))
    return _view(active.session)


@router.post("/{exam_id}/next", response_model=ExamView)
async def next_question(exam_id: str, student: Student = Depends(get_current_student)):
    active = _get_active(exam_id, student)
    try:
        active.session.go_next()
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    return _view(active.session)


@router.post("/{exam_id}/previous", response_model=ExamView)
async def previous_question(exam_id: str, student: Student = Depends(get_current_student)):
    active = _get_active(exam_id, student)
    try:
        active.session.go_previous()
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    return _view(active.session)


@router.post("/{exam_id}/submit", response_model=SubmitResponse)
async def submit_exam(exam_id: str, student: Student = Depends(get_current_student)):
    active = _get_active(exam_id, student)
    # Once the clock is out, a retry after failed feedback counts as automatic
    manual = not active.session.expired
    try:
        result = await _submit(active, manual=manual)
    except IncompleteExamError as e:
        raise HTTPException(422, str(e))
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    except SubmissionFailed as e:
        raise HTTPException(503, str(e))

    record = tracker.get_progress(result.progress, result.report.subject)
    return SubmitResponse(
        report=result.report.to_dict(),
        passed=result.passed,
        current_difficulty=record.current_difficulty,
        consecutive_fails=record.consecutive_fails,
    )


@router.delete("/{exam_id}", status_code=204)
async def leave_exam(exam_id: str, student: Student = Depends(get_current_student)):
    """Leaving before submission throws the attempt away. Nothing is stored."""
    active = _get_active(exam_id, student)
    if active.session.state is ExamState.SUBMITTING:
        raise HTTPException(409, "Your exam is being graded")
    get_registry().discard(exam_id)
    return Response(status_code=204)
