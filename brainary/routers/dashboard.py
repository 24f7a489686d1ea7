"""
Brainary — Dashboard Router
Progress overview (with the auto-demotion sweep), explicit promotion,
report history, the AI tutor explanation and study plans.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session as DBSession

from brainary.config import SUBJECTS
from brainary.database import get_db
from brainary.models import Student
from brainary.routers.auth import get_current_student
from brainary.state import progress as tracker
from brainary import store
from brainary.tutor.generator import GenerationError, explain_topic, generate_study_plan

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


# ─── Request/Response Models ─────────────────────────────────────────────────

class SubjectProgressOut(BaseModel):
    subject: str
    current_difficulty: int
    consecutive_fails: int

class NotificationOut(BaseModel):
    subject: str
    new_difficulty: int
    message: str
    type: str = "warning"

class ProgressResponse(BaseModel):
    progress: list[SubjectProgressOut]
    notifications: list[NotificationOut]

class ExplainRequest(BaseModel):
    topic: str = Field(min_length=1, max_length=200)
    subject: str

class ExplainResponse(BaseModel):
    topic: str
    subject: str
    explanation: str

class StudyPlanRequest(BaseModel):
    subject: str
    goal: str = Field(min_length=1, max_length=500)
    duration: str = Field(default="1 week", min_length=1, max_length=50)

class StudyPlanResponse(BaseModel):
    subject: str
    goal: str
    duration: str
    plan: str


def require_subject(subject: str) -> str:
    if subject not in SUBJECTS:
        raise HTTPException(404, f"Unknown subject: {subject}")
    return subject


def _progress_rows(progress: tracker.ProgressMap) -> list[SubjectProgressOut]:
    """Every catalogue subject, defaults for those never examined."""
    rows = []
    for subject in SUBJECTS:
        record = tracker.get_progress(progress, subject)
        rows.append(SubjectProgressOut(
            subject=subject,
            current_difficulty=record.current_difficulty,
            consecutive_fails=record.consecutive_fails,
        ))
    return rows


# ─── Progress ────────────────────────────────────────────────────────────────

@router.get("/progress", response_model=ProgressResponse)
def get_progress(
    student: Student = Depends(get_current_student),
    db: DBSession = Depends(get_db),
):
    progress = store.load_progress(db, student.id)
    progress, notices = tracker.apply_auto_demotion(progress)
    if notices:
        store.save_progress(db, student.id, {n.subject: progress[n.subject] for n in notices})

    return ProgressResponse(
        progress=_progress_rows(progress),
        notifications=[
            NotificationOut(subject=n.subject, new_difficulty=n.new_difficulty, message=n.message)
            for n in notices
        ],
    )


@router.post("/progress/{subject}/promote", response_model=SubjectProgressOut)
def promote_subject(
    subject: str,
    student: Student = Depends(get_current_student),
    db: DBSession = Depends(get_db),
):
    require_subject(subject)
    progress = tracker.promote(store.load_progress(db, student.id), subject)
    store.save_progress(db, student.id, {subject: progress[subject]})
    record = progress[subject]
    return SubjectProgressOut(
        subject=subject,
        current_difficulty=record.current_difficulty,
        consecutive_fails=record.consecutive_fails,
    )


# ─── Reports ─────────────────────────────────────────────────────────────────

@router.get("/reports")
def list_reports(
    subject: Optional[str] = None,
    student: Student = Depends(get_current_student),
    db: DBSession = Depends(get_db),
):
    reports = store.load_reports(db, student.id)
    if subject:
        reports = [r for r in reports if r.subject == subject]
    return {"reports": [r.to_dict() for r in reports]}


@router.delete("/reports")
def delete_reports(
    student: Student = Depends(get_current_student),
    db: DBSession = Depends(get_db),
):
    return {"deleted": store.clear_reports(db, student.id)}


# ─── AI Tutor ────────────────────────────────────────────────────────────────

@router.post("/explain", response_model=ExplainResponse)
async def explain(
    req: ExplainRequest,
    student: Student = Depends(get_current_student),
):
    require_subject(req.subject)
    try:
        text = await explain_topic(req.topic, req.subject, student.grade)
    except GenerationError as e:
        logger.error(f"Explain failed for {req.subject}/{req.topic}: {e}")
        raise HTTPException(
            503, "I'm sorry, I encountered an error while trying to explain that. Please try again."
        )
    return ExplainResponse(topic=req.topic, subject=req.subject, explanation=text)


@router.post("/study-plan", response_model=StudyPlanResponse)
async def study_plan(
    req: StudyPlanRequest,
    student: Student = Depends(get_current_student),
):
    require_subject(req.subject)
    try:
        plan = await generate_study_plan(req.subject, student.grade, req.goal, req.duration)
    except GenerationError as e:
        logger.error(f"Study plan failed for {req.subject}: {e}")
        raise HTTPException(503, "Failed to generate study plan. Please try again.")
    return StudyPlanResponse(subject=req.subject, goal=req.goal, duration=req.duration, plan=plan)
