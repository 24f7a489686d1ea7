"""
Brainary — Persistence
Reads and writes student progress and exam reports.

The core never touches the database; routers load plain data through these
functions, hand it to the tracker/session, and save what comes back.
Rows missing required fields are treated as absent.
"""

import logging
from typing import Mapping, Optional

from sqlalchemy.orm import Session as DBSession

from brainary.models import SubjectProgressRecord, ExamReport
from brainary.state.exam import Report
from brainary.state.progress import ProgressMap, SubjectProgress, record_outcome

logger = logging.getLogger(__name__)


# ─── Progress ────────────────────────────────────────────────────────────────

def load_progress(db: DBSession, student_id: str) -> ProgressMap:
    rows = (
        db.query(SubjectProgressRecord)
        .filter(SubjectProgressRecord.student_id == student_id)
        .all()
    )
    progress = {}
    for row in rows:
        record = SubjectProgress.from_dict({
            "current_difficulty": row.current_difficulty,
            "consecutive_fails": row.consecutive_fails,
        })
        if record is None:
            logger.warning(f"Ignoring incomplete progress row for {row.subject} (student {student_id})")
            continue
        progress[row.subject] = record
    return progress


def _upsert_progress(db: DBSession, student_id: str, progress: Mapping[str, SubjectProgress]) -> None:
    existing = {
        row.subject: row
        for row in db.query(SubjectProgressRecord)
        .filter(
            SubjectProgressRecord.student_id == student_id,
            SubjectProgressRecord.subject.in_(list(progress)),
        )
        .all()
    }
    for subject, record in progress.items():
        row = existing.get(subject)
        if row is None:
            row = SubjectProgressRecord(student_id=student_id, subject=subject)
            db.add(row)
        row.current_difficulty = record.current_difficulty
        row.consecutive_fails = record.consecutive_fails


def save_progress(db: DBSession, student_id: str, progress: Mapping[str, SubjectProgress]) -> None:
    """Upsert one row per subject in the map. Subjects not in the map are left alone."""
    _upsert_progress(db, student_id, progress)
    db.commit()


# ─── Reports ─────────────────────────────────────────────────────────────────

def _report_from_row(row: ExamReport) -> Optional[Report]:
    return Report.from_dict({
        "exam_id": row.exam_id,
        "subject": row.subject,
        "score": row.score,
        "total_questions": row.total_questions,
        "results": row.results,
        "feedback": row.feedback,
        "difficulty": row.difficulty,
        "completed_at": row.completed_at,
    })


def _add_report(db: DBSession, student_id: str, report: Report) -> None:
    db.add(ExamReport(
        student_id=student_id,
        exam_id=report.exam_id,
        subject=report.subject,
        score=report.score,
        total_questions=report.total_questions,
        difficulty=report.difficulty,
        results=[r.to_dict() for r in report.results],
        feedback=report.feedback,
        completed_at=report.completed_at,
    ))


def append_report(db: DBSession, student_id: str, report: Report) -> None:
    _add_report(db, student_id, report)
    db.commit()


def record_exam(db: DBSession, student_id: str, report: Report, passed: bool) -> ProgressMap:
    """
    Store a finished exam in one transaction: the report plus its outcome
    applied to the progress as currently stored.

    Only the exam's subject row is written, so promotions, demotions or other
    subjects' results saved while the exam was being graded are kept.
    """
    try:
        progress = record_outcome(
            load_progress(db, student_id), report.subject, report.difficulty, passed,
        )
        _upsert_progress(db, student_id, {report.subject: progress[report.subject]})
        _add_report(db, student_id, report)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return progress


def load_reports(db: DBSession, student_id: str) -> list[Report]:
    """All readable reports, newest first."""
    rows = db.query(ExamReport).filter(ExamReport.student_id == student_id).all()
    reports = [r for r in (_report_from_row(row) for row in rows) if r is not None]
    return sorted(reports, key=lambda r: r.completed_at, reverse=True)


def get_report(db: DBSession, student_id: str, exam_id: str) -> Optional[Report]:
    row = (
        db.query(ExamReport)
        .filter(ExamReport.student_id == student_id, ExamReport.exam_id == exam_id)
        .first()
    )
    return _report_from_row(row) if row else None


def clear_reports(db: DBSession, student_id: str) -> int:
    count = (
        db.query(ExamReport)
        .filter(ExamReport.student_id == student_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Cleared {count} reports for student {student_id}")
    return count
