"""
Brainary — ORM Models
Students, per-subject progress, and finished exam reports.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String, Integer, Text, DateTime, JSON, ForeignKey, Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from brainary.database import Base


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _uuid() -> str:
    return str(uuid.uuid4())

def _now() -> datetime:
    return datetime.now(timezone.utc)


# ─── Students ────────────────────────────────────────────────────────────────

class Student(Base):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(128))
    name: Mapped[str] = mapped_column(String(100))
    grade: Mapped[str] = mapped_column(String(20))
    school: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    learning_goals: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    # Relationships
    progress: Mapped[list["SubjectProgressRecord"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )
    reports: Mapped[list["ExamReport"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )


# ─── Subject Progress ────────────────────────────────────────────────────────

class SubjectProgressRecord(Base):
    """One row per student per subject. Written only from tracker output."""
    __tablename__ = "subject_progress"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id"), index=True
    )
    subject: Mapped[str] = mapped_column(String(50))
    current_difficulty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    consecutive_fails: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    # Relationships
    student: Mapped["Student"] = relationship(back_populates="progress")

    # Composite unique: one row per student per subject
    __table_args__ = (
        Index("ix_progress_student_subject", "student_id", "subject", unique=True),
    )


# ─── Exam Reports ────────────────────────────────────────────────────────────

class ExamReport(Base):
    __tablename__ = "exam_reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id"), index=True
    )
    exam_id: Mapped[str] = mapped_column(String(50), index=True)
    subject: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_questions: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    difficulty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    results: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)  # [UserAnswer dicts]
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    student: Mapped["Student"] = relationship(back_populates="reports")

    __table_args__ = (
        Index("ix_reports_student_completed", "student_id", "completed_at"),
    )
