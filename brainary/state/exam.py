"""
Brainary — Exam Definitions and Reports

Immutable records: Question, Exam, UserAnswer, Report.
Grading is deterministic and lives here so reports can be re-derived.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence

from brainary.config import EXAM_DURATION_SECONDS, NOT_ANSWERED, OPTIONS_PER_QUESTION
from brainary.state.progress import is_passing

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ─── Question ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Question:
    question: str
    options: tuple[str, ...]
    correct_answer: str

    def __post_init__(self):
        object.__setattr__(self, "options", tuple(self.options))
        if len(self.options) != OPTIONS_PER_QUESTION:
            raise ValueError(
                f"Question needs {OPTIONS_PER_QUESTION} options, got {len(self.options)}"
            )
        if self.correct_answer not in self.options:
            raise ValueError("Correct answer must be one of the options")

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "Question":
        """Accepts snake_case or the camelCase the generator is asked for."""
        correct = data.get("correct_answer", data.get("correctAnswer"))
        return cls(
            question=str(data["question"]).strip(),
            options=tuple(str(o).strip() for o in data["options"]),
            correct_answer=str(correct).strip() if correct is not None else "",
        )


# ─── Exam ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Exam:
    id: str
    subject: str
    questions: tuple[Question, ...]
    difficulty: int
    duration: int = EXAM_DURATION_SECONDS
    created_at: datetime = field(default_factory=_now)

    def __post_init__(self):
        object.__setattr__(self, "questions", tuple(self.questions))
        if not self.questions:
            raise ValueError("An exam needs at least one question")

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @classmethod
    def create(
        cls,
        subject: str,
        questions: Sequence[Question],
        difficulty: int,
        duration: int = EXAM_DURATION_SECONDS,
    ) -> "Exam":
        return cls(
            id=f"exam_{uuid.uuid4().hex}",
            subject=subject,
            questions=tuple(questions),
            difficulty=difficulty,
            duration=duration,
        )


# ─── Grading ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class UserAnswer:
    question: str
    chosen_answer: str
    correct_answer: str
    is_correct: bool

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "chosen_answer": self.chosen_answer,
            "correct_answer": self.correct_answer,
            "is_correct": self.is_correct,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "UserAnswer":
        return cls(
            question=data["question"],
            chosen_answer=data["chosen_answer"],
            correct_answer=data["correct_answer"],
            is_correct=bool(data["is_correct"]),
        )


def grade(exam: Exam, answers: Mapping[int, str]) -> tuple[int, list[UserAnswer]]:
    """
    Grade every question of the exam.

    Unanswered questions get the NOT_ANSWERED placeholder and are always
    incorrect, even if a generated option happens to read the same.
    """
    results = []
    for index, q in enumerate(exam.questions):
        if index in answers:
            chosen = answers[index]
            correct = chosen == q.correct_answer
        else:
            chosen = NOT_ANSWERED
            correct = False
        results.append(UserAnswer(
            question=q.question,
            chosen_answer=chosen,
            correct_answer=q.correct_answer,
            is_correct=correct,
        ))
    score = sum(1 for r in results if r.is_correct)
    return score, results


# ─── Report ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Report:
    exam_id: str
    subject: str
    score: int
    total_questions: int
    results: tuple[UserAnswer, ...]
    feedback: str
    difficulty: int
    completed_at: datetime = field(default_factory=_now)

    def __post_init__(self):
        object.__setattr__(self, "results", tuple(self.results))

    @property
    def percentage(self) -> float:
        if self.total_questions <= 0:
            return 0.0
        return self.score / self.total_questions * 100

    @property
    def passed(self) -> bool:
        return is_passing(self.score, self.total_questions)

    def to_dict(self) -> dict:
        return {
            "exam_id": self.exam_id,
            "subject": self.subject,
            "score": self.score,
            "total_questions": self.total_questions,
            "results": [r.to_dict() for r in self.results],
            "feedback": self.feedback,
            "difficulty": self.difficulty,
            "completed_at": self.completed_at.isoformat(),
            "percentage": round(self.percentage, 1),
            "passed": self.passed,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> Optional["Report"]:
        """
        Rebuild a stored report. Anything missing a required field is
        treated as absent (None), never as an error.
        """
        try:
            completed_at = data["completed_at"]
            if isinstance(completed_at, str):
                completed_at = datetime.fromisoformat(completed_at)
            if completed_at.tzinfo is None:
                completed_at = completed_at.replace(tzinfo=timezone.utc)
            report = cls(
                exam_id=data["exam_id"],
                subject=data["subject"],
                score=int(data["score"]),
                total_questions=int(data["total_questions"]),
                results=tuple(UserAnswer.from_dict(r) for r in data["results"]),
                feedback=data.get("feedback") or "",
                difficulty=int(data["difficulty"]),
                completed_at=completed_at,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed report: {e!r}")
            return None
        if report.exam_id is None or report.subject is None:
            return None
        return report
