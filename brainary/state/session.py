"""
Brainary — Exam Session State

One session per running exam. Every event goes through the transition matrix
(brainary.fsm.transitions); this object only holds the data and applies the
action the matrix names.

Persistence Rules:
- Nothing here is persisted. The session is discarded once a report exists
  or the student leaves the exam.
- time_left never increases.
- Answers survive navigation and a failed submission.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from brainary.fsm.transitions import (
    ExamState, ExamEvent, TransitionResult, get_transition, IGNORE,
)
from brainary.state.exam import Exam, Report

logger = logging.getLogger(__name__)


class InvalidTransition(Exception):
    """Event not allowed in the session's current state."""

    def __init__(self, state: ExamState, event: ExamEvent):
        self.state = state
        self.event = event
        super().__init__(f"{event.value} not allowed while {state.value}")


class IncompleteExamError(InvalidTransition):
    """Manual submission attempted with unanswered questions."""

    def __init__(self, state: ExamState, unanswered: list[int]):
        self.unanswered = unanswered
        super().__init__(state, ExamEvent.SUBMIT_MANUAL)
        self.args = (f"Please answer all questions before submitting ({len(unanswered)} left).",)


@dataclass
class ExamSession:
    exam: Exam
    state: ExamState = ExamState.IN_PROGRESS
    current_index: int = 0
    answers: dict[int, str] = field(default_factory=dict)
    time_left: Optional[int] = None
    report: Optional[Report] = None

    def __post_init__(self):
        if self.time_left is None:
            self.time_left = self.exam.duration

    # ─── Derived ─────────────────────────────────────────────────────────────

    @property
    def question_count(self) -> int:
        return self.exam.question_count

    @property
    def unanswered(self) -> list[int]:
        return [i for i in range(self.question_count) if i not in self.answers]

    @property
    def all_answered(self) -> bool:
        return not self.unanswered

    @property
    def expired(self) -> bool:
        return self.time_left == 0

    # ─── Dispatch ────────────────────────────────────────────────────────────

    def _check(self, event: ExamEvent) -> TransitionResult:
        result = get_transition(self.state, event)
        if result.action == IGNORE:
            return result
        if not result.allowed:
            raise InvalidTransition(self.state, event)
        return result

    def _move(self, result: TransitionResult) -> None:
        if result.next_state is not self.state:
            logger.debug(f"Exam {self.exam.id}: {self.state.value} -> {result.next_state.value}")
        self.state = result.next_state

    # ─── Student actions ─────────────────────────────────────────────────────

    def select_answer(self, index: int, option: str) -> None:
        """Record or overwrite the answer for a question. Does not navigate."""
        result = self._check(ExamEvent.SELECT_ANSWER)
        if not 0 <= index < self.question_count:
            raise ValueError(f"Question index {index} out of range")
        if option not in self.exam.questions[index].options:
            raise ValueError(f"'{option}' is not an option for question {index + 1}")
        self.answers[index] = option
        self._move(result)

    def go_next(self) -> int:
        result = self._check(ExamEvent.GO_NEXT)
        self.current_index = min(self.current_index + 1, self.question_count - 1)
        self._move(result)
        return self.current_index

    def go_previous(self) -> int:
        result = self._check(ExamEvent.GO_PREVIOUS)
        self.current_index = max(self.current_index - 1, 0)
        self._move(result)
        return self.current_index

    def tick(self) -> bool:
        """
        One elapsed second. Returns False when the tick was ignored because
        the session already left IN_PROGRESS. Never submits by itself.
        """
        result = self._check(ExamEvent.TICK)
        if result.action == IGNORE:
            return False
        self.time_left = max(0, self.time_left - 1)
        self._move(result)
        return True

    # ─── Submission ──────────────────────────────────────────────────────────

    def request_submit(self, manual: bool) -> None:
        """
        IN_PROGRESS -> SUBMITTING.

        Manual submission needs every question answered. Automatic submission
        (clock ran out) always goes through.
        """
        event = ExamEvent.SUBMIT_MANUAL if manual else ExamEvent.SUBMIT_AUTO
        result = self._check(event)
        if result.precondition == "all_answered" and not self.all_answered:
            logger.info(f"Exam {self.exam.id}: manual submit rejected, {len(self.unanswered)} unanswered")
            raise IncompleteExamError(self.state, self.unanswered)
        self._move(result)

    def complete(self, report: Report) -> None:
        """SUBMITTING -> COMPLETED with the finished report."""
        result = self._check(ExamEvent.FEEDBACK_READY)
        self.report = report
        self._move(result)

    def revert_submit(self) -> None:
        """SUBMITTING -> IN_PROGRESS after feedback failed. Answers and clock untouched."""
        result = self._check(ExamEvent.FEEDBACK_FAILED)
        self._move(result)

    # ─── Views ───────────────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        """Student-facing view. Correct answers are never included."""
        question = self.exam.questions[self.current_index]
        return {
            "exam_id": self.exam.id,
            "subject": self.exam.subject,
            "difficulty": self.exam.difficulty,
            "state": self.state.value,
            "current_index": self.current_index,
            "question_count": self.question_count,
            "question": question.question,
            "options": list(question.options),
            "answers": {str(i): a for i, a in sorted(self.answers.items())},
            "time_left": self.time_left,
        }
