"""
Brainary — Active Exam Registry

In-memory map of running exam sessions and their countdown tasks.
A session lives here from start until its report is stored or the student
leaves the exam; then it is discarded and its countdown cancelled.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from brainary.config import TICK_INTERVAL_SECONDS
from brainary.fsm.handlers import ExpireFn, run_countdown
from brainary.state.session import ExamSession

logger = logging.getLogger(__name__)


class ExamNotFound(KeyError):
    pass


@dataclass
class ActiveExam:
    session: ExamSession
    student_id: str
    grade_level: str
    timer: Optional[asyncio.Task] = None

    @property
    def exam_id(self) -> str:
        return self.session.exam.id


class ExamRegistry:
    def __init__(self):
        self._active: dict[str, ActiveExam] = {}

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, exam_id: str) -> bool:
        return exam_id in self._active

    def add(self, active: ActiveExam) -> ActiveExam:
        self._active[active.exam_id] = active
        return active

    def get(self, exam_id: str, student_id: str) -> ActiveExam:
        """Active exam owned by student_id. Other students' exams read as missing."""
        active = self._active.get(exam_id)
        if active is None or active.student_id != student_id:
            raise ExamNotFound(exam_id)
        return active

    # ─── Countdown ───────────────────────────────────────────────────────────

    def start_timer(self, exam_id: str, on_expire: ExpireFn, interval: Optional[float] = None) -> asyncio.Task:
        """Start (or restart) the countdown. Must be called from inside the event loop."""
        active = self._active[exam_id]
        self.stop_timer(exam_id)
        active.timer = asyncio.create_task(
            run_countdown(active.session, on_expire, interval or TICK_INTERVAL_SECONDS),
            name=f"countdown-{exam_id}",
        )
        return active.timer

    def stop_timer(self, exam_id: str) -> None:
        active = self._active.get(exam_id)
        if active is None or active.timer is None:
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # The countdown may be the caller (automatic submission); let it finish
        if active.timer is not current and not active.timer.done():
            active.timer.cancel()
        active.timer = None

    # ─── Lifecycle ───────────────────────────────────────────────────────────

    def discard(self, exam_id: str) -> Optional[ActiveExam]:
        self.stop_timer(exam_id)
        active = self._active.pop(exam_id, None)
        if active is not None:
            logger.info(f"Exam {exam_id} discarded ({active.session.state.value})")
        return active

    def shutdown(self) -> None:
        for exam_id in list(self._active):
            self.discard(exam_id)


_registry: Optional[ExamRegistry] = None


def get_registry() -> ExamRegistry:
    """Process-wide registry (singleton)."""
    global _registry
    if _registry is None:
        _registry = ExamRegistry()
    return _registry
