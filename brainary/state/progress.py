"""
Brainary — Progress Tracker

Owns each (student, subject) difficulty level and consecutive-fail counter.
Every operation is pure: it takes the caller's progress map and returns a new
one. Subjects with no record read as difficulty 1 with 0 fails.

Rules:
- Pass resets consecutive_fails. Promotion is a separate, explicit action.
- Fail increments consecutive_fails only when taken at the current level.
- The demotion sweep drops one level after DEMOTION_FAIL_THRESHOLD fails.
- Difficulty is clamped to [MIN_DIFFICULTY, MAX_DIFFICULTY] on every mutation.
"""

import logging
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from brainary.config import (
    MIN_DIFFICULTY, MAX_DIFFICULTY, PASS_MARK_PERCENT, DEMOTION_FAIL_THRESHOLD,
)

logger = logging.getLogger(__name__)


def clamp_difficulty(level: int) -> int:
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, int(level)))


@dataclass(frozen=True)
class SubjectProgress:
    current_difficulty: int = MIN_DIFFICULTY
    consecutive_fails: int = 0

    def __post_init__(self):
        object.__setattr__(self, "current_difficulty", clamp_difficulty(self.current_difficulty))
        object.__setattr__(self, "consecutive_fails", max(0, int(self.consecutive_fails)))

    def to_dict(self) -> dict:
        return {
            "current_difficulty": self.current_difficulty,
            "consecutive_fails": self.consecutive_fails,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> Optional["SubjectProgress"]:
        """Build from stored data. Returns None when required fields are missing."""
        try:
            difficulty = data["current_difficulty"]
            fails = data["consecutive_fails"]
            if difficulty is None or fails is None:
                return None
            return cls(current_difficulty=int(difficulty), consecutive_fails=int(fails))
        except (KeyError, TypeError, ValueError):
            return None


@dataclass(frozen=True)
class DemotionNotice:
    """Emitted once per subject demoted by the sweep."""
    subject: str
    new_difficulty: int

    @property
    def message(self) -> str:
        return (
            f"Difficulty for {self.subject} lowered to level {self.new_difficulty} "
            f"after {DEMOTION_FAIL_THRESHOLD} failed exams in a row. Keep going!"
        )


ProgressMap = dict[str, SubjectProgress]


# ─── Reads ───────────────────────────────────────────────────────────────────

def get_progress(progress: Mapping[str, SubjectProgress], subject: str) -> SubjectProgress:
    """Record for subject, or the default starting record."""
    return progress.get(subject) or SubjectProgress()


def get_current_difficulty(progress: Mapping[str, SubjectProgress], subject: str) -> int:
    return get_progress(progress, subject).current_difficulty


def is_passing(score: int, total_questions: int) -> bool:
    """(score / total) * 100 >= pass mark. Integer form keeps the boundary exact."""
    if total_questions <= 0:
        return False
    return score * 100 >= PASS_MARK_PERCENT * total_questions


# ─── Updates ─────────────────────────────────────────────────────────────────

def record_outcome(
    progress: Mapping[str, SubjectProgress],
    subject: str,
    difficulty_taken: int,
    passed: bool,
) -> ProgressMap:
    """
    Record one finished exam for subject.

    A fail taken below the current level (a stale exam) leaves the counter
    alone so it cannot drag progress down.
    """
    updated = dict(progress)
    record = updated.get(subject)
    if record is None:
        record = SubjectProgress(current_difficulty=difficulty_taken, consecutive_fails=0)

    if passed:
        record = replace(record, consecutive_fails=0)
    elif clamp_difficulty(difficulty_taken) == record.current_difficulty:
        record = replace(record, consecutive_fails=record.consecutive_fails + 1)

    updated[subject] = record
    return updated


def apply_auto_demotion(
    progress: Mapping[str, SubjectProgress],
) -> tuple[ProgressMap, list[DemotionNotice]]:
    """
    Sweep every subject and demote those at or past the fail threshold.

    Runs whenever progress is loaded for display. Idempotent: a demoted
    subject has its counter reset, so a second sweep finds nothing to do.
    """
    updated = dict(progress)
    notices = []
    for subject, record in progress.items():
        if record.consecutive_fails < DEMOTION_FAIL_THRESHOLD:
            continue
        demoted = SubjectProgress(
            current_difficulty=max(MIN_DIFFICULTY, record.current_difficulty - 1),
            consecutive_fails=0,
        )
        updated[subject] = demoted
        notices.append(DemotionNotice(subject=subject, new_difficulty=demoted.current_difficulty))
        logger.info(
            f"Demoted {subject}: {record.current_difficulty} -> {demoted.current_difficulty} "
            f"after {record.consecutive_fails} consecutive fails"
        )
    return updated, notices


def promote(progress: Mapping[str, SubjectProgress], subject: str) -> ProgressMap:
    """Explicit next-level action chosen by the student after a pass."""
    record = get_progress(progress, subject)
    updated = dict(progress)
    updated[subject] = SubjectProgress(
        current_difficulty=min(MAX_DIFFICULTY, record.current_difficulty + 1),
        consecutive_fails=0,
    )
    logger.info(f"Promoted {subject}: {record.current_difficulty} -> {updated[subject].current_difficulty}")
    return updated
