"""
Brainary — Exam State × Event Transition Matrix

3 states × 8 events = 24 combinations.
Every single one is defined. No gaps. No KeyError possible.

A row either moves the session (action names what the session does), rejects
the event (caller error, surfaced to the student) or ignores it (a late timer
tick after submission started).
"""

from dataclasses import dataclass
from enum import Enum


class ExamState(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTING = "SUBMITTING"
    COMPLETED = "COMPLETED"


class ExamEvent(str, Enum):
    SELECT_ANSWER = "SELECT_ANSWER"
    GO_NEXT = "GO_NEXT"
    GO_PREVIOUS = "GO_PREVIOUS"
    TICK = "TICK"
    SUBMIT_MANUAL = "SUBMIT_MANUAL"      # student pressed submit
    SUBMIT_AUTO = "SUBMIT_AUTO"          # countdown reached zero
    FEEDBACK_READY = "FEEDBACK_READY"
    FEEDBACK_FAILED = "FEEDBACK_FAILED"


REJECT = "reject"
IGNORE = "ignore"


@dataclass(frozen=True)
class TransitionResult:
    """
    Result of a transition lookup.

    next_state: Where the session goes (same state for in-place actions)
    action: What the session should do, or REJECT / IGNORE
    precondition: Extra check the session applies before moving
    """
    next_state: ExamState
    action: str
    precondition: str = ""

    @property
    def allowed(self) -> bool:
        return self.action not in (REJECT, IGNORE)


def _stay(state: ExamState, action: str) -> TransitionResult:
    return TransitionResult(next_state=state, action=action)


_IP = ExamState.IN_PROGRESS
_SUB = ExamState.SUBMITTING
_DONE = ExamState.COMPLETED


# ─── The Complete Transition Matrix ──────────────────────────────────────────

TRANSITIONS: dict[tuple[ExamState, ExamEvent], TransitionResult] = {
    # ═══════════════════════════════════════════════════════════════════════
    # IN_PROGRESS × All Events
    # ═══════════════════════════════════════════════════════════════════════
    (_IP, ExamEvent.SELECT_ANSWER): _stay(_IP, "record_answer"),
    (_IP, ExamEvent.GO_NEXT): _stay(_IP, "move_next"),
    (_IP, ExamEvent.GO_PREVIOUS): _stay(_IP, "move_previous"),
    (_IP, ExamEvent.TICK): _stay(_IP, "decrement_clock"),
    (_IP, ExamEvent.SUBMIT_MANUAL): TransitionResult(
        next_state=_SUB,
        action="start_grading",
        precondition="all_answered",
    ),
    (_IP, ExamEvent.SUBMIT_AUTO): TransitionResult(
        next_state=_SUB,
        action="start_grading",
    ),
    (_IP, ExamEvent.FEEDBACK_READY): _stay(_IP, REJECT),
    (_IP, ExamEvent.FEEDBACK_FAILED): _stay(_IP, REJECT),

    # ═══════════════════════════════════════════════════════════════════════
    # SUBMITTING × All Events — busy, only the feedback outcome moves it
    # ═══════════════════════════════════════════════════════════════════════
    (_SUB, ExamEvent.SELECT_ANSWER): _stay(_SUB, REJECT),
    (_SUB, ExamEvent.GO_NEXT): _stay(_SUB, REJECT),
    (_SUB, ExamEvent.GO_PREVIOUS): _stay(_SUB, REJECT),
    (_SUB, ExamEvent.TICK): _stay(_SUB, IGNORE),
    (_SUB, ExamEvent.SUBMIT_MANUAL): _stay(_SUB, REJECT),
    (_SUB, ExamEvent.SUBMIT_AUTO): _stay(_SUB, REJECT),
    (_SUB, ExamEvent.FEEDBACK_READY): TransitionResult(
        next_state=_DONE,
        action="emit_report",
    ),
    (_SUB, ExamEvent.FEEDBACK_FAILED): TransitionResult(
        next_state=_IP,
        action="revert_for_retry",
    ),

    # ═══════════════════════════════════════════════════════════════════════
    # COMPLETED × All Events — terminal
    # ═══════════════════════════════════════════════════════════════════════
    (_DONE, ExamEvent.SELECT_ANSWER): _stay(_DONE, REJECT),
    (_DONE, ExamEvent.GO_NEXT): _stay(_DONE, REJECT),
    (_DONE, ExamEvent.GO_PREVIOUS): _stay(_DONE, REJECT),
    (_DONE, ExamEvent.TICK): _stay(_DONE, IGNORE),
    (_DONE, ExamEvent.SUBMIT_MANUAL): _stay(_DONE, REJECT),
    (_DONE, ExamEvent.SUBMIT_AUTO): _stay(_DONE, REJECT),
    (_DONE, ExamEvent.FEEDBACK_READY): _stay(_DONE, REJECT),
    (_DONE, ExamEvent.FEEDBACK_FAILED): _stay(_DONE, REJECT),
}


def get_transition(state, event) -> TransitionResult:
    """
    Look up the transition for (state, event).

    Accepts enum members or their string values.
    """
    if isinstance(state, str):
        state = ExamState(state)
    if isinstance(event, str):
        event = ExamEvent(event.upper())
    return TRANSITIONS[(state, event)]


def validate_matrix_completeness() -> bool:
    """
    Verify that all state × event combinations are defined.

    Returns True if complete, raises AssertionError if not.
    """
    missing = [
        (state.value, event.value)
        for state in ExamState
        for event in ExamEvent
        if (state, event) not in TRANSITIONS
    ]
    if missing:
        raise AssertionError(f"Missing transitions: {missing}")

    expected = len(ExamState) * len(ExamEvent)
    if len(TRANSITIONS) != expected:
        raise AssertionError(f"Expected {expected} transitions, got {len(TRANSITIONS)}")

    # COMPLETED is reachable only from SUBMITTING
    for (state, _event), result in TRANSITIONS.items():
        if result.next_state is ExamState.COMPLETED and state is ExamState.IN_PROGRESS:
            raise AssertionError("IN_PROGRESS must not jump straight to COMPLETED")

    return True
