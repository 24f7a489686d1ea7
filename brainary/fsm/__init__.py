"""
Brainary — FSM Package

Finite state machine for a running exam.
All state × event combinations are defined.
"""
from brainary.fsm.transitions import (
    ExamEvent, ExamState, TRANSITIONS, TransitionResult, get_transition,
)

__all__ = ["ExamEvent", "ExamState", "TRANSITIONS", "TransitionResult", "get_transition"]
