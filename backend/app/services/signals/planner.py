"""Map a signal's classification to an ordered list of planned actions.

Pure: no database access, no side effects. Whether an action is legal is
decided later by the ActionApplier.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

from .state_context import StateContext
from .types import ActionKind, PlannedAction, SignalType

_A = PlannedAction

PLAN_TABLE: Dict[SignalType, Tuple[PlannedAction, ...]] = {
    SignalType.REJECTION: (
        _A(ActionKind.RUN_STATUS_PROCESSOR),
        _A(ActionKind.MARK_LATEST_ROUND_FAILED),
    ),
    SignalType.OFFER: (
        _A(ActionKind.RUN_STATUS_PROCESSOR),
    ),
    SignalType.ROUND_FEEDBACK: (
        _A(ActionKind.RUN_ROUND_FEEDBACK_PROCESSOR),
        _A(ActionKind.SYNC_APPLICATION_FROM_ROUND_RESULT),
    ),
    SignalType.SCHEDULING: (
        _A(ActionKind.RUN_INTERVIEW_ROUND_PROCESSOR),
        _A(ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE),
    ),
    SignalType.INTERVIEW_INVITE: (
        _A(ActionKind.RUN_INTERVIEW_ROUND_PROCESSOR),
        _A(ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE),
    ),
    SignalType.INTERVIEW_REMINDER: (
        _A(ActionKind.RUN_INTERVIEW_ROUND_PROCESSOR),
        _A(ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE),
    ),
    SignalType.APPLICATION_CONFIRMATION: (
        _A(ActionKind.SET_PIPELINE_STAGE, "applied"),
    ),
    # Classified, but routed to nothing automatically.
    SignalType.WITHDRAWAL: (),
    SignalType.GHOSTED: (),
    SignalType.ON_HOLD: (),
    SignalType.OTHER: (),
}

_missing = set(SignalType) - set(PLAN_TABLE)
if _missing:
    raise RuntimeError(f"PLAN_TABLE has no entry for: {sorted(m.value for m in _missing)}")


def plan(context: StateContext) -> List[PlannedAction]:
    return list(PLAN_TABLE[context.signal_type])
