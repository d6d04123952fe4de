"""Signal classifications and planned-action variants."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SignalType(str, Enum):
    SCHEDULING = "scheduling"
    INTERVIEW_INVITE = "interview_invite"
    INTERVIEW_REMINDER = "interview_reminder"
    ROUND_FEEDBACK = "round_feedback"
    REJECTION = "rejection"
    OFFER = "offer"
    WITHDRAWAL = "withdrawal"
    GHOSTED = "ghosted"
    ON_HOLD = "on_hold"
    APPLICATION_CONFIRMATION = "application_confirmation"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "SignalType":
        """Map a stored email_type to a member; unknown values are OTHER."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.OTHER


class ActionKind(str, Enum):
    # processor directives
    RUN_INTERVIEW_ROUND_PROCESSOR = "run_interview_round_processor"
    RUN_ROUND_FEEDBACK_PROCESSOR = "run_round_feedback_processor"
    RUN_STATUS_PROCESSOR = "run_status_processor"
    # state directives
    MARK_LATEST_ROUND_FAILED = "mark_latest_round_failed"
    SYNC_APPLICATION_FROM_ROUND_RESULT = "sync_application_from_round_result"
    SET_APPLICATION_STATUS = "set_application_status"
    SET_PIPELINE_STAGE = "set_pipeline_stage"
    SYNC_PIPELINE_FROM_ROUND_STAGE = "sync_pipeline_from_round_stage"


PROCESSOR_ACTIONS = frozenset({
    ActionKind.RUN_INTERVIEW_ROUND_PROCESSOR,
    ActionKind.RUN_ROUND_FEEDBACK_PROCESSOR,
    ActionKind.RUN_STATUS_PROCESSOR,
})

# Fixed application order for state directives.
STATE_ACTION_ORDER = (
    ActionKind.MARK_LATEST_ROUND_FAILED,
    ActionKind.SYNC_APPLICATION_FROM_ROUND_RESULT,
    ActionKind.SET_APPLICATION_STATUS,
    ActionKind.SET_PIPELINE_STAGE,
    ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE,
)


@dataclass(frozen=True)
class PlannedAction:
    """One step of a plan. ``target`` carries the status/stage for set_* actions."""

    kind: ActionKind
    target: Optional[str] = None

    @property
    def is_processor(self) -> bool:
        return self.kind in PROCESSOR_ACTIONS

    def as_dict(self) -> dict:
        data = {"type": self.kind.value}
        if self.target is not None:
            data["target"] = self.target
        return data
