"""Read-only snapshot of a signal and its matched application, used for planning."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from ...models import InterviewApplication, InterviewRound, Signal
from .types import SignalType


@dataclass(frozen=True)
class StateContext:
    signal: Signal
    signal_type: SignalType
    application: Optional[InterviewApplication] = None
    rounds: Tuple[InterviewRound, ...] = field(default_factory=tuple)
    pending_rounds: Tuple[InterviewRound, ...] = field(default_factory=tuple)

    @classmethod
    def build(cls, signal: Signal) -> "StateContext":
        application = signal.application
        return cls(
            signal=signal,
            signal_type=SignalType.coerce(signal.email_type),
            application=application,
            rounds=tuple(application.rounds) if application else (),
            pending_rounds=pending_rounds_for(application) if application else (),
        )

    @property
    def matched(self) -> bool:
        return self.application is not None

    @property
    def latest_round(self) -> Optional[InterviewRound]:
        return self.rounds[-1] if self.rounds else None


def _scheduled_desc_key(round_: InterviewRound):
    # Newest scheduled first; unscheduled rounds sort last.
    ts = round_.scheduled_at
    return (ts is None, -(ts.timestamp()) if ts else 0, -(round_.id or 0))


def pending_rounds_for(application: InterviewApplication) -> Tuple[InterviewRound, ...]:
    return tuple(sorted((r for r in application.rounds if r.is_pending), key=_scheduled_desc_key))
