"""Guarded finite-state machines for interview applications.

Each application carries two independent machines: lifecycle ``status`` and
pipeline ``stage``. Both are driven only by named events looked up in a static
transition table. Firing an event whose guard fails is a no-op that returns
False; it never raises.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Tuple

logger = logging.getLogger(__name__)

Transitions = Dict[str, Tuple[FrozenSet[str], str]]

APPLICATION_STATUSES = ("active", "archived", "rejected", "accepted", "on_hold", "withdrawn")
PIPELINE_STAGES = ("applied", "screening", "interviewing", "offer", "closed")

# event -> (allowed source states, target state)
STATUS_TRANSITIONS: Transitions = {
    "archive": (frozenset({"active"}), "archived"),
    "reject": (frozenset({"active"}), "rejected"),
    "accept": (frozenset({"active"}), "accepted"),
    "hold": (frozenset({"active"}), "on_hold"),
    "withdraw": (frozenset({"active"}), "withdrawn"),
    "reactivate": (frozenset({"archived", "rejected", "accepted", "on_hold", "withdrawn"}), "active"),
}

PIPELINE_TRANSITIONS: Transitions = {
    "move_to_applied": (frozenset({"screening", "interviewing"}), "applied"),
    "move_to_screening": (frozenset({"applied", "interviewing"}), "screening"),
    "move_to_interviewing": (frozenset({"applied", "screening", "offer"}), "interviewing"),
    "move_to_offer": (frozenset({"screening", "interviewing"}), "offer"),
    "move_to_closed": (frozenset({"applied", "screening", "interviewing", "offer"}), "closed"),
}

# set_application_status(target) -> event
STATUS_EVENT_FOR_TARGET = {
    "rejected": "reject",
    "accepted": "accept",
    "archived": "archive",
    "on_hold": "hold",
    "withdrawn": "withdraw",
    "active": "reactivate",
}


def pipeline_event_for(stage: str) -> str:
    return f"move_to_{stage}"


class StateMachine:
    """A single guarded machine bound to one column of one record."""

    def __init__(self, record, attribute: str, transitions: Transitions, name: str):
        self._record = record
        self._attribute = attribute
        self._transitions = transitions
        self.name = name

    @property
    def current(self) -> str:
        return getattr(self._record, self._attribute)

    @property
    def events(self) -> Tuple[str, ...]:
        return tuple(self._transitions)

    def can_fire(self, event: str) -> bool:
        rule = self._transitions.get(event)
        if rule is None:
            return False
        sources, _target = rule
        return self.current in sources

    def fire(self, event: str) -> bool:
        if not self.can_fire(event):
            logger.debug(
                "[%s] event %s not allowed from %s (record #%s)",
                self.name, event, self.current, getattr(self._record, "id", None),
            )
            return False
        _sources, target = self._transitions[event]
        previous = self.current
        setattr(self._record, self._attribute, target)
        logger.info(
            "[%s] record #%s: %s -> %s via %s",
            self.name, getattr(self._record, "id", None), previous, target, event,
        )
        return True
