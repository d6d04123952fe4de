"""
Apply state-mutating planned actions to an application, in a fixed order.

Each step is guarded by the application's state machines and returns a
description of what changed, or None when it did not apply. Guard failures
are silent no-ops.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ...models import InterviewApplication, InterviewRound
from ...state_machine import STATUS_EVENT_FOR_TARGET, pipeline_event_for
from ..notifier import ErrorNotifier, notifier as default_notifier
from .state_context import pending_rounds_for
from .types import STATE_ACTION_ORDER, ActionKind, PlannedAction

logger = logging.getLogger(__name__)


class ActionApplier:
    def __init__(self, db: Session, application: InterviewApplication, notifier: Optional[ErrorNotifier] = None):
        self.db = db
        self.application = application
        self.notifier = notifier or default_notifier
        self._handlers: Dict[ActionKind, Callable[[PlannedAction], Optional[dict]]] = {
            ActionKind.MARK_LATEST_ROUND_FAILED: self.mark_latest_round_failed,
            ActionKind.SYNC_APPLICATION_FROM_ROUND_RESULT: self.sync_application_from_round_result,
            ActionKind.SET_APPLICATION_STATUS: lambda a: self.set_application_status(a.target),
            ActionKind.SET_PIPELINE_STAGE: lambda a: self.set_pipeline_stage(a.target),
            ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE: self.sync_pipeline_from_round_stage,
        }

    def apply(self, actions: Iterable[PlannedAction]) -> List[dict]:
        """Apply state directives; processor directives are ignored. Returns applied actions."""
        try:
            self.db.refresh(self.application)
            applied = []
            for action in self.ordered(actions):
                outcome = self._handlers[action.kind](action)
                if outcome is not None:
                    applied.append(outcome)
            self.db.commit()
            if applied:
                logger.info("[ActionApplier] Application #%s applied: %s", self.application.id, applied)
            return applied
        except Exception as e:
            self.db.rollback()
            self.notifier.notify(
                e, {"component": "ActionApplier", "application_id": getattr(self.application, "id", None)}
            )
            return []

    @staticmethod
    def ordered(actions: Iterable[PlannedAction]) -> List[PlannedAction]:
        rank = {kind: i for i, kind in enumerate(STATE_ACTION_ORDER)}
        state_actions = [a for a in actions if a.kind in rank]
        # sorted() is stable, so equal kinds keep their planned order.
        return sorted(state_actions, key=lambda a: rank[a.kind])

    # -- round helpers ------------------------------------------------------

    def latest_round(self) -> Optional[InterviewRound]:
        rounds = self.application.rounds
        return rounds[-1] if rounds else None

    def first_pending_round(self) -> Optional[InterviewRound]:
        pending = pending_rounds_for(self.application)
        return pending[0] if pending else None

    # -- handlers -----------------------------------------------------------

    def mark_latest_round_failed(self, _action: Optional[PlannedAction] = None) -> Optional[dict]:
        round_ = self.first_pending_round() or self.latest_round()
        if round_ is None or not round_.is_pending:
            return None
        round_.result = "failed"
        round_.completed_at = datetime.utcnow()
        return {"type": ActionKind.MARK_LATEST_ROUND_FAILED.value, "round_id": round_.id}

    def sync_application_from_round_result(self, _action: Optional[PlannedAction] = None) -> Optional[dict]:
        round_ = self.latest_round() or self.first_pending_round()
        if round_ is None:
            return None

        changes = []
        if round_.result == "failed":
            changes = [self.set_application_status("rejected"), self.set_pipeline_stage("closed")]
        elif round_.result in ("passed", "waitlisted"):
            changes = [self.set_pipeline_stage("interviewing")]
        changes = [c for c in changes if c is not None]
        if not changes:
            return None
        return {
            "type": ActionKind.SYNC_APPLICATION_FROM_ROUND_RESULT.value,
            "round_id": round_.id,
            "result": round_.result,
            "changes": changes,
        }

    def set_application_status(self, status: Optional[str]) -> Optional[dict]:
        event = STATUS_EVENT_FOR_TARGET.get(status or "")
        machine = self.application.status_machine
        if event is None or not machine.can_fire(event):
            return None
        previous = machine.current
        machine.fire(event)
        return {"type": ActionKind.SET_APPLICATION_STATUS.value, "from": previous, "to": machine.current}

    def set_pipeline_stage(self, stage: Optional[str]) -> Optional[dict]:
        if not stage:
            return None
        event = pipeline_event_for(stage)
        machine = self.application.pipeline_machine
        if not machine.can_fire(event):
            return None
        previous = machine.current
        machine.fire(event)
        return {"type": ActionKind.SET_PIPELINE_STAGE.value, "from": previous, "to": machine.current}

    def sync_pipeline_from_round_stage(self, _action: Optional[PlannedAction] = None) -> Optional[dict]:
        round_ = self.latest_round()
        if round_ is None:
            return None
        target = "screening" if round_.stage == "screening" else "interviewing"
        change = self.set_pipeline_stage(target)
        if change is None:
            return None
        return {
            "type": ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE.value,
            "round_id": round_.id,
            "changes": [change],
        }
