"""Dispatch explicit, user-chosen actions on a signal (never run automatically)."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Type

from sqlalchemy.orm import Session

from ...models import Signal, User
from ..notifier import ErrorNotifier, notifier as default_notifier
from .actions.base_action import BaseAction
from .actions.start_application import StartApplicationAction

logger = logging.getLogger(__name__)

VALID_ACTIONS = ["start_application"]

ACTION_HANDLERS: Dict[str, Type[BaseAction]] = {
    "start_application": StartApplicationAction,
}


class ActionExecutor:
    def __init__(self, db: Session, notifier: Optional[ErrorNotifier] = None):
        self.db = db
        self.notifier = notifier or default_notifier

    def execute(self, signal: Signal, user: User, action_id: str, params: Optional[dict] = None) -> dict:
        if action_id not in VALID_ACTIONS:
            return {"success": False, "error": f"Invalid action type: {action_id}"}

        handler = ACTION_HANDLERS.get(action_id)
        if handler is None:
            return {"success": False, "error": f"Action not supported: {action_id}"}

        logger.info("[ActionExecutor] %s on signal #%s by user #%s", action_id, signal.id, user.id)
        try:
            return handler(self.db, signal, user, params).execute()
        except Exception as e:
            self.db.rollback()
            self.notifier.notify(
                e, {"component": "ActionExecutor", "action": action_id, "signal_id": signal.id, "user_id": user.id}
            )
            return {"success": False, "error": str(e)}
