"""Base class for user-triggered signal actions."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from ....models import Signal, User


class BaseAction:
    def __init__(self, db: Session, signal: Signal, user: User, params: Optional[dict] = None):
        self.db = db
        self.signal = signal
        self.user = user
        self.params = dict(params or {})

    def execute(self) -> dict:
        raise NotImplementedError("Subclasses must implement execute()")

    @staticmethod
    def success_result(message: str, **data) -> dict:
        result = {"success": True, "message": message}
        result.update(data)
        return result

    @staticmethod
    def failure_result(error: str) -> dict:
        return {"success": False, "error": error}
