"""Error notification for the signal pipeline.

Components report caught exceptions here instead of re-raising, so a single
bad email or provider never crashes the worker. Notifications go to the
standard logging stack with full context; deployments hook a handler onto
the ``app.errors`` logger to forward them (Sentry, Slack, ...).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

logger = logging.getLogger("app.errors")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class ErrorNotifier:
    def notify(self, exc: BaseException, context: Optional[dict] = None, severity: str = "error") -> dict:
        """Report an exception with context. Returns the payload that was logged."""
        payload = {k: v for k, v in (context or {}).items() if v is not None}
        payload["error_class"] = type(exc).__name__
        payload["error_message"] = str(exc)
        level = _LEVELS.get((severity or "error").lower(), logging.ERROR)
        logger.log(level, "%s: %s | %s", type(exc).__name__, exc, payload, exc_info=exc)
        return payload

    def notify_ai_error(
        self,
        exc: BaseException,
        *,
        operation: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        signal_id: Optional[int] = None,
        severity: str = "error",
        **extra: Any,
    ) -> dict:
        """Report a failure from an LLM provider call."""
        context = {
            "context": "ai",
            "operation": operation,
            "provider": provider,
            "model": model,
            "signal_id": signal_id,
        }
        context.update(extra)
        return self.notify(exc, context, severity=severity)


notifier = ErrorNotifier()
