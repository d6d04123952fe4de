"""
Shared skeleton for signal extraction processors.

process() runs, in order:
  1. applicability check  -> skip result with a reason
  2. idempotency check    -> skip result carrying the record already created from this signal
  3. run()                -> processor-specific extraction + record mutation

Result shapes:
  success: {"success": True, "action": ..., "record": ..., "llm_api_log_id": ...}
  skip:    {"success": False, "skipped": True, "reason": ...}
  failure: {"success": False, "error": ...}
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from dateutil import parser as date_parser
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ...config import settings
from ...models import InterviewRound, InterviewRoundSignal, Signal
from ...prompts import render
from ..notifier import ErrorNotifier, notifier as default_notifier
from ..provider_runner import ProviderRunner, confidence_at_least
from ..response_parser import parse_extraction_response

logger = logging.getLogger(__name__)

NOT_MATCHED = "Email not matched to application"
NOT_PROCESSABLE = "Email type not processable"
NO_CONTENT = "No email content"
ALREADY_PROCESSED = "Already processed"


def parse_datetime(value) -> Optional[datetime]:
    """Parse an LLM-provided date/time into naive UTC (None when unparseable)."""
    if isinstance(value, datetime):
        dt = value
    else:
        if not value or not isinstance(value, str):
            return None
        try:
            dt = date_parser.parse(value)
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def next_round_position(db: Session, application_id: int) -> int:
    positions = [
        p for (p,) in db.query(InterviewRound.position).filter(
            InterviewRound.interview_application_id == application_id
        )
    ]
    return max([p or 0 for p in positions], default=0) + 1


def round_touched_by(db: Session, signal_id: int) -> Optional[InterviewRound]:
    """Round this signal created or updated, if any."""
    linked = select(InterviewRoundSignal.interview_round_id).where(InterviewRoundSignal.signal_id == signal_id)
    return (
        db.query(InterviewRound)
        .filter(or_(InterviewRound.source_signal_id == signal_id, InterviewRound.id.in_(linked)))
        .order_by(InterviewRound.id.asc())
        .first()
    )


def mark_round_touched(round_: InterviewRound, signal_id: int) -> None:
    # source_signal_id stays with the signal that created the round.
    if round_.source_signal_id is None:
        round_.source_signal_id = signal_id
    elif round_.source_signal_id != signal_id and not any(
        link.signal_id == signal_id for link in round_.signal_links
    ):
        round_.signal_links.append(InterviewRoundSignal(signal_id=signal_id))


class BaseSignalProcessor:
    PROCESSABLE_TYPES: tuple = ()
    MIN_CONFIDENCE_SCORE: float = 0.5
    OPERATION_TYPE: str = "signal_extraction"
    RESPONSE_FIELDS: Optional[tuple] = None
    EXTRACTION_FAILED = "Failed to extract data from email"
    ALREADY_PROCESSED_REASON = ALREADY_PROCESSED

    def __init__(
        self,
        db: Session,
        signal: Signal,
        *,
        runner_factory: Optional[Callable[..., ProviderRunner]] = None,
        notifier: Optional[ErrorNotifier] = None,
    ):
        self.db = db
        self.signal = signal
        self.application = signal.application
        self.runner_factory = runner_factory or ProviderRunner
        self.notifier = notifier or default_notifier

    @property
    def name(self) -> str:
        return type(self).__name__

    def process(self) -> dict:
        logger.info("[%s] Processing signal #%s: %s", self.name, self.signal.id, self.signal.subject)
        try:
            reason = self.applicability_reason()
            if reason:
                return self.skip(reason)

            existing = self.already_processed()
            if existing is not None:
                logger.info("[%s] Signal #%s already processed -> #%s", self.name, self.signal.id, existing.id)
                return self.skip(self.ALREADY_PROCESSED_REASON, record=existing)

            result = self.run()
            self.db.commit()
            return result
        except Exception as e:
            self.db.rollback()
            self.notifier.notify(
                e,
                {
                    "processor": self.name,
                    "signal_id": self.signal.id,
                    "application_id": self.signal.interview_application_id,
                },
            )
            logger.error("[%s] Error processing signal #%s: %s", self.name, self.signal.id, e)
            return {"success": False, "error": str(e)}

    # -- steps --------------------------------------------------------------

    def applicability_reason(self) -> Optional[str]:
        if self.application is None:
            return NOT_MATCHED
        if self.PROCESSABLE_TYPES and self.signal.email_type not in self.PROCESSABLE_TYPES:
            return NOT_PROCESSABLE
        if not self.signal.has_content:
            return NO_CONTENT
        return None

    def already_processed(self):
        return None

    def run(self) -> dict:
        raise NotImplementedError

    # -- helpers ------------------------------------------------------------

    def skip(self, reason: str, **data) -> dict:
        logger.info("[%s] Skipped signal #%s: %s", self.name, self.signal.id, reason)
        result = {"success": False, "skipped": True, "reason": reason}
        result.update(data)
        return result

    def success(self, action: str, record, llm_api_log_id: Optional[int] = None, **data) -> dict:
        logger.info(
            "[%s] %s #%s from signal #%s", self.name, action, getattr(record, "id", None), self.signal.id
        )
        result = {"success": True, "action": action, "record": record, "llm_api_log_id": llm_api_log_id}
        result.update(data)
        return result

    def prompt_values(self) -> dict:
        body = self.signal.body_content
        limit = settings.extraction_body_max_chars
        if len(body) > limit:
            body = body[: limit - 3] + "..."
        return {
            "subject": self.signal.subject or "(No subject)",
            "body": body,
            "from_email": self.signal.from_email or "",
            "from_name": self.signal.from_name or "",
            "company_name": (self.application.company_name if self.application else None)
            or self.signal.company_name
            or "",
        }

    def extract(self, template, system_message: str, **extra_values) -> dict:
        """Run the provider chain with this processor's prompt and confidence gate."""
        prompt = render(template, **self.prompt_values(), **extra_values)
        runner = self.runner_factory(
            self.db, operation_type=self.OPERATION_TYPE, signal_id=self.signal.id
        )
        fields = self.RESPONSE_FIELDS
        result = runner.run(
            prompt,
            accept=confidence_at_least(self.MIN_CONFIDENCE_SCORE),
            system_message=system_message,
            parse=lambda content: parse_extraction_response(content, fields),
        )
        if not result.get("success"):
            logger.warning("[%s] Extraction failed for signal #%s: %s", self.name, self.signal.id, result.get("error"))
            return {"success": False, "error": self.EXTRACTION_FAILED}
        return result
