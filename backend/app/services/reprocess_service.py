"""Run the signal pipeline for one signal, or re-run it over a user's stored signals.

Re-running is safe: every processor checks for records already created from
the signal, and state transitions are guarded by the state machines.
Designed to run in a background worker (Celery) or from scripts/reprocess_signals.py.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..models import Signal
from .notifier import ErrorNotifier, notifier as default_notifier
from .signals.company_feedback_processor import CompanyFeedbackProcessor
from .signals.orchestrator import SignalOrchestrator

logger = logging.getLogger(__name__)

ProgressCb = Callable[[int, int, str], None]


@dataclass(frozen=True)
class ReprocessOptions:
    application_id: Optional[int] = None
    after_date: Optional[datetime] = None
    before_date: Optional[datetime] = None
    limit: int = 500


def run_signal_pipeline(
    db: Session,
    signal: Signal,
    *,
    orchestrator: Optional[SignalOrchestrator] = None,
    notifier: Optional[ErrorNotifier] = None,
    processor_options: Optional[dict] = None,
) -> dict:
    """
    Orchestrate one signal, then capture any company feedback it carries.

    The orchestrator result is returned as-is with a "company_feedback" key
    added when the signal was matched.
    """
    notifier = notifier or default_notifier
    options = dict(processor_options or {})
    orchestrator = orchestrator or SignalOrchestrator(db, processor_options=options, notifier=notifier)

    result = orchestrator.process(signal)
    if signal.matched:
        options.setdefault("notifier", notifier)
        result["company_feedback"] = CompanyFeedbackProcessor(db, signal, **options).process()
    return result


def run_reprocess_signals(
    db: Session,
    *,
    user_id: int,
    options: ReprocessOptions,
    on_progress: Optional[ProgressCb] = None,
    processor_options: Optional[dict] = None,
) -> dict:
    """Re-run matched signals for a user, oldest first."""
    def progress(p: int, t: int, msg: str) -> None:
        if on_progress:
            on_progress(p, t, msg)

    q = (
        db.query(Signal)
        .filter(Signal.user_id == user_id)
        .filter(Signal.interview_application_id.isnot(None))
    )
    if options.application_id is not None:
        q = q.filter(Signal.interview_application_id == options.application_id)
    if options.after_date is not None:
        q = q.filter(Signal.email_date >= options.after_date)
    if options.before_date is not None:
        q = q.filter(Signal.email_date <= options.before_date)

    q = q.order_by(Signal.email_date.asc().nulls_first(), Signal.id.asc())
    limit = max(1, int(options.limit or 500))
    signals = q.limit(limit).all()

    total = len(signals)
    if total == 0:
        return {"total": 0, "processed": 0, "succeeded": 0, "skipped": 0, "errors": 0}

    progress(0, total, "Reprocessing…")
    orchestrator = SignalOrchestrator(db, processor_options=processor_options)

    succeeded = skipped = errors = 0
    for i, signal in enumerate(signals, start=1):
        result = run_signal_pipeline(
            db, signal, orchestrator=orchestrator, processor_options=processor_options
        )
        if result.get("success"):
            succeeded += 1
        elif result.get("skipped"):
            skipped += 1
        else:
            errors += 1
            logger.warning("[reprocess] Signal #%s failed: %s", signal.id, result.get("error"))
        progress(i, total, f"Processed {i}/{total}")

    logger.info(
        "[reprocess] user #%s: %s signals, %s succeeded, %s skipped, %s errors",
        user_id, total, succeeded, skipped, errors,
    )
    return {"total": total, "processed": total, "succeeded": succeeded, "skipped": skipped, "errors": errors}


def serializable_result(value):
    """Replace ORM records in a pipeline result with {type, id} (API and Celery results are JSON)."""
    if isinstance(value, dict):
        return {k: serializable_result(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serializable_result(v) for v in value]
    if hasattr(value, "__table__"):
        return {"type": type(value).__name__, "id": getattr(value, "id", None)}
    return value
