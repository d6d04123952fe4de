"""Celery tasks: signal processing and reprocessing. DB session per task."""
import logging
from typing import Optional

from celery import shared_task

from .database import SessionLocal
from .models import Signal
from .services.reprocess_service import (
    ReprocessOptions,
    run_reprocess_signals,
    run_signal_pipeline,
    serializable_result,
)

logger = logging.getLogger(__name__)


@shared_task(bind=True, name="app.tasks.process_signal")
def process_signal(self, signal_id: int):
    """Run the orchestrator (and company feedback capture) for one stored signal."""
    db = SessionLocal()
    try:
        signal = db.get(Signal, signal_id)
        if signal is None:
            logger.warning("[process_signal] Signal #%s not found", signal_id)
            return {"success": False, "error": f"Signal {signal_id} not found"}
        return serializable_result(run_signal_pipeline(db, signal))
    finally:
        db.close()


@shared_task(bind=True, name="app.tasks.reprocess_signals")
def reprocess_signals(
    self,
    user_id: int,
    application_id: Optional[int] = None,
    limit: int = 500,
):
    """Re-run matched signals for a user (optionally one application), oldest first."""
    db = SessionLocal()
    try:
        return run_reprocess_signals(
            db,
            user_id=user_id,
            options=ReprocessOptions(application_id=application_id, limit=limit),
        )
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
