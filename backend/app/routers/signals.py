"""Signals API: run the pipeline for a stored signal, queue it, or apply a user-chosen action."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import get_current_user_required
from ..database import get_sync_db
from ..models import Signal, User
from ..schemas import (
    ReprocessStartRequest,
    SignalActionRequest,
    SignalActionResponse,
    SignalProcessResponse,
    TaskQueuedResponse,
)
from ..services.reprocess_service import run_signal_pipeline, serializable_result
from ..services.signals.action_executor import ActionExecutor
from ..tasks import process_signal, reprocess_signals

router = APIRouter(prefix="/api/signals", tags=["Signals"])


def _get_user_signal(db: Session, signal_id: int, user: User) -> Signal:
    signal = (
        db.query(Signal)
        .filter(Signal.id == signal_id, Signal.user_id == user.id)
        .first()
    )
    if signal is None:
        raise HTTPException(status_code=404, detail="Signal not found")
    return signal


@router.post("/{signal_id}/process", response_model=SignalProcessResponse)
def process_signal_now(
    signal_id: int,
    db: Session = Depends(get_sync_db),
    current_user: User = Depends(get_current_user_required),
):
    signal = _get_user_signal(db, signal_id, current_user)
    return serializable_result(run_signal_pipeline(db, signal))


@router.post("/{signal_id}/process/async", response_model=TaskQueuedResponse)
def queue_signal_processing(
    signal_id: int,
    db: Session = Depends(get_sync_db),
    current_user: User = Depends(get_current_user_required),
):
    signal = _get_user_signal(db, signal_id, current_user)
    task = process_signal.delay(signal.id)
    return TaskQueuedResponse(task_id=task.id, status="queued")


@router.post("/reprocess", response_model=TaskQueuedResponse)
def queue_reprocess(
    body: ReprocessStartRequest,
    current_user: User = Depends(get_current_user_required),
):
    task = reprocess_signals.delay(current_user.id, application_id=body.application_id, limit=body.limit)
    return TaskQueuedResponse(task_id=task.id, status="queued")


@router.post("/{signal_id}/actions/{action_id}", response_model=SignalActionResponse)
def execute_signal_action(
    signal_id: int,
    action_id: str,
    body: SignalActionRequest | None = None,
    db: Session = Depends(get_sync_db),
    current_user: User = Depends(get_current_user_required),
):
    signal = _get_user_signal(db, signal_id, current_user)
    result = ActionExecutor(db).execute(signal, current_user, action_id, body.params if body else None)
    if not result.get("success"):
        raise HTTPException(status_code=422, detail=result.get("error"))

    application = result.get("application")
    company = result.get("company")
    return SignalActionResponse(
        success=True,
        message=result.get("message"),
        application_id=application.id if application is not None else None,
        company_id=company.id if company is not None else None,
        redirect_path=result.get("redirect_path"),
    )
