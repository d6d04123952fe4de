"""Pydantic schemas for API."""
from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class PlannedActionResponse(BaseModel):
    type: str
    target: Optional[str] = None


class SignalProcessResponse(BaseModel):
    """Orchestrator result. Records in processor results are reduced to {type, id}."""
    success: bool
    skipped: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None
    actions: List[PlannedActionResponse] = []
    processor_results: Dict[str, Dict[str, Any]] = {}
    applied_actions: List[Dict[str, Any]] = []
    company_feedback: Optional[Dict[str, Any]] = None


class TaskQueuedResponse(BaseModel):
    task_id: str
    status: str  # queued


class SignalActionRequest(BaseModel):
    params: Dict[str, Any] = {}


class SignalActionResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    application_id: Optional[int] = None
    company_id: Optional[int] = None
    redirect_path: Optional[str] = None


class ReprocessStartRequest(BaseModel):
    application_id: Optional[int] = None
    limit: int = 500
