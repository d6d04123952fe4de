"""Audit log of LLM provider attempts (llm_api_logs)."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import LlmApiLog

logger = logging.getLogger(__name__)


class ApiLogger:
    """Writes one LlmApiLog row per attempt. Never raises into the caller."""

    def __init__(self, db: Optional[Session], *, operation_type: str, signal_id: Optional[int] = None):
        self.db = db
        self.operation_type = operation_type
        self.signal_id = signal_id

    def record(
        self,
        *,
        provider: str,
        model: Optional[str],
        status: str,
        latency_ms: Optional[int] = None,
        input_tokens: Optional[int] = None,
        output_tokens: Optional[int] = None,
        confidence: Optional[float] = None,
        extracted_fields: Optional[list] = None,
        error: Optional[str] = None,
        error_type: Optional[str] = None,
        prompt_chars: Optional[int] = None,
    ) -> Optional[LlmApiLog]:
        logger.info(
            "[ApiLogger] %s via %s (%s): status=%s latency=%sms tokens=%s/%s confidence=%s",
            self.operation_type, provider, model or "unknown", status, latency_ms,
            input_tokens, output_tokens, confidence,
        )
        if self.db is None:
            return None
        row = LlmApiLog(
            operation_type=self.operation_type,
            provider=provider,
            model=model or "unknown",
            status=status,
            signal_id=self.signal_id,
            latency_ms=latency_ms,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            prompt_chars=prompt_chars,
            confidence_score=confidence,
            extracted_fields=extracted_fields or [],
            error_message=(error or None) and str(error)[:2000],
            error_type=error_type,
        )
        # Savepoint: a failed audit write must leave the caller's transaction usable.
        try:
            with self.db.begin_nested():
                self.db.add(row)
            return row
        except SQLAlchemyError as e:
            logger.warning("[ApiLogger] Failed to write llm_api_log: %s", e)
            return None
