"""Apply status changes (rejection, offer, withdrawal, ...) detected in emails."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ...models import CompanyFeedback
from ...prompts import STATUS_PROMPT, STATUS_SYSTEM
from ..response_parser import section, text_value
from .base_processor import BaseSignalProcessor

logger = logging.getLogger(__name__)

NO_STATUS_CHANGE = "No status change detected"

GENERAL_NOTES = {
    "withdrawal": "Position withdrawn",
    "ghosted": "No response - possible ghost",
    "on_hold": "Position/process on hold",
}


class ApplicationStatusProcessor(BaseSignalProcessor):
    PROCESSABLE_TYPES = ("rejection", "offer", "withdrawal", "ghosted", "on_hold")
    MIN_CONFIDENCE_SCORE = 0.6
    OPERATION_TYPE = "application_status_extraction"
    RESPONSE_FIELDS = (
        "status_change",
        "rejection_details",
        "offer_details",
        "feedback",
        "follow_up",
        "sentiment",
        "confidence_score",
    )
    EXTRACTION_FAILED = "Failed to extract status data from email"

    def already_processed(self):
        return (
            self.db.query(CompanyFeedback)
            .filter(CompanyFeedback.source_signal_id == self.signal.id)
            .first()
        )

    def run(self) -> dict:
        extraction = self.extract(
            STATUS_PROMPT, STATUS_SYSTEM, current_status=self.application.pipeline_stage
        )
        if not extraction["success"]:
            return extraction

        data = extraction["data"]
        change_type = (text_value(section(data, "status_change").get("type")) or "").lower()
        log_id = extraction["llm_api_log_id"]

        if change_type == "rejection":
            feedback = self.handle_rejection(data)
        elif change_type == "offer":
            feedback = self.handle_offer(data)
        elif change_type == "withdrawal":
            if self.application.is_active:
                self.application.status_machine.fire("archive")
            feedback = self.create_general_feedback(data, GENERAL_NOTES["withdrawal"])
        elif change_type in ("ghosted", "on_hold"):
            feedback = self.create_general_feedback(data, GENERAL_NOTES[change_type])
        else:
            return self.skip(NO_STATUS_CHANGE, data=data, llm_api_log_id=log_id)

        self.db.flush()
        return self.success(change_type, self.application, log_id, feedback=feedback, data=data)

    # -- per-type handling --------------------------------------------------

    def handle_rejection(self, data: dict) -> Optional[CompanyFeedback]:
        if self.application.is_active:
            self.application.status_machine.fire("reject")
            pipeline = self.application.pipeline_machine
            if pipeline.can_fire("move_to_closed"):
                pipeline.fire("move_to_closed")

        if self.has_feedback_of_type("rejection"):
            logger.info("[%s] Application #%s already has rejection feedback", self.name, self.application.id)
            return None

        details = section(data, "rejection_details")
        return self.add_feedback(
            feedback_type="rejection",
            feedback_text=text_value(section(data, "feedback").get("feedback_text")),
            rejection_reason=self.rejection_reason(details),
            next_steps="Keep in touch for future opportunities" if details.get("door_open") else None,
        )

    def handle_offer(self, data: dict) -> Optional[CompanyFeedback]:
        pipeline = self.application.pipeline_machine
        if pipeline.can_fire("move_to_offer"):
            pipeline.fire("move_to_offer")

        if self.has_feedback_of_type("offer"):
            logger.info("[%s] Application #%s already has offer feedback", self.name, self.application.id)
            return None

        offer = section(data, "offer_details")
        text_parts = ["Offer received!"]
        role = text_value(offer.get("role_title"))
        if role:
            text_parts.append(f"Role: {role}")
        department = text_value(offer.get("department"))
        if department:
            text_parts.append(f"Department: {department}")
        feedback_text = text_value(section(data, "feedback").get("feedback_text"))
        if feedback_text:
            text_parts.append(feedback_text)

        steps = []
        explicit = text_value(offer.get("next_steps"))
        if explicit:
            steps.append(explicit)
        deadline = text_value(offer.get("response_deadline"))
        if deadline:
            steps.append(f"Respond by: {deadline}")
        start_date = text_value(offer.get("start_date"))
        if start_date:
            steps.append(f"Start date: {start_date}")

        return self.add_feedback(
            feedback_type="offer",
            feedback_text="\n".join(text_parts),
            next_steps="\n".join(steps) or None,
        )

    def create_general_feedback(self, data: dict, note: str) -> CompanyFeedback:
        feedback_text = text_value(section(data, "feedback").get("feedback_text"))
        return self.add_feedback(
            feedback_type="general",
            feedback_text=f"{note}\n{feedback_text}" if feedback_text else note,
        )

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def rejection_reason(details: dict) -> Optional[str]:
        parts = []
        reason = text_value(details.get("reason"))
        if reason:
            parts.append(reason)
        stage = text_value(details.get("stage_rejected_at"))
        if stage:
            parts.append(f"Rejected at: {stage} stage")
        if details.get("is_generic"):
            parts.append("(Generic rejection email)")
        return " ".join(parts) or None

    def has_feedback_of_type(self, feedback_type: str) -> bool:
        return (
            self.db.query(CompanyFeedback.id)
            .filter(
                CompanyFeedback.interview_application_id == self.application.id,
                CompanyFeedback.feedback_type == feedback_type,
            )
            .first()
            is not None
        )

    def add_feedback(self, **fields) -> CompanyFeedback:
        record = CompanyFeedback(
            interview_application_id=self.application.id,
            source_signal_id=self.signal.id,
            received_at=self.signal.email_date or datetime.utcnow(),
            **fields,
        )
        self.db.add(record)
        return record
