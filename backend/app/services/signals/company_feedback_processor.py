"""Capture company feedback already present in a signal's generic extraction data.

No LLM call: this reads ``feedback.feedback_text`` / ``feedback_text`` /
``key_insights`` written by the first-pass extractor.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...models import CompanyFeedback
from ..response_parser import section, text_value
from .base_processor import BaseSignalProcessor

FEEDBACK_EXISTS = "Feedback already exists for this email"
NO_FEEDBACK_CONTENT = "No feedback content found in email"
APPLICATION_HAS_FEEDBACK = "Application already has feedback"


class CompanyFeedbackProcessor(BaseSignalProcessor):
    # Any classification may carry feedback.
    PROCESSABLE_TYPES = ()
    ALREADY_PROCESSED_REASON = FEEDBACK_EXISTS

    def already_processed(self):
        return (
            self.db.query(CompanyFeedback)
            .filter(CompanyFeedback.source_signal_id == self.signal.id)
            .first()
        )

    def run(self) -> dict:
        text = self.feedback_text()
        if not text:
            return self.skip(NO_FEEDBACK_CONTENT)

        feedback_type = self.feedback_type()
        if feedback_type != "general" and self.application.company_feedbacks:
            return self.skip(APPLICATION_HAS_FEEDBACK)

        record = CompanyFeedback(
            interview_application_id=self.application.id,
            source_signal_id=self.signal.id,
            feedback_type=feedback_type,
            feedback_text=text,
            received_at=self.signal.email_date or datetime.utcnow(),
        )
        self.db.add(record)
        self.db.flush()
        return self.success("created", record)

    def feedback_text(self) -> Optional[str]:
        data = self.signal.extracted_data or {}
        text = text_value(section(data, "feedback").get("feedback_text")) or text_value(data.get("feedback_text"))
        if text:
            return text
        insights = data.get("key_insights")
        if isinstance(insights, list):
            insights = "\n".join(str(i) for i in insights if i)
        insights = text_value(insights)
        return f"Key Insights:\n{insights}" if insights else None

    def feedback_type(self) -> str:
        if self.signal.email_type in ("rejection", "offer"):
            return self.signal.email_type
        return "general"
