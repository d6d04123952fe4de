"""Record round results and feedback from interview feedback emails."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import Optional

from ...models import ROUND_RESULTS, InterviewFeedback, InterviewRound
from ...prompts import ROUND_FEEDBACK_PROMPT, ROUND_FEEDBACK_SYSTEM
from ..response_parser import section, text_value
from .base_processor import BaseSignalProcessor, mark_round_touched, next_round_position, round_touched_by

logger = logging.getLogger(__name__)

# Ordered: the first bucket whose pattern matches the mentioned stage wins.
STAGE_KEYWORDS = (
    ("screening", re.compile(r"screen|phone|initial|intro", re.IGNORECASE)),
    ("technical", re.compile(r"technical|coding|system design|live coding", re.IGNORECASE)),
    ("hiring_manager", re.compile(r"hiring manager|manager|lead", re.IGNORECASE)),
    ("culture_fit", re.compile(r"culture|behavioral|values|team fit", re.IGNORECASE)),
)

RESULTS = set(ROUND_RESULTS) - {"pending"}

RECOMMENDED_ACTIONS = {
    "failed": "Review feedback and apply learnings to future interviews",
    "waitlisted": "Follow up in 1-2 weeks if no update",
}


def infer_stage(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    for stage, pattern in STAGE_KEYWORDS:
        if pattern.search(text):
            return stage
    return None


def map_result(value) -> str:
    result = (text_value(value) or "").lower()
    return result if result in RESULTS else "pending"


def _lines(values) -> Optional[str]:
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, list):
        return None
    items = [text_value(v) for v in values]
    joined = "\n".join(v for v in items if v)
    return joined or None


class RoundFeedbackProcessor(BaseSignalProcessor):
    PROCESSABLE_TYPES = ("round_feedback",)
    MIN_CONFIDENCE_SCORE = 0.5
    OPERATION_TYPE = "round_feedback_extraction"
    RESPONSE_FIELDS = (
        "result",
        "round_context",
        "feedback",
        "next_steps",
        "is_final_round_result",
        "sentiment",
        "confidence_score",
    )
    EXTRACTION_FAILED = "Failed to extract feedback data from email"

    def already_processed(self):
        return round_touched_by(self.db, self.signal.id)

    def run(self) -> dict:
        extraction = self.extract(
            ROUND_FEEDBACK_PROMPT, ROUND_FEEDBACK_SYSTEM, recent_rounds=self.recent_rounds_context()
        )
        if not extraction["success"]:
            return extraction

        data = extraction["data"]
        round_ = self.find_matching_round(data)
        if round_ is None and self.should_use_latest_round(data):
            round_ = self.latest_round()

        if round_ is None:
            round_ = self.create_round(data)
            action = "created"
        else:
            self.update_round_result(round_, data)
            action = "updated"

        self.db.flush()
        feedback = self.create_feedback(round_, data)
        return self.success(
            action, round_, extraction["llm_api_log_id"], feedback=feedback, data=data
        )

    def recent_rounds_context(self) -> str:
        rounds = (
            self.db.query(InterviewRound)
            .filter(InterviewRound.interview_application_id == self.application.id)
            .order_by(InterviewRound.scheduled_at.desc().nulls_last())
            .limit(5)
            .all()
        )
        return json.dumps(
            [
                {
                    "id": r.id,
                    "stage": r.stage,
                    "stage_name": r.stage_name,
                    "scheduled_at": r.scheduled_at.isoformat() if r.scheduled_at else None,
                    "interviewer_name": r.interviewer_name,
                    "result": r.result,
                }
                for r in rounds
            ],
            indent=2,
        )

    # -- matching -----------------------------------------------------------

    def _pending_rounds(self):
        return (
            self.db.query(InterviewRound)
            .filter(
                InterviewRound.interview_application_id == self.application.id,
                InterviewRound.result == "pending",
            )
            .order_by(InterviewRound.scheduled_at.desc().nulls_last(), InterviewRound.id.desc())
        )

    def find_matching_round(self, data: dict) -> Optional[InterviewRound]:
        context = section(data, "round_context")

        interviewer = text_value(context.get("interviewer_mentioned"))
        if interviewer:
            match = self._pending_rounds().filter(
                InterviewRound.interviewer_name.ilike(f"%{interviewer}%")
            ).first()
            if match is not None:
                return match

        stage = infer_stage(text_value(context.get("stage_mentioned")))
        if stage:
            match = self._pending_rounds().filter(InterviewRound.stage == stage).first()
            if match is not None:
                return match

        return self._pending_rounds().first()

    def should_use_latest_round(self, data: dict) -> bool:
        """Post-rejection feedback with nothing pointing at a specific round."""
        if self.application.status != "rejected":
            return False
        context = section(data, "round_context")
        return not any(
            text_value(context.get(key)) for key in ("stage_mentioned", "interviewer_mentioned", "date_mentioned")
        )

    def latest_round(self) -> Optional[InterviewRound]:
        return (
            self.db.query(InterviewRound)
            .filter(InterviewRound.interview_application_id == self.application.id)
            .order_by(
                InterviewRound.position.desc(),
                InterviewRound.scheduled_at.desc().nulls_last(),
                InterviewRound.created_at.desc(),
            )
            .first()
        )

    # -- mutation -----------------------------------------------------------

    def update_round_result(self, round_: InterviewRound, data: dict) -> None:
        result = map_result(data.get("result"))
        round_.result = result
        if result != "pending":
            round_.completed_at = datetime.utcnow()
        mark_round_touched(round_, self.signal.id)

    def create_round(self, data: dict) -> InterviewRound:
        context = section(data, "round_context")
        result = map_result(data.get("result"))
        round_ = InterviewRound(
            interview_application_id=self.application.id,
            stage=infer_stage(text_value(context.get("stage_mentioned"))) or "other",
            stage_name=text_value(context.get("stage_mentioned")),
            interviewer_name=text_value(context.get("interviewer_mentioned")),
            result=result,
            completed_at=datetime.utcnow() if result != "pending" else None,
            source_signal_id=self.signal.id,
            position=next_round_position(self.db, self.application.id),
            notes="Created from feedback email",
        )
        self.db.add(round_)
        return round_

    def create_feedback(self, round_: InterviewRound, data: dict) -> Optional[InterviewFeedback]:
        feedback = section(data, "feedback")
        if not feedback.get("has_detailed_feedback"):
            return None
        existing = (
            self.db.query(InterviewFeedback)
            .filter(InterviewFeedback.interview_round_id == round_.id)
            .first()
        )
        if existing is not None:
            logger.info("[%s] Round #%s already has feedback", self.name, round_.id)
            return None

        record = InterviewFeedback(
            interview_round_id=round_.id,
            went_well=_lines(feedback.get("strengths")),
            to_improve=_lines(feedback.get("improvements")),
            ai_summary=text_value(feedback.get("summary")),
            interviewer_notes=text_value(feedback.get("full_feedback_text")),
            recommended_action=self.recommended_action(data),
        )
        self.db.add(record)
        self.db.flush()
        return record

    def recommended_action(self, data: dict) -> Optional[str]:
        result = map_result(data.get("result"))
        if result == "passed":
            next_steps = section(data, "next_steps")
            if next_steps.get("has_next_round"):
                return f"Prepare for {text_value(next_steps.get('next_round_type')) or 'next round'}"
            return "Follow up on next steps"
        return RECOMMENDED_ACTIONS.get(result)
