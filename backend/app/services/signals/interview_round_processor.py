"""Create or update interview rounds from scheduling confirmation emails."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from ...models import ROUND_STAGES, InterviewRound
from ...prompts import INTERVIEW_ROUND_PROMPT, INTERVIEW_ROUND_SYSTEM
from ..response_parser import section, text_value
from .base_processor import (
    BaseSignalProcessor,
    mark_round_touched,
    next_round_position,
    parse_datetime,
    round_touched_by,
)

logger = logging.getLogger(__name__)

INSUFFICIENT_SIGNAL = "Insufficient scheduling signal"
MATCH_WINDOW = timedelta(hours=1)
DEFAULT_DURATION_MINUTES = 30


def map_stage(value) -> str:
    stage = (text_value(value) or "").lower()
    return stage if stage in ROUND_STAGES else "other"


def _as_int(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class InterviewRoundProcessor(BaseSignalProcessor):
    PROCESSABLE_TYPES = ("scheduling", "interview_invite", "interview_reminder")
    MIN_CONFIDENCE_SCORE = 0.5
    OPERATION_TYPE = "interview_round_extraction"
    RESPONSE_FIELDS = (
        "interview",
        "interviewer",
        "logistics",
        "confirmation_source",
        "is_rescheduled",
        "is_cancelled",
        "original_scheduled_at",
        "additional_instructions",
        "confidence_score",
    )
    EXTRACTION_FAILED = "Failed to extract interview data from email"

    def already_processed(self):
        return round_touched_by(self.db, self.signal.id)

    def run(self) -> dict:
        extraction = self.extract(INTERVIEW_ROUND_PROMPT, INTERVIEW_ROUND_SYSTEM)
        if not extraction["success"]:
            return extraction

        data = extraction["data"]
        scheduled_at = parse_datetime(section(data, "interview").get("scheduled_at"))
        video_link = text_value(section(data, "logistics").get("video_link"))

        # A "pick a time" link without a confirmed slot is not enough to touch rounds.
        if scheduled_at is None and not video_link:
            return self.skip(INSUFFICIENT_SIGNAL, data=data, llm_api_log_id=extraction["llm_api_log_id"])

        round_ = self.find_round_in_window(scheduled_at) if scheduled_at else None
        if round_ is not None:
            self.update_round(round_, data)
            action = "updated"
        else:
            round_ = self.find_awaiting_round()
            if round_ is not None:
                self.attach_to_awaiting_round(round_, data, scheduled_at)
                action = "updated"
            else:
                round_ = self.create_round(data, scheduled_at)
                action = "created"

        self.db.flush()
        return self.success(action, round_, extraction["llm_api_log_id"], data=data)

    # -- matching -----------------------------------------------------------

    def find_round_in_window(self, scheduled_at: datetime) -> Optional[InterviewRound]:
        return (
            self.db.query(InterviewRound)
            .filter(
                InterviewRound.interview_application_id == self.application.id,
                InterviewRound.scheduled_at >= scheduled_at - MATCH_WINDOW,
                InterviewRound.scheduled_at <= scheduled_at + MATCH_WINDOW,
            )
            .order_by(InterviewRound.scheduled_at.asc())
            .first()
        )

    def find_awaiting_round(self) -> Optional[InterviewRound]:
        """Most recent round still waiting for a confirmed time."""
        return (
            self.db.query(InterviewRound)
            .filter(
                InterviewRound.interview_application_id == self.application.id,
                InterviewRound.scheduled_at.is_(None),
                InterviewRound.result == "pending",
                InterviewRound.completed_at.is_(None),
            )
            .order_by(InterviewRound.created_at.desc(), InterviewRound.id.desc())
            .first()
        )

    # -- mutation -----------------------------------------------------------

    def update_round(self, round_: InterviewRound, data: dict) -> None:
        interview = section(data, "interview")
        interviewer = section(data, "interviewer")
        logistics = section(data, "logistics")

        video_link = text_value(logistics.get("video_link"))
        if video_link:
            round_.video_link = video_link
        confirmation_source = text_value(data.get("confirmation_source"))
        if confirmation_source:
            round_.confirmation_source = confirmation_source

        name = text_value(interviewer.get("name"))
        if name and not round_.interviewer_name:
            round_.interviewer_name = name
        role = text_value(interviewer.get("role"))
        if role and not round_.interviewer_role:
            round_.interviewer_role = role
        duration = _as_int(interview.get("duration_minutes"))
        if duration and not round_.duration_minutes:
            round_.duration_minutes = duration

        mark_round_touched(round_, self.signal.id)
        logger.info("[%s] Updated round #%s", self.name, round_.id)

    def attach_to_awaiting_round(self, round_: InterviewRound, data: dict, scheduled_at: Optional[datetime]) -> None:
        interview = section(data, "interview")
        if scheduled_at is not None:
            round_.scheduled_at = scheduled_at
        stage_name = text_value(interview.get("stage_name"))
        if stage_name and not round_.stage_name:
            round_.stage_name = stage_name
        stage = map_stage(interview.get("stage"))
        if round_.stage == "other" and stage != "other":
            round_.stage = stage
        self.update_round(round_, data)

    def create_round(self, data: dict, scheduled_at: Optional[datetime]) -> InterviewRound:
        interview = section(data, "interview")
        interviewer = section(data, "interviewer")
        logistics = section(data, "logistics")

        round_ = InterviewRound(
            interview_application_id=self.application.id,
            stage=map_stage(interview.get("stage")),
            stage_name=text_value(interview.get("stage_name")),
            scheduled_at=scheduled_at,
            duration_minutes=_as_int(interview.get("duration_minutes")) or DEFAULT_DURATION_MINUTES,
            interviewer_name=text_value(interviewer.get("name")),
            interviewer_role=text_value(interviewer.get("role")),
            video_link=text_value(logistics.get("video_link")),
            confirmation_source=text_value(data.get("confirmation_source")),
            source_signal_id=self.signal.id,
            position=next_round_position(self.db, self.application.id),
            result="pending",
            notes=self.build_notes(data),
        )
        self.db.add(round_)
        return round_

    def build_notes(self, data: dict) -> Optional[str]:
        logistics = section(data, "logistics")
        notes = ["Created from email signal"]
        for label, key in (
            ("Location", "location"),
            ("Phone", "phone_number"),
            ("Meeting ID", "meeting_id"),
            ("Passcode", "passcode"),
        ):
            value = text_value(logistics.get(key))
            if value:
                notes.append(f"{label}: {value}")
        instructions = text_value(data.get("additional_instructions"))
        if instructions:
            notes.append(f"Instructions: {instructions}")
        return "\n".join(notes)
