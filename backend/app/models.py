"""SQLAlchemy models."""
import re
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    Float,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy import JSON

from .state_machine import PIPELINE_TRANSITIONS, STATUS_TRANSITIONS, StateMachine

Base = declarative_base()

ROUND_STAGES = ("screening", "technical", "hiring_manager", "culture_fit", "other")
ROUND_RESULTS = ("pending", "passed", "failed", "waitlisted")

_TAG_RE = re.compile(r"<[^>]+>")
_JOB_LINK_LABEL_RE = re.compile(r"\b(job|position|posting|apply|role)\b", re.IGNORECASE)
_ATS_URL_RE = re.compile(
    r"(lever\.co|greenhouse\.io|myworkdayjobs\.com|myworkdaysite\.com|ashbyhq\.com|smartrecruiters\.com)",
    re.IGNORECASE,
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    applications = relationship("InterviewApplication", back_populates="user")


class Company(Base):
    """Global company directory (not user-scoped)."""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    website = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class JobRole(Base):
    __tablename__ = "job_roles"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class InterviewApplication(Base):
    """
    A candidate's application to one company/role.

    ``status`` and ``pipeline_stage`` are read-only; change them through
    ``status_machine.fire(...)`` / ``pipeline_machine.fire(...)``.
    """
    __tablename__ = "interview_applications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    job_role_id = Column(Integer, ForeignKey("job_roles.id"), nullable=True, index=True)
    _status = Column("status", String, default="active", nullable=False)
    _pipeline_stage = Column("pipeline_stage", String, default="applied", nullable=False)
    applied_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="applications")
    company = relationship("Company")
    job_role = relationship("JobRole")
    rounds = relationship(
        "InterviewRound",
        back_populates="application",
        order_by=lambda: [
            InterviewRound.position,
            InterviewRound.scheduled_at.asc().nulls_first(),
            InterviewRound.created_at,
        ],
        cascade="all, delete-orphan",
    )
    company_feedbacks = relationship(
        "CompanyFeedback", back_populates="application", cascade="all, delete-orphan"
    )
    signals = relationship("Signal", back_populates="application")

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Column defaults only apply at flush; machines need a state right away.
        if self._status is None:
            self._status = "active"
        if self._pipeline_stage is None:
            self._pipeline_stage = "applied"

    @hybrid_property
    def status(self):
        return self._status

    @hybrid_property
    def pipeline_stage(self):
        return self._pipeline_stage

    @property
    def status_machine(self) -> StateMachine:
        return StateMachine(self, "_status", STATUS_TRANSITIONS, "ApplicationStatus")

    @property
    def pipeline_machine(self) -> StateMachine:
        return StateMachine(self, "_pipeline_stage", PIPELINE_TRANSITIONS, "PipelineStage")

    @property
    def is_active(self) -> bool:
        return self._status == "active"

    @property
    def company_name(self) -> Optional[str]:
        return self.company.name if self.company else None


class Signal(Base):
    """Inbound job-search email, classified and optionally matched to an application."""
    __tablename__ = "signals"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    interview_application_id = Column(
        Integer, ForeignKey("interview_applications.id", ondelete="SET NULL"), nullable=True, index=True
    )
    email_type = Column(String, index=True, default="other")
    subject = Column(String, nullable=True)
    from_email = Column(String, nullable=True)
    from_name = Column(String, nullable=True)
    snippet = Column(Text, nullable=True)
    body_preview = Column(Text, nullable=True)
    body_html = Column(Text, nullable=True)
    email_date = Column(DateTime, nullable=True)
    thread_id = Column(String, nullable=True, index=True)
    extracted_data = Column(JSON, nullable=True)  # written by the generic first-pass extractor
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    application = relationship("InterviewApplication", back_populates="signals")

    # Generic extraction accessors
    def _extracted(self, key: str):
        data = self.extracted_data or {}
        value = data.get(key)
        if isinstance(value, str):
            value = value.strip()
        return value or None

    @property
    def matched(self) -> bool:
        return self.interview_application_id is not None

    @property
    def company_name(self) -> Optional[str]:
        return self._extracted("company_name")

    @property
    def company_website(self) -> Optional[str]:
        return self._extracted("company_website")

    @property
    def company_careers_url(self) -> Optional[str]:
        return self._extracted("company_careers_url")

    @property
    def recruiter_name(self) -> Optional[str]:
        return self._extracted("recruiter_name")

    @property
    def recruiter_email(self) -> Optional[str]:
        return self._extracted("recruiter_email") or self.from_email

    @property
    def recruiter_title(self) -> Optional[str]:
        return self._extracted("recruiter_title")

    @property
    def job_title(self) -> Optional[str]:
        return self._extracted("job_title")

    @property
    def job_url(self) -> Optional[str]:
        return self._extracted("job_url")

    @property
    def job_location(self) -> Optional[str]:
        return self._extracted("job_location")

    @property
    def job_department(self) -> Optional[str]:
        return self._extracted("job_department")

    @property
    def job_salary_hint(self) -> Optional[str]:
        return self._extracted("job_salary_hint")

    @property
    def action_links(self) -> list:
        links = (self.extracted_data or {}).get("action_links")
        if not isinstance(links, list):
            return []
        return [link for link in links if isinstance(link, dict) and link.get("url")]

    @property
    def scheduling_link(self) -> Optional[str]:
        for link in self.action_links:
            label = (link.get("action_label") or "").lower()
            if link.get("priority") == 1 or "schedule" in label:
                return link["url"]
        return None

    @property
    def detected_job_url(self) -> Optional[str]:
        """Job URL from extraction, else the best-looking action link."""
        if self.job_url:
            return self.job_url
        for link in self.action_links:
            if _JOB_LINK_LABEL_RE.search(link.get("action_label") or ""):
                return link["url"]
        for link in self.action_links:
            if _ATS_URL_RE.search(link["url"]):
                return link["url"]
        return None

    @property
    def body_content(self) -> str:
        """Best available plain-text body: preview, stripped HTML, then snippet."""
        if (self.body_preview or "").strip():
            return self.body_preview
        if (self.body_html or "").strip():
            text = _TAG_RE.sub(" ", self.body_html)
            return re.sub(r"\s+", " ", text).strip()
        return self.snippet or ""

    @property
    def has_content(self) -> bool:
        return any((value or "").strip() for value in (self.body_preview, self.body_html, self.snippet))


class InterviewRound(Base):
    __tablename__ = "interview_rounds"

    id = Column(Integer, primary_key=True, index=True)
    interview_application_id = Column(
        Integer, ForeignKey("interview_applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stage = Column(String, default="other", nullable=False)  # see ROUND_STAGES
    stage_name = Column(String, nullable=True)
    scheduled_at = Column(DateTime, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    interviewer_name = Column(String, nullable=True)
    interviewer_role = Column(String, nullable=True)
    video_link = Column(String, nullable=True)
    confirmation_source = Column(String, nullable=True)  # calendly, goodtime, manual, ...
    result = Column(String, default="pending", nullable=False)  # see ROUND_RESULTS
    completed_at = Column(DateTime, nullable=True)
    position = Column(Integer, default=0, nullable=False)
    notes = Column(Text, nullable=True)
    source_signal_id = Column(Integer, ForeignKey("signals.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    application = relationship("InterviewApplication", back_populates="rounds")
    feedback = relationship(
        "InterviewFeedback", back_populates="round", uselist=False, cascade="all, delete-orphan"
    )
    signal_links = relationship("InterviewRoundSignal", cascade="all, delete-orphan")

    @property
    def is_pending(self) -> bool:
        return self.result == "pending"


class InterviewRoundSignal(Base):
    """Signals that updated a round after it was created (source_signal_id keeps the creator)."""
    __tablename__ = "interview_round_signals"
    __table_args__ = (UniqueConstraint("interview_round_id", "signal_id", name="uq_interview_round_signal"),)

    id = Column(Integer, primary_key=True, index=True)
    interview_round_id = Column(
        Integer, ForeignKey("interview_rounds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    signal_id = Column(Integer, ForeignKey("signals.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class InterviewFeedback(Base):
    """Per-round feedback; at most one per round."""
    __tablename__ = "interview_feedbacks"

    id = Column(Integer, primary_key=True, index=True)
    interview_round_id = Column(
        Integer, ForeignKey("interview_rounds.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    went_well = Column(Text, nullable=True)
    to_improve = Column(Text, nullable=True)
    ai_summary = Column(Text, nullable=True)
    interviewer_notes = Column(Text, nullable=True)
    recommended_action = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    round = relationship("InterviewRound", back_populates="feedback")


class CompanyFeedback(Base):
    __tablename__ = "company_feedbacks"

    id = Column(Integer, primary_key=True, index=True)
    interview_application_id = Column(
        Integer, ForeignKey("interview_applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_signal_id = Column(Integer, ForeignKey("signals.id", ondelete="SET NULL"), nullable=True)
    feedback_type = Column(String, default="general", nullable=False)  # rejection, offer, general
    feedback_text = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    next_steps = Column(Text, nullable=True)
    self_reflection = Column(Text, nullable=True)
    received_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    application = relationship("InterviewApplication", back_populates="company_feedbacks")


class LlmApiLog(Base):
    """One row per extraction attempt against an LLM provider."""
    __tablename__ = "llm_api_logs"

    id = Column(Integer, primary_key=True, index=True)
    operation_type = Column(String, index=True, nullable=False)
    provider = Column(String, index=True, nullable=False)
    model = Column(String, nullable=True)
    status = Column(String, default="success")  # success, rejected, error, rate_limited
    signal_id = Column(Integer, ForeignKey("signals.id", ondelete="SET NULL"), nullable=True, index=True)
    latency_ms = Column(Integer, nullable=True)
    input_tokens = Column(Integer, nullable=True)
    output_tokens = Column(Integer, nullable=True)
    prompt_chars = Column(Integer, nullable=True)
    confidence_score = Column(Float, nullable=True)
    extracted_fields = Column(JSON, nullable=True)  # list of dotted field paths
    error_message = Column(Text, nullable=True)
    error_type = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# Idempotency lookups (query-by-source-signal)
Index("ix_interview_rounds_source_signal", InterviewRound.source_signal_id)
Index("ix_company_feedbacks_source_signal", CompanyFeedback.source_signal_id)
Index("ix_interview_rounds_app_scheduled", InterviewRound.interview_application_id, InterviewRound.scheduled_at)
Index("ix_interview_applications_user_status", InterviewApplication.user_id, InterviewApplication._status)
