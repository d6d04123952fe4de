"""Scheduling emails -> interview rounds."""

from datetime import datetime

from sqlalchemy import text

from app.models import InterviewRound, InterviewRoundSignal, LlmApiLog
from app.services.signals.base_processor import ALREADY_PROCESSED, NO_CONTENT, NOT_MATCHED, NOT_PROCESSABLE
from app.services.signals.interview_round_processor import INSUFFICIENT_SIGNAL, InterviewRoundProcessor
from app.services.signals.round_feedback_processor import RoundFeedbackProcessor


def scheduling_reply(**overrides):
    reply = {
        "interview": {
            "scheduled_at": "2026-01-21T14:00:00-08:00",
            "duration_minutes": 45,
            "stage": "screening",
            "stage_name": "Recruiter Screen",
        },
        "interviewer": {"name": "Jane Doe", "role": "Technical Recruiter"},
        "logistics": {"video_link": "https://zoom.us/j/123", "phone_number": None, "location": None},
        "confirmation_source": "goodtime",
        "confidence_score": 0.9,
    }
    reply.update(overrides)
    return reply


SLOT = datetime(2026, 1, 21, 22, 0)  # 14:00 PST as naive UTC


def _process(db_session, signal, factory, **kwargs):
    return InterviewRoundProcessor(db_session, signal, runner_factory=factory, **kwargs).process()


def test_creates_round_from_confirmed_slot(db_session, application, make_signal, scripted_llm):
    factory, provider = scripted_llm(scheduling_reply())
    signal = make_signal(application, email_type="scheduling", subject="Interview confirmed")

    result = _process(db_session, signal, factory)

    assert result["success"] is True
    assert result["action"] == "created"
    round_ = db_session.query(InterviewRound).one()
    assert result["record"].id == round_.id
    assert round_.stage == "screening"
    assert round_.stage_name == "Recruiter Screen"
    assert round_.scheduled_at == SLOT
    assert round_.duration_minutes == 45
    assert round_.interviewer_name == "Jane Doe"
    assert round_.video_link == "https://zoom.us/j/123"
    assert round_.confirmation_source == "goodtime"
    assert round_.result == "pending"
    assert round_.position == 1
    assert round_.source_signal_id == signal.id
    assert round_.notes.startswith("Created from email signal")
    assert result["llm_api_log_id"] == db_session.query(LlmApiLog).one().id

    assert "SUBJECT: Interview confirmed" in provider.prompts[0]
    assert "COMPANY: Acme" in provider.prompts[0]


def test_default_duration_and_unknown_stage(db_session, application, make_signal, scripted_llm):
    reply = scheduling_reply(interview={"scheduled_at": "2026-01-21T22:00:00Z", "stage": "panel"})
    factory, _ = scripted_llm(reply)

    _process(db_session, make_signal(application), factory)

    round_ = db_session.query(InterviewRound).one()
    assert round_.duration_minutes == 30
    assert round_.stage == "other"


def test_updates_round_within_an_hour(db_session, application, make_signal, make_round, scripted_llm):
    existing = make_round(
        application,
        scheduled_at=datetime(2026, 1, 21, 22, 20),
        interviewer_name="Original Name",
        video_link="https://old.example/link",
    )
    factory, _ = scripted_llm(scheduling_reply())

    result = _process(db_session, make_signal(application), factory)

    assert result["action"] == "updated"
    assert db_session.query(InterviewRound).count() == 1
    db_session.refresh(existing)
    assert existing.video_link == "https://zoom.us/j/123"
    assert existing.interviewer_name == "Original Name"
    assert existing.interviewer_role == "Technical Recruiter"
    assert existing.scheduled_at == datetime(2026, 1, 21, 22, 20)


def test_round_outside_window_is_not_touched(db_session, application, make_signal, make_round, scripted_llm):
    make_round(application, scheduled_at=datetime(2026, 1, 21, 23, 30))
    factory, _ = scripted_llm(scheduling_reply())

    result = _process(db_session, make_signal(application), factory)

    assert result["action"] == "created"
    assert db_session.query(InterviewRound).count() == 2


def test_fills_round_awaiting_a_time(db_session, application, make_signal, make_round, scripted_llm):
    awaiting = make_round(application, stage="other", scheduled_at=None)
    factory, _ = scripted_llm(scheduling_reply())

    result = _process(db_session, make_signal(application), factory)

    assert result["action"] == "updated"
    db_session.refresh(awaiting)
    assert awaiting.scheduled_at == SLOT
    assert awaiting.stage == "screening"
    assert awaiting.stage_name == "Recruiter Screen"
    assert db_session.query(InterviewRound).count() == 1


def test_link_only_email_is_insufficient(db_session, application, make_signal, scripted_llm):
    reply = {
        "interview": {"scheduled_at": None},
        "logistics": {"video_link": None},
        "confidence_score": 0.8,
    }
    factory, _ = scripted_llm(reply)

    result = _process(db_session, make_signal(application), factory)

    assert result["skipped"] is True
    assert result["reason"] == INSUFFICIENT_SIGNAL
    assert db_session.query(InterviewRound).count() == 0


def test_low_confidence_is_an_extraction_failure(db_session, application, make_signal, scripted_llm):
    factory, _ = scripted_llm(scheduling_reply(confidence_score=0.4))

    result = _process(db_session, make_signal(application), factory)

    assert result == {"success": False, "error": "Failed to extract interview data from email"}
    assert db_session.query(InterviewRound).count() == 0
    assert db_session.query(LlmApiLog).one().status == "rejected"


def test_reprocessing_is_idempotent(db_session, application, make_signal, scripted_llm):
    factory, provider = scripted_llm(scheduling_reply())
    signal = make_signal(application)

    first = _process(db_session, signal, factory)
    second = _process(db_session, signal, factory)

    assert second["skipped"] is True
    assert second["reason"] == ALREADY_PROCESSED
    assert second["record"].id == first["record"].id
    assert provider.calls == 1
    assert db_session.query(InterviewRound).count() == 1


def test_applicability_gates(db_session, application, make_signal, scripted_llm):
    factory, provider = scripted_llm(scheduling_reply())

    assert _process(db_session, make_signal(None), factory)["reason"] == NOT_MATCHED
    assert _process(db_session, make_signal(application, email_type="rejection"), factory)["reason"] == NOT_PROCESSABLE
    empty = make_signal(application, body_preview=None, body_html="   ", snippet=None)
    assert _process(db_session, empty, factory)["reason"] == NO_CONTENT
    assert provider.calls == 0


def test_unexpected_errors_are_reported(db_session, application, make_signal):
    reported = []

    class Notifier:
        def notify(self, exc, context=None, severity="error"):
            reported.append((exc, context))
            return {}

    def broken_factory(db, **kwargs):
        raise RuntimeError("runner exploded")

    signal = make_signal(application)
    result = _process(db_session, signal, broken_factory, notifier=Notifier())

    assert result == {"success": False, "error": "runner exploded"}
    assert reported[0][1]["processor"] == "InterviewRoundProcessor"
    assert reported[0][1]["signal_id"] == signal.id


def test_long_bodies_are_truncated_in_the_prompt(db_session, application, make_signal, scripted_llm):
    factory, provider = scripted_llm(scheduling_reply())
    _process(db_session, make_signal(application, body_preview="x" * 6000), factory)

    prompt = provider.prompts[0]
    assert "x" * 4997 + "..." in prompt
    assert "x" * 4998 not in prompt


def test_completed_round_is_not_reused_for_the_next_booking(db_session, application, make_signal, scripted_llm):
    passed = {
        "result": "passed",
        "round_context": {"stage_mentioned": "phone screen", "interviewer_mentioned": None, "date_mentioned": None},
        "feedback": {"has_detailed_feedback": False},
        "next_steps": {"has_next_round": True},
        "confidence_score": 0.9,
    }
    booking = scheduling_reply(interview={"scheduled_at": "2026-03-01T15:00:00Z", "stage": "technical"})
    factory, _ = scripted_llm(passed, booking)

    feedback_signal = make_signal(application, email_type="round_feedback")
    RoundFeedbackProcessor(db_session, feedback_signal, runner_factory=factory).process()
    result = _process(db_session, make_signal(application), factory)

    assert result["action"] == "created"
    rounds = db_session.query(InterviewRound).order_by(InterviewRound.position).all()
    assert [(r.stage, r.result, r.scheduled_at) for r in rounds] == [
        ("screening", "passed", None),
        ("technical", "pending", datetime(2026, 3, 1, 15, 0)),
    ]


def test_update_keeps_the_creating_signal(db_session, application, make_signal, scripted_llm):
    factory, provider = scripted_llm(scheduling_reply())
    creator = make_signal(application, subject="Interview confirmed")
    follow_up = make_signal(application, subject="Interview details")

    created = _process(db_session, creator, factory)
    updated = _process(db_session, follow_up, factory)

    assert updated["action"] == "updated"
    round_ = db_session.query(InterviewRound).one()
    assert round_.source_signal_id == creator.id
    link = db_session.query(InterviewRoundSignal).one()
    assert (link.interview_round_id, link.signal_id) == (round_.id, follow_up.id)

    assert _process(db_session, creator, factory)["reason"] == ALREADY_PROCESSED
    again = _process(db_session, follow_up, factory)
    assert again["reason"] == ALREADY_PROCESSED
    assert again["record"].id == created["record"].id
    assert provider.calls == 2


def test_failed_audit_write_does_not_break_extraction(db_session, application, make_signal, scripted_llm):
    db_session.execute(text("DROP TABLE llm_api_logs"))
    db_session.commit()
    factory, _ = scripted_llm(scheduling_reply())

    result = _process(db_session, make_signal(application), factory)

    assert result["success"] is True
    assert result["action"] == "created"
    assert result["llm_api_log_id"] is None
    assert db_session.query(InterviewRound).one().scheduled_at == SLOT
