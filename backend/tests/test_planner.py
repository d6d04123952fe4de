"""Classification -> planned actions table."""

import pytest

from app.services.signals.planner import PLAN_TABLE, plan
from app.services.signals.state_context import StateContext
from app.services.signals.types import ActionKind, PlannedAction, SignalType


def _kinds(context):
    return [a.kind for a in plan(context)]


def test_every_signal_type_has_a_plan():
    assert set(PLAN_TABLE) == set(SignalType)


@pytest.mark.parametrize("email_type,expected", [
    ("rejection", [ActionKind.RUN_STATUS_PROCESSOR, ActionKind.MARK_LATEST_ROUND_FAILED]),
    ("offer", [ActionKind.RUN_STATUS_PROCESSOR]),
    ("round_feedback", [ActionKind.RUN_ROUND_FEEDBACK_PROCESSOR, ActionKind.SYNC_APPLICATION_FROM_ROUND_RESULT]),
    ("scheduling", [ActionKind.RUN_INTERVIEW_ROUND_PROCESSOR, ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE]),
    ("interview_invite", [ActionKind.RUN_INTERVIEW_ROUND_PROCESSOR, ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE]),
    ("interview_reminder", [ActionKind.RUN_INTERVIEW_ROUND_PROCESSOR, ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE]),
    ("application_confirmation", [ActionKind.SET_PIPELINE_STAGE]),
    ("withdrawal", []),
    ("ghosted", []),
    ("on_hold", []),
    ("other", []),
    ("something_new", []),
    (None, []),
])
def test_plan_by_classification(make_signal, application, email_type, expected):
    signal = make_signal(application, email_type=email_type)
    assert _kinds(StateContext.build(signal)) == expected


def test_confirmation_targets_applied_stage(make_signal, application):
    signal = make_signal(application, email_type="application_confirmation")
    assert plan(StateContext.build(signal)) == [PlannedAction(ActionKind.SET_PIPELINE_STAGE, "applied")]


def test_signal_type_coercion():
    assert SignalType.coerce(" Scheduling ") is SignalType.SCHEDULING
    assert SignalType.coerce("unknown") is SignalType.OTHER
    assert SignalType.coerce(None) is SignalType.OTHER


def test_context_snapshot(make_signal, make_round, application):
    from datetime import datetime
    early = make_round(application, scheduled_at=datetime(2026, 1, 10, 10), position=1)
    late = make_round(application, scheduled_at=datetime(2026, 1, 20, 10), position=2)
    unscheduled = make_round(application, scheduled_at=None, position=3)
    make_round(application, scheduled_at=datetime(2026, 1, 5, 10), position=0, result="passed")

    context = StateContext.build(make_signal(application))

    assert context.matched
    assert [r.id for r in context.pending_rounds] == [late.id, early.id, unscheduled.id]
    assert context.latest_round.id == unscheduled.id


def test_unmatched_context(make_signal):
    context = StateContext.build(make_signal(None))
    assert not context.matched
    assert context.rounds == ()
    assert context.latest_round is None
