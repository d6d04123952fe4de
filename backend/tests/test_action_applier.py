"""State directives: fixed ordering, guards, and round/application sync."""

from app.services.signals.action_applier import ActionApplier
from app.services.signals.types import ActionKind, PlannedAction


class RecordingNotifier:
    def __init__(self):
        self.errors = []

    def notify(self, exc, context=None, severity="error"):
        self.errors.append((exc, context))
        return {}


def test_ordering_is_fixed_regardless_of_plan_order():
    planned = [
        PlannedAction(ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE),
        PlannedAction(ActionKind.SET_PIPELINE_STAGE, "applied"),
        PlannedAction(ActionKind.RUN_STATUS_PROCESSOR),
        PlannedAction(ActionKind.SET_APPLICATION_STATUS, "rejected"),
        PlannedAction(ActionKind.SYNC_APPLICATION_FROM_ROUND_RESULT),
        PlannedAction(ActionKind.MARK_LATEST_ROUND_FAILED),
    ]
    assert [a.kind for a in ActionApplier.ordered(planned)] == [
        ActionKind.MARK_LATEST_ROUND_FAILED,
        ActionKind.SYNC_APPLICATION_FROM_ROUND_RESULT,
        ActionKind.SET_APPLICATION_STATUS,
        ActionKind.SET_PIPELINE_STAGE,
        ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE,
    ]


def test_mark_failed_then_sync_rejects_and_closes(db_session, application, make_round):
    round_ = make_round(application)

    applied = ActionApplier(db_session, application).apply([
        PlannedAction(ActionKind.SYNC_APPLICATION_FROM_ROUND_RESULT),
        PlannedAction(ActionKind.MARK_LATEST_ROUND_FAILED),
    ])

    db_session.refresh(round_)
    db_session.refresh(application)
    assert round_.result == "failed"
    assert round_.completed_at is not None
    assert application.status == "rejected"
    assert application.pipeline_stage == "closed"
    assert [a["type"] for a in applied] == ["mark_latest_round_failed", "sync_application_from_round_result"]


def test_status_action_precedes_pipeline_action(db_session, application):
    applied = ActionApplier(db_session, application).apply([
        PlannedAction(ActionKind.SET_PIPELINE_STAGE, "screening"),
        PlannedAction(ActionKind.SET_APPLICATION_STATUS, "on_hold"),
    ])
    assert applied == [
        {"type": "set_application_status", "from": "active", "to": "on_hold"},
        {"type": "set_pipeline_stage", "from": "applied", "to": "screening"},
    ]


def test_illegal_targets_are_no_ops(db_session, application):
    applied = ActionApplier(db_session, application).apply([
        PlannedAction(ActionKind.SET_PIPELINE_STAGE, "offer"),  # not reachable from applied
        PlannedAction(ActionKind.SET_APPLICATION_STATUS, "bogus"),
        PlannedAction(ActionKind.SET_PIPELINE_STAGE, "applied"),  # already there
    ])
    db_session.refresh(application)
    assert applied == []
    assert application.pipeline_stage == "applied"
    assert application.status == "active"


def test_mark_failed_leaves_decided_rounds_alone(db_session, application, make_round):
    round_ = make_round(application, result="passed")
    applied = ActionApplier(db_session, application).apply([PlannedAction(ActionKind.MARK_LATEST_ROUND_FAILED)])
    db_session.refresh(round_)
    assert applied == []
    assert round_.result == "passed"


def test_passed_round_moves_pipeline_to_interviewing(db_session, application, make_round):
    make_round(application, result="passed")
    ActionApplier(db_session, application).apply([PlannedAction(ActionKind.SYNC_APPLICATION_FROM_ROUND_RESULT)])
    db_session.refresh(application)
    assert application.pipeline_stage == "interviewing"
    assert application.status == "active"


def test_sync_pipeline_from_round_stage(db_session, application, make_round):
    make_round(application, stage="screening")
    ActionApplier(db_session, application).apply([PlannedAction(ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE)])
    db_session.refresh(application)
    assert application.pipeline_stage == "screening"

    make_round(application, stage="technical")
    ActionApplier(db_session, application).apply([PlannedAction(ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE)])
    db_session.refresh(application)
    assert application.pipeline_stage == "interviewing"


def test_no_rounds_means_round_actions_do_nothing(db_session, application):
    applied = ActionApplier(db_session, application).apply([
        PlannedAction(ActionKind.MARK_LATEST_ROUND_FAILED),
        PlannedAction(ActionKind.SYNC_APPLICATION_FROM_ROUND_RESULT),
        PlannedAction(ActionKind.SYNC_PIPELINE_FROM_ROUND_STAGE),
    ])
    assert applied == []


def test_exceptions_are_reported_and_rolled_back(db_session, application, monkeypatch):
    notifier = RecordingNotifier()
    applier = ActionApplier(db_session, application, notifier=notifier)

    def explode(_status):
        raise RuntimeError("db went away")

    monkeypatch.setattr(applier, "set_application_status", explode)

    assert applier.apply([PlannedAction(ActionKind.SET_APPLICATION_STATUS, "rejected")]) == []
    assert len(notifier.errors) == 1
    assert notifier.errors[0][1]["component"] == "ActionApplier"
