"""HTTP surface: /api/signals/* (auth, user scoping, process, queue, actions)."""

from datetime import datetime, timedelta

from jose import jwt

from app.auth import get_current_user_required
from app.config import settings
from app.models import InterviewRound


def _bearer(user):
    claims = {"sub": str(user.id), "email": user.email, "exp": datetime.utcnow() + timedelta(hours=1)}
    return f"Bearer {jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)}"


def _override_auth(app, user):
    async def override_get_current_user_required():
        return user

    app.dependency_overrides[get_current_user_required] = override_get_current_user_required


class FakeTask:
    def __init__(self):
        self.calls = []
        self.id = "task-123"

    def delay(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        return self


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_requires_authentication(client, application, make_signal):
    signal = make_signal(application)
    assert client.post(f"/api/signals/{signal.id}/process").status_code == 401


def test_jwt_bearer_token_is_accepted(client, user, make_signal, monkeypatch):
    from app.routers import signals as signals_router

    task = FakeTask()
    monkeypatch.setattr(signals_router, "process_signal", task)
    signal = make_signal(None)

    response = client.post(
        f"/api/signals/{signal.id}/process/async",
        headers={"Authorization": _bearer(user)},
    )

    assert response.status_code == 200
    assert response.json() == {"task_id": "task-123", "status": "queued"}
    assert task.calls == [((signal.id,), {})]


def test_signals_are_user_scoped(client, make_user, application, make_signal):
    from app.main import app

    stranger = make_user("stranger@example.com")
    signal = make_signal(application)
    _override_auth(app, stranger)

    assert client.post(f"/api/signals/{signal.id}/process").status_code == 404
    assert client.post(f"/api/signals/{signal.id}/actions/start_application").status_code == 404
    assert client.post("/api/signals/999999/process").status_code == 404


def test_process_runs_pipeline(client, db_session, user, application, make_signal, scripted_llm, monkeypatch):
    from app.main import app
    from app.routers import signals as signals_router
    from app.services.reprocess_service import run_signal_pipeline

    _override_auth(app, user)
    factory, _ = scripted_llm({
        "interview": {"scheduled_at": "2026-02-03T17:00:00Z", "stage": "technical"},
        "logistics": {"video_link": "https://meet.example/abc"},
        "confidence_score": 0.9,
    })
    seen = []

    def fake_pipeline(db, signal, **kwargs):
        seen.append(signal.id)
        return run_signal_pipeline(db, signal, processor_options={"runner_factory": factory})

    monkeypatch.setattr(signals_router, "run_signal_pipeline", fake_pipeline)
    signal = make_signal(application, email_type="interview_invite")

    response = client.post(f"/api/signals/{signal.id}/process")

    assert response.status_code == 200
    body = response.json()
    assert seen == [signal.id]
    assert body["success"] is True
    assert body["actions"][0] == {"type": "run_interview_round_processor", "target": None}
    round_id = db_session.query(InterviewRound).one().id
    assert body["processor_results"]["interview_round"]["record"] == {"type": "InterviewRound", "id": round_id}
    assert body["applied_actions"][0]["type"] == "sync_pipeline_from_round_stage"


def test_unmatched_process_is_reported_as_skipped(client, user, make_signal):
    from app.main import app

    _override_auth(app, user)
    signal = make_signal(None)

    body = client.post(f"/api/signals/{signal.id}/process").json()

    assert body["success"] is False
    assert body["skipped"] is True
    assert body["reason"] == "Email not matched to application"


def test_start_application_action(client, user, make_signal):
    from app.main import app

    _override_auth(app, user)
    signal = make_signal(None, email_type="other", extracted_data={"company_name": "Initech LLC", "job_title": "SRE"})

    response = client.post(f"/api/signals/{signal.id}/actions/start_application", json={"params": {}})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Application started at Initech"
    assert body["redirect_path"] == f"/applications/{body['application_id']}"


def test_failed_action_returns_422(client, user, make_signal):
    from app.main import app

    _override_auth(app, user)
    signal = make_signal(None, email_type="other", extracted_data={})

    response = client.post(f"/api/signals/{signal.id}/actions/start_application")
    assert response.status_code == 422
    assert response.json()["detail"] == "No company name extracted"

    response = client.post(f"/api/signals/{signal.id}/actions/teleport")
    assert response.status_code == 422
    assert response.json()["detail"] == "Invalid action type: teleport"


def test_reprocess_is_queued_for_current_user(client, user, monkeypatch):
    from app.main import app
    from app.routers import signals as signals_router

    _override_auth(app, user)
    task = FakeTask()
    monkeypatch.setattr(signals_router, "reprocess_signals", task)

    response = client.post("/api/signals/reprocess", json={"application_id": 7, "limit": 50})

    assert response.status_code == 200
    assert task.calls == [((user.id,), {"application_id": 7, "limit": 50})]
