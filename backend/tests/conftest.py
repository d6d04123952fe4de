"""Pytest fixtures: file-backed SQLite DB, client, record factories and scripted LLM providers."""
import os
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("SECRET_KEY", "test-secret")

import json
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from app.main import app
from app.database import get_db, get_sync_db
from app.llm_providers import BaseProvider
from app.models import Base, Company, InterviewApplication, InterviewRound, JobRole, Signal, User
from app.services.provider_runner import ProviderRunner


@pytest.fixture
def db_urls(tmp_path):
    """
    Use a file-based sqlite DB so sync setup code (tests) and async app sessions
    can see the same data.
    """
    db_path = tmp_path / "test.db"
    sync_url = f"sqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"
    return sync_url, async_url


@pytest.fixture
def db_engine(db_urls):
    sync_url, _ = db_urls
    engine = create_engine(sync_url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(db_engine):
    from sqlalchemy.orm import sessionmaker
    Session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_urls, db_session):
    _, async_url = db_urls
    async_engine = create_async_engine(
        async_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with AsyncSessionLocal() as session:
            yield session

    def override_get_sync_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sync_db] = override_get_sync_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


# -- records ----------------------------------------------------------------


@pytest.fixture
def make_user(db_session):
    def _make(email: str = "me@example.com") -> User:
        user = User(email=email)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def make_application(db_session, user):
    def _make(company: str = "Acme", title: str = "Backend Engineer", owner: User = None, **kwargs):
        application = InterviewApplication(
            user_id=(owner or user).id,
            company=Company(name=company),
            job_role=JobRole(title=title),
            applied_at=datetime(2026, 1, 5, 9, 0),
            **kwargs,
        )
        db_session.add(application)
        db_session.commit()
        db_session.refresh(application)
        return application
    return _make


@pytest.fixture
def application(make_application):
    return make_application()


@pytest.fixture
def make_signal(db_session, user):
    def _make(
        application: InterviewApplication = None,
        email_type: str = "scheduling",
        body_preview: str = "Your interview is confirmed.",
        extracted_data: dict = None,
        owner: User = None,
        **kwargs,
    ) -> Signal:
        signal = Signal(
            user_id=(owner or user).id,
            interview_application_id=application.id if application is not None else None,
            email_type=email_type,
            subject=kwargs.pop("subject", "Interview update"),
            from_email=kwargs.pop("from_email", "recruiting@acme.example"),
            from_name=kwargs.pop("from_name", "Acme Recruiting"),
            body_preview=body_preview,
            email_date=kwargs.pop("email_date", datetime(2026, 1, 10, 12, 0)),
            extracted_data=extracted_data,
            **kwargs,
        )
        db_session.add(signal)
        db_session.commit()
        db_session.refresh(signal)
        return signal
    return _make


@pytest.fixture
def make_round(db_session):
    def _make(application: InterviewApplication, **kwargs) -> InterviewRound:
        kwargs.setdefault("stage", "screening")
        kwargs.setdefault("result", "pending")
        kwargs.setdefault("position", len(application.rounds) + 1)
        round_ = InterviewRound(interview_application_id=application.id, **kwargs)
        db_session.add(round_)
        db_session.commit()
        db_session.refresh(round_)
        return round_
    return _make


# -- LLM providers ----------------------------------------------------------


class ProviderFailure:
    """Scripted provider-level failure (returned, not raised)."""

    def __init__(self, error: str = "boom", rate_limit: bool = False):
        self.error = error
        self.rate_limit = rate_limit


class FakeProvider(BaseProvider):
    """Replays scripted replies: dict (JSON payload), str (raw content), Exception, or ProviderFailure."""

    def __init__(self, *replies, name: str = "fake", model: str = "fake-model", available: bool = True):
        self.name = name
        self._model = model
        self._available = available
        self.replies = list(replies)
        self.prompts = []
        self.system_messages = []

    @property
    def model_name(self) -> str:
        return self._model

    def available(self) -> bool:
        return self._available

    def run(self, prompt, *, max_tokens=1500, temperature=0.1, system_message=None, timeout=None) -> dict:
        self.prompts.append(prompt)
        self.system_messages.append(system_message)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        result = {
            "content": None,
            "provider": self.name,
            "model": self._model,
            "input_tokens": 100,
            "output_tokens": 50,
            "latency_ms": 7,
        }
        if isinstance(reply, ProviderFailure):
            result.update(error=reply.error, error_type="FakeError", rate_limit=reply.rate_limit)
        else:
            result["content"] = reply if isinstance(reply, str) else json.dumps(reply)
        return result

    @property
    def calls(self) -> int:
        return len(self.prompts)


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def provider_failure():
    return ProviderFailure


@pytest.fixture
def runner_for():
    """Build a ProviderRunner factory whose chain is exactly the given providers."""
    def _build(*providers):
        registry = {p.name: p for p in providers}

        def factory(db, **kwargs):
            kwargs.setdefault("provider_chain", [p.name for p in providers])
            return ProviderRunner(db, provider_for=registry.get, **kwargs)
        return factory
    return _build


@pytest.fixture
def scripted_llm(runner_for):
    """scripted_llm(reply, ...) -> (runner_factory, provider) with a single fake provider."""
    def _build(*replies):
        provider = FakeProvider(*replies)
        return runner_for(provider), provider
    return _build
