"""
Shared fixtures: a throwaway SQLite database, users with tokens, and scripted
language models standing in for the hosted providers.
"""
import os
import tempfile
import time

_tmp_dir = tempfile.mkdtemp(prefix="chatbot-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp_dir}/test.db"
os.environ["UPLOAD_DIR"] = os.path.join(_tmp_dir, "uploads")
os.environ["STREAM_DELAY_MS"] = "0"
os.environ["REDIS_URL"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["SECRET_KEY"] = "test-secret"

import json  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from chatbot.ai.providers import ARTIFACT_MODEL, TITLE_MODEL, LanguageModel, ModelSpec, StreamPart  # noqa: E402
from chatbot.auth import create_access_token, hash_password  # noqa: E402
from chatbot.config import get_settings  # noqa: E402
from chatbot.database import Base, SessionLocal, engine  # noqa: E402
from chatbot.dependencies import get_registry  # noqa: E402
from chatbot.main import app  # noqa: E402
from chatbot.models.user import User  # noqa: E402


class FakeLanguageModel(LanguageModel):
    """
    Replays scripted steps. Each stream() call consumes one step (a list of StreamPart,
    or exceptions to raise mid-stream); with no steps left it answers `text`.
    `delay` sleeps before each part, like a slow provider.
    """

    def __init__(self, model_id: str = "fake", steps=None, text: str = "Fake reply", delay: float = 0.0):
        super().__init__(model_id, ModelSpec("fake", model_id), get_settings())
        self.steps = list(steps or [])
        self.text = text
        self.delay = delay
        self.calls = []

    def stream(self, system, messages, tools=None, *, search_grounding=False, temperature=1.0):
        self.calls.append({
            "system": system,
            "messages": list(messages),
            "tools": tools,
            "search_grounding": search_grounding,
        })
        parts = self.steps.pop(0) if self.steps else [StreamPart(type="text", text=self.text)]
        for part in parts:
            if self.delay:
                time.sleep(self.delay)
            if isinstance(part, Exception):
                raise part
            yield part
        yield StreamPart(type="finish", finish_reason="stop", usage={"input_tokens": 3, "output_tokens": 5})


class FakeRegistry:
    """Every catalog model plus the title/artifact models resolve to fakes."""

    def __init__(self):
        self.models: dict[str, FakeLanguageModel] = {}
        self.title_model = FakeLanguageModel(TITLE_MODEL, text="Greeting the assistant")
        self.artifact_model = FakeLanguageModel(ARTIFACT_MODEL, text="Draft body")

    def set_model(self, model_id: str, model: FakeLanguageModel) -> FakeLanguageModel:
        self.models[model_id] = model
        return model

    def language_model(self, model_id: str) -> FakeLanguageModel:
        if model_id == TITLE_MODEL:
            return self.title_model
        if model_id == ARTIFACT_MODEL:
            return self.artifact_model
        return self.models.setdefault(model_id, FakeLanguageModel(model_id))


def parse_sse(body: str) -> list[dict]:
    return [
        json.loads(line[len("data: "):])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _make_user(db, email: str) -> User:
    user = User(email=email, password=hash_password("secret123"))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db) -> User:
    return _make_user(db, "alice@example.com")


@pytest.fixture
def other_user(db) -> User:
    return _make_user(db, "bob@example.com")


@pytest.fixture
def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}


@pytest.fixture
def other_headers(other_user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(other_user.id, other_user.email)}"}


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def client(registry):
    app.dependency_overrides[get_registry] = lambda: registry
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
