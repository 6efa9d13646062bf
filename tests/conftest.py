import json
import os
import tempfile
from pathlib import Path
from types import SimpleNamespace

_TMP_DIR = Path(tempfile.mkdtemp(prefix="chatwidget-tests-"))
os.environ.update(
    {
        "ENV": "test",
        "CHATBOT_ENV_FILE": str(_TMP_DIR / "missing.env"),
        "DATABASE_URL": f"sqlite:///{_TMP_DIR / 'test.db'}",
        "OPENAI_API_KEY": "sk-test",
        "SECRET_KEY": "test-secret",
        "BUBBLE_DELAY_MS": "0",
        "SCAN_REQUEST_DELAY_SECONDS": "0",
        "LOG_LEVEL": "WARNING",
    }
)
for _name in ("REDIS_URL", "DEFAULT_SITE_CHATBOT_GUID", "DEFAULT_SITE_ADMIN_USER_ID", "SMTP_HOST"):
    os.environ.pop(_name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from chatwidget.config import get_settings  # noqa: E402
from chatwidget.db import SessionLocal, engine  # noqa: E402
from chatwidget.main import app  # noqa: E402
from chatwidget.models import Base, ChatbotConfig, User  # noqa: E402
from chatwidget.security import hash_password  # noqa: E402
from chatwidget.services import email_utils, knowledge, streaming  # noqa: E402
from chatwidget.services.rate_limit import rate_limiter  # noqa: E402

EMBEDDING_VOCABULARY = ("price", "shipping", "refund", "support")


def fake_embedding(text):
    lowered = text.lower()
    return [float(lowered.count(word)) for word in EMBEDDING_VOCABULARY] + [0.1]


def _delta_chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class FakeCompletions:
    """Stands in for ``client.chat.completions`` and replays queued answers."""

    def __init__(self):
        self.calls = []
        self.streams = []
        self.replies = []

    def create(self, *, stream=False, **kwargs):
        self.calls.append({"stream": stream, **kwargs})
        if stream:
            if not self.streams:
                raise AssertionError("No streamed answer queued")
            item = self.streams.pop(0)
            if isinstance(item, Exception):
                raise item
            return iter([_delta_chunk(piece) for piece in item])
        if not self.replies:
            raise AssertionError("No reply queued")
        content = self.replies.pop(0)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeOpenAI:
    def __init__(self):
        self.completions = FakeCompletions()
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self):
        return self.completions.calls

    def queue_bubbles(self, bubbles, chunk_size=None):
        text = json.dumps({"bubbles": bubbles})
        if chunk_size:
            pieces = [text[i : i + chunk_size] for i in range(0, len(text), chunk_size)]
        else:
            pieces = [text]
        self.completions.streams.append(pieces)

    def queue_raw(self, text):
        self.completions.streams.append([text])

    def queue_error(self, exc):
        self.completions.streams.append(exc)

    def queue_reply(self, bubbles):
        self.completions.replies.append(json.dumps({"bubbles": bubbles}))


@pytest.fixture(autouse=True)
def _database():
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def fake_openai(monkeypatch):
    fake = FakeOpenAI()
    monkeypatch.setattr(streaming, "_client", fake)
    monkeypatch.setattr(streaming, "RETRY_DELAY_SECONDS", 0)
    monkeypatch.setattr(knowledge, "embed_texts", lambda texts: [fake_embedding(t) for t in texts])
    monkeypatch.setattr(knowledge, "embed_query", fake_embedding)
    return fake


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    outbox = []

    def _send(subject, body, **kwargs):
        outbox.append({"subject": subject, "body": body, **kwargs})
        return True

    monkeypatch.setattr(email_utils, "send_email", _send)
    return outbox


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def owner(db):
    user = User(email="owner@example.com", password_hash=hash_password("password123"))
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def chatbot(db, owner):
    bot = ChatbotConfig(user_id=owner.id, name="Helper", system_prompt="You help shoppers.")
    db.add(bot)
    db.commit()
    return bot


def signup(client, email="user@example.com", password="password123"):
    response = client.post("/api/auth/signup", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def create_chatbot(client, **fields):
    payload = {"name": "Support bot", **fields}
    response = client.post("/api/chatbots", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def auth_client(client):
    signup(client)
    return client


SURVEY_CONFIG = {
    "id": "onboarding",
    "title": "Onboarding",
    "completionMessage": "Thanks for sharing!",
    "questions": [
        {
            "id": "q_role",
            "text": "What is your role?",
            "type": "single_choice",
            "options": [{"id": "dev", "text": "Developer"}, {"id": "pm", "text": "Product manager"}],
        },
        {"id": "q_score", "text": "How likely are you to recommend us?", "type": "rating"},
    ],
}
