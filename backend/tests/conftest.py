"""Shared fixtures: in-memory Firestore, recorded socket events, fixed users."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from mockfirestore import MockFirestore

from assignflow.core.auth import get_current_user
from assignflow.core.config import settings
from assignflow.core.dependencies import get_email_enqueuer
from assignflow.core.events import get_event_sink
from assignflow.core.firebase import get_db
from assignflow.models.user_model import User
from main import app

SEED_USERS = [
    {"_id": "admin-1", "name": "Ada Admin", "email": "ada@example.com", "role": "admin"},
    {"_id": "client-1", "name": "Cleo Client", "email": "cleo@example.com", "role": "client"},
    {"_id": "client-2", "name": "Carl Client", "email": "carl@example.com", "role": "client"},
    {"_id": "writer-1", "name": "Wes Writer", "email": "wes@example.com", "role": "writer", "specialty": "History"},
    {"_id": "writer-2", "name": "Wren Writer", "email": "wren@example.com", "role": "writer", "specialty": "Biology"},
]


class RecordingEventSink:
    """Collects every push instead of sending it."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict]] = []

    async def notify(self, user_id, event, payload=None):
        self.events.append((user_id, event, payload or {}))
        return 1

    def names_for(self, user_id: str) -> list[str]:
        return [event for uid, event, _ in self.events if uid == user_id]


class FailingEventSink:
    async def notify(self, user_id, event, payload=None):
        raise ConnectionError("socket layer down")


class Api:
    """TestClient wrapper that switches the signed-in user per call."""

    def __init__(self, client: TestClient, users: dict[str, User]) -> None:
        self.client = client
        self.users = users
        self.current: User | None = None

    def as_(self, user_id: str) -> TestClient:
        self.current = self.users[user_id]
        return self.client


@pytest.fixture
def db():
    return MockFirestore()


@pytest.fixture
def users(db) -> dict[str, User]:
    now = datetime.now(timezone.utc)
    seeded = {}
    for data in SEED_USERS:
        user = User(**{**data, "created_at": now, "updated_at": now})
        db.collection("users").document(user.id).set(user.model_dump(by_alias=True))
        seeded[user.id] = user
    return seeded


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def emails() -> list:
    return []


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture
def api(db, users, events, emails, upload_dir):
    client = TestClient(app)
    wrapper = Api(client, users)

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_event_sink] = lambda: events
    app.dependency_overrides[get_email_enqueuer] = lambda: (lambda *args: emails.append(args))
    app.dependency_overrides[get_current_user] = lambda: wrapper.current

    yield wrapper
    app.dependency_overrides.clear()


# ------------------------------------------------------------
# Workflow helpers
# ------------------------------------------------------------
PDF = ("brief.pdf", b"%PDF-1.4 brief", "application/pdf")


def submit(api: Api, client_id: str = "client-1", title: str = "Essay on Rome") -> str:
    resp = api.as_(client_id).post(
        "/api/assignments/",
        data={"title": title, "subject": "History", "description": "2000 words"},
        files=[("files", PDF)],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["assignment"]["id"]


def to_price_accepted(api: Api, price: float = 100, client_id: str = "client-1", title: str = "Essay on Rome") -> str:
    aid = submit(api, client_id, title)
    assert api.as_("admin-1").put(f"/api/assignments/{aid}/price", json={"client_price": price}).status_code == 200
    assert api.as_(client_id).put(f"/api/assignments/{aid}/accept-price").status_code == 200
    return aid


def to_paid(api: Api, price: float = 100, client_id: str = "client-1", title: str = "Essay on Rome") -> str:
    aid = to_price_accepted(api, price, client_id, title)
    resp = api.as_(client_id).post(
        f"/api/assignments/{aid}/payment-proof",
        data={"payment_method": "Bank"},
        files={"proof": ("receipt.png", b"\x89PNG receipt", "image/png")},
    )
    assert resp.status_code == 200, resp.text
    assert api.as_("admin-1").put(f"/api/assignments/{aid}/confirm-payment").status_code == 200
    return aid


def to_in_progress(api: Api, price: float = 100, writer_price: float = 60, writer_id: str = "writer-1", title: str = "Essay on Rome") -> str:
    aid = to_paid(api, price, title=title)
    resp = api.as_("admin-1").put(
        f"/api/assignments/{aid}/assign",
        json={"writer_id": writer_id, "writer_price": writer_price},
    )
    assert resp.status_code == 200, resp.text
    return aid


def to_completed(api: Api, writer_price: float = 60, writer_id: str = "writer-1", title: str = "Essay on Rome") -> str:
    aid = to_in_progress(api, writer_price=writer_price, writer_id=writer_id, title=title)
    resp = api.as_(writer_id).post(
        f"/api/assignments/{aid}/complete",
        files=[("files", ("final.docx", b"final essay", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"))],
    )
    assert resp.status_code == 200, resp.text
    return aid


def writer_paysheets(db, writer_id: str = "writer-1") -> list[dict]:
    return [
        doc.to_dict() for doc in db.collection("paysheets").where("owner_id", "==", writer_id).stream()
        if doc.to_dict()["kind"] == "writer"
    ]


def admin_paysheets(db) -> list[dict]:
    return [doc.to_dict() for doc in db.collection("paysheets").where("kind", "==", "admin").stream()]


def assignment_doc(db, aid: str) -> dict:
    return db.collection("assignments").document(aid).get().to_dict()
