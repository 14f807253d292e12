# tests/conftest.py
from datetime import datetime, timedelta, timezone

import pytest

from gamenews import create_app
from gamenews.config import TestConfig
from gamenews.content import ContentRepository
from gamenews.identity import IdentityService
from gamenews.listing import ArticleListing
from gamenews.models import db
from gamenews.store import MemoryStore

ADMIN_EMAIL = TestConfig.ADMIN_EMAIL
ADMIN_PASSWORD = TestConfig.ADMIN_PASSWORD


class FakeClock:
    """Deterministic clock; every call returns a later instant unless frozen."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.now = start or datetime(2024, 11, 26, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        value = self.now
        self.now = self.now + self.step
        return value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def identity(store):
    return IdentityService(store, secret="unit-test-secret", hash_method="pbkdf2:sha256:1000")


@pytest.fixture
def content(store):
    return ContentRepository(store)


@pytest.fixture
def listing(store):
    return ArticleListing(store)


@pytest.fixture
def author(store):
    return store.add_user(
        name="Admin",
        email="admin@example.com",
        password_hash="x",
        role="admin",
        avatar="https://ui-avatars.com/api/?name=Admin",
    )


@pytest.fixture
def published(content, author):
    return content.create_article(author.id, {
        "title": "Review: Elden Ring",
        "category": "Reviews",
        "content": "A deep dive.",
        "status": "published",
    })


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig, overrides={"UPLOAD_FOLDER": str(tmp_path / "uploads")})
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client):
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return bearer(response.get_json()["token"])


@pytest.fixture
def user_headers(client):
    response = client.post(
        "/api/auth/register",
        json={"name": "Alice", "email": "alice@x.com", "password": "pw123"},
    )
    assert response.status_code == 201
    return bearer(response.get_json()["token"])
