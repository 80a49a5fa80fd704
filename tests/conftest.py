import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"

import pytest
from fastapi.testclient import TestClient

from bello import realtime
from bello.db import Base, SessionLocal, User, engine
from bello.main import app

PASSWORD = "password123"


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user():
    """Sign up a user and return a TestClient holding their session cookie."""

    def _make(email: str, name: str = "", admin: bool = False) -> TestClient:
        c = TestClient(app)
        r = c.post(
            "/auth/signup",
            json={"email": email, "password": PASSWORD, "name": name or email.split("@")[0]},
        )
        assert r.status_code == 200, r.text
        c.user = r.json()["user"]
        if admin:
            set_user_flags(c.user["id"], is_admin=True)
            c.user["isAdmin"] = True
        return c

    return _make


@pytest.fixture
def published(monkeypatch):
    events: list[tuple[str, str]] = []

    async def record(topic: str, message: dict) -> int:
        events.append((topic, message["type"]))
        return 0

    monkeypatch.setattr(realtime.registry, "publish", record)
    return events


def set_user_flags(user_id: str, **flags) -> None:
    db = SessionLocal()
    try:
        user = db.get(User, user_id)
        for key, value in flags.items():
            setattr(user, key, value)
        db.commit()
    finally:
        db.close()


@pytest.fixture
def set_flags():
    return set_user_flags
