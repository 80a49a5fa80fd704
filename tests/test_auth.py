from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from bello.db import SessionLocal, UserSession
from bello.main import app

PASSWORD = "password123"


def test_signup_sets_cookie_and_returns_public_user(client):
    r = client.post("/auth/signup", json={"email": "A@Test.com", "password": PASSWORD, "name": "Ann"})
    assert r.status_code == 200
    user = r.json()["user"]
    assert set(user) == {"id", "email", "name", "isAdmin"}
    assert user["email"] == "a@test.com"
    assert user["isAdmin"] is False

    cookie = r.headers["set-cookie"]
    assert "session_id=" in cookie
    assert "HttpOnly" in cookie
    assert "samesite=lax" in cookie.lower()

    assert client.get("/auth/me").json()["user"]["id"] == user["id"]


def test_signup_duplicate_email(client):
    body = {"email": "a@test.com", "password": PASSWORD, "name": "Ann"}
    assert client.post("/auth/signup", json=body).status_code == 200
    r = client.post("/auth/signup", json=body)
    assert r.status_code == 400
    assert r.json() == {"error": "Email already registered"}


def test_signup_validation_error(client):
    r = client.post("/auth/signup", json={"email": "not-an-email", "password": PASSWORD, "name": "x"})
    assert r.status_code == 422
    assert r.json()["error"] == "Invalid request"


def test_login_rejects_bad_credentials(make_user):
    make_user("a@test.com")
    c = TestClient(app)
    r = c.post("/auth/login", json={"email": "a@test.com", "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid email or password"}
    r = c.post("/auth/login", json={"email": "nobody@test.com", "password": PASSWORD})
    assert r.status_code == 401


def test_login_issues_new_session(make_user):
    a = make_user("a@test.com")
    c = TestClient(app)
    r = c.post("/auth/login", json={"email": "a@test.com", "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["user"]["id"] == a.user["id"]
    assert c.get("/auth/me").json()["user"]["email"] == "a@test.com"


def test_banned_user_cannot_login_and_session_is_anonymous(make_user, set_flags):
    a = make_user("a@test.com")
    set_flags(a.user["id"], is_banned=True)

    assert a.get("/auth/me").json() == {"user": None}
    assert a.get("/projects").status_code == 401

    r = TestClient(app).post("/auth/login", json={"email": "a@test.com", "password": PASSWORD})
    assert r.status_code == 403
    assert r.json() == {"error": "Account is banned"}


def test_expired_session_is_anonymous(make_user):
    a = make_user("a@test.com")
    db = SessionLocal()
    try:
        for session in db.query(UserSession).all():
            session.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db.commit()
        assert db.query(UserSession).count() == 1
    finally:
        db.close()
    assert a.get("/auth/me").json() == {"user": None}


def test_logout_deletes_session(make_user):
    a = make_user("a@test.com")
    r = a.post("/auth/logout")
    assert r.status_code == 200
    assert r.json() == {"success": True}
    db = SessionLocal()
    try:
        assert db.query(UserSession).count() == 0
    finally:
        db.close()
    assert a.get("/auth/me").json() == {"user": None}


def test_logout_without_session_is_noop(client):
    assert client.post("/auth/logout").status_code == 200


def test_protected_endpoint_requires_session(client):
    r = client.get("/boards")
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


def test_signup_race_on_same_email_is_400(client, monkeypatch):
    from bello.routers import auth as auth_routes

    body = {"email": "a@test.com", "password": PASSWORD, "name": "Ann"}
    assert client.post("/auth/signup", json=body).status_code == 200
    # the pre-check misses, as when two signups interleave
    monkeypatch.setattr(auth_routes, "email_taken", lambda db, email: False)
    r = client.post("/auth/signup", json=body)
    assert r.status_code == 400
    assert r.json() == {"error": "Email already registered"}
