from datetime import datetime, timedelta

from sqlalchemy import select

from parcelgis.activity.models import UserActivityLog
from parcelgis.auth.models import User, UserSession, UserTermsAcceptance
from parcelgis.auth.security import create_access_token
from parcelgis.system.rate_limit import login_limiter, register_limiter

from conftest import PASSWORD


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_register_login_me_round_trip(client, register, login, db):
    created = register("Alice")
    assert created.status_code == 201
    user = created.json()["user"]
    assert user["username"] == "Alice"
    assert user["email"] == "alice@example.com"
    assert user["companyName"] == "Acme Land Co"
    assert user["role"] == "user"
    assert "passwordHash" not in user

    logged_in = login("alice", device="laptop")
    assert logged_in.status_code == 200
    body = logged_in.json()
    assert body["tokenType"] == "bearer"
    assert body["session"]["id"]
    assert body["user"]["id"] == user["id"]

    me = client.get("/api/auth/me", headers=_bearer(body["accessToken"]))
    assert me.status_code == 200
    assert me.json()["user"]["username"] == "Alice"

    terms = db.execute(select(UserTermsAcceptance)).scalars().all()
    assert [t.terms_version for t in terms] == ["v1"]
    events = db.execute(select(UserActivityLog.event_type)).scalars().all()
    assert "user_registered" in events
    assert "login_success" in events


def test_register_rejects_duplicates_case_insensitively(register):
    assert register("Alice").status_code == 201

    same_name = register("ALICE", email="other@example.com")
    assert same_name.status_code == 409
    assert same_name.json() == {"detail": "Username or email already exists", "code": "conflict"}

    same_email = register("bob", email="Alice@Example.com")
    assert same_email.status_code == 409


def test_register_requires_disclaimer_and_valid_fields(register):
    response = register("alice", disclaimerAccepted=False)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid request"
    assert response.json()["errors"]

    assert register("al").status_code == 400
    assert register("carol", password="short").status_code == 400


def test_login_with_bad_credentials_is_401(register, login, db):
    register("alice")

    wrong = login("alice", password="not-the-password")
    assert wrong.status_code == 401
    assert wrong.json()["code"] == "invalid_credentials"
    assert wrong.headers["www-authenticate"] == "Bearer"

    unknown = login("nobody")
    assert unknown.status_code == 401
    assert unknown.json()["detail"] == wrong.json()["detail"]

    user = db.execute(select(User)).scalar_one()
    assert user.last_failed_login_at is not None


def test_inactive_account_cannot_log_in(register, login, db):
    register("alice")
    user = db.execute(select(User)).scalar_one()
    user.is_active = False
    db.commit()

    response = login("alice")
    assert response.status_code == 403
    assert response.json()["code"] == "account_inactive"


def test_second_device_login_revokes_first_session(client, register, login, db):
    register("alice")
    device_a = login("alice", device="device-a").json()
    device_b = login("alice", device="device-b").json()

    stale = client.get("/api/auth/me", headers=_bearer(device_a["accessToken"]))
    assert stale.status_code == 401
    assert stale.json() == {"detail": "Session is no longer active", "code": "session_inactive"}

    fresh = client.get("/api/auth/me", headers=_bearer(device_b["accessToken"]))
    assert fresh.status_code == 200

    sessions = db.execute(select(UserSession).order_by(UserSession.issued_at)).scalars().all()
    assert len(sessions) == 2
    assert [s.revoked_at is None for s in sessions] == [False, True]
    assert sessions[0].revoked_reason == "replaced_by_new_login"
    assert sessions[1].device_fingerprint == "device-b"

    # Device A's refresh token died with its session.
    refreshed = client.post("/api/auth/refresh", json={"refreshToken": device_a["refreshToken"]})
    assert refreshed.status_code == 401


def test_refresh_token_is_single_use(client, register, login):
    register("alice")
    first = login("alice").json()

    rotated = client.post("/api/auth/refresh", json={"refreshToken": first["refreshToken"]})
    assert rotated.status_code == 200
    pair = rotated.json()
    assert pair["refreshToken"] != first["refreshToken"]

    replay = client.post("/api/auth/refresh", json={"refreshToken": first["refreshToken"]})
    assert replay.status_code == 401
    assert replay.json()["code"] == "invalid_refresh_token"

    again = client.post("/api/auth/refresh", json={"refreshToken": pair["refreshToken"]})
    assert again.status_code == 200

    # Rotation keeps the same session, so the old access token still works.
    assert client.get("/api/auth/me", headers=_bearer(first["accessToken"])).status_code == 200


def test_logout_revokes_session_before_token_expiry(client, register, login):
    register("alice")
    tokens = login("alice").json()
    headers = _bearer(tokens["accessToken"])

    assert client.post("/api/auth/logout", headers=headers).status_code == 204

    me = client.get("/api/auth/me", headers=headers)
    assert me.status_code == 401
    assert me.json()["code"] == "session_inactive"
    assert client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).status_code == 401


def test_logout_all_revokes_every_session(client, register, login, db):
    register("alice")
    tokens = login("alice").json()

    assert client.post("/api/auth/logout-all", headers=_bearer(tokens["accessToken"])).status_code == 204
    assert db.execute(select(UserSession).where(UserSession.revoked_at.is_(None))).first() is None
    assert client.post("/api/auth/logout-all", headers=_bearer(tokens["accessToken"])).status_code == 401

    # Logging in again opens a fresh session.
    assert login("alice").status_code == 200


def test_expired_refresh_session_cannot_rotate(client, register, login, db):
    register("alice")
    tokens = login("alice").json()
    session = db.execute(select(UserSession)).scalar_one()
    session.issued_at = datetime.utcnow() - timedelta(days=30)
    session.expires_at = datetime.utcnow() - timedelta(seconds=1)
    db.commit()

    response = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert response.status_code == 401
    assert client.get("/api/auth/me", headers=_bearer(tokens["accessToken"])).status_code == 401


def test_bearer_token_failures_are_distinguishable(client, register, login):
    register("alice")
    session = login("alice").json()

    missing = client.get("/api/auth/me")
    assert missing.status_code == 401
    assert missing.json()["code"] == "missing_token"

    garbage = client.get("/api/auth/me", headers=_bearer("not-a-jwt"))
    assert garbage.json()["code"] == "invalid_token"

    expired = create_access_token(
        user_id=session["user"]["id"],
        session_id=session["session"]["id"],
        username="alice",
        now=datetime.utcnow() - timedelta(hours=2),
    )
    assert client.get("/api/auth/me", headers=_bearer(expired)).json()["code"] == "invalid_token"

    no_session = create_access_token(user_id=session["user"]["id"], session_id="", username="alice")
    malformed = client.get("/api/auth/me", headers=_bearer(no_session))
    assert malformed.status_code == 401
    assert malformed.json()["code"] == "malformed_token"


def test_login_rate_limit(register, login, monkeypatch):
    register("alice")
    monkeypatch.setattr(login_limiter, "limit", 2)

    assert login("alice", password="wrong-password-1").status_code == 401
    assert login("alice").status_code == 200
    limited = login("alice")
    assert limited.status_code == 429
    assert limited.json()["code"] == "rate_limited"


def test_register_rate_limit(register, monkeypatch):
    monkeypatch.setattr(register_limiter, "limit", 1)
    assert register("alice").status_code == 201
    assert register("bob").status_code == 429


def test_login_is_case_insensitive_on_username(register, login):
    register("Alice")
    response = login("ALICE", password=PASSWORD)
    assert response.status_code == 200
    assert response.json()["user"]["username"] == "Alice"
