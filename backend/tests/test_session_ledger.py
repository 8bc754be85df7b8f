import threading
import uuid
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from parcelgis.auth import service
from parcelgis.auth.models import User, UserSession
from parcelgis.auth.security import hash_password, hash_token
from parcelgis.core.errors import Unauthorized
from parcelgis.db.init_db import init_db


class _RecordingActivity:
    def __init__(self):
        self.events = []

    def record(self, event_type, metadata=None, user_id=None):
        self.events.append((event_type, metadata, user_id))


@pytest.fixture
def user(db):
    row = User(
        username="surveyor",
        email="surveyor@example.com",
        password_hash=hash_password("survey-password-1"),
        phone_number="5125550100",
        company_name="Survey Co",
    )
    db.add(row)
    db.commit()
    return row


def _session_row(user_id, **overrides):
    now = datetime.utcnow()
    values = dict(
        id=str(uuid.uuid4()),
        user_id=user_id,
        refresh_token_hash=hash_token(uuid.uuid4().hex),
        issued_at=now,
        last_seen_at=now,
        expires_at=now + timedelta(days=1),
    )
    values.update(overrides)
    return UserSession(**values)


def _active_count(db, user_id):
    return db.execute(
        select(func.count())
        .select_from(UserSession)
        .where(UserSession.user_id == user_id, UserSession.revoked_at.is_(None))
    ).scalar_one()


def test_database_rejects_second_active_session(db, user):
    db.add(_session_row(user.id))
    db.commit()

    db.add(_session_row(user.id))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()

    # Revoked rows do not count against the invariant.
    db.add(_session_row(user.id, revoked_at=datetime.utcnow(), revoked_reason="logout"))
    db.commit()
    assert _active_count(db, user.id) == 1


def test_repeated_logins_keep_one_active_session(db, user):
    activity = _RecordingActivity()
    results = [
        service.login(db, username="Surveyor", password="survey-password-1", activity=activity)
        for _ in range(3)
    ]

    assert _active_count(db, user.id) == 1
    live = db.execute(select(UserSession).where(UserSession.revoked_at.is_(None))).scalar_one()
    assert live.id == results[-1].session.id
    assert [e[0] for e in activity.events] == ["login_success"] * 3


def test_login_retries_once_after_a_concurrent_insert(db, user, monkeypatch):
    real_open = service._open_session
    calls = SimpleNamespace(count=0)

    def flaky_open(*args, **kwargs):
        calls.count += 1
        if calls.count == 1:
            raise IntegrityError("INSERT", {}, Exception("ux_user_sessions_one_active_per_user"))
        return real_open(*args, **kwargs)

    monkeypatch.setattr(service, "_open_session", flaky_open)
    result = service.login(db, username="surveyor", password="survey-password-1", activity=_RecordingActivity())

    assert calls.count == 2
    assert result.session.revoked_at is None


def test_parallel_logins_leave_exactly_one_active_session(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}", connect_args={"timeout": 30})
    init_db(engine)
    factory = sessionmaker(bind=engine, autoflush=False)

    with factory() as db:
        row = User(
            username="surveyor",
            email="surveyor@example.com",
            password_hash=hash_password("survey-password-1"),
            phone_number="5125550100",
            company_name="Survey Co",
        )
        db.add(row)
        db.commit()
        user_id = row.id
        first = service.login(db, username="surveyor", password="survey-password-1", activity=_RecordingActivity())
        predecessor_id = first.session.id

    barrier = threading.Barrier(2)
    session_ids, errors = [], []

    def worker():
        with factory() as db:
            try:
                barrier.wait()
                result = service.login(
                    db, username="surveyor", password="survey-password-1", activity=_RecordingActivity()
                )
                session_ids.append(result.session.id)
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    try:
        assert errors == []
        assert len(session_ids) == 2
        with factory() as db:
            rows = db.execute(select(UserSession).where(UserSession.user_id == user_id)).scalars().all()
            by_id = {r.id: r for r in rows}
            live = [r for r in rows if r.revoked_at is None]

            assert len(rows) == 3
            assert len(live) == 1
            assert live[0].id in session_ids
            assert by_id[predecessor_id].revoked_reason == service.REASON_REPLACED
            loser = next(sid for sid in session_ids if sid != live[0].id)
            assert by_id[loser].revoked_reason == service.REASON_REPLACED
    finally:
        engine.dispose()


def test_revoke_session_only_touches_live_rows(db, user):
    row = _session_row(user.id)
    db.add(row)
    db.commit()

    assert service.revoke_session(db, row.id) is True
    assert service.revoke_session(db, row.id) is False
    assert service.revoke_all_sessions(db, user.id) == 0


def test_verify_uses_username_from_database(db, user):
    result = service.login(db, username="surveyor", password="survey-password-1", activity=_RecordingActivity())
    user.username = "Surveyor2"
    db.commit()

    ctx = service.verify_access_token(db, result.access_token)
    assert ctx.user_id == user.id
    assert ctx.session_id == result.session.id
    assert ctx.username == "Surveyor2"


def test_verify_rejects_session_of_deactivated_user(db, user):
    result = service.login(db, username="surveyor", password="survey-password-1", activity=_RecordingActivity())
    user.is_active = False
    db.commit()

    with pytest.raises(Unauthorized) as exc:
        service.verify_access_token(db, result.access_token)
    assert exc.value.code == "session_inactive"


def test_touch_session_swallows_failures(caplog):
    class _BrokenSession:
        def execute(self, *_args, **_kwargs):
            raise RuntimeError("database is gone")

        def rollback(self):
            pass

        def close(self):
            pass

    service.touch_session(lambda: _BrokenSession(), "session-id")
    assert "last_seen_at" in caplog.text
