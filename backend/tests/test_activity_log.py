from sqlalchemy import select

from parcelgis.activity.models import UserActivityLog
from parcelgis.activity.service import ActivityLogger, log_user_activity


def test_activity_logger_writes_with_its_own_session(session_factory, db):
    ActivityLogger(session_factory).record("property_search", {"query": "main st", "resultCount": 3})

    row = db.execute(select(UserActivityLog)).scalar_one()
    assert row.event_type == "property_search"
    assert row.user_id is None
    assert row.metadata_json == {"query": "main st", "resultCount": 3}
    assert row.created_at is not None


def test_activity_failures_never_propagate(caplog):
    calls = []

    class _FailingSession:
        def add(self, _row):
            pass

        def commit(self):
            raise RuntimeError("disk full")

        def rollback(self):
            calls.append("rollback")

        def close(self):
            calls.append("close")

    log_user_activity(lambda: _FailingSession(), "login_success", user_id=7)

    assert calls == ["rollback", "close"]
    assert "event=login_success" in caplog.text
