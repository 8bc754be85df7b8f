from sqlalchemy.exc import OperationalError

from parcelgis.db.session import get_db
from parcelgis.main import app


class _BrokenDB:
    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_ready_when_database_is_up(client):
    res = client.get("/api/ready")
    assert res.status_code == 200
    assert res.json()["dependencies"] == {"database": "up"}


def test_ready_reports_degraded_database(client):
    app.dependency_overrides[get_db] = lambda: _BrokenDB()
    res = client.get("/api/ready")
    assert res.status_code == 503
    assert res.json() == {"status": "degraded", "dependencies": {"database": "down"}}


def test_index_lists_endpoints(client):
    body = client.get("/api/").json()
    assert body["service"] == "parcelgis-api"
    assert "GET /api/auth/me" in body["endpoints"]["auth"]
    assert body["endpoints"]["layers"] == ["GET /api/layers"]
