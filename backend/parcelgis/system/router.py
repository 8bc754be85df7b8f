import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from parcelgis.core.config import settings
from parcelgis.db.session import get_db

logger = logging.getLogger(__name__)

SERVICE_NAME = "parcelgis-api"
SERVICE_VERSION = "0.1.0"

router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
def health():
    return {"status": "ok", "service": SERVICE_NAME, "timestamp": _now_iso()}


@router.get("/ready")
def readiness(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Readiness check failed", exc_info=True)
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "dependencies": {"database": "down"}},
        )
    return {"status": "ready", "dependencies": {"database": "up"}, "timestamp": _now_iso()}


@router.get("/")
def index():
    p = settings.API_PREFIX
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "endpoints": {
            "health": f"{p}/health",
            "ready": f"{p}/ready",
            "auth": [
                f"POST {p}/auth/register",
                f"POST {p}/auth/login",
                f"POST {p}/auth/refresh",
                f"POST {p}/auth/logout",
                f"POST {p}/auth/logout-all",
                f"GET {p}/auth/me",
            ],
            "admin": [f"GET {p}/admin/users", f"GET {p}/admin/activity"],
            "properties": [
                f"GET {p}/properties/search?q=",
                f"GET {p}/properties/by-coordinates?longitude=&latitude=",
                f"GET {p}/properties/by-parcel-key/{{parcelKey}}",
                f"GET {p}/properties/bounds?west=&south=&east=&north=",
                f"GET {p}/properties/stats",
            ],
            "layers": [f"GET {p}/layers"],
        },
    }
