import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine.url import make_url

from parcelgis.admin.router import router as admin_router
from parcelgis.auth.router import router as auth_router
from parcelgis.core.config import settings
from parcelgis.core.errors import AppError
from parcelgis.db.init_db import init_db
from parcelgis.layers.router import router as layers_router
from parcelgis.properties.router import router as properties_router
from parcelgis.system.rate_limit import api_limiter, rate_limit
from parcelgis.system.router import router as system_router

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(
    title="ParcelGIS Property Intelligence API",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.exception_handler(AppError)
def handle_app_error(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
def on_startup() -> None:
    db_url = make_url(settings.DATABASE_URL)
    logger.info(
        "Config sanity: env=%s db_host=%s cors_origins=%s access_ttl_min=%s refresh_ttl_days=%s api_prefix=%s",
        settings.ENV,
        db_url.host or "local",
        len(settings.CORS_ORIGINS),
        settings.JWT_ACCESS_TTL_MINUTES,
        settings.REFRESH_TOKEN_TTL_DAYS,
        settings.API_PREFIX or "/",
    )
    init_db()


# --- Routers ---
api_rate_limit = [Depends(rate_limit(api_limiter))]
prefix = settings.API_PREFIX

app.include_router(system_router, prefix=prefix, tags=["system"], dependencies=api_rate_limit)
app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["auth"], dependencies=api_rate_limit)
app.include_router(admin_router, prefix=f"{prefix}/admin", tags=["admin"], dependencies=api_rate_limit)
app.include_router(
    properties_router, prefix=f"{prefix}/properties", tags=["properties"], dependencies=api_rate_limit
)
app.include_router(layers_router, prefix=f"{prefix}/layers", tags=["layers"], dependencies=api_rate_limit)
