"""Application error taxonomy.

Services raise these instead of ``HTTPException`` so the same code paths can
be driven from routers, scripts and tests. ``parcelgis.main`` renders them as
``{"detail": message, "code": code}`` with the matching status code.
"""


class AppError(Exception):
    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, code: str | None = None, headers: dict | None = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.headers = headers
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    default_message = "Not authenticated"

    def __init__(self, message: str | None = None, *, code: str | None = None):
        super().__init__(message, code=code, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class RateLimited(AppError):
    status_code = 429
    code = "rate_limited"
    default_message = "Too many requests. Please try again later."


class Internal(AppError):
    pass


__all__ = [
    "AppError",
    "Conflict",
    "Forbidden",
    "Internal",
    "NotFound",
    "RateLimited",
    "Unauthorized",
    "ValidationError",
]
