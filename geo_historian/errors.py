"""
API error types and their FastAPI handlers.

Errors render as {"message": ..., "field"?: ...}.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict:
        return {"message": self.message}


class ValidationError(ApiError):
    status_code = 400
    message = "Invalid request"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.field:
            body["field"] = self.field
        return body


class RateLimitError(ApiError):
    status_code = 429
    message = "Rate limit exceeded. Please try again later."


class NotFoundError(ApiError):
    status_code = 404
    message = "Not found"


def validation_error_from(exc: RequestValidationError) -> ValidationError:
    """Reduce pydantic's error list to the first offending field."""
    errors = exc.errors()
    if not errors:
        return ValidationError()
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "path", "query")]
    return ValidationError(first.get("msg", ValidationError.message), ".".join(loc) or None)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        err = validation_error_from(exc)
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})
