import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .lifecycle import InvalidTransition

logger = logging.getLogger(__name__)

# Stable error kinds the front end maps to messages
ERROR_KINDS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
    429: "too_many_requests",
    503: "service_unavailable",
}


def error_body(request: Request, error: str, detail) -> dict:
    return {
        "error": error,
        "detail": detail,
        "path": str(request.url.path),
    }


def register_exception_handlers(app):
    """
    Register global exception handlers for standardized error responses.
    """

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        body = error_body(request, "validation_error", "Invalid request data")
        body["errors"] = jsonable_encoder(exc.errors())
        return JSONResponse(status_code=422, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(request, ERROR_KINDS.get(exc.status_code, "http_error"), exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(InvalidTransition)
    async def invalid_transition_handler(request: Request, exc: InvalidTransition):
        return JSONResponse(
            status_code=400,
            content=error_body(request, "invalid_transition", str(exc)),
        )

    @app.exception_handler(SQLAlchemyError)
    async def store_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Booking store failure on %s", request.url.path)
        return JSONResponse(
            status_code=503,
            content=error_body(request, "store_unavailable", "Storage temporarily unavailable"),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_body(request, "internal_error", "An unexpected error occurred"),
        )
