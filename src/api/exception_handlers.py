"""
Global exception handlers for FastAPI.

Callers only ever see success, a 4xx for bad input or unknown resources,
or a generic internal error. No internal detail is exposed on 500s.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import structlog

from src.core.exceptions import (
    PersonaEngineError,
    ValidationError,
    VisitorNotFoundError,
)

log = structlog.get_logger(__name__)

INTERNAL_ERROR_BODY = {"error": "Internal server error"}


def setup_exception_handlers(app: FastAPI):
    """Register exception handlers with the FastAPI application."""

    @app.exception_handler(PersonaEngineError)
    async def persona_engine_error_handler(
        request: Request,
        exc: PersonaEngineError,
    ) -> JSONResponse:
        """Map application errors to HTTP responses.

        404 for unknown visitors, 400 for validation, 500 for everything
        else (store write failures, configuration errors).
        """
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        if isinstance(exc, VisitorNotFoundError):
            log_ctx.info("visitor_not_found", message=exc.message)
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": "Visitor not found"},
            )

        if isinstance(exc, ValidationError):
            log_ctx.warning("request_invalid", message=exc.message)
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": exc.message},
            )

        log_ctx.error("request_error", message=exc.message, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=INTERNAL_ERROR_BODY,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Malformed or unparseable event bodies are rejected with 400."""
        log.warning(
            "invalid_event_payload",
            path=request.url.path,
            error_count=len(exc.errors()),
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid event payload"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException,
    ):
        """Unknown routes (and wrong methods on known paths) answer 404 'Not found'."""
        if exc.status_code in (
            status.HTTP_404_NOT_FOUND,
            status.HTTP_405_METHOD_NOT_ALLOWED,
        ):
            return PlainTextResponse("Not found", status_code=status.HTTP_404_NOT_FOUND)

        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Log unhandled exceptions and answer a generic 500."""
        log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        ).error(
            "unhandled_exception",
            message=str(exc),
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=INTERNAL_ERROR_BODY,
        )
