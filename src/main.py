"""
FastAPI application entry point.

Run with: uvicorn src.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from src.core.config import settings
from src.core.logging import configure_logging, get_logger, bind_context, clear_context
from src.persistence.database import init_database
from src.api.dependencies import get_shared_forwarder
from src.api.routes import events, health, visitors
from src.api.exception_handlers import setup_exception_handlers

# Configure logging before anything else
configure_logging()
log = get_logger(__name__)

APP_NAME = "Persona Scoring Service"
APP_VERSION = "0.1.0"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Generates a UUID4 request_id for each incoming request
    - Binds it to structlog context for all logs in that request
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        """Process request and add correlation ID."""
        request_id = str(uuid.uuid4())
        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """
    Open CORS for storefront pixels posting from any domain.

    Every OPTIONS request is answered with an empty 200, whatever headers
    the preflight asks for. Every other response carries the same headers,
    with or without an Origin on the request.
    """

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)

        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Creates the visitor store schema on startup and drains in-flight
    analytics forwards on shutdown.
    """
    forwarder = get_shared_forwarder()

    log.info(
        "application_starting",
        debug=settings.debug,
        database_path=str(settings.database_path),
        brand_id=settings.brand_id,
        forwarding_enabled=forwarder.enabled,
    )

    await init_database()

    log.info("application_started")

    yield

    log.info("application_shutting_down", pending_forwards=forwarder.pending_count)
    await forwarder.drain()


app = FastAPI(
    title=APP_NAME,
    description="Visitor persona and journey-stage scoring for storefront events",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.debug,
)

app.add_middleware(CORSHeadersMiddleware)

app.add_middleware(CorrelationIDMiddleware)

setup_exception_handlers(app)

app.include_router(health.router, tags=["system"])
app.include_router(events.router)
app.include_router(visitors.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {"name": APP_NAME, "version": APP_VERSION, "status": "running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
