"""
RecruitDesk API Server

Entry point for the FastAPI application.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from starlette.responses import JSONResponse

from app.api.v1 import router as api_v1_router
from app.core.config import get_settings
from app.core.database import engine, translate_storage_error
from app.core.errors import MembershipError
from app.core.logging_config import configure_logging
from app.core.middleware import SecurityHeadersMiddleware
from recruitdesk_shared.schemas.common import ErrorDetail, ErrorResponse

settings = get_settings()
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("recruitdesk.starting", debug=settings.debug)
    yield
    log.info("recruitdesk.shutting_down")
    await engine.dispose()


async def membership_error_handler(request: Request, exc: MembershipError) -> JSONResponse:
    """Render a service error in the standard error envelope.

    Integrity and access errors carry internal identifiers; those are logged
    and the client only sees the generic public message.
    """
    if exc.status_code >= 500:
        log.error(
            "request.failed",
            code=exc.code,
            error=exc.message,
            path=request.url.path,
        )
    else:
        log.info("request.rejected", code=exc.code, error=exc.message, path=request.url.path)

    body = ErrorResponse(
        error=ErrorDetail(
            code=exc.code,
            message=exc.public_message or exc.message,
            status=exc.status_code,
        )
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def storage_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    """Driver errors raised outside a service call (auth lookups, commit)."""
    return await membership_error_handler(
        request, translate_storage_error(request.url.path, exc)
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="RecruitDesk",
        description="Team signup, membership approval and role-based permissions.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware (order matters, outermost first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(MembershipError, membership_error_handler)
    app.add_exception_handler(DBAPIError, storage_error_handler)

    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness checks."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: the database answers a trivial query."""
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (DBAPIError, OSError) as exc:
            log.warning("readiness.database_unavailable", error=str(exc))
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return {"status": "ready"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.debug)
