"""FastAPI application entry point.

Leaderboard API - cumulative earnings ranking with a weekly prize pool.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from leaderboard.container import LeaderboardServices
from leaderboard.errors import ErrorKind, LeaderboardError
from leaderboard.routes import api_router
from leaderboard.settings import Settings, get_settings

logger = logging.getLogger("uvicorn.error")

# HTTP status per error kind
_STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.STORE_UNAVAILABLE: 503,
    ErrorKind.CONSISTENCY_ANOMALY: 500,
}

# Codes whose status differs from their kind's default
_STATUS_BY_CODE = {
    # Half-applied write: retrying would double-count, so not a 503.
    "EARNING_PARTIALLY_APPLIED": 500,
}


def _error_response(status_code: int, code: str, message: str, detail: object = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "detail": detail}},
    )


def _configure_error_log(path: str | None) -> logging.Handler | None:
    """Also append ERROR records (anomalies, failed runs) to `path`."""
    if not path:
        return None
    handler = logging.FileHandler(path)
    handler.setLevel(logging.ERROR)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logger.addHandler(handler)
    return handler


def create_app(settings: Settings | None = None, services: LeaderboardServices | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Settings override (defaults to environment settings).
        services: Prebuilt service container. When given, the lifespan neither
            connects nor closes stores and does not start the scheduler.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager.

        Handles startup and shutdown events.
        """
        if services is not None:
            yield
            return

        handler = _configure_error_log(settings.error_log_path)
        app.state.services = await LeaderboardServices.connect(settings)
        if settings.settlement_enabled:
            app.state.services.scheduler.start()

        yield

        await app.state.services.close()
        if handler is not None:
            logger.removeHandler(handler)
            handler.close()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Earnings leaderboard with weekly prize pool settlement",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    if services is not None:
        app.state.services = services

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LeaderboardError)
    async def leaderboard_error_handler(request: Request, exc: LeaderboardError) -> JSONResponse:
        status_code = _STATUS_BY_CODE.get(exc.error_code, _STATUS_BY_KIND[exc.kind])
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.error_code} {exc.message}")
        return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return _error_response(400, ErrorKind.INVALID_INPUT.value, "Invalid request", {"errors": errors})

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception(f"{request.method} {request.url.path} failed")
        return _error_response(
            500,
            "INTERNAL_ERROR",
            str(exc) if settings.debug else "Internal server error",
        )

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        """Health check endpoint."""
        return {"ok": True}

    # Include API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "leaderboard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
