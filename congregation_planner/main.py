"""
Congregation Planner API - Main Application Entry Point

FastAPI application for planning congregation weekend meetings.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from rich.logging import RichHandler

from congregation_planner import __version__
from congregation_planner.congregation.router import router as congregation_router
from congregation_planner.core.config import settings
from congregation_planner.core.database import init_db
from congregation_planner.core.errors import DomainError
from congregation_planner.scheduling.router import router as scheduling_router

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    """Route all logging through rich; safe to call more than once."""
    root = logging.getLogger()
    if any(isinstance(handler, RichHandler) for handler in root.handlers):
        return
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    configure_logging()
    await init_db()
    logger.info("%s %s started (%s)", settings.app_name, __version__, settings.environment)
    yield


app = FastAPI(
    title="Congregation Planner API",
    description="Weekend meeting scheduling for congregations",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.info("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.kind)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render schema violations in the same envelope as domain errors."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "kind": "ValidationError",
                "message": "errors.validation",
                "data": {"errors": errors},
            }
        },
    )


# Health Check
@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


# Include Routers
app.include_router(scheduling_router, prefix="/api/v1")
app.include_router(congregation_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("congregation_planner.main:app", host="0.0.0.0", port=8000, reload=True)
