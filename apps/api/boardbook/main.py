"""
Boardbook API - Main Application Entry Point

FastAPI application for board governance records.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from boardbook.core.config import settings
from boardbook.core.database import create_tables
from boardbook.core.exceptions import GovernanceError
from boardbook.core.logging_config import setup_logging
from boardbook.governance.router import router as governance_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    setup_logging()
    if settings.debug:
        await create_tables()
    logger.info("%s started (%s)", settings.app_name, settings.environment)
    yield
    # Shutdown
    pass


app = FastAPI(
    title="Boardbook API",
    description="Meetings, minutes, motions, annotations and review flags of a board",
    version="0.1.0",
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


# Error Handlers
@app.exception_handler(GovernanceError)
async def governance_error_handler(request: Request, exc: GovernanceError) -> JSONResponse:
    """Map typed governance outcomes to their stable status codes."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Report constraint violations without leaking storage details."""
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": "conflict", "message": "The change conflicts with existing records"},
    )


# Health Check
@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


# Include Routers
app.include_router(governance_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("boardbook.main:app", host="0.0.0.0", port=8000, reload=True)
