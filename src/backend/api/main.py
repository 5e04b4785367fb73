"""
FastAPI server for workflow execution with SSE streaming.

This module handles application setup, lifespan management, and middleware configuration.
Route handlers are organized in the routers/ package.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from api.routers import workflow_router
from config.settings import get_settings
from dotenv import load_dotenv
from entities.workflow import create_workflow_clients
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

settings = get_settings()

# Configure logging - use force=True to prevent duplicate handlers
logger = logging.getLogger(__name__)
logging.basicConfig(level=settings.log_level.upper(), force=True)

# Reduce noise from SDKs and HTTP libraries
logging.getLogger("azure").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan handler.

    Builds the shared workflow collaborators on startup. Graphs, contexts
    and traces are created per request and never outlive it.
    """
    logger.info("Workflow API starting")

    application.state.workflow_clients = create_workflow_clients(settings)

    if settings.sql_connection_string:
        logger.info("Database query nodes are ENABLED")
    else:
        logger.warning("SQL_CONNECTION_STRING is not set; database query nodes will fail")

    yield

    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(title="Workflow Execution Service", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(workflow_router)


@app.get("/health")
async def health_check() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)  # noqa: S104
