"""FastAPI service for Task Tracker."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import ALLOWED_ORIGINS, get_settings
from api.graphql_schema import graphql_router
from api.routers import tasks_router
from task_tracker import __version__

logger = logging.getLogger(__name__)


app = FastAPI(
    title="Task Tracker API",
    version=__version__,
    description="REST and GraphQL interface to personal task lists.",
)

origins = [origin for origin in ALLOWED_ORIGINS if origin]

if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(tasks_router, prefix="/tasks", tags=["tasks"])
app.include_router(graphql_router, prefix="/graphql")


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint with service configuration status."""
    settings = get_settings()
    return {
        "status": "ok",
        "time": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "store": settings.store_backend,
        "reminders": "configured" if settings.reminder_account else "not_configured",
    }
