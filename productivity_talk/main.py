"""FastAPI app entry point."""

from __future__ import annotations

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from productivity_talk.core.config import settings
from productivity_talk.core.handlers import register_exception_handlers
from productivity_talk.routers import chat, comments, reminders, second_brain, users, videos
from productivity_talk.services.enrichment import start_enrichment_worker, stop_enrichment_worker
from productivity_talk.services.reminder_worker import start_reminder_worker, stop_reminder_worker


def create_app(*, start_workers: bool = True) -> FastAPI:
    """Build FastAPI application."""

    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Productivity Talk", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(users.router)
    app.include_router(videos.router)
    app.include_router(comments.router)
    app.include_router(second_brain.router)
    app.include_router(chat.router)
    app.include_router(reminders.router)

    if start_workers:

        @app.on_event("startup")
        async def _startup() -> None:
            start_enrichment_worker()
            start_reminder_worker()

        @app.on_event("shutdown")
        async def _shutdown() -> None:
            await stop_enrichment_worker()
            await stop_reminder_worker()

    @app.get("/healthz", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
