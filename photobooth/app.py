"""
FastAPI application entry point for the photobooth backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from photobooth.config import Settings, get_settings
from photobooth.db import DbClient
from photobooth.dependencies import build_container
from photobooth.errors import PhotoboothError
from photobooth.routes import router
from photobooth.storage import ObjectStore
from photobooth.strips import StripService

logger = logging.getLogger(__name__)


async def handle_photobooth_error(request: Request, exc: PhotoboothError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(
    settings: Optional[Settings] = None,
    *,
    db: Optional[DbClient] = None,
    storage: Optional[ObjectStore] = None,
    strip_service: Optional[StripService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    container = build_container(
        settings, db=db, storage=storage, strip_service=strip_service
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.sweeper_enabled:
            container.sweeper.start()
        try:
            yield
        finally:
            container.sweeper.stop()

    app = FastAPI(title="Photobooth Backend", version="0.1.0", lifespan=lifespan)
    app.state.container = container
    app.add_exception_handler(PhotoboothError, handle_photobooth_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
