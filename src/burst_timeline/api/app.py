"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from email.utils import format_datetime

from fastapi import FastAPI, Request, Response, status

from burst_timeline.api.photos import router as photos_router
from burst_timeline.api.photos import sittings_router
from burst_timeline.api.sessions import router as sessions_router
from burst_timeline.app_logging import configure_logging
from burst_timeline.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        app.state.container.close_resources()
        logger.info("Released application resources")

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(sessions_router)
    app.include_router(photos_router)
    app.include_router(sittings_router)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/gallery", response_model=None)
    def gallery(
        request: Request,
        response: Response,
        hide_heroes: bool = False,
        refresh: bool = False,
    ) -> dict[str, object] | Response:
        """Return the cached gallery listing."""
        state_container: AppContainer = request.app.state.container
        return _versioned(
            state_container,
            request,
            response,
            refresh,
            lambda fingerprint: state_container.gallery_service.gallery_view(
                fingerprint, hide_heroes=hide_heroes, force=refresh
            ),
        )

    @app.get("/stats", response_model=None)
    def stats(
        request: Request, response: Response, refresh: bool = False
    ) -> dict[str, object] | Response:
        """Return every cached statistics section."""
        state_container: AppContainer = request.app.state.container
        return _versioned(
            state_container,
            request,
            response,
            refresh,
            lambda fingerprint: state_container.stats_service.stats_view(
                fingerprint, force=refresh
            ),
        )

    return app


def _versioned(
    container: AppContainer,
    request: Request,
    response: Response,
    refresh: bool,
    build: Callable[[str], dict[str, object]],
) -> dict[str, object] | Response:
    """Serve a projection tagged with the store fingerprint."""
    fingerprint = container.fingerprint_service.fingerprint()
    headers = {"ETag": f'"{fingerprint}"'}
    last_modified = container.fingerprint_service.last_modified()
    if last_modified is not None:
        headers["Last-Modified"] = format_datetime(last_modified, usegmt=True)

    if not refresh and request.headers.get("if-none-match") == headers["ETag"]:
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)

    payload = build(fingerprint)
    response.headers.update(headers)
    return payload
