from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from pos_session.container import Container, build_container
from pos_session.infrastructure import metrics as session_metrics
from pos_session.presentation.api.routes.health import router as health_router
from pos_session.presentation.api.routes.session import router as session_router


def create_app(container: Container | None = None) -> FastAPI:
    container = container or build_container()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await container.aclose()

    app = FastAPI(title="POS Session Lifecycle", version="0.1.0", lifespan=lifespan)
    app.state.container = container
    app.include_router(health_router)
    app.include_router(session_router)

    @app.get("/metrics")
    def metrics() -> Response:  # type: ignore[misc]
        data = generate_latest(session_metrics.registry)
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app
