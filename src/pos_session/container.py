from __future__ import annotations

import socket
from dataclasses import dataclass

from pos_session.application.ports.auth_provider_port import AuthProviderPort
from pos_session.application.ports.clock_port import Clock, SystemClock
from pos_session.application.ports.navigator_port import NavigatorPort
from pos_session.application.ports.scheduler_port import SchedulerPort
from pos_session.application.ports.session_store_port import SessionStorePort
from pos_session.application.session_coordinator import SessionCoordinator
from pos_session.config import STORE_BACKENDS, Settings, settings as default_settings
from pos_session.domain.entities.session import SessionMetadata
from pos_session.infrastructure.adapters.activity.in_process_source import InProcessActivitySource
from pos_session.infrastructure.adapters.auth.memory_provider import InMemoryAuthProvider
from pos_session.infrastructure.adapters.auth.rest_provider import RestAuthProvider
from pos_session.infrastructure.adapters.http.httpx_client import AsyncHttpxClient
from pos_session.infrastructure.adapters.navigation.memory_navigator import InMemoryNavigator
from pos_session.infrastructure.adapters.scheduling.asyncio_scheduler import AsyncioScheduler
from pos_session.infrastructure.adapters.session.memory_store import InMemorySessionStore
from pos_session.infrastructure.adapters.session.rest_store import RestSessionStore
from pos_session.infrastructure.adapters.session.sqlite_store import SQLiteSessionStore


@dataclass
class Container:
    """Composition root: the one coordinator plus the adapters it was built from."""

    settings: Settings
    coordinator: SessionCoordinator
    store: SessionStorePort
    auth: AuthProviderPort
    navigator: NavigatorPort
    scheduler: SchedulerPort
    activity: InProcessActivitySource
    http: AsyncHttpxClient | None = None

    async def aclose(self) -> None:
        self.coordinator.teardown()
        if self.http is not None:
            await self.http.aclose()
        if isinstance(self.store, SQLiteSessionStore):
            self.store.close()


def build_http(settings: Settings) -> AsyncHttpxClient:
    if not settings.backend_url:
        raise ValueError("BACKEND_URL es obligatorio para el backend 'rest'")
    return AsyncHttpxClient(
        settings.backend_url, api_key=settings.backend_api_key, timeout=settings.http_timeout
    )


def build_store(
    settings: Settings, clock: Clock, http: AsyncHttpxClient | None = None
) -> SessionStorePort:
    backend = settings.store_backend
    if backend not in STORE_BACKENDS:
        raise ValueError(f"backend desconocido: {backend!r} (opciones: {', '.join(STORE_BACKENDS)})")
    if backend == "sqlite":
        return SQLiteSessionStore(db_path=settings.sqlite_path, clock=clock)
    if backend == "rest":
        return RestSessionStore(http or build_http(settings), clock=clock)
    return InMemorySessionStore(clock=clock)


def build_container(
    settings: Settings | None = None,
    *,
    store: SessionStorePort | None = None,
    auth: AuthProviderPort | None = None,
    navigator: NavigatorPort | None = None,
    scheduler: SchedulerPort | None = None,
    clock: Clock | None = None,
) -> Container:
    """Wire the coordinator. Any adapter passed in replaces the one settings would pick."""
    settings = settings or default_settings
    clock = clock or SystemClock()
    http = None
    if settings.store_backend == "rest" and (store is None or auth is None):
        http = build_http(settings)
    if store is None:
        store = build_store(settings, clock, http)
    if auth is None:
        auth = RestAuthProvider(http) if http is not None else InMemoryAuthProvider()
    navigator = navigator or InMemoryNavigator()
    scheduler = scheduler or AsyncioScheduler()
    activity = InProcessActivitySource("api")
    coordinator = SessionCoordinator(
        store=store,
        auth=auth,
        navigator=navigator,
        scheduler=scheduler,
        timing=settings.timing(),
        activity_sources=[activity],
        clock=clock,
        metadata=SessionMetadata(ip_address=_local_address(), user_agent="pos-session"),
    )
    return Container(
        settings=settings,
        coordinator=coordinator,
        store=store,
        auth=auth,
        navigator=navigator,
        scheduler=scheduler,
        activity=activity,
        http=http,
    )


def _local_address() -> str:
    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError:
        return "unknown"
