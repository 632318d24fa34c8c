from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Optional

import typer

from pos_session.application.dtos.session_timing_dto import SessionTiming
from pos_session.application.session_coordinator import SessionCoordinator
from pos_session.config import Settings, settings
from pos_session.container import build_container
from pos_session.domain.entities.identity import Credential, Identity
from pos_session.domain.errors import StoreUnavailable
from pos_session.domain.policies.session_clock import SessionClock
from pos_session.infrastructure.adapters.activity.in_process_source import InProcessActivitySource
from pos_session.infrastructure.adapters.auth.memory_provider import InMemoryAuthProvider
from pos_session.infrastructure.adapters.navigation.memory_navigator import InMemoryNavigator
from pos_session.infrastructure.adapters.notification_adapter import ConsoleStateObserver
from pos_session.infrastructure.adapters.scheduling.manual_scheduler import ManualScheduler
from pos_session.infrastructure.adapters.session.memory_store import InMemorySessionStore
from pos_session.infrastructure.adapters.session.sqlite_store import SQLiteSessionStore

app = typer.Typer(help="POS session lifecycle CLI")


def _parse_instant(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise typer.BadParameter(f"fecha inválida: {value}") from e
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


@app.command()
def classify(
    expires_at: str = typer.Argument(..., help="ISO-8601 expiry instant"),
    now: Optional[str] = typer.Option(None, "--now", help="ISO-8601 reference instant (default: now)"),
    near_expiry: float = typer.Option(60.0, "--near-expiry", help="Threshold in seconds"),
) -> None:
    """Print the health of a session expiring at EXPIRES_AT."""
    reference = _parse_instant(now) if now else datetime.now(UTC)
    expiry = _parse_instant(expires_at)
    clock = SessionClock(timedelta(seconds=near_expiry))
    health = clock.classify(reference, expiry)
    minutes = clock.minutes_remaining(reference, expiry)
    typer.echo(f"{health.value} minutos_restantes={minutes:.2f}")


@app.command()
def simulate(
    user: str = typer.Option("demo-user", "--user", "-u"),
    role: str = typer.Option("normal", "--role", "-r"),
    minutes: int = typer.Option(20, "--minutes", "-m", help="Virtual minutes to run"),
    activity_every: int = typer.Option(0, "--activity-every", help="Emit activity every N virtual seconds (0 = never)"),
    accept_prompt: bool = typer.Option(False, "--accept-prompt", help="Extend as soon as the prompt shows"),
) -> None:
    """Run the coordinator on virtual time and print every state change."""
    asyncio.run(_simulate(user, role, minutes, activity_every, accept_prompt))


async def _simulate(user: str, role: str, minutes: int, activity_every: int, accept_prompt: bool) -> None:
    scheduler = ManualScheduler()
    auth = InMemoryAuthProvider(Credential(user_id=user))
    navigator = InMemoryNavigator("/pos")
    source = InProcessActivitySource("simulated")
    coordinator = SessionCoordinator(
        store=InMemorySessionStore(clock=scheduler),
        auth=auth,
        navigator=navigator,
        scheduler=scheduler,
        timing=settings.timing(),
        activity_sources=[source],
        clock=scheduler,
    )
    observer = ConsoleStateObserver(
        echo=lambda line: typer.echo(f"t+{scheduler.elapsed:>6.0f}s {line}")
    )
    coordinator.add_observer(observer)
    coordinator.initialize(Identity(user, role))

    step = 1.0
    for second in range(int(minutes * 60)):
        if activity_every and second and second % activity_every == 0:
            source.emit("simulated")
        await scheduler.advance(step)
        if accept_prompt and coordinator.state.show_extension_prompt:
            await coordinator.extend()
    typer.echo(f"fase={coordinator.phase.value} navegaciones={navigator.history}")
    coordinator.teardown()


@app.command()
def watch(
    user: str = typer.Option(..., "--user", "-u"),
    role: str = typer.Option("normal", "--role", "-r"),
    backend: Optional[str] = typer.Option(None, "--backend", "-b", help="memory | sqlite | rest"),
    ticks: int = typer.Option(1, "--ticks", "-t", min=1),
    interval: Optional[float] = typer.Option(None, "--interval", help="Poll interval override (seconds)"),
    token: Optional[str] = typer.Option(None, "--token", help="Access token for the rest backend"),
) -> None:
    """Run the coordinator against a real store for a number of poll ticks."""
    overrides = {}
    if backend:
        overrides["store_backend"] = backend
    if interval:
        overrides["poll_interval_seconds"] = interval
    run_settings = replace(settings, **overrides)
    asyncio.run(_watch(run_settings, user, role, ticks, token))


async def _watch(run_settings: Settings, user: str, role: str, ticks: int, token: Optional[str]) -> None:
    container = build_container(run_settings)
    container.auth.attach_credential(Credential(user_id=user, access_token=token))
    container.coordinator.add_observer(ConsoleStateObserver(echo=typer.echo))
    container.coordinator.initialize(Identity(user, role))
    timing: SessionTiming = container.coordinator.timing
    try:
        await asyncio.sleep(timing.poll_interval_seconds * (ticks - 1) + 0.05)
        await container.scheduler.drain()
    finally:
        typer.echo(f"fase={container.coordinator.phase.value}")
        await container.aclose()


@app.command()
def show(
    user_id: str = typer.Argument(...),
    db: str = typer.Option(settings.sqlite_path, "--db"),
) -> None:
    """Print the latest valid session row of USER_ID from the SQLite store."""
    store = SQLiteSessionStore(db_path=db)
    try:
        session = asyncio.run(store.fetch_latest_valid_session(user_id, datetime.now(UTC)))
    finally:
        store.close()
    if session is None:
        typer.echo(f"Sin sesión válida para {user_id}")
        raise typer.Exit(code=1)
    typer.echo(
        f"{session.id} rol={session.role or '-'} expira={session.expires_at.isoformat()} "
        f"extensiones={session.extension_count}"
    )


@app.command()
def invalidate(
    session_id: str = typer.Argument(...),
    db: str = typer.Option(settings.sqlite_path, "--db"),
) -> None:
    """Invalidate a session row in the SQLite store."""
    store = SQLiteSessionStore(db_path=db)
    try:
        asyncio.run(store.invalidate_session(session_id))
    except StoreUnavailable as e:
        typer.echo(f"Error: {e}")
        raise typer.Exit(code=1)
    finally:
        store.close()
    typer.echo(f"Sesión invalidada: {session_id}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    from pos_session.presentation.api.main import create_app

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    app()
