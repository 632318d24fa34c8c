from __future__ import annotations
import asyncio
from datetime import timedelta

from typer.testing import CliRunner

from pos_session.infrastructure.adapters.session.sqlite_store import SQLiteSessionStore
from pos_session.presentation.cli.main import app

runner = CliRunner()


def test_classify_reports_health_and_minutes():
    result = runner.invoke(
        app, ["classify", "2025-01-01T10:00:00+00:00", "--now", "2025-01-01T09:59:30+00:00"]
    )
    assert result.exit_code == 0
    assert "near_expiry minutos_restantes=0.50" in result.output

    result = runner.invoke(app, ["classify", "2025-01-01T10:00:00Z", "--now", "2025-01-01T10:05:00Z"])
    assert "expired minutos_restantes=-5.00" in result.output


def test_classify_rejects_bad_dates():
    result = runner.invoke(app, ["classify", "mañana"])
    assert result.exit_code != 0


def test_simulate_runs_until_forced_logout():
    result = runner.invoke(app, ["simulate", "--user", "cajero", "--role", "normal", "--minutes", "16"])
    assert result.exit_code == 0, result.output
    assert "PROMPT until=" in result.output
    assert "LOGGED_OUT" in result.output
    assert "fase=logged_out" in result.output
    assert "/auth/login?error=session_expired" in result.output


def test_simulate_with_activity_keeps_session():
    result = runner.invoke(
        app, ["simulate", "--user", "cajero", "--minutes", "20", "--activity-every", "120"]
    )
    assert result.exit_code == 0, result.output
    assert "fase=active" in result.output
    assert "navegaciones=[]" in result.output


def test_show_and_invalidate_against_sqlite(tmp_path):
    db = str(tmp_path / "pos.sqlite")
    store = SQLiteSessionStore(db_path=db)
    session = asyncio.run(store.create_session("u9", "manager", lifetime=timedelta(minutes=15)))
    store.close()

    shown = runner.invoke(app, ["show", "u9", "--db", db])
    assert shown.exit_code == 0
    assert session.id in shown.output and "rol=manager" in shown.output

    done = runner.invoke(app, ["invalidate", session.id, "--db", db])
    assert done.exit_code == 0
    assert "Sesión invalidada" in done.output

    assert runner.invoke(app, ["show", "u9", "--db", db]).exit_code == 1
    assert runner.invoke(app, ["invalidate", "does-not-exist", "--db", db]).exit_code == 1


def test_watch_single_tick_with_memory_backend():
    result = runner.invoke(app, ["watch", "--user", "u1", "--backend", "memory", "--ticks", "1"])
    assert result.exit_code == 0, result.output
    assert "[state] session=" in result.output
    assert "fase=active" in result.output
