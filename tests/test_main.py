from __future__ import annotations

import os
import signal
import socket
import subprocess
import sys
import time
from pathlib import Path

import httpx
import pytest

import counter_service.__main__ as entrypoint
from counter_service.errors import DatabaseConnectionError

PACKAGE_ROOT = Path(__file__).resolve().parents[1] / "python"


@pytest.fixture
def server_runs(monkeypatch):
    runs = []

    def fake_run(self, sockets=None):
        runs.append(self)
        self.started = True

    monkeypatch.setattr(entrypoint.CounterServer, "run", fake_run)
    return runs


def test_main_serves_after_initializing(db_env, server_runs, monkeypatch):
    monkeypatch.setenv("COUNTER_SERVICE_PORT", "8123")

    assert entrypoint.main() == 0

    assert len(server_runs) == 1
    server = server_runs[0]
    assert server.config.port == 8123
    # The connector is released once the server returns.
    assert not server.config.app.state.connector.is_connected
    assert db_env.exists()


def test_main_reports_bind_failure(db_env, monkeypatch):
    monkeypatch.setattr(entrypoint.CounterServer, "run", lambda self, sockets=None: None)

    assert entrypoint.main() == 1


def test_main_exits_on_missing_configuration(monkeypatch, server_runs):
    for key in ("DB_HOST", "DB_USER", "DB_PASSWORD", "DB_NAME"):
        monkeypatch.delenv(key, raising=False)

    assert entrypoint.main() == 1
    assert server_runs == []


def test_main_exits_on_invalid_log_level(db_env, monkeypatch, server_runs):
    monkeypatch.setenv("COUNTER_SERVICE_LOG_LEVEL", "verbose")

    assert entrypoint.main() == 1
    assert server_runs == []


def test_main_exits_when_backend_unreachable(db_env, monkeypatch, server_runs, tmp_path):
    monkeypatch.setenv("DB_NAME", str(tmp_path / "missing-dir" / "counters.db"))

    assert entrypoint.main() == 1
    assert server_runs == []


def test_main_exits_when_schema_bootstrap_fails(db_env, monkeypatch, server_runs):
    def failing_initialize(settings):
        raise DatabaseConnectionError("Access denied for user 'counter'")

    monkeypatch.setattr(entrypoint, "initialize_schema", failing_initialize)

    assert entrypoint.main() == 1
    assert server_runs == []


@pytest.mark.parametrize("sig", [signal.SIGTERM, signal.SIGINT])
def test_handle_exit_does_not_reraise_signal(sig):
    server = entrypoint.CounterServer(entrypoint.uvicorn.Config(app=None, log_config=None))

    server.handle_exit(sig, None)

    assert server.should_exit
    assert not server.force_exit
    assert getattr(server, "_captured_signals", []) == []


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
@pytest.mark.parametrize("sig", [signal.SIGTERM, signal.SIGINT])
def test_signal_shutdown_exits_cleanly(db_env, sig):
    port = _free_port()
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        filter(None, [str(PACKAGE_ROOT), env.get("PYTHONPATH")])
    )
    env["COUNTER_SERVICE_HOST"] = "127.0.0.1"
    env["COUNTER_SERVICE_PORT"] = str(port)

    process = subprocess.Popen(
        [sys.executable, "-m", "counter_service"],
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )
    try:
        base_url = f"http://127.0.0.1:{port}"
        deadline = time.monotonic() + 30
        while True:
            try:
                if httpx.get(f"{base_url}/api/health", timeout=1).status_code == 200:
                    break
            except httpx.TransportError:
                pass
            assert process.poll() is None, process.stdout.read().decode()
            assert time.monotonic() < deadline, "service did not become ready"
            time.sleep(0.1)

        assert httpx.get(f"{base_url}/api/increment", timeout=5).json() == {"counter": 1}

        process.send_signal(sig)
        output, _ = process.communicate(timeout=30)
    finally:
        if process.poll() is None:
            process.kill()
            process.wait()

    assert process.returncode == 0, output.decode()
    assert b"Closed connection" in output
