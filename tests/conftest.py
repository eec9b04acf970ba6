from __future__ import annotations

import sys
from pathlib import Path

import pytest

PACKAGE_ROOT = Path(__file__).resolve().parents[1] / "python"
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

from counter_service.config import DatabaseSettings
from counter_service.repository import CounterRepository
from counter_service.schema import initialize_schema

DB_ENV_VARS = ("DB_HOST", "DB_USER", "DB_PASSWORD", "DB_NAME", "DB_PORT", "DB_DRIVER")


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "counters.db"


@pytest.fixture
def db_env(monkeypatch, db_path):
    """Environment pointing the service at a throwaway SQLite file."""
    for key in DB_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DB_HOST", "localhost")
    monkeypatch.setenv("DB_USER", "counter")
    monkeypatch.setenv("DB_PASSWORD", "secret")
    monkeypatch.setenv("DB_NAME", str(db_path))
    monkeypatch.setenv("DB_DRIVER", "sqlite")
    return db_path


@pytest.fixture
def db_settings(db_path):
    return DatabaseSettings(
        host="localhost",
        user="counter",
        password="secret",
        name=str(db_path),
        driver="sqlite",
    )


@pytest.fixture
def connector(db_settings):
    connector = initialize_schema(db_settings)
    yield connector
    connector.close()


@pytest.fixture
def repository(connector):
    return CounterRepository(connector)
