"""
Pytest configuration and shared fixtures for balog tests.

Every test gets a fresh SQLite file under tmp_path; no test touches the
network or the user's config directory.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from balog.config import SECRET_ENV_VARS
from balog.db.database import create_db_engine, create_session_factory

# fixed "now" so that report windows are reproducible
NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch):
    """Keep real secrets and config dirs out of tests."""
    for env_var in SECRET_ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


@pytest.fixture
def engine(tmp_path: Path):
    engine = create_db_engine(tmp_path / "balog.db")
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    session = create_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def now() -> datetime:
    return NOW
