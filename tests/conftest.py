"""
Shared pytest fixtures for the Verdant Vista test suite.

Autouse fixtures below isolate tests from the user's real data:
  - Slot store -> temp SQLite file  (never touches journal_vault.sqlite3)
  - Config     -> temp directory    (never touches ~/.config/verdantvista)
"""

import os
import time

import pytest
import pytest_asyncio

from verdantvista import db
from verdantvista.models import AppEvent, Dataset, DiaryEntry
from verdantvista.vault import Vault


@pytest.fixture(autouse=True)
def _isolate_db_path(tmp_path, monkeypatch):
    """Point the slot store at a per-test SQLite file."""
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "vault.sqlite3"))


@pytest.fixture(autouse=True)
def _isolate_config(tmp_path, monkeypatch):
    """Redirect config.json (and the log file) to a temp directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "config"))


@pytest.fixture
def berlin_tz():
    """Run the test with local time set to Central European (CET/CEST)."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    old = os.environ.get("TZ")
    os.environ["TZ"] = "CET-1CEST,M3.5.0,M10.5.0/3"
    time.tzset()
    yield
    if old is None:
        del os.environ["TZ"]
    else:
        os.environ["TZ"] = old
    time.tzset()


@pytest_asyncio.fixture
async def store():
    """Initialized, empty slot store."""
    await db.init_db()
    return db.DB_PATH


@pytest_asyncio.fixture
async def vault(store):
    v = Vault()
    yield v
    v.lock()


@pytest.fixture
def dataset():
    return Dataset(
        entries=[
            DiaryEntry(id="1", date="2024-01-01", content="hi"),
            DiaryEntry(id="2", date="2024-02-10T08:30:00.000Z", content="Dentist tomorrow at 3 PM"),
        ],
        events=[
            AppEvent(id="e1", title="Dentist", date="2024-02-11T15:00:00.000Z"),
        ],
    )
