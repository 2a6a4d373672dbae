"""Pytest configuration and shared fixtures.

This module provides fixtures for testing punch, including a temporary
database, sample clients and sessions, and an in-memory remote.
"""

from datetime import datetime
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest

from punch.config import reset_config
from punch.db.schemas import ClientCreate, ClientResponse, Session
from punch.db.sqlite import Database, reset_db
from punch.errors import RemoteUnavailableError
from punch.remotes.base import SyncSource


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point punch at an empty config directory for every test."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    monkeypatch.setenv("PUNCH_CONFIG_DIR", str(config_dir))
    monkeypatch.delenv("PUNCH_DB_PATH", raising=False)
    reset_config()
    reset_db()
    yield config_dir
    reset_config()
    reset_db()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Database:
    """Create a test database instance, also used by get_db()."""
    db_path = tmp_path / "punch.db"
    monkeypatch.setenv("PUNCH_DB_PATH", str(db_path))

    database = Database(str(db_path))
    database.create_tables()
    return database


@pytest.fixture
def acme(db: Database) -> ClientResponse:
    """A client billed at 100 USD per hour."""
    return db.create_client(ClientCreate(name="acme", rate=100, currency="USD"))


@pytest.fixture
def globex(db: Database) -> ClientResponse:
    """A second client billed in EUR."""
    return db.create_client(ClientCreate(name="globex", rate=80, currency="EUR"))


# ============================================================================
# Sample Data Fixtures
# ============================================================================


def make_session(
    session_id: str,
    client: str = "acme",
    start: str = "2025-01-15 09:00:00",
    end: Optional[str] = "2025-01-15 17:00:00",
    note: Optional[str] = None,
) -> Session:
    """Build a session from compact string timestamps."""
    return Session(
        id=session_id,
        client=client,
        start=datetime.fromisoformat(start),
        end=datetime.fromisoformat(end) if end else None,
        note=note,
    )


@pytest.fixture
def session_factory() -> Callable[..., Session]:
    """Factory for sample sessions."""
    return make_session


# ============================================================================
# Remote Fixtures
# ============================================================================


class FakeSource(SyncSource):
    """In-memory remote that can be told to fail."""

    kind = "fake"

    def __init__(self, db: Database, sessions: Optional[list[Session]] = None):
        super().__init__("fake", db)
        self.sessions: list[Session] = list(sessions or [])
        self.fail_pull = False
        self.fail_push = False
        self.pull_calls = 0
        self.push_calls = 0

    def pull(self) -> list[Session]:
        self.pull_calls += 1
        if self.fail_pull:
            raise RemoteUnavailableError("remote 'fake' is offline")
        return list(self.sessions)

    def push(self, sessions: list[Session]) -> None:
        self.push_calls += 1
        if self.fail_push:
            raise RemoteUnavailableError("remote 'fake' is offline")
        self.sessions = list(sessions)


@pytest.fixture
def remote(db: Database) -> FakeSource:
    """An empty in-memory remote."""
    return FakeSource(db)


def editor_writing(text: str) -> Callable[[Path, Optional[str]], None]:
    """Fake editor that replaces the buffer with text."""

    def edit(path: Path, editor: Optional[str] = None) -> None:
        path.write_text(text, encoding="utf-8")

    return edit


def editor_keeping(side: str) -> Callable[[Path, Optional[str]], None]:
    """Fake editor that keeps only the blocks marked with the given side."""

    def edit(path: Path, editor: Optional[str] = None) -> None:
        kept: list[str] = []
        keep = True
        for line in path.read_text(encoding="utf-8").splitlines():
            if line.startswith("# ") and line.rstrip().endswith((": local", ": remote")):
                keep = line.rstrip().endswith(f": {side}")
            if keep:
                kept.append(line)
        path.write_text("\n".join(kept) + "\n", encoding="utf-8")

    return edit


def editor_unchanged(path: Path, editor: Optional[str] = None) -> None:
    """Fake editor that saves the buffer as presented."""
    return None
