"""SQLite database operations.

Handles database connection, session management, and the client/session
operations behind the local session store.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import NotFoundError, UnknownClientError, ValidationError
from .models import Base, Client, WorkSession, format_timestamp
from .schemas import DEFAULT_CURRENCY, ClientCreate, ClientResponse
from .schemas import Session as SessionSchema

logger = logging.getLogger(__name__)

# Rate given to clients created implicitly while applying synced sessions
PLACEHOLDER_RATE = 1


class Database:
    """Database connection and operations manager."""

    def __init__(self, db_path: str, default_currency: str = DEFAULT_CURRENCY):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
            default_currency: Currency for clients created implicitly by upsert
        """
        self.db_path = Path(db_path)
        self.default_currency = default_currency
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Client Operations
    # ========================================================================

    def create_client(self, client: ClientCreate) -> ClientResponse:
        """Create a new client.

        Raises:
            ValidationError: If a client with the same name exists
        """
        try:
            with self.get_session() as s:
                if self._find_client(s, client.name) is not None:
                    raise ValidationError(f"client {client.name!r} already exists")
                db_client = Client(
                    name=client.name,
                    rate=client.rate,
                    currency=client.currency,
                )
                s.add(db_client)
                s.flush()
                return ClientResponse.model_validate(db_client)
        except IntegrityError as e:
            raise ValidationError(f"client {client.name!r} already exists") from e

    def get_client(self, name: str) -> Optional[ClientResponse]:
        """Get a client by name."""
        with self.get_session() as s:
            db_client = self._find_client(s, name)
            if db_client is None:
                return None
            return ClientResponse.model_validate(db_client)

    def get_all_clients(self) -> list[ClientResponse]:
        """Get all clients ordered by name."""
        with self.get_session() as s:
            stmt = select(Client).order_by(Client.name)
            return [ClientResponse.model_validate(c) for c in s.execute(stmt).scalars()]

    def _find_client(self, s: Session, name: str) -> Optional[Client]:
        stmt = select(Client).where(Client.name == name)
        return s.execute(stmt).scalar_one_or_none()

    # ========================================================================
    # Session Operations
    # ========================================================================

    def get_work_session(self, session_id: str) -> Optional[SessionSchema]:
        """Get a work session by ID."""
        with self.get_session() as s:
            record = s.get(WorkSession, session_id)
            return record.to_schema() if record else None

    def get_open_session(self, client_name: str) -> Optional[SessionSchema]:
        """Get the running session for a client, if any.

        Raises:
            UnknownClientError: If the client does not exist
        """
        with self.get_session() as s:
            client = self._find_client(s, client_name)
            if client is None:
                raise UnknownClientError(client_name)
            record = self._find_open_session(s, client.id)
            return record.to_schema() if record else None

    def _find_open_session(
        self, s: Session, client_id: str, exclude_id: Optional[str] = None
    ) -> Optional[WorkSession]:
        stmt = select(WorkSession).where(
            WorkSession.client_id == client_id,
            WorkSession.end.is_(None),
        )
        if exclude_id is not None:
            stmt = stmt.where(WorkSession.id != exclude_id)
        return s.execute(stmt.order_by(WorkSession.start)).scalars().first()

    def get_all_sessions(self, client_name: Optional[str] = None) -> list[SessionSchema]:
        """Get every session for one client, or for all clients.

        Args:
            client_name: Restrict to this client; None means all clients

        Returns:
            Sessions ordered by identifier

        Raises:
            NotFoundError: If client_name names an unknown client
        """
        with self.get_session() as s:
            stmt = select(WorkSession).order_by(WorkSession.id)
            if client_name is not None:
                client = self._find_client(s, client_name)
                if client is None:
                    raise NotFoundError(f"client {client_name!r} not found")
                stmt = stmt.where(WorkSession.client_id == client.id)
            return [record.to_schema() for record in s.execute(stmt).scalars()]

    def upsert_session(
        self, session: SessionSchema, allow_create_client: bool = False
    ) -> SessionSchema:
        """Insert a session, or overwrite the mutable fields of an existing one.

        Applying the same session twice leaves the store exactly as after the
        first call: columns are only written when their value differs.

        Args:
            session: Session to store
            allow_create_client: Create the referenced client if it is missing

        Returns:
            The stored session

        Raises:
            ValidationError: If the session ends before it starts, would be a
                second open session for its client, or changes client
            UnknownClientError: If the client is missing and may not be created
        """
        session.ensure_valid()

        with self.get_session() as s:
            client = self._find_client(s, session.client)
            if client is None:
                if not allow_create_client:
                    raise UnknownClientError(session.client)
                client = Client(
                    name=session.client,
                    rate=PLACEHOLDER_RATE,
                    currency=self.default_currency,
                )
                s.add(client)
                s.flush()
                logger.warning(
                    "Created client %r with placeholder rate %d %s",
                    session.client,
                    PLACEHOLDER_RATE,
                    self.default_currency,
                )

            if session.is_open:
                other = self._find_open_session(s, client.id, exclude_id=session.id)
                if other is not None:
                    raise ValidationError(
                        f"session {session.id}: client {session.client!r} already "
                        f"has an open session ({other.id})"
                    )

            record = s.get(WorkSession, session.id)
            if record is None:
                record = WorkSession(
                    id=session.id,
                    client=client,
                    start=format_timestamp(session.start),
                    end=format_timestamp(session.end),
                    note=session.note,
                )
                s.add(record)
                logger.debug("Inserted session %s", session.id)
            else:
                if record.client_id != client.id:
                    raise ValidationError(
                        f"session {session.id}: cannot move from client "
                        f"{record.client.name!r} to {session.client!r}"
                    )
                changes = {
                    "start": format_timestamp(session.start),
                    "end": format_timestamp(session.end),
                    "note": session.note,
                }
                changed = False
                for field, value in changes.items():
                    if getattr(record, field) != value:
                        setattr(record, field, value)
                        changed = True
                if changed:
                    logger.debug("Updated session %s", session.id)

            s.flush()
            return record.to_schema()


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        from ..config import get_config

        config = get_config()
        _db = Database(
            db_path or str(config.db_path),
            default_currency=config.default_currency,
        )
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
