"""SQLAlchemy ORM models for local SQLite database.

Tables:
- clients: Who the work is billed to, with rate and currency
- sessions: Individual work sessions, keyed by a stable UUID
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .schemas import DEFAULT_CURRENCY, Session


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Store timestamps as ISO strings with second precision."""
    if value is None:
        return None
    return value.isoformat(timespec="seconds")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class Client(Base):
    """Client model - who sessions are billed to."""

    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    rate: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default=DEFAULT_CURRENCY)

    created_at: Mapped[str] = mapped_column(
        String(26), default=lambda: datetime.now(timezone.utc).isoformat()
    )

    sessions: Mapped[list["WorkSession"]] = relationship(
        "WorkSession", back_populates="client"
    )

    def __repr__(self) -> str:
        return f"<Client(name='{self.name}', rate={self.rate} {self.currency})>"


class WorkSession(Base):
    """Work session model.

    The id is assigned once by whoever created the session (this store or a
    remote) and is the key used to match sessions during sync.
    """

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clients.id"), nullable=False, index=True
    )
    start: Mapped[str] = mapped_column(String(19), nullable=False, index=True)
    end: Mapped[Optional[str]] = mapped_column(String(19), index=True)
    note: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[str] = mapped_column(
        String(26), default=lambda: datetime.now(timezone.utc).isoformat()
    )

    client: Mapped["Client"] = relationship("Client", back_populates="sessions")

    def __repr__(self) -> str:
        return f"<WorkSession(id={self.id}, start={self.start}, end={self.end})>"

    def to_schema(self) -> Session:
        """Convert to the Session schema shared with the sync engine."""
        return Session(
            id=self.id,
            client=self.client.name,
            start=parse_timestamp(self.start),
            end=parse_timestamp(self.end),
            note=self.note,
        )
