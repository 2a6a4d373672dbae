"""Pydantic schemas for data validation.

These schemas define the client and session records shared by the local
store, the YAML conflict buffer and the remote backends.
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import ValidationError

DEFAULT_CURRENCY = "USD"


def generate_session_id() -> str:
    """Generate a stable identifier for a new session."""
    return str(uuid4())


def normalize_timestamp(value: datetime) -> datetime:
    """Drop sub-second precision and convert aware datetimes to local time.

    Sessions are stored as naive local timestamps with second precision so
    that every backend can represent them exactly.
    """
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.replace(microsecond=0)


# ============================================================================
# Client Schemas
# ============================================================================


class ClientBase(BaseModel):
    """Base client fields."""

    name: str = Field(..., min_length=1, description="Unique client name")
    rate: int = Field(..., gt=0, description="Pay rate per hour")
    currency: str = Field(default=DEFAULT_CURRENCY, min_length=1, max_length=8)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        """Strip surrounding whitespace from client names."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("currency", mode="before")
    @classmethod
    def upper_currency(cls, v):
        """Store currency codes upper-cased (usd -> USD)."""
        if isinstance(v, str):
            return v.strip().upper()
        return v


class ClientCreate(ClientBase):
    """Schema for creating a new client."""

    pass


class ClientResponse(ClientBase):
    """Schema for client responses."""

    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Session Schemas
# ============================================================================


class Session(BaseModel):
    """A timed unit of billable work tied to a client.

    The identifier is assigned once at creation and never changes, so the
    same session can be matched between the local store and a remote.
    Unknown fields are rejected so that a hand-edited buffer with a typo
    does not silently lose data.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=generate_session_id, min_length=1)
    client: str = Field(..., min_length=1)
    start: datetime
    end: Optional[datetime] = None
    note: Optional[str] = None

    @field_validator("id", "client", mode="before")
    @classmethod
    def coerce_text(cls, v):
        """Accept numeric ids (e.g. from a spreadsheet) and strip whitespace."""
        if isinstance(v, float):
            if not v.is_integer():
                raise ValueError(f"expected a whole number or text, got {v}")
            v = int(v)
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("start", "end")
    @classmethod
    def normalize(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return None
        return normalize_timestamp(v)

    @field_validator("note", mode="before")
    @classmethod
    def empty_note_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_open(self) -> bool:
        """A session without an end time is still running."""
        return self.end is None

    def duration(self) -> Optional[timedelta]:
        """Elapsed time, or None while the session is open."""
        if self.end is None:
            return None
        return self.end - self.start

    def earnings(self, rate: Optional[int]) -> Optional[float]:
        """Earnings at an hourly rate, or None if open or the rate is unknown."""
        duration = self.duration()
        if duration is None or rate is None:
            return None
        return duration.total_seconds() / 3600 * rate

    def ensure_valid(self) -> None:
        """Check the cross-field invariants.

        Raises:
            ValidationError: If the session ends before it starts
        """
        if self.end is not None and self.end < self.start:
            raise ValidationError(
                f"session {self.id}: end {self.end.isoformat()} is before "
                f"start {self.start.isoformat()}"
            )
