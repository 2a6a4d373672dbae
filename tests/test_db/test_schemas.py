"""Tests for Pydantic schemas."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from punch.db.schemas import ClientCreate, Session
from punch.errors import ValidationError


class TestClientCreate:
    """Tests for ClientCreate schema."""

    def test_defaults_to_usd(self):
        client = ClientCreate(name="acme", rate=100)
        assert client.currency == "USD"

    def test_strips_name_and_uppercases_currency(self):
        client = ClientCreate(name="  acme ", rate=100, currency="eur")
        assert client.name == "acme"
        assert client.currency == "EUR"

    @pytest.mark.parametrize("rate", [0, -5])
    def test_rate_must_be_positive(self, rate):
        with pytest.raises(PydanticValidationError):
            ClientCreate(name="acme", rate=rate)

    def test_name_required(self):
        with pytest.raises(PydanticValidationError):
            ClientCreate(name="", rate=10)


class TestSession:
    """Tests for the Session schema."""

    def test_generates_id(self):
        first = Session(client="acme", start=datetime(2025, 1, 1, 9))
        second = Session(client="acme", start=datetime(2025, 1, 1, 9))

        assert first.id
        assert first.id != second.id

    def test_open_session(self):
        session = Session(client="acme", start=datetime(2025, 1, 1, 9))

        assert session.is_open
        assert session.duration() is None
        assert session.earnings(100) is None

    def test_duration_and_earnings(self):
        session = Session(
            client="acme",
            start=datetime(2025, 1, 1, 9),
            end=datetime(2025, 1, 1, 10, 30),
        )

        assert session.duration() == timedelta(hours=1, minutes=30)
        assert session.earnings(100) == pytest.approx(150.0)

    def test_earnings_unknown_rate(self):
        session = Session(
            client="acme",
            start=datetime(2025, 1, 1, 9),
            end=datetime(2025, 1, 1, 10),
        )
        assert session.earnings(None) is None

    def test_drops_microseconds(self):
        session = Session(client="acme", start=datetime(2025, 1, 1, 9, 0, 0, 123456))
        assert session.start == datetime(2025, 1, 1, 9)

    def test_aware_timestamp_made_naive(self):
        aware = datetime(2025, 1, 1, 9, tzinfo=timezone.utc)
        session = Session(client="acme", start=aware)

        assert session.start.tzinfo is None
        assert session.start == aware.astimezone().replace(tzinfo=None)

    def test_numeric_id_coerced(self):
        session = Session(id=7, client="acme", start=datetime(2025, 1, 1, 9))
        assert session.id == "7"

    def test_whole_float_id_coerced(self):
        session = Session(id=7.0, client="acme", start=datetime(2025, 1, 1, 9))
        assert session.id == "7"

    def test_fractional_float_id_rejected(self):
        with pytest.raises(PydanticValidationError):
            Session(id=1.5, client="acme", start=datetime(2025, 1, 1, 9))

    def test_blank_note_is_none(self):
        session = Session(client="acme", start=datetime(2025, 1, 1, 9), note="  ")
        assert session.note is None

    def test_unknown_field_rejected(self):
        with pytest.raises(PydanticValidationError):
            Session(client="acme", start=datetime(2025, 1, 1, 9), rate=5)

    def test_ensure_valid_end_before_start(self):
        session = Session(
            client="acme",
            start=datetime(2025, 1, 1, 9),
            end=datetime(2025, 1, 1, 8),
        )
        with pytest.raises(ValidationError):
            session.ensure_valid()

    def test_ensure_valid_zero_length(self):
        session = Session(
            client="acme",
            start=datetime(2025, 1, 1, 9),
            end=datetime(2025, 1, 1, 9),
        )
        session.ensure_valid()
