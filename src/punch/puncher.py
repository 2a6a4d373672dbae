"""Work session lifecycle.

Handles clocking in and out for a client. A client has at most one open
session at a time.
"""

import logging
from datetime import datetime
from typing import Optional

from .db.schemas import Session, normalize_timestamp
from .db.sqlite import Database, get_db
from .errors import NoOpenSessionError, SessionAlreadyOpenError, UnknownClientError

logger = logging.getLogger(__name__)


class Puncher:
    """Starts and ends work sessions."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_db()

    def start_session(
        self,
        client_name: str,
        timestamp: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> Session:
        """Start a new session for a client.

        Args:
            client_name: Client to bill
            timestamp: Start time (now if not provided)
            note: Optional message

        Returns:
            The new open session

        Raises:
            UnknownClientError: If the client does not exist
            SessionAlreadyOpenError: If the client already has an open session
        """
        if self.db.get_client(client_name) is None:
            raise UnknownClientError(client_name)
        if self.db.get_open_session(client_name) is not None:
            raise SessionAlreadyOpenError(client_name)

        session = Session(
            client=client_name,
            start=timestamp or datetime.now(),
            note=note,
        )
        stored = self.db.upsert_session(session)
        logger.debug("Started session %s for %s", stored.id, client_name)
        return stored

    def end_session(
        self,
        client_name: str,
        timestamp: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> Session:
        """End the open session for a client.

        A note is appended to any note given at start.

        Raises:
            UnknownClientError: If the client does not exist
            NoOpenSessionError: If nothing is open for the client
            ValidationError: If the end time is before the start time
        """
        if self.db.get_client(client_name) is None:
            raise UnknownClientError(client_name)
        session = self.db.get_open_session(client_name)
        if session is None:
            raise NoOpenSessionError(client_name)

        notes = [n for n in (session.note, note) if n]
        ended = session.model_copy(
            update={
                "end": normalize_timestamp(timestamp or datetime.now()),
                "note": "\n".join(notes) or None,
            }
        )
        stored = self.db.upsert_session(ended)
        logger.debug("Ended session %s for %s", stored.id, client_name)
        return stored
