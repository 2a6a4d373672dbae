"""Exception hierarchy for punch.

Every error raised by the store, the remotes and the sync engine derives
from PunchError so the CLI can report them uniformly.
"""

from typing import Iterable


class PunchError(Exception):
    """Base exception for punch errors."""

    pass


class ConfigError(PunchError):
    """Raised when the configuration file is invalid or incomplete."""

    pass


class ValidationError(PunchError):
    """Raised when a client or session violates a domain invariant."""

    pass


class SessionAlreadyOpenError(ValidationError):
    """Raised when starting a session for a client that already has one open."""

    def __init__(self, client_name: str):
        self.client_name = client_name
        super().__init__(f"client {client_name!r} already has an open session")


class NoOpenSessionError(ValidationError):
    """Raised when ending a session for a client with nothing open."""

    def __init__(self, client_name: str):
        self.client_name = client_name
        super().__init__(f"client {client_name!r} has no open session")


class NotFoundError(PunchError):
    """Raised when a referenced entity does not exist."""

    pass


class UnknownClientError(NotFoundError):
    """Raised when a session references a client missing from the store."""

    def __init__(self, client_name: str):
        self.client_name = client_name
        super().__init__(f"unknown client {client_name!r}")


class RemoteUnavailableError(PunchError):
    """Raised on transport failures talking to a remote."""

    pass


class SchemaError(PunchError):
    """Raised when a remote's layout does not match the expected fields."""

    pass


class ParseError(PunchError):
    """Raised when an edited buffer is not a well-formed session list."""

    pass


class EditorError(PunchError):
    """Raised when the external editor is missing or exits with an error."""

    pass


class MalformedCollectionError(PunchError):
    """Raised when a session collection repeats an identifier."""

    pass


class PartialWriteError(PunchError):
    """Raised when some records could not be written to a remote."""

    def __init__(self, failed_ids: Iterable[str], reason: str = ""):
        self.failed_ids = sorted(failed_ids)
        message = f"failed to write {len(self.failed_ids)} session(s): " + ", ".join(
            self.failed_ids
        )
        if reason:
            message += f" ({reason})"
        super().__init__(message)
