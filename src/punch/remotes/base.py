"""Abstract base for remote session sources."""

from abc import ABC, abstractmethod

from ..db.schemas import Session
from ..db.sqlite import Database


class SyncSource(ABC):
    """A remote copy of the session history.

    Implementations read the whole remote collection in ``pull`` and write a
    full collection back in ``push``. No remote data is kept between calls.
    """

    kind: str = ""

    def __init__(self, name: str, db: Database):
        self.name = name
        self.db = db

    @abstractmethod
    def pull(self) -> list[Session]:
        """Fetch every session stored on the remote.

        Raises:
            RemoteUnavailableError: On transport failure
            SchemaError: If the remote layout does not match the expected fields
        """
        ...

    @abstractmethod
    def push(self, sessions: list[Session]) -> None:
        """Write sessions to the remote, replacing or updating by id.

        Raises:
            RemoteUnavailableError: On transport failure
            PartialWriteError: If some sessions could not be written
        """
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.name}'>"
