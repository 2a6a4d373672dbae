"""Remote session sources, one per backend kind."""

from typing import Union

from ..config import GitRemote, SpreadsheetRemote
from ..db.sqlite import Database
from ..errors import ConfigError
from .base import SyncSource
from .git import GitSource
from .spreadsheet import SpreadsheetSource

REMOTE_TYPES: dict[str, type[SyncSource]] = {
    "spreadsheet": SpreadsheetSource,
    "git": GitSource,
}


def new_source(
    name: str, remote: Union[SpreadsheetRemote, GitRemote], db: Database
) -> SyncSource:
    """Create the source for a configured remote.

    Raises:
        ConfigError: If the remote's type has no source
    """
    source_cls = REMOTE_TYPES.get(remote.type)
    if source_cls is None:
        raise ConfigError(f"remote {name!r}: unsupported type {remote.type!r}")
    return source_cls(name, remote, db)


__all__ = [
    "SyncSource",
    "SpreadsheetSource",
    "GitSource",
    "REMOTE_TYPES",
    "new_source",
]
