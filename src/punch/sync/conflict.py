"""Conflict detection for sync operations.

Sessions are matched by their stable identifier, never by content: with no
edit history there is no way to tell an edited session from an unrelated
new one. Every divergence is therefore reported for a person to resolve.
A session present on one side only is reported as such; there is no
deletion marker, so "deleted remotely" and "not yet pushed" look the same.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from ..db.schemas import Session
from ..errors import MalformedCollectionError


class ConflictType(str, Enum):
    """Type of sync conflict."""

    BOTH_MODIFIED = "both_modified"  # On both sides with different fields
    LOCAL_ONLY = "local_only"  # Not on the remote (new, or removed there)
    REMOTE_ONLY = "remote_only"  # Not in the local store


@dataclass
class ConflictRecord:
    """The local and remote versions of one divergent session."""

    session_id: str
    conflict_type: ConflictType
    local: Optional[Session]
    remote: Optional[Session]

    def __repr__(self) -> str:
        return f"ConflictRecord({self.session_id!r}, type={self.conflict_type.value})"

    def versions(self) -> list[tuple[str, Session]]:
        """(side, session) pairs for the versions that exist."""
        pairs = []
        if self.local is not None:
            pairs.append(("local", self.local))
        if self.remote is not None:
            pairs.append(("remote", self.remote))
        return pairs


@dataclass
class DetectionResult:
    """Divergent sessions plus the sessions both sides already agree on."""

    conflicts: list[ConflictRecord] = field(default_factory=list)
    merged: list[Session] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


def index_sessions(sessions: Iterable[Session], side: str) -> dict[str, Session]:
    """Build an id lookup, rejecting repeated identifiers.

    Raises:
        MalformedCollectionError: If an identifier appears twice
    """
    index: dict[str, Session] = {}
    for session in sessions:
        if session.id in index:
            raise MalformedCollectionError(
                f"{side} sessions contain duplicate id {session.id!r}"
            )
        index[session.id] = session
    return index


def detect_conflicts(
    local_sessions: Iterable[Session],
    remote_sessions: Iterable[Session],
) -> DetectionResult:
    """Compare local and remote sessions by identifier.

    Args:
        local_sessions: Sessions from the local store
        remote_sessions: Sessions pulled from the remote

    Returns:
        DetectionResult with conflicts and agreed sessions, both ordered by id

    Raises:
        MalformedCollectionError: If either side repeats an identifier
    """
    local = index_sessions(local_sessions, "local")
    remote = index_sessions(remote_sessions, "remote")

    result = DetectionResult()
    for session_id in sorted(local.keys() | remote.keys()):
        local_session = local.get(session_id)
        remote_session = remote.get(session_id)

        if local_session is not None and remote_session is not None:
            if local_session == remote_session:
                result.merged.append(local_session)
                continue
            conflict_type = ConflictType.BOTH_MODIFIED
        elif local_session is not None:
            conflict_type = ConflictType.LOCAL_ONLY
        else:
            conflict_type = ConflictType.REMOTE_ONLY

        result.conflicts.append(
            ConflictRecord(
                session_id=session_id,
                conflict_type=conflict_type,
                local=local_session,
                remote=remote_session,
            )
        )

    return result
