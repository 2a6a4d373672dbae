"""YAML serialization of session collections.

The same format is used for the conflict buffer shown in the editor and for
the git remote's sessions file: a YAML list of mappings with the keys
``id``, ``client``, ``start``, ``end`` and ``note``.
"""

from typing import Iterable

import pydantic
import yaml

from ..db.schemas import Session
from ..errors import ParseError

SESSION_FIELDS = ("id", "client", "start", "end", "note")
REQUIRED_FIELDS = ("id", "client", "start")


def session_to_dict(session: Session) -> dict:
    """Plain mapping of a session in field order."""
    return {name: getattr(session, name) for name in SESSION_FIELDS}


def dump_sessions(sessions: Iterable[Session]) -> str:
    """Dump sessions as a YAML list, in the order given."""
    data = [session_to_dict(s) for s in sessions]
    if not data:
        return "[]\n"
    return yaml.safe_dump(
        data, default_flow_style=False, sort_keys=False, allow_unicode=True
    )


def serialize_sessions(sessions: Iterable[Session]) -> str:
    """Serialize a session collection, ordered by identifier."""
    return dump_sessions(sorted(sessions, key=lambda s: s.id))


def deserialize_sessions(text: str) -> list[Session]:
    """Parse a YAML session list.

    Comments are ignored, an empty document is an empty collection.

    Raises:
        ParseError: If the YAML is malformed, is not a list of mappings, or an
            entry has unknown, missing or mistyped fields
        ValidationError: If a session ends before it starts
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"invalid YAML: {e}") from e

    if data is None:
        return []
    if not isinstance(data, list):
        raise ParseError("expected a list of sessions")

    sessions = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ParseError(f"entry #{index + 1}: expected a mapping")
        label = f"session {entry['id']}" if entry.get("id") else f"entry #{index + 1}"

        unknown = sorted(str(k) for k in entry if k not in SESSION_FIELDS)
        if unknown:
            raise ParseError(f"{label}: unknown field(s) {', '.join(unknown)}")
        missing = [k for k in REQUIRED_FIELDS if entry.get(k) in (None, "")]
        if missing:
            raise ParseError(f"{label}: missing field(s) {', '.join(missing)}")

        try:
            session = Session(**entry)
        except pydantic.ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ParseError(f"{label}: {problems}") from e

        session.ensure_valid()
        sessions.append(session)

    return sessions
