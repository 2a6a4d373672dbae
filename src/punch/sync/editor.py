"""Manual conflict resolution through an external editor.

The conflicting versions are written to a temporary YAML file, the user's
editor is opened on it, and whatever is left when the editor exits is the
resolution. No merging happens here; the user decides.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional, Sequence

import click

from ..db.schemas import Session
from ..errors import EditorError, ParseError
from .conflict import ConflictRecord
from .serialization import deserialize_sessions, dump_sessions

logger = logging.getLogger(__name__)

EditFunc = Callable[[Path, Optional[str]], None]

BUFFER_HEADER = """\
# punch found {count} conflicting session(s).
#
# Each session below is listed once for every side it exists on, marked
# "local" or "remote". Keep exactly one entry per id, editing it if needed,
# and delete the others. Save and quit to apply the result.
"""


def interactive_edit(path: Path, editor: Optional[str] = None) -> None:
    """Open a file in the user's editor and block until it exits.

    Args:
        path: File to edit in place
        editor: Editor command; defaults to $VISUAL / $EDITOR

    Raises:
        EditorError: If the editor cannot be started or exits with an error
    """
    try:
        click.edit(filename=str(path), editor=editor, require_save=False)
    except click.ClickException as e:
        raise EditorError(e.format_message()) from e


def render_conflicts(conflicts: Sequence[ConflictRecord]) -> str:
    """Render conflicts as an editable YAML buffer, side by side per id."""
    parts = [BUFFER_HEADER.format(count=len(conflicts))]
    for conflict in conflicts:
        for side, session in conflict.versions():
            parts.append(f"\n# {conflict.session_id}: {side}\n")
            parts.append(dump_sessions([session]))
    return "".join(parts)


class ResolutionMediator:
    """Turns conflict records into resolved sessions via an external edit."""

    def __init__(self, editor: Optional[str] = None, edit: EditFunc = interactive_edit):
        """Initialize mediator.

        Args:
            editor: Editor command (None uses $VISUAL / $EDITOR)
            edit: Blocking edit capability, replaced in tests
        """
        self.editor = editor
        self.edit = edit

    def resolve(self, conflicts: Sequence[ConflictRecord]) -> list[Session]:
        """Ask the user to resolve conflicts.

        Returns:
            One resolved session per conflicting id, ordered by id; empty when
            there is nothing to resolve

        Raises:
            EditorError: If the editor fails
            ParseError: If the edited buffer is malformed or does not resolve
                every conflict exactly once
            ValidationError: If a resolved session ends before it starts
        """
        if not conflicts:
            return []

        logger.info("Opening editor to resolve %d conflict(s)", len(conflicts))
        edited = self._edit_buffer(render_conflicts(conflicts))
        resolved = deserialize_sessions(edited)
        self._check_resolution(conflicts, resolved)
        return sorted(resolved, key=lambda s: s.id)

    def _edit_buffer(self, buffer: str) -> str:
        """Write buffer to a temp file, edit it, read it back, clean up."""
        with tempfile.NamedTemporaryFile(
            mode="w",
            prefix="punch-conflicts-",
            suffix=".yaml",
            delete=False,
            encoding="utf-8",
        ) as f:
            f.write(buffer)
            path = Path(f.name)

        try:
            self.edit(path, self.editor)
            return path.read_text(encoding="utf-8")
        finally:
            if path.exists():
                os.unlink(path)

    def _check_resolution(
        self, conflicts: Sequence[ConflictRecord], resolved: list[Session]
    ) -> None:
        expected = {c.session_id for c in conflicts}
        seen: set[str] = set()
        for session in resolved:
            if session.id not in expected:
                raise ParseError(f"session {session.id}: not one of the conflicting sessions")
            if session.id in seen:
                raise ParseError(f"session {session.id}: kept more than one version")
            seen.add(session.id)

        unresolved = sorted(expected - seen)
        if unresolved:
            raise ParseError(f"unresolved session(s): {', '.join(unresolved)}")
