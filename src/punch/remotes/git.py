"""Git remote: a YAML sessions file in a git working copy.

Pulling fast-forwards the working copy and reads the file; pushing rewrites
the whole file, commits it and pushes the branch upstream.
"""

import logging
import subprocess
from pathlib import Path

from ..config import GitRemote
from ..db.schemas import Session
from ..db.sqlite import Database
from ..errors import ParseError, RemoteUnavailableError, SchemaError, ValidationError
from ..sync.serialization import deserialize_sessions, serialize_sessions
from .base import SyncSource

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 60  # seconds


class GitSource(SyncSource):
    """Sessions stored in a YAML file tracked by git."""

    kind = "git"

    def __init__(self, name: str, config: GitRemote, db: Database):
        super().__init__(name, db)
        self.config = config

    @property
    def file_path(self) -> Path:
        return self.config.path / self.config.file

    def _git(self, *args: str) -> str:
        """Run a git command in the working copy and return its stdout.

        Raises:
            RemoteUnavailableError: If git is missing, fails or times out
        """
        cmd = ["git", "-C", str(self.config.path), *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, check=True, timeout=GIT_TIMEOUT
            )
        except FileNotFoundError as e:
            raise RemoteUnavailableError("git executable not found") from e
        except subprocess.TimeoutExpired as e:
            raise RemoteUnavailableError(f"git {args[0]} timed out") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or "").strip()
            raise RemoteUnavailableError(
                f"remote {self.name!r}: git {args[0]} failed: {detail}"
            ) from e
        return result.stdout

    def _check_working_copy(self) -> None:
        if not self.config.path.is_dir():
            raise RemoteUnavailableError(
                f"remote {self.name!r}: {self.config.path} is not a directory"
            )

    def pull(self) -> list[Session]:
        """Fast-forward from upstream and read the sessions file.

        A missing file is an empty collection.
        """
        self._check_working_copy()
        if self.config.upstream:
            self._git("pull", "--ff-only", self.config.remote, self.config.branch)

        if not self.file_path.exists():
            return []

        text = self.file_path.read_text(encoding="utf-8")
        try:
            return deserialize_sessions(text)
        except (ParseError, ValidationError) as e:
            raise SchemaError(f"remote {self.name!r}: {self.config.file}: {e}") from e

    def push(self, sessions: list[Session]) -> None:
        """Replace the sessions file, commit it if it changed and push."""
        self._check_working_copy()
        self.file_path.write_text(serialize_sessions(sessions), encoding="utf-8")

        self._git("add", "--", self.config.file)
        if self._git("status", "--porcelain", "--", self.config.file).strip():
            self._git(
                "commit",
                "-m",
                f"punch: sync {len(sessions)} session(s)",
                "--",
                self.config.file,
            )
        else:
            logger.debug("%s unchanged, nothing to commit", self.config.file)

        if self.config.upstream:
            self._git("push", self.config.remote, f"HEAD:{self.config.branch}")
