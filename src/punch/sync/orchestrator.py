"""Sync run orchestration.

A run pulls the remote, compares it with the local store, has the user
resolve any divergence, commits the result locally and finally pushes the
full local set back. Local commits always happen before the push, so a
remote outage can leave the remote stale but never loses local work.
Re-running after a failure is safe because every commit is an idempotent
upsert.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..db.schemas import Session
from ..db.sqlite import Database
from ..errors import PartialWriteError, RemoteUnavailableError, ValidationError
from ..remotes.base import SyncSource
from .conflict import detect_conflicts
from .editor import ResolutionMediator

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Stage of a sync run."""

    IDLE = "idle"
    PULLING = "pulling"
    DETECTING = "detecting"
    RESOLVING = "resolving"
    COMMITTING = "committing"
    PUSHING = "pushing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncReport:
    """Outcome of a sync run."""

    remote: str
    state: SyncState = SyncState.IDLE
    pulled: int = 0
    conflicts: int = 0
    committed: int = 0
    pushed: int = 0
    push_error: Optional[Exception] = None
    failed_at: Optional[SyncState] = None
    history: list[SyncState] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state == SyncState.DONE


def check_open_sessions(sessions: list[Session]) -> None:
    """Reject a session set with more than one open session for a client.

    Raises:
        ValidationError: Naming the client and its open sessions
    """
    open_by_client: dict[str, list[str]] = {}
    for session in sessions:
        if session.is_open:
            open_by_client.setdefault(session.client, []).append(session.id)
    for client, ids in sorted(open_by_client.items()):
        if len(ids) > 1:
            raise ValidationError(
                f"client {client!r} would have {len(ids)} open sessions: {', '.join(ids)}"
            )


class SyncOrchestrator:
    """Runs one pull, detect, resolve, commit and push sequence."""

    def __init__(
        self,
        db: Database,
        source: SyncSource,
        mediator: Optional[ResolutionMediator] = None,
        pull_only: bool = False,
    ):
        """Initialize orchestrator.

        Args:
            db: Local session store
            source: Remote to sync with
            mediator: Conflict resolver (editor based by default)
            pull_only: Commit locally but do not push back to the remote
        """
        self.db = db
        self.source = source
        self.mediator = mediator or ResolutionMediator()
        self.pull_only = pull_only
        self.report = SyncReport(remote=source.name)

    @property
    def state(self) -> SyncState:
        return self.report.state

    def _enter(self, state: SyncState) -> None:
        logger.debug("Sync %s: %s -> %s", self.source.name, self.report.state.value, state.value)
        self.report.state = state
        self.report.history.append(state)

    def _fail(self) -> None:
        self.report.failed_at = self.report.state
        self._enter(SyncState.FAILED)

    def run(self) -> SyncReport:
        """Run the sync once.

        Returns:
            SyncReport; a push failure is recorded on it rather than raised

        Raises:
            PunchError: Any failure before or during the commit step, after
                the run has moved to FAILED
            ValidationError: If the committed set would leave a client with
                two open sessions; nothing is committed
        """
        if self.report.state != SyncState.IDLE:
            raise RuntimeError("a SyncOrchestrator runs only once")

        try:
            self._enter(SyncState.PULLING)
            remote_sessions = self.source.pull()
            self.report.pulled = len(remote_sessions)
            logger.info("Pulled %d session(s) from %s", len(remote_sessions), self.source.name)

            self._enter(SyncState.DETECTING)
            local_sessions = self.db.get_all_sessions()
            detection = detect_conflicts(local_sessions, remote_sessions)
            self.report.conflicts = len(detection.conflicts)

            resolved: list[Session] = []
            if detection.has_conflicts:
                self._enter(SyncState.RESOLVING)
                resolved = self.mediator.resolve(detection.conflicts)

            self._enter(SyncState.COMMITTING)
            to_commit = sorted(detection.merged + resolved, key=lambda s: s.id)
            check_open_sessions(to_commit)
            # Closed sessions first, so a client never has two open at once
            ordered = [s for s in to_commit if not s.is_open]
            ordered += [s for s in to_commit if s.is_open]
            for session in ordered:
                self.db.upsert_session(session, allow_create_client=False)
                self.report.committed += 1
            logger.info("Committed %d session(s) locally", self.report.committed)
        except Exception:
            self._fail()
            raise

        if not self.pull_only:
            self._enter(SyncState.PUSHING)
            try:
                local_sessions = self.db.get_all_sessions()
                self.source.push(local_sessions)
            except (RemoteUnavailableError, PartialWriteError) as e:
                logger.warning("Push to %s failed: %s", self.source.name, e)
                self.report.push_error = e
                self._fail()
                return self.report
            except Exception:
                self._fail()
                raise
            self.report.pushed = len(local_sessions)
            logger.info("Pushed %d session(s) to %s", len(local_sessions), self.source.name)

        self._enter(SyncState.DONE)
        return self.report
