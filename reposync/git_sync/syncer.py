"""Idempotent clone-or-pull synchronization of a single repository."""

import logging
import time
from typing import Optional, TYPE_CHECKING

from ..errors import (
    CorruptWorkspaceError, DivergedHistoryError, InvalidSpecError,
    SyncCancelledError, SyncError, error_handler
)
from ..file_lock import repository_lock
from .cancellation import CancelToken
from .clone import clone_repository
from .performance_logger import SyncPerformanceLogger
from .repository_info import RepositorySpec, WorkspaceState
from .repository_sync import synchronize_with_remote
from .state import detect_workspace_state, remove_checkout, remove_stale_git_locks
from .utils import SyncOutcome, SyncResult, create_sync_result
from .validation import validate_repository_spec

if TYPE_CHECKING:
    from ..config import Config


class RepositorySyncer:
    """
    Keeps a local checkout of a remote branch present and up to date.

    Every call to ``sync`` is safe to repeat: an absent path is cloned, a
    valid checkout is fast-forwarded, and a checkout left corrupted by an
    interrupted run is removed and cloned again once. Mutations happen only
    while holding the advisory lock next to the checkout.

    Features:
    - Workspace state detection (absent, valid, corrupted)
    - Per-path advisory locking with bounded wait
    - Retry with exponential backoff on transient network errors
    - Cooperative cancellation with optional per-sync deadline
    - One structured record per sync
    """

    def __init__(self, config: "Config", perf_logger: Optional[SyncPerformanceLogger] = None):
        """
        Initialize the syncer.

        Args:
            config: Configuration with workspace root, retry, lock and timeout settings
            perf_logger: Collector for sync timings and records
        """
        self.config = config
        self.logger = logging.getLogger('reposync.git_sync')
        self.perf_logger = perf_logger or SyncPerformanceLogger()

    def sync(self, spec: RepositorySpec, cancel_token: Optional[CancelToken] = None) -> SyncResult:
        """
        Synchronize one repository.

        Never raises for per-repository failures; they are reported in the
        returned SyncResult.

        Args:
            spec: Repository to synchronize
            cancel_token: Token cancelling this sync (and others sharing it)

        Returns:
            SyncResult with the outcome and the resolved head commit
        """
        parent = cancel_token or CancelToken()
        token = parent.child(self.config.sync_timeout)

        start_time = time.monotonic()
        with self.perf_logger.time_operation(f"sync {spec.name}", {"branch": spec.branch}):
            result = self._sync(spec, token)
        result.duration_ms = int((time.monotonic() - start_time) * 1000)

        self.perf_logger.record_sync(result)
        return result

    def _sync(self, spec: RepositorySpec, token: CancelToken) -> SyncResult:
        try:
            self.validate(spec)
            token.raise_if_cancelled(f"sync of {spec.name}")

            with repository_lock(spec.local_path, self.config.lock_timeout):
                outcome, head_commit = self._sync_locked(spec, token)

            return create_sync_result(
                spec.name,
                outcome,
                head_commit=head_commit,
                message=_describe(outcome, head_commit)
            )

        except Exception as e:
            response = error_handler.handle_sync_error(
                e, {"name": spec.name, "local_path": str(spec.local_path), "branch": spec.branch}
            )
            head_commit = e.local_commit if isinstance(e, DivergedHistoryError) else None
            return create_sync_result(
                spec.name,
                SyncOutcome.FAILED,
                head_commit=head_commit,
                error=error_handler.kind_of(e),
                message=response.message,
                attempts=getattr(e, "attempts", 1)
            )

    def validate(self, spec: RepositorySpec) -> None:
        """Reject malformed specs before anything is locked or written."""
        validate_repository_spec(spec, self.config.workspace_root)

    def _sync_locked(self, spec: RepositorySpec, token: CancelToken):
        state = detect_workspace_state(spec)
        self.logger.info(f"Syncing '{spec.name}' ({spec.branch}), workspace state: {state.value}")

        if state is WorkspaceState.ABSENT:
            return SyncOutcome.CLONED, self._clone(spec, token)

        if state is WorkspaceState.CORRUPTED:
            self.logger.warning(f"Workspace for '{spec.name}' is corrupted, removing {spec.local_path} and recloning")
            remove_checkout(spec)
            try:
                return SyncOutcome.CLONED, self._clone(spec, token)
            except (SyncCancelledError, InvalidSpecError):
                raise
            except SyncError as e:
                raise CorruptWorkspaceError(
                    f"Recovery clone of corrupted workspace '{spec.name}' failed: {e.message}",
                    attempts=e.attempts
                ) from e

        # Locks left by a git process killed in an earlier run
        remove_stale_git_locks(spec)
        return synchronize_with_remote(
            spec,
            token,
            self.config.retry_count,
            self.config.retry_backoff_base,
            self.config.retry_backoff_max
        )

    def _clone(self, spec: RepositorySpec, token: CancelToken) -> str:
        return clone_repository(
            spec,
            token,
            self.config.retry_count,
            self.config.retry_backoff_base,
            self.config.retry_backoff_max
        )


def _describe(outcome: SyncOutcome, head_commit: Optional[str]) -> str:
    short = (head_commit or "")[:12]
    if outcome is SyncOutcome.CLONED:
        return f"Cloned at {short}"
    if outcome is SyncOutcome.PULLED:
        return f"Fast-forwarded to {short}"
    return f"Already up to date at {short}"
