"""Error taxonomy and error handling framework for reposync."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional


class ErrorKind(Enum):
    """Kinds of per-repository synchronization failures."""
    NETWORK_UNAVAILABLE = "NetworkUnavailable"
    CORRUPT_WORKSPACE = "CorruptWorkspace"
    DIVERGED_HISTORY = "DivergedHistory"
    LOCK_CONTENTION = "LockContention"
    INVALID_SPEC = "InvalidSpec"
    REPOSITORY_ACCESS = "RepositoryAccess"
    CANCELLED = "Cancelled"
    UNEXPECTED = "Unexpected"

    @property
    def retryable(self) -> bool:
        """Whether a network operation failing with this kind may be retried internally."""
        return self is ErrorKind.NETWORK_UNAVAILABLE


class SyncError(Exception):
    """Base exception for a failed repository synchronization step."""

    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, kind: Optional[ErrorKind] = None, attempts: int = 1):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.message = message
        self.attempts = attempts


class InvalidSpecError(SyncError):
    kind = ErrorKind.INVALID_SPEC


class NetworkUnavailableError(SyncError):
    kind = ErrorKind.NETWORK_UNAVAILABLE


class CorruptWorkspaceError(SyncError):
    kind = ErrorKind.CORRUPT_WORKSPACE


class DivergedHistoryError(SyncError):
    """Local and remote branch cannot be reconciled by a fast-forward."""

    kind = ErrorKind.DIVERGED_HISTORY

    def __init__(self, message: str, local_commit: Optional[str] = None, remote_commit: Optional[str] = None):
        super().__init__(message)
        self.local_commit = local_commit
        self.remote_commit = remote_commit


class LockContentionError(SyncError):
    kind = ErrorKind.LOCK_CONTENTION


class RepositoryAccessError(SyncError):
    kind = ErrorKind.REPOSITORY_ACCESS


class SyncCancelledError(SyncError):
    kind = ErrorKind.CANCELLED


ERROR_CLASSES = {
    ErrorKind.INVALID_SPEC: InvalidSpecError,
    ErrorKind.NETWORK_UNAVAILABLE: NetworkUnavailableError,
    ErrorKind.CORRUPT_WORKSPACE: CorruptWorkspaceError,
    ErrorKind.LOCK_CONTENTION: LockContentionError,
    ErrorKind.REPOSITORY_ACCESS: RepositoryAccessError,
    ErrorKind.CANCELLED: SyncCancelledError,
}


def error_for_kind(kind: ErrorKind, message: str, attempts: int = 1) -> SyncError:
    """Build the SyncError subclass matching a classified failure."""
    error_class = ERROR_CLASSES.get(kind)
    if error_class is None:
        return SyncError(message, kind=kind, attempts=attempts)
    return error_class(message, attempts=attempts)


@dataclass
class ErrorResponse:
    """Standardized error record for a failed repository sync."""
    error: str
    error_code: str
    message: str
    timestamp: str
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error response to dictionary format."""
        result = {
            "error": self.error,
            "error_code": self.error_code,
            "message": self.message,
            "timestamp": self.timestamp
        }
        if self.context:
            result["context"] = self.context
        return result


class ErrorHandler:
    """Turns synchronization exceptions into logged, structured error responses."""

    def __init__(self):
        self.logger = logging.getLogger('reposync.error_handler')

    def handle_sync_error(self, error: Exception, context: Dict[str, Any] = None) -> ErrorResponse:
        """Handle a per-repository synchronization error."""
        context = context or {}

        if isinstance(error, SyncError):
            kind = error.kind
            message = error.message
        elif isinstance(error, OSError):
            kind = ErrorKind.CORRUPT_WORKSPACE
            message = f"File system error: {error}"
        else:
            kind = ErrorKind.UNEXPECTED
            message = f"Repository sync failed unexpectedly: {error}"

        error_response = ErrorResponse(
            error="Repository sync failed",
            error_code=kind.value,
            message=message,
            timestamp=datetime.now().isoformat(),
            context=context
        )

        # Expected outcomes stay at warning level, anything else carries a traceback
        if kind is ErrorKind.UNEXPECTED:
            self.logger.error(
                f"Sync error: {message}",
                exc_info=error,
                extra={'operation': 'sync_error', 'error_code': kind.value, 'repository': context.get('name')}
            )
        else:
            self.logger.warning(
                f"Sync error: {message}",
                extra={'operation': 'sync_error', 'error_code': kind.value, 'repository': context.get('name')}
            )

        return error_response

    def kind_of(self, error: Exception) -> ErrorKind:
        """Return the ErrorKind an exception maps to."""
        if isinstance(error, SyncError):
            return error.kind
        if isinstance(error, OSError):
            return ErrorKind.CORRUPT_WORKSPACE
        return ErrorKind.UNEXPECTED


# Initialize global error handler
error_handler = ErrorHandler()
