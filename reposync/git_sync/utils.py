"""Result types for repository synchronization."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import ErrorKind


class SyncOutcome(Enum):
    """What a sync did to the local checkout."""
    CLONED = "cloned"
    PULLED = "pulled"
    UP_TO_DATE = "upToDate"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Result of synchronizing one repository."""
    name: str
    outcome: SyncOutcome
    head_commit: Optional[str] = None
    error: Optional[ErrorKind] = None
    message: str = ""
    attempts: int = 1
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.outcome is not SyncOutcome.FAILED

    def to_dict(self) -> Dict[str, Any]:
        """Structured record of this result."""
        record: Dict[str, Any] = {
            "name": self.name,
            "outcome": self.outcome.value,
            "durationMs": self.duration_ms,
        }
        if self.error is not None:
            record["error"] = self.error.value
            record["message"] = self.message
        else:
            record["headCommit"] = self.head_commit
        return record


def create_sync_result(
    name: str,
    outcome: SyncOutcome,
    head_commit: Optional[str] = None,
    error: Optional[ErrorKind] = None,
    message: str = "",
    attempts: int = 1
) -> SyncResult:
    """
    Helper function to create SyncResult instances.

    Failed results always carry an error kind; successful ones never do.

    Args:
        name: Repository name
        outcome: What the sync did
        head_commit: Resolved head commit after the operation
        error: Error kind for failed syncs
        message: Human readable description
        attempts: Number of network attempts made

    Returns:
        SyncResult instance
    """
    if outcome is SyncOutcome.FAILED and error is None:
        error = ErrorKind.UNEXPECTED
    if outcome is not SyncOutcome.FAILED:
        error = None

    return SyncResult(
        name=name,
        outcome=outcome,
        head_commit=head_commit,
        error=error,
        message=message,
        attempts=attempts
    )
