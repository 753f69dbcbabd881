"""Git command execution with cancellation, retry logic and exponential backoff."""

import logging
import subprocess
from typing import Callable, Optional, TypeVar

from git import GitCommandError, Repo
from git.compat import defenc

from ..errors import (
    ErrorKind, NetworkUnavailableError, SyncCancelledError, SyncError, error_for_kind
)
from .cancellation import CancelToken
from .error_strategies import classify_git_error


T = TypeVar("T")

# Git must never block the sync waiting for credentials on a terminal
GIT_ENVIRONMENT = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ASKPASS": "echo",
    "GCM_INTERACTIVE": "never",
}

POLL_INTERVAL = 0.1


def backoff_delay(attempt: int, base: float, cap: Optional[float] = None) -> float:
    """
    Delay before retrying after the given failed attempt.

    Pure function: attempt 1 waits ``base``, attempt 2 waits ``2 * base``,
    attempt 3 waits ``4 * base`` and so on, never more than ``cap``.

    Args:
        attempt: Number of the attempt that just failed (1-based)
        base: Delay after the first failure, in seconds
        cap: Upper bound on any single delay

    Returns:
        Delay in seconds
    """
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    if base <= 0:
        return 0.0

    delay = base * (2 ** (attempt - 1))
    if cap is not None:
        delay = min(delay, cap)
    return delay


def prepare_repo(repo: Repo) -> Repo:
    """Apply the non-interactive git environment to a repository handle."""
    repo.git.update_environment(**GIT_ENVIRONMENT)
    return repo


def run_git_command(repo: Repo, token: CancelToken, command: str, *args, **kwargs) -> str:
    """
    Run a git subcommand in ``repo`` that can be killed on cancellation.

    The process is polled every 100ms; once the token is cancelled (explicit
    cancel or deadline) it is killed and SyncCancelledError is raised.

    Raises:
        GitCommandError: If git exits with a non-zero status
        SyncCancelledError: If the token was cancelled while git was running
    """
    token.raise_if_cancelled(f"git {command}")

    process = getattr(repo.git, command)(*args, as_process=True, **kwargs)
    popen = process.proc

    while True:
        try:
            popen.wait(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            if token.cancelled:
                popen.kill()
                popen.wait()
                raise SyncCancelledError(f"git {command} cancelled while running")

    stdout = popen.stdout.read() if popen.stdout else b""
    stderr = popen.stderr.read() if popen.stderr else b""

    if popen.returncode != 0:
        raise GitCommandError(
            [repo.git.GIT_PYTHON_GIT_EXECUTABLE, command, *args],
            popen.returncode,
            stderr.decode(defenc, errors="replace")
        )

    return stdout.decode(defenc, errors="replace").strip()


def execute_git_operation_with_retry(
    operation_func: Callable[[], T],
    operation: str,
    token: CancelToken,
    retry_count: int,
    retry_backoff_base: float,
    retry_backoff_max: Optional[float] = None,
    on_retry: Optional[Callable[[], None]] = None
) -> T:
    """
    Execute a network git operation with retry logic and exponential backoff.

    Only failures classified as transient network errors are retried.
    ``on_retry`` runs before every retry so callers can reset partial state.

    Args:
        operation_func: Function performing the git operation
        operation: Description of the operation for logging
        token: Cancellation token, also interrupts backoff waits
        retry_count: Maximum number of attempts
        retry_backoff_base: Delay after the first failure
        retry_backoff_max: Upper bound on any single delay
        on_retry: Callback run before each retry

    Returns:
        Whatever ``operation_func`` returns

    Raises:
        NetworkUnavailableError: If every attempt failed with a network error
        SyncError: For non-retryable git failures, with the classified kind
        SyncCancelledError: If cancelled before or between attempts
    """
    logger = logging.getLogger('reposync.git_sync.operations')
    max_attempts = max(1, retry_count)

    for attempt in range(1, max_attempts + 1):
        token.raise_if_cancelled(operation)

        try:
            logger.debug(f"Executing Git operation (attempt {attempt}/{max_attempts}): {operation}")
            result = operation_func()
            if attempt > 1:
                logger.info(f"{operation} succeeded on attempt {attempt}")
            return result

        except GitCommandError as e:
            # A killed process looks like a timeout; report it as cancellation
            if token.cancelled:
                raise SyncCancelledError(f"{operation} cancelled", attempts=attempt) from e

            stderr = (e.stderr or "").strip() or str(e)
            kind = classify_git_error(stderr)
            error_msg = f"{operation} failed (attempt {attempt}/{max_attempts}): {stderr}"

            if not kind.retryable:
                logger.error(error_msg)
                raise error_for_kind(kind, error_msg, attempts=attempt) from e

            if attempt == max_attempts:
                logger.error(error_msg)
                raise NetworkUnavailableError(
                    f"{operation} failed after {attempt} attempts: {stderr}",
                    attempts=attempt
                ) from e

            delay = backoff_delay(attempt, retry_backoff_base, retry_backoff_max)
            logger.warning(f"{error_msg}, retrying in {delay:.1f}s")

            if token.wait(delay):
                raise SyncCancelledError(f"{operation} cancelled during backoff", attempts=attempt) from e

            if on_retry is not None:
                on_retry()

    # Unreachable: the loop either returns or raises
    raise SyncError(f"{operation} did not run", kind=ErrorKind.UNEXPECTED)
