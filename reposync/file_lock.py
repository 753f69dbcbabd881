"""
Cross-platform advisory file locking for reposync.

A lock file sits next to every repository's local path. Holding the OS lock
on it (``flock`` on Unix, ``msvcrt.locking`` on Windows) gives exclusive
rights to mutate that checkout. The operating system drops the lock when
the holding process dies, so a killed pod never leaves a stale lock behind.
"""

import os
import time
import logging
import threading
from pathlib import Path
from contextlib import contextmanager
from typing import Optional

from .errors import LockContentionError
from .platform import get_platform_info

if get_platform_info().is_windows:
    import msvcrt
else:
    import fcntl


LOCK_POLL_INTERVAL = 0.1


class FileLock:
    """
    Exclusive advisory lock on a file with a bounded wait.

    Each instance opens its own file descriptor, so two instances in the same
    process exclude each other just like two processes do.
    """

    def __init__(self, lock_file_path: Path, timeout: float = 30.0):
        """
        Initialize file lock.

        Args:
            lock_file_path: Path to the lock file
            timeout: Maximum time to wait for lock acquisition (seconds)
        """
        self.lock_file_path = lock_file_path
        self.timeout = timeout
        self.logger = logging.getLogger('reposync.file_lock')
        self.platform_info = get_platform_info()
        self._fd: Optional[int] = None

    def acquire(self) -> bool:
        """
        Acquire the file lock.

        Returns:
            True if lock was acquired, False if timeout occurred
        """
        if self._fd is not None:
            return True

        self.lock_file_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_file_path, os.O_RDWR | os.O_CREAT, 0o644)

        start_time = time.monotonic()
        while True:
            if self._try_lock(fd):
                self._fd = fd
                self._write_owner(fd)
                self.logger.debug(f"Acquired lock: {self.lock_file_path}")
                return True

            if time.monotonic() - start_time >= self.timeout:
                break
            time.sleep(LOCK_POLL_INTERVAL)

        os.close(fd)
        self.logger.warning(f"Failed to acquire lock {self.lock_file_path} within {self.timeout}s")
        return False

    def _try_lock(self, fd: int) -> bool:
        """Attempt a non-blocking exclusive lock on fd."""
        try:
            if self.platform_info.is_windows:
                os.lseek(fd, 0, os.SEEK_SET)
                msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
            else:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            return True
        except (BlockingIOError, PermissionError):
            return False
        except OSError:
            # msvcrt reports a held lock as EACCES/EDEADLK wrapped in OSError
            if self.platform_info.is_windows:
                return False
            raise

    def _write_owner(self, fd: int) -> None:
        """Record the holder for anyone inspecting the lock file."""
        owner = f"locked_by_pid_{os.getpid()}_thread_{threading.get_ident()}\n".encode()
        try:
            if not self.platform_info.is_windows:
                os.ftruncate(fd, 0)
            os.lseek(fd, 0, os.SEEK_SET)
            os.write(fd, owner)
        except OSError as e:
            self.logger.debug(f"Could not record lock owner in {self.lock_file_path}: {e}")

    def release(self) -> bool:
        """
        Release the file lock.

        The lock file itself is kept: deleting it would let a waiter lock a
        file that is no longer the one new callers open.

        Returns:
            True if lock was released, False otherwise
        """
        if self._fd is None:
            return True

        fd, self._fd = self._fd, None
        try:
            if self.platform_info.is_windows:
                os.lseek(fd, 0, os.SEEK_SET)
                msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(fd, fcntl.LOCK_UN)
            self.logger.debug(f"Released lock: {self.lock_file_path}")
            return True
        except OSError as e:
            self.logger.error(f"Error releasing lock {self.lock_file_path}: {e}")
            return False
        finally:
            # Closing the descriptor drops the lock even if unlocking failed
            os.close(fd)

    def is_locked(self) -> bool:
        """Check if the lock is currently held by this instance."""
        return self._fd is not None

    def __enter__(self):
        """Context manager entry."""
        if not self.acquire():
            raise LockContentionError(f"Could not acquire lock {self.lock_file_path} within {self.timeout}s")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.release()


class RepositoryLock(FileLock):
    """
    Lock guarding one repository checkout.

    The lock file is ``<local_path>.lock``, a sibling of the checkout, so it
    lives on the same volume and is visible to every pod mounting it.
    """

    def __init__(self, local_path: Path, timeout: float = 30.0):
        self.local_path = local_path
        super().__init__(local_path.with_name(f"{local_path.name}.lock"), timeout)


@contextmanager
def repository_lock(local_path: Path, timeout: float = 30.0):
    """
    Context manager for repository locking.

    Args:
        local_path: Checkout directory to lock
        timeout: Maximum time to wait for lock acquisition

    Yields:
        RepositoryLock instance

    Raises:
        LockContentionError: If lock cannot be acquired within timeout
    """
    lock = RepositoryLock(local_path, timeout)

    if not lock.acquire():
        raise LockContentionError(
            f"Another sync holds the lock for {local_path} (waited {timeout}s)"
        )
    try:
        yield lock
    finally:
        lock.release()
