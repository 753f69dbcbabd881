"""Filesystem-backed workspace state for a single repository."""

import logging
import os
import shutil
import stat
import sys
from pathlib import Path
from typing import List

from git import Repo, InvalidGitRepositoryError, NoSuchPathError

from .repository_info import RepositorySpec, WorkspaceState


logger = logging.getLogger('reposync.git_sync.state')


def _has_valid_metadata(local_path: Path) -> bool:
    """Check that local_path holds a git checkout whose HEAD resolves to a commit."""
    if not (local_path / ".git").exists():
        return False

    try:
        with Repo(local_path) as repo:
            return repo.head.is_valid()
    except (InvalidGitRepositoryError, NoSuchPathError):
        return False
    except (OSError, ValueError) as e:
        # Unreadable refs or a truncated HEAD file
        logger.debug(f"Could not read repository metadata at {local_path}: {e}")
        return False


def detect_workspace_state(spec: RepositorySpec) -> WorkspaceState:
    """
    Detect the state of a repository's local path.

    - ABSENT: the path does not exist, or is an empty directory (for example
      a freshly mounted volume)
    - CORRUPTED: the clone sentinel is present, or the path exists without
      readable git metadata
    - VALID: complete checkout
    """
    local_path = spec.local_path

    if spec.sentinel_path.exists():
        logger.debug(f"Workspace state for '{spec.name}': CORRUPTED (interrupted clone)")
        return WorkspaceState.CORRUPTED

    if not local_path.exists():
        logger.debug(f"Workspace state for '{spec.name}': ABSENT")
        return WorkspaceState.ABSENT

    if local_path.is_dir() and not any(local_path.iterdir()):
        logger.debug(f"Workspace state for '{spec.name}': ABSENT (empty directory)")
        return WorkspaceState.ABSENT

    if not local_path.is_dir() or not _has_valid_metadata(local_path):
        logger.debug(f"Workspace state for '{spec.name}': CORRUPTED (missing or unreadable metadata)")
        return WorkspaceState.CORRUPTED

    logger.debug(f"Workspace state for '{spec.name}': VALID")
    return WorkspaceState.VALID


def mark_incomplete(spec: RepositorySpec) -> None:
    """Write the sentinel marking local_path as an unfinished clone."""
    spec.sentinel_path.parent.mkdir(parents=True, exist_ok=True)
    spec.sentinel_path.write_text(f"clone of {spec.branch} in progress by pid {os.getpid()}\n")


def clear_incomplete(spec: RepositorySpec) -> None:
    """Remove the sentinel once local_path holds a complete checkout."""
    try:
        spec.sentinel_path.unlink()
    except FileNotFoundError:
        pass


def remove_stale_git_locks(spec: RepositorySpec) -> List[Path]:
    """
    Delete lock files a killed git process left in the checkout's .git.

    Git refuses to update the index, HEAD, config or a ref while its
    ``.lock`` file exists. Must only be called while holding the repository
    lock, when no git command can be running in this checkout.

    Returns:
        The lock files that were removed
    """
    git_dir = spec.local_path / ".git"
    if not git_dir.is_dir():
        return []

    candidates = list(git_dir.glob("*.lock"))
    refs_dir = git_dir / "refs"
    if refs_dir.is_dir():
        candidates.extend(refs_dir.rglob("*.lock"))

    removed = []
    for lock_file in candidates:
        if not lock_file.is_file():
            continue
        logger.warning(f"Removing stale git lock {lock_file} in '{spec.name}'")
        try:
            lock_file.unlink()
        except FileNotFoundError:
            continue
        removed.append(lock_file)
    return removed


def _make_writable_and_retry(func, path, exc):
    # Git object files are read-only; rmtree cannot delete them on Windows
    os.chmod(path, stat.S_IWRITE)
    func(path)


def _rmtree(path: Path) -> None:
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_make_writable_and_retry)
    else:
        shutil.rmtree(path, onerror=_make_writable_and_retry)


def remove_checkout(spec: RepositorySpec) -> None:
    """
    Delete whatever is at local_path.

    A mount point cannot be removed, so only its contents are deleted.
    The sentinel is left alone; the caller clears it after a successful clone.
    """
    local_path = spec.local_path

    if not local_path.exists() and not local_path.is_symlink():
        return

    if local_path.is_symlink() or local_path.is_file():
        local_path.unlink()
        return

    if os.path.ismount(local_path):
        logger.info(f"Clearing contents of mount point {local_path}")
        for child in local_path.iterdir():
            if child.is_dir() and not child.is_symlink():
                _rmtree(child)
            else:
                child.unlink()
        return

    logger.info(f"Removing {local_path}")
    _rmtree(local_path)
