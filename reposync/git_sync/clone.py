"""Repository cloning for the sync routine using GitPython."""

import logging
from typing import Optional

from git import Repo

from ..errors import SyncCancelledError, SyncError
from .branch_utils import checkout_tracking_branch, fetch_branch
from .cancellation import CancelToken
from .operations import execute_git_operation_with_retry, prepare_repo
from .repository_info import RepositorySpec
from .state import clear_incomplete, mark_incomplete, remove_checkout
from .validation import display_remote_url


logger = logging.getLogger('reposync.git_sync.clone')


def _clone_once(spec: RepositorySpec, token: CancelToken) -> str:
    """One clone attempt from an empty local path."""
    remove_checkout(spec)
    spec.local_path.mkdir(parents=True, exist_ok=True)

    with prepare_repo(Repo.init(spec.local_path)) as repo:
        repo.create_remote("origin", spec.remote_url)
        remote_commit = fetch_branch(repo, spec.branch, token)
        if remote_commit is None:
            raise SyncError(f"Fetched branch '{spec.branch}' but origin/{spec.branch} does not resolve")

        token.raise_if_cancelled(f"clone of {spec.name}")
        return checkout_tracking_branch(repo, spec.branch)


def clone_repository(
    spec: RepositorySpec,
    token: CancelToken,
    retry_count: int = 3,
    retry_backoff_base: float = 1.0,
    retry_backoff_max: Optional[float] = None
) -> str:
    """
    Clone ``spec.branch`` of ``spec.remote_url`` into ``spec.local_path``.

    The clone is done as init + fetch + checkout so every network step can be
    cancelled. The sentinel ``<local_path>.incomplete`` is written before the
    first byte lands in local_path and removed only after the checkout has
    finished, so an interrupted clone is always recognisable as corrupted.

    On cancellation the partial directory and sentinel are left for the next
    run to clean up. On any other failure they are removed, leaving the path
    absent again.

    Returns:
        Head commit of the new checkout

    Raises:
        SyncError: With the classified kind when the clone fails
        SyncCancelledError: When cancelled
    """
    logger.info(f"Cloning {display_remote_url(spec.remote_url)} ({spec.branch}) into {spec.local_path}")

    mark_incomplete(spec)
    try:
        head_commit = execute_git_operation_with_retry(
            lambda: _clone_once(spec, token),
            f"clone {spec.name}",
            token,
            retry_count,
            retry_backoff_base,
            retry_backoff_max
        )
    except SyncCancelledError:
        logger.warning(f"Clone of '{spec.name}' cancelled, {spec.local_path} left marked incomplete")
        raise
    except Exception:
        try:
            remove_checkout(spec)
            clear_incomplete(spec)
        except OSError as cleanup_error:
            # Sentinel stays, so the next run treats the path as corrupted
            logger.error(f"Failed to remove partial clone at {spec.local_path}: {cleanup_error}")
        raise

    clear_incomplete(spec)
    logger.info(f"Repository '{spec.name}' cloned at {head_commit}")
    return head_commit
