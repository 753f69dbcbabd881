"""Fast-forward synchronization of an existing checkout with its remote branch."""

import logging
from typing import Optional, Tuple

from git import Repo, GitCommandError

from ..errors import CorruptWorkspaceError, DivergedHistoryError
from .branch_utils import (
    checkout_tracking_branch, ensure_origin_url, fetch_branch,
    get_current_local_branch, resolve_commit
)
from .cancellation import CancelToken
from .error_strategies import classify_git_error
from .operations import execute_git_operation_with_retry, prepare_repo
from .repository_info import RepositorySpec
from .utils import SyncOutcome


logger = logging.getLogger('reposync.git_sync.repository_sync')


def synchronize_with_remote(
    spec: RepositorySpec,
    token: CancelToken,
    retry_count: int = 3,
    retry_backoff_base: float = 1.0,
    retry_backoff_max: Optional[float] = None
) -> Tuple[SyncOutcome, str]:
    """
    Bring a valid checkout up to date with ``origin/<branch>``.

    This function performs the following operations:
    1. Points origin at spec.remote_url if the configured URL differs
    2. Fetches the branch (retried on transient network errors)
    3. Compares the local branch with the fetched remote branch
    4. Fast-forwards when the local branch is an ancestor of the remote one

    Local commits, unrelated histories and upstream force-pushes all leave the
    checkout untouched and raise DivergedHistoryError. Nothing is ever reset.

    Returns:
        Tuple of (UP_TO_DATE or PULLED, head commit)

    Raises:
        DivergedHistoryError: If a fast-forward is impossible
        NetworkUnavailableError: If the fetch keeps failing
        SyncCancelledError: When cancelled
    """
    with prepare_repo(Repo(spec.local_path)) as repo:
        ensure_origin_url(repo, spec.remote_url)

        token.raise_if_cancelled(f"sync of {spec.name}")
        remote_commit = execute_git_operation_with_retry(
            lambda: fetch_branch(repo, spec.branch, token),
            f"fetch {spec.name}",
            token,
            retry_count,
            retry_backoff_base,
            retry_backoff_max
        )
        if remote_commit is None:
            raise CorruptWorkspaceError(
                f"Fetched branch '{spec.branch}' but origin/{spec.branch} does not resolve in {spec.local_path}"
            )

        local_commit = resolve_commit(repo, f"refs/heads/{spec.branch}")
        current_branch = get_current_local_branch(repo)

        if local_commit is None:
            # Checkout exists but was made for another branch
            logger.info(f"Local branch '{spec.branch}' missing in '{spec.name}', creating it from origin")
            token.raise_if_cancelled(f"sync of {spec.name}")
            return SyncOutcome.PULLED, checkout_tracking_branch(repo, spec.branch)

        if local_commit == remote_commit:
            if current_branch == spec.branch:
                logger.debug(f"Repository '{spec.name}' already at {local_commit}")
                return SyncOutcome.UP_TO_DATE, local_commit

            logger.info(f"Switching '{spec.name}' to branch '{spec.branch}'")
            _run_local(repo, "checkout", spec.branch)
            return SyncOutcome.PULLED, local_commit

        if not repo.is_ancestor(local_commit, remote_commit):
            if repo.is_ancestor(remote_commit, local_commit):
                reason = "local branch has commits that are not on the remote branch"
            else:
                reason = "local and remote branches have diverged or the remote history was rewritten"
            raise DivergedHistoryError(
                f"Cannot fast-forward '{spec.name}' ({spec.branch}): {reason}; "
                f"local {local_commit[:12]}, remote {remote_commit[:12]}",
                local_commit=local_commit,
                remote_commit=remote_commit
            )

        token.raise_if_cancelled(f"sync of {spec.name}")
        logger.info(f"Fast-forwarding '{spec.name}' from {local_commit[:12]} to {remote_commit[:12]}")

        if current_branch != spec.branch:
            _run_local(repo, "checkout", spec.branch)
        _run_local(repo, "merge", "--ff-only", "--quiet", remote_commit)

        head_commit = resolve_commit(repo, f"refs/heads/{spec.branch}")
        return SyncOutcome.PULLED, head_commit


def _run_local(repo: Repo, command: str, *args) -> None:
    """
    Run a local (non-network) git command that changes the working tree.

    Refusals caused by local modifications are reported as diverged history:
    the checkout holds changes the remote does not have.
    """
    try:
        getattr(repo.git, command)(*args)
    except GitCommandError as e:
        stderr = (e.stderr or "").strip() or str(e)
        lowered = stderr.lower()
        if "would be overwritten" in lowered or "not possible to fast-forward" in lowered:
            raise DivergedHistoryError(
                f"git {command} refused in {repo.working_dir}: local changes would be overwritten: {stderr}"
            ) from e
        raise CorruptWorkspaceError(
            f"git {command} failed in {repo.working_dir} ({classify_git_error(stderr).value}): {stderr}"
        ) from e
