"""Branch and commit helpers built on GitPython."""

import logging
from typing import Optional

from git import Repo, GitCommandError

from .cancellation import CancelToken
from .operations import run_git_command


logger = logging.getLogger('reposync.git_sync.branch_utils')


def remote_tracking_ref(branch: str) -> str:
    return f"refs/remotes/origin/{branch}"


def resolve_commit(repo: Repo, ref: str) -> Optional[str]:
    """Resolve a ref to a full commit SHA, or None if it does not exist."""
    try:
        return repo.git.rev_parse("--verify", "--quiet", f"{ref}^{{commit}}").strip() or None
    except GitCommandError:
        return None


def get_current_local_branch(repo: Repo) -> Optional[str]:
    """Name of the checked-out branch, or None when HEAD is detached."""
    if repo.head.is_detached:
        return None
    return repo.active_branch.name


def fetch_branch(repo: Repo, branch: str, token: CancelToken) -> Optional[str]:
    """
    Fetch a single branch from origin into its remote-tracking ref.

    The refspec is forced so an upstream history rewrite is visible locally
    and can be detected. FETCH_HEAD and tags are not written, so a fetch that
    brings nothing new leaves the repository metadata untouched.

    Returns:
        Commit SHA of the fetched remote branch
    """
    run_git_command(
        repo, token, "fetch",
        "--quiet", "--no-tags", "--no-write-fetch-head",
        "origin", f"+refs/heads/{branch}:{remote_tracking_ref(branch)}"
    )
    return resolve_commit(repo, remote_tracking_ref(branch))


def checkout_tracking_branch(repo: Repo, branch: str) -> Optional[str]:
    """
    Create or reset the local branch at origin/<branch>, track it and check it out.

    Returns:
        Commit SHA of the checked-out branch
    """
    logger.debug(f"Checking out {branch} tracking origin/{branch}")
    repo.git.checkout("--track", "-B", branch, remote_tracking_ref(branch))
    return resolve_commit(repo, f"refs/heads/{branch}")


def ensure_origin_url(repo: Repo, remote_url: str) -> bool:
    """
    Make sure origin points at remote_url.

    Returns:
        True if the configuration had to be changed
    """
    try:
        origin = repo.remote("origin")
    except ValueError:
        logger.info("Remote 'origin' missing, adding it")
        repo.create_remote("origin", remote_url)
        return True

    if origin.url == remote_url:
        return False

    logger.info("Remote 'origin' URL changed, updating local configuration")
    origin.set_url(remote_url)
    return True
