"""Validation of repository specs before any filesystem mutation."""

import re
from pathlib import Path
from typing import List, Optional

from ..errors import InvalidSpecError
from .repository_info import RepositorySpec


REPOSITORY_NAME_PATTERN = re.compile(r'^[A-Za-z0-9._-]+$')

# URL schemes git can fetch from without extra helpers
REMOTE_URL_PATTERNS = [
    re.compile(r'^https?://[^\s/@]+(@[^\s/]+)?/\S+$'),   # http(s)://host/path
    re.compile(r'^ssh://[^\s/]+/\S+$'),                   # ssh://[user@]host[:port]/path
    re.compile(r'^git://[^\s/]+/\S+$'),                   # git://host/path
    re.compile(r'^file://\S+$'),                          # file:///path
    re.compile(r'^[A-Za-z0-9._-]+@[A-Za-z0-9.-]+:\S+$'),  # scp-like git@host:path
]

# Characters git forbids anywhere in a ref name
FORBIDDEN_REF_CHARS = set(' ~^:?*[\\')


def validate_remote_url(remote_url: str) -> bool:
    """
    Check that a remote URL is something git can fetch from.

    Absolute local paths are accepted so that repositories on the same
    volume (and test fixtures) can be used as remotes.
    """
    if not isinstance(remote_url, str) or not remote_url.strip():
        return False

    if remote_url != remote_url.strip() or any(ord(char) < 32 for char in remote_url):
        return False

    # Remote helpers such as ext:: can run arbitrary commands
    if remote_url.startswith("ext::") or "::" in remote_url.split("/", 1)[0]:
        return False

    if any(pattern.match(remote_url) for pattern in REMOTE_URL_PATTERNS):
        return True

    return Path(remote_url).is_absolute()


def validate_branch_name(branch: str) -> bool:
    """
    Validate a branch name against git's ref-name rules.

    Mirrors ``git check-ref-format --branch`` closely enough to reject
    anything git would refuse before we touch the workspace.
    """
    if not isinstance(branch, str) or not branch:
        return False

    if branch.startswith(("-", "/")) or branch.endswith(("/", ".", ".lock")):
        return False

    if ".." in branch or "@{" in branch or "//" in branch or branch == "@":
        return False

    if any(ord(char) < 32 or ord(char) == 127 for char in branch):
        return False

    if any(char in FORBIDDEN_REF_CHARS for char in branch):
        return False

    # No path component may start with a dot or end with .lock
    for component in branch.split("/"):
        if component.startswith(".") or component.endswith(".lock"):
            return False

    return True


def validate_repository_name(name: str) -> bool:
    """Repository names become directory and lock file names."""
    if not isinstance(name, str) or name in (".", ".."):
        return False
    return bool(REPOSITORY_NAME_PATTERN.match(name))


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False


def collect_spec_errors(spec: RepositorySpec, workspace_root: Optional[Path] = None) -> List[str]:
    """Return every problem with a repository spec (empty when it is valid)."""
    errors = []

    if not validate_repository_name(spec.name):
        errors.append(f"Invalid repository name: {spec.name!r}")

    if not validate_remote_url(spec.remote_url):
        errors.append(f"Invalid remote URL for '{spec.name}': {spec.remote_url!r}")

    if not validate_branch_name(spec.branch):
        errors.append(f"Invalid branch name for '{spec.name}': {spec.branch!r}")

    local_path = Path(spec.local_path)
    if not local_path.is_absolute():
        errors.append(f"Local path for '{spec.name}' must be absolute: {local_path}")
    elif workspace_root is not None:
        if local_path.resolve() == Path(workspace_root).resolve():
            errors.append(f"Local path for '{spec.name}' cannot be the workspace root itself")
        elif not _is_within(local_path, Path(workspace_root)):
            errors.append(f"Local path for '{spec.name}' is outside the workspace root {workspace_root}: {local_path}")

    return errors


def validate_repository_spec(spec: RepositorySpec, workspace_root: Optional[Path] = None) -> None:
    """
    Validate a repository spec.

    Raises:
        InvalidSpecError: If the name, remote URL, branch or local path is malformed
    """
    errors = collect_spec_errors(spec, workspace_root)
    if errors:
        raise InvalidSpecError("; ".join(errors))


def display_remote_url(remote_url: str) -> str:
    """Strip credentials from an http(s) URL before it is logged."""
    return re.sub(r'^(https?://)[^/@\s]+@', r'\1***@', remote_url or "")
