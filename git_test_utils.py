"""Helpers shared by the reposync test scripts: throwaway upstream repositories."""

import subprocess
from pathlib import Path
from typing import Tuple

from reposync.config import Config
from reposync.git_sync import RepositorySpec
from reposync.platform import get_git_executable


GIT_IDENTITY = [
    "-c", "user.name=Test User",
    "-c", "user.email=test@example.com",
    "-c", "commit.gpgsign=false",
]

# Nothing listens on the discard port, so git fails fast with "connection refused"
UNREACHABLE_URL = "http://127.0.0.1:9/unreachable.git"

# Keep git away from any proxy configured in the environment
NO_PROXY_ENV = {"NO_PROXY": "127.0.0.1", "no_proxy": "127.0.0.1"}


def git(*args: str, cwd: Path) -> str:
    """Run git with a fixed identity and return stdout."""
    result = subprocess.run(
        [get_git_executable(), *GIT_IDENTITY, *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True
    )
    return result.stdout.strip()


def create_remote_repository(temp_dir: Path, branch: str = "main") -> Tuple[Path, Path]:
    """
    Create a bare "remote" repository with one commit on ``branch``.

    Returns:
        Tuple of (bare remote path, upstream working copy used to push new commits)
    """
    remote_dir = temp_dir / "remote.git"
    work_dir = temp_dir / "upstream"
    temp_dir.mkdir(parents=True, exist_ok=True)

    git("init", "--bare", str(remote_dir), cwd=temp_dir)
    git("symbolic-ref", "HEAD", f"refs/heads/{branch}", cwd=remote_dir)

    git("init", str(work_dir), cwd=temp_dir)
    git("symbolic-ref", "HEAD", f"refs/heads/{branch}", cwd=work_dir)
    (work_dir / "README.md").write_text("# Test Repository\n\nUpstream for reposync tests.\n")
    git("add", "README.md", cwd=work_dir)
    git("commit", "-m", "Initial commit", cwd=work_dir)
    git("remote", "add", "origin", str(remote_dir), cwd=work_dir)
    git("push", "origin", f"{branch}:refs/heads/{branch}", cwd=work_dir)

    return remote_dir, work_dir


def push_commit(work_dir: Path, filename: str, content: str, branch: str = "main") -> str:
    """Commit a file in the upstream working copy, push it and return the new SHA."""
    (work_dir / filename).write_text(content)
    git("add", filename, cwd=work_dir)
    git("commit", "-m", f"Update {filename}", cwd=work_dir)
    git("push", "origin", f"{branch}:refs/heads/{branch}", cwd=work_dir)
    return git("rev-parse", "HEAD", cwd=work_dir)


def rev_parse(repo_dir: Path, ref: str = "HEAD") -> str:
    return git("rev-parse", ref, cwd=repo_dir)


def create_test_config(temp_dir: Path, **overrides) -> Config:
    """Create a test configuration with a temporary workspace and fast retries."""
    options = dict(
        workspace_root=temp_dir / "workspace",
        retry_count=2,
        retry_backoff_base=0.0,
        retry_backoff_max=0.0,
        lock_timeout=5.0,
        log_level="DEBUG"
    )
    options.update(overrides)
    return Config(**options)


def make_spec(config: Config, remote_url, name: str = "assisted-service", branch: str = "main") -> RepositorySpec:
    return RepositorySpec(
        name=name,
        remote_url=str(remote_url),
        branch=branch,
        local_path=config.workspace_root / name
    )
