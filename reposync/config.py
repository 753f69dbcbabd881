"""Configuration management for reposync."""

import json
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Any, Dict

from .platform import get_platform_specific_defaults, normalize_path, validate_git_availability
from .git_sync.repository_info import RepositorySpec

try:
    from dotenv import load_dotenv
    load_dotenv()  # Load .env file if it exists
except ImportError:
    # python-dotenv not available, continue without it
    pass


@dataclass
class Config:
    """Configuration for a sync run with validation and defaults."""

    # Workspace
    workspace_root: Path = field(default_factory=lambda: get_platform_specific_defaults()['workspace_root'])
    repositories: List[RepositorySpec] = field(default_factory=list)

    # Orchestration
    concurrency_limit: int = 4
    fail_fast: bool = False

    # Network retries
    retry_count: int = 3
    retry_backoff_base: float = 1.0
    retry_backoff_max: float = 30.0

    # Locking and cancellation
    lock_timeout: float = 60.0
    sync_timeout: Optional[float] = None

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.workspace_root, str):
            self.workspace_root = Path(self.workspace_root)
        self.workspace_root = normalize_path(self.workspace_root)

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        self.log_level = self.log_level.upper()
        if self.log_level not in valid_log_levels:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {valid_log_levels}")

        if self.concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")

        if self.retry_count < 1:
            raise ValueError("retry_count must be at least 1")

        if self.retry_backoff_base < 0 or self.retry_backoff_max < 0:
            raise ValueError("retry backoff durations must be non-negative")

        if self.lock_timeout < 0:
            raise ValueError("lock_timeout must be non-negative")

        if self.sync_timeout is not None and self.sync_timeout <= 0:
            raise ValueError("sync_timeout must be positive when set")

        self.repositories = [
            spec if isinstance(spec, RepositorySpec) else RepositorySpec.from_dict(spec, self.workspace_root)
            for spec in self.repositories
        ]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _load_repository_entries() -> tuple[List[Dict[str, Any]], Dict[str, Any]]:
    """
    Read repository entries from REPOSYNC_CONFIG_FILE or REPOSYNC_REPOSITORIES.

    The file may be a JSON list of repositories or an object with a
    ``repositories`` list and optional global options (``concurrencyLimit``,
    ``failFast``, ``retryCount``, ``retryBackoffBase``, ``lockTimeout``).
    """
    config_file = os.getenv("REPOSYNC_CONFIG_FILE")
    inline = os.getenv("REPOSYNC_REPOSITORIES")

    if config_file:
        raw = Path(config_file).expanduser().read_text(encoding="utf-8")
    elif inline:
        raw = inline
    else:
        return [], {}

    data = json.loads(raw)
    if isinstance(data, list):
        return data, {}
    if isinstance(data, dict):
        options = {key: value for key, value in data.items() if key != "repositories"}
        return list(data.get("repositories", [])), options
    raise ValueError("Repository configuration must be a JSON list or object")


# Option names accepted in the JSON file, mapped to Config fields
FILE_OPTION_NAMES = {
    "workspaceRoot": "workspace_root",
    "concurrencyLimit": "concurrency_limit",
    "failFast": "fail_fast",
    "retryCount": "retry_count",
    "retryBackoffBase": "retry_backoff_base",
    "retryBackoffMax": "retry_backoff_max",
    "lockTimeout": "lock_timeout",
    "syncTimeout": "sync_timeout",
    "logLevel": "log_level",
}


def load_configuration() -> Config:
    """
    Load configuration from the repository file and environment variables.

    Environment variables override options from the JSON file, which override
    platform defaults.
    """
    try:
        defaults = get_platform_specific_defaults()
        entries, file_options = _load_repository_entries()

        options: Dict[str, Any] = dict(defaults)
        for key, value in file_options.items():
            if key in FILE_OPTION_NAMES:
                options[FILE_OPTION_NAMES[key]] = value
            else:
                logging.getLogger('reposync.config').warning(f"Ignoring unknown configuration option: {key}")

        env_overrides = {
            "workspace_root": ("REPOSYNC_WORKSPACE_ROOT", Path),
            "concurrency_limit": ("REPOSYNC_CONCURRENCY_LIMIT", int),
            "fail_fast": ("REPOSYNC_FAIL_FAST", _parse_bool),
            "retry_count": ("REPOSYNC_RETRY_COUNT", int),
            "retry_backoff_base": ("REPOSYNC_RETRY_BACKOFF_BASE", float),
            "retry_backoff_max": ("REPOSYNC_RETRY_BACKOFF_MAX", float),
            "lock_timeout": ("REPOSYNC_LOCK_TIMEOUT", float),
            "sync_timeout": ("REPOSYNC_SYNC_TIMEOUT", float),
            "log_level": ("REPOSYNC_LOG_LEVEL", str),
        }
        for field_name, (env_name, convert) in env_overrides.items():
            value = os.getenv(env_name)
            if value is not None and value != "":
                options[field_name] = convert(value)

        workspace_root = normalize_path(options["workspace_root"])
        repositories = [RepositorySpec.from_dict(entry, workspace_root) for entry in entries]

        return Config(
            workspace_root=workspace_root,
            repositories=repositories,
            concurrency_limit=int(options.get("concurrency_limit", 4)),
            fail_fast=bool(options.get("fail_fast", False)),
            retry_count=int(options["retry_count"]),
            retry_backoff_base=float(options["retry_backoff_base"]),
            retry_backoff_max=float(options["retry_backoff_max"]),
            lock_timeout=float(options["lock_timeout"]),
            sync_timeout=float(options["sync_timeout"]) if options.get("sync_timeout") is not None else None,
            log_level=str(options["log_level"]).upper()
        )
    except (ValueError, TypeError, OSError) as e:
        raise ValueError(f"Configuration error: {e}")


def validate_configuration(config: Config) -> List[str]:
    """
    Validate configuration and return any errors or warnings.

    ERROR entries are run-level problems that make syncing impossible.
    Problems with a single repository are only WARNING entries: that
    repository fails with InvalidSpec in its own result and the others
    still run.
    """
    from .git_sync.validation import collect_spec_errors

    errors = []

    if not config.repositories:
        errors.append("WARNING: No repositories configured, nothing to sync")

    seen_names: Dict[str, int] = {}
    seen_paths: Dict[Path, str] = {}
    for spec in config.repositories:
        for problem in collect_spec_errors(spec, config.workspace_root):
            errors.append(f"WARNING: {problem}")

        seen_names[spec.name] = seen_names.get(spec.name, 0) + 1
        resolved = Path(spec.local_path).resolve()
        if resolved in seen_paths and seen_paths[resolved] != spec.name:
            errors.append(
                f"WARNING: Repositories '{seen_paths[resolved]}' and '{spec.name}' share local path {spec.local_path}"
            )
        seen_paths.setdefault(resolved, spec.name)

    for name, count in seen_names.items():
        if count > 1:
            errors.append(f"WARNING: Repository name '{name}' is configured {count} times")

    # Check workspace root permissions
    try:
        config.workspace_root.mkdir(parents=True, exist_ok=True)
        test_file = config.workspace_root / ".reposync_write_test"
        test_file.write_text("test")
        test_file.unlink()
    except PermissionError:
        errors.append(f"ERROR: No write permission for workspace root: {config.workspace_root}")
    except OSError as e:
        errors.append(f"ERROR: Cannot access workspace root {config.workspace_root}: {e}")

    git_available, git_error = validate_git_availability()
    if not git_available:
        errors.append(f"ERROR: {git_error}")

    if config.concurrency_limit > 16:
        errors.append("WARNING: High concurrency_limit may saturate network or disk I/O")

    if config.lock_timeout == 0:
        errors.append("WARNING: lock_timeout is 0, a sync will fail immediately if another holds the lock")

    return errors
