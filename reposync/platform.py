"""Cross-platform compatibility utilities for reposync."""

import os
import platform
import subprocess
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Union


class PlatformType(Enum):
    """Supported platform types."""
    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    UNKNOWN = "unknown"


class PlatformInfo:
    """Platform information and utilities."""

    def __init__(self):
        """Initialize platform detection."""
        self._platform_type = self._detect_platform()

    def _detect_platform(self) -> PlatformType:
        """Detect the current platform."""
        system = platform.system().lower()

        if system == "windows":
            return PlatformType.WINDOWS
        elif system == "darwin":
            return PlatformType.MACOS
        elif system == "linux":
            return PlatformType.LINUX
        else:
            return PlatformType.UNKNOWN

    @property
    def is_windows(self) -> bool:
        """Check if running on Windows."""
        return self._platform_type == PlatformType.WINDOWS

    @property
    def is_unix(self) -> bool:
        """Check if running on Unix-like system (Linux/macOS)."""
        return self._platform_type in (PlatformType.LINUX, PlatformType.MACOS)


# Global platform info instance
_platform_info: Optional[PlatformInfo] = None


def get_platform_info() -> PlatformInfo:
    """Get the global platform info instance."""
    global _platform_info
    if _platform_info is None:
        _platform_info = PlatformInfo()
    return _platform_info


def normalize_path(path: Union[str, Path]) -> Path:
    """
    Normalize a path for the current platform.

    Args:
        path: Path to normalize

    Returns:
        Absolute path with ``~`` expanded
    """
    if isinstance(path, str):
        path = Path(path)

    return path.expanduser().resolve()


def get_platform_specific_defaults() -> Dict[str, Any]:
    """
    Get platform-specific configuration defaults.

    The workspace root defaults to ``/workspace`` on Unix, which is where the
    persistent volume is mounted for the init container.
    """
    platform_info = get_platform_info()

    defaults = {
        'workspace_root': Path("/workspace"),
        'log_level': "INFO",
        'concurrency_limit': 4,
        'retry_count': 3,
        'retry_backoff_base': 1.0,
        'retry_backoff_max': 30.0,
        'lock_timeout': 60.0,
    }

    if platform_info.is_windows:
        defaults.update({
            'workspace_root': Path.home() / "reposync-workspace",
            'retry_backoff_base': 1.5,  # Windows antivirus scanning slows git
        })
    elif not platform_info.is_unix:
        defaults['workspace_root'] = Path.home() / "reposync-workspace"

    return defaults


def get_git_executable() -> str:
    """Get the Git executable name for the current platform."""
    override = os.getenv("GIT_PYTHON_GIT_EXECUTABLE")
    if override:
        return override

    return "git.exe" if get_platform_info().is_windows else "git"


def validate_git_availability() -> tuple[bool, Optional[str]]:
    """
    Validate that Git is available on the current platform.

    Returns:
        Tuple of (is_available, error_message)
    """
    git_cmd = get_git_executable()

    try:
        result = subprocess.run(
            [git_cmd, "--version"],
            capture_output=True,
            text=True,
            timeout=10
        )

        if result.returncode == 0:
            return True, None
        else:
            return False, f"Git command failed: {result.stderr}"

    except FileNotFoundError:
        return False, f"Git executable '{git_cmd}' not found"
    except subprocess.TimeoutExpired:
        return False, "Git command timed out"
    except OSError as e:
        return False, f"Error checking Git availability: {e}"
