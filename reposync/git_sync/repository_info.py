"""Repository spec and workspace state data structures."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union


class WorkspaceState(Enum):
    """Enumeration of possible states of a repository's local path."""
    ABSENT = "absent"          # Nothing at local_path (or an empty directory)
    VALID = "valid"            # Complete checkout with readable metadata
    CORRUPTED = "corrupted"    # Partial clone or unreadable metadata


@dataclass(frozen=True)
class RepositorySpec:
    """A remote repository and the local path it is checked out to."""
    name: str
    remote_url: str
    branch: str
    local_path: Path

    def __post_init__(self):
        if isinstance(self.local_path, str):
            object.__setattr__(self, "local_path", Path(self.local_path))

    @property
    def lock_path(self) -> Path:
        """Lock file guarding mutations of local_path."""
        return self.local_path.with_name(f"{self.local_path.name}.lock")

    @property
    def sentinel_path(self) -> Path:
        """Marker present while a clone into local_path is incomplete."""
        return self.local_path.with_name(f"{self.local_path.name}.incomplete")

    @classmethod
    def from_dict(cls, data: dict, workspace_root: Union[str, Path, None] = None) -> "RepositorySpec":
        """
        Build a spec from a configuration mapping.

        Accepts ``remote_url`` or ``remoteURL`` and ``local_path`` or
        ``localPath``. When no local path is given the checkout goes to
        ``<workspace_root>/<name>``.
        """
        name = data.get("name", "")
        remote_url = data.get("remote_url", data.get("remoteURL", ""))
        branch = data.get("branch", "main")
        local_path = data.get("local_path", data.get("localPath"))

        if local_path is None:
            if workspace_root is None:
                raise ValueError(f"Repository '{name}' has no local_path and no workspace root is configured")
            local_path = Path(workspace_root) / name
        elif workspace_root is not None and not Path(local_path).is_absolute():
            local_path = Path(workspace_root) / local_path

        return cls(name=name, remote_url=remote_url, branch=branch, local_path=Path(local_path))
