"""Git synchronization of repository checkouts for reposync."""

from .syncer import RepositorySyncer
from .utils import SyncOutcome, SyncResult, create_sync_result
from .repository_info import RepositorySpec, WorkspaceState
from .cancellation import CancelToken
from .operations import backoff_delay
from .state import detect_workspace_state

__all__ = [
    'RepositorySyncer',
    'SyncOutcome',
    'SyncResult',
    'create_sync_result',
    'RepositorySpec',
    'WorkspaceState',
    'CancelToken',
    'backoff_delay',
    'detect_workspace_state'
]
