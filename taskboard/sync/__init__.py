"""Client-side board synchronization: API client, local mirror, status guard."""

from taskboard.sync.api_client import BoardApiClient, BoardApiError
from taskboard.sync.board_sync import BoardSyncCore
from taskboard.sync.mirror import TaskMirror
from taskboard.sync.status_guard import StatusChangeGuard

__all__ = [
    "BoardApiClient",
    "BoardApiError",
    "BoardSyncCore",
    "StatusChangeGuard",
    "TaskMirror",
]
