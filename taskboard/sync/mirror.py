"""
Local keyed-by-id copy of the visible board.

Events carry full snapshots, so applying one is a plain replace, insert or
remove and re-applying it changes nothing.
"""

from typing import Dict, Iterable, List, Optional

from taskboard.models.task import TaskStatus
from taskboard.schemas.events import DomainEvent, EventType
from taskboard.schemas.task import TaskRead


class TaskMirror:
    def __init__(self, include_archived: bool = False):
        self.include_archived = include_archived
        self._tasks: Dict[int, TaskRead] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: int) -> bool:
        return task_id in self._tasks

    def get(self, task_id: int) -> Optional[TaskRead]:
        return self._tasks.get(task_id)

    def snapshot(self) -> Dict[int, TaskRead]:
        return dict(self._tasks)

    def by_status(self, status: TaskStatus) -> List[TaskRead]:
        """One board column, soonest deadline first."""
        column = [task for task in self._tasks.values() if task.status == status]
        return sorted(column, key=lambda task: (task.deadline, task.id))

    def replace_all(self, tasks: Iterable[TaskRead]) -> None:
        """Drop local state and load a full task set (initial load or resync)."""
        self._tasks = {}
        for task in tasks:
            self.upsert(task)

    def upsert(self, task: TaskRead) -> None:
        if task.status == TaskStatus.ARCHIVED and not self.include_archived:
            # Archived tasks leave the board
            self._tasks.pop(task.id, None)
            return
        self._tasks[task.id] = task

    def remove(self, task_id: int) -> None:
        self._tasks.pop(task_id, None)

    def apply(self, event: DomainEvent) -> None:
        if event.type == EventType.TASK_DELETED:
            self.remove(event.task_id)
        elif event.task is not None:
            self.upsert(event.task)
        for related in event.related:
            self.upsert(related)
