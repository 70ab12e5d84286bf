"""
Task business logic service (the authoritative task store).

Every mutation validates before writing, commits as one unit, and only then
publishes exactly one domain event carrying full snapshots.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.permissions import (
    Principal,
    can_archive,
    can_change_status,
    can_contribute,
    can_create_task,
    can_delete_task,
    can_edit_task,
)
from taskboard.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from taskboard.models.task import Task, TaskStatus
from taskboard.repositories.comment_repository import CommentRepository
from taskboard.repositories.task_repository import TaskRepository
from taskboard.repositories.user_repository import UserRepository
from taskboard.schemas.comment import CommentRead
from taskboard.schemas.events import ActorRef, DomainEvent, EventType
from taskboard.schemas.task import (
    AssignRequest,
    SplitRecordRead,
    SplitResult,
    SubtaskSpec,
    TaskCreate,
    TaskRead,
    TaskUpdate,
)
from taskboard.services.event_broadcaster import EventBroadcaster
from taskboard.utils.time import as_utc

logger = logging.getLogger(__name__)

# Columns a caller may set directly on create/update
EDITABLE_FIELDS = (
    "title",
    "deadline",
    "goal",
    "description",
    "project_link",
    "project_id",
    "external_project_id",
    "priority",
    "complexity",
    "role_assignments",
)


def _clean_title(title: Optional[str], label: str = "Task") -> str:
    if title is None or not title.strip():
        raise InvalidArgumentError(f"{label} title is required")
    return title.strip()


def _column_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """Convert schema values (enums, naive datetimes) into column values."""
    result = {}
    for field, value in values.items():
        if field not in EDITABLE_FIELDS:
            continue
        if hasattr(value, "value"):
            value = value.value
        if field == "deadline" and value is not None:
            value = as_utc(value)
        if field in ("goal", "description") and isinstance(value, str):
            value = value.strip()
        result[field] = value
    return result


class TaskService:
    """Service for task business logic."""

    def __init__(self, db: AsyncSession, broadcaster: Optional[EventBroadcaster] = None):
        self.db = db
        self.repository = TaskRepository(db)
        self.users = UserRepository(db)
        self.comments = CommentRepository(db)
        self.broadcaster = broadcaster

    # ---- helpers ----

    async def _require_task(self, task_id: int, for_update: bool = False) -> Task:
        task = await self.repository.get_by_id(task_id, for_update=for_update)
        if not task:
            raise NotFoundError(f"Task {task_id} not found", {"task_id": task_id})
        return task

    async def _snapshot(self, task: Task) -> TaskRead:
        assignees = await self.repository.get_assignee_ids(task.id)
        return TaskRead.from_task(task, assignees)

    async def _snapshots(self, tasks: List[Task]) -> List[TaskRead]:
        assignee_map = await self.repository.get_assignee_map(task.id for task in tasks)
        return [TaskRead.from_task(task, assignee_map.get(task.id, [])) for task in tasks]

    async def _validate_assignees(self, user_ids: Iterable[int]) -> None:
        unavailable = await self.users.find_unavailable(user_ids)
        if unavailable:
            raise InvalidArgumentError(
                f"User with id {unavailable[0]} is not an active user",
                {"user_ids": unavailable},
            )

    def _publish(self, event: DomainEvent) -> None:
        if self.broadcaster is not None:
            self.broadcaster.publish(event)

    @staticmethod
    def _actor(principal: Principal) -> ActorRef:
        return ActorRef(id=principal.id, role=principal.role)

    # ---- reads ----

    async def get_task(self, task_id: int) -> TaskRead:
        """Get a task snapshot by ID."""
        return await self._snapshot(await self._require_task(task_id))

    async def list_tasks(self, **filters) -> List[TaskRead]:
        """List tasks; archived tasks only when asked for."""
        return await self._snapshots(await self.repository.list(**filters))

    async def list_archived(self) -> List[TaskRead]:
        return await self.list_tasks(status=TaskStatus.ARCHIVED.value)

    async def list_overdue(self) -> List[TaskRead]:
        return await self._snapshots(await self.repository.list_overdue())

    async def list_for_principal(self, principal: Principal) -> List[TaskRead]:
        return await self._snapshots(await self.repository.list_for_assignee(principal.id))

    async def list_subtasks(self, parent_task_id: int) -> List[TaskRead]:
        await self._require_task(parent_task_id)
        return await self._snapshots(await self.repository.list_children(parent_task_id))

    async def list_split_records(self, parent_task_id: int) -> List[SplitRecordRead]:
        await self._require_task(parent_task_id)
        records = await self.repository.list_split_records(parent_task_id)
        return [SplitRecordRead.model_validate(record) for record in records]

    # ---- create / update / assign ----

    async def create_task(self, data: TaskCreate, principal: Principal) -> TaskRead:
        """Create a new task in status unassigned."""
        if not can_create_task(principal):
            raise ForbiddenError("No permission to create tasks")

        values = _column_values(data.model_dump())
        values["title"] = _clean_title(data.title)
        if data.deadline is None:
            raise InvalidArgumentError("Task deadline is required")
        await self._validate_assignees(data.assignees)

        try:
            task = await self.repository.create(values, created_by=principal.id)
            if data.assignees:
                await self.repository.replace_assignees(task.id, data.assignees)
            snapshot = await self._snapshot(task)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        self._publish(DomainEvent(
            type=EventType.TASK_CREATED,
            task_id=snapshot.id,
            task=snapshot,
            actor=self._actor(principal),
        ))
        logger.info("Task %s created by user %s", snapshot.id, principal.id)
        return snapshot

    async def update_task(self, task_id: int, data: TaskUpdate, principal: Principal) -> TaskRead:
        """Partial update; fields that were not sent keep their values."""
        task = await self._require_task(task_id, for_update=True)
        if not can_edit_task(principal, task.created_by):
            raise ForbiddenError("No permission to edit this task")

        sent = data.model_dump(exclude_unset=True)
        if "title" in sent:
            sent["title"] = _clean_title(sent["title"])
        if "deadline" in sent and sent["deadline"] is None:
            raise InvalidArgumentError("Task deadline is required")
        if "role_assignments" in sent and sent["role_assignments"] is None:
            sent["role_assignments"] = {}
        if "description" in sent and sent["description"] is None:
            sent["description"] = ""
        for field in ("priority", "complexity"):
            if field in sent and sent[field] is None:
                raise InvalidArgumentError(f"Task {field} cannot be cleared")
        values = _column_values(sent)

        try:
            if values:
                await self.repository.update_fields(task, values)
            snapshot = await self._snapshot(task)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        self._publish(DomainEvent(
            type=EventType.TASK_UPDATED,
            task_id=task_id,
            task=snapshot,
            actor=self._actor(principal),
        ))
        logger.info("Task %s updated by user %s (%s)", task_id, principal.id, ", ".join(sorted(values)))
        return snapshot

    async def assign(self, task_id: int, data: AssignRequest, principal: Principal) -> TaskRead:
        """Replace the assignee set and role map wholesale."""
        task = await self._require_task(task_id, for_update=True)
        if not can_edit_task(principal, task.created_by):
            raise ForbiddenError("No permission to assign this task")
        await self._validate_assignees(data.user_ids)

        old_assignees = await self.repository.get_assignee_ids(task_id)
        try:
            new_assignees = await self.repository.replace_assignees(task_id, data.user_ids)
            await self.repository.update_fields(task, {"role_assignments": dict(data.role_assignments)})
            snapshot = TaskRead.from_task(task, new_assignees)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        self._publish(DomainEvent(
            type=EventType.TASK_ASSIGNEES_CHANGED,
            task_id=task_id,
            task=snapshot,
            actor=self._actor(principal),
            old_assignees=old_assignees,
            new_assignees=new_assignees,
        ))
        logger.info("Task %s assignees %s -> %s by user %s", task_id, old_assignees, new_assignees, principal.id)
        return snapshot

    # ---- status machine ----

    async def change_status(self, task_id: int, status: Any, principal: Principal) -> TaskRead:
        """
        Move a task between columns.

        Non-archived states move freely among themselves. The archived edges
        are only done -> archived and archived -> done, and those go through
        the archive rules.
        """
        try:
            target = TaskStatus(status)
        except ValueError:
            raise InvalidArgumentError(f"Unknown status: {status}", {"status": str(status)})

        if target == TaskStatus.ARCHIVED:
            return await self.archive(task_id, principal)

        task = await self._require_task(task_id, for_update=True)
        current = TaskStatus(task.status)
        if current == TaskStatus.ARCHIVED:
            if target == TaskStatus.DONE:
                return await self._unarchive(task, principal)
            raise InvalidArgumentError(
                "Archived tasks can only be restored to done",
                {"from": current.value, "to": target.value},
            )

        assignees = await self.repository.get_assignee_ids(task_id)
        if not can_change_status(principal, assignees):
            raise ForbiddenError("No permission to change this status")

        return await self._set_status(task, current, target, principal)

    async def archive(self, task_id: int, principal: Principal) -> TaskRead:
        """done -> archived; requires the manage-tasks capability."""
        task = await self._require_task(task_id, for_update=True)
        if not can_archive(principal):
            raise ForbiddenError("No permission to archive this task")
        current = TaskStatus(task.status)
        if current != TaskStatus.DONE:
            raise InvalidArgumentError(
                "Only done tasks can be archived",
                {"from": current.value, "to": TaskStatus.ARCHIVED.value},
            )
        return await self._set_status(task, current, TaskStatus.ARCHIVED, principal)

    async def unarchive(self, task_id: int, principal: Principal) -> TaskRead:
        """archived -> done; requires the manage-tasks capability."""
        task = await self._require_task(task_id, for_update=True)
        return await self._unarchive(task, principal)

    async def _unarchive(self, task: Task, principal: Principal) -> TaskRead:
        if not can_archive(principal):
            raise ForbiddenError("No permission to unarchive this task")
        current = TaskStatus(task.status)
        if current != TaskStatus.ARCHIVED:
            raise InvalidArgumentError(
                "Task is not archived",
                {"from": current.value, "to": TaskStatus.DONE.value},
            )
        return await self._set_status(task, current, TaskStatus.DONE, principal)

    async def _set_status(
        self,
        task: Task,
        current: TaskStatus,
        target: TaskStatus,
        principal: Principal,
    ) -> TaskRead:
        try:
            await self.repository.set_status(task, target)
            snapshot = await self._snapshot(task)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        self._publish(DomainEvent(
            type=EventType.TASK_STATUS_CHANGED,
            task_id=snapshot.id,
            task=snapshot,
            actor=self._actor(principal),
            old_status=current,
            new_status=target,
        ))
        logger.info("Task %s %s -> %s by user %s", snapshot.id, current.value, target.value, principal.id)
        return snapshot

    # ---- split ----

    async def split_task(self, parent_id: int, subtasks: List[SubtaskSpec], principal: Principal) -> SplitResult:
        """
        Split a task into ordered subtasks as one all-or-nothing unit.

        Every subtask is validated before the first insert. Children start
        unassigned with is_subtask set, each gets a split record, and the
        parent is forced to in_progress in the same transaction. Any failure
        rolls back every insert and the parent status change.

        Returns:
            Parent id and the new child ids in input order
        """
        if not subtasks:
            raise InvalidArgumentError("At least one subtask is required")

        prepared = []
        for index, spec in enumerate(subtasks):
            label = f"Subtask {index + 1}"
            values = _column_values(spec.model_dump())
            values["title"] = _clean_title(spec.title, label)
            if spec.deadline is None:
                raise InvalidArgumentError(f"{label} deadline is required", {"index": index})
            prepared.append((values, list(spec.assignees)))

        parent = await self._require_task(parent_id, for_update=True)
        parent_assignees = await self.repository.get_assignee_ids(parent_id)
        if not can_contribute(principal, parent_assignees):
            raise ForbiddenError("No permission to split this task")
        old_status = TaskStatus(parent.status)
        if old_status == TaskStatus.ARCHIVED:
            raise InvalidArgumentError("Archived tasks cannot be split", {"task_id": parent_id})
        await self._validate_assignees(
            user_id for _, assignees in prepared for user_id in assignees
        )

        children: List[Task] = []
        try:
            for values, assignees in prepared:
                child = await self.repository.create(values, created_by=principal.id, parent_task_id=parent.id)
                if assignees:
                    await self.repository.replace_assignees(child.id, assignees)
                await self.repository.add_split_record(parent.id, child.id, principal.id)
                children.append(child)
            await self.repository.set_status(parent, TaskStatus.IN_PROGRESS)
            parent_snapshot = TaskRead.from_task(parent, parent_assignees)
            child_snapshots = await self._snapshots(children)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.warning("Split of task %s rolled back after %s of %s children", parent_id, len(children), len(prepared))
            raise

        child_ids = [child.id for child in children]
        self._publish(DomainEvent(
            type=EventType.TASK_SPLIT,
            task_id=parent_id,
            task=parent_snapshot,
            related=child_snapshots,
            actor=self._actor(principal),
            old_status=old_status,
            new_status=TaskStatus.IN_PROGRESS,
            parent_id=parent_id,
            child_ids=child_ids,
        ))
        logger.info("Task %s split into %s by user %s", parent_id, child_ids, principal.id)
        return SplitResult(parent_id=parent_id, child_ids=child_ids)

    # ---- delete ----

    async def delete_task(self, task_id: int, principal: Principal) -> List[int]:
        """
        Delete a task; dependent rows cascade, children are detached.

        Returns:
            IDs of the detached children
        """
        task = await self._require_task(task_id, for_update=True)
        if not can_delete_task(principal):
            raise ForbiddenError("Only managers and admins can delete tasks")

        try:
            detached_ids = await self.repository.delete(task)
            detached = []
            for child_id in detached_ids:
                child = await self.repository.get_by_id(child_id)
                if child is not None:
                    # The detach ran as a bulk UPDATE; reload what it changed
                    await self.db.refresh(child)
                    detached.append(child)
            related = await self._snapshots(detached)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        self._publish(DomainEvent(
            type=EventType.TASK_DELETED,
            task_id=task_id,
            related=related,
            actor=self._actor(principal),
        ))
        logger.info("Task %s deleted by user %s (detached %s)", task_id, principal.id, detached_ids)
        return detached_ids

    # ---- comments ----

    async def add_comment(self, task_id: int, text: str, principal: Principal) -> CommentRead:
        if not text or not text.strip():
            raise InvalidArgumentError("Comment text is required")
        task = await self._require_task(task_id)
        assignees = await self.repository.get_assignee_ids(task_id)
        if not can_contribute(principal, assignees):
            raise ForbiddenError("No permission to comment on this task")

        try:
            record = await self.comments.create(task_id, principal.id, text.strip())
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        comment = CommentRead.model_validate(record)
        self._publish(DomainEvent(
            type=EventType.TASK_COMMENT_ADDED,
            task_id=task_id,
            task=TaskRead.from_task(task, assignees),
            actor=self._actor(principal),
            comment=comment,
        ))
        return comment

    async def list_comments(self, task_id: int, principal: Principal) -> List[CommentRead]:
        await self._require_task(task_id)
        assignees = await self.repository.get_assignee_ids(task_id)
        if not can_contribute(principal, assignees):
            raise ForbiddenError("No permission to view comments")
        records = await self.comments.list_for_task(task_id)
        return [CommentRead.model_validate(record) for record in records]
