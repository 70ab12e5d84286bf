"""
Role-based permission policy for the task board.

The principal arrives already authenticated; this module only decides what it
may do. Role presets live in an explicit table and are evaluated when a
principal is built, never by mutating shared state.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional


class Roles:
    """Standard roles on the board."""
    ADMIN = "admin"
    MANAGER = "manager"
    WORKER = "worker"
    
    # All roles list for validation
    ALL = [ADMIN, MANAGER, WORKER]


class Capabilities:
    """Capability names carried in a principal's permission set."""
    MANAGE_USERS = "manage_users"
    MANAGE_PROJECTS = "manage_projects"
    MANAGE_TASKS = "manage_tasks"
    VIEW_ANALYTICS = "view_analytics"

    ALL = [MANAGE_USERS, MANAGE_PROJECTS, MANAGE_TASKS, VIEW_ANALYTICS]

    # Legacy camelCase names still sent by older clients
    ALIASES = {
        "canManageUsers": MANAGE_USERS,
        "canManageProjects": MANAGE_PROJECTS,
        "canManageTasks": MANAGE_TASKS,
        "canViewAnalytics": VIEW_ANALYTICS,
    }


# Role capabilities matrix
# admin: everything
# manager: tasks, projects and analytics
# worker: acts only on tasks they are assigned to
ROLE_CAPABILITIES = {
    Roles.ADMIN: frozenset(Capabilities.ALL),
    Roles.MANAGER: frozenset(
        [Capabilities.MANAGE_PROJECTS, Capabilities.MANAGE_TASKS, Capabilities.VIEW_ANALYTICS]
    ),
    Roles.WORKER: frozenset(),
}


def normalize_capabilities(names: Iterable[str]) -> FrozenSet[str]:
    """Map raw capability names (including legacy aliases) to known capabilities."""
    result = set()
    for raw in names:
        name = Capabilities.ALIASES.get(raw.strip(), raw.strip())
        if name in Capabilities.ALL:
            result.add(name)
    return frozenset(result)


def capabilities_for_role(role: str, overrides: Optional[Iterable[str]] = None) -> FrozenSet[str]:
    """
    Resolve the capability set for a role.
    
    Args:
        role: One of Roles.ALL
        overrides: Explicit capability names; when given they replace the preset
        
    Returns:
        Frozen capability set
    """
    if role not in ROLE_CAPABILITIES:
        raise ValueError(f"Unknown role: {role}")
    if overrides is not None:
        return normalize_capabilities(overrides)
    return ROLE_CAPABILITIES[role]


@dataclass(frozen=True)
class Principal:
    """Authenticated actor attached to every mutation request."""

    id: int
    role: str
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def for_role(cls, user_id: int, role: str, overrides: Optional[Iterable[str]] = None) -> "Principal":
        return cls(id=user_id, role=role, permissions=capabilities_for_role(role, overrides))

    @property
    def is_admin(self) -> bool:
        return self.role == Roles.ADMIN

    def has(self, capability: str) -> bool:
        """Admin implicitly holds every capability."""
        return self.is_admin or capability in self.permissions

    @property
    def can_manage_tasks(self) -> bool:
        return self.has(Capabilities.MANAGE_TASKS)


# Task-level permission checks

def can_create_task(principal: Principal) -> bool:
    return principal.can_manage_tasks


def can_edit_task(principal: Principal, created_by: Optional[int]) -> bool:
    """Field edits and assignment: managers of tasks or the creator."""
    return principal.can_manage_tasks or (created_by is not None and created_by == principal.id)


def can_contribute(principal: Principal, assignee_ids: Iterable[int]) -> bool:
    """Status moves, comments and effort logs: managers of tasks or assignees."""
    return principal.can_manage_tasks or principal.id in set(assignee_ids)


def can_change_status(principal: Principal, assignee_ids: Iterable[int]) -> bool:
    return can_contribute(principal, assignee_ids)


def can_archive(principal: Principal) -> bool:
    """Archive and unarchive; plain assignees may not."""
    return principal.can_manage_tasks


def can_delete_task(principal: Principal) -> bool:
    return principal.can_manage_tasks or principal.role == Roles.MANAGER
