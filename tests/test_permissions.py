import pytest

from taskboard.core.permissions import (
    Capabilities,
    Principal,
    Roles,
    can_archive,
    can_change_status,
    can_create_task,
    can_delete_task,
    can_edit_task,
    capabilities_for_role,
)


def test_role_presets():
    assert capabilities_for_role(Roles.ADMIN) == frozenset(Capabilities.ALL)
    assert Capabilities.MANAGE_TASKS in capabilities_for_role(Roles.MANAGER)
    assert Capabilities.MANAGE_USERS not in capabilities_for_role(Roles.MANAGER)
    assert capabilities_for_role(Roles.WORKER) == frozenset()


def test_overrides_replace_preset_and_accept_legacy_names():
    caps = capabilities_for_role(Roles.WORKER, ["canManageTasks", "bogus"])
    assert caps == frozenset([Capabilities.MANAGE_TASKS])

    # Explicit empty override strips the preset
    assert capabilities_for_role(Roles.MANAGER, []) == frozenset()


def test_unknown_role_rejected():
    with pytest.raises(ValueError):
        capabilities_for_role("owner")


def test_admin_holds_everything_even_without_permissions():
    admin = Principal(id=1, role=Roles.ADMIN)
    assert admin.has(Capabilities.MANAGE_TASKS)
    assert can_create_task(admin)
    assert can_archive(admin)


def test_worker_acts_only_on_assigned_tasks():
    worker = Principal.for_role(7, Roles.WORKER)
    assert can_change_status(worker, [7, 8])
    assert not can_change_status(worker, [8])
    assert not can_archive(worker)
    assert not can_create_task(worker)
    assert not can_delete_task(worker)


def test_creator_may_edit_own_task():
    worker = Principal.for_role(3, Roles.WORKER)
    assert can_edit_task(worker, created_by=3)
    assert not can_edit_task(worker, created_by=1)
    assert not can_edit_task(worker, created_by=None)


def test_manager_without_manage_tasks_may_still_delete():
    manager = Principal.for_role(2, Roles.MANAGER, overrides=[])
    assert not manager.can_manage_tasks
    assert can_delete_task(manager)
    assert not can_archive(manager)
