import pytest
from pydantic import ValidationError

from stageflow.core.permissions import Permissions, has_capability, permissions_for_roles
from stageflow.schemas.actor import Actor
from stageflow.schemas.task import TaskCreate, TaskUpdate, TransferTaskRequest, normalize_assignees


@pytest.mark.unit
@pytest.mark.parametrize(
    "value, expected",
    [
        (None, []),
        ("", []),
        ("worker-1", ["worker-1"]),
        (["worker-1", " worker-2 ", "", "worker-1"], ["worker-1", "worker-2"]),
    ],
)
def test_normalize_assignees(value, expected):
    assert normalize_assignees(value) == expected


@pytest.mark.unit
def test_task_create_accepts_a_single_assignee_string():
    task = TaskCreate(title="Write copy", assigned_to="worker-1")

    assert task.assigned_to == ["worker-1"]
    assert task.priority == "medium"


@pytest.mark.unit
def test_task_update_keeps_assignees_unset_when_omitted():
    update = TaskUpdate(title="New title")

    assert update.assigned_to is None
    assert "assigned_to" not in update.model_dump(exclude_unset=True)


@pytest.mark.unit
def test_unknown_priority_is_rejected():
    with pytest.raises(ValidationError):
        TaskCreate(title="Write copy", priority="urgent")


@pytest.mark.unit
def test_transfer_request_normalizes_assignees():
    request = TransferTaskRequest(assigned_to="worker-2", reason="Vacation")

    assert request.assigned_to == ["worker-2"]


@pytest.mark.unit
def test_actor_roles_from_header_string():
    actor = Actor(id="u-1", roles="manager, aprovador,")

    assert actor.roles == ["manager", "aprovador"]
    assert actor.display_name == "u-1"


@pytest.mark.unit
def test_role_matrix():
    admin = Actor(id="a", roles=["admin"])
    approver = Actor(id="b", roles=["approver"])
    legacy = Actor(id="c", roles=["aprovador"])
    user = Actor(id="d", roles=["user"])

    assert has_capability(admin, Permissions.CLOSE_PROJECT)
    assert has_capability(approver, Permissions.APPROVE)
    assert has_capability(legacy, Permissions.APPROVE)
    assert not has_capability(approver, Permissions.MANAGE_PROJECTS)
    assert not has_capability(user, Permissions.APPROVE)
    assert not has_capability(None, Permissions.APPROVE)
    assert permissions_for_roles(["approver", "aprovador"]) == [Permissions.APPROVE]
