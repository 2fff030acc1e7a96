"""
Role-based capability helpers.

Roles arrive from the identity provider as an opaque list of strings on the
actor. Every capability check in the services goes through has_capability so
the role matrix lives in one place.
"""

from typing import Iterable, List


class Roles:
    """Standard roles known to the workflow."""
    ADMIN = "admin"
    MANAGER = "manager"
    APPROVER = "approver"
    # Legacy spelling still issued by the identity provider
    APROVADOR = "aprovador"
    USER = "user"

    ALL = [ADMIN, MANAGER, APPROVER, APROVADOR, USER]


class Permissions:
    """Named capabilities checked by the services."""
    APPROVE = "approve"                      # approve/reject tasks, approve stages, see the queue
    MANAGE_PROJECTS = "manage_projects"      # create/edit/delete projects and stages
    CLOSE_PROJECT = "close_project"
    VIEW_ALL_PROJECTS = "view_all_projects"


# Role capabilities matrix
ROLE_PERMISSIONS = {
    Roles.ADMIN: ["*"],
    Roles.MANAGER: [
        Permissions.APPROVE,
        Permissions.MANAGE_PROJECTS,
        Permissions.CLOSE_PROJECT,
        Permissions.VIEW_ALL_PROJECTS,
    ],
    Roles.APPROVER: [Permissions.APPROVE],
    Roles.APROVADOR: [Permissions.APPROVE],
    Roles.USER: [],
}


def permissions_for_roles(roles: Iterable[str]) -> List[str]:
    """Flatten the capability list for a set of roles."""
    granted: List[str] = []
    for role in roles or []:
        for perm in ROLE_PERMISSIONS.get(role, []):
            if perm not in granted:
                granted.append(perm)
    return granted


def has_capability(actor, permission: str) -> bool:
    """
    Check whether an actor holds a named capability.

    Args:
        actor: Anything with a ``roles`` attribute (normally schemas.actor.Actor)
        permission: One of the Permissions constants

    Returns:
        True if any of the actor's roles grants the permission
    """
    if actor is None:
        return False
    granted = permissions_for_roles(getattr(actor, "roles", None) or [])
    if "*" in granted:
        return True
    return permission in granted
