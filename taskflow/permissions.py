"""Project roles and the capability set each one grants."""
import enum
from typing import Dict


class ProjectRole(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


CAPABILITIES = ("can_edit", "can_delete", "can_invite")

ROLE_PERMISSIONS: Dict[str, Dict[str, bool]] = {
    ProjectRole.OWNER.value: {"can_edit": True, "can_delete": True, "can_invite": True},
    ProjectRole.ADMIN.value: {"can_edit": True, "can_delete": True, "can_invite": True},
    ProjectRole.MEMBER.value: {"can_edit": True, "can_delete": False, "can_invite": False},
    ProjectRole.VIEWER.value: {"can_edit": False, "can_delete": False, "can_invite": False},
}

# Roles that can be granted through invites and role changes; ownership is fixed at creation.
ASSIGNABLE_ROLES = (ProjectRole.ADMIN.value, ProjectRole.MEMBER.value, ProjectRole.VIEWER.value)


def permissions_for(role) -> Dict[str, bool]:
    """Return the capability set for ``role``; unknown roles get member rights."""
    key = role.value if isinstance(role, ProjectRole) else role
    return dict(ROLE_PERMISSIONS.get(key, ROLE_PERMISSIONS[ProjectRole.MEMBER.value]))
