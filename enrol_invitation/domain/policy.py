from collections.abc import Sequence
from typing import Protocol

from enrol_invitation.rules.models import RbacRules

# Capabilities checked by the invitation plugin
CAP_CONFIG = "invitation:config"
CAP_ENROL = "invitation:enrol"
CAP_UNENROL = "invitation:unenrol"
CAP_MANAGE = "invitation:manage"
CAP_COURSE_ENROLCONFIG = "course:enrolconfig"


class CourseRoleLookup(Protocol):
    def get_role_shortnames(self, user_id: int, course_id: int) -> list[str]:
        ...


class PolicyEngine:
    def __init__(self, rbac: RbacRules):
        self.rbac = rbac

    def check_capability(self, user_roles: Sequence[str], capability: str) -> bool:
        """
        Check whether any of the roles grants the capability.

        Supports the global "*" wildcard and scoped wildcards
        ("invitation:*" matches "invitation:enrol").
        """
        for role in user_roles:
            allowed = self.rbac.roles.get(role, [])
            if "*" in allowed or capability in allowed:
                return True

            if ":" in capability:
                scope = capability.split(":")[0]
                if f"{scope}:*" in allowed:
                    return True

        return False

    def check_guest(self, capability: str) -> bool:
        return capability in self.rbac.guest_capabilities


class CoursePolicy:
    """Answers capability questions for a user inside one course."""

    def __init__(self, engine: PolicyEngine, roles: CourseRoleLookup):
        self.engine = engine
        self.roles = roles

    def has_capability(self, user_id: int, capability: str, course_id: int) -> bool:
        if not user_id:
            return self.engine.check_guest(capability)
        user_roles = self.roles.get_role_shortnames(user_id, course_id)
        return self.engine.check_capability(user_roles, capability)
