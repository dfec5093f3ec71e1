"""
Instance actions models.

Plain descriptors of links and icons; rendering is left to the host.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from enrol_invitation.rules.models import InvitationRules


@dataclass(frozen=True)
class Icon:
    key: str
    label: str
    component: str = "enrol_invitation"


@dataclass(frozen=True)
class ActionLink:
    url: str
    label: str
    icon: Icon | None = None
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NavigationNode:
    label: str
    url: str
    node_type: str = "setting"


@dataclass(frozen=True)
class PluginTraits:
    """Fixed behaviour flags the host asks enrolment plugins for."""

    roles_protected: bool = False
    allow_unenrol: bool = True
    allow_manage: bool = True
    has_bulk_operations: bool = False


@dataclass(frozen=True)
class ActionPaths:
    edit: str
    invite: str
    unenrol: str
    edit_enrolment: str

    @classmethod
    def from_rules(cls, rules: InvitationRules) -> ActionPaths:
        return cls(
            edit=rules.edit_path,
            invite=rules.invite_path,
            unenrol=rules.unenrol_path,
            edit_enrolment=rules.edit_enrolment_path,
        )
