"""
Instance actions - administrative links for invitation enrolment instances.

Every permission question goes through the PolicyPort passed in at
construction; nothing is read from ambient state.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from enrol_invitation.domain.entities import PLUGIN_NAME, EnrolmentInstance
from enrol_invitation.domain.links import LinkBuilder
from enrol_invitation.domain.policy import (
    CAP_CONFIG,
    CAP_COURSE_ENROLCONFIG,
    CAP_ENROL,
    CAP_MANAGE,
    CAP_UNENROL,
)

from .models import ActionLink, ActionPaths, Icon, NavigationNode, PluginTraits
from .ports import PolicyPort


def _require_invitation(instance: EnrolmentInstance) -> None:
    if instance.enrol != PLUGIN_NAME:
        raise ValueError(f"Invalid enrol instance type: {instance.enrol!r}")


class InstanceActions:
    def __init__(
        self,
        policy: PolicyPort,
        links: LinkBuilder,
        paths: ActionPaths,
        traits: PluginTraits | None = None,
    ):
        self.policy = policy
        self.links = links
        self.paths = paths
        self.traits = traits or PluginTraits()

    def info_icons(self, instances: Sequence[EnrolmentInstance]) -> list[Icon]:
        """One icon for the course listing, however many instances exist."""
        return [Icon("icon", "Invitation")]

    def course_navigation(
        self, instance: EnrolmentInstance, user_id: int
    ) -> NavigationNode | None:
        _require_invitation(instance)
        if not self.policy.has_capability(user_id, CAP_CONFIG, instance.course_id):
            return None
        url = self.links.build(self.paths.edit, courseid=instance.course_id, id=instance.id)
        return NavigationNode(label=instance.display_name, url=url)

    def action_icons(self, instance: EnrolmentInstance, user_id: int) -> list[ActionLink]:
        _require_invitation(instance)
        if not self.policy.has_capability(user_id, CAP_CONFIG, instance.course_id):
            return []
        url = self.links.build(self.paths.edit, courseid=instance.course_id, id=instance.id)
        return [ActionLink(url=url, label="Edit", icon=Icon("i/edit", "Edit", "core"))]

    def new_instance_link(self, course_id: int, user_id: int) -> str | None:
        # Needs both the course-level and the plugin-level capability
        if not self.policy.has_capability(user_id, CAP_COURSE_ENROLCONFIG, course_id):
            return None
        if not self.policy.has_capability(user_id, CAP_CONFIG, course_id):
            return None
        return self.links.build(self.paths.edit, courseid=course_id)

    def manual_enrol_button(
        self, instances: Sequence[EnrolmentInstance], user_id: int
    ) -> ActionLink | None:
        """Link to the invite-users page for the first invitation instance."""
        instance = next((i for i in instances if i.enrol == PLUGIN_NAME), None)
        if instance is None:
            return None
        if not self.policy.has_capability(user_id, CAP_ENROL, instance.course_id):
            return None
        url = self.links.build(self.paths.invite, courseid=instance.course_id, id=instance.id)
        return ActionLink(url=url, label="Invite users", attributes={"method": "post"})

    def user_enrolment_actions(
        self,
        instance: EnrolmentInstance,
        user_enrolment_id: int,
        user_id: int,
        page_params: Mapping[str, object] | None = None,
    ) -> list[ActionLink]:
        _require_invitation(instance)
        params = dict(page_params or {})
        params["ue"] = user_enrolment_id
        rel = str(user_enrolment_id)
        actions: list[ActionLink] = []

        if self.traits.allow_unenrol and self.policy.has_capability(
            user_id, CAP_UNENROL, instance.course_id
        ):
            actions.append(
                ActionLink(
                    url=self.links.build(self.paths.unenrol, **params),
                    label="Unenrol",
                    icon=Icon("t/delete", "", "core"),
                    attributes={"class": "unenrollink", "rel": rel},
                )
            )

        if self.traits.allow_manage and self.policy.has_capability(
            user_id, CAP_MANAGE, instance.course_id
        ):
            actions.append(
                ActionLink(
                    url=self.links.build(self.paths.edit_enrolment, **params),
                    label="Edit",
                    icon=Icon("t/edit", "", "core"),
                    attributes={"class": "editenrollink", "rel": rel},
                )
            )

        return actions

    def bulk_operations(self) -> list[str]:
        return []

    def try_autoenrol(self, instance: EnrolmentInstance) -> None:
        """Invitation enrolment never enrols without a token."""
        return None
