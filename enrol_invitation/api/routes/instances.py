"""
Instance action routes.

Returns the links and icons the host should show for the course's
invitation enrolment instances, filtered by the caller's capabilities.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from enrol_invitation.adapters.sqlite.repos import SQLiteInstanceRepo
from enrol_invitation.api.deps import get_current_identity, get_instance_actions, get_instance_repo
from enrol_invitation.components.instance_actions import ActionLink, InstanceActions
from enrol_invitation.domain.entities import PLUGIN_NAME, Identity

router = APIRouter()


def _link(link: ActionLink) -> dict[str, Any]:
    return {
        "url": link.url,
        "label": link.label,
        "icon": link.icon.key if link.icon else None,
        "attributes": link.attributes,
    }


@router.get("/{course_id}/invitation-actions")
def get_invitation_actions(
    course_id: int,
    ue: int | None = Query(None, description="User enrolment id to list actions for"),
    identity: Identity = Depends(get_current_identity),
    instances: SQLiteInstanceRepo = Depends(get_instance_repo),
    actions: InstanceActions = Depends(get_instance_actions),
) -> dict[str, Any]:
    course_instances = [i for i in instances.list_for_course(course_id) if i.enrol == PLUGIN_NAME]
    if not course_instances:
        raise HTTPException(status_code=404, detail="No invitation instance in this course")

    user_id = identity.user_id
    instance = course_instances[0]
    navigation = [
        node
        for node in (actions.course_navigation(i, user_id) for i in course_instances)
        if node is not None
    ]
    button = actions.manual_enrol_button(course_instances, user_id)

    response: dict[str, Any] = {
        "info_icons": [icon.key for icon in actions.info_icons(course_instances)],
        "navigation": [{"label": n.label, "url": n.url} for n in navigation],
        "action_icons": [
            _link(link) for i in course_instances for link in actions.action_icons(i, user_id)
        ],
        "new_instance_link": actions.new_instance_link(course_id, user_id),
        "manual_enrol_button": _link(button) if button else None,
        "bulk_operations": actions.bulk_operations(),
    }

    if ue is not None:
        response["user_enrolment_actions"] = [
            _link(link)
            for link in actions.user_enrolment_actions(
                instance, ue, user_id, {"id": course_id}
            )
        ]

    return response
