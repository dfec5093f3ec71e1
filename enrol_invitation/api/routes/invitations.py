"""
Invitation management routes.

Instructors holding invitation:enrol in a course send invitations and
list the ones not redeemed yet.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from enrol_invitation.adapters.clock import SystemClock
from enrol_invitation.adapters.dev_email import DevEmailAdapter
from enrol_invitation.adapters.sqlite.repos import (
    SQLiteCourseRepo,
    SQLiteInstanceRepo,
    SQLiteInvitationRepo,
)
from enrol_invitation.api.deps import (
    get_clock,
    get_course_repo,
    get_instance_repo,
    get_invitation_repo,
    get_invitation_settings,
    get_mailer,
    get_policy,
    require_user,
)
from enrol_invitation.components.invitation import (
    InvitationSettings,
    IssueInvitationInput,
    ListPendingInput,
    run_issue,
    run_list_pending,
)
from enrol_invitation.domain.entities import Identity, InvitationToken
from enrol_invitation.domain.policy import CoursePolicy

router = APIRouter()

_ERROR_STATUS = {
    "permission_denied": status.HTTP_403_FORBIDDEN,
    "instance_unavailable": status.HTTP_404_NOT_FOUND,
    "invalid_email": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


class InviteRequest(BaseModel):
    """Request to invite someone into the course."""

    email: str = Field(..., max_length=254, description="Invitee email address")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class InvitationResponse(BaseModel):
    """Invitation summary; the token itself is only sent to the invitee."""

    id: int | None
    course_id: int
    email: str
    role_id: int | None
    enrol_start_date: datetime | None
    enrol_end_date: datetime | None
    created_at: datetime
    email_status: str | None = None

    @classmethod
    def from_invitation(
        cls, invitation: InvitationToken, email_status: str | None = None
    ) -> InvitationResponse:
        return cls(
            id=invitation.id,
            course_id=invitation.course_id,
            email=invitation.email,
            role_id=invitation.role_id,
            enrol_start_date=invitation.enrol_start_date,
            enrol_end_date=invitation.enrol_end_date,
            created_at=invitation.created_at,
            email_status=email_status,
        )


class PendingResponse(BaseModel):
    invitations: list[InvitationResponse]
    count: int


def _raise_for(code: str | None, message: str | None) -> None:
    raise HTTPException(
        status_code=_ERROR_STATUS.get(code or "", status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"code": code, "message": message},
    )


@router.post(
    "/{course_id}/invitations",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_invitation(
    course_id: int,
    request: InviteRequest,
    identity: Identity = Depends(require_user),
    invitations: SQLiteInvitationRepo = Depends(get_invitation_repo),
    instances: SQLiteInstanceRepo = Depends(get_instance_repo),
    courses: SQLiteCourseRepo = Depends(get_course_repo),
    policy: CoursePolicy = Depends(get_policy),
    mailer: DevEmailAdapter = Depends(get_mailer),
    settings: InvitationSettings = Depends(get_invitation_settings),
    clock: SystemClock = Depends(get_clock),
) -> InvitationResponse:
    """Issue an invitation and email its link."""
    result = run_issue(
        IssueInvitationInput(course_id=course_id, creator=identity, email=request.email),
        invitations=invitations,
        instances=instances,
        courses=courses,
        policy=policy,
        mailer=mailer,
        settings=settings,
        time=clock,
    )
    if not result.success or result.invitation is None:
        _raise_for(result.code, result.error)
    assert result.invitation is not None

    email_status = result.notification.status.value if result.notification else None
    return InvitationResponse.from_invitation(result.invitation, email_status)


@router.get("/{course_id}/invitations", response_model=PendingResponse)
def list_pending_invitations(
    course_id: int,
    identity: Identity = Depends(require_user),
    invitations: SQLiteInvitationRepo = Depends(get_invitation_repo),
    policy: CoursePolicy = Depends(get_policy),
) -> PendingResponse:
    """List invitations of the course that have not been redeemed."""
    result = run_list_pending(
        ListPendingInput(course_id=course_id, viewer=identity),
        invitations=invitations,
        policy=policy,
    )
    if not result.success:
        _raise_for(result.code, result.error)

    items = [InvitationResponse.from_invitation(i) for i in result.invitations]
    return PendingResponse(invitations=items, count=len(items))
