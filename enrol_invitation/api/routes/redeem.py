"""
Invitation redemption route.

The link emailed to an invitee lands here:

    GET /enrol/invitation/redeem?token=<token>&id=<course_id>

Expected states (already enrolled, not open yet, guest, no role) answer
200 with no action taken. Invalid invitations answer 410.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel

from enrol_invitation.adapters.clock import SystemClock
from enrol_invitation.adapters.dev_email import DevEmailAdapter
from enrol_invitation.adapters.sqlite.repos import (
    SQLiteCourseRepo,
    SQLiteEnrolmentManager,
    SQLiteInstanceRepo,
    SQLiteInvitationRepo,
    SQLiteUserRepo,
)
from enrol_invitation.api.deps import (
    get_clock,
    get_course_repo,
    get_current_identity,
    get_enrolment_manager,
    get_instance_repo,
    get_invitation_repo,
    get_invitation_settings,
    get_mailer,
    get_user_repo,
)
from enrol_invitation.components.invitation import (
    InvitationSettings,
    Outcome,
    RedeemInvitationInput,
    RedeemOutput,
    run_redeem,
)
from enrol_invitation.domain.entities import Identity

router = APIRouter()

_FAILURE_STATUS = {
    Outcome.INVALID: status.HTTP_410_GONE,
    Outcome.DENIED: status.HTTP_403_FORBIDDEN,
}


class RedeemResponse(BaseModel):
    """Redemption result."""

    action: str  # "enrolled" or "none"
    course_id: int
    code: str | None = None
    message: str | None = None
    course_url: str | None = None


def _failure_detail(result: RedeemOutput) -> dict[str, Any]:
    return {"code": result.code, "message": result.error}


@router.get("/redeem", response_model=RedeemResponse)
def redeem_invitation(
    background_tasks: BackgroundTasks,
    token: str = Query("", pattern="^[A-Za-z0-9]*$", max_length=64),
    course_id: int = Query(..., alias="id"),
    identity: Identity = Depends(get_current_identity),
    invitations: SQLiteInvitationRepo = Depends(get_invitation_repo),
    instances: SQLiteInstanceRepo = Depends(get_instance_repo),
    courses: SQLiteCourseRepo = Depends(get_course_repo),
    users: SQLiteUserRepo = Depends(get_user_repo),
    enrolments: SQLiteEnrolmentManager = Depends(get_enrolment_manager),
    mailer: DevEmailAdapter = Depends(get_mailer),
    settings: InvitationSettings = Depends(get_invitation_settings),
    clock: SystemClock = Depends(get_clock),
) -> RedeemResponse:
    """Redeem a single-use invitation token for the current user."""
    if not token:
        # Nothing to redeem; the host shows its normal enrolment page
        return RedeemResponse(action="none", course_id=course_id)

    result = run_redeem(
        RedeemInvitationInput(token=token, course_id=course_id, identity=identity),
        invitations=invitations,
        instances=instances,
        courses=courses,
        users=users,
        enrolments=enrolments,
        mailer=mailer,
        settings=settings,
        time=clock,
        dispatch=background_tasks.add_task,
    )

    if result.success:
        return RedeemResponse(
            action="enrolled",
            course_id=course_id,
            course_url=settings.links.build("/course/view", id=course_id),
        )

    if result.outcome == Outcome.NO_ACTION:
        return RedeemResponse(
            action="none",
            course_id=course_id,
            code=result.code,
            message=result.error,
        )

    failure_status = _FAILURE_STATUS.get(result.outcome) if result.outcome else None
    if failure_status is not None:
        raise HTTPException(
            status_code=failure_status,
            detail=_failure_detail(result),
        )

    if result.code == "enrol_failed":
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=_failure_detail(result),
        )

    # Enrolled but the token could not be consumed; never report success
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=_failure_detail(result),
    )
