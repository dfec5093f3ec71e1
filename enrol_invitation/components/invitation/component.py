"""
Invitation component - single-use course invitations.

An instructor issues an invitation to an email address; the emailed link
carries a single-use token that enrols the recipient into the course.

Invariants:
- A token is redeemed at most once
- A token only works in the course it was issued for
- A failed enrolment leaves the token unused
- Notification failures never undo a redemption
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial

from enrol_invitation.core.ports.email import EmailPort, EmailResult
from enrol_invitation.domain.entities import EnrolmentInstance, InvitationToken
from enrol_invitation.domain.policy import CAP_ENROL

from ._impl import (
    build_invite_message,
    enrol,
    enrol_url,
    finalize,
    generate_token,
    is_valid_email,
    notify,
    send_best_effort,
    validate,
)
from .models import (
    AlreadyRedeemedError,
    EnrolError,
    InstanceUnavailableError,
    InvalidEmailError,
    InvitationError,
    InvitationSettings,
    IssueInvitationInput,
    IssueOutput,
    ListPendingInput,
    PendingOutput,
    PermissionDeniedError,
    PersistError,
    RedeemInvitationInput,
    RedeemOutput,
)
from .ports import (
    CourseRepoPort,
    EnrolmentManagerPort,
    InstanceRepoPort,
    InvitationRepoPort,
    PolicyPort,
    TimePort,
    UserRepoPort,
)

logger = logging.getLogger(__name__)

# Schedules a zero-argument job, e.g. BackgroundTasks.add_task
Dispatcher = Callable[[Callable[[], EmailResult | None]], object]


def _get_active_instance(course_id: int, instances: InstanceRepoPort) -> EnrolmentInstance:
    instance = instances.get_for_course(course_id)
    if instance is None or not instance.is_enabled:
        raise InstanceUnavailableError()
    return instance


def _compensate(course_id: int, user_id: int, enrolments: EnrolmentManagerPort) -> None:
    try:
        enrolments.unenrol_user(course_id, user_id)
    except EnrolError:
        logger.exception(
            "Could not undo enrolment of user %s in course %s after losing redemption race",
            user_id,
            course_id,
        )


def _redeemed_elsewhere(
    inp: RedeemInvitationInput,
    user_id: int,
    invitations: InvitationRepoPort,
    enrolments: EnrolmentManagerPort,
) -> bool:
    """True when a parallel redemption consumed the token or enrolled the user first."""
    if invitations.get_unused_by_token(inp.token) is None:
        return True
    return enrolments.is_enrolled(inp.course_id, user_id)


# --- Component Entry Points ---


def run_redeem(
    inp: RedeemInvitationInput,
    *,
    invitations: InvitationRepoPort,
    instances: InstanceRepoPort,
    courses: CourseRepoPort,
    users: UserRepoPort,
    enrolments: EnrolmentManagerPort,
    mailer: EmailPort,
    settings: InvitationSettings,
    time: TimePort,
    dispatch: Dispatcher | None = None,
) -> RedeemOutput:
    """
    Redeem an invitation token for the current identity.

    Args:
        inp: Token, course id and the identity redeeming it.
        dispatch: Optional scheduler for the inviter notification. When
            omitted the notification is sent before returning.

    Returns:
        RedeemOutput with the redeemed invitation, or the error code and
        outcome of the first failing step.
    """
    now = time.now_utc()
    user_id = inp.identity.user_id

    try:
        invitation = validate(
            inp.token,
            inp.course_id,
            inp.identity,
            now,
            repo=invitations,
            enrolments=enrolments,
        )
        _get_active_instance(inp.course_id, instances)

        assert invitation.role_id is not None
        try:
            enrol(inp.course_id, user_id, invitation.role_id, enrolments=enrolments)
        except EnrolError:
            if not _redeemed_elsewhere(inp, user_id, invitations, enrolments):
                raise
            logger.warning(
                "Invitation %s is being redeemed by another request for user %s",
                invitation.id,
                user_id,
            )
            raise AlreadyRedeemedError() from None

        try:
            redeemed = finalize(invitation, user_id, now, repo=invitations)
        except AlreadyRedeemedError:
            logger.warning(
                "Invitation %s was redeemed concurrently; undoing enrolment of user %s",
                invitation.id,
                user_id,
            )
            _compensate(inp.course_id, user_id, enrolments)
            raise
        except PersistError:
            logger.error(
                "User %s is enrolled in course %s but invitation %s could not be marked "
                "used; the token remains redeemable",
                user_id,
                inp.course_id,
                invitation.id,
            )
            raise

    except InvitationError as err:
        logger.info(
            "Redemption refused for user %s in course %s: %s",
            user_id,
            inp.course_id,
            err.code,
        )
        return RedeemOutput(success=False, error=str(err), code=err.code, outcome=err.outcome)

    logger.info("Invitation %s redeemed by user %s", redeemed.id, user_id)

    job = partial(
        _notify_inviter,
        redeemed,
        inp,
        courses=courses,
        users=users,
        mailer=mailer,
        settings=settings,
    )
    if dispatch is not None:
        dispatch(job)
        return RedeemOutput(invitation=redeemed, success=True)

    return RedeemOutput(invitation=redeemed, success=True, notification=job())


def _notify_inviter(
    invitation: InvitationToken,
    inp: RedeemInvitationInput,
    *,
    courses: CourseRepoPort,
    users: UserRepoPort,
    mailer: EmailPort,
    settings: InvitationSettings,
) -> EmailResult | None:
    return notify(
        users.get_by_id(invitation.creator_id),
        inp.identity,
        courses.get_by_id(invitation.course_id),
        settings=settings,
        mailer=mailer,
    )


def run_issue(
    inp: IssueInvitationInput,
    *,
    invitations: InvitationRepoPort,
    instances: InstanceRepoPort,
    courses: CourseRepoPort,
    policy: PolicyPort,
    mailer: EmailPort,
    settings: InvitationSettings,
    time: TimePort,
) -> IssueOutput:
    """
    Issue an invitation and email the redemption link to the invitee.

    Role and enrolment window are copied from the course's invitation
    instance defaults.
    """
    creator = inp.creator
    try:
        if creator.is_guest or not policy.has_capability(
            creator.user_id, CAP_ENROL, inp.course_id
        ):
            raise PermissionDeniedError()

        if not is_valid_email(inp.email):
            raise InvalidEmailError()

        instance = _get_active_instance(inp.course_id, instances)
        course = courses.get_by_id(inp.course_id)
        if course is None:
            raise InstanceUnavailableError("Course not found")

        invitation = invitations.save(
            InvitationToken(
                token=generate_token(settings.token_length),
                course_id=inp.course_id,
                creator_id=creator.user_id,
                email=inp.email,
                role_id=instance.role_id,
                enrol_start_date=instance.enrol_start_date,
                enrol_end_date=instance.enrol_end_date,
                created_at=time.now_utc(),
            )
        )
    except InvitationError as err:
        logger.info("Invitation refused in course %s: %s", inp.course_id, err.code)
        return IssueOutput(success=False, error=str(err), code=err.code)

    logger.info(
        "Invitation %s issued by user %s for course %s",
        invitation.id,
        creator.user_id,
        inp.course_id,
    )
    message = build_invite_message(invitation, creator, course, settings)
    notification = send_best_effort(message, mailer=mailer)

    return IssueOutput(
        invitation=invitation,
        token=invitation.token,
        enrol_url=enrol_url(invitation, settings),
        success=True,
        notification=notification,
    )


def run_list_pending(
    inp: ListPendingInput,
    *,
    invitations: InvitationRepoPort,
    policy: PolicyPort,
) -> PendingOutput:
    viewer = inp.viewer
    if viewer.is_guest or not policy.has_capability(viewer.user_id, CAP_ENROL, inp.course_id):
        err = PermissionDeniedError()
        return PendingOutput(success=False, error=str(err), code=err.code)

    return PendingOutput(
        invitations=tuple(invitations.list_pending(inp.course_id)),
        success=True,
    )
