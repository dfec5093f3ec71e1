"""
Invitation redemption steps.

The redemption flow is strictly linear:

    validate -> enrol -> finalize -> notify

Each of the first three steps raises an InvitationError subclass and
stops the flow. Notification is best-effort and never raises.

Invariants:
- A token goes from unused to used at most once
- A used token never passes validation again
- A token is never marked used unless enrolment succeeded
- The conditional update in finalize is the only serialization point
"""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime

from enrol_invitation.core.ports.email import (
    EmailAddress,
    EmailError,
    EmailMessage,
    EmailPort,
    EmailResult,
)
from enrol_invitation.domain.entities import Course, Identity, InvitationToken, User

from .models import (
    AlreadyEnrolledError,
    AlreadyRedeemedError,
    CourseMismatchError,
    ExpiredError,
    GuestNotAllowedError,
    InvitationSettings,
    NoRoleError,
    NotFoundError,
    NotYetOpenError,
)
from .ports import EnrolmentManagerPort, InvitationRepoPort

logger = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_token(length: int = 32) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def is_valid_email(email: str) -> bool:
    local, _, domain = email.partition("@")
    return bool(local) and "." in domain and " " not in email


# --- Validator ---


def validate(
    token: str,
    course_id: int,
    identity: Identity,
    now: datetime,
    *,
    repo: InvitationRepoPort,
    enrolments: EnrolmentManagerPort,
) -> InvitationToken:
    """
    Check that a token can be redeemed by this identity in this course.

    Existence and course binding are checked before anything that depends
    on the token's contents. Returns the matched row unmodified.
    """
    invitation = repo.get_unused_by_token(token) if token else None
    if invitation is None or invitation.used:
        raise NotFoundError()

    if invitation.course_id != course_id:
        raise CourseMismatchError()

    if identity.is_guest:
        raise GuestNotAllowedError()

    if enrolments.is_enrolled(course_id, identity.user_id):
        raise AlreadyEnrolledError()

    if invitation.enrol_start_date is not None and invitation.enrol_start_date > now:
        raise NotYetOpenError()

    if invitation.enrol_end_date is not None and invitation.enrol_end_date < now:
        raise ExpiredError()

    if not invitation.role_id:
        raise NoRoleError()

    return invitation


# --- Enrolment Dispatcher ---


def enrol(
    course_id: int,
    user_id: int,
    role_id: int,
    *,
    enrolments: EnrolmentManagerPort,
) -> None:
    # Collaborator errors propagate unchanged
    enrolments.enrol_user(course_id, user_id, role_id)
    logger.info("Enrolled user %s in course %s with role %s", user_id, course_id, role_id)


# --- Token Finalizer ---


def finalize(
    invitation: InvitationToken,
    user_id: int,
    now: datetime,
    *,
    repo: InvitationRepoPort,
) -> InvitationToken:
    if invitation.id is None:
        raise NotFoundError("Invitation has not been stored")

    if not repo.mark_used(invitation.id, user_id, now):
        raise AlreadyRedeemedError()

    return invitation.model_copy(
        update={"used": True, "used_at": now, "redeemed_by_user_id": user_id}
    )


# --- Notifier ---


def build_enrolled_message(
    inviter: User,
    invitee: Identity,
    course: Course,
    settings: InvitationSettings,
) -> EmailMessage:
    links = settings.links
    info = {
        "userfullname": invitee.fullname,
        "coursefullname": course.fullname,
        "courseenrolledusersurl": links.build(settings.enrolled_users_path, id=course.id),
        "sitename": settings.site_name,
        "siteurl": links.site_url(),
    }
    return EmailMessage(
        recipient=EmailAddress(inviter.email, inviter.fullname),
        subject=settings.enrolled_subject.format_map(info),
        body_text=settings.enrolled_body.format_map(info),
        sender=settings.sender,
    )


def build_invite_message(
    invitation: InvitationToken,
    inviter: Identity,
    course: Course,
    settings: InvitationSettings,
) -> EmailMessage:
    links = settings.links
    info = {
        "inviterfullname": inviter.fullname,
        "coursefullname": course.fullname,
        "enrolurl": enrol_url(invitation, settings),
        "sitename": settings.site_name,
        "siteurl": links.site_url(),
    }
    return EmailMessage(
        recipient=EmailAddress(invitation.email),
        subject=settings.invite_subject.format_map(info),
        body_text=settings.invite_body.format_map(info),
        sender=settings.sender,
    )


def enrol_url(invitation: InvitationToken, settings: InvitationSettings) -> str:
    return settings.links.build(
        settings.redeem_path, token=invitation.token, id=invitation.course_id
    )


def send_best_effort(message: EmailMessage, *, mailer: EmailPort) -> EmailResult:
    """Send a message, logging instead of raising on failure."""
    try:
        result = mailer.send(message)
    except EmailError as e:
        logger.warning("Email to %s failed: %s", message.recipient.email, e)
        return EmailResult.failed(message.recipient.email, str(e))

    if not result.ok:
        logger.warning("Email to %s failed: %s", message.recipient.email, result.error)
    return result


def notify(
    inviter: User | None,
    invitee: Identity,
    course: Course | None,
    *,
    settings: InvitationSettings,
    mailer: EmailPort,
) -> EmailResult | None:
    """
    Tell the inviter that their invitation was accepted.

    Best-effort: any failure is logged and None or a FAILED result is
    returned. Enrolment and token state are never affected.
    """
    if inviter is None or course is None:
        logger.warning(
            "Skipping enrolment notice: inviter or course missing (invitee %s)",
            invitee.user_id,
        )
        return None

    try:
        message = build_enrolled_message(inviter, invitee, course, settings)
    except (KeyError, ValueError) as e:
        logger.warning("Could not build enrolment notice for %s: %s", inviter.email, e)
        return None

    return send_best_effort(message, mailer=mailer)
