"""
Invitation component input/output models and error types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from enrol_invitation.core.ports.email import EmailAddress, EmailResult
from enrol_invitation.domain.entities import Identity, InvitationToken
from enrol_invitation.domain.links import LinkBuilder
from enrol_invitation.rules.models import Rules


class Outcome(Enum):
    """How a failed request should be presented to the user."""

    NO_ACTION = "no_action"  # expected state, nothing happens
    INVALID = "invalid"  # invitation no longer valid
    DENIED = "denied"
    FAILED = "failed"  # server-side failure


# --- Settings ---


@dataclass(frozen=True)
class InvitationSettings:
    """Site and message settings used when issuing and redeeming."""

    site_name: str
    site_url: str
    sender: EmailAddress
    redeem_path: str
    enrolled_users_path: str
    token_length: int
    invite_subject: str
    invite_body: str
    enrolled_subject: str
    enrolled_body: str

    @classmethod
    def from_rules(cls, rules: Rules) -> InvitationSettings:
        inv = rules.invitation
        return cls(
            site_name=rules.site.fullname,
            site_url=rules.site.url,
            sender=EmailAddress(rules.site.noreply_email, rules.site.noreply_name),
            redeem_path=inv.redeem_path,
            enrolled_users_path=inv.enrolled_users_path,
            token_length=inv.token_length,
            invite_subject=inv.invite_email.subject,
            invite_body=inv.invite_email.body,
            enrolled_subject=inv.enrolled_email.subject,
            enrolled_body=inv.enrolled_email.body,
        )

    @property
    def links(self) -> LinkBuilder:
        return LinkBuilder(self.site_url)


# --- Input Models ---


@dataclass(frozen=True)
class RedeemInvitationInput:
    token: str
    course_id: int
    identity: Identity


@dataclass(frozen=True)
class IssueInvitationInput:
    course_id: int
    creator: Identity
    email: str


@dataclass(frozen=True)
class ListPendingInput:
    course_id: int
    viewer: Identity


# --- Output Models ---


@dataclass(frozen=True)
class RedeemOutput:
    invitation: InvitationToken | None = None
    success: bool = False
    error: str | None = None
    code: str | None = None
    outcome: Outcome | None = None
    notification: EmailResult | None = None


@dataclass(frozen=True)
class IssueOutput:
    invitation: InvitationToken | None = None
    token: str | None = None
    enrol_url: str | None = None
    success: bool = False
    error: str | None = None
    code: str | None = None
    notification: EmailResult | None = None


@dataclass(frozen=True)
class PendingOutput:
    invitations: tuple[InvitationToken, ...] = ()
    success: bool = False
    error: str | None = None
    code: str | None = None


# --- Error Types ---


class InvitationError(Exception):
    """Base exception for invitation failures."""

    code: ClassVar[str] = "invitation_error"
    outcome: ClassVar[Outcome] = Outcome.FAILED
    default_message: ClassVar[str] = "Invitation could not be processed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class NotFoundError(InvitationError):
    code = "not_found"
    outcome = Outcome.INVALID
    default_message = "This invitation is no longer valid"


class CourseMismatchError(InvitationError):
    code = "course_mismatch"
    outcome = Outcome.INVALID
    default_message = "This invitation is no longer valid"


class GuestNotAllowedError(InvitationError):
    code = "guest_not_allowed"
    outcome = Outcome.NO_ACTION
    default_message = "Guests cannot be enrolled"


class AlreadyEnrolledError(InvitationError):
    code = "already_enrolled"
    outcome = Outcome.NO_ACTION
    default_message = "You are already enrolled in this course"


class NotYetOpenError(InvitationError):
    code = "not_yet_open"
    outcome = Outcome.NO_ACTION
    default_message = "Enrolment is not open yet"


class ExpiredError(InvitationError):
    code = "expired"
    outcome = Outcome.INVALID
    default_message = "This invitation is no longer valid"


class NoRoleError(InvitationError):
    code = "no_role"
    outcome = Outcome.NO_ACTION
    default_message = "The invitation does not grant any role"


class EnrolError(InvitationError):
    code = "enrol_failed"
    outcome = Outcome.FAILED
    default_message = "Enrolment failed"


class AlreadyRedeemedError(InvitationError):
    code = "already_redeemed"
    outcome = Outcome.INVALID
    default_message = "This invitation is no longer valid"


class PersistError(InvitationError):
    code = "persist_failed"
    outcome = Outcome.FAILED
    default_message = "Invitation could not be saved"


class InstanceUnavailableError(InvitationError):
    code = "instance_unavailable"
    outcome = Outcome.INVALID
    default_message = "Invitation enrolment is not available in this course"


class PermissionDeniedError(InvitationError):
    code = "permission_denied"
    outcome = Outcome.DENIED
    default_message = "You cannot send invitations in this course"


class InvalidEmailError(InvitationError):
    code = "invalid_email"
    outcome = Outcome.INVALID
    default_message = "A valid email address is required"
