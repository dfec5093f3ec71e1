"""
Invitation component - single-use course invitation issuing and redemption.
"""

from ._impl import enrol, finalize, generate_token, notify, validate
from .component import run_issue, run_list_pending, run_redeem
from .models import (
    AlreadyEnrolledError,
    AlreadyRedeemedError,
    CourseMismatchError,
    EnrolError,
    ExpiredError,
    GuestNotAllowedError,
    InstanceUnavailableError,
    InvalidEmailError,
    InvitationError,
    InvitationSettings,
    IssueInvitationInput,
    IssueOutput,
    ListPendingInput,
    NoRoleError,
    NotFoundError,
    NotYetOpenError,
    Outcome,
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

__all__ = [
    # Entry points
    "run_issue",
    "run_list_pending",
    "run_redeem",
    # Redemption steps
    "validate",
    "enrol",
    "finalize",
    "notify",
    "generate_token",
    # Input models
    "IssueInvitationInput",
    "ListPendingInput",
    "RedeemInvitationInput",
    # Output models
    "IssueOutput",
    "Outcome",
    "PendingOutput",
    "RedeemOutput",
    "InvitationSettings",
    # Errors
    "InvitationError",
    "AlreadyEnrolledError",
    "AlreadyRedeemedError",
    "CourseMismatchError",
    "EnrolError",
    "ExpiredError",
    "GuestNotAllowedError",
    "InstanceUnavailableError",
    "InvalidEmailError",
    "NoRoleError",
    "NotFoundError",
    "NotYetOpenError",
    "PermissionDeniedError",
    "PersistError",
    # Ports
    "CourseRepoPort",
    "EnrolmentManagerPort",
    "InstanceRepoPort",
    "InvitationRepoPort",
    "PolicyPort",
    "TimePort",
    "UserRepoPort",
]
