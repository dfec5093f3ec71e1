from datetime import datetime
from typing import Protocol

from enrol_invitation.domain.entities import Course, EnrolmentInstance, InvitationToken, User


class InvitationRepoPort(Protocol):
    def get_unused_by_token(self, token: str) -> InvitationToken | None:
        """Return the invitation with this token that has not been used."""
        ...

    def save(self, invitation: InvitationToken) -> InvitationToken:
        """Insert or update; raises PersistError on storage failure."""
        ...

    def mark_used(self, invitation_id: int, user_id: int, used_at: datetime) -> bool:
        """
        Conditionally mark an invitation used.

        Updates the row only while it is still unused. Returns True when
        exactly one row changed, False when another request got there first.
        Raises PersistError on storage failure.
        """
        ...

    def list_pending(self, course_id: int) -> list[InvitationToken]:
        ...


class InstanceRepoPort(Protocol):
    def get_for_course(self, course_id: int) -> EnrolmentInstance | None:
        """First invitation instance of the course, if any."""
        ...


class CourseRepoPort(Protocol):
    def get_by_id(self, course_id: int) -> Course | None:
        ...


class UserRepoPort(Protocol):
    def get_by_id(self, user_id: int) -> User | None:
        ...


class EnrolmentManagerPort(Protocol):
    def is_enrolled(self, course_id: int, user_id: int) -> bool:
        ...

    def enrol_user(self, course_id: int, user_id: int, role_id: int) -> None:
        """Enrol the user; raises EnrolError on failure."""
        ...

    def unenrol_user(self, course_id: int, user_id: int) -> None:
        ...


class PolicyPort(Protocol):
    def has_capability(self, user_id: int, capability: str, course_id: int) -> bool:
        ...


class TimePort(Protocol):
    """Port for time operations - enables deterministic testing."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
