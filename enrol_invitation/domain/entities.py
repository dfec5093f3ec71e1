from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

# --- Enums / Literals ---
PLUGIN_NAME = "invitation"
InstanceStatus = Literal["enabled", "disabled"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _zero_is_unbounded(value: Any) -> Any:
    # The host stores "no limit" as a zero timestamp.
    if value in (0, "0", ""):
        return None
    return value


def _as_utc(value: datetime | None) -> datetime | None:
    # Naive timestamps are taken to be UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# --- Users & Identity ---

class User(BaseModel):
    id: int
    email: str
    firstname: str
    lastname: str
    is_guest: bool = False

    @property
    def fullname(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()


class Identity(BaseModel):
    """The user on whose behalf a request runs."""

    user_id: int
    is_guest: bool = False
    firstname: str = ""
    lastname: str = ""
    email: str = ""

    @property
    def fullname(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()

    @classmethod
    def guest(cls) -> "Identity":
        return cls(user_id=0, is_guest=True, firstname="Guest user")

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            user_id=user.id,
            is_guest=user.is_guest,
            firstname=user.firstname,
            lastname=user.lastname,
            email=user.email,
        )


class Role(BaseModel):
    id: int
    shortname: str
    name: str = ""


# --- Courses ---

class Course(BaseModel):
    id: int
    fullname: str
    shortname: str = ""


class EnrolmentInstance(BaseModel):
    id: int
    course_id: int
    enrol: str = PLUGIN_NAME
    name: str = ""
    status: InstanceStatus = "enabled"
    role_id: int | None = None
    enrol_start_date: datetime | None = None
    enrol_end_date: datetime | None = None

    @field_validator("enrol_start_date", "enrol_end_date", mode="before")
    @classmethod
    def normalize_dates(cls, value: Any) -> Any:
        return _zero_is_unbounded(value)

    @field_validator("enrol_start_date", "enrol_end_date", mode="after")
    @classmethod
    def dates_in_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def is_enabled(self) -> bool:
        return self.status == "enabled"

    @property
    def display_name(self) -> str:
        return self.name or "Invitation"


# --- Invitations ---

class InvitationToken(BaseModel):
    id: int | None = None
    token: str
    course_id: int
    creator_id: int
    email: str = ""
    role_id: int | None = None
    enrol_start_date: datetime | None = None
    enrol_end_date: datetime | None = None
    used: bool = False
    used_at: datetime | None = None
    redeemed_by_user_id: int | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("enrol_start_date", "enrol_end_date", mode="before")
    @classmethod
    def normalize_dates(cls, value: Any) -> Any:
        return _zero_is_unbounded(value)

    @field_validator("enrol_start_date", "enrol_end_date", mode="after")
    @classmethod
    def dates_in_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)
