import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from enrol_invitation.adapters.clock import SystemClock
from enrol_invitation.adapters.dev_email import DevEmailAdapter
from enrol_invitation.adapters.sqlite.repos import (
    SQLiteCourseRepo,
    SQLiteEnrolmentManager,
    SQLiteInstanceRepo,
    SQLiteInvitationRepo,
    SQLiteRoleRepo,
    SQLiteUserRepo,
)
from enrol_invitation.api.auth_utils import decode_access_token
from enrol_invitation.components.instance_actions import (
    InstanceActions,
    create_instance_actions,
)
from enrol_invitation.components.invitation import InvitationSettings
from enrol_invitation.domain.entities import Identity
from enrol_invitation.domain.policy import CoursePolicy, PolicyEngine
from enrol_invitation.rules.loader import load_rules
from enrol_invitation.rules.models import Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("INVITATION_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "invitation.db")
        self.migrations_dir = str(self.base_dir / "migrations")
        self.rules_path = Path(
            os.environ.get("INVITATION_RULES_PATH", str(self.base_dir / "rules.yaml"))
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


def get_invitation_settings(rules: Rules = Depends(get_rules)) -> InvitationSettings:
    return InvitationSettings.from_rules(rules)


# --- Repos ---
def get_invitation_repo(settings: Settings = Depends(get_settings)) -> SQLiteInvitationRepo:
    return SQLiteInvitationRepo(settings.db_path)


def get_instance_repo(settings: Settings = Depends(get_settings)) -> SQLiteInstanceRepo:
    return SQLiteInstanceRepo(settings.db_path)


def get_course_repo(settings: Settings = Depends(get_settings)) -> SQLiteCourseRepo:
    return SQLiteCourseRepo(settings.db_path)


def get_user_repo(settings: Settings = Depends(get_settings)) -> SQLiteUserRepo:
    return SQLiteUserRepo(settings.db_path)


def get_role_repo(settings: Settings = Depends(get_settings)) -> SQLiteRoleRepo:
    return SQLiteRoleRepo(settings.db_path)


def get_enrolment_manager(
    settings: Settings = Depends(get_settings),
) -> SQLiteEnrolmentManager:
    return SQLiteEnrolmentManager(settings.db_path)


# --- Services ---
def get_policy(
    rules: Rules = Depends(get_rules),
    roles: SQLiteRoleRepo = Depends(get_role_repo),
) -> CoursePolicy:
    return CoursePolicy(PolicyEngine(rules.rbac), roles)


def get_instance_actions(
    rules: Rules = Depends(get_rules),
    policy: CoursePolicy = Depends(get_policy),
) -> InstanceActions:
    return create_instance_actions(rules, policy)


# Time adapter for deterministic time operations
_clock_instance: SystemClock | None = None


def get_clock() -> SystemClock:
    """Get clock singleton."""
    global _clock_instance
    if _clock_instance is None:
        _clock_instance = SystemClock()
    return _clock_instance


# Mail goes through the dev adapter until the host wires its mail service
_mailer_instance: DevEmailAdapter | None = None


def get_mailer() -> DevEmailAdapter:
    """Get mailer singleton."""
    global _mailer_instance
    if _mailer_instance is None:
        _mailer_instance = DevEmailAdapter()
    return _mailer_instance


# --- Identity ---
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login", auto_error=False)


async def get_current_identity(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
) -> Identity:
    """
    Resolve who is making the request.

    No credentials means an anonymous guest; bad credentials are rejected.
    """
    cookie_token = request.cookies.get("access_token")
    if cookie_token and cookie_token.startswith("Bearer "):
        token = cookie_token.split(" ")[1]

    if not token:
        return Identity.guest()

    payload = decode_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    user = user_repo.get_by_id(int(subject))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    return Identity.from_user(user)


async def require_user(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.is_guest:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
