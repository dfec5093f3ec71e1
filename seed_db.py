import os

from enrol_invitation.adapters.sqlite.migrator import SQLiteMigrator
from enrol_invitation.adapters.sqlite.repos import (
    SQLiteCourseRepo,
    SQLiteInstanceRepo,
    SQLiteRoleRepo,
    SQLiteUserRepo,
)
from enrol_invitation.api.auth_utils import create_access_token
from enrol_invitation.domain.entities import Course, EnrolmentInstance, Role, User

DEMO_ROLES = [
    Role(id=1, shortname="manager", name="Manager"),
    Role(id=3, shortname="editingteacher", name="Teacher"),
    Role(id=4, shortname="teacher", name="Non-editing teacher"),
    Role(id=5, shortname="student", name="Student"),
]

DEMO_USERS = [
    User(id=2, email="teacher@example.com", firstname="Tess", lastname="Teacher"),
    User(id=3, email="student@example.com", firstname="Sam", lastname="Student"),
]


def seed(data_dir: str | None = None) -> dict[str, str]:
    """
    Create a demo course with an invitation instance and two users.

    Returns bearer tokens for the demo users, keyed by email.
    """
    data_dir = data_dir or os.environ.get("INVITATION_DATA_DIR", "./data")
    os.makedirs(data_dir, exist_ok=True)

    db_path = f"{data_dir}/invitation.db"
    print(f"Seeding to {db_path}")
    SQLiteMigrator(db_path, "migrations").run_migrations()

    roles = SQLiteRoleRepo(db_path)
    for role in DEMO_ROLES:
        roles.save(role)

    SQLiteCourseRepo(db_path).save(Course(id=2, fullname="Demo Course", shortname="DEMO"))
    SQLiteInstanceRepo(db_path).save(
        EnrolmentInstance(id=1, course_id=2, name="Invitations", role_id=5)
    )

    users = SQLiteUserRepo(db_path)
    tokens = {}
    for user in DEMO_USERS:
        users.save(user)
        tokens[user.email] = create_access_token({"sub": str(user.id)})
    roles.assign(course_id=2, user_id=2, role_id=3)

    for email, token in tokens.items():
        print(f"{email}: Bearer {token}")
    return tokens


if __name__ == "__main__":
    seed()
