from pathlib import Path

import pytest

from enrol_invitation.adapters.sqlite.migrator import SQLiteMigrator
from enrol_invitation.adapters.sqlite.repos import (
    SQLiteCourseRepo,
    SQLiteInstanceRepo,
    SQLiteRoleRepo,
    SQLiteUserRepo,
)
from enrol_invitation.components.invitation import InvitationSettings
from enrol_invitation.domain.entities import Course, EnrolmentInstance, Role, User
from enrol_invitation.rules.loader import load_rules
from enrol_invitation.rules.models import Rules


@pytest.fixture
def rules() -> Rules:
    """Real rules from the project root (tests run from the root)."""
    return load_rules(Path("rules.yaml").resolve())


@pytest.fixture
def invitation_settings(rules: Rules) -> InvitationSettings:
    return InvitationSettings.from_rules(rules)


@pytest.fixture
def db_path(tmp_path) -> str:
    """Temporary SQLite database with all migrations applied."""
    path = str(tmp_path / "invitation.db")
    SQLiteMigrator(path, "migrations").run_migrations()
    return path


@pytest.fixture
def seeded_db(db_path: str) -> str:
    """
    Database with one course, its invitation instance and three users.

    - user 2 (Ada Teacher) holds editingteacher in course 10
    - user 3 (Ben Student) is not enrolled anywhere
    - user 4 (Cy Other) is not enrolled anywhere
    """
    roles = SQLiteRoleRepo(db_path)
    roles.save(Role(id=3, shortname="editingteacher", name="Teacher"))
    roles.save(Role(id=5, shortname="student", name="Student"))

    SQLiteCourseRepo(db_path).save(Course(id=10, fullname="Intro to Testing", shortname="IT101"))
    SQLiteCourseRepo(db_path).save(Course(id=20, fullname="Other Course", shortname="OC"))

    users = SQLiteUserRepo(db_path)
    users.save(User(id=2, email="ada@example.com", firstname="Ada", lastname="Teacher"))
    users.save(User(id=3, email="ben@example.com", firstname="Ben", lastname="Student"))
    users.save(User(id=4, email="cy@example.com", firstname="Cy", lastname="Other"))

    instances = SQLiteInstanceRepo(db_path)
    instances.save(EnrolmentInstance(id=100, course_id=10, name="Invitations", role_id=5))
    instances.save(EnrolmentInstance(id=200, course_id=20, role_id=5))

    roles.assign(course_id=10, user_id=2, role_id=3)
    return db_path
