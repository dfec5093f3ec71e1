"""
End-to-end invitation journey against SQLite: issue, redeem, reuse.
"""

import sqlite3
from datetime import UTC, datetime, timedelta

import pytest

from enrol_invitation.adapters.clock import FixedClock
from enrol_invitation.adapters.dev_email import DevEmailAdapter
from enrol_invitation.adapters.sqlite.repos import (
    SQLiteCourseRepo,
    SQLiteEnrolmentManager,
    SQLiteInstanceRepo,
    SQLiteInvitationRepo,
    SQLiteRoleRepo,
    SQLiteUserRepo,
)
from enrol_invitation.components.invitation import (
    IssueInvitationInput,
    Outcome,
    RedeemInvitationInput,
    run_issue,
    run_redeem,
)
from enrol_invitation.domain.entities import EnrolmentInstance, Identity, InvitationToken
from enrol_invitation.domain.policy import CoursePolicy, PolicyEngine

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def ctx(seeded_db, rules, invitation_settings) -> dict[str, object]:
    return {
        "invitations": SQLiteInvitationRepo(seeded_db),
        "instances": SQLiteInstanceRepo(seeded_db),
        "courses": SQLiteCourseRepo(seeded_db),
        "users": SQLiteUserRepo(seeded_db),
        "enrolments": SQLiteEnrolmentManager(seeded_db),
        "policy": CoursePolicy(PolicyEngine(rules.rbac), SQLiteRoleRepo(seeded_db)),
        "mailer": DevEmailAdapter(),
        "settings": invitation_settings,
        "time": FixedClock(NOW),
    }


def identity(ctx, user_id: int) -> Identity:
    user = ctx["users"].get_by_id(user_id)
    assert user is not None
    return Identity.from_user(user)


def issue(ctx, email: str = "ben@example.com") -> str:
    result = run_issue(
        IssueInvitationInput(course_id=10, creator=identity(ctx, 2), email=email),
        invitations=ctx["invitations"],
        instances=ctx["instances"],
        courses=ctx["courses"],
        policy=ctx["policy"],
        mailer=ctx["mailer"],
        settings=ctx["settings"],
        time=ctx["time"],
    )
    assert result.success, result.error
    assert result.token is not None
    return result.token


def redeem(ctx, token: str, user_id: int, course_id: int = 10):
    return run_redeem(
        RedeemInvitationInput(token=token, course_id=course_id, identity=identity(ctx, user_id)),
        invitations=ctx["invitations"],
        instances=ctx["instances"],
        courses=ctx["courses"],
        users=ctx["users"],
        enrolments=ctx["enrolments"],
        mailer=ctx["mailer"],
        settings=ctx["settings"],
        time=ctx["time"],
    )


def test_full_journey(ctx) -> None:
    token = issue(ctx)
    mailer = ctx["mailer"]
    assert mailer.get_emails_to("ben@example.com")

    result = redeem(ctx, token, 3)

    assert result.success
    assert ctx["enrolments"].is_enrolled(10, 3)
    assert ctx["invitations"].list_pending(10) == []
    assert mailer.get_emails_to("ada@example.com")

    again = redeem(ctx, token, 4)
    assert again.code == "not_found"
    assert again.outcome == Outcome.INVALID
    assert not ctx["enrolments"].is_enrolled(10, 4)


def test_each_invitation_redeems_once(ctx) -> None:
    first = issue(ctx)
    second = issue(ctx, "cy@example.com")

    assert redeem(ctx, first, 3).success
    assert redeem(ctx, second, 4).success
    assert redeem(ctx, first, 4).code == "not_found"


def test_window_copied_from_instance(ctx) -> None:
    ctx["instances"].save(
        EnrolmentInstance(
            id=100,
            course_id=10,
            name="Invitations",
            role_id=5,
            enrol_start_date=NOW + timedelta(days=2),
        )
    )
    token = issue(ctx)

    result = redeem(ctx, token, 3)

    assert result.code == "not_yet_open"
    assert result.outcome == Outcome.NO_ACTION
    assert len(ctx["invitations"].list_pending(10)) == 1


def test_wrong_course_leaves_token_usable(ctx) -> None:
    token = issue(ctx)

    assert redeem(ctx, token, 3, course_id=20).code == "course_mismatch"
    assert redeem(ctx, token, 3).success


def test_naive_instance_window_redeems(ctx) -> None:
    ctx["instances"].save(
        EnrolmentInstance(
            id=100,
            course_id=10,
            name="Invitations",
            role_id=5,
            enrol_start_date=datetime(2025, 5, 1),
            enrol_end_date=datetime(2025, 7, 1),
        )
    )
    token = issue(ctx)

    result = redeem(ctx, token, 3)

    assert result.success
    assert result.invitation.enrol_end_date == datetime(2025, 7, 1, tzinfo=UTC)


# --- Parallel redemption ---


class SnapshotInvitationRepo(SQLiteInvitationRepo):
    """Returns the row as read before another request finalized it."""

    def __init__(self, db_path: str, snapshot: InvitationToken) -> None:
        super().__init__(db_path)
        self.snapshot = snapshot

    def get_unused_by_token(self, token: str) -> InvitationToken | None:
        return self.snapshot if token == self.snapshot.token else None


class LaggingEnrolmentManager(SQLiteEnrolmentManager):
    """Answers "not enrolled" to the first lookup, as a read taken too early would."""

    def __init__(self, db_path: str) -> None:
        super().__init__(db_path)
        self.stale_reads = 1

    def is_enrolled(self, course_id: int, user_id: int) -> bool:
        if self.stale_reads > 0:
            self.stale_reads -= 1
            return False
        return super().is_enrolled(course_id, user_id)


def enrolment_rows(db_path: str, instance_id: int = 100) -> list[int]:
    conn = sqlite3.connect(db_path)
    try:
        rows = conn.execute(
            "SELECT user_id FROM user_enrolments WHERE instance_id = ? ORDER BY user_id",
            (instance_id,),
        ).fetchall()
        return [r[0] for r in rows]
    finally:
        conn.close()


class TestParallelRedemption:
    def test_loser_is_unenrolled(self, ctx, seeded_db) -> None:
        token = issue(ctx)
        snapshot = ctx["invitations"].get_unused_by_token(token)
        assert snapshot is not None
        assert redeem(ctx, token, 3).success

        ctx["invitations"] = SnapshotInvitationRepo(seeded_db, snapshot)
        result = redeem(ctx, token, 4)

        assert result.code == "already_redeemed"
        assert result.outcome == Outcome.INVALID
        assert enrolment_rows(seeded_db) == [3]
        assert ctx["enrolments"].is_enrolled(10, 3)
        assert SQLiteRoleRepo(seeded_db).get_role_shortnames(4, 10) == []

    def test_loser_keeps_roles_it_already_held(self, ctx, seeded_db) -> None:
        token = issue(ctx)
        snapshot = ctx["invitations"].get_unused_by_token(token)
        assert snapshot is not None
        assert redeem(ctx, token, 3).success

        # Ada teaches the course but holds no enrolment in it
        ctx["invitations"] = SnapshotInvitationRepo(seeded_db, snapshot)
        result = redeem(ctx, token, 2)

        assert result.code == "already_redeemed"
        assert enrolment_rows(seeded_db) == [3]
        assert SQLiteRoleRepo(seeded_db).get_role_shortnames(2, 10) == ["editingteacher"]

    def test_same_user_twice_reports_already_redeemed(self, ctx, seeded_db) -> None:
        token = issue(ctx)
        snapshot = ctx["invitations"].get_unused_by_token(token)
        assert snapshot is not None
        assert redeem(ctx, token, 3).success

        ctx["invitations"] = SnapshotInvitationRepo(seeded_db, snapshot)
        ctx["enrolments"] = LaggingEnrolmentManager(seeded_db)
        result = redeem(ctx, token, 3)

        assert result.code == "already_redeemed"
        assert result.outcome == Outcome.INVALID
        assert enrolment_rows(seeded_db) == [3]
        assert SQLiteRoleRepo(seeded_db).get_role_shortnames(3, 10) == ["student"]
