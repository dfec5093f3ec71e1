import logging
import sqlite3
from datetime import UTC, datetime
from typing import Any

from enrol_invitation.components.invitation.models import EnrolError, PersistError
from enrol_invitation.domain.entities import (
    PLUGIN_NAME,
    Course,
    EnrolmentInstance,
    InvitationToken,
    Role,
    User,
)

logger = logging.getLogger(__name__)


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


def parse_dt(s: str | None) -> datetime | None:
    return datetime.fromisoformat(s) if s else None


def format_dt(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


class SQLiteRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn


class SQLiteInvitationRepo(SQLiteRepo):
    def get_unused_by_token(self, token: str) -> InvitationToken | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM enrol_invitations WHERE token = ? AND used = 0", (token,)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            conn.close()

    def get_by_id(self, invitation_id: int) -> InvitationToken | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM enrol_invitations WHERE id = ?", (invitation_id,)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            conn.close()

    def save(self, invitation: InvitationToken) -> InvitationToken:
        values = (
            invitation.token,
            invitation.course_id,
            invitation.creator_id,
            invitation.email,
            invitation.role_id,
            format_dt(invitation.enrol_start_date),
            format_dt(invitation.enrol_end_date),
            int(invitation.used),
            format_dt(invitation.used_at),
            invitation.redeemed_by_user_id,
            format_dt(invitation.created_at),
        )
        conn = self._get_conn()
        try:
            if invitation.id is None:
                cursor = conn.execute(
                    """
                    INSERT INTO enrol_invitations (
                        token, course_id, creator_id, email, role_id,
                        enrol_start_date, enrol_end_date, used, used_at,
                        redeemed_by_user_id, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    values,
                )
                invitation = invitation.model_copy(update={"id": cursor.lastrowid})
            else:
                conn.execute(
                    """
                    UPDATE enrol_invitations SET
                        token = ?, course_id = ?, creator_id = ?, email = ?, role_id = ?,
                        enrol_start_date = ?, enrol_end_date = ?, used = ?, used_at = ?,
                        redeemed_by_user_id = ?, created_at = ?
                    WHERE id = ?
                    """,
                    (*values, invitation.id),
                )
            conn.commit()
            return invitation
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistError(f"Could not save invitation: {e}") from e
        finally:
            conn.close()

    def mark_used(self, invitation_id: int, user_id: int, used_at: datetime) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                UPDATE enrol_invitations
                SET used = 1, used_at = ?, redeemed_by_user_id = ?
                WHERE id = ? AND used = 0
                """,
                (used_at.isoformat(), user_id, invitation_id),
            )
            conn.commit()
            return cursor.rowcount == 1
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistError(f"Could not mark invitation {invitation_id} used: {e}") from e
        finally:
            conn.close()

    def list_pending(self, course_id: int) -> list[InvitationToken]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM enrol_invitations WHERE course_id = ? AND used = 0 "
                "ORDER BY created_at DESC, id DESC",
                (course_id,),
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            conn.close()

    def _map_row(self, row: dict[str, Any]) -> InvitationToken:
        return InvitationToken(
            id=row["id"],
            token=row["token"],
            course_id=row["course_id"],
            creator_id=row["creator_id"],
            email=row["email"],
            role_id=row["role_id"],
            enrol_start_date=parse_dt(row["enrol_start_date"]),
            enrol_end_date=parse_dt(row["enrol_end_date"]),
            used=bool(row["used"]),
            used_at=parse_dt(row["used_at"]),
            redeemed_by_user_id=row["redeemed_by_user_id"],
            created_at=parse_dt(row["created_at"]) or datetime.min.replace(tzinfo=UTC),
        )


class SQLiteUserRepo(SQLiteRepo):
    def get_by_id(self, user_id: int) -> User | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._map_row(row) if row else None
        finally:
            conn.close()

    def save(self, user: User) -> User:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO users (id, email, firstname, lastname, is_guest)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email=excluded.email,
                    firstname=excluded.firstname,
                    lastname=excluded.lastname,
                    is_guest=excluded.is_guest
                """,
                (user.id, user.email, user.firstname, user.lastname, int(user.is_guest)),
            )
            conn.commit()
            return user
        finally:
            conn.close()

    def _map_row(self, row: dict[str, Any]) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            firstname=row["firstname"],
            lastname=row["lastname"],
            is_guest=bool(row["is_guest"]),
        )


class SQLiteCourseRepo(SQLiteRepo):
    def get_by_id(self, course_id: int) -> Course | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
            return Course(**row) if row else None
        finally:
            conn.close()

    def save(self, course: Course) -> Course:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO courses (id, fullname, shortname) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    fullname=excluded.fullname,
                    shortname=excluded.shortname
                """,
                (course.id, course.fullname, course.shortname),
            )
            conn.commit()
            return course
        finally:
            conn.close()


class SQLiteRoleRepo(SQLiteRepo):
    def save(self, role: Role) -> Role:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO roles (id, shortname, name) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    shortname=excluded.shortname,
                    name=excluded.name
                """,
                (role.id, role.shortname, role.name),
            )
            conn.commit()
            return role
        finally:
            conn.close()

    def assign(self, course_id: int, user_id: int, role_id: int) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT OR IGNORE INTO role_assignments (course_id, user_id, role_id, created_at) "
                "VALUES (?, ?, ?, ?)",
                (course_id, user_id, role_id, datetime.now(UTC).isoformat()),
            )
            conn.commit()
        finally:
            conn.close()

    def get_role_shortnames(self, user_id: int, course_id: int) -> list[str]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT r.shortname FROM role_assignments ra
                JOIN roles r ON r.id = ra.role_id
                WHERE ra.user_id = ? AND ra.course_id = ?
                ORDER BY r.id
                """,
                (user_id, course_id),
            ).fetchall()
            return [r["shortname"] for r in rows]
        finally:
            conn.close()


class SQLiteInstanceRepo(SQLiteRepo):
    def get_for_course(self, course_id: int) -> EnrolmentInstance | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM enrol_instances WHERE course_id = ? AND enrol = ? "
                "ORDER BY id LIMIT 1",
                (course_id, PLUGIN_NAME),
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            conn.close()

    def list_for_course(self, course_id: int) -> list[EnrolmentInstance]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM enrol_instances WHERE course_id = ? ORDER BY id", (course_id,)
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            conn.close()

    def save(self, instance: EnrolmentInstance) -> EnrolmentInstance:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO enrol_instances (
                    id, course_id, enrol, name, status, role_id,
                    enrol_start_date, enrol_end_date
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    course_id=excluded.course_id,
                    enrol=excluded.enrol,
                    name=excluded.name,
                    status=excluded.status,
                    role_id=excluded.role_id,
                    enrol_start_date=excluded.enrol_start_date,
                    enrol_end_date=excluded.enrol_end_date
                """,
                (
                    instance.id,
                    instance.course_id,
                    instance.enrol,
                    instance.name,
                    instance.status,
                    instance.role_id,
                    format_dt(instance.enrol_start_date),
                    format_dt(instance.enrol_end_date),
                ),
            )
            conn.commit()
            return instance
        finally:
            conn.close()

    def _map_row(self, row: dict[str, Any]) -> EnrolmentInstance:
        return EnrolmentInstance(
            id=row["id"],
            course_id=row["course_id"],
            enrol=row["enrol"],
            name=row["name"],
            status=row["status"],
            role_id=row["role_id"],
            enrol_start_date=parse_dt(row["enrol_start_date"]),
            enrol_end_date=parse_dt(row["enrol_end_date"]),
        )


class SQLiteEnrolmentManager(SQLiteRepo):
    """Enrols users through the course's invitation instance."""

    def is_enrolled(self, course_id: int, user_id: int) -> bool:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT 1 FROM user_enrolments ue
                JOIN enrol_instances ei ON ei.id = ue.instance_id
                WHERE ei.course_id = ? AND ue.user_id = ?
                LIMIT 1
                """,
                (course_id, user_id),
            ).fetchone()
            return row is not None
        finally:
            conn.close()

    def enrol_user(self, course_id: int, user_id: int, role_id: int) -> None:
        now = datetime.now(UTC).isoformat()
        conn = self._get_conn()
        try:
            instance_id = self._invitation_instance_id(conn, course_id)
            cursor = conn.execute(
                "INSERT OR IGNORE INTO role_assignments (course_id, user_id, role_id, created_at) "
                "VALUES (?, ?, ?, ?)",
                (course_id, user_id, role_id, now),
            )
            # A role the user already held stays theirs; only a new one is tied to this enrolment
            role_assignment_id = cursor.lastrowid if cursor.rowcount == 1 else None
            conn.execute(
                "INSERT INTO user_enrolments "
                "(instance_id, user_id, role_assignment_id, created_at) VALUES (?, ?, ?, ?)",
                (instance_id, user_id, role_assignment_id, now),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise EnrolError(f"Could not enrol user {user_id} in course {course_id}: {e}") from e
        finally:
            conn.close()

    def unenrol_user(self, course_id: int, user_id: int) -> None:
        conn = self._get_conn()
        try:
            instance_id = self._invitation_instance_id(conn, course_id)
            row = conn.execute(
                "SELECT role_assignment_id FROM user_enrolments "
                "WHERE instance_id = ? AND user_id = ?",
                (instance_id, user_id),
            ).fetchone()
            conn.execute(
                "DELETE FROM user_enrolments WHERE instance_id = ? AND user_id = ?",
                (instance_id, user_id),
            )
            if row and row["role_assignment_id"] is not None:
                conn.execute(
                    "DELETE FROM role_assignments WHERE id = ?", (row["role_assignment_id"],)
                )
            conn.commit()
            logger.info("Unenrolled user %s from course %s", user_id, course_id)
        except sqlite3.Error as e:
            conn.rollback()
            raise EnrolError(
                f"Could not unenrol user {user_id} from course {course_id}: {e}"
            ) from e
        finally:
            conn.close()

    def _invitation_instance_id(self, conn: sqlite3.Connection, course_id: int) -> int:
        row = conn.execute(
            "SELECT id FROM enrol_instances WHERE course_id = ? AND enrol = ? ORDER BY id LIMIT 1",
            (course_id, PLUGIN_NAME),
        ).fetchone()
        if row is None:
            raise EnrolError(f"Course {course_id} has no invitation enrolment instance")
        instance_id: int = row["id"]
        return instance_id
