from datetime import UTC, datetime

import pytest

from enrol_invitation.domain.entities import (
    EnrolmentInstance,
    Identity,
    InvitationToken,
    User,
)
from enrol_invitation.domain.links import LinkBuilder


class TestZeroDates:
    @pytest.mark.parametrize("zero", [0, "0", ""])
    def test_zero_means_unbounded(self, zero) -> None:
        token = InvitationToken(
            token="x" * 32,
            course_id=1,
            creator_id=1,
            enrol_start_date=zero,
            enrol_end_date=zero,
        )
        assert token.enrol_start_date is None
        assert token.enrol_end_date is None

    def test_instance_dates_normalized(self) -> None:
        instance = EnrolmentInstance(id=1, course_id=1, enrol_start_date=0)
        assert instance.enrol_start_date is None

    def test_real_dates_kept(self) -> None:
        start = datetime(2025, 1, 1, tzinfo=UTC)
        token = InvitationToken(token="x" * 32, course_id=1, creator_id=1, enrol_start_date=start)
        assert token.enrol_start_date == start

    def test_naive_dates_read_as_utc(self) -> None:
        token = InvitationToken(
            token="x" * 32,
            course_id=1,
            creator_id=1,
            enrol_start_date=datetime(2025, 1, 1),
            enrol_end_date="2025-02-01T00:00:00",
        )
        assert token.enrol_start_date == datetime(2025, 1, 1, tzinfo=UTC)
        assert token.enrol_end_date == datetime(2025, 2, 1, tzinfo=UTC)

        instance = EnrolmentInstance(id=1, course_id=1, enrol_end_date=datetime(2025, 2, 1))
        assert instance.enrol_end_date is not None
        assert instance.enrol_end_date.tzinfo is UTC


class TestIdentity:
    def test_guest(self) -> None:
        guest = Identity.guest()
        assert guest.is_guest
        assert guest.user_id == 0

    def test_from_user(self) -> None:
        user = User(id=3, email="ben@example.com", firstname="Ben", lastname="Student")
        identity = Identity.from_user(user)
        assert identity.user_id == 3
        assert not identity.is_guest
        assert identity.fullname == "Ben Student"


class TestInstance:
    def test_status_and_name(self) -> None:
        assert EnrolmentInstance(id=1, course_id=1).is_enabled
        assert not EnrolmentInstance(id=1, course_id=1, status="disabled").is_enabled
        assert EnrolmentInstance(id=1, course_id=1).display_name == "Invitation"


class TestLinkBuilder:
    def test_build_skips_none(self) -> None:
        links = LinkBuilder("http://lms.test/")
        url = links.build("/course/view", id=5, section=None)
        assert url == "http://lms.test/course/view?id=5"
        assert links.site_url() == "http://lms.test/"
