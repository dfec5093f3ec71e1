from datetime import UTC, datetime


class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Clock frozen at a given instant; used by tests and seeding scripts."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now_utc(self) -> datetime:
        return self.instant
