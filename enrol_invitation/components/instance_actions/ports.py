from typing import Protocol


class PolicyPort(Protocol):
    """Capability checks for a user within a course."""

    def has_capability(self, user_id: int, capability: str, course_id: int) -> bool:
        ...
