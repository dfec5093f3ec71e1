# enrol-invitation - Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from enrol_invitation.core.ports.email import (
    EmailAddress,
    EmailError,
    EmailMessage,
    EmailPort,
    EmailResult,
    EmailStatus,
)

__all__ = [
    "EmailAddress",
    "EmailError",
    "EmailMessage",
    "EmailPort",
    "EmailResult",
    "EmailStatus",
]
