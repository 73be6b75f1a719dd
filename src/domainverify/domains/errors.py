"""Failure kinds raised by domain verification.

Every failure the verification engine reports derives from
DomainVerificationError and carries an ErrorKind, so callers can branch on the
kind without caring about the concrete class.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Reason a verification operation failed."""

    NOT_FOUND = "not_found"
    NO_PENDING_VERIFICATION = "no_pending_verification"
    TOKEN_EXPIRED = "token_expired"
    TXT_VERIFICATION_FAILED = "txt_verification_failed"
    CNAME_VERIFICATION_FAILED = "cname_verification_failed"
    INVALID_INPUT = "invalid_input"


class DomainVerificationError(Exception):
    """Base class for failures surfaced to callers of the verification engine."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT
    default_message = "Domain verification error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(DomainVerificationError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Domain not found"


class NoPendingVerificationError(DomainVerificationError):
    kind = ErrorKind.NO_PENDING_VERIFICATION
    default_message = "No pending verification for this domain"


class TokenExpiredError(DomainVerificationError):
    kind = ErrorKind.TOKEN_EXPIRED
    default_message = "Verification token expired"


class TxtVerificationFailedError(DomainVerificationError):
    kind = ErrorKind.TXT_VERIFICATION_FAILED
    default_message = "TXT record verification failed"


class CnameVerificationFailedError(DomainVerificationError):
    kind = ErrorKind.CNAME_VERIFICATION_FAILED
    default_message = "CNAME record verification failed"


class InvalidInputError(DomainVerificationError):
    kind = ErrorKind.INVALID_INPUT
    default_message = "Invalid input"


class DuplicateDomainError(Exception):
    """Raised by a store when (name, customer_id) is already taken."""

    def __init__(self, name: str, customer_id: str | None) -> None:
        self.name = name
        self.customer_id = customer_id
        super().__init__(f"Domain {name!r} is already registered for customer {customer_id!r}")


class StoreUnavailableError(Exception):
    """Raised when the backing store cannot be read or written."""


class ResolverError(Exception):
    """Raised by a resolver when a DNS query fails (NXDOMAIN, timeout, network)."""

    def __init__(self, name: str, record_type: str, reason: str) -> None:
        self.name = name
        self.record_type = record_type
        self.reason = reason
        super().__init__(f"{record_type} lookup for {name} failed: {reason}")
