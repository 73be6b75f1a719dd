"""Records tracked by the domain verification engine.

A DomainRecord exists once per (name, customer_id) pair. Its verification
token and expiry are set and cleared together, so a record is either pending
verification (both present) or not (both absent).

Storage format (as written by JsonDomainStore):
    {
        "id": "4f1c2b...",
        "name": "acme.io",
        "ip": "10.0.0.1",
        "customer_id": "c1",
        "is_verified": false,
        "verification_token": "9b0e...",
        "token_expires_at": "2024-01-16T10:00:00+00:00",
        "created_at": "2024-01-15T10:00:00+00:00",
        "updated_at": "2024-01-15T10:00:00+00:00"
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class VerificationStep(Enum):
    """Sub-step of the verification protocol recorded in the audit log."""

    TOKEN_GENERATED = "token_generated"
    TXT_RECORD = "txt_record"
    CNAME_RECORD = "cname_record"
    COMPLETED = "completed"


class VerificationLogStatus(Enum):
    """Outcome of an audited verification step."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class DomainRecord:
    """A domain registered by one customer.

    ``customer_id`` of None is a distinct owner from the empty string.
    """

    name: str
    ip: str
    customer_id: str | None = None
    id: str | None = None
    is_verified: bool = False
    verification_token: str | None = None
    token_expires_at: datetime | None = None
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    @property
    def has_pending_token(self) -> bool:
        """True while a verification token is held, expired or not."""
        return self.verification_token is not None

    def is_token_expired(self, now: datetime) -> bool:
        """Check whether the held token has passed its expiry at ``now``."""
        return self.token_expires_at is not None and now > self.token_expires_at

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "ip": self.ip,
            "customer_id": self.customer_id,
            "is_verified": self.is_verified,
            "verification_token": self.verification_token,
            "token_expires_at": self.token_expires_at.isoformat()
            if self.token_expires_at
            else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DomainRecord:
        """Create from dictionary (JSON deserialization)."""
        return cls(
            id=data.get("id"),
            name=data["name"],
            ip=data["ip"],
            customer_id=data.get("customer_id"),
            is_verified=data.get("is_verified", False),
            verification_token=data.get("verification_token"),
            token_expires_at=_parse_datetime(data.get("token_expires_at")),
            created_at=_parse_datetime(data.get("created_at")) or _utc_now(),
            updated_at=_parse_datetime(data.get("updated_at")) or _utc_now(),
        )


@dataclass
class VerificationLogEntry:
    """Append-only audit entry for one verification sub-step attempt."""

    domain_id: str
    customer_id: str | None
    step: VerificationStep
    status: VerificationLogStatus
    details: str | None = None
    id: str | None = None
    created_at: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "domain_id": self.domain_id,
            "customer_id": self.customer_id,
            "step": self.step.value,
            "status": self.status.value,
            "details": self.details,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VerificationLogEntry:
        return cls(
            id=data.get("id"),
            domain_id=data["domain_id"],
            customer_id=data.get("customer_id"),
            step=VerificationStep(data["step"]),
            status=VerificationLogStatus(data["status"]),
            details=data.get("details"),
            created_at=_parse_datetime(data.get("created_at")) or _utc_now(),
        )


@dataclass
class DomainStatusReport:
    """Read-only view of a domain's verification state."""

    domain: str
    ip: str
    is_verified: bool
    has_active_pending_verification: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: DomainRecord) -> DomainStatusReport:
        return cls(
            domain=record.name,
            ip=record.ip,
            is_verified=record.is_verified,
            has_active_pending_verification=record.has_pending_token,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Render with the camelCase keys used by the HTTP API."""
        return {
            "domain": self.domain,
            "ip": self.ip,
            "isVerified": self.is_verified,
            "hasActivePendingVerification": self.has_active_pending_verification,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class DnsInstruction:
    """A single DNS record the domain owner has to publish."""

    type: str
    name: str
    value: str
    instruction: str

    def to_dict(self) -> dict[str, str]:
        return {
            "type": self.type,
            "name": self.name,
            "value": self.value,
            "instruction": self.instruction,
        }


@dataclass
class VerificationInstructions:
    """DNS setup steps: a TXT ownership proof, then a CNAME to the service."""

    txt: DnsInstruction
    cname: DnsInstruction

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {"step1": self.txt.to_dict(), "step2": self.cname.to_dict()}
