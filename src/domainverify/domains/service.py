"""Domain ownership verification engine.

This module owns the verification token lifecycle and the two-step DNS
proof of control:

1. TXT record: proves control over the domain's DNS. The caller publishes
   ``<txt_key_name>=<token>`` in a TXT record at the domain.
2. CNAME record: proves the domain points at the service. Only checked once
   the TXT proof has passed.

Usage:
    service = DomainVerificationService(JsonDomainStore("domains.json"), AiodnsResolver())

    await service.register_domain("acme.io", "10.0.0.1", customer_id="c1")
    token = await service.generate_verification_token("acme.io", "c1")
    # ... customer publishes TXT "verify-key=<token>" and CNAME -> svc.example.com
    await service.complete_domain_verification("acme.io", "svc.example.com", "c1", "verify-key")

State lives entirely in the store. The engine performs read-then-write
without locking; uniqueness of (name, customer_id) is enforced by the store.
"""

from __future__ import annotations

import secrets
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

import structlog

from domainverify.domains.errors import (
    CnameVerificationFailedError,
    InvalidInputError,
    NoPendingVerificationError,
    NotFoundError,
    StoreUnavailableError,
    TokenExpiredError,
    TxtVerificationFailedError,
)
from domainverify.domains.models import (
    DnsInstruction,
    DomainRecord,
    DomainStatusReport,
    VerificationInstructions,
    VerificationLogEntry,
    VerificationLogStatus,
    VerificationStep,
)
from domainverify.domains.resolver import Resolver
from domainverify.domains.storage import DomainStore

logger = structlog.get_logger()

TOKEN_BYTES = 32
DEFAULT_TOKEN_TTL = timedelta(hours=24)

VerifiedHook = Callable[[DomainRecord], Awaitable[None]]


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def txt_record_value(txt_key_name: str, token: str) -> str:
    """Format the TXT value a domain owner must publish."""
    return f"{txt_key_name}={token}"


def flatten_txt(records: list[list[str]]) -> set[str]:
    """Flatten grouped TXT chunks into a set of strings."""
    return {chunk for chunks in records for chunk in chunks}


class DomainVerificationService:
    """Registers domains and verifies their ownership via DNS.

    Record lifecycle:
        registered -> pending (token issued) -> TXT confirmed (token consumed)
        -> verified (CNAME confirmed)

    A failed check leaves a pending record pending until its token expires.
    """

    def __init__(
        self,
        store: DomainStore,
        resolver: Resolver,
        token_ttl: timedelta = DEFAULT_TOKEN_TTL,
        clock: Callable[[], datetime] = _utc_now,
        on_verified: VerifiedHook | None = None,
    ) -> None:
        """Initialize the verification service.

        Args:
            store: Storage backend holding records and the audit log.
            resolver: DNS resolver used for TXT and CNAME checks.
            token_ttl: How long an issued token stays valid.
            clock: Returns the current UTC time. Injected for tests.
            on_verified: Awaited with the record after it becomes verified. Runs
                after the verified state is stored; its errors are logged and
                do not fail the verification.
        """
        self.store = store
        self.resolver = resolver
        self.token_ttl = token_ttl
        self.clock = clock
        self.on_verified = on_verified

    async def _log(
        self,
        record: DomainRecord,
        step: VerificationStep,
        status: VerificationLogStatus,
        details: str | None = None,
    ) -> None:
        await self.store.append_log(
            VerificationLogEntry(
                domain_id=record.id,
                customer_id=record.customer_id,
                step=step,
                status=status,
                details=details,
                created_at=self.clock(),
            )
        )

    async def _require_record(self, domain: str, customer_id: str | None) -> DomainRecord:
        record = await self.store.find_one(domain, customer_id)
        if record is None:
            raise NotFoundError()
        return record

    async def check_store(self) -> bool:
        """Probe the store.

        Raises:
            StoreUnavailableError: If the store cannot be read.
        """
        try:
            return await self.store.ping()
        except StoreUnavailableError:
            logger.error("Domain store unavailable")
            raise

    async def register_domain(
        self,
        name: str,
        ip: str,
        customer_id: str | None = None,
    ) -> DomainRecord:
        """Register a domain or update the ip of an existing registration.

        Changing the ip of an existing record resets its verification; the
        same ip keeps it. Names and ips are stored exactly as given.

        Args:
            name: The domain name.
            ip: The address the domain should route to.
            customer_id: Owning customer. None is a distinct owner from "".

        Returns:
            The stored record.

        Raises:
            InvalidInputError: If name or ip is missing.
            DuplicateDomainError: If a concurrent registration won the insert.
        """
        if name is None or ip is None:
            raise InvalidInputError('"domain" and "ip" address are required')

        now = self.clock()
        existing = await self.store.find_one(name, customer_id)

        if existing is None:
            record = await self.store.insert(
                DomainRecord(
                    name=name,
                    ip=ip,
                    customer_id=customer_id,
                    is_verified=False,
                    created_at=now,
                    updated_at=now,
                )
            )
            logger.info("Domain registered", domain=name, customer_id=customer_id)
            return record

        ip_changed = existing.ip != ip
        changes: dict = {"ip": ip, "updated_at": now}
        if ip_changed:
            changes["is_verified"] = False
        record = await self.store.update(existing.id, **changes)

        if ip_changed:
            logger.info(
                "Domain ip changed, verification reset",
                domain=name,
                customer_id=customer_id,
                was_verified=existing.is_verified,
            )
        return record

    async def generate_verification_token(self, domain: str, customer_id: str | None) -> str:
        """Issue a fresh verification token, replacing any pending one.

        Returns:
            A 64-character lowercase hex token.

        Raises:
            NotFoundError: If the domain is not registered for the customer.
        """
        record = await self._require_record(domain, customer_id)

        now = self.clock()
        token = secrets.token_hex(TOKEN_BYTES)
        expires_at = now + self.token_ttl
        record = await self.store.update(
            record.id,
            verification_token=token,
            token_expires_at=expires_at,
            updated_at=now,
        )
        await self._log(
            record,
            VerificationStep.TOKEN_GENERATED,
            VerificationLogStatus.PENDING,
            f"Token expires at {expires_at.isoformat()}",
        )
        logger.info(
            "Verification token issued",
            domain=domain,
            customer_id=customer_id,
            expires_at=expires_at.isoformat(),
        )
        return token

    async def get_verification_instructions(
        self,
        domain: str,
        service_host: str,
        customer_id: str | None,
        txt_key_name: str,
    ) -> VerificationInstructions:
        """Describe the DNS records the owner has to publish.

        Raises:
            NotFoundError: If the domain is not registered for the customer.
            NoPendingVerificationError: If no token has been issued.
        """
        record = await self._require_record(domain, customer_id)
        if not record.has_pending_token:
            raise NoPendingVerificationError()

        return VerificationInstructions(
            txt=DnsInstruction(
                type="TXT",
                name=domain,
                value=txt_record_value(txt_key_name, record.verification_token),
                instruction=f"Add this TXT record to {domain}",
            ),
            cname=DnsInstruction(
                type="CNAME",
                name=domain,
                value=service_host,
                instruction=f"After TXT verification, point {domain} to {service_host}",
            ),
        )

    async def verify_txt_record(
        self,
        domain: str,
        customer_id: str | None,
        txt_key_name: str,
    ) -> bool:
        """Check the TXT ownership proof and consume the token on success.

        Any TXT string containing ``<txt_key_name>=<token>`` matches, so the
        proof may share a record with other content. DNS failures count as
        a failed check.

        Raises:
            NoPendingVerificationError: If there is no record or no token.
            TokenExpiredError: If the token expired. The token is cleared first.
        """
        record = await self.store.find_one(domain, customer_id)
        if record is None or not record.has_pending_token:
            raise NoPendingVerificationError()

        if record.is_token_expired(self.clock()):
            await self.store.update(
                record.id,
                verification_token=None,
                token_expires_at=None,
                updated_at=self.clock(),
            )
            logger.info("Verification token expired", domain=domain, customer_id=customer_id)
            raise TokenExpiredError()

        expected = txt_record_value(txt_key_name, record.verification_token)
        try:
            values = flatten_txt(await self.resolver.resolve_txt(domain))
        except Exception as e:
            logger.warning("TXT lookup failed", domain=domain, error=str(e))
            await self._log(
                record, VerificationStep.TXT_RECORD, VerificationLogStatus.FAILED, str(e)
            )
            return False

        if not any(expected in value for value in values):
            await self._log(
                record,
                VerificationStep.TXT_RECORD,
                VerificationLogStatus.FAILED,
                f"No TXT record containing {txt_key_name}=<token> ({len(values)} found)",
            )
            logger.info("TXT record not found", domain=domain, customer_id=customer_id)
            return False

        await self._log(
            record,
            VerificationStep.TXT_RECORD,
            VerificationLogStatus.SUCCESS,
            "TXT record verified",
        )
        await self.store.update(
            record.id,
            verification_token=None,
            token_expires_at=None,
            updated_at=self.clock(),
        )
        logger.info("TXT record verified", domain=domain, customer_id=customer_id)
        return True

    async def verify_cname_record(
        self,
        domain: str,
        expected_target: str,
        customer_id: str | None,
    ) -> bool:
        """Check that ``domain`` has a CNAME exactly equal to ``expected_target``.

        The comparison is byte-exact: "alias.example.com." does not match
        "alias.example.com". The check runs even for unknown domains, but
        only a known record gets an audit entry.
        """
        record = await self.store.find_one(domain, customer_id)

        try:
            targets = await self.resolver.resolve_cname(domain)
            verified = any(target == expected_target for target in targets)
            details = (
                f"CNAME points to {expected_target}"
                if verified
                else f"Expected {expected_target}, found {', '.join(targets) or 'nothing'}"
            )
        except Exception as e:
            logger.warning("CNAME lookup failed", domain=domain, error=str(e))
            verified, details = False, str(e)

        if record is not None:
            await self._log(
                record,
                VerificationStep.CNAME_RECORD,
                VerificationLogStatus.SUCCESS if verified else VerificationLogStatus.FAILED,
                details,
            )
        return verified

    async def complete_domain_verification(
        self,
        domain: str,
        service_host: str,
        customer_id: str | None,
        txt_key_name: str,
    ) -> bool:
        """Run the TXT then CNAME checks and mark the domain verified.

        The CNAME check is only attempted after the TXT check passes. A CNAME
        failure does not restore the consumed token; the caller has to issue
        a new one and start over.

        Returns:
            True once both checks passed.

        Raises:
            NoPendingVerificationError: If no token is pending.
            TokenExpiredError: If the pending token expired.
            TxtVerificationFailedError: If the TXT proof was not found.
            CnameVerificationFailedError: If the CNAME does not point at service_host.
        """
        if not await self.verify_txt_record(domain, customer_id, txt_key_name):
            raise TxtVerificationFailedError()

        if not await self.verify_cname_record(domain, service_host, customer_id):
            raise CnameVerificationFailedError()

        record = await self.store.find_one(domain, customer_id)
        if record is None:
            logger.warning(
                "Domain disappeared before verification was persisted",
                domain=domain,
                customer_id=customer_id,
            )
            return True

        record = await self.store.update(record.id, is_verified=True, updated_at=self.clock())
        await self._log(
            record,
            VerificationStep.COMPLETED,
            VerificationLogStatus.SUCCESS,
            f"Domain verified for {service_host}",
        )
        logger.info("Domain verified", domain=domain, customer_id=customer_id)

        if self.on_verified is not None:
            try:
                await self.on_verified(record)
            except Exception as e:
                logger.warning(
                    "Post-verification hook failed",
                    domain=domain,
                    customer_id=customer_id,
                    error=str(e),
                )
        return True

    async def get_domain_status(self, domain: str, customer_id: str | None) -> DomainStatusReport:
        """Report the verification state of a domain.

        A pending token counts as active even if it has expired; expiry is
        only enforced on the next TXT check.

        Raises:
            NotFoundError: If the domain is not registered for the customer.
        """
        record = await self._require_record(domain, customer_id)
        return DomainStatusReport.from_record(record)

    async def list_verification_logs(
        self, domain: str, customer_id: str | None
    ) -> list[VerificationLogEntry]:
        """Return the audit history of a domain, oldest first.

        Raises:
            NotFoundError: If the domain is not registered for the customer.
        """
        record = await self._require_record(domain, customer_id)
        return await self.store.list_logs(record.id)
