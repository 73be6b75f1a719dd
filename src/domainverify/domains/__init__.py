"""Domain ownership verification.

This package proves that a customer controls a domain before traffic for it
is routed on their behalf.

Features:
- Per-customer domain registration keyed by (name, customer_id)
- Single-use, expiring verification tokens
- DNS proof of control: TXT record first, then CNAME to the service host
- Append-only audit log of every verification step
- JSON file or in-memory storage

Usage:
    from domainverify.domains import (
        AiodnsResolver,
        DomainVerificationService,
        JsonDomainStore,
    )

    service = DomainVerificationService(JsonDomainStore("domains.json"), AiodnsResolver())

    await service.register_domain("acme.io", "10.0.0.1", customer_id="c1")
    token = await service.generate_verification_token("acme.io", "c1")
    await service.complete_domain_verification("acme.io", "svc.example.com", "c1", "verify-key")
"""

from domainverify.domains.errors import (
    CnameVerificationFailedError,
    DomainVerificationError,
    DuplicateDomainError,
    ErrorKind,
    InvalidInputError,
    NoPendingVerificationError,
    NotFoundError,
    ResolverError,
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
from domainverify.domains.resolver import AiodnsResolver, Resolver, StaticResolver
from domainverify.domains.service import DomainVerificationService
from domainverify.domains.storage import DomainStore, JsonDomainStore, MemoryDomainStore

__all__ = [
    "DomainVerificationService",
    "DomainRecord",
    "DomainStatusReport",
    "DnsInstruction",
    "VerificationInstructions",
    "VerificationLogEntry",
    "VerificationLogStatus",
    "VerificationStep",
    "DomainStore",
    "MemoryDomainStore",
    "JsonDomainStore",
    "Resolver",
    "AiodnsResolver",
    "StaticResolver",
    "ErrorKind",
    "DomainVerificationError",
    "NotFoundError",
    "NoPendingVerificationError",
    "TokenExpiredError",
    "TxtVerificationFailedError",
    "CnameVerificationFailedError",
    "InvalidInputError",
    "DuplicateDomainError",
    "StoreUnavailableError",
    "ResolverError",
]
