"""DNS lookups used as proof of domain control.

The verification engine only needs two capabilities: TXT and CNAME lookups
for a name. Both raise ResolverError on any failure (NXDOMAIN, timeout,
network error); the engine decides what a failure means.

TXT answers are returned grouped, one list of character-string chunks per
record, because a single TXT record may be split into several chunks.
"""

from __future__ import annotations

import asyncio
import sys
from abc import ABC, abstractmethod
from collections.abc import Mapping

import aiodns
import structlog

from domainverify.domains.errors import ResolverError

logger = structlog.get_logger()


class Resolver(ABC):
    """Resolves the DNS records needed for domain verification."""

    @abstractmethod
    async def resolve_txt(self, name: str) -> list[list[str]]:
        """Return TXT records at ``name`` as groups of character strings."""

    @abstractmethod
    async def resolve_cname(self, name: str) -> list[str]:
        """Return CNAME targets at ``name``."""


def _decode(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


class AiodnsResolver(Resolver):
    """Resolver backed by aiodns (c-ares).

    Answers are returned exactly as received; CNAME targets keep whatever
    trailing dot the upstream server reports.
    """

    def __init__(
        self,
        nameservers: list[str] | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            nameservers: Upstream servers to query. System defaults when empty.
            timeout: Per-query timeout in seconds passed through to c-ares.
        """
        self.nameservers = nameservers or None
        self.timeout = timeout
        self._resolver: aiodns.DNSResolver | None = None

    def _get_resolver(self) -> aiodns.DNSResolver:
        """Get or create DNS resolver with proper event loop handling."""
        if self._resolver is None:
            kwargs: dict = {}
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            if sys.platform == "win32":
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    loop = asyncio.new_event_loop()
                self._resolver = aiodns.DNSResolver(
                    nameservers=self.nameservers, loop=loop, **kwargs
                )
            else:
                self._resolver = aiodns.DNSResolver(nameservers=self.nameservers, **kwargs)
        return self._resolver

    async def _query(self, name: str, record_type: str):
        resolver = self._get_resolver()
        logger.debug("DNS query", name=name, record_type=record_type)
        try:
            return await resolver.query_dns(name, record_type)
        except aiodns.error.DNSError as e:
            raise ResolverError(name, record_type, str(e)) from e
        except (OSError, asyncio.TimeoutError) as e:
            raise ResolverError(name, record_type, str(e) or type(e).__name__) from e

    async def resolve_txt(self, name: str) -> list[list[str]]:
        result = await self._query(name, "TXT")
        if not result:
            return []
        return [[_decode(record.text)] for record in result]

    async def resolve_cname(self, name: str) -> list[str]:
        result = await self._query(name, "CNAME")
        if not result:
            return []
        if hasattr(result, "cname"):
            return [_decode(result.cname)]
        return [_decode(record.cname) for record in result]


class StaticResolver(Resolver):
    """Resolver answering from fixed tables.

    Names missing from a table behave like NXDOMAIN. Useful for dry runs and
    for exercising the verification protocol without live DNS.
    """

    def __init__(
        self,
        txt: Mapping[str, list[list[str]]] | None = None,
        cname: Mapping[str, list[str]] | None = None,
    ) -> None:
        self.txt = dict(txt or {})
        self.cname = dict(cname or {})
        self.queries: list[tuple[str, str]] = []

    async def resolve_txt(self, name: str) -> list[list[str]]:
        self.queries.append(("TXT", name))
        if name not in self.txt:
            raise ResolverError(name, "TXT", "NXDOMAIN")
        return [list(chunks) for chunks in self.txt[name]]

    async def resolve_cname(self, name: str) -> list[str]:
        self.queries.append(("CNAME", name))
        if name not in self.cname:
            raise ResolverError(name, "CNAME", "NXDOMAIN")
        return list(self.cname[name])
