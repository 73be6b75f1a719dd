"""Storage for domain records and the verification audit log.

The store is the single source of truth for verification state. It enforces
uniqueness of (name, customer_id); the engine relies on that constraint and
takes no locks of its own.

Two backends are provided:
- MemoryDomainStore: process-local, for tests and ephemeral deployments.
- JsonDomainStore: JSON file, suitable for self-hosted deployments.

Storage file format (domains.json):
    {
        "domains": {
            "4f1c2b...": {"id": "4f1c2b...", "name": "acme.io", ...}
        },
        "logs": [
            {"id": "a71e...", "domain_id": "4f1c2b...", "step": "txt_record", ...}
        ]
    }
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import fields, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

import structlog

from domainverify.domains.errors import DuplicateDomainError, StoreUnavailableError
from domainverify.domains.models import DomainRecord, VerificationLogEntry

logger = structlog.get_logger()

_UPDATABLE_FIELDS = frozenset(f.name for f in fields(DomainRecord)) - {"id", "created_at"}


class DomainStore(ABC):
    """Keyed storage for domain records plus an append-only audit log."""

    @abstractmethod
    async def find_one(self, name: str, customer_id: str | None = None) -> DomainRecord | None:
        """Find the record for (name, customer_id).

        A None customer_id matches on name alone and returns the oldest record
        with that name. Insert uniqueness still treats None as its own owner.
        """

    @abstractmethod
    async def insert(self, record: DomainRecord) -> DomainRecord:
        """Insert a new record and return it with its assigned id.

        Raises:
            DuplicateDomainError: If (name, customer_id) is already taken.
        """

    @abstractmethod
    async def update(self, record_id: str, **changes: Any) -> DomainRecord:
        """Apply ``changes`` to the record with ``record_id`` and return it.

        Raises:
            KeyError: If no record has ``record_id``.
            ValueError: If a change names an unknown or immutable field.
        """

    @abstractmethod
    async def append_log(self, entry: VerificationLogEntry) -> None:
        """Append an audit entry. Entries are never modified afterwards."""

    @abstractmethod
    async def list_logs(self, domain_id: str) -> list[VerificationLogEntry]:
        """Return audit entries for a record, oldest first."""

    @abstractmethod
    async def list_all(self) -> list[DomainRecord]:
        """Return every stored record."""

    @abstractmethod
    async def ping(self) -> bool:
        """Check that the store can be read.

        Raises:
            StoreUnavailableError: If the backing storage is unreachable.
        """


class MemoryDomainStore(DomainStore):
    """In-memory store guarded by an asyncio lock.

    Records are copied on the way in and out, so callers only change stored
    state through insert() and update(). Writes build new containers and the
    cache only takes them once _save() succeeds.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._records: dict[str, DomainRecord] | None = None
        self._logs: list[VerificationLogEntry] | None = None

    async def _load(self) -> tuple[dict[str, DomainRecord], list[VerificationLogEntry]]:
        if self._records is None or self._logs is None:
            self._records, self._logs = {}, []
        return self._records, self._logs

    async def _save(
        self, records: dict[str, DomainRecord], logs: list[VerificationLogEntry]
    ) -> None:
        self._records, self._logs = records, logs

    @staticmethod
    def _find(
        records: dict[str, DomainRecord], name: str, customer_id: str | None
    ) -> DomainRecord | None:
        for record in records.values():
            if record.name == name and record.customer_id == customer_id:
                return record
        return None

    @staticmethod
    def _find_by_name(records: dict[str, DomainRecord], name: str) -> DomainRecord | None:
        return next((record for record in records.values() if record.name == name), None)

    async def find_one(self, name: str, customer_id: str | None = None) -> DomainRecord | None:
        async with self._lock:
            records, _ = await self._load()
            if customer_id is None:
                record = self._find_by_name(records, name)
            else:
                record = self._find(records, name, customer_id)
            return replace(record) if record else None

    async def insert(self, record: DomainRecord) -> DomainRecord:
        async with self._lock:
            records, logs = await self._load()
            if self._find(records, record.name, record.customer_id):
                raise DuplicateDomainError(record.name, record.customer_id)
            stored = replace(record, id=uuid4().hex)
            await self._save({**records, stored.id: stored}, logs)
            return replace(stored)

    async def update(self, record_id: str, **changes: Any) -> DomainRecord:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        async with self._lock:
            records, logs = await self._load()
            if record_id not in records:
                raise KeyError(record_id)
            current = records[record_id]
            updated = replace(current, **changes)
            if (updated.name, updated.customer_id) != (current.name, current.customer_id):
                clash = self._find(records, updated.name, updated.customer_id)
                if clash and clash.id != record_id:
                    raise DuplicateDomainError(updated.name, updated.customer_id)
            if "updated_at" not in changes:
                updated.updated_at = datetime.now(UTC)
            await self._save({**records, record_id: updated}, logs)
            return replace(updated)

    async def append_log(self, entry: VerificationLogEntry) -> None:
        async with self._lock:
            records, logs = await self._load()
            await self._save(records, [*logs, replace(entry, id=entry.id or uuid4().hex)])

    async def list_logs(self, domain_id: str) -> list[VerificationLogEntry]:
        async with self._lock:
            _, logs = await self._load()
            return [replace(entry) for entry in logs if entry.domain_id == domain_id]

    async def list_all(self) -> list[DomainRecord]:
        async with self._lock:
            records, _ = await self._load()
            return [replace(record) for record in records.values()]

    async def ping(self) -> bool:
        async with self._lock:
            await self._load()
            return True


class JsonDomainStore(MemoryDomainStore):
    """JSON file-based store.

    Thread-safe via asyncio locks. Suitable for self-hosted deployments
    with moderate domain counts (<1000).

    For high-scale deployments, consider implementing a database backend.
    """

    def __init__(self, storage_path: str | Path = "domains.json") -> None:
        """Initialize domain store.

        Args:
            storage_path: Path to the JSON storage file.
        """
        super().__init__()
        self.storage_path = Path(storage_path)

    async def _load(self) -> tuple[dict[str, DomainRecord], list[VerificationLogEntry]]:
        """Load records and logs from the storage file."""
        if self._records is not None and self._logs is not None:
            return self._records, self._logs

        if not self.storage_path.exists():
            self._records, self._logs = {}, []
            return self._records, self._logs

        try:
            content = await asyncio.to_thread(self.storage_path.read_text)
            data = json.loads(content) if content.strip() else {}
            self._records = {
                record_id: DomainRecord.from_dict(record_data)
                for record_id, record_data in data.get("domains", {}).items()
            }
            self._logs = [VerificationLogEntry.from_dict(item) for item in data.get("logs", [])]
        except OSError as e:
            raise StoreUnavailableError(f"Cannot read {self.storage_path}: {e}") from e
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.error("Domain store is corrupt", path=str(self.storage_path), error=str(e))
            raise StoreUnavailableError(f"Corrupt domain store {self.storage_path}: {e}") from e

        return self._records, self._logs

    async def _save(
        self, records: dict[str, DomainRecord], logs: list[VerificationLogEntry]
    ) -> None:
        """Save records and logs to the storage file."""
        data = {
            "domains": {record_id: record.to_dict() for record_id, record in records.items()},
            "logs": [entry.to_dict() for entry in logs],
        }
        content = json.dumps(data, indent=2)
        try:
            await asyncio.to_thread(self.storage_path.write_text, content)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot write {self.storage_path}: {e}") from e
        self._records, self._logs = records, logs

    def invalidate_cache(self) -> None:
        """Invalidate the in-memory cache.

        Call this after external modifications to the storage file.
        """
        self._records = None
        self._logs = None
