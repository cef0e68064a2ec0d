"""Catalog service — the single owner of the in-memory service catalog.

Readers (``list``/``get``/``discovery_status``) share a read lock; writers
(``create``/``update`` and the commit phase of ``run_discovery``) take the
write lock and persist the full snapshot through :class:`CatalogStore` before
the new state becomes visible.  A failed write leaves both memory and disk at
the previous state.

Discovery gathers every external fact (subprocesses, probes) before taking the
write lock; concurrent ``run_discovery`` calls are serialised by a separate
guard so two passes never interleave their merges.
"""

from __future__ import annotations

import asyncio
import logging
import time

from navigator.discovery import DiscoveryEngine, DiscoveryError, merge_services
from navigator.locks import ReadWriteLock
from navigator.models import (
    CreateServiceRequest,
    DiscoveryStatusInfo,
    ServiceEntry,
    ServiceQuery,
    UpdateServiceRequest,
    normalize_locked_fields,
    utcnow,
)
from navigator.store import CatalogStore, CatalogStoreError

logger = logging.getLogger(__name__)

# Patchable attributes, in the order they are applied.
PATCH_FIELDS: tuple[str, ...] = (
    "display_name",
    "description",
    "host",
    "port",
    "protocol",
    "path",
    "url",
    "status",
    "group",
    "tags",
    "icon",
    "hidden",
    "favorite",
)
_REQUIRED_TEXT = {"display_name", "host"}
_NOT_NULLABLE = {"display_name", "host", "protocol", "status", "tags", "hidden", "favorite"}
_NEVER_LOCKED = {"status"}


class ServiceValidationError(ValueError):
    """A create/update request was rejected; the catalog is untouched."""


def _sorted(entries: list[ServiceEntry]) -> list[ServiceEntry]:
    return sorted(entries, key=lambda e: e.display_name)


class CatalogService:
    """Query/mutate the catalog and run discovery against it.

    Args:
        store:        Persistence backend.
        engine:       Discovery pipeline.
        default_host: Host used for created services that do not name one.
        entries:      Initial catalog (see :meth:`open` to load it from *store*).
    """

    def __init__(
        self,
        store: CatalogStore,
        engine: DiscoveryEngine,
        default_host: str,
        entries: list[ServiceEntry] | None = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.default_host = default_host
        self._entries: list[ServiceEntry] = _sorted(list(entries or []))
        self._lock = ReadWriteLock()
        self._discovery_guard = asyncio.Lock()
        self._status = DiscoveryStatusInfo()

    @classmethod
    async def open(
        cls,
        store: CatalogStore,
        engine: DiscoveryEngine,
        default_host: str,
    ) -> CatalogService:
        entries = await asyncio.to_thread(store.load)
        logger.info("Loaded %d service(s) from %s", len(entries), store.path)
        return cls(store, engine, default_host, entries)

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    async def list(self, query: ServiceQuery | None = None) -> list[ServiceEntry]:
        query = query or ServiceQuery()
        async with self._lock.read():
            return [
                e.model_copy(deep=True)
                for e in self._entries
                if (query.include_hidden or not e.hidden) and query.matches(e)
            ]

    async def get(self, service_id: str) -> ServiceEntry | None:
        async with self._lock.read():
            for entry in self._entries:
                if entry.id == service_id:
                    return entry.model_copy(deep=True)
        return None

    async def count(self) -> int:
        async with self._lock.read():
            return len(self._entries)

    async def discovery_status(self) -> DiscoveryStatusInfo:
        async with self._lock.read():
            return self._status.model_copy()

    # ------------------------------------------------------------------ #
    # Mutations                                                            #
    # ------------------------------------------------------------------ #

    async def create(self, request: CreateServiceRequest) -> ServiceEntry:
        if not request.service_name.strip():
            raise ServiceValidationError("service_name is required")
        entry = request.into_entry(self.default_host)
        if not entry.id:
            raise ServiceValidationError("service_name must contain a letter or digit")

        async with self._lock.write():
            taken = {e.id for e in self._entries}
            if entry.id in taken:
                base = f"{entry.id}-{int(time.time())}"
                candidate, n = base, 1
                while candidate in taken:
                    n += 1
                    candidate = f"{base}-{n}"
                entry.id = candidate
            await self._commit(_sorted([*self._entries, entry]))
        logger.info("Created service %s", entry.id)
        return entry.model_copy(deep=True)

    async def update(
        self, service_id: str, patch: UpdateServiceRequest
    ) -> ServiceEntry | None:
        """Apply *patch* to the entry *service_id*.

        Fields present in the patch are applied and, unless ``auto_lock`` is
        false, added to ``locked_fields`` (status excepted).  An explicit
        ``locked_fields`` list replaces the set instead.

        Returns:
            The updated entry, or ``None`` when *service_id* is unknown.

        Raises:
            ServiceValidationError: A required field was blank or nulled.
        """
        async with self._lock.write():
            index = next(
                (i for i, e in enumerate(self._entries) if e.id == service_id), None
            )
            if index is None:
                return None

            entry = self._entries[index].model_copy(deep=True)
            auto_lock = patch.auto_lock_enabled()
            for field in PATCH_FIELDS:
                if not patch.provided(field):
                    continue
                value = getattr(patch, field)
                if value is None and field in _NOT_NULLABLE:
                    raise ServiceValidationError(f"{field} cannot be null")
                if field in _REQUIRED_TEXT and not value.strip():
                    raise ServiceValidationError(f"{field} must not be empty")
                setattr(entry, field, value)
                if auto_lock and field not in _NEVER_LOCKED:
                    entry.lock_field(field)

            locked = patch.locked_fields if patch.locked_fields is not None else entry.locked_fields
            entry.locked_fields = normalize_locked_fields(locked)

            now = utcnow()
            entry.updated_at = now if now >= entry.updated_at else entry.updated_at

            entries = list(self._entries)
            entries[index] = entry
            await self._commit(_sorted(entries))
        logger.info("Updated service %s", service_id)
        return entry.model_copy(deep=True)

    async def run_discovery(self) -> DiscoveryStatusInfo:
        """Scan the host, merge the result into the catalog and persist it.

        Raises:
            DiscoveryError:    A scan command could not be started.
            CatalogStoreError: The merged catalog could not be written.
        """
        async with self._discovery_guard:
            started = utcnow()
            try:
                discovered, summary = await self.engine.discover()
                async with self._lock.write():
                    merged, summary = merge_services(self._entries, discovered, summary)
                    await self._commit(merged)
                    summary.last_finished_at = utcnow()
                    self._status = summary
            except (DiscoveryError, CatalogStoreError) as exc:
                logger.error("Discovery failed: %s", exc)
                async with self._lock.write():
                    self._status = DiscoveryStatusInfo(
                        last_started_at=started,
                        last_finished_at=utcnow(),
                        last_error=str(exc),
                    )
                raise

        logger.info(
            "Discovery finished: %d discovered, %d added, %d updated, %d unchanged",
            summary.discovered_services, summary.added, summary.updated, summary.unchanged,
        )
        return summary.model_copy()

    async def _commit(self, entries: list[ServiceEntry]) -> None:
        """Persist *entries*, then publish them.  Caller holds the write lock."""
        await asyncio.to_thread(self.store.save, entries)
        self._entries = entries
