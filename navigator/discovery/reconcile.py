"""Merge freshly discovered services into the existing catalog."""

from __future__ import annotations

from datetime import datetime

from navigator.models import (
    DiscoveryStatusInfo,
    ServiceEntry,
    ServiceSource,
    ServiceStatus,
    utcnow,
)

# Copied from the discovered entry unless listed in ``locked_fields``.
MERGEABLE_FIELDS: tuple[str, ...] = (
    "service_name",
    "display_name",
    "host",
    "port",
    "protocol",
    "path",
    "url",
    "status",
    "description",
    "hidden",
    "favorite",
)

_VOLATILE = {"updated_at"}


def merge_services(
    current: list[ServiceEntry],
    discovered: list[ServiceEntry],
    summary: DiscoveryStatusInfo,
    now: datetime | None = None,
) -> tuple[list[ServiceEntry], DiscoveryStatusInfo]:
    """Reconcile *discovered* against *current*.

    Entries sharing an ``id`` are merged field by field, honouring
    ``locked_fields``; new ids are added as-is; current entries that were not
    seen in this pass are kept with status ``unknown``.  The result is sorted
    by display name (stable, so ties keep catalog order).

    Neither input list is modified.

    Returns:
        ``(merged, summary)`` with ``added``/``updated``/``unchanged`` counted
        on a copy of *summary*.
    """
    now = now or utcnow()
    summary = summary.model_copy()
    by_id: dict[str, ServiceEntry] = {e.id: e.model_copy(deep=True) for e in current}
    seen: set[str] = set()

    for auto in discovered:
        seen.add(auto.id)
        existing = by_id.get(auto.id)
        if existing is None:
            by_id[auto.id] = auto.model_copy(deep=True)
            summary.added += 1
            continue

        before = existing.model_dump(exclude=_VOLATILE)
        merge_single(existing, auto)
        if existing.model_dump(exclude=_VOLATILE) == before:
            summary.unchanged += 1
        else:
            existing.updated_at = _advance(existing.updated_at, now)
            summary.updated += 1

    for entry in by_id.values():
        if entry.id not in seen:
            entry.status = ServiceStatus.UNKNOWN
            entry.updated_at = _advance(entry.updated_at, now)

    merged = sorted(by_id.values(), key=lambda e: e.display_name)
    return merged, summary


def merge_single(existing: ServiceEntry, discovered: ServiceEntry) -> None:
    """Copy unlocked fields of *discovered* onto *existing*."""
    for field in MERGEABLE_FIELDS:
        if not existing.is_locked(field):
            setattr(existing, field, getattr(discovered, field))
    existing.last_seen_at = discovered.last_seen_at
    existing.source = ServiceSource.MERGED


def _advance(previous: datetime, now: datetime) -> datetime:
    return now if now >= previous else previous
