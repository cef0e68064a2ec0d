"""Catalog data model for Home Server Navigator.

A :class:`ServiceEntry` is one tracked service.  Entries are persisted as a
JSON array by :mod:`navigator.store` and are mutated only through
:class:`navigator.catalog.CatalogService`.

Enum fields carry an explicit default that is applied when the key is missing
from older catalog files, so old data keeps loading:

    protocol → ``other``
    status   → ``unknown``
    source   → ``merged``
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# ──────────────────────────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────────────────────────


class ServiceProtocol(str, Enum):
    HTTP = "http"
    HTTPS = "https"
    TCP = "tcp"
    OTHER = "other"


class ServiceStatus(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


class ServiceSource(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"
    MERGED = "merged"


# Fields a user edit may protect from discovery overwrites.
DEFAULT_LOCKED_FIELDS: tuple[str, ...] = (
    "display_name",
    "host",
    "port",
    "protocol",
    "path",
    "url",
    "group",
    "tags",
    "icon",
    "description",
    "hidden",
    "favorite",
)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ──────────────────────────────────────────────────────────────────
# ServiceEntry
# ──────────────────────────────────────────────────────────────────


class ServiceEntry(BaseModel):
    """One service in the catalog."""

    model_config = ConfigDict(extra="ignore")

    id: str
    service_name: str
    display_name: str
    description: str | None = None
    host: str
    port: int | None = Field(default=None, ge=0, le=65535)
    protocol: ServiceProtocol = ServiceProtocol.OTHER
    path: str | None = None
    url: str | None = None
    status: ServiceStatus = ServiceStatus.UNKNOWN
    group: str | None = None
    tags: list[str] = Field(default_factory=list)
    icon: str | None = None
    hidden: bool = False
    favorite: bool = False
    source: ServiceSource = ServiceSource.MERGED
    locked_fields: list[str] = Field(default_factory=list)
    last_seen_at: datetime | None = None
    updated_at: datetime = Field(default_factory=utcnow)

    def is_locked(self, field: str) -> bool:
        return field in self.locked_fields

    def lock_field(self, field: str) -> None:
        if not self.is_locked(field):
            self.locked_fields.append(field)

    def resolved_url(self) -> str | None:
        """Explicit ``url`` if set, else one built from protocol/host/port/path."""
        if self.url:
            return self.url
        return build_service_url(self.protocol, self.host, self.port, self.path)

    def to_api(self) -> dict:
        """JSON-ready dict with the derived ``resolved_url`` included."""
        data = self.model_dump(mode="json")
        data["resolved_url"] = self.resolved_url()
        return data


# ──────────────────────────────────────────────────────────────────
# Requests / queries
# ──────────────────────────────────────────────────────────────────


class CreateServiceRequest(BaseModel):
    service_name: str
    display_name: str | None = None
    description: str | None = None
    host: str | None = None
    port: int | None = Field(default=None, ge=0, le=65535)
    protocol: ServiceProtocol | None = None
    path: str | None = None
    url: str | None = None
    group: str | None = None
    tags: list[str] | None = None
    icon: str | None = None
    hidden: bool | None = None
    favorite: bool | None = None
    locked_fields: list[str] | None = None

    def into_entry(self, default_host: str) -> ServiceEntry:
        """Build a manual :class:`ServiceEntry`, filling every unset field."""
        service_name = self.service_name.strip()
        host = self.host if self.host and self.host.strip() else default_host
        locked = (
            list(self.locked_fields)
            if self.locked_fields is not None
            else list(DEFAULT_LOCKED_FIELDS)
        )
        return ServiceEntry(
            id=service_id(service_name),
            service_name=service_name,
            display_name=_clean_optional(self.display_name) or humanize_service_name(service_name),
            description=self.description,
            host=host,
            port=self.port,
            protocol=self.protocol or infer_protocol_from_port(self.port),
            path=_clean_optional(self.path),
            url=_clean_optional(self.url),
            status=ServiceStatus.UNKNOWN,
            group=_clean_optional(self.group),
            tags=list(self.tags or []),
            icon=_clean_optional(self.icon),
            hidden=bool(self.hidden),
            favorite=bool(self.favorite),
            source=ServiceSource.MANUAL,
            locked_fields=normalize_locked_fields(locked),
            last_seen_at=None,
            updated_at=utcnow(),
        )


class UpdateServiceRequest(BaseModel):
    """Partial update.

    A field missing from the request body means "no change"; a field sent as
    ``null`` clears a nullable attribute.  Presence is tracked through
    pydantic's ``model_fields_set``.
    """

    display_name: str | None = None
    description: str | None = None
    host: str | None = None
    port: int | None = Field(default=None, ge=0, le=65535)
    protocol: ServiceProtocol | None = None
    path: str | None = None
    url: str | None = None
    status: ServiceStatus | None = None
    group: str | None = None
    tags: list[str] | None = None
    icon: str | None = None
    hidden: bool | None = None
    favorite: bool | None = None
    locked_fields: list[str] | None = None
    auto_lock: bool | None = None

    def provided(self, field: str) -> bool:
        return field in self.model_fields_set

    def auto_lock_enabled(self) -> bool:
        return True if self.auto_lock is None else self.auto_lock


class ServiceQuery(BaseModel):
    q: str | None = None
    group: str | None = None
    status: ServiceStatus | None = None
    include_hidden: bool = False

    def matches(self, entry: ServiceEntry) -> bool:
        """Return ``True`` when *entry* passes every filter except visibility."""
        if self.group is not None and (entry.group or "") != self.group:
            return False
        if self.status is not None and entry.status != self.status:
            return False
        if self.q:
            needle = self.q.lower()
            haystacks = [entry.display_name, entry.service_name, *entry.tags]
            if entry.group:
                haystacks.append(entry.group)
            if entry.port is not None:
                haystacks.append(str(entry.port))
            if not any(needle in value.lower() for value in haystacks):
                return False
        return True


class DiscoveryStatusInfo(BaseModel):
    """Summary of the latest discovery pass (kept in memory only)."""

    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_error: str | None = None
    scanned_units: int = 0
    active_units: int = 0
    matched_ports: int = 0
    discovered_services: int = 0
    added: int = 0
    updated: int = 0
    unchanged: int = 0


# ──────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────


def service_id(service_name: str) -> str:
    """Slug *service_name*: lowercase, non-alphanumeric runs → ``-``, trimmed.

    >>> service_id("Nginx Proxy!!")
    'nginx-proxy'
    """
    return _NON_ALNUM.sub("-", service_name.lower()).strip("-")


def humanize_service_name(service_name: str) -> str:
    """``"jellyfin-web.service"`` → ``"Jellyfin Web"``."""
    name = service_name.strip()
    if name.endswith(".service"):
        name = name[: -len(".service")]
    words = [w for w in re.split(r"[-_.]", name) if w]
    return " ".join(w[:1].upper() + w[1:] for w in words)


def infer_protocol_from_port(port: int | None) -> ServiceProtocol:
    if port is None:
        return ServiceProtocol.OTHER
    if port in (443, 8443):
        return ServiceProtocol.HTTPS
    if port in (80, 3000, 5000, 8080, 8096, 9000):
        return ServiceProtocol.HTTP
    return ServiceProtocol.TCP


def build_service_url(
    protocol: ServiceProtocol,
    host: str,
    port: int | None,
    path: str | None,
) -> str | None:
    if protocol not in (ServiceProtocol.HTTP, ServiceProtocol.HTTPS) or port is None:
        return None
    url = f"{protocol.value}://{host}:{port}"
    if path and path.strip():
        trimmed = path.strip()
        url += trimmed if trimmed.startswith("/") else f"/{trimmed}"
    return url


def normalize_locked_fields(values: list[str]) -> list[str]:
    """Trim, drop blanks, dedupe and sort."""
    return sorted({v.strip() for v in values if v and v.strip()})


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None
