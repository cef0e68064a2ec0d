"""Heuristic grouping of discovered services.

The unit name (``.service`` stripped, lowercased) is matched against ordered
keyword sets; the first set with a substring hit decides the group and the
default icon.  Reverse proxies land in the hidden ``System`` bucket together
with port-less units.
"""

from __future__ import annotations

from navigator.discovery.scanner import unit_key
from navigator.models import ServiceEntry

GROUP_SYSTEM = "System"
GROUP_MEDIA = "Media"
GROUP_DOWNLOADS = "Downloads"
GROUP_SYNC = "Sync"
GROUP_PHOTOS = "Photos"
GROUP_MONITORING = "Monitoring"
GROUP_OTHER = "Other"

# (group, default icon, keywords); first match wins.
CLASSIFICATION_RULES: list[tuple[str, str, tuple[str, ...]]] = [
    (GROUP_SYNC, "🔄", ("syncthing",)),
    (GROUP_PHOTOS, "📷", ("immich",)),
    (GROUP_DOWNLOADS, "⬇️", ("aria2", "ariang", "qbittorrent", "transmission")),
    (GROUP_MEDIA, "🎬", ("jellyfin", "plex", "emby")),
    (GROUP_MONITORING, "📈", ("grafana", "prometheus", "loki")),
    (GROUP_SYSTEM, "🌐", ("nginx", "caddy", "traefik")),
]


def classify_service(entry: ServiceEntry) -> ServiceEntry:
    """Assign group, icon and visibility to *entry* in place and return it."""
    if entry.port is None:
        if entry.group is None:
            entry.group = GROUP_SYSTEM
        entry.hidden = True
        return entry

    if entry.group is not None:
        entry.hidden = False
        return entry

    name = unit_key(entry.service_name)
    entry.group = GROUP_OTHER
    for group, icon, keywords in CLASSIFICATION_RULES:
        if any(keyword in name for keyword in keywords):
            entry.group = group
            if entry.icon is None:
                entry.icon = icon
            break

    entry.hidden = entry.group == GROUP_SYSTEM
    return entry
