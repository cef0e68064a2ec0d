"""Tests for merge_services: locked fields, counters, stale demotion, ordering."""

from __future__ import annotations

from datetime import timedelta

from conftest import T0, make_entry
from navigator.discovery.reconcile import merge_services
from navigator.models import DiscoveryStatusInfo, ServiceSource, ServiceStatus

NOW = T0 + timedelta(hours=1)


def _discovered(**overrides):
    data = dict(source=ServiceSource.AUTO, locked_fields=[], last_seen_at=NOW, updated_at=NOW)
    data.update(overrides)
    return make_entry(**data)


def test_merge_respects_locked_fields():
    existing = make_entry()
    discovered = _discovered(display_name="Auto Nginx", port=8080, status=ServiceStatus.STOPPED)

    merged, summary = merge_services([existing], [discovered], DiscoveryStatusInfo(), now=NOW)

    item = merged[0]
    assert item.display_name == "Nginx"
    assert item.port == 80
    assert item.status == ServiceStatus.STOPPED
    assert item.source == ServiceSource.MERGED
    assert item.last_seen_at == NOW
    assert item.updated_at == NOW
    assert summary.updated == 1
    assert summary.added == 0
    assert summary.unchanged == 0


def test_merge_respects_locked_hidden_and_favorite():
    existing = make_entry(
        hidden=False, favorite=True,
        locked_fields=["display_name", "port", "hidden", "favorite"],
    )
    discovered = _discovered(hidden=True, favorite=False)

    merged, _ = merge_services([existing], [discovered], DiscoveryStatusInfo(), now=NOW)
    assert merged[0].hidden is False
    assert merged[0].favorite is True


def test_user_owned_fields_survive_merge():
    existing = make_entry(group="Gateway", tags=["edge"], icon="🚪", locked_fields=[])
    discovered = _discovered(group="System", tags=[], icon="🌐")

    merged, _ = merge_services([existing], [discovered], DiscoveryStatusInfo(), now=NOW)
    assert merged[0].group == "Gateway"
    assert merged[0].tags == ["edge"]
    assert merged[0].icon == "🚪"


def test_unlocked_fields_copied():
    existing = make_entry(locked_fields=[])
    discovered = _discovered(display_name="Nginx Web", port=8080, host="nas.local")

    merged, _ = merge_services([existing], [discovered], DiscoveryStatusInfo(), now=NOW)
    assert (merged[0].display_name, merged[0].port, merged[0].host) == ("Nginx Web", 8080, "nas.local")


def test_new_entries_added_as_is():
    discovered = _discovered(id="jellyfin-service", service_name="jellyfin.service",
                             display_name="Jellyfin")
    merged, summary = merge_services([], [discovered], DiscoveryStatusInfo(), now=NOW)
    assert merged == [discovered]
    assert merged[0].source == ServiceSource.AUTO
    assert summary.added == 1


def test_merge_is_idempotent():
    existing = [
        make_entry(),
        make_entry(id="grafana-service", service_name="grafana.service",
                   display_name="Grafana", port=3000, locked_fields=[]),
    ]
    discovered = [
        _discovered(status=ServiceStatus.STOPPED),
        _discovered(id="grafana-service", service_name="grafana.service",
                    display_name="Grafana", port=3000),
    ]
    first, s1 = merge_services(existing, discovered, DiscoveryStatusInfo(), now=NOW)
    assert (s1.added, s1.updated, s1.unchanged) == (0, 2, 0)

    later = NOW + timedelta(minutes=5)
    second, s2 = merge_services(first, discovered, DiscoveryStatusInfo(), now=later)
    assert (s2.added, s2.updated, s2.unchanged) == (0, 0, 2)
    assert second == first


def test_stale_entries_soft_retired():
    existing = [make_entry(), make_entry(id="old", service_name="old.service", display_name="Old")]
    discovered = [_discovered()]

    merged, summary = merge_services(existing, discovered, DiscoveryStatusInfo(), now=NOW)

    old = next(e for e in merged if e.id == "old")
    assert old.status == ServiceStatus.UNKNOWN
    assert old.updated_at == NOW
    assert summary.added + summary.updated + summary.unchanged == 1


def test_updated_at_never_moves_backwards():
    future = NOW + timedelta(days=1)
    existing = make_entry(updated_at=future, locked_fields=[])
    discovered = _discovered(display_name="Changed")
    merged, _ = merge_services([existing], [discovered], DiscoveryStatusInfo(), now=NOW)
    assert merged[0].updated_at == future


def test_sorted_by_display_name_stable():
    current = [
        make_entry(id="b", service_name="b", display_name="Same"),
        make_entry(id="a", service_name="a", display_name="Same"),
        make_entry(id="z", service_name="z", display_name="Alpha"),
    ]
    merged, _ = merge_services(current, [], DiscoveryStatusInfo(), now=NOW)
    assert [e.id for e in merged] == ["z", "b", "a"]


def test_inputs_not_mutated_and_scan_counts_kept():
    existing = make_entry(locked_fields=[])
    discovered = _discovered(display_name="Changed")
    summary = DiscoveryStatusInfo(scanned_units=7, matched_ports=3, discovered_services=1)

    merged, result = merge_services([existing], [discovered], summary, now=NOW)

    assert existing.display_name == "Nginx"
    assert summary.updated == 0
    assert (result.scanned_units, result.matched_ports, result.discovered_services) == (7, 3, 1)
