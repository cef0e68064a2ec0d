"""pytest configuration and shared fixtures for Home Server Navigator tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from navigator.catalog import CatalogService
from navigator.discovery import DiscoveryEngine
from navigator.models import (
    ServiceEntry,
    ServiceProtocol,
    ServiceSource,
    ServiceStatus,
)
from navigator.store import CatalogStore


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_entry(**overrides) -> ServiceEntry:
    """An nginx entry as a user would have saved it; override any field."""
    data = dict(
        id="nginx-service",
        service_name="nginx.service",
        display_name="Nginx",
        host="server.local",
        port=80,
        protocol=ServiceProtocol.HTTP,
        status=ServiceStatus.RUNNING,
        group="proxy",
        tags=["gateway"],
        icon="🌐",
        source=ServiceSource.MANUAL,
        locked_fields=["display_name", "port"],
        updated_at=T0,
    )
    data.update(overrides)
    return ServiceEntry(**data)


class FakeUnitLister:
    def __init__(self, units=None):
        self.units = dict(units or {})
        self.calls = 0

    async def list_units(self):
        self.calls += 1
        return dict(self.units)


class FakePortScanner:
    def __init__(self, ports=None):
        self.ports = dict(ports or {})

    async def listening_ports(self):
        return {k: list(v) for k, v in self.ports.items()}


class FakeDetector:
    """Protocol detector that answers from a port → protocol table."""

    def __init__(self, answers=None):
        self.answers = dict(answers or {})
        self.probed: list[tuple[str, int]] = []

    async def detect_many(self, targets):
        self.probed.extend(targets)
        return [self.answers.get(port, ServiceProtocol.TCP) for _, port in targets]


@pytest.fixture
def store(tmp_path):
    return CatalogStore(tmp_path / "data" / "services.json")


@pytest.fixture
def units():
    return FakeUnitLister({
        "syncthing.service": ServiceStatus.RUNNING,
        "systemd-timesyncd.service": ServiceStatus.RUNNING,
        "caddy.service": ServiceStatus.RUNNING,
        "backup.service": ServiceStatus.STOPPED,
    })


@pytest.fixture
def ports():
    return FakePortScanner({
        "syncthing": [8384, 22000],
        "caddy": [80, 443, 2019],
    })


@pytest.fixture
def detector():
    return FakeDetector({8384: ServiceProtocol.HTTP, 443: ServiceProtocol.HTTPS})


@pytest.fixture
def engine(units, ports, detector):
    return DiscoveryEngine("server.local", units, ports, detector)


@pytest.fixture
def catalog(store, engine):
    return CatalogService(store, engine, default_host="server.local")
