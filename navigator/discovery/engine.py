"""Discovery pipeline: scan → probe → classify.

:meth:`DiscoveryEngine.discover` gathers every external fact (units, sockets,
protocol probes) and returns candidate entries plus a partially filled
summary.  It never touches the catalog; merging is done by
:func:`navigator.discovery.reconcile.merge_services`.
"""

from __future__ import annotations

import logging

from navigator.discovery.classifier import classify_service
from navigator.discovery.probe import ProtocolDetector, select_primary_port
from navigator.discovery.scanner import (
    PortScanner,
    SsPortScanner,
    SystemctlUnitLister,
    UnitLister,
    ports_for_unit,
)
from navigator.models import (
    DiscoveryStatusInfo,
    ServiceEntry,
    ServiceProtocol,
    ServiceSource,
    ServiceStatus,
    humanize_service_name,
    service_id,
    utcnow,
)

logger = logging.getLogger(__name__)


class DiscoveryEngine:
    """Build candidate :class:`ServiceEntry` objects from host state.

    Args:
        default_host: Host written into every discovered entry.
        unit_lister:  Unit source (default: ``systemctl``).
        port_scanner: Socket source (default: ``ss``).
        detector:     Protocol detector for primary ports.
    """

    def __init__(
        self,
        default_host: str,
        unit_lister: UnitLister | None = None,
        port_scanner: PortScanner | None = None,
        detector: ProtocolDetector | None = None,
    ) -> None:
        self.default_host = default_host
        self.unit_lister = unit_lister or SystemctlUnitLister()
        self.port_scanner = port_scanner or SsPortScanner()
        self.detector = detector or ProtocolDetector()

    async def discover(self) -> tuple[list[ServiceEntry], DiscoveryStatusInfo]:
        summary = DiscoveryStatusInfo(last_started_at=utcnow())

        units = await self.unit_lister.list_units()
        summary.scanned_units = len(units)
        summary.active_units = sum(1 for s in units.values() if s == ServiceStatus.RUNNING)

        listen_map = await self.port_scanner.listening_ports()
        summary.matched_ports = sum(len(ports) for ports in listen_map.values())

        seen_at = utcnow()
        entries: list[ServiceEntry] = []
        for unit, status in units.items():
            name = unit.strip()
            port = select_primary_port(ports_for_unit(name, listen_map))
            entries.append(ServiceEntry(
                id=service_id(name),
                service_name=name,
                display_name=humanize_service_name(name),
                host=self.default_host,
                port=port,
                protocol=ServiceProtocol.OTHER,
                status=status,
                source=ServiceSource.AUTO,
                last_seen_at=seen_at,
                updated_at=seen_at,
            ))

        probed = [e for e in entries if e.port is not None]
        protocols = await self.detector.detect_many([(e.host, e.port) for e in probed])
        for entry, protocol in zip(probed, protocols):
            entry.protocol = protocol

        for entry in entries:
            classify_service(entry)

        summary.discovered_services = len(entries)
        logger.info(
            "Discovery scan: %d unit(s), %d active, %d port(s), %d probed",
            summary.scanned_units, summary.active_units, summary.matched_ports, len(probed),
        )
        return entries, summary
