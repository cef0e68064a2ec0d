"""Host scanner: service-manager units and listening sockets.

Two capabilities feed discovery:

  - :class:`UnitLister`  — ``{unit_name: ServiceStatus}``  (``systemctl list-units``)
  - :class:`PortScanner` — ``{process_name: [port, ...]}`` (``ss -ltnp``)

Both return an empty mapping when the command is missing, exits non-zero or
times out.  Any other spawn failure raises :class:`DiscoveryError`.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Protocol

from navigator.models import ServiceStatus

logger = logging.getLogger(__name__)

SERVICE_SUFFIX = ".service"

_PROCESS_RE = re.compile(r'users:\(\("([^"]+)"')

_UNIT_MARKERS = {"●", "*"}
_RUNNING_STATES = {"running"}
_STOPPED_STATES = {"exited", "dead"}


class DiscoveryError(Exception):
    """Raised when a host scan command cannot be started."""


class UnitLister(Protocol):
    async def list_units(self) -> dict[str, ServiceStatus]: ...


class PortScanner(Protocol):
    async def listening_ports(self) -> dict[str, list[int]]: ...


# ------------------------------------------------------------------ #
# Parsing                                                              #
# ------------------------------------------------------------------ #

def parse_unit_listing(text: str) -> dict[str, ServiceStatus]:
    """Parse ``systemctl list-units --no-legend`` output.

    Columns are UNIT LOAD ACTIVE SUB DESCRIPTION; status comes from SUB only.
    Failed units are prefixed with a ``●`` marker, which is skipped.  Only
    names ending in ``.service`` are kept.
    """
    units: dict[str, ServiceStatus] = {}
    for line in text.splitlines():
        fields = line.split()
        if fields and fields[0] in _UNIT_MARKERS:
            fields = fields[1:]
        if not fields or not fields[0].endswith(SERVICE_SUFFIX):
            continue
        sub = fields[3] if len(fields) > 3 else ""
        if sub in _RUNNING_STATES:
            status = ServiceStatus.RUNNING
        elif sub in _STOPPED_STATES:
            status = ServiceStatus.STOPPED
        else:
            status = ServiceStatus.UNKNOWN
        units[fields[0]] = status
    return units


def parse_port(line: str) -> int | None:
    """Return the local port of one ``ss -ltn`` row, or ``None``."""
    fields = line.split()
    if len(fields) < 5:
        return None
    _, _, port = fields[3].rpartition(":")
    try:
        value = int(port)
    except ValueError:
        return None
    return value if 0 <= value <= 65535 else None


def parse_listening_sockets(text: str) -> dict[str, list[int]]:
    """Parse ``ss -ltnp`` output into ``{process: sorted unique ports}``.

    The first line is the column header.  Rows without a ``users:((...))``
    annotation are filed under ``"unknown"``.
    """
    ports: dict[str, set[int]] = {}
    for line in text.splitlines()[1:]:
        port = parse_port(line)
        if port is None:
            continue
        match = _PROCESS_RE.search(line)
        process = match.group(1).lower() if match else "unknown"
        ports.setdefault(process, set()).add(port)
    return {process: sorted(values) for process, values in ports.items()}


def unit_key(unit_name: str) -> str:
    """``"Caddy.service"`` → ``"caddy"``."""
    name = unit_name.strip()
    if name.endswith(SERVICE_SUFFIX):
        name = name[: -len(SERVICE_SUFFIX)]
    return name.lower()


def ports_for_unit(unit_name: str, listen_map: dict[str, list[int]]) -> list[int]:
    """Ports of the first process whose name contains, or is contained in, the unit's."""
    key = unit_key(unit_name)
    for process, ports in listen_map.items():
        if process in key or key in process:
            return list(ports)
    return []


# ------------------------------------------------------------------ #
# Command runners                                                      #
# ------------------------------------------------------------------ #

async def run_command(cmd: list[str], timeout: float = 10.0) -> str | None:
    """Run *cmd* and return its stdout, or ``None`` if it is absent, fails or hangs."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        logger.warning("%s not found, skipping", cmd[0])
        return None
    except OSError as exc:
        raise DiscoveryError(f"failed spawning {cmd[0]}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning("%s timed out after %.1fs", cmd[0], timeout)
        return None

    if proc.returncode != 0:
        logger.warning(
            "%s exited with %s: %s",
            " ".join(cmd), proc.returncode,
            stderr.decode("utf-8", errors="replace").strip()[:500],
        )
        return None
    return stdout.decode("utf-8", errors="replace")


class SystemctlUnitLister:
    """Enumerate service units via ``systemctl list-units``."""

    COMMAND = ["systemctl", "list-units", "--type=service", "--all", "--no-legend", "--no-pager"]

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout

    async def list_units(self) -> dict[str, ServiceStatus]:
        output = await run_command(self.COMMAND, self.timeout)
        if output is None:
            return {}
        return parse_unit_listing(output)


class SsPortScanner:
    """Enumerate listening TCP sockets and their owners via ``ss -ltnp``."""

    COMMAND = ["ss", "-ltnp"]

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout

    async def listening_ports(self) -> dict[str, list[int]]:
        output = await run_command(self.COMMAND, self.timeout)
        if output is None:
            return {}
        return parse_listening_sockets(output)
