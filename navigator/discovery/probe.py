"""Protocol detection for discovered ports.

Each candidate port is probed with HTTPS first, then plain HTTP.  Any HTTP
response (whatever the status code) is a positive signal for the scheme under
probe.  Refused, unreachable and timed-out connections are negative; any other
transport failure still means something spoke back at the protocol level and
counts as positive.  Ports that answer neither scheme are classified as TCP.

Certificate verification is disabled here only: home servers commonly run
self-signed certificates.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from navigator.models import ServiceProtocol

logger = logging.getLogger(__name__)

PREFERRED_PORTS: tuple[int, ...] = (443, 80, 8443, 8080, 3000, 8096, 9000)

_NEGATIVE_ERRORS = (httpx.TimeoutException, httpx.NetworkError)


def select_primary_port(ports: list[int]) -> int | None:
    """Pick the representative port of a unit.

    The first hit in :data:`PREFERRED_PORTS` wins; otherwise the lowest port.
    """
    if not ports:
        return None
    for port in PREFERRED_PORTS:
        if port in ports:
            return port
    return min(ports)


class ProtocolDetector:
    """HTTPS → HTTP → TCP classifier for ``host:port`` pairs.

    Args:
        timeout:       Per-request timeout in seconds.
        max_redirects: Redirect budget for each probe.
        concurrency:   Maximum probes in flight during :meth:`detect_many`.
        transport:     Optional httpx transport (tests pass a ``MockTransport``).
    """

    def __init__(
        self,
        timeout: float = 3.0,
        max_redirects: int = 3,
        concurrency: int = 16,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.concurrency = max(1, concurrency)
        self._transport = transport

    async def detect(self, host: str, port: int) -> ServiceProtocol:
        for scheme in (ServiceProtocol.HTTPS, ServiceProtocol.HTTP):
            if await self._probe(scheme, host, port):
                logger.debug("Protocol probe %s:%d → %s", host, port, scheme.value)
                return scheme
        return ServiceProtocol.TCP

    async def detect_many(self, targets: list[tuple[str, int]]) -> list[ServiceProtocol]:
        """Probe every ``(host, port)`` concurrently; results keep input order."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(host: str, port: int) -> ServiceProtocol:
            async with semaphore:
                return await self.detect(host, port)

        results = await asyncio.gather(
            *(_bounded(host, port) for host, port in targets),
            return_exceptions=True,
        )
        protocols: list[ServiceProtocol] = []
        for (host, port), result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning("Protocol probe %s:%d failed: %r", host, port, result)
                protocols.append(ServiceProtocol.TCP)
            else:
                protocols.append(result)
        return protocols

    async def _probe(self, scheme: ServiceProtocol, host: str, port: int) -> bool:
        url = f"{scheme.value}://{host}:{port}/"
        try:
            async with httpx.AsyncClient(
                verify=False,
                follow_redirects=True,
                max_redirects=self.max_redirects,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = await client.get(url)
        except _NEGATIVE_ERRORS as exc:
            logger.debug("Probe %s: no answer (%s)", url, type(exc).__name__)
            return False
        except httpx.HTTPError as exc:
            logger.debug("Probe %s: protocol-level answer (%s)", url, type(exc).__name__)
            return True
        return 100 <= resp.status_code <= 599
