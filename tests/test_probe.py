"""Tests for protocol detection and primary-port selection."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from navigator.discovery.probe import ProtocolDetector, select_primary_port
from navigator.models import ServiceProtocol


def _transport(answers):
    """MockTransport answering per scheme: an int status or an exception class."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        answer = answers.get(request.url.scheme)
        if isinstance(answer, int):
            headers = {"location": str(request.url)} if 300 <= answer < 400 else {}
            return httpx.Response(answer, headers=headers)
        raise answer("probe failed", request=request)

    transport = httpx.MockTransport(handler)
    transport.seen = seen
    return transport


class TestSelectPrimaryPort:
    def test_prefers_web_ports(self):
        assert select_primary_port([10000, 8080, 9999]) == 8080

    def test_falls_back_to_lowest(self):
        assert select_primary_port([5432, 2222]) == 2222

    def test_priority_order(self):
        assert select_primary_port([8080, 80, 443]) == 443

    def test_empty(self):
        assert select_primary_port([]) is None


class TestDetect:
    @pytest.mark.asyncio
    async def test_https_answer(self):
        t = _transport({"https": 200, "http": 200})
        assert await ProtocolDetector(transport=t).detect("h", 9443) == ServiceProtocol.HTTPS
        assert t.seen == ["https://h:9443/"]

    @pytest.mark.asyncio
    async def test_any_status_is_positive(self):
        t = _transport({"https": 503})
        assert await ProtocolDetector(transport=t).detect("h", 8443) == ServiceProtocol.HTTPS

    @pytest.mark.asyncio
    async def test_refused_https_then_http(self):
        t = _transport({"https": httpx.ConnectError, "http": 404})
        assert await ProtocolDetector(transport=t).detect("h", 8080) == ServiceProtocol.HTTP
        assert t.seen == ["https://h:8080/", "http://h:8080/"]

    @pytest.mark.asyncio
    async def test_timeout_is_negative(self):
        t = _transport({"https": httpx.ReadTimeout, "http": httpx.ConnectTimeout})
        assert await ProtocolDetector(transport=t).detect("h", 5432) == ServiceProtocol.TCP

    @pytest.mark.asyncio
    async def test_protocol_error_is_positive(self):
        t = _transport({"https": httpx.RemoteProtocolError, "http": 200})
        assert await ProtocolDetector(transport=t).detect("h", 9443) == ServiceProtocol.HTTPS

    @pytest.mark.asyncio
    async def test_redirect_loop_is_positive(self):
        t = _transport({"https": httpx.ConnectError, "http": 302})
        detector = ProtocolDetector(max_redirects=2, transport=t)
        assert await detector.detect("h", 3000) == ServiceProtocol.HTTP


class _CountingDetector(ProtocolDetector):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.active = 0
        self.peak = 0

    async def detect(self, host, port):
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        if port == 666:
            raise RuntimeError("probe crashed")
        return ServiceProtocol.HTTP if port % 2 == 0 else ServiceProtocol.TCP


class TestDetectMany:
    @pytest.mark.asyncio
    async def test_results_keep_input_order(self):
        detector = _CountingDetector()
        result = await detector.detect_many([("h", 80), ("h", 81), ("h", 82)])
        assert result == [ServiceProtocol.HTTP, ServiceProtocol.TCP, ServiceProtocol.HTTP]

    @pytest.mark.asyncio
    async def test_concurrency_is_capped(self):
        detector = _CountingDetector(concurrency=3)
        await detector.detect_many([("h", p) for p in range(20)])
        assert detector.peak == 3

    @pytest.mark.asyncio
    async def test_crashed_probe_becomes_tcp(self):
        detector = _CountingDetector()
        result = await detector.detect_many([("h", 666), ("h", 80)])
        assert result == [ServiceProtocol.TCP, ServiceProtocol.HTTP]

    @pytest.mark.asyncio
    async def test_empty(self):
        assert await ProtocolDetector().detect_many([]) == []
