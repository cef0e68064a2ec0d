"""navigator.discovery — host service discovery and catalog reconciliation.

Exports:
    DiscoveryEngine     — scan → probe → classify pipeline
    DiscoveryError      — scan command could not be started
    ProtocolDetector    — HTTPS/HTTP/TCP probe classifier
    classify_service    — group/icon/visibility heuristics
    merge_services      — lock-aware catalog merge
    select_primary_port — representative port choice
"""

from __future__ import annotations

from navigator.discovery.classifier import classify_service
from navigator.discovery.engine import DiscoveryEngine
from navigator.discovery.probe import ProtocolDetector, select_primary_port
from navigator.discovery.reconcile import merge_services
from navigator.discovery.scanner import DiscoveryError

__all__ = [
    "DiscoveryEngine",
    "DiscoveryError",
    "ProtocolDetector",
    "classify_service",
    "merge_services",
    "select_primary_port",
]
