"""Services for discovering and probing hosts."""

from .enricher import HostEnricher
from .liveness import LivenessSweep
from .local_network import AdapterInfo, LocalNetwork
from .network_scanner import ScanOrchestrator
from .vendor import VendorLookup

__all__ = [
    "AdapterInfo",
    "HostEnricher",
    "LivenessSweep",
    "LocalNetwork",
    "ScanOrchestrator",
    "VendorLookup",
]
