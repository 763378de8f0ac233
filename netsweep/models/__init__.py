"""Data models for the scanner."""

from .address_space import AddressSpace
from .config import ScannerConfig
from .scan_result import PortStatus, ProgressReport, ScanPhase, ScanResult, ScanSummary

__all__ = [
    "AddressSpace",
    "PortStatus",
    "ProgressReport",
    "ScanPhase",
    "ScanResult",
    "ScanSummary",
    "ScannerConfig",
]
