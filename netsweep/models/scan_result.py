"""Scan result models."""

from collections.abc import Callable
from datetime import datetime
from enum import Enum, IntEnum
from ipaddress import IPv4Address

from pydantic import BaseModel, ConfigDict, Field

from .address_space import AddressSpace


class PortStatus(str, Enum):
    """Outcome of the TCP reachability probe."""

    AVAILABLE = "available"
    FAILED = "failed"
    UNKNOWN = "unknown"  # Probe did not run to completion


class ScanPhase(IntEnum):
    """Stage of a scan reported through progress callbacks."""

    SWEEP = 0
    ENRICH = 1


class ScanResult(BaseModel):
    """Facts gathered about a single host."""

    model_config = ConfigDict(frozen=True)

    address: IPv4Address
    port: int
    latency: str | None = None  # e.g. "37ms"
    hardware_address: str | None = None  # colon-hex, lower case
    host_name: str | None = None
    port_status: PortStatus = PortStatus.UNKNOWN
    vendor: str | None = None

    def has_data(self) -> bool:
        """Return whether any probe produced something worth reporting."""
        return (
            self.latency is not None
            or self.hardware_address is not None
            or self.host_name is not None
            or self.port_status == PortStatus.AVAILABLE
        )

    @property
    def display_name(self) -> str:
        """Return best available name for display."""
        if self.host_name:
            return self.host_name
        if self.vendor:
            return f"{self.address} ({self.vendor})"
        return str(self.address)


class ProgressReport(BaseModel):
    """Progress of one scan phase."""

    model_config = ConfigDict(frozen=True)

    phase: ScanPhase
    completed: int = Field(ge=0)
    total: int = Field(ge=0)

    @property
    def done(self) -> bool:
        return self.completed >= self.total

    def send(self, callback: Callable[[ScanPhase, int, int], None]) -> None:
        """Deliver this report to a ``(phase, completed, total)`` callback."""
        callback(self.phase, self.completed, self.total)


class ScanSummary(BaseModel):
    """Outcome of a whole scan."""

    local_address: IPv4Address
    address_space: AddressSpace
    port: int
    candidates: int = 0
    responded: int = 0
    hosts: list[ScanResult] = Field(default_factory=list)  # Completion order
    scan_time: datetime = Field(default_factory=datetime.now)
    duration_seconds: float = 0.0
    cancelled: bool = False

    @property
    def hosts_found(self) -> int:
        return len(self.hosts)

    @property
    def available_hosts(self) -> list[ScanResult]:
        """Hosts whose probed port accepted a connection."""
        return [h for h in self.hosts if h.port_status == PortStatus.AVAILABLE]
