"""Configuration models using Pydantic for validation."""

import ipaddress
from ipaddress import IPv4Address
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

# Probe payload sent with every ICMP echo
PING_PAYLOAD = bytes([1, 2, 3, 4])


class ScannerConfig(BaseModel):
    """Settings for a subnet scan."""

    local_address: IPv4Address | None = None  # None: use the first adapter with a gateway
    subnet_mask: IPv4Address | None = None  # None: look up the mask of local_address
    port: int = Field(default=23, ge=1, le=65535)

    # Liveness sweep
    sweep_timeout_seconds: float = Field(default=5.0, gt=0)
    sweep_batch_size: int = Field(default=16, ge=1)
    sweep_batch_pause_seconds: float = Field(default=0.1, ge=0)
    sweep_max_workers: int = Field(default=256, ge=1)

    # Enrichment
    ping_timeout_seconds: float = Field(default=5.0, gt=0)
    arp_attempts: int = Field(default=2, ge=1, le=10)
    connect_timeout_seconds: float = Field(default=5.0, gt=0)
    io_timeout_seconds: float = Field(default=2.0, gt=0)
    dns_timeout_seconds: float = Field(default=1.0, gt=0)
    max_workers: int = Field(default=32, ge=1)

    poll_interval_seconds: float = Field(default=0.01, gt=0, le=1.0)
    resolve_vendor: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("subnet_mask")
    @classmethod
    def validate_mask(cls, v: IPv4Address | None) -> IPv4Address | None:
        """Reject masks that cannot describe any subnet."""
        if v is None:
            return v
        try:
            ipaddress.IPv4Network(f"0.0.0.0/{v}")
        except ValueError as e:
            raise ValueError(f"Invalid subnet mask '{v}': {e}")
        return v

    @classmethod
    def load(cls, path: Path | str = "netsweep.json") -> "ScannerConfig":
        """Load configuration from a JSON file."""
        import json

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = json.load(f)

        return cls.model_validate(data)

    @classmethod
    def load_or_default(cls, path: Path | str = "netsweep.json") -> "ScannerConfig":
        """Load configuration or return default if file doesn't exist."""
        try:
            return cls.load(path)
        except FileNotFoundError:
            return cls()
