"""Local adapter discovery: interfaces, default gateways and subnet masks."""

import logging
import socket
import subprocess
from ipaddress import IPv4Address
from pathlib import Path
from typing import Protocol

import psutil
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

RTF_GATEWAY = 0x2


class AdapterInfo(BaseModel):
    """A local network interface."""

    name: str
    hardware_address: str | None = None
    is_up: bool = False
    has_gateway: bool = False
    unicast_addresses: list[IPv4Address] = Field(default_factory=list)


class NetworkConfigProvider(Protocol):
    def list_adapters(self) -> list[AdapterInfo]: ...

    def subnet_mask_for(self, address: IPv4Address) -> IPv4Address | None: ...


class LocalNetwork:
    """Reads adapter configuration from the running system using psutil."""

    def __init__(self, route_path: Path | str = "/proc/net/route"):
        self.route_path = Path(route_path)

    def list_adapters(self) -> list[AdapterInfo]:
        """List interfaces with their IPv4 addresses and default-route status."""
        interfaces = psutil.net_if_addrs()
        stats = psutil.net_if_stats()

        addresses_by_name: dict[str, list[IPv4Address]] = {}
        macs: dict[str, str] = {}
        for name, addrs in interfaces.items():
            unicast = []
            for addr in addrs:
                if addr.family == socket.AF_INET:
                    try:
                        unicast.append(IPv4Address(addr.address))
                    except ValueError:
                        logger.debug(f"Ignoring address {addr.address} on {name}")
                elif addr.family == psutil.AF_LINK:
                    macs[name] = addr.address.lower().replace("-", ":")
            addresses_by_name[name] = unicast

        gateways = self._gateway_interfaces(addresses_by_name)

        adapters = []
        for name, unicast in addresses_by_name.items():
            stat = stats.get(name)
            adapters.append(
                AdapterInfo(
                    name=name,
                    hardware_address=macs.get(name),
                    is_up=bool(stat and stat.isup),
                    has_gateway=name in gateways,
                    unicast_addresses=unicast,
                )
            )
        return adapters

    def subnet_mask_for(self, address: IPv4Address) -> IPv4Address | None:
        """Return the netmask configured with ``address`` on any interface."""
        for name, addrs in psutil.net_if_addrs().items():
            for addr in addrs:
                if addr.family != socket.AF_INET or addr.address != str(address):
                    continue
                if not addr.netmask:
                    continue
                try:
                    return IPv4Address(addr.netmask)
                except ValueError:
                    logger.debug(f"Unusable netmask {addr.netmask} on {name}")
        return None

    def _gateway_interfaces(self, addresses_by_name: dict[str, list[IPv4Address]]) -> set[str]:
        """Names of interfaces that carry a default route."""
        if self.route_path.exists():
            try:
                return parse_proc_route(self.route_path.read_text())
            except OSError as e:
                logger.debug(f"Failed to read {self.route_path}: {e}")

        try:
            # macOS/Windows: parse netstat output
            result = subprocess.run(
                ["netstat", "-rn"],
                check=False,
                capture_output=True,
                text=True,
                timeout=5.0,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"Failed to read routing table: {e}")
            return set()
        return parse_netstat_routes(result.stdout, addresses_by_name)


def parse_proc_route(text: str) -> set[str]:
    """Interfaces with a default gateway in Linux ``/proc/net/route``."""
    interfaces = set()
    for line in text.splitlines()[1:]:  # Skip header
        parts = line.split()
        if len(parts) < 4:
            continue
        iface, destination, _, flags = parts[:4]
        try:
            is_gateway = int(flags, 16) & RTF_GATEWAY
        except ValueError:
            continue
        if destination == "00000000" and is_gateway:
            interfaces.add(iface)
    return interfaces


def parse_netstat_routes(text: str, addresses_by_name: dict[str, list[IPv4Address]]) -> set[str]:
    """Interfaces with a default route in ``netstat -rn`` output.

    macOS names the interface in the route line; Windows gives the
    interface's own address instead, so both are matched.
    """
    owners = {str(ip): name for name, ips in addresses_by_name.items() for ip in ips}
    interfaces = set()
    for line in text.splitlines():
        line = line.strip()
        if not (line.lower().startswith("default") or line.startswith("0.0.0.0")):
            continue
        parts = line.split()
        for part in parts[2:]:
            if part in addresses_by_name:
                interfaces.add(part)
            elif part in owners:
                interfaces.add(owners[part])
    return interfaces
