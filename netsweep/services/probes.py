"""Probe capabilities: ICMP echo, ARP resolution, reverse DNS and TCP connect.

Each capability is a small protocol so the scan engine can run against fakes
in tests. The default implementations prefer scapy raw sockets when the
process has the privileges for them and fall back to the operating system's
own tools otherwise.
"""

import logging
import math
import os
import re
import shutil
import socket
import subprocess
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from ipaddress import IPv4Address
from pathlib import Path
from typing import Protocol

from ..models.scan_result import PortStatus

logger = logging.getLogger(__name__)

BROADCAST_MAC = "ff:ff:ff:ff:ff:ff"
PING_TTL = 16

# "time=0.045 ms" (Linux/macOS), "time=3ms" / "time<1ms" (Windows)
_PING_TIME = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)

# "? (192.168.1.1) at 0:11:22:33:44:55 on en0" or "192.168.1.1   00-11-22-33-44-55   dynamic"
_ARP_ENTRY = re.compile(
    r"\(?(\d{1,3}(?:\.\d{1,3}){3})\)?\s+(?:at\s+)?"
    r"([0-9a-f]{1,2}(?:[:-][0-9a-f]{1,2}){5})",
    re.IGNORECASE,
)


class Pinger(Protocol):
    def ping(self, address: IPv4Address, timeout: float, payload: bytes) -> float | None:
        """Return the round trip in milliseconds, or None if nothing answered."""
        ...


class HardwareResolver(Protocol):
    def resolve(self, address: IPv4Address) -> bytes | None:
        """Return the hardware address bytes for ``address``, or None."""
        ...


class ReverseResolver(Protocol):
    def lookup(self, address: IPv4Address, timeout: float) -> str | None:
        """Return the host name registered for ``address``, or None after ``timeout``."""
        ...


class TcpProber(Protocol):
    def probe(
        self, address: IPv4Address, port: int, connect_timeout: float, io_timeout: float
    ) -> PortStatus:
        """Return AVAILABLE if a TCP connection could be opened, else FAILED."""
        ...


def scapy_available() -> bool:
    """Check if scapy can be imported."""
    try:
        from scapy.all import conf  # noqa: F401

        return True
    except ImportError:
        logger.warning("scapy not installed - raw socket probes disabled")
        return False
    except Exception as e:
        logger.warning(f"scapy error: {e}")
        return False


def has_privileges() -> bool:
    """Check if we have root/admin privileges for raw socket access."""
    # On Unix-like systems, check for root (uid 0)
    if hasattr(os, "geteuid"):
        return os.geteuid() == 0
    # On Windows, we'd need to check differently, but scapy handles this
    return True


def format_hardware_address(raw: bytes) -> str:
    """Format hardware address bytes as lower-case colon-hex."""
    return ":".join(f"{b:02x}" for b in raw)


def parse_hardware_address(text: str) -> bytes | None:
    """Parse a colon or dash separated hardware address.

    Octets may omit their leading zero, as macOS prints them. The all-zero
    address that marks an incomplete ARP entry yields None.
    """
    parts = re.split(r"[:-]", text.strip())
    if len(parts) != 6:
        return None
    try:
        raw = bytes(int(part, 16) for part in parts)
    except ValueError:
        return None
    if not any(raw):
        return None
    return raw


class ScapyPinger:
    """ICMP echo over a raw socket using scapy (requires root)."""

    def __init__(self, ttl: int = PING_TTL):
        self.ttl = ttl

    def ping(self, address: IPv4Address, timeout: float, payload: bytes) -> float | None:
        from scapy.all import ICMP, IP, Raw, sr1

        packet = IP(dst=str(address), ttl=self.ttl, flags="DF") / ICMP() / Raw(load=payload)
        started = time.monotonic()
        try:
            reply = sr1(packet, timeout=timeout, verbose=False)
        except OSError as e:
            logger.debug(f"ICMP echo to {address} failed: {e}")
            return None

        if reply is None or not reply.haslayer(ICMP):
            return None
        if reply[ICMP].type != 0:  # Not an echo-reply
            return None
        return (time.monotonic() - started) * 1000


class SystemPinger:
    """ICMP echo through the operating system's ping command."""

    def __init__(self, executable: str | None = None, ttl: int = PING_TTL):
        self.executable = executable or shutil.which("ping") or "ping"
        self.ttl = ttl

    def _build_command(self, address: IPv4Address, timeout: float) -> list[str]:
        """Build a single-echo ping command for the current platform."""
        if sys.platform == "win32":
            wait_ms = str(int(timeout * 1000))
            return [self.executable, "-n", "1", "-w", wait_ms, "-i", str(self.ttl), "-f", str(address)]
        if sys.platform == "darwin":
            wait_ms = str(int(timeout * 1000))
            return [self.executable, "-c", "1", "-W", wait_ms, "-m", str(self.ttl), "-D", str(address)]
        wait_s = str(max(1, math.ceil(timeout)))
        return [self.executable, "-n", "-c", "1", "-W", wait_s, "-t", str(self.ttl), "-M", "do", str(address)]

    def ping(self, address: IPv4Address, timeout: float, payload: bytes) -> float | None:
        # The payload size is left to the ping command: iputils only prints a
        # round trip when the payload can carry its own timestamp.
        cmd = self._build_command(address, timeout)
        try:
            result = subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=timeout + 2.0,
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"ping {address} timed out")
            return None
        except OSError as e:
            logger.debug(f"ping {address} could not run: {e}")
            return None

        if result.returncode != 0:
            return None
        # Windows reports "Destination host unreachable" with exit code 0
        if sys.platform == "win32" and "TTL=" not in result.stdout.upper():
            return None

        match = _PING_TIME.search(result.stdout)
        if not match:
            logger.debug(f"ping {address} answered without a round trip time")
            return 0.0
        return float(match.group(1))


class ScapyArpResolver:
    """ARP who-has request for a single address using scapy (requires root)."""

    def __init__(self, timeout: float = 2.0):
        self.timeout = timeout

    def resolve(self, address: IPv4Address) -> bytes | None:
        from scapy.all import ARP, Ether, srp

        packet = Ether(dst=BROADCAST_MAC) / ARP(pdst=str(address))
        try:
            answered = srp(packet, timeout=self.timeout, verbose=False)[0]
        except OSError as e:
            logger.debug(f"ARP request for {address} failed: {e}")
            return None

        for _, received in answered:
            if received.psrc == str(address):
                return parse_hardware_address(received.hwsrc)
        return None


class ArpTableResolver:
    """Hardware address lookup in the operating system's ARP cache.

    Works without privileges. When the address has no entry yet, a single
    empty UDP datagram is sent to it so the kernel resolves it in time for
    the next attempt.
    """

    def __init__(self, proc_path: Path | str = "/proc/net/arp", nudge_port: int = 9):
        self.proc_path = Path(proc_path)
        self.nudge_port = nudge_port

    def resolve(self, address: IPv4Address) -> bytes | None:
        table = self._read_table()
        raw = table.get(address)
        if raw is None:
            self._nudge(address)
        return raw

    def _read_table(self) -> dict[IPv4Address, bytes]:
        if self.proc_path.exists():
            try:
                return parse_proc_arp(self.proc_path.read_text())
            except OSError as e:
                logger.debug(f"Failed to read {self.proc_path}: {e}")
                return {}

        cmd = ["arp", "-a"] if sys.platform == "win32" else ["arp", "-an"]
        try:
            result = subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=5.0,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"arp table lookup failed: {e}")
            return {}
        return parse_arp_output(result.stdout)

    def _nudge(self, address: IPv4Address) -> None:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.sendto(b"", (str(address), self.nudge_port))
        except OSError as e:
            logger.debug(f"ARP nudge to {address} failed: {e}")


def parse_proc_arp(text: str) -> dict[IPv4Address, bytes]:
    """Parse the Linux ``/proc/net/arp`` table."""
    table: dict[IPv4Address, bytes] = {}
    for line in text.splitlines()[1:]:  # Skip header
        parts = line.split()
        if len(parts) < 4:
            continue
        try:
            address = IPv4Address(parts[0])
            flags = int(parts[2], 16)
        except ValueError:
            continue
        if not flags & 0x2:  # ATF_COM: entry is complete
            continue
        raw = parse_hardware_address(parts[3])
        if raw is not None:
            table[address] = raw
    return table


def parse_arp_output(text: str) -> dict[IPv4Address, bytes]:
    """Parse ``arp -an`` (BSD/macOS) or ``arp -a`` (Windows) output."""
    table: dict[IPv4Address, bytes] = {}
    for line in text.splitlines():
        match = _ARP_ENTRY.search(line)
        if not match:
            continue
        try:
            address = IPv4Address(match.group(1))
        except ValueError:
            continue
        raw = parse_hardware_address(match.group(2))
        if raw is not None:
            table[address] = raw
    return table


class DnsResolver:
    """Reverse DNS lookup through the system resolver.

    ``gethostbyaddr`` has no timeout of its own, so lookups run on a small
    shared pool and are abandoned once ``timeout`` passes.
    """

    def __init__(self, max_workers: int = 8):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="dns")

    def lookup(self, address: IPv4Address, timeout: float = 1.0) -> str | None:
        future = self._executor.submit(socket.gethostbyaddr, str(address))
        try:
            hostname, _, _ = future.result(timeout=timeout)
        except FuturesTimeoutError:
            future.cancel()
            logger.debug(f"DNS lookup timeout for {address}")
            return None
        except socket.herror:
            return None  # No reverse DNS
        except OSError as e:
            logger.debug(f"DNS lookup error for {address}: {e}")
            return None

        if not hostname or hostname == str(address):
            return None
        return hostname


class SocketProber:
    """TCP connect-and-close reachability check."""

    def probe(
        self, address: IPv4Address, port: int, connect_timeout: float, io_timeout: float
    ) -> PortStatus:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(connect_timeout)
            try:
                sock.connect((str(address), port))
            except OSError as e:
                logger.debug(f"TCP connect to {address}:{port} failed: {e}")
                return PortStatus.FAILED
            sock.settimeout(io_timeout)
        return PortStatus.AVAILABLE


def default_pinger() -> Pinger:
    """Return the best ICMP capability for this process."""
    if has_privileges() and scapy_available():
        return ScapyPinger()
    logger.info("Using system ping command (run with sudo for raw ICMP)")
    return SystemPinger()


def default_hardware_resolver(timeout: float = 2.0) -> HardwareResolver:
    """Return the best ARP capability for this process."""
    if has_privileges() and scapy_available():
        return ScapyArpResolver(timeout=timeout)
    return ArpTableResolver()
