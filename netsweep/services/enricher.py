"""Per-host enrichment: latency, hardware address, host name and port status."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from ipaddress import IPv4Address

from ..models.config import PING_PAYLOAD, ScannerConfig
from ..models.scan_result import PortStatus, ScanResult
from .probes import HardwareResolver, Pinger, ReverseResolver, TcpProber, format_hardware_address
from .vendor import VendorLookup

logger = logging.getLogger(__name__)


class HostEnricher:
    """Runs the four enrichment probes for one address concurrently.

    A failing probe only leaves its own field empty. Cancellation ends the
    join early and the result holds whatever finished by then. The join is
    also bounded by ``join_timeout``: probes still running at that point
    are abandoned, and an unanswered port counts as failed.
    """

    def __init__(
        self,
        pinger: Pinger,
        hardware_resolver: HardwareResolver,
        reverse_resolver: ReverseResolver,
        tcp_prober: TcpProber,
        ping_timeout: float = 5.0,
        arp_attempts: int = 2,
        connect_timeout: float = 5.0,
        io_timeout: float = 2.0,
        dns_timeout: float = 1.0,
        join_margin: float = 0.25,
        poll_interval: float = 0.01,
        vendor_lookup: VendorLookup | None = None,
        payload: bytes = PING_PAYLOAD,
    ):
        self.pinger = pinger
        self.hardware_resolver = hardware_resolver
        self.reverse_resolver = reverse_resolver
        self.tcp_prober = tcp_prober
        self.ping_timeout = ping_timeout
        self.arp_attempts = arp_attempts
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout
        self.dns_timeout = dns_timeout
        self.join_margin = join_margin
        self.poll_interval = poll_interval
        self.vendor_lookup = vendor_lookup
        self.payload = payload

    @property
    def join_timeout(self) -> float:
        """Longest time ``probe`` waits for its probes."""
        return max(self.ping_timeout, self.connect_timeout, self.dns_timeout) + self.join_margin

    @classmethod
    def from_config(
        cls,
        config: ScannerConfig,
        pinger: Pinger,
        hardware_resolver: HardwareResolver,
        reverse_resolver: ReverseResolver,
        tcp_prober: TcpProber,
        vendor_lookup: VendorLookup | None = None,
    ) -> "HostEnricher":
        return cls(
            pinger,
            hardware_resolver,
            reverse_resolver,
            tcp_prober,
            ping_timeout=config.ping_timeout_seconds,
            arp_attempts=config.arp_attempts,
            connect_timeout=config.connect_timeout_seconds,
            io_timeout=config.io_timeout_seconds,
            dns_timeout=config.dns_timeout_seconds,
            poll_interval=config.poll_interval_seconds,
            vendor_lookup=vendor_lookup,
        )

    def probe(
        self, address: IPv4Address, port: int, cancel_event: threading.Event | None = None
    ) -> ScanResult:
        """Gather everything that can be learned about ``address``."""
        cancel_event = cancel_event or threading.Event()
        if cancel_event.is_set():
            return ScanResult(address=address, port=port)

        executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix=f"probe-{address}")
        try:
            futures = {
                "latency": executor.submit(self._latency, address),
                "hardware_address": executor.submit(self._hardware_address, address, cancel_event),
                "host_name": executor.submit(self._host_name, address),
                "port_status": executor.submit(self._port_status, address, port),
            }
            pending = set(futures.values())
            deadline = time.monotonic() + self.join_timeout
            timed_out = False
            while pending and not cancel_event.is_set():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    timed_out = True
                    logger.debug(f"Enrichment of {address} timed out with {len(pending)} probes pending")
                    break
                _, pending = wait(pending, timeout=min(self.poll_interval, remaining))
        finally:
            # Abandoned probes run out on their own timeouts
            executor.shutdown(wait=False, cancel_futures=True)

        fields = {
            name: future.result()
            for name, future in futures.items()
            if future.done() and not future.cancelled()
        }
        if timed_out and "port_status" not in fields:
            fields["port_status"] = PortStatus.FAILED
        if fields.get("hardware_address") and self.vendor_lookup and not cancel_event.is_set():
            fields["vendor"] = self.vendor_lookup.lookup(fields["hardware_address"])

        return ScanResult(address=address, port=port, **fields)

    def _latency(self, address: IPv4Address) -> str | None:
        try:
            round_trip = self.pinger.ping(address, self.ping_timeout, self.payload)
        except Exception as e:
            logger.debug(f"Latency probe for {address} failed: {e}")
            return None
        if round_trip is None:
            return None
        return f"{round(round_trip)}ms"

    def _hardware_address(self, address: IPv4Address, cancel_event: threading.Event) -> str | None:
        for attempt in range(self.arp_attempts):
            if cancel_event.is_set():
                break
            try:
                raw = self.hardware_resolver.resolve(address)
            except Exception as e:
                logger.debug(f"ARP attempt {attempt + 1} for {address} failed: {e}")
                continue
            if raw:
                return format_hardware_address(raw)
        return None

    def _host_name(self, address: IPv4Address) -> str | None:
        try:
            return self.reverse_resolver.lookup(address, self.dns_timeout)
        except Exception as e:
            logger.debug(f"DNS lookup for {address} failed: {e}")
            return None

    def _port_status(self, address: IPv4Address, port: int) -> PortStatus:
        try:
            return self.tcp_prober.probe(address, port, self.connect_timeout, self.io_timeout)
        except Exception as e:
            logger.debug(f"TCP probe for {address}:{port} failed: {e}")
            return PortStatus.FAILED
