"""Subnet scanner: liveness sweep followed by bounded-parallel host enrichment."""

import asyncio
import functools
import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime
from ipaddress import IPv4Address

from ..exceptions import MissingCallbackError, NoAdapterFoundError, NoSubnetMaskError
from ..models.address_space import AddressSpace
from ..models.config import ScannerConfig
from ..models.scan_result import ProgressReport, ScanPhase, ScanResult, ScanSummary
from .enricher import HostEnricher
from .liveness import LivenessSweep, ProgressCallback
from .local_network import AdapterInfo, LocalNetwork, NetworkConfigProvider
from .probes import (
    DnsResolver,
    HardwareResolver,
    Pinger,
    ReverseResolver,
    SocketProber,
    TcpProber,
    default_hardware_resolver,
    default_pinger,
)
from .vendor import VendorLookup

logger = logging.getLogger(__name__)

HostFoundCallback = Callable[[IPv4Address, ScanResult], None]


def select_local_address(adapters: list[AdapterInfo]) -> IPv4Address | None:
    """Pick the first IPv4 unicast address of an adapter that has a gateway."""
    for adapter in adapters:
        if not (adapter.is_up and adapter.has_gateway):
            continue
        for address in adapter.unicast_addresses:
            if not address.is_loopback:
                return address
    return None


def _guarded(callback: Callable, name: str) -> Callable:
    """Wrap a caller callback so its exceptions are logged, not propagated."""

    def call(*args):
        try:
            callback(*args)
        except Exception:
            logger.exception(f"{name} callback raised")

    return call


class _PhaseProgress:
    """Completion counter that reports every increment in order."""

    def __init__(self, phase: ScanPhase, total: int, callback: ProgressCallback):
        self.phase = phase
        self.total = total
        self._callback = callback
        self._completed = 0
        self._lock = threading.RLock()

    def start(self) -> None:
        with self._lock:
            self._report()

    def advance(self) -> int:
        # Count and report under one lock so reports never go backwards
        with self._lock:
            self._completed += 1
            self._report()
            return self._completed

    def _report(self) -> None:
        report = ProgressReport(phase=self.phase, completed=self._completed, total=self.total)
        report.send(self._callback)


class ScanOrchestrator:
    """Finds and characterizes the live hosts of the local subnet."""

    def __init__(
        self,
        pinger: Pinger | None = None,
        hardware_resolver: HardwareResolver | None = None,
        reverse_resolver: ReverseResolver | None = None,
        tcp_prober: TcpProber | None = None,
        network: NetworkConfigProvider | None = None,
        vendor_lookup: VendorLookup | None = None,
    ):
        self.pinger = pinger or default_pinger()
        self.hardware_resolver = hardware_resolver or default_hardware_resolver()
        self.reverse_resolver = reverse_resolver or DnsResolver()
        self.tcp_prober = tcp_prober or SocketProber()
        self.network = network or LocalNetwork()
        self.vendor_lookup = vendor_lookup

    def scan(
        self,
        config: ScannerConfig | None = None,
        on_host_found: HostFoundCallback | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ScanSummary:
        """Scan the local subnet, blocking until done or cancelled.

        ``on_host_found`` is called once per host with data, from worker
        threads, in completion order. ``on_progress`` receives
        ``(phase, completed, total)``. Setting ``cancel_event`` ends the scan
        early without an error.
        """
        if not callable(on_host_found):
            raise MissingCallbackError("Callback needed")
        if not callable(on_progress):
            raise MissingCallbackError("Progress needed")

        config = config or ScannerConfig()
        cancel_event = cancel_event or threading.Event()
        on_host_found = _guarded(on_host_found, "on_host_found")
        on_progress = _guarded(on_progress, "on_progress")
        start_time = datetime.now()

        local_address = self._resolve_local_address(config)
        mask = self._resolve_mask(config, local_address)
        space = AddressSpace.build(local_address, mask)
        logger.info(f"Scanning {space.cidr} from {local_address} ({space.host_count} hosts)")

        sweep = LivenessSweep(
            self.pinger,
            batch_size=config.sweep_batch_size,
            batch_pause=config.sweep_batch_pause_seconds,
            max_workers=config.sweep_max_workers,
            poll_interval=config.poll_interval_seconds,
        )
        responded = sweep.run(space.hosts(), config.sweep_timeout_seconds, on_progress, cancel_event)

        hosts: list[ScanResult] = []
        if not cancel_event.is_set():
            hosts = self._enrich(sorted(responded), config, on_host_found, on_progress, cancel_event)

        duration = (datetime.now() - start_time).total_seconds()
        cancelled = cancel_event.is_set()
        if cancelled:
            logger.info(f"Scan cancelled after {duration:.1f}s, {len(hosts)} hosts reported")
        else:
            logger.info(f"Scan finished in {duration:.1f}s, {len(hosts)} hosts reported")

        return ScanSummary(
            local_address=local_address,
            address_space=space,
            port=config.port,
            candidates=space.host_count,
            responded=len(responded),
            hosts=hosts,
            scan_time=start_time,
            duration_seconds=duration,
            cancelled=cancelled,
        )

    async def scan_async(
        self,
        config: ScannerConfig | None = None,
        on_host_found: HostFoundCallback | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ScanSummary:
        """Run ``scan`` in a thread pool; cancelling the task cancels the scan."""
        cancel_event = cancel_event or threading.Event()
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None,
                functools.partial(self.scan, config, on_host_found, on_progress, cancel_event),
            )
        except asyncio.CancelledError:
            cancel_event.set()
            raise

    def _resolve_local_address(self, config: ScannerConfig) -> IPv4Address:
        if config.local_address is not None:
            return config.local_address
        address = select_local_address(self.network.list_adapters())
        if address is None:
            raise NoAdapterFoundError("Can't find a network adapter with a gateway and an IPv4 address")
        return address

    def _resolve_mask(self, config: ScannerConfig, local_address: IPv4Address) -> IPv4Address:
        if config.subnet_mask is not None:
            return config.subnet_mask
        mask = self.network.subnet_mask_for(local_address)
        if mask is None:
            raise NoSubnetMaskError(f"Can't find subnet mask for IP {local_address}")
        return mask

    def _enrich(
        self,
        hosts: list[IPv4Address],
        config: ScannerConfig,
        on_host_found: HostFoundCallback,
        on_progress: ProgressCallback,
        cancel_event: threading.Event,
    ) -> list[ScanResult]:
        """Enrich ``hosts`` on a bounded pool; returns reported results in completion order."""
        vendor_lookup = self.vendor_lookup
        if config.resolve_vendor and vendor_lookup is None:
            vendor_lookup = VendorLookup()
        enricher = HostEnricher.from_config(
            config,
            self.pinger,
            self.hardware_resolver,
            self.reverse_resolver,
            self.tcp_prober,
            vendor_lookup=vendor_lookup,
        )

        progress = _PhaseProgress(ScanPhase.ENRICH, len(hosts), on_progress)
        progress.start()
        if not hosts:
            return []

        found: list[ScanResult] = []
        found_lock = threading.Lock()

        def enrich_one(address: IPv4Address) -> None:
            if cancel_event.is_set():
                return
            result = enricher.probe(address, config.port, cancel_event)
            if cancel_event.is_set():
                return  # Observed after cancellation: discard
            progress.advance()
            if result.has_data():
                with found_lock:
                    found.append(result)
                on_host_found(address, result)

        executor = ThreadPoolExecutor(
            max_workers=min(config.max_workers, len(hosts)), thread_name_prefix="enrich"
        )
        try:
            pending = set()
            for address in hosts:
                if cancel_event.is_set():
                    break
                pending.add(executor.submit(enrich_one, address))

            while pending and not cancel_event.is_set():
                done, pending = wait(pending, timeout=config.poll_interval_seconds)
                for future in done:
                    if future.exception() is not None:
                        logger.error(f"Enrichment worker failed: {future.exception()}")
        finally:
            # In-flight enrichments end their join as soon as they see the cancel
            executor.shutdown(wait=True, cancel_futures=True)

        with found_lock:
            return list(found)
