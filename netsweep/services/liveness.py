"""Liveness sweep: ping every candidate address and keep the ones that answer."""

import functools
import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from ipaddress import IPv4Address

from ..models.config import PING_PAYLOAD
from ..models.scan_result import ProgressReport, ScanPhase
from .probes import Pinger

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ScanPhase, int, int], None]


class _SweepState:
    """Completion count and responded set shared with probe callbacks."""

    def __init__(self):
        self._lock = threading.Lock()
        self._completed = 0
        self._responded: set[IPv4Address] = set()
        self._closed = False

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    def record(self, address: IPv4Address, future: Future) -> None:
        """Count one probe outcome; may run after the sweep has returned."""
        responded = not future.cancelled() and future.result() is not None
        with self._lock:
            self._completed += 1
            if responded and not self._closed:
                self._responded.add(address)

    def close(self) -> frozenset[IPv4Address]:
        """Stop accepting results and return what has been collected."""
        with self._lock:
            self._closed = True
            return frozenset(self._responded)


class LivenessSweep:
    """Best-effort ICMP sweep used to prune candidates before enrichment.

    Probes are dispatched without waiting on each other. Every
    ``batch_size`` dispatches the sweep pauses for ``batch_pause`` seconds so
    the local network stack is not flooded; this limits the rate, not the
    number of outstanding probes.
    """

    def __init__(
        self,
        pinger: Pinger,
        batch_size: int = 16,
        batch_pause: float = 0.1,
        max_workers: int = 256,
        poll_interval: float = 0.01,
        payload: bytes = PING_PAYLOAD,
    ):
        self.pinger = pinger
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self.max_workers = max_workers
        self.poll_interval = poll_interval
        self.payload = payload

    def run(
        self,
        hosts: Iterable[IPv4Address],
        timeout: float,
        on_progress: ProgressCallback,
        cancel_event: threading.Event | None = None,
    ) -> frozenset[IPv4Address]:
        """Ping ``hosts`` and return the addresses that answered.

        On cancellation no further probes are dispatched and the addresses
        collected so far are returned.
        """
        cancel_event = cancel_event or threading.Event()
        candidates = list(hosts)
        total = len(candidates)
        state = _SweepState()

        def report(completed: int) -> None:
            ProgressReport(phase=ScanPhase.SWEEP, completed=completed, total=total).send(on_progress)

        report(0)
        if not total:
            return state.close()

        logger.debug(f"Sweeping {total} addresses")
        executor = ThreadPoolExecutor(
            max_workers=min(total, self.max_workers), thread_name_prefix="sweep"
        )
        seen = 0
        try:
            for index, address in enumerate(candidates):
                if cancel_event.is_set():
                    break
                future = executor.submit(self._ping, address, timeout)
                future.add_done_callback(functools.partial(state.record, address))
                if (index + 1) % self.batch_size == 0:
                    cancel_event.wait(self.batch_pause)

            while not cancel_event.is_set():
                completed = state.completed
                if completed != seen:
                    seen = completed
                    report(completed)
                if completed >= total:
                    break
                cancel_event.wait(self.poll_interval)
        finally:
            # Read before shutdown: cancelled futures are counted as they are dropped
            completed = state.completed
            responded = state.close()
            executor.shutdown(wait=False, cancel_futures=True)

        if completed > seen:
            report(completed)

        if cancel_event.is_set():
            logger.info(f"Sweep cancelled: {len(responded)} of {total} addresses responded so far")
        else:
            logger.info(f"Sweep finished: {len(responded)} of {total} addresses responded")
        return responded

    def _ping(self, address: IPv4Address, timeout: float) -> float | None:
        try:
            return self.pinger.ping(address, timeout, self.payload)
        except Exception as e:
            logger.debug(f"Ping to {address} failed: {e}")
            return None
