"""Pytest configuration and fixtures."""

import json
import tempfile
import threading
import time
from ipaddress import IPv4Address
from pathlib import Path
from types import SimpleNamespace

import pytest

from netsweep.models.scan_result import PortStatus
from netsweep.services.local_network import AdapterInfo


class FakePinger:
    """Answers for a fixed set of live addresses."""

    def __init__(self, live=(), latency=12.0, delay=0.0, answers_per_host=None):
        self.live = {IPv4Address(a) for a in live}
        self.latency = latency
        self.delay = delay
        self.answers_per_host = answers_per_host  # None: unlimited
        self.calls: list[IPv4Address] = []
        self._lock = threading.Lock()

    def ping(self, address, timeout, payload):
        with self._lock:
            self.calls.append(address)
            answered_before = self.calls.count(address) - 1
        if self.delay:
            time.sleep(self.delay)
        if address not in self.live:
            return None
        if self.answers_per_host is not None and answered_before >= self.answers_per_host:
            return None
        return self.latency


class FakeHardwareResolver:
    def __init__(self, table=None):
        self.table = {IPv4Address(k): v for k, v in (table or {}).items()}
        self.calls = 0

    def resolve(self, address):
        self.calls += 1
        return self.table.get(address)


class FakeReverseResolver:
    def __init__(self, names=None):
        self.names = {IPv4Address(k): v for k, v in (names or {}).items()}

    def lookup(self, address, timeout=None):
        return self.names.get(address)


class FakeTcpProber:
    """Reports every port as ``status``; optionally blocks until released."""

    def __init__(self, status=PortStatus.FAILED, delay=0.0, release: threading.Event | None = None):
        self.status = status
        self.delay = delay
        self.release = release
        self.calls: list[IPv4Address] = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def probe(self, address, port, connect_timeout, io_timeout):
        with self._lock:
            self.calls.append(address)
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.release is not None:
                self.release.wait(connect_timeout)
            elif self.delay:
                time.sleep(self.delay)
            return self.status
        finally:
            with self._lock:
                self.active -= 1


class FakeNetwork:
    def __init__(self, adapters=None, masks=None):
        self.adapters = adapters or []
        self.masks = {IPv4Address(k): IPv4Address(v) for k, v in (masks or {}).items()}

    def list_adapters(self):
        return self.adapters

    def subnet_mask_for(self, address):
        return self.masks.get(address)


class ProgressRecorder:
    """Collects progress reports from any thread."""

    def __init__(self):
        self.reports: list[tuple[int, int, int]] = []
        self._lock = threading.Lock()

    def __call__(self, phase, completed, total):
        with self._lock:
            self.reports.append((int(phase), completed, total))

    def for_phase(self, phase):
        return [r for r in self.reports if r[0] == phase]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def progress():
    return ProgressRecorder()


@pytest.fixture
def fakes():
    """Factories for the fake probe capabilities and network provider."""
    return SimpleNamespace(
        pinger=FakePinger,
        hardware_resolver=FakeHardwareResolver,
        reverse_resolver=FakeReverseResolver,
        tcp_prober=FakeTcpProber,
        network=FakeNetwork,
    )


@pytest.fixture
def lan_adapter():
    """An adapter that is up, has a gateway and an address on 192.168.1.0/24."""
    return AdapterInfo(
        name="eth0",
        hardware_address="00:11:22:33:44:55",
        is_up=True,
        has_gateway=True,
        unicast_addresses=[IPv4Address("192.168.1.50")],
    )


@pytest.fixture
def sample_config_data():
    """Sample configuration data for testing."""
    return {
        "local_address": "192.168.1.50",
        "subnet_mask": "255.255.255.0",
        "port": 8080,
        "ping_timeout_seconds": 2.0,
        "max_workers": 8,
        "log_level": "DEBUG",
    }


@pytest.fixture
def sample_config_file(temp_dir, sample_config_data):
    """Create a sample config file for testing."""
    config_path = temp_dir / "netsweep.json"
    with open(config_path, "w") as f:
        json.dump(sample_config_data, f)
    return config_path
