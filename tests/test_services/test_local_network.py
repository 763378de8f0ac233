"""Tests for local adapter discovery."""

import socket
from ipaddress import IPv4Address
from types import SimpleNamespace

import psutil
import pytest

from netsweep.services import local_network
from netsweep.services.local_network import LocalNetwork, parse_netstat_routes, parse_proc_route

PROC_ROUTE = """\
Iface\tDestination\tGateway \tFlags\tRefCnt\tUse\tMetric\tMask\t\tMTU\tWindow\tIRTT
eth0\t00000000\t0101A8C0\t0003\t0\t0\t100\t00000000\t0\t0\t0
eth0\t0001A8C0\t00000000\t0001\t0\t0\t100\t00FFFFFF\t0\t0\t0
docker0\t000011AC\t00000000\t0001\t0\t0\t0\t0000FFFF\t0\t0\t0
"""

NETSTAT_MACOS = """\
Routing tables

Internet:
Destination        Gateway            Flags               Netif Expire
default            192.168.1.1        UGScg                 en0
127                127.0.0.1          UCS                   lo0
192.168.1          link#6             UCS                   en0      !
"""

NETSTAT_WINDOWS = """\
IPv4 Route Table
===========================================================================
Active Routes:
Network Destination        Netmask          Gateway       Interface  Metric
          0.0.0.0          0.0.0.0      192.168.1.1    192.168.1.50     25
        127.0.0.0        255.0.0.0         On-link         127.0.0.1    331
"""


def _addr(family, address, netmask=None):
    return SimpleNamespace(family=family, address=address, netmask=netmask, broadcast=None, ptp=None)


class TestRouteParsing:
    """Tests for default-route parsing."""

    def test_proc_route(self):
        """Test that only interfaces with a default gateway are returned."""
        assert parse_proc_route(PROC_ROUTE) == {"eth0"}

    def test_proc_route_empty(self):
        """Test parsing a routing table without a default route."""
        assert parse_proc_route(PROC_ROUTE.splitlines()[0]) == set()

    def test_netstat_macos(self):
        """Test matching the interface name in macOS output."""
        interfaces = {"en0": [IPv4Address("192.168.1.50")], "lo0": [IPv4Address("127.0.0.1")]}
        assert parse_netstat_routes(NETSTAT_MACOS, interfaces) == {"en0"}

    def test_netstat_windows(self):
        """Test matching the interface address in Windows output."""
        interfaces = {
            "Ethernet": [IPv4Address("192.168.1.50")],
            "Loopback": [IPv4Address("127.0.0.1")],
        }
        assert parse_netstat_routes(NETSTAT_WINDOWS, interfaces) == {"Ethernet"}


class TestLocalNetwork:
    """Tests for LocalNetwork with psutil patched."""

    @pytest.fixture
    def fake_psutil(self, monkeypatch):
        addrs = {
            "lo": [_addr(socket.AF_INET, "127.0.0.1", "255.0.0.0")],
            "eth0": [
                _addr(socket.AF_INET, "192.168.1.50", "255.255.255.0"),
                _addr(psutil.AF_LINK, "00-11-22-33-44-AA"),
            ],
            "wlan0": [_addr(socket.AF_INET, "10.0.0.8", None)],
        }
        stats = {
            "lo": SimpleNamespace(isup=True),
            "eth0": SimpleNamespace(isup=True),
            "wlan0": SimpleNamespace(isup=False),
        }
        monkeypatch.setattr(local_network.psutil, "net_if_addrs", lambda: addrs)
        monkeypatch.setattr(local_network.psutil, "net_if_stats", lambda: stats)

    @pytest.fixture
    def network(self, temp_dir, fake_psutil):
        route_path = temp_dir / "route"
        route_path.write_text(PROC_ROUTE)
        return LocalNetwork(route_path=route_path)

    def test_list_adapters(self, network):
        """Test adapter listing merges addresses, state and gateways."""
        adapters = {a.name: a for a in network.list_adapters()}

        assert set(adapters) == {"lo", "eth0", "wlan0"}
        eth0 = adapters["eth0"]
        assert eth0.is_up is True
        assert eth0.has_gateway is True
        assert eth0.unicast_addresses == [IPv4Address("192.168.1.50")]
        assert eth0.hardware_address == "00:11:22:33:44:aa"
        assert adapters["lo"].has_gateway is False
        assert adapters["wlan0"].is_up is False

    def test_subnet_mask_for(self, network):
        """Test mask lookup by address."""
        assert network.subnet_mask_for(IPv4Address("192.168.1.50")) == IPv4Address("255.255.255.0")

    def test_subnet_mask_missing(self, network):
        """Test that unknown addresses or missing masks give None."""
        assert network.subnet_mask_for(IPv4Address("10.0.0.8")) is None
        assert network.subnet_mask_for(IPv4Address("172.16.0.1")) is None

    def test_netstat_fallback(self, temp_dir, fake_psutil, monkeypatch):
        """Test gateway detection via netstat when /proc is unavailable."""
        output = NETSTAT_MACOS.replace("en0", "eth0")
        monkeypatch.setattr(
            local_network.subprocess,
            "run",
            lambda *args, **kwargs: SimpleNamespace(returncode=0, stdout=output, stderr=""),
        )
        network = LocalNetwork(route_path=temp_dir / "missing")
        adapters = {a.name: a for a in network.list_adapters()}
        assert adapters["eth0"].has_gateway is True
        assert adapters["lo"].has_gateway is False
