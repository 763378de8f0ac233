"""Subnet address-space arithmetic."""

import ipaddress
from collections.abc import Iterator
from ipaddress import IPv4Address

from pydantic import BaseModel, ConfigDict

from ..exceptions import InvalidMaskError

_ALL_ONES = 0xFFFFFFFF

AddressLike = IPv4Address | str | bytes


def _packed(value: AddressLike, what: str) -> bytes:
    """Return the network-order bytes of an address given in any accepted form."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return ipaddress.ip_address(value).packed
    except ValueError as e:
        raise InvalidMaskError(f"Invalid {what} '{value}': {e}") from e


class AddressSpace(BaseModel):
    """The usable host range of an IPv4 subnet.

    All arithmetic is done on the big-endian integer form of the address so
    the host range enumerates in ascending numeric order.
    """

    model_config = ConfigDict(frozen=True)

    base_address: IPv4Address
    mask: IPv4Address

    @classmethod
    def build(cls, local_address: AddressLike, mask: AddressLike) -> "AddressSpace":
        """Build the address space for ``local_address`` inside ``mask``."""
        address_bytes = _packed(local_address, "address")
        mask_bytes = _packed(mask, "subnet mask")
        if len(address_bytes) != len(mask_bytes):
            raise InvalidMaskError("Lengths of IP address and subnet mask do not match")
        if len(address_bytes) != 4:
            raise InvalidMaskError(f"Only IPv4 is supported, got {len(address_bytes)}-byte values")
        return cls(base_address=IPv4Address(address_bytes), mask=IPv4Address(mask_bytes))

    @property
    def network_address(self) -> IPv4Address:
        return IPv4Address(int(self.base_address) & int(self.mask))

    @property
    def broadcast_address(self) -> IPv4Address:
        return IPv4Address(int(self.network_address) | (~int(self.mask) & _ALL_ONES))

    @property
    def host_count(self) -> int:
        """Number of usable hosts, excluding network and broadcast."""
        return max(int(self.broadcast_address) - int(self.network_address) - 1, 0)

    @property
    def prefix_length(self) -> int | None:
        """CIDR prefix length, or None for a non-contiguous mask."""
        value = int(self.mask)
        inverted = ~value & _ALL_ONES
        if inverted & (inverted + 1):
            return None
        return bin(value).count("1")

    @property
    def cidr(self) -> str:
        prefix = self.prefix_length
        suffix = prefix if prefix is not None else str(self.mask)
        return f"{self.network_address}/{suffix}"

    def hosts(self) -> Iterator[IPv4Address]:
        """Yield usable host addresses in ascending order."""
        for value in range(int(self.network_address) + 1, int(self.broadcast_address)):
            yield IPv4Address(value)

    def in_subnet(self, address: AddressLike) -> bool:
        """Return whether ``address`` belongs to this subnet."""
        packed = _packed(address, "address")
        if len(packed) != 4:
            return False
        return int.from_bytes(packed, "big") & int(self.mask) == int(self.network_address)

    def same_subnet(self, first: AddressLike, second: AddressLike) -> bool:
        """Return whether two addresses share a network under this mask."""
        mask = int(self.mask)
        first_value = int.from_bytes(_packed(first, "address"), "big")
        second_value = int.from_bytes(_packed(second, "address"), "big")
        return first_value & mask == second_value & mask
