"""Hardware address vendor names via mac-vendor-lookup."""

import asyncio
import logging
import threading

from mac_vendor_lookup import AsyncMacLookup

logger = logging.getLogger(__name__)

# Used when the OUI database has no entry or cannot be loaded
FALLBACK_VENDORS = {
    "00:50:56": "VMware",
    "00:0C:29": "VMware",
    "08:00:27": "VirtualBox",
    "52:54:00": "QEMU",
    "B8:27:EB": "Raspberry Pi",
    "DC:A6:32": "Raspberry Pi",
    "E4:5F:01": "Raspberry Pi",
    "24:0A:C4": "Espressif",
    "30:AE:A4": "Espressif",
    "A4:CF:12": "Espressif",
}

SHORT_NAMES = {
    "Apple, Inc.": "Apple",
    "Raspberry Pi Foundation": "Raspberry Pi",
    "Raspberry Pi Trading Ltd": "Raspberry Pi",
    "Espressif Inc.": "Espressif",
    "Intel Corporate": "Intel",
    "TP-LINK TECHNOLOGIES CO.,LTD.": "TP-Link",
    "ASUSTek COMPUTER INC.": "ASUS",
    "Cisco Systems, Inc": "Cisco",
    "Hon Hai Precision Ind. Co.,Ltd.": "Foxconn",
    "Texas Instruments": "TI",
}


class VendorLookup:
    """Thread-safe vendor lookup.

    The OUI database is loaded on first use. Lookups are serialized because
    the underlying library is asyncio based and keeps its table in memory.
    """

    def __init__(self):
        self._lookup: AsyncMacLookup | None = None
        self._lock = threading.Lock()

    def lookup(self, hardware_address: str) -> str | None:
        """Return a short vendor name for a colon-hex hardware address."""
        with self._lock:
            if self._lookup is None:
                self._lookup = AsyncMacLookup()
            try:
                vendor = asyncio.run(self._lookup.lookup(hardware_address))
            except KeyError:
                vendor = None
            except Exception as e:
                logger.debug(f"Vendor lookup failed for {hardware_address}: {e}")
                vendor = None

        if vendor:
            return SHORT_NAMES.get(vendor, vendor)
        return FALLBACK_VENDORS.get(hardware_address[:8].upper())
