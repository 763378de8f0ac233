"""Entry point for running the scanner as a module."""

import argparse
import logging
import signal
import sys
import threading
from ipaddress import IPv4Address
from logging.handlers import RotatingFileHandler
from pathlib import Path

from pydantic import ValidationError

from .exceptions import ConfigurationError
from .models.config import ScannerConfig
from .models.scan_result import ScanPhase, ScanResult
from .services.network_scanner import ScanOrchestrator

_logger = logging.getLogger(__name__)

# Set by signal handlers to stop the running scan
_cancel_event = threading.Event()


def setup_logging(log_level: str = "INFO") -> None:
    """Log to stderr and, when writable, to a rotating ``logs/netsweep.log``."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    # Try to add rotating file handler
    log_dir = Path("logs")
    try:
        log_dir.mkdir(exist_ok=True)
        # Rotate at 10MB, keep 5 backup files
        file_handler = RotatingFileHandler(
            log_dir / "netsweep.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        handlers.append(file_handler)
    except (PermissionError, OSError):
        pass  # Skip file logging if we can't write

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def _signal_handler(signum: int, frame: object) -> None:
    """Cancel the running scan on SIGINT/SIGTERM."""
    signal_name = signal.Signals(signum).name
    _logger.info(f"Received {signal_name}, cancelling scan...")
    _cancel_event.set()


def setup_signal_handlers() -> None:
    """Set up signal handlers for graceful cancellation."""
    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)


def format_host(result: ScanResult) -> str:
    """Render one host as a fixed-width line."""
    return (
        f"{str(result.address):<15}  "
        f"{result.port_status.value:<9}  "
        f"{result.latency or '-':>6}  "
        f"{result.hardware_address or '-':<17}  "
        f"{result.display_name if result.host_name or result.vendor else ''}"
    ).rstrip()


def build_config(args: argparse.Namespace) -> ScannerConfig:
    """Load the config file and apply command line overrides."""
    config = ScannerConfig.load_or_default(args.config)
    overrides = {}
    if args.address:
        overrides["local_address"] = args.address
    if args.mask:
        overrides["subnet_mask"] = args.mask
    if args.port is not None:
        overrides["port"] = args.port
    if args.vendor:
        overrides["resolve_vendor"] = True
    if overrides:
        config = ScannerConfig.model_validate({**config.model_dump(), **overrides})
    return config


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="netsweep - find and characterize live hosts on the local subnet"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("netsweep.json"),
        help="Path to configuration file (default: netsweep.json)",
    )
    parser.add_argument("-a", "--address", help="Local IPv4 address to scan from")
    parser.add_argument("-m", "--mask", help="Subnet mask, e.g. 255.255.255.0")
    parser.add_argument("-p", "--port", type=int, help="TCP port to probe on each host")
    parser.add_argument("--json", action="store_true", help="Print a JSON summary when done")
    parser.add_argument("--vendor", action="store_true", help="Look up hardware vendors")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-V", "--version", action="store_true", help="Show version and exit")

    args = parser.parse_args(argv)

    if args.version:
        from . import __version__

        print(f"netsweep v{__version__}")
        return 0

    try:
        config = build_config(args)
    except (ValidationError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    setup_logging("DEBUG" if args.verbose else config.log_level)
    setup_signal_handlers()

    def on_host_found(address: IPv4Address, result: ScanResult) -> None:
        if not args.json:
            print(format_host(result), flush=True)

    def on_progress(phase: ScanPhase, completed: int, total: int) -> None:
        _logger.debug(f"{ScanPhase(phase).name.lower()}: {completed}/{total}")

    try:
        summary = ScanOrchestrator().scan(config, on_host_found, on_progress, _cancel_event)
    except ConfigurationError as e:
        print(f"Cannot scan: {e}", file=sys.stderr)
        return 2

    if args.json:
        print(summary.model_dump_json(indent=2))
    else:
        state = "cancelled" if summary.cancelled else "done"
        print(
            f"{state}: {summary.hosts_found} hosts on {summary.address_space.cidr} "
            f"({summary.responded} answered ping) in {summary.duration_seconds:.1f}s",
            file=sys.stderr,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
