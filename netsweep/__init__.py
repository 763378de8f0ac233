"""Local IPv4 subnet discovery and host enrichment."""

__version__ = "0.1.0"
