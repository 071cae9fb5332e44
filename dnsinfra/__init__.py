"""Building blocks for a DNS server: rolling log files, IP sets, middleware, probes and services."""

__version__ = "0.1.0"