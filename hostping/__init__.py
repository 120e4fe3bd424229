"""
TCP-based host liveness checks: a host is up when any probed port answers.
"""

from .config import COMMON_PORTS, ConfigLoadError, ProbeConfig
from .prober import ProbeOutcome, Prober, check_host, probe_port

__all__ = [
    "COMMON_PORTS",
    "ConfigLoadError",
    "ProbeConfig",
    "ProbeOutcome",
    "Prober",
    "check_host",
    "probe_port",
]
