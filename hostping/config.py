"""
Probe configuration: target ports, per-attempt timeout and JSON loading.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

# Ports commonly left open by ordinary services, probed when none are given.
COMMON_PORTS: Tuple[int, ...] = (
    21, 22, 23, 25, 53, 80, 110, 111, 135, 139, 143,
    389, 443, 445, 993, 995, 1723, 3306, 3389, 5900, 8080,
)
DEFAULT_TIMEOUT = 5.0
DEFAULT_CONCURRENCY = 256
MIN_PORT = 1
MAX_PORT = 65535


class ConfigLoadError(RuntimeError):
    """Raised when a configuration file cannot be loaded."""


class ProbeConfig(BaseModel):
    """Ports to probe, the timeout applied to each connection attempt, and
    how many attempts may run at once.

    Defaults are resolved here, once, so the value handed to the probing
    threads is complete and frozen.
    """

    model_config = ConfigDict(frozen=True)

    ports: Tuple[int, ...] = COMMON_PORTS
    timeout: float = DEFAULT_TIMEOUT
    concurrency: int = DEFAULT_CONCURRENCY

    @field_validator("ports", mode="before")
    @classmethod
    def _default_ports(cls, value: Any) -> Any:
        if value is None:
            return COMMON_PORTS
        if isinstance(value, (str, bytes)):
            raise ValueError("ports must be a sequence of integers")
        value = tuple(value)
        return value or COMMON_PORTS

    @field_validator("ports")
    @classmethod
    def _check_port_range(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        for port in value:
            if not (MIN_PORT <= port <= MAX_PORT):
                raise ValueError(f"Port {port} must be between {MIN_PORT} and {MAX_PORT}.")
        return value

    @field_validator("timeout", mode="before")
    @classmethod
    def _default_timeout(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_TIMEOUT
        return value

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if not math.isfinite(value) or value <= 0:
            return DEFAULT_TIMEOUT
        return value

    @field_validator("concurrency", mode="before")
    @classmethod
    def _default_concurrency(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_CONCURRENCY
        return value

    @field_validator("concurrency")
    @classmethod
    def _at_least_one_worker(cls, value: int) -> int:
        return max(value, 1)

    @classmethod
    def build(
        cls,
        ports: Optional[Sequence[int]] = None,
        timeout: Optional[float] = None,
        concurrency: Optional[int] = None,
    ) -> "ProbeConfig":
        return cls(ports=ports, timeout=timeout, concurrency=concurrency)


def load_config(path: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigLoadError(f"Config file not found: {path}")

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigLoadError(f"Failed to parse config JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigLoadError("Config file must contain a JSON object.")
    return data


def config_from_file(path: str) -> ProbeConfig:
    """
    Load a JSON config file into a ProbeConfig. Unknown keys are ignored;
    ``ports`` may be a list of integers or a string such as "22,80,8000-8010".
    """
    data = load_config(path)
    ports = data.get("ports")
    if isinstance(ports, str):
        ports = parse_ports(ports)
    return ProbeConfig.build(
        ports=ports,
        timeout=data.get("timeout"),
        concurrency=data.get("concurrency"),
    )


def parse_ports(text: str) -> Tuple[int, ...]:
    """Parse a comma separated list of ports and start-end ranges."""
    ports = []
    for chunk in text.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        if "-" in chunk:
            start_str, end_str = chunk.split("-", 1)
        else:
            start_str, end_str = chunk, chunk

        try:
            start_port = int(start_str)
            end_port = int(end_str)
        except ValueError:
            raise ValueError(f"Port values must be integers: {chunk!r}")

        for port in (start_port, end_port):
            if not (MIN_PORT <= port <= MAX_PORT):
                raise ValueError(f"Port {port} must be between {MIN_PORT} and {MAX_PORT}.")
        if start_port > end_port:
            start_port, end_port = end_port, start_port
        ports.extend(range(start_port, end_port + 1))
    return tuple(ports)
