from __future__ import annotations

from typing import List

from pydantic import BaseModel

from hostping.config import ProbeConfig


class HostStatus(BaseModel):
    target: str
    up: bool
    ports: List[int]
    timeout: float

    @classmethod
    def from_check(cls, target: str, up: bool, config: ProbeConfig) -> "HostStatus":
        return cls(target=target, up=up, ports=list(config.ports), timeout=config.timeout)
