from __future__ import annotations

import os
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import ValidationError

from hostping.config import ConfigLoadError, ProbeConfig, config_from_file, parse_ports
from hostping.prober import Prober
from .models import HostStatus


app = FastAPI(title="Host Liveness Checker", version="1.0.0")
default_config_path = os.getenv("HOSTPING_CONFIG")


def _base_config() -> ProbeConfig:
    if not default_config_path:
        return ProbeConfig()
    try:
        return config_from_file(default_config_path)
    except (ConfigLoadError, ValueError) as exc:
        raise HTTPException(status_code=500, detail=f"Failed to load probe config: {exc}")


def _resolve_config(ports: Optional[str], timeout: Optional[float]) -> ProbeConfig:
    base = _base_config()
    try:
        port_list = parse_ports(ports) if ports else base.ports
        return ProbeConfig.build(
            ports=port_list,
            timeout=timeout if timeout is not None else base.timeout,
            concurrency=base.concurrency,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid probe configuration: {exc}")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/hosts/{target}", response_model=HostStatus)
def check_host(target: str, ports: Optional[str] = None, timeout: Optional[float] = None) -> HostStatus:
    config = _resolve_config(ports, timeout)
    up = Prober(config).check_host(target)
    return HostStatus.from_check(target, up, config)
