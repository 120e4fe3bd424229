"""
Command-line interface: report whether a single host is up.
"""

from __future__ import annotations

import argparse
from typing import Dict, Optional, Sequence

from pydantic import ValidationError

from . import config as config_module
from .config import ConfigLoadError, ProbeConfig
from .prober import Prober


def build_parser() -> argparse.ArgumentParser:
    parser_obj = argparse.ArgumentParser(
        prog="hostping",
        description="Check whether a host is up by probing common TCP ports.",
    )
    parser_obj.add_argument("target", help="Hostname or IP address to check.")
    parser_obj.add_argument(
        "--ports",
        help="Ports to probe, comma separated, ranges allowed (e.g., 22,80,8000-8010).",
    )
    parser_obj.add_argument(
        "--timeout",
        type=float,
        help=f"Seconds to wait for each connection attempt (default: {config_module.DEFAULT_TIMEOUT:g}).",
    )
    parser_obj.add_argument(
        "--concurrency",
        type=int,
        help=f"Most connection attempts to run at once (default: {config_module.DEFAULT_CONCURRENCY}).",
    )
    parser_obj.add_argument("--config", help="Load ports, timeout and concurrency from a JSON configuration file.")
    return parser_obj


def _load_config_file(args: argparse.Namespace, parser_obj: argparse.ArgumentParser) -> Dict:
    config_data: Dict = {}
    if not args.config:
        return config_data

    try:
        config_data = config_module.load_config(args.config)
    except ConfigLoadError as exc:
        parser_obj.error(str(exc))
    return config_data


def resolve_probe_config(
    args: argparse.Namespace,
    parser_obj: argparse.ArgumentParser,
) -> ProbeConfig:
    config_data = _load_config_file(args, parser_obj)

    ports = config_data.get("ports")
    if isinstance(ports, str):
        try:
            ports = config_module.parse_ports(ports)
        except ValueError as exc:
            parser_obj.error(f"Invalid ports in config: {exc}")
    if args.ports:
        try:
            ports = config_module.parse_ports(args.ports)
        except ValueError as exc:
            parser_obj.error(str(exc))

    timeout = config_data.get("timeout")
    if args.timeout is not None:
        timeout = args.timeout

    concurrency = config_data.get("concurrency")
    if args.concurrency is not None:
        concurrency = args.concurrency

    try:
        return ProbeConfig.build(ports=ports, timeout=timeout, concurrency=concurrency)
    except ValidationError as exc:
        parser_obj.error(f"Invalid probe configuration: {exc}")
    raise AssertionError("unreachable")  # pragma: no cover


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser_obj = build_parser()
    args = parser_obj.parse_args(argv)
    probe_config = resolve_probe_config(args, parser_obj)

    prober = Prober(probe_config)
    if prober.check_host(args.target):
        print(f"{args.target} is up!")
    else:
        print(f"{args.target} is down!")
    return 0
