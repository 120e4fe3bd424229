"""
Concurrent TCP liveness probing.

A host counts as up when any probed port answers at the TCP level: either
the handshake completes or the peer actively refuses it with a reset.
"""

from __future__ import annotations

import errno
import selectors
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .config import ProbeConfig

# Upper bound on how long an in-flight connect goes without checking for
# cancellation.
POLL_INTERVAL = 0.05
# Smallest slice of the deadline given to one address when several resolve.
MIN_ADDRESS_SHARE = 2.0

_IN_PROGRESS = {
    errno.EINPROGRESS,
    errno.EWOULDBLOCK,
    errno.EAGAIN,
    errno.EALREADY,
    getattr(errno, "WSAEWOULDBLOCK", errno.EWOULDBLOCK),
}
_REFUSED = {errno.ECONNREFUSED, getattr(errno, "WSAECONNREFUSED", errno.ECONNREFUSED)}
_TIMED_OUT = {errno.ETIMEDOUT, getattr(errno, "WSAETIMEDOUT", errno.ETIMEDOUT)}


class ProbeOutcome(Enum):
    REACHABLE = "reachable"
    REFUSED = "refused"
    TIMED_OUT = "timed_out"
    OTHER_ERROR = "other_error"

    @property
    def responded(self) -> bool:
        """True when the remote TCP stack answered, whether it accepted or not."""
        return self in (ProbeOutcome.REACHABLE, ProbeOutcome.REFUSED)


def _classify_errno(code: int) -> ProbeOutcome:
    if code == 0:
        return ProbeOutcome.REACHABLE
    if code in _REFUSED:
        return ProbeOutcome.REFUSED
    if code in _TIMED_OUT:
        return ProbeOutcome.TIMED_OUT
    return ProbeOutcome.OTHER_ERROR


def _connect(
    sockaddr,
    family: int,
    deadline: float,
    cancelled: threading.Event,
) -> ProbeOutcome:
    with socket.socket(family, socket.SOCK_STREAM) as sock:
        sock.setblocking(False)
        code = sock.connect_ex(sockaddr)
        if code not in _IN_PROGRESS:
            return _classify_errno(code)

        with selectors.DefaultSelector() as selector:
            selector.register(sock, selectors.EVENT_WRITE)
            while True:
                if cancelled.is_set():
                    return ProbeOutcome.TIMED_OUT
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return ProbeOutcome.TIMED_OUT
                if selector.select(min(POLL_INTERVAL, remaining)):
                    return _classify_errno(sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR))


def resolve(target: str, timeout: float) -> List[Tuple[int, tuple]]:
    """
    Look up ``target`` once, giving up after ``timeout`` seconds.

    Returns ``(family, sockaddr)`` pairs with the port left at 0. Raises
    ``TimeoutError`` when the lookup runs out of time and ``OSError`` or
    ``ValueError`` when the name cannot be resolved. A lookup that overruns
    is left to finish on its own thread; it holds no socket.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hostping-resolve")
    try:
        future = executor.submit(socket.getaddrinfo, target, None, 0, socket.SOCK_STREAM)
        infos = future.result(timeout=timeout)
    except FuturesTimeoutError:
        raise TimeoutError(f"Lookup of {target!r} took longer than {timeout:g}s")
    finally:
        executor.shutdown(wait=False)
    return [(family, sockaddr) for family, _, _, _, sockaddr in infos]


def _with_port(sockaddr: tuple, port: int) -> tuple:
    return (sockaddr[0], port) + tuple(sockaddr[2:])


def connect_any(
    addresses: Sequence[Tuple[int, tuple]],
    port: int,
    deadline: float,
    cancelled: threading.Event,
) -> ProbeOutcome:
    """
    Try ``port`` on each resolved address in turn until one answers.

    Each address gets an equal share of the time left before ``deadline``
    (but at least ``MIN_ADDRESS_SHARE`` when that much remains), so a silent
    first address does not starve the others. Returns the first address's
    outcome when none of them answer.
    """
    first: Optional[ProbeOutcome] = None
    for index, (family, sockaddr) in enumerate(addresses):
        now = time.monotonic()
        remaining = deadline - now
        if cancelled.is_set() or remaining <= 0:
            return first or ProbeOutcome.TIMED_OUT
        share = max(remaining / (len(addresses) - index), min(remaining, MIN_ADDRESS_SHARE))
        try:
            outcome = _connect(_with_port(sockaddr, port), family, now + share, cancelled)
        except OSError as exc:
            outcome = _classify_errno(exc.errno) if exc.errno else ProbeOutcome.OTHER_ERROR
        if outcome.responded:
            return outcome
        first = first or outcome
    return first or ProbeOutcome.OTHER_ERROR


def probe_port(
    target: str,
    port: int,
    timeout: float,
    cancelled: Optional[threading.Event] = None,
) -> ProbeOutcome:
    """
    Attempt one TCP connection to ``target:port`` and classify the result.

    Name resolution counts against ``timeout``. The attempt gives up early
    (as TIMED_OUT) once ``cancelled`` is set. The socket is always closed
    before returning.
    """
    if cancelled is None:
        cancelled = threading.Event()
    if cancelled.is_set():
        return ProbeOutcome.TIMED_OUT

    deadline = time.monotonic() + timeout
    try:
        addresses = resolve(target, timeout)
    except TimeoutError:
        return ProbeOutcome.TIMED_OUT
    except (OSError, ValueError):
        return ProbeOutcome.OTHER_ERROR
    return connect_any(addresses, port, deadline, cancelled)


class Prober:
    """Answers "is this host up?" by racing one connection attempt per port."""

    def __init__(self, config: Optional[ProbeConfig] = None):
        self.config = config or ProbeConfig()

    @property
    def ports(self) -> Sequence[int]:
        return self.config.ports

    @property
    def timeout(self) -> float:
        return self.config.timeout

    def _attempt(
        self,
        addresses: Sequence[Tuple[int, tuple]],
        port: int,
        deadline: float,
        cancelled: threading.Event,
    ) -> ProbeOutcome:
        outcome = connect_any(addresses, port, deadline, cancelled)
        if outcome.responded:
            cancelled.set()
        return outcome

    def probe_all(self, target: str) -> List[ProbeOutcome]:
        """
        Probe every configured port concurrently and return the outcomes in
        completion order. Returns only once every connection attempt has
        finished.

        The target is resolved once, within the timeout. All attempts share
        one deadline, so ports queued behind a full worker pool do not extend
        the call.
        """
        deadline = time.monotonic() + self.timeout
        try:
            addresses = resolve(target, self.timeout)
        except TimeoutError:
            return [ProbeOutcome.TIMED_OUT] * len(self.ports)
        except (OSError, ValueError):
            return [ProbeOutcome.OTHER_ERROR] * len(self.ports)

        cancelled = threading.Event()
        outcomes: List[ProbeOutcome] = []
        workers = min(len(self.ports), self.config.concurrency)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="hostping") as executor:
            futures = [
                executor.submit(self._attempt, addresses, port, deadline, cancelled)
                for port in self.ports
            ]
            try:
                for future in as_completed(futures):
                    outcomes.append(future.result())
            finally:
                # Lets the remaining attempts wind down if we leave early.
                cancelled.set()
        return outcomes

    def check_host(self, target: str) -> bool:
        """
        Return True if any configured port on ``target`` accepted or refused
        a connection. Once one port answers, the remaining attempts are
        cancelled; the call still waits for all of them to wind down.
        """
        return any(outcome.responded for outcome in self.probe_all(target))


def check_host(
    target: str,
    ports: Optional[Sequence[int]] = None,
    timeout: Optional[float] = None,
) -> bool:
    return Prober(ProbeConfig.build(ports=ports, timeout=timeout)).check_host(target)
