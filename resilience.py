"""Remote backend resilience — retry and circuit breaking.

Wraps calls to the remote backend with tenacity retries on transient errors
and a circuit breaker. While the breaker is open the caller should serve the
request from the local simulation instead.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


# ── Circuit ─────────────────────────────────────────────────

class RemoteCircuit:
    """Breaker for the remote backend.

    ``threshold`` consecutive failed calls open the circuit. After
    ``cooldown`` seconds it turns half-open and lets calls through again:
    the next success closes it, the next failure opens it for another
    cool-down.
    """

    def __init__(self, threshold: int = 3, cooldown: float = 60.0,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.threshold = threshold
        self.cooldown = cooldown
        self._clock = clock
        self._lock = threading.Lock()
        self.failures = 0
        self.state = "closed"
        self.opened_at = 0.0

    def is_open(self) -> bool:
        with self._lock:
            if self.state == "open" and self._clock() - self.opened_at >= self.cooldown:
                self.state = "half_open"
                logger.info("Remote circuit half-open after %.0fs", self.cooldown)
            return self.state == "open"

    def record_success(self) -> None:
        with self._lock:
            if self.state != "closed":
                logger.info("Remote circuit closed")
            self.failures = 0
            self.state = "closed"

    def record_failure(self) -> None:
        with self._lock:
            self.failures += 1
            if self.state == "half_open" or self.failures >= self.threshold:
                if self.state != "open":
                    logger.warning("Remote circuit opened after %d failure(s)", self.failures)
                self.state = "open"
                self.opened_at = self._clock()

    def reset(self) -> None:
        with self._lock:
            self.failures = 0
            self.state = "closed"
            self.opened_at = 0.0


_circuit = RemoteCircuit()


def get_remote_circuit() -> RemoteCircuit:
    return _circuit


# ── Transient error detection ───────────────────────────────

class TransientRemoteError(Exception):
    """Wrapper for remote errors that should be retried."""
    pass


class RemoteUnavailable(Exception):
    """The remote backend could not serve the call; fall back to local."""
    pass


_TRANSIENT_STATUS = {429, 500, 502, 503, 504}


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _TRANSIENT_STATUS
    return False


# ── Main entry point ────────────────────────────────────────

@retry(
    retry=retry_if_exception_type(TransientRemoteError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    reraise=True,
)
def _call_with_retry(func: Callable[[], Any]) -> Any:
    try:
        return func()
    except Exception as e:
        if _is_transient(e):
            raise TransientRemoteError(str(e)) from e
        raise


def resilient_call(func: Callable[[], Any]) -> Any:
    """Run ``func`` against the remote backend with retry and circuit breaking.

    Raises RemoteUnavailable when the circuit is open or the transient
    failure persists; other errors propagate unchanged.
    """
    circuit = get_remote_circuit()
    if circuit.is_open():
        raise RemoteUnavailable("remote circuit open")
    try:
        result = _call_with_retry(func)
    except TransientRemoteError as e:
        circuit.record_failure()
        logger.warning("Remote backend unavailable: %s", e)
        raise RemoteUnavailable(str(e)) from e
    circuit.record_success()
    return result
