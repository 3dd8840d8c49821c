"""Persistence gateway: pick the first reachable store from an ordered list.

The marketplace can run against a primary database and a secondary
(local) one.  ``connect`` dials the candidates in priority order, each
bounded by its own timeout, and returns either a ``StoreConnection``
(the Django database alias to use) or a distinguished ``Unavailable``
result.  It never raises: callers keep serving in degraded mode.

Failure kinds are diagnostic only: they end up in logs and in the
health check, never in transition logic.
"""

from __future__ import annotations

import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import structlog
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import connections
from django.utils.connection import ConnectionDoesNotExist

from modules.core.exceptions import StoreUnavailable

logger = structlog.get_logger(__name__)


class FailureKind(str, Enum):
    NETWORK_UNREACHABLE = "NetworkUnreachable"
    AUTHENTICATION_REJECTED = "AuthenticationRejected"
    TIMEOUT = "Timeout"
    CONFIGURATION_MISSING = "ConfigurationMissing"


@dataclass(frozen=True)
class StoreCandidate:
    """One entry of ``settings.STORE_CANDIDATES``."""

    name: str
    alias: str
    url: str = ""
    timeout: float = 5.0

    @classmethod
    def from_setting(cls, entry: Dict[str, Any]) -> StoreCandidate:
        return cls(
            name=entry["name"],
            alias=entry.get("alias") or entry["name"],
            url=entry.get("url") or "",
            timeout=float(entry.get("timeout", 5.0)),
        )


@dataclass(frozen=True)
class CandidateFailure:
    candidate_name: str
    kind: FailureKind
    detail: str = ""

    def as_dict(self) -> Dict[str, str]:
        return {
            "candidate": self.candidate_name,
            "kind": self.kind.value,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class StoreConnection:
    """A working store: ``handle`` is the database alias repositories bind to."""

    handle: str
    candidate_name: str

    available = True


@dataclass(frozen=True)
class Unavailable:
    """Every candidate failed; ``failures`` keeps them in dial order."""

    failures: Tuple[CandidateFailure, ...] = ()

    available = False


StoreResult = Union[StoreConnection, Unavailable]
Dialer = Callable[[StoreCandidate], str]

_TIMEOUT_MARKERS = ("timed out", "timeout")
_AUTH_MARKERS = (
    "authentication failed",
    "access denied",
    "password",
    "not authorized",
    "unauthorized",
    "bad auth",
)


def classify_error(exc: BaseException) -> FailureKind:
    """Map a dial exception onto the diagnostic failure taxonomy."""
    if isinstance(exc, (ImproperlyConfigured, ConnectionDoesNotExist)):
        return FailureKind.CONFIGURATION_MISSING
    if isinstance(exc, (TimeoutError, socket.timeout, FutureTimeoutError)):
        return FailureKind.TIMEOUT

    message = str(exc).lower()
    if any(marker in message for marker in _TIMEOUT_MARKERS):
        return FailureKind.TIMEOUT
    if any(marker in message for marker in _AUTH_MARKERS):
        return FailureKind.AUTHENTICATION_REJECTED
    return FailureKind.NETWORK_UNREACHABLE


def dial_database(candidate: StoreCandidate) -> str:
    """Open (and close) a connection on the candidate's database alias.

    Runs inside a worker thread, so the trial connection belongs to that
    thread only; request threads open their own on first use.
    """
    if candidate.alias not in connections.databases:
        raise ImproperlyConfigured(
            f"Database alias '{candidate.alias}' is not configured."
        )
    connection = connections[candidate.alias]
    _apply_connect_timeout(connection.settings_dict, candidate.timeout)
    try:
        connection.ensure_connection()
    finally:
        connection.close()
    return candidate.alias


def _apply_connect_timeout(settings_dict: Dict[str, Any], timeout: float) -> None:
    engine = settings_dict.get("ENGINE", "")
    if "sqlite3" in engine:
        return
    options = settings_dict.setdefault("OPTIONS", {})
    options.setdefault("connect_timeout", max(1, int(timeout)))


def _dial_with_timeout(dialer: Dialer, candidate: StoreCandidate) -> str:
    executor = ThreadPoolExecutor(
        max_workers=1, thread_name_prefix=f"store-dial-{candidate.name}"
    )
    try:
        future = executor.submit(dialer, candidate)
        return future.result(timeout=candidate.timeout)
    finally:
        # A hung dial is abandoned; the driver connect timeout ends it.
        executor.shutdown(wait=False)


def connect(
    candidates: Sequence[StoreCandidate],
    dialer: Dialer = dial_database,
) -> StoreResult:
    """Return the first candidate that answers within its timeout.

    Never raises.  When every candidate fails, returns ``Unavailable``
    carrying one classified failure per candidate.
    """
    failures: List[CandidateFailure] = []

    for candidate in candidates:
        log = logger.bind(candidate=candidate.name, timeout=candidate.timeout)

        if not candidate.url:
            failure = CandidateFailure(
                candidate.name,
                FailureKind.CONFIGURATION_MISSING,
                "No connection URL configured.",
            )
            failures.append(failure)
            log.warning("store.candidate_failed", kind=failure.kind.value)
            continue

        log.info("store.candidate_dialing")
        try:
            handle = _dial_with_timeout(dialer, candidate)
        except Exception as exc:
            failure = CandidateFailure(
                candidate.name,
                classify_error(exc),
                str(exc) or exc.__class__.__name__,
            )
            failures.append(failure)
            log.warning(
                "store.candidate_failed",
                kind=failure.kind.value,
                error=failure.detail,
            )
            continue

        log.info("store.candidate_selected", handle=handle)
        return StoreConnection(handle=handle, candidate_name=candidate.name)

    logger.error(
        "store.unavailable",
        failures=[failure.as_dict() for failure in failures],
    )
    return Unavailable(failures=tuple(failures))


class PersistenceGateway:
    """Process-wide holder of the selected store.

    A successful selection is kept until ``invalidate()`` is called (a
    repository hit ``StoreUnavailable``).  An ``Unavailable`` result is
    redialed at most once every ``retry_interval`` seconds so a dead
    datastore does not add dial latency to every request.  While one caller
    redials, the others get the previous result instead of waiting.
    """

    def __init__(
        self,
        candidates: Optional[Sequence[StoreCandidate]] = None,
        dialer: Dialer = dial_database,
        retry_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._candidates = candidates
        self._dialer = dialer
        self._retry_interval = retry_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._dial_lock = threading.Lock()
        self._result: Optional[StoreResult] = None
        self._checked_at = 0.0

    @property
    def candidates(self) -> List[StoreCandidate]:
        if self._candidates is not None:
            return list(self._candidates)
        return [StoreCandidate.from_setting(entry) for entry in settings.STORE_CANDIDATES]

    @property
    def retry_interval(self) -> float:
        if self._retry_interval is not None:
            return self._retry_interval
        return float(settings.STORE_RETRY_INTERVAL)

    def get_store(self) -> StoreResult:
        with self._lock:
            if not self._needs_dial():
                return self._result
            last = self._result
        # One caller dials; the rest keep the last known result meanwhile.
        # Only a lookup with nothing to fall back on waits for the dial.
        if not self._dial_lock.acquire(blocking=last is None):
            return last
        try:
            with self._lock:
                if not self._needs_dial():
                    return self._result
            return self._redial()
        finally:
            self._dial_lock.release()

    def require_store(self) -> StoreConnection:
        """Like ``get_store`` but raises ``StoreUnavailable`` in degraded mode."""
        result = self.get_store()
        if not result.available:
            raise StoreUnavailable("No store candidate is reachable.")
        return result

    def refresh(self) -> StoreResult:
        with self._dial_lock:
            return self._redial()

    def invalidate(self) -> None:
        """Drop a successful selection so the next lookup dials again."""
        with self._lock:
            if self._result is not None and self._result.available:
                logger.warning(
                    "store.selection_invalidated",
                    candidate=self._result.candidate_name,
                )
                self._result = None

    def _needs_dial(self) -> bool:
        if self._result is None:
            return True
        if self._result.available:
            return False
        return self._clock() - self._checked_at >= self.retry_interval

    def _redial(self) -> StoreResult:
        # Dials run outside ``_lock`` so readers never wait on a slow candidate.
        result = connect(self.candidates, dialer=self._dialer)
        with self._lock:
            self._result = result
            self._checked_at = self._clock()
        return result


store_gateway = PersistenceGateway()
