"""
Shared data-fetch layer for dashboard panels.

Requests are keyed by (endpoint, filter set). Panels asking for the same
key while a request is in flight share one future. A panel that refreshes
with new filters supersedes its previous request: the old future is
cancelled when nobody else is waiting on it, and a response that arrives
after the panel moved on is discarded.
"""

from __future__ import annotations
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from amr_dashboard.api.client import (
    GENERIC_FAILURE,
    DashboardClient,
    FetchError,
    ROWS_ENDPOINT,
)
from amr_dashboard.filters.active_filters import ActiveFilters, FilterColumnError

logger = logging.getLogger(__name__)

IDLE, LOADING, READY, EMPTY, ERROR = "idle", "loading", "ready", "empty", "error"

RequestKey = Tuple[str, frozenset]


@dataclass(frozen=True)
class PanelState:
    status: str = IDLE
    data: Any = None
    error: Optional[str] = None


def is_empty_result(data) -> bool:
    """Rows payloads and plain containers with nothing in them are empty."""
    rows = getattr(data, "rows", data)
    try:
        return data is None or len(rows) == 0
    except TypeError:
        return False


class FetchLayer:
    def __init__(self, client: DashboardClient, max_workers: int = 4,
                 loaders: Optional[Dict[str, Callable]] = None):
        self.client = client
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="amr-fetch")
        self._lock = threading.RLock()
        self._inflight: Dict[RequestKey, Future] = {}
        self._waiters: Dict[RequestKey, int] = {}
        self.loaders = {ROWS_ENDPOINT: lambda filters: client.isolate_rows(filters)}
        if loaders:
            self.loaders.update(loaders)

    def _load(self, endpoint: str, filters: ActiveFilters):
        loader = self.loaders.get(endpoint)
        if loader is not None:
            return loader(filters)
        return self.client.get_success(endpoint, filters.to_query_params()).payload

    def request(self, endpoint: str, filters: ActiveFilters) -> Tuple[RequestKey, Future]:
        """Return the in-flight future for (endpoint, filters), starting one if needed."""
        key = (endpoint, filters.cache_key())
        created = False
        with self._lock:
            future = self._inflight.get(key)
            if future is None:
                future = self._executor.submit(self._load, endpoint, filters)
                self._inflight[key] = future
                self._waiters[key] = 0
                created = True
            else:
                logger.debug("joining in-flight request %s", key)
            self._waiters[key] += 1
        if created:
            future.add_done_callback(lambda f, k=key: self._forget(k, f))
        return key, future

    def release(self, key: RequestKey, future: Future) -> None:
        """
        Drop one subscriber; cancel the request when it was the last one.

        The future leaves the in-flight table under the lock so nobody can
        join it, and is cancelled after the lock is released: cancel() runs
        done-callbacks on this thread, and those take panel locks.
        """
        with self._lock:
            if self._inflight.get(key) is not future:
                return
            self._waiters[key] -= 1
            if self._waiters[key] > 0:
                return
            del self._inflight[key]
            del self._waiters[key]
        if future.cancel():
            logger.debug("cancelled superseded request %s", key)

    def _forget(self, key: RequestKey, future: Future) -> None:
        with self._lock:
            if self._inflight.get(key) is future:
                del self._inflight[key]
                del self._waiters[key]

    def in_flight(self) -> int:
        with self._lock:
            return len(self._inflight)

    def panel(self, name: str, on_change: Optional[Callable[["Panel"], None]] = None) -> "Panel":
        return Panel(name, self, on_change)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()


class Panel:
    """Fetch state of one dashboard panel; only its latest request may update it."""

    def __init__(self, name: str, layer: FetchLayer,
                 on_change: Optional[Callable[["Panel"], None]] = None):
        self.name = name
        self.layer = layer
        self.on_change = on_change
        self.state = PanelState()
        self._lock = threading.Lock()
        self._settled = threading.Condition(self._lock)
        self._generation = 0
        self._current: Optional[Tuple[RequestKey, Future]] = None
        self._last: Optional[Tuple[str, ActiveFilters]] = None

    def refresh(self, endpoint: str, filters: ActiveFilters) -> Future:
        with self._lock:
            self._generation += 1
            generation = self._generation
            previous = self._current
            self._last = (endpoint, filters)
            self.state = PanelState(status=LOADING)
            key, future = self.layer.request(endpoint, filters)
            self._current = (key, future)
        if previous is not None:
            self.layer.release(*previous)
        self._notify()
        future.add_done_callback(lambda f: self._settle(generation, f))
        return future

    def retry(self) -> Optional[Future]:
        with self._lock:
            last = self._last
        if last is None:
            return None
        return self.refresh(*last)

    def _settle(self, generation: int, future: Future) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug("%s: dropping stale response", self.name)
                return
            self._current = None
            if future.cancelled():
                self.state = PanelState()
                self._settled.notify_all()
                return
            error = future.exception()
            if isinstance(error, FetchError):
                self.state = PanelState(status=ERROR, error=error.message)
            elif isinstance(error, FilterColumnError):
                self.state = PanelState(status=ERROR, error=str(error))
            elif error is not None:
                logger.warning("%s: fetch failed: %r", self.name, error)
                self.state = PanelState(status=ERROR, error=GENERIC_FAILURE)
            else:
                data = future.result()
                status = EMPTY if is_empty_result(data) else READY
                self.state = PanelState(status=status, data=data)
            self._settled.notify_all()
        self._notify()

    def wait(self, timeout: Optional[float] = None) -> PanelState:
        """Block until the latest request has settled (or *timeout* expires)."""
        with self._settled:
            self._settled.wait_for(lambda: self.state.status != LOADING, timeout)
            return self.state

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)
