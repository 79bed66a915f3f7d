"""Single-flight memoization for run-scoped computations.

Two building blocks:

- :class:`Deferred` is a lazy cell around one computation. A worker pool may
  start it, or the first reader runs it inline; either way it runs once and
  every reader observes the same value or the same exception.
- :class:`MemoCache` maps canonical names to produced values. The producer for
  a name is invoked exactly once per cache, even when many threads request the
  name at the same time.

A run context keeps two caches: one for typed series wrappers and one for the
deferred bar lists behind them, so different wrappers can share raw data.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from time import perf_counter
from typing import Callable, Generic, TypeVar

from loguru import logger

from tsengine.exceptions import CacheCycleError
from tsengine.types import FrozenModel

V = TypeVar("V")


class CacheStats(FrozenModel):
    """Hit/miss counters of a cache.

    :param hits: Requests answered from an existing entry.
    :param misses: Requests that invoked the producer.
    :param entries: Names currently held.
    """

    hits: int
    misses: int
    entries: int


class Deferred(Generic[V]):
    """Lazy cell running a zero-argument computation at most once.

    :param name: Canonical name of the computation, used in log messages.
    :param compute: Callable producing the value.
    """

    def __init__(self, name: str, compute: Callable[[], V]) -> None:
        self.name = name
        self._compute = compute
        self._future: Future[V] = Future()
        self._claim_lock = threading.Lock()
        self._runner: int | None = None

    @property
    def started(self) -> bool:
        """Whether some thread has claimed the computation."""
        return self._runner is not None

    def done(self) -> bool:
        """Whether the computation has finished, successfully or not."""
        return self._future.done()

    def start(self) -> None:
        """Run the computation unless another thread already claimed it.

        Exceptions raised by the computation are stored, not raised here; they
        surface from :meth:`result`.
        """
        with self._claim_lock:
            if self._runner is not None:
                return
            self._runner = threading.get_ident()

        started_at = perf_counter()
        try:
            value = self._compute()
        except BaseException as exc:
            logger.error("Computation of {} failed: {!r}", self.name, exc)
            self._future.set_exception(exc)
            return

        self._future.set_result(value)
        logger.debug(
            "Computed {} in {:.4f}s", self.name, perf_counter() - started_at
        )

    def result(self) -> V:
        """Return the computed value, running it inline if nobody has yet.

        :returns: The value produced by the computation.
        :raises CacheCycleError: If the computation waits on itself.
        :raises Exception: Whatever the computation raised.
        """
        self.start()
        if not self._future.done() and self._runner == threading.get_ident():
            raise CacheCycleError(f"Computation of '{self.name}' depends on itself")
        return self._future.result()


class MemoCache(Generic[V]):
    """Thread-safe, single-flight map from canonical name to value.

    Example usage::

        cache = MemoCache("objects")
        series = cache.fetch("SPY.SMA(20)", lambda: build_series())

    A producer that raises does not leave an entry behind: the exception goes
    to the caller and to every thread waiting on that call, and a later
    request for the same name starts afresh.

    :param label: Name used in log messages.
    """

    def __init__(self, label: str = "cache") -> None:
        self.label = label
        self._lock = threading.Lock()
        self._entries: dict[str, Future[V]] = {}
        self._producers: dict[str, int] = {}
        self._hits = 0
        self._misses = 0

    def fetch(self, name: str, producer: Callable[[], V]) -> V:
        """Return the value cached under ``name``, producing it on first use.

        :param name: Canonical name of the computation.
        :param producer: Zero-argument callable creating the value.
        :returns: The cached value.
        :raises CacheCycleError: If ``producer`` requests ``name`` again.
        """
        me = threading.get_ident()
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                entry = Future()
                self._entries[name] = entry
                self._producers[name] = me
                self._misses += 1
                is_producer = True
            else:
                self._hits += 1
                is_producer = False
                if not entry.done() and self._producers.get(name) == me:
                    raise CacheCycleError(
                        f"{self.label}: producer of '{name}' requested itself"
                    )

        if not is_producer:
            return entry.result()

        logger.debug("{} miss: {}", self.label, name)
        try:
            value = producer()
        except BaseException as exc:
            with self._lock:
                del self._entries[name]
                self._producers.pop(name, None)
            entry.set_exception(exc)
            raise

        entry.set_result(value)
        with self._lock:
            self._producers.pop(name, None)
        return value

    def get(self, name: str) -> V | None:
        """Return the finished value cached under ``name``, if any."""
        with self._lock:
            entry = self._entries.get(name)
        if entry is None or not entry.done() or entry.exception() is not None:
            return None
        return entry.result()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def names(self) -> list[str]:
        """Canonical names currently cached, in insertion order."""
        with self._lock:
            return list(self._entries)

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits, misses=self._misses, entries=len(self._entries)
            )

    def clear(self) -> None:
        """Drop all entries and reset the counters."""
        with self._lock:
            self._entries.clear()
            self._producers.clear()
            self._hits = 0
            self._misses = 0


__all__ = ["CacheStats", "Deferred", "MemoCache"]
