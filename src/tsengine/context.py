"""Run-scoped context owning caches, worker pool and date grid.

Example usage::

    from tsengine import EngineConfig, RunContext

    with RunContext("demo", config=EngineConfig(max_workers=4)) as ctx:
        spy = ctx.asset("SPY", bars)
        bands = spy.close.bollinger_bands(20, 2.0)
        risk = spy.value_at_risk(21, 0.95)

        print(bands.upper[some_date], risk[some_date])

Everything derived inside the ``with`` block is memoized by canonical name and
discarded when the context closes.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence, TypeVar

from loguru import logger
from pydantic import ValidationError

from tsengine.cache import Deferred, MemoCache
from tsengine.config import load_engine_config
from tsengine.exceptions import DataValidationError, RunContextClosedError
from tsengine.logger import setup_logging
from tsengine.series import TimeSeries, TimeSeriesAsset, TimeSeriesFloat
from tsengine.types import OHLCV, AssetBar, Bar, EngineConfig, FloatBar

S = TypeVar("S", bound=TimeSeries[Any])

BarLike = Bar[Any] | tuple[datetime, Any]


def _validate_bars(name: str, bars: Iterable[BarLike], bar_type: type[Bar[Any]]) -> list[Bar[Any]]:
    """Convert raw input into bars and check the date ordering invariant.

    :param name: Series name, for error messages.
    :param bars: Bars or ``(date, value)`` tuples.
    :param bar_type: Parametrized bar model to validate values against.
    :returns: Validated bars in input order.
    :raises DataValidationError: If a value is malformed or dates are not
        strictly increasing.
    """
    result: list[Bar[Any]] = []
    for raw in bars:
        try:
            if isinstance(raw, Bar):
                bar = bar_type(date=raw.date, value=raw.value)
            else:
                date, value = raw
                bar = bar_type(date=date, value=value)
        except (ValidationError, TypeError, ValueError) as e:
            raise DataValidationError(f"Invalid bar in '{name}': {raw!r}") from e

        if result and bar.date <= result[-1].date:
            raise DataValidationError(
                f"Dates in '{name}' must be strictly increasing: "
                f"{bar.date.isoformat()} follows {result[-1].date.isoformat()}"
            )
        result.append(bar)
    return result


class RunContext:
    """State of one algorithm run.

    Holds the configuration, the canonical date grid, the two memoization
    caches (series objects and their data) and the worker pool computing
    series. Use it as a context manager, or call :meth:`close` at run end.

    :param name: Run name, used in log messages.
    :param config: Engine configuration (defaults when None).
    :param dates: Canonical date grid; when None the grid is the union of the
        dates of all registered raw series, fixed the first time it is read.
    """

    def __init__(
        self,
        name: str = "run",
        config: EngineConfig | None = None,
        dates: Sequence[datetime] | None = None,
    ) -> None:
        self.name = name
        self.config = config or EngineConfig()
        self._dates = sorted(dates) if dates is not None else None
        self._implicit_grid = dates is None
        self._grid_lock = threading.Lock()
        self._raw_dates: set[datetime] = set()

        self.object_cache: MemoCache[Any] = MemoCache(f"{name}/objects")
        self.data_cache: MemoCache[Deferred[list[Bar[Any]]]] = MemoCache(f"{name}/data")

        self._executor: ThreadPoolExecutor | None = None
        if self.config.max_workers > 0:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.max_workers,
                thread_name_prefix=f"tsengine-{name}",
            )
        self._closed = False

        logger.info("Run {} opened (workers={})", name, self.config.max_workers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Wait for running computations, then drop the pool and caches."""
        if self._closed:
            return
        self._closed = True

        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

        objects = self.object_cache.stats
        data = self.data_cache.stats
        logger.info(
            "Run {} closed: {} objects ({} hits), {} data entries ({} hits)",
            self.name,
            objects.entries,
            objects.hits,
            data.entries,
            data.hits,
        )
        self.object_cache.clear()
        self.data_cache.clear()

    def __enter__(self) -> RunContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise RunContextClosedError(f"Run '{self.name}' is closed")

    # ------------------------------------------------------------------
    # Date grid
    # ------------------------------------------------------------------

    @property
    def dates(self) -> list[datetime]:
        """Canonical date grid of the run.

        An implicit grid is fixed by the first read that finds registered
        dates; series registered afterwards must stay on it.
        """
        with self._grid_lock:
            if self._dates is None:
                if not self._raw_dates:
                    return []
                self._dates = sorted(self._raw_dates)
                logger.debug("Run {} date grid fixed at {} dates", self.name, len(self._dates))
            return self._dates

    def _add_raw_dates(self, name: str, bars: Sequence[Bar[Any]]) -> None:
        """Record the dates of a raw series in the implicit grid.

        :raises DataValidationError: If the grid is already fixed and the
            series has dates outside it.
        """
        if not self._implicit_grid:
            return

        with self._grid_lock:
            if self._dates is not None:
                extra = {bar.date for bar in bars}.difference(self._dates)
                if extra:
                    raise DataValidationError(
                        f"Series '{name}' adds {len(extra)} dates to the run's date grid, "
                        f"which was fixed when first read (first new date "
                        f"{min(extra).isoformat()})"
                    )
                return
            self._raw_dates.update(bar.date for bar in bars)

    # ------------------------------------------------------------------
    # Series construction
    # ------------------------------------------------------------------

    def schedule(self, name: str, compute: Callable[[], list[Bar[Any]]]) -> Deferred[list[Bar[Any]]]:
        """Wrap ``compute`` in a deferred and hand it to the worker pool.

        Without a pool the deferred runs on the first thread reading it.

        :param name: Canonical name of the computation.
        :param compute: Callable producing the bar list.
        :returns: The deferred handle.
        """
        self._check_open()
        deferred: Deferred[list[Bar[Any]]] = Deferred(name, compute)
        if self._executor is not None:
            self._executor.submit(deferred.start)
        return deferred

    def derive(
        self,
        name: str,
        compute: Callable[[], list[Bar[Any]]],
        series_type: type[S] = TimeSeriesFloat,  # type: ignore[assignment]
    ) -> S:
        """Return the series cached under ``name``, scheduling it on first use.

        The data and the wrapper are cached separately under the same name, so
        a wrapper can be rebuilt from data that is already computed.

        :param name: Canonical name of the computation.
        :param compute: Callable producing the bar list. It must only read
            series that already exist when ``derive`` is called.
        :param series_type: Wrapper class to build.
        :returns: The cached series.
        """
        self._check_open()

        def build() -> S:
            data = self.data_cache.fetch(name, lambda: self.schedule(name, compute))
            return series_type(self, name, data)

        return self.object_cache.fetch(name, build)

    def _register(
        self,
        name: str,
        bars: Iterable[BarLike],
        bar_type: type[Bar[Any]],
        series_type: type[S],
    ) -> S:
        self._check_open()

        def load() -> Deferred[list[Bar[Any]]]:
            validated = _validate_bars(name, bars, bar_type)
            self._add_raw_dates(name, validated)
            deferred: Deferred[list[Bar[Any]]] = Deferred(name, lambda: validated)
            deferred.start()
            return deferred

        def build() -> S:
            return series_type(self, name, self.data_cache.fetch(name, load))

        return self.object_cache.fetch(name, build)

    def series(self, name: str, bars: Iterable[Bar[float] | tuple[datetime, float]]) -> TimeSeriesFloat:
        """Register a raw float series under ``name``.

        A name that is already registered returns the existing series.

        :param name: Series name, the root of all names derived from it.
        :param bars: Bars or ``(date, value)`` tuples in date order.
        :returns: The registered series.
        :raises DataValidationError: If the bars are malformed or out of order,
            or add dates to a date grid that is already fixed.
        """
        return self._register(name, bars, FloatBar, TimeSeriesFloat)

    def asset(
        self,
        name: str,
        bars: Iterable[Bar[OHLCV] | tuple[datetime, OHLCV | dict[str, float]]],
    ) -> TimeSeriesAsset:
        """Register a raw OHLCV series under ``name``.

        :param name: Asset name, the root of all names derived from it.
        :param bars: Bars or ``(date, OHLCV)`` tuples in date order; values
            may also be mappings with ``open``/``high``/``low``/``close``
            and optional ``volume``.
        :returns: The registered series.
        :raises DataValidationError: If the bars are malformed or out of order,
            or add dates to a date grid that is already fixed.
        """
        return self._register(name, bars, AssetBar, TimeSeriesAsset)


def open_run(
    config_path: str | Path | None = None,
    name: str = "run",
    dates: Sequence[datetime] | None = None,
    configure_logging: bool = True,
) -> RunContext:
    """Load configuration, set up logging and open a run context.

    :param config_path: YAML configuration file; defaults when None.
    :param name: Run name.
    :param dates: Canonical date grid, see :class:`RunContext`.
    :param configure_logging: Whether to install a stderr sink at the
        configured level.
    :returns: A new, open run context.
    :raises ConfigError: If the configuration file is invalid.
    """
    config = load_engine_config(config_path) if config_path is not None else EngineConfig()
    if configure_logging:
        setup_logging(config.log_level)
    return RunContext(name, config=config, dates=dates)


__all__ = ["RunContext", "open_run"]
