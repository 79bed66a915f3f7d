"""Time series wrappers handed out by a run context.

A series is a canonical name plus a deferred bar list owned by a
:class:`~tsengine.context.RunContext`. Reading :attr:`TimeSeries.data` blocks
until the computation behind it has finished. Series are never built directly
by user code: raw data is registered through the run context and everything
else is derived through the indicator functions, which the fluent methods below
delegate to.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Generic, Iterator, TypeVar

import numpy as np
from numpy.typing import NDArray

from tsengine.indicators import arithmetic, basic, risk
from tsengine.lookup import lookup as lookup_at
from tsengine.types import OHLCV

if TYPE_CHECKING:
    from tsengine.cache import Deferred
    from tsengine.context import RunContext
    from tsengine.indicators.risk import BollingerBands
    from tsengine.types import Bar, LookupPolicy

T = TypeVar("T")


class TimeSeries(Generic[T]):
    """Named, lazily computed sequence of bars.

    :param owner: Run context that owns this series.
    :param name: Canonical name of the computation producing the series.
    :param data: Deferred handle producing the bar list.
    """

    def __init__(self, owner: RunContext, name: str, data: Deferred[list[Bar[T]]]) -> None:
        self.owner = owner
        self.name = name
        self._data = data
        self._dates: list[datetime] | None = None

    @property
    def data(self) -> list[Bar[T]]:
        """Materialized bars, blocking until they are available."""
        return self._data.result()

    @property
    def is_ready(self) -> bool:
        """Whether the bars have been computed (or the computation failed)."""
        return self._data.done()

    @property
    def dates(self) -> list[datetime]:
        if self._dates is None:
            self._dates = [bar.date for bar in self.data]
        return self._dates

    def lookup(self, date: datetime, before_first: LookupPolicy | None = None) -> T:
        """Value observed at ``date``; see :func:`tsengine.lookup.lookup`."""
        return lookup_at(self, date, before_first)

    def __getitem__(self, date: datetime) -> T:
        return lookup_at(self, date)

    def __len__(self) -> int:
        return len(self.data)

    def __iter__(self) -> Iterator[Bar[T]]:
        return iter(self.data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class TimeSeriesFloat(TimeSeries[float]):
    """Series carrying one float per date, with the fluent indicator surface."""

    _values: NDArray[np.float64] | None = None

    @property
    def values(self) -> NDArray[np.float64]:
        """Bar values as a float64 array aligned with :attr:`dates`."""
        if self._values is None:
            self._values = np.fromiter(
                (bar.value for bar in self.data), dtype=np.float64, count=len(self.data)
            )
        return self._values

    def align(self) -> TimeSeriesFloat:
        """Resample onto the run's canonical date grid."""
        return basic.align(self)

    # Arithmetic

    def add(self, other: TimeSeriesFloat | float) -> TimeSeriesFloat:
        return arithmetic.add(self, other)

    def sub(self, other: TimeSeriesFloat | float) -> TimeSeriesFloat:
        return arithmetic.sub(self, other)

    def mul(self, other: TimeSeriesFloat | float) -> TimeSeriesFloat:
        return arithmetic.mul(self, other)

    def div(self, other: TimeSeriesFloat | float) -> TimeSeriesFloat:
        return arithmetic.div(self, other)

    def min(self, other: TimeSeriesFloat | float) -> TimeSeriesFloat:
        return arithmetic.minimum(self, other)

    def max(self, other: TimeSeriesFloat | float) -> TimeSeriesFloat:
        return arithmetic.maximum(self, other)

    # Basic transforms

    def abs(self) -> TimeSeriesFloat:
        return basic.absolute(self)

    def square(self) -> TimeSeriesFloat:
        return basic.square(self)

    def sqrt(self) -> TimeSeriesFloat:
        return basic.sqrt(self)

    def log(self) -> TimeSeriesFloat:
        return basic.log(self)

    def exp(self) -> TimeSeriesFloat:
        return basic.exp(self)

    def log_return(self) -> TimeSeriesFloat:
        return basic.log_return(self)

    def simple_return(self) -> TimeSeriesFloat:
        return basic.simple_return(self)

    def sma(self, n: int = 10) -> TimeSeriesFloat:
        return basic.sma(self, n)

    def ema(self, n: int = 10) -> TimeSeriesFloat:
        return basic.ema(self, n)

    def highest(self, n: int) -> TimeSeriesFloat:
        return basic.highest(self, n)

    def lowest(self, n: int) -> TimeSeriesFloat:
        return basic.lowest(self, n)

    # Volatility and risk

    def standard_deviation(self, n: int = 10) -> TimeSeriesFloat:
        return risk.standard_deviation(self, n)

    def volatility(self, n: int = 10) -> TimeSeriesFloat:
        return risk.volatility(self, n)

    def drawdown(self, period: int) -> TimeSeriesFloat:
        return risk.drawdown(self, period)

    def ulcer_index(self, period: int) -> TimeSeriesFloat:
        return risk.ulcer_index(self, period)

    def bollinger_bands(self, n: int = 20, stdev: float = 2.0) -> BollingerBands:
        return risk.bollinger_bands(self, n, stdev)


class TimeSeriesAsset(TimeSeries[OHLCV]):
    """Series of OHLCV bars for one asset."""

    @property
    def open(self) -> TimeSeriesFloat:
        return basic.asset_field(self, "open")

    @property
    def high(self) -> TimeSeriesFloat:
        return basic.asset_field(self, "high")

    @property
    def low(self) -> TimeSeriesFloat:
        return basic.asset_field(self, "low")

    @property
    def close(self) -> TimeSeriesFloat:
        return basic.asset_field(self, "close")

    @property
    def volume(self) -> TimeSeriesFloat:
        return basic.asset_field(self, "volume")

    def align(self) -> TimeSeriesAsset:
        """Resample onto the run's canonical date grid."""
        return basic.align(self)

    def true_range(self) -> TimeSeriesFloat:
        return risk.true_range(self)

    def average_true_range(self, n: int = 14) -> TimeSeriesFloat:
        return risk.average_true_range(self, n)

    def value_at_risk(self, days: int = 21, percentile: float = 0.95) -> TimeSeriesFloat:
        return risk.value_at_risk(self, days, percentile)


__all__ = ["TimeSeries", "TimeSeriesFloat", "TimeSeriesAsset"]
