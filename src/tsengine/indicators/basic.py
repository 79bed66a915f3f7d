"""Basic transforms: field extraction, returns, elementwise math, averages.

Windowed transforms use the clamped trailing window of
:func:`~tsengine.indicators._common.trailing_windows`: near the start of
history the first sample is repeated until the window is full.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, TypeVar

import numpy as np
from numpy.typing import NDArray

from tsengine.indicators._common import previous, require_window, to_bars, trailing_windows
from tsengine.lookup import align as _align_values
from tsengine.types import Bar, FloatBar

if TYPE_CHECKING:
    from tsengine.series import TimeSeries, TimeSeriesAsset, TimeSeriesFloat

S = TypeVar("S", bound="TimeSeries")

ASSET_FIELDS = ("open", "high", "low", "close", "volume")


def _transform(
    series: TimeSeriesFloat,
    name: str,
    fn: Callable[[NDArray[np.float64]], NDArray[np.float64]],
) -> TimeSeriesFloat:
    """Build the cached series ``fn(series.values)`` under ``name``."""

    def compute() -> list[Bar[float]]:
        with np.errstate(all="ignore"):
            result = fn(series.values)
        return to_bars(series.dates, result)

    return series.owner.derive(name, compute)


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


def asset_field(series: TimeSeriesAsset, field: str) -> TimeSeriesFloat:
    """Extract one OHLCV field of an asset as a float series.

    :param series: Asset series.
    :param field: One of ``open``, ``high``, ``low``, ``close``, ``volume``.
    :returns: Float series named ``<asset>.<Field>``.
    """
    if field not in ASSET_FIELDS:
        raise ValueError(f"Unknown asset field '{field}'. Valid options: {list(ASSET_FIELDS)}")

    name = f"{series.name}.{field.capitalize()}"

    def compute() -> list[Bar[float]]:
        return [FloatBar(date=bar.date, value=getattr(bar.value, field)) for bar in series.data]

    return series.owner.derive(name, compute)


def align(series: S) -> S:
    """Resample a series onto its run's canonical date grid.

    Dates missing from the series take the last prior value. Reading the
    grid here fixes an implicit grid, so the result never depends on series
    registered later.
    """
    name = f"{series.name}.Align"
    owner = series.owner
    grid = owner.dates

    def compute() -> list[Bar]:
        bars = series.data
        if not bars:
            return []
        bar_type = type(bars[0])
        return [bar_type(date=date, value=value) for date, value in zip(grid, _align_values(series, grid))]

    return owner.derive(name, compute, type(series))


# ---------------------------------------------------------------------------
# Elementwise math
# ---------------------------------------------------------------------------


def absolute(series: TimeSeriesFloat) -> TimeSeriesFloat:
    return _transform(series, f"{series.name}.Abs", np.abs)


def square(series: TimeSeriesFloat) -> TimeSeriesFloat:
    return _transform(series, f"{series.name}.Square", np.square)


def sqrt(series: TimeSeriesFloat) -> TimeSeriesFloat:
    return _transform(series, f"{series.name}.Sqrt", np.sqrt)


def log(series: TimeSeriesFloat) -> TimeSeriesFloat:
    return _transform(series, f"{series.name}.Log", np.log)


def exp(series: TimeSeriesFloat) -> TimeSeriesFloat:
    return _transform(series, f"{series.name}.Exp", np.exp)


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------


def log_return(series: TimeSeriesFloat) -> TimeSeriesFloat:
    """Log return ``ln(v[t] / v[t-1])``; zero at the first sample."""
    return _transform(series, f"{series.name}.LogReturn", lambda v: np.log(v / previous(v)))


def simple_return(series: TimeSeriesFloat) -> TimeSeriesFloat:
    """Simple return ``v[t] / v[t-1] - 1``; zero at the first sample."""
    return _transform(series, f"{series.name}.Return", lambda v: v / previous(v) - 1.0)


# ---------------------------------------------------------------------------
# Moving windows
# ---------------------------------------------------------------------------


def sma(series: TimeSeriesFloat, n: int = 10) -> TimeSeriesFloat:
    """Simple moving average over ``n`` samples."""
    n = require_window("n", n)
    return _transform(series, f"{series.name}.SMA({n})", lambda v: trailing_windows(v, n).mean(axis=1))


def ema(series: TimeSeriesFloat, n: int = 10) -> TimeSeriesFloat:
    """Exponential moving average with ``alpha = 2 / (n + 1)``, seeded with the first sample."""
    n = require_window("n", n)
    alpha = 2.0 / (n + 1.0)

    def smooth(values: NDArray[np.float64]) -> NDArray[np.float64]:
        result = np.empty_like(values)
        for idx, value in enumerate(values):
            prev = result[idx - 1] if idx > 0 else value
            result[idx] = prev + alpha * (value - prev)
        return result

    return _transform(series, f"{series.name}.EMA({n})", smooth)


def highest(series: TimeSeriesFloat, n: int) -> TimeSeriesFloat:
    """Highest value over the trailing ``n`` samples."""
    n = require_window("n", n)
    return _transform(series, f"{series.name}.Highest({n})", lambda v: trailing_windows(v, n).max(axis=1))


def lowest(series: TimeSeriesFloat, n: int) -> TimeSeriesFloat:
    """Lowest value over the trailing ``n`` samples."""
    n = require_window("n", n)
    return _transform(series, f"{series.name}.Lowest({n})", lambda v: trailing_windows(v, n).min(axis=1))


__all__ = [
    "ASSET_FIELDS",
    "asset_field",
    "align",
    "absolute",
    "square",
    "sqrt",
    "log",
    "exp",
    "log_return",
    "simple_return",
    "sma",
    "ema",
    "highest",
    "lowest",
]
