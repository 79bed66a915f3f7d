"""Volatility and risk indicators.

All windowed indicators read a trailing window of ``n`` samples ending at each
index, where sample ``t`` of the window is ``src[max(0, idx - t)]``. The head
of the series therefore repeats the first sample rather than being undefined.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from numbers import Real
from typing import TYPE_CHECKING

import numpy as np

from tsengine.exceptions import IndicatorParameterError
from tsengine.indicators import arithmetic, basic
from tsengine.indicators._common import (format_scalar, previous, require_window, to_bars,
                                         trailing_windows)

if TYPE_CHECKING:
    from tsengine.series import TimeSeriesAsset, TimeSeriesFloat
    from tsengine.types import Bar

# Bounds of a value-at-risk result.
VAR_MIN = 1e-99
VAR_MAX = 1.0


# ---------------------------------------------------------------------------
# Standard deviation / volatility
# ---------------------------------------------------------------------------


def standard_deviation(series: TimeSeriesFloat, n: int = 10) -> TimeSeriesFloat:
    """Calculate historical standard deviation.

    Uses the one-pass sum/sum-of-squares formula with Bessel's correction
    (see https://en.wikipedia.org/wiki/Algorithms_for_calculating_variance).
    With ``n = 1`` the correction divides zero by zero and every value is NaN;
    for longer windows the variance is floored at zero.

    :param series: Input series.
    :param n: Length of the calculation window.
    :returns: Standard deviation series.
    """
    n = require_window("n", n)
    name = f"{series.name}.StandardDeviation({n})"

    def compute() -> list[Bar[float]]:
        windows = trailing_windows(series.values, n)
        total = windows.sum(axis=1)
        total2 = np.square(windows).sum(axis=1)
        with np.errstate(all="ignore"):
            variance = (total2 - total * total / n) / (n - 1)
            if n > 1:
                # flat windows can cancel to a tiny negative residue
                variance = np.maximum(variance, 0.0)
            stdev = np.sqrt(variance)
        return to_bars(series.dates, stdev)

    return series.owner.derive(name, compute)


def volatility(series: TimeSeriesFloat, n: int = 10) -> TimeSeriesFloat:
    """Historical volatility: standard deviation of the log returns."""
    return standard_deviation(basic.log_return(series), n)


# ---------------------------------------------------------------------------
# True range
# ---------------------------------------------------------------------------


def true_range(series: TimeSeriesAsset) -> TimeSeriesFloat:
    """Calculate True Range, non averaged.

    See https://en.wikipedia.org/wiki/Average_true_range. At the first bar
    the previous close is the bar's own close.
    """
    name = f"{series.name}.TrueRange"

    def compute() -> list[Bar[float]]:
        bars = series.data
        high = np.fromiter((bar.value.high for bar in bars), dtype=np.float64, count=len(bars))
        low = np.fromiter((bar.value.low for bar in bars), dtype=np.float64, count=len(bars))
        close = np.fromiter((bar.value.close for bar in bars), dtype=np.float64, count=len(bars))
        prev_close = previous(close)
        result = np.maximum(prev_close, high) - np.minimum(prev_close, low)
        return to_bars(series.dates, result)

    return series.owner.derive(name, compute)


def average_true_range(series: TimeSeriesAsset, n: int = 14) -> TimeSeriesFloat:
    """Average True Range: simple moving average of the true range."""
    return basic.sma(true_range(series), n)


# ---------------------------------------------------------------------------
# Drawdown
# ---------------------------------------------------------------------------


def drawdown(series: TimeSeriesFloat, period: int) -> TimeSeriesFloat:
    """Calculate current drawdown from the highest high in period.

    :param series: Input series.
    :param period: Window for the highest high.
    :returns: Drawdown series, ``1 - value / highest``.
    """
    period = require_window("period", period)
    name = f"{series.name}.Drawdown({period})"

    def compute() -> list[Bar[float]]:
        values = series.values
        highest_high = trailing_windows(values, period).max(axis=1)
        with np.errstate(all="ignore"):
            result = 1.0 - values / highest_high
        return to_bars(series.dates, result)

    return series.owner.derive(name, compute)


def ulcer_index(series: TimeSeriesFloat, period: int) -> TimeSeriesFloat:
    """Ulcer Index: root-mean-square of the drawdown over ``period``."""
    return basic.sqrt(basic.sma(basic.square(drawdown(series, period)), period))


# ---------------------------------------------------------------------------
# Bollinger Bands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BollingerBands:
    """Container for the three lines of a Bollinger Band.

    :param middle: Middle line, the moving average.
    :param upper: Middle line plus the scaled standard deviation.
    :param lower: Middle line minus the scaled standard deviation.
    """

    middle: TimeSeriesFloat
    upper: TimeSeriesFloat
    lower: TimeSeriesFloat


def bollinger_bands(series: TimeSeriesFloat, n: int = 20, stdev: float = 2.0) -> BollingerBands:
    """Calculate Bollinger Bands.

    See https://en.wikipedia.org/wiki/Bollinger_Bands. The middle line is the
    same cached series as ``sma(series, n)``.

    :param series: Input series.
    :param n: Calculation period.
    :param stdev: Width in standard deviations.
    :returns: Container of the three band series.
    """
    n = require_window("n", n)
    name = f"{series.name}.BollingerBands({n},{format_scalar(stdev)})"

    def build() -> BollingerBands:
        width = arithmetic.mul(standard_deviation(series, n), stdev)
        middle = basic.sma(series, n)
        return BollingerBands(
            middle=middle,
            upper=arithmetic.add(middle, width),
            lower=arithmetic.sub(middle, width),
        )

    return series.owner.object_cache.fetch(name, build)


# ---------------------------------------------------------------------------
# Value at risk
# ---------------------------------------------------------------------------


def upsampling_steps(days: int, resolution: int) -> int:
    """Number of self-convolution rounds bringing ``days ** steps`` near ``resolution``."""
    return math.ceil(math.log(resolution) / math.log(days))


def value_at_risk(series: TimeSeriesAsset, days: int = 21, percentile: float = 0.95) -> TimeSeriesFloat:
    """Calculate value-at-risk at the given percentile.

    For every bar, the distribution of the ``days``-day log return is built by
    convolving the last ``days`` daily log returns with themselves until it
    holds about ``var_resolution`` samples (a run configuration value). The
    distribution is rescaled for the extra convolution rounds, and its
    ``1 - percentile`` quantile is converted back into a fractional loss.
    The estimate is deterministic.

    :param series: Input asset series; its close prices are used.
    :param days: Number of days to sample; also the horizon.
    :param percentile: Confidence level, 0.99 being the 99th percentile.
    :returns: Value at risk as a fraction of the asset value, 0.1 meaning 10%,
        clamped to ``[1e-99, 1.0]``.
    :raises IndicatorParameterError: If ``days < 2`` or ``percentile`` is not
        in ``(0, 1]``.
    """
    days = require_window("days", days)
    if days < 2:
        raise IndicatorParameterError(f"days must be at least 2, got {days}")
    if isinstance(percentile, bool) or not isinstance(percentile, Real) or not 0.0 < percentile <= 1.0:
        raise IndicatorParameterError(f"percentile must be in (0, 1], got {percentile!r}")

    name = f"{series.name}.ValueAtRisk({days},{format_scalar(percentile)})"
    steps = upsampling_steps(days, series.owner.config.var_resolution)
    returns = basic.log_return(series.close)

    def compute() -> list[Bar[float]]:
        src = returns.values
        lags = np.arange(days)
        dst: list[float] = []

        for idx in range(len(src)):
            # create return distribution with required resolution
            samples = src[np.maximum(0, idx - lags)]
            distribution = np.zeros(1)
            for _ in range(steps):
                distribution = (distribution[:, None] + samples[None, :]).ravel()
            distribution = np.sort(distribution / math.sqrt(steps))

            # find value at risk and scale to required period
            rank = min(round(len(distribution) * (1.0 - percentile)), len(distribution) - 1)
            with np.errstate(all="ignore"):
                value_at_risk = 1.0 - float(np.exp(math.sqrt(1.0 / steps) * distribution[rank]))
            dst.append(min(VAR_MAX, max(VAR_MIN, value_at_risk)))

        return to_bars(returns.dates, dst)

    return series.owner.derive(name, compute)


__all__ = [
    "VAR_MIN",
    "VAR_MAX",
    "standard_deviation",
    "volatility",
    "true_range",
    "average_true_range",
    "drawdown",
    "ulcer_index",
    "BollingerBands",
    "bollinger_bands",
    "upsampling_steps",
    "value_at_risk",
]
