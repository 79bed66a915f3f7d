"""Helpers shared by the indicator modules."""

from __future__ import annotations

from datetime import datetime
from numbers import Real
from typing import Iterable, Sequence

import numpy as np
from numpy.typing import NDArray

from tsengine.exceptions import IndicatorParameterError
from tsengine.types import Bar, FloatBar


def format_scalar(value: float) -> str:
    """Render a numeric parameter for use inside a canonical name.

    ``repr`` of a float round-trips exactly, so distinct values never share a
    name and ``5`` and ``5.0`` share one.
    """
    return repr(float(value))


def require_window(name: str, n: int) -> int:
    """Validate a window length parameter.

    :raises IndicatorParameterError: If ``n`` is not a positive integer.
    """
    if isinstance(n, bool) or not isinstance(n, Real) or not float(n).is_integer() or n < 1:
        raise IndicatorParameterError(f"{name} must be a positive integer, got {n!r}")
    return int(n)


def to_bars(dates: Sequence[datetime], values: Iterable[float]) -> list[Bar[float]]:
    """Zip dates and values into float bars."""
    return [FloatBar(date=date, value=float(value)) for date, value in zip(dates, values)]


def trailing_windows(values: NDArray[np.float64], n: int) -> NDArray[np.float64]:
    """Matrix whose row ``idx`` holds ``values[max(0, idx - t)]`` for ``t`` in ``0..n-1``.

    Windows near the start of history repeat the first sample instead of
    getting shorter, so every row has exactly ``n`` entries.
    """
    offsets = np.arange(len(values))[:, None] - np.arange(n)[None, :]
    return values[np.maximum(offsets, 0)]


def previous(values: NDArray[np.float64]) -> NDArray[np.float64]:
    """Shift by one sample; the first sample is its own predecessor."""
    if len(values) == 0:
        return values
    return np.concatenate((values[:1], values[:-1]))
