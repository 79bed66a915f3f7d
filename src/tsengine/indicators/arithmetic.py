"""Elementwise arithmetic on time series.

Every operator takes a series on the left and either a series or a number on
the right. Output dates are the left operand's dates; a right-hand series is
read through the date-aligned accessor at each of them, so the two operands do
not need to share a grid.

Division by zero is not guarded and yields IEEE-754 inf/NaN.
"""

from __future__ import annotations

from numbers import Real
from typing import TYPE_CHECKING, Callable

import numpy as np
from numpy.typing import NDArray

from tsengine.indicators._common import format_scalar, to_bars
from tsengine.lookup import align

if TYPE_CHECKING:
    from tsengine.series import TimeSeriesFloat
    from tsengine.types import Bar

BinaryOp = Callable[[NDArray[np.float64], NDArray[np.float64] | float], NDArray[np.float64]]


def _binary(
    left: TimeSeriesFloat,
    right: TimeSeriesFloat | float,
    op_name: str,
    op: BinaryOp,
) -> TimeSeriesFloat:
    """Build the cached series ``op(left, right)``."""
    if isinstance(right, Real):
        scalar = float(right)
        name = f"{left.name}.{op_name}({format_scalar(scalar)})"

        def compute_scalar() -> list[Bar[float]]:
            with np.errstate(all="ignore"):
                result = op(left.values, scalar)
            return to_bars(left.dates, result)

        return left.owner.derive(name, compute_scalar)

    name = f"{left.name}.{op_name}({right.name})"

    def compute_series() -> list[Bar[float]]:
        other = np.asarray(align(right, left.dates), dtype=np.float64)
        with np.errstate(all="ignore"):
            result = op(left.values, other)
        return to_bars(left.dates, result)

    return left.owner.derive(name, compute_series)


def add(summand1: TimeSeriesFloat, summand2: TimeSeriesFloat | float) -> TimeSeriesFloat:
    """Add a series or a constant to a series."""
    return _binary(summand1, summand2, "Add", np.add)


def sub(minuend: TimeSeriesFloat, subtrahend: TimeSeriesFloat | float) -> TimeSeriesFloat:
    """Subtract a series or a constant from a series."""
    return _binary(minuend, subtrahend, "Sub", np.subtract)


def mul(multiplicand1: TimeSeriesFloat, multiplicand2: TimeSeriesFloat | float) -> TimeSeriesFloat:
    """Multiply a series by a series or a constant."""
    return _binary(multiplicand1, multiplicand2, "Mul", np.multiply)


def div(dividend: TimeSeriesFloat, divisor: TimeSeriesFloat | float) -> TimeSeriesFloat:
    """Divide a series by a series or a constant.

    :param dividend: Input series.
    :param divisor: Series or constant by which to divide.
    :returns: Quotient series; zero divisors produce inf or NaN.
    """
    return _binary(dividend, divisor, "Div", np.divide)


def minimum(min1: TimeSeriesFloat, min2: TimeSeriesFloat | float) -> TimeSeriesFloat:
    """Lesser of two series, or of a series and a constant, at each date."""
    return _binary(min1, min2, "Min", np.minimum)


def maximum(max1: TimeSeriesFloat, max2: TimeSeriesFloat | float) -> TimeSeriesFloat:
    """Greater of two series, or of a series and a constant, at each date."""
    return _binary(max1, max2, "Max", np.maximum)


__all__ = ["add", "sub", "mul", "div", "minimum", "maximum"]
