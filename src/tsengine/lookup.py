"""Date-aligned access to time series.

A series is read at an arbitrary date by taking the most recent sample at or
before that date (last observation carried forward). This is what lets one
series be evaluated on another series' date grid, for example when adding two
series whose bars do not line up.

Dates before the first sample have no prior observation. The policy for them
is ``"clamp"`` (use the first sample) or ``"raise"``
(:class:`~tsengine.exceptions.LookupBoundaryError`); series default to the
policy configured on their run context.
"""

from __future__ import annotations

from bisect import bisect_right
from datetime import datetime
from typing import TYPE_CHECKING, Any, Sequence

from tsengine.exceptions import LookupBoundaryError

if TYPE_CHECKING:
    from tsengine.series import TimeSeries
    from tsengine.types import LookupPolicy


def find_index(
    dates: Sequence[datetime],
    date: datetime,
    before_first: LookupPolicy = "clamp",
) -> int:
    """Find the index of the sample observed at ``date``.

    :param dates: Strictly increasing sample dates.
    :param date: Date to resolve.
    :param before_first: Policy for dates before ``dates[0]``.
    :returns: Index of the last sample dated at or before ``date``.
    :raises LookupBoundaryError: If ``dates`` is empty, or ``date`` precedes
        the first sample and the policy is ``"raise"``.
    """
    if not dates:
        raise LookupBoundaryError(f"Cannot resolve {date.isoformat()} in an empty series")

    idx = bisect_right(dates, date) - 1
    if idx >= 0:
        return idx

    if before_first == "raise":
        raise LookupBoundaryError(
            f"{date.isoformat()} is before the first sample at {dates[0].isoformat()}"
        )
    return 0


def lookup(
    series: TimeSeries[Any],
    date: datetime,
    before_first: LookupPolicy | None = None,
) -> Any:
    """Return the value of ``series`` observed at ``date``.

    Blocks until the series' data is available.

    :param series: Series to read.
    :param date: Date to resolve.
    :param before_first: Policy override; defaults to the run's configuration.
    :returns: Value at ``date``, or the last value before it.
    """
    policy = before_first or series.owner.config.lookup_before_first
    idx = find_index(series.dates, date, policy)
    return series.data[idx].value


def align(
    series: TimeSeries[Any],
    dates: Sequence[datetime],
    before_first: LookupPolicy | None = None,
) -> list[Any]:
    """Return the values of ``series`` observed at each of ``dates``.

    :param series: Series to read.
    :param dates: Date grid to evaluate.
    :param before_first: Policy override; defaults to the run's configuration.
    :returns: One value per entry of ``dates``.
    """
    policy = before_first or series.owner.config.lookup_before_first
    src_dates = series.dates
    bars = series.data
    return [bars[find_index(src_dates, d, policy)].value for d in dates]


__all__ = ["find_index", "lookup", "align"]
