"""Shared fixtures for engine tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Sequence

import pytest
from loguru import logger

from tsengine import EngineConfig, RunContext, TimeSeriesAsset, TimeSeriesFloat
from tsengine.types import OHLCV

BASE_DATE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_dates(num: int, start: datetime = BASE_DATE, step: timedelta = timedelta(days=1)) -> list[datetime]:
    """Consecutive dates for synthetic series."""
    return [start + i * step for i in range(num)]


@pytest.fixture(autouse=True)
def silence_logger() -> Iterator[None]:
    logger.remove()
    logger.add(lambda msg: None)
    yield


@pytest.fixture(params=[0, 4], ids=["lazy", "pooled"])
def ctx(request: pytest.FixtureRequest) -> Iterator[RunContext]:
    """Run context, once evaluating lazily and once with a worker pool."""
    context = RunContext("test", config=EngineConfig(max_workers=request.param))
    yield context
    context.close()


@pytest.fixture
def make_series(ctx: RunContext) -> Callable[..., TimeSeriesFloat]:
    """Factory registering a float series on consecutive dates."""

    def factory(
        name: str,
        values: Sequence[float],
        dates: Sequence[datetime] | None = None,
    ) -> TimeSeriesFloat:
        dates = dates if dates is not None else make_dates(len(values))
        return ctx.series(name, list(zip(dates, values)))

    return factory


@pytest.fixture
def make_asset(ctx: RunContext) -> Callable[..., TimeSeriesAsset]:
    """Factory registering an asset whose bars straddle the given closes."""

    def factory(
        name: str,
        closes: Sequence[float],
        spread: float = 0.01,
        dates: Sequence[datetime] | None = None,
    ) -> TimeSeriesAsset:
        dates = dates if dates is not None else make_dates(len(closes))
        bars = [
            (
                date,
                OHLCV(
                    open=close,
                    high=close * (1.0 + spread),
                    low=close * (1.0 - spread),
                    close=close,
                    volume=1000.0,
                ),
            )
            for date, close in zip(dates, closes)
        ]
        return ctx.asset(name, bars)

    return factory


@pytest.fixture
def date_grid() -> Callable[..., list[datetime]]:
    """The ``make_dates`` helper, for tests building their own grids."""
    return make_dates
