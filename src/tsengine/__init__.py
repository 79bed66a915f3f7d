"""Lazy, memoized time-series engine for backtests."""

from tsengine.context import RunContext, open_run
from tsengine.exceptions import (CacheCycleError, ConfigError,
                                 DataValidationError, IndicatorParameterError,
                                 LookupBoundaryError, RunContextClosedError,
                                 TSEngineError)
from tsengine.lookup import align, lookup
from tsengine.series import TimeSeries, TimeSeriesAsset, TimeSeriesFloat
from tsengine.types import OHLCV, Bar, EngineConfig

__all__ = [
    "RunContext",
    "open_run",
    "TimeSeries",
    "TimeSeriesAsset",
    "TimeSeriesFloat",
    "Bar",
    "OHLCV",
    "EngineConfig",
    "lookup",
    "align",
    "TSEngineError",
    "ConfigError",
    "DataValidationError",
    "IndicatorParameterError",
    "LookupBoundaryError",
    "CacheCycleError",
    "RunContextClosedError",
]
