"""Core type definitions for the time-series engine.

All data models use Pydantic BaseModel for automatic validation and better
error messages. Series wrappers live in :mod:`tsengine.series`; the models here
are the plain values they carry.
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class FrozenModel(BaseModel):
    """Base model with frozen (immutable) configuration."""

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Bar Types
# ---------------------------------------------------------------------------


class OHLCV(FrozenModel):
    """Price and volume of an asset over one bar period.

    :param open: Opening price.
    :param high: Highest price during the bar period.
    :param low: Lowest price during the bar period.
    :param close: Closing price.
    :param volume: Trading volume during the bar period.
    """

    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class Bar(FrozenModel, Generic[T]):
    """One (date, value) sample of a time series.

    Scalar series carry ``Bar[float]``, asset series carry ``Bar[OHLCV]``.

    :param date: Timestamp of the sample.
    :param value: Value observed at ``date``.
    """

    date: datetime
    value: T


FloatBar = Bar[float]
AssetBar = Bar[OHLCV]


# ---------------------------------------------------------------------------
# Configuration Types
# ---------------------------------------------------------------------------


LookupPolicy = Literal["clamp", "raise"]


class EngineConfig(FrozenModel):
    """Configuration for a single run of the engine.

    :param max_workers: Worker threads computing series; 0 evaluates lazily on
        the thread that first reads the data.
    :param var_resolution: Target size of the return distribution used by
        value-at-risk.
    :param lookup_before_first: What the date accessor does for dates before
        the first sample: ``"clamp"`` to the first value or ``"raise"``.
    :param log_level: Logging level.
    """

    max_workers: int = Field(default=4, ge=0)
    var_resolution: int = Field(default=1000, ge=2)
    lookup_before_first: LookupPolicy = "clamp"
    log_level: str = "INFO"


__all__ = [
    "FrozenModel",
    "OHLCV",
    "Bar",
    "FloatBar",
    "AssetBar",
    "LookupPolicy",
    "EngineConfig",
]
