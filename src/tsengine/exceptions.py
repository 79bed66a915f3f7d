"""Time-series engine exception hierarchy.

All engine-specific exceptions derive from :class:`TSEngineError` so callers can
catch all engine-related errors uniformly. Numeric degeneracies (division by
zero, single-sample deviations) are not exceptions: they surface as inf/NaN.
"""

from __future__ import annotations


class TSEngineError(Exception):
    """Base class for time-series engine exceptions.

    Derived exceptions should extend this class so that callers can catch all
    engine-specific errors uniformly.
    """


class ConfigError(TSEngineError):
    """Raised when configuration files or parameters are invalid."""


class DataValidationError(TSEngineError):
    """Raised when raw bars fail validation checks.

    Named DataValidationError to avoid conflict with pydantic's ValidationError.
    """


class IndicatorParameterError(TSEngineError):
    """Raised when an indicator is requested with parameters it cannot honor."""


class LookupBoundaryError(TSEngineError):
    """Raised when a date cannot be resolved against a series."""


class CacheCycleError(TSEngineError):
    """Raised when a cache producer requests its own canonical name."""


class RunContextClosedError(TSEngineError):
    """Raised when a closed run context is asked to produce a series."""


__all__ = [
    "TSEngineError",
    "ConfigError",
    "DataValidationError",
    "IndicatorParameterError",
    "LookupBoundaryError",
    "CacheCycleError",
    "RunContextClosedError",
]
