"""Indicator functions over time series.

Every function takes its input series first and returns a cached series (or,
for Bollinger Bands, a cached container of series) owned by the same run.
"""

from tsengine.indicators.arithmetic import add, div, maximum, minimum, mul, sub
from tsengine.indicators.basic import (absolute, align, asset_field, ema, exp,
                                       highest, log, log_return, lowest,
                                       simple_return, sma, sqrt, square)
from tsengine.indicators.risk import (BollingerBands, average_true_range,
                                      bollinger_bands, drawdown,
                                      standard_deviation, true_range,
                                      ulcer_index, value_at_risk, volatility)

__all__ = [
    # Arithmetic
    "add",
    "sub",
    "mul",
    "div",
    "minimum",
    "maximum",
    # Basic
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
    # Volatility and risk
    "standard_deviation",
    "volatility",
    "true_range",
    "average_true_range",
    "drawdown",
    "ulcer_index",
    "BollingerBands",
    "bollinger_bands",
    "value_at_risk",
]
