"""Tests for volatility and risk indicators."""

import math

import numpy as np
import pytest

from conftest import make_dates
from tsengine import EngineConfig, IndicatorParameterError, RunContext
from tsengine.indicators import (average_true_range, bollinger_bands, drawdown,
                                 standard_deviation, true_range, ulcer_index,
                                 value_at_risk)
from tsengine.indicators.risk import VAR_MAX, VAR_MIN, upsampling_steps
from tsengine.types import OHLCV

# Integer-valued prices keep the windowed sums exact.
PRICES = [100.0, 102.0, 101.0, 105.0, 103.0, 99.0, 98.0, 104.0, 107.0, 106.0] * 4


def _random_walk(num: int, seed: int = 7) -> list[float]:
    rng = np.random.default_rng(seed)
    return list(100.0 * np.exp(np.cumsum(rng.normal(0.0, 0.02, num))))


def _flat_asset(ctx: RunContext, name: str, closes: list[float]):
    """Register an asset whose bars open, peak and close at one price."""
    bars = [(d, OHLCV(open=c, high=c, low=c, close=c)) for d, c in zip(make_dates(len(closes)), closes)]
    return ctx.asset(name, bars)


def _reference_value_at_risk(
    closes: list[float], days: int, percentile: float, resolution: int = 1000
) -> list[float]:
    """Value at risk computed one bar at a time with plain lists."""
    returns = [0.0] + [math.log(closes[i] / closes[i - 1]) for i in range(1, len(closes))]
    steps = math.ceil(math.log(resolution) / math.log(days))

    result = []
    for idx in range(len(returns)):
        samples = [returns[max(0, idx - s)] for s in range(days)]
        distribution = [0.0]
        for _ in range(steps):
            distribution = [d + s for d in distribution for s in samples]
        distribution = sorted(d / math.sqrt(steps) for d in distribution)

        rank = min(round(len(distribution) * (1.0 - percentile)), len(distribution) - 1)
        loss = 1.0 - math.exp(math.sqrt(1.0 / steps) * distribution[rank])
        result.append(min(VAR_MAX, max(VAR_MIN, loss)))
    return result


# ---------------------------------------------------------------------------
# Standard deviation
# ---------------------------------------------------------------------------


class TestStandardDeviation:
    """Tests for standard_deviation and volatility."""

    def test_known_values(self, make_series) -> None:
        """Windows of [1..5] with n=3 settle at a deviation of one."""
        x = make_series("X", [1.0, 2.0, 3.0, 4.0, 5.0])

        result = standard_deviation(x, 3)

        assert result.name == "X.StandardDeviation(3)"
        assert result.values[0] == 0.0
        np.testing.assert_allclose(result.values[1], math.sqrt(1.0 / 3.0))
        np.testing.assert_allclose(result.values[2:], [1.0, 1.0, 1.0])

    def test_window_of_one_is_nan(self, make_series) -> None:
        """Bessel's correction divides by zero with a single sample."""
        x = make_series("X", [1.0, 2.0, 3.0])

        assert np.isnan(x.standard_deviation(1).values).all()

    def test_flat_fractional_input_is_zero(self, make_series) -> None:
        """Rounding residue on a constant series does not turn into NaN."""
        x = make_series("X", [0.1] * 25)

        values = x.standard_deviation(20).values

        assert not np.isnan(values).any()
        np.testing.assert_allclose(values, 0.0, atol=1e-7)

    def test_volatility_is_stdev_of_log_returns(self, make_series) -> None:
        """Volatility reuses the cached log return deviation."""
        x = make_series("X", PRICES)

        result = x.volatility(5)

        assert result.name == "X.LogReturn.StandardDeviation(5)"
        assert result is x.log_return().standard_deviation(5)


# ---------------------------------------------------------------------------
# True range
# ---------------------------------------------------------------------------


class TestTrueRange:
    """Tests for true_range and average_true_range."""

    def test_true_range_uses_previous_close(self, ctx: RunContext) -> None:
        """True range spans the gap from the previous close."""
        dates = make_dates(2)
        asset = ctx.asset(
            "A",
            [
                (dates[0], OHLCV(open=10.0, high=11.0, low=9.0, close=10.0)),
                (dates[1], OHLCV(open=13.0, high=14.0, low=12.0, close=13.0)),
            ],
        )

        result = true_range(asset)

        assert result.name == "A.TrueRange"
        # Gap up: the range extends down to the previous close.
        assert list(result.values) == [2.0, 4.0]

    def test_average_true_range_is_non_negative(self, make_asset) -> None:
        """True range and its average never go below zero."""
        asset = make_asset("SPY", PRICES)

        tr = asset.true_range()
        atr = average_true_range(asset, 14)

        assert atr.name == "SPY.TrueRange.SMA(14)"
        assert (tr.values >= 0.0).all()
        assert (atr.values >= 0.0).all()
        assert len(atr) == len(PRICES)


# ---------------------------------------------------------------------------
# Drawdown
# ---------------------------------------------------------------------------


class TestDrawdown:
    """Tests for drawdown and ulcer_index."""

    def test_known_values(self, make_series) -> None:
        """Drawdown is measured from the highest value in the window."""
        x = make_series("X", [10.0, 8.0, 12.0, 9.0])

        result = drawdown(x, 3)

        assert result.name == "X.Drawdown(3)"
        np.testing.assert_allclose(result.values, [0.0, 0.2, 0.0, 0.25])

    def test_rising_series_has_no_drawdown(self, make_series) -> None:
        """A monotone rise has zero drawdown everywhere."""
        x = make_series("X", [1.0, 2.0, 3.0, 4.0])
        assert list(x.drawdown(2).values) == [0.0, 0.0, 0.0, 0.0]

    def test_drawdown_bounds(self, make_series) -> None:
        """Positive prices keep drawdown in [0, 1)."""
        x = make_series("X", PRICES)
        values = x.drawdown(5).values
        assert ((values >= 0.0) & (values < 1.0)).all()

    def test_ulcer_index(self, make_series) -> None:
        """Ulcer index is the root mean square drawdown."""
        x = make_series("X", [10.0, 8.0, 12.0, 9.0])

        result = ulcer_index(x, 3)

        assert result.name == "X.Drawdown(3).Square.SMA(3).Sqrt"
        expected = [0.0, math.sqrt(0.04 / 3), math.sqrt(0.04 / 3), math.sqrt((0.04 + 0.0625) / 3)]
        np.testing.assert_allclose(result.values, expected)


# ---------------------------------------------------------------------------
# Bollinger Bands
# ---------------------------------------------------------------------------


class TestBollingerBands:
    """Tests for bollinger_bands."""

    def test_band_ordering(self, make_series) -> None:
        """Upper band stays above the middle, lower band below."""
        x = make_series("X", PRICES)

        bands = bollinger_bands(x, 10, 2.0)

        assert (bands.upper.values >= bands.middle.values).all()
        assert (bands.middle.values >= bands.lower.values).all()

    def test_flat_input_collapses_bands(self, make_series) -> None:
        """On a constant series all three bands meet at the price."""
        x = make_series("X", [0.1] * 25)

        bands = x.bollinger_bands(20, 2.0)

        assert (bands.upper.values >= bands.middle.values).all()
        assert (bands.middle.values >= bands.lower.values).all()
        np.testing.assert_allclose(bands.upper.values, 0.1)
        np.testing.assert_allclose(bands.lower.values, 0.1)

    def test_band_width(self, make_series) -> None:
        """Each band sits the scaled deviation away from the middle."""
        x = make_series("X", PRICES)

        bands = x.bollinger_bands(5, 1.5)
        width = 1.5 * x.standard_deviation(5).values

        np.testing.assert_allclose(bands.upper.values - bands.middle.values, width)
        np.testing.assert_allclose(bands.middle.values - bands.lower.values, width)

    def test_middle_is_shared_sma(self, ctx: RunContext, make_series) -> None:
        """The middle band is the same cached series as the plain SMA."""
        x = make_series("X", PRICES)

        bands = x.bollinger_bands(20, 2.0)

        assert bands.middle is x.sma(20)
        assert x.bollinger_bands(20, 2.0) is bands
        assert "X.BollingerBands(20,2.0)" in ctx.object_cache

    def test_invalid_period(self, make_series) -> None:
        """A zero period is rejected when the bands are requested."""
        x = make_series("X", PRICES)
        with pytest.raises(IndicatorParameterError):
            x.bollinger_bands(0)


# ---------------------------------------------------------------------------
# Value at risk
# ---------------------------------------------------------------------------


class TestValueAtRisk:
    """Tests for value_at_risk."""

    def test_upsampling_steps(self) -> None:
        """Enough rounds are run for days ** steps to reach the resolution."""
        assert upsampling_steps(21, 1000) == 3
        assert upsampling_steps(2, 1000) == 10
        assert upsampling_steps(1000, 1000) == 1

    def test_two_day_values_by_hand(self) -> None:
        """With one convolution round the estimate is the worst daily loss."""
        config = EngineConfig(max_workers=0, var_resolution=2)
        with RunContext("var", config=config) as ctx:
            asset = _flat_asset(ctx, "A", [100.0, 90.0, 99.0])

            result = asset.value_at_risk(2, 0.95)

            # Returns are [0, ln 0.9, ln 1.1]; rank round(2 * 0.05) = 0 picks
            # the lower of each pair of returns.
            np.testing.assert_allclose(result.values, [VAR_MIN, 0.1, 0.1])

    def test_matches_bar_by_bar_computation(self, ctx: RunContext) -> None:
        """Vectorized values agree with a loop over plain lists."""
        closes = _random_walk(30, seed=5)
        asset = _flat_asset(ctx, "SPY", closes)

        result = value_at_risk(asset, 5, 0.95)

        np.testing.assert_allclose(result.values, _reference_value_at_risk(closes, 5, 0.95), rtol=1e-9)

    def test_name_and_bounds(self, make_asset) -> None:
        """Estimates carry the asset's dates and stay within their bounds."""
        asset = make_asset("SPY", _random_walk(60))

        result = value_at_risk(asset, 21, 0.95)

        assert result.name == "SPY.ValueAtRisk(21,0.95)"
        assert result.dates == asset.dates
        assert ((result.values >= VAR_MIN) & (result.values <= VAR_MAX)).all()

    def test_flat_prices_clamp_to_minimum(self, make_asset) -> None:
        """Without losses the estimate is clamped to the lower bound."""
        asset = make_asset("FLAT", [100.0] * 10)

        result = asset.value_at_risk(5, 0.95)

        assert list(result.values) == [VAR_MIN] * 10

    def test_higher_confidence_means_higher_risk(self, make_asset) -> None:
        """Raising the percentile never lowers the estimate."""
        asset = make_asset("SPY", _random_walk(60))

        low = asset.value_at_risk(21, 0.90).values
        high = asset.value_at_risk(21, 0.99).values

        assert (high >= low).all()
        assert (high[21:] > low[21:]).any()

    def test_deterministic_across_runs(self) -> None:
        """Lazy and pooled runs produce identical estimates."""
        closes = _random_walk(40, seed=11)
        results = []
        for workers in (0, 3):
            with RunContext("var", config=EngineConfig(max_workers=workers)) as ctx:
                asset = _flat_asset(ctx, "SPY", closes)
                results.append(asset.value_at_risk(10, 0.95).values.copy())

        np.testing.assert_array_equal(results[0], results[1])

    def test_resolution_from_config(self) -> None:
        """A coarser resolution changes the number of convolution rounds."""
        closes = _random_walk(30, seed=3)
        results = []
        for resolution in (10, 1000):
            config = EngineConfig(max_workers=0, var_resolution=resolution)
            with RunContext("var", config=config) as ctx:
                asset = ctx.asset(
                    "SPY",
                    [(d, {"open": c, "high": c, "low": c, "close": c}) for d, c in zip(make_dates(30), closes)],
                )
                results.append(asset.value_at_risk(10, 0.95).values.copy())

        assert not np.array_equal(results[0], results[1])

    @pytest.mark.parametrize(
        ("days", "percentile"),
        [(1, 0.95), (0, 0.95), (None, 0.95), (21, 0.0), (21, -0.5), (21, 1.5), (21, None), (21, "high")],
    )
    def test_invalid_parameters(self, make_asset, days, percentile) -> None:
        """Horizons below two days and percentiles outside (0, 1] are rejected."""
        asset = make_asset("SPY", [100.0, 101.0, 102.0])
        with pytest.raises(IndicatorParameterError):
            value_at_risk(asset, days, percentile)

    def test_full_confidence_is_valid(self, make_asset) -> None:
        """A percentile of exactly one uses the lowest sample."""
        asset = make_asset("SPY", _random_walk(30))
        values = asset.value_at_risk(5, 1.0).values
        assert ((values >= VAR_MIN) & (values <= VAR_MAX)).all()
