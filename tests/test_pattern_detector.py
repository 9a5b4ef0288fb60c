"""
Unit tests for pattern and crossover detection.
"""

import numpy as np
import pytest

from emers.analysis.pattern_detector import PatternDetector, PatternType
from emers.config.settings import PatternConfig
from emers.data.price_series import PriceSeries
from emers.interfaces.trading_interfaces import SignalDirection


def piecewise(knots, n):
    """Closes interpolated linearly between ``{index: price}`` knots."""
    xs = sorted(knots)
    return PriceSeries.from_closes("TEST", np.interp(np.arange(n), xs, [knots[x] for x in xs]))


class TestPricePatterns:

    @pytest.fixture
    def detector(self):
        return PatternDetector(PatternConfig())

    def test_double_bottom(self, detector):
        series = piecewise({0: 105.0, 10: 100.0, 22: 107.0, 35: 100.5, 59: 110.0}, 60)

        patterns = detector.detect_price_patterns(series)

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.pattern_type == PatternType.DOUBLE_BOTTOM
        assert pattern.start_index == 5
        assert pattern.end_index == 40
        assert pattern.expected_move > 0
        assert pattern.confidence == pytest.approx(0.7)

    def test_double_top(self, detector):
        series = piecewise({0: 95.0, 10: 100.0, 22: 93.0, 35: 99.5, 59: 90.0}, 60)

        patterns = detector.detect_price_patterns(series)

        assert [p.pattern_type for p in patterns] == [PatternType.DOUBLE_TOP]
        assert patterns[0].expected_move < 0

    def test_shallow_dip_is_not_a_double_bottom(self, detector):
        series = piecewise({0: 105.0, 10: 100.0, 22: 101.0, 35: 100.5, 59: 110.0}, 60)
        assert detector.detect_price_patterns(series) == []

    def test_close_second_trough_keeps_first_anchor(self, detector):
        series = piecewise({0: 110.0, 10: 100.0, 12: 106.0, 14: 104.0, 16: 107.0,
                            30: 107.0, 35: 100.0, 40: 107.0, 59: 107.0}, 60)

        patterns = detector.detect_price_patterns(series)

        assert [p.pattern_type for p in patterns] == [PatternType.DOUBLE_BOTTOM]
        assert patterns[0].start_index == 5
        assert patterns[0].end_index == 40
        assert patterns[0].expected_move == pytest.approx(0.07)

    def test_troughs_exactly_five_percent_apart_are_not_similar(self, detector):
        series = piecewise({0: 110.0, 10: 100.0, 22: 112.0, 35: 105.0, 59: 115.0}, 60)
        assert detector.detect_price_patterns(series) == []

    def test_head_and_shoulders(self, detector):
        series = piecewise({0: 100.0, 10: 110.0, 17: 102.0, 27: 120.0, 37: 102.5, 47: 111.0, 59: 95.0}, 60)

        patterns = detector.detect_price_patterns(series)
        hs = [p for p in patterns if p.pattern_type == PatternType.HEAD_AND_SHOULDERS]

        assert len(hs) == 1
        assert hs[0].start_index == 5
        assert hs[0].end_index == 52
        assert hs[0].expected_move < 0

    def test_short_series_has_no_patterns(self, detector):
        series = piecewise({0: 105.0, 10: 100.0, 20: 107.0, 30: 100.0, 38: 104.0}, 39)
        assert detector.detect_price_patterns(series) == []

    def test_max_results(self, detector):
        series = piecewise({0: 100.0, 10: 110.0, 17: 102.0, 27: 120.0, 37: 102.5, 47: 111.0, 59: 95.0}, 60)
        assert len(detector.detect_price_patterns(series, max_results=1)) == 1
        assert detector.detect_price_patterns(series, max_results=0) == []


class TestCrossoverSignals:

    @pytest.fixture
    def detector(self):
        return PatternDetector()

    def test_buy_signal(self, detector):
        closes = [10, 10, 10, 10, 10, 10, 10, 10, 10, 10, 11, 12, 13, 14, 15]
        series = PriceSeries.from_closes("TEST", [float(c) for c in closes])

        signals = detector.detect_sma_crossover_signals(series, short_period=3, long_period=10, threshold=0.5)

        assert len(signals) == 1
        signal = signals[0]
        assert signal.direction == SignalDirection.BUY
        assert signal.index == 10
        assert signal.entry_price == pytest.approx(11.0)
        assert signal.target_price == pytest.approx(11.0 * 1.05)
        assert signal.stop_loss == pytest.approx(11.0 * 0.97)
        assert 0.5 <= signal.strength <= 1.0
        assert signal.description.startswith("Buy signal")

    def test_sell_signal_after_buy_newest_first(self, detector):
        closes = [10.0] * 10 + [11, 12, 13, 14, 15] + [14, 12, 10, 8, 6]
        series = PriceSeries.from_closes("TEST", closes)

        signals = detector.detect_sma_crossover_signals(series, 3, 10)

        assert [s.direction for s in signals] == [SignalDirection.SELL, SignalDirection.BUY]
        assert signals[0].index > signals[1].index
        sell = signals[0]
        assert sell.target_price == pytest.approx(sell.entry_price * 0.95)
        assert sell.stop_loss == pytest.approx(sell.entry_price * 1.03)

    def test_threshold_filters_weak_signals(self, detector):
        closes = [10, 10, 10, 10, 10, 10, 10, 10, 10, 10, 11, 12, 13, 14, 15]
        series = PriceSeries.from_closes("TEST", [float(c) for c in closes])
        assert detector.detect_sma_crossover_signals(series, 3, 10, threshold=0.99) == []

    def test_invalid_periods(self, detector):
        series = PriceSeries.from_closes("TEST", [10.0] * 40)
        assert detector.detect_sma_crossover_signals(series, 10, 10) == []
        assert detector.detect_sma_crossover_signals(series, 0, 10) == []

    def test_too_short_series(self, detector):
        series = PriceSeries.from_closes("TEST", [10.0] * 10)
        assert detector.detect_sma_crossover_signals(series, 3, 10) == []


class TestSupportResistance:

    def test_levels_from_oscillation(self):
        closes = 100 + 10 * np.sin(np.arange(100) * 2 * np.pi / 20)
        series = PriceSeries.from_closes("TEST", closes)

        levels = PatternDetector.find_support_resistance(series)

        assert levels.support == [pytest.approx(90.0)]
        assert levels.resistance == [pytest.approx(110.0)]

    def test_short_series(self):
        series = PriceSeries.from_closes("TEST", [1.0] * 5)
        levels = PatternDetector.find_support_resistance(series)
        assert levels.support == [] and levels.resistance == []
