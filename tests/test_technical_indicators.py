"""
Unit tests for technical indicators module.
Tests SMA, EMA, RSI, MACD, Bollinger Bands and the oscillators with known values.
"""

import unittest
import numpy as np
import pandas as pd

from emers.config.settings import IndicatorConfig
from emers.data.price_series import PriceSeries
from emers.data.technical_indicators import EventAdjustedIndicators, TechnicalIndicators, event_factor


def make_series(n=100, symbol="TEST"):
    """Predictable OHLCV data with a gentle uptrend and a 10-bar cycle."""
    dates = pd.bdate_range(start="2023-01-02", periods=n).strftime("%Y-%m-%d")
    close = np.array([100 + (i % 10) - 5 + i * 0.1 for i in range(n)])
    return PriceSeries(symbol, list(dates), close + 1, close + 2, close - 1, close,
                       [1000 + i * 10 for i in range(n)])


class TestTechnicalIndicators(unittest.TestCase):
    """Test cases for TechnicalIndicators class."""

    def setUp(self):
        self.series = make_series()
        self.linear = PriceSeries.from_closes("LIN", [float(i) for i in range(1, 31)])
        self.flat = PriceSeries.from_closes("FLAT", [50.0] * 40)

    def test_sma_known_values(self):
        sma = TechnicalIndicators.calculate_sma(self.linear, period=5)

        self.assertEqual(len(sma), len(self.linear))
        self.assertEqual(sma.first_valid, 4)
        self.assertTrue(sma.values.iloc[:4].isna().all())
        self.assertAlmostEqual(sma.at(4), 3.0)
        self.assertAlmostEqual(sma.latest(), 28.0)
        self.assertIsNone(sma.at(3))

    def test_sma_matches_pandas_rolling_mean(self):
        sma = TechnicalIndicators.calculate_sma(self.series, period=20)
        expected = pd.Series(self.series.close).rolling(20).mean()

        np.testing.assert_allclose(sma.valid().values, expected.iloc[19:].values, rtol=1e-9)

    def test_ema_seeded_with_first_window_sma(self):
        ema = TechnicalIndicators.calculate_ema(self.linear, period=5)

        self.assertAlmostEqual(ema.at(4), 3.0)
        alpha = 2.0 / 6
        self.assertAlmostEqual(ema.at(5), alpha * 6.0 + (1 - alpha) * 3.0)

    def test_rsi_range(self):
        rsi = TechnicalIndicators.calculate_rsi(self.series, period=14)

        self.assertEqual(rsi.first_valid, 14)
        self.assertTrue(rsi.values.iloc[:14].isna().all())
        valid = rsi.valid()
        self.assertTrue((valid >= 0).all())
        self.assertTrue((valid <= 100).all())

    def test_rsi_of_rising_series_is_100(self):
        rsi = TechnicalIndicators.calculate_rsi(self.linear, period=14)
        self.assertAlmostEqual(rsi.latest(), 100.0)

    def test_macd_histogram_is_macd_minus_signal(self):
        macd, signal, hist = TechnicalIndicators.calculate_macd(self.series, 12, 26, 9)

        self.assertEqual(signal.first_valid, 26 + 9 - 2)
        for i in range(signal.first_valid, len(self.series)):
            self.assertAlmostEqual(hist.at(i), macd.at(i) - signal.at(i))

    def test_macd_rejects_fast_not_below_slow(self):
        macd, signal, hist = TechnicalIndicators.calculate_macd(self.series, 26, 12, 9)
        self.assertTrue(macd.empty and signal.empty and hist.empty)

    def test_bollinger_band_ordering(self):
        upper, middle, lower = TechnicalIndicators.calculate_bollinger_bands(self.series, 20, 2.0)

        for i in range(19, len(self.series)):
            self.assertGreaterEqual(upper.at(i), middle.at(i))
            self.assertGreaterEqual(middle.at(i), lower.at(i))

    def test_constant_prices(self):
        upper, middle, lower = TechnicalIndicators.calculate_bollinger_bands(self.flat, 20, 2.0)
        k, d = TechnicalIndicators.calculate_stochastic(self.flat, 14, 3)
        atr = TechnicalIndicators.calculate_atr(self.flat, 14)

        self.assertAlmostEqual(upper.latest(), 50.0)
        self.assertAlmostEqual(lower.latest(), 50.0)
        self.assertAlmostEqual(middle.latest(), 50.0)
        self.assertAlmostEqual(k.latest(), 50.0)
        self.assertAlmostEqual(d.latest(), 50.0)
        self.assertAlmostEqual(atr.latest(), 0.0)

    def test_oscillator_ranges(self):
        k, d = TechnicalIndicators.calculate_stochastic(self.series)
        mfi = TechnicalIndicators.calculate_mfi(self.series)
        adx = TechnicalIndicators.calculate_adx(self.series)

        for line in (k, d, mfi, adx):
            valid = line.valid().dropna()
            self.assertFalse(valid.empty, line.kind)
            self.assertTrue((valid >= 0).all(), line.kind)
            self.assertTrue((valid <= 100).all(), line.kind)

    def test_atr_non_negative(self):
        atr = TechnicalIndicators.calculate_atr(self.series)
        self.assertTrue((atr.valid() >= 0).all())

    def test_psar_defined_from_second_bar(self):
        psar = TechnicalIndicators.calculate_psar(self.series)
        self.assertEqual(psar.first_valid, 1)
        self.assertFalse(psar.valid().isna().any())

    def test_insufficient_data_yields_empty_output(self):
        short = PriceSeries.from_closes("SHORT", [float(x) for x in range(10, 25)])
        self.assertEqual(len(short), 15)

        sma = TechnicalIndicators.calculate_sma(short, period=20)
        upper, middle, lower = TechnicalIndicators.calculate_bollinger_bands(short, period=20)

        self.assertTrue(sma.empty)
        self.assertTrue(upper.empty and middle.empty and lower.empty)
        self.assertIsNone(sma.latest())

    def test_invalid_period_yields_empty_output(self):
        self.assertTrue(TechnicalIndicators.calculate_sma(self.series, period=0).empty)
        self.assertTrue(TechnicalIndicators.calculate_rsi(self.series, period=-3).empty)
        self.assertTrue(TechnicalIndicators.calculate_sma(None, period=5).empty)

    def test_calculation_is_idempotent(self):
        first = TechnicalIndicators.calculate_rsi(self.series)
        second = TechnicalIndicators.calculate_rsi(self.series)
        pd.testing.assert_series_equal(first.values, second.values)

    def test_input_is_not_modified(self):
        before = self.series.close.copy()
        TechnicalIndicators.calculate_all_indicators(self.series)
        np.testing.assert_array_equal(before, self.series.close)

    def test_calculate_all_indicators_columns(self):
        frame = TechnicalIndicators.calculate_all_indicators(self.series, IndicatorConfig())

        self.assertEqual(len(frame), len(self.series))
        for column in ("sma", "ema", "rsi", "macd", "macd_signal", "macd_hist", "bb_upper",
                       "bb_middle", "bb_lower", "atr", "adx", "stoch_k", "stoch_d", "mfi", "psar"):
            self.assertIn(column, frame.columns)

    def test_calculate_all_indicators_skips_uncomputable(self):
        frame = TechnicalIndicators.calculate_all_indicators(PriceSeries.from_closes("S", [1.0, 2.0, 3.0]))
        self.assertNotIn("sma", frame.columns)
        self.assertIn("psar", frame.columns)


class TestEventAdjustedIndicators(unittest.TestCase):

    def setUp(self):
        self.series = make_series()

    def test_event_factor_is_clamped(self):
        self.assertAlmostEqual(event_factor(0.5, 80), 0.4)
        self.assertEqual(event_factor(1.0, 500), 1.0)
        self.assertEqual(event_factor(-1.0, 500), -1.0)

    def test_event_adx_scaled_by_absolute_factor(self):
        base = TechnicalIndicators.calculate_adx(self.series)
        adjusted = EventAdjustedIndicators.calculate_event_adx(self.series, -0.5, 80)

        i = len(self.series) - 1
        self.assertAlmostEqual(adjusted.at(i), base.at(i) * 1.08)
        self.assertEqual(adjusted.kind, "EVENT_ADX")

    def test_event_stochastic_clamped(self):
        k, d = EventAdjustedIndicators.calculate_event_stochastic(self.series, 1.0, 100)
        valid = k.valid().dropna()
        self.assertTrue((valid <= 100).all())
        self.assertTrue((valid >= 0).all())

    def test_event_psar_scaled(self):
        base = TechnicalIndicators.calculate_psar(self.series)
        adjusted = EventAdjustedIndicators.calculate_event_psar(self.series, 1.0, 50)
        self.assertAlmostEqual(adjusted.latest(), base.latest() * 0.95)

    def test_event_mfi_on_insufficient_data(self):
        short = PriceSeries.from_closes("S", [1.0, 2.0, 3.0])
        self.assertTrue(EventAdjustedIndicators.calculate_event_mfi(short, 0.5, 50).empty)


if __name__ == '__main__':
    unittest.main()
