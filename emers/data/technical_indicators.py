"""
Technical indicators module for the market event analysis system.
Implements SMA, EMA, RSI, MACD, Bollinger Bands, ATR, ADX, Stochastic, MFI and
Parabolic SAR, plus event-adjusted variants driven by news sentiment and impact.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from emers.config.settings import IndicatorConfig
from emers.data.price_series import PriceSeries
from emers.utils.numerics import RATIO_FLOOR, sliding_sum, true_range, wilder_smooth

logger = logging.getLogger(__name__)


@dataclass
class IndicatorSeries:
    """
    Indicator values aligned by position with the input series.

    ``values[i]`` is NaN for ``i < first_valid``. An empty ``values`` means the
    indicator could not be computed (insufficient data or invalid parameters).
    """
    kind: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    values: pd.Series = field(default_factory=lambda: pd.Series(dtype=float))
    first_valid: int = 0

    @property
    def empty(self) -> bool:
        return len(self.values) == 0

    def __len__(self) -> int:
        return len(self.values)

    def valid(self) -> pd.Series:
        """Defined values only."""
        return self.values.iloc[self.first_valid:]

    def at(self, i: int) -> Optional[float]:
        """Value at bar ``i`` or None when undefined."""
        if i < self.first_valid or i >= len(self.values):
            return None
        value = self.values.iloc[i]
        return None if np.isnan(value) else float(value)

    def latest(self) -> Optional[float]:
        return self.at(len(self.values) - 1) if len(self.values) else None


def _empty(kind: str, **params) -> IndicatorSeries:
    return IndicatorSeries(kind=kind, parameters=params)


def _wrap(kind: str, values: np.ndarray, first_valid: int, **params) -> IndicatorSeries:
    return IndicatorSeries(kind=kind, parameters=params,
                           values=pd.Series(values, dtype=float), first_valid=first_valid)


def _check(kind: str, series: Optional[PriceSeries], required: int, **params) -> bool:
    """Shared guard: positive parameters and enough bars."""
    if series is None:
        logger.error(f"Invalid input for {kind}: series is None")
        return False
    bad = {k: v for k, v in params.items() if not v or v <= 0}
    if bad:
        logger.error(f"Invalid parameters for {kind}: {bad}")
        return False
    if len(series) < required:
        logger.warning(f"Insufficient data for {kind} calculation. "
                       f"Need at least {required} rows, got {len(series)}")
        return False
    return True


def _sma_array(values: np.ndarray, period: int, offset: int = 0) -> np.ndarray:
    """SMA of ``values[offset:]`` placed back at its original positions."""
    out = np.full(values.size, np.nan)
    sums = sliding_sum(values[offset:], period)
    if sums.size:
        out[offset:] = sums / period
    return out


def _ema_array(values: np.ndarray, period: int, offset: int = 0) -> np.ndarray:
    """EMA seeded with the SMA of the first ``period`` values starting at ``offset``."""
    out = np.full(values.size, np.nan)
    seed_idx = offset + period - 1
    if seed_idx >= values.size:
        return out
    alpha = 2.0 / (period + 1)
    ema = values[offset:seed_idx + 1].sum() / period
    out[seed_idx] = ema
    for t in range(seed_idx + 1, values.size):
        ema = alpha * values[t] + (1 - alpha) * ema
        out[t] = ema
    return out


def event_factor(sentiment: float, impact_score: float) -> float:
    """``sentiment * impact / 100`` clamped to [-1, 1]."""
    return float(np.clip(sentiment * impact_score / 100.0, -1.0, 1.0))


class TechnicalIndicators:
    """
    Class for calculating technical indicators from a PriceSeries.

    Every calculation returns an IndicatorSeries (or a tuple of them for
    multi-line indicators). Insufficient data yields empty series and a warning;
    no partial output is produced.
    """

    @staticmethod
    def calculate_sma(series: PriceSeries, period: int = 20) -> IndicatorSeries:
        """
        Calculate Simple Moving Average of closes.

        Args:
            series: Price series
            period: Window length (default: 20)

        Returns:
            IndicatorSeries with first valid index ``period - 1``
        """
        if not _check("SMA", series, period, period=period):
            return _empty("SMA", period=period)
        return _wrap("SMA", _sma_array(series.close, period), period - 1, period=period)

    @staticmethod
    def calculate_ema(series: PriceSeries, period: int = 14) -> IndicatorSeries:
        """
        Calculate Exponential Moving Average of closes.

        Seeded with the SMA of the first ``period`` closes, then
        ``ema[t] = a * close[t] + (1 - a) * ema[t-1]`` with ``a = 2 / (period + 1)``.
        """
        if not _check("EMA", series, period, period=period):
            return _empty("EMA", period=period)
        return _wrap("EMA", _ema_array(series.close, period), period - 1, period=period)

    @staticmethod
    def calculate_rsi(series: PriceSeries, period: int = 14) -> IndicatorSeries:
        """
        Calculate Relative Strength Index with Wilder smoothing.

        Args:
            series: Price series
            period: RSI period (default: 14)

        Returns:
            IndicatorSeries in [0, 100], first valid index ``period``
        """
        if not _check("RSI", series, period + 1, period=period):
            return _empty("RSI", period=period)

        close = series.close
        delta = np.diff(close)
        gains = np.where(delta > 0, delta, 0.0)
        losses = np.where(delta < 0, -delta, 0.0)

        out = np.full(close.size, np.nan)
        avg_gain = gains[:period].sum() / period
        avg_loss = losses[:period].sum() / period

        def _rsi(g: float, l: float) -> float:
            if l < RATIO_FLOOR:
                return 100.0
            return 100.0 - 100.0 / (1.0 + g / l)

        out[period] = _rsi(avg_gain, avg_loss)
        for t in range(period + 1, close.size):
            avg_gain = wilder_smooth(avg_gain, gains[t - 1], period)
            avg_loss = wilder_smooth(avg_loss, losses[t - 1], period)
            out[t] = _rsi(avg_gain, avg_loss)

        return _wrap("RSI", out, period, period=period)

    @staticmethod
    def calculate_macd(series: PriceSeries, fast: int = 12, slow: int = 26,
                       signal: int = 9) -> Tuple[IndicatorSeries, IndicatorSeries, IndicatorSeries]:
        """
        Calculate MACD line, signal line and histogram.

        Returns:
            Tuple of (macd, signal_line, histogram)
        """
        params = dict(fast=fast, slow=slow, signal=signal)
        if fast and slow and fast >= slow:
            logger.error(f"Invalid parameters for MACD: fast {fast} must be below slow {slow}")
            return _empty("MACD", **params), _empty("MACD_SIGNAL", **params), _empty("MACD_HIST", **params)
        if not _check("MACD", series, (slow or 0) + (signal or 0) - 1, **params):
            return _empty("MACD", **params), _empty("MACD_SIGNAL", **params), _empty("MACD_HIST", **params)

        close = series.close
        macd = _ema_array(close, fast) - _ema_array(close, slow)
        signal_line = _ema_array(macd, signal, offset=slow - 1)
        histogram = macd - signal_line
        signal_start = slow + signal - 2

        return (
            _wrap("MACD", macd, slow - 1, **params),
            _wrap("MACD_SIGNAL", signal_line, signal_start, **params),
            _wrap("MACD_HIST", histogram, signal_start, **params),
        )

    @staticmethod
    def calculate_bollinger_bands(series: PriceSeries, period: int = 20,
                                  std_dev: float = 2.0) -> Tuple[IndicatorSeries, IndicatorSeries, IndicatorSeries]:
        """
        Calculate Bollinger Bands with population standard deviation.

        Args:
            series: Price series
            period: Window length (default: 20)
            std_dev: Band width in standard deviations (default: 2.0)

        Returns:
            Tuple of (upper_band, middle_band, lower_band)
        """
        params = dict(period=period, std_dev=std_dev)
        if not _check("Bollinger", series, period, **params):
            return _empty("BB_UPPER", **params), _empty("BB_MIDDLE", **params), _empty("BB_LOWER", **params)

        close = series.close
        middle = _sma_array(close, period)
        sigma = np.full(close.size, np.nan)
        for t in range(period - 1, close.size):
            window = close[t - period + 1:t + 1]
            mu = window.sum() / period
            sigma[t] = np.sqrt(((window - mu) ** 2).sum() / period)

        upper = middle + std_dev * sigma
        lower = middle - std_dev * sigma
        return (
            _wrap("BB_UPPER", upper, period - 1, **params),
            _wrap("BB_MIDDLE", middle, period - 1, **params),
            _wrap("BB_LOWER", lower, period - 1, **params),
        )

    @staticmethod
    def calculate_atr(series: PriceSeries, period: int = 14) -> IndicatorSeries:
        """
        Calculate Average True Range.

        The first value is the mean true range of bars ``0..period-1``; later
        values use Wilder smoothing.
        """
        if not _check("ATR", series, period, period=period):
            return _empty("ATR", period=period)

        tr = true_range(series.high, series.low, series.close)
        out = np.full(tr.size, np.nan)
        atr = tr[:period].sum() / period
        out[period - 1] = atr
        for t in range(period, tr.size):
            atr = wilder_smooth(atr, tr[t], period)
            out[t] = atr
        return _wrap("ATR", out, period - 1, period=period)

    @staticmethod
    def calculate_adx(series: PriceSeries, period: int = 14) -> IndicatorSeries:
        """
        Calculate Average Directional Index.

        Wilder-smoothed TR, +DM and -DM from bar 1; DX from bar ``period``;
        ADX starts at bar ``2 * period - 1`` as the mean of the first ``period`` DX values.
        """
        if not _check("ADX", series, 2 * period, period=period):
            return _empty("ADX", period=period)

        high, low = series.high, series.low
        n = high.size
        tr = true_range(high, low, series.close)
        up_move = np.zeros(n)
        down_move = np.zeros(n)
        up_move[1:] = high[1:] - high[:-1]
        down_move[1:] = low[:-1] - low[1:]
        plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
        minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)

        dx = np.full(n, np.nan)
        s_tr = tr[1:period + 1].sum()
        s_plus = plus_dm[1:period + 1].sum()
        s_minus = minus_dm[1:period + 1].sum()

        for t in range(period, n):
            if t > period:
                s_tr = s_tr - s_tr / period + tr[t]
                s_plus = s_plus - s_plus / period + plus_dm[t]
                s_minus = s_minus - s_minus / period + minus_dm[t]
            plus_di = 100.0 * s_plus / s_tr if s_tr > 0 else 0.0
            minus_di = 100.0 * s_minus / s_tr if s_tr > 0 else 0.0
            di_sum = plus_di + minus_di
            dx[t] = 100.0 * abs(plus_di - minus_di) / di_sum if di_sum > 0 else 0.0

        out = np.full(n, np.nan)
        first = 2 * period - 1
        adx = dx[period:first + 1].sum() / period
        out[first] = adx
        for t in range(first + 1, n):
            adx = wilder_smooth(adx, dx[t], period)
            out[t] = adx
        return _wrap("ADX", out, first, period=period)

    @staticmethod
    def calculate_stochastic(series: PriceSeries, k_period: int = 14,
                             d_period: int = 3) -> Tuple[IndicatorSeries, IndicatorSeries]:
        """
        Calculate the Stochastic Oscillator.

        ``%K`` defaults to 50 when the high-low range of the window is below 1e-4.

        Returns:
            Tuple of (%K, %D)
        """
        params = dict(k_period=k_period, d_period=d_period)
        if not _check("Stochastic", series, (k_period or 0) + (d_period or 0) - 1, **params):
            return _empty("STOCH_K", **params), _empty("STOCH_D", **params)

        high, low, close = series.high, series.low, series.close
        k = np.full(close.size, np.nan)
        for t in range(k_period - 1, close.size):
            lowest = low[t - k_period + 1:t + 1].min()
            highest = high[t - k_period + 1:t + 1].max()
            span = highest - lowest
            if span < RATIO_FLOOR:
                k[t] = 50.0
            else:
                k[t] = min(100.0, max(0.0, 100.0 * (close[t] - lowest) / span))

        d = _sma_array(k, d_period, offset=k_period - 1)
        return (
            _wrap("STOCH_K", k, k_period - 1, **params),
            _wrap("STOCH_D", d, k_period + d_period - 2, **params),
        )

    @staticmethod
    def calculate_mfi(series: PriceSeries, period: int = 14) -> IndicatorSeries:
        """
        Calculate Money Flow Index.

        Money flow at bar t counts as positive (negative) when the typical price
        rises (falls) against bar t-1; MFI is 100 when negative flow is below 1e-4.
        """
        if not _check("MFI", series, period + 1, period=period):
            return _empty("MFI", period=period)

        tp = (series.high + series.low + series.close) / 3.0
        raw_flow = tp * series.volume
        positive = np.zeros(tp.size)
        negative = np.zeros(tp.size)
        rising = tp[1:] > tp[:-1]
        falling = tp[1:] < tp[:-1]
        positive[1:] = np.where(rising, raw_flow[1:], 0.0)
        negative[1:] = np.where(falling, raw_flow[1:], 0.0)

        out = np.full(tp.size, np.nan)
        for t in range(period, tp.size):
            pos = positive[t - period + 1:t + 1].sum()
            neg = negative[t - period + 1:t + 1].sum()
            out[t] = 100.0 if neg < RATIO_FLOOR else 100.0 - 100.0 / (1.0 + pos / neg)
        return _wrap("MFI", out, period, period=period)

    @staticmethod
    def calculate_psar(series: PriceSeries, step: float = 0.02,
                       max_step: float = 0.2) -> IndicatorSeries:
        """
        Calculate Parabolic SAR.

        Starts in an uptrend with SAR at the first low and the extreme point at the
        first high. SAR is clamped to the prior two bars' lows (highs) and the trend
        flips when price crosses it.
        """
        params = dict(step=step, max_step=max_step)
        if not _check("PSAR", series, 2, **params):
            return _empty("PSAR", **params)

        high, low = series.high, series.low
        n = high.size
        out = np.full(n, np.nan)
        uptrend = True
        af = step
        ep = high[0]
        sar = low[0]

        for t in range(1, n):
            sar = sar + af * (ep - sar)
            if uptrend:
                sar = min(sar, low[t - 1], low[t - 2] if t >= 2 else low[t - 1])
                if low[t] < sar:
                    uptrend = False
                    sar, ep, af = ep, low[t], step
                elif high[t] > ep:
                    ep = high[t]
                    af = min(af + step, max_step)
            else:
                sar = max(sar, high[t - 1], high[t - 2] if t >= 2 else high[t - 1])
                if high[t] > sar:
                    uptrend = True
                    sar, ep, af = ep, high[t], step
                elif low[t] < ep:
                    ep = low[t]
                    af = min(af + step, max_step)
            out[t] = sar

        return _wrap("PSAR", out, 1, **params)

    @classmethod
    def calculate_all_indicators(cls, series: PriceSeries,
                                 config: Optional[IndicatorConfig] = None) -> pd.DataFrame:
        """
        Calculate every indicator with the configured parameters.

        Returns:
            DataFrame indexed by bar position with one column per indicator line;
            indicators that could not be computed are absent.
        """
        config = config or IndicatorConfig()
        lines = [
            cls.calculate_sma(series, config.sma_period),
            cls.calculate_ema(series, config.ema_period),
            cls.calculate_rsi(series, config.rsi_period),
            *cls.calculate_macd(series, config.macd_fast, config.macd_slow, config.macd_signal),
            *cls.calculate_bollinger_bands(series, config.bollinger_period, config.bollinger_std),
            cls.calculate_atr(series, config.atr_period),
            cls.calculate_adx(series, config.adx_period),
            *cls.calculate_stochastic(series, config.stochastic_k, config.stochastic_d),
            cls.calculate_mfi(series, config.mfi_period),
            cls.calculate_psar(series, config.psar_step, config.psar_max),
        ]

        result = pd.DataFrame({"date": list(series.dates)})
        for line in lines:
            if not line.empty:
                result[line.kind.lower()] = line.values.values
        logger.debug(f"Calculated {len(result.columns) - 1} indicator lines for {series.symbol}")
        return result


class EventAdjustedIndicators:
    """
    Indicators perturbed by a news event factor ``f = sentiment * impact / 100``.

    ADX is scaled by ``1 + 0.2|f|``; Stochastic and MFI are shifted by ``10 f`` and
    clamped to [0, 100]; PSAR is scaled by ``1 - 0.1 f``.
    """

    @staticmethod
    def _retag(line: IndicatorSeries, values: pd.Series, factor: float) -> IndicatorSeries:
        params = dict(line.parameters, event_factor=factor)
        return IndicatorSeries(kind=f"EVENT_{line.kind}", parameters=params,
                               values=values, first_valid=line.first_valid)

    @classmethod
    def calculate_event_adx(cls, series: PriceSeries, sentiment: float, impact_score: float,
                            period: int = 14) -> IndicatorSeries:
        f = event_factor(sentiment, impact_score)
        base = TechnicalIndicators.calculate_adx(series, period)
        if base.empty:
            return cls._retag(base, base.values, f)
        return cls._retag(base, base.values * (1.0 + 0.2 * abs(f)), f)

    @classmethod
    def calculate_event_stochastic(cls, series: PriceSeries, sentiment: float, impact_score: float,
                                   k_period: int = 14,
                                   d_period: int = 3) -> Tuple[IndicatorSeries, IndicatorSeries]:
        f = event_factor(sentiment, impact_score)
        k, d = TechnicalIndicators.calculate_stochastic(series, k_period, d_period)
        if k.empty:
            return cls._retag(k, k.values, f), cls._retag(d, d.values, f)
        return (
            cls._retag(k, (k.values + 10.0 * f).clip(0.0, 100.0), f),
            cls._retag(d, (d.values + 10.0 * f).clip(0.0, 100.0), f),
        )

    @classmethod
    def calculate_event_mfi(cls, series: PriceSeries, sentiment: float, impact_score: float,
                            period: int = 14) -> IndicatorSeries:
        f = event_factor(sentiment, impact_score)
        base = TechnicalIndicators.calculate_mfi(series, period)
        if base.empty:
            return cls._retag(base, base.values, f)
        return cls._retag(base, (base.values + 10.0 * f).clip(0.0, 100.0), f)

    @classmethod
    def calculate_event_psar(cls, series: PriceSeries, sentiment: float, impact_score: float,
                             step: float = 0.02, max_step: float = 0.2) -> IndicatorSeries:
        f = event_factor(sentiment, impact_score)
        base = TechnicalIndicators.calculate_psar(series, step, max_step)
        if base.empty:
            return cls._retag(base, base.values, f)
        return cls._retag(base, base.values * (1.0 - 0.1 * f), f)
