"""
Chart pattern and signal detection.
Double top/bottom, head-and-shoulders, SMA crossover signals and support/resistance levels.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np

from emers.config.settings import PatternConfig
from emers.data.price_series import PriceSeries
from emers.data.technical_indicators import TechnicalIndicators
from emers.interfaces.trading_interfaces import SignalDirection

logger = logging.getLogger(__name__)

EXTREMUM_NEIGHBOURS = 2
SCAN_MARGIN = 5
MIN_BARS_DOUBLE = 40
MIN_BARS_HEAD_SHOULDERS = 50


class PatternType(Enum):
    DOUBLE_TOP = "Double Top"
    DOUBLE_BOTTOM = "Double Bottom"
    HEAD_AND_SHOULDERS = "Head and Shoulders"
    SEASONAL_MONTH = "Seasonal Month"
    SEASONAL_WEEKDAY = "Seasonal Weekday"
    JANUARY_EFFECT = "January Effect"


@dataclass
class PricePattern:
    """A detected pattern; ``expected_move`` is a signed fraction of price."""
    pattern_type: PatternType
    start_index: int
    end_index: int
    confidence: float
    expected_move: float
    description: str = ""


@dataclass
class CrossoverSignal:
    """A moving-average crossover with its entry, target and stop."""
    index: int
    date: str
    direction: SignalDirection
    entry_price: float
    target_price: float
    stop_loss: float
    strength: float
    description: str = ""


@dataclass
class SupportResistance:
    support: List[float] = field(default_factory=list)
    resistance: List[float] = field(default_factory=list)


def _is_peak(values: np.ndarray, i: int) -> bool:
    return all(values[i] > values[i - k] and values[i] > values[i + k]
               for k in range(1, EXTREMUM_NEIGHBOURS + 1))


def _is_trough(values: np.ndarray, i: int) -> bool:
    return all(values[i] < values[i - k] and values[i] < values[i + k]
               for k in range(1, EXTREMUM_NEIGHBOURS + 1))


def _cluster_levels(levels: List[float], tolerance: float) -> List[float]:
    """Merge levels lying within ``tolerance`` (fraction) of a cluster's mean."""
    clusters: List[List[float]] = []
    for level in sorted(levels):
        if clusters:
            centre = sum(clusters[-1]) / len(clusters[-1])
            if centre > 0 and abs(level - centre) / centre <= tolerance:
                clusters[-1].append(level)
                continue
        clusters.append([level])
    return [sum(c) / len(c) for c in clusters]


class PatternDetector:
    """
    Detects reversal patterns and crossover signals on closing prices.

    Features:
    - Double top / double bottom with peak similarity and trough depth checks
    - Head-and-shoulders with shoulder and neckline similarity checks
    - SMA crossover signals with fixed target and stop distances
    - Support and resistance levels from local extrema
    """

    def __init__(self, config: Optional[PatternConfig] = None):
        self.config = config or PatternConfig()

    def _scan_range(self, n: int):
        scan_start = max(0, n - self.config.lookback_bars)
        return range(scan_start + SCAN_MARGIN, n - SCAN_MARGIN)

    def detect_price_patterns(self, series: PriceSeries,
                              max_results: Optional[int] = None) -> List[PricePattern]:
        """
        Scan the most recent bars for double tops, double bottoms and head-and-shoulders.

        Args:
            series: Price series
            max_results: Maximum number of patterns (default: configured max_results)

        Returns:
            Detected patterns; empty when the series is too short
        """
        max_results = self.config.max_results if max_results is None else max_results
        n = len(series)
        if n < MIN_BARS_DOUBLE or max_results <= 0:
            if n < MIN_BARS_DOUBLE:
                logger.debug(f"Pattern scan skipped for {series.symbol}: {n} bars")
            return []

        close = series.close
        patterns = self._double_patterns(close, bearish=True)
        patterns += self._double_patterns(close, bearish=False)
        if n >= MIN_BARS_HEAD_SHOULDERS:
            patterns += self._head_and_shoulders(close)

        if patterns:
            logger.info(f"Detected {len(patterns)} price patterns for {series.symbol}")
        return patterns[:max_results]

    def _double_patterns(self, close: np.ndarray, bearish: bool) -> List[PricePattern]:
        """Double tops (bearish) or double bottoms over the scan window."""
        cfg = self.config
        n = close.size
        is_extremum = _is_peak if bearish else _is_trough
        patterns = []
        first: Optional[int] = None

        for i in self._scan_range(n):
            if not is_extremum(close, i):
                continue
            if first is None:
                first = i
                continue

            if i - first < cfg.min_peak_separation:
                continue

            if abs(close[i] - close[first]) / close[first] < cfg.peak_similarity:
                between = close[first + 1:i]
                if bearish:
                    trough = between.min()
                    depth = (close[first] - trough) / close[first]
                    height = close[first] - trough
                else:
                    peak = between.max()
                    depth = (peak - close[first]) / close[first]
                    height = peak - close[first]

                if depth > cfg.min_trough_depth:
                    pattern_type = PatternType.DOUBLE_TOP if bearish else PatternType.DOUBLE_BOTTOM
                    move = height / close[i]
                    patterns.append(PricePattern(
                        pattern_type=pattern_type,
                        start_index=max(0, first - SCAN_MARGIN),
                        end_index=min(n - 1, i + SCAN_MARGIN),
                        confidence=0.7,
                        expected_move=-move if bearish else move,
                        description=(f"{pattern_type.value} pattern detected - "
                                     f"{'bearish' if bearish else 'bullish'} reversal pattern"),
                    ))
                    first = None
                    continue
            # a distant second extremum that does not confirm becomes the new anchor
            first = i

        return patterns

    def _head_and_shoulders(self, close: np.ndarray) -> List[PricePattern]:
        """Head-and-shoulders over consecutive peaks in the scan window."""
        cfg = self.config
        n = close.size
        peaks = [i for i in self._scan_range(n) if _is_peak(close, i)]
        patterns = []

        for left, head, right in zip(peaks, peaks[1:], peaks[2:]):
            if head - left < SCAN_MARGIN or right - head < SCAN_MARGIN:
                continue
            if not (close[head] > close[left] and close[head] > close[right]):
                continue
            if abs(close[left] - close[right]) / close[left] > cfg.shoulder_similarity:
                continue

            left_trough = close[left + 1:head].min()
            right_trough = close[head + 1:right].min()
            if abs(left_trough - right_trough) / left_trough > cfg.neckline_similarity:
                continue

            neckline = (left_trough + right_trough) / 2.0
            patterns.append(PricePattern(
                pattern_type=PatternType.HEAD_AND_SHOULDERS,
                start_index=max(0, left - SCAN_MARGIN),
                end_index=min(n - 1, right + SCAN_MARGIN),
                confidence=0.8,
                expected_move=-(close[head] - neckline) / close[right],
                description="Head and Shoulders pattern detected - bearish reversal pattern",
            ))

        return patterns

    def detect_sma_crossover_signals(self, series: PriceSeries, short_period: int = 10,
                                     long_period: int = 30, max_results: Optional[int] = None,
                                     threshold: float = 0.5) -> List[CrossoverSignal]:
        """
        Scan from the latest bar backwards for SMA crossovers.

        A BUY is emitted where the short SMA moves from at or below the long SMA to
        above it; a SELL on the reverse. Strength is ``min(1, 0.5 + 10 * gap / long)``
        and signals weaker than ``threshold`` are dropped.

        Returns:
            Signals ordered newest first
        """
        cfg = self.config
        max_results = cfg.max_results if max_results is None else max_results
        if short_period <= 0 or long_period <= 0 or short_period >= long_period:
            logger.error(f"Invalid SMA crossover periods: {short_period}/{long_period}")
            return []
        if len(series) < long_period + 1:
            return []

        short_sma = TechnicalIndicators.calculate_sma(series, short_period).values.to_numpy()
        long_sma = TechnicalIndicators.calculate_sma(series, long_period).values.to_numpy()
        close = series.close
        signals: List[CrossoverSignal] = []

        for t in range(len(series) - 1, long_period - 1, -1):
            if len(signals) >= max_results:
                break
            prev_s, prev_l = short_sma[t - 1], long_sma[t - 1]
            cur_s, cur_l = short_sma[t], long_sma[t]

            if prev_s <= prev_l and cur_s > cur_l:
                direction = SignalDirection.BUY
            elif prev_s >= prev_l and cur_s < cur_l:
                direction = SignalDirection.SELL
            else:
                continue

            strength = min(1.0, 0.5 + 10.0 * abs(cur_s - cur_l) / cur_l) if cur_l > 0 else 0.5
            if strength < threshold:
                continue

            entry = float(close[t])
            if direction == SignalDirection.BUY:
                target, stop = entry * (1 + cfg.crossover_target), entry * (1 - cfg.crossover_stop)
                description = f"Buy signal: {short_period}-day SMA crossed above {long_period}-day SMA"
            else:
                target, stop = entry * (1 - cfg.crossover_target), entry * (1 + cfg.crossover_stop)
                description = f"Sell signal: {short_period}-day SMA crossed below {long_period}-day SMA"

            signals.append(CrossoverSignal(
                index=t,
                date=series.dates[t],
                direction=direction,
                entry_price=entry,
                target_price=target,
                stop_loss=stop,
                strength=strength,
                description=description,
            ))

        return signals

    @staticmethod
    def find_support_resistance(series: PriceSeries, window: int = 5,
                                tolerance: float = 0.01) -> SupportResistance:
        """
        Support from local minima of lows and resistance from local maxima of highs.

        A bar is a local extremum when it is the first occurrence of the extreme value
        within ``window`` bars on either side. Nearby levels are merged.
        """
        n = len(series)
        if window <= 0 or n < 2 * window + 1:
            return SupportResistance()

        lows, highs = series.low, series.high
        support, resistance = [], []
        for i in range(window, n - window):
            low_window = lows[i - window:i + window + 1]
            high_window = highs[i - window:i + window + 1]
            if int(np.argmin(low_window)) == window:
                support.append(float(lows[i]))
            if int(np.argmax(high_window)) == window:
                resistance.append(float(highs[i]))

        return SupportResistance(
            support=_cluster_levels(support, tolerance),
            resistance=_cluster_levels(resistance, tolerance),
        )
