"""
Calendar seasonality of daily returns (month of year, day of week, January effect).
"""

import calendar
import logging
from typing import List, Optional

import pandas as pd

from emers.analysis.pattern_detector import PatternType, PricePattern
from emers.data.price_series import PriceSeries

logger = logging.getLogger(__name__)

MIN_BARS = 252
MIN_BUCKET_SAMPLES = 20
MONTH_CONFIDENCE = 0.7
WEEKDAY_CONFIDENCE = 0.6
JANUARY_MULTIPLE = 1.5


class SeasonalAnalyzer:
    """
    Buckets daily returns by calendar month and weekday.

    Features:
    - Strongest positive and strongest negative bucket per dimension
    - Buckets need at least 20 samples to be reported
    - January effect check against the count-weighted mean of the other months
    """

    def __init__(self, min_bucket_samples: int = MIN_BUCKET_SAMPLES):
        self.min_bucket_samples = min_bucket_samples

    @staticmethod
    def daily_returns_frame(series: PriceSeries) -> pd.DataFrame:
        """Returns indexed by the date of the bar they end on, with month and weekday columns."""
        dates = pd.to_datetime(list(series.dates[1:]))
        frame = pd.DataFrame({"return": series.returns()}, index=dates)
        frame["month"] = frame.index.month
        frame["weekday"] = frame.index.dayofweek
        return frame

    def detect_seasonal_patterns(self, series: PriceSeries) -> List[PricePattern]:
        """
        Seasonal patterns over the whole series.

        Returns:
            Patterns with ``expected_move`` set to the bucket mean return; empty when
            the series has fewer than 252 bars
        """
        n = len(series)
        if n < MIN_BARS:
            logger.debug(f"Seasonality skipped for {series.symbol}: {n} bars")
            return []

        frame = self.daily_returns_frame(series)
        patterns = []
        patterns += self._extreme_buckets(frame, "month", PatternType.SEASONAL_MONTH,
                                          MONTH_CONFIDENCE, n, lambda m: calendar.month_name[m])
        patterns += self._extreme_buckets(frame, "weekday", PatternType.SEASONAL_WEEKDAY,
                                          WEEKDAY_CONFIDENCE, n, lambda d: calendar.day_name[d])

        january = self._january_effect(frame, n)
        if january is not None:
            patterns.append(january)

        logger.info(f"Detected {len(patterns)} seasonal patterns for {series.symbol}")
        return patterns

    def _extreme_buckets(self, frame: pd.DataFrame, column: str, pattern_type: PatternType,
                         confidence: float, n: int, namer) -> List[PricePattern]:
        stats = frame.groupby(column)["return"].agg(["mean", "count"])
        stats = stats[stats["count"] >= self.min_bucket_samples]
        if stats.empty:
            return []

        patterns = []
        best_key = stats["mean"].idxmax()
        if stats.loc[best_key, "mean"] > 0:
            mean = float(stats.loc[best_key, "mean"])
            patterns.append(PricePattern(
                pattern_type=pattern_type,
                start_index=0,
                end_index=n - 1,
                confidence=confidence,
                expected_move=mean,
                description=f"{namer(int(best_key))} is seasonally strong ({mean:.2%} average return)",
            ))

        worst_key = stats["mean"].idxmin()
        if stats.loc[worst_key, "mean"] < 0:
            mean = float(stats.loc[worst_key, "mean"])
            patterns.append(PricePattern(
                pattern_type=pattern_type,
                start_index=0,
                end_index=n - 1,
                confidence=confidence,
                expected_move=mean,
                description=f"{namer(int(worst_key))} is seasonally weak ({mean:.2%} average return)",
            ))
        return patterns

    @staticmethod
    def _january_effect(frame: pd.DataFrame, n: int) -> Optional[PricePattern]:
        is_january = frame["month"] == 1
        january, others = frame.loc[is_january, "return"], frame.loc[~is_january, "return"]
        if january.empty or others.empty:
            return None

        january_mean, other_mean = float(january.mean()), float(others.mean())
        if january_mean > 0 and january_mean > JANUARY_MULTIPLE * other_mean:
            return PricePattern(
                pattern_type=PatternType.JANUARY_EFFECT,
                start_index=0,
                end_index=n - 1,
                confidence=MONTH_CONFIDENCE,
                expected_move=january_mean - other_mean,
                description=(f"January effect: January averages {january_mean:.2%} "
                             f"vs {other_mean:.2%} for other months"),
            )
        return None
