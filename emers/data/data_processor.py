"""
Data sanitizing utilities for the market event analysis system.
Produces a new, analysis-ready PriceSeries; the input series is never modified.
"""

from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from emers.data.price_series import PriceSeries
from emers.utils.logging_utils import get_logger, log_data_quality_issue
from emers.utils.numerics import mean, stddev, zscore
from emers.utils.validation_utils import validate_price_series

logger = get_logger("data_processor")

PRICE_COLUMNS = ["open", "high", "low", "close", "adj_close"]


class DataSanitizer:
    """
    Cleans raw daily bars before analysis.

    Features:
    - Imputes zero or missing prices by forward then backward fill
    - Repairs OHLC inconsistencies by widening high/low to contain open/close
    - Optionally drops bars whose return z-score exceeds a threshold
    - Reports per-run cleaning statistics and a data quality score
    """

    def __init__(self, outlier_std_threshold: float = 3.0, remove_outliers: bool = False):
        """
        Initialize DataSanitizer.

        Args:
            outlier_std_threshold: Absolute return z-score above which a bar is an outlier
            remove_outliers: Whether outlier bars are dropped from the output
        """
        self.outlier_std_threshold = outlier_std_threshold
        self.remove_outliers = remove_outliers
        self.cleaning_stats: Dict[str, Dict[str, Any]] = {}

    def sanitize(self, series: PriceSeries) -> Tuple[PriceSeries, Dict[str, Any]]:
        """
        Return a cleaned copy of ``series`` together with cleaning statistics.

        Args:
            series: Raw price series

        Returns:
            Tuple of (sanitized_series, cleaning_statistics)
        """
        logger.info(f"Starting data sanitizing for {series.symbol}")
        stats = {
            "symbol": series.symbol,
            "original_rows": len(series),
            "values_imputed": 0,
            "ohlc_repairs": 0,
            "outliers_removed": 0,
            "final_rows": len(series),
            "data_quality_score": 1.0,
        }

        if len(series) == 0:
            logger.warning(f"Empty series provided for {series.symbol}")
            stats["data_quality_score"] = 0.0
            return series, stats

        frame = series.to_dataframe()

        stats["values_imputed"] = self._impute_missing(frame)
        stats["ohlc_repairs"] = self._fix_data_inconsistencies(frame)

        if self.remove_outliers:
            frame, removed = self._drop_return_outliers(frame)
            stats["outliers_removed"] = removed

        stats["final_rows"] = len(frame)
        stats["data_quality_score"] = self._calculate_data_quality_score(
            stats["original_rows"], stats["final_rows"],
            stats["values_imputed"], stats["ohlc_repairs"]
        )

        cleaned = PriceSeries.from_dataframe(series.symbol, frame)
        is_valid, issues = validate_price_series(cleaned)
        if not is_valid:
            log_data_quality_issue(series.symbol, "residual_issues", {"issues": issues})

        self.cleaning_stats[series.symbol] = stats
        logger.info(f"Data sanitizing completed for {series.symbol}: "
                    f"{stats['final_rows']}/{stats['original_rows']} rows retained, "
                    f"quality score: {stats['data_quality_score']:.2f}")
        return cleaned, stats

    def _impute_missing(self, frame: pd.DataFrame) -> int:
        """Replace zero or NaN prices in place; NaN volume becomes zero."""
        prices = frame[PRICE_COLUMNS].replace(0.0, np.nan)
        imputed = int(prices.isna().sum().sum())
        if imputed:
            frame[PRICE_COLUMNS] = prices.ffill().bfill().fillna(0.0)
        frame["volume"] = frame["volume"].fillna(0.0)
        return imputed

    def _fix_data_inconsistencies(self, frame: pd.DataFrame) -> int:
        """Widen high/low in place so that low <= min(open, close) <= max(open, close) <= high."""
        body_high = frame[["open", "close"]].max(axis=1)
        body_low = frame[["open", "close"]].min(axis=1)
        bad_high = frame["high"] < body_high
        bad_low = frame["low"] > body_low
        frame.loc[bad_high, "high"] = body_high[bad_high]
        frame.loc[bad_low, "low"] = body_low[bad_low]
        return int(bad_high.sum() + bad_low.sum())

    def _drop_return_outliers(self, frame: pd.DataFrame) -> Tuple[pd.DataFrame, int]:
        """Drop bars whose close-to-close return lies beyond the z-score threshold."""
        close = frame["close"].to_numpy(dtype=float)
        if close.size < 3:
            return frame, 0

        returns = np.diff(close) / np.where(close[:-1] == 0, np.nan, close[:-1])
        returns = np.nan_to_num(returns)
        mu, sigma = mean(returns), stddev(returns)
        outliers = [i + 1 for i, r in enumerate(returns)
                    if abs(zscore(r, mu, sigma)) > self.outlier_std_threshold]
        if not outliers:
            return frame, 0

        logger.info(f"Removing {len(outliers)} outlier bars")
        return frame.drop(frame.index[outliers]).reset_index(drop=True), len(outliers)

    @staticmethod
    def _calculate_data_quality_score(original_rows: int, final_rows: int,
                                      imputed: int, repairs: int) -> float:
        """Score in [0, 1] penalising dropped rows, imputed values and repairs."""
        if original_rows == 0:
            return 0.0
        retention = final_rows / original_rows
        cell_count = original_rows * len(PRICE_COLUMNS)
        imputation_penalty = min(1.0, imputed / cell_count)
        repair_penalty = min(1.0, repairs / original_rows)
        score = retention * (1.0 - 0.5 * imputation_penalty) * (1.0 - 0.5 * repair_penalty)
        return float(max(0.0, min(1.0, score)))
