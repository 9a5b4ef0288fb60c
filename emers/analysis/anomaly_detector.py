"""
Z-score anomaly detection over price returns and volume changes.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import numpy as np

from emers.config.settings import AnomalyConfig
from emers.data.price_series import PriceSeries
from emers.utils import numerics

logger = logging.getLogger(__name__)


class AnomalyType(Enum):
    PRICE = "price"
    VOLUME = "volume"
    COMBINED = "combined"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass
class AnomalyResult:
    """One anomalous bar with the component z-scores that flagged it."""
    index: int
    date: str
    score: float
    price_zscore: float
    volume_zscore: float
    anomaly_type: AnomalyType
    description: str = ""


def _volume_changes(volume: np.ndarray) -> np.ndarray:
    """Fractional bar-to-bar volume change, 0 where the previous volume is zero."""
    prev = volume[:-1]
    with np.errstate(divide='ignore', invalid='ignore'):
        return np.where(prev > 0, (volume[1:] - prev) / prev, 0.0)


class AnomalyDetector:
    """
    Flags bars whose return and volume change deviate from their trailing window.

    Features:
    - Per-bar absolute z-scores against the preceding window
    - Combined score sqrt(zp^2 + zv^2) with a configurable threshold
    - Classification into price, volume or combined anomalies
    - Composite anomaly score for the latest bar
    """

    def __init__(self, config: Optional[AnomalyConfig] = None):
        self.config = config or AnomalyConfig()

    def detect_anomalies(self, series: PriceSeries) -> List[AnomalyResult]:
        """
        Scan every bar that has a full trailing window of returns.

        The return and volume change of bar ``t`` are scored against the mean and
        population deviation of the ``window`` changes immediately before it.

        Returns:
            Anomalies in bar order; empty when the series is shorter than window + 2
        """
        cfg = self.config
        window = cfg.window
        n = len(series)
        if window <= 1 or n < window + 2:
            logger.debug(f"Anomaly scan skipped for {series.symbol}: {n} bars, window {window}")
            return []

        # returns[k] is the change into bar k + 1
        returns = numerics.simple_returns(series.close)
        volume_changes = _volume_changes(series.volume)
        anomalies = []

        for t in range(window + 1, n):
            past_r = returns[t - 1 - window:t - 1]
            past_v = volume_changes[t - 1 - window:t - 1]
            current_r = returns[t - 1]
            current_v = volume_changes[t - 1]

            zp = abs(numerics.zscore(current_r, numerics.mean(past_r), numerics.stddev(past_r)))
            zv = abs(numerics.zscore(current_v, numerics.mean(past_v), numerics.stddev(past_v)))
            score = math.sqrt(zp * zp + zv * zv)
            if score <= cfg.combined_threshold:
                continue

            anomaly_type = self._classify(zp, zv)
            anomalies.append(AnomalyResult(
                index=t,
                date=series.dates[t],
                score=score,
                price_zscore=zp,
                volume_zscore=zv,
                anomaly_type=anomaly_type,
                description=(f"{anomaly_type.label} anomaly: return {current_r:.2%} (z={zp:.2f}), "
                             f"volume change {current_v:.2%} (z={zv:.2f})"),
            ))

        if anomalies:
            logger.info(f"Detected {len(anomalies)} anomalies for {series.symbol}")
        return anomalies

    def _classify(self, zp: float, zv: float) -> AnomalyType:
        limit = self.config.component_threshold
        if zp > limit and zv > limit:
            return AnomalyType.COMBINED
        if zp > limit:
            return AnomalyType.PRICE
        if zv > limit:
            return AnomalyType.VOLUME
        return AnomalyType.COMBINED

    def calculate_anomaly_score(self, series: PriceSeries) -> float:
        """
        Composite score of the latest bar.

        ``0.4 * |z_return| + 0.3 * (volume_ratio - 1) + 0.3 * (true_range_ratio - 1)``,
        where the ratios compare the latest bar with the mean of the preceding
        ``score_lookback`` bars. Returns 0.0 on insufficient data.
        """
        lookback = self.config.score_lookback
        n = len(series)
        if lookback <= 1 or n < lookback + 2:
            return 0.0

        returns = numerics.simple_returns(series.close)
        past_r = returns[-lookback - 1:-1]
        z_return = numerics.zscore(returns[-1], numerics.mean(past_r), numerics.stddev(past_r))

        volume = series.volume
        avg_volume = numerics.mean(volume[-lookback - 1:-1])
        volume_ratio = volume[-1] / avg_volume if avg_volume > numerics.RATIO_FLOOR else 1.0

        tr = numerics.true_range(series.high, series.low, series.close)
        avg_tr = numerics.mean(tr[-lookback - 1:-1])
        tr_ratio = tr[-1] / avg_tr if avg_tr > numerics.RATIO_FLOOR else 1.0

        return float(0.4 * abs(z_return) + 0.3 * (volume_ratio - 1.0) + 0.3 * (tr_ratio - 1.0))
