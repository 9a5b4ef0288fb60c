"""
Volatility forecasting: historical, EWMA (RiskMetrics) and GARCH(1,1).
"""

import logging
import math

import numpy as np

from emers.data.price_series import PriceSeries
from emers.utils import numerics

logger = logging.getLogger(__name__)

MIN_BARS = 20
EWMA_DECAY = 0.94
GARCH_OMEGA = 1e-6
GARCH_ALPHA = 0.1
GARCH_BETA = 0.85
GARCH_WINDOW = 30
LONG_HORIZON = 20
LONG_RUN_WEIGHT = 0.3


class VolatilityPredictor:
    """
    Forecasts return volatility over a horizon of bars.

    All forecasts are in return units scaled by sqrt(horizon) and are 0.0 when
    the series has fewer than 20 bars or the horizon is not positive.
    """

    def _log_returns(self, series: PriceSeries, horizon: int):
        if horizon <= 0 or len(series) < MIN_BARS:
            logger.warning(f"Insufficient data for volatility forecast on {series.symbol}: "
                           f"{len(series)} bars, horizon {horizon}")
            return None
        return numerics.log_returns(series.close)

    def historical(self, series: PriceSeries, horizon: int = 1) -> float:
        """Population deviation of log returns times sqrt(horizon)."""
        returns = self._log_returns(series, horizon)
        if returns is None:
            return 0.0
        return numerics.stddev(returns) * math.sqrt(horizon)

    def ewma(self, series: PriceSeries, horizon: int = 1, decay: float = EWMA_DECAY) -> float:
        returns = self._log_returns(series, horizon)
        if returns is None:
            return 0.0
        return math.sqrt(numerics.ewma_variance(returns, decay) * horizon)

    def garch(self, series: PriceSeries, horizon: int = 1) -> float:
        """
        GARCH(1,1) forecast.

        The variance starts at the sample variance of all log returns and is
        updated with ``omega + alpha * r^2 + beta * var`` over the last 30 returns.
        Horizons beyond 20 bars blend 30% of the long-run variance
        ``omega / (1 - alpha - beta)``.
        """
        returns = self._log_returns(series, horizon)
        if returns is None:
            return 0.0

        variance = float(np.var(returns))
        for r in returns[-GARCH_WINDOW:]:
            variance = GARCH_OMEGA + GARCH_ALPHA * r * r + GARCH_BETA * variance

        if horizon > LONG_HORIZON:
            long_run = GARCH_OMEGA / (1.0 - GARCH_ALPHA - GARCH_BETA)
            variance = (1.0 - LONG_RUN_WEIGHT) * variance + LONG_RUN_WEIGHT * long_run

        return math.sqrt(variance) * math.sqrt(horizon)

    def forecast_all(self, series: PriceSeries, horizon: int = 1) -> dict:
        return {
            "historical": self.historical(series, horizon),
            "ewma": self.ewma(series, horizon),
            "garch": self.garch(series, horizon),
        }
