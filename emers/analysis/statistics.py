"""
Statistical significance of the difference between two series' daily returns.
"""

import logging
import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from emers.data.price_series import PriceSeries
from emers.utils.errors import ErrorKind, Result
from emers.utils.numerics import normal_cdf

logger = logging.getLogger(__name__)

MIN_BARS = 20
Z_95 = 1.96


@dataclass
class SignificanceResult:
    mean_difference: float
    t_statistic: float
    p_value: float
    effect_size: float  # Cohen's d
    confidence_interval: Tuple[float, float]
    significant_95: bool
    significant_99: bool


def compare_returns(first: PriceSeries, second: PriceSeries) -> Result[SignificanceResult]:
    """
    Welch-style comparison of mean daily returns.

    The p-value is two-sided under the normal approximation; the confidence
    interval is the 95% interval of the mean difference.

    Returns:
        Failed Result with INSUFFICIENT_DATA when either series has fewer than 20 bars
    """
    if len(first) < MIN_BARS or len(second) < MIN_BARS:
        message = (f"Significance test needs {MIN_BARS} bars per series "
                   f"({first.symbol}: {len(first)}, {second.symbol}: {len(second)})")
        logger.warning(f"{ErrorKind.INSUFFICIENT_DATA.describe()} {message}")
        return Result.failure(ErrorKind.INSUFFICIENT_DATA, message)

    a, b = first.returns(), second.returns()
    mean_a, mean_b = float(a.mean()), float(b.mean())
    var_a, var_b = float(np.var(a, ddof=1)), float(np.var(b, ddof=1))
    diff = mean_a - mean_b

    standard_error = math.sqrt(var_a / a.size + var_b / b.size)
    if standard_error > 0:
        t_stat = diff / standard_error
        p_value = 2.0 * (1.0 - normal_cdf(abs(t_stat)))
    else:
        t_stat, p_value = 0.0, 1.0

    pooled = math.sqrt((var_a + var_b) / 2.0)
    effect = diff / pooled if pooled > 0 else 0.0

    return Result.success(SignificanceResult(
        mean_difference=diff,
        t_statistic=t_stat,
        p_value=p_value,
        effect_size=effect,
        confidence_interval=(diff - Z_95 * standard_error, diff + Z_95 * standard_error),
        significant_95=p_value < 0.05,
        significant_99=p_value < 0.01,
    ))
