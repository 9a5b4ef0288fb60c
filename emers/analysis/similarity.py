"""
Similarity primitives between numeric sequences and a nearest-window search over closes.
"""

import logging
import math
from dataclasses import dataclass
from typing import List

import numpy as np

from emers.data.price_series import PriceSeries
from emers.utils.numerics import ArrayLike

logger = logging.getLogger(__name__)


def euclidean_distance(x: ArrayLike, y: ArrayLike) -> float:
    """Euclidean distance over the common prefix of ``x`` and ``y``; 0.0 when either is empty."""
    a, b = np.asarray(x, dtype=float), np.asarray(y, dtype=float)
    n = min(a.size, b.size)
    if n == 0:
        return 0.0
    return float(math.sqrt(((a[:n] - b[:n]) ** 2).sum()))


def pearson_correlation(x: ArrayLike, y: ArrayLike) -> float:
    """
    Pearson correlation over the common prefix.

    Returns 0.0 when fewer than two points overlap or either variance is not positive.
    """
    a, b = np.asarray(x, dtype=float), np.asarray(y, dtype=float)
    n = min(a.size, b.size)
    if n < 2:
        return 0.0
    a, b = a[:n], b[:n]
    da, db = a - a.mean(), b - b.mean()
    var_a, var_b = (da * da).sum(), (db * db).sum()
    if var_a <= 0 or var_b <= 0:
        return 0.0
    return float((da * db).sum() / math.sqrt(var_a * var_b))


def dtw_distance(x: ArrayLike, y: ArrayLike) -> float:
    """
    Dynamic time warping distance with absolute-difference cost.

    ``D[i, j] = |x[i-1] - y[j-1]| + min(D[i-1, j], D[i, j-1], D[i-1, j-1])`` with
    ``D[0, 0] = 0`` and the remaining borders infinite. Two empty inputs give 0.0;
    one empty input gives infinity.
    """
    a, b = np.asarray(x, dtype=float), np.asarray(y, dtype=float)
    n, m = a.size, b.size
    cost = np.full((n + 1, m + 1), np.inf)
    cost[0, 0] = 0.0
    for i in range(1, n + 1):
        for j in range(1, m + 1):
            cost[i, j] = abs(a[i - 1] - b[j - 1]) + min(cost[i - 1, j], cost[i, j - 1],
                                                        cost[i - 1, j - 1])
    return float(cost[n, m])


def _normalize(window: np.ndarray) -> np.ndarray:
    return window / window[0] - 1.0 if window[0] != 0 else window * 0.0


@dataclass
class SimilarWindow:
    start_index: int
    correlation: float
    distance: float
    subsequent_return: float


def find_similar_windows(series: PriceSeries, window: int = 20, horizon: int = 5,
                         top_n: int = 5) -> List[SimilarWindow]:
    """
    Compare the latest ``window`` closes with every earlier window.

    Windows are rebased to their first close. Candidates are ranked by Pearson
    correlation; each carries the return realised over the ``horizon`` bars that
    followed it. Only windows whose aftermath ends before the latest window are used.
    """
    close = series.close
    n = close.size
    if window < 2 or n < 2 * window + horizon:
        return []

    target = _normalize(close[n - window:])
    matches = []
    for start in range(0, n - 2 * window - horizon + 1):
        candidate = _normalize(close[start:start + window])
        end = start + window - 1
        after = close[end + horizon]
        matches.append(SimilarWindow(
            start_index=start,
            correlation=pearson_correlation(candidate, target),
            distance=euclidean_distance(candidate, target),
            subsequent_return=float((after - close[end]) / close[end]) if close[end] else 0.0,
        ))

    matches.sort(key=lambda m: m.correlation, reverse=True)
    logger.debug(f"Compared {len(matches)} windows for {series.symbol}")
    return matches[:top_n]
