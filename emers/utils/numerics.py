"""
Numerical primitives shared by the indicator, pattern and backtest modules.
All functions are pure; insufficient input yields 0.0 or an empty array, never an exception.
"""

import math
from typing import Sequence, Union

import numpy as np

ArrayLike = Union[Sequence[float], np.ndarray]

STDDEV_FLOOR = 1e-6
RATIO_FLOOR = 1e-4


def _as_array(x: ArrayLike) -> np.ndarray:
    return np.asarray(x, dtype=float)


def mean(x: ArrayLike) -> float:
    """Arithmetic mean; 0.0 for an empty input."""
    arr = _as_array(x)
    if arr.size == 0:
        return 0.0
    return float(arr.sum() / arr.size)


def stddev(x: ArrayLike) -> float:
    """Population standard deviation (divide by N); 0.0 for an empty input."""
    arr = _as_array(x)
    if arr.size == 0:
        return 0.0
    mu = arr.sum() / arr.size
    return float(math.sqrt(((arr - mu) ** 2).sum() / arr.size))


def maximum(x: ArrayLike) -> float:
    arr = _as_array(x)
    return float(arr.max()) if arr.size else 0.0


def minimum(x: ArrayLike) -> float:
    arr = _as_array(x)
    return float(arr.min()) if arr.size else 0.0


def sliding_sum(x: ArrayLike, window: int) -> np.ndarray:
    """
    Windowed sums using the add-new/drop-old recurrence.

    Args:
        x: Input values
        window: Window length

    Returns:
        Array aligned with ``x``; the first ``window - 1`` entries are NaN.
        Empty when ``window`` is not positive or exceeds the input length.
    """
    arr = _as_array(x)
    n = arr.size
    if window <= 0 or n < window:
        return np.array([], dtype=float)

    out = np.full(n, np.nan)
    running = float(arr[:window].sum())
    out[window - 1] = running
    for t in range(window, n):
        running += arr[t] - arr[t - window]
        out[t] = running
    return out


def true_range(high: ArrayLike, low: ArrayLike, close: ArrayLike) -> np.ndarray:
    """
    True range per bar.

    ``tr[0] = high[0] - low[0]``; afterwards the largest of the bar range and the
    gaps from the previous close.
    """
    h, l, c = _as_array(high), _as_array(low), _as_array(close)
    n = h.size
    if n == 0:
        return np.array([], dtype=float)

    tr = np.empty(n)
    tr[0] = h[0] - l[0]
    if n > 1:
        prev_close = c[:-1]
        tr[1:] = np.maximum.reduce([
            h[1:] - l[1:],
            np.abs(h[1:] - prev_close),
            np.abs(l[1:] - prev_close),
        ])
    return tr


def zscore(value: float, mu: float, sigma: float) -> float:
    """Standard score; 0.0 when the deviation is below the floor (constant window)."""
    if sigma < STDDEV_FLOOR:
        return 0.0
    return (value - mu) / sigma


def simple_returns(close: ArrayLike) -> np.ndarray:
    """Close-to-close fractional returns, one shorter than the input."""
    c = _as_array(close)
    if c.size < 2:
        return np.array([], dtype=float)
    prev = c[:-1]
    with np.errstate(divide='ignore', invalid='ignore'):
        r = np.where(prev != 0, (c[1:] - prev) / prev, 0.0)
    return r


def log_returns(close: ArrayLike) -> np.ndarray:
    """Close-to-close log returns, one shorter than the input."""
    c = _as_array(close)
    if c.size < 2:
        return np.array([], dtype=float)
    prev = c[:-1]
    with np.errstate(divide='ignore', invalid='ignore'):
        r = np.where((prev > 0) & (c[1:] > 0), np.log(c[1:] / prev), 0.0)
    return r


def ewma_variance(returns: ArrayLike, decay: float = 0.94) -> float:
    """
    RiskMetrics exponentially weighted variance.

    Seeded with the latest squared return and walked backwards so that older
    observations are folded in with geometrically smaller weight.
    """
    r = _as_array(returns)
    if r.size == 0:
        return 0.0
    variance = r[-1] ** 2
    for value in r[-2::-1]:
        variance = decay * variance + (1 - decay) * value ** 2
    return float(variance)


def wilder_smooth(previous: float, current: float, period: int) -> float:
    """Wilder recurrence ``(avg * (p - 1) + current) / p``."""
    return (previous * (period - 1) + current) / period


def normal_cdf(x: float) -> float:
    """Standard normal cumulative distribution."""
    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))
