"""
Validation utilities for the market event analysis system.
Checks price series, date ranges and event records before analysis.
"""

from datetime import datetime
from typing import List, Tuple

import numpy as np

from emers.utils.logging_utils import get_logger

logger = get_logger("validation")

ISO_DATE_FORMAT = "%Y-%m-%d"


def is_iso_date(value: str) -> bool:
    """True when ``value`` parses as ``YYYY-MM-DD``."""
    if not isinstance(value, str) or len(value) != 10:
        return False
    try:
        datetime.strptime(value, ISO_DATE_FORMAT)
        return True
    except ValueError:
        return False


def validate_date_range(start_date: str, end_date: str) -> Tuple[bool, List[str]]:
    """
    Validate a start/end date pair.

    Returns:
        Tuple of (is_valid, list_of_issues)
    """
    issues = []
    if not is_iso_date(start_date):
        issues.append(f"Invalid start date: {start_date!r}")
    if not is_iso_date(end_date):
        issues.append(f"Invalid end date: {end_date!r}")
    if not issues and start_date >= end_date:
        issues.append("Start date must be before end date")
    return len(issues) == 0, issues


def validate_price_series(series, min_length: int = 1) -> Tuple[bool, List[str]]:
    """
    Validate a PriceSeries for completeness and OHLC consistency.

    Args:
        series: PriceSeries to check
        min_length: Minimum number of bars required

    Returns:
        Tuple of (is_valid, list_of_issues)
    """
    issues = []

    if series is None:
        return False, ["Series is None"]

    if len(series) < min_length:
        issues.append(f"Series has {len(series)} bars, need at least {min_length}")
        return False, issues

    prices = np.vstack([series.open, series.high, series.low, series.close])
    if np.isnan(prices).any():
        issues.append(f"Missing values found: {int(np.isnan(prices).sum())}")

    zero_prices = int((prices == 0).sum())
    if zero_prices:
        issues.append(f"Zero (missing) prices found: {zero_prices}")

    body_high = np.maximum(series.open, series.close)
    body_low = np.minimum(series.open, series.close)
    if (series.high < body_high).any():
        issues.append("High price inconsistency detected")
    if (series.low > body_low).any():
        issues.append("Low price inconsistency detected")

    if len(series) > 1:
        returns = series.returns()
        extreme_moves = int((np.abs(returns) > 0.5).sum())
        if extreme_moves:
            issues.append(f"Extreme price movements detected: {extreme_moves} days")

    is_valid = len(issues) == 0
    if not is_valid:
        logger.debug(f"Series validation for {series.symbol} found {len(issues)} issues")
    return is_valid, issues


def validate_event_fields(date: str, title: str, sentiment: float,
                          impact_score: int) -> Tuple[bool, List[str]]:
    """
    Validate the fields of an event record.

    Returns:
        Tuple of (is_valid, list_of_issues)
    """
    issues = []
    if not is_iso_date(date):
        issues.append(f"Invalid event date: {date!r}")
    if not title:
        issues.append("Event title is empty")
    if not (-1.0 <= sentiment <= 1.0):
        issues.append(f"Sentiment {sentiment} outside [-1, 1]")
    if not (0 <= impact_score <= 100):
        issues.append(f"Impact score {impact_score} outside [0, 100]")
    return len(issues) == 0, issues
