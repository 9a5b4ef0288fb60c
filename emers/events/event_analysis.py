"""
Event analysis for the market event analysis system.
Couples events with price series: market event detection, abnormal returns,
volatility change, sector tagging, severity, reports and historical analogues.
"""

import bisect
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from emers.config.settings import EventConfig
from emers.data.price_series import PriceSeries
from emers.events.event_database import EventDatabase
from emers.events.news_scorer import NewsScorer
from emers.interfaces.event_interfaces import (
    DetailedEvent, EventRecord, EventSeverity, EventType, SimilarHistoricalEvent
)
from emers.utils.errors import ErrorKind, Result
from emers.utils.logging_utils import log_event_detected
from emers.utils.numerics import mean, stddev, true_range

logger = logging.getLogger(__name__)

SECTOR_NAMES = (
    "Technology", "Financial", "Healthcare", "Consumer", "Industrial",
    "Energy", "Materials", "Real Estate", "Utilities", "Communication",
)

SECTOR_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "Technology": ("Tech", "Software", "Hardware", "Semiconductor"),
    "Financial": ("Bank", "Finance", "Insurance", "Lender"),
    "Healthcare": ("Health", "Medical", "Pharma", "Biotech"),
    "Consumer": ("Retail", "Apparel", "Restaurant"),
    "Industrial": ("Manufactur", "Aerospace", "Defense", "Machinery"),
    "Energy": ("Oil", "Gas", "Solar", "Renewable"),
    "Materials": ("Mining", "Chemical", "Steel"),
    "Real Estate": ("Property", "REIT", "Housing"),
    "Utilities": ("Utility", "Electric", "Water"),
    "Communication": ("Telecom", "Media", "Wireless"),
}

DEFAULT_SECTOR = "General Market"

DURATION_BY_SEVERITY = {
    EventSeverity.LOW: 3,
    EventSeverity.MEDIUM: 7,
    EventSeverity.HIGH: 14,
    EventSeverity.CRITICAL: 30,
}

_STRATEGY_TEMPLATES = {
    EventType.MERGER_ACQUISITION: (
        "Merger/Acquisition event detected. Recommended strategy:\n"
        "1. Evaluate implied acquisition price vs current price\n"
        "2. Consider arbitrage opportunities if applicable\n"
        "3. Assess regulatory risk for deal completion\n"
        "4. Review sector for additional consolidation opportunities"
    ),
    EventType.EARNINGS: (
        "Earnings report detected. Recommended strategy:\n"
        "1. Compare results to analyst expectations\n"
        "2. Review forward guidance and management commentary\n"
        "3. Assess impact on valuation metrics\n"
        "4. Monitor analyst revisions in the next 1-2 weeks"
    ),
    EventType.REGULATORY: (
        "Policy change event detected. Recommended strategy:\n"
        "1. Analyze specific sectors impacted by policy change\n"
        "2. Adjust sector weights accordingly\n"
        "3. Look for opportunities in positively impacted sectors\n"
        "4. Re-evaluate strategy in 10-14 days after full market reaction"
    ),
    EventType.LEADERSHIP: (
        "Leadership change detected. Recommended strategy:\n"
        "1. Assess new leadership background and prior performance\n"
        "2. Monitor initial strategic announcements\n"
        "3. Review corporate governance structure\n"
        "4. Evaluate succession planning quality"
    ),
    EventType.PRODUCT_LAUNCH: (
        "Product launch event detected. Recommended strategy:\n"
        "1. Evaluate potential market impact and adoption timeline\n"
        "2. Review competitive landscape implications\n"
        "3. Monitor initial sales/reception data\n"
        "4. Consider supply chain and production capacity risks"
    ),
    EventType.UNKNOWN: (
        "Event detected with insufficient classification information.\n"
        "Recommended strategy:\n"
        "1. Monitor markets for further clarity\n"
        "2. No immediate action recommended\n"
        "3. Reassess situation as more information becomes available"
    ),
}

_SCANDAL_TEMPLATE = (
    "Corporate event detected for {title}. Recommended strategy:\n"
    "1. {action} exposure to affected company\n"
    "2. Assess broader sector impact and consider {sector_action} sector exposure\n"
    "3. Review competitors for knock-on effects\n"
    "4. Maintain diversification to minimize single-stock risk"
)

UNRECOGNIZED_STRATEGY = "Unrecognized event type. Maintain diversification and monitor developments."


def _window_returns(close: np.ndarray, start: int, end: int) -> List[float]:
    """Returns at bars ``start..end-1``; bar 0 contributes 0."""
    out = []
    for idx in range(start, end):
        if idx > 0 and close[idx - 1] != 0:
            out.append((close[idx] - close[idx - 1]) / close[idx - 1])
        else:
            out.append(0.0)
    return out


class EventAnalyzer:
    """
    Measures and explains the effect of events on a price series.

    Features:
    - Price move, volatility spike and volume spike detection on the latest bar
    - Abnormal return and volatility change around an event date
    - Sector tagging, severity, duration and defensive strategy text
    - Similar-event search with realised aftermath and outcome prediction
    """

    def __init__(self, config: Optional[EventConfig] = None, scorer: Optional[NewsScorer] = None):
        self.config = config or EventConfig()
        self.scorer = scorer or NewsScorer()

    def detect_market_events(self, series: PriceSeries,
                             news_db: Optional[EventDatabase] = None) -> List[EventRecord]:
        """
        Detect market events on the latest bar and collect high-impact news.

        Returns:
            Price-move, volatility-spike and volume-spike events for the latest bar,
            followed by stored news events with impact at or above the configured minimum
        """
        events: List[EventRecord] = []
        n = len(series)
        symbol = series.symbol

        if n >= 5:
            close = series.close
            latest_date = series.dates[-1]

            change = (close[-1] - close[-2]) / close[-2] if close[-2] else 0.0
            if abs(change) >= self.config.price_move_threshold:
                events.append(EventRecord(
                    date=latest_date,
                    title=f"Significant Price Movement in {symbol}: {change * 100:.2f}%",
                    description=(f"{symbol} moved from {close[-2]:.2f} to {close[-1]:.2f}, "
                                 f"a change of {change * 100:.2f}% on {latest_date}."),
                    sentiment=0.7 if change > 0 else -0.7,
                    impact_score=min(100, int(abs(change) * 1000)),
                    event_type=EventType.PRICE_JUMP if change > 0 else EventType.PRICE_DROP,
                ))

            if self._volatility_spike(series):
                high, low = series.high[-1], series.low[-1]
                range_pct = (high - low) / low * 100.0 if low else 0.0
                events.append(EventRecord(
                    date=latest_date,
                    title=f"Volatility Spike Detected in {symbol}",
                    description=(f"Significant increase in volatility detected for {symbol} on {latest_date}. "
                                 f"High: {high:.2f}, Low: {low:.2f}, Range: {range_pct:.2f}%"),
                    sentiment=-0.5,
                    impact_score=70,
                    event_type=EventType.VOLATILITY_SPIKE,
                ))

            if self._volume_spike(series):
                events.append(EventRecord(
                    date=latest_date,
                    title=f"Volume Spike Detected in {symbol}",
                    description=(f"Abnormal trading volume detected for {symbol} on {latest_date}. "
                                 f"Volume: {series.volume[-1]:.0f}, significantly above average."),
                    sentiment=0.0,
                    impact_score=60,
                    event_type=EventType.VOLUME_SPIKE,
                ))

        for event in events:
            log_event_detected(symbol, event.title, event.sentiment, event.impact_score)

        if news_db is not None:
            events.extend(e for e in news_db if e.impact_score >= self.config.min_news_impact)

        return events

    def _volatility_spike(self, series: PriceSeries) -> bool:
        """Mean true range of the last 5 bars against the 5 bars before."""
        if len(series) < 10:
            return False
        recent = series.slice(len(series) - 5, len(series))
        earlier = series.slice(len(series) - 10, len(series) - 5)
        recent_atr = mean(true_range(recent.high, recent.low, recent.close))
        earlier_atr = mean(true_range(earlier.high, earlier.low, earlier.close))
        return earlier_atr > 0 and recent_atr / earlier_atr >= self.config.volatility_spike_ratio

    def _volume_spike(self, series: PriceSeries) -> bool:
        """Latest volume against the mean of the previous 5 bars."""
        if len(series) < 6:
            return False
        average = mean(series.volume[-6:-1])
        return average > 0 and series.volume[-1] / average >= self.config.volume_spike_ratio

    def abnormal_return(self, series: PriceSeries, event_date: str, window: int = 5) -> Result:
        """
        Return over ``window`` bars after the event bar minus the expected return (0).

        Returns:
            Result with the abnormal return as a fraction, or INVALID_PARAMETER when
            the date is not a bar of the series or the window runs past its end
        """
        idx = series.index_of(event_date)
        if idx is None:
            return Result.failure(ErrorKind.INVALID_PARAMETER, f"Event date {event_date} not in series")
        if window <= 0 or idx + window >= len(series):
            return Result.failure(ErrorKind.INSUFFICIENT_DATA,
                                  f"Window of {window} bars after {event_date} exceeds the series")

        start, end = series.close[idx], series.close[idx + window]
        actual = (end - start) / start if start else 0.0
        expected = 0.0
        return Result.success(float(actual - expected))

    def volatility_change(self, series: PriceSeries, event_date: str,
                          pre_window: int = 10, post_window: int = 10) -> Result:
        """
        Fractional change of return volatility from ``[idx-pre, idx)`` to ``[idx, idx+post)``.

        Returns:
            Result with ``(post - pre) / pre``; 0.0 when pre-event volatility is zero
        """
        idx = series.index_of(event_date)
        if idx is None:
            return Result.failure(ErrorKind.INVALID_PARAMETER, f"Event date {event_date} not in series")
        if pre_window <= 0 or post_window <= 0 or idx < pre_window or idx >= len(series) - post_window:
            return Result.failure(ErrorKind.INSUFFICIENT_DATA,
                                  f"Not enough bars around {event_date} for {pre_window}/{post_window} windows")

        pre_vol = stddev(_window_returns(series.close, idx - pre_window, idx))
        post_vol = stddev(_window_returns(series.close, idx, idx + post_window))
        if pre_vol <= 0:
            return Result.success(0.0)
        return Result.success((post_vol - pre_vol) / pre_vol)

    @staticmethod
    def identify_affected_sectors(event: EventRecord,
                                  sector_names: Sequence[str] = SECTOR_NAMES) -> List[str]:
        """Sectors whose name or a synonym appears in the title or description."""
        text = f"{event.title} {event.description}"
        affected = []
        for sector in sector_names:
            terms = (sector,) + SECTOR_SYNONYMS.get(sector, ())
            if any(re.search(r"(?<![A-Za-z])" + re.escape(term), text, re.IGNORECASE) for term in terms):
                affected.append(sector)
        return affected or [DEFAULT_SECTOR]

    @staticmethod
    def assess_severity(event: EventRecord) -> EventSeverity:
        if event.impact_score >= 90:
            return EventSeverity.CRITICAL
        if event.impact_score >= 70:
            return EventSeverity.HIGH
        if event.impact_score >= 40:
            return EventSeverity.MEDIUM
        return EventSeverity.LOW

    @staticmethod
    def event_impact(event: EventRecord) -> float:
        """Signed market impact in [-1, 1]: direction of sentiment times impact / 100."""
        direction = 1.0 if event.sentiment >= 0 else -1.0
        return direction * event.impact_score / 100.0

    @staticmethod
    def sector_impact(event: EventRecord) -> float:
        return event.impact_score / 100.0

    def resolve_type(self, event: EventRecord) -> EventType:
        return event.event_type if event.event_type is not None else self.scorer.classify_record(event)

    def analyze_event(self, event: EventRecord, series: Optional[PriceSeries] = None) -> DetailedEvent:
        """Enrich an event with severity, impact, measured price effects and sectors."""
        severity = self.assess_severity(event)
        abnormal, vol_change = 0.0, 0.0
        if series is not None:
            ar = self.abnormal_return(series, event.date)
            vc = self.volatility_change(series, event.date)
            abnormal = ar.value if ar.ok else 0.0
            vol_change = vc.value if vc.ok else 0.0
            if not ar.ok:
                logger.debug(f"Abnormal return unavailable for '{event.title}': {ar.message}")

        return DetailedEvent(
            event=event,
            event_type=self.resolve_type(event),
            severity=severity,
            market_impact=self.event_impact(event),
            abnormal_return=abnormal,
            volatility_change=vol_change,
            affected_sectors=self.identify_affected_sectors(event),
            duration_estimate=DURATION_BY_SEVERITY[severity],
        )

    @staticmethod
    def recommend_defensive_strategy(detailed: DetailedEvent) -> str:
        """Fixed strategy text selected by event type."""
        if detailed.event_type == EventType.SCANDAL:
            negative = detailed.market_impact < 0
            return _SCANDAL_TEMPLATE.format(
                title=detailed.event.title,
                action="Consider reducing" if negative else "Maintain or increase",
                sector_action="reducing" if negative else "maintaining",
            )
        return _STRATEGY_TEMPLATES.get(detailed.event_type, UNRECOGNIZED_STRATEGY)

    def generate_event_report(self, detailed: DetailedEvent) -> str:
        """Plain-text report of a detailed event followed by the recommended strategy."""
        e = detailed.event
        report = (
            f"\nDate: {e.date}\n"
            f"Title: {e.title}\n"
            f"Description: {e.description}\n"
            f"\n"
            f"Sentiment: {e.sentiment:.2f}\n"
            f"Impact Score: {e.impact_score}\n"
            f"Event Type: {detailed.event_type.label}\n"
            f"Severity: {detailed.severity.label}\n"
            f"Market Impact: {detailed.market_impact * 100.0:.2f}%\n"
            f"Abnormal Return: {detailed.abnormal_return * 100.0:.2f}%\n"
            f"Volatility Change: {detailed.volatility_change * 100.0:.2f}%\n"
            f"Affected Sectors: {', '.join(detailed.affected_sectors)}\n"
            f"Estimated Duration: {detailed.duration_estimate} days\n"
        )
        return report + "\nRecommended Strategy:\n" + self.recommend_defensive_strategy(detailed)

    def find_similar_events(self, event: EventRecord, db: EventDatabase,
                            max_results: int = 5) -> List[Tuple[EventRecord, float]]:
        """Top ``max_results`` stored events by similarity, excluding the event itself."""
        scored = [(other, self.scorer.event_similarity(event, other))
                  for other in db if other != event]
        scored = [pair for pair in scored if pair[1] > 0]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:max_results]

    def find_similar_historical_events(self, event: EventRecord, db: EventDatabase,
                                       series: PriceSeries, max_results: int = 5,
                                       horizon: int = 20) -> List[SimilarHistoricalEvent]:
        """
        Stored events above the similarity threshold with their realised aftermath.

        The aftermath is measured on ``series`` from the first bar on or after the
        stored event's date: the close-to-close change over ``horizon`` bars (or to
        the end of the series) and the bars until the close returns to its starting level.
        """
        results = []
        for other in db:
            if other == event:
                continue
            score = self.scorer.event_similarity(event, other)
            if score <= self.config.similarity_threshold:
                continue
            change, recovery = self._aftermath(series, other.date, horizon)
            results.append(SimilarHistoricalEvent(other, score, change, recovery))

        results.sort(key=lambda s: s.similarity_score, reverse=True)
        return results[:max_results]

    @staticmethod
    def _aftermath(series: PriceSeries, event_date: str, horizon: int) -> Tuple[float, int]:
        idx = bisect.bisect_left(series.dates, event_date)
        if idx >= len(series) - 1:
            return 0.0, 0

        close = series.close
        start = close[idx]
        end_idx = min(idx + horizon, len(series) - 1)
        change = (close[end_idx] - start) / start if start else 0.0

        remaining = len(series) - 1 - idx
        recovery = remaining
        for k in range(1, remaining + 1):
            price = close[idx + k]
            if (change < 0 and price >= start) or (change >= 0 and price <= start):
                recovery = k
                break
        return float(change), recovery

    @staticmethod
    def predict_event_outcome(event: EventRecord, similar: List[SimilarHistoricalEvent]) -> float:
        """``0.7 * similarity-weighted historical change + 0.3 * (sentiment * impact / 100) * 0.1``."""
        if not similar:
            return 0.0
        weights = sum(s.similarity_score for s in similar)
        weighted = sum(s.similarity_score * s.price_change_after_event for s in similar)
        predicted_change = weighted / weights if weights > 0 else 0.0
        sentiment_factor = event.sentiment * (event.impact_score / 100.0)
        return 0.7 * predicted_change + 0.3 * sentiment_factor * 0.1
