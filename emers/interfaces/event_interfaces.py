"""
Event interfaces for the market event analysis system.
Defines event classification enums and the event record data models.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional


class EventType(Enum):
    """Event categories; declaration order breaks classification ties."""
    UNKNOWN = 0
    MERGER_ACQUISITION = 1
    EARNINGS = 2
    SCANDAL = 3
    LEADERSHIP = 4
    SPLIT_DIVIDEND = 5
    IPO = 6
    LAYOFFS = 7
    PRODUCT_LAUNCH = 8
    PARTNERSHIP = 9
    REGULATORY = 10
    PRICE_JUMP = 11
    PRICE_DROP = 12
    VOLATILITY_SPIKE = 13
    VOLUME_SPIKE = 14

    @property
    def label(self) -> str:
        return _EVENT_LABELS[self]


_EVENT_LABELS = {
    EventType.UNKNOWN: "Unknown",
    EventType.MERGER_ACQUISITION: "Merger/Acquisition",
    EventType.EARNINGS: "Earnings Report",
    EventType.SCANDAL: "Corporate Scandal",
    EventType.LEADERSHIP: "Leadership Change",
    EventType.SPLIT_DIVIDEND: "Stock Split/Dividend",
    EventType.IPO: "IPO",
    EventType.LAYOFFS: "Layoffs",
    EventType.PRODUCT_LAUNCH: "Product Launch",
    EventType.PARTNERSHIP: "Partnership",
    EventType.REGULATORY: "Regulatory Change",
    EventType.PRICE_JUMP: "Price Jump",
    EventType.PRICE_DROP: "Price Drop",
    EventType.VOLATILITY_SPIKE: "Volatility Spike",
    EventType.VOLUME_SPIKE: "Volume Spike",
}

NEWS_EVENT_TYPES = [t for t in EventType if 1 <= t.value <= 10]


class EventSeverity(Enum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class EventRecord:
    """
    A scored news or market event.

    ``sentiment`` lies in [-1, 1] and ``impact_score`` in [0, 100]. The optional
    ``event_type`` and ``severity`` are derived annotations and do not take part
    in equality.
    """
    date: str
    title: str
    description: str = ""
    source_url: str = ""
    sentiment: float = 0.0
    impact_score: int = 0
    event_type: Optional[EventType] = field(default=None, compare=False)
    severity: Optional[EventSeverity] = field(default=None, compare=False)

    def annotate(self, event_type: Optional[EventType] = None,
                 severity: Optional[EventSeverity] = None) -> "EventRecord":
        """Copy with the given annotations filled in."""
        return replace(self,
                       event_type=event_type if event_type is not None else self.event_type,
                       severity=severity if severity is not None else self.severity)


@dataclass
class DetailedEvent:
    """An event enriched with its measured effect on a price series."""
    event: EventRecord
    event_type: EventType
    severity: EventSeverity
    market_impact: float
    abnormal_return: float
    volatility_change: float
    affected_sectors: List[str]
    duration_estimate: int


@dataclass
class SimilarHistoricalEvent:
    """A stored event resembling a current one, with its realised aftermath."""
    event: EventRecord
    similarity_score: float
    price_change_after_event: float
    days_to_recovery: int
