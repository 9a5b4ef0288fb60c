"""
Core data interfaces for the market event analysis system.
Defines contracts for price sources, news sources and the local price cache.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from emers.data.price_series import PriceSeries


@dataclass
class RawNewsItem:
    """Unscored news item as delivered by a news source."""
    symbol: str
    date: str
    title: str
    description: str = ""
    url: str = ""
    publisher: str = ""


class IPriceSource(ABC):
    """Interface for remote OHLCV sources."""

    @abstractmethod
    def fetch_stock_data(self, symbol: str, start_date: str, end_date: str) -> PriceSeries:
        """
        Fetch daily bars for a symbol.

        Raises:
            FetchError: If the remote call fails or returns no usable data
        """
        pass


class INewsSource(ABC):
    """Interface for remote news sources."""

    @abstractmethod
    def fetch_news_data(self, symbol: str) -> List[RawNewsItem]:
        """Fetch recent news items for a symbol."""
        pass


class IPriceCache(ABC):
    """Interface for the local price cache keyed by (symbol, start_date, end_date)."""

    @abstractmethod
    def has(self, symbol: str, start_date: str, end_date: str) -> bool:
        pass

    @abstractmethod
    def load(self, symbol: str, start_date: str, end_date: str) -> PriceSeries:
        pass

    @abstractmethod
    def store(self, series: PriceSeries, start_date: str, end_date: str) -> bool:
        pass
