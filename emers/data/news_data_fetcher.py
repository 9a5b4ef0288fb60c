"""
News ingestion for the market event analysis system.
Fetches raw news, scores it and appends the resulting events to the event database.
"""

import logging
from typing import List, Optional, Sequence

from tqdm import tqdm

from emers.events.event_database import EventDatabase
from emers.events.news_scorer import NewsScorer
from emers.interfaces.data_interfaces import INewsSource
from emers.interfaces.event_interfaces import EventRecord
from emers.utils.errors import FetchError


class NewsEventFetcher:
    """
    Turns news headlines into stored events.

    Features:
    - Optional date-range filtering of fetched items
    - Sentiment, impact and type scoring of every item
    - Skips items already stored (same date and title)
    - Batch processing for multiple symbols
    """

    def __init__(self, news_source: INewsSource, database: EventDatabase,
                 scorer: Optional[NewsScorer] = None):
        """
        Initialize news event fetcher.

        Args:
            news_source: Source of raw news items
            database: Event database receiving the scored events
            scorer: News scorer (default: a new NewsScorer)
        """
        self.news_source = news_source
        self.database = database
        self.scorer = scorer or NewsScorer()
        self.logger = logging.getLogger(__name__)

    def fetch_events_for_symbol(self, symbol: str, start_date: Optional[str] = None,
                                end_date: Optional[str] = None) -> List[EventRecord]:
        """
        Fetch, score and store the news for one symbol.

        Args:
            symbol: Ticker symbol
            start_date: Earliest news date to keep (inclusive, optional)
            end_date: Latest news date to keep (inclusive, optional)

        Returns:
            Newly stored events

        Raises:
            FetchError: If the news source fails
        """
        self.logger.info(f"Fetching news events for {symbol}")
        items = self.news_source.fetch_news_data(symbol)
        if start_date:
            items = [i for i in items if i.date >= start_date]
        if end_date:
            items = [i for i in items if i.date <= end_date]

        if not items:
            self.logger.warning(f"No news data available for {symbol}")
            return []

        known = {(e.date, e.title) for e in self.database}
        stored = []
        for event in self.scorer.score_news_items(items):
            if (event.date, event.title) in known:
                continue
            self.database.append(event)
            known.add((event.date, event.title))
            stored.append(event)

        self.logger.info(f"Stored {len(stored)} of {len(items)} news events for {symbol}")
        return stored

    def fetch_events_for_symbols(self, symbols: Sequence[str], start_date: Optional[str] = None,
                                 end_date: Optional[str] = None) -> List[EventRecord]:
        """Fetch news for several symbols; failures for one symbol are logged and skipped."""
        stored = []
        for symbol in tqdm(symbols, desc="Fetching news", unit="symbol"):
            try:
                stored.extend(self.fetch_events_for_symbol(symbol, start_date, end_date))
            except FetchError as e:
                self.logger.error(f"Failed to fetch news for {symbol}: {str(e)}")
        return stored
