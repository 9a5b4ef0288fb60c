"""
YFinance API client wrapper with rate limiting and error handling.
Implements the price source and news source interfaces.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd
import yfinance as yf
from requests.exceptions import RequestException

from emers.data.price_series import PriceSeries
from emers.interfaces.data_interfaces import INewsSource, IPriceSource, RawNewsItem
from emers.utils.errors import FetchError, InvalidParameterError
from emers.utils.validation_utils import validate_date_range


class YFinanceClient(IPriceSource, INewsSource):
    """
    Wrapper for the yfinance API with rate limiting and retries.

    Features:
    - Rate limiting between API calls
    - Exponential backoff on network errors
    - Conversion of yfinance frames into PriceSeries
    - Normalisation of both the legacy and the nested news payload layouts
    """

    def __init__(self, rate_limit_delay: float = 0.1, max_retries: int = 3):
        """
        Initialize YFinance client with rate limiting.

        Args:
            rate_limit_delay: Delay between API calls in seconds
            max_retries: Maximum number of attempts for failed requests
        """
        self.rate_limit_delay = rate_limit_delay
        self.max_retries = max_retries
        self.last_request_time = 0.0
        self.logger = logging.getLogger(__name__)

    def _rate_limit(self):
        """Sleep until at least ``rate_limit_delay`` has passed since the last call."""
        elapsed = time.time() - self.last_request_time
        if elapsed < self.rate_limit_delay:
            time.sleep(self.rate_limit_delay - elapsed)
        self.last_request_time = time.time()

    def _retry_with_backoff(self, func, *args, **kwargs):
        """
        Execute ``func`` retrying network failures with exponential backoff.

        Raises:
            FetchError: When every attempt failed
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                self._rate_limit()
                return func(*args, **kwargs)
            except (RequestException, ConnectionError, TimeoutError) as e:
                last_exception = e
                wait_time = (2 ** attempt) * self.rate_limit_delay
                self.logger.warning(
                    f"API request failed (attempt {attempt + 1}/{self.max_retries}): {str(e)}. "
                    f"Retrying in {wait_time:.2f} seconds..."
                )
                if attempt < self.max_retries - 1:
                    time.sleep(wait_time)

        self.logger.error(f"All retry attempts failed for function {func.__name__}")
        raise FetchError(f"All {self.max_retries} attempts failed: {last_exception}")

    @staticmethod
    def _validate_symbol(symbol: str) -> str:
        if not symbol or not isinstance(symbol, str):
            raise InvalidParameterError("Symbol must be a non-empty string")
        return symbol.strip().upper()

    def fetch_stock_data(self, symbol: str, start_date: str, end_date: str) -> PriceSeries:
        """
        Fetch daily OHLCV bars for a symbol.

        Args:
            symbol: Ticker symbol (e.g., 'AAPL')
            start_date: Start date in YYYY-MM-DD format
            end_date: End date in YYYY-MM-DD format

        Returns:
            PriceSeries with one bar per trading day

        Raises:
            InvalidParameterError: For invalid symbol or dates
            FetchError: For API failures or empty responses
        """
        symbol = self._validate_symbol(symbol)
        is_valid, issues = validate_date_range(start_date, end_date)
        if not is_valid:
            raise InvalidParameterError("; ".join(issues))

        self.logger.info(f"Fetching stock data for {symbol} from {start_date} to {end_date}")

        def _fetch_data():
            ticker = yf.Ticker(symbol)
            return ticker.history(start=start_date, end=end_date, auto_adjust=False)

        data = self._retry_with_backoff(_fetch_data)
        if data is None or data.empty:
            raise FetchError(f"No data returned for symbol {symbol}")

        series = self._to_price_series(data, symbol)
        self.logger.info(f"Successfully fetched {len(series)} records for {symbol}")
        return series

    def fetch_news_data(self, symbol: str) -> List[RawNewsItem]:
        """
        Fetch recent news items for a symbol.

        Returns:
            List of RawNewsItem; empty when the source has no news

        Raises:
            FetchError: For API failures
        """
        symbol = self._validate_symbol(symbol)
        self.logger.info(f"Fetching news data for {symbol}")

        def _fetch_news():
            return yf.Ticker(symbol).news

        news_data = self._retry_with_backoff(_fetch_news)
        if not news_data:
            self.logger.warning(f"No news data returned for symbol {symbol}")
            return []

        items = [item for item in (self._parse_news_item(raw, symbol) for raw in news_data) if item]
        self.logger.info(f"Successfully fetched {len(items)} news items for {symbol}")
        return items

    def _to_price_series(self, data: pd.DataFrame, symbol: str) -> PriceSeries:
        """Convert a yfinance history frame into a PriceSeries."""
        frame = data.rename(columns={"Adj Close": "adj_close"})
        required = ["Open", "High", "Low", "Close", "Volume"]
        missing = [c for c in required if c not in frame.columns]
        if missing:
            raise FetchError(f"Missing columns for {symbol}: {missing}")

        initial_count = len(frame)
        frame = frame.dropna(subset=required)
        if len(frame) < initial_count:
            self.logger.info(f"Removed {initial_count - len(frame)} rows with missing values for {symbol}")

        index = pd.DatetimeIndex(frame.index)
        if index.tz is not None:
            index = index.tz_localize(None)
        frame = frame.set_axis(index, axis=0)
        return PriceSeries.from_dataframe(symbol, frame)

    def _parse_news_item(self, raw: Dict[str, Any], symbol: str) -> Optional[RawNewsItem]:
        """Normalise one news payload entry; returns None for entries without a title."""
        content = raw.get("content") if isinstance(raw.get("content"), dict) else raw

        title = content.get("title") or ""
        if not title:
            return None

        description = content.get("summary") or content.get("description") or ""
        url = content.get("link") or ""
        canonical = content.get("canonicalUrl")
        if not url and isinstance(canonical, dict):
            url = canonical.get("url", "")

        publisher = content.get("publisher") or ""
        provider = content.get("provider")
        if not publisher and isinstance(provider, dict):
            publisher = provider.get("displayName", "")

        if content.get("providerPublishTime"):
            published = datetime.fromtimestamp(int(content["providerPublishTime"]), tz=timezone.utc)
        elif content.get("pubDate"):
            published = pd.Timestamp(content["pubDate"]).to_pydatetime()
        else:
            published = datetime.now(timezone.utc)

        return RawNewsItem(
            symbol=symbol,
            date=published.strftime("%Y-%m-%d"),
            title=title,
            description=description,
            url=url,
            publisher=publisher,
        )
