"""
Explicit analysis context.
Owns the configuration, logging setup, data collaborators and the event database
for one program run; created at start-up and closed at shutdown.
"""

import logging
from typing import Optional

from emers.config.settings import EmersConfig
from emers.data.data_processor import DataSanitizer
from emers.data.data_storage import CsvPriceCache
from emers.data.price_series import PriceSeries
from emers.data.yfinance_client import YFinanceClient
from emers.events.event_database import EventDatabase
from emers.events.news_scorer import NewsScorer
from emers.interfaces.data_interfaces import INewsSource, IPriceCache, IPriceSource
from emers.utils.errors import IOFailureError, InvalidParameterError
from emers.utils.logging_utils import EmersLogger, setup_logging


class AnalysisContext:
    """
    Everything an analysis run needs, passed explicitly to the components.

    Features:
    - Cache-first price loading (cache hit loads, miss fetches and stores)
    - Optional sanitizing of loaded series
    - Event database loaded from and saved to the configured path
    - Usable as a context manager
    """

    def __init__(self, config: EmersConfig,
                 price_source: Optional[IPriceSource] = None,
                 news_source: Optional[INewsSource] = None,
                 price_cache: Optional[IPriceCache] = None,
                 event_db: Optional[EventDatabase] = None,
                 sanitizer: Optional[DataSanitizer] = None,
                 log_manager: Optional[EmersLogger] = None):
        self.config = config
        self.price_source = price_source
        self.news_source = news_source
        self.price_cache = price_cache
        self.scorer = NewsScorer()
        self.event_db = event_db if event_db is not None else EventDatabase(scorer=self.scorer)
        self.sanitizer = sanitizer or DataSanitizer()
        self.log_manager = log_manager
        self.logger = logging.getLogger(__name__)

    @classmethod
    def create(cls, environment: str = "development", load_events: bool = True) -> "AnalysisContext":
        """
        Build a context with logging, the yfinance client, the CSV cache and the event database.

        Args:
            environment: Configuration environment
            load_events: Load the event database from the configured path
        """
        config = EmersConfig(environment)
        if not config.validate_config():
            raise InvalidParameterError(f"Invalid configuration for {environment} environment")
        log_manager = setup_logging(config.logging)
        client = YFinanceClient(rate_limit_delay=config.data.rate_limit_delay,
                                max_retries=config.data.max_retries)
        context = cls(
            config,
            price_source=client,
            news_source=client,
            price_cache=CsvPriceCache(config.data.csv_cache_directory),
            log_manager=log_manager,
        )
        if load_events:
            context.event_db.load(config.data.events_database_path)
        context.logger.info(f"Analysis context created for {environment} environment")
        return context

    def load_prices(self, symbol: str, start_date: str, end_date: str,
                    sanitize: bool = True) -> PriceSeries:
        """
        Price series for ``symbol``, from the cache when present.

        Raises:
            FetchError: If the series has to be fetched and the source fails
            IOFailureError: If no price source is configured for a cache miss
        """
        if self.price_cache is not None and self.price_cache.has(symbol, start_date, end_date):
            self.logger.info(f"Loading {symbol} {start_date}..{end_date} from cache")
            series = self.price_cache.load(symbol, start_date, end_date)
        else:
            if self.price_source is None:
                raise IOFailureError(f"No price source configured to fetch {symbol}")
            series = self.price_source.fetch_stock_data(symbol, start_date, end_date)
            if self.price_cache is not None:
                self.price_cache.store(series, start_date, end_date)

        if sanitize:
            series, _ = self.sanitizer.sanitize(series)
        return series

    def save_events(self) -> None:
        self.event_db.save(self.config.data.events_database_path)

    def close(self) -> None:
        if self.log_manager is not None:
            self.log_manager.close()
            self.log_manager = None

    def __enter__(self) -> "AnalysisContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
