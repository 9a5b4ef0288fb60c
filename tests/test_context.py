"""
Unit tests for AnalysisContext.
Tests cache-first loading, event persistence and lifecycle handling.
"""

import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

from emers.config.settings import EmersConfig
from emers.context import AnalysisContext
from emers.data.price_series import PriceSeries
from emers.events.event_database import EventDatabase
from emers.interfaces.data_interfaces import IPriceCache, IPriceSource
from emers.interfaces.event_interfaces import EventRecord
from emers.utils.errors import InvalidParameterError, IOFailureError


class TestAnalysisContext(unittest.TestCase):
    """Test cases for AnalysisContext."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config = EmersConfig("testing")
        self.config.data.events_database_path = str(Path(self.temp_dir) / "events.db")
        self.series = PriceSeries.from_closes("ACME", [100.0, 101.0, 102.0, 101.5])
        self.source = Mock(spec=IPriceSource)
        self.source.fetch_stock_data.return_value = self.series
        self.cache = Mock(spec=IPriceCache)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_cache_hit_skips_source(self):
        self.cache.has.return_value = True
        self.cache.load.return_value = self.series
        context = AnalysisContext(self.config, price_source=self.source, price_cache=self.cache)

        loaded = context.load_prices("ACME", "2024-01-01", "2024-01-31")

        self.assertEqual(loaded, self.series)
        self.cache.load.assert_called_once_with("ACME", "2024-01-01", "2024-01-31")
        self.source.fetch_stock_data.assert_not_called()

    def test_cache_miss_fetches_and_stores(self):
        self.cache.has.return_value = False
        context = AnalysisContext(self.config, price_source=self.source, price_cache=self.cache)

        context.load_prices("ACME", "2024-01-01", "2024-01-31")

        self.source.fetch_stock_data.assert_called_once_with("ACME", "2024-01-01", "2024-01-31")
        self.cache.store.assert_called_once_with(self.series, "2024-01-01", "2024-01-31")

    def test_missing_source_on_cache_miss(self):
        context = AnalysisContext(self.config)
        with self.assertRaises(IOFailureError):
            context.load_prices("ACME", "2024-01-01", "2024-01-31")

    def test_unsanitized_load_returns_fetched_series(self):
        context = AnalysisContext(self.config, price_source=self.source)
        self.assertIs(context.load_prices("ACME", "2024-01-01", "2024-01-31", sanitize=False), self.series)

    def test_save_events(self):
        context = AnalysisContext(self.config)
        context.event_db.append(EventRecord("2024-01-02", "Acme announces merger", impact_score=70))

        context.save_events()

        loaded = EventDatabase.from_file(self.config.data.events_database_path)
        self.assertEqual(len(loaded), 1)

    def test_close_is_idempotent(self):
        log_manager = Mock()
        with AnalysisContext(self.config, log_manager=log_manager) as context:
            self.assertIs(context.log_manager, log_manager)
        context.close()

        log_manager.close.assert_called_once()
        self.assertIsNone(context.log_manager)

    @patch('emers.context.CsvPriceCache')
    @patch('emers.context.YFinanceClient')
    @patch('emers.context.setup_logging')
    def test_create(self, mock_setup_logging, mock_client, mock_cache):
        context = AnalysisContext.create("testing", load_events=False)

        self.assertEqual(context.config.environment, "testing")
        self.assertIs(context.price_source, mock_client.return_value)
        self.assertIs(context.news_source, mock_client.return_value)
        self.assertIs(context.log_manager, mock_setup_logging.return_value)
        mock_cache.assert_called_once_with("data/csv")
        mock_client.assert_called_once_with(rate_limit_delay=0.1, max_retries=3)

    @patch('emers.context.setup_logging')
    def test_create_rejects_invalid_configuration(self, mock_setup_logging):
        with patch.object(EmersConfig, 'validate_config', return_value=False):
            with self.assertRaises(InvalidParameterError):
                AnalysisContext.create("testing", load_events=False)
        mock_setup_logging.assert_not_called()


if __name__ == '__main__':
    unittest.main()
