"""
Unit tests for YFinance client.
"""

import unittest
from unittest.mock import Mock, patch
import pandas as pd
from datetime import datetime, timezone
import logging

from requests.exceptions import ConnectionError as RequestsConnectionError

from emers.data.price_series import PriceSeries
from emers.data.yfinance_client import YFinanceClient
from emers.utils.errors import FetchError, InvalidParameterError


class TestYFinanceClient(unittest.TestCase):
    """Test cases for YFinanceClient class."""

    def setUp(self):
        self.client = YFinanceClient(rate_limit_delay=0.0, max_retries=2)

        self.sample_stock_data = pd.DataFrame({
            'Open': [100.0, 101.0, 102.0],
            'High': [105.0, 106.0, 107.0],
            'Low': [99.0, 100.0, 101.0],
            'Close': [104.0, 105.0, 106.0],
            'Adj Close': [103.0, 104.0, 105.0],
            'Volume': [1000000, 1100000, 1200000]
        }, index=pd.date_range('2023-01-02', periods=3, tz='America/New_York', name='Date'))

        self.sample_news_data = [
            {
                'title': 'Company reports strong earnings',
                'summary': 'Quarterly results exceed expectations',
                'publisher': 'Financial Times',
                'providerPublishTime': int(datetime(2023, 1, 3, 12, tzinfo=timezone.utc).timestamp()),
                'link': 'https://example.com/news1'
            },
            {
                'content': {
                    'title': 'Market outlook positive',
                    'summary': 'Analysts upgrade rating',
                    'pubDate': '2023-01-04T10:00:00Z',
                    'canonicalUrl': {'url': 'https://example.com/news2'},
                    'provider': {'displayName': 'Reuters'},
                }
            },
            {'summary': 'Entry without a title'},
        ]

    def test_initialization(self):
        client = YFinanceClient(rate_limit_delay=0.5, max_retries=5)
        self.assertEqual(client.rate_limit_delay, 0.5)
        self.assertEqual(client.max_retries, 5)
        self.assertEqual(client.last_request_time, 0)
        self.assertIsInstance(client.logger, logging.Logger)

    @patch('emers.data.yfinance_client.yf.Ticker')
    def test_fetch_stock_data_success(self, mock_ticker):
        mock_ticker.return_value.history.return_value = self.sample_stock_data

        series = self.client.fetch_stock_data('aapl', '2023-01-01', '2023-01-10')

        self.assertIsInstance(series, PriceSeries)
        self.assertEqual(series.symbol, 'AAPL')
        self.assertEqual(series.dates, ('2023-01-02', '2023-01-03', '2023-01-04'))
        self.assertEqual(series.adj_close[0], 103.0)
        mock_ticker.assert_called_once_with('AAPL')
        mock_ticker.return_value.history.assert_called_once_with(
            start='2023-01-01', end='2023-01-10', auto_adjust=False)

    @patch('emers.data.yfinance_client.yf.Ticker')
    def test_fetch_stock_data_drops_incomplete_rows(self, mock_ticker):
        data = self.sample_stock_data.copy()
        data.iloc[1, data.columns.get_loc('Close')] = float('nan')
        mock_ticker.return_value.history.return_value = data

        series = self.client.fetch_stock_data('AAPL', '2023-01-01', '2023-01-10')
        self.assertEqual(len(series), 2)

    @patch('emers.data.yfinance_client.yf.Ticker')
    def test_fetch_stock_data_empty_response(self, mock_ticker):
        mock_ticker.return_value.history.return_value = pd.DataFrame()

        with self.assertRaises(FetchError):
            self.client.fetch_stock_data('AAPL', '2023-01-01', '2023-01-10')

    def test_fetch_stock_data_invalid_input(self):
        with self.assertRaises(InvalidParameterError):
            self.client.fetch_stock_data('', '2023-01-01', '2023-01-10')
        with self.assertRaises(InvalidParameterError):
            self.client.fetch_stock_data('AAPL', '2023-01-10', '2023-01-01')
        with self.assertRaises(InvalidParameterError):
            self.client.fetch_stock_data('AAPL', 'yesterday', '2023-01-01')

    @patch('emers.data.yfinance_client.time.sleep')
    @patch('emers.data.yfinance_client.yf.Ticker')
    def test_retry_then_success(self, mock_ticker, mock_sleep):
        mock_ticker.return_value.history.side_effect = [
            RequestsConnectionError("network down"),
            self.sample_stock_data,
        ]

        series = self.client.fetch_stock_data('AAPL', '2023-01-01', '2023-01-10')

        self.assertEqual(len(series), 3)
        self.assertEqual(mock_ticker.return_value.history.call_count, 2)

    @patch('emers.data.yfinance_client.time.sleep')
    @patch('emers.data.yfinance_client.yf.Ticker')
    def test_all_retries_fail(self, mock_ticker, mock_sleep):
        mock_ticker.return_value.history.side_effect = TimeoutError("timed out")

        with self.assertRaises(FetchError):
            self.client.fetch_stock_data('AAPL', '2023-01-01', '2023-01-10')
        self.assertEqual(mock_ticker.return_value.history.call_count, 2)

    @patch('emers.data.yfinance_client.yf.Ticker')
    def test_fetch_news_data(self, mock_ticker):
        mock_ticker.return_value.news = self.sample_news_data

        items = self.client.fetch_news_data('AAPL')

        self.assertEqual(len(items), 2)
        self.assertEqual(items[0].date, '2023-01-03')
        self.assertEqual(items[0].publisher, 'Financial Times')
        self.assertEqual(items[1].title, 'Market outlook positive')
        self.assertEqual(items[1].date, '2023-01-04')
        self.assertEqual(items[1].url, 'https://example.com/news2')
        self.assertEqual(items[1].publisher, 'Reuters')
        self.assertTrue(all(item.symbol == 'AAPL' for item in items))

    @patch('emers.data.yfinance_client.yf.Ticker')
    def test_fetch_news_data_empty(self, mock_ticker):
        mock_ticker.return_value.news = []
        self.assertEqual(self.client.fetch_news_data('AAPL'), [])

    def test_rate_limit_sleeps_between_calls(self):
        client = YFinanceClient(rate_limit_delay=10.0)
        with patch('emers.data.yfinance_client.time.sleep') as mock_sleep:
            client._rate_limit()
            client._rate_limit()
        mock_sleep.assert_called_once()
        self.assertGreater(mock_sleep.call_args[0][0], 9.0)

    def test_retry_does_not_catch_programming_errors(self):
        func = Mock(side_effect=KeyError("bug"), __name__="func")
        with self.assertRaises(KeyError):
            self.client._retry_with_backoff(func)
        func.assert_called_once()


if __name__ == '__main__':
    unittest.main()
