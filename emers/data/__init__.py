"""
Market data module.
Contains the price series model, indicator engine, sanitizing, CSV caching and remote price sources.
"""

from .price_series import PricePoint, PriceSeries
from .technical_indicators import TechnicalIndicators, EventAdjustedIndicators, IndicatorSeries
from .data_processor import DataSanitizer
from .data_storage import CsvPriceCache
from .yfinance_client import YFinanceClient

__all__ = ['PricePoint', 'PriceSeries', 'TechnicalIndicators', 'EventAdjustedIndicators',
           'IndicatorSeries', 'DataSanitizer', 'CsvPriceCache', 'YFinanceClient']
