"""
Historical analysis module.
Provides pattern, anomaly, seasonality, volatility and similarity analysis of price series.
"""

from .pattern_detector import PatternDetector, PatternType, PricePattern, CrossoverSignal
from .anomaly_detector import AnomalyDetector, AnomalyResult
from .seasonality import SeasonalAnalyzer
from .volatility import VolatilityPredictor
from .historical_analysis import HistoricalAnalyzer, HistoricalSummary

__all__ = ['PatternDetector', 'PatternType', 'PricePattern', 'CrossoverSignal', 'AnomalyDetector',
           'AnomalyResult', 'SeasonalAnalyzer', 'VolatilityPredictor', 'HistoricalAnalyzer',
           'HistoricalSummary']
