"""
Market event module.
Scores news into events, stores them and analyses their impact on prices.
"""

from .news_scorer import NewsScorer
from .event_database import EventDatabase, EventStatistics
from .event_analysis import EventAnalyzer

__all__ = ['NewsScorer', 'EventDatabase', 'EventStatistics', 'EventAnalyzer']
