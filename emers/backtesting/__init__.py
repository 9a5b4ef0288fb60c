"""
Backtesting module.
Provides the backtest engine, strategies, performance calculation and strategy validation.
"""

from .backtest_engine import BacktestEngine
from .performance_calculator import PerformanceCalculator
from .strategies import StrategyType, create_strategy, parse_strategy
from .cross_validation import StrategyValidator, ModelEvaluation

__all__ = ['BacktestEngine', 'PerformanceCalculator', 'StrategyType', 'create_strategy',
           'parse_strategy', 'StrategyValidator', 'ModelEvaluation']
