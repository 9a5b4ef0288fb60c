"""
Historical analysis façade.
Summarizes one symbol's history and threads summaries and correlations through sets of symbols.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

from emers.analysis.pattern_detector import PatternDetector, PricePattern
from emers.analysis.seasonality import SeasonalAnalyzer
from emers.analysis.similarity import pearson_correlation
from emers.backtesting.backtest_engine import BacktestEngine
from emers.backtesting.strategies import parse_strategy
from emers.config.settings import BacktestConfig, PatternConfig
from emers.context import AnalysisContext
from emers.data.price_series import PriceSeries
from emers.interfaces.trading_interfaces import BacktestResult
from emers.utils import numerics
from emers.utils.errors import EmersError, ErrorKind, Result

logger = logging.getLogger(__name__)

POST_PATTERN_BARS = 20
PATTERN_SCAN_LIMIT = 100


@dataclass
class HistoricalSummary:
    """Headline statistics of one price history."""
    symbol: str
    start_date: str
    end_date: str
    bars: int
    mean_return: float
    annualized_return: float
    annualized_volatility: float
    max_drawdown: float
    sharpe_ratio: float
    best_day: float
    best_day_date: str
    worst_day: float
    worst_day_date: str
    pattern_counts: Dict[str, int] = field(default_factory=dict)
    avg_post_pattern_return: float = 0.0


def max_drawdown(close: np.ndarray) -> float:
    """Largest peak-to-trough fall of closes as a fraction of the peak."""
    if close.size == 0:
        return 0.0
    peaks = np.maximum.accumulate(close)
    with np.errstate(divide='ignore', invalid='ignore'):
        drawdowns = np.where(peaks > 0, (peaks - close) / peaks, 0.0)
    return float(drawdowns.max())


class HistoricalAnalyzer:
    """
    Façade over the pattern, seasonality and backtest components.

    Features:
    - Return, volatility, drawdown and Sharpe summary of a series
    - Best and worst day with their dates
    - Pattern counts by type and average return after patterns
    - Cache-first summaries of symbols through an AnalysisContext
    - Pairwise return correlation across symbols
    """

    def __init__(self, context: Optional[AnalysisContext] = None,
                 pattern_config: Optional[PatternConfig] = None,
                 backtest_config: Optional[BacktestConfig] = None):
        self.context = context
        if context is not None:
            pattern_config = pattern_config or context.config.patterns
            backtest_config = backtest_config or context.config.backtest
        self.trading_days = (backtest_config or BacktestConfig()).trading_days_per_year
        self.pattern_detector = PatternDetector(pattern_config)
        self.seasonal_analyzer = SeasonalAnalyzer()
        self.backtest_engine = BacktestEngine(backtest_config)

    def summarize(self, series: Optional[PriceSeries]) -> Result[HistoricalSummary]:
        """
        Summary statistics of ``series``.

        Annualized return compounds the daily returns to a 252-day year;
        volatility is the population deviation of daily returns times sqrt(252);
        Sharpe is their ratio (0 when volatility is 0).

        Returns:
            Failed Result with INSUFFICIENT_DATA for fewer than two bars
        """
        if series is None or len(series) < 2:
            message = f"Need at least 2 bars to summarize, got {0 if series is None else len(series)}"
            logger.warning(f"{ErrorKind.INSUFFICIENT_DATA.describe()} {message}")
            return Result.failure(ErrorKind.INSUFFICIENT_DATA, message)

        returns = series.returns()
        growth = float(np.prod(1.0 + returns))
        annualized = growth ** (self.trading_days / returns.size) - 1.0 if growth > 0 else -1.0
        volatility = numerics.stddev(returns) * math.sqrt(self.trading_days)
        best, worst = int(np.argmax(returns)), int(np.argmin(returns))

        patterns = self.pattern_detector.detect_price_patterns(series, PATTERN_SCAN_LIMIT)
        seasonal = self.seasonal_analyzer.detect_seasonal_patterns(series)
        counts: Dict[str, int] = {}
        for pattern in patterns + seasonal:
            counts[pattern.pattern_type.value] = counts.get(pattern.pattern_type.value, 0) + 1

        summary = HistoricalSummary(
            symbol=series.symbol,
            start_date=series.dates[0],
            end_date=series.dates[-1],
            bars=len(series),
            mean_return=numerics.mean(returns),
            annualized_return=annualized,
            annualized_volatility=volatility,
            max_drawdown=max_drawdown(series.close),
            sharpe_ratio=annualized / volatility if volatility > 0 else 0.0,
            best_day=float(returns[best]),
            best_day_date=series.dates[best + 1],
            worst_day=float(returns[worst]),
            worst_day_date=series.dates[worst + 1],
            pattern_counts=counts,
            avg_post_pattern_return=self._post_pattern_return(series, patterns),
        )
        logger.info(f"Summarized {series.symbol}: annualized {annualized:.2%}, "
                    f"volatility {volatility:.2%}, drawdown {summary.max_drawdown:.2%}")
        return Result.success(summary)

    @staticmethod
    def _post_pattern_return(series: PriceSeries, patterns: List[PricePattern]) -> float:
        """Mean return over the 20 bars after each pattern's end; 0 when none has 20 bars after it."""
        close = series.close
        moves = [(close[p.end_index + POST_PATTERN_BARS] - close[p.end_index]) / close[p.end_index]
                 for p in patterns
                 if p.end_index + POST_PATTERN_BARS < close.size and close[p.end_index] > 0]
        return float(np.mean(moves)) if moves else 0.0

    def _require_context(self) -> AnalysisContext:
        if self.context is None:
            raise EmersError("An AnalysisContext is required to load symbols", ErrorKind.INVALID_PARAMETER)
        return self.context

    def summarize_symbol(self, symbol: str, start_date: str, end_date: str) -> Result[HistoricalSummary]:
        """Load ``symbol`` through the context (cache first) and summarize it."""
        context = self._require_context()
        try:
            series = context.load_prices(symbol, start_date, end_date)
        except EmersError as e:
            logger.error(f"Failed to load {symbol}: {e}")
            return Result.failure(e.kind, e.message)
        return self.summarize(series)

    def load_symbols(self, symbols: Sequence[str], start_date: str,
                     end_date: str) -> Dict[str, PriceSeries]:
        """Load several symbols; failures are logged and skipped."""
        context = self._require_context()
        loaded = {}
        for symbol in tqdm(symbols, desc="Loading prices", unit="symbol"):
            try:
                loaded[symbol] = context.load_prices(symbol, start_date, end_date)
            except EmersError as e:
                logger.error(f"Failed to load {symbol}: {e}")
        return loaded

    def batch_summarize(self, series_by_symbol: Mapping[str, PriceSeries]) -> Dict[str, HistoricalSummary]:
        """Summaries of every series that can be summarized."""
        summaries = {}
        for symbol, series in tqdm(series_by_symbol.items(), desc="Summarizing", unit="symbol"):
            result = self.summarize(series)
            if result.ok:
                summaries[symbol] = result.value
        return summaries

    @staticmethod
    def correlation_matrix(series_by_symbol: Mapping[str, PriceSeries]) -> pd.DataFrame:
        """
        Pairwise Pearson correlation of daily returns.

        Return series are truncated to the shortest common length; the diagonal is 1.
        """
        symbols = list(series_by_symbol)
        returns = {s: series_by_symbol[s].returns() for s in symbols}
        common = min((r.size for r in returns.values()), default=0)
        matrix = pd.DataFrame(np.eye(len(symbols)), index=symbols, columns=symbols)
        for i, a in enumerate(symbols):
            for b in symbols[i + 1:]:
                value = pearson_correlation(returns[a][:common], returns[b][:common])
                matrix.loc[a, b] = matrix.loc[b, a] = value
        return matrix

    def test_sma_crossover_strategy(self, series: PriceSeries,
                                    parameters: str = "sma_crossover:10,30") -> Result[BacktestResult]:
        """
        Backtest an SMA crossover given as ``"sma_crossover:short,long"``.

        Returns:
            Failed Result with INVALID_PARAMETER for malformed parameters
        """
        if not parameters.strip().lower().startswith("sma_crossover"):
            message = f"Expected 'sma_crossover:short,long', got '{parameters}'"
            logger.error(f"{ErrorKind.INVALID_PARAMETER.describe()} {message}")
            return Result.failure(ErrorKind.INVALID_PARAMETER, message)
        try:
            strategy = parse_strategy(parameters)
        except ValueError as e:
            logger.error(f"{ErrorKind.INVALID_PARAMETER.describe()} {e}")
            return Result.failure(ErrorKind.INVALID_PARAMETER, str(e))
        return self.backtest_engine.run_backtest(series, strategy)
