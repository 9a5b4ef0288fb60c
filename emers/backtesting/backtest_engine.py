"""
Backtesting Engine for the market event analysis system.
Simulates a single-instrument strategy bar by bar with fixed notional positions.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

import pandas as pd

from emers.backtesting.performance_calculator import PerformanceCalculator
from emers.backtesting.strategies import CallableStrategy, SmaCrossoverStrategy
from emers.config.settings import BacktestConfig
from emers.data.price_series import PriceSeries
from emers.interfaces.trading_interfaces import (
    BacktestResult, ITradingStrategy, SignalDirection, Trade, TradeSide, TradingSignal
)
from emers.utils.errors import ErrorKind, Result
from emers.utils.logging_utils import log_backtest_summary

StrategyLike = Union[ITradingStrategy, Callable[[PriceSeries, int], TradingSignal]]


@dataclass
class OpenPosition:
    side: TradeSide
    entry_index: int
    entry_price: float


class BacktestEngine:
    """
    Backtesting engine that drives a strategy over one price series.

    Features:
    - Long and optional short positions of fixed notional size
    - Flat transaction cost on every fill
    - Realized capital kept apart from mark-to-market equity
    - Drawdown tracked on equity at every bar
    - Open positions closed on the last bar
    - Default 10/30 SMA crossover strategy
    """

    def __init__(self, config: Optional[BacktestConfig] = None):
        """
        Initialize backtesting engine.

        Args:
            config: Backtesting configuration parameters
        """
        self.config = config or BacktestConfig()
        self.performance_calculator = PerformanceCalculator(self.config)
        self.logger = logging.getLogger(__name__)

    def _refuse(self, message: str) -> Result:
        self.logger.error(f"{ErrorKind.INVALID_PARAMETER.describe()} {message}")
        return Result.failure(ErrorKind.INVALID_PARAMETER, message)

    @staticmethod
    def _resolve_strategy(strategy: Optional[StrategyLike]) -> ITradingStrategy:
        if strategy is None:
            return SmaCrossoverStrategy(10, 30)
        if isinstance(strategy, ITradingStrategy):
            return strategy
        if callable(strategy):
            return CallableStrategy(strategy, getattr(strategy, "__name__", "custom"))
        raise TypeError(f"Unsupported strategy type: {type(strategy).__name__}")

    def run_backtest(self, series: Optional[PriceSeries], strategy: Optional[StrategyLike] = None,
                     start_idx: int = 0, end_idx: Optional[int] = None) -> Result[BacktestResult]:
        """
        Run the strategy over bars ``start_idx..end_idx`` inclusive.

        At each bar a BUY whose strength reaches the entry threshold closes any
        short and opens a long at the close; a SELL closes any long and, when
        shorting is allowed, opens a short. Equity is marked to market on every
        bar and the open position is closed on the last bar.

        Args:
            series: Price series
            strategy: Strategy or ``fn(series, t) -> TradingSignal`` (default: 10/30 SMA crossover)
            start_idx: First bar
            end_idx: Last bar (default: last bar of the series)

        Returns:
            Result holding the BacktestResult, or a failed Result with INVALID_PARAMETER
            for a missing series, an inverted or out-of-range window, or fewer bars
            than the configured minimum
        """
        if series is None:
            return self._refuse("Invalid parameters for backtesting: series is None")

        n = len(series)
        end_idx = n - 1 if end_idx is None else end_idx
        if start_idx < 0 or end_idx >= n or start_idx >= end_idx:
            return self._refuse(f"Invalid backtest window [{start_idx}, {end_idx}] "
                                f"for {n} bars of {series.symbol}")
        bar_count = end_idx - start_idx + 1
        if bar_count < self.config.min_bars:
            return self._refuse(f"Backtest of {series.symbol} needs at least "
                                f"{self.config.min_bars} bars, got {bar_count}")

        try:
            strategy = self._resolve_strategy(strategy)
        except (TypeError, ValueError) as e:
            return self._refuse(str(e))

        self.logger.info(f"Starting backtest of {series.symbol} bars {start_idx}-{end_idx} "
                         f"using strategy '{strategy.name}'")
        strategy.prepare(series)
        trades, equity_curve, daily_returns = self._simulate(series, strategy, start_idx, end_idx)

        result = self.performance_calculator.build_result(
            self.config.initial_capital, trades, equity_curve, daily_returns, strategy.name)
        log_backtest_summary(series.symbol, self.performance_calculator.export_metrics_to_dict(result))
        return Result.success(result)

    def _simulate(self, series: PriceSeries, strategy: ITradingStrategy,
                  start_idx: int, end_idx: int) -> Tuple[List[Trade], List[float], List[float]]:
        cfg = self.config
        close = series.close
        capital = cfg.initial_capital
        position: Optional[OpenPosition] = None
        trades: List[Trade] = []
        equity_curve: List[float] = []
        daily_returns: List[float] = []

        for t in range(start_idx, end_idx + 1):
            price = float(close[t])
            # return of the position carried into this bar
            held = position.side.value if position else 0
            if held and t > 0 and close[t - 1] > 0:
                daily_returns.append(held * (price - close[t - 1]) / close[t - 1])
            else:
                daily_returns.append(0.0)
            signal = strategy.generate_signal(series, t)
            side = position.side if position else None
            actionable = signal.strength >= cfg.entry_threshold

            if signal.direction == SignalDirection.BUY and side != TradeSide.LONG and actionable:
                if position is not None:
                    capital += self._close(position, series, t, trades)
                position, capital = self._open(TradeSide.LONG, t, price, capital)

            elif signal.direction == SignalDirection.SELL and side != TradeSide.SHORT and actionable:
                if position is not None:
                    capital += self._close(position, series, t, trades)
                    position = None
                if cfg.allow_short:
                    position, capital = self._open(TradeSide.SHORT, t, price, capital)

            if t == end_idx and position is not None:
                capital += self._close(position, series, t, trades)
                position = None

            equity_curve.append(capital + self._unrealized(position, price))

        return trades, equity_curve, daily_returns

    def _open(self, side: TradeSide, t: int, price: float, capital: float) -> Tuple[OpenPosition, float]:
        """Open a position; the entry cost is charged to realized capital immediately."""
        self.logger.debug(f"Opening {side.name} at bar {t}, price {price:.4f}")
        entry_cost = self.config.transaction_cost * self.config.position_size
        return OpenPosition(side, t, price), capital - entry_cost

    def _close(self, position: OpenPosition, series: PriceSeries, t: int, trades: List[Trade]) -> float:
        """
        Close ``position`` at bar ``t`` and record the trade.

        Returns:
            Change in realized capital (gross P&L less the exit cost)
        """
        size = self.config.position_size
        cost = self.config.transaction_cost * size
        exit_price = float(series.close[t])
        gross = position.side.value * size * (exit_price - position.entry_price) / position.entry_price

        trades.append(Trade(
            entry_index=position.entry_index,
            exit_index=t,
            entry_price=position.entry_price,
            exit_price=exit_price,
            profit=gross - 2.0 * cost,
            side=position.side,
            entry_date=series.dates[position.entry_index],
            exit_date=series.dates[t],
        ))
        self.logger.debug(f"Closed {position.side.name} at bar {t}: profit {gross - 2.0 * cost:.2f}")
        return gross - cost

    def _unrealized(self, position: Optional[OpenPosition], price: float) -> float:
        if position is None or position.entry_price <= 0:
            return 0.0
        return (position.side.value * self.config.position_size
                * (price - position.entry_price) / position.entry_price)

    @staticmethod
    def export_results_to_dataframe(series: PriceSeries, result: BacktestResult,
                                    start_idx: int = 0) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """
        Trades and per-bar equity as DataFrames.

        Returns:
            Tuple of (trades_df, equity_df); equity is indexed by bar date
        """
        trades_df = pd.DataFrame([{
            'entry_date': t.entry_date,
            'exit_date': t.exit_date,
            'side': t.side.name,
            'entry_price': t.entry_price,
            'exit_price': t.exit_price,
            'profit': t.profit,
            'return_pct': t.return_pct,
        } for t in result.trades])

        dates = pd.to_datetime(list(series.dates[start_idx:start_idx + len(result.equity_curve)]))
        equity_df = pd.DataFrame({
            'equity': result.equity_curve,
            'daily_return': result.daily_returns,
        }, index=dates)
        return trades_df, equity_df
