"""
Performance Calculator for the market event analysis system.
Turns a simulated equity curve and trade list into backtest performance metrics.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from emers.config.settings import BacktestConfig
from emers.interfaces.trading_interfaces import BacktestResult, Trade
from emers.utils import numerics

PROFIT_FACTOR_CAP = 999.0


@dataclass
class TradeStatistics:
    """Trade-level aggregates."""
    total_trades: int = 0
    profitable_trades: int = 0
    win_rate: float = 0.0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    profit_factor: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    average_holding_bars: float = 0.0


class PerformanceCalculator:
    """
    Performance calculator for bar-by-bar backtests.

    Features:
    - Total and annualized return
    - Sharpe ratio against a daily risk-free rate
    - Peak capital and maximum drawdown from the equity curve
    - Win rate, profit factor and Calmar ratio
    - Risk assessment and letter grade for reports
    """

    def __init__(self, config: Optional[BacktestConfig] = None):
        """
        Initialize performance calculator.

        Args:
            config: Backtest configuration (risk-free rate and trading days per year)
        """
        self.config = config or BacktestConfig()
        self.logger = logging.getLogger(__name__)

    @property
    def daily_risk_free(self) -> float:
        return self.config.risk_free_rate / self.config.trading_days_per_year

    @staticmethod
    def total_return(initial_capital: float, final_capital: float) -> float:
        if initial_capital <= 0:
            return 0.0
        return (final_capital - initial_capital) / initial_capital

    def annualized_return(self, total_return: float, trading_days: int) -> float:
        """``(1 + total)^(252 / days) - 1``; 0 without trading days, -1 after total loss."""
        if trading_days <= 0:
            return 0.0
        growth = 1.0 + total_return
        if growth <= 0:
            return -1.0
        return growth ** (self.config.trading_days_per_year / trading_days) - 1.0

    def sharpe_ratio(self, daily_returns: Sequence[float]) -> float:
        """Annualized Sharpe ratio; 0 when returns are missing or constant."""
        if len(daily_returns) == 0:
            return 0.0
        sigma = numerics.stddev(daily_returns)
        if sigma < numerics.STDDEV_FLOOR:
            return 0.0
        excess = numerics.mean(daily_returns) - self.daily_risk_free
        return excess / sigma * math.sqrt(self.config.trading_days_per_year)

    @staticmethod
    def peak_and_drawdown(initial_capital: float, equity_curve: Sequence[float]) -> Tuple[float, float]:
        """
        Running peak and maximum peak-to-trough drawdown (fraction of peak).

        The peak starts at the initial capital so it never falls below it.
        """
        peak = initial_capital
        max_drawdown = 0.0
        for equity in equity_curve:
            peak = max(peak, equity)
            if peak > 0:
                max_drawdown = max(max_drawdown, (peak - equity) / peak)
        return peak, min(1.0, max(0.0, max_drawdown))

    def trade_statistics(self, trades: List[Trade]) -> TradeStatistics:
        """Win rate, profit factor and win/loss aggregates of completed trades."""
        if not trades:
            return TradeStatistics()

        profits = [t.profit for t in trades]
        wins = [p for p in profits if p > 0]
        losses = [p for p in profits if p <= 0]
        gross_profit = sum(wins)
        gross_loss = abs(sum(losses))

        if gross_loss > 0:
            profit_factor = min(PROFIT_FACTOR_CAP, gross_profit / gross_loss)
        else:
            profit_factor = PROFIT_FACTOR_CAP if gross_profit > 0 else 0.0

        return TradeStatistics(
            total_trades=len(trades),
            profitable_trades=len(wins),
            win_rate=len(wins) / len(trades),
            gross_profit=gross_profit,
            gross_loss=gross_loss,
            profit_factor=profit_factor,
            average_win=float(np.mean(wins)) if wins else 0.0,
            average_loss=float(np.mean(losses)) if losses else 0.0,
            largest_win=max(profits),
            largest_loss=min(profits),
            average_holding_bars=float(np.mean([t.exit_index - t.entry_index for t in trades])),
        )

    @staticmethod
    def calmar_ratio(annualized_return: float, max_drawdown: float) -> float:
        if max_drawdown < numerics.STDDEV_FLOOR:
            return 0.0
        return annualized_return / max_drawdown

    def build_result(self, initial_capital: float, trades: List[Trade],
                     equity_curve: List[float], daily_returns: List[float],
                     strategy_name: str = "") -> BacktestResult:
        """
        Assemble a BacktestResult.

        Final capital is the initial capital plus the profit of every closed trade.
        """
        final_capital = initial_capital + sum(t.profit for t in trades)
        total_return = self.total_return(initial_capital, final_capital)
        annualized = self.annualized_return(total_return, len(daily_returns))
        peak, max_drawdown = self.peak_and_drawdown(initial_capital, equity_curve)
        stats = self.trade_statistics(trades)

        result = BacktestResult(
            initial_capital=initial_capital,
            final_capital=final_capital,
            peak_capital=max(peak, final_capital),
            max_drawdown=max_drawdown,
            total_trades=stats.total_trades,
            profitable_trades=stats.profitable_trades,
            sharpe_ratio=self.sharpe_ratio(daily_returns),
            annualized_return=annualized,
            total_return=total_return,
            profit_factor=stats.profit_factor,
            calmar_ratio=self.calmar_ratio(annualized, max_drawdown),
            win_rate=stats.win_rate,
            trades=list(trades),
            equity_curve=list(equity_curve),
            daily_returns=list(daily_returns),
            strategy_name=strategy_name,
        )

        self.logger.info(f"Calculated backtest metrics: "
                         f"Return={total_return * 100:.2f}%, "
                         f"Sharpe={result.sharpe_ratio:.2f}, "
                         f"Drawdown={max_drawdown * 100:.2f}%")
        return result

    def generate_performance_report(self, result: BacktestResult) -> Dict[str, Any]:
        """
        Generate a performance report dictionary.

        Args:
            result: Backtest result

        Returns:
            Report with formatted summary, risk assessment and grade
        """
        return {
            'timestamp': datetime.now().isoformat(),
            'strategy': result.strategy_name,
            'performance_summary': {
                'initial_capital': f"{result.initial_capital:,.2f}",
                'final_capital': f"{result.final_capital:,.2f}",
                'total_return': f"{result.total_return * 100:.2f}%",
                'annualized_return': f"{result.annualized_return * 100:.2f}%",
                'sharpe_ratio': f"{result.sharpe_ratio:.2f}",
                'max_drawdown': f"{result.max_drawdown * 100:.2f}%",
                'win_rate': f"{result.win_rate * 100:.1f}%",
                'profit_factor': f"{result.profit_factor:.2f}",
                'calmar_ratio': f"{result.calmar_ratio:.2f}",
                'total_trades': result.total_trades,
            },
            'risk_assessment': self._assess_risk_level(result),
            'performance_grade': self._calculate_performance_grade(result),
        }

    def _assess_risk_level(self, result: BacktestResult) -> Dict[str, str]:
        """Assess risk level based on Sharpe ratio and drawdown."""
        drawdown_pct = result.max_drawdown * 100
        if result.sharpe_ratio > 2.0 and drawdown_pct < 5.0:
            risk_level = "LOW"
            description = "Excellent risk-adjusted returns with minimal drawdown"
        elif result.sharpe_ratio > 1.5 and drawdown_pct < 10.0:
            risk_level = "MODERATE"
            description = "Good risk-adjusted returns with acceptable drawdown"
        elif result.sharpe_ratio > 1.0 and drawdown_pct < 15.0:
            risk_level = "MODERATE-HIGH"
            description = "Reasonable returns but with elevated risk"
        else:
            risk_level = "HIGH"
            description = "High risk with potentially inadequate compensation"

        return {
            'risk_level': risk_level,
            'description': description,
            'sharpe_category': self._categorize_sharpe_ratio(result.sharpe_ratio),
            'drawdown_category': self._categorize_drawdown(drawdown_pct),
        }

    @staticmethod
    def _categorize_sharpe_ratio(sharpe_ratio: float) -> str:
        if sharpe_ratio > 3.0:
            return "EXCEPTIONAL"
        elif sharpe_ratio > 2.0:
            return "EXCELLENT"
        elif sharpe_ratio > 1.5:
            return "GOOD"
        elif sharpe_ratio > 1.0:
            return "ACCEPTABLE"
        else:
            return "POOR"

    @staticmethod
    def _categorize_drawdown(drawdown_pct: float) -> str:
        if drawdown_pct < 5.0:
            return "EXCELLENT"
        elif drawdown_pct < 10.0:
            return "GOOD"
        elif drawdown_pct < 15.0:
            return "ACCEPTABLE"
        elif drawdown_pct < 20.0:
            return "CONCERNING"
        else:
            return "POOR"

    @staticmethod
    def _calculate_performance_grade(result: BacktestResult) -> str:
        """Letter grade from annualized return, Sharpe, drawdown and win rate (25 points each)."""
        annual_pct = result.annualized_return * 100
        drawdown_pct = result.max_drawdown * 100
        win_pct = result.win_rate * 100
        score = 0

        for value, steps in (
            (annual_pct, ((20.0, 25), (15.0, 20), (10.0, 15), (5.0, 10))),
            (result.sharpe_ratio, ((2.0, 25), (1.5, 20), (1.0, 15), (0.5, 10))),
            (win_pct, ((65.0, 25), (60.0, 20), (55.0, 15), (50.0, 10))),
        ):
            score += next((points for threshold, points in steps if value >= threshold), 0)

        # lower drawdown is better
        score += next((points for threshold, points in ((5.0, 25), (8.0, 20), (12.0, 15), (20.0, 10))
                       if drawdown_pct <= threshold), 0)

        for threshold, grade in ((90, "A+"), (85, "A"), (80, "A-"), (75, "B+"), (70, "B"),
                                 (65, "B-"), (60, "C+"), (55, "C"), (50, "C-")):
            if score >= threshold:
                return grade
        return "F"

    @staticmethod
    def export_metrics_to_dict(result: BacktestResult) -> Dict[str, Any]:
        """Headline metrics as plain numbers."""
        return {
            'initial_capital': result.initial_capital,
            'final_capital': result.final_capital,
            'peak_capital': result.peak_capital,
            'total_return': result.total_return,
            'annualized_return': result.annualized_return,
            'sharpe_ratio': result.sharpe_ratio,
            'max_drawdown': result.max_drawdown,
            'profit_factor': result.profit_factor,
            'calmar_ratio': result.calmar_ratio,
            'win_rate': result.win_rate,
            'total_trades': result.total_trades,
            'profitable_trades': result.profitable_trades,
        }
