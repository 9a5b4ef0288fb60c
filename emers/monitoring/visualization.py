"""
Visualization of analysis and backtest results.
Renders price charts with patterns, signals and anomalies, equity curves and correlation heatmaps.
"""

import matplotlib
matplotlib.use('Agg')  # non-interactive backend
import matplotlib.pyplot as plt
import matplotlib.dates as mdates
import seaborn as sns
import pandas as pd
from datetime import datetime
from typing import List, Optional
import os

from emers.analysis.anomaly_detector import AnomalyResult
from emers.analysis.pattern_detector import CrossoverSignal, PricePattern
from emers.data.price_series import PriceSeries
from emers.interfaces.trading_interfaces import BacktestResult, SignalDirection
from emers.utils.logging_utils import get_logger


class AnalysisVisualizer:
    """
    Chart rendering for analysis output.

    Features:
    - Close price with pattern spans, crossover signals and anomaly markers
    - Equity curve and drawdown of a backtest
    - Return correlation heatmap across symbols
    - PNG export to a configurable directory
    """

    def __init__(self, output_dir: str = "data/visualizations"):
        """
        Initialize analysis visualizer.

        Args:
            output_dir: Directory to save visualization outputs
        """
        self.output_dir = output_dir
        self.logger = get_logger("AnalysisVisualizer")

        os.makedirs(output_dir, exist_ok=True)
        self._setup_plotting_style()

        self.logger.info(f"Analysis visualizer initialized with output dir: {output_dir}")

    def _setup_plotting_style(self):
        """Set up consistent plotting style."""
        plt.style.use('seaborn-v0_8')
        sns.set_palette("husl")
        plt.rcParams.update({
            'figure.figsize': (12, 8),
            'font.size': 10,
            'axes.titlesize': 14,
            'axes.labelsize': 12,
            'legend.fontsize': 10,
        })

    def _save_path(self, prefix: str, save_path: Optional[str]) -> str:
        if save_path is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            save_path = os.path.join(self.output_dir, f"{prefix}_{timestamp}.png")
        return save_path

    def plot_price_analysis(self, series: PriceSeries,
                            patterns: Optional[List[PricePattern]] = None,
                            signals: Optional[List[CrossoverSignal]] = None,
                            anomalies: Optional[List[AnomalyResult]] = None,
                            save_path: Optional[str] = None) -> str:
        """
        Plot closes with detected patterns, signals and anomalies.

        Returns:
            Path to saved plot, or an empty string if nothing could be plotted
        """
        if len(series) == 0:
            self.logger.warning("No price data available for price analysis plot")
            return ""

        try:
            dates = pd.to_datetime(list(series.dates))
            close = series.close
            fig, ax = plt.subplots(figsize=(14, 8))
            ax.plot(dates, close, linewidth=1.5, label='Close', color='#2E86AB')

            for pattern in patterns or []:
                if pattern.start_index == 0 and pattern.end_index == len(series) - 1:
                    continue  # seasonal patterns span the whole series
                color = '#C73E1D' if pattern.expected_move < 0 else '#3B8E3B'
                ax.axvspan(dates[pattern.start_index], dates[pattern.end_index],
                           color=color, alpha=0.15)
                ax.annotate(pattern.pattern_type.value, (dates[pattern.end_index], close[pattern.end_index]),
                            fontsize=8, color=color)

            buys = [s for s in signals or [] if s.direction == SignalDirection.BUY]
            sells = [s for s in signals or [] if s.direction == SignalDirection.SELL]
            if buys:
                ax.scatter([dates[s.index] for s in buys], [s.entry_price for s in buys],
                           marker='^', s=100, color='green', label='Buy signal', zorder=5)
            if sells:
                ax.scatter([dates[s.index] for s in sells], [s.entry_price for s in sells],
                           marker='v', s=100, color='red', label='Sell signal', zorder=5)
            if anomalies:
                ax.scatter([dates[a.index] for a in anomalies], [close[a.index] for a in anomalies],
                           marker='o', s=60, facecolors='none', edgecolors='orange',
                           label='Anomaly', zorder=4)

            ax.set_title(f'{series.symbol} Price Analysis', fontsize=16, fontweight='bold')
            ax.set_xlabel('Date')
            ax.set_ylabel('Price')
            ax.legend(loc='upper left')
            ax.grid(True, alpha=0.3)
            ax.xaxis.set_major_formatter(mdates.DateFormatter('%Y-%m'))
            plt.xticks(rotation=45)
            plt.tight_layout()

            save_path = self._save_path(f"{series.symbol}_price_analysis", save_path)
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            plt.close(fig)

            self.logger.info(f"Price analysis plot saved to: {save_path}")
            return save_path

        except (OSError, ValueError) as e:
            plt.close('all')
            self.logger.error(f"Error creating price analysis plot: {e}")
            return ""

    def plot_equity_curve(self, result: BacktestResult, dates: Optional[List[str]] = None,
                          save_path: Optional[str] = None) -> str:
        """
        Plot backtest equity and drawdown.

        Args:
            result: Backtest result
            dates: Bar dates aligned with the equity curve (default: bar numbers)
            save_path: Optional custom save path
        """
        if not result.equity_curve:
            self.logger.warning("No equity data available for equity curve plot")
            return ""

        try:
            index = pd.to_datetime(dates) if dates else pd.RangeIndex(len(result.equity_curve))
            equity = pd.Series(result.equity_curve, index=index)
            running_max = equity.expanding().max()
            drawdown = (equity / running_max - 1) * 100

            fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(14, 10))
            ax1.plot(equity.index, equity, linewidth=2, label='Equity', color='#2E86AB')
            ax1.plot(running_max.index, running_max, linewidth=1, label='Running Maximum',
                     color='red', alpha=0.7)
            ax1.axhline(y=result.initial_capital, color='black', linestyle='--', alpha=0.3)
            ax1.set_title(f'Equity Curve ({result.strategy_name or "strategy"})',
                          fontsize=14, fontweight='bold')
            ax1.set_ylabel('Equity')
            ax1.legend()
            ax1.grid(True, alpha=0.3)

            ax2.fill_between(drawdown.index, drawdown, 0, color='red', alpha=0.3, label='Drawdown')
            ax2.set_title('Drawdown', fontsize=14, fontweight='bold')
            ax2.set_ylabel('Drawdown (%)')
            ax2.legend()
            ax2.grid(True, alpha=0.3)

            stats_text = (f'Total Return: {result.total_return * 100:.2f}%\n'
                          f'Sharpe: {result.sharpe_ratio:.2f}\n'
                          f'Max Drawdown: {result.max_drawdown * 100:.2f}%\n'
                          f'Trades: {result.total_trades}')
            ax1.text(0.02, 0.98, stats_text, transform=ax1.transAxes, verticalalignment='top',
                     bbox=dict(boxstyle='round', facecolor='wheat', alpha=0.8))
            plt.tight_layout()

            save_path = self._save_path("equity_curve", save_path)
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            plt.close(fig)

            self.logger.info(f"Equity curve plot saved to: {save_path}")
            return save_path

        except (OSError, ValueError) as e:
            plt.close('all')
            self.logger.error(f"Error creating equity curve plot: {e}")
            return ""

    def plot_correlation_heatmap(self, matrix: pd.DataFrame, save_path: Optional[str] = None) -> str:
        """Plot a symbol-by-symbol correlation matrix."""
        if matrix.empty:
            self.logger.warning("No correlation data available for heatmap")
            return ""

        try:
            fig, ax = plt.subplots(figsize=(10, 8))
            sns.heatmap(matrix, annot=True, fmt='.2f', cmap='RdYlGn', center=0,
                        vmin=-1, vmax=1, ax=ax, square=True)
            ax.set_title('Daily Return Correlation', fontsize=14, fontweight='bold')
            plt.tight_layout()

            save_path = self._save_path("correlation_heatmap", save_path)
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            plt.close(fig)

            self.logger.info(f"Correlation heatmap saved to: {save_path}")
            return save_path

        except (OSError, ValueError) as e:
            plt.close('all')
            self.logger.error(f"Error creating correlation heatmap: {e}")
            return ""
