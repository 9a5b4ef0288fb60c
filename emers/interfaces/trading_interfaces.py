"""
Trading interfaces for the market event analysis system.
Defines signal, trade and backtest result models and the strategy contract.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from emers.data.price_series import PriceSeries


class SignalDirection(Enum):
    """Direction of a trading signal; the value doubles as the target position."""
    SELL = -1
    HOLD = 0
    BUY = 1


class TradeSide(Enum):
    LONG = 1
    SHORT = -1


@dataclass
class TradingSignal:
    """Trading signal produced by a strategy at one bar."""
    direction: SignalDirection
    strength: float = 0.0
    price: float = 0.0
    predicted_price: float = 0.0
    stop_loss: float = 0.0
    take_profit: float = 0.0
    description: str = ""

    @property
    def position(self) -> int:
        return self.direction.value

    @classmethod
    def hold(cls, price: float = 0.0) -> "TradingSignal":
        return cls(SignalDirection.HOLD, 0.0, price, price)


@dataclass
class Trade:
    """Completed round trip."""
    entry_index: int
    exit_index: int
    entry_price: float
    exit_price: float
    profit: float
    side: TradeSide
    entry_date: str = ""
    exit_date: str = ""

    @property
    def return_pct(self) -> float:
        if self.entry_price == 0:
            return 0.0
        return self.side.value * (self.exit_price - self.entry_price) / self.entry_price


@dataclass
class BacktestResult:
    """Backtest outcome with headline performance figures and the trade list."""
    initial_capital: float
    final_capital: float
    peak_capital: float
    max_drawdown: float
    total_trades: int
    profitable_trades: int
    sharpe_ratio: float
    annualized_return: float
    total_return: float = 0.0
    profit_factor: float = 0.0
    calmar_ratio: float = 0.0
    win_rate: float = 0.0
    trades: List[Trade] = field(default_factory=list)
    equity_curve: List[float] = field(default_factory=list)
    daily_returns: List[float] = field(default_factory=list)
    strategy_name: str = ""


class ITradingStrategy(ABC):
    """Interface for strategies driven bar by bar over a price series."""

    name: str = "strategy"

    def prepare(self, series: PriceSeries) -> None:
        """Precompute indicator state for ``series``. Called once before the bar loop."""

    @abstractmethod
    def generate_signal(self, series: PriceSeries, t: int) -> TradingSignal:
        """
        Produce the signal for bar ``t``.

        Implementations may read bars ``0..t`` only.
        """
        pass

    def predict(self, series: PriceSeries, t: int) -> Optional[TradingSignal]:
        """Signal used for price-prediction validation; None when no view can be formed."""
        signal = self.generate_signal(series, t)
        return signal if signal.predicted_price > 0 else None
