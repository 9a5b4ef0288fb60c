"""
Built-in trading strategies.
Each strategy turns indicator state at bar t into a TradingSignal.
"""

import logging
from enum import Enum
from typing import Callable, Dict, Optional

from emers.data.price_series import PriceSeries
from emers.data.technical_indicators import TechnicalIndicators
from emers.interfaces.trading_interfaces import ITradingStrategy, SignalDirection, TradingSignal

logger = logging.getLogger(__name__)


class StrategyType(Enum):
    """Closed set of named strategies accepted at the boundary."""
    DEFAULT = "default"
    MOMENTUM = "momentum"
    MEAN_REVERSION = "mean-reversion"
    BREAKOUT = "breakout"
    EVENT_BASED = "event-based"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "StrategyType":
        """
        Parse a strategy name ("mean_reversion" and "mean-reversion" are equivalent).

        Raises:
            ValueError: If the name is not a known strategy
        """
        if name is None:
            return cls.DEFAULT
        key = name.strip().lower().replace("_", "-")
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unknown strategy '{name}'. Choose from: "
                         f"{', '.join(m.value for m in cls)}")


def _signal(direction: SignalDirection, strength: float, price: float, predicted: float,
            description: str) -> TradingSignal:
    if direction == SignalDirection.BUY:
        stop, target = price * 0.97, max(predicted, price)
    elif direction == SignalDirection.SELL:
        stop, target = price * 1.03, min(predicted, price)
    else:
        stop, target = 0.0, 0.0
    return TradingSignal(direction=direction, strength=strength, price=price,
                         predicted_price=predicted, stop_loss=stop, take_profit=target,
                         description=description)


class IndicatorStrategy(ITradingStrategy):
    """
    Base for strategies reading precomputed indicators.

    Indicators are computed over the whole series once; the value at bar t only
    depends on bars 0..t, so reading it at t does not look ahead.
    """

    def __init__(self):
        self._prepared_for: Optional[PriceSeries] = None

    def prepare(self, series: PriceSeries) -> None:
        self._compute(series)
        self._prepared_for = series

    def _ensure_prepared(self, series: PriceSeries) -> None:
        if self._prepared_for is not series:
            self.prepare(series)

    def _compute(self, series: PriceSeries) -> None:
        """Compute indicator state for ``series``."""

    def generate_signal(self, series: PriceSeries, t: int) -> TradingSignal:
        self._ensure_prepared(series)
        return self._signal_at(series, t, float(series.close[t]))

    def _signal_at(self, series: PriceSeries, t: int, price: float) -> TradingSignal:
        raise NotImplementedError


class MomentumStrategy(IndicatorStrategy):
    """RSI extremes first, then the sign of the MACD histogram."""

    name = StrategyType.MOMENTUM.value

    def _compute(self, series: PriceSeries) -> None:
        self.rsi = TechnicalIndicators.calculate_rsi(series, 14)
        _, _, self.histogram = TechnicalIndicators.calculate_macd(series)

    def _signal_at(self, series, t, price):
        rsi = self.rsi.at(t)
        hist = self.histogram.at(t)
        if rsi is not None and rsi > 70:
            return _signal(SignalDirection.SELL, 0.8, price, price * 0.98, f"RSI overbought ({rsi:.1f})")
        if rsi is not None and rsi < 30:
            return _signal(SignalDirection.BUY, 0.8, price, price * 1.02, f"RSI oversold ({rsi:.1f})")
        if hist is not None and hist > 0:
            return _signal(SignalDirection.BUY, 0.6, price, price * 1.01, "MACD histogram positive")
        if hist is not None and hist < 0:
            return _signal(SignalDirection.SELL, 0.6, price, price * 0.99, "MACD histogram negative")
        return TradingSignal.hold(price)


class MeanReversionStrategy(IndicatorStrategy):
    """Bollinger band breaches predict a return to the middle band."""

    name = StrategyType.MEAN_REVERSION.value

    def _compute(self, series: PriceSeries) -> None:
        self.upper, self.middle, self.lower = TechnicalIndicators.calculate_bollinger_bands(series, 20, 2.0)

    def _signal_at(self, series, t, price):
        upper, middle, lower = self.upper.at(t), self.middle.at(t), self.lower.at(t)
        if upper is None:
            return TradingSignal.hold(price)
        if price > upper:
            return _signal(SignalDirection.SELL, 0.7, price, middle, "Close above upper Bollinger band")
        if price < lower:
            return _signal(SignalDirection.BUY, 0.7, price, middle, "Close below lower Bollinger band")
        return TradingSignal.hold(price)


class BreakoutStrategy(ITradingStrategy):
    """
    Breakout against the high/low of the preceding 10 bars.

    A close more than 2% above the recent high predicts a 3% rise; more than 2%
    below the recent low predicts a 3% drop.
    """

    name = StrategyType.BREAKOUT.value

    def __init__(self, window: int = 10):
        self.window = window

    def generate_signal(self, series: PriceSeries, t: int) -> TradingSignal:
        price = float(series.close[t])
        if t < self.window:
            return TradingSignal.hold(price)
        recent_high = float(series.high[t - self.window:t].max())
        recent_low = float(series.low[t - self.window:t].min())
        if price > recent_high * 1.02:
            return _signal(SignalDirection.BUY, 0.8, price, price * 1.03,
                           f"Breakout above {recent_high:.2f}")
        if price < recent_low * 0.98:
            return _signal(SignalDirection.SELL, 0.8, price, price * 0.97,
                           f"Breakdown below {recent_low:.2f}")
        return TradingSignal.hold(price)


class EventBasedStrategy(ITradingStrategy):
    """Volume spikes (more than twice the 20-bar average) as an event proxy; trade with the last move."""

    name = StrategyType.EVENT_BASED.value

    def __init__(self, lookback: int = 20, spike_ratio: float = 2.0):
        self.lookback = lookback
        self.spike_ratio = spike_ratio

    def generate_signal(self, series: PriceSeries, t: int) -> TradingSignal:
        price = float(series.close[t])
        if t < self.lookback:
            return TradingSignal.hold(price)
        avg_volume = float(series.volume[t - self.lookback:t].mean())
        if avg_volume <= 0 or series.volume[t] <= avg_volume * self.spike_ratio:
            return TradingSignal.hold(price)
        if series.close[t] - series.close[t - 1] > 0:
            return _signal(SignalDirection.BUY, 0.7, price, price * 1.02, "Volume spike on up move")
        return _signal(SignalDirection.SELL, 0.7, price, price * 0.98, "Volume spike on down move")


class DefaultStrategy(IndicatorStrategy):
    """
    Combined vote of RSI, MACD histogram, Bollinger bands and EMA distance.

    A view is only formed when at least two indicators agree on having an
    opinion; strength is the fraction of indicators that voted.
    """

    name = StrategyType.DEFAULT.value

    def _compute(self, series: PriceSeries) -> None:
        self.rsi = TechnicalIndicators.calculate_rsi(series, 14)
        _, _, self.histogram = TechnicalIndicators.calculate_macd(series)
        self.upper, _, self.lower = TechnicalIndicators.calculate_bollinger_bands(series, 20, 2.0)
        self.ema = TechnicalIndicators.calculate_ema(series, 14)

    def _signal_at(self, series, t, price):
        votes = 0
        change = 0.0

        rsi = self.rsi.at(t)
        if rsi is not None and rsi > 70:
            change, votes = change - 0.01, votes + 1
        elif rsi is not None and rsi < 30:
            change, votes = change + 0.01, votes + 1

        hist = self.histogram.at(t)
        if hist is not None and hist > 0:
            change, votes = change + 0.01, votes + 1
        elif hist is not None and hist < 0:
            change, votes = change - 0.01, votes + 1

        upper, lower = self.upper.at(t), self.lower.at(t)
        if upper is not None and price > upper:
            change, votes = change - 0.01, votes + 1
        elif lower is not None and price < lower:
            change, votes = change + 0.01, votes + 1

        ema = self.ema.at(t)
        if ema is not None and price > ema * 1.02:
            change, votes = change - 0.005, votes + 1
        elif ema is not None and price < ema * 0.98:
            change, votes = change + 0.005, votes + 1

        if votes < 2 or change == 0:
            return TradingSignal.hold(price)
        direction = SignalDirection.BUY if change > 0 else SignalDirection.SELL
        return _signal(direction, votes / 4.0, price, price * (1.0 + change),
                       f"{votes} indicators agree on {direction.name}")


class SmaCrossoverStrategy(IndicatorStrategy):
    """Short/long SMA crossover with strength ``min(1, 0.5 + 10 * gap / long)``."""

    def __init__(self, short_period: int = 10, long_period: int = 30,
                 target: float = 0.05, stop: float = 0.03):
        super().__init__()
        if short_period <= 0 or long_period <= short_period:
            raise ValueError(f"Invalid SMA crossover periods: {short_period}/{long_period}")
        self.short_period = short_period
        self.long_period = long_period
        self.target = target
        self.stop = stop
        self.name = f"sma_crossover:{short_period},{long_period}"

    def _compute(self, series: PriceSeries) -> None:
        self.short_sma = TechnicalIndicators.calculate_sma(series, self.short_period)
        self.long_sma = TechnicalIndicators.calculate_sma(series, self.long_period)

    def _signal_at(self, series, t, price):
        prev_s, prev_l = self.short_sma.at(t - 1), self.long_sma.at(t - 1)
        cur_s, cur_l = self.short_sma.at(t), self.long_sma.at(t)
        if None in (prev_s, prev_l, cur_s, cur_l) or cur_l <= 0:
            return TradingSignal.hold(price)

        strength = min(1.0, 0.5 + 10.0 * abs(cur_s - cur_l) / cur_l)
        if prev_s <= prev_l and cur_s > cur_l:
            return TradingSignal(SignalDirection.BUY, strength, price, price * (1 + self.target),
                                 price * (1 - self.stop), price * (1 + self.target),
                                 "Short SMA crossed above long SMA")
        if prev_s >= prev_l and cur_s < cur_l:
            return TradingSignal(SignalDirection.SELL, strength, price, price * (1 - self.target),
                                 price * (1 + self.stop), price * (1 - self.target),
                                 "Short SMA crossed below long SMA")
        return TradingSignal.hold(price)


class CallableStrategy(ITradingStrategy):
    """Adapter for a user-supplied ``fn(series, t) -> TradingSignal``."""

    def __init__(self, fn: Callable[[PriceSeries, int], TradingSignal], name: str = "custom"):
        self.fn = fn
        self.name = name

    def generate_signal(self, series: PriceSeries, t: int) -> TradingSignal:
        return self.fn(series, t)


_REGISTRY: Dict[StrategyType, Callable[[], ITradingStrategy]] = {
    StrategyType.DEFAULT: DefaultStrategy,
    StrategyType.MOMENTUM: MomentumStrategy,
    StrategyType.MEAN_REVERSION: MeanReversionStrategy,
    StrategyType.BREAKOUT: BreakoutStrategy,
    StrategyType.EVENT_BASED: EventBasedStrategy,
}


def create_strategy(strategy_type: StrategyType) -> ITradingStrategy:
    logger.debug(f"Creating {strategy_type.value} strategy")
    return _REGISTRY[strategy_type]()


def parse_strategy(spec: str) -> ITradingStrategy:
    """
    Build a strategy from its command-line form.

    Accepts the named strategies and ``sma_crossover:short,long``.

    Raises:
        ValueError: If the name or the crossover parameters are invalid
    """
    if spec.strip().lower().startswith("sma_crossover"):
        _, _, params = spec.partition(":")
        if not params:
            return SmaCrossoverStrategy()
        try:
            short, long = (int(p) for p in params.split(","))
        except ValueError as e:
            raise ValueError(f"Invalid sma_crossover parameters '{params}', "
                             f"expected 'short,long'") from e
        return SmaCrossoverStrategy(short, long)
    return create_strategy(StrategyType.from_name(spec))
