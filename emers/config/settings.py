"""
Configuration settings for the market event analysis system.
Dataclass sections combined into one environment-aware configuration object.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any


@dataclass
class DataConfig:
    """Data acquisition and storage configuration."""
    data_directory: str = "data"
    csv_cache_directory: str = "data/csv"
    events_database_path: str = "data/events.db"
    request_timeout: int = 30
    max_retries: int = 3
    rate_limit_delay: float = 0.1


@dataclass
class IndicatorConfig:
    """Technical indicator default parameters."""
    sma_period: int = 20
    ema_period: int = 14
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bollinger_period: int = 20
    bollinger_std: float = 2.0
    atr_period: int = 14
    adx_period: int = 14
    stochastic_k: int = 14
    stochastic_d: int = 3
    mfi_period: int = 14
    psar_step: float = 0.02
    psar_max: float = 0.2


@dataclass
class PatternConfig:
    """Chart pattern and crossover signal detection configuration."""
    lookback_bars: int = 60
    min_peak_separation: int = 10
    peak_similarity: float = 0.05
    min_trough_depth: float = 0.03
    shoulder_similarity: float = 0.10
    neckline_similarity: float = 0.05
    crossover_target: float = 0.05
    crossover_stop: float = 0.03
    max_results: int = 10


@dataclass
class AnomalyConfig:
    """Anomaly detection configuration."""
    window: int = 30
    combined_threshold: float = 2.5
    component_threshold: float = 2.0
    score_lookback: int = 20


@dataclass
class EventConfig:
    """Market event detection configuration."""
    price_move_threshold: float = 0.05
    volatility_spike_ratio: float = 2.0
    volume_spike_ratio: float = 2.0
    min_news_impact: int = 30
    similarity_threshold: float = 0.6


@dataclass
class BacktestConfig:
    """Backtesting configuration."""
    initial_capital: float = 10000.0
    position_size: float = 1000.0  # notional per trade
    allow_short: bool = False
    entry_threshold: float = 0.5
    transaction_cost: float = 0.001  # 0.1% of notional per fill
    risk_free_rate: float = 0.02  # annual
    trading_days_per_year: int = 252
    min_bars: int = 30
    lookback: int = 20
    prediction_horizon: int = 5

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.initial_capital <= 0:
            raise ValueError("Initial capital must be positive")
        if self.position_size <= 0:
            raise ValueError("Position size must be positive")
        if not (0 <= self.transaction_cost <= 1):
            raise ValueError("Transaction cost must be between 0 and 1")
        if not (0 <= self.entry_threshold <= 1):
            raise ValueError("Entry threshold must be between 0 and 1")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    log_level: str = "INFO"
    log_directory: str = "logs"
    log_file_format: str = "emers_{date}.log"
    max_log_files: int = 30
    log_rotation_size: str = "10MB"
    enable_console_logging: bool = True
    enable_file_logging: bool = True


class EmersConfig:
    """Main configuration class that combines all settings."""

    def __init__(self, environment: str = "development"):
        self.environment = environment
        self.data = DataConfig()
        self.indicators = IndicatorConfig()
        self.patterns = PatternConfig()
        self.anomalies = AnomalyConfig()
        self.events = EventConfig()
        self.backtest = BacktestConfig()
        self.logging = LoggingConfig()

        self._load_environment_config()

    def _load_environment_config(self):
        """Load environment-specific configuration overrides."""
        if self.environment == "production":
            self.logging.log_level = "WARNING"
        elif self.environment == "testing":
            self.logging.enable_file_logging = False
            self.logging.log_level = "DEBUG"
            self.backtest.initial_capital = 10000.0

    def validate_config(self) -> bool:
        """Validate configuration settings."""
        try:
            assert self.data.max_retries > 0
            assert self.data.request_timeout > 0

            assert self.indicators.macd_fast < self.indicators.macd_slow
            assert self.indicators.bollinger_std > 0
            assert 0 < self.indicators.psar_step <= self.indicators.psar_max

            assert self.patterns.lookback_bars > 0
            assert 0 < self.patterns.crossover_stop < 1
            assert 0 < self.patterns.crossover_target < 1

            assert self.anomalies.window > 1
            assert self.anomalies.combined_threshold > 0

            assert self.backtest.initial_capital > 0
            assert 0 <= self.backtest.transaction_cost < 1
            assert self.backtest.min_bars > 1

            return True
        except AssertionError:
            return False

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "environment": self.environment,
            "data": asdict(self.data),
            "indicators": asdict(self.indicators),
            "patterns": asdict(self.patterns),
            "anomalies": asdict(self.anomalies),
            "events": asdict(self.events),
            "backtest": asdict(self.backtest),
            "logging": asdict(self.logging)
        }
