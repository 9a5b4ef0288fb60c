"""
Strategy evaluation and k-fold cross-validation over a single price series.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from emers.backtesting.backtest_engine import BacktestEngine
from emers.backtesting.strategies import StrategyType, create_strategy
from emers.backtesting.validation_metrics import ValidationMetrics, calculate_price_prediction_metrics
from emers.config.settings import BacktestConfig
from emers.data.price_series import PriceSeries
from emers.interfaces.trading_interfaces import BacktestResult, ITradingStrategy
from emers.utils.errors import ErrorKind, Result

logger = logging.getLogger(__name__)

SELECTION_TAIL = 0.10
METRIC_FIELDS = ("accuracy", "precision", "recall", "f1_score",
                 "mean_absolute_error", "root_mean_square_error", "r2_score")


@dataclass
class FoldResult:
    fold: int
    validation_start: int
    validation_end: int  # exclusive
    strategy: StrategyType
    metrics: ValidationMetrics
    backtest: Optional[BacktestResult] = None


@dataclass
class CrossValidationResult:
    """Per-fold results with mean, best and worst metrics across folds."""
    k: int
    folds: List[FoldResult] = field(default_factory=list)
    mean_metrics: ValidationMetrics = field(default_factory=ValidationMetrics)
    best_metrics: ValidationMetrics = field(default_factory=ValidationMetrics)
    worst_metrics: ValidationMetrics = field(default_factory=ValidationMetrics)
    accuracy_std: float = 0.0
    mean_backtest_return: float = 0.0


def fold_boundaries(n: int, k: int) -> List[Tuple[int, int]]:
    """
    Contiguous ``[start, end)`` folds of near-equal size.

    The ``n % k`` extra bars go one each to the leading folds.
    """
    base, extra = divmod(n, k)
    bounds = []
    start = 0
    for fold in range(k):
        size = base + (1 if fold < extra else 0)
        bounds.append((start, start + size))
        start += size
    return bounds


def training_indices(n: int, start: int, end: int) -> np.ndarray:
    """All bar positions outside ``[start, end)``."""
    return np.concatenate([np.arange(0, start), np.arange(end, n)]).astype(int)


class StrategyValidator:
    """
    Scores strategies on their price predictions and selects the best one.

    Features:
    - Prediction sweep with a configurable lookback and horizon
    - Directional accuracy, precision, recall and F1 plus MAE, RMSE and R-squared
    - Strategy selection on the tail of a training series
    - K-fold cross-validation with per-fold backtests
    """

    def __init__(self, config: Optional[BacktestConfig] = None):
        self.config = config or BacktestConfig()
        self.engine = BacktestEngine(self.config)

    def evaluate_strategy(self, series: PriceSeries, strategy: ITradingStrategy,
                          start_idx: Optional[int] = None,
                          end_idx: Optional[int] = None) -> ValidationMetrics:
        """
        Compare each bar's predicted price with the close ``prediction_horizon`` bars later.

        Bars before ``lookback`` are never scored. Strategies without a view
        predict no change.

        Args:
            series: Price series
            strategy: Strategy to evaluate
            start_idx: First bar to score (default: lookback)
            end_idx: Scoring stops before this bar (default: last bar minus the horizon)
        """
        lookback, horizon = self.config.lookback, self.config.prediction_horizon
        n = len(series)
        first = max(lookback, start_idx or 0)
        last = n - horizon if end_idx is None else min(end_idx, n - horizon)
        if first >= last:
            return ValidationMetrics()

        strategy.prepare(series)
        close = series.close
        predicted, actual, reference = [], [], []
        for j in range(first, last):
            current = float(close[j])
            view = strategy.predict(series, j)
            predicted.append(view.predicted_price if view is not None else current)
            actual.append(float(close[j + horizon]))
            reference.append(current)

        return calculate_price_prediction_metrics(predicted, actual, reference)

    def select_strategy(self, training: PriceSeries) -> StrategyType:
        """Strategy with the highest accuracy on the last 10% of ``training``; ties go to enum order."""
        n = len(training)
        tail_start = n - max(1, int(n * SELECTION_TAIL)) - self.config.prediction_horizon
        best_type, best_accuracy = StrategyType.DEFAULT, -1.0
        for strategy_type in StrategyType:
            accuracy = self.evaluate_strategy(training, create_strategy(strategy_type),
                                              start_idx=max(0, tail_start)).accuracy
            logger.debug(f"Selection accuracy of {strategy_type.value}: {accuracy:.4f}")
            if accuracy > best_accuracy:
                best_type, best_accuracy = strategy_type, accuracy
        return best_type

    def cross_validate(self, series: Optional[PriceSeries], k: int = 5,
                       strategy_name: Optional[str] = None,
                       show_progress: bool = False) -> Result[CrossValidationResult]:
        """
        K-fold cross-validation.

        Each fold is validated on its own contiguous bars; the remaining bars form
        the training series used to pick a strategy (unless ``strategy_name`` fixes
        it). Folds with at least ``min_bars`` bars are also backtested.

        Returns:
            Failed Result with INVALID_PARAMETER for a missing series, ``k < 2``,
            more folds than bars or an unknown strategy name
        """
        if series is None or k < 2 or k > len(series):
            message = (f"Invalid parameters for cross-validation: k={k}, "
                       f"bars={0 if series is None else len(series)}")
            logger.error(f"{ErrorKind.INVALID_PARAMETER.describe()} {message}")
            return Result.failure(ErrorKind.INVALID_PARAMETER, message)

        fixed: Optional[StrategyType] = None
        if strategy_name is not None:
            try:
                fixed = StrategyType.from_name(strategy_name)
            except ValueError as e:
                logger.error(f"{ErrorKind.INVALID_PARAMETER.describe()} {e}")
                return Result.failure(ErrorKind.INVALID_PARAMETER, str(e))

        n = len(series)
        logger.info(f"Starting {k}-fold cross-validation of {series.symbol} over {n} bars")
        result = CrossValidationResult(k=k)

        for fold, (start, end) in enumerate(tqdm(fold_boundaries(n, k), desc="Cross-validating",
                                                 unit="fold", disable=not show_progress)):
            training = series.take(training_indices(n, start, end))
            validation = series.slice(start, end)
            chosen = fixed or self.select_strategy(training)

            metrics = self.evaluate_strategy(validation, create_strategy(chosen))
            backtest = None
            if len(validation) >= self.config.min_bars:
                outcome = self.engine.run_backtest(validation, create_strategy(chosen))
                backtest = outcome.value if outcome.ok else None

            result.folds.append(FoldResult(fold, start, end, chosen, metrics, backtest))
            logger.info(f"Fold {fold + 1}/{k}: bars {start}-{end - 1}, strategy {chosen.value}, "
                        f"accuracy {metrics.accuracy:.4f}")

        self._aggregate(result)
        return Result.success(result)

    @staticmethod
    def _aggregate(result: CrossValidationResult) -> None:
        fold_metrics = [f.metrics for f in result.folds]
        result.mean_metrics = ValidationMetrics(
            **{name: float(np.mean([getattr(m, name) for m in fold_metrics])) for name in METRIC_FIELDS},
            sample_count=sum(m.sample_count for m in fold_metrics),
        )
        result.best_metrics = max(fold_metrics, key=lambda m: m.accuracy)
        result.worst_metrics = min(fold_metrics, key=lambda m: m.accuracy)
        result.accuracy_std = float(np.std([m.accuracy for m in fold_metrics]))

        returns = [f.backtest.total_return for f in result.folds if f.backtest is not None]
        result.mean_backtest_return = float(np.mean(returns)) if returns else 0.0


class ModelEvaluation:
    """
    Chronological train/test evaluation.

    The strategy is chosen on the training bars (or fixed by name), then scored
    and backtested on the following test bars.
    """

    def __init__(self, config: Optional[BacktestConfig] = None):
        self.validator = StrategyValidator(config)
        self.logger = logging.getLogger(__name__)

    def evaluate(self, series: PriceSeries, train_ratio: float = 0.8,
                 strategy_name: Optional[str] = None) -> Result[Dict]:
        if not 0.0 < train_ratio < 1.0:
            message = f"Train ratio must be between 0 and 1, got {train_ratio}"
            self.logger.error(f"{ErrorKind.INVALID_PARAMETER.describe()} {message}")
            return Result.failure(ErrorKind.INVALID_PARAMETER, message)
        try:
            fixed = StrategyType.from_name(strategy_name) if strategy_name else None
        except ValueError as e:
            self.logger.error(f"{ErrorKind.INVALID_PARAMETER.describe()} {e}")
            return Result.failure(ErrorKind.INVALID_PARAMETER, str(e))

        split = int(len(series) * train_ratio)
        training, test = series.slice(0, split), series.slice(split, len(series))
        chosen = fixed or self.validator.select_strategy(training)

        outcome = self.validator.engine.run_backtest(test, create_strategy(chosen))
        report = {
            'strategy': chosen.value,
            'train_bars': len(training),
            'test_bars': len(test),
            'train_metrics': self.validator.evaluate_strategy(training, create_strategy(chosen)),
            'test_metrics': self.validator.evaluate_strategy(test, create_strategy(chosen)),
            'test_backtest': outcome.value if outcome.ok else None,
        }
        self.logger.info(f"Train/test evaluation of {series.symbol} with {chosen.value}: "
                         f"test accuracy {report['test_metrics'].accuracy:.4f}")
        return Result.success(report)
