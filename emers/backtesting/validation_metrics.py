"""
Validation metrics for event detection and price prediction.
Also covers validation reports, JSON persistence of metrics and regression checks against a baseline.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import date as date_cls, datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
from sklearn.metrics import (
    accuracy_score, mean_absolute_error, mean_squared_error, precision_recall_fscore_support, r2_score
)

from emers.events.news_scorer import tokenize
from emers.interfaces.event_interfaces import EventRecord
from emers.utils.errors import ErrorKind, IOFailureError

logger = logging.getLogger(__name__)

FLAT_TOLERANCE = 1e-4
MATCH_THRESHOLD = 0.5
REGRESSION_TOLERANCE = 0.05

PathLike = Union[str, Path]


@dataclass
class ValidationMetrics:
    """Classification and regression quality of a set of predictions."""
    accuracy: float = 0.0
    precision: float = 0.0
    recall: float = 0.0
    f1_score: float = 0.0
    mean_absolute_error: float = 0.0
    root_mean_square_error: float = 0.0
    r2_score: float = 0.0
    sample_count: int = 0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "ValidationMetrics":
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)


@dataclass
class RegressionTestResult:
    passed: bool
    current: ValidationMetrics
    baseline: ValidationMetrics
    failures: List[str] = field(default_factory=list)


def direction(change: float, tolerance: float = FLAT_TOLERANCE) -> int:
    """-1, 0 or 1; moves smaller than ``tolerance`` count as flat."""
    if abs(change) < tolerance:
        return 0
    return 1 if change > 0 else -1


def calculate_price_prediction_metrics(predicted: Sequence[float], actual: Sequence[float],
                                       reference: Optional[Sequence[float]] = None) -> ValidationMetrics:
    """
    Directional and error metrics of price predictions.

    Directions are taken against ``reference`` (the price at prediction time) when
    given, otherwise against the previous element of each sequence. Precision,
    recall and F1 are support-weighted over the up/flat/down classes.

    Returns:
        Zeroed metrics when the inputs are empty or of different lengths
    """
    predicted = np.asarray(predicted, dtype=float)
    actual = np.asarray(actual, dtype=float)
    if predicted.size == 0 or predicted.size != actual.size:
        logger.error(f"{ErrorKind.INVALID_PARAMETER.describe()} Invalid parameters for price "
                     f"prediction metrics: {predicted.size} predicted vs {actual.size} actual")
        return ValidationMetrics()

    if reference is not None:
        reference = np.asarray(reference, dtype=float)
        predicted_dir = [direction(p - r) for p, r in zip(predicted, reference)]
        actual_dir = [direction(a - r) for a, r in zip(actual, reference)]
    else:
        predicted_dir = [direction(c) for c in np.diff(predicted)]
        actual_dir = [direction(c) for c in np.diff(actual)]

    metrics = ValidationMetrics(
        mean_absolute_error=float(mean_absolute_error(actual, predicted)),
        root_mean_square_error=float(math.sqrt(mean_squared_error(actual, predicted))),
        r2_score=float(r2_score(actual, predicted)) if actual.size >= 2 else 0.0,
        sample_count=int(actual.size),
    )

    if actual_dir:
        precision, recall, f1, _ = precision_recall_fscore_support(
            actual_dir, predicted_dir, labels=[-1, 0, 1], average="weighted", zero_division=0)
        metrics.accuracy = float(accuracy_score(actual_dir, predicted_dir))
        metrics.precision, metrics.recall, metrics.f1_score = float(precision), float(recall), float(f1)

    return metrics


def _date_closeness(first: str, second: str) -> float:
    if first == second:
        return 0.4
    try:
        gap = abs((date_cls.fromisoformat(first) - date_cls.fromisoformat(second)).days)
    except ValueError:
        return 0.0
    return 0.2 if gap <= 3 else 0.0


def _jaccard(a: str, b: str) -> float:
    ta, tb = tokenize(a, min_length=1), tokenize(b, min_length=1)
    union = ta | tb
    return len(ta & tb) / len(union) if union else 0.0


def event_match_score(predicted: EventRecord, actual: EventRecord) -> float:
    """
    Similarity used to pair detected events with reference events.

    Date proximity 0.4 (same day) or 0.2 (within 3 days), title overlap 0.3,
    description overlap 0.1, sentiment and impact closeness 0.1 each.
    """
    score = _date_closeness(predicted.date, actual.date)
    score += 0.3 * _jaccard(predicted.title, actual.title)
    score += 0.1 * _jaccard(predicted.description, actual.description)
    score += 0.1 * (1.0 - abs(predicted.sentiment - actual.sentiment) / 2.0)
    score += 0.1 * (1.0 - abs(predicted.impact_score - actual.impact_score) / 100.0)
    return score


def calculate_event_detection_metrics(predicted: Sequence[EventRecord],
                                      actual: Sequence[EventRecord]) -> ValidationMetrics:
    """
    Precision/recall of detected events against reference events.

    Pairs are matched greedily by highest match score above 0.5; each event is
    used at most once. The error is the mean of the sentiment error and the
    impact error (in hundredths) over matched pairs.
    """
    if not predicted or not actual:
        logger.error(f"{ErrorKind.INVALID_PARAMETER.describe()} Event detection metrics need "
                     f"predicted and actual events ({len(predicted)}/{len(actual)})")
        return ValidationMetrics()

    scores = np.array([[event_match_score(p, a) for a in actual] for p in predicted])
    matches = []
    while True:
        masked = np.where(scores > MATCH_THRESHOLD, scores, -np.inf)
        if not np.isfinite(masked).any():
            break
        i, j = np.unravel_index(int(np.argmax(masked)), masked.shape)
        matches.append((i, j))
        scores[i, :] = -np.inf
        scores[:, j] = -np.inf

    tp = len(matches)
    fp = len(predicted) - tp
    fn = len(actual) - tp
    precision = tp / (tp + fp) if tp + fp else 0.0
    recall = tp / (tp + fn) if tp + fn else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0

    mae = 0.0
    if matches:
        sentiment_error = sum(abs(predicted[i].sentiment - actual[j].sentiment) for i, j in matches)
        impact_error = sum(abs(predicted[i].impact_score - actual[j].impact_score) for i, j in matches)
        mae = (sentiment_error + impact_error / 100.0) / (2 * len(matches))

    logger.info(f"Event detection: {tp} matched, {fp} false positives, {fn} missed")
    return ValidationMetrics(
        accuracy=tp / (tp + fp + fn),
        precision=precision,
        recall=recall,
        f1_score=f1,
        mean_absolute_error=mae,
        sample_count=tp + fp + fn,
    )


def generate_validation_report(metrics: ValidationMetrics, model_name: Optional[str] = None) -> str:
    title = f"Validation Report for {model_name or 'Unknown Model'}"
    lines = [
        title,
        "=" * len(title),
        f"Accuracy:             {metrics.accuracy:.4f}",
        f"Precision:            {metrics.precision:.4f}",
        f"Recall:               {metrics.recall:.4f}",
        f"F1 Score:             {metrics.f1_score:.4f}",
        f"Mean Absolute Error:  {metrics.mean_absolute_error:.4f}",
        f"Root Mean Sq. Error:  {metrics.root_mean_square_error:.4f}",
        f"R-squared:            {metrics.r2_score:.4f}",
        f"Samples:              {metrics.sample_count}",
    ]
    return "\n".join(lines) + "\n"


def save_validation_results(metrics: ValidationMetrics, path: PathLike) -> Path:
    """
    Write metrics as JSON.

    Raises:
        IOFailureError: If the file cannot be written
    """
    path = Path(path)
    payload = {"timestamp": datetime.now().isoformat(), "metrics": metrics.to_dict()}
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
    except OSError as e:
        raise IOFailureError(f"Failed to save validation metrics to {path}: {e}",
                             ErrorKind.FILE_WRITE_FAILED) from e
    logger.info(f"Saved validation metrics to {path}")
    return path


def load_validation_results(path: PathLike) -> ValidationMetrics:
    """
    Read metrics written by ``save_validation_results``.

    Raises:
        IOFailureError: If the file is missing or not a metrics document
    """
    path = Path(path)
    if not path.exists():
        raise IOFailureError(f"Validation results not found: {path}", ErrorKind.FILE_NOT_FOUND)
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
        return ValidationMetrics.from_dict(payload["metrics"])
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise IOFailureError(f"Failed to read validation metrics from {path}: {e}",
                             ErrorKind.FILE_READ_FAILED) from e


def run_regression_test(baseline_path: PathLike, current: ValidationMetrics,
                        tolerance: float = REGRESSION_TOLERANCE,
                        save_current: bool = False) -> RegressionTestResult:
    """
    Compare ``current`` with the baseline saved at ``baseline_path``.

    Scores may not fall below ``(1 - tolerance)`` of the baseline and errors may
    not exceed ``(1 + tolerance)`` of it. With ``save_current`` the current
    metrics are written next to the baseline with a timestamp suffix.

    Raises:
        IOFailureError: If the baseline cannot be read
    """
    baseline = load_validation_results(baseline_path)
    failures = []

    for name in ("accuracy", "precision", "recall", "f1_score", "r2_score"):
        value, reference = getattr(current, name), getattr(baseline, name)
        if value < reference * (1.0 - tolerance):
            failures.append(f"{name} regression: {value:.4f} vs baseline {reference:.4f}")

    for name in ("mean_absolute_error", "root_mean_square_error"):
        value, reference = getattr(current, name), getattr(baseline, name)
        if value > reference * (1.0 + tolerance):
            failures.append(f"{name} regression: {value:.4f} vs baseline {reference:.4f}")

    for failure in failures:
        logger.error(f"{ErrorKind.CALCULATION_FAILED.describe()} {failure}")

    if save_current:
        stamp = datetime.now().strftime("%Y%m%d%H%M%S")
        save_validation_results(current, f"{baseline_path}.{stamp}")

    passed = not failures
    logger.info(f"Regression test against {baseline_path}: {'PASSED' if passed else 'FAILED'}")
    return RegressionTestResult(passed=passed, current=current, baseline=baseline, failures=failures)
