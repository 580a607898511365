"""
Performance measures for NestedTune.

Each measure maps predictions and ground truth to a scalar and knows its
better direction, so archives and terminators can compare scores without
negating error measures.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Union

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator
from sklearn.metrics import (
    accuracy_score,
    f1_score,
    log_loss,
    mean_absolute_error,
    mean_squared_error,
    r2_score,
    roc_auc_score
)

# Type aliases
ArrayLike = Union[np.ndarray, pd.DataFrame, pd.Series]
MetricFunction = Callable[[ArrayLike, ArrayLike], float]


@dataclass(frozen=True)
class Measure:
    """
    A performance measure with a known better direction.

    Attributes:
        name: Short identifier (e.g. "accuracy", "mse")
        func: Callable taking (y_true, prediction) and returning a float
        minimize: True if lower scores are better (error measures)
        predict_type: "response" for class/value predictions, "prob" for
            probability predictions
    """

    name: str
    func: MetricFunction
    minimize: bool = False
    predict_type: str = "response"

    def __call__(self, y_true: ArrayLike, prediction: ArrayLike) -> float:
        return float(self.func(y_true, prediction))

    @property
    def worst(self) -> float:
        return float("inf") if self.minimize else float("-inf")

    def is_better(self, a: float, b: float) -> bool:
        """Strict comparison: True if score ``a`` beats score ``b``."""
        if b is None or np.isnan(b):
            return not np.isnan(a)
        if np.isnan(a):
            return False
        return a < b if self.minimize else a > b

    def improvement(self, old: float, new: float) -> float:
        """Amount by which ``new`` improves on ``old`` (negative if worse)."""
        return old - new if self.minimize else new - old

    def score(self, model: BaseEstimator, X: ArrayLike, y: ArrayLike) -> float:
        """
        Score a fitted model on a dataset.

        Args:
            model: Fitted model with predict (and predict_proba for "prob")
            X: Features for evaluation
            y: Target values for evaluation

        Returns:
            Score according to this measure
        """
        if self.predict_type == "prob":
            return self(y, _predict_scores(model, X))
        return self(y, model.predict(X))


def _predict_scores(model: BaseEstimator, X: ArrayLike) -> np.ndarray:
    if hasattr(model, "predict_proba"):
        y_score = model.predict_proba(X)
        # Binary problems are scored on the positive class column
        if y_score.ndim == 2 and y_score.shape[1] == 2:
            return y_score[:, 1]
        return y_score
    if hasattr(model, "decision_function"):
        return model.decision_function(X)
    raise ValueError(f"{type(model).__name__} supports neither predict_proba nor decision_function")


def _roc_auc(y_true: ArrayLike, y_score: ArrayLike) -> float:
    if np.ndim(y_score) == 2:
        return roc_auc_score(y_true, y_score, multi_class="ovr", average="macro")
    return roc_auc_score(y_true, y_score)


def _log_loss(y_true: ArrayLike, y_score: ArrayLike) -> float:
    if np.ndim(y_score) == 1:
        y_score = np.column_stack([1 - np.asarray(y_score), y_score])
    return log_loss(y_true, y_score)


def _classification_error(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    return 1.0 - accuracy_score(y_true, y_pred)


def _rmse(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


MEASURES: Dict[str, Measure] = {
    "accuracy": Measure("accuracy", accuracy_score),
    "ce": Measure("ce", _classification_error, minimize=True),
    "f1": Measure("f1", lambda y, p: f1_score(y, p, average="weighted")),
    "roc_auc": Measure("roc_auc", _roc_auc, predict_type="prob"),
    "logloss": Measure("logloss", _log_loss, minimize=True, predict_type="prob"),
    "mse": Measure("mse", mean_squared_error, minimize=True),
    "rmse": Measure("rmse", _rmse, minimize=True),
    "mae": Measure("mae", mean_absolute_error, minimize=True),
    "r2": Measure("r2", r2_score),
}


def get_measure(measure: Union[str, Measure]) -> Measure:
    """
    Look up a measure by name.

    Args:
        measure: Measure name or an existing Measure (returned unchanged)

    Returns:
        Measure instance

    Raises:
        ValueError: If the name is not a supported measure
    """
    if isinstance(measure, Measure):
        return measure
    if measure not in MEASURES:
        raise ValueError(f"Unsupported metric: {measure}. Supported metrics: {', '.join(MEASURES)}")
    return MEASURES[measure]


def calculate_performance_score(
    model: BaseEstimator,
    X: ArrayLike,
    y: ArrayLike,
    metric: Union[str, Measure] = "accuracy"
) -> float:
    """
    Calculate performance score of a fitted model on a dataset.

    Args:
        model: Trained model with predict method
        X: Features for evaluation
        y: Target values for evaluation
        metric: Measure name or Measure instance

    Returns:
        Performance score according to the specified metric. Error measures
        are returned as-is (lower is better), not negated.
    """
    return get_measure(metric).score(model, X, y)
