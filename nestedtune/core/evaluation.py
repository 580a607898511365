"""
Evaluation of single configurations for NestedTune.

A configuration is scored by fitting a fresh clone of the learner on every
resampling fold and aggregating the fold scores with a NaN-ignoring mean.
"""

import time
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.base import BaseEstimator, clone

from nestedtune.core.exceptions import EvaluationError
from nestedtune.core.measures import Measure
from nestedtune.core.utils import nanmean, take_rows

# Type aliases
ArrayLike = Union[np.ndarray, pd.DataFrame, pd.Series]
HyperParams = Dict[str, Any]
Split = Tuple[np.ndarray, np.ndarray]


@dataclass
class EvaluationResult:
    """
    Outcome of resampling one configuration.

    Attributes:
        config: The evaluated configuration
        score: NaN-ignoring mean of the fold scores (NaN if every fold failed)
        fold_scores: One score per fold, NaN for failed folds
        errors: Error messages of failed folds
        runtime: Wall-clock seconds spent on all folds
    """

    config: HyperParams
    score: float
    fold_scores: List[float]
    errors: List[str] = field(default_factory=list)
    runtime: float = 0.0

    @property
    def failed(self) -> bool:
        return bool(np.isnan(self.score))


def evaluate_configuration(
    config: HyperParams,
    learner: BaseEstimator,
    X: ArrayLike,
    y: ArrayLike,
    splits: Sequence[Split],
    measure: Measure
) -> EvaluationResult:
    """
    Resample a learner with the given hyperparameters.

    The learner template is never modified: every fold fits its own clone.

    Args:
        config: Hyperparameters to set on the learner
        learner: Unfitted scikit-learn compatible estimator used as template
        X: Feature matrix
        y: Target values
        splits: Positional (train, test) index pairs
        measure: Measure used to score each fold

    Returns:
        EvaluationResult with the aggregated and per-fold scores

    Raises:
        EvaluationError: If no fold produced a usable score
    """
    start = time.perf_counter()
    fold_scores: List[float] = []
    errors: List[str] = []

    for fold, (train, test) in enumerate(splits):
        try:
            model = clone(learner).set_params(**config)
            model.fit(take_rows(X, train), take_rows(y, train))
            score = measure.score(model, take_rows(X, test), take_rows(y, test))
        except Exception as e:  # any learner or metric failure only invalidates this fold
            message = f"fold {fold}: {type(e).__name__}: {e}"
            warnings.warn(f"Error evaluating configuration {config} on {message}", RuntimeWarning)
            errors.append(message)
            score = float("nan")
        fold_scores.append(float(score))

    runtime = time.perf_counter() - start
    aggregated = nanmean(fold_scores)
    if np.isnan(aggregated):
        raise EvaluationError(
            f"All {len(fold_scores)} folds failed for configuration {config}",
            config=config,
            errors=errors
        )
    return EvaluationResult(config, aggregated, fold_scores, errors, runtime)


def _evaluate_or_record_failure(
    config: HyperParams,
    learner: BaseEstimator,
    X: ArrayLike,
    y: ArrayLike,
    splits: Sequence[Split],
    measure: Measure
) -> EvaluationResult:
    start = time.perf_counter()
    try:
        return evaluate_configuration(config, learner, X, y, splits, measure)
    except EvaluationError as e:
        return EvaluationResult(
            config=config,
            score=float("nan"),
            fold_scores=[float("nan")] * len(splits),
            errors=e.errors or [str(e)],
            runtime=time.perf_counter() - start
        )


def evaluate_batch(
    configs: Sequence[HyperParams],
    learner: BaseEstimator,
    X: ArrayLike,
    y: ArrayLike,
    splits: Sequence[Split],
    measure: Measure,
    n_jobs: Optional[int] = 1
) -> List[EvaluationResult]:
    """
    Evaluate a batch of independent configurations, possibly in parallel.

    Failed configurations are returned as results with a NaN score instead of
    raising, so one bad configuration never aborts the batch.

    Args:
        configs: Configurations to evaluate
        learner: Learner template
        X: Feature matrix, shared read-only by all workers
        y: Target values
        splits: Positional (train, test) index pairs
        measure: Measure used to score each fold
        n_jobs: Number of joblib workers (-1 for all cores)

    Returns:
        Results in the same order as ``configs``
    """
    if not configs:
        return []
    if n_jobs in (None, 1) or len(configs) == 1:
        return [_evaluate_or_record_failure(c, learner, X, y, splits, measure) for c in configs]
    return Parallel(n_jobs=n_jobs)(
        delayed(_evaluate_or_record_failure)(c, learner, X, y, splits, measure) for c in configs
    )
