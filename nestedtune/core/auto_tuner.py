"""
Auto-tuning and nested resampling for NestedTune.

:class:`AutoTuner` wraps search space, tuner, terminator and inner resampling
into a single scikit-learn estimator: ``fit`` tunes on the data it is given
and then trains the learner with the best configuration on all of it. Because
the tuning only ever sees the training data passed to ``fit``, an AutoTuner
can be evaluated by an outer resampling loop like any other learner, which
is what :func:`nested_resample` does.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, clone
from sklearn.utils.validation import check_is_fitted
from tqdm import tqdm

from nestedtune.core.archive import Archive
from nestedtune.core.config import CONFIG
from nestedtune.core.exceptions import EvaluationError, LeakageError
from nestedtune.core.measures import Measure, get_measure
from nestedtune.core.resampling import CV, Resampling, get_resampling
from nestedtune.core.search_space import SearchSpace
from nestedtune.core.terminators import Terminator
from nestedtune.core.tuners import Tuner, get_tuner
from nestedtune.core.tuning_instance import TuningInstance
from nestedtune.core.utils import convert_to_dataframe, get_row_ids, nanmean, take_rows

# Type aliases
ArrayLike = Union[np.ndarray, pd.DataFrame, pd.Series]
HyperParams = Dict[str, Any]


class AutoTuner(BaseEstimator):
    """
    A learner that tunes its own hyperparameters when fitted.

    Args:
        learner: Unfitted scikit-learn compatible estimator to tune
        search_space: SearchSpace or dict accepted by SearchSpace.from_dict
        tuner: Tuner instance or tuner name
        terminator: Budget criterion of the inner tuning run
        resampling: Inner resampling strategy (defaults to a seeded holdout)
        measure: Measure (or name) optimized by the inner tuning run
        n_jobs: Number of joblib workers for inner batch evaluation
        verbose: Whether to print progress of the inner tuning run

    Attributes:
        learner_: The learner refitted on all training data with best_params_
        best_params_: Best configuration of the inner tuning run
        best_score_: Inner resampling score of best_params_
        archive_: Archive of the inner tuning run
        tuning_instance_: The inner TuningInstance
        train_row_ids_: Identifiers of the rows passed to fit
        inner_row_ids_: (train, test) row identifiers of every inner split
    """

    def __init__(
        self,
        learner: BaseEstimator,
        search_space: Union[SearchSpace, Dict[str, Any]],
        tuner: Union[str, Tuner] = CONFIG["defaults"]["tuner"],
        terminator: Optional[Terminator] = None,
        resampling: Optional[Union[str, Resampling]] = None,
        measure: Union[str, Measure] = CONFIG["defaults"]["measure"],
        n_jobs: Optional[int] = CONFIG["defaults"]["n_jobs"],
        verbose: bool = False
    ) -> None:
        self.learner = learner
        self.search_space = search_space
        self.tuner = tuner
        self.terminator = terminator
        self.resampling = resampling
        self.measure = measure
        self.n_jobs = n_jobs
        self.verbose = verbose

    def fit(self, X: ArrayLike, y: ArrayLike) -> "AutoTuner":
        """
        Tune on ``X, y`` and train the final learner on all of it.

        Raises:
            EvaluationError: If no configuration could be evaluated
        """
        instance = TuningInstance(
            self.learner, X, y, self.search_space,
            resampling=self.resampling,
            measure=self.measure,
            terminator=self.terminator,
            n_jobs=self.n_jobs,
            verbose=self.verbose
        )
        # the tuner keeps per-run state, so the estimator parameter stays untouched
        strategy = get_tuner(copy.deepcopy(self.tuner))
        result = strategy.optimize(instance)
        if result.best_params is None:
            errors = [e for record in result.archive for e in record.errors]
            raise EvaluationError(
                f"None of the {result.n_evals} evaluated configurations could be scored",
                errors=errors
            )

        self.tuning_instance_ = instance
        self.archive_ = result.archive
        self.best_params_ = result.best_params
        self.best_score_ = result.best_score
        self.train_row_ids_ = get_row_ids(X)
        self.inner_row_ids_ = instance.split_row_ids

        self.learner_ = clone(self.learner).set_params(**self.best_params_)
        self.learner_.fit(X, y)
        if hasattr(self.learner_, "classes_"):
            self.classes_ = self.learner_.classes_
        return self

    def predict(self, X: ArrayLike) -> np.ndarray:
        check_is_fitted(self, "learner_")
        return self.learner_.predict(X)

    def predict_proba(self, X: ArrayLike) -> np.ndarray:
        check_is_fitted(self, "learner_")
        return self.learner_.predict_proba(X)

    def decision_function(self, X: ArrayLike) -> np.ndarray:
        check_is_fitted(self, "learner_")
        return self.learner_.decision_function(X)

    def score(self, X: ArrayLike, y: ArrayLike) -> float:
        """Score with the tuning measure (not negated for error measures)."""
        check_is_fitted(self, "learner_")
        return get_measure(self.measure).score(self.learner_, X, y)


def check_leakage(
    inner_row_ids: Sequence[Tuple[np.ndarray, np.ndarray]],
    outer_train_ids: np.ndarray,
    outer_test_ids: np.ndarray
) -> None:
    """
    Verify that an inner tuning run only used outer training rows.

    Args:
        inner_row_ids: (train, test) row identifiers of every inner split
        outer_train_ids: Row identifiers of the outer training split
        outer_test_ids: Row identifiers of the outer test split

    Raises:
        LeakageError: If an outer test row, or a row outside the outer
            training split, appears in any inner split
    """
    for split, (inner_train, inner_test) in enumerate(inner_row_ids):
        used = np.concatenate([np.asarray(inner_train), np.asarray(inner_test)])
        leaked = np.intersect1d(used, outer_test_ids)
        if leaked.size:
            raise LeakageError(
                f"Inner split {split} uses {leaked.size} rows of the outer test split "
                f"(e.g. {leaked[:5].tolist()})"
            )
        foreign = np.setdiff1d(used, outer_train_ids)
        if foreign.size:
            raise LeakageError(
                f"Inner split {split} uses {foreign.size} rows outside the outer training split"
            )


@dataclass
class OuterFoldResult:
    """Result of one outer resampling iteration."""

    fold: int
    score: float
    best_params: HyperParams
    inner_score: float
    archive: Archive
    train_row_ids: np.ndarray
    test_row_ids: np.ndarray
    inner_row_ids: List[Tuple[np.ndarray, np.ndarray]] = field(default_factory=list)


@dataclass
class NestedResampleResult:
    """
    Result of nested resampling.

    The outer scores estimate the performance of the whole tuning procedure;
    the inner scores are optimistically biased and only reported for reference.
    """

    measure: Measure
    folds: List[OuterFoldResult]

    @property
    def scores(self) -> List[float]:
        return [f.score for f in self.folds]

    @property
    def score(self) -> float:
        return nanmean(self.scores)

    def to_dataframe(self) -> pd.DataFrame:
        rows = []
        for f in self.folds:
            row = {"fold": f.fold, self.measure.name: f.score, f"inner_{self.measure.name}": f.inner_score}
            for name, value in f.best_params.items():
                row[f"params_{name}"] = value
            row["n_evals"] = f.archive.n_evals
            rows.append(row)
        return pd.DataFrame(rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "measure": self.measure.name,
            "score": self.score,
            "folds": [
                {
                    "fold": f.fold,
                    "score": f.score,
                    "inner_score": f.inner_score,
                    "best_params": f.best_params,
                    "n_evals": f.archive.n_evals
                }
                for f in self.folds
            ]
        }


def nested_resample(
    auto_tuner: AutoTuner,
    X: ArrayLike,
    y: ArrayLike,
    outer_resampling: Optional[Union[str, Resampling]] = None,
    measure: Optional[Union[str, Measure]] = None,
    verbose: bool = False
) -> NestedResampleResult:
    """
    Estimate the performance of a tuned learner with nested resampling.

    For every outer split a fresh clone of ``auto_tuner`` is fitted on the
    outer training rows only, then scored on the outer test rows. Each inner
    run is checked for leakage before its score is used.

    Args:
        auto_tuner: Unfitted AutoTuner
        X: Feature matrix; numpy arrays are converted to a DataFrame so rows
            keep their identity through nested subsetting
        y: Target values
        outer_resampling: Outer resampling strategy (defaults to seeded CV)
        measure: Outer measure (defaults to the auto tuner's measure)
        verbose: Whether to show progress over outer folds

    Returns:
        NestedResampleResult with per-fold scores, configurations and archives

    Raises:
        LeakageError: If any inner run saw rows outside its outer training split
    """
    X = convert_to_dataframe(X)
    row_ids = get_row_ids(X)
    if len(np.unique(row_ids)) != len(row_ids):
        raise ValueError("Row identifiers (DataFrame index) must be unique for nested resampling")
    if not isinstance(y, (pd.Series, pd.DataFrame)):
        y = pd.Series(np.asarray(y), index=X.index)

    if outer_resampling is None:
        outer_resampling = CV(
            folds=CONFIG["defaults"]["outer_folds"],
            random_state=CONFIG["defaults"]["random_state"]
        )
    outer = get_resampling(outer_resampling)
    measure = get_measure(measure if measure is not None else auto_tuner.measure)

    folds = []
    splits = outer.instantiate(X, y)
    for fold, (train, test) in enumerate(tqdm(splits, desc="Outer resampling", unit="fold", disable=not verbose)):
        X_train, y_train = take_rows(X, train), take_rows(y, train)
        X_test, y_test = take_rows(X, test), take_rows(y, test)

        model = clone(auto_tuner).fit(X_train, y_train)
        check_leakage(model.inner_row_ids_, row_ids[train], row_ids[test])

        score = measure.score(model, X_test, y_test)
        folds.append(OuterFoldResult(
            fold=fold,
            score=score,
            best_params=dict(model.best_params_),
            inner_score=model.best_score_,
            archive=model.archive_,
            train_row_ids=row_ids[train],
            test_row_ids=row_ids[test],
            inner_row_ids=model.inner_row_ids_
        ))
        if verbose:
            tqdm.write(f"Outer fold {fold}: {measure.name}={score:.4f}, best params: {model.best_params_}")

    result = NestedResampleResult(measure=measure, folds=folds)
    if verbose:
        print(f"Nested resampling {measure.name}: {result.score:.4f}")
    return result
