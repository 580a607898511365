"""
Feature filters for NestedTune.

A filter scores every feature by its relevance for the target; higher scores
are more relevant. Scores can be turned into a feature subset with
:func:`select_features`, or used inside a scikit-learn ``Pipeline`` through
:class:`FilterSelector`, whose ``frac`` (or ``n``) parameter can itself be
tuned.
"""

from typing import Any, List, Optional, Union

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.base import BaseEstimator, TransformerMixin, clone
from sklearn.feature_selection import f_classif, f_regression, mutual_info_classif, mutual_info_regression
from sklearn.utils.validation import check_is_fitted

from nestedtune.core.model_configs import get_learner
from nestedtune.core.utils import convert_to_dataframe

# Type aliases
ArrayLike = Union[np.ndarray, pd.DataFrame, pd.Series]

TASKS = ("classification", "regression")


def _check_task(task: str) -> str:
    if task not in TASKS:
        raise ValueError(f"Unsupported task: {task}. Supported: {', '.join(TASKS)}")
    return task


class Filter:
    """Base class for feature filters."""

    name = "filter"

    def calculate(self, X: ArrayLike, y: ArrayLike) -> pd.Series:
        """
        Score every feature of X.

        Args:
            X: Feature matrix
            y: Target values

        Returns:
            Series mapping feature name to score, sorted from most to least relevant
        """
        X = convert_to_dataframe(X)
        if X.shape[1] == 0:
            raise ValueError("X has no features to score")
        if len(X) != len(y):
            raise ValueError(f"X and y have different numbers of rows: {len(X)} != {len(y)}")
        scores = np.asarray(self._score(X, np.asarray(y)), dtype=float)
        scores = np.nan_to_num(scores, nan=0.0)
        result = pd.Series(scores, index=X.columns, name=self.name)
        # stable sort keeps column order among equal scores
        return result.sort_values(ascending=False, kind="mergesort")

    def _score(self, X: pd.DataFrame, y: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class VarianceFilter(Filter):
    """Scores features by their variance; ignores the target."""

    name = "variance"

    def _score(self, X, y):
        return X.var(axis=0, ddof=0).to_numpy()


class CorrelationFilter(Filter):
    """
    Absolute correlation of each feature with a numeric target.

    Args:
        method: "pearson" or "spearman"
    """

    name = "correlation"

    def __init__(self, method: str = "pearson") -> None:
        if method not in ("pearson", "spearman"):
            raise ValueError(f"Unsupported correlation method: {method}")
        self.method = method

    def _score(self, X, y):
        corr = stats.pearsonr if self.method == "pearson" else stats.spearmanr
        y = y.astype(float)
        scores = []
        for col in X.columns:
            values = X[col].to_numpy(dtype=float)
            # correlation is undefined for constant columns
            if np.ptp(values) == 0 or np.ptp(y) == 0:
                scores.append(0.0)
                continue
            scores.append(abs(corr(values, y)[0]))
        return np.array(scores)


class AnovaFilter(Filter):
    """
    ANOVA F statistic between each feature and the target.

    Args:
        task: "classification" (``f_classif``) or "regression" (``f_regression``)
    """

    name = "anova"

    def __init__(self, task: str = "classification") -> None:
        self.task = _check_task(task)

    def _score(self, X, y):
        score_func = f_classif if self.task == "classification" else f_regression
        f_values, _ = score_func(X.to_numpy(dtype=float), y)
        return f_values


class MutualInfoFilter(Filter):
    """
    Information gain: mutual information between each feature and the target.

    Args:
        task: "classification" or "regression"
        random_state: Seed for the nearest-neighbour estimator
    """

    name = "mutual_info"

    def __init__(self, task: str = "classification", random_state: Optional[int] = None) -> None:
        self.task = _check_task(task)
        self.random_state = random_state

    def _score(self, X, y):
        score_func = mutual_info_classif if self.task == "classification" else mutual_info_regression
        return score_func(X.to_numpy(dtype=float), y, random_state=self.random_state)


class ImportanceFilter(Filter):
    """
    Embedded filter: importance reported by a fitted learner.

    A clone of the learner is fitted on the data and its
    ``feature_importances_`` (tree ensembles) or absolute ``coef_`` (linear
    models, averaged over classes) are used as scores.

    Args:
        learner: Unfitted scikit-learn compatible estimator; defaults to the
            seeded catalog random forest for ``task``
        task: "classification" or "regression", used for the default learner
    """

    name = "importance"

    def __init__(self, learner: Optional[BaseEstimator] = None, task: str = "classification") -> None:
        self.learner = learner
        self.task = _check_task(task)

    def _score(self, X, y):
        learner = self.learner if self.learner is not None else get_learner("random_forest", self.task)
        model = clone(learner).fit(X, y)
        if hasattr(model, "feature_importances_"):
            return np.asarray(model.feature_importances_)
        if hasattr(model, "coef_"):
            coef = np.abs(np.atleast_2d(model.coef_))
            return coef.mean(axis=0)
        raise ValueError(
            f"{type(model).__name__} exposes neither feature_importances_ nor coef_"
        )

    def __repr__(self) -> str:
        return f"ImportanceFilter(learner={self.learner!r}, task={self.task!r})"


FILTERS = {
    "variance": VarianceFilter,
    "correlation": CorrelationFilter,
    "anova": AnovaFilter,
    "mutual_info": MutualInfoFilter,
    "importance": ImportanceFilter,
}


def get_filter(name: Union[str, Filter], **kwargs: Any) -> Filter:
    """
    Build a filter by name.

    Example:
        get_filter("mutual_info", task="classification", random_state=42)
    """
    if isinstance(name, Filter):
        return name
    if name not in FILTERS:
        raise ValueError(f"Unsupported filter: {name}. Supported: {', '.join(FILTERS)}")
    return FILTERS[name](**kwargs)


def select_features(
    scores: pd.Series,
    n: Optional[int] = None,
    frac: Optional[float] = None,
    cutoff: Optional[float] = None
) -> List[Any]:
    """
    Select the best features from filter scores.

    Exactly one criterion must be given: the ``n`` best features, the best
    fraction ``frac`` (rounded up, at least one feature), or every feature
    scoring at least ``cutoff``.

    Returns:
        Selected feature names, best first
    """
    given = [c is not None for c in (n, frac, cutoff)]
    if sum(given) != 1:
        raise ValueError("Exactly one of n, frac or cutoff must be given")

    ranked = scores.sort_values(ascending=False, kind="mergesort")
    if cutoff is not None:
        return list(ranked[ranked >= cutoff].index)
    if frac is not None:
        if not 0 < frac <= 1:
            raise ValueError(f"frac must be in (0, 1], got {frac}")
        n = max(1, int(np.ceil(frac * len(ranked))))
    if n < 1:
        raise ValueError(f"n must be positive, got {n}")
    return list(ranked.index[:n])


class FilterSelector(BaseEstimator, TransformerMixin):
    """
    Transformer that keeps the features a filter scores best.

    Args:
        filter: Filter instance or filter name
        n: Number of features to keep
        frac: Fraction of features to keep
        cutoff: Minimum score of a kept feature

    With none of ``n``, ``frac`` and ``cutoff`` given, all features are kept.
    """

    def __init__(
        self,
        filter: Union[str, Filter] = "anova",
        n: Optional[int] = None,
        frac: Optional[float] = None,
        cutoff: Optional[float] = None
    ) -> None:
        self.filter = filter
        self.n = n
        self.frac = frac
        self.cutoff = cutoff

    def fit(self, X: ArrayLike, y: ArrayLike) -> "FilterSelector":
        X_df = convert_to_dataframe(X)
        self.scores_ = get_filter(self.filter).calculate(X_df, y)
        if self.n is None and self.frac is None and self.cutoff is None:
            selected = list(self.scores_.index)
        else:
            selected = select_features(self.scores_, n=self.n, frac=self.frac, cutoff=self.cutoff)
        self.selected_features_ = selected
        keep = set(selected)
        self.support_ = np.array([col in keep for col in X_df.columns])
        self.n_features_in_ = X_df.shape[1]
        return self

    def get_support(self, indices: bool = False) -> np.ndarray:
        check_is_fitted(self, "support_")
        return np.flatnonzero(self.support_) if indices else self.support_

    def transform(self, X: ArrayLike) -> ArrayLike:
        check_is_fitted(self, "support_")
        if isinstance(X, pd.DataFrame):
            return X.loc[:, self.support_]
        return np.asarray(X)[:, self.support_]
