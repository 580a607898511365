"""
Tuning instance for NestedTune.

A tuning instance binds everything a tuner needs to score configurations:
the learner template, the data, fixed resampling splits, the measure, the
search space, the budget and the archive. Tuners only propose
configurations and hand them to :meth:`TuningInstance.eval_batch`.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator

from nestedtune.core.archive import Archive, EvaluationRecord
from nestedtune.core.evaluation import evaluate_batch
from nestedtune.core.measures import Measure, get_measure
from nestedtune.core.resampling import Holdout, Resampling, get_resampling
from nestedtune.core.search_space import SearchSpace
from nestedtune.core.terminators import BudgetController, Terminator, EvalsTerminator
from nestedtune.core.config import CONFIG
from nestedtune.core.utils import get_row_ids

# Type aliases
ArrayLike = Union[np.ndarray, pd.DataFrame, pd.Series]
HyperParams = Dict[str, Any]


@dataclass
class TuningResult:
    """
    Outcome of a tuning run.

    Attributes:
        best_params: Best configuration found (None if every evaluation failed)
        best_score: Aggregated score of the best configuration (NaN if none)
        archive: Full record of the run
    """

    best_params: Optional[HyperParams]
    best_score: float
    archive: Archive

    @property
    def n_evals(self) -> int:
        return self.archive.n_evals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "best_params": self.best_params,
            "best_score": self.best_score,
            "n_evals": self.n_evals,
            "archive": self.archive.to_dict()
        }


class TuningInstance:
    """
    Objective of a tuning run.

    Args:
        learner: Unfitted scikit-learn compatible estimator used as template
        X: Feature matrix
        y: Target values
        search_space: SearchSpace or a dict accepted by SearchSpace.from_dict
        resampling: Resampling strategy (or name) used to score configurations;
            defaults to a seeded holdout split
        measure: Measure (or name) used to score configurations
        terminator: Budget criterion; defaults to the configured number of evaluations
        n_jobs: Number of joblib workers for batch evaluation
        verbose: Whether to print progress
    """

    def __init__(
        self,
        learner: BaseEstimator,
        X: ArrayLike,
        y: ArrayLike,
        search_space: Union[SearchSpace, Dict[str, Any]],
        resampling: Optional[Union[str, Resampling]] = None,
        measure: Union[str, Measure] = CONFIG["defaults"]["measure"],
        terminator: Optional[Terminator] = None,
        n_jobs: Optional[int] = CONFIG["defaults"]["n_jobs"],
        verbose: bool = False
    ) -> None:
        if len(X) != len(y):
            raise ValueError(f"X and y have different numbers of rows: {len(X)} != {len(y)}")

        self.learner = learner
        self.X = X
        self.y = y
        self.search_space = search_space if isinstance(search_space, SearchSpace) else SearchSpace.from_dict(search_space)
        if resampling is None:
            resampling = Holdout(random_state=CONFIG["defaults"]["random_state"])
        self.resampling = get_resampling(resampling)
        self.measure = get_measure(measure)
        self.terminator = terminator if terminator is not None else EvalsTerminator(CONFIG["defaults"]["n_evals"])
        self.n_jobs = n_jobs
        self.verbose = verbose

        self.splits = self.resampling.instantiate(X, y)
        self.archive = Archive(self.measure)
        self.budget = BudgetController(self.terminator, minimize=self.measure.minimize)
        self.result: Optional[TuningResult] = None

    @property
    def is_terminated(self) -> bool:
        return self.budget.is_exhausted

    @property
    def row_ids(self) -> np.ndarray:
        """Identifiers of all rows this instance may touch."""
        return get_row_ids(self.X)

    @property
    def split_row_ids(self) -> List[Tuple[np.ndarray, np.ndarray]]:
        """Row identifiers of every resampling split as (train, test) pairs."""
        ids = self.row_ids
        return [(ids[train], ids[test]) for train, test in self.splits]

    @property
    def inner_train_row_ids(self) -> np.ndarray:
        """Identifiers of every row used for fitting in any resampling fold."""
        return np.unique(np.concatenate([train for train, _ in self.split_row_ids]))

    def start(self) -> None:
        """Start the budget clock and check whether the budget is already spent."""
        self.budget.update(self.archive)

    def eval_batch(self, configs: Sequence[HyperParams]) -> List[EvaluationRecord]:
        """
        Evaluate a batch of configurations and append them to the archive.

        Every configuration is validated before any of them is evaluated.
        The budget is updated once the whole batch has been recorded.

        Args:
            configs: Configurations proposed by a tuner

        Returns:
            The archive records of this batch, in proposal order

        Raises:
            OutOfRangeError: If a configuration violates the search space
            RuntimeError: If the run has already finished
        """
        if self.archive.frozen:
            raise RuntimeError("Tuning run has already finished")
        configs = [dict(c) for c in configs]
        for config in configs:
            self.search_space.assert_valid(config)

        results = evaluate_batch(
            configs, self.learner, self.X, self.y, self.splits, self.measure, n_jobs=self.n_jobs
        )
        records = self.archive.add_batch(results)
        self.budget.update(self.archive)
        return records

    def finish(self) -> TuningResult:
        """Freeze the archive and assign the result from its best record."""
        self.archive.freeze()
        best = self.archive.best()
        if best is None:
            self.result = TuningResult(None, float("nan"), self.archive)
        else:
            self.result = TuningResult(dict(best.config), best.score, self.archive)
        return self.result
