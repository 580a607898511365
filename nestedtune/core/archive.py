"""
Optimization archive for NestedTune.

The archive is an append-only log of every evaluated configuration, failed
ones included, together with a best-so-far pointer that respects the
measure's better direction. Ties are resolved in favour of the earliest
record.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from nestedtune.core.evaluation import EvaluationResult
from nestedtune.core.measures import Measure, get_measure
from nestedtune.core.search_space import match_config
from nestedtune.core.utils import save_json

# Type aliases
HyperParams = Dict[str, Any]
Subspace = Dict[str, Union[Any, Callable[[Any], bool]]]


@dataclass(frozen=True)
class EvaluationRecord:
    """One archived evaluation."""

    index: int
    config: HyperParams
    score: float
    fold_scores: Tuple[float, ...]
    timestamp: datetime
    batch_nr: int
    errors: Tuple[str, ...] = field(default_factory=tuple)
    runtime: float = 0.0

    @property
    def failed(self) -> bool:
        return bool(np.isnan(self.score))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "batch_nr": self.batch_nr,
            "config": dict(self.config),
            "score": self.score,
            "fold_scores": list(self.fold_scores),
            "timestamp": self.timestamp.isoformat(),
            "runtime": self.runtime,
            "errors": list(self.errors)
        }


class Archive:
    """
    Append-only record of a tuning run.

    Args:
        measure: Measure (or measure name) whose direction decides the best record
    """

    def __init__(self, measure: Union[str, Measure]) -> None:
        self.measure = get_measure(measure)
        self._records: List[EvaluationRecord] = []
        self._best_index: Optional[int] = None
        self._n_batch = 0
        self._frozen = False

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[EvaluationRecord]:
        return iter(self._records)

    def __getitem__(self, index: int) -> EvaluationRecord:
        return self._records[index]

    @property
    def records(self) -> Tuple[EvaluationRecord, ...]:
        return tuple(self._records)

    @property
    def n_evals(self) -> int:
        return len(self._records)

    @property
    def n_failed(self) -> int:
        return sum(1 for r in self._records if r.failed)

    @property
    def n_batch(self) -> int:
        return self._n_batch

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the archive read-only; called once the run has terminated."""
        self._frozen = True

    def add_batch(self, results: Sequence[EvaluationResult]) -> List[EvaluationRecord]:
        """
        Append the results of one batch, in order.

        Args:
            results: Evaluation results of the batch

        Returns:
            The new records

        Raises:
            RuntimeError: If the archive is frozen
        """
        if self._frozen:
            raise RuntimeError("Archive is frozen; the tuning run has already terminated")
        if not results:
            return []

        self._n_batch += 1
        timestamp = datetime.now()
        new_records = []
        for result in results:
            record = EvaluationRecord(
                index=len(self._records),
                config=dict(result.config),
                score=float(result.score),
                fold_scores=tuple(float(s) for s in result.fold_scores),
                timestamp=timestamp,
                batch_nr=self._n_batch,
                errors=tuple(result.errors),
                runtime=float(result.runtime)
            )
            self._records.append(record)
            new_records.append(record)
            if self._best_index is None:
                if not record.failed:
                    self._best_index = record.index
            elif self.measure.is_better(record.score, self._records[self._best_index].score):
                self._best_index = record.index
        return new_records

    def best(self) -> Optional[EvaluationRecord]:
        """Best successful record so far, or None if nothing succeeded yet."""
        if self._best_index is None:
            return None
        return self._records[self._best_index]

    def best_at(self, n: int) -> Optional[EvaluationRecord]:
        """Best successful record among the first ``n`` records."""
        best = None
        for record in self._records[:n]:
            if record.failed:
                continue
            if best is None or self.measure.is_better(record.score, best.score):
                best = record
        return best

    def best_trace(self) -> List[float]:
        """Best-so-far score after each record (NaN until the first success)."""
        trace = []
        best = float("nan")
        for record in self._records:
            if self.measure.is_better(record.score, best):
                best = record.score
            trace.append(best)
        return trace

    def filter(self, subspace: Optional[Subspace] = None, **constraints: Any) -> List[EvaluationRecord]:
        """
        Records whose configuration lies in a subspace.

        Constraints map a parameter name to a value, a collection of allowed
        values, or a predicate.

        Example:
            archive.filter(max_depth=lambda d: d <= 5, criterion=["gini"])
        """
        conditions = dict(subspace or {})
        conditions.update(constraints)
        return [r for r in self._records if match_config(r.config, conditions)]

    def to_dataframe(self) -> pd.DataFrame:
        """
        One row per record.

        Parameter values are in ``params_<name>`` columns, followed by the
        aggregated score, the per-fold scores and bookkeeping columns.
        """
        rows = []
        for record in self._records:
            row: Dict[str, Any] = {"index": record.index, "batch_nr": record.batch_nr}
            for name, value in record.config.items():
                row[f"params_{name}"] = value
            row[self.measure.name] = record.score
            for fold, score in enumerate(record.fold_scores):
                row[f"fold_{fold}"] = score
            row["failed"] = record.failed
            row["errors"] = "; ".join(record.errors)
            row["runtime"] = record.runtime
            row["timestamp"] = record.timestamp
            rows.append(row)
        return pd.DataFrame(rows)

    def to_dict(self) -> Dict[str, Any]:
        best = self.best()
        return {
            "measure": self.measure.name,
            "minimize": self.measure.minimize,
            "n_evals": self.n_evals,
            "n_batch": self.n_batch,
            "best_index": None if best is None else best.index,
            "records": [r.to_dict() for r in self._records]
        }

    def save(self, file_path: str) -> bool:
        """Write the archive as JSON for external inspection."""
        return save_json(self.to_dict(), file_path)
