"""
Resampling strategies for NestedTune.

A resampling strategy partitions row positions into train/test splits. Splits
are instantiated once per dataset, so every configuration of a tuning run is
scored on identical folds.
"""

from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.model_selection import (
    KFold,
    RepeatedKFold,
    RepeatedStratifiedKFold,
    ShuffleSplit,
    StratifiedKFold,
    StratifiedShuffleSplit
)

from nestedtune.core.config import CONFIG

# Type aliases
ArrayLike = Union[np.ndarray, pd.DataFrame, pd.Series]
Split = Tuple[np.ndarray, np.ndarray]


class Resampling:
    """
    Base class for resampling strategies.

    Subclasses implement :meth:`_make_splits` returning positional
    (train, test) index arrays.
    """

    name = "resampling"

    def __init__(self, stratify: bool = False, random_state: Optional[int] = None) -> None:
        self.stratify = stratify
        self.random_state = random_state

    @property
    def iters(self) -> int:
        raise NotImplementedError

    def instantiate(self, X: ArrayLike, y: Optional[ArrayLike] = None) -> List[Split]:
        """
        Partition the rows of ``X`` into train/test splits.

        Args:
            X: Feature matrix
            y: Target values, required when stratifying

        Returns:
            List of (train_positions, test_positions) numpy arrays
        """
        n_samples = len(X)
        if n_samples == 0:
            raise ValueError("Cannot resample an empty dataset")
        if self.stratify and y is None:
            raise ValueError(f"{self.name} resampling with stratify=True needs the target")
        splits = self._make_splits(X, y)
        return [(np.asarray(train, dtype=int), np.asarray(test, dtype=int)) for train, test in splits]

    def _make_splits(self, X: ArrayLike, y: Optional[ArrayLike]) -> List[Split]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(iters={self.iters})"


class Holdout(Resampling):
    """Single split with ``ratio`` of the rows used for training."""

    name = "holdout"

    def __init__(
        self,
        ratio: float = CONFIG["defaults"]["holdout_ratio"],
        stratify: bool = False,
        random_state: Optional[int] = None
    ) -> None:
        super().__init__(stratify=stratify, random_state=random_state)
        if not 0 < ratio < 1:
            raise ValueError(f"Holdout ratio must be in (0, 1), got {ratio}")
        self.ratio = ratio

    @property
    def iters(self) -> int:
        return 1

    def _make_splits(self, X, y):
        if self.stratify:
            splitter = StratifiedShuffleSplit(n_splits=1, train_size=self.ratio, random_state=self.random_state)
        else:
            splitter = ShuffleSplit(n_splits=1, train_size=self.ratio, random_state=self.random_state)
        return list(splitter.split(X, y))


class CV(Resampling):
    """Shuffled k-fold cross-validation."""

    name = "cv"

    def __init__(
        self,
        folds: int = CONFIG["defaults"]["folds"],
        stratify: bool = False,
        random_state: Optional[int] = None
    ) -> None:
        super().__init__(stratify=stratify, random_state=random_state)
        if folds < 2:
            raise ValueError(f"Cross-validation needs at least 2 folds, got {folds}")
        self.folds = folds

    @property
    def iters(self) -> int:
        return self.folds

    def _make_splits(self, X, y):
        cls = StratifiedKFold if self.stratify else KFold
        splitter = cls(n_splits=self.folds, shuffle=True, random_state=self.random_state)
        return list(splitter.split(X, y))


class RepeatedCV(Resampling):
    """k-fold cross-validation repeated with different shuffles."""

    name = "repeated_cv"

    def __init__(
        self,
        folds: int = CONFIG["defaults"]["folds"],
        repeats: int = CONFIG["defaults"]["repeats"],
        stratify: bool = False,
        random_state: Optional[int] = None
    ) -> None:
        super().__init__(stratify=stratify, random_state=random_state)
        if folds < 2:
            raise ValueError(f"Cross-validation needs at least 2 folds, got {folds}")
        if repeats < 1:
            raise ValueError(f"Repeats must be positive, got {repeats}")
        self.folds = folds
        self.repeats = repeats

    @property
    def iters(self) -> int:
        return self.folds * self.repeats

    def _make_splits(self, X, y):
        cls = RepeatedStratifiedKFold if self.stratify else RepeatedKFold
        splitter = cls(n_splits=self.folds, n_repeats=self.repeats, random_state=self.random_state)
        return list(splitter.split(X, y))


class Subsampling(Resampling):
    """Repeated holdout: ``repeats`` independent train/test splits."""

    name = "subsampling"

    def __init__(
        self,
        repeats: int = CONFIG["defaults"]["repeats"],
        ratio: float = CONFIG["defaults"]["holdout_ratio"],
        stratify: bool = False,
        random_state: Optional[int] = None
    ) -> None:
        super().__init__(stratify=stratify, random_state=random_state)
        if repeats < 1:
            raise ValueError(f"Repeats must be positive, got {repeats}")
        if not 0 < ratio < 1:
            raise ValueError(f"Subsampling ratio must be in (0, 1), got {ratio}")
        self.repeats = repeats
        self.ratio = ratio

    @property
    def iters(self) -> int:
        return self.repeats

    def _make_splits(self, X, y):
        cls = StratifiedShuffleSplit if self.stratify else ShuffleSplit
        splitter = cls(n_splits=self.repeats, train_size=self.ratio, random_state=self.random_state)
        return list(splitter.split(X, y))


class Bootstrap(Resampling):
    """
    Bootstrap resampling.

    Training rows are drawn with replacement; the out-of-bag rows form the
    test set. Draws without any out-of-bag row are repeated.
    """

    name = "bootstrap"

    def __init__(
        self,
        repeats: int = CONFIG["defaults"]["repeats"],
        random_state: Optional[int] = None
    ) -> None:
        super().__init__(stratify=False, random_state=random_state)
        if repeats < 1:
            raise ValueError(f"Repeats must be positive, got {repeats}")
        self.repeats = repeats

    @property
    def iters(self) -> int:
        return self.repeats

    def _make_splits(self, X, y):
        n_samples = len(X)
        if n_samples < 2:
            raise ValueError("Bootstrap needs at least 2 rows")
        rng = np.random.default_rng(self.random_state)
        splits = []
        while len(splits) < self.repeats:
            train = rng.integers(0, n_samples, size=n_samples)
            test = np.setdiff1d(np.arange(n_samples), train)
            if len(test):
                splits.append((train, test))
        return splits


class CustomResampling(Resampling):
    """Fixed, user supplied splits of row positions."""

    name = "custom"

    def __init__(self, splits: Sequence[Tuple[Sequence[int], Sequence[int]]]) -> None:
        super().__init__()
        if not splits:
            raise ValueError("Custom resampling needs at least one split")
        self.splits = splits

    @property
    def iters(self) -> int:
        return len(self.splits)

    def _make_splits(self, X, y):
        n_samples = len(X)
        for train, test in self.splits:
            positions = np.concatenate([np.asarray(train), np.asarray(test)])
            if len(positions) and (positions.min() < 0 or positions.max() >= n_samples):
                raise ValueError("Custom split refers to rows outside the dataset")
        return list(self.splits)


RESAMPLINGS = {
    "holdout": Holdout,
    "cv": CV,
    "repeated_cv": RepeatedCV,
    "subsampling": Subsampling,
    "bootstrap": Bootstrap,
}


def get_resampling(name: Union[str, Resampling], **kwargs: Any) -> Resampling:
    """
    Build a resampling strategy by name.

    Args:
        name: One of "holdout", "cv", "repeated_cv", "subsampling",
            "bootstrap", or an existing Resampling (returned unchanged)
        **kwargs: Constructor arguments

    Returns:
        Resampling instance
    """
    if isinstance(name, Resampling):
        return name
    if name not in RESAMPLINGS:
        raise ValueError(f"Unsupported resampling: {name}. Supported: {', '.join(RESAMPLINGS)}")
    return RESAMPLINGS[name](**kwargs)
