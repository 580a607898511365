"""
Common test fixtures and configurations for NestedTune tests.
"""
import os
import sys

import numpy as np
import pandas as pd
import pytest
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.datasets import make_classification, make_regression
from sklearn.dummy import DummyClassifier

# Add the parent directory to the path so we can import nestedtune
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end workflow tests")
    config.addinivalue_line("markers", "slow: tests that take longer to run")


class FlakyClassifier(BaseEstimator, ClassifierMixin):
    """
    Majority-class classifier that fails on request.

    Fitting raises when ``fail`` is set, or when fewer than ``min_rows``
    training rows are given, which lets tests break single folds.
    """

    def __init__(self, fail=False, min_rows=0, alpha=0.5):
        self.fail = fail
        self.min_rows = min_rows
        self.alpha = alpha

    def fit(self, X, y):
        if self.fail:
            raise RuntimeError("configured to fail")
        if len(X) < self.min_rows:
            raise ValueError(f"needs at least {self.min_rows} rows, got {len(X)}")
        self._dummy = DummyClassifier(strategy="most_frequent").fit(X, y)
        self.classes_ = self._dummy.classes_
        return self

    def predict(self, X):
        return self._dummy.predict(X)

    def predict_proba(self, X):
        return self._dummy.predict_proba(X)


@pytest.fixture
def small_classification_dataset():
    """Fixture that creates a small classification dataset."""
    X, y = make_classification(
        n_samples=100,
        n_features=5,
        n_informative=3,
        n_redundant=1,
        n_classes=2,
        random_state=42
    )
    return pd.DataFrame(X, columns=[f'feature_{i}' for i in range(X.shape[1])]), pd.Series(y, name='target')


@pytest.fixture
def small_regression_dataset():
    """Fixture that creates a small regression dataset."""
    X, y = make_regression(
        n_samples=100,
        n_features=5,
        n_informative=3,
        noise=0.1,
        random_state=42
    )
    return pd.DataFrame(X, columns=[f'feature_{i}' for i in range(X.shape[1])]), pd.Series(y, name='target')


@pytest.fixture
def numpy_classification_dataset():
    """Fixture that creates a classification dataset as plain numpy arrays."""
    X, y = make_classification(
        n_samples=90,
        n_features=4,
        n_informative=2,
        n_redundant=0,
        random_state=0
    )
    return X, y


@pytest.fixture
def shifted_index_dataset(small_classification_dataset):
    """
    Fixture with non-positional row labels.

    Index labels start at 1000 so that any confusion between positions and
    row identifiers shows up in leakage checks.
    """
    X, y = small_classification_dataset
    index = pd.Index(np.arange(1000, 1000 + len(X)))
    return X.set_axis(index), y.set_axis(index)


@pytest.fixture
def informative_feature_dataset():
    """
    Fixture with one informative feature, one noise feature and one constant.

    Useful for checking that filters rank features sensibly.
    """
    rng = np.random.default_rng(0)
    n_samples = 200
    y = rng.integers(0, 2, size=n_samples)
    X = pd.DataFrame({
        'signal': y + rng.normal(0, 0.1, size=n_samples),
        'noise': rng.normal(0, 1, size=n_samples),
        'constant': np.ones(n_samples)
    })
    return X, pd.Series(y, name='target')


@pytest.fixture
def flaky_classifier():
    """Fixture that returns an unfitted FlakyClassifier."""
    return FlakyClassifier()


@pytest.fixture
def sample_csv_dataset(tmp_path):
    """Fixture that writes a small mixed-type CSV file and returns its path."""
    X, y = make_classification(n_samples=60, n_features=3, n_informative=2, n_redundant=0, random_state=1)
    df = pd.DataFrame(X, columns=['a', 'b', 'c'])
    df['color'] = np.where(X[:, 0] > 0, 'red', 'blue')
    df['label'] = np.where(y == 1, 'yes', 'no')
    path = tmp_path / "dataset.csv"
    df.to_csv(path, index=False)
    return str(path)
