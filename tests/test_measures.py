"""
Tests for performance measures.
"""

import math

import numpy as np
import pytest
from sklearn.linear_model import LinearRegression, LogisticRegression

from nestedtune.core.measures import MEASURES, Measure, calculate_performance_score, get_measure


def test_get_measure():
    """Test measure lookup by name."""
    assert get_measure("accuracy").name == "accuracy"
    measure = get_measure("mse")
    assert get_measure(measure) is measure
    with pytest.raises(ValueError, match="Unsupported metric"):
        get_measure("invalid_metric")


@pytest.mark.parametrize("name,minimize", [
    ("accuracy", False), ("ce", True), ("f1", False), ("roc_auc", False),
    ("logloss", True), ("mse", True), ("rmse", True), ("mae", True), ("r2", False)
])
def test_measure_directions(name, minimize):
    """Test that every measure declares its better direction."""
    assert MEASURES[name].minimize is minimize


def test_is_better_is_strict_and_nan_aware():
    """Test score comparison in both directions."""
    acc, ce = get_measure("accuracy"), get_measure("ce")
    assert acc.is_better(0.9, 0.8)
    assert not acc.is_better(0.8, 0.8)
    assert ce.is_better(0.1, 0.2)
    assert not ce.is_better(0.2, 0.1)
    assert acc.is_better(0.5, float("nan"))
    assert not acc.is_better(float("nan"), 0.5)
    assert not acc.is_better(float("nan"), float("nan"))
    assert ce.improvement(0.3, 0.1) == pytest.approx(0.2)
    assert acc.improvement(0.3, 0.1) == pytest.approx(-0.2)


def test_classification_scores(small_classification_dataset):
    """Test response and probability based classification measures."""
    X, y = small_classification_dataset
    model = LogisticRegression(max_iter=1000).fit(X, y)

    accuracy = calculate_performance_score(model, X, y, "accuracy")
    error = calculate_performance_score(model, X, y, "ce")
    assert accuracy + error == pytest.approx(1.0)
    assert 0.5 < accuracy <= 1.0

    auc = calculate_performance_score(model, X, y, "roc_auc")
    assert 0.5 < auc <= 1.0
    assert calculate_performance_score(model, X, y, "logloss") > 0
    assert 0 < calculate_performance_score(model, X, y, "f1") <= 1.0


def test_regression_scores(small_regression_dataset):
    """Test regression measures; error measures are not negated."""
    X, y = small_regression_dataset
    model = LinearRegression().fit(X, y)

    mse = calculate_performance_score(model, X, y, "mse")
    rmse = calculate_performance_score(model, X, y, "rmse")
    assert mse >= 0
    assert rmse == pytest.approx(math.sqrt(mse))
    assert calculate_performance_score(model, X, y, "mae") >= 0
    assert calculate_performance_score(model, X, y, "r2") > 0.9


def test_custom_measure():
    """Test that a user-defined measure works like a built-in one."""
    measure = Measure("max_error", lambda y, p: float(np.max(np.abs(np.asarray(y) - p))), minimize=True)
    assert measure([1, 2, 3], np.array([1, 2, 5])) == 2.0
    assert measure.worst == float("inf")
