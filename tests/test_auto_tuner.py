"""
Tests for the auto tuner and nested resampling.
"""

import numpy as np
import pandas as pd
import pytest
from sklearn.base import clone
from sklearn.pipeline import Pipeline
from sklearn.tree import DecisionTreeClassifier

from nestedtune.core.auto_tuner import AutoTuner, NestedResampleResult, check_leakage, nested_resample
from nestedtune.core.exceptions import EvaluationError, LeakageError
from nestedtune.core.filters import FilterSelector
from nestedtune.core.resampling import CV, Holdout
from nestedtune.core.terminators import EvalsTerminator
from nestedtune.core.tuners import GridSearchTuner, RandomSearchTuner


SPACE = {"max_depth": (1, 5, "int"), "min_samples_leaf": (0.01, 0.2, "linear")}


def _auto_tuner(n_evals=4, **kwargs):
    params = dict(
        learner=DecisionTreeClassifier(random_state=0),
        search_space=SPACE,
        tuner=RandomSearchTuner(random_state=0),
        terminator=EvalsTerminator(n_evals),
        resampling=CV(folds=2, random_state=0),
        measure="accuracy"
    )
    params.update(kwargs)
    return AutoTuner(**params)


def test_auto_tuner_fit_predict(small_classification_dataset):
    """Test that fitting tunes and then refits on all training data."""
    X, y = small_classification_dataset
    at = _auto_tuner().fit(X, y)

    assert at.archive_.n_evals == 4
    assert at.best_params_ == at.archive_.best().config
    assert at.learner_.get_params()["max_depth"] == at.best_params_["max_depth"]
    assert at.learner_.tree_ is not None
    assert list(at.classes_) == [0, 1]

    predictions = at.predict(X)
    assert len(predictions) == len(X)
    assert at.predict_proba(X).shape == (len(X), 2)
    assert 0.5 < at.score(X, y) <= 1.0


def test_auto_tuner_is_clonable(small_classification_dataset):
    """Test that an auto tuner behaves like any scikit-learn estimator."""
    X, y = small_classification_dataset
    tuner_ = GridSearchTuner(resolution=2, random_state=0)
    at = _auto_tuner(tuner=tuner_)
    params = at.get_params()
    assert params["tuner"] is tuner_

    copy = clone(at)
    assert copy.get_params()["measure"] == "accuracy"
    assert not hasattr(copy, "learner_")

    at.fit(X, y)
    # fitting uses a private copy of the tuner
    assert not hasattr(tuner_, "_pending")
    assert at.get_params()["tuner"] is tuner_


def test_auto_tuner_unfitted_raises(small_classification_dataset):
    """Test that predicting before fitting fails."""
    X, _ = small_classification_dataset
    with pytest.raises(Exception):
        _auto_tuner().predict(X)


def test_auto_tuner_all_failures(small_classification_dataset, flaky_classifier):
    """Test that fit raises when no configuration could be evaluated."""
    X, y = small_classification_dataset
    at = AutoTuner(flaky_classifier, {"fail": [True]}, terminator=EvalsTerminator(2),
                   resampling=Holdout(random_state=0))
    with pytest.warns(RuntimeWarning):
        with pytest.raises(EvaluationError):
            at.fit(X, y)


def test_inner_rows_are_training_rows(shifted_index_dataset):
    """Test that the auto tuner only resamples the rows it was fitted on."""
    X, y = shifted_index_dataset
    X_train, y_train = X.iloc[:60], y.iloc[:60]
    at = _auto_tuner().fit(X_train, y_train)

    assert set(at.train_row_ids_) == set(range(1000, 1060))
    for inner_train, inner_test in at.inner_row_ids_:
        assert set(inner_train) < set(at.train_row_ids_)
        assert set(inner_test) < set(at.train_row_ids_)


def test_nested_resample_no_leakage(shifted_index_dataset):
    """Test nested resampling: inner rows are a strict subset of the outer training rows."""
    X, y = shifted_index_dataset
    result = nested_resample(_auto_tuner(), X, y, outer_resampling=CV(folds=3, random_state=1))

    assert isinstance(result, NestedResampleResult)
    assert len(result.folds) == 3
    for fold in result.folds:
        outer_train, outer_test = set(fold.train_row_ids), set(fold.test_row_ids)
        assert not outer_train & outer_test
        for inner_train, inner_test in fold.inner_row_ids:
            assert set(inner_train) < outer_train
            assert set(inner_test) < outer_train
            assert not set(inner_train) & outer_test
            assert not set(inner_test) & outer_test
        assert fold.archive.n_evals == 4

    assert result.score == pytest.approx(np.mean(result.scores))
    df = result.to_dataframe()
    assert list(df["fold"]) == [0, 1, 2]
    assert "params_max_depth" in df.columns
    assert "inner_accuracy" in df.columns
    assert result.to_dict()["measure"] == "accuracy"


def test_nested_resample_with_numpy(numpy_classification_dataset):
    """Test that numpy inputs get positional row ids that survive subsetting."""
    X, y = numpy_classification_dataset
    result = nested_resample(_auto_tuner(n_evals=2), X, y, outer_resampling=CV(folds=3, random_state=0))

    all_test = np.concatenate([fold.test_row_ids for fold in result.folds])
    assert sorted(all_test.tolist()) == list(range(len(X)))
    for fold in result.folds:
        for inner_train, _ in fold.inner_row_ids:
            assert set(inner_train) <= set(fold.train_row_ids)


def test_nested_resample_rejects_duplicate_index(small_classification_dataset):
    """Test that ambiguous row ids are refused."""
    X, y = small_classification_dataset
    X = X.set_axis(pd.Index([0] * len(X)))
    y = y.set_axis(X.index)
    with pytest.raises(ValueError):
        nested_resample(_auto_tuner(), X, y)


def test_nested_resample_outer_measure(small_classification_dataset):
    """Test scoring the outer loop with a different measure than the inner loop."""
    X, y = small_classification_dataset
    result = nested_resample(_auto_tuner(n_evals=2), X, y, outer_resampling=CV(folds=2, random_state=0),
                             measure="ce")
    assert result.measure.name == "ce"
    assert all(0 <= s <= 1 for s in result.scores)


def test_check_leakage():
    """Test the leakage check on hand-made row ids."""
    outer_train = np.array([1, 2, 3, 4, 5, 6])
    outer_test = np.array([7, 8])

    check_leakage([(np.array([1, 2, 3]), np.array([4, 5]))], outer_train, outer_test)

    with pytest.raises(LeakageError):
        check_leakage([(np.array([1, 2, 7]), np.array([4]))], outer_train, outer_test)
    with pytest.raises(LeakageError):
        check_leakage([(np.array([1, 2]), np.array([8]))], outer_train, outer_test)
    with pytest.raises(LeakageError):
        check_leakage([(np.array([1, 2]), np.array([99]))], outer_train, outer_test)


def test_tuning_a_pipeline_with_filter(informative_feature_dataset):
    """Test tuning the fraction of features kept by a filter inside a pipeline."""
    X, y = informative_feature_dataset
    pipeline = Pipeline([
        ("select", FilterSelector("anova")),
        ("tree", DecisionTreeClassifier(random_state=0))
    ])
    at = AutoTuner(
        pipeline,
        {"select__frac": [0.33, 0.66, 1.0], "tree__max_depth": (1, 3, "int")},
        tuner=GridSearchTuner(resolution=3, random_state=0),
        resampling=CV(folds=2, random_state=0),
        terminator=EvalsTerminator(9)
    ).fit(X, y)

    assert at.archive_.n_evals == 9
    assert "signal" in at.learner_.named_steps["select"].selected_features_
    assert at.best_score_ > 0.9
