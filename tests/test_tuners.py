"""
Tests for the tuning instance and the tuners.
"""

import math

import numpy as np
import optuna
import pandas as pd
import pytest
from sklearn.tree import DecisionTreeClassifier

from nestedtune.core.exceptions import OutOfRangeError
from nestedtune.core.resampling import CV, Holdout
from nestedtune.core.search_space import Parameter, SearchSpace
from nestedtune.core.terminators import (
    EvalsTerminator,
    NoneTerminator,
    PerfReachedTerminator,
    StagnationTerminator
)
from nestedtune.core.tuners import (
    DesignPointsTuner,
    GridSearchTuner,
    RandomSearchTuner,
    SimulatedAnnealingTuner,
    TPETuner,
    get_tuner,
    to_optuna_distribution,
    tune,
    tuner
)
from nestedtune.core.tuning_instance import TuningInstance


@pytest.fixture
def tree_space():
    return SearchSpace([
        Parameter.integer("max_depth", 1, 6),
        Parameter.continuous("min_samples_leaf", 0.01, 0.2),
        Parameter.categorical("criterion", ["gini", "entropy"])
    ])


def _instance(data, space, n_evals=None, terminator=None, **kwargs):
    X, y = data
    if terminator is None:
        terminator = EvalsTerminator(n_evals) if n_evals else NoneTerminator()
    return TuningInstance(
        DecisionTreeClassifier(random_state=0), X, y, space,
        resampling=kwargs.pop("resampling", CV(folds=3, random_state=0)),
        measure=kwargs.pop("measure", "accuracy"),
        terminator=terminator,
        **kwargs
    )


def _config_key(config):
    return tuple(sorted(config.items()))


def test_grid_search_stops_when_grid_exhausted(small_classification_dataset):
    """Test one parameter in [0.001, 0.1], resolution 5, budget 20: exactly 5 evaluations."""
    space = SearchSpace([Parameter.continuous("ccp_alpha", 0.001, 0.1)])
    instance = _instance(small_classification_dataset, space, n_evals=20)

    result = GridSearchTuner(resolution=5, random_state=1).optimize(instance)

    assert result.n_evals == 5
    evaluated = sorted(r.config["ccp_alpha"] for r in result.archive)
    assert evaluated == pytest.approx(list(np.linspace(0.001, 0.1, 5)))
    assert not instance.is_terminated  # stopped by the tuner, not the budget


def test_grid_search_budget_gives_subset_without_repeats(small_classification_dataset, tree_space):
    """Test that a budget smaller than the grid evaluates distinct grid points."""
    grid = {_config_key(c) for c in tree_space.grid(3)}
    instance = _instance(small_classification_dataset, tree_space, n_evals=7)

    result = GridSearchTuner(resolution=3, random_state=0).optimize(instance)

    keys = [_config_key(r.config) for r in result.archive]
    assert len(keys) == 7
    assert len(set(keys)) == 7
    assert set(keys) <= grid


def test_grid_search_order_is_seeded(small_classification_dataset, tree_space):
    """Test that the same seed reproduces the evaluation order."""
    orders = []
    for _ in range(2):
        instance = _instance(small_classification_dataset, tree_space, n_evals=5)
        GridSearchTuner(resolution=3, random_state=3).optimize(instance)
        orders.append([_config_key(r.config) for r in instance.archive])
    assert orders[0] == orders[1]


def test_batches_overshoot_budget_by_at_most_one_batch(small_classification_dataset, tree_space):
    """Test that the budget is checked at batch boundaries."""
    instance = _instance(small_classification_dataset, tree_space, n_evals=5)
    result = RandomSearchTuner(batch_size=4, random_state=0).optimize(instance)
    assert result.n_evals == 8
    assert result.archive.n_batch == 2
    assert instance.is_terminated


def test_random_search_stays_in_bounds(small_classification_dataset, tree_space):
    """Test that random search only proposes valid configurations."""
    instance = _instance(small_classification_dataset, tree_space, n_evals=25)
    result = RandomSearchTuner(random_state=0).optimize(instance)

    assert result.n_evals == 25
    for record in result.archive:
        tree_space.assert_valid(record.config)
    best = result.archive.best()
    assert all(not r.failed and r.score <= best.score for r in result.archive)
    assert result.best_params == best.config


def test_tuning_result_and_frozen_archive(small_classification_dataset, tree_space):
    """Test that the result is consistent with the archive and the run cannot be resumed."""
    instance = _instance(small_classification_dataset, tree_space, n_evals=4)
    tuner_ = RandomSearchTuner(random_state=0)
    result = tuner_.optimize(instance)

    assert instance.result is result
    assert result.best_score == instance.archive.best().score
    assert instance.archive.frozen
    with pytest.raises(RuntimeError):
        tuner_.optimize(instance)
    with pytest.raises(RuntimeError):
        instance.eval_batch([{"max_depth": 2, "min_samples_leaf": 0.05, "criterion": "gini"}])


def test_eval_batch_validates_before_evaluating(small_classification_dataset, tree_space):
    """Test that an invalid configuration rejects the whole batch."""
    instance = _instance(small_classification_dataset, tree_space, n_evals=10)
    instance.start()
    with pytest.raises(OutOfRangeError):
        instance.eval_batch([
            {"max_depth": 2, "min_samples_leaf": 0.05, "criterion": "gini"},
            {"max_depth": 99, "min_samples_leaf": 0.05, "criterion": "gini"}
        ])
    assert instance.archive.n_evals == 0


def test_failed_evaluations_are_archived(small_classification_dataset, flaky_classifier):
    """Test that failing configurations get NaN scores and the run goes on."""
    X, y = small_classification_dataset
    space = SearchSpace([Parameter.categorical("fail", [True, False])])
    instance = TuningInstance(flaky_classifier, X, y, space, resampling=Holdout(random_state=0),
                              terminator=NoneTerminator())

    with pytest.warns(RuntimeWarning):
        result = DesignPointsTuner([{"fail": True}, {"fail": False}]).optimize(instance)

    assert result.n_evals == 2
    assert result.archive[0].failed
    assert result.best_params == {"fail": False}


def test_all_failures_give_empty_result(small_classification_dataset, flaky_classifier):
    """Test the result of a run where nothing could be evaluated."""
    X, y = small_classification_dataset
    space = SearchSpace([Parameter.categorical("fail", [True])])
    instance = TuningInstance(flaky_classifier, X, y, space, resampling=Holdout(random_state=0),
                              terminator=EvalsTerminator(2))

    with pytest.warns(RuntimeWarning):
        result = RandomSearchTuner(random_state=0).optimize(instance)

    assert result.best_params is None
    assert math.isnan(result.best_score)
    assert result.archive.n_failed == 2


def test_perf_reached_stops_early(small_classification_dataset, tree_space):
    """Test that reaching the target level ends the run."""
    instance = _instance(small_classification_dataset, tree_space, terminator=PerfReachedTerminator(0.0))
    result = RandomSearchTuner(random_state=0).optimize(instance)
    assert result.n_evals == 1


def test_simulated_annealing(small_classification_dataset, tree_space):
    """Test that annealing explores valid neighbours and cools down."""
    instance = _instance(small_classification_dataset, tree_space, n_evals=15)
    sa = SimulatedAnnealingTuner(initial_temperature=1.0, cooling_rate=0.9, random_state=0)
    result = sa.optimize(instance)

    assert result.n_evals == 15
    for record in result.archive:
        tree_space.assert_valid(record.config)
    assert sa.temperature_ == pytest.approx(0.9 ** 15)
    assert sa.current_ is not None


def test_annealing_acceptance_probability(small_classification_dataset, tree_space):
    """Test the Metropolis acceptance rule."""
    instance = _instance(small_classification_dataset, tree_space, n_evals=1)
    sa = SimulatedAnnealingTuner(initial_temperature=0.5, random_state=0)
    sa._setup(instance, np.random.default_rng(0))
    sa.current_ = {"max_depth": 2, "min_samples_leaf": 0.05, "criterion": "gini"}
    sa.current_score_ = 0.8

    assert sa.acceptance_probability(instance.measure, 0.9) == 1.0
    assert sa.acceptance_probability(instance.measure, 0.7) == pytest.approx(math.exp(-0.1 / 0.5))

    with pytest.raises(ValueError):
        SimulatedAnnealingTuner(cooling_rate=1.5)


def test_design_points(small_classification_dataset, tree_space):
    """Test that design points are evaluated in order."""
    design = pd.DataFrame({
        "max_depth": [1, 3, 5],
        "min_samples_leaf": [0.1, 0.05, 0.01],
        "criterion": ["gini", "entropy", "gini"]
    })
    instance = _instance(small_classification_dataset, tree_space, n_evals=10)
    result = DesignPointsTuner(design, batch_size=2).optimize(instance)

    assert result.n_evals == 3
    assert [r.config["max_depth"] for r in result.archive] == [1, 3, 5]
    assert result.archive.n_batch == 2


def test_tpe(small_classification_dataset, tree_space):
    """Test the TPE tuner driven through ask/tell."""
    instance = _instance(small_classification_dataset, tree_space, n_evals=8)
    tpe = TPETuner(n_startup_trials=3, random_state=0)
    result = tpe.optimize(instance)

    assert result.n_evals == 8
    for record in result.archive:
        tree_space.assert_valid(record.config)
    assert len(tpe.study_.trials) == 8
    assert tpe.study_.best_value == pytest.approx(result.best_score)


def test_tpe_keeps_optuna_quiet(small_classification_dataset, tree_space):
    """Test that Optuna only reports errors, so trials do not flood the output."""
    instance = _instance(small_classification_dataset, tree_space, n_evals=2)
    TPETuner(random_state=0).optimize(instance)
    assert optuna.logging.get_verbosity() == optuna.logging.ERROR


def test_optuna_distributions():
    """Test translating parameters into Optuna distributions."""
    assert to_optuna_distribution(Parameter.integer("d", 1, 5)).high == 5
    assert to_optuna_distribution(Parameter.continuous("lr", 0.001, 0.1, log=True)).log
    assert to_optuna_distribution(Parameter.categorical("c", ["a", "b"])).choices == ("a", "b")


def test_stagnation_with_tuner(small_classification_dataset):
    """Test that a constant objective stagnates."""
    space = SearchSpace([Parameter.categorical("criterion", ["gini"])])
    instance = _instance(small_classification_dataset, space, terminator=StagnationTerminator(iters=3))
    result = RandomSearchTuner(random_state=0).optimize(instance)
    assert result.n_evals == 3


def test_tuner_by_name_and_tune(small_classification_dataset, tree_space):
    """Test tuner construction by tag and the one-call helper."""
    assert isinstance(tuner("grid_search", resolution=4), GridSearchTuner)
    existing = RandomSearchTuner()
    assert get_tuner(existing) is existing
    with pytest.raises(ValueError):
        tuner("hyperband")

    X, y = small_classification_dataset
    instance = tune(
        DecisionTreeClassifier(random_state=0), X, y, tree_space,
        tuner="grid_search", resolution=2,
        terminator=EvalsTerminator(3),
        resampling=CV(folds=2, random_state=0),
        measure="ce"
    )
    assert instance.result.n_evals == 3
    assert instance.archive.measure.minimize
    best = instance.archive.best()
    assert all(best.score <= r.score for r in instance.archive)


def test_default_resampling_is_seeded_holdout(small_classification_dataset, tree_space):
    """Test the instance defaults."""
    X, y = small_classification_dataset
    a = TuningInstance(DecisionTreeClassifier(), X, y, tree_space)
    b = TuningInstance(DecisionTreeClassifier(), X, y, tree_space)
    assert len(a.splits) == 1
    assert np.array_equal(a.splits[0][0], b.splits[0][0])
    with pytest.raises(ValueError):
        TuningInstance(DecisionTreeClassifier(), X, y.iloc[:10], tree_space)
