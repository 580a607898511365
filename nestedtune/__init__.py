"""
NestedTune: Hyperparameter tuning and nested resampling for scikit-learn learners.

NestedTune tunes a learner over a declared search space, stops according to
configurable budgets, records every evaluation, and wraps the whole loop as a
single estimator so its performance can be estimated without leaking test
data into tuning.

Usage example:
```python
from sklearn.datasets import load_breast_cancer
from sklearn.tree import DecisionTreeClassifier
from nestedtune import AutoTuner, CV, GridSearchTuner, nested_resample, terminator

X, y = load_breast_cancer(return_X_y=True, as_frame=True)

at = AutoTuner(
    learner=DecisionTreeClassifier(random_state=42),
    search_space={"max_depth": (1, 10, "int"), "min_samples_leaf": (0.005, 0.2, "linear")},
    tuner=GridSearchTuner(resolution=5, random_state=42),
    terminator=terminator("evals", n_evals=20),
    resampling=CV(folds=3, random_state=42),
    measure="accuracy"
)

result = nested_resample(at, X, y, outer_resampling=CV(folds=3, random_state=1))
print(result.score)
print(result.to_dataframe())
```
"""

from nestedtune.core import (
    CV,
    Archive,
    AutoTuner,
    Bootstrap,
    CustomResampling,
    DesignPointsTuner,
    GridSearchTuner,
    Holdout,
    ModelConfigs,
    Parameter,
    RandomSearchTuner,
    RepeatedCV,
    SearchSpace,
    SimulatedAnnealingTuner,
    Subsampling,
    TPETuner,
    TuningInstance,
    get_filter,
    get_learner,
    get_measure,
    nested_resample,
    terminator,
    tune,
    tuner
)

__version__ = '0.1.0'

__all__ = [
    'AutoTuner',        # Tuned learner for nested resampling
    'nested_resample',
    'TuningInstance',
    'tune',
    'tuner',
    'terminator',
    'SearchSpace',
    'Parameter',
    'Archive',
    'GridSearchTuner',
    'RandomSearchTuner',
    'SimulatedAnnealingTuner',
    'DesignPointsTuner',
    'TPETuner',
    'Holdout',
    'CV',
    'RepeatedCV',
    'Subsampling',
    'Bootstrap',
    'CustomResampling',
    'ModelConfigs',
    'get_learner',
    'get_measure',
    'get_filter'
]
