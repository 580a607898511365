"""
Configuration settings for NestedTune.

This module centralizes all configurable parameters used across the NestedTune
package, making it easier to manage and modify settings.
"""

import os

# Base paths
DEFAULT_BASE_DIR = os.path.join(os.path.expanduser("~"), ".nestedtune")
DEFAULT_RESULTS_DIR = os.path.join(DEFAULT_BASE_DIR, "results")

# Results settings
DEFAULT_RESULTS_FILENAME = "tuning_{learner}_{timestamp}.json"

# Tuning defaults
DEFAULT_LEARNER = "random_forest"
DEFAULT_TUNER = "random_search"
DEFAULT_MEASURE = "accuracy"
DEFAULT_RANDOM_STATE = 42
DEFAULT_BATCH_SIZE = 1
DEFAULT_N_JOBS = 1
DEFAULT_N_EVALS = 20
DEFAULT_RESOLUTION = 5

# Resampling defaults
DEFAULT_FOLDS = 3
DEFAULT_OUTER_FOLDS = 3
DEFAULT_HOLDOUT_RATIO = 0.8
DEFAULT_REPEATS = 10

# Simulated annealing defaults
DEFAULT_INITIAL_TEMPERATURE = 1.0
DEFAULT_COOLING_RATE = 0.95
DEFAULT_STEP_SIZE = 0.1

# Stagnation defaults
DEFAULT_STAGNATION_ITERS = 10
DEFAULT_STAGNATION_THRESHOLD = 0.0


def get_results_path(learner: str, timestamp: str) -> str:
    """
    Get the path to the results file for a given learner.

    Args:
        learner: The name of the learner (e.g., "random_forest")
        timestamp: Timestamp string used to make the filename unique

    Returns:
        Path to the results file
    """
    results_dir = CONFIG["paths"]["results_dir"]
    os.makedirs(results_dir, exist_ok=True)
    filename = DEFAULT_RESULTS_FILENAME.format(learner=learner, timestamp=timestamp)
    return os.path.join(results_dir, filename)


# Supported components
SUPPORTED_LEARNERS = ["decision_tree", "random_forest", "xgboost"]
SUPPORTED_MEASURES = ["accuracy", "ce", "f1", "roc_auc", "logloss", "mse", "rmse", "mae", "r2"]
SUPPORTED_TUNERS = ["grid_search", "random_search", "simulated_annealing", "design_points", "tpe"]
SUPPORTED_TERMINATORS = ["evals", "run_time", "clock_time", "perf_reached", "stagnation", "combo", "none"]
SUPPORTED_FILTERS = ["variance", "correlation", "anova", "mutual_info", "importance"]

# Data preparation settings
DATA_PREPARATION = {
    "missing_fill": 0
}

# Export configuration as a dictionary for easier access
CONFIG = {
    "paths": {
        "results_dir": DEFAULT_RESULTS_DIR
    },
    "defaults": {
        "learner": DEFAULT_LEARNER,
        "tuner": DEFAULT_TUNER,
        "measure": DEFAULT_MEASURE,
        "random_state": DEFAULT_RANDOM_STATE,
        "batch_size": DEFAULT_BATCH_SIZE,
        "n_jobs": DEFAULT_N_JOBS,
        "n_evals": DEFAULT_N_EVALS,
        "resolution": DEFAULT_RESOLUTION,
        "folds": DEFAULT_FOLDS,
        "outer_folds": DEFAULT_OUTER_FOLDS,
        "holdout_ratio": DEFAULT_HOLDOUT_RATIO,
        "repeats": DEFAULT_REPEATS
    },
    "annealing": {
        "initial_temperature": DEFAULT_INITIAL_TEMPERATURE,
        "cooling_rate": DEFAULT_COOLING_RATE,
        "step_size": DEFAULT_STEP_SIZE
    },
    "stagnation": {
        "iters": DEFAULT_STAGNATION_ITERS,
        "threshold": DEFAULT_STAGNATION_THRESHOLD
    },
    "supported": {
        "learners": SUPPORTED_LEARNERS,
        "measures": SUPPORTED_MEASURES,
        "tuners": SUPPORTED_TUNERS,
        "terminators": SUPPORTED_TERMINATORS,
        "filters": SUPPORTED_FILTERS
    },
    "data_preparation": DATA_PREPARATION
}
