"""
Learner catalog for NestedTune.

This module contains the learners the command line interface can tune, each
with a default search space written in the tuple grammar accepted by
:meth:`SearchSpace.from_dict`.
"""

from typing import Any, Dict, List, Optional, Type

import numpy as np
from sklearn.base import BaseEstimator

from nestedtune.core.config import CONFIG
from nestedtune.core.search_space import SearchSpace

# Type aliases
ModelConfig = Dict[str, Any]


def _load_learner_class(learner: str, task: str = "classification") -> Type[BaseEstimator]:
    """
    Import the estimator class of a catalog learner.

    Raises:
        ValueError: If the learner or task is not supported
        ImportError: If the package providing the learner is not installed
    """
    if task not in ("classification", "regression"):
        raise ValueError(f"Unsupported task: {task}")
    classification = task == "classification"
    try:
        if learner == "decision_tree":
            from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor
            return DecisionTreeClassifier if classification else DecisionTreeRegressor
        elif learner == "random_forest":
            from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
            return RandomForestClassifier if classification else RandomForestRegressor
        elif learner == "xgboost":
            import xgboost as xgb
            return xgb.XGBClassifier if classification else xgb.XGBRegressor
        else:
            raise ValueError(
                f"Unsupported learner: {learner}. Supported: {', '.join(CONFIG['supported']['learners'])}"
            )
    except ImportError as e:
        raise ImportError(f"Required package for {learner} not installed: {e}")


class ModelConfigs:
    """
    Default learners and search spaces.

    ``max_depth`` bounds depend on the number of training rows: trees deeper
    than about ``2 * log2(n_samples)`` rarely change the fit.
    """

    @staticmethod
    def _max_depth_bound(n_samples: int) -> int:
        return int(min(50, max(2, int(np.log2(max(n_samples, 2)) * 2))))

    @staticmethod
    def get_decision_tree_config(n_samples: int = 1000) -> ModelConfig:
        """
        Returns configuration for the decision tree learner.

        Args:
            n_samples: Number of training rows, used to bound max_depth

        Returns:
            Configuration dictionary with keys:
                - name: Name of the learner
                - params: Fixed constructor arguments
                - search_space: Default search space in tuple grammar
        """
        return {
            "name": "decision_tree",
            "params": {"random_state": CONFIG["defaults"]["random_state"]},
            "search_space": {
                "max_depth": (1, ModelConfigs._max_depth_bound(n_samples), "int"),
                "min_samples_split": (0.01, 0.5, "linear"),
                "min_samples_leaf": (0.005, 0.2, "linear"),
                "max_features": (0.1, 1.0, "linear"),
            }
        }

    @staticmethod
    def get_random_forest_config(n_samples: int = 1000) -> ModelConfig:
        """Returns configuration for the random forest learner."""
        return {
            "name": "random_forest",
            "params": {"random_state": CONFIG["defaults"]["random_state"], "n_jobs": 1},
            "search_space": {
                "n_estimators": (10, 250, "int"),
                "max_depth": (1, ModelConfigs._max_depth_bound(n_samples), "int"),
                "min_samples_split": (0.01, 0.2, "linear"),
                "min_samples_leaf": (0.005, 0.1, "linear"),
                "max_features": (0.1, 0.99, "linear"),
            }
        }

    @staticmethod
    def get_xgboost_config(n_samples: int = 1000) -> ModelConfig:
        """Returns configuration for the XGBoost learner."""
        return {
            "name": "xgboost",
            "params": {"random_state": CONFIG["defaults"]["random_state"], "n_jobs": 1},
            "search_space": {
                "n_estimators": (10, 250, "int"),
                "max_depth": (1, ModelConfigs._max_depth_bound(n_samples), "int"),
                "learning_rate": (0.001, 0.5, "log"),
                "subsample": (0.5, 1.0, "linear"),
                "colsample_bytree": (0.5, 1.0, "linear"),
            }
        }

    @staticmethod
    def get_config(learner: str, n_samples: int = 1000) -> ModelConfig:
        """
        Returns the configuration of a catalog learner by name.

        Raises:
            ValueError: If the learner is not supported
        """
        if learner == "decision_tree":
            return ModelConfigs.get_decision_tree_config(n_samples)
        elif learner == "random_forest":
            return ModelConfigs.get_random_forest_config(n_samples)
        elif learner == "xgboost":
            return ModelConfigs.get_xgboost_config(n_samples)
        raise ValueError(
            f"Unsupported learner: {learner}. Supported: {', '.join(CONFIG['supported']['learners'])}"
        )

    @staticmethod
    def get_search_space(learner: str, n_samples: int = 1000) -> SearchSpace:
        """Default search space of a catalog learner."""
        return SearchSpace.from_dict(ModelConfigs.get_config(learner, n_samples)["search_space"])


def get_learner(
    learner: str,
    task: str = "classification",
    params: Optional[Dict[str, Any]] = None
) -> BaseEstimator:
    """
    Build an unfitted catalog learner.

    Args:
        learner: Catalog name ("decision_tree", "random_forest", "xgboost")
        task: "classification" or "regression"
        params: Constructor arguments overriding the catalog defaults

    Returns:
        Unfitted estimator
    """
    learner_class = _load_learner_class(learner, task)
    kwargs = dict(ModelConfigs.get_config(learner)["params"])
    kwargs.update(params or {})
    return learner_class(**kwargs)


def describe_learners(n_samples: int = 1000) -> Dict[str, List[Dict[str, Any]]]:
    """Catalog learners with the parameters of their default search spaces."""
    return {
        name: [p.describe() for p in ModelConfigs.get_search_space(name, n_samples)]
        for name in CONFIG["supported"]["learners"]
    }
