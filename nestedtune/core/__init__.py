"""
NestedTune Core Package.

This package provides the core functionality for NestedTune: search spaces,
measures, resampling, terminators, the optimization archive, tuners, the
auto tuner for nested resampling, and feature filters.
"""

from nestedtune.core.archive import Archive, EvaluationRecord
from nestedtune.core.auto_tuner import AutoTuner, NestedResampleResult, check_leakage, nested_resample
from nestedtune.core.config import CONFIG
from nestedtune.core.data_loading import fetch_open_ml_data, infer_task, load_csv, prepare_data
from nestedtune.core.evaluation import EvaluationResult, evaluate_batch, evaluate_configuration
from nestedtune.core.exceptions import (
    BudgetMisconfigured,
    EvaluationError,
    InvalidSearchSpace,
    LeakageError,
    NestedTuneError,
    OutOfRangeError
)
from nestedtune.core.filters import (
    AnovaFilter,
    CorrelationFilter,
    Filter,
    FilterSelector,
    ImportanceFilter,
    MutualInfoFilter,
    VarianceFilter,
    get_filter,
    select_features
)
from nestedtune.core.measures import Measure, get_measure
from nestedtune.core.model_configs import ModelConfigs, get_learner
from nestedtune.core.resampling import (
    CV,
    Bootstrap,
    CustomResampling,
    Holdout,
    RepeatedCV,
    Resampling,
    Subsampling,
    get_resampling
)
from nestedtune.core.search_space import Parameter, SearchSpace
from nestedtune.core.terminators import (
    BudgetController,
    ClockTimeTerminator,
    ComboTerminator,
    EvalsTerminator,
    NoneTerminator,
    PerfReachedTerminator,
    RunTimeTerminator,
    StagnationTerminator,
    Terminator,
    terminator
)
from nestedtune.core.tuners import (
    DesignPointsTuner,
    GridSearchTuner,
    RandomSearchTuner,
    SimulatedAnnealingTuner,
    TPETuner,
    Tuner,
    tune,
    tuner
)
from nestedtune.core.tuning_instance import TuningInstance, TuningResult
from nestedtune.core.utils import load_json, safe_json_serialize, save_json

__all__ = [
    'Archive',
    'AnovaFilter',
    'AutoTuner',
    'Bootstrap',
    'BudgetController',
    'BudgetMisconfigured',
    'CONFIG',
    'CV',
    'ClockTimeTerminator',
    'ComboTerminator',
    'CorrelationFilter',
    'CustomResampling',
    'DesignPointsTuner',
    'EvalsTerminator',
    'EvaluationError',
    'EvaluationRecord',
    'EvaluationResult',
    'Filter',
    'FilterSelector',
    'GridSearchTuner',
    'Holdout',
    'ImportanceFilter',
    'InvalidSearchSpace',
    'LeakageError',
    'Measure',
    'ModelConfigs',
    'MutualInfoFilter',
    'NestedResampleResult',
    'NestedTuneError',
    'NoneTerminator',
    'OutOfRangeError',
    'Parameter',
    'PerfReachedTerminator',
    'RandomSearchTuner',
    'RepeatedCV',
    'Resampling',
    'RunTimeTerminator',
    'SearchSpace',
    'SimulatedAnnealingTuner',
    'StagnationTerminator',
    'Subsampling',
    'TPETuner',
    'Terminator',
    'Tuner',
    'TuningInstance',
    'TuningResult',
    'VarianceFilter',
    'check_leakage',
    'evaluate_batch',
    'evaluate_configuration',
    'fetch_open_ml_data',
    'get_filter',
    'get_learner',
    'get_measure',
    'get_resampling',
    'infer_task',
    'load_csv',
    'load_json',
    'nested_resample',
    'prepare_data',
    'safe_json_serialize',
    'save_json',
    'select_features',
    'terminator',
    'tune',
    'tuner'
]
