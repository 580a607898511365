#!/usr/bin/env python
"""
NestedTune command-line interface for hyperparameter tuning and nested resampling.
"""

import argparse
import datetime
import sys
from typing import Any, Dict, Optional, Tuple

import pandas as pd

from nestedtune.core import (
    CONFIG,
    CV,
    AutoTuner,
    ModelConfigs,
    fetch_open_ml_data,
    get_filter,
    get_learner,
    infer_task,
    load_csv,
    nested_resample,
    prepare_data,
    terminator,
    tune,
    tuner
)
from nestedtune.core.config import get_results_path
from nestedtune.core.model_configs import describe_learners
from nestedtune.core.utils import save_json


def _add_data_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--dataset-id", type=int, help="OpenML dataset ID")
    parser.add_argument("--data-path", type=str, help="Path to custom dataset CSV file")
    parser.add_argument("--target", type=str, help="Target column name for custom dataset")


def _add_tuning_arguments(parser: argparse.ArgumentParser) -> None:
    defaults = CONFIG["defaults"]
    parser.add_argument("--learner", type=str, choices=CONFIG["supported"]["learners"], default=defaults["learner"], help="Learner to tune")
    parser.add_argument("--tuner", type=str, choices=CONFIG["supported"]["tuners"], default=defaults["tuner"], help="Tuning strategy")
    parser.add_argument("--resolution", type=int, default=defaults["resolution"], help="Grid resolution per numeric parameter")
    parser.add_argument("--n-evals", type=int, default=defaults["n_evals"], help="Number of evaluated configurations")
    parser.add_argument("--folds", type=int, default=defaults["folds"], help="Inner cross-validation folds")
    parser.add_argument("--measure", type=str, choices=CONFIG["supported"]["measures"], default=None, help="Performance measure (defaults by task)")
    parser.add_argument("--batch-size", type=int, default=defaults["batch_size"], help="Configurations per batch")
    parser.add_argument("--n-jobs", type=int, default=defaults["n_jobs"], help="Parallel workers per batch")
    parser.add_argument("--seed", type=int, default=defaults["random_state"], help="Random seed")
    parser.add_argument("--output", type=str, help="Path of the JSON result file")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="NestedTune: Hyperparameter tuning with nested resampling")
    subparsers = parser.add_subparsers(dest="command", help="Command to run", required=True)

    # Tune command
    tune_parser = subparsers.add_parser("tune", help="Tune a learner on a dataset")
    _add_data_arguments(tune_parser)
    _add_tuning_arguments(tune_parser)

    # Nested command
    nested_parser = subparsers.add_parser("nested", help="Estimate tuned performance with nested resampling")
    _add_data_arguments(nested_parser)
    _add_tuning_arguments(nested_parser)
    nested_parser.add_argument("--outer-folds", type=int, default=CONFIG["defaults"]["outer_folds"], help="Outer cross-validation folds")

    # Filter command
    filter_parser = subparsers.add_parser("filter", help="Score features with a filter")
    _add_data_arguments(filter_parser)
    filter_parser.add_argument("--filter", type=str, choices=CONFIG["supported"]["filters"], default="anova", help="Filter to apply")
    filter_parser.add_argument("--top", type=int, default=None, help="Only show the best N features")

    # Learners command
    subparsers.add_parser("learners", help="List learners and their default search spaces")

    try:
        args = parser.parse_args()

        if args.command == "learners":
            return list_learners()

        data = load_data(args.dataset_id, args.data_path, args.target)
        if data is None:
            return 1
        X, y = data

        if args.command == "tune":
            return run_tune(X, y, args)
        elif args.command == "nested":
            return run_nested(X, y, args)
        elif args.command == "filter":
            return run_filter(X, y, args.filter, args.top, CONFIG["defaults"]["random_state"])
        else:
            print(f"Unknown command: {args.command}")
            return 1

    except SystemExit as e:
        return e.code
    except Exception as e:
        print(f"Error: {str(e)}")
        return 1


def load_data(
    dataset_id: Optional[int],
    data_path: Optional[str],
    target: Optional[str]
) -> Optional[Tuple[pd.DataFrame, pd.Series]]:
    """Load and prepare a dataset from OpenML or a CSV file."""
    if dataset_id is not None:
        print(f"Fetching OpenML dataset {dataset_id}...")
        df, target_name, dataset_name = fetch_open_ml_data(dataset_id)
    elif data_path is not None and target is not None:
        print(f"Loading dataset from {data_path}...")
        df, target_name, dataset_name = load_csv(data_path, target)
    else:
        print("Error: Either --dataset-id or both --data-path and --target must be provided")
        return None
    print(f"Dataset: {dataset_name} ({len(df)} rows)")
    return prepare_data(df, target_name)


def _build_tuning_setup(X: pd.DataFrame, y: pd.Series, args: argparse.Namespace) -> Dict[str, Any]:
    task = infer_task(y)
    measure = args.measure or ("accuracy" if task == "classification" else "rmse")
    tuner_kwargs: Dict[str, Any] = {"batch_size": args.batch_size}
    if args.tuner == "grid_search":
        tuner_kwargs["resolution"] = args.resolution
    if args.tuner != "design_points":
        tuner_kwargs["random_state"] = args.seed
    return {
        "task": task,
        "learner": get_learner(args.learner, task),
        "search_space": ModelConfigs.get_search_space(args.learner, n_samples=len(X)),
        "tuner": tuner(args.tuner, **tuner_kwargs),
        "terminator": terminator("evals", n_evals=args.n_evals),
        "resampling": CV(folds=args.folds, stratify=task == "classification", random_state=args.seed),
        "measure": measure
    }


def _output_path(args: argparse.Namespace) -> str:
    if args.output:
        return args.output
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    return get_results_path(f"{args.command}_{args.learner}", timestamp)


def run_tune(X: pd.DataFrame, y: pd.Series, args: argparse.Namespace) -> int:
    """Tune a catalog learner and save best configuration and archive."""
    setup = _build_tuning_setup(X, y, args)
    print(f"Tuning {args.learner} ({setup['task']}) with {args.tuner}, measure: {setup['measure']}")

    instance = tune(
        setup["learner"], X, y, setup["search_space"],
        tuner=setup["tuner"],
        terminator=setup["terminator"],
        resampling=setup["resampling"],
        measure=setup["measure"],
        n_jobs=args.n_jobs,
        verbose=not args.quiet
    )
    result = instance.result
    if result.best_params is None:
        print("Error: No configuration could be evaluated")
        return 1

    print("\n=== Best Hyperparameters ===")
    for param, value in result.best_params.items():
        print(f"{param}: {value}")
    print(f"\nScore ({setup['measure']}): {result.best_score:.4f}")

    output = _output_path(args)
    payload = {"learner": args.learner, "tuner": args.tuner, **result.to_dict()}
    if save_json(payload, output):
        print(f"Results saved to {output}")
    return 0


def run_nested(X: pd.DataFrame, y: pd.Series, args: argparse.Namespace) -> int:
    """Nested resampling of an auto tuner built from a catalog learner."""
    setup = _build_tuning_setup(X, y, args)
    print(f"Nested resampling of {args.learner} ({setup['task']}) with {args.tuner}: "
          f"{args.outer_folds} outer folds, {args.folds} inner folds")

    auto_tuner = AutoTuner(
        learner=setup["learner"],
        search_space=setup["search_space"],
        tuner=setup["tuner"],
        terminator=setup["terminator"],
        resampling=setup["resampling"],
        measure=setup["measure"],
        n_jobs=args.n_jobs
    )
    outer = CV(folds=args.outer_folds, stratify=setup["task"] == "classification", random_state=args.seed + 1)
    result = nested_resample(auto_tuner, X, y, outer_resampling=outer, verbose=not args.quiet)

    print("\n=== Outer Folds ===")
    print(result.to_dataframe().to_string(index=False))
    print(f"\nEstimated {setup['measure']}: {result.score:.4f}")

    output = _output_path(args)
    payload = {"learner": args.learner, "tuner": args.tuner, **result.to_dict()}
    if save_json(payload, output):
        print(f"Results saved to {output}")
    return 0


def run_filter(X: pd.DataFrame, y: pd.Series, filter_name: str, top: Optional[int], seed: int) -> int:
    """Print filter scores of every feature."""
    task = infer_task(y)
    if filter_name in ("anova", "mutual_info", "importance"):
        kwargs: Dict[str, Any] = {"task": task}
        if filter_name == "mutual_info":
            kwargs["random_state"] = seed
        scorer = get_filter(filter_name, **kwargs)
    else:
        scorer = get_filter(filter_name)

    scores = scorer.calculate(X, y)
    if top is not None:
        scores = scores.head(top)
    print(f"\n=== {filter_name} scores ===")
    for feature, score in scores.items():
        print(f"{feature}: {score:.6f}")
    return 0


def list_learners() -> int:
    """List catalog learners and their default search spaces."""
    for name, params in describe_learners().items():
        print(f"\n{name}:")
        for p in params:
            if p["type"] == "categorical":
                print(f"  {p['name']} (categorical): {p['levels']}")
            else:
                scale = ", log" if p["log"] else ""
                print(f"  {p['name']} ({p['type']}{scale}): [{p['lower']}, {p['upper']}]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
