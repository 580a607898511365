"""
Utility functions for NestedTune.

This module contains various utility functions used across the NestedTune package.
"""

import json
import math
import os
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd

# Type aliases
ArrayLike = Union[np.ndarray, pd.DataFrame, pd.Series]
HyperParams = Dict[str, Any]


def safe_json_serialize(obj: Any) -> Any:
    """
    Safely serialize objects to JSON, handling NumPy types.

    NaN and infinite floats are written as None so the output stays valid JSON.

    Args:
        obj: Object to serialize

    Returns:
        JSON-serializable version of the object
    """
    if isinstance(obj, (bool, np.bool_)):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, (float, np.floating)):
        value = float(obj)
        return value if math.isfinite(value) else None
    elif isinstance(obj, np.ndarray):
        return [safe_json_serialize(item) for item in obj.tolist()]
    elif isinstance(obj, pd.DataFrame):
        return [safe_json_serialize(row) for row in obj.to_dict(orient='records')]
    elif isinstance(obj, pd.Series):
        return [safe_json_serialize(item) for item in obj.tolist()]
    elif isinstance(obj, pd.Timestamp):
        return obj.isoformat()
    elif isinstance(obj, dict):
        return {str(k): safe_json_serialize(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [safe_json_serialize(item) for item in obj]
    else:
        return obj


def load_json(file_path: str, default: Optional[Any] = None) -> Any:
    """
    Load a JSON file safely with error handling.

    Args:
        file_path: Path to the JSON file
        default: Default value to return if loading fails

    Returns:
        Loaded JSON data or default value if loading failed
    """
    if not os.path.exists(file_path):
        return default

    try:
        with open(file_path, 'r') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        print(f"Error loading JSON file {file_path}: {str(e)}")
        return default


def save_json(data: Any, file_path: str, ensure_dir: bool = True) -> bool:
    """
    Save data to a JSON file with proper serialization.

    Args:
        data: Data to save (will be serialized using safe_json_serialize)
        file_path: Path to save the JSON file
        ensure_dir: Whether to create the directory if it doesn't exist

    Returns:
        True if saving was successful, False otherwise
    """
    if ensure_dir and os.path.dirname(file_path):
        os.makedirs(os.path.dirname(file_path), exist_ok=True)

    try:
        with open(file_path, 'w') as f:
            json.dump(safe_json_serialize(data), f, indent=2)
        return True
    except (OSError, TypeError, ValueError) as e:
        print(f"Error saving JSON file {file_path}: {str(e)}")
        return False


def convert_to_dataframe(X: ArrayLike) -> pd.DataFrame:
    """
    Convert array-like to DataFrame if it's not already one.

    Args:
        X: Array-like object (numpy array, DataFrame, etc.)

    Returns:
        Pandas DataFrame version of the input
    """
    if isinstance(X, pd.DataFrame):
        return X
    elif isinstance(X, pd.Series):
        return X.to_frame()
    elif isinstance(X, np.ndarray):
        return pd.DataFrame(X)
    else:
        return pd.DataFrame(np.array(X))


def take_rows(data: ArrayLike, positions: Sequence[int]) -> ArrayLike:
    """
    Select rows by position from a DataFrame, Series or numpy array.

    Pandas objects keep their index, so row ids survive nested subsetting.
    """
    if hasattr(data, 'iloc'):
        return data.iloc[positions]
    return np.asarray(data)[positions]


def get_row_ids(X: ArrayLike) -> np.ndarray:
    """
    Return the row identifiers of a dataset.

    DataFrame/Series rows are identified by their index labels, numpy rows by
    their position.
    """
    if hasattr(X, 'index'):
        return np.asarray(X.index)
    return np.arange(len(X))


def nanmean(values: Sequence[float]) -> float:
    """Mean of the non-missing values, NaN if there are none."""
    arr = np.asarray(values, dtype=float)
    arr = arr[~np.isnan(arr)]
    if arr.size == 0:
        return float('nan')
    return float(arr.mean())
