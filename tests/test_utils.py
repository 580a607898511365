"""
Tests for the utility functions in NestedTune.
"""

import math

import numpy as np
import pandas as pd

from nestedtune.core.utils import (
    convert_to_dataframe,
    get_row_ids,
    load_json,
    nanmean,
    safe_json_serialize,
    save_json,
    take_rows
)


def test_safe_json_serialize():
    """Test conversion of numpy and pandas values."""
    data = {
        "int": np.int64(3),
        "float": np.float32(0.5),
        "missing": float("nan"),
        "flag": np.bool_(True),
        "array": np.array([1, 2]),
        "series": pd.Series([1.0, np.inf]),
        1: "key"
    }
    result = safe_json_serialize(data)
    assert result == {
        "int": 3,
        "float": 0.5,
        "missing": None,
        "flag": True,
        "array": [1, 2],
        "series": [1.0, None],
        "1": "key"
    }


def test_save_and_load_json(tmp_path):
    """Test writing a file into a new directory and reading it back."""
    path = tmp_path / "nested" / "result.json"
    assert save_json({"score": np.float64(0.75), "depth": np.int32(4)}, str(path))
    assert load_json(str(path)) == {"score": 0.75, "depth": 4}
    assert load_json(str(tmp_path / "missing.json"), default={}) == {}


def test_load_json_invalid_file(tmp_path):
    """Test that a broken file falls back to the default."""
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    assert load_json(str(path), default="fallback") == "fallback"


def test_row_helpers(shifted_index_dataset, numpy_classification_dataset):
    """Test that row ids follow the index for pandas and positions for numpy."""
    X, y = shifted_index_dataset
    subset = take_rows(X, [0, 2])
    assert list(get_row_ids(subset)) == [X.index[0], X.index[2]]
    assert list(take_rows(y, [1]).index) == [y.index[1]]

    X_np, _ = numpy_classification_dataset
    assert list(get_row_ids(X_np[:3])) == [0, 1, 2]
    assert np.array_equal(take_rows(X_np, [4]), X_np[[4]])
    assert list(convert_to_dataframe(X_np).columns) == list(range(X_np.shape[1]))


def test_nanmean():
    """Test the mean over non-missing values."""
    assert nanmean([1.0, float("nan"), 3.0]) == 2.0
    assert math.isnan(nanmean([float("nan")]))
    assert math.isnan(nanmean([]))
