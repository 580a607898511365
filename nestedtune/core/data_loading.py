"""
Data loading functions for NestedTune.

This module handles loading datasets from CSV files and OpenML and preparing
them for tuning.
"""

import os
from typing import Tuple

import openml
import pandas as pd

from nestedtune.core.config import CONFIG

# Type aliases
DatasetTuple = Tuple[pd.DataFrame, str, str]
ProcessedData = Tuple[pd.DataFrame, pd.Series]


def _is_label_dtype(dtype) -> bool:
    """Whether a column holds labels (strings, categories or booleans) rather than numbers."""
    return (
        pd.api.types.is_bool_dtype(dtype)
        or isinstance(dtype, pd.CategoricalDtype)
        or pd.api.types.is_object_dtype(dtype)
        or pd.api.types.is_string_dtype(dtype)
    )


def fetch_open_ml_data(dataset_id: int) -> DatasetTuple:
    """
    Fetches a dataset from OpenML by ID.

    Args:
        dataset_id: The OpenML dataset ID

    Returns:
        A tuple containing:
            - dataframe: The loaded dataset as a pandas DataFrame
            - target_name: Name of the target column
            - dataset_name: Name of the dataset
    """
    dataset = openml.datasets.get_dataset(
        dataset_id,
        download_data=True,
        download_qualities=False,
        download_features_meta_data=False
    )
    print(f'Dataset name: {dataset.name}')

    X, y, _, attribute_names = dataset.get_data(
        dataset_format="dataframe",
        target=dataset.default_target_attribute
    )

    df = pd.DataFrame(X, columns=attribute_names)
    df[dataset.default_target_attribute] = y

    return df, dataset.default_target_attribute, dataset.name


def load_csv(data_path: str, target_name: str) -> DatasetTuple:
    """
    Loads a dataset from a CSV file.

    Args:
        data_path: Path to the CSV file
        target_name: Name of the target column

    Returns:
        Same tuple as fetch_open_ml_data; the dataset name is the file name

    Raises:
        ValueError: If the target column is missing
    """
    df = pd.read_csv(data_path)
    if target_name not in df.columns:
        raise ValueError(f"Target column '{target_name}' not found in dataset")
    return df, target_name, os.path.basename(data_path)


def prepare_data(df: pd.DataFrame, target_name: str) -> ProcessedData:
    """
    Simple preprocessing wrapper that prepares data for tuning.

    Args:
        df: Pandas dataframe containing dataset
        target_name: The name of the target variable column

    Returns:
        A tuple containing:
            - X: Feature matrix as DataFrame with:
                - Categorical/string columns converted to numeric codes
                - Missing values filled with the configured fill value
            - y: Target variable as Series (codes if categorical), sharing X's index
    """
    if df[target_name].isna().any():
        orig_len = len(df)
        df = df.dropna(subset=[target_name])
        print(f"Dropped {orig_len - len(df)} rows with NaN values in target column '{target_name}'")

    y = df[target_name]
    if _is_label_dtype(y.dtype):
        y = pd.Series(pd.factorize(y)[0], index=df.index, name=target_name)

    X = df.drop(target_name, axis=1)
    for col in X.columns:
        if _is_label_dtype(X[col].dtype):
            X[col] = pd.Categorical(X[col]).codes

    X = X.fillna(CONFIG["data_preparation"]["missing_fill"])

    non_numeric = [col for col in X.columns if not pd.api.types.is_numeric_dtype(X[col].dtype)]
    if non_numeric:
        print(f"Warning: Non-numeric columns after preprocessing: {non_numeric}")

    return X, y


def infer_task(y: pd.Series) -> str:
    """Guess whether a target calls for classification or regression."""
    values = pd.Series(y)
    if _is_label_dtype(values.dtype):
        return "classification"
    if pd.api.types.is_integer_dtype(values.dtype) and values.nunique() <= max(20, int(0.05 * len(values))):
        return "classification"
    return "regression"
