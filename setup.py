#!/usr/bin/env python
"""
Setup script for NestedTune - Hyperparameter tuning with nested resampling.
"""

from setuptools import setup, find_packages

# Read README.md for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="nestedtune",
    version="0.1.0",
    description="Hyperparameter tuning with budgets, archives and nested resampling for scikit-learn learners",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pandas>=2.0.0",
        "numpy>=1.24.0",
        "tqdm>=4.65.0",
        "scipy>=1.10.0",
        "scikit-learn>=1.2.0",
        "xgboost>=1.7.0",
        "openml>=0.14.0",
        "joblib>=1.2.0",
        "optuna>=3.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "packaging>=21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "nestedtune=nestedtune.__main__:main",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
)
