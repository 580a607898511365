"""
Tests for the NestedTune configuration.
"""

import os

from nestedtune.core.config import CONFIG, get_results_path


def test_config_sections():
    """Test that every configured section is present."""
    assert set(CONFIG) == {"paths", "defaults", "annealing", "stagnation", "supported", "data_preparation"}
    assert CONFIG["defaults"]["learner"] in CONFIG["supported"]["learners"]
    assert CONFIG["defaults"]["tuner"] in CONFIG["supported"]["tuners"]
    assert CONFIG["defaults"]["measure"] in CONFIG["supported"]["measures"]


def test_get_results_path_uses_configured_directory(tmp_path, monkeypatch):
    """Test that results go to the configured directory, which is created on demand."""
    results_dir = tmp_path / "results"
    monkeypatch.setitem(CONFIG["paths"], "results_dir", str(results_dir))

    path = get_results_path("tune_decision_tree", "20240101_000000")

    assert os.path.dirname(path) == str(results_dir)
    assert os.path.basename(path) == "tuning_tune_decision_tree_20240101_000000.json"
    assert results_dir.is_dir()
