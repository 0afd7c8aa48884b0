"""
Tests for YAML configuration loading
"""

from pathlib import Path

import pytest

from driftpick.main import build_target_map, build_tracking_session
from driftpick.calibration.calibration_manager import CalibrationStore
from driftpick.calibration.storage import MemoryStorage
from driftpick.utils.config_loader import get_section, load_config, load_config_or_default

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "config.yaml"


def test_load_config(tmp_path):
    """Test a YAML mapping is returned as a dict"""
    path = tmp_path / "config.yaml"
    path.write_text("gaze:\n  k: 3\n", encoding="utf-8")
    assert load_config(str(path)) == {'gaze': {'k': 3}}


def test_missing_file_raises(tmp_path):
    """Test a missing file is an error for load_config"""
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_missing_file_falls_back(tmp_path):
    """Test load_config_or_default returns empty config"""
    assert load_config_or_default(str(tmp_path / "nope.yaml")) == {}


def test_empty_file(tmp_path):
    """Test an empty file is an empty config"""
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)) == {}


def test_non_mapping_root(tmp_path):
    """Test a list at the root is rejected"""
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_get_section():
    """Test missing and null sections read as empty"""
    assert get_section({'gaze': None}, 'gaze') == {}
    assert get_section({}, 'gaze') == {}
    assert get_section({'gaze': {'k': 5}}, 'gaze') == {'k': 5}


def test_repository_config_builds_session():
    """Test the shipped config wires a complete session"""
    config = load_config(str(REPO_CONFIG))
    for section in ('camera', 'gaze', 'calibration', 'attention', 'logging'):
        assert section in config

    session = build_tracking_session(config, CalibrationStore(MemoryStorage()))
    assert session.predictor.k == config['gaze']['k']
    assert len(session.calibration.points) == 9
    assert session.scorer.config.gap_threshold_ms == 500

    target_map = build_target_map(config)
    assert len(target_map.regions) == len(config.get('targets') or [])


def test_custom_config_values(tmp_path):
    """Test config sections override built-in defaults"""
    config = {
        'gaze': {'k': 3},
        'calibration': {'grid_percent': [25, 75], 'min_samples': 2},
        'attention': {'gap_threshold_ms': 250},
    }
    session = build_tracking_session(config, CalibrationStore(MemoryStorage()))
    assert session.predictor.k == 3
    assert len(session.calibration.points) == 4
    assert session.calibration.min_samples == 2
    assert session.scorer.config.gap_threshold_ms == 250
