"""
Shared fixtures for DriftPick tests
"""

import pytest

from driftpick.calibration.calibration_data import CalibrationSample, CalibrationSet
from driftpick.calibration.calibration_manager import CalibrationStore
from driftpick.calibration.storage import MemoryStorage
from driftpick.data_acquisition.feature_extractor import Landmark

NUM_LANDMARKS = 478


def make_landmarks(pupil, left_corner, right_corner, count=NUM_LANDMARKS):
    """Landmark list with only the pupil (468) and eye corners (33, 133) placed"""
    landmarks = [Landmark(0.5, 0.5) for _ in range(count)]
    landmarks[468] = Landmark(*pupil)
    landmarks[33] = Landmark(*left_corner)
    landmarks[133] = Landmark(*right_corner)
    return landmarks


# Eye width 0.5, pupil a quarter of the way across -> feature (0.25, 0.0)
FACE_LANDMARKS = make_landmarks((0.375, 0.5), (0.25, 0.5), (0.75, 0.5))
FACE_FEATURE = (0.25, 0.0)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return CalibrationStore(storage)


@pytest.fixture
def calibrated_store(storage):
    """Store whose calibration maps FACE_FEATURE to roughly (100, 100)"""
    store = CalibrationStore(storage)
    store.replace(CalibrationSet([
        CalibrationSample(inputs=FACE_FEATURE, target=(100.0, 100.0)),
        CalibrationSample(inputs=(0.9, 0.9), target=(900.0, 600.0)),
        CalibrationSample(inputs=(0.9, 0.0), target=(900.0, 100.0)),
    ]))
    storage.write_count = 0
    return store
