"""
Data Acquisition Module
Turns camera frames into facial landmarks and landmarks into gaze features
"""

from driftpick.data_acquisition.feature_extractor import (
    FeatureExtractor,
    FeatureVector,
    Landmark
)
from driftpick.data_acquisition.landmark_source import (
    CameraLandmarkSource,
    CameraError,
    LandmarkFrame
)

__all__ = [
    'FeatureExtractor',
    'FeatureVector',
    'Landmark',
    'CameraLandmarkSource',
    'CameraError',
    'LandmarkFrame'
]
