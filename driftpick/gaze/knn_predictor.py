"""
Weighted k-nearest-neighbour gaze regression

Maps a feature vector to a screen point by averaging the targets of the k
closest calibration samples, weighted by inverse feature-space distance.
Stateless; safe to call every frame.

Cost is one distance per sample plus a sort (O(N log N)). That is negligible
for a few dozen samples at video frame rates but is the bottleneck if
calibration sets grow large.
"""

from typing import Optional, Tuple

import numpy as np

from driftpick import constants as const
from driftpick.calibration.calibration_data import CalibrationSet, ScreenPoint


class KNNGazePredictor:
    """
    Inverse-distance weighted k-NN regressor

    Args:
        k: Number of neighbours (all samples are used when fewer exist)
        epsilon: Added to distances so an exact match does not divide by zero
    """

    def __init__(self, k: int = const.KNN_NEIGHBORS, epsilon: float = const.KNN_EPSILON):
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        if epsilon <= 0:
            raise ValueError(f"epsilon must be > 0, got {epsilon}")
        self.k = k
        self.epsilon = epsilon

    def nearest(
        self,
        feature: Tuple[float, float],
        calibration_set: CalibrationSet
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Indices and distances of the k nearest samples, closest first

        Equal distances keep the calibration set's order.
        """
        query = np.asarray(feature, dtype=float).reshape(1, 2)
        distances = np.linalg.norm(calibration_set.inputs - query, axis=1)
        order = np.argsort(distances, kind='stable')[:self.k]
        return order, distances[order]

    def predict(
        self,
        feature: Tuple[float, float],
        calibration_set: CalibrationSet
    ) -> Optional[ScreenPoint]:
        """
        Predict the screen point for a feature vector

        Returns:
            (x, y) in the calibration targets' coordinate space, or None if
            the calibration set is empty
        """
        if len(calibration_set) == 0:
            return None

        order, distances = self.nearest(feature, calibration_set)
        weights = 1.0 / (distances + self.epsilon)
        point = weights @ calibration_set.targets[order] / weights.sum()
        return (float(point[0]), float(point[1]))


def predict_gaze(
    feature: Tuple[float, float],
    calibration_set: CalibrationSet,
    k: int = const.KNN_NEIGHBORS,
    epsilon: float = const.KNN_EPSILON
) -> Optional[ScreenPoint]:
    """Functional shortcut for KNNGazePredictor(k, epsilon).predict(...)"""
    return KNNGazePredictor(k=k, epsilon=epsilon).predict(feature, calibration_set)
