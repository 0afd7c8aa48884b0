"""
Iris feature extraction

Turns one frame's facial landmarks into the 2-D feature the gaze regressor
consumes: the pupil position relative to the inner eye corner, normalized by
eye width. Each frame is independent (no temporal filtering).
"""

import math
from typing import NamedTuple, Optional, Sequence, Tuple

from driftpick import constants as const

FeatureVector = Tuple[float, float]


class Landmark(NamedTuple):
    """Normalized image-space landmark (same attribute names as MediaPipe)"""
    x: float
    y: float
    z: float = 0.0


class FeatureExtractor:
    """
    Computes (rel_x, rel_y) from a landmark set

    rel_x = (pupil.x - left.x) / eye_width
    rel_y = (pupil.y - left.y) / eye_width
    eye_width = |right - left|
    """

    def __init__(
        self,
        pupil_index: int = const.LEFT_PUPIL,
        left_corner_index: int = const.LEFT_EYE_LEFT,
        right_corner_index: int = const.LEFT_EYE_RIGHT
    ):
        self.pupil_index = pupil_index
        self.left_corner_index = left_corner_index
        self.right_corner_index = right_corner_index
        self._required_length = max(pupil_index, left_corner_index, right_corner_index) + 1

    def extract(self, landmarks: Optional[Sequence]) -> Optional[FeatureVector]:
        """
        Extract the gaze feature for one frame

        Args:
            landmarks: Indexed landmark collection with .x/.y, or None when no
                face was detected

        Returns:
            (rel_x, rel_y), or None when there is no usable face this frame
        """
        if not landmarks or len(landmarks) < self._required_length:
            return None

        pupil = landmarks[self.pupil_index]
        left = landmarks[self.left_corner_index]
        right = landmarks[self.right_corner_index]

        eye_width = math.hypot(right.x - left.x, right.y - left.y)
        if eye_width == 0.0 or not math.isfinite(eye_width):
            return None

        rel_x = (pupil.x - left.x) / eye_width
        rel_y = (pupil.y - left.y) / eye_width
        return (float(rel_x), float(rel_y))
