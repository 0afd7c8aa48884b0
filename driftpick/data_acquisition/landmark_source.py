"""
Camera landmark source

Wraps an OpenCV camera and a MediaPipe FaceLandmarker and exposes the stream
as a lazy sequence of LandmarkFrame objects, so the per-frame pipeline is a
plain synchronous transform over an iterable.
"""

import logging
import os
import urllib.request
from typing import Iterator, NamedTuple, Optional, Sequence

import cv2
import numpy as np

from driftpick import constants as const

FACE_LANDMARKER_MODEL_URL = (
    'https://storage.googleapis.com/mediapipe-models/face_landmarker/'
    'face_landmarker/float16/1/face_landmarker.task'
)


class CameraError(RuntimeError):
    """Camera or landmark model could not be started (fatal for tracking)"""


class LandmarkFrame(NamedTuple):
    """One frame's landmarks (None when no face) and its timestamp in ms"""
    landmarks: Optional[Sequence]
    timestamp_ms: float


def _camera_timestamp_ms() -> int:
    return int(cv2.getTickCount() / cv2.getTickFrequency() * 1000)


class CameraLandmarkSource:
    """
    Single-face landmark stream from a webcam

    Usage:
        source = CameraLandmarkSource(camera_index=0)
        source.open()
        for frame in source.frames():
            ...
        source.close()
    """

    def __init__(
        self,
        camera_index: int = const.DEFAULT_CAMERA_INDEX,
        model_path: str = 'face_landmarker.task',
        mirror: bool = True,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5
    ):
        self.camera_index = camera_index
        self.model_path = model_path
        self.mirror = mirror
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.logger = logging.getLogger(__name__)

        self.camera: Optional[cv2.VideoCapture] = None
        self.face_landmarker = None
        self.last_image: Optional[np.ndarray] = None
        self._last_timestamp_ms = -1
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def _ensure_model(self) -> str:
        if os.path.exists(self.model_path):
            return self.model_path

        self.logger.info("Downloading MediaPipe face landmarker model...")
        try:
            urllib.request.urlretrieve(FACE_LANDMARKER_MODEL_URL, self.model_path)
        except OSError as e:
            raise CameraError(f"Failed to download face landmarker model: {e}") from e
        self.logger.info(f"Model saved to {self.model_path}")
        return self.model_path

    def _setup_mediapipe(self):
        try:
            from mediapipe.tasks import python
            from mediapipe.tasks.python import vision
        except ImportError as e:
            raise CameraError(f"MediaPipe is not available: {e}") from e

        base_options = python.BaseOptions(
            model_asset_path=self._ensure_model(),
            delegate=python.BaseOptions.Delegate.CPU
        )
        options = vision.FaceLandmarkerOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.VIDEO,
            num_faces=1,
            min_face_detection_confidence=self.min_detection_confidence,
            min_face_presence_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence
        )
        try:
            self.face_landmarker = vision.FaceLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise CameraError(f"MediaPipe init failed: {e}") from e
        self.logger.info("Face landmarker initialized")

    def open(self):
        """Open the camera and the landmark model; raises CameraError on failure"""
        if self._open:
            return

        self._setup_mediapipe()

        self.camera = cv2.VideoCapture(self.camera_index)
        if not self.camera.isOpened():
            self.camera.release()
            self.camera = None
            raise CameraError(
                f"Failed to open camera {self.camera_index} "
                "(check that it is connected, permitted and not in use)"
            )

        self._open = True
        self.logger.info(f"Camera {self.camera_index} opened")

    def detect(self, image: np.ndarray, timestamp_ms: int) -> Optional[Sequence]:
        """Run the landmark model on one BGR image; None when no face"""
        import mediapipe as mp

        # VIDEO mode requires strictly increasing timestamps
        timestamp_ms = max(timestamp_ms, self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms

        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        results = self.face_landmarker.detect_for_video(mp_image, timestamp_ms)

        if not results.face_landmarks:
            return None
        return results.face_landmarks[0]

    def read(self) -> Optional[LandmarkFrame]:
        """Read one camera frame; None when the camera stopped delivering"""
        if not self._open or self.camera is None:
            return None

        ret, image = self.camera.read()
        if not ret:
            self.logger.warning("Failed to read frame from camera")
            return None

        if self.mirror:
            image = cv2.flip(image, 1)
        self.last_image = image

        timestamp_ms = _camera_timestamp_ms()
        return LandmarkFrame(self.detect(image, timestamp_ms), float(timestamp_ms))

    def frames(self) -> Iterator[LandmarkFrame]:
        """Lazy frame sequence; ends when closed or the camera fails"""
        while self._open:
            frame = self.read()
            if frame is None:
                return
            yield frame

    def close(self):
        self._open = False
        if self.camera is not None:
            self.camera.release()
            self.camera = None
        if self.face_landmarker is not None:
            self.face_landmarker.close()
            self.face_landmarker = None
        self.logger.info("Landmark source closed")
