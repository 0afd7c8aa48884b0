"""
Tracking session

One TrackingSession is created when tracking starts and discarded when it
stops. It owns every piece of mutable per-session state (latest feature,
calibration pass, attention scores) and runs the per-frame chain:

    landmarks -> feature -> predicted point -> target identifier -> score update

Everything here is synchronous and must be driven from a single flow.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Tuple

from driftpick.attention.interest_scorer import AttentionScorer
from driftpick.calibration.calibration_manager import (
    CalibrationOutcome,
    CalibrationSession,
    CalibrationStore,
    ConfirmationResult
)
from driftpick.data_acquisition.feature_extractor import FeatureExtractor, FeatureVector
from driftpick.data_acquisition.landmark_source import LandmarkFrame
from driftpick.gaze.knn_predictor import KNNGazePredictor

TargetResolver = Callable[[Tuple[float, float]], Optional[str]]


@dataclass
class FrameResult:
    """What the pipeline produced for one frame"""
    timestamp_ms: float
    feature: Optional[FeatureVector] = None
    gaze_point: Optional[Tuple[float, float]] = None
    target: Optional[str] = None
    calibrating: bool = False

    @property
    def face_detected(self) -> bool:
        return self.feature is not None


class TrackingSession:
    """
    Per-session context for gaze estimation and attention scoring

    Args:
        store: Calibration store used for prediction (and written by calibration)
        extractor: Feature extractor (default landmark indices when None)
        predictor: Gaze predictor (k=5 when None)
        scorer: Attention scorer (default scoring when None)
        resolver: Maps a gaze point to a target identifier; when None no
            scoring happens
        calibration: Calibration pass (3x3 grid when None)
    """

    def __init__(
        self,
        store: CalibrationStore,
        extractor: Optional[FeatureExtractor] = None,
        predictor: Optional[KNNGazePredictor] = None,
        scorer: Optional[AttentionScorer] = None,
        resolver: Optional[TargetResolver] = None,
        calibration: Optional[CalibrationSession] = None
    ):
        self.store = store
        self.extractor = extractor or FeatureExtractor()
        self.predictor = predictor or KNNGazePredictor()
        self.scorer = scorer or AttentionScorer()
        self.resolver = resolver
        self.calibration = calibration or CalibrationSession(store)
        self.logger = logging.getLogger(__name__)

        self.active = True
        self.latest_feature: Optional[FeatureVector] = None
        self.frame_count = 0
        self.faceless_frames = 0

    def process_frame(self, frame: LandmarkFrame) -> FrameResult:
        """Run the per-frame chain for one landmark frame"""
        self.frame_count += 1
        feature = self.extractor.extract(frame.landmarks)
        self.latest_feature = feature

        result = FrameResult(
            timestamp_ms=frame.timestamp_ms,
            feature=feature,
            calibrating=self.calibration.is_collecting
        )

        if feature is None:
            self.faceless_frames += 1
            return result

        # Prediction is paused while the user is looking at calibration dots
        if result.calibrating or not self.store.is_calibrated:
            return result

        result.gaze_point = self.predictor.predict(feature, self.store.current)
        if result.gaze_point is None or self.resolver is None:
            return result

        result.target = self.resolver(result.gaze_point)
        self.scorer.update(result.target, frame.timestamp_ms)
        return result

    def run(self, frames: Iterable[LandmarkFrame]) -> Iterator[FrameResult]:
        """
        Process frames lazily until the source ends or stop() is called

        The active flag is checked before each frame; the frame in flight
        always completes.
        """
        for frame in frames:
            if not self.active:
                break
            yield self.process_frame(frame)
        self.logger.info(
            f"Tracking stopped after {self.frame_count} frames "
            f"({self.faceless_frames} without a face)"
        )

    def stop(self):
        self.active = False

    # === Calibration ===

    def start_calibration(self):
        self.calibration.start()

    def confirm_calibration_point(
        self,
        point_index: int,
        viewport: Tuple[float, float]
    ) -> ConfirmationResult:
        """Confirm a calibration point using the latest frame's feature"""
        return self.calibration.confirm(point_index, self.latest_feature, viewport)

    def skip_calibration_point(self) -> bool:
        return self.calibration.skip()

    def abort_calibration(self, reason: str = "Calibration aborted") -> CalibrationOutcome:
        return self.calibration.abort(reason)
