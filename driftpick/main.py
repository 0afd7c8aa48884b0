"""
Main entry point for DriftPick
Runs the see -> estimate -> score loop with a local OpenCV viewport
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import cv2
import numpy as np

# Ensure we can import the package regardless of where the script is run from
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from driftpick import constants as const
from driftpick.attention.interest_scorer import AttentionScorer, ScoringConfig, score_tier
from driftpick.attention.target_map import TargetMap, TargetRegion
from driftpick.calibration.calibration_manager import (
    CalibrationOutcome,
    CalibrationSession,
    CalibrationStore,
    ConfirmationResult,
    grid_points
)
from driftpick.calibration.storage import JsonFileStorage
from driftpick.data_acquisition.feature_extractor import FeatureExtractor
from driftpick.data_acquisition.landmark_source import CameraLandmarkSource, CameraError
from driftpick.gaze.knn_predictor import KNNGazePredictor
from driftpick.tracking import FrameResult, TrackingSession
from driftpick.utils.config_loader import get_section, load_config_or_default
from driftpick.utils.logger import setup_logger, get_logger

TEXT_FONT = cv2.FONT_HERSHEY_SIMPLEX


def build_calibration_store(config: Dict[str, Any]) -> CalibrationStore:
    """Calibration store backed by the JSON file named in config"""
    cal_cfg = get_section(config, 'calibration')
    storage = JsonFileStorage(cal_cfg.get('storage_path', const.CALIBRATION_STORAGE_PATH))
    return CalibrationStore(storage, key=cal_cfg.get('storage_key', const.CALIBRATION_STORAGE_KEY))


def build_target_map(config: Dict[str, Any]) -> TargetMap:
    """Static target regions from config (the server replaces them at runtime)"""
    return TargetMap(TargetRegion.from_dict(item) for item in (config.get('targets') or []))


def build_tracking_session(
    config: Dict[str, Any],
    store: CalibrationStore,
    resolver=None
) -> TrackingSession:
    """Fresh tracking session wired from config sections"""
    lm_cfg = get_section(config, 'landmarks')
    gaze_cfg = get_section(config, 'gaze')
    cal_cfg = get_section(config, 'calibration')

    extractor = FeatureExtractor(
        pupil_index=int(lm_cfg.get('pupil_index', const.LEFT_PUPIL)),
        left_corner_index=int(lm_cfg.get('left_corner_index', const.LEFT_EYE_LEFT)),
        right_corner_index=int(lm_cfg.get('right_corner_index', const.LEFT_EYE_RIGHT))
    )
    predictor = KNNGazePredictor(
        k=int(gaze_cfg.get('k', const.KNN_NEIGHBORS)),
        epsilon=float(gaze_cfg.get('epsilon', const.KNN_EPSILON))
    )
    calibration = CalibrationSession(
        store,
        points=grid_points(cal_cfg.get('grid_percent', const.CALIBRATION_GRID_PERCENT)),
        min_samples=int(cal_cfg.get('min_samples', const.MIN_CALIBRATION_SAMPLES))
    )
    scorer = AttentionScorer(ScoringConfig.from_dict(get_section(config, 'attention')))

    return TrackingSession(
        store,
        extractor=extractor,
        predictor=predictor,
        scorer=scorer,
        resolver=resolver,
        calibration=calibration
    )


class DriftPickSystem:
    """
    Local DriftPick application

    The OpenCV window is the viewport: calibration dots, the gaze cursor and
    the configured target regions (with their interest scores) are drawn on it.
    """

    WINDOW_NAME = 'DriftPick'

    def __init__(
        self,
        camera_index: Optional[int] = None,
        config_path: str = "config/config.yaml"
    ):
        """
        Initialize DriftPick

        Args:
            camera_index: Camera device index (overrides config)
            config_path: Path to configuration YAML file
        """
        self.config = load_config_or_default(config_path)

        logging_config = get_section(self.config, 'logging')
        self.logger = setup_logger(
            log_level=logging_config.get('level', 'INFO'),
            log_dir=logging_config.get('log_directory', None),
            log_file=logging_config.get('log_file', None),
            console_output=True
        )
        self.logger.info("Initializing DriftPick")

        camera_cfg = get_section(self.config, 'camera')
        camera_index = camera_index if camera_index is not None else camera_cfg.get('index', const.DEFAULT_CAMERA_INDEX)
        self.source = CameraLandmarkSource(
            camera_index=int(camera_index),
            model_path=camera_cfg.get('model_path', 'face_landmarker.task')
        )
        self.target_fps = float(camera_cfg.get('fps', const.DEFAULT_TARGET_FPS))

        display_cfg = get_section(self.config, 'display')
        self.viewport: Tuple[int, int] = (
            int(display_cfg.get('width', const.DEFAULT_VIEWPORT_WIDTH)),
            int(display_cfg.get('height', const.DEFAULT_VIEWPORT_HEIGHT))
        )

        self.store = build_calibration_store(self.config)
        self.target_map = build_target_map(self.config)
        self.session: Optional[TrackingSession] = None

        self._reject_flash_until = 0.0
        self._status_text = ""

    def initialize(self):
        """Load saved calibration and open camera + landmark model"""
        self.logger.info("Initializing system components...")
        if self.store.load():
            self.logger.info("Saved calibration loaded - gaze tracking active")
        else:
            self.logger.info("Not calibrated yet - press 'c' to calibrate")

        # CameraError is fatal: no retry
        self.source.open()
        self.logger.info("System initialized successfully!")

    def start_session(self) -> TrackingSession:
        """Create the per-session context (discarded again on stop)"""
        self.session = build_tracking_session(self.config, self.store, resolver=self.target_map.resolve)
        self.session.scorer.add_listener(self._on_score)
        return self.session

    def _on_score(self, identifier: str, score: int):
        self.logger.debug(f"Interest {identifier}: {score} ({score_tier(score)})")

    def start_calibration(self):
        self.session.start_calibration()
        self._status_text = "Look at the RED dot and press SPACE (s: skip, a: abort)"
        self.logger.info("Calibration mode: look at the red dots and press SPACE")

    def confirm_calibration(self):
        calibration = self.session.calibration
        result = self.session.confirm_calibration_point(calibration.current_index, self.viewport)
        if result is ConfirmationResult.REJECTED:
            self._reject_flash_until = time.time() + const.REJECT_FLASH_SEC
        self._report_calibration_outcome()

    def _report_calibration_outcome(self):
        calibration = self.session.calibration
        if calibration.is_collecting or calibration.outcome is None:
            return
        outcome = calibration.outcome
        self._status_text = outcome.message
        if outcome.success:
            self.logger.info(outcome.message)
        else:
            self.logger.warning(outcome.message)

    def _handle_key(self, key: int) -> bool:
        """Handle a key press; returns False to quit"""
        if key == ord('q'):
            return False

        calibration = self.session.calibration
        if key == ord('c') and not calibration.is_collecting:
            self.start_calibration()
        elif calibration.is_collecting:
            if key == ord(' '):
                self.confirm_calibration()
            elif key == ord('s'):
                self.session.skip_calibration_point()
                self._report_calibration_outcome()
            elif key == ord('a'):
                self.session.abort_calibration()
                self._report_calibration_outcome()
        return True

    def run(
        self,
        display: bool = True,
        max_frames: Optional[int] = None,
        calibrate: bool = False,
        calibrate_only: bool = False
    ) -> Optional[CalibrationOutcome]:
        """
        Run the main processing loop

        Args:
            display: Whether to show the viewport window (False for headless)
            max_frames: Maximum number of frames to process (None = unlimited)
            calibrate: Start a calibration pass immediately (needs display)
            calibrate_only: Stop as soon as that calibration pass ends

        Returns:
            Outcome of the last calibration pass of this run, if any
        """
        if not self.source.is_open:
            self.initialize()

        session = self.start_session()
        if (calibrate or calibrate_only) and display:
            self.start_calibration()
        outcome = None

        self.logger.info("Starting DriftPick...")
        if display:
            self.logger.info("Press 'q' to quit, 'c' to calibrate")
        else:
            self.logger.info("Running in headless mode (no display)")

        target_interval = 1.0 / self.target_fps
        last_frame_time = 0.0
        processed = 0

        try:
            for result in session.run(self.source.frames()):
                processed += 1
                if max_frames is not None and processed >= max_frames:
                    self.logger.info(f"Reached max frames limit: {max_frames}")
                    session.stop()

                if not display and processed % 30 == 0:
                    self.logger.info(f"Processed {processed} frames")

                if display:
                    cv2.imshow(self.WINDOW_NAME, self._draw_results(result))
                    key = cv2.waitKey(1) & 0xFF
                    if key != 0xFF and not self._handle_key(key):
                        session.stop()

                calibration = session.calibration
                if not calibration.is_collecting and calibration.outcome is not None:
                    outcome = calibration.outcome
                    if calibrate_only:
                        session.stop()

                # Frame rate control
                elapsed = time.time() - last_frame_time
                if elapsed < target_interval:
                    time.sleep(target_interval - elapsed)
                last_frame_time = time.time()
        except KeyboardInterrupt:
            self.logger.info("Interrupted by user")
        finally:
            session.stop()
            self.cleanup()
        return outcome

    def _draw_results(self, result: FrameResult) -> np.ndarray:
        """Render the viewport canvas for one frame"""
        width, height = self.viewport
        canvas = np.zeros((height, width, 3), dtype=np.uint8)
        calibration = self.session.calibration

        # Camera preview (bottom-right)
        image = self.source.last_image
        if image is not None:
            preview_w = width // 5
            preview_h = int(image.shape[0] * preview_w / image.shape[1])
            if 0 < preview_h < height:
                canvas[height - preview_h:, width - preview_w:] = cv2.resize(image, (preview_w, preview_h))

        if calibration.is_collecting:
            x, y = calibration.current_target.resolve(self.viewport)
            color = const.COLOR_CALIBRATION_POINT
            if time.time() < self._reject_flash_until:
                color = const.COLOR_CALIBRATION_REJECTED
            cv2.circle(canvas, (int(x), int(y)), const.CALIBRATION_POINT_RADIUS, color, -1, lineType=cv2.LINE_AA)
            progress = f"Point {calibration.current_index + 1}/{len(calibration.points)}"
            cv2.putText(canvas, progress, (const.TEXT_MARGIN_X, const.TEXT_MARGIN_Y * 2),
                        TEXT_FONT, const.TEXT_FONT_SCALE, const.COLOR_TEXT, const.TEXT_THICKNESS)
        else:
            for region in self.target_map.regions:
                score = self.session.scorer.get_score(region.identifier) if region.identifier else None
                color = const.COLOR_TIER[score_tier(score)] if score is not None else const.COLOR_TARGET_OUTLINE
                top_left = (int(region.x), int(region.y))
                bottom_right = (int(region.x + region.width), int(region.y + region.height))
                cv2.rectangle(canvas, top_left, bottom_right, color, 2)
                label = f"{region.identifier or '?'}: {score if score is not None else '-'}"
                cv2.putText(canvas, label, (top_left[0] + 6, top_left[1] + 22),
                            TEXT_FONT, const.TEXT_FONT_SCALE, color, const.TEXT_THICKNESS)

            if result.gaze_point is not None:
                gx, gy = result.gaze_point
                cv2.circle(canvas, (int(gx), int(gy)), const.GAZE_CURSOR_RADIUS,
                           const.COLOR_GAZE_CURSOR, 2, lineType=cv2.LINE_AA)

        face_text = "FACE: DETECTED" if result.face_detected else "FACE: NOT DETECTED"
        mode_text = "CALIBRATED" if self.store.is_calibrated else "NOT CALIBRATED (press c)"
        cv2.putText(canvas, f"{face_text} | {mode_text}", (const.TEXT_MARGIN_X, const.TEXT_MARGIN_Y),
                    TEXT_FONT, const.TEXT_FONT_SCALE, const.COLOR_TEXT, const.TEXT_THICKNESS)
        if self._status_text:
            cv2.putText(canvas, self._status_text, (const.TEXT_MARGIN_X, height - const.TEXT_MARGIN_Y),
                        TEXT_FONT, const.TEXT_FONT_SCALE, const.COLOR_TEXT, const.TEXT_THICKNESS)
        return canvas

    def cleanup(self):
        """Release camera/model and close windows"""
        if self.session is not None:
            self.session.stop()
            self.session = None
        self.source.close()
        cv2.destroyAllWindows()
        self.logger.info("System stopped.")


def main(argv=None):
    """Main entry point"""
    parser = argparse.ArgumentParser(description="DriftPick gaze interest tracker")
    parser.add_argument("--config", default="config/config.yaml", help="Path to configuration file")
    parser.add_argument("--camera", type=int, default=None, help="Camera index (overrides config)")
    parser.add_argument("--headless", action="store_true", help="Run without a display window")
    parser.add_argument("--calibrate", action="store_true", help="Start with a calibration pass")
    parser.add_argument("--max-frames", type=int, default=None, help="Stop after N frames")
    args = parser.parse_args(argv)

    system = None
    try:
        system = DriftPickSystem(camera_index=args.camera, config_path=args.config)
        system.run(display=not args.headless, max_frames=args.max_frames, calibrate=args.calibrate)
    except CameraError as e:
        get_logger().error(f"Cannot start tracking: {e}")
        if system is not None:
            system.cleanup()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
