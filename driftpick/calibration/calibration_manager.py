"""
Calibration Manager

Holds the active calibration set and runs interactive calibration passes.

A pass shows a fixed sequence of target points (3x3 grid at 10/50/90 % of the
viewport). Each point waits for a confirmation event; a confirmation only
counts when a feature vector is available for the current frame. Completed
passes replace the stored set wholesale and persist it; failed or aborted
passes leave the previous set untouched.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from driftpick import constants as const
from driftpick.calibration.calibration_data import (
    CalibrationSample,
    CalibrationSet,
    ScreenPoint
)

INSUFFICIENT_DATA_MESSAGE = (
    "Calibration failed: not enough data points collected. "
    "Please ensure your face is well-lit and visible, then try again."
)


class CalibrationError(RuntimeError):
    """Invalid calibration session transition"""


class CalibrationState(Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    COMPLETED = "completed"
    ABORTED = "aborted"


class ConfirmationResult(Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"  # no face/feature at confirmation time, retry same point
    IGNORED = "ignored"    # stale index or no collecting session


@dataclass(frozen=True)
class CalibrationTarget:
    """Target point as a percentage of the viewport"""
    x_percent: float
    y_percent: float

    def resolve(self, viewport: Tuple[float, float]) -> ScreenPoint:
        width, height = viewport
        return (width * (self.x_percent / 100.0), height * (self.y_percent / 100.0))


@dataclass(frozen=True)
class CalibrationOutcome:
    success: bool
    sample_count: int
    message: str


def grid_points(percentages: Sequence[float] = const.CALIBRATION_GRID_PERCENT) -> List[CalibrationTarget]:
    """Row-major grid of targets, e.g. (10, 50, 90) -> 9 points"""
    return [CalibrationTarget(x, y) for y in percentages for x in percentages]


DEFAULT_GRID = tuple(grid_points())


class CalibrationStore:
    """
    Owns the calibration set used for prediction

    Storage is any object with get(key, default) / set(key, value).
    """

    def __init__(self, storage: Any, key: str = const.CALIBRATION_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self.logger = logging.getLogger(__name__)
        self._current = CalibrationSet()

    @property
    def current(self) -> CalibrationSet:
        return self._current

    @property
    def is_calibrated(self) -> bool:
        return len(self._current) > 0

    def load(self) -> bool:
        """
        Load the persisted set into memory

        Returns:
            True if a non-empty set was loaded
        """
        data = self.storage.get(self.key)
        if data is None:
            self.logger.info("No saved calibration found")
            return False

        try:
            loaded = CalibrationSet.from_list(data)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            self.logger.error(f"Ignoring corrupt saved calibration: {e}")
            return False

        self._current = loaded
        self.logger.info(f"Loaded calibration: {len(loaded)} samples")
        return len(loaded) > 0

    def replace(self, calibration_set: CalibrationSet):
        """Swap in a new set and persist it (overwrite, never merge)"""
        self._current = calibration_set
        self.storage.set(self.key, calibration_set.to_list())
        self.logger.info(f"Calibration saved: {len(calibration_set)} samples")


class CalibrationSession:
    """
    Interactive calibration pass (IDLE -> COLLECTING -> COMPLETED | ABORTED)

    Driven by events rather than blocking: call confirm() for every
    confirmation the UI delivers and re-present current_target until the
    session leaves COLLECTING.
    """

    def __init__(
        self,
        store: CalibrationStore,
        points: Sequence[CalibrationTarget] = DEFAULT_GRID,
        min_samples: int = const.MIN_CALIBRATION_SAMPLES
    ):
        if not points:
            raise ValueError("Calibration needs at least one target point")
        self.store = store
        self.points = tuple(points)
        self.min_samples = min_samples
        self.logger = logging.getLogger(__name__)

        self.state = CalibrationState.IDLE
        self.current_index = 0
        self.samples: List[CalibrationSample] = []
        self.outcome: Optional[CalibrationOutcome] = None

    @property
    def is_collecting(self) -> bool:
        return self.state is CalibrationState.COLLECTING

    @property
    def current_target(self) -> Optional[CalibrationTarget]:
        if not self.is_collecting:
            return None
        return self.points[self.current_index]

    def start(self):
        """Begin a new pass; the pass is not reentrant"""
        if self.is_collecting:
            raise CalibrationError("A calibration session is already collecting")

        self.samples = []
        self.current_index = 0
        self.outcome = None
        self.state = CalibrationState.COLLECTING
        self.logger.info(f"Calibration started ({len(self.points)} points)")

    def confirm(
        self,
        point_index: int,
        feature: Optional[Tuple[float, float]],
        viewport: Tuple[float, float]
    ) -> ConfirmationResult:
        """
        Handle a confirmation event for a calibration point

        Args:
            point_index: Index of the point the user confirmed
            feature: Feature vector of the current frame (None if no face)
            viewport: Current (width, height), used to resolve the target

        Returns:
            ConfirmationResult
        """
        if not self.is_collecting:
            self.logger.debug("Confirmation ignored: no calibration in progress")
            return ConfirmationResult.IGNORED

        if point_index != self.current_index:
            self.logger.debug(
                f"Confirmation ignored: point {point_index} (waiting for {self.current_index})"
            )
            return ConfirmationResult.IGNORED

        if feature is None:
            self.logger.warning("No face detected during confirmation")
            return ConfirmationResult.REJECTED

        target = self.points[self.current_index].resolve(viewport)
        self.samples.append(CalibrationSample(inputs=(feature[0], feature[1]), target=target))
        self.logger.info(f"Recorded point {point_index}: ({target[0]:.0f}, {target[1]:.0f})")

        self._advance()
        return ConfirmationResult.ACCEPTED

    def skip(self) -> bool:
        """Move past the current point without a sample"""
        if not self.is_collecting:
            return False
        self.logger.info(f"Skipped point {self.current_index}")
        self._advance()
        return True

    def abort(self, reason: str = "Calibration aborted") -> CalibrationOutcome:
        """End the pass without touching the stored calibration"""
        if not self.is_collecting:
            raise CalibrationError("No calibration session to abort")

        self.state = CalibrationState.ABORTED
        self.outcome = CalibrationOutcome(False, len(self.samples), reason)
        self.logger.warning(f"{reason} ({len(self.samples)} samples discarded)")
        return self.outcome

    def _advance(self):
        self.current_index += 1
        if self.current_index >= len(self.points):
            self._finish()

    def _finish(self):
        if len(self.samples) < self.min_samples:
            self.state = CalibrationState.ABORTED
            self.outcome = CalibrationOutcome(False, len(self.samples), INSUFFICIENT_DATA_MESSAGE)
            self.logger.warning(
                f"Calibration failed: {len(self.samples)} samples (need {self.min_samples})"
            )
            return

        self.store.replace(CalibrationSet(self.samples))
        self.state = CalibrationState.COMPLETED
        self.outcome = CalibrationOutcome(
            True,
            len(self.samples),
            "Calibration complete! Gaze tracking active."
        )
        self.logger.info("Calibration complete")
