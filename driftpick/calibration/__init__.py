"""
Calibration Module

Per-user calibration samples, their persistence, and the interactive
calibration pass that collects them.
"""

from .calibration_data import CalibrationSample, CalibrationSet
from .calibration_manager import (
    CalibrationError,
    CalibrationOutcome,
    CalibrationSession,
    CalibrationState,
    CalibrationStore,
    CalibrationTarget,
    ConfirmationResult,
    DEFAULT_GRID,
    grid_points
)
from .storage import JsonFileStorage, MemoryStorage

__all__ = [
    'CalibrationSample',
    'CalibrationSet',
    'CalibrationError',
    'CalibrationOutcome',
    'CalibrationSession',
    'CalibrationState',
    'CalibrationStore',
    'CalibrationTarget',
    'ConfirmationResult',
    'DEFAULT_GRID',
    'grid_points',
    'JsonFileStorage',
    'MemoryStorage',
]
