"""
DriftPick

Webcam gaze estimation with per-user k-NN calibration, and per-item
interest scoring from where the gaze lands.
"""

__version__ = '1.0.0'
