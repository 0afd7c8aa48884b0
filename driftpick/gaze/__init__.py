"""
Gaze Estimation Module
"""

from .knn_predictor import KNNGazePredictor, predict_gaze

__all__ = [
    'KNNGazePredictor',
    'predict_gaze',
]
