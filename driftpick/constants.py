"""
Default values shared by the DriftPick components.
Every value here can be overridden from config/config.yaml.
"""

# MediaPipe FaceMesh indices (refined landmarks)
LEFT_PUPIL = 468
LEFT_EYE_LEFT = 33
LEFT_EYE_RIGHT = 133

# Gaze regression
KNN_NEIGHBORS = 5
KNN_EPSILON = 1e-6

# Calibration
CALIBRATION_GRID_PERCENT = (10, 50, 90)
MIN_CALIBRATION_SAMPLES = 5
CALIBRATION_STORAGE_PATH = "config/calibration.json"
CALIBRATION_STORAGE_KEY = "calibrationData"

# Attention scoring (milliseconds / points)
GAP_THRESHOLD_MS = 500
FULL_DWELL_MS = 4000
MAX_TIME_POINTS = 80
POINTS_PER_RETURN_VISIT = 5
MAX_VISIT_POINTS = 20

# Score tiers (badge colour grading)
TIER_MEDIUM_MIN = 30
TIER_HIGH_MIN = 60

# Camera / display
DEFAULT_CAMERA_INDEX = 0
DEFAULT_TARGET_FPS = 30
DEFAULT_VIEWPORT_WIDTH = 1280
DEFAULT_VIEWPORT_HEIGHT = 720
REJECT_FLASH_SEC = 0.2

# Drawing (BGR)
COLOR_CALIBRATION_POINT = (0, 0, 255)
COLOR_CALIBRATION_REJECTED = (255, 0, 0)
COLOR_GAZE_CURSOR = (0, 255, 255)
COLOR_TARGET_OUTLINE = (90, 90, 90)
COLOR_TIER = {
    "low": (204, 204, 204),
    "medium": (0, 165, 255),
    "high": (0, 255, 0),
}
COLOR_TEXT = (255, 255, 255)
CALIBRATION_POINT_RADIUS = 14
GAZE_CURSOR_RADIUS = 10
TEXT_FONT_SCALE = 0.6
TEXT_THICKNESS = 1
TEXT_MARGIN_X = 20
TEXT_MARGIN_Y = 30
