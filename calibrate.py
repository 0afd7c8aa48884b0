"""
Standalone gaze calibration utility.

Usage:
  python calibrate.py [--config config/config.yaml]

Shows the 9 calibration dots (SPACE confirms a dot while your face is
visible, 's' skips, 'a' aborts) and saves the samples to the calibration
storage file named in the config.
"""

import argparse
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from driftpick.data_acquisition.landmark_source import CameraError
from driftpick.main import DriftPickSystem


def main():
    parser = argparse.ArgumentParser(description="DriftPick calibration")
    parser.add_argument("--config", default="config/config.yaml", help="Path to configuration file")
    args = parser.parse_args()

    system = DriftPickSystem(config_path=args.config)
    try:
        outcome = system.run(display=True, calibrate_only=True)
    except CameraError as e:
        print(f"Cannot start camera: {e}")
        system.cleanup()
        return 1

    if outcome is None:
        print("Calibration cancelled.")
        return 1
    print(outcome.message)
    return 0 if outcome.success else 1


if __name__ == "__main__":
    sys.exit(main())
