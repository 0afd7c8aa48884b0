#!/usr/bin/env python3
"""
Verification script to check if all dependencies are installed correctly
"""

import sys


def check_import(module_name, package_name=None):
    """Check if a module can be imported"""
    if package_name is None:
        package_name = module_name

    try:
        __import__(module_name)
        print(f"✓ {package_name} - OK")
        return True
    except ImportError as e:
        print(f"✗ {package_name} - FAILED: {e}")
        return False


def main():
    """Check all required dependencies"""
    print("Checking DriftPick Dependencies...")
    print("=" * 50)
    print(f"Python: {sys.version.split()[0]}")
    print()

    required = [
        ("numpy", "NumPy"),
        ("cv2", "OpenCV"),
        ("mediapipe", "MediaPipe"),
        ("yaml", "PyYAML"),
        ("websockets", "websockets"),
        ("driftpick", "DriftPick package"),
    ]

    results = [check_import(module, name) for module, name in required]

    print()
    if all(results):
        print("All dependencies installed. Run: python main.py")
        return 0
    print("Some dependencies are missing. Run: pip install -e .")
    return 1


if __name__ == "__main__":
    sys.exit(main())
