"""
Tests for package layout and metadata
"""

from pathlib import Path

import driftpick
from driftpick import constants

ROOT = Path(__file__).resolve().parent.parent


def test_constants_do_not_pull_in_opencv():
    """Test the shared defaults module has no OpenCV dependency"""
    assert "cv2" not in vars(constants)


def test_readme_is_the_long_description():
    """Test pyproject points at the project README"""
    pyproject = (ROOT / "pyproject.toml").read_text(encoding="utf-8")
    assert 'readme = "README.md"' in pyproject
    assert (ROOT / "README.md").is_file()


def test_version():
    """Test the version string is exposed"""
    assert driftpick.__version__ == "1.0.0"
