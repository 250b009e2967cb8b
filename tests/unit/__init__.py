# tests/unit/__init__.py

"""Unit tests package for pgdbm.

This package contains all unit tests organized by component.
Tests are automatically discovered and collected by pytest.
"""

import sys
from pathlib import Path

SRC_DIR = str(Path(__file__).parent.parent.parent / "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)
