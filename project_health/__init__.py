"""
Project Health Engine backend package.
"""
from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent

__version__ = "1.0.0"

__all__ = ["PACKAGE_ROOT", "PROJECT_ROOT", "__version__"]
