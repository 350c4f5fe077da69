"""pytest configuration for the dac_hotplug test suite."""

import sys
from pathlib import Path

# Allow running `pytest tests/python` without installing the package
PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
