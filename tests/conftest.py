"""
pytest configuration for httpfacade tests.

Adds src directory to Python path for imports and sets up test environment.
"""

import os
import sys
from pathlib import Path

# Keep configuration lookups away from the developer's environment
os.environ.pop("HTTPFACADE_CONFIG", None)

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))
