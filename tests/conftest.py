"""
Pytest configuration — adds src/ to the path so the package can be imported
without installing it.
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))
