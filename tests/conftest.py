"""Pytest configuration.

The repository uses a flat `src/` namespace layout. `pip install -e .` makes `src.*` importable;
without an install, the repo root is put on `sys.path` here so plain `pytest` works too.
"""

from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
