"""Meta-build orchestrator for workspaces of CMake projects."""
from __future__ import annotations

from .cli import main

__version__ = "0.1.0"

__all__ = ["main", "__version__"]
