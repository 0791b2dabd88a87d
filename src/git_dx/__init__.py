"""
git-dx: keep a stack of local change commits in sync with remote review branches.

Import boundary: no config loading or logging setup at import time.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
