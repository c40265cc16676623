"""
branchdb - Keeps a database snapshot per git branch
"""

__version__ = "0.1.0"

from .core import BranchDb, BranchDbError

__all__ = ["BranchDb", "BranchDbError"]
