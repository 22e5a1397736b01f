"""
Repository layer for Codezoo.

All SQL lives here and ONLY here. No database access outside this module.
"""

from backend.repos.pen_repo import PenRepo
from backend.repos.user_repo import UserRepo

__all__ = [
    "UserRepo",
    "PenRepo",
]
