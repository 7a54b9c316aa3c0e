"""
Study Module for adaptive practice.

Provides services for:
- Deterministic session generation
- Attempt submission and mastery refresh
- Per-user statistics and corpus calibration
"""

from src.study.practice_service import PracticeService
from src.study.rng import Mulberry32
from src.study.session_generator import GeneratedSession, SessionConfig, SessionGenerator

__all__ = [
    "GeneratedSession",
    "Mulberry32",
    "PracticeService",
    "SessionConfig",
    "SessionGenerator",
]
