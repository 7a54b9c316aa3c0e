"""
Learning: per-pattern competency tracking.
"""

from src.learning.mastery_tracker import MasteryTracker

__all__ = [
    "MasteryTracker",
]
