"""
Grading: blank-by-blank answer reconciliation.
"""

from src.grading.grader import GradeResult, GradingIssue, grade_attempt, normalize_answers

__all__ = [
    "GradeResult",
    "GradingIssue",
    "grade_attempt",
    "normalize_answers",
]
