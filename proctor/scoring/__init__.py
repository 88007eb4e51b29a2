"""Scoring modules"""

from .risk_scorer import RiskScorer, VIOLATION_WEIGHTS
from .severity import get_violation_severity, get_violation_description

__all__ = [
    "RiskScorer",
    "VIOLATION_WEIGHTS",
    "get_violation_severity",
    "get_violation_description"
]
