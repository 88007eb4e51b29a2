"""
Risk Scorer - Accumulates a weighted session risk score from confirmed violations
"""

import logging
from typing import Any, Dict, Iterable, Optional, Union

from ..types import ProctoringViolation, ViolationType

logger = logging.getLogger(__name__)


# Per-type weight added on every confirmed violation
VIOLATION_WEIGHTS: Dict[ViolationType, int] = {
    ViolationType.MULTIPLE_FACES: 15,
    ViolationType.NO_FACE: 10,
    ViolationType.TAB_SWITCH: 8,
    ViolationType.HEAD_POSE: 5,
    ViolationType.GAZE_AWAY: 4,
}

ViolationLike = Union[ProctoringViolation, ViolationType, str, Dict[str, Any]]


def _violation_type(violation: ViolationLike) -> ViolationType:
    if isinstance(violation, ProctoringViolation):
        return violation.type
    if isinstance(violation, dict):
        return ViolationType(violation["type"])
    return ViolationType(violation)


class RiskScorer:
    """
    Computes the session risk score.

    Formula:
        risk_score = sum(weight[type] for each confirmed violation)

    Monotonically non-decreasing for the session; nothing decays.
    """

    WEIGHTS: Dict[ViolationType, int] = VIOLATION_WEIGHTS

    def __init__(self, weights: Optional[Dict[ViolationType, int]] = None):
        """
        Initialize scorer with optional custom weights.

        Args:
            weights: Optional dict overriding default weights
        """
        self.weights = dict(self.WEIGHTS)
        if weights:
            self.weights.update({ViolationType(k): v for k, v in weights.items()})

        negative = [t.value for t, w in self.weights.items() if w < 0]
        if negative:
            raise ValueError(f"Risk weights must be non-negative: {negative}")

        self._score = 0
        self._counts: Dict[ViolationType, int] = {t: 0 for t in ViolationType}

    @property
    def score(self) -> int:
        """Current running score (read-only)"""
        return self._score

    def add(self, violation: ViolationLike) -> int:
        """
        Record one confirmed violation.

        Returns:
            Updated risk score
        """
        vtype = _violation_type(violation)
        self._counts[vtype] += 1
        self._score += self.weights.get(vtype, 0)
        logger.debug(f"Risk +{self.weights.get(vtype, 0)} for {vtype.value}: score={self._score}")
        return self._score

    def compute(self, violations: Iterable[ViolationLike]) -> int:
        """
        Derive the score from a violation stream without touching running state.

        Args:
            violations: Confirmed violations (objects, dicts from to_dict(), or types)

        Returns:
            Sum of the per-type weights
        """
        return sum(self.weights.get(_violation_type(v), 0) for v in violations)

    def breakdown(self) -> Dict[str, Any]:
        """
        Running score with per-type detail.

        Returns:
            Dict with score and per-type counts and contributions
        """
        contributions = {
            vtype.value: {
                "count": count,
                "weight": self.weights.get(vtype, 0),
                "contribution": count * self.weights.get(vtype, 0)
            }
            for vtype, count in self._counts.items()
        }

        return {
            "risk_score": self._score,
            "total_violations": sum(self._counts.values()),
            "by_type": contributions
        }

    def reset(self):
        """Reset score and counts"""
        self._score = 0
        self._counts = {t: 0 for t in ViolationType}
