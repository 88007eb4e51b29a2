"""
Tests for Severity, Descriptions and Risk Scoring
"""

from datetime import datetime, timezone

import pytest

from proctor.types import (
    GazeDirection,
    HeadPose,
    ProctoringViolation,
    ViolationDetails,
    ViolationSeverity,
    ViolationType,
)


def make_violation(violation_type, confidence=1.0):
    from proctor.scoring import get_violation_severity

    return ProctoringViolation(
        type=violation_type,
        timestamp=datetime.now(timezone.utc),
        confidence=confidence,
        severity=get_violation_severity(violation_type, confidence),
        details=ViolationDetails()
    )


class TestSeverity:
    """Tests for get_violation_severity"""

    @pytest.mark.parametrize("violation_type,confidence,expected", [
        (ViolationType.MULTIPLE_FACES, 0.95, ViolationSeverity.CRITICAL),
        (ViolationType.MULTIPLE_FACES, 0.9, ViolationSeverity.HIGH),
        (ViolationType.NO_FACE, 1.0, ViolationSeverity.HIGH),
        (ViolationType.NO_FACE, 0.1, ViolationSeverity.HIGH),
        (ViolationType.TAB_SWITCH, 0.1, ViolationSeverity.MEDIUM),
        (ViolationType.HEAD_POSE, 0.81, ViolationSeverity.MEDIUM),
        (ViolationType.HEAD_POSE, 0.8, ViolationSeverity.LOW),
        (ViolationType.GAZE_AWAY, 0.9, ViolationSeverity.MEDIUM),
        (ViolationType.GAZE_AWAY, 0.2, ViolationSeverity.LOW),
    ])
    def test_severity_table(self, violation_type, confidence, expected):
        from proctor.scoring import get_violation_severity

        assert get_violation_severity(violation_type, confidence) == expected

    def test_no_face_never_critical(self):
        """Test absence tops out at high regardless of confidence"""
        from proctor.scoring import get_violation_severity

        for confidence in (0.0, 0.5, 0.91, 1.0):
            assert get_violation_severity(ViolationType.NO_FACE, confidence) != ViolationSeverity.CRITICAL


class TestDescription:
    """Tests for get_violation_description"""

    def test_static_descriptions(self):
        from proctor.scoring import get_violation_description

        assert get_violation_description(ViolationType.NO_FACE) == "No face detected in camera view"
        assert get_violation_description(ViolationType.TAB_SWITCH) == "Browser tab or window switch detected"

    def test_multiple_faces_count(self):
        from proctor.scoring import get_violation_description

        assert get_violation_description(
            ViolationType.MULTIPLE_FACES, ViolationDetails(face_count=3)
        ) == "Multiple faces detected (3 faces)"
        assert get_violation_description(
            ViolationType.MULTIPLE_FACES
        ) == "Multiple faces detected (unknown faces)"

    @pytest.mark.parametrize("pose,expected", [
        (HeadPose(yaw=40, pitch=10, roll=0), "Head turned right (40°)"),
        (HeadPose(yaw=-40, pitch=10, roll=0), "Head turned left (40°)"),
        (HeadPose(yaw=5, pitch=30, roll=0), "Head tilted down (30°)"),
        (HeadPose(yaw=5, pitch=-30, roll=0), "Head tilted up (30°)"),
        (HeadPose(yaw=0, pitch=0, roll=25), "Head tilted sideways (25°)"),
        (HeadPose(yaw=0, pitch=0, roll=-25), "Head tilted sideways (25°)"),
        (HeadPose(yaw=28, pitch=0, roll=25), "Head tilted sideways (25°)"),
    ])
    def test_head_pose_direction(self, pose, expected):
        from proctor.scoring import get_violation_description

        details = ViolationDetails(head_pose=pose)
        assert get_violation_description(ViolationType.HEAD_POSE, details) == expected

    def test_head_pose_axis_uses_thresholds(self):
        """Test the described axis follows the configured per-axis limits"""
        from proctor.config import HeadPoseThresholds
        from proctor.scoring import get_violation_description

        details = ViolationDetails(head_pose=HeadPose(yaw=28, pitch=0, roll=25))
        limits = HeadPoseThresholds(yaw=20, pitch=25, roll=40)

        assert get_violation_description(
            ViolationType.HEAD_POSE, details, limits
        ) == "Head turned right (28°)"

    def test_head_pose_without_pose(self):
        from proctor.scoring import get_violation_description

        assert get_violation_description(ViolationType.HEAD_POSE) == "Excessive head movement detected"

    def test_gaze_direction(self):
        from proctor.scoring import get_violation_description

        details = ViolationDetails(gaze_direction=GazeDirection(-0.6, 0.2))
        assert get_violation_description(ViolationType.GAZE_AWAY, details) == "Looking away from screen (left)"
        assert get_violation_description(ViolationType.GAZE_AWAY) == "Looking away from screen"


class TestRiskScorer:
    """Tests for RiskScorer"""

    def test_initial_score(self):
        from proctor.scoring import RiskScorer

        assert RiskScorer().score == 0

    def test_weights(self):
        from proctor.scoring import VIOLATION_WEIGHTS

        assert VIOLATION_WEIGHTS == {
            ViolationType.MULTIPLE_FACES: 15,
            ViolationType.NO_FACE: 10,
            ViolationType.TAB_SWITCH: 8,
            ViolationType.HEAD_POSE: 5,
            ViolationType.GAZE_AWAY: 4,
        }

    def test_accumulates_weights(self):
        """Test the running score is the sum of each type's weight"""
        from proctor.scoring import RiskScorer

        scorer = RiskScorer()
        for vtype in [ViolationType.NO_FACE, ViolationType.TAB_SWITCH, ViolationType.TAB_SWITCH,
                      ViolationType.GAZE_AWAY]:
            scorer.add(make_violation(vtype))

        assert scorer.score == 10 + 8 + 8 + 4

    def test_score_is_read_only(self):
        from proctor.scoring import RiskScorer

        with pytest.raises(AttributeError):
            RiskScorer().score = 100

    def test_compute_matches_running_score(self):
        """Test a consumer can derive the score from the stream it received"""
        from proctor.scoring import RiskScorer

        stream = [make_violation(ViolationType.MULTIPLE_FACES, 0.95), make_violation(ViolationType.HEAD_POSE)]
        scorer = RiskScorer()
        for violation in stream:
            scorer.add(violation)

        assert RiskScorer().compute(stream) == scorer.score == 20
        assert RiskScorer().compute([v.to_dict() for v in stream]) == 20

    def test_breakdown(self):
        from proctor.scoring import RiskScorer

        scorer = RiskScorer()
        scorer.add(ViolationType.NO_FACE)
        scorer.add("no_face")
        scorer.add(ViolationType.HEAD_POSE)

        breakdown = scorer.breakdown()
        assert breakdown["risk_score"] == 25
        assert breakdown["total_violations"] == 3
        assert breakdown["by_type"]["no_face"] == {"count": 2, "weight": 10, "contribution": 20}
        assert breakdown["by_type"]["tab_switch"]["count"] == 0

    def test_custom_weights(self):
        from proctor.scoring import RiskScorer

        scorer = RiskScorer(weights={"gaze_away": 1})
        scorer.add(ViolationType.GAZE_AWAY)
        assert scorer.score == 1

    def test_negative_weight_rejected(self):
        from proctor.scoring import RiskScorer

        with pytest.raises(ValueError):
            RiskScorer(weights={ViolationType.NO_FACE: -1})

    def test_reset(self):
        from proctor.scoring import RiskScorer

        scorer = RiskScorer()
        scorer.add(ViolationType.NO_FACE)
        scorer.reset()
        assert scorer.score == 0
