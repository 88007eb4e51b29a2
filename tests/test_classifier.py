"""
Tests for the Violation Classifier
"""

import pytest
from unittest.mock import Mock

from proctor.types import GazeDirection, ViolationType


@pytest.fixture
def config():
    from proctor.config import resolve_config
    return resolve_config()


@pytest.fixture
def classifier():
    from proctor.classifier import ViolationClassifier
    return ViolationClassifier()


class TestFaceCount:
    """Tests for face presence signals"""

    def test_no_face(self, classifier, config, result):
        """Test an empty result raises no_face with full confidence"""
        tick = classifier.classify(result(), config)

        signal = tick.signals[ViolationType.NO_FACE]
        assert signal.confidence == 1.0
        assert signal.details.face_count == 0
        assert list(tick.signals) == [ViolationType.NO_FACE]
        assert tick.head_pose is None

    def test_multiple_faces_uses_aggregate_score(self, classifier, config, result, face):
        """Test multiple_faces confidence is the mean detector score"""
        tick = classifier.classify(result(face(score=0.9), face(score=1.0, x=300)), config)

        signal = tick.signals[ViolationType.MULTIPLE_FACES]
        assert signal.confidence == pytest.approx(0.95)
        assert signal.details.face_count == 2
        assert len(signal.details.face_bounds) == 2
        assert list(tick.signals) == [ViolationType.MULTIPLE_FACES]

    def test_multiple_faces_without_scores(self, classifier, config, result, face):
        """Test confidence defaults to 1.0 when the detector gives no score"""
        tick = classifier.classify(result(face(score=None), face(score=None, x=300)), config)
        assert tick.signals[ViolationType.MULTIPLE_FACES].confidence == 1.0

    def test_single_frontal_face_is_clean(self, classifier, config, result, face):
        """Test a centered face raises nothing"""
        tick = classifier.classify(result(face()), config)

        assert tick.signals == {}
        assert tick.face_count == 1
        assert tick.head_pose.yaw == pytest.approx(0.0, abs=1e-6)
        assert tick.gaze_direction == GazeDirection(0.0, 0.0)

    def test_single_face_without_landmarks(self, classifier, config, result, face):
        """Test pose and gaze are skipped without landmarks"""
        tick = classifier.classify(result(face(landmarks=False)), config)

        assert tick.signals == {}
        assert tick.head_pose is None
        assert tick.gaze_direction is None


class TestHeadPoseSignal:
    """Tests for head_pose classification"""

    def test_yaw_over_threshold(self, classifier, config, result, face):
        """Test confidence is the relative overshoot of the worst axis"""
        tick = classifier.classify(result(face(yaw=35.0)), config)

        signal = tick.signals[ViolationType.HEAD_POSE]
        assert signal.confidence == pytest.approx(5.0 / 30.0, abs=1e-6)
        assert signal.details.head_pose.yaw == pytest.approx(35.0, abs=1e-6)

    def test_confidence_capped_at_one(self, classifier, config, result, face):
        """Test a pose twice past the threshold saturates"""
        tick = classifier.classify(result(face(pitch=80.0)), config)
        assert tick.signals[ViolationType.HEAD_POSE].confidence == 1.0

    def test_exact_threshold_does_not_qualify(self, classifier, result, face):
        """Test the comparison is strict"""
        from proctor.config import resolve_config

        config = resolve_config({"headPoseThresholds": {"yaw": 35.0}})
        tick = classifier.classify(result(face(yaw=34.999)), config)
        assert ViolationType.HEAD_POSE not in tick.signals

    def test_pose_masks_gaze(self, config, result, face):
        """Test gaze is not evaluated once the pose is out of bounds"""
        from proctor.classifier import ViolationClassifier

        gaze = Mock()
        gaze.estimate.return_value = GazeDirection(0.9, 0.0)
        classifier = ViolationClassifier(gaze_tracker=gaze)

        tick = classifier.classify(result(face(yaw=50.0)), config)

        assert list(tick.signals) == [ViolationType.HEAD_POSE]
        gaze.estimate.assert_not_called()


class TestGazeSignal:
    """Tests for gaze_away classification"""

    def _classifier(self, x, y):
        from proctor.classifier import ViolationClassifier

        gaze = Mock()
        gaze.estimate.return_value = GazeDirection(x, y)
        return ViolationClassifier(gaze_tracker=gaze)

    def test_gaze_over_threshold(self, config, result, face):
        """Test gaze_away confidence formula"""
        tick = self._classifier(0.45, -0.1).classify(result(face()), config)

        signal = tick.signals[ViolationType.GAZE_AWAY]
        assert signal.confidence == pytest.approx(0.45 / 0.3 - 1 + 0.3)
        assert signal.details.gaze_direction == GazeDirection(0.45, -0.1)

    def test_vertical_gaze(self, config, result, face):
        """Test either axis can trigger"""
        tick = self._classifier(0.0, -0.35).classify(result(face()), config)
        assert ViolationType.GAZE_AWAY in tick.signals

    def test_gaze_confidence_in_range(self, config, result, face):
        """Test a full deflection clamps to 1"""
        tick = self._classifier(1.0, 1.0).classify(result(face()), config)
        assert tick.signals[ViolationType.GAZE_AWAY].confidence == 1.0

    def test_gaze_within_threshold(self, config, result, face):
        """Test small offsets raise nothing"""
        tick = self._classifier(0.3, 0.2).classify(result(face()), config)
        assert tick.signals == {}


class TestConfidenceHelpers:
    """Tests for the confidence formulas"""

    def test_head_pose_confidence_uses_worst_axis(self):
        from proctor.classifier import head_pose_confidence
        from proctor.types import HeadPose

        pose = HeadPose(yaw=33.0, pitch=0.0, roll=30.0)
        assert head_pose_confidence(pose, 30.0, 25.0, 20.0) == pytest.approx(0.5)

    def test_gaze_confidence(self):
        from proctor.classifier import gaze_confidence

        assert gaze_confidence(GazeDirection(0.6, 0.0), 0.3) == pytest.approx(1.0)
        assert gaze_confidence(GazeDirection(0.31, 0.0), 0.3) == pytest.approx(0.31 / 0.3 - 0.7)
