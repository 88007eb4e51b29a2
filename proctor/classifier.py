"""
Violation Classifier - Maps one detection result to raw per-tick violation signals

Classification order:
1. face_count == 0 -> no_face
2. face_count > 1  -> multiple_faces
3. exactly one face: head pose first, gaze only if the pose is within bounds

tab_switch never comes from here; it is reported out of band.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from .config import ProctoringConfig
from .detectors.gaze_tracker import GazeTracker
from .detectors.head_pose import HeadPoseEstimator
from .types import (
    DetectionResult,
    FaceBounds,
    GazeDirection,
    HeadPose,
    ViolationDetails,
    ViolationType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawSignal:
    """One qualifying violation for one tick, before debouncing"""

    type: ViolationType
    confidence: float
    details: ViolationDetails


@dataclass
class TickClassification:
    """Everything the classifier measured for a tick"""

    face_count: int = 0
    head_pose: Optional[HeadPose] = None
    gaze_direction: Optional[GazeDirection] = None
    face_bounds: List[FaceBounds] = field(default_factory=list)
    signals: Dict[ViolationType, RawSignal] = field(default_factory=dict)

    def qualifies(self, violation_type: ViolationType) -> bool:
        return violation_type in self.signals


def head_pose_confidence(pose: HeadPose, yaw: float, pitch: float, roll: float) -> float:
    """Largest per-axis overshoot relative to its own threshold, capped at 1"""
    max_excess = max(
        (abs(pose.yaw) - yaw) / yaw,
        (abs(pose.pitch) - pitch) / pitch,
        (abs(pose.roll) - roll) / roll,
    )
    return max(0.0, min(1.0, max_excess))


def gaze_confidence(gaze: GazeDirection, threshold: float) -> float:
    """Offset beyond the threshold, shifted so a bare exceedance scores ~threshold"""
    offset = max(abs(gaze.x), abs(gaze.y))
    return max(0.0, min(1.0, offset / threshold - 1 + threshold))


class ViolationClassifier:
    """
    Turns a DetectionResult into raw violation signals using the session
    thresholds.
    """

    def __init__(self,
                 pose_estimator: Optional[HeadPoseEstimator] = None,
                 gaze_tracker: Optional[GazeTracker] = None):
        self.pose_estimator = pose_estimator or HeadPoseEstimator()
        self.gaze_tracker = gaze_tracker or GazeTracker()

    def classify(self, result: DetectionResult, config: ProctoringConfig,
                 frame: Optional[np.ndarray] = None) -> TickClassification:
        """
        Classify one tick.

        Args:
            result: Faces detected in the tick's frame
            config: Active session configuration
            frame: The tick's frame, used for gaze segmentation and camera geometry

        Returns:
            TickClassification with zero or more raw signals
        """
        face_count = result.face_count
        bounds = [face.bounds for face in result.faces]
        tick = TickClassification(face_count=face_count, face_bounds=bounds)

        if face_count == 0:
            tick.signals[ViolationType.NO_FACE] = RawSignal(
                type=ViolationType.NO_FACE,
                confidence=1.0,
                details=ViolationDetails(face_count=0)
            )
            return tick

        if face_count > 1:
            score = result.aggregate_score
            tick.signals[ViolationType.MULTIPLE_FACES] = RawSignal(
                type=ViolationType.MULTIPLE_FACES,
                confidence=1.0 if score is None else score,
                details=ViolationDetails(face_count=face_count, face_bounds=bounds)
            )
            return tick

        face = result.primary_face
        if face.landmarks is None:
            logger.debug("Single face without landmarks; skipping pose and gaze")
            return tick

        frame_size = frame.shape[:2] if isinstance(frame, np.ndarray) and frame.ndim >= 2 else None
        pose = self.pose_estimator.estimate(face.landmarks, frame_size)
        tick.head_pose = pose
        if pose is None:
            return tick

        limits = config.head_pose_thresholds
        if abs(pose.yaw) > limits.yaw or abs(pose.pitch) > limits.pitch or abs(pose.roll) > limits.roll:
            tick.signals[ViolationType.HEAD_POSE] = RawSignal(
                type=ViolationType.HEAD_POSE,
                confidence=head_pose_confidence(pose, limits.yaw, limits.pitch, limits.roll),
                details=ViolationDetails(face_count=1, head_pose=pose, face_bounds=bounds)
            )
            # Gaze from an extreme pose is unreliable
            return tick

        gaze = self.gaze_tracker.estimate(face.landmarks, frame)
        tick.gaze_direction = gaze
        if gaze is None:
            return tick

        threshold = config.gaze_threshold
        if abs(gaze.x) > threshold or abs(gaze.y) > threshold:
            tick.signals[ViolationType.GAZE_AWAY] = RawSignal(
                type=ViolationType.GAZE_AWAY,
                confidence=gaze_confidence(gaze, threshold),
                details=ViolationDetails(face_count=1, gaze_direction=gaze, face_bounds=bounds)
            )

        return tick
