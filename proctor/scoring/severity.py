"""
Violation Severity - Grades confirmed violations and describes them
"""

from typing import Optional

from ..config import HeadPoseThresholds
from ..types import HeadPose, ViolationDetails, ViolationSeverity, ViolationType


def get_violation_severity(violation_type: ViolationType, confidence: float) -> ViolationSeverity:
    """
    Grade a violation from its type and the confirming tick's confidence.

    Args:
        violation_type: Type of violation
        confidence: Confidence in [0, 1]

    Returns:
        ViolationSeverity
    """
    if violation_type == ViolationType.MULTIPLE_FACES and confidence > 0.9:
        return ViolationSeverity.CRITICAL
    if violation_type in (ViolationType.MULTIPLE_FACES, ViolationType.NO_FACE):
        return ViolationSeverity.HIGH
    if violation_type == ViolationType.TAB_SWITCH:
        return ViolationSeverity.MEDIUM
    if violation_type in (ViolationType.HEAD_POSE, ViolationType.GAZE_AWAY):
        return ViolationSeverity.MEDIUM if confidence > 0.8 else ViolationSeverity.LOW
    return ViolationSeverity.LOW


def _gaze_direction_label(x: float, y: float) -> str:
    if abs(x) >= abs(y):
        return "right" if x > 0 else "left"
    return "down" if y > 0 else "up"


def _describe_head_pose(pose: HeadPose, limits: HeadPoseThresholds) -> str:
    # Name the axis that overshoots its own limit the most
    overshoot = {
        "yaw": abs(pose.yaw) / limits.yaw,
        "pitch": abs(pose.pitch) / limits.pitch,
        "roll": abs(pose.roll) / limits.roll,
    }
    axis = max(overshoot, key=overshoot.get)

    if axis == "yaw":
        return f"Head turned {'right' if pose.yaw > 0 else 'left'} ({abs(pose.yaw):.0f}°)"
    if axis == "pitch":
        return f"Head tilted {'down' if pose.pitch > 0 else 'up'} ({abs(pose.pitch):.0f}°)"
    return f"Head tilted sideways ({abs(pose.roll):.0f}°)"


def get_violation_description(violation_type: ViolationType,
                              details: Optional[ViolationDetails] = None,
                              thresholds: Optional[HeadPoseThresholds] = None) -> str:
    """
    Human-readable sentence for a violation (informational only).

    ``thresholds`` picks the head_pose axis to describe; the defaults
    are used when omitted.
    """
    if violation_type == ViolationType.NO_FACE:
        return "No face detected in camera view"

    if violation_type == ViolationType.MULTIPLE_FACES:
        count = details.face_count if details and details.face_count else "unknown"
        return f"Multiple faces detected ({count} faces)"

    if violation_type == ViolationType.HEAD_POSE:
        if details and details.head_pose:
            return _describe_head_pose(details.head_pose, thresholds or HeadPoseThresholds())
        return "Excessive head movement detected"

    if violation_type == ViolationType.GAZE_AWAY:
        if details and details.gaze_direction:
            gaze = details.gaze_direction
            return f"Looking away from screen ({_gaze_direction_label(gaze.x, gaze.y)})"
        return "Looking away from screen"

    if violation_type == ViolationType.TAB_SWITCH:
        return "Browser tab or window switch detected"

    return "Unknown violation"
