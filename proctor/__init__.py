"""
Proctor - Exam/interview integrity engine

Samples a candidate's camera feed, classifies each frame for anomalies
(no face, multiple faces, head turned away, gaze diverted) plus reported
tab switches, debounces the signals into confirmed violations and keeps
a running risk score.
"""

from .config import ProctoringConfig, ProctorSettings, get_settings, resolve_config
from .errors import ConfigValidationError, DetectionError, ModelLoadError, ProctoringError
from .session import EngineState, ProctorSession, create_default_session
from .types import (
    DetectedFace,
    DetectionResult,
    FaceBounds,
    GazeDirection,
    HeadPose,
    ProctoringStatus,
    ProctoringViolation,
    ViolationDetails,
    ViolationSeverity,
    ViolationType,
)

__all__ = [
    "ProctorSession",
    "EngineState",
    "create_default_session",
    "ProctoringConfig",
    "ProctorSettings",
    "get_settings",
    "resolve_config",
    "ProctoringError",
    "ModelLoadError",
    "DetectionError",
    "ConfigValidationError",
    "DetectedFace",
    "DetectionResult",
    "FaceBounds",
    "GazeDirection",
    "HeadPose",
    "ProctoringStatus",
    "ProctoringViolation",
    "ViolationDetails",
    "ViolationSeverity",
    "ViolationType",
]
