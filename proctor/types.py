"""
Proctoring Types - Data model shared by detectors, tracker and session
"""

import copy
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np


class ViolationType(str, Enum):
    """Kinds of integrity violations the engine can confirm"""

    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    HEAD_POSE = "head_pose"
    GAZE_AWAY = "gaze_away"
    TAB_SWITCH = "tab_switch"


class ViolationSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Types raised by the per-frame classifier (tab_switch arrives out of band)
FRAME_VIOLATION_TYPES = (
    ViolationType.NO_FACE,
    ViolationType.MULTIPLE_FACES,
    ViolationType.HEAD_POSE,
    ViolationType.GAZE_AWAY,
)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, float(value)))


@dataclass(frozen=True)
class HeadPose:
    """Head rotation in degrees relative to facing the camera"""

    yaw: float    # left/right, 0 = facing camera
    pitch: float  # up/down, 0 = level
    roll: float   # tilt, 0 = upright

    def __post_init__(self):
        object.__setattr__(self, "yaw", _clamp(self.yaw, -180.0, 180.0))
        object.__setattr__(self, "pitch", _clamp(self.pitch, -180.0, 180.0))
        object.__setattr__(self, "roll", _clamp(self.roll, -180.0, 180.0))


@dataclass(frozen=True)
class GazeDirection:
    """
    Normalized gaze offset from screen center.

    x: -1 = left, 0 = center, 1 = right
    y: -1 = up, 0 = center, 1 = down
    """

    x: float
    y: float

    def __post_init__(self):
        object.__setattr__(self, "x", _clamp(self.x, -1.0, 1.0))
        object.__setattr__(self, "y", _clamp(self.y, -1.0, 1.0))


@dataclass(frozen=True)
class FaceBounds:
    """Axis-aligned face box in frame pixel space"""

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)


@dataclass
class DetectedFace:
    """One face returned by a detector"""

    bounds: FaceBounds
    landmarks: Optional[np.ndarray] = None  # (68, 2) points
    score: Optional[float] = None           # detection confidence in [0, 1]


@dataclass
class DetectionResult:
    """All faces found in one frame (empty list = no face)"""

    faces: List[DetectedFace] = field(default_factory=list)

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def aggregate_score(self) -> Optional[float]:
        """Mean detection score across faces that report one"""
        scores = [f.score for f in self.faces if f.score is not None]
        if not scores:
            return None
        return _clamp(sum(scores) / len(scores), 0.0, 1.0)

    @property
    def primary_face(self) -> Optional[DetectedFace]:
        """Largest face, assumed to be the candidate"""
        if not self.faces:
            return None
        return max(self.faces, key=lambda f: f.bounds.area)


@dataclass(frozen=True)
class ViolationDetails:
    face_count: Optional[int] = None
    head_pose: Optional[HeadPose] = None
    gaze_direction: Optional[GazeDirection] = None
    face_bounds: Optional[List[FaceBounds]] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ProctoringViolation:
    """A confirmed violation event, handed to ``on_violation`` consumers"""

    type: ViolationType
    timestamp: datetime
    confidence: float
    severity: ViolationSeverity
    details: ViolationDetails
    snapshot: Optional[str] = None  # data URL of the frame, if captured

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["severity"] = self.severity.value
        data["timestamp"] = self.timestamp.isoformat()
        return data


def empty_run_lengths() -> Dict[ViolationType, int]:
    return {vtype: 0 for vtype in ViolationType}


@dataclass
class ProctoringStatus:
    """
    Live detection status.

    Written only by the detection loop; consumers receive copies via
    ``snapshot()`` so they never hold a reference to the live object.
    """

    is_model_loaded: bool = False
    is_detecting: bool = False
    current_face_count: int = 0
    current_head_pose: Optional[HeadPose] = None
    consecutive_violation_frames: Dict[ViolationType, int] = field(
        default_factory=empty_run_lengths
    )
    total_violations: int = 0
    error: Optional[str] = None

    def snapshot(self) -> "ProctoringStatus":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["consecutive_violation_frames"] = {
            vtype.value: count
            for vtype, count in self.consecutive_violation_frames.items()
        }
        return data
