"""Detector modules for proctoring"""

from .face_detector import FaceDetector, DlibFaceDetector
from .head_pose import HeadPoseEstimator, PnPHeadPoseEstimator
from .gaze_tracker import GazeTracker

__all__ = [
    "FaceDetector",
    "DlibFaceDetector",
    "HeadPoseEstimator",
    "PnPHeadPoseEstimator",
    "GazeTracker"
]
