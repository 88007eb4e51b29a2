"""
Head Pose Estimator - Estimates head orientation using facial landmarks

Two estimators over the 68-point landmark model:
- HeadPoseEstimator: closed-form geometry (nose offset / eye line), no camera model
- PnPHeadPoseEstimator: Perspective-n-Point fit against a generic 3D face
"""

import cv2
import numpy as np
import math
import logging
from typing import Optional, Tuple

from ..types import HeadPose

logger = logging.getLogger(__name__)

# 68-point landmark indices
CHIN = 8
NOSE_TIP = 30
LEFT_EYE_OUTER = 36
RIGHT_EYE_OUTER = 45
LEFT_MOUTH = 48
RIGHT_MOUTH = 54


def _valid_landmarks(landmarks: Optional[np.ndarray]) -> bool:
    return landmarks is not None and len(landmarks) >= 68


class HeadPoseEstimator:
    """
    Estimates yaw/pitch/roll from landmark geometry alone.

    - Yaw: horizontal offset of the nose tip from the eye midpoint,
      relative to half the outer-eye distance
    - Pitch: vertical offset of the nose tip from where it sits on a
      level face (35% of eye-to-chin height below the eyes)
    - Roll: angle of the line joining the outer eye corners
    """

    # Nose tip sits this far down the eye-to-chin line on a level face
    NEUTRAL_NOSE_RATIO = 0.35
    # Fraction of face height the nose travels over a full pitch swing
    PITCH_SPAN_RATIO = 0.3

    def estimate(self, landmarks: Optional[np.ndarray],
                 frame_size: Optional[Tuple[int, int]] = None) -> Optional[HeadPose]:
        """
        Estimate head pose from facial landmarks.

        Args:
            landmarks: 68-point facial landmarks as numpy array of shape (68, 2)
            frame_size: (height, width) of the frame, unused by this estimator

        Returns:
            HeadPose in degrees, or None if the landmarks are unusable
        """
        if not _valid_landmarks(landmarks):
            return None

        points = np.asarray(landmarks, dtype=np.float64)
        nose_tip = points[NOSE_TIP]
        left_eye = points[LEFT_EYE_OUTER]
        right_eye = points[RIGHT_EYE_OUTER]
        chin = points[CHIN]

        eye_center = (left_eye + right_eye) / 2
        face_width = float(np.linalg.norm(right_eye - left_eye))
        face_height = float(np.linalg.norm(chin - eye_center))

        if face_width < 1e-6 or face_height < 1e-6:
            return None

        yaw_ratio = (nose_tip[0] - eye_center[0]) / (face_width / 2)
        yaw = math.degrees(math.asin(max(-1.0, min(1.0, yaw_ratio))))

        expected_nose_y = eye_center[1] + face_height * self.NEUTRAL_NOSE_RATIO
        pitch_ratio = (nose_tip[1] - expected_nose_y) / (face_height * self.PITCH_SPAN_RATIO)
        pitch = math.degrees(math.asin(max(-1.0, min(1.0, pitch_ratio))))

        roll = math.degrees(math.atan2(
            right_eye[1] - left_eye[1],
            right_eye[0] - left_eye[0]
        ))

        return HeadPose(yaw=yaw, pitch=pitch, roll=roll)


class PnPHeadPoseEstimator(HeadPoseEstimator):
    """
    Estimates head pose (pitch, yaw, roll) using 68-point facial landmarks
    and PnP (Perspective-n-Point) algorithm.

    Uses 6 key facial points:
    - Nose tip (30)
    - Chin (8)
    - Left eye corner (36)
    - Right eye corner (45)
    - Left mouth corner (48)
    - Right mouth corner (54)

    Falls back to the geometric estimate when the frame size is unknown
    or the solver fails.
    """

    # 3D model points (generic face model)
    MODEL_POINTS = np.array([
        (0.0, 0.0, 0.0),            # Nose tip
        (0.0, -330.0, -65.0),       # Chin
        (-225.0, 170.0, -135.0),    # Left eye left corner
        (225.0, 170.0, -135.0),     # Right eye right corner
        (-150.0, -150.0, -125.0),   # Left mouth corner
        (150.0, -150.0, -125.0)     # Right mouth corner
    ], dtype=np.float64)

    LANDMARK_INDICES = [NOSE_TIP, CHIN, LEFT_EYE_OUTER, RIGHT_EYE_OUTER, LEFT_MOUTH, RIGHT_MOUTH]

    def __init__(self, frame_size: Tuple[int, int] = (480, 640)):
        """
        Args:
            frame_size: (height, width) of expected frames
        """
        self.frame_size = frame_size
        self._init_camera_matrix(frame_size)

    def _init_camera_matrix(self, frame_size: Tuple[int, int]):
        """Approximate pinhole camera: focal length = frame width"""
        height, width = frame_size
        focal_length = width
        center = (width / 2, height / 2)

        self.camera_matrix = np.array([
            [focal_length, 0, center[0]],
            [0, focal_length, center[1]],
            [0, 0, 1]
        ], dtype=np.float64)

        self.dist_coeffs = np.zeros((4, 1))

    def estimate(self, landmarks: Optional[np.ndarray],
                 frame_size: Optional[Tuple[int, int]] = None) -> Optional[HeadPose]:
        if not _valid_landmarks(landmarks):
            return None

        if frame_size is None:
            return super().estimate(landmarks)

        if tuple(frame_size) != tuple(self.frame_size):
            self._init_camera_matrix(frame_size)
            self.frame_size = tuple(frame_size)

        image_points = np.asarray(landmarks, dtype=np.float64)[self.LANDMARK_INDICES]

        try:
            success, rotation_vector, _ = cv2.solvePnP(
                self.MODEL_POINTS,
                image_points,
                self.camera_matrix,
                self.dist_coeffs,
                flags=cv2.SOLVEPNP_ITERATIVE
            )
        except cv2.error as e:
            logger.warning(f"Head pose estimation error: {e}")
            return super().estimate(landmarks)

        if not success:
            return super().estimate(landmarks)

        rotation_matrix, _ = cv2.Rodrigues(rotation_vector)
        pitch, yaw, roll = self._rotation_matrix_to_euler(rotation_matrix)

        return HeadPose(yaw=yaw, pitch=pitch, roll=roll)

    def _rotation_matrix_to_euler(self, rotation_matrix: np.ndarray) -> Tuple[float, float, float]:
        """
        Convert rotation matrix to Euler angles (pitch, yaw, roll) in degrees.

        Pitch is folded into [-90, 90]: the generic model faces -z, so a
        level head comes out of the decomposition near +/-180.
        """
        sy = math.sqrt(
            rotation_matrix[0, 0] ** 2 + rotation_matrix[1, 0] ** 2
        )

        if sy >= 1e-6:
            pitch = math.atan2(rotation_matrix[2, 1], rotation_matrix[2, 2])
            yaw = math.atan2(-rotation_matrix[2, 0], sy)
            roll = math.atan2(rotation_matrix[1, 0], rotation_matrix[0, 0])
        else:
            # gimbal lock
            pitch = math.atan2(-rotation_matrix[1, 2], rotation_matrix[1, 1])
            yaw = math.atan2(-rotation_matrix[2, 0], sy)
            roll = 0.0

        pitch = math.degrees(pitch)
        if pitch > 90:
            pitch -= 180
        elif pitch < -90:
            pitch += 180

        return pitch, math.degrees(yaw), math.degrees(roll)
