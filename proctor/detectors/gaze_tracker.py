"""
Gaze Tracker - Estimates normalized gaze offset from eye landmarks

Locates the pupil inside each eye region (landmarks 36-47) and reports
its offset from the eye center, averaged across both eyes.
"""

import cv2
import numpy as np
import logging
from typing import Optional, Tuple

from ..types import GazeDirection

logger = logging.getLogger(__name__)


CENTERED = GazeDirection(x=0.0, y=0.0)


class GazeTracker:
    """
    Estimates gaze direction by locating the pupil within each eye.

    Each eye is cut out along its landmark polygon, thresholded with an
    inverted adaptive threshold so the dark pupil/iris becomes foreground,
    and the foreground centroid is compared against the eye box center.

    Without a frame there is nothing to segment and the gaze is reported
    as centered.
    """

    # Landmark indices for eyes (68-point model)
    LEFT_EYE_INDICES = [36, 37, 38, 39, 40, 41]
    RIGHT_EYE_INDICES = [42, 43, 44, 45, 46, 47]

    # Adaptive threshold parameters
    BLOCK_SIZE = 11
    THRESH_C = 2

    # Eyes smaller than this (pixels) are too small to segment
    MIN_EYE_SIZE = 4

    def estimate(self, landmarks: Optional[np.ndarray],
                 frame: Optional[np.ndarray] = None) -> Optional[GazeDirection]:
        """
        Estimate gaze offset from screen center.

        Args:
            landmarks: 68-point facial landmarks as numpy array (68, 2)
            frame: BGR or grayscale image the landmarks were taken from

        Returns:
            GazeDirection with x/y in [-1, 1], or None if the landmarks are unusable
        """
        if landmarks is None or len(landmarks) < 48:
            return None

        if frame is None or not isinstance(frame, np.ndarray) or frame.size == 0:
            return CENTERED

        points = np.asarray(landmarks, dtype=np.float64)
        gray = self._to_gray(frame)

        offsets = []
        for indices in (self.LEFT_EYE_INDICES, self.RIGHT_EYE_INDICES):
            try:
                offset = self._eye_offset(gray, points[indices])
            except cv2.error as e:
                logger.warning(f"Gaze tracking error: {e}")
                offset = None
            if offset is not None:
                offsets.append(offset)

        if not offsets:
            return CENTERED

        x = sum(o[0] for o in offsets) / len(offsets)
        y = sum(o[1] for o in offsets) / len(offsets)
        return GazeDirection(x=x, y=y)

    def _to_gray(self, frame: np.ndarray) -> np.ndarray:
        if frame.ndim == 2:
            return frame if frame.dtype == np.uint8 else frame.astype(np.uint8)
        if frame.shape[2] == 4:
            return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
        return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)

    def _get_eye_bbox(self, eye_region: np.ndarray, shape: Tuple[int, ...]) -> Tuple[int, int, int, int]:
        """Get bounding box for eye region (x_min, y_min, x_max, y_max), clipped to the frame"""
        height, width = shape[:2]
        x_min = max(0, int(np.floor(np.min(eye_region[:, 0]))))
        x_max = min(width, int(np.ceil(np.max(eye_region[:, 0]))) + 1)
        y_min = max(0, int(np.floor(np.min(eye_region[:, 1]))))
        y_max = min(height, int(np.ceil(np.max(eye_region[:, 1]))) + 1)
        return (x_min, y_min, x_max, y_max)

    def _eye_offset(self, gray: np.ndarray, eye_region: np.ndarray) -> Optional[Tuple[float, float]]:
        """
        Pupil offset for one eye, normalized by the eye's half width/height.

        Returns:
            (x, y) offset, or None if the eye cannot be segmented
        """
        x_min, y_min, x_max, y_max = self._get_eye_bbox(eye_region, gray.shape)
        eye_w = x_max - x_min
        eye_h = y_max - y_min
        if eye_w < self.MIN_EYE_SIZE or eye_h < self.MIN_EYE_SIZE:
            return None

        eye_img = gray[y_min:y_max, x_min:x_max]

        # Keep only pixels inside the eye polygon
        mask = np.zeros_like(eye_img)
        polygon = (eye_region - [x_min, y_min]).astype(np.int32)
        cv2.fillPoly(mask, [polygon], 255)

        thresh = cv2.adaptiveThreshold(
            eye_img, 255,
            cv2.ADAPTIVE_THRESH_MEAN_C,
            cv2.THRESH_BINARY_INV, self.BLOCK_SIZE, self.THRESH_C
        )
        pupil = cv2.bitwise_and(thresh, thresh, mask=mask)

        moments = cv2.moments(pupil, binaryImage=True)
        if moments["m00"] == 0:
            return None

        cx = moments["m10"] / moments["m00"]
        cy = moments["m01"] / moments["m00"]

        center_x = (eye_w - 1) / 2
        center_y = (eye_h - 1) / 2
        return (
            (cx - center_x) / max(center_x, 1.0),
            (cy - center_y) / max(center_y, 1.0),
        )
