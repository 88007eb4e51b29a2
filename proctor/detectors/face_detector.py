"""
Face Detector - Detects faces and 68-point landmarks using dlib's HOG detector

FaceDetector is the contract the detection loop consumes; DlibFaceDetector
is the default implementation backed by a DlibModelLoader.
"""

import asyncio
import math
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import cv2
import numpy as np

from ..errors import DetectionError
from ..types import DetectedFace, DetectionResult, FaceBounds

logger = logging.getLogger(__name__)


class FaceDetector(ABC):
    """
    Detects every face in a frame.

    ``detect`` may raise; the detection loop treats any exception as a
    transient failure of that tick.
    """

    @abstractmethod
    async def detect(self, frame: np.ndarray) -> DetectionResult:
        """
        Detect faces in a frame.

        Args:
            frame: BGR image from OpenCV

        Returns:
            DetectionResult (empty faces list = no face)
        """

    async def detect_single(self, frame: np.ndarray) -> Optional[DetectedFace]:
        """Detect the primary (largest) face, or None"""
        result = await self.detect(frame)
        return result.primary_face

    def close(self):
        """Release detector resources"""


def squash_score(raw: float) -> float:
    """Map an unbounded dlib detection score into [0, 1] (0.0 -> 0.5)"""
    return 1.0 / (1.0 + math.exp(-raw))


class DlibFaceDetector(FaceDetector):
    """
    Detects faces in video frames using dlib's HOG-based face detector.

    Provides:
    - Face bounding boxes
    - Detection scores squashed into [0, 1]
    - Facial landmarks (68-point)
    """

    # dlib reports candidates down to this raw score; filtering happens after squashing
    ADJUST_THRESHOLD = -1.0

    def __init__(self, loader, score_threshold: float = 0.5, upsample: int = 0):
        """
        Args:
            loader: DlibModelLoader providing detector and predictor
            score_threshold: Minimum squashed score for a face to count
            upsample: Number of times dlib upsamples the image (finds smaller faces)
        """
        self.loader = loader
        self.score_threshold = score_threshold
        self.upsample = upsample

    async def detect(self, frame: np.ndarray) -> DetectionResult:
        if frame is None or frame.size == 0:
            return DetectionResult()

        if self.loader is None or not self.loader.is_loaded:
            raise DetectionError("Face detection models are not loaded")

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._detect_sync, frame)

    def _detect_sync(self, frame: np.ndarray) -> DetectionResult:
        if frame.ndim == 3:
            gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        else:
            gray = frame

        rects, scores, _ = self.loader.detector.run(gray, self.upsample, self.ADJUST_THRESHOLD)

        faces: List[DetectedFace] = []
        for rect, raw_score in zip(rects, scores):
            score = squash_score(raw_score)
            if score < self.score_threshold:
                continue

            faces.append(DetectedFace(
                bounds=self.get_face_bbox(rect),
                landmarks=self._landmarks(gray, rect),
                score=score
            ))

        logger.debug(f"Detected {len(faces)} face(s) from {len(rects)} candidate(s)")
        return DetectionResult(faces=faces)

    def _landmarks(self, gray: np.ndarray, rect) -> Optional[np.ndarray]:
        predictor = self.loader.predictor
        if predictor is None:
            return None

        try:
            marks = predictor(gray, rect)
        except RuntimeError as e:
            logger.warning(f"Error getting landmarks: {e}")
            return None

        # Convert to numpy array of (x, y) points
        return np.array([
            (marks.part(i).x, marks.part(i).y)
            for i in range(marks.num_parts)
        ], dtype=np.float64)

    def get_face_bbox(self, face) -> FaceBounds:
        """Bounding box from a dlib face rectangle"""
        return FaceBounds(
            x=float(face.left()),
            y=float(face.top()),
            width=float(face.width()),
            height=float(face.height())
        )

    def close(self):
        self.loader = None
