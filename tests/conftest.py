"""
Pytest Configuration for Proctor Tests
"""
import asyncio
import math
import os
import sys
import threading
import time

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from proctor.errors import ModelLoadError  # noqa: E402
from proctor.detectors.face_detector import FaceDetector  # noqa: E402
from proctor.models.model_loader import ModelLoader  # noqa: E402
from proctor.types import DetectedFace, DetectionResult, FaceBounds  # noqa: E402


# Synthetic level face: outer eye corners 100px apart, chin 150px below the eyes
LEFT_EYE = [(100, 100), (110, 95), (120, 95), (130, 100), (120, 105), (110, 105)]
RIGHT_EYE = [(170, 100), (180, 95), (190, 95), (200, 100), (190, 105), (180, 105)]
EYE_CENTER = (150.0, 100.0)
FACE_HEIGHT = 150.0


def build_landmarks(yaw: float = 0.0, pitch: float = 0.0) -> np.ndarray:
    """68-point landmarks whose geometric head pose is (yaw, pitch, 0) degrees"""
    points = np.zeros((68, 2), dtype=np.float64)
    points[36:42] = LEFT_EYE
    points[42:48] = RIGHT_EYE
    points[8] = (EYE_CENTER[0], EYE_CENTER[1] + FACE_HEIGHT)

    half_width = 50.0
    nose_x = EYE_CENTER[0] + half_width * math.sin(math.radians(yaw))
    nose_y = EYE_CENTER[1] + FACE_HEIGHT * 0.35 + FACE_HEIGHT * 0.3 * math.sin(math.radians(pitch))
    points[30] = (nose_x, nose_y)
    points[27] = (EYE_CENTER[0], EYE_CENTER[1] + 10)
    points[48] = (125, 210)
    points[54] = (175, 210)
    return points


def make_face(yaw: float = 0.0, pitch: float = 0.0, score=0.99, landmarks=True, x: float = 80.0) -> DetectedFace:
    return DetectedFace(
        bounds=FaceBounds(x=x, y=60.0, width=140.0, height=200.0),
        landmarks=build_landmarks(yaw, pitch) if landmarks else None,
        score=score
    )


def make_result(*faces: DetectedFace) -> DetectionResult:
    return DetectionResult(faces=list(faces))


class ScriptedDetector(FaceDetector):
    """
    Returns scripted results in order; the last one repeats.

    A script entry may be a DetectionResult or an exception instance to raise.
    """

    def __init__(self, script=None, delay: float = 0.0):
        self.script = list(script or [make_result(make_face())])
        self.delay = delay
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def detect(self, frame):
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            index = min(self.calls - 1, len(self.script) - 1)
            item = self.script[index]
            if isinstance(item, BaseException):
                raise item
            return item
        finally:
            self.in_flight -= 1

    def close(self):
        self.closed = True


class BlockingDetector(FaceDetector):
    """
    Runs a blocking call in the default executor, like DlibFaceDetector.

    Cancelling the awaiting coroutine does not stop the worker thread, so
    ``max_active`` reports how many detections really overlapped.
    """

    def __init__(self, block: float = 0.15):
        self.block = block
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.closed = False
        self._lock = threading.Lock()

    async def detect(self, frame):
        self.calls += 1
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._detect_sync)

    def _detect_sync(self):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.block)
            return make_result(make_face())
        finally:
            with self._lock:
                self.active -= 1

    def close(self):
        self.closed = True


class FakeLoader(ModelLoader):
    """Loader whose outcome is fixed at construction"""

    def __init__(self, succeed: bool = True, delay: float = 0.0):
        super().__init__()
        self.succeed = succeed
        self.delay = delay
        self.load_calls = 0

    async def _load(self):
        self.load_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.succeed:
            raise ModelLoadError("weights missing")


@pytest.fixture
def frame():
    """Blank 640x480 BGR frame"""
    return np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture
def landmarks():
    return build_landmarks


@pytest.fixture
def face():
    return make_face


@pytest.fixture
def result():
    return make_result


@pytest.fixture
def recorder():
    """Collects callback payloads"""
    class Recorder:
        def __init__(self):
            self.violations = []
            self.statuses = []

        def on_violation(self, violation):
            self.violations.append(violation)

        def on_status_change(self, status):
            self.statuses.append(status)

    return Recorder()


@pytest.fixture
def make_session(frame, recorder):
    """
    Factory for sessions wired to scripted collaborators.

    The default interval is long so tests drive ticks explicitly via
    ``session.tick()``.
    """
    from proctor.session import ProctorSession

    def _make(script=None, delay=0.0, loader=None, frame_source=None,
              detector=None, classifier=None, **overrides):
        config = {
            "detection_interval": 60000,
            "on_violation": recorder.on_violation,
            "on_status_change": recorder.on_status_change,
        }
        config.update(overrides)
        detector = detector or ScriptedDetector(script, delay=delay)
        session = ProctorSession(
            frame_source=frame_source or (lambda: frame),
            detector=detector,
            loader=loader or FakeLoader(),
            config=config,
            session_id="TEST",
            classifier=classifier
        )
        return session, detector

    return _make
