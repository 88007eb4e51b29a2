"""
Proctor Session - Runs the periodic detection loop for one candidate

Engine states:
    idle      -> models not loaded
    ready     -> models loaded, not ticking
    detecting -> timer active
    stopped   -> timer cancelled, last status retained

One timer task fires every detection_interval. Each firing launches a tick
unless a detection is still running (single-flight); such firings are
skipped, not queued. A detection that outlives detection_timeout keeps
blocking new ones until it finishes, since executor-backed detectors
cannot be interrupted. Every tick captures the epoch it was launched in
and its result is discarded if the session was stopped or restarted in
the meantime.
"""

import asyncio
import inspect
import logging
import uuid
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np

from .classifier import ViolationClassifier
from .config import ProctoringConfig, get_settings, resolve_config
from .detectors.face_detector import DlibFaceDetector, FaceDetector
from .errors import DetectionError, ModelLoadError
from .frames import FrameSource, as_frame_source
from .metrics import SessionMetrics
from .models.model_loader import LOAD_FAILED_MESSAGE, DlibModelLoader, ModelLoader
from .scoring import RiskScorer
from .tracking import DebounceTracker, StatusAggregator
from .types import DetectionResult, ProctoringStatus, ProctoringViolation, ViolationType
from .utils.logging import (
    log_detection_error,
    log_models_loaded,
    log_session_start,
    log_session_stop,
    log_tick_skipped,
)

logger = logging.getLogger(__name__)

NOT_LOADED_MESSAGE = "Models not loaded. Call load_models() first."


class EngineState(str, Enum):
    IDLE = "idle"
    READY = "ready"
    DETECTING = "detecting"
    STOPPED = "stopped"


class ProctorSession:
    """
    Manages a single proctoring session.

    Pulls frames, runs detection, classifies, debounces and scores each
    tick, and pushes status changes and confirmed violations to the
    configured callbacks. Nothing raised inside a tick escapes the loop.
    """

    def __init__(
        self,
        frame_source: Union[FrameSource, Callable[[], Optional[np.ndarray]]],
        detector: FaceDetector,
        loader: ModelLoader,
        config: Optional[Union[ProctoringConfig, Dict[str, Any]]] = None,
        session_id: Optional[str] = None,
        classifier: Optional[ViolationClassifier] = None
    ):
        """
        Initialize a new proctoring session.

        Args:
            frame_source: FrameSource or ``() -> frame`` callable
            detector: Face/landmark detector
            loader: Model loader that must succeed before start()
            config: ProctoringConfig or a partial override dict
            session_id: Optional custom session ID (auto-generated if not provided)
            classifier: Optional classifier (custom pose/gaze estimators)

        Raises:
            ConfigValidationError: if the configuration is malformed
        """
        self.id = session_id or f"PRC_{uuid.uuid4().hex[:6].upper()}"
        self.config = config if isinstance(config, ProctoringConfig) else resolve_config(config)
        self.frame_source = as_frame_source(frame_source)
        self.detector = detector
        self.loader = loader
        self.classifier = classifier or ViolationClassifier()

        self.tracker = DebounceTracker(self.config, session_id=self.id)
        self.scorer = RiskScorer()
        self.metrics = SessionMetrics()
        self._status = StatusAggregator()

        self._state = EngineState.IDLE
        self._epoch = 0
        self._timer_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._detect_future: Optional[asyncio.Future] = None
        self._consecutive_timeouts = 0
        self._last_frame: Optional[np.ndarray] = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def status(self) -> ProctoringStatus:
        """Copy of the live status"""
        return self._status.snapshot()

    @property
    def risk_score(self) -> int:
        return self.scorer.score

    @property
    def is_detecting(self) -> bool:
        return self._state == EngineState.DETECTING

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load_models(self) -> bool:
        """
        Load detection models through the injected loader.

        Returns:
            True on success (engine becomes ready), False on failure (stays idle)
        """
        try:
            loaded = await self.loader.load_models()
        except ModelLoadError as e:
            logger.error(f"Model loader raised: {e}")
            loaded = False

        log_models_loaded(self.id, loaded)

        if loaded:
            self._status.set_model_loaded(True)
            if self._status.error in (LOAD_FAILED_MESSAGE, NOT_LOADED_MESSAGE):
                self._status.set_error(None)
            if self._state == EngineState.IDLE:
                self._state = EngineState.READY
        else:
            self._status.set_error(LOAD_FAILED_MESSAGE)

        self._publish_status()
        return loaded

    def start(self) -> bool:
        """
        Start the detection loop. Must be called from a running event loop.

        Returns:
            False if the models are not loaded, True otherwise
        """
        if self._state == EngineState.IDLE:
            logger.warning(f"Session {self.id}: start() before models were loaded")
            self._status.set_error(NOT_LOADED_MESSAGE)
            self._publish_status()
            return False

        if self._state == EngineState.DETECTING:
            logger.warning(f"Session {self.id}: already detecting")
            return True

        loop = asyncio.get_running_loop()

        self._epoch += 1
        self._consecutive_timeouts = 0
        self.tracker.reset()
        self.metrics.mark_started()
        self._status.begin_detecting(self.tracker.run_lengths())
        self._state = EngineState.DETECTING

        self._timer_task = loop.create_task(self._run_timer(self._epoch))

        log_session_start(self.id, self.config.detection_interval, self.config.consecutive_frame_threshold)
        self._publish_status()
        return True

    def stop(self):
        """
        Stop the detection loop. The last status stays in place.

        An in-flight tick is left to finish; its result is discarded.
        """
        if self._state != EngineState.DETECTING:
            return

        self._epoch += 1
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None

        self._state = EngineState.STOPPED
        self._status.end_detecting()

        log_session_stop(self.id, self._status.snapshot().total_violations,
                         self.scorer.score, self.metrics.ticks_run)
        self._publish_status()

    async def close(self):
        """Stop, cancel any in-flight tick and release detector resources"""
        self.stop()

        tick_task = self._tick_task
        self._tick_task = None
        if tick_task is not None and not tick_task.done():
            tick_task.cancel()
            try:
                await tick_task
            except asyncio.CancelledError:
                pass

        detect_future = self._detect_future
        self._detect_future = None
        if detect_future is not None and not detect_future.done():
            detect_future.cancel()

        self.detector.close()
        logger.info(f"Proctoring session closed: {self.id}")

    # ------------------------------------------------------------------
    # Detection loop
    # ------------------------------------------------------------------

    async def _run_timer(self, epoch: int):
        loop = asyncio.get_running_loop()
        interval = self.config.interval_seconds

        while self._epoch == epoch:
            await asyncio.sleep(interval)
            if self._epoch != epoch:
                break

            if self._skip_busy_firing():
                continue

            self._tick_task = loop.create_task(self._tick(epoch))

    async def tick(self) -> List[ProctoringViolation]:
        """
        Run one detection cycle now, outside the timer.

        Returns:
            Violations confirmed by this tick
        """
        if self._state != EngineState.DETECTING:
            return []

        if self._skip_busy_firing():
            return []

        self._tick_task = asyncio.ensure_future(self._tick(self._epoch))
        return await self._tick_task

    def _skip_busy_firing(self) -> bool:
        """
        Single-flight guard shared by the timer and tick().

        Returns:
            True if a detection is still running and this firing is skipped
        """
        if self._tick_task is not None and not self._tick_task.done():
            self.metrics.ticks_skipped += 1
            log_tick_skipped(self.id, "previous tick still in flight")
            return True

        # A timed-out detection still occupies the detector
        if self._detect_future is not None and not self._detect_future.done():
            self.metrics.ticks_skipped += 1
            self._on_timeout()
            return True

        return False

    def _start_detection(self, frame: np.ndarray) -> asyncio.Future:
        future = asyncio.ensure_future(self.detector.detect(frame))
        future.add_done_callback(self._release_detection)
        self._detect_future = future
        return future

    def _release_detection(self, future: asyncio.Future):
        if self._detect_future is future:
            self._detect_future = None
        # Consume the outcome of detections nobody awaits any more
        if not future.cancelled() and future.exception() is not None:
            logger.debug(f"Session {self.id}: abandoned detection failed: {future.exception()}")

    async def _tick(self, epoch: int) -> List[ProctoringViolation]:
        frame = None
        try:
            frame = self.frame_source.read()
            if frame is None:
                self.metrics.frames_missing += 1
                result = DetectionResult()
            else:
                result = await asyncio.wait_for(
                    asyncio.shield(self._start_detection(frame)),
                    timeout=self.config.timeout_seconds
                )
        except asyncio.TimeoutError:
            if self._is_stale(epoch):
                return []
            self._on_timeout()
            return []
        except Exception as e:
            if self._is_stale(epoch):
                return []
            self._on_detection_error(DetectionError(str(e) or type(e).__name__, cause=e))
            return []

        if self._is_stale(epoch):
            return []

        self._consecutive_timeouts = 0
        self._last_frame = frame

        try:
            tick = self.classifier.classify(result, self.config, frame)
            violations = self.tracker.observe_tick(tick, frame)

            for violation in violations:
                self.scorer.add(violation)
                self.metrics.record_confirmed(violation.type)
        except Exception as e:
            logger.error(f"Session {self.id}: tick processing failed: {e}", exc_info=True)
            self._on_detection_error(DetectionError(str(e) or type(e).__name__, cause=e))
            return []

        self.metrics.record_tick()
        self._status.apply_tick(tick, self.tracker.run_lengths(), len(violations))

        self._publish_status()
        for violation in violations:
            self._emit_violation(violation)

        return violations

    def _is_stale(self, epoch: int) -> bool:
        if epoch == self._epoch:
            return False
        self.metrics.stale_results += 1
        logger.debug(f"Session {self.id}: discarding result from epoch {epoch} (current {self._epoch})")
        return True

    def _on_timeout(self):
        """A timed-out detection is a missed tick; debounce state is untouched"""
        self.metrics.ticks_timed_out += 1
        self._consecutive_timeouts += 1
        log_tick_skipped(self.id, f"detection timed out ({self._consecutive_timeouts} in a row)")

        if self._consecutive_timeouts >= self.config.timeout_error_threshold:
            self._status.set_error(
                f"Detection timed out {self._consecutive_timeouts} consecutive times"
            )
            self._publish_status()

    def _on_detection_error(self, error: DetectionError):
        self.metrics.detection_errors += 1
        log_detection_error(self.id, str(error))
        self._status.set_error(f"Detection failed: {error}")
        self._publish_status()

    # ------------------------------------------------------------------
    # Out-of-band reports
    # ------------------------------------------------------------------

    def add_tab_switch(self) -> Optional[ProctoringViolation]:
        """
        Record a tab/window switch reported by the page visibility collaborator.

        Returns:
            The emitted violation, or None if the session is not detecting
        """
        if self._state != EngineState.DETECTING:
            logger.debug(f"Session {self.id}: tab switch ignored while {self._state.value}")
            return None

        self.metrics.tab_switch_reports += 1
        violation = self.tracker.report(ViolationType.TAB_SWITCH, frame=self._last_frame)
        if violation is None:
            return None

        self.scorer.add(violation)
        self.metrics.record_confirmed(violation.type)
        self._status.apply_report(self.tracker.run_lengths(), 1)

        self._publish_status()
        self._emit_violation(violation)
        return violation

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _publish_status(self):
        changed = self._status.pop_changed()
        if changed is not None:
            self._invoke_callback(self.config.on_status_change, changed, "on_status_change")

    def _emit_violation(self, violation: ProctoringViolation):
        self._invoke_callback(self.config.on_violation, violation, "on_violation")

    def _invoke_callback(self, callback: Optional[Callable[..., Any]], payload: Any, name: str):
        if callback is None:
            return

        try:
            result = callback(payload)
        except Exception as e:
            logger.error(f"Session {self.id}: {name} callback failed: {e}", exc_info=True)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            task.add_done_callback(lambda t: self._log_callback_result(t, name))

    def _log_callback_result(self, task: asyncio.Future, name: str):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Session {self.id}: {name} callback failed: {error}")

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def summary(self) -> Dict[str, Any]:
        """
        Session summary.

        Returns:
            Dict with state, status, risk breakdown and loop metrics
        """
        return {
            "session_id": self.id,
            "state": self._state.value,
            "status": self._status.snapshot().to_dict(),
            "risk": self.scorer.breakdown(),
            "metrics": self.metrics.get_summary()
        }


def create_default_session(
    frame_source: Union[FrameSource, Callable[[], Optional[np.ndarray]]],
    config: Optional[Union[ProctoringConfig, Dict[str, Any]]] = None,
    models_dir: Optional[str] = None,
    session_id: Optional[str] = None
) -> ProctorSession:
    """
    Session wired to dlib's HOG detector and 68-point shape predictor.

    Args:
        frame_source: FrameSource or ``() -> frame`` callable
        config: ProctoringConfig or a partial override dict
        models_dir: Directory holding shape_predictor_68_face_landmarks.dat
        session_id: Optional custom session ID
    """
    settings = get_settings()
    loader = DlibModelLoader(models_dir or settings.MODELS_DIR)
    detector = DlibFaceDetector(loader, score_threshold=settings.DETECTION_SCORE_THRESHOLD)
    return ProctorSession(
        frame_source=frame_source,
        detector=detector,
        loader=loader,
        config=config,
        session_id=session_id
    )
