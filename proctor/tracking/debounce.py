"""
Debounce Tracker - Per-type hysteresis turning raw signals into confirmed violations

Each violation type has one episode:

    CLEAR     + qualifies               -> SUSPECT (run = 1)
    SUSPECT   + qualifies, run < T      -> SUSPECT (run += 1)
    SUSPECT   + qualifies, run reaches T -> CONFIRMED, emit once
    CONFIRMED + qualifies               -> CONFIRMED (run += 1), no emission
    any       + not qualifying          -> CLEAR (run = 0)

T is consecutive_frame_threshold for frame-driven types and 1 for
tab_switch, so every tab switch report is emitted.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from ..classifier import RawSignal, TickClassification
from ..config import ProctoringConfig
from ..scoring.severity import get_violation_description, get_violation_severity
from ..types import (
    FRAME_VIOLATION_TYPES,
    ProctoringViolation,
    ViolationDetails,
    ViolationType,
    empty_run_lengths,
)
from ..utils.logging import log_suspect_tick, log_violation_confirmed
from ..utils.snapshot import encode_snapshot

logger = logging.getLogger(__name__)


class EpisodeState(str, Enum):
    CLEAR = "clear"
    SUSPECT = "suspect"
    CONFIRMED = "confirmed"


@dataclass
class Episode:
    """Debounce state for one violation type"""

    type: ViolationType
    state: EpisodeState = EpisodeState.CLEAR
    run_length: int = 0

    def advance(self, qualifies: bool, threshold: int) -> bool:
        """
        Apply one observation.

        Returns:
            True if this observation confirmed the episode
        """
        if not qualifies:
            self.clear()
            return False

        self.run_length += 1

        if self.state == EpisodeState.CONFIRMED:
            return False

        if self.run_length >= threshold:
            self.state = EpisodeState.CONFIRMED
            return True

        self.state = EpisodeState.SUSPECT
        return False

    def clear(self):
        self.state = EpisodeState.CLEAR
        self.run_length = 0


class DebounceTracker:
    """
    Confirms a violation only after enough consecutive qualifying ticks,
    and emits at most once per sustained episode.
    """

    def __init__(self, config: ProctoringConfig, session_id: str = "-"):
        """
        Args:
            config: Session configuration (threshold and snapshot settings)
            session_id: Session ID used in log lines
        """
        self.config = config
        self.session_id = session_id
        self._episodes: Dict[ViolationType, Episode] = {}

    def threshold_for(self, violation_type: ViolationType) -> int:
        if violation_type in FRAME_VIOLATION_TYPES:
            return self.config.consecutive_frame_threshold
        return 1

    def episode(self, violation_type: ViolationType) -> Optional[Episode]:
        return self._episodes.get(violation_type)

    def _get_or_create(self, violation_type: ViolationType) -> Episode:
        episode = self._episodes.get(violation_type)
        if episode is None:
            episode = Episode(type=violation_type)
            self._episodes[violation_type] = episode
        return episode

    def _observe(self, violation_type: ViolationType, signal: Optional[RawSignal],
                 frame: Optional[np.ndarray], timestamp: Optional[datetime]) -> Optional[ProctoringViolation]:
        if signal is None:
            episode = self._episodes.get(violation_type)
            if episode is not None:
                episode.clear()
            return None

        episode = self._get_or_create(violation_type)
        threshold = self.threshold_for(violation_type)

        if not episode.advance(True, threshold):
            if episode.state == EpisodeState.SUSPECT:
                log_suspect_tick(self.session_id, violation_type.value, episode.run_length, threshold)
            return None

        return self._build_violation(signal, frame, timestamp)

    def observe_tick(self, tick: TickClassification, frame: Optional[np.ndarray] = None,
                     timestamp: Optional[datetime] = None) -> List[ProctoringViolation]:
        """
        Apply one frame tick to every violation type.

        Types the tick does not exhibit (including tab_switch) are cleared.

        Args:
            tick: Classifier output for the tick
            frame: The tick's frame, used for snapshots
            timestamp: Confirmation time (defaults to now, UTC)

        Returns:
            Violations confirmed by this tick, in type order
        """
        confirmed = []
        for violation_type in ViolationType:
            violation = self._observe(violation_type, tick.signals.get(violation_type), frame, timestamp)
            if violation is not None:
                confirmed.append(violation)
        return confirmed

    def report(self, violation_type: ViolationType, confidence: float = 1.0,
               details: Optional[ViolationDetails] = None,
               frame: Optional[np.ndarray] = None,
               timestamp: Optional[datetime] = None) -> Optional[ProctoringViolation]:
        """
        Inject an out-of-band occurrence (e.g. tab_switch).

        Event-driven types treat every report as a fresh episode, so a
        previously confirmed episode is cleared first.

        Returns:
            The confirmed violation, or None if still below threshold
        """
        violation_type = ViolationType(violation_type)
        episode = self._get_or_create(violation_type)
        if violation_type not in FRAME_VIOLATION_TYPES and episode.state == EpisodeState.CONFIRMED:
            episode.clear()

        signal = RawSignal(
            type=violation_type,
            confidence=max(0.0, min(1.0, confidence)),
            details=details or ViolationDetails()
        )
        return self._observe(violation_type, signal, frame, timestamp)

    def _build_violation(self, signal: RawSignal, frame: Optional[np.ndarray],
                         timestamp: Optional[datetime]) -> ProctoringViolation:
        confidence = max(0.0, min(1.0, signal.confidence))
        severity = get_violation_severity(signal.type, confidence)
        details = replace(
            signal.details,
            description=get_violation_description(
                signal.type, signal.details, self.config.head_pose_thresholds
            )
        )

        snapshot = None
        if self.config.capture_snapshots and frame is not None:
            snapshot = encode_snapshot(frame, self.config.snapshot_quality)

        log_violation_confirmed(self.session_id, signal.type.value, confidence, severity.value)

        return ProctoringViolation(
            type=signal.type,
            timestamp=timestamp or datetime.now(timezone.utc),
            confidence=confidence,
            severity=severity,
            details=details,
            snapshot=snapshot
        )

    def run_lengths(self) -> Dict[ViolationType, int]:
        """Current run length for every type (0 for types never seen)"""
        lengths = empty_run_lengths()
        for violation_type, episode in self._episodes.items():
            lengths[violation_type] = episode.run_length
        return lengths

    def reset(self):
        """Clear every episode"""
        for episode in self._episodes.values():
            episode.clear()
