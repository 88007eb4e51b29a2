"""
Status Aggregator - Owns the live ProctoringStatus and decides when to publish it
"""

from typing import Dict, Optional

from ..classifier import TickClassification
from ..types import ProctoringStatus, ViolationType


class StatusAggregator:
    """
    Single writer of ProctoringStatus.

    Consumers only ever see copies: ``snapshot()`` for reads and
    ``pop_changed()`` for publication.
    """

    def __init__(self):
        self._status = ProctoringStatus()
        self._published: Optional[ProctoringStatus] = None

    def snapshot(self) -> ProctoringStatus:
        return self._status.snapshot()

    @property
    def is_model_loaded(self) -> bool:
        return self._status.is_model_loaded

    @property
    def error(self) -> Optional[str]:
        return self._status.error

    def set_model_loaded(self, loaded: bool):
        self._status.is_model_loaded = loaded

    def set_error(self, error: Optional[str]):
        self._status.error = error

    def begin_detecting(self, run_lengths: Dict[ViolationType, int]):
        self._status.is_detecting = True
        self._status.error = None
        self._status.consecutive_violation_frames = dict(run_lengths)

    def end_detecting(self):
        """Only the detecting flag changes; the last tick's values stay visible"""
        self._status.is_detecting = False

    def apply_tick(self, tick: TickClassification, run_lengths: Dict[ViolationType, int],
                   confirmed: int = 0):
        """Record a successful tick; clears any previous tick error"""
        self._status.current_face_count = tick.face_count
        self._status.current_head_pose = tick.head_pose if tick.face_count == 1 else None
        self._status.consecutive_violation_frames = dict(run_lengths)
        self._status.total_violations += confirmed
        self._status.error = None

    def apply_report(self, run_lengths: Dict[ViolationType, int], confirmed: int = 0):
        self._status.consecutive_violation_frames = dict(run_lengths)
        self._status.total_violations += confirmed

    def pop_changed(self) -> Optional[ProctoringStatus]:
        """
        Snapshot to publish, or None if nothing changed since the last publish.
        """
        if self._published is not None and self._published == self._status:
            return None
        self._published = self._status.snapshot()
        return self._published.snapshot()
