"""
Session Metrics - Counters describing how the detection loop ran
"""

import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..types import ViolationType

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _empty_confirmed() -> Dict[ViolationType, int]:
    return {vtype: 0 for vtype in ViolationType}


@dataclass
class SessionMetrics:
    """
    Operational counters for a proctoring session.

    Unlike ProctoringStatus these describe the loop itself: how many ticks
    ran, were skipped by the single-flight guard, timed out, failed, or
    arrived after a stop.
    """

    # Tick counters
    ticks_run: int = 0
    ticks_skipped: int = 0
    ticks_timed_out: int = 0
    detection_errors: int = 0
    stale_results: int = 0
    frames_missing: int = 0

    # Out-of-band reports
    tab_switch_reports: int = 0

    # Confirmed violations per type
    confirmed: Dict[ViolationType, int] = field(default_factory=_empty_confirmed)

    # Timestamps
    started_at: Optional[datetime] = None
    last_tick_at: Optional[datetime] = None

    def mark_started(self):
        if self.started_at is None:
            self.started_at = _now()

    def record_tick(self):
        """Record a tick whose result was applied"""
        self.ticks_run += 1
        self.last_tick_at = _now()

    def record_confirmed(self, violation_type: ViolationType):
        self.confirmed[violation_type] += 1

    def get_summary(self) -> Dict[str, Any]:
        """
        Get complete metrics summary.

        Returns:
            Dict with all counters
        """
        duration = None
        if self.started_at and self.last_tick_at:
            duration = (self.last_tick_at - self.started_at).total_seconds()

        return {
            "ticks_run": self.ticks_run,
            "ticks_skipped": self.ticks_skipped,
            "ticks_timed_out": self.ticks_timed_out,
            "detection_errors": self.detection_errors,
            "stale_results": self.stale_results,
            "frames_missing": self.frames_missing,
            "tab_switch_reports": self.tab_switch_reports,
            "confirmed": {vtype.value: count for vtype, count in self.confirmed.items()},
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "duration_seconds": duration
        }

    def reset(self):
        """Reset all counters"""
        self.ticks_run = 0
        self.ticks_skipped = 0
        self.ticks_timed_out = 0
        self.detection_errors = 0
        self.stale_results = 0
        self.frames_missing = 0
        self.tab_switch_reports = 0
        self.confirmed = _empty_confirmed()
        self.started_at = None
        self.last_tick_at = None
