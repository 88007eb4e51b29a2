"""
Proctoring Logger - Logs proctoring events and results
"""

import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def log_proctor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a proctoring event.

    Args:
        session_id: Proctoring session ID
        event_type: Type of event (start, tick_skipped, violation, stop, etc.)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[PROCTOR] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_session_start(session_id: str, interval_ms: float, threshold: int):
    """Log detection loop start"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_start",
        details={
            "interval_ms": interval_ms,
            "frame_threshold": threshold
        }
    )


def log_session_stop(session_id: str, total_violations: int, risk_score: int, ticks: int):
    """Log detection loop stop"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_stop",
        details={
            "total_violations": total_violations,
            "risk_score": risk_score,
            "ticks_run": ticks
        }
    )


def log_models_loaded(session_id: str, success: bool):
    """Log the outcome of model loading"""
    log_proctor_event(
        session_id=session_id,
        event_type="models_loaded" if success else "models_failed",
        level="info" if success else "error"
    )


def log_suspect_tick(session_id: str, violation_type: str, run_length: int, threshold: int):
    """Log a qualifying tick that has not yet confirmed a violation"""
    log_proctor_event(
        session_id=session_id,
        event_type="suspect",
        details={
            "type": violation_type,
            "frame": f"{run_length}/{threshold}"
        },
        level="debug"
    )


def log_violation_confirmed(session_id: str, violation_type: str, confidence: float, severity: str):
    """Log when a violation episode is confirmed"""
    log_proctor_event(
        session_id=session_id,
        event_type="violation",
        details={
            "type": violation_type,
            "confidence": f"{confidence * 100:.0f}%",
            "severity": severity
        },
        level="warning"
    )


def log_tick_skipped(session_id: str, reason: str):
    """Log a timer firing that did not run a detection"""
    log_proctor_event(
        session_id=session_id,
        event_type="tick_skipped",
        details={"reason": reason},
        level="debug"
    )


def log_detection_error(session_id: str, error: str):
    """Log a failed detector call"""
    log_proctor_event(
        session_id=session_id,
        event_type="detection_error",
        details={"error": error},
        level="error"
    )
