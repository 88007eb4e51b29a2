"""Session metrics"""

from .aggregator import SessionMetrics

__all__ = ["SessionMetrics"]
