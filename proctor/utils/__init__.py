"""Utility modules"""

from .snapshot import encode_snapshot
from .logging import log_proctor_event

__all__ = ["encode_snapshot", "log_proctor_event"]
