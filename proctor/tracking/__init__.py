"""Debounce and status tracking"""

from .debounce import DebounceTracker, Episode, EpisodeState
from .status import StatusAggregator

__all__ = ["DebounceTracker", "Episode", "EpisodeState", "StatusAggregator"]
