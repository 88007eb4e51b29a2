"""
Frame Sources - Pull interface for the current camera frame
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

import numpy as np


class FrameSource(ABC):
    """Supplies the most recent camera frame, or None if none is available"""

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Return the current BGR frame, or None"""


class CallableFrameSource(FrameSource):
    """Adapts a plain ``() -> frame`` callable"""

    def __init__(self, func: Callable[[], Optional[np.ndarray]]):
        self.func = func

    def read(self) -> Optional[np.ndarray]:
        return self.func()


def as_frame_source(source: Union[FrameSource, Callable[[], Optional[np.ndarray]]]) -> FrameSource:
    """Wrap callables; pass FrameSource instances through"""
    if isinstance(source, FrameSource):
        return source
    if callable(source):
        return CallableFrameSource(source)
    raise TypeError(f"Expected a FrameSource or callable, got {type(source).__name__}")
