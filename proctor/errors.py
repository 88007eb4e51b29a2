"""
Proctoring Errors - Exception taxonomy for the integrity engine
"""

from typing import Any, List, Optional


class ProctoringError(Exception):
    """Base class for all proctoring engine errors"""


class ModelLoadError(ProctoringError):
    """Face detection model assets could not be loaded"""


class DetectionError(ProctoringError):
    """
    A single tick's detector call failed.

    Recovered locally by the detection loop: the tick is skipped and the
    message is surfaced through ``status.error``.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ConfigValidationError(ProctoringError, ValueError):
    """Malformed proctoring configuration, rejected before detection starts"""

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.errors = errors or []
