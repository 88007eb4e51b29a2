"""
Model Loader - Loading and caching of face detection models

Each session owns its loader instance; the load flag and any in-flight
load live on the instance, never at module level. Only the immutable
model weights are cached process-wide.
"""

import os
import asyncio
import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Dict, Optional

from ..errors import ModelLoadError

logger = logging.getLogger(__name__)

# Default model directory (relative to this file's directory)
MODELS_DIR = os.path.join(os.path.dirname(__file__), "weights")

PREDICTOR_FILENAME = "shape_predictor_68_face_landmarks.dat"
PREDICTOR_URL = "http://dlib.net/files/shape_predictor_68_face_landmarks.dat.bz2"

LOAD_FAILED_MESSAGE = "Failed to load face detection models"


class ModelLoader(ABC):
    """
    Base loader: idempotent, concurrent callers share a single load.

    Subclasses implement ``_load()`` and raise ModelLoadError on failure.
    """

    def __init__(self):
        self._loaded = False
        self._loading: Optional[asyncio.Future] = None

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def load_models(self) -> bool:
        """
        Load model assets once.

        Returns:
            True if the models are available, False if loading failed
        """
        if self._loaded:
            return True

        if self._loading is None:
            self._loading = asyncio.ensure_future(self._run_load())

        return await asyncio.shield(self._loading)

    async def _run_load(self) -> bool:
        try:
            await self._load()
        except ModelLoadError as e:
            logger.error(f"{LOAD_FAILED_MESSAGE}: {e}")
            return False
        finally:
            self._loading = None

        self._loaded = True
        logger.info(f"{type(self).__name__}: face detection models loaded")
        return True

    @abstractmethod
    async def _load(self):
        """Load the assets; raise ModelLoadError on failure"""


def resolve_models_dir(models_dir: Optional[str] = None) -> str:
    """Explicit directory, then PROCTOR_MODELS_DIR, then the bundled weights/"""
    if models_dir:
        return models_dir

    from ..config import get_settings
    return get_settings().MODELS_DIR or MODELS_DIR


def find_predictor_path(models_dir: Optional[str] = None) -> Optional[str]:
    """
    Locate shape_predictor_68_face_landmarks.dat.

    Returns:
        Path to the predictor file, or None if not found
    """
    possible_paths = [
        os.path.join(resolve_models_dir(models_dir), PREDICTOR_FILENAME),
        os.path.join(MODELS_DIR, PREDICTOR_FILENAME),
        PREDICTOR_FILENAME  # Current directory
    ]

    for path in possible_paths:
        if os.path.exists(path):
            return path

    return None


@lru_cache(maxsize=4)
def get_dlib_predictor(path: str):
    """
    Get dlib shape predictor for 68-point facial landmarks.

    Model file: shape_predictor_68_face_landmarks.dat
    Download from: http://dlib.net/files/shape_predictor_68_face_landmarks.dat.bz2

    Returns:
        dlib.shape_predictor instance
    """
    import dlib

    logger.info(f"Loading dlib predictor from: {path}")
    return dlib.shape_predictor(path)


@lru_cache(maxsize=1)
def get_dlib_detector():
    """dlib HOG frontal face detector"""
    import dlib

    return dlib.get_frontal_face_detector()


class DlibModelLoader(ModelLoader):
    """
    Loads dlib's HOG face detector and 68-point shape predictor.

    The blocking load runs in the default executor.
    """

    def __init__(self, models_dir: Optional[str] = None):
        """
        Args:
            models_dir: Directory holding the predictor file.
                        If None, uses PROCTOR_MODELS_DIR or the bundled weights/.
        """
        super().__init__()
        self.models_dir = models_dir
        self.detector = None
        self.predictor = None

    async def _load(self):
        loop = asyncio.get_running_loop()
        self.detector, self.predictor = await loop.run_in_executor(None, self._load_sync)

    def _load_sync(self):
        try:
            import dlib  # noqa: F401
        except ImportError as e:
            raise ModelLoadError("dlib not installed. Run: pip install dlib") from e

        path = find_predictor_path(self.models_dir)
        if path is None:
            raise ModelLoadError(
                f"{PREDICTOR_FILENAME} not found. "
                f"Download from {PREDICTOR_URL} "
                f"and place in {resolve_models_dir(self.models_dir)}"
            )

        try:
            detector = get_dlib_detector()
            predictor = get_dlib_predictor(path)
        except RuntimeError as e:
            raise ModelLoadError(f"Could not load {path}: {e}") from e

        return detector, predictor


def check_models(models_dir: Optional[str] = None) -> Dict[str, Any]:
    """
    Check which models are available.

    Returns:
        Dict with model status
    """
    status = {
        "dlib": False,
        "dlib_predictor": False,
        "predictor_path": None
    }

    try:
        import dlib  # noqa: F401
        status["dlib"] = True
    except ImportError:
        pass

    path = find_predictor_path(models_dir)
    if path:
        status["dlib_predictor"] = True
        status["predictor_path"] = path

    return status
