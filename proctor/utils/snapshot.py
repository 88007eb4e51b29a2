"""
Snapshot Encoding - JPEG data URLs of the frame that confirmed a violation
"""

import base64
import logging
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def encode_snapshot(frame: Optional[np.ndarray], quality: float = 0.7) -> Optional[str]:
    """
    Encode a BGR frame as a base64 JPEG data URL.

    Args:
        frame: BGR image (H, W, 3) or grayscale (H, W)
        quality: JPEG quality in (0, 1]

    Returns:
        "data:image/jpeg;base64,..." or None if the frame cannot be encoded
    """
    if frame is None or not isinstance(frame, np.ndarray) or frame.size == 0:
        return None

    jpeg_quality = int(round(max(0.01, min(1.0, quality)) * 100))

    try:
        ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), jpeg_quality])
    except cv2.error as e:
        logger.warning(f"Failed to capture snapshot: {e}")
        return None

    if not ok:
        logger.warning("Failed to capture snapshot: JPEG encoding returned no data")
        return None

    encoded = base64.b64encode(buffer.tobytes()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"
