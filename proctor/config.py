"""
Proctoring Configuration

Two layers:
- ProctorSettings: environment-driven defaults (PROCTOR_* variables or .env)
- ProctoringConfig: the fully resolved, immutable per-session configuration

resolve_config() applies the defaults once so every field is populated
before the detection loop ever reads it.
"""

import logging
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigValidationError

logger = logging.getLogger(__name__)


class ProctorSettings(BaseSettings):
    """Environment defaults for proctoring sessions."""

    # Detection cadence
    DETECTION_INTERVAL: float = 500.0  # ms between ticks
    CONSECUTIVE_FRAME_THRESHOLD: int = 3

    # Head pose limits (degrees)
    HEAD_POSE_YAW: float = 30.0
    HEAD_POSE_PITCH: float = 25.0
    HEAD_POSE_ROLL: float = 20.0

    # Gaze offset limit (0..1)
    GAZE_THRESHOLD: float = 0.3

    # Snapshots
    CAPTURE_SNAPSHOTS: bool = True
    SNAPSHOT_QUALITY: float = 0.7

    # Timeouts
    DETECTION_TIMEOUT: Optional[float] = None  # ms, None = detection interval
    TIMEOUT_ERROR_THRESHOLD: int = 3

    # Model assets
    MODELS_DIR: Optional[str] = None
    DETECTION_SCORE_THRESHOLD: float = 0.5

    model_config = SettingsConfigDict(
        env_prefix="PROCTOR_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    def config_defaults(self) -> Dict[str, Any]:
        """Translate settings into ProctoringConfig field values"""
        return {
            "detection_interval": self.DETECTION_INTERVAL,
            "consecutive_frame_threshold": self.CONSECUTIVE_FRAME_THRESHOLD,
            "head_pose_thresholds": {
                "yaw": self.HEAD_POSE_YAW,
                "pitch": self.HEAD_POSE_PITCH,
                "roll": self.HEAD_POSE_ROLL,
            },
            "gaze_threshold": self.GAZE_THRESHOLD,
            "capture_snapshots": self.CAPTURE_SNAPSHOTS,
            "snapshot_quality": self.SNAPSHOT_QUALITY,
            "detection_timeout": self.DETECTION_TIMEOUT,
            "timeout_error_threshold": self.TIMEOUT_ERROR_THRESHOLD,
        }


@lru_cache(maxsize=1)
def get_settings() -> ProctorSettings:
    return ProctorSettings()


class HeadPoseThresholds(BaseModel):
    """Per-axis degree limits for head_pose"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    yaw: float = Field(30.0, gt=0, le=180)
    pitch: float = Field(25.0, gt=0, le=180)
    roll: float = Field(20.0, gt=0, le=180)


class ProctoringConfig(BaseModel):
    """
    Fully resolved session configuration.

    Field names are snake_case; the camelCase names used by the browser
    client (detectionInterval, onViolation, ...) are accepted as aliases.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
    )

    detection_interval: float = Field(500.0, gt=0, alias="detectionInterval")
    consecutive_frame_threshold: int = Field(3, ge=1, alias="consecutiveFrameThreshold")
    head_pose_thresholds: HeadPoseThresholds = Field(
        default_factory=HeadPoseThresholds, alias="headPoseThresholds"
    )
    gaze_threshold: float = Field(0.3, gt=0, le=1, alias="gazeThreshold")
    capture_snapshots: bool = Field(True, alias="captureSnapshots")
    on_violation: Optional[Callable[..., Any]] = Field(None, alias="onViolation")
    on_status_change: Optional[Callable[..., Any]] = Field(None, alias="onStatusChange")

    detection_timeout: Optional[float] = Field(None, gt=0, alias="detectionTimeout")
    timeout_error_threshold: int = Field(3, ge=1, alias="timeoutErrorThreshold")
    snapshot_quality: float = Field(0.7, gt=0, le=1, alias="snapshotQuality")

    @property
    def interval_seconds(self) -> float:
        return self.detection_interval / 1000.0

    @property
    def timeout_seconds(self) -> float:
        """Per-tick detector budget; a tick that exceeds it is a missed tick"""
        timeout = self.detection_timeout or self.detection_interval
        return timeout / 1000.0


_ALIASES = {
    info.alias: name
    for name, info in ProctoringConfig.model_fields.items()
    if info.alias
}


def _normalize_keys(values: Dict[str, Any]) -> Dict[str, Any]:
    return {_ALIASES.get(key, key): value for key, value in values.items()}


def resolve_config(
    overrides: Optional[Dict[str, Any]] = None,
    settings: Optional[ProctorSettings] = None,
) -> ProctoringConfig:
    """
    Merge caller overrides onto the documented defaults.

    Args:
        overrides: Partial configuration (snake_case or camelCase keys).
                   A partial head_pose_thresholds dict is merged per axis.
        settings: Environment defaults (uses get_settings() if None)

    Returns:
        Immutable ProctoringConfig

    Raises:
        ConfigValidationError: if any value is malformed
    """
    settings = settings or get_settings()
    values = settings.config_defaults()

    if overrides:
        overrides = _normalize_keys(dict(overrides))
        thresholds = overrides.pop("head_pose_thresholds", None)
        if isinstance(thresholds, HeadPoseThresholds):
            thresholds = thresholds.model_dump()
        if isinstance(thresholds, dict):
            values["head_pose_thresholds"] = {**values["head_pose_thresholds"], **thresholds}
        elif thresholds is not None:
            values["head_pose_thresholds"] = thresholds
        values.update(overrides)

    try:
        config = ProctoringConfig(**values)
    except ValidationError as e:
        logger.error(f"Invalid proctoring configuration: {e.error_count()} error(s)")
        raise ConfigValidationError(
            f"Invalid proctoring configuration: {e}", errors=e.errors()
        ) from e

    logger.debug(
        f"Resolved proctoring config: interval={config.detection_interval}ms "
        f"threshold={config.consecutive_frame_threshold} "
        f"gaze={config.gaze_threshold}"
    )
    return config
