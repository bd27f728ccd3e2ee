"""
Configuration models for gain safety and the engine drivers.

Both models are pydantic so values coming from a control surface are
validated once, at the boundary, instead of at every call site.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigError

DEBUG_ENV = "ORBITAL_AUDIO_DEBUG"

DistanceModel = Literal["theoretical", "actual"]


class GainConfig(BaseModel):
    """Frequency-dependent gain safety settings."""

    model_config = ConfigDict(frozen=True)

    reference_frequency: float = Field(55.0, gt=0)  # A1 is unity gain
    scaling_factor: float = Field(0.4, ge=0)
    minimum_gain: float = Field(0.05, ge=0)
    maximum_gain: float = Field(1.2, gt=0)
    high_frequency_cutoff: float = Field(2000.0, gt=0)
    high_frequency_scaling_factor: float = Field(0.6, ge=0)
    equal_loudness: bool = False

    @model_validator(mode="after")
    def _check_gain_bounds(self) -> "GainConfig":
        if self.minimum_gain > self.maximum_gain:
            raise ValueError("minimum_gain must not exceed maximum_gain")
        return self


class EngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_frequency: float = Field(220.0, gt=0)
    distance_model: DistanceModel = "theoretical"
    speed: float = Field(1.0, ge=0)
    time_scale: float = Field(10.0, gt=0)  # seconds per period unit at speed 1
    link_speed_to_base_frequency: bool = False

    animation_interval: float = Field(1.0 / 60.0, gt=0)
    reconcile_interval: float = Field(0.05, gt=0)

    attack_seconds: float = Field(0.02, ge=0)
    release_seconds: float = Field(0.03, ge=0)
    ramp_seconds: float = Field(0.05, ge=0)
    min_relative_frequency_change: float = Field(0.001, ge=0)
    min_gain_change: float = Field(0.005, ge=0)
    voice_level: float = Field(0.2, ge=0, le=1)  # per-voice headroom before the master bus

    mismatch_threshold: int = Field(2, ge=1)
    full_rebuild_threshold: int = Field(3, ge=1)

    tempo: float = Field(80.0, gt=0)
    loop_sequence: bool = False
    volume: float = Field(0.7, ge=0, le=1)
    sample_rate: int = Field(44_100, gt=0)

    gain: GainConfig = GainConfig()


def validated(model: type[BaseModel], **values: Any) -> Any:
    """Build ``model`` from ``values``, converting validation failures to ConfigError."""
    try:
        return model(**values)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def updated(instance: BaseModel, **changes: Any) -> Any:
    """Return a re-validated copy of ``instance`` with ``changes`` applied."""
    return validated(type(instance), **{**instance.model_dump(), **changes})


def debug_enabled() -> bool:
    return os.getenv(DEBUG_ENV, "false").lower() == "true"


def configure_logging(level: int | None = None) -> None:
    """Attach a stream handler to the package logger once."""
    logger = logging.getLogger("orbital_audio")
    if level is None:
        level = logging.DEBUG if debug_enabled() else logging.INFO
    logger.setLevel(level)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logger.addHandler(handler)
