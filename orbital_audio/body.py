"""
Static description and per-tick state of a body that belongs to a SystemState.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import DistanceModel

TWO_PI = 2.0 * math.pi


class BodyDescriptor(BaseModel):
    """
    Every per-body constant in one record. Descriptors are created once from
    the catalog at startup and never change afterwards.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    theoretical_distance: float = Field(gt=0)
    actual_distance: float = Field(gt=0)
    eccentricity: float = 0.0
    orbital_index: int = Field(strict=True)
    color: str = "#999999"
    size: float = 3.0

    @field_validator("eccentricity")
    @classmethod
    def _check_eccentricity(cls, value: float) -> float:
        if not 0.0 <= value < 1.0:
            raise ValueError("eccentricity must be in [0, 1)")
        return value

    def mean_distance(self, model: DistanceModel) -> float:
        if model == "theoretical":
            return self.theoretical_distance
        return self.actual_distance

    def period(self, model: DistanceModel) -> float:
        """Kepler's third law with the star's mass as unit: T = a^1.5."""
        return self.mean_distance(model) ** 1.5

    def radius_at(self, angle: float, model: DistanceModel) -> float:
        """Polar ellipse with the star at the focus: r = a(1 - e^2) / (1 + e cos(theta))."""
        a = self.mean_distance(model)
        e = self.eccentricity
        return a * (1.0 - e * e) / (1.0 + e * math.cos(angle))

    @property
    def perihelion_angle(self) -> float:
        return 0.0

    @property
    def aphelion_angle(self) -> float:
        return math.pi

    @property
    def average_distance_angle(self) -> float:
        """Angle where r(theta) equals the mean distance a."""
        return math.acos(-self.eccentricity)


def normalize_angle(angle: float) -> float:
    wrapped = math.fmod(angle, TWO_PI)
    if wrapped < 0.0:
        wrapped += TWO_PI
    # fmod of a value just below zero can round up to exactly 2*pi
    if wrapped >= TWO_PI:
        wrapped = 0.0
    return wrapped


@dataclass(frozen=True)
class BodyState:
    """Mutable-by-replacement part of a body: whether it sounds and where it is."""

    name: str
    enabled: bool = True
    angle: float = 0.0

    def with_angle(self, angle: float) -> "BodyState":
        return replace(self, angle=normalize_angle(angle))

    def with_enabled(self, enabled: bool) -> "BodyState":
        return replace(self, enabled=bool(enabled))
