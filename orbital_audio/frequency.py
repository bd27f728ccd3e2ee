"""
Maps orbital distance to acoustic frequency.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

from .body import BodyDescriptor
from .config import DistanceModel
from .orbit import OrbitModel, SystemState


@dataclass(frozen=True)
class BodyReading:
    """Numeric per-body state handed to a renderer each tick."""

    name: str
    enabled: bool
    angle: float
    distance: float
    mean_distance: float
    mean_frequency: float
    frequency: float
    gain: float = 0.0


class FrequencyMapper:
    """
    Theoretical model: base * (1 + 2^n * 3) with n the body's orbital index.
    Actual model: base * (5 * distance + 1).

    The instantaneous frequency bends the mean by sqrt(a / r), so a body
    sounds higher near perihelion where it also moves fastest.
    """

    def __init__(self, base_frequency: float = 220.0) -> None:
        self.base_frequency = base_frequency

    @property
    def base_frequency(self) -> float:
        return self._base_frequency

    @base_frequency.setter
    def base_frequency(self, value: float) -> None:
        if value <= 0:
            raise ValueError("base frequency must be positive")
        self._base_frequency = float(value)

    def mean_frequency(self, descriptor: BodyDescriptor, model: DistanceModel = "theoretical") -> float:
        if model == "theoretical":
            return self.base_frequency * (1.0 + 2.0 ** descriptor.orbital_index * 3.0)
        return self.base_frequency * (5.0 * descriptor.actual_distance + 1.0)

    @staticmethod
    def modulate(mean_frequency: float, distance: float, mean_distance: float) -> float:
        if distance <= 0 or mean_distance <= 0:
            raise ValueError("distances must be positive")
        return mean_frequency * math.sqrt(mean_distance / distance)

    def instantaneous_frequency(self, descriptor: BodyDescriptor, angle: float, model: DistanceModel = "theoretical") -> float:
        return self.modulate(
            self.mean_frequency(descriptor, model),
            descriptor.radius_at(angle, model),
            descriptor.mean_distance(model),
        )

    def readings(self, orbit_model: OrbitModel, state: SystemState) -> List[BodyReading]:
        """Recompute every body's frequency for ``state``. Gains are filled in later."""
        model = state.orbit.distance_model
        distances = orbit_model.distances(state)
        readings: List[BodyReading] = []
        for body, distance in zip(state.bodies, distances):
            descriptor = orbit_model.descriptor(body.name)
            mean_distance = descriptor.mean_distance(model)
            mean_frequency = self.mean_frequency(descriptor, model)
            readings.append(
                BodyReading(
                    name=body.name,
                    enabled=body.enabled,
                    angle=body.angle,
                    distance=float(distance),
                    mean_distance=mean_distance,
                    mean_frequency=mean_frequency,
                    frequency=self.modulate(mean_frequency, float(distance), mean_distance),
                )
            )
        return readings
