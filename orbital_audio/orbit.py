"""
Orbital motion for every body in the system.

The state of the whole system lives in an immutable, versioned SystemState.
OrbitModel never edits a state in place: each tick or control event produces
a new state whose version is one higher than its predecessor.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Tuple

import numpy as np

from .body import TWO_PI, BodyDescriptor, BodyState
from .config import DistanceModel

PositionOverride = Literal["average", "aphelion", "perihelion"]
OVERRIDES: Tuple[str, ...] = ("average", "aphelion", "perihelion")


@dataclass(frozen=True)
class OrbitState:
    elapsed: float = 0.0
    paused: bool = False
    speed: float = 1.0
    distance_model: DistanceModel = "theoretical"
    override: Optional[PositionOverride] = None


@dataclass(frozen=True)
class SystemState:
    version: int
    bodies: Tuple[BodyState, ...]
    orbit: OrbitState = field(default_factory=OrbitState)

    def body(self, name: str) -> BodyState:
        for body in self.bodies:
            if body.name == name:
                return body
        raise KeyError(name)

    def enabled_names(self) -> List[str]:
        """Names of enabled bodies in table order."""
        return [body.name for body in self.bodies if body.enabled]

    def _next(self, **changes) -> "SystemState":
        return replace(self, version=self.version + 1, **changes)

    def with_enabled(self, name: str, enabled: bool) -> "SystemState":
        self.body(name)  # KeyError for unknown bodies
        bodies = tuple(
            body.with_enabled(enabled) if body.name == name else body for body in self.bodies
        )
        return self._next(bodies=bodies)

    def with_bodies(self, bodies: Iterable[BodyState]) -> "SystemState":
        return self._next(bodies=tuple(bodies))

    def with_orbit(self, **changes) -> "SystemState":
        return self._next(orbit=replace(self.orbit, **changes))


class OrbitModel:
    """
    Advances body angles and reports instantaneous distances.

    Angular velocity is 2*pi / (period * time_scale) * speed, with the period
    taken from whichever distance model is active.
    """

    def __init__(self, descriptors: Sequence[BodyDescriptor], time_scale: float = 10.0) -> None:
        if time_scale <= 0:
            raise ValueError("time_scale must be positive")
        self.descriptors: List[BodyDescriptor] = list(descriptors)
        self.time_scale = float(time_scale)
        self._by_name: Dict[str, BodyDescriptor] = {d.name: d for d in self.descriptors}
        self._eccentricities = np.array([d.eccentricity for d in self.descriptors], dtype=float)
        self._mean_distances = {
            model: np.array([d.mean_distance(model) for d in self.descriptors], dtype=float)
            for model in ("theoretical", "actual")
        }

    def descriptor(self, name: str) -> BodyDescriptor:
        return self._by_name[name]

    def initial_state(self, enabled: Optional[Iterable[str]] = None, **orbit) -> SystemState:
        enabled_set = None if enabled is None else set(enabled)
        bodies = tuple(
            BodyState(d.name, enabled=enabled_set is None or d.name in enabled_set)
            for d in self.descriptors
        )
        return SystemState(version=0, bodies=bodies, orbit=OrbitState(**orbit))

    def angular_velocities(self, model: DistanceModel, speed: float) -> np.ndarray:
        periods = self._mean_distances[model] ** 1.5
        return TWO_PI / (periods * self.time_scale) * speed

    def advance(self, state: SystemState, dt: float, speed_factor: float = 1.0) -> SystemState:
        """Move every body forward by ``dt`` seconds unless paused."""
        if state.orbit.override is not None:
            return self.apply_override(state)
        if state.orbit.paused or dt <= 0:
            return state
        omega = self.angular_velocities(state.orbit.distance_model, state.orbit.speed * speed_factor)
        angles = np.array([body.angle for body in state.bodies], dtype=float)
        angles = np.mod(angles + omega * dt, TWO_PI)
        bodies = [body.with_angle(float(angle)) for body, angle in zip(state.bodies, angles)]
        advanced = state.with_bodies(bodies)
        return replace(advanced, orbit=replace(state.orbit, elapsed=state.orbit.elapsed + dt))

    def override_angle(self, descriptor: BodyDescriptor, override: PositionOverride) -> float:
        if override == "perihelion":
            return descriptor.perihelion_angle
        if override == "aphelion":
            return descriptor.aphelion_angle
        if override == "average":
            return descriptor.average_distance_angle
        raise ValueError(f"unknown position override {override!r}")

    def apply_override(self, state: SystemState, override: Optional[PositionOverride] = None) -> SystemState:
        """Jump every body straight to the requested orbital position and clear the request."""
        override = override or state.orbit.override
        if override is None:
            return state
        bodies = [
            body.with_angle(self.override_angle(self._by_name[body.name], override))
            for body in state.bodies
        ]
        jumped = state.with_bodies(bodies)
        return replace(jumped, orbit=replace(state.orbit, override=None))

    def distances(self, state: SystemState) -> np.ndarray:
        """r(theta) for every body, in table order."""
        model = state.orbit.distance_model
        a = self._mean_distances[model]
        e = self._eccentricities
        angles = np.array([body.angle for body in state.bodies], dtype=float)
        return a * (1.0 - e * e) / (1.0 + e * np.cos(angles))

    def distance(self, state: SystemState, name: str) -> float:
        return self._by_name[name].radius_at(state.body(name).angle, state.orbit.distance_model)

    def mean_distance(self, state: SystemState, name: str) -> float:
        return self._by_name[name].mean_distance(state.orbit.distance_model)


def validate_override(value: Optional[str]) -> Optional[PositionOverride]:
    if value is None or value in OVERRIDES:
        return value  # type: ignore[return-value]
    raise ValueError(f"position override must be one of {OVERRIDES} or None")

