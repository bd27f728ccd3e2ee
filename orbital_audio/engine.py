"""
The synchronization engine: orbit -> frequency -> gain -> voices -> master.

Control events come in through the ``set_*`` methods; the renderer reads
``readings`` and ``snapshot()``. Two periodic drivers share the engine's
state on one thread: the animation driver advances the orbits and retunes
sounding voices, and the reconciliation driver owns every start, stop and
rebuild decision.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel

from .audio.context import AudioContext
from .audio.device import NullOutputDevice, OutputDevice
from .audio.gain import safe_gain
from .audio.graph import AudioGraph
from .audio.sequence import Note, SequencePlayer
from .audio.voices import PassReport, VoiceReconciler
from .body import BodyDescriptor
from .catalog import load_bodies
from .config import DistanceModel, EngineConfig, GainConfig, configure_logging, updated
from .frequency import BodyReading, FrequencyMapper
from .orbit import OrbitModel, SystemState, validate_override
from .scheduling import AsyncioScheduler, ManualScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

SPEED_REFERENCE_FREQUENCY = 220.0


class BodyReadout(BaseModel):
    name: str
    enabled: bool
    sounding: bool
    angle: float
    distance: float
    meanDistance: float
    meanFrequency: float
    frequency: float
    gain: float
    color: str
    size: float


class EngineSnapshot(BaseModel):
    version: int
    elapsed: float
    paused: bool
    live: bool
    distanceModel: DistanceModel
    baseFrequency: float
    volume: float
    volumeDb: float
    sequencePlaying: bool
    nowPlaying: Optional[str] = None
    lastFault: Optional[str] = None
    bodies: List[BodyReadout]


class SonificationEngine:
    def __init__(
        self,
        descriptors: Optional[Sequence[BodyDescriptor]] = None,
        config: Optional[EngineConfig] = None,
        scheduler: Optional[Scheduler] = None,
        device: Optional[OutputDevice] = None,
        graph_factory=None,
    ) -> None:
        self.config = config or EngineConfig()
        self.descriptors: List[BodyDescriptor] = list(descriptors) if descriptors is not None else load_bodies()
        self.scheduler = scheduler or ManualScheduler()
        self.orbit_model = OrbitModel(self.descriptors, self.config.time_scale)
        self.mapper = FrequencyMapper(self.config.base_frequency)
        self.state: SystemState = self.orbit_model.initial_state(
            distance_model=self.config.distance_model,
            speed=self.config.speed,
        )
        if graph_factory is None:
            sample_rate = self.config.sample_rate
            clock = self.scheduler.now

            def graph_factory() -> AudioGraph:
                return AudioGraph(sample_rate, clock=clock)

        self.context = AudioContext(device or NullOutputDevice(), graph_factory, self.config.volume)
        self.reconciler = VoiceReconciler(self.context, self.config)
        self.sequence = SequencePlayer(self.context, self.scheduler, self.config)
        self.readings: List[BodyReading] = []
        self._drivers: List[TimerHandle] = []
        self._last_tick: Optional[float] = None
        self._refresh()

    # -- drivers ---------------------------------------------------------

    @property
    def running(self) -> bool:
        return bool(self._drivers)

    def start(self) -> None:
        if self._drivers:
            return
        self._last_tick = self.scheduler.now()
        self._drivers = [
            self.scheduler.call_every(self.config.animation_interval, self.tick),
            self.scheduler.call_every(self.config.reconcile_interval, self.reconcile),
        ]
        logger.info("engine started with %d bodies", len(self.descriptors))

    def tick(self, dt: Optional[float] = None) -> None:
        """Animation step: advance the orbits and retune whatever is sounding."""
        now = self.scheduler.now()
        if dt is None:
            dt = now - self._last_tick if self._last_tick is not None else 0.0
        self._last_tick = now
        speed_factor = 1.0
        if self.config.link_speed_to_base_frequency:
            speed_factor = self.mapper.base_frequency / SPEED_REFERENCE_FREQUENCY
        self.state = self.orbit_model.advance(self.state, dt, speed_factor)
        self._refresh()

    def reconcile(self) -> PassReport:
        return self.reconciler.reconcile(self.desired())

    def desired(self) -> List[str]:
        """Bodies that should be sounding right now."""
        if not self.reconciler.live or self.state.orbit.paused:
            return []
        return self.state.enabled_names()

    def _refresh(self) -> None:
        gain_config = self.reconciler.gain_config
        self.readings = [
            replace(reading, gain=safe_gain(reading.frequency, gain_config))
            for reading in self.mapper.readings(self.orbit_model, self.state)
        ]
        self.reconciler.retune({reading.name: reading.frequency for reading in self.readings})

    # -- controls ----------------------------------------------------------

    def ensure_output_ready(self) -> bool:
        return self.context.ensure_ready()

    def set_enabled(self, name: str, enabled: bool) -> None:
        self.state = self.state.with_enabled(name, enabled)
        self.ensure_output_ready()
        self._refresh()
        if self.reconciler.live:
            self.reconcile()

    def toggle(self, name: str) -> bool:
        enabled = not self.state.body(name).enabled
        self.set_enabled(name, enabled)
        return enabled

    def set_paused(self, paused: bool) -> None:
        self.state = self.state.with_orbit(paused=bool(paused))
        if paused:
            self.reconciler.stop_all()
            self.sequence.stop()
        elif self.reconciler.live:
            self.ensure_output_ready()
            self.reconcile()

    def set_position(self, override: Optional[str]) -> None:
        """One-shot jump to perihelion, aphelion or the mean-distance point."""
        override = validate_override(override)
        if override is None:
            return
        self.state = self.orbit_model.apply_override(self.state.with_orbit(override=override))
        self.ensure_output_ready()
        self._refresh()

    def set_speed(self, speed: float) -> None:
        self.config = updated(self.config, speed=speed)
        self.state = self.state.with_orbit(speed=self.config.speed)

    def set_base_frequency(self, frequency: float) -> None:
        self.config = updated(self.config, base_frequency=frequency)
        self.mapper.base_frequency = self.config.base_frequency
        self._refresh()

    def set_distance_model(self, model: DistanceModel) -> None:
        self.config = updated(self.config, distance_model=model)
        self.state = self.state.with_orbit(distance_model=self.config.distance_model)
        self._refresh()

    def set_volume(self, volume: float) -> float:
        self.ensure_output_ready()
        return self.context.master.set_volume(volume)

    def set_gain_config(self, **changes) -> GainConfig:
        gain_config = updated(self.reconciler.gain_config, **changes)
        self.config = updated(self.config, gain=gain_config)
        self.reconciler.set_gain_config(gain_config)
        self.sequence.gain_config = gain_config
        self._refresh()
        return gain_config

    def set_live(self, live: bool) -> None:
        """Live mode and sequence mode exclude each other."""
        self.ensure_output_ready()
        if live:
            self.sequence.stop()
            self._refresh()
            self.reconciler.set_live(True, [] if self.state.orbit.paused else self.state.enabled_names())
        else:
            self.reconciler.set_live(False, ())

    def play_sequence(self, tempo: Optional[float] = None, loop: Optional[bool] = None) -> List[Note]:
        if self.reconciler.live:
            self.set_live(False)
        if tempo is not None:
            self.config = updated(self.config, tempo=tempo)
        if loop is not None:
            self.config = updated(self.config, loop_sequence=loop)
        notes = [
            Note(reading.name, reading.mean_frequency)
            for reading in self.readings
            if reading.enabled
        ]
        self.sequence.start(notes, self.config.tempo, self.config.loop_sequence)
        return notes

    def stop_sequence(self) -> None:
        self.sequence.stop()

    # -- readouts --------------------------------------------------------

    def reading(self, name: str) -> BodyReading:
        for reading in self.readings:
            if reading.name == name:
                return reading
        raise KeyError(name)

    @property
    def now_playing(self) -> Optional[str]:
        return self.sequence.current

    def snapshot(self) -> EngineSnapshot:
        by_name = {d.name: d for d in self.descriptors}
        sounding = set(self.reconciler.active)
        bodies = [
            BodyReadout(
                name=r.name,
                enabled=r.enabled,
                sounding=r.name in sounding,
                angle=r.angle,
                distance=r.distance,
                meanDistance=r.mean_distance,
                meanFrequency=r.mean_frequency,
                frequency=r.frequency,
                gain=r.gain,
                color=by_name[r.name].color,
                size=by_name[r.name].size,
            )
            for r in self.readings
        ]
        master = self.context.master
        return EngineSnapshot(
            version=self.state.version,
            elapsed=self.state.orbit.elapsed,
            paused=self.state.orbit.paused,
            live=self.reconciler.live,
            distanceModel=self.state.orbit.distance_model,
            baseFrequency=self.mapper.base_frequency,
            volume=master.volume,
            volumeDb=master.decibels,
            sequencePlaying=self.sequence.playing,
            nowPlaying=self.sequence.current,
            lastFault=None if self.reconciler.last_fault is None else str(self.reconciler.last_fault),
            bodies=bodies,
        )

    def shutdown(self) -> None:
        """Silence everything first, then cancel the drivers and close the device."""
        self.reconciler.shutdown()
        self.sequence.stop()
        for handle in self._drivers:
            handle.cancel()
        self._drivers = []
        self.scheduler.cancel_all()
        self.context.close()
        logger.info("engine shut down")


def open_sound_device(blocksize: int = 512) -> OutputDevice:
    """A device that plays through the default sound card."""
    from .audio.stream import StreamOutputDevice

    return StreamOutputDevice(blocksize=blocksize)


async def serve(
    config: Optional[EngineConfig] = None,
    device: Optional[OutputDevice] = None,
    duration: Optional[float] = None,
    live: bool = True,
    enabled: Optional[Iterable[str]] = None,
) -> SonificationEngine:
    """
    Run an engine on the current event loop for ``duration`` seconds (or
    until cancelled) and shut it down cleanly afterwards.
    """
    configure_logging()
    engine = SonificationEngine(config=config, scheduler=AsyncioScheduler(), device=device)
    if enabled is not None:
        wanted = set(enabled)
        for body in engine.state.bodies:
            if body.name not in wanted:
                engine.set_enabled(body.name, False)
    engine.start()
    if live:
        engine.set_live(True)
    try:
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)
    finally:
        engine.shutdown()
    return engine
