"""
A small numpy synthesis graph: sine oscillators feeding gain stages that
feed a single output stage.

Node parameters are scheduled against the graph clock, so ramps progress
whether or not anything is pulling audio out of ``render``.

``render`` is called from the sound card's callback thread while the
control loop creates, retunes and disposes nodes, so every mutation and
every render holds ``AudioGraph.lock``.
"""

from __future__ import annotations

import itertools
import logging
import math
import threading
import time
from typing import Callable, Dict, List, Optional

import numpy as np

from ..errors import AudioGraphError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class AudioNode:
    def __init__(self, graph: "AudioGraph", node_id: int, label: str) -> None:
        self.graph = graph
        self.node_id = node_id
        self.label = label
        self.disposed = False

    def _check(self) -> None:
        if self.disposed:
            raise AudioGraphError(f"{self.label} (#{self.node_id}) is disposed")
        if self.graph.closed:
            raise AudioGraphError(f"{self.label} (#{self.node_id}) belongs to a closed graph")

    def dispose(self) -> None:
        with self.graph.lock:
            if self.disposed:
                return
            self.disposed = True
            self.graph._forget(self)

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else "live"
        return f"<{type(self).__name__} {self.label} #{self.node_id} {state}>"


class GainStage(AudioNode):
    """
    A gain parameter with one pending linear ramp. ``destination`` is another
    gain stage, or None when this stage feeds the graph output directly.
    """

    def __init__(self, graph: "AudioGraph", node_id: int, label: str, value: float) -> None:
        super().__init__(graph, node_id, label)
        self.destination: Optional[GainStage] = None
        self._from_time = graph.now()
        self._from_value = float(value)
        self._to_time = self._from_time
        self._to_value = float(value)

    def value_at(self, t: float) -> float:
        if t >= self._to_time or self._to_time <= self._from_time:
            return self._to_value
        if t <= self._from_time:
            return self._from_value
        fraction = (t - self._from_time) / (self._to_time - self._from_time)
        return self._from_value + (self._to_value - self._from_value) * fraction

    def curve(self, times: np.ndarray) -> np.ndarray:
        if self._to_time <= self._from_time:
            return np.full(times.shape, self._to_value)
        return np.interp(times, [self._from_time, self._to_time], [self._from_value, self._to_value])

    @property
    def value(self) -> float:
        return self.value_at(self.graph.now())

    @property
    def target(self) -> float:
        return self._to_value

    def set_value(self, value: float) -> None:
        with self.graph.lock:
            self._check()
            now = self.graph.now()
            self._from_time = self._to_time = now
            self._from_value = self._to_value = float(value)

    def ramp_to(self, value: float, duration: float, start: Optional[float] = None) -> None:
        """
        Linear ramp to ``value``, cancelling any ramp in flight. The ramp
        starts from the current value unless ``start`` pins its first value.
        """
        with self.graph.lock:
            self._check()
            if duration <= 0:
                self.set_value(value)
                return
            now = self.graph.now()
            self._from_value = self.value_at(now) if start is None else float(start)
            self._from_time = now
            self._to_time = now + duration
            self._to_value = float(value)

    def connect(self, destination: Optional["GainStage"]) -> None:
        with self.graph.lock:
            self._check()
            if destination is not None:
                destination._check()
            self.destination = destination

    def reaches_output(self) -> bool:
        stage: Optional[GainStage] = self
        seen = set()
        while stage is not None:
            if stage.disposed or stage.node_id in seen:
                return False
            seen.add(stage.node_id)
            if stage.destination is None:
                return True
            stage = stage.destination
        return False


class Oscillator(AudioNode):
    def __init__(self, graph: "AudioGraph", node_id: int, label: str, frequency: float) -> None:
        super().__init__(graph, node_id, label)
        self.frequency = float(frequency)
        self.output: Optional[GainStage] = None
        self.start_time: Optional[float] = None
        self.stop_time: Optional[float] = None
        self._phase = 0.0

    @property
    def running(self) -> bool:
        if self.disposed or self.start_time is None:
            return False
        return self.stop_time is None or self.graph.now() < self.stop_time

    def set_frequency(self, frequency: float) -> None:
        with self.graph.lock:
            self._check()
            if frequency <= 0 or not math.isfinite(frequency):
                raise AudioGraphError(f"{self.label}: invalid frequency {frequency!r}")
            self.frequency = float(frequency)

    def connect(self, output: GainStage) -> None:
        with self.graph.lock:
            self._check()
            output._check()
            self.output = output

    def start(self) -> None:
        with self.graph.lock:
            self._check()
            self.start_time = self.graph.now()
            self.stop_time = None

    def stop(self, delay: float = 0.0) -> None:
        with self.graph.lock:
            self._check()
            self.stop_time = self.graph.now() + max(0.0, delay)

    def _advance_phase(self, frames: int, sample_rate: int) -> np.ndarray:
        step = 2.0 * math.pi * self.frequency / sample_rate
        phases = self._phase + step * np.arange(frames)
        self._phase = float((self._phase + step * frames) % (2.0 * math.pi))
        return phases


class AudioGraph:
    """Owns every node; ``close`` disposes all of them at once."""

    def __init__(self, sample_rate: int = 44_100, clock: Optional[Clock] = None) -> None:
        self.sample_rate = int(sample_rate)
        self.clock: Clock = clock or time.monotonic
        self.closed = False
        self.lock = threading.RLock()
        self._ids = itertools.count(1)
        self._nodes: Dict[int, AudioNode] = {}

    def now(self) -> float:
        return self.clock()

    def _register(self, node: AudioNode) -> None:
        with self.lock:
            self._nodes[node.node_id] = node

    def _forget(self, node: AudioNode) -> None:
        with self.lock:
            self._nodes.pop(node.node_id, None)

    def _ensure_open(self) -> None:
        if self.closed:
            raise AudioGraphError("audio graph is closed")

    def create_gain(self, label: str, value: float = 1.0) -> GainStage:
        with self.lock:
            self._ensure_open()
            stage = GainStage(self, next(self._ids), label, value)
            self._register(stage)
        return stage

    def create_oscillator(self, label: str, frequency: float) -> Oscillator:
        if frequency <= 0 or not math.isfinite(frequency):
            raise AudioGraphError(f"{label}: invalid frequency {frequency!r}")
        with self.lock:
            self._ensure_open()
            osc = Oscillator(self, next(self._ids), label, frequency)
            self._register(osc)
        return osc

    @property
    def live_nodes(self) -> List[AudioNode]:
        with self.lock:
            return list(self._nodes.values())

    def oscillators(self) -> List[Oscillator]:
        with self.lock:
            return [node for node in self._nodes.values() if isinstance(node, Oscillator)]

    def render(self, frames: int) -> np.ndarray:
        """Mix every running oscillator through its gain chain into a mono float32 block."""
        out = np.zeros(frames, dtype=np.float64)
        with self.lock:
            if self.closed or frames <= 0:
                return out.astype(np.float32)
            t0 = self.now()
            times = t0 + np.arange(frames) / self.sample_rate
            for osc in self.oscillators():
                if osc.start_time is None or osc.output is None or not osc.output.reaches_output():
                    continue
                phases = osc._advance_phase(frames, self.sample_rate)
                envelope = np.ones(frames)
                stage: Optional[GainStage] = osc.output
                while stage is not None:
                    envelope *= stage.curve(times)
                    stage = stage.destination
                if osc.stop_time is not None:
                    envelope *= times < osc.stop_time
                out += np.sin(phases) * envelope
        return np.clip(out, -1.0, 1.0).astype(np.float32)

    def close(self) -> None:
        with self.lock:
            if self.closed:
                return
            count = len(self._nodes)
            for node in list(self._nodes.values()):
                node.dispose()
            self.closed = True
        logger.debug("audio graph closed, %d nodes disposed", count)
