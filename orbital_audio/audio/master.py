"""
The single shared output level after every voice and the sequence instrument.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from .graph import AudioGraph, GainStage

logger = logging.getLogger(__name__)

VOLUME_RAMP_SECONDS = 0.05


class MasterBus:
    def __init__(self, graph: AudioGraph, volume: float = 0.7, ramp_seconds: float = VOLUME_RAMP_SECONDS) -> None:
        self.ramp_seconds = ramp_seconds
        self._volume = self._clamp(volume)
        self.stage: Optional[GainStage] = None
        self.rebuild(graph)

    @staticmethod
    def _clamp(volume: float) -> float:
        return min(1.0, max(0.0, float(volume)))

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def decibels(self) -> float:
        """Display-only readout; -inf at silence."""
        if self._volume <= 0:
            return float("-inf")
        return 20.0 * math.log10(self._volume)

    def rebuild(self, graph: AudioGraph) -> GainStage:
        """Create a fresh output stage on ``graph`` at the current volume."""
        if self.stage is not None:
            self.stage.dispose()
        self.stage = graph.create_gain("master", self._volume)
        self.stage.connect(None)
        return self.stage

    def set_volume(self, volume: float) -> float:
        """
        Write the new level immediately and ramp the live stage to it. The
        write is what any rebuilt output stage starts from; the live stage is
        pinned at the level it has now and glides to the new one.
        """
        self._volume = self._clamp(volume)
        if self.stage is not None and not self.stage.disposed:
            self.stage.ramp_to(self._volume, self.ramp_seconds, start=self.stage.value)
        logger.debug("master volume %.3f (%.1f dB)", self._volume, self.decibels)
        return self._volume

    def dispose(self) -> None:
        if self.stage is not None:
            self.stage.dispose()
            self.stage = None
