"""
One-shot or looping playback of each enabled body's mean tone in turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..config import EngineConfig, GainConfig
from ..errors import AudioGraphError, VoiceFault
from ..scheduling import Scheduler, TimerHandle
from .context import AudioContext
from .gain import safe_gain
from .graph import GainStage
from .voices import Voice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Note:
    body: str
    frequency: float


class SequencePlayer:
    """
    Schedules one note per body, one beat long and one beat apart. Every
    note gets its own voice on a shared instrument stage, which is thrown
    away and rebuilt each time a new sequence starts.
    """

    def __init__(self, context: AudioContext, scheduler: Scheduler, config: EngineConfig = EngineConfig()) -> None:
        self.context = context
        self.scheduler = scheduler
        self.config = config
        self.gain_config: GainConfig = config.gain
        self.notes: List[Note] = []
        self.tempo = config.tempo
        self.loop = config.loop_sequence
        self.playing = False
        self.finished = False
        self.current: Optional[str] = None
        self.iterations = 0
        self._instrument: Optional[GainStage] = None
        self._handles: List[TimerHandle] = []
        self._voices: List[Voice] = []

    @property
    def beat(self) -> float:
        return 60.0 / self.tempo

    @property
    def duration(self) -> float:
        return self.beat * len(self.notes)

    def start(self, notes: Sequence[Note], tempo: Optional[float] = None, loop: Optional[bool] = None) -> None:
        self.stop()
        if tempo is not None:
            if tempo <= 0:
                raise ValueError("tempo must be positive")
            self.tempo = float(tempo)
        if loop is not None:
            self.loop = bool(loop)
        self.notes = list(notes)
        self.finished = False
        self.iterations = 0
        if not self.notes:
            self.finished = True
            return
        if not self.context.ensure_ready():
            logger.debug("output suspended; sequence scheduled silently")
        try:
            self._rebuild_instrument()
        except AudioGraphError as exc:
            logger.warning("sequence instrument unavailable: %s", exc)
            return
        self.playing = True
        self._schedule_pass()
        logger.info("sequence of %d notes at %.1f BPM (loop=%s)", len(self.notes), self.tempo, self.loop)

    def _rebuild_instrument(self) -> None:
        if self._instrument is not None:
            self._instrument.dispose()
        if self.context.graph.closed:
            self.context.rebuild()
        self._instrument = self.context.graph.create_gain("sequence", 1.0)
        self._instrument.connect(self.context.master.stage)

    def _schedule_pass(self) -> None:
        beat = self.beat
        for index, note in enumerate(self.notes):
            self._later(index * beat, lambda note=note: self._note_on(note))
        self._later(len(self.notes) * beat, self._complete)

    def _later(self, delay: float, callback) -> None:
        self._handles.append(self.scheduler.call_later(delay, callback))

    def _note_on(self, note: Note) -> None:
        self._prune()
        self.current = note.body
        try:
            voice = Voice(
                note.body,
                self.context,
                note.frequency,
                level=self.config.voice_level,
                attack=self.config.attack_seconds,
                release=self.config.release_seconds,
                destination=self._instrument,
            )
            voice.start(note.frequency, safe_gain(note.frequency, self.gain_config))
        except VoiceFault as exc:
            logger.warning("sequence note skipped: %s", exc)
            return
        self._voices.append(voice)
        self._later(self.beat, lambda: self._note_off(voice))

    def _note_off(self, voice: Voice) -> None:
        if voice.oscillator.disposed:
            return
        try:
            voice.release()
        except VoiceFault as exc:
            logger.warning("%s", exc)
            voice.dispose()

    def _prune(self) -> None:
        self._handles = [handle for handle in self._handles if handle.active]
        alive: List[Voice] = []
        for voice in self._voices:
            if voice.finished:
                voice.dispose()
            else:
                alive.append(voice)
        self._voices = alive

    def _complete(self) -> None:
        self.iterations += 1
        if self.loop and self.playing:
            self._prune()
            self._schedule_pass()
            return
        self._cancel_pending()
        self._release_voices()
        self.playing = False
        self.finished = True
        self.current = None
        logger.debug("sequence finished after %d pass(es)", self.iterations)

    def _cancel_pending(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles = []

    def _release_voices(self) -> None:
        for voice in self._voices:
            voice.dispose()
        self._voices = []

    def stop(self) -> None:
        """Cancel pending notes, silence every voice and drop the instrument."""
        self._cancel_pending()
        self._release_voices()
        if self._instrument is not None:
            self._instrument.dispose()
            self._instrument = None
        self.playing = False
        self.current = None
