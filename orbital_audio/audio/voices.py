"""
Per-body voices and the reconciler that keeps them in step with the set of
enabled bodies.

A voice is one oscillator feeding its own gain stage, so changing one body's
level never touches another's. The reconciler is the only code that starts,
stops or rebuilds voices. It runs one pass per reconciliation tick and
escalates persistent drift in two tiers:

1. targeted rebuild: dispose and recreate the offending body's voice only;
2. full rebuild: tear down every voice and the shared output stage, build a
   fresh audio graph and restart every enabled body.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..config import EngineConfig, GainConfig
from ..errors import AudioGraphError, OrbitalAudioError, SystemFault, VoiceFault
from .context import AudioContext
from .gain import safe_gain
from .graph import GainStage, Oscillator

logger = logging.getLogger(__name__)

STOPPED = "stopped"
SOUNDING = "sounding"


class Voice:
    def __init__(
        self,
        body: str,
        context: AudioContext,
        frequency: float,
        level: float = 1.0,
        attack: float = 0.02,
        release: float = 0.03,
        destination: Optional[GainStage] = None,
    ) -> None:
        self.body = body
        self.level = level
        self.attack = attack
        self.release_time = release
        self.state = STOPPED
        self.frequency = float(frequency)
        self.gain = 0.0
        self.released_at: Optional[float] = None
        self._graph = context.graph
        try:
            self.stage: GainStage = context.graph.create_gain(f"{body}.gain", 0.0)
            self.stage.connect(destination if destination is not None else context.master.stage)
            self.oscillator: Oscillator = context.graph.create_oscillator(f"{body}.osc", frequency)
            self.oscillator.connect(self.stage)
        except AudioGraphError as exc:
            self.dispose()
            raise VoiceFault(body, str(exc)) from exc

    def start(self, frequency: float, gain: float) -> None:
        """Attack at ``frequency``, ramping up to ``gain``."""
        try:
            self.oscillator.set_frequency(frequency)
            self.oscillator.start()
            self.stage.set_value(0.0)
            self.stage.ramp_to(gain * self.level, self.attack)
        except AudioGraphError as exc:
            raise VoiceFault(self.body, str(exc)) from exc
        self.frequency = float(frequency)
        self.gain = float(gain)
        self.state = SOUNDING
        self.released_at = None

    def update(self, frequency: float, gain: float, ramp: float, min_relative: float, min_gain_change: float) -> bool:
        """Retune and re-level a sounding voice; skips changes below the thresholds."""
        changed = False
        try:
            if abs(frequency - self.frequency) > self.frequency * min_relative:
                self.oscillator.set_frequency(frequency)
                self.frequency = float(frequency)
                changed = True
            if abs(gain - self.gain) > min_gain_change:
                self.stage.ramp_to(gain * self.level, ramp)
                self.gain = float(gain)
                changed = True
        except AudioGraphError as exc:
            raise VoiceFault(self.body, str(exc)) from exc
        return changed

    def release(self) -> None:
        try:
            self.stage.ramp_to(0.0, self.release_time)
            self.oscillator.stop(self.release_time)
        except AudioGraphError as exc:
            raise VoiceFault(self.body, str(exc)) from exc
        finally:
            self.state = STOPPED
        self.released_at = self._graph.now()

    @property
    def finished(self) -> bool:
        if self.state == SOUNDING:
            return False
        if self.released_at is None:
            return True
        return self._graph.now() >= self.released_at + self.release_time

    def healthy(self) -> bool:
        """True while the voice is really producing sound into a live output stage."""
        stage = getattr(self, "stage", None)
        osc = getattr(self, "oscillator", None)
        if stage is None or osc is None or self._graph.closed:
            return False
        return osc.running and osc.output is stage and stage.reaches_output()

    def dispose(self) -> None:
        for attr in ("oscillator", "stage"):
            node = getattr(self, attr, None)
            if node is not None:
                node.dispose()
        self.state = STOPPED

    def __repr__(self) -> str:
        return f"<Voice {self.body} {self.state} {self.frequency:.2f}Hz gain={self.gain:.3f}>"


@dataclass
class ReconcilerStats:
    starts: int = 0
    stops: int = 0
    updates: int = 0
    faults: int = 0
    targeted_rebuilds: int = 0
    full_rebuilds: int = 0
    failed_rebuilds: int = 0
    passes: int = 0


@dataclass
class PassReport:
    started: List[str] = field(default_factory=list)
    stopped: List[str] = field(default_factory=list)
    mismatched: List[str] = field(default_factory=list)
    rebuilt: List[str] = field(default_factory=list)
    full_rebuild: bool = False
    suspended: bool = False

    @property
    def operations(self) -> int:
        return len(self.started) + len(self.stopped) + len(self.rebuilt) + int(self.full_rebuild)


class VoiceReconciler:
    """
    Keeps the active set equal to the enabled set while live mode is on.

    ``frequencies`` holds the latest desired frequency per body; the animation
    driver refreshes it through ``retune`` and the reconciliation driver
    reads it whenever a voice has to be (re)started.
    """

    def __init__(self, context: AudioContext, config: EngineConfig = EngineConfig()) -> None:
        self.context = context
        self.config = config
        self.gain_config: GainConfig = config.gain
        self.live = False
        self.voices: Dict[str, Voice] = {}
        self.frequencies: Dict[str, float] = {}
        self.stats = ReconcilerStats()
        self._retiring: List[Voice] = []
        self._mismatch: Dict[str, int] = {}
        self._rebuild_streak = 0
        self.last_fault: Optional[OrbitalAudioError] = None

    @property
    def active(self) -> List[str]:
        return list(self.voices)

    def gain_for(self, frequency: float) -> float:
        return safe_gain(frequency, self.gain_config)

    def current_gain(self, body: str) -> float:
        voice = self.voices.get(body)
        return voice.gain if voice is not None else 0.0

    # -- voice lifecycle -------------------------------------------------

    def _fault(self, exc: OrbitalAudioError) -> None:
        self.stats.faults += 1
        self.last_fault = exc
        logger.warning("%s", exc)

    def _new_voice(self, body: str) -> Voice:
        frequency = self.frequencies.get(body)
        if frequency is None:
            raise VoiceFault(body, "no frequency known yet")
        voice = Voice(
            body,
            self.context,
            frequency,
            level=self.config.voice_level,
            attack=self.config.attack_seconds,
            release=self.config.release_seconds,
        )
        try:
            voice.start(frequency, self.gain_for(frequency))
        except VoiceFault:
            voice.dispose()
            raise
        return voice

    def _start(self, body: str) -> Voice:
        voice = self._new_voice(body)
        self.voices[body] = voice
        self.stats.starts += 1
        logger.debug("started %s at %.2f Hz", body, voice.frequency)
        return voice

    def _stop(self, body: str, immediate: bool = False) -> None:
        voice = self.voices.pop(body, None)
        if voice is None:
            return
        self._mismatch.pop(body, None)
        self.stats.stops += 1
        try:
            voice.release()
        except VoiceFault as exc:
            self._fault(exc)
            immediate = True
        if immediate:
            voice.dispose()
        else:
            self._retiring.append(voice)
        logger.debug("stopped %s", body)

    def _collect_retired(self, force: bool = False) -> None:
        keep: List[Voice] = []
        for voice in self._retiring:
            if force or voice.finished:
                voice.dispose()
            else:
                keep.append(voice)
        self._retiring = keep

    def stop_all(self) -> None:
        """Release every voice and dispose it before returning."""
        for body in list(self.voices):
            self._stop(body, immediate=True)
        self._collect_retired(force=True)
        self._mismatch.clear()

    # -- sounding -> sounding -----------------------------------------

    def retune(self, frequencies: Mapping[str, float]) -> None:
        """Record new target frequencies and push them to sounding voices."""
        self.frequencies.update(frequencies)
        for body, voice in list(self.voices.items()):
            frequency = self.frequencies.get(body)
            if frequency is None or voice.state != SOUNDING or not voice.healthy():
                continue
            try:
                if voice.update(
                    frequency,
                    self.gain_for(frequency),
                    self.config.ramp_seconds,
                    self.config.min_relative_frequency_change,
                    self.config.min_gain_change,
                ):
                    self.stats.updates += 1
            except VoiceFault as exc:
                # left in place; the next pass sees it unhealthy and repairs it
                self._fault(exc)

    def set_gain_config(self, gain_config: GainConfig) -> None:
        self.gain_config = gain_config
        self.retune({})

    # -- reconciliation ----------------------------------------------

    def reconcile(self, enabled: Sequence[str]) -> PassReport:
        """One reconciliation pass. Never raises."""
        report = PassReport()
        self.stats.passes += 1
        self._collect_retired()
        if not self.live:
            if self.voices:
                report.stopped = list(self.voices)
                self.stop_all()
            return report

        enabled_set = set(enabled)
        for body in list(self.voices):
            if body not in enabled_set:
                self._stop(body)
                report.stopped.append(body)

        if not self.context.ensure_ready():
            report.suspended = True
            logger.debug("output suspended; deferring %d starts", len(enabled_set - set(self.voices)))
            return report

        for body in enabled:
            voice = self.voices.get(body)
            if voice is None:
                try:
                    self._start(body)
                    report.started.append(body)
                    self._mismatch.pop(body, None)
                    continue
                except VoiceFault as exc:
                    self._fault(exc)
            elif voice.healthy():
                self._mismatch.pop(body, None)
                continue
            report.mismatched.append(body)

        for body in report.mismatched:
            count = self._mismatch.get(body, 0) + 1
            if count < self.config.mismatch_threshold:
                self._mismatch[body] = count
                continue
            self._mismatch[body] = 0
            self._rebuild_streak += 1
            if self.rebuild_voice(body):
                report.rebuilt.append(body)

        if not report.mismatched:
            self._rebuild_streak = 0
        elif self._rebuild_streak >= self.config.full_rebuild_threshold:
            self._fault(SystemFault(f"{self._rebuild_streak} targeted rebuilds without a clean pass"))
            report.full_rebuild = True
            self.full_rebuild(enabled)
        return report

    def rebuild_voice(self, body: str) -> bool:
        """Tier one: replace only ``body``'s voice."""
        self.stats.targeted_rebuilds += 1
        logger.warning("rebuilding voice for %s", body)
        voice = self.voices.pop(body, None)
        if voice is not None:
            voice.dispose()
        try:
            self._start(body)
        except VoiceFault as exc:
            self._fault(exc)
            return False
        return True

    def full_rebuild(self, enabled: Iterable[str]) -> bool:
        """
        Tier two: dispose every voice and the shared output stage, build a
        new graph and restart every enabled body. On failure live mode stays
        on but silent, and the next pass tries again.
        """
        self.stats.full_rebuilds += 1
        self.stop_all()
        self._rebuild_streak = 0
        try:
            self.context.rebuild()
        except Exception as exc:
            self.stats.failed_rebuilds += 1
            self.last_fault = SystemFault(f"audio graph rebuild failed: {exc}")
            logger.exception("audio graph rebuild failed; live mode stays on but silent")
            return False
        if not self.live or not self.context.ensure_ready():
            return True
        for body in enabled:
            try:
                self._start(body)
            except VoiceFault as exc:
                self._fault(exc)
        return True

    def set_live(self, live: bool, enabled: Iterable[str]) -> None:
        """Turning live mode on always starts from a freshly built graph."""
        if live:
            self.live = True
            self.full_rebuild(enabled)
        else:
            self.live = False
            self.stop_all()
        logger.info("live mode %s", "on" if live else "off")

    def shutdown(self) -> None:
        self.live = False
        self.stop_all()
