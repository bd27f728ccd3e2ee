"""
Exception types shared across the orbital audio package.
"""

from __future__ import annotations


class OrbitalAudioError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(OrbitalAudioError):
    """Invalid body table or engine configuration. Only fatal at startup."""


class OutputSuspended(OrbitalAudioError):
    """The output device is not (yet) permitted to produce sound."""


class AudioGraphError(OrbitalAudioError):
    """An operation touched a node that is disposed or otherwise unusable."""


class VoiceFault(OrbitalAudioError):
    """A single voice failed to start, stop or update."""

    def __init__(self, body: str, reason: str) -> None:
        super().__init__(f"voice for {body!r} faulted: {reason}")
        self.body = body
        self.reason = reason


class SystemFault(OrbitalAudioError):
    """Repeated voice faults or a persistent set mismatch."""
