"""
Output devices. Every device exposes one idempotent ``ensure_ready`` that
answers ready / not ready instead of raising.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import OutputSuspended
from .graph import AudioGraph

logger = logging.getLogger(__name__)


class OutputDevice:
    """Pulls audio out of an AudioGraph. Subclasses decide where it goes."""

    def __init__(self) -> None:
        self.graph: Optional[AudioGraph] = None
        self.ready = False
        self.activation_attempts = 0

    def attach(self, graph: AudioGraph) -> None:
        self.graph = graph

    def _activate(self) -> bool:
        raise NotImplementedError

    def _alive(self) -> bool:
        """False once the underlying output has stopped on its own."""
        return True

    def ensure_ready(self) -> bool:
        if self.ready and self._alive():
            return True
        if self.ready:
            logger.warning("output device %s stopped; reactivating", type(self).__name__)
            self.ready = False
        self.activation_attempts += 1
        try:
            self.ready = bool(self._activate())
        except OutputSuspended as exc:
            logger.debug("output still suspended: %s", exc)
            self.ready = False
        if self.ready:
            logger.info("output device %s active", type(self).__name__)
        return self.ready

    def require_ready(self) -> None:
        if not self.ensure_ready():
            raise OutputSuspended(f"{type(self).__name__} is not permitted to play yet")

    def suspend(self) -> None:
        self.ready = False

    def close(self) -> None:
        self.ready = False
        self.graph = None


class NullOutputDevice(OutputDevice):
    """
    Headless device. ``permitted`` models a host that withholds sound until a
    user interaction; it can be flipped at any time.
    """

    def __init__(self, permitted: bool = True) -> None:
        super().__init__()
        self.permitted = permitted

    def _activate(self) -> bool:
        if not self.permitted:
            raise OutputSuspended("no user interaction yet")
        return True

    def pull(self, frames: int):
        """Render ``frames`` samples the way a real device callback would."""
        if self.graph is None or not self.ready:
            return None
        return self.graph.render(frames)
