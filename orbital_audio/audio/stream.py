"""
Sound-card output through a sounddevice stream. Imported only when a real
device is requested, so headless use never loads PortAudio.
"""

from __future__ import annotations

import logging
from typing import Optional

import sounddevice as sd

from ..errors import OutputSuspended
from .device import OutputDevice

logger = logging.getLogger(__name__)


class StreamOutputDevice(OutputDevice):
    def __init__(self, blocksize: int = 512, device: Optional[int] = None) -> None:
        super().__init__()
        self.blocksize = blocksize
        self.device = device
        self._stream: Optional[sd.OutputStream] = None

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.debug("stream status: %s", status)
        graph = self.graph
        if graph is None:
            outdata.fill(0)
            return
        outdata[:, 0] = graph.render(frames)

    def _alive(self) -> bool:
        return self._stream is not None and self._stream.active

    def _activate(self) -> bool:
        if self.graph is None:
            raise OutputSuspended("no audio graph attached")
        if self._alive():
            return True
        self._close_stream()
        try:
            self._stream = sd.OutputStream(
                samplerate=self.graph.sample_rate,
                blocksize=self.blocksize,
                channels=1,
                dtype="float32",
                device=self.device,
                callback=self._callback,
            )
            self._stream.start()
        except (sd.PortAudioError, OSError) as exc:
            self._close_stream()
            raise OutputSuspended(str(exc)) from exc
        return True

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except sd.PortAudioError as exc:
                logger.warning("failed to close output stream: %s", exc)

    def close(self) -> None:
        self._close_stream()
        super().close()
