"""
The audio subsystem as one replaceable unit: graph, master bus and device.
"""

from __future__ import annotations

import logging
from typing import Callable

from .device import OutputDevice
from .graph import AudioGraph
from .master import MasterBus

logger = logging.getLogger(__name__)

GraphFactory = Callable[[], AudioGraph]


class AudioContext:
    def __init__(self, device: OutputDevice, graph_factory: GraphFactory, volume: float = 0.7) -> None:
        self.device = device
        self.graph_factory = graph_factory
        self.graph = graph_factory()
        self.device.attach(self.graph)
        self.master = MasterBus(self.graph, volume)
        self.generation = 0

    def ensure_ready(self) -> bool:
        return self.device.ensure_ready()

    def rebuild(self) -> AudioGraph:
        """
        Throw away the whole graph, shared output stage included, and start
        over. The device is suspended so the next ``ensure_ready`` checks it
        again and reopens it if it has died.
        """
        old = self.graph
        self.device.suspend()
        self.master.dispose()
        old.close()
        graph = self.graph_factory()
        self.graph = graph
        self.device.attach(graph)
        self.master.rebuild(graph)
        self.generation += 1
        logger.info("audio graph rebuilt (generation %d)", self.generation)
        return graph

    def close(self) -> None:
        self.master.dispose()
        self.graph.close()
        self.device.close()
