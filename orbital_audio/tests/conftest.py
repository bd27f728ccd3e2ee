import pytest

from orbital_audio.audio.context import AudioContext
from orbital_audio.audio.device import NullOutputDevice
from orbital_audio.audio.graph import AudioGraph
from orbital_audio.catalog import SOLAR_SYSTEM, load_bodies
from orbital_audio.engine import SonificationEngine
from orbital_audio.scheduling import ManualScheduler


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def context(scheduler):
    return AudioContext(NullOutputDevice(), lambda: AudioGraph(8000, clock=scheduler.now))


@pytest.fixture
def three_body_engine(scheduler):
    return SonificationEngine(descriptors=load_bodies(SOLAR_SYSTEM[1:4]), scheduler=scheduler)
