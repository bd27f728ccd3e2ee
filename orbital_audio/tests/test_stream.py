import importlib
import sys
import types

import numpy as np
import pytest

from orbital_audio.audio.context import AudioContext
from orbital_audio.audio.graph import AudioGraph


class FakePortAudioError(Exception):
    pass


class FakeStream:
    opened = []
    fail_next = False

    def __init__(self, **kwargs):
        if FakeStream.fail_next:
            FakeStream.fail_next = False
            raise FakePortAudioError("device unavailable")
        self.kwargs = kwargs
        self.active = False
        self.closed = False
        FakeStream.opened.append(self)

    def start(self):
        self.active = True

    def stop(self):
        self.active = False

    def close(self):
        self.closed = True


@pytest.fixture
def stream_module(monkeypatch):
    fake = types.ModuleType("sounddevice")
    fake.OutputStream = FakeStream
    fake.PortAudioError = FakePortAudioError
    FakeStream.opened = []
    FakeStream.fail_next = False
    monkeypatch.setitem(sys.modules, "sounddevice", fake)
    monkeypatch.delitem(sys.modules, "orbital_audio.audio.stream", raising=False)
    module = importlib.import_module("orbital_audio.audio.stream")
    yield module
    sys.modules.pop("orbital_audio.audio.stream", None)


@pytest.fixture
def device(stream_module):
    device = stream_module.StreamOutputDevice(blocksize=64)
    device.attach(AudioGraph(8000))
    return device


def test_opens_one_stream_while_it_stays_active(device):
    assert device.ensure_ready()
    assert device.ensure_ready()
    assert len(FakeStream.opened) == 1
    stream = FakeStream.opened[0]
    assert stream.active
    assert stream.kwargs["samplerate"] == 8000
    assert stream.kwargs["blocksize"] == 64


def test_dead_stream_is_closed_and_reopened(device):
    assert device.ensure_ready()
    dead = FakeStream.opened[0]
    dead.active = False
    assert device.ensure_ready()
    assert len(FakeStream.opened) == 2
    assert dead.closed
    assert FakeStream.opened[1].active
    assert device.activation_attempts == 2


def test_open_failure_reports_not_ready(device):
    FakeStream.fail_next = True
    assert device.ensure_ready() is False
    assert device.ensure_ready()
    assert len(FakeStream.opened) == 1


def test_callback_renders_the_attached_graph(device):
    osc = device.graph.create_oscillator("tone", 1000.0)
    osc.connect(device.graph.create_gain("tone.gain", 0.5))
    osc.output.connect(None)
    osc.start()
    outdata = np.zeros((64, 1), dtype=np.float32)
    device._callback(outdata, 64, None, None)
    assert abs(outdata[:, 0]).max() == pytest.approx(0.5, abs=0.01)


def test_context_rebuild_reopens_a_dead_stream(stream_module):
    context = AudioContext(stream_module.StreamOutputDevice(), lambda: AudioGraph(8000))
    assert context.ensure_ready()
    FakeStream.opened[0].active = False
    context.rebuild()
    assert not context.device.ready
    assert context.ensure_ready()
    assert len(FakeStream.opened) == 2
    assert context.device.graph is context.graph
    context.close()
    assert FakeStream.opened[1].closed
