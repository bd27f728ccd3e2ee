import asyncio
import logging
import math

import pytest

from orbital_audio.audio.device import NullOutputDevice
from orbital_audio.body import BodyDescriptor
from orbital_audio.catalog import SOLAR_SYSTEM, load_bodies
from orbital_audio.config import EngineConfig, configure_logging, debug_enabled
from orbital_audio.engine import SonificationEngine, serve
from orbital_audio.errors import ConfigError
from orbital_audio.scheduling import ManualScheduler


def test_single_circular_body_frequency():
    body = BodyDescriptor(name="A", theoretical_distance=1.0, actual_distance=1.0, eccentricity=0.0, orbital_index=-1)
    engine = SonificationEngine(descriptors=[body], config=EngineConfig(base_frequency=220.0))
    reading = engine.reading("A")
    assert reading.mean_frequency == 550.0
    assert reading.frequency == 550.0


def test_live_mode_round_trip(three_body_engine):
    engine = three_body_engine
    engine.set_live(True)
    assert sorted(engine.reconciler.active) == ["Earth", "Mars", "Venus"]
    engine.reconcile()
    assert len(engine.reconciler.voices) == 3
    engine.set_live(False)
    assert engine.reconciler.active == []


def test_toggles_follow_through_to_voices(three_body_engine, scheduler):
    engine = three_body_engine
    engine.start()
    engine.set_live(True)
    assert engine.toggle("Earth") is False
    assert "Earth" not in engine.reconciler.active
    scheduler.advance(0.2)
    assert sorted(engine.reconciler.active) == ["Mars", "Venus"]
    engine.toggle("Earth")
    assert sorted(engine.reconciler.active) == ["Earth", "Mars", "Venus"]


def test_animation_driver_moves_bodies_and_retunes(three_body_engine, scheduler):
    engine = three_body_engine
    engine.start()
    engine.set_live(True)
    mars = engine.reconciler.voices["Mars"]
    start = engine.reading("Mars").angle
    scheduler.advance(2.0)
    assert engine.reading("Mars").angle != start
    assert mars.frequency == pytest.approx(engine.reading("Mars").frequency, rel=0.01)
    assert engine.state.orbit.elapsed == pytest.approx(2.0, abs=0.05)


def test_aphelion_override_for_every_body():
    engine = SonificationEngine()
    engine.set_position("aphelion")
    for reading in engine.readings:
        descriptor = engine.orbit_model.descriptor(reading.name)
        assert reading.angle == pytest.approx(math.pi)
        assert reading.distance == pytest.approx(reading.mean_distance * (1 + descriptor.eccentricity))


def test_perihelion_is_highest_pitch():
    engine = SonificationEngine()
    engine.set_position("average")
    average = {r.name: r.frequency for r in engine.readings}
    engine.set_position("perihelion")
    for reading in engine.readings:
        assert reading.frequency >= average[reading.name] - 1e-9
        assert average[reading.name] == pytest.approx(reading.mean_frequency)


def test_pause_releases_voices_and_freezes_orbits(three_body_engine, scheduler):
    engine = three_body_engine
    engine.start()
    engine.set_live(True)
    engine.set_paused(True)
    assert engine.reconciler.active == []
    angles = [b.angle for b in engine.state.bodies]
    scheduler.advance(0.5)
    assert engine.reconciler.active == []
    assert [b.angle for b in engine.state.bodies] == angles
    engine.set_paused(False)
    assert len(engine.reconciler.active) == 3


def test_sequence_and_live_mode_exclude_each_other(three_body_engine, scheduler):
    engine = three_body_engine
    engine.set_live(True)
    notes = engine.play_sequence(tempo=60.0, loop=False)
    assert not engine.reconciler.live
    assert engine.reconciler.active == []
    assert [n.body for n in notes] == ["Venus", "Earth", "Mars"]
    assert notes[1].frequency == engine.reading("Earth").mean_frequency

    scheduler.advance(1.5)
    assert engine.now_playing == "Earth"
    engine.set_live(True)
    assert not engine.sequence.playing
    assert engine.now_playing is None


def test_sequence_of_four_bodies_completes_in_four_seconds(scheduler):
    engine = SonificationEngine(descriptors=load_bodies(SOLAR_SYSTEM[:4]), scheduler=scheduler)
    engine.play_sequence(tempo=60.0, loop=False)
    scheduler.advance(3.95)
    assert engine.sequence.playing
    scheduler.advance(0.05)
    assert engine.sequence.finished


def test_config_changes_are_validated(three_body_engine):
    engine = three_body_engine
    with pytest.raises(ConfigError):
        engine.set_base_frequency(-1.0)
    with pytest.raises(ConfigError):
        engine.set_distance_model("bogus")
    with pytest.raises(ConfigError):
        engine.set_gain_config(minimum_gain=5.0)


def test_distance_model_and_base_frequency_retune(three_body_engine):
    engine = three_body_engine
    engine.set_live(True)
    engine.set_distance_model("actual")
    earth = engine.reading("Earth")
    assert earth.mean_frequency == pytest.approx(220.0 * 6.0)
    assert engine.reconciler.voices["Earth"].frequency == pytest.approx(earth.frequency)
    engine.set_base_frequency(110.0)
    assert engine.reading("Earth").mean_frequency == pytest.approx(110.0 * 6.0)


def test_gain_config_changes_reach_sounding_voices(three_body_engine):
    engine = three_body_engine
    engine.set_live(True)
    before = engine.reconciler.voices["Mars"].gain
    engine.set_gain_config(reference_frequency=440.0)
    after = engine.reconciler.voices["Mars"].gain
    assert after > before
    assert engine.reading("Mars").gain == pytest.approx(after)


def test_snapshot_exposes_renderer_state(three_body_engine):
    engine = three_body_engine
    engine.set_live(True)
    engine.set_volume(0.5)
    snapshot = engine.snapshot()
    assert snapshot.live
    assert snapshot.volume == 0.5
    assert snapshot.volumeDb == pytest.approx(-6.02, abs=0.01)
    assert [b.name for b in snapshot.bodies] == ["Venus", "Earth", "Mars"]
    assert all(b.sounding for b in snapshot.bodies)
    assert snapshot.bodies[1].color == "#1E90FF"


def test_shutdown_leaves_nothing_behind(three_body_engine, scheduler):
    engine = three_body_engine
    engine.start()
    engine.set_live(True)
    graph = engine.context.graph
    engine.shutdown()
    assert scheduler.pending == 0
    assert engine.reconciler.active == []
    assert graph.closed and graph.live_nodes == []
    scheduler.advance(1.0)
    assert engine.reconciler.stats.passes == 0


def test_suspended_output_recovers_on_user_action():
    device = NullOutputDevice(permitted=False)
    scheduler = ManualScheduler()
    engine = SonificationEngine(descriptors=load_bodies(SOLAR_SYSTEM[:2]), scheduler=scheduler, device=device)
    engine.start()
    engine.set_live(True)
    scheduler.advance(0.2)
    assert engine.reconciler.active == []
    device.permitted = True
    engine.set_volume(0.6)
    scheduler.advance(0.05)
    assert sorted(engine.reconciler.active) == ["Mercury", "Venus"]


def test_serve_runs_on_asyncio():
    engine = asyncio.run(
        serve(device=NullOutputDevice(), duration=0.2, enabled=["Earth", "Mars"])
    )
    assert engine.reconciler.stats.passes > 0
    assert engine.reconciler.active == []
    assert engine.state.orbit.elapsed > 0


def test_debug_env_switches_log_level(monkeypatch):
    monkeypatch.setenv("ORBITAL_AUDIO_DEBUG", "true")
    assert debug_enabled()
    configure_logging()
    assert logging.getLogger("orbital_audio").level == logging.DEBUG
    monkeypatch.setenv("ORBITAL_AUDIO_DEBUG", "false")
    configure_logging()
    assert logging.getLogger("orbital_audio").level == logging.INFO
