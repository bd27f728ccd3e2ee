import math

import pytest

from orbital_audio.body import BodyDescriptor
from orbital_audio.catalog import load_bodies
from orbital_audio.frequency import FrequencyMapper
from orbital_audio.orbit import OrbitModel


def test_circular_orbit_has_no_modulation():
    body = BodyDescriptor(name="A", theoretical_distance=1.0, actual_distance=1.0, eccentricity=0.0, orbital_index=-1)
    mapper = FrequencyMapper(220.0)
    assert mapper.mean_frequency(body) == 550.0
    assert mapper.instantaneous_frequency(body, 0.0) == 550.0
    assert mapper.instantaneous_frequency(body, 2.0) == pytest.approx(550.0)


def test_actual_distance_model():
    body = BodyDescriptor(name="B", theoretical_distance=1.0, actual_distance=1.52, orbital_index=0)
    assert FrequencyMapper(100.0).mean_frequency(body, "actual") == pytest.approx(100.0 * (5 * 1.52 + 1))


def test_perihelion_sounds_higher_than_aphelion():
    mercury = load_bodies()[0]
    mapper = FrequencyMapper(220.0)
    near = mapper.instantaneous_frequency(mercury, 0.0)
    far = mapper.instantaneous_frequency(mercury, math.pi)
    mean = mapper.mean_frequency(mercury)
    assert near > mean > far
    assert near == pytest.approx(mean * math.sqrt(1 / (1 - mercury.eccentricity)))


def test_readings_follow_state():
    model = OrbitModel(load_bodies())
    state = model.initial_state(distance_model="actual")
    readings = FrequencyMapper(110.0).readings(model, state)
    assert [r.name for r in readings] == [d.name for d in model.descriptors]
    for reading in readings:
        assert reading.frequency > 0
        assert reading.mean_distance == model.descriptor(reading.name).actual_distance


def test_base_frequency_must_be_positive():
    with pytest.raises(ValueError):
        FrequencyMapper(0.0)
