import numpy as np
import pytest

from orbital_audio.audio.gain import frequency_gain, hearing_sensitivity, safe_gain
from orbital_audio.config import GainConfig, validated
from orbital_audio.errors import ConfigError


def test_gain_is_pure():
    config = GainConfig(equal_loudness=True)
    for f in (30.0, 440.0, 3500.0, 12000.0):
        first = safe_gain(f, config)
        assert all(safe_gain(f, config) == first for _ in range(10))


def test_reference_frequency_is_unity():
    config = GainConfig(reference_frequency=110.0)
    assert safe_gain(110.0, config) == pytest.approx(1.0)


def test_gain_falls_with_frequency():
    config = GainConfig()
    gains = [safe_gain(f, config) for f in np.geomspace(60.0, 20000.0, 40)]
    assert all(b <= a for a, b in zip(gains, gains[1:]))


def test_high_frequencies_get_extra_reduction():
    config = GainConfig()
    plain = (config.reference_frequency / 8000.0) ** config.scaling_factor
    assert frequency_gain(8000.0, config) < plain


def test_gain_is_clamped():
    config = GainConfig(minimum_gain=0.1, maximum_gain=0.9)
    assert safe_gain(5.0, config) == 0.9
    assert safe_gain(19000.0, config) == 0.1
    assert config.minimum_gain <= safe_gain(0.0, config) <= config.maximum_gain


def test_hearing_sensitivity_peaks_near_speech_band():
    assert hearing_sensitivity(3500.0) == pytest.approx(1.0)
    assert hearing_sensitivity(3500.0) > hearing_sensitivity(500.0) > hearing_sensitivity(60.0)
    assert hearing_sensitivity(10.0) == 0.01
    assert hearing_sensitivity(25000.0) == 0.01
    for f in np.geomspace(20.0, 20000.0, 50):
        assert 0.01 <= hearing_sensitivity(f) <= 1.0


def test_equal_loudness_attenuates_sensitive_range():
    plain = GainConfig(minimum_gain=0.0)
    weighted = GainConfig(minimum_gain=0.0, equal_loudness=True)
    assert safe_gain(3500.0, weighted) == pytest.approx(safe_gain(3500.0, plain) * (0.3 + 0.7 * 0.3))


def test_invalid_gain_bounds():
    with pytest.raises(ConfigError):
        validated(GainConfig, minimum_gain=2.0, maximum_gain=1.0)
