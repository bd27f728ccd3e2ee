"""
Frequency-dependent gain that keeps high pitches from getting loud.

Everything here is a pure function of its arguments.
"""

from __future__ import annotations

import math

from ..config import GainConfig

DEFAULT_GAIN_CONFIG = GainConfig()

# Hearing is most sensitive around speech consonants.
PEAK_SENSITIVITY_HZ = 3500.0
SENSITIVITY_SLOPE = 0.7
SENSITIVITY_WEIGHT = 0.7
LOW_ROLLOFF_HZ = 100.0
MIN_SENSITIVITY = 0.01
AUDIBLE_RANGE = (20.0, 20000.0)


def frequency_gain(frequency: float, config: GainConfig = DEFAULT_GAIN_CONFIG) -> float:
    """
    Logarithmic falloff: lower frequencies get more gain, with an extra
    reduction above the high-frequency cutoff. Not clamped.
    """
    gain = (config.reference_frequency / frequency) ** config.scaling_factor
    if frequency > config.high_frequency_cutoff:
        gain *= (config.high_frequency_cutoff / frequency) ** config.high_frequency_scaling_factor
    return gain


def hearing_sensitivity(frequency: float) -> float:
    """
    Rough equal-loudness curve: 1.0 at the peak, falling off with distance
    on a log-frequency axis, with extra roll-off below 100 Hz.
    """
    low, high = AUDIBLE_RANGE
    if frequency < low or frequency > high:
        return MIN_SENSITIVITY
    log_distance = abs(math.log10(frequency) - math.log10(PEAK_SENSITIVITY_HZ))
    sensitivity = 1.0 - min(1.0, log_distance * SENSITIVITY_SLOPE)
    if frequency < LOW_ROLLOFF_HZ:
        sensitivity *= frequency / LOW_ROLLOFF_HZ
    return min(1.0, max(MIN_SENSITIVITY, sensitivity))


def safe_gain(frequency: float, config: GainConfig = DEFAULT_GAIN_CONFIG) -> float:
    """Output gain multiplier for ``frequency``, always within the configured bounds."""
    if frequency <= 0 or not math.isfinite(frequency):
        return min(config.maximum_gain, max(config.minimum_gain, 1.0))
    gain = frequency_gain(frequency, config)
    if config.equal_loudness:
        adjustment = 1.0 - hearing_sensitivity(frequency) * SENSITIVITY_WEIGHT
        gain *= 0.3 + 0.7 * adjustment
    return min(config.maximum_gain, max(config.minimum_gain, gain))
