"""
Synthetic longitudinal-level records for tests and demonstrations.

Builds a survey run with known content so that restoration and waveband
results can be checked against what was put in:

  5 m    rail-surface irregularity (short band)
  20 m   sleeper/ballast irregularity (medium band)
  50 m   formation irregularity (long band)
  120 m  embankment undulation (very long band)
  ~60%   local settlement dip (cosine bowl, 30 m wide)
  all    white measurement noise
"""

from typing import Optional

import numpy as np

from .models import DEFAULT_SAMPLING_INTERVAL, MeasurementSeries

# (wavelength m, amplitude mm, phase rad)
DEFAULT_COMPONENTS = (
    (5.0, 0.8, 0.0),
    (20.0, 2.5, 0.7),
    (50.0, 3.5, 1.9),
    (120.0, 5.0, 0.3),
)

SETTLEMENT_DEPTH_MM = 6.0
SETTLEMENT_WIDTH_M = 30.0
NOISE_MM = 0.2


def generate_irregularity(length_m: float = 500.0,
                          sampling_interval: float = DEFAULT_SAMPLING_INTERVAL,
                          components=DEFAULT_COMPONENTS,
                          settlement_at: Optional[float] = None,
                          settlement_depth: float = SETTLEMENT_DEPTH_MM,
                          noise: float = NOISE_MM,
                          seed: int = 42) -> MeasurementSeries:
    """Deterministic irregularity record (mm) over [0, length_m)."""
    rng = np.random.default_rng(seed)
    n = int(round(length_m / sampling_interval))
    distance = np.arange(n) * sampling_interval
    value = np.zeros(n)

    # --- Periodic components ---
    for wavelength, amplitude, phase in components:
        value += amplitude * np.sin(2 * np.pi * distance / wavelength + phase)

    # --- Settlement dip ---
    # Cosine bowl: zero at the edges, -depth at the centre
    if settlement_at is None:
        settlement_at = 0.6 * length_m
    if settlement_depth:
        offset = distance - settlement_at
        bowl = np.abs(offset) < SETTLEMENT_WIDTH_M / 2
        value[bowl] -= settlement_depth * 0.5 * (1 + np.cos(2 * np.pi * offset[bowl] / SETTLEMENT_WIDTH_M))

    # --- Measurement noise ---
    if noise:
        value += rng.normal(0, noise, n)

    return MeasurementSeries(distance, np.round(value, 3))


def sine_series(wavelength: float, amplitude: float = 1.0, length_m: float = 256.0,
                sampling_interval: float = DEFAULT_SAMPLING_INTERVAL) -> MeasurementSeries:
    """Pure sine record, handy for single-band checks."""
    n = int(round(length_m / sampling_interval))
    distance = np.arange(n) * sampling_interval
    return MeasurementSeries(distance, amplitude * np.sin(2 * np.pi * distance / wavelength))
