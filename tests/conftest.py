"""
Pytest fixtures for track_restoration tests.
"""
import logging

import numpy as np
import pytest

from track_restoration.models import MeasurementSeries, PlanLine
from track_restoration.synthetic import generate_irregularity, sine_series


@pytest.fixture
def sampling_interval():
    """Standard recording-car spacing in metres."""
    return 0.25


@pytest.fixture
def sine_record():
    """16 m sine, 4 mm amplitude, 1024 points at 0.25 m (falls exactly on bin 16)."""
    return sine_series(16.0, amplitude=4.0, length_m=256.0)


@pytest.fixture
def survey_record():
    """500 m synthetic irregularity record with a settlement dip."""
    return generate_irregularity()


@pytest.fixture
def flat_plan(sine_record):
    """Zero plan line on the sine record's distances."""
    return PlanLine.from_arrays(sine_record.distance, np.zeros(len(sine_record)))


@pytest.fixture
def metre_plan():
    """Zero plan line with one point per metre over 0-100 m."""
    return PlanLine.from_arrays(np.arange(0.0, 101.0), np.zeros(101))


@pytest.fixture
def four_metre_wave():
    """Five-point pattern with a 4 m period, 1 m spacing."""
    return MeasurementSeries.from_pairs([(0, 0), (1, 5), (2, 0), (3, -5), (4, 0)])


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo configure_logging() calls made by CLI tests."""
    yield
    logger = logging.getLogger("track_restoration")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
