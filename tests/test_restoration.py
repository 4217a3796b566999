"""
Tests for band-limited restoration and series statistics.
"""
import math

import numpy as np
import pytest

from track_restoration.errors import InsufficientDataError, InvalidRangeError
from track_restoration.models import MeasurementSeries
from track_restoration.restoration import improvement_rate, restore, series_statistics
from track_restoration.synthetic import sine_series


def rms(values):
    return float(np.sqrt(np.mean(np.asarray(values) ** 2)))


class TestRestore:

    def test_in_band_pattern_is_kept(self, four_metre_wave):
        restored = restore(four_metre_wave, 2.0, 6.0)
        assert rms(restored.value) > 0.5 * rms(four_metre_wave.value)
        assert restored.value[1] > 0
        assert restored.value[3] < 0

    def test_out_of_band_pattern_collapses(self, four_metre_wave):
        restored = restore(four_metre_wave, 10.0, 20.0)
        assert np.allclose(restored.value, 0.0, atol=1e-12)

    def test_idempotent_without_padding(self, survey_record):
        series = MeasurementSeries(survey_record.distance[:1024], survey_record.value[:1024])
        once = restore(series, 6.0, 100.0)
        twice = restore(once, 6.0, 100.0)
        assert np.allclose(once.value, twice.value, atol=1e-9)

    def test_idempotent_in_interior_when_padded(self, survey_record):
        # 2000 points pad to 2048; the re-truncated tail only disturbs the ends
        assert len(survey_record) == 2000
        once = restore(survey_record, 6.0, 100.0)
        twice = restore(once, 6.0, 100.0)

        margin = int(2 * 100.0 / 0.25)
        interior = slice(margin, len(survey_record) - margin)
        diff = np.abs(once.value - twice.value)
        assert np.max(diff[interior]) < 0.1 * rms(once.value)
        assert np.all(np.isfinite(diff))

    def test_open_band_keeps_everything(self, sine_record):
        noisy = sine_record.value + np.random.default_rng(3).normal(0, 0.5, len(sine_record))
        series = MeasurementSeries(sine_record.distance, noisy)
        restored = restore(series, 0.5, math.inf)
        assert np.allclose(restored.value, noisy, atol=1e-9)

    def test_exclusive_upper_edge(self, sine_record):
        # 16 m is bin 16 of the 1024-point record
        assert np.allclose(restore(sine_record, 8.0, 16.0).value, sine_record.value, atol=1e-9)
        dropped = restore(sine_record, 8.0, 16.0, include_max=False)
        assert np.allclose(dropped.value, 0.0, atol=1e-9)

    def test_exclusive_upper_edge_keeps_dc_for_open_band(self):
        series = MeasurementSeries.from_values(np.full(64, 2.0), 0.25)
        restored = restore(series, 1.0, math.inf, include_max=False)
        assert np.allclose(restored.value, 2.0, atol=1e-9)

    def test_separates_wavelengths(self):
        short = sine_series(8.0, amplitude=2.0)
        long = sine_series(64.0, amplitude=3.0)
        mixed = MeasurementSeries(short.distance, short.value + long.value)
        restored = restore(mixed, 30.0, 100.0)
        assert np.allclose(restored.value, long.value, atol=1e-9)

    def test_keeps_distances_and_band(self, sine_record):
        restored = restore(sine_record, 10.0, 20.0)
        assert np.array_equal(restored.distance, sine_record.distance)
        assert restored.min_wavelength == 10.0
        assert restored.max_wavelength == 20.0
        assert len(restored) == len(sine_record)

    def test_accepts_plain_values(self):
        values = sine_series(16.0).value
        restored = restore(list(values), 10.0, 20.0, sampling_interval=0.25)
        assert np.allclose(restored.value, values, atol=1e-9)

    def test_infers_sampling_interval(self):
        series = sine_series(16.0, length_m=512.0, sampling_interval=0.5)
        restored = restore(series, 10.0, 20.0)
        assert np.allclose(restored.value, series.value, atol=1e-9)

    def test_non_finite_samples_treated_as_zero(self, sine_record):
        values = sine_record.value.copy()
        values[100] = np.nan
        restored = restore(MeasurementSeries(sine_record.distance, values), 6.0, 100.0)
        assert np.all(np.isfinite(restored.value))

    @pytest.mark.parametrize("lower, upper", [(0.0, 10.0), (-1.0, 10.0), (10.0, 10.0), (20.0, 10.0)])
    def test_invalid_band(self, sine_record, lower, upper):
        with pytest.raises(InvalidRangeError):
            restore(sine_record, lower, upper)

    def test_too_short(self):
        with pytest.raises(InsufficientDataError):
            restore(MeasurementSeries.from_pairs([(0, 1)]), 1.0, 10.0)


class TestStatistics:

    def test_basic(self):
        stats = series_statistics([1.0, 2.0, 3.0])
        assert stats.mean == pytest.approx(2.0)
        assert stats.sigma == pytest.approx(math.sqrt(2 / 3))
        assert stats.rms == pytest.approx(math.sqrt(14 / 3))
        assert (stats.min, stats.max, stats.count) == (1.0, 3.0, 3)

    def test_ignores_non_finite(self):
        stats = series_statistics([1.0, np.nan, 3.0, np.inf])
        assert stats.count == 2
        assert stats.mean == pytest.approx(2.0)

    def test_empty(self):
        stats = series_statistics([])
        assert stats.count == 0
        assert stats.sigma == 0.0

    def test_improvement_rate(self):
        assert improvement_rate(10.0, 5.0) == pytest.approx(50.0)
        assert improvement_rate(0.0, 5.0) == 0.0
