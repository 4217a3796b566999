"""
Tests for waveband decomposition and before/after comparison.
"""
import math

import numpy as np
import pytest

from track_restoration.config import WavebandOptions
from track_restoration.errors import InsufficientDataError, InvalidRangeError
from track_restoration.models import MeasurementSeries, WavebandDefinition
from track_restoration.synthetic import sine_series
from track_restoration.wavebands import compare_wavebands, decompose

# Edges chosen off the 256/k bin wavelengths of a 1024-point, 0.25 m record
COMPLETE_BANDS = (
    WavebandDefinition("short", 0.1, 10.1),
    WavebandDefinition("medium", 10.1, 50.3),
    WavebandDefinition("long", 50.3, math.inf),
)


class TestDecompose:

    def test_energy_is_conserved(self):
        rng = np.random.default_rng(7)
        series = MeasurementSeries.from_values(rng.normal(2.0, 3.0, 1024), 0.25)
        analysis = decompose(series, WavebandOptions(bands=COMPLETE_BANDS))

        band_energy = sum(b.energy for b in analysis.bands)
        assert band_energy == pytest.approx(analysis.total_energy, rel=1e-9)
        assert sum(analysis.contributions.values()) == pytest.approx(100.0, rel=1e-9)

    def test_energy_is_conserved_with_edges_on_bins(self):
        # 16 m and 64 m are bins 16 and 4 of a 1024-point, 0.25 m record
        bands = (
            WavebandDefinition("short", 0.0, 16.0),
            WavebandDefinition("medium", 16.0, 64.0),
            WavebandDefinition("long", 64.0, math.inf),
        )
        rng = np.random.default_rng(11)
        series = MeasurementSeries.from_values(rng.normal(1.0, 2.0, 1024), 0.25)
        analysis = decompose(series, WavebandOptions(bands=bands))

        assert sum(b.point_count for b in analysis.bands) == 512
        assert sum(b.energy for b in analysis.bands) == pytest.approx(analysis.total_energy, rel=1e-9)
        assert sum(analysis.contributions.values()) == pytest.approx(100.0, rel=1e-9)

    def test_shared_edge_bin_counted_once(self, sine_record):
        bands = (
            WavebandDefinition("short", 0.5, 16.0),
            WavebandDefinition("long", 16.0, math.inf),
        )
        analysis = decompose(sine_record, WavebandOptions(bands=bands))
        assert analysis.band("short").contribution_percent == pytest.approx(0.0, abs=1e-9)
        assert analysis.band("long").contribution_percent == pytest.approx(100.0, rel=1e-9)
        assert np.allclose(analysis.band("short").restored.value, 0.0, atol=1e-9)
        assert np.allclose(analysis.band("long").restored.value, sine_record.value, atol=1e-9)

    def test_single_sine_lands_in_its_band(self, sine_record):
        analysis = decompose(sine_record)
        medium = analysis.band("medium")
        assert medium.contribution_percent > 99.0
        assert medium.statistics.rms == pytest.approx(4.0 / math.sqrt(2), rel=1e-6)
        assert analysis.dominant_wavelength.wavelength == pytest.approx(16.0)
        assert analysis.effective_wavelength == pytest.approx(16.0, rel=1e-6)

    def test_band_power_is_rms_of_points(self, sine_record):
        analysis = decompose(sine_record)
        medium = analysis.band("medium")
        # only bin 16 carries power 2.0
        assert medium.power == pytest.approx(2.0 / math.sqrt(medium.point_count), rel=1e-6)
        assert medium.energy == pytest.approx(4.0, rel=1e-6)

    def test_restored_band_matches_input(self, sine_record):
        analysis = decompose(sine_record)
        assert np.allclose(analysis.band("medium").restored.value, sine_record.value, atol=1e-9)
        assert np.allclose(analysis.band("short").restored.value, 0.0, atol=1e-9)

    def test_zero_lower_edge(self, sine_record):
        options = WavebandOptions(bands=[{"name": "all", "min_wavelength": 0.0,
                                          "max_wavelength": 300.0}])
        analysis = decompose(sine_record, options)
        assert analysis.band("all").contribution_percent > 99.0

    def test_unknown_band(self, sine_record):
        with pytest.raises(KeyError):
            decompose(sine_record).band("nope")

    def test_too_short(self):
        with pytest.raises(InsufficientDataError):
            decompose(MeasurementSeries.from_pairs([(0, 1)]))

    def test_to_dict(self, sine_record):
        data = decompose(sine_record).to_dict()
        assert [b["name"] for b in data["wavebands"]] == ["short", "medium", "long", "very_long"]
        assert data["dominant_wavelength"] == pytest.approx(16.0)


class TestOptions:

    def test_overlapping_bands_rejected(self):
        with pytest.raises(InvalidRangeError):
            WavebandOptions(bands=(WavebandDefinition("a", 1.0, 10.0),
                                   WavebandDefinition("b", 5.0, 20.0)))

    def test_touching_bands_allowed(self):
        options = WavebandOptions(bands=(WavebandDefinition("a", 1.0, 10.0),
                                         WavebandDefinition("b", 10.0, 20.0)))
        assert len(options.bands) == 2

    def test_invalid_band_definition(self):
        with pytest.raises(InvalidRangeError):
            WavebandDefinition("bad", 10.0, 5.0)


class TestCompare:

    def test_reduction(self):
        before = sine_series(16.0, amplitude=4.0)
        after = sine_series(16.0, amplitude=1.0)
        report = compare_wavebands(before, after)

        medium = next(i for i in report.improvements if i.name == "medium")
        assert medium.reduction_percent == pytest.approx(75.0, rel=1e-6)
        assert not medium.needs_correction
        assert report.overall_reduction == pytest.approx(93.75, rel=1e-6)

    def test_insufficient_reduction_is_flagged(self):
        before = sine_series(16.0, amplitude=4.0)
        after = sine_series(16.0, amplitude=3.6)
        report = compare_wavebands(before, after)

        medium = next(i for i in report.improvements if i.name == "medium")
        assert medium.reduction_percent == pytest.approx(10.0, rel=1e-6)
        assert medium.needs_correction
        assert "medium" in report.bands_needing_correction
        assert any("medium" in r for r in report.recommendations)

    def test_threshold_is_configurable(self):
        before = sine_series(16.0, amplitude=4.0)
        after = sine_series(16.0, amplitude=3.6)
        report = compare_wavebands(before, after, WavebandOptions(improvement_threshold=5.0))
        medium = next(i for i in report.improvements if i.name == "medium")
        assert not medium.needs_correction
