"""
Tests for shared data structures and option validation.
"""
import math

import numpy as np
import pytest

from track_restoration.config import (EditorConstraints, PlanLineOptions, PriorityPolicy,
                                      RestorationOptions, WavebandOptions)
from track_restoration.errors import InvalidRangeError, RestorationError
from track_restoration.models import (FixedPoint, MeasurementSeries, MovementConstraint, PlanLine,
                                      WavebandDefinition)


class TestMeasurementSeries:

    def test_from_values(self):
        series = MeasurementSeries.from_values([1.0, 2.0, 3.0], 0.5, start=10.0)
        assert list(series.distance) == [10.0, 10.5, 11.0]
        assert series.sampling_interval == pytest.approx(0.5)
        assert series.pairs() == [(10.0, 1.0), (10.5, 2.0), (11.0, 3.0)]

    def test_arrays_are_read_only(self):
        series = MeasurementSeries.from_values([1.0, 2.0])
        with pytest.raises(ValueError):
            series.value[0] = 5.0

    def test_input_is_copied(self):
        values = np.array([1.0, 2.0])
        series = MeasurementSeries.from_values(values)
        values[0] = 9.0
        assert series.value[0] == 1.0

    def test_distances_must_increase(self):
        with pytest.raises(InvalidRangeError):
            MeasurementSeries.from_pairs([(0, 1), (0, 2)])

    def test_length_mismatch(self):
        with pytest.raises(InvalidRangeError):
            MeasurementSeries(np.arange(3.0), np.arange(2.0))

    def test_single_point_has_no_interval(self):
        assert MeasurementSeries.from_pairs([(0, 1)]).sampling_interval is None


class TestPlanLine:

    def test_distances_must_increase(self):
        with pytest.raises(InvalidRangeError):
            PlanLine.from_pairs([(1, 0), (0, 0)])

    def test_with_values_keeps_ids(self):
        plan = PlanLine.from_pairs([(0, 0), (1, 0)])
        edited = plan.with_values([1.0, 2.0])
        assert edited.ids == plan.ids
        assert list(edited.values) == [1.0, 2.0]
        assert plan.values[0] == 0.0

    def test_with_values_length(self):
        with pytest.raises(InvalidRangeError):
            PlanLine.from_pairs([(0, 0)]).with_values([1.0, 2.0])

    def test_ids_are_unique(self):
        plan = PlanLine.from_pairs([(0, 0), (1, 0), (2, 0)])
        assert len(set(plan.ids)) == 3


class TestOptions:

    def test_presets(self):
        options = RestorationOptions.for_data_type("level")
        assert (options.min_wavelength, options.max_wavelength) == (3.5, 40.0)
        with pytest.raises(InvalidRangeError):
            RestorationOptions.for_data_type("gauge")

    def test_from_dict_rejects_unknown_keys(self):
        assert PlanLineOptions.from_dict({"window_size": 100}).window_size == 100
        with pytest.raises(InvalidRangeError):
            PlanLineOptions.from_dict({"window": 100})

    def test_to_dict(self):
        data = WavebandOptions().to_dict()
        assert data["bands"][0] == {"name": "short", "min_wavelength": 3.0, "max_wavelength": 10.0}
        assert WavebandOptions.from_dict(data).bands == WavebandOptions().bands

    def test_invalid_restoration_options(self):
        with pytest.raises(InvalidRangeError):
            RestorationOptions(min_wavelength=10.0, max_wavelength=5.0)
        with pytest.raises(InvalidRangeError):
            RestorationOptions(sampling_interval=0.0)

    def test_editor_constraints(self):
        with pytest.raises(InvalidRangeError):
            EditorConstraints(min_curve_radius=-1.0)

    def test_priority_policy(self):
        policy = PriorityPolicy()
        assert policy.classify(-25.0) == "high"
        assert policy.classify(10.0) == "medium"
        assert policy.classify(9.99) == "low"
        with pytest.raises(InvalidRangeError):
            PriorityPolicy(high=5.0, medium=10.0)

    def test_errors_are_value_errors(self):
        assert issubclass(RestorationError, ValueError)
        with pytest.raises(ValueError):
            FixedPoint(10.0, 5.0, 1.0)

    def test_open_waveband(self):
        band = WavebandDefinition("open", 50.0, math.inf)
        assert list(band.contains([np.inf, 60.0, 10.0])) == [True, True, False]
        closed = WavebandDefinition("closed", 50.0, 100.0)
        assert list(closed.contains([np.inf, 60.0])) == [False, True]

    def test_fixed_point_limits(self):
        constraints = MovementConstraint(fixed_points=((1.0, 2.0, 3.0),), maximum_limit=40.0)
        limits, fixed = constraints.limits_for([0.0, 1.5, 3.0])
        assert list(limits) == [40.0, 3.0, 40.0]
        assert list(fixed) == [False, True, False]
