"""
End-to-end tests for the RestorationEngine operations.
"""
import numpy as np
import pytest

from track_restoration.cache import ResultCache
from track_restoration.config import OptimizerOptions, PlanLineOptions, RestorationOptions
from track_restoration.engine import RestorationEngine
from track_restoration.models import MeasurementSeries, MovementConstraint, PlanLine


class TestOperations:

    def test_restore_waveform(self, survey_record):
        result = RestorationEngine().restore_waveform(survey_record)
        assert len(result.restored) == len(survey_record)
        assert result.statistics.count == len(survey_record)
        assert result.statistics.sigma > 0

    def test_restore_plain_values(self):
        values = np.sin(np.arange(400) * 0.25 * 2 * np.pi / 20.0)
        result = RestorationEngine().restore_waveform(
            list(values), RestorationOptions(sampling_interval=0.25))
        assert result.restored.distance[1] == pytest.approx(0.25)

    def test_analyze_wavebands(self, sine_record):
        analysis = RestorationEngine().analyze_wavebands(sine_record)
        assert analysis.dominant_wavelength.wavelength == pytest.approx(16.0)

    def test_generate_initial_plan_line(self, sine_record):
        result = RestorationEngine().generate_initial_plan_line(
            sine_record, PlanLineOptions(window_size=64))
        assert len(result.plan_line) == len(sine_record)
        assert 0.0 <= result.statistics.upward_ratio <= 1.0
        assert isinstance(result.validation.valid, bool)

    def test_optimize_plan_line(self, sine_record, flat_plan):
        result = RestorationEngine().optimize_plan_line(sine_record, flat_plan)
        assert result.converged
        assert result.improvement["upward_ratio"] > 0

    def test_calculate_movement(self):
        report = RestorationEngine().calculate_movement(
            PlanLine.from_pairs([(0.0, 10.0)]),
            MeasurementSeries.from_pairs([(0.0, 0.0)]),
            MovementConstraint(standard_limit=5.0, maximum_limit=5.0),
        )
        assert report.movements[0].movement == 5.0
        assert report.movements[0].priority == "high"
        assert report.summary.clamped == 1


class TestCorrectionPlan:

    def test_full_pipeline(self, survey_record):
        plan = RestorationEngine().compute_correction_plan(survey_record)
        assert plan.optimization is not None
        assert plan.plan_line is plan.optimization.optimized_plan_line
        assert len(plan.movement.movements) > 0
        assert plan.optimization.statistics.upward_ratio >= plan.initial.statistics.upward_ratio
        for m in plan.movement.movements:
            assert abs(m.movement) <= m.limit + 1e-12

    def test_without_upward_priority(self, survey_record):
        plan = RestorationEngine().compute_correction_plan(
            survey_record, constraints=MovementConstraint(upward_priority=False))
        assert plan.optimization is None
        assert plan.plan_line is plan.initial.plan_line


class TestCaching:

    def test_restore_is_cached(self, survey_record):
        cache = ResultCache()
        engine = RestorationEngine(cache)
        first = engine.restore_waveform(survey_record)
        second = engine.restore_waveform(survey_record)
        assert first is second
        assert cache.stats()["hits"] == 1

    def test_different_options_miss(self, survey_record):
        cache = ResultCache()
        engine = RestorationEngine(cache)
        first = engine.restore_waveform(survey_record, RestorationOptions(6.0, 100.0))
        second = engine.restore_waveform(survey_record, RestorationOptions(3.5, 40.0))
        assert first is not second
        assert len(cache) == 2

    def test_optimize_is_cached(self, sine_record, flat_plan):
        engine = RestorationEngine(ResultCache())
        options = OptimizerOptions(target_upward_ratio=0.8)
        assert engine.optimize_plan_line(sine_record, flat_plan, options) is \
            engine.optimize_plan_line(sine_record, flat_plan, options)

    def test_engines_do_not_share_state(self, sine_record):
        a = RestorationEngine(ResultCache())
        b = RestorationEngine(ResultCache())
        a.analyze_wavebands(sine_record)
        assert len(a.cache) == 1
        assert len(b.cache) == 0

    def test_no_cache(self, sine_record):
        engine = RestorationEngine()
        assert engine.analyze_wavebands(sine_record) is not engine.analyze_wavebands(sine_record)
