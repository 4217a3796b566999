"""
Operation-level entry points of the restoration engine.

RestorationEngine bundles the individual stages behind the five operations
an outer layer (HTTP service, CLI, notebook) calls, and optionally caches
the expensive ones in a ResultCache it is given.
"""

from dataclasses import dataclass
from typing import Optional

from .cache import ResultCache, fingerprint
from .config import (OptimizerOptions, PlanLineOptions, PriorityPolicy, RestorationOptions,
                     WavebandOptions)
from .log import get_logger
from .models import MeasurementSeries, MovementConstraint, PlanLine, RestoredWaveform, SeriesStatistics
from .movement import MovementSummary, calculate_movements, summarize_movements
from .optimizer import OptimizationResult, UpwardPriorityOptimizer
from .plan_line import PlanLineStatistics, PlanLineValidation, generate_initial, plan_line_statistics, validate_plan_line
from .restoration import as_series, restore, series_statistics
from .wavebands import WavebandAnalysis, decompose

logger = get_logger(__name__)


@dataclass(frozen=True)
class RestorationResult:
    restored: RestoredWaveform
    statistics: SeriesStatistics


@dataclass(frozen=True)
class InitialPlanLineResult:
    plan_line: PlanLine
    statistics: PlanLineStatistics
    validation: PlanLineValidation


@dataclass(frozen=True)
class MovementReport:
    movements: list
    summary: MovementSummary


@dataclass(frozen=True)
class CorrectionPlan:
    restoration: RestorationResult
    initial: InitialPlanLineResult
    optimization: Optional[OptimizationResult]
    movement: MovementReport

    @property
    def plan_line(self) -> PlanLine:
        if self.optimization is not None:
            return self.optimization.optimized_plan_line
        return self.initial.plan_line


class RestorationEngine:
    """Facade over restoration, waveband analysis, plan line and movement."""

    def __init__(self, cache: Optional[ResultCache] = None):
        self.cache = cache

    def _cached(self, key: str, compute):
        if self.cache is None:
            return compute()
        return self.cache.get_or_compute(key, compute)

    def restore_waveform(self, series,
                         options: RestorationOptions = RestorationOptions()) -> RestorationResult:
        series = as_series(series, options.sampling_interval)

        def compute():
            restored = restore(series, options.min_wavelength, options.max_wavelength,
                               options.sampling_interval)
            return RestorationResult(restored=restored, statistics=series_statistics(restored.value))

        key = fingerprint("restore", distance=series.distance, value=series.value, options=options)
        return self._cached(key, compute)

    def analyze_wavebands(self, series,
                          options: WavebandOptions = WavebandOptions()) -> WavebandAnalysis:
        series = as_series(series, options.sampling_interval)
        key = fingerprint("wavebands", distance=series.distance, value=series.value, options=options)
        return self._cached(key, lambda: decompose(series, options))

    def generate_initial_plan_line(self, waveform: MeasurementSeries,
                                   options: PlanLineOptions = PlanLineOptions()) -> InitialPlanLineResult:
        plan = generate_initial(waveform, options)
        return InitialPlanLineResult(
            plan_line=plan,
            statistics=plan_line_statistics(plan, waveform),
            validation=validate_plan_line(plan, waveform),
        )

    def optimize_plan_line(self, waveform: MeasurementSeries, plan_line: PlanLine,
                           options: OptimizerOptions = OptimizerOptions(),
                           constraints: Optional[MovementConstraint] = None) -> OptimizationResult:
        optimizer = UpwardPriorityOptimizer(options, constraints)
        key = fingerprint("optimize", distance=waveform.distance, value=waveform.value,
                          plan_line=plan_line, options=options, constraints=constraints)
        return self._cached(key, lambda: optimizer.optimize(waveform, plan_line))

    def calculate_movement(self, plan_line: PlanLine, waveform: MeasurementSeries,
                           constraints: MovementConstraint = MovementConstraint(),
                           policy: PriorityPolicy = PriorityPolicy()) -> MovementReport:
        movements = calculate_movements(plan_line, waveform, constraints, policy)
        return MovementReport(movements=movements,
                              summary=summarize_movements(movements, constraints))

    def compute_correction_plan(self, series,
                                restoration: RestorationOptions = RestorationOptions(),
                                plan_options: PlanLineOptions = PlanLineOptions(),
                                optimizer_options: OptimizerOptions = OptimizerOptions(),
                                constraints: MovementConstraint = MovementConstraint(),
                                policy: PriorityPolicy = PriorityPolicy()) -> CorrectionPlan:
        """Restore, derive an initial plan line, optimize it and compute movements.

        Optimization only runs when constraints.upward_priority is set.
        """
        restored = self.restore_waveform(series, restoration)
        waveform = restored.restored
        initial = self.generate_initial_plan_line(waveform, plan_options)

        optimization = None
        plan = initial.plan_line
        if constraints.upward_priority:
            optimization = self.optimize_plan_line(waveform, plan, optimizer_options, constraints)
            plan = optimization.optimized_plan_line
            logger.info("Optimized plan line: upward ratio %.1f%% -> %.1f%% in %d iterations",
                        optimization.initial_statistics.upward_ratio * 100,
                        optimization.statistics.upward_ratio * 100,
                        optimization.iterations)

        movement = self.calculate_movement(plan, waveform, constraints, policy)
        return CorrectionPlan(
            restoration=restored,
            initial=initial,
            optimization=optimization,
            movement=movement,
        )
