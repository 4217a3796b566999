"""
Upward-priority plan-line optimization.

Lifting the track (positive movement) is preferred over lowering it, which
disturbs the ballast bed. The optimizer raises the plan line where the
movement is negative until the share of non-negative movements reaches the
target ratio, while keeping every movement within [-max_downward,
+max_upward] and every fixed-point range within its own limit.

A point's movement is only ever raised or clamped towards zero from above,
so a non-negative movement never turns negative and the upward ratio never
decreases from one iteration to the next.
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .config import OptimizerOptions
from .errors import InsufficientDataError
from .log import get_logger
from .models import MeasurementSeries, MovementConstraint, PlanLine
from .plan_line import centered_moving_average

logger = get_logger(__name__)

# Movements within this distance below zero count as upward (float residue)
UPWARD_EPSILON = 1e-9


@dataclass(frozen=True)
class OptimizationStatistics:
    upward_ratio: float
    upward_points: int
    downward_points: int
    max_upward: float
    max_downward: float
    total_upward: float
    total_downward: float
    score: float

    def to_dict(self) -> dict:
        return {
            "upward_ratio": self.upward_ratio,
            "upward_points": self.upward_points,
            "downward_points": self.downward_points,
            "max_upward": self.max_upward,
            "max_downward": self.max_downward,
            "total_upward": self.total_upward,
            "total_downward": self.total_downward,
            "score": self.score,
        }


@dataclass(frozen=True)
class ConstraintViolations:
    upward: list = field(default_factory=list)     # (distance, movement, excess)
    downward: list = field(default_factory=list)
    max_violation: float = 0.0

    @property
    def total(self) -> int:
        return len(self.upward) + len(self.downward)


@dataclass(frozen=True)
class OptimizationResult:
    optimized_plan_line: PlanLine
    iterations: int
    converged: bool
    statistics: OptimizationStatistics
    initial_statistics: OptimizationStatistics
    ratio_history: tuple = ()    # upward ratio before the first and after every iteration

    @property
    def improvement(self) -> dict:
        return {
            "upward_ratio": self.statistics.upward_ratio - self.initial_statistics.upward_ratio,
            "score": self.statistics.score - self.initial_statistics.score,
        }


def current_values_at(plan_line: PlanLine, waveform: MeasurementSeries) -> np.ndarray:
    """Waveform values interpolated at the plan line's distances.

    Raises:
        InsufficientDataError: empty inputs or no overlap between them.
    """
    if len(plan_line) == 0 or len(waveform) == 0:
        raise InsufficientDataError("optimization needs a non-empty plan line and waveform")
    pd = plan_line.distances
    wd = np.asarray(waveform.distance, dtype=np.float64)
    if pd[-1] < wd[0] or pd[0] > wd[-1]:
        raise InsufficientDataError(
            f"plan line ({pd[0]:.2f}-{pd[-1]:.2f} m) does not overlap the waveform "
            f"({wd[0]:.2f}-{wd[-1]:.2f} m)")
    values = np.nan_to_num(np.asarray(waveform.value, dtype=np.float64))
    return np.interp(pd, wd, values)


def upward_ratio(movement: np.ndarray) -> float:
    if len(movement) == 0:
        return 0.0
    return float(np.mean(movement >= -UPWARD_EPSILON))


def calculate_score(stats: dict, options: OptimizerOptions) -> float:
    """Upward ratio in percent, penalised for exceeding the movement limits."""
    score = stats["upward_ratio"] * 100.0
    if stats["max_downward"] > options.max_downward:
        score -= (stats["max_downward"] - options.max_downward) * 2.0
    if stats["max_upward"] > options.max_upward:
        score -= stats["max_upward"] - options.max_upward
    score += (stats["total_upward"] - stats["total_downward"]) * 0.01
    return float(score)


def movement_statistics(movement: np.ndarray, options: OptimizerOptions) -> OptimizationStatistics:
    up = movement >= -UPWARD_EPSILON
    down = ~up
    stats = {
        "upward_ratio": upward_ratio(movement),
        "upward_points": int(np.sum(up)),
        "downward_points": int(np.sum(down)),
        "max_upward": float(np.max(movement[up])) if np.any(up) else 0.0,
        "max_downward": float(np.max(-movement[down])) if np.any(down) else 0.0,
        "total_upward": float(np.sum(np.clip(movement, 0.0, None))),
        "total_downward": float(np.sum(np.clip(-movement, 0.0, None))),
    }
    return OptimizationStatistics(score=calculate_score(stats, options), **stats)


class UpwardPriorityOptimizer:

    def __init__(self, options: OptimizerOptions = OptimizerOptions(),
                 constraints: Optional[MovementConstraint] = None):
        self.options = options
        self.constraints = constraints

    def _clamp(self, movement: np.ndarray, distances: np.ndarray) -> np.ndarray:
        movement = np.clip(movement, -self.options.max_downward, self.options.max_upward)
        if self.constraints is not None:
            for fp in self.constraints.fixed_points:
                mask = fp.covers(distances)
                movement[mask] = np.clip(movement[mask], -fp.max_movement, fp.max_movement)
        return movement

    def _step(self, movement: np.ndarray) -> np.ndarray:
        """Lift applied to every point in one iteration (never negative)."""
        opts = self.options
        deficit = np.clip(-movement, 0.0, None)
        per_point = np.where(deficit <= opts.min_step, deficit, opts.relaxation * deficit)
        spread, _ = centered_moving_average(deficit, opts.smoothing_window)
        return np.maximum(per_point, opts.relaxation * spread)

    def optimize(self, waveform: MeasurementSeries, plan_line: PlanLine) -> OptimizationResult:
        """
        Raise the plan line until the upward ratio reaches the target.

        Stops when the target ratio is reached, when the ratio and the largest
        adjustment both stop changing, or after iteration_limit iterations.
        Non-convergence is reported through converged=False; the best line
        found is always returned.

        Raises:
            InsufficientDataError: empty inputs or no overlap between them.
        """
        opts = self.options
        distances = plan_line.distances
        current = current_values_at(plan_line, waveform)

        initial_movement = plan_line.values - current
        initial_stats = movement_statistics(initial_movement, opts)
        movement = self._clamp(initial_movement.copy(), distances)

        ratio = upward_ratio(movement)
        history = [ratio]
        best_movement, best_ratio = movement.copy(), ratio
        converged = ratio >= opts.target_upward_ratio
        iterations = 0

        while not converged and iterations < int(opts.iteration_limit):
            iterations += 1
            previous = movement
            movement = self._clamp(movement + self._step(movement), distances)
            max_adjustment = float(np.max(np.abs(movement - previous)))

            previous_ratio, ratio = ratio, upward_ratio(movement)
            history.append(ratio)
            if ratio >= best_ratio:
                best_movement, best_ratio = movement.copy(), ratio

            logger.debug("Iteration %d: upward ratio %.4f, max adjustment %.4f mm",
                         iterations, ratio, max_adjustment)

            if ratio >= opts.target_upward_ratio:
                converged = True
            elif (abs(ratio - previous_ratio) < opts.ratio_tolerance
                  and max_adjustment < opts.adjustment_tolerance):
                converged = True

        if not converged:
            logger.warning("Optimizer stopped after %d iterations without converging "
                           "(upward ratio %.3f, target %.3f)",
                           iterations, best_ratio, opts.target_upward_ratio)

        optimized = plan_line.with_values(current + best_movement)
        return OptimizationResult(
            optimized_plan_line=optimized,
            iterations=iterations,
            converged=converged,
            statistics=movement_statistics(best_movement, opts),
            initial_statistics=initial_stats,
            ratio_history=tuple(history),
        )

    def check_constraints(self, plan_line: PlanLine, waveform: MeasurementSeries) -> ConstraintViolations:
        """Positions whose movement exceeds max_upward or max_downward."""
        opts = self.options
        movement = plan_line.values - current_values_at(plan_line, waveform)
        upward = []
        downward = []
        max_violation = 0.0
        for d, m in zip(plan_line.distances, movement):
            if m > opts.max_upward:
                excess = float(m - opts.max_upward)
                upward.append((float(d), float(m), excess))
                max_violation = max(max_violation, excess)
            elif m < -opts.max_downward:
                excess = float(-m - opts.max_downward)
                downward.append((float(d), float(m), excess))
                max_violation = max(max_violation, excess)
        return ConstraintViolations(upward=upward, downward=downward, max_violation=max_violation)


def optimize(waveform: MeasurementSeries, plan_line: PlanLine,
             options: OptimizerOptions = OptimizerOptions(),
             constraints: Optional[MovementConstraint] = None) -> OptimizationResult:
    return UpwardPriorityOptimizer(options, constraints).optimize(waveform, plan_line)
