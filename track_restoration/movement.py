"""
Per-position track movement between the restored waveform and a plan line.
"""

from dataclasses import dataclass

import numpy as np

from .config import PriorityPolicy
from .log import get_logger
from .models import (PRIORITY_HIGH, PRIORITY_LOW, PRIORITY_MEDIUM, MeasurementSeries,
                     MovementConstraint, MovementResult, PlanLine, SeriesStatistics)
from .plan_line import align
from .restoration import improvement_rate, series_statistics

logger = get_logger(__name__)


@dataclass(frozen=True)
class MovementSummary:
    total_points: int
    high_priority: int
    medium_priority: int
    low_priority: int
    standard_exceeded: int
    maximum_exceeded: int
    clamped: int
    movement: SeriesStatistics
    sigma_before: float
    sigma_after: float
    improvement_rate: float

    def to_dict(self) -> dict:
        return {
            "total_points": self.total_points,
            "priority": {
                PRIORITY_HIGH: self.high_priority,
                PRIORITY_MEDIUM: self.medium_priority,
                PRIORITY_LOW: self.low_priority,
            },
            "standard_exceeded": self.standard_exceeded,
            "maximum_exceeded": self.maximum_exceeded,
            "clamped": self.clamped,
            "movement": self.movement.to_dict(),
            "sigma_before": self.sigma_before,
            "sigma_after": self.sigma_after,
            "improvement_rate": self.improvement_rate,
        }


@dataclass(frozen=True)
class WorkSection:
    start_index: int
    end_index: int
    start_distance: float
    end_distance: float
    max_movement: float
    avg_movement: float


def calculate_movements(plan_line: PlanLine, waveform: MeasurementSeries,
                        constraints: MovementConstraint = MovementConstraint(),
                        policy: PriorityPolicy = PriorityPolicy()) -> list[MovementResult]:
    """
    Movement (plan - current) at every waveform position the plan line covers.

    Inside a fixed-point range the movement is clamped to that range's
    max_movement, elsewhere to constraints.maximum_limit. A clamped position
    still needs more correction than one pass can deliver and is always
    classified high priority; otherwise priority follows |movement|.

    Raises:
        InsufficientDataError: empty plan line or no overlap with the waveform.
    """
    mask, plan_values = align(plan_line, waveform)
    distances = np.asarray(waveform.distance, dtype=np.float64)[mask]
    current = np.nan_to_num(np.asarray(waveform.value, dtype=np.float64)[mask])

    requested = plan_values - current
    limits, fixed = constraints.limits_for(distances)
    movement = np.clip(requested, -limits, limits)
    clamped = np.abs(requested) > limits

    if np.any(clamped):
        logger.debug("Clamped movement at %d of %d positions", int(np.sum(clamped)), len(movement))

    results = []
    for i in range(len(movement)):
        m = float(movement[i])
        priority = PRIORITY_HIGH if clamped[i] else policy.classify(m)
        results.append(MovementResult(
            distance=float(distances[i]),
            current_value=float(current[i]),
            target_value=float(current[i] + m),
            movement=m,
            priority=priority,
            limit=float(limits[i]),
            clamped=bool(clamped[i]),
            fixed=bool(fixed[i]),
        ))
    return results


def summarize_movements(results: list[MovementResult],
                        constraints: MovementConstraint = MovementConstraint()) -> MovementSummary:
    movement = np.array([r.movement for r in results], dtype=np.float64)
    magnitude = np.abs(movement)
    priorities = [r.priority for r in results]

    before = series_statistics([r.current_value for r in results])
    after = series_statistics([r.target_value for r in results])

    return MovementSummary(
        total_points=len(results),
        high_priority=priorities.count(PRIORITY_HIGH),
        medium_priority=priorities.count(PRIORITY_MEDIUM),
        low_priority=priorities.count(PRIORITY_LOW),
        standard_exceeded=int(np.sum((magnitude > constraints.standard_limit)
                                     & (magnitude <= constraints.maximum_limit))),
        maximum_exceeded=int(np.sum(magnitude > constraints.maximum_limit)),
        clamped=sum(1 for r in results if r.clamped),
        movement=series_statistics(movement),
        sigma_before=before.sigma,
        sigma_after=after.sigma,
        improvement_rate=improvement_rate(before.sigma, after.sigma),
    )


def split_work_sections(results: list[MovementResult],
                        max_movement: float = 50.0) -> list[WorkSection]:
    """
    Split a run into work sections; every position whose |movement| exceeds
    max_movement starts a new section.
    """
    sections = []
    if not results:
        return sections

    def close(start: int, end: int) -> WorkSection:
        chunk = [r.movement for r in results[start:end + 1]]
        return WorkSection(
            start_index=start,
            end_index=end,
            start_distance=results[start].distance,
            end_distance=results[end].distance,
            max_movement=float(max(abs(m) for m in chunk)),
            avg_movement=float(np.mean(chunk)),
        )

    start = 0
    for i, r in enumerate(results):
        if abs(r.movement) > max_movement and i != start:
            sections.append(close(start, i - 1))
            start = i
    sections.append(close(start, len(results) - 1))
    return sections
