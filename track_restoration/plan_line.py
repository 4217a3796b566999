"""
Initial plan-line generation and plan-line evaluation.

The plan line is the target profile the track is corrected to. Movement at a
position is plan value minus restored-waveform value (positive = lift).
"""

from dataclasses import dataclass, field

import numpy as np

from .config import PlanLineOptions
from .errors import InsufficientDataError
from .log import get_logger
from .models import MeasurementSeries, PlanLine

logger = get_logger(__name__)

MOVEMENT_DEADBAND = 0.1  # mm, movements smaller than this count as "no movement"


@dataclass(frozen=True)
class PlanLineStatistics:
    total_points: int
    upward_points: int
    downward_points: int
    zero_points: int
    max_upward: float
    max_downward: float
    avg_upward: float
    avg_downward: float
    total_upward: float
    total_downward: float
    upward_ratio: float


@dataclass(frozen=True)
class PlanLineValidation:
    valid: bool
    issues: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    recommendation: str = ""


def centered_moving_average(values, window_size: int):
    """
    Centered moving average over finite samples.

    Window is [i - window_size // 2, i + window_size // 2] clipped to the
    series. Returns (averages, counts); where a window holds no finite
    sample the count is 0 and the average is NaN.
    """
    values = np.asarray(values, dtype=np.float64)
    n = len(values)
    half = int(window_size) // 2
    finite = np.isfinite(values)
    csum = np.concatenate(([0.0], np.cumsum(np.where(finite, values, 0.0))))
    ccount = np.concatenate(([0], np.cumsum(finite.astype(np.int64))))

    idx = np.arange(n)
    lo = np.maximum(0, idx - half)
    hi = np.minimum(n, idx + half + 1)
    counts = ccount[hi] - ccount[lo]
    sums = csum[hi] - csum[lo]
    with np.errstate(invalid="ignore", divide="ignore"):
        averages = np.where(counts > 0, sums / np.maximum(counts, 1), np.nan)
    return averages, counts


def moving_average_plan_line(waveform: MeasurementSeries, window_size: int = 800) -> PlanLine:
    """Smooth baseline; positions with no valid neighbours are skipped."""
    averages, counts = centered_moving_average(waveform.value, window_size)
    keep = counts > 0
    skipped = int(np.sum(~keep))
    if skipped:
        logger.debug("Skipped %d plan-line points with no valid neighbours", skipped)
    return PlanLine.from_arrays(waveform.distance[keep], np.round(averages[keep], 3))


def zero_crossings(waveform: MeasurementSeries) -> np.ndarray:
    """Distances where the waveform crosses or touches zero (linear interpolation)."""
    d = np.asarray(waveform.distance, dtype=np.float64)
    v = np.asarray(waveform.value, dtype=np.float64)
    crossings = list(d[v == 0])
    prev, curr = v[:-1], v[1:]
    sign_change = np.where(prev * curr < 0)[0]
    for i in sign_change:
        ratio = abs(prev[i]) / (abs(prev[i]) + abs(curr[i]))
        crossings.append(d[i] + (d[i + 1] - d[i]) * ratio)
    return np.unique(np.asarray(crossings, dtype=np.float64))


def zero_crossing_plan_line(waveform: MeasurementSeries, window_size: int = 800) -> PlanLine:
    """
    Plan line joining the waveform's zero crossings.

    Every crossing sits at value 0, so the result is the zero level over the
    whole waveform. The crossings only decide whether this line is used:
    with fewer than two, falls back to the moving average. A zero line has
    no variance, so validate_plan_line() always reports it as too flat.
    """
    crossings = zero_crossings(waveform)
    if len(crossings) < 2:
        logger.warning("Only %d zero crossing(s) found, falling back to moving average",
                       len(crossings))
        return moving_average_plan_line(waveform, window_size)
    return PlanLine.from_arrays(waveform.distance, np.zeros(len(waveform)))


def generate_initial(waveform: MeasurementSeries,
                     options: PlanLineOptions = PlanLineOptions()) -> PlanLine:
    """
    Derive a smooth baseline plan line from a restored waveform.

    Raises:
        InsufficientDataError: empty waveform.
    """
    if len(waveform) == 0:
        raise InsufficientDataError("cannot generate a plan line from an empty waveform")
    if options.method == "zero-crossing":
        plan = zero_crossing_plan_line(waveform, options.window_size)
    else:
        plan = moving_average_plan_line(waveform, options.window_size)
    logger.debug("Generated %s plan line with %d points", options.method, len(plan))
    return plan


def align(plan_line: PlanLine, waveform: MeasurementSeries, tolerance: float = None):
    """
    Match plan-line values to waveform positions by distance.

    Waveform positions within the plan line's span (plus a tolerance of half
    a sample) get a linearly interpolated plan value. Returns (mask, values)
    where mask selects the covered waveform positions.

    Raises:
        InsufficientDataError: empty plan line or no overlap with the waveform.
    """
    if len(plan_line) == 0:
        raise InsufficientDataError("plan line is empty")
    pd = plan_line.distances
    pv = plan_line.values
    wd = np.asarray(waveform.distance, dtype=np.float64)
    if tolerance is None:
        tolerance = (waveform.sampling_interval or 0.0) / 2
    mask = (wd >= pd[0] - tolerance) & (wd <= pd[-1] + tolerance)
    if not np.any(mask):
        raise InsufficientDataError(
            f"plan line ({pd[0]:.2f}-{pd[-1]:.2f} m) does not overlap the waveform")
    return mask, np.interp(wd[mask], pd, pv)


def movement_statistics(movement) -> PlanLineStatistics:
    movement = np.asarray(movement, dtype=np.float64)
    total = len(movement)
    up = movement > MOVEMENT_DEADBAND
    down = movement < -MOVEMENT_DEADBAND
    total_up = float(np.sum(movement[up]))
    total_down = float(np.sum(-movement[down]))
    n_up = int(np.sum(up))
    n_down = int(np.sum(down))
    return PlanLineStatistics(
        total_points=total,
        upward_points=n_up,
        downward_points=n_down,
        zero_points=total - n_up - n_down,
        max_upward=float(np.max(movement[up])) if n_up else 0.0,
        max_downward=float(np.max(-movement[down])) if n_down else 0.0,
        avg_upward=total_up / n_up if n_up else 0.0,
        avg_downward=total_down / n_down if n_down else 0.0,
        total_upward=total_up,
        total_downward=total_down,
        upward_ratio=n_up / total if total else 0.0,
    )


def plan_line_statistics(plan_line: PlanLine, waveform: MeasurementSeries) -> PlanLineStatistics:
    """Upward/downward movement summary of a plan line against a waveform."""
    mask, plan_values = align(plan_line, waveform)
    return movement_statistics(plan_values - np.asarray(waveform.value)[mask])


def validate_plan_line(plan_line: PlanLine, waveform: MeasurementSeries) -> PlanLineValidation:
    """Sanity checks on an initial plan line before optimization."""
    stats = plan_line_statistics(plan_line, waveform)
    issues = []
    warnings = []

    if stats.upward_ratio < 0.3:
        issues.append(f"upward ratio too low ({stats.upward_ratio:.0%} < 30%)")
    elif stats.upward_ratio < 0.5:
        warnings.append(f"upward ratio below recommended level ({stats.upward_ratio:.0%} < 50%)")

    if stats.max_upward > 60:
        issues.append(f"maximum lift too large ({stats.max_upward:.1f} mm)")
    if stats.max_downward > 20:
        issues.append(f"maximum lowering too large ({stats.max_downward:.1f} mm)")

    if len(plan_line) and float(np.var(plan_line.values)) < 1:
        issues.append("plan line is too flat (variance < 1 mm^2)")

    if not issues:
        if stats.upward_ratio > 0.7:
            recommendation = "Plan line is good and can be used as is."
        else:
            recommendation = "Plan line is usable; adjust where needed."
    elif any("flat" in issue for issue in issues):
        recommendation = "Generate the plan line from the restored waveform instead."
    elif stats.upward_ratio < 0.5:
        recommendation = "Run the upward-priority optimization."
    else:
        recommendation = "Adjust manually or regenerate the plan line."

    return PlanLineValidation(
        valid=not issues,
        issues=issues,
        warnings=warnings,
        recommendation=recommendation,
    )
