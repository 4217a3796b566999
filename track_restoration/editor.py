"""
Interactive plan-line editing with bounded undo/redo history.

Every edit takes a PlanLine and returns a new one; the editor records
snapshots so that undo() after an edit returns exactly the line the edit
started from, and redo() returns exactly the line it produced.
"""

import math
from collections import deque
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import CURVE_DIRECTIONS, EditorConstraints, PlanLineOptions
from .errors import ConstraintViolation, InvalidRangeError, PointNotFoundError
from .log import get_logger
from .models import MeasurementSeries, PlanLine
from .plan_line import centered_moving_average, generate_initial

logger = get_logger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    plan_line: PlanLine
    operation: str


class EditHistory:
    """Ring buffer of plan-line snapshots with a cursor.

    Pushing after an undo discards the redo branch. When full, the oldest
    snapshot is dropped and the cursor shifts with it.
    """

    def __init__(self, limit: int = 100):
        if limit < 1:
            raise InvalidRangeError(f"history limit must be >= 1, got {limit}")
        self.limit = limit
        self._entries = deque(maxlen=limit)
        self._cursor = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> Optional[HistoryEntry]:
        if self._cursor < 0:
            return None
        return self._entries[self._cursor]

    def push(self, plan_line: PlanLine, operation: str) -> None:
        while len(self._entries) > self._cursor + 1:
            self._entries.pop()
        self._entries.append(HistoryEntry(plan_line, operation))
        # deque(maxlen) drops the oldest entry when full
        self._cursor = len(self._entries) - 1

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def undo(self) -> Optional[PlanLine]:
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self._entries[self._cursor].plan_line

    def redo(self) -> Optional[PlanLine]:
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._entries[self._cursor].plan_line

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = -1

    def entries(self) -> list[dict]:
        return [
            {"index": i, "operation": e.operation, "is_current": i == self._cursor}
            for i, e in enumerate(self._entries)
        ]


def _section_indices(plan_line: PlanLine, start_distance: float, end_distance: float):
    """First points at or beyond start_distance and end_distance."""
    if start_distance >= end_distance:
        raise InvalidRangeError(
            f"start distance {start_distance} must be below end distance {end_distance}")
    d = plan_line.distances
    start_idx = int(np.searchsorted(d, start_distance, side="left"))
    end_idx = int(np.searchsorted(d, end_distance, side="left"))
    if start_idx >= len(d) or end_idx >= len(d) or start_idx >= end_idx:
        raise InvalidRangeError(
            f"distance range {start_distance}-{end_distance} m is outside the plan line "
            f"or contains fewer than two points")
    return start_idx, end_idx


class PlanLineEditor:
    """Editing session for one plan line (one session per caller)."""

    def __init__(self, constraints: EditorConstraints = EditorConstraints()):
        self.constraints = constraints
        self._history = EditHistory(constraints.history_limit)
        self.warnings: list[str] = []

    def _commit(self, before: PlanLine, after: PlanLine, operation: str) -> PlanLine:
        current = self._history.current
        if current is None or (current.plan_line is not before and current.plan_line != before):
            self._history.push(before, "base")
        self._history.push(after, operation)
        return after

    def generate_initial(self, waveform: MeasurementSeries, window_size: int = 800) -> PlanLine:
        """Moving-average initial plan line; starts a fresh history."""
        plan = generate_initial(waveform, PlanLineOptions(window_size=window_size))
        self._history.clear()
        self._history.push(plan, "initial")
        return plan

    def set_straight_line(self, plan_line: PlanLine, start_distance: float,
                          end_distance: float) -> PlanLine:
        """Replace a section by the straight line between its boundary values.

        A gradient steeper than constraints.max_gradient is reported as a
        warning, not an error.
        """
        start_idx, end_idx = _section_indices(plan_line, start_distance, end_distance)
        d = plan_line.distances
        values = plan_line.values
        d0, d1 = d[start_idx], d[end_idx]
        v0, v1 = values[start_idx], values[end_idx]
        gradient = (v1 - v0) / (d1 - d0)   # mm/m == per mille

        self.warnings = []
        if abs(gradient) > self.constraints.max_gradient:
            message = (f"gradient {abs(gradient):.2f} per mille exceeds maximum "
                       f"{self.constraints.max_gradient} between {d0:.2f} and {d1:.2f} m")
            logger.warning(message)
            self.warnings.append(message)

        new_values = values.copy()
        section = slice(start_idx, end_idx + 1)
        new_values[section] = np.round(v0 + gradient * (d[section] - d0), 3)
        edited = plan_line.with_values(new_values)
        return self._commit(plan_line, edited, f"straight_{start_distance}_{end_distance}")

    def set_circular_curve(self, plan_line: PlanLine, start_distance: float,
                           end_distance: float, radius: float,
                           direction: str = "left") -> PlanLine:
        """Replace a section by a circular arc of the given radius (m).

        Offset from the section's start value is radius * (1 - cos(s / radius)),
        converted to mm; "left" bends down, "right" bends up.

        Raises:
            ConstraintViolation: radius below constraints.min_curve_radius.
        """
        if radius < self.constraints.min_curve_radius:
            raise ConstraintViolation(
                f"radius {radius} m is less than minimum {self.constraints.min_curve_radius} m")
        if direction not in CURVE_DIRECTIONS:
            raise InvalidRangeError(f"direction must be one of {CURVE_DIRECTIONS}, got {direction!r}")
        start_idx, end_idx = _section_indices(plan_line, start_distance, end_distance)
        sign = -1.0 if direction == "left" else 1.0

        d = plan_line.distances
        values = plan_line.values
        section = slice(start_idx, end_idx + 1)
        s = d[section] - d[start_idx]
        offset_mm = radius * (1.0 - np.cos(s / radius)) * 1000.0 * sign

        new_values = values.copy()
        new_values[section] = np.round(values[start_idx] + offset_mm, 3)
        edited = plan_line.with_values(new_values)
        return self._commit(plan_line, edited,
                            f"curve_{start_distance}_{end_distance}_R{radius:g}")

    def smooth_section(self, plan_line: PlanLine, start_distance: float,
                       end_distance: float, window_size: int = 100) -> PlanLine:
        """Moving average restricted to the section; the window never leaves it."""
        if int(window_size) < 1:
            raise InvalidRangeError(f"window_size must be >= 1, got {window_size}")
        start_idx, end_idx = _section_indices(plan_line, start_distance, end_distance)
        values = plan_line.values
        section = slice(start_idx, end_idx + 1)
        averages, _ = centered_moving_average(values[section], window_size)

        new_values = values.copy()
        new_values[section] = np.round(averages, 3)
        edited = plan_line.with_values(new_values)
        return self._commit(plan_line, edited, f"smooth_{start_distance}_{end_distance}")

    def edit_point(self, plan_line: PlanLine, distance: float, new_value: float) -> PlanLine:
        """Overwrite the value of the point nearest to distance.

        Raises:
            PointNotFoundError: empty plan line, or distance further than one
                point spacing outside the line.
        """
        if len(plan_line) == 0:
            raise PointNotFoundError("plan line has no points")
        if not math.isfinite(new_value):
            raise InvalidRangeError(f"new value must be finite, got {new_value}")
        d = plan_line.distances
        spacing = float(np.median(np.diff(d))) if len(d) > 1 else 0.0
        if distance < d[0] - spacing or distance > d[-1] + spacing:
            raise PointNotFoundError(
                f"no plan-line point near {distance} m (line spans {d[0]:.2f}-{d[-1]:.2f} m)")
        idx = int(np.argmin(np.abs(d - distance)))

        new_values = plan_line.values
        new_values[idx] = round(float(new_value), 3)
        edited = plan_line.with_values(new_values)
        return self._commit(plan_line, edited, f"edit_point_{distance}")

    def undo(self) -> Optional[PlanLine]:
        return self._history.undo()

    def redo(self) -> Optional[PlanLine]:
        return self._history.redo()

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    def clear_history(self) -> None:
        self._history.clear()

    def history(self) -> list[dict]:
        return self._history.entries()
