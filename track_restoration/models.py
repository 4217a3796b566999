"""
Data structures shared by the restoration engine.

Values are millimetres, distances metres. Series carry numpy arrays that
are frozen (read-only) once constructed; plan lines are tuples of frozen
points so every edit produces a new object.
"""

import itertools
import math
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Sequence

import numpy as np

from .errors import InvalidRangeError

DEFAULT_SAMPLING_INTERVAL = 0.25  # m, standard track recording car spacing

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"

_point_ids = itertools.count(1)


def _frozen_array(values, dtype=np.float64) -> np.ndarray:
    arr = np.array(values, dtype=dtype, copy=True).reshape(-1)
    arr.flags.writeable = False
    return arr


# ===== Series =====

@dataclass(frozen=True, eq=False)
class MeasurementSeries:
    """Ordered (distance, value) samples with strictly increasing distance."""
    distance: np.ndarray
    value: np.ndarray

    def __post_init__(self):
        distance = _frozen_array(self.distance)
        value = _frozen_array(self.value)
        if distance.shape != value.shape:
            raise InvalidRangeError(
                f"distance and value lengths differ ({len(distance)} vs {len(value)})")
        if len(distance) > 1 and not np.all(np.diff(distance) > 0):
            raise InvalidRangeError("distances must be strictly increasing")
        object.__setattr__(self, "distance", distance)
        object.__setattr__(self, "value", value)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Sequence[float]]):
        pairs = list(pairs)
        if not pairs:
            return cls(np.empty(0), np.empty(0))
        arr = np.asarray(pairs, dtype=np.float64)
        return cls(arr[:, 0], arr[:, 1])

    @classmethod
    def from_values(cls, values, sampling_interval: float = DEFAULT_SAMPLING_INTERVAL,
                    start: float = 0.0):
        values = np.asarray(values, dtype=np.float64)
        return cls(start + np.arange(len(values)) * sampling_interval, values)

    def __len__(self) -> int:
        return len(self.value)

    @property
    def sampling_interval(self) -> Optional[float]:
        """Median spacing between samples, None for fewer than two points."""
        if len(self.distance) < 2:
            return None
        return float(np.median(np.diff(self.distance)))

    def pairs(self) -> list[tuple[float, float]]:
        return [(float(d), float(v)) for d, v in zip(self.distance, self.value)]


@dataclass(frozen=True, eq=False)
class RestoredWaveform(MeasurementSeries):
    """Band-limited reconstruction of a measurement series."""
    min_wavelength: float = 0.0
    max_wavelength: float = math.inf


@dataclass(frozen=True)
class SeriesStatistics:
    mean: float
    sigma: float
    rms: float
    min: float
    max: float
    count: int

    def to_dict(self) -> dict:
        return {
            "mean": self.mean,
            "sigma": self.sigma,
            "rms": self.rms,
            "min": self.min,
            "max": self.max,
            "count": self.count,
        }


# ===== Spectrum =====

@dataclass(frozen=True)
class SpectralPoint:
    frequency: float     # cycles per metre
    wavelength: float    # m, inf for the DC bin
    power: float         # |X[i]| / N
    phase: float         # rad


@dataclass(frozen=True, eq=False)
class PowerSpectrum:
    """One-sided spectrum of a zero-padded series (N/2 bins)."""
    frequency: np.ndarray
    wavelength: np.ndarray
    power: np.ndarray
    phase: np.ndarray
    coefficients: np.ndarray   # full complex transform, length padded_length
    padded_length: int
    original_length: int
    sampling_interval: float

    def __len__(self) -> int:
        return len(self.power)

    def __iter__(self) -> Iterator[SpectralPoint]:
        for i in range(len(self.power)):
            yield self.point(i)

    def point(self, i: int) -> SpectralPoint:
        return SpectralPoint(
            frequency=float(self.frequency[i]),
            wavelength=float(self.wavelength[i]),
            power=float(self.power[i]),
            phase=float(self.phase[i]),
        )


@dataclass(frozen=True)
class WavebandDefinition:
    name: str
    min_wavelength: float
    max_wavelength: float

    def __post_init__(self):
        if self.min_wavelength < 0 or self.min_wavelength >= self.max_wavelength:
            raise InvalidRangeError(
                f"waveband {self.name!r}: invalid range "
                f"{self.min_wavelength}-{self.max_wavelength} m")

    def contains(self, wavelength: np.ndarray) -> np.ndarray:
        """
        Mask of wavelengths in [min_wavelength, max_wavelength).

        The upper edge is exclusive so that touching bands share no bin; an
        open band (max_wavelength=inf) also takes the DC bin.
        """
        wavelength = np.asarray(wavelength, dtype=np.float64)
        mask = wavelength >= self.min_wavelength
        if math.isinf(self.max_wavelength):
            return mask
        return mask & (wavelength < self.max_wavelength)

    @property
    def label(self) -> str:
        return f"{self.min_wavelength:g}m - {self.max_wavelength:g}m"


# ===== Plan line =====

def new_point_id() -> str:
    return f"p{next(_point_ids)}"


@dataclass(frozen=True)
class PlanLinePoint:
    distance: float
    value: float
    id: str = field(default_factory=new_point_id)


@dataclass(frozen=True)
class PlanLine:
    """Target profile; immutable, edits return a new PlanLine."""
    points: tuple = ()

    def __post_init__(self):
        points = tuple(self.points)
        for a, b in zip(points, points[1:]):
            if b.distance <= a.distance:
                raise InvalidRangeError("plan line distances must be strictly increasing")
        object.__setattr__(self, "points", points)

    @classmethod
    def from_arrays(cls, distances, values, ids: Optional[Sequence[str]] = None):
        distances = np.asarray(distances, dtype=np.float64)
        values = np.asarray(values, dtype=np.float64)
        if ids is None:
            ids = [new_point_id() for _ in range(len(distances))]
        return cls(tuple(
            PlanLinePoint(float(d), float(v), pid)
            for d, v, pid in zip(distances, values, ids)
        ))

    @classmethod
    def from_pairs(cls, pairs: Iterable[Sequence[float]]):
        pairs = list(pairs)
        return cls.from_arrays([p[0] for p in pairs], [p[1] for p in pairs])

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[PlanLinePoint]:
        return iter(self.points)

    def __getitem__(self, i) -> PlanLinePoint:
        return self.points[i]

    @property
    def distances(self) -> np.ndarray:
        return np.array([p.distance for p in self.points], dtype=np.float64)

    @property
    def values(self) -> np.ndarray:
        return np.array([p.value for p in self.points], dtype=np.float64)

    @property
    def ids(self) -> list[str]:
        return [p.id for p in self.points]

    def with_values(self, values) -> "PlanLine":
        """Same points (distance and id) carrying new values."""
        values = np.asarray(values, dtype=np.float64)
        if len(values) != len(self.points):
            raise InvalidRangeError(
                f"expected {len(self.points)} values, got {len(values)}")
        return PlanLine(tuple(
            PlanLinePoint(p.distance, float(v), p.id)
            for p, v in zip(self.points, values)
        ))


# ===== Movement =====

@dataclass(frozen=True)
class FixedPoint:
    """Range where movement is restricted (structures, crossings, bridges)."""
    start_distance: float
    end_distance: float
    max_movement: float

    def __post_init__(self):
        if self.end_distance < self.start_distance:
            raise InvalidRangeError(
                f"fixed point ends before it starts ({self.start_distance}-{self.end_distance} m)")
        if self.max_movement < 0:
            raise InvalidRangeError(f"fixed point max movement must be >= 0, got {self.max_movement}")

    def covers(self, distance: np.ndarray) -> np.ndarray:
        distance = np.asarray(distance, dtype=np.float64)
        return (distance >= self.start_distance) & (distance <= self.end_distance)


@dataclass(frozen=True)
class MovementConstraint:
    fixed_points: tuple = ()
    standard_limit: float = 30.0   # mm
    maximum_limit: float = 50.0    # mm
    upward_priority: bool = True

    def __post_init__(self):
        fixed = tuple(
            fp if isinstance(fp, FixedPoint) else FixedPoint(*fp)
            for fp in self.fixed_points
        )
        object.__setattr__(self, "fixed_points", fixed)
        if self.standard_limit <= 0 or self.maximum_limit <= 0:
            raise InvalidRangeError("movement limits must be positive")
        if self.standard_limit > self.maximum_limit:
            raise InvalidRangeError(
                f"standard limit {self.standard_limit} exceeds maximum limit {self.maximum_limit}")
        ordered = sorted(fixed, key=lambda fp: fp.start_distance)
        for a, b in zip(ordered, ordered[1:]):
            if b.start_distance <= a.end_distance:
                raise InvalidRangeError(
                    f"fixed point ranges overlap at {b.start_distance} m")

    @classmethod
    def from_dict(cls, data: dict) -> "MovementConstraint":
        known = {"fixed_points", "standard_limit", "maximum_limit", "upward_priority"}
        unknown = set(data) - known
        if unknown:
            raise InvalidRangeError(f"unknown constraint keys: {sorted(unknown)}")
        fixed = []
        for fp in data.get("fixed_points", ()):
            if isinstance(fp, dict):
                fixed.append(FixedPoint(fp["start_distance"], fp["end_distance"], fp["max_movement"]))
            else:
                fixed.append(FixedPoint(*fp))
        kwargs = {k: v for k, v in data.items() if k != "fixed_points"}
        return cls(fixed_points=tuple(fixed), **kwargs)

    def limits_for(self, distance: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Per-position absolute movement limit; fixed points override the global maximum."""
        distance = np.asarray(distance, dtype=np.float64)
        limits = np.full(distance.shape, float(self.maximum_limit))
        fixed_mask = np.zeros(distance.shape, dtype=bool)
        for fp in self.fixed_points:
            mask = fp.covers(distance)
            limits[mask] = fp.max_movement
            fixed_mask |= mask
        return limits, fixed_mask


@dataclass(frozen=True)
class MovementResult:
    distance: float
    current_value: float
    target_value: float
    movement: float        # target_value - current_value
    priority: str          # "high", "medium", "low"
    limit: float           # absolute limit that applied at this position
    clamped: bool = False
    fixed: bool = False

    def to_dict(self) -> dict:
        return {
            "distance": self.distance,
            "current_value": self.current_value,
            "target_value": self.target_value,
            "movement": self.movement,
            "priority": self.priority,
        }
