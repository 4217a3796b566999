"""
Per-operation option structures and domain defaults.

Each operation takes one of these dataclasses. Fields are defaulted and
validated on construction; persisted parameter sets round-trip through
from_dict()/to_dict().
"""

import math
from dataclasses import asdict, dataclass, fields
from typing import Optional

from .errors import InvalidRangeError
from .models import PRIORITY_HIGH, PRIORITY_LOW, PRIORITY_MEDIUM, WavebandDefinition

# ===== Domain defaults =====

# Restoration windows per measurement type (m), 0.25 m spacing
RESTORATION_PRESETS = {
    "alignment": (6.0, 100.0),
    "level": (3.5, 40.0),
    "cross_level": (3.5, 40.0),
    "twist": (3.5, 40.0),
}

DEFAULT_WAVEBANDS = (
    WavebandDefinition("short", 3.0, 10.0),
    WavebandDefinition("medium", 10.0, 30.0),
    WavebandDefinition("long", 30.0, 70.0),
    WavebandDefinition("very_long", 70.0, 200.0),
)

# Wavelength window (m) searched for dominant/effective wavelength
ANALYSIS_WAVELENGTH_RANGE = (1.0, 200.0)

PLAN_LINE_METHODS = ("moving-average", "zero-crossing")
CURVE_DIRECTIONS = ("left", "right")


class _OptionsMixin:

    @classmethod
    def from_dict(cls, data: dict):
        names = {f.name for f in fields(cls)}
        unknown = set(data) - names
        if unknown:
            raise InvalidRangeError(f"{cls.__name__}: unknown keys {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> dict:
        return asdict(self)


def _require_positive(owner: str, name: str, value) -> None:
    if value is None or not value > 0:
        raise InvalidRangeError(f"{owner}: {name} must be positive, got {value!r}")


@dataclass(frozen=True)
class RestorationOptions(_OptionsMixin):
    min_wavelength: float = 6.0
    max_wavelength: float = 100.0
    sampling_interval: Optional[float] = None   # inferred from distances when None

    def __post_init__(self):
        _require_positive("RestorationOptions", "min_wavelength", self.min_wavelength)
        if self.min_wavelength >= self.max_wavelength:
            raise InvalidRangeError(
                f"min_wavelength {self.min_wavelength} must be below "
                f"max_wavelength {self.max_wavelength}")
        if self.sampling_interval is not None:
            _require_positive("RestorationOptions", "sampling_interval", self.sampling_interval)

    @classmethod
    def for_data_type(cls, data_type: str, sampling_interval: float = 0.25):
        try:
            lower, upper = RESTORATION_PRESETS[data_type]
        except KeyError:
            raise InvalidRangeError(
                f"unknown data type {data_type!r} (expected one of {sorted(RESTORATION_PRESETS)})"
            ) from None
        return cls(min_wavelength=lower, max_wavelength=upper,
                   sampling_interval=sampling_interval)


@dataclass(frozen=True)
class WavebandOptions(_OptionsMixin):
    sampling_interval: Optional[float] = None
    bands: tuple = DEFAULT_WAVEBANDS
    improvement_threshold: float = 30.0   # % power reduction considered sufficient

    def __post_init__(self):
        bands = tuple(
            b if isinstance(b, WavebandDefinition) else WavebandDefinition(**b)
            for b in self.bands
        )
        if not bands:
            raise InvalidRangeError("WavebandOptions: at least one band is required")
        ordered = sorted(bands, key=lambda b: b.min_wavelength)
        for a, b in zip(ordered, ordered[1:]):
            if b.min_wavelength < a.max_wavelength:
                raise InvalidRangeError(f"wavebands {a.name!r} and {b.name!r} overlap")
        object.__setattr__(self, "bands", bands)
        if self.sampling_interval is not None:
            _require_positive("WavebandOptions", "sampling_interval", self.sampling_interval)
        if not 0 <= self.improvement_threshold <= 100:
            raise InvalidRangeError(
                f"improvement_threshold must be within 0-100 %, got {self.improvement_threshold}")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["bands"] = [asdict(b) for b in self.bands]
        return data


@dataclass(frozen=True)
class PlanLineOptions(_OptionsMixin):
    method: str = "moving-average"
    window_size: int = 800   # samples, ~200 m at 0.25 m spacing

    def __post_init__(self):
        if self.method not in PLAN_LINE_METHODS:
            raise InvalidRangeError(
                f"unknown plan line method {self.method!r} (expected one of {PLAN_LINE_METHODS})")
        if int(self.window_size) < 1:
            raise InvalidRangeError(f"window_size must be >= 1, got {self.window_size}")


@dataclass(frozen=True)
class OptimizerOptions(_OptionsMixin):
    max_upward: float = 50.0            # mm
    max_downward: float = 10.0          # mm
    target_upward_ratio: float = 0.7
    iteration_limit: int = 100
    ratio_tolerance: float = 0.001
    adjustment_tolerance: float = 0.01  # mm
    relaxation: float = 0.5             # fraction of the deficit lifted per iteration
    min_step: float = 0.1               # mm, deficits this small are closed in one step
    smoothing_window: int = 11          # samples

    def __post_init__(self):
        _require_positive("OptimizerOptions", "max_upward", self.max_upward)
        if self.max_downward < 0:
            raise InvalidRangeError(f"max_downward must be >= 0, got {self.max_downward}")
        if not 0 <= self.target_upward_ratio <= 1:
            raise InvalidRangeError(
                f"target_upward_ratio must be within [0, 1], got {self.target_upward_ratio}")
        if int(self.iteration_limit) < 0:
            raise InvalidRangeError(f"iteration_limit must be >= 0, got {self.iteration_limit}")
        if not 0 < self.relaxation <= 1:
            raise InvalidRangeError(f"relaxation must be within (0, 1], got {self.relaxation}")
        if int(self.smoothing_window) < 1:
            raise InvalidRangeError(f"smoothing_window must be >= 1, got {self.smoothing_window}")


@dataclass(frozen=True)
class EditorConstraints(_OptionsMixin):
    max_gradient: float = 35.0       # per mille
    min_curve_radius: float = 600.0  # m
    history_limit: int = 100

    def __post_init__(self):
        _require_positive("EditorConstraints", "max_gradient", self.max_gradient)
        _require_positive("EditorConstraints", "min_curve_radius", self.min_curve_radius)
        if int(self.history_limit) < 1:
            raise InvalidRangeError(f"history_limit must be >= 1, got {self.history_limit}")


@dataclass(frozen=True)
class PriorityPolicy(_OptionsMixin):
    """|movement| >= high -> "high"; >= medium -> "medium"; else "low" (mm)."""
    high: float = 20.0
    medium: float = 10.0

    def __post_init__(self):
        if self.medium < 0 or self.medium > self.high:
            raise InvalidRangeError(
                f"priority thresholds must satisfy 0 <= medium <= high "
                f"(got medium={self.medium}, high={self.high})")

    def classify(self, movement: float) -> str:
        magnitude = abs(movement)
        if magnitude >= self.high:
            return PRIORITY_HIGH
        elif magnitude >= self.medium:
            return PRIORITY_MEDIUM
        return PRIORITY_LOW


@dataclass(frozen=True)
class CacheOptions(_OptionsMixin):
    max_entries: int = 100
    max_memory_mb: float = 100.0

    def __post_init__(self):
        if int(self.max_entries) < 1:
            raise InvalidRangeError(f"max_entries must be >= 1, got {self.max_entries}")
        if not self.max_memory_mb > 0 or math.isinf(self.max_memory_mb):
            raise InvalidRangeError(f"max_memory_mb must be a positive number, got {self.max_memory_mb}")
