"""
Restoration-waveform and plan-line engine for track maintenance planning.

Recovers the band-limited irregularity of a measured track record, breaks it
down into wavebands, derives and optimizes a plan line and computes the
per-position movements a tamping machine has to apply.
"""

from .cache import ResultCache, fingerprint
from .config import (CacheOptions, EditorConstraints, OptimizerOptions, PlanLineOptions,
                     PriorityPolicy, RestorationOptions, WavebandOptions)
from .editor import PlanLineEditor
from .engine import RestorationEngine
from .errors import (ConstraintViolation, InsufficientDataError, InvalidRangeError,
                     PointNotFoundError, RestorationError)
from .models import (FixedPoint, MeasurementSeries, MovementConstraint, MovementResult,
                     PlanLine, PlanLinePoint, PowerSpectrum, RestoredWaveform, WavebandDefinition)
from .movement import calculate_movements
from .optimizer import optimize
from .plan_line import generate_initial
from .restoration import restore
from .spectrum import transform
from .wavebands import compare_wavebands, decompose

__version__ = "0.1.0"

__all__ = [
    "CacheOptions",
    "ConstraintViolation",
    "EditorConstraints",
    "FixedPoint",
    "InsufficientDataError",
    "InvalidRangeError",
    "MeasurementSeries",
    "MovementConstraint",
    "MovementResult",
    "OptimizerOptions",
    "PlanLine",
    "PlanLineEditor",
    "PlanLineOptions",
    "PlanLinePoint",
    "PointNotFoundError",
    "PowerSpectrum",
    "PriorityPolicy",
    "RestorationEngine",
    "RestorationError",
    "RestorationOptions",
    "RestoredWaveform",
    "ResultCache",
    "WavebandDefinition",
    "WavebandOptions",
    "calculate_movements",
    "compare_wavebands",
    "decompose",
    "fingerprint",
    "generate_initial",
    "optimize",
    "restore",
    "transform",
]
