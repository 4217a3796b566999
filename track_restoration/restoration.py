"""
Band-limited restoration of measured irregularity.

The restored waveform keeps only the spectral content whose wavelength lies
inside [min_wavelength, max_wavelength]. Both halves of every Hermitian pair
are treated together so the inverse transform stays real.
"""

import math
from typing import Optional

import numpy as np

from .errors import InsufficientDataError, InvalidRangeError
from .log import get_logger
from .models import DEFAULT_SAMPLING_INTERVAL, MeasurementSeries, RestoredWaveform, SeriesStatistics
from .spectrum import bin_wavelengths, inverse, transform

logger = get_logger(__name__)


def as_series(series, sampling_interval: Optional[float] = None) -> MeasurementSeries:
    """Accept a MeasurementSeries or a bare sequence of values."""
    if isinstance(series, MeasurementSeries):
        return series
    return MeasurementSeries.from_values(series, sampling_interval or DEFAULT_SAMPLING_INTERVAL)


def resolve_sampling_interval(series: MeasurementSeries,
                              sampling_interval: Optional[float] = None) -> float:
    """Explicit interval, else the series' median spacing, else 0.25 m."""
    if sampling_interval is not None:
        if not sampling_interval > 0:
            raise InvalidRangeError(f"sampling interval must be positive, got {sampling_interval}")
        return float(sampling_interval)
    inferred = series.sampling_interval
    return inferred if inferred else DEFAULT_SAMPLING_INTERVAL


def validate_band(min_wavelength: float, max_wavelength: float) -> None:
    if not min_wavelength > 0:
        raise InvalidRangeError(f"min_wavelength must be positive, got {min_wavelength}")
    if min_wavelength >= max_wavelength:
        raise InvalidRangeError(
            f"min_wavelength {min_wavelength} must be below max_wavelength {max_wavelength}")


def band_mask(padded_length: int, sampling_interval: float,
              min_wavelength: float, max_wavelength: float,
              include_max: bool = True) -> np.ndarray:
    """Bins (full transform length) kept by the band-pass.

    The DC bin (infinite wavelength) is only kept when the upper bound is
    unbounded. With include_max=False a bin exactly on max_wavelength is
    dropped, matching half-open waveband membership.
    """
    wavelength = bin_wavelengths(padded_length, sampling_interval)
    keep = wavelength >= min_wavelength
    if math.isinf(max_wavelength):
        return keep
    keep &= (wavelength <= max_wavelength) if include_max else (wavelength < max_wavelength)
    keep[0] = False
    return keep


def restore(series, min_wavelength: float, max_wavelength: float,
            sampling_interval: Optional[float] = None,
            include_max: bool = True) -> RestoredWaveform:
    """
    Recover the band-limited waveform of a series.

    Runs a forward transform, zeroes every bin (and its mirror N - i) whose
    wavelength falls outside [min_wavelength, max_wavelength], inverts and
    trims back to the original length. Non-finite samples are treated as 0.

    Raises:
        InvalidRangeError: min_wavelength <= 0 or min_wavelength >= max_wavelength.
        InsufficientDataError: fewer than two samples.
    """
    validate_band(min_wavelength, max_wavelength)
    series = as_series(series, sampling_interval)
    n = len(series)
    if n < 2:
        raise InsufficientDataError(f"restoration needs at least 2 samples, got {n}")

    dx = resolve_sampling_interval(series, sampling_interval)
    values = np.asarray(series.value, dtype=np.float64)
    finite = np.isfinite(values)
    if not np.all(finite):
        logger.debug("Treating %d non-finite samples as 0", int(np.sum(~finite)))
        values = np.where(finite, values, 0.0)

    spectrum = transform(values, dx)
    keep = band_mask(spectrum.padded_length, dx, min_wavelength, max_wavelength, include_max)
    filtered = np.where(keep, spectrum.coefficients, 0.0)
    restored = inverse(filtered, n)

    logger.debug("Restored %d samples in %.2f-%.2f m band (%d of %d bins kept)",
                 n, min_wavelength, max_wavelength, int(np.sum(keep)), spectrum.padded_length)

    return RestoredWaveform(
        distance=series.distance,
        value=restored,
        min_wavelength=float(min_wavelength),
        max_wavelength=float(max_wavelength),
    )


def series_statistics(values) -> SeriesStatistics:
    """Mean, sigma (population std), RMS, min, max and count of finite samples."""
    values = np.asarray(values, dtype=np.float64)
    values = values[np.isfinite(values)]
    if len(values) == 0:
        return SeriesStatistics(mean=0.0, sigma=0.0, rms=0.0, min=0.0, max=0.0, count=0)
    return SeriesStatistics(
        mean=float(np.mean(values)),
        sigma=float(np.std(values)),
        rms=float(np.sqrt(np.mean(values ** 2))),
        min=float(np.min(values)),
        max=float(np.max(values)),
        count=int(len(values)),
    )


def improvement_rate(sigma_before: float, sigma_after: float) -> float:
    """Percentage reduction of sigma; 0 when there was nothing to improve."""
    if sigma_before == 0:
        return 0.0
    return (sigma_before - sigma_after) / sigma_before * 100.0
