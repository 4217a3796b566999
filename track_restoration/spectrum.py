"""
Spectral analysis of irregularity series.

The series is zero-padded to the next power of two and transformed with
numpy.fft. The one-sided power spectrum is indexed by wavelength so that
callers can reason in metres rather than bins.
"""

import numpy as np

from .errors import InsufficientDataError, InvalidRangeError
from .log import get_logger
from .models import DEFAULT_SAMPLING_INTERVAL, PowerSpectrum

logger = get_logger(__name__)

WINDOW_TYPES = ("none", "hanning", "hamming", "blackman")


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (1 for n <= 1)."""
    if n <= 1:
        return 1
    return 1 << (int(n) - 1).bit_length()


def apply_window(values, window_type: str = "hanning") -> np.ndarray:
    """Taper a series before a diagnostic transform to reduce leakage."""
    values = np.asarray(values, dtype=np.float64)
    n = len(values)
    if window_type == "none" or n < 2:
        return values.copy()
    if window_type == "hanning":
        return values * np.hanning(n)
    if window_type == "hamming":
        return values * np.hamming(n)
    if window_type == "blackman":
        return values * np.blackman(n)
    raise InvalidRangeError(f"unknown window type {window_type!r} (expected one of {WINDOW_TYPES})")


def bin_wavelengths(padded_length: int, sampling_interval: float) -> np.ndarray:
    """Wavelength of every bin of a full-length transform.

    Bins i and N - i share a wavelength (Hermitian pair); bin 0 is inf.
    """
    k = np.arange(padded_length)
    folded = np.minimum(k, padded_length - k)
    wavelength = np.full(padded_length, np.inf)
    nonzero = folded > 0
    wavelength[nonzero] = padded_length * sampling_interval / folded[nonzero]
    return wavelength


def wavelength_to_bin(wavelength: float, padded_length: int, sampling_interval: float) -> int:
    """Nearest bin index for a wavelength; inf maps to the DC bin."""
    if wavelength <= 0:
        raise InvalidRangeError(f"wavelength must be positive, got {wavelength}")
    if np.isinf(wavelength):
        return 0
    return int(round(padded_length * sampling_interval / wavelength))


def transform(values, sampling_interval: float = DEFAULT_SAMPLING_INTERVAL) -> PowerSpectrum:
    """
    Forward transform of a real series into a wavelength-indexed spectrum.

    The input is padded with zeros to N = next_power_of_two(len(values)).
    Bin i in [0, N/2) gets frequency i / (N * dx), wavelength 1 / frequency
    (inf at i = 0), power |X[i]| / N and phase atan2(imag, real). The full
    complex transform is kept so restoration can filter and invert it.

    Raises:
        InsufficientDataError: empty input.
        InvalidRangeError: non-positive sampling interval.
    """
    values = np.asarray(values, dtype=np.float64).reshape(-1)
    n = len(values)
    if n == 0:
        raise InsufficientDataError("cannot transform an empty series")
    if not sampling_interval > 0:
        raise InvalidRangeError(f"sampling interval must be positive, got {sampling_interval}")

    padded_length = next_power_of_two(n)
    padded = np.zeros(padded_length)
    padded[:n] = values
    coefficients = np.fft.fft(padded)
    coefficients.flags.writeable = False

    half = padded_length // 2
    head = coefficients[:half]
    frequency = np.arange(half) / (padded_length * sampling_interval)
    wavelength = np.full(half, np.inf)
    wavelength[1:] = 1.0 / frequency[1:]
    power = np.abs(head) / padded_length
    phase = np.arctan2(head.imag, head.real)

    for arr in (frequency, wavelength, power, phase):
        arr.flags.writeable = False

    logger.debug("Transformed %d samples (padded to %d, dx=%.3f m)",
                 n, padded_length, sampling_interval)

    return PowerSpectrum(
        frequency=frequency,
        wavelength=wavelength,
        power=power,
        phase=phase,
        coefficients=coefficients,
        padded_length=padded_length,
        original_length=n,
        sampling_interval=float(sampling_interval),
    )


def inverse(coefficients, original_length: int) -> np.ndarray:
    """Inverse transform, keeping the real part trimmed to the pre-padding length."""
    coefficients = np.asarray(coefficients)
    if original_length > len(coefficients):
        raise InvalidRangeError(
            f"original length {original_length} exceeds transform length {len(coefficients)}")
    return np.fft.ifft(coefficients).real[:original_length]


def top_peaks(spectrum: PowerSpectrum, n_peaks: int = 5,
              min_wavelength: float = 1.0, max_wavelength: float = 200.0) -> list[tuple[float, float]]:
    """Strongest (wavelength, power) pairs inside a wavelength window."""
    mask = (spectrum.wavelength >= min_wavelength) & (spectrum.wavelength <= max_wavelength)
    w = spectrum.wavelength[mask]
    p = spectrum.power[mask]
    if len(p) == 0:
        return []
    indices = np.argsort(p)[-n_peaks:][::-1]
    return [(float(w[i]), float(p[i])) for i in indices]
