"""
Decomposition of irregularity into named wavelength bands.

Used for diagnostic reporting (which physical cause dominates) and for
before/after comparisons of a maintenance plan.
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .config import ANALYSIS_WAVELENGTH_RANGE, WavebandOptions
from .errors import InsufficientDataError
from .log import get_logger
from .models import PowerSpectrum, RestoredWaveform, SeriesStatistics, SpectralPoint, WavebandDefinition
from .restoration import as_series, resolve_sampling_interval, restore, series_statistics
from .spectrum import transform

logger = get_logger(__name__)


@dataclass(frozen=True)
class BandResult:
    band: WavebandDefinition
    restored: RestoredWaveform
    power: float                 # sqrt(mean(power^2)) over in-band spectral points
    energy: float                # sum(power^2) over in-band spectral points
    point_count: int
    statistics: SeriesStatistics
    contribution_percent: float

    def to_dict(self) -> dict:
        return {
            "name": self.band.name,
            "range": self.band.label,
            "power": self.power,
            "energy": self.energy,
            "contribution_percent": self.contribution_percent,
            "statistics": self.statistics.to_dict(),
        }


@dataclass(frozen=True)
class WavebandAnalysis:
    bands: tuple
    spectrum: PowerSpectrum
    total_energy: float
    dominant_wavelength: Optional[SpectralPoint]
    effective_wavelength: float
    statistics: SeriesStatistics    # of the input series

    def band(self, name: str) -> BandResult:
        for result in self.bands:
            if result.band.name == name:
                return result
        raise KeyError(name)

    @property
    def contributions(self) -> dict:
        return {b.band.name: b.contribution_percent for b in self.bands}

    def to_dict(self) -> dict:
        return {
            "wavebands": [b.to_dict() for b in self.bands],
            "dominant_wavelength": (
                self.dominant_wavelength.wavelength if self.dominant_wavelength else None),
            "effective_wavelength": self.effective_wavelength,
            "total_energy": self.total_energy,
            "statistics": self.statistics.to_dict(),
        }


@dataclass(frozen=True)
class BandImprovement:
    name: str
    wavelength_range: str
    before_power: float
    after_power: float
    reduction_percent: float
    before_contribution: float
    after_contribution: float
    needs_correction: bool


@dataclass(frozen=True)
class ImprovementReport:
    improvements: tuple
    overall_reduction: float
    recommendations: list = field(default_factory=list)

    @property
    def bands_needing_correction(self) -> list[str]:
        return [i.name for i in self.improvements if i.needs_correction]


def band_energy(spectrum: PowerSpectrum, band: WavebandDefinition) -> tuple[float, float, int]:
    """(rms power, energy, point count) of the spectral points inside a band."""
    mask = band.contains(spectrum.wavelength)
    count = int(np.sum(mask))
    if count == 0:
        return 0.0, 0.0, 0
    squared = spectrum.power[mask] ** 2
    return float(np.sqrt(np.mean(squared))), float(np.sum(squared)), count


def dominant_wavelength(spectrum: PowerSpectrum,
                        wavelength_range: tuple = ANALYSIS_WAVELENGTH_RANGE) -> Optional[SpectralPoint]:
    """Strongest spectral point within the analysis window, None if nothing there."""
    lo, hi = wavelength_range
    candidates = np.where((spectrum.wavelength >= lo) & (spectrum.wavelength <= hi))[0]
    if len(candidates) == 0:
        return None
    best = candidates[int(np.argmax(spectrum.power[candidates]))]
    if spectrum.power[best] <= 0:
        return None
    return spectrum.point(int(best))


def effective_wavelength(spectrum: PowerSpectrum,
                         wavelength_range: tuple = ANALYSIS_WAVELENGTH_RANGE) -> float:
    """Power^2-weighted mean wavelength within the analysis window."""
    lo, hi = wavelength_range
    mask = (spectrum.wavelength >= lo) & (spectrum.wavelength <= hi)
    weights = spectrum.power[mask] ** 2
    total = float(np.sum(weights))
    if total <= 0:
        return 0.0
    return float(np.sum(spectrum.wavelength[mask] * weights) / total)


def decompose(series, options: WavebandOptions = WavebandOptions()) -> WavebandAnalysis:
    """
    Restore the series in every configured band and collect band statistics.

    contribution_percent is the band's share of the total spectral energy
    (sum of power^2 over all N/2 spectral points), so a complete,
    non-overlapping band set accounts for 100 %.

    Raises:
        InsufficientDataError: fewer than two samples.
    """
    series = as_series(series, options.sampling_interval)
    if len(series) < 2:
        raise InsufficientDataError(f"waveband analysis needs at least 2 samples, got {len(series)}")
    dx = resolve_sampling_interval(series, options.sampling_interval)

    values = np.nan_to_num(np.asarray(series.value, dtype=np.float64))
    spectrum = transform(values, dx)
    total_energy = float(np.sum(spectrum.power ** 2))

    results = []
    for band in options.bands:
        # restore() rejects a zero lower bound; a 0 m band edge means "everything short"
        lower = band.min_wavelength if band.min_wavelength > 0 else dx / 2
        restored = restore(series, lower, band.max_wavelength, dx, include_max=False)
        power, energy, count = band_energy(spectrum, band)
        contribution = energy / total_energy * 100.0 if total_energy > 0 else 0.0
        results.append(BandResult(
            band=band,
            restored=restored,
            power=power,
            energy=energy,
            point_count=count,
            statistics=series_statistics(restored.value),
            contribution_percent=contribution,
        ))
        logger.debug("Band %s: power=%.4f contribution=%.1f%% (%d points)",
                     band.name, power, contribution, count)

    return WavebandAnalysis(
        bands=tuple(results),
        spectrum=spectrum,
        total_energy=total_energy,
        dominant_wavelength=dominant_wavelength(spectrum),
        effective_wavelength=effective_wavelength(spectrum),
        statistics=series_statistics(series.value),
    )


def compare_wavebands(before, after, options: WavebandOptions = WavebandOptions()) -> ImprovementReport:
    """
    Per-band power reduction between a "before" and an "after" series.

    Bands whose reduction is below options.improvement_threshold percent are
    flagged as needing further correction.
    """
    before_analysis = decompose(before, options)
    after_analysis = decompose(after, options)

    improvements = []
    recommendations = []
    for b, a in zip(before_analysis.bands, after_analysis.bands):
        reduction = (b.power - a.power) / b.power * 100.0 if b.power > 0 else 0.0
        needs_correction = reduction < options.improvement_threshold
        improvements.append(BandImprovement(
            name=b.band.name,
            wavelength_range=b.band.label,
            before_power=b.power,
            after_power=a.power,
            reduction_percent=reduction,
            before_contribution=b.contribution_percent,
            after_contribution=a.contribution_percent,
            needs_correction=needs_correction,
        ))
        if needs_correction:
            recommendations.append(
                f"{b.band.name} band ({b.band.label}) improved only {reduction:.1f}%; "
                f"consider adjusting the correction parameters")

    before_total = before_analysis.total_energy
    overall = ((before_total - after_analysis.total_energy) / before_total * 100.0
               if before_total > 0 else 0.0)

    return ImprovementReport(
        improvements=tuple(improvements),
        overall_reduction=overall,
        recommendations=recommendations,
    )
