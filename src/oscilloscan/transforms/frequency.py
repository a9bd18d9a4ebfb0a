"""Periodicity spectrum estimation for autocorrelation patterns."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import cast

import numpy as np
import numpy.typing as npt
from scipy.signal import get_window


FloatArray = npt.NDArray[np.float64]

# Damps the first rate bin, which otherwise tends to dominate the spectrum.
LOW_RATE_CORRECTION = 0.66


@dataclass(frozen=True, slots=True)
class PeriodicityScore:
    """Dominant oscillation rate of one candidate pattern and its local power."""

    peak_index: int
    peak_power: float
    total_power: float

    @property
    def ratio(self) -> float:
        """Fraction of spectrum power concentrated around the peak."""
        if self.total_power <= 0:
            return 0.0
        return self.peak_power / self.total_power

    def is_significant(self, *, sensitivity: float, rate_bin_count: int) -> bool:
        """Whether this peak should be accumulated into an oscillation vector."""
        if self.total_power <= 0:
            return False
        return self.ratio > sensitivity and self.peak_index < rate_bin_count


def oscillation_rates_hz(sample_length: int, frames_per_second: float) -> FloatArray:
    """Oscillations per second represented by each rate bin.

    Rate bin ``m`` is FFT bin ``m + 1`` of a ``sample_length`` autocorrelation.
    """
    _validate_rate_params(sample_length=sample_length, frames_per_second=frames_per_second)
    bin_width = frames_per_second / sample_length
    return cast(
        FloatArray,
        np.arange(1, sample_length // 2 + 1, dtype=np.float64) * bin_width,
    )


def periodicity_power_spectrum(pattern: npt.ArrayLike) -> FloatArray:
    """Power spectrum of a detrended, Hamming-windowed pattern without DC and Nyquist bins."""
    x = _as_valid_pattern(pattern)
    detrended = x - float(np.mean(x))
    windowed = detrended * _hamming(x.size)
    mags = np.abs(np.fft.rfft(windowed))[1:-1]
    if mags.size:
        mags[0] *= LOW_RATE_CORRECTION
    return np.asarray(np.square(mags), dtype=np.float64)


def score_periodicity(pattern: npt.ArrayLike) -> PeriodicityScore:
    """Locate the dominant rate bin and sum the power of it and its two neighbours."""
    power = periodicity_power_spectrum(pattern)
    if power.size == 0:
        return PeriodicityScore(peak_index=0, peak_power=0.0, total_power=0.0)

    total = float(np.sum(power))
    peak = int(np.argmax(power))
    last = power.size - 1

    # A missing neighbour at either edge is replaced by the peak itself.
    local = float(power[peak])
    local += float(power[peak - 1]) if peak > 0 else float(power[peak])
    local += float(power[peak + 1]) if peak < last else float(power[peak])

    return PeriodicityScore(peak_index=peak, peak_power=local, total_power=total)


def log_compress(values: npt.ArrayLike) -> FloatArray:
    """Map values below 1.0 to zero and the rest to log10(1 + value)."""
    x = np.asarray(values, dtype=np.float64)
    out = np.zeros_like(x)
    keep = x >= 1.0
    out[keep] = np.log10(1.0 + x[keep])
    return out


@lru_cache(maxsize=16)
def _hamming(size: int) -> FloatArray:
    window = np.asarray(get_window("hamming", size, fftbins=False), dtype=np.float64)
    window.setflags(write=False)
    return window


def _as_valid_pattern(pattern: npt.ArrayLike) -> FloatArray:
    x = np.asarray(pattern, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError("pattern must be 1D")
    if x.size < 2:
        raise ValueError("pattern must have at least 2 samples")
    if not np.all(np.isfinite(x)):
        raise ValueError("pattern must contain only finite values")
    return x


def _validate_rate_params(*, sample_length: int, frames_per_second: float) -> None:
    if sample_length < 2:
        raise ValueError("sample_length must be >= 2")
    if frames_per_second <= 0:
        raise ValueError("frames_per_second must be > 0")
