"""Band-signal preparation and windowed autocorrelation transforms."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt


FloatArray = npt.NDArray[np.float64]


@dataclass(frozen=True, slots=True)
class PreparedSignal:
    """Z-scored time signal of one frequency band."""

    values: FloatArray
    degenerate: bool = False

    @property
    def length(self) -> int:
        return int(self.values.size)


def band_average(matrix: npt.ArrayLike, bin_index: int) -> FloatArray:
    """Average one bin with its immediate neighbours, clipped at the matrix edges."""
    m = np.asarray(matrix, dtype=np.float64)
    if m.ndim != 2:
        raise ValueError("matrix must be 2D [frames, bins]")
    bin_count = m.shape[1]
    if bin_index < 0 or bin_index >= bin_count:
        raise ValueError(f"bin_index must be in [0, {bin_count})")

    lo = max(0, bin_index - 1)
    hi = min(bin_count - 1, bin_index + 1)
    return np.asarray(np.mean(m[:, lo : hi + 1], axis=1), dtype=np.float64)


def zscore_signal(signal: npt.ArrayLike) -> PreparedSignal:
    """Normalize to zero mean and unit standard deviation.

    A constant signal has no defined z-score; it comes back as all zeros
    with ``degenerate`` set.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError("signal must be 1D")
    if x.size == 0:
        raise ValueError("signal must not be empty")

    # np.std of a constant is not exactly zero after rounding.
    if not np.all(np.isfinite(x)) or float(np.ptp(x)) == 0.0:
        return PreparedSignal(values=np.zeros_like(x), degenerate=True)
    std = float(np.std(x))
    if not np.isfinite(std) or std <= 0.0:
        return PreparedSignal(values=np.zeros_like(x), degenerate=True)
    return PreparedSignal(values=(x - float(np.mean(x))) / std)


def prepare_band_signal(matrix: npt.ArrayLike, bin_index: int) -> PreparedSignal:
    """Derive the normalized time signal for one frequency bin."""
    return zscore_signal(band_average(matrix, bin_index))


def non_overlapping_windows(signal: npt.ArrayLike, *, window_size: int) -> FloatArray:
    """Split a signal into contiguous windows with shape [num_windows, window_size].

    Trailing samples that do not fill a whole window are dropped.
    """
    if window_size <= 0:
        raise ValueError("window_size must be > 0")

    x = np.asarray(signal, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError("signal must be 1D")
    if x.size < window_size:
        raise ValueError("signal length must be >= window_size")

    num_windows = x.size // window_size
    return x[: num_windows * window_size].reshape(num_windows, window_size)


def autocorrelation(window: npt.ArrayLike) -> FloatArray:
    """Unbiased autocorrelation for lags 0..N-1, each lag averaged over its N - lag products."""
    x = np.asarray(window, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError("window must be 1D")
    if x.size == 0:
        raise ValueError("window must not be empty")

    n = x.size
    full = np.correlate(x, x, mode="full")
    lag_sums = full[n - 1 :]
    return np.asarray(lag_sums / np.arange(n, 0, -1, dtype=np.float64), dtype=np.float64)


def windowed_autocorrelation(signal: npt.ArrayLike, *, sample_length: int) -> FloatArray:
    """Autocorrelation of each non-overlapping window, shape [sample_length, window_count]."""
    windows = non_overlapping_windows(signal, window_size=sample_length)
    columns = [autocorrelation(window) for window in windows]
    return np.stack(columns, axis=1)


def dynamic_ranges(signal: npt.ArrayLike, *, sample_length: int) -> FloatArray:
    """Amplitude range (max - min) of each non-overlapping window."""
    windows = non_overlapping_windows(signal, window_size=sample_length)
    return np.asarray(np.ptp(windows, axis=1), dtype=np.float64)
