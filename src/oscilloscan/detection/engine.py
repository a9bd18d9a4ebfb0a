"""Frequency-by-oscillation-rate detection engine."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable

import numpy as np
import numpy.typing as npt

from oscilloscan.detection.contracts import (
    AnalysisCancelledError,
    ConfigurationError,
    OscillationAnalysis,
    OscillationConfig,
)
from oscilloscan.detection.patterns import CandidatePatterns, extract_candidates
from oscilloscan.domain.models import BinDiagnostic, BinDiagnosticKind
from oscilloscan.transforms.frequency import log_compress, score_periodicity
from oscilloscan.transforms.windowing import prepare_band_signal, windowed_autocorrelation


FloatArray = npt.NDArray[np.float64]

SPECTRAL_INDEX_SKIP_ROWS = 1

logger = logging.getLogger(__name__)


def accumulate_oscillations(
    candidates: CandidatePatterns,
    *,
    sensitivity: float,
    rate_bin_count: int,
) -> FloatArray:
    """Sum the local peak power of every significant candidate into its rate bin.

    The result is normalized by window count when the producer asks for it
    and then log-compressed.
    """
    accumulator = np.zeros(rate_bin_count, dtype=np.float64)
    for pattern in candidates.iter_vectors():
        score = score_periodicity(pattern)
        if score.is_significant(sensitivity=sensitivity, rate_bin_count=rate_bin_count):
            accumulator[score.peak_index] += score.peak_power

    if candidates.normalize_by_window_count:
        accumulator /= candidates.window_count
    return log_compress(accumulator)


def bin_oscillation_vector(
    matrix: npt.ArrayLike,
    bin_index: int,
    config: OscillationConfig,
) -> tuple[FloatArray, BinDiagnostic | None]:
    """Oscillation vector of one frequency bin, or zeros plus a diagnostic when degenerate."""
    m = np.asarray(matrix, dtype=np.float64)
    zeros = np.zeros(config.rate_bin_count, dtype=np.float64)

    frame_count = m.shape[0]
    if frame_count < config.sample_length:
        return zeros, BinDiagnostic(
            bin_index=bin_index,
            kind=BinDiagnosticKind.TOO_FEW_FRAMES,
            detail=f"{frame_count} frames < sample_length {config.sample_length}",
        )

    signal = prepare_band_signal(m, bin_index)
    if signal.degenerate:
        return zeros, BinDiagnostic(
            bin_index=bin_index,
            kind=BinDiagnosticKind.ZERO_VARIANCE,
            detail="band signal has zero standard deviation",
        )

    autocorrelations = windowed_autocorrelation(signal.values, sample_length=config.sample_length)
    candidates = extract_candidates(autocorrelations, algorithm=config.algorithm)
    vector = accumulate_oscillations(
        candidates,
        sensitivity=config.sensitivity,
        rate_bin_count=config.rate_bin_count,
    )
    return vector, None


def frequency_by_oscillation_matrix(
    matrix: npt.ArrayLike,
    config: OscillationConfig | None = None,
    *,
    cancel_event: threading.Event | None = None,
) -> FloatArray:
    """Matrix [sample_length / 2, bin_count] of log-compressed oscillation power."""
    resolved = OscillationConfig() if config is None else config
    freq_by_osc, _ = _assemble(_as_valid_spectrogram(matrix), resolved, cancel_event)
    return freq_by_osc


def spectral_index(
    freq_by_osc: npt.ArrayLike,
    *,
    skip_count: int = SPECTRAL_INDEX_SKIP_ROWS,
) -> FloatArray:
    """Column sums of a frequency-by-oscillation matrix, skipping the lowest rate rows."""
    m = np.asarray(freq_by_osc, dtype=np.float64)
    if m.ndim != 2:
        raise ValueError("freq_by_osc must be 2D [rate_bins, frequency_bins]")
    if skip_count < 0:
        raise ValueError("skip_count must be >= 0")
    return np.asarray(np.sum(m[skip_count:, :], axis=0), dtype=np.float64)


def analyze_spectrogram(
    matrix: npt.ArrayLike,
    config: OscillationConfig | None = None,
    *,
    cancel_event: threading.Event | None = None,
) -> OscillationAnalysis:
    """Run detection over every frequency bin and reduce the result to a spectral index."""
    resolved = OscillationConfig() if config is None else config
    m = _as_valid_spectrogram(matrix)

    freq_by_osc, diagnostics = _assemble(m, resolved, cancel_event)
    return OscillationAnalysis(
        frequency_by_oscillation=freq_by_osc,
        spectral_index=spectral_index(freq_by_osc),
        algorithm=resolved.algorithm,
        sample_length=resolved.sample_length,
        diagnostics=diagnostics,
    )


def _assemble(
    matrix: FloatArray,
    config: OscillationConfig,
    cancel_event: threading.Event | None,
) -> tuple[FloatArray, tuple[BinDiagnostic, ...]]:
    frame_count, bin_count = matrix.shape
    logger.debug(
        "Oscillation analysis: frames=%d bins=%d sample_length=%d algorithm=%s workers=%d",
        frame_count,
        bin_count,
        config.sample_length,
        config.algorithm.value,
        config.max_workers,
    )
    if frame_count % config.sample_length:
        logger.debug(
            "Dropping %d trailing frames that do not fill a window",
            frame_count % config.sample_length,
        )

    out = np.zeros((config.rate_bin_count, bin_count), dtype=np.float64)
    diagnostics: list[BinDiagnostic] = []

    def run_bin(bin_index: int) -> BinDiagnostic | None:
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError(f"analysis cancelled before bin {bin_index}")
        vector, diagnostic = bin_oscillation_vector(matrix, bin_index, config)
        # Each bin owns exactly one column.
        out[:, bin_index] = vector
        return diagnostic

    try:
        if config.max_workers == 1 or bin_count == 1:
            results = [run_bin(bin_index) for bin_index in range(bin_count)]
        else:
            results = _run_parallel(run_bin, bin_count, config.max_workers)
    except AnalysisCancelledError:
        logger.info("Oscillation analysis cancelled")
        raise

    for diagnostic in results:
        if diagnostic is None:
            continue
        logger.warning("Zeroed oscillation column: %s", diagnostic.describe())
        diagnostics.append(diagnostic)

    return out, tuple(diagnostics)


def _run_parallel(
    run_bin: Callable[[int], BinDiagnostic | None],
    bin_count: int,
    max_workers: int,
) -> list[BinDiagnostic | None]:
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="oscilloscan") as pool:
        futures = [pool.submit(run_bin, bin_index) for bin_index in range(bin_count)]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()
        for future in done:
            exc = future.exception()
            if exc is not None:
                raise exc
        return [future.result() for future in futures]


def _as_valid_spectrogram(matrix: npt.ArrayLike) -> FloatArray:
    m = np.asarray(matrix, dtype=np.float64)
    if m.ndim != 2:
        raise ConfigurationError("matrix must be 2D [frames, bins]")
    if m.shape[0] == 0 or m.shape[1] == 0:
        raise ConfigurationError("matrix must have at least one frame and one bin")
    if not np.all(np.isfinite(m)):
        raise ConfigurationError("matrix must contain only finite values")
    return m
