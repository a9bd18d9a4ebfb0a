"""Tests for the frequency-by-oscillation detection engine."""

from __future__ import annotations

import logging
import threading

import numpy as np
import pytest

from oscilloscan.detection import (
    AnalysisCancelledError,
    CandidatePatterns,
    ConfigurationError,
    OscillationConfig,
    UnsupportedAlgorithmError,
    accumulate_oscillations,
    analyze_spectrogram,
    bin_oscillation_vector,
    frequency_by_oscillation_matrix,
    spectral_index,
    svd_candidates,
)
from oscilloscan.domain import BinDiagnosticKind, OscillationAlgorithm
from oscilloscan.transforms import prepare_band_signal, score_periodicity, windowed_autocorrelation


def _pulse_train(frames: int, *, period: int, seed: int = 3) -> np.ndarray:
    """Smooth pulses repeating every ``period`` frames on a constant floor, with light noise."""
    t = np.arange(frames, dtype=np.float64)
    pulses = np.cos(np.pi * t / period) ** 8
    rng = np.random.default_rng(seed)
    return 10.0 + 5.0 * pulses + rng.normal(0.0, 0.05, size=frames)


def _single_bin_matrix(period: int = 16) -> np.ndarray:
    return _pulse_train(256, period=period)[:, None]


def test_direct_detects_pulse_rate() -> None:
    config = OscillationConfig(sensitivity=0.3, sample_length=128, algorithm=OscillationAlgorithm.DIRECT)
    analysis = analyze_spectrogram(_single_bin_matrix(), config)

    column = analysis.frequency_by_oscillation[:, 0]
    # 8 cycles per 128-frame window is FFT bin 8, rate bin 7.
    assert abs(int(np.argmax(column)) - 7) <= 1
    assert column.max() > 0.0
    assert analysis.spectral_index[0] > 0.0
    assert analysis.diagnostics == ()


def test_high_sensitivity_records_no_oscillation() -> None:
    config = OscillationConfig(sensitivity=0.99, sample_length=128, algorithm=OscillationAlgorithm.DIRECT)
    analysis = analyze_spectrogram(_single_bin_matrix(), config)

    assert np.array_equal(analysis.frequency_by_oscillation, np.zeros((64, 1)))
    assert analysis.spectral_index[0] == 0.0


def test_svd_variant_agrees_with_direct_peak() -> None:
    matrix = _single_bin_matrix()
    direct = analyze_spectrogram(
        matrix,
        OscillationConfig(sensitivity=0.3, algorithm=OscillationAlgorithm.DIRECT),
    )
    svd = analyze_spectrogram(
        matrix,
        OscillationConfig(sensitivity=0.3, algorithm=OscillationAlgorithm.SVD_FILTERED),
    )

    autocorrelations = windowed_autocorrelation(prepare_band_signal(matrix, 0).values, sample_length=128)
    assert svd_candidates(autocorrelations).count >= 1

    direct_peak = int(np.argmax(direct.frequency_by_oscillation[:, 0]))
    svd_peak = int(np.argmax(svd.frequency_by_oscillation[:, 0]))
    assert svd.frequency_by_oscillation[:, 0].max() > 0.0
    assert abs(svd_peak - direct_peak) <= 1
    assert svd.algorithm == OscillationAlgorithm.SVD_FILTERED


def test_peak_moves_with_modulation_period() -> None:
    config = OscillationConfig(algorithm=OscillationAlgorithm.DIRECT)
    analysis = analyze_spectrogram(_single_bin_matrix(period=8), config)

    assert abs(int(np.argmax(analysis.frequency_by_oscillation[:, 0])) - 15) <= 1


def test_unknown_algorithm_fails_before_processing(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(*_args: object, **_kwargs: object) -> None:
        raise AssertionError("no bin should be processed")

    monkeypatch.setattr("oscilloscan.detection.engine.bin_oscillation_vector", _fail)
    with pytest.raises(UnsupportedAlgorithmError):
        analyze_spectrogram(
            _single_bin_matrix(),
            OscillationConfig.from_mapping({"algorithm": "autocorr-wavelet"}),
        )


def test_odd_sample_length_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="even"):
        analyze_spectrogram(_single_bin_matrix(), OscillationConfig(sample_length=127))


@pytest.mark.parametrize("sample_length", [16, 64, 128])
def test_output_shapes_follow_config(sample_length: int) -> None:
    rng = np.random.default_rng(0)
    matrix = rng.uniform(0.0, 1.0, size=(300, 7))
    analysis = analyze_spectrogram(matrix, OscillationConfig(sample_length=sample_length))

    assert analysis.frequency_by_oscillation.shape == (sample_length // 2, 7)
    assert analysis.spectral_index.shape == (7,)
    assert analysis.rate_bin_count == sample_length // 2


def test_constant_band_yields_zero_column_and_diagnostic(caplog: pytest.LogCaptureFixture) -> None:
    matrix = np.full((256, 5), 3.0)
    pulse = _pulse_train(256, period=16)
    for bin_index in (2, 3, 4):
        matrix[:, bin_index] = pulse

    caplog.set_level(logging.WARNING, logger="oscilloscan.detection.engine")
    analysis = analyze_spectrogram(matrix, OscillationConfig(algorithm=OscillationAlgorithm.DIRECT))

    assert np.array_equal(analysis.frequency_by_oscillation[:, 0], np.zeros(64))
    assert analysis.spectral_index[0] == 0.0
    assert analysis.degenerate_bins == (0,)
    assert analysis.diagnostics[0].kind == BinDiagnosticKind.ZERO_VARIANCE
    assert analysis.spectral_index[3] > 0.0
    assert "zero_variance" in caplog.text


def test_all_constant_matrix_never_raises() -> None:
    analysis = analyze_spectrogram(np.ones((256, 3)), OscillationConfig())

    assert np.array_equal(analysis.frequency_by_oscillation, np.zeros((64, 3)))
    assert np.array_equal(analysis.spectral_index, np.zeros(3))
    assert analysis.degenerate_bins == (0, 1, 2)


@pytest.mark.parametrize("level", [0.1, 0.3, 3.3, 1e-3, 7.77])
def test_constant_non_dyadic_bands_are_flagged_zero_variance(level: float) -> None:
    analysis = analyze_spectrogram(np.full((256, 3), level), OscillationConfig())

    assert np.array_equal(analysis.frequency_by_oscillation, np.zeros((64, 3)))
    assert analysis.degenerate_bins == (0, 1, 2)
    assert {diagnostic.kind for diagnostic in analysis.diagnostics} == {BinDiagnosticKind.ZERO_VARIANCE}


def test_short_matrix_records_too_few_frames() -> None:
    rng = np.random.default_rng(1)
    analysis = analyze_spectrogram(rng.normal(size=(100, 2)), OscillationConfig(sample_length=128))

    assert np.array_equal(analysis.frequency_by_oscillation, np.zeros((64, 2)))
    assert {diagnostic.kind for diagnostic in analysis.diagnostics} == {BinDiagnosticKind.TOO_FEW_FRAMES}


def test_analysis_is_deterministic() -> None:
    rng = np.random.default_rng(9)
    matrix = rng.normal(size=(512, 6))
    matrix[:, 2] += 4.0 * _pulse_train(512, period=16)
    config = OscillationConfig(sample_length=64)

    first = analyze_spectrogram(matrix, config)
    second = analyze_spectrogram(matrix, config)

    assert np.array_equal(first.frequency_by_oscillation, second.frequency_by_oscillation)
    assert np.array_equal(first.spectral_index, second.spectral_index)


def test_parallel_workers_match_sequential() -> None:
    rng = np.random.default_rng(4)
    matrix = rng.normal(size=(384, 9))
    matrix[:, 4] += 4.0 * _pulse_train(384, period=8)

    sequential = analyze_spectrogram(matrix, OscillationConfig(sample_length=64))
    parallel = analyze_spectrogram(matrix, OscillationConfig(sample_length=64, max_workers=4))

    assert np.allclose(sequential.frequency_by_oscillation, parallel.frequency_by_oscillation)
    assert np.allclose(sequential.spectral_index, parallel.spectral_index)


@pytest.mark.parametrize("max_workers", [1, 3])
def test_cancelled_analysis_raises(max_workers: int) -> None:
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(AnalysisCancelledError, match="cancelled"):
        analyze_spectrogram(
            np.ones((256, 4)),
            OscillationConfig(max_workers=max_workers),
            cancel_event=cancel,
        )


def test_frequency_by_oscillation_matrix_matches_analysis() -> None:
    config = OscillationConfig(algorithm=OscillationAlgorithm.DIRECT)
    matrix = _single_bin_matrix()

    assert np.array_equal(
        frequency_by_oscillation_matrix(matrix, config),
        analyze_spectrogram(matrix, config).frequency_by_oscillation,
    )


def test_bin_oscillation_vector_length_is_half_sample_length() -> None:
    vector, diagnostic = bin_oscillation_vector(
        _single_bin_matrix(),
        0,
        OscillationConfig(sample_length=32),
    )

    assert vector.shape == (16,)
    assert diagnostic is None


def test_window_count_normalization_only_for_direct_candidates() -> None:
    n = np.arange(128, dtype=np.float64)
    pattern = np.cos(2.0 * np.pi * 8 * n / 128)
    vectors = np.stack([pattern] * 4, axis=1)
    peak_power = score_periodicity(pattern).peak_power

    direct = accumulate_oscillations(
        CandidatePatterns(vectors=vectors, window_count=4, normalize_by_window_count=True),
        sensitivity=0.3,
        rate_bin_count=64,
    )
    svd = accumulate_oscillations(
        CandidatePatterns(vectors=vectors, window_count=4, normalize_by_window_count=False),
        sensitivity=0.3,
        rate_bin_count=64,
    )

    assert direct[7] == pytest.approx(np.log10(1.0 + peak_power))
    assert svd[7] == pytest.approx(np.log10(1.0 + 4.0 * peak_power))
    assert np.count_nonzero(direct) == 1


def test_spectral_index_skips_lowest_rate_row() -> None:
    matrix = np.asarray([[5.0, 5.0], [1.0, 2.0], [3.0, 4.0]])

    assert np.allclose(spectral_index(matrix), np.asarray([4.0, 6.0]))
    assert np.allclose(spectral_index(matrix, skip_count=0), np.asarray([9.0, 11.0]))


@pytest.mark.parametrize(
    "matrix",
    [np.arange(10, dtype=np.float64), np.zeros((0, 3)), np.asarray([[1.0, np.nan], [2.0, 3.0]])],
)
def test_invalid_matrix_is_configuration_error(matrix: np.ndarray) -> None:
    with pytest.raises(ConfigurationError, match="matrix"):
        analyze_spectrogram(matrix, OscillationConfig(sample_length=2))
