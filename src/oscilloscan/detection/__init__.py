"""Frequency-by-oscillation-rate detection engine and its contracts."""

from oscilloscan.detection.contracts import (
    DEFAULT_ALGORITHM,
    DEFAULT_SAMPLE_LENGTH,
    DEFAULT_SENSITIVITY,
    AnalysisCancelledError,
    ConfigurationError,
    OscillationAnalysis,
    OscillationConfig,
    UnsupportedAlgorithmError,
    parse_algorithm,
)
from oscilloscan.detection.engine import (
    accumulate_oscillations,
    analyze_spectrogram,
    bin_oscillation_vector,
    frequency_by_oscillation_matrix,
    spectral_index,
)
from oscilloscan.detection.patterns import (
    SVD_ENERGY_THRESHOLD,
    CandidatePatterns,
    cumulative_energy_fraction,
    direct_candidates,
    extract_candidates,
    significant_component_count,
    svd_candidates,
)

__all__ = [
    "DEFAULT_ALGORITHM",
    "DEFAULT_SAMPLE_LENGTH",
    "DEFAULT_SENSITIVITY",
    "SVD_ENERGY_THRESHOLD",
    "AnalysisCancelledError",
    "CandidatePatterns",
    "ConfigurationError",
    "OscillationAnalysis",
    "OscillationConfig",
    "UnsupportedAlgorithmError",
    "accumulate_oscillations",
    "analyze_spectrogram",
    "bin_oscillation_vector",
    "cumulative_energy_fraction",
    "direct_candidates",
    "extract_candidates",
    "frequency_by_oscillation_matrix",
    "parse_algorithm",
    "significant_component_count",
    "spectral_index",
    "svd_candidates",
]
