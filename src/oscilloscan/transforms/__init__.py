"""Signal transforms for band preparation, autocorrelation and periodicity scoring."""

from oscilloscan.transforms.frequency import (
    LOW_RATE_CORRECTION,
    PeriodicityScore,
    log_compress,
    oscillation_rates_hz,
    periodicity_power_spectrum,
    score_periodicity,
)
from oscilloscan.transforms.windowing import (
    PreparedSignal,
    autocorrelation,
    band_average,
    dynamic_ranges,
    non_overlapping_windows,
    prepare_band_signal,
    windowed_autocorrelation,
    zscore_signal,
)

__all__ = [
    "LOW_RATE_CORRECTION",
    "PeriodicityScore",
    "PreparedSignal",
    "autocorrelation",
    "band_average",
    "dynamic_ranges",
    "log_compress",
    "non_overlapping_windows",
    "oscillation_rates_hz",
    "periodicity_power_spectrum",
    "prepare_band_signal",
    "score_periodicity",
    "windowed_autocorrelation",
    "zscore_signal",
]
