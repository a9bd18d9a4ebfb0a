"""Configuration, error and result contracts for the oscillation detection engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import numpy as np
import numpy.typing as npt

from oscilloscan.domain.models import BinDiagnostic, OscillationAlgorithm


FloatArray = npt.NDArray[np.float64]

DEFAULT_SAMPLE_LENGTH = 128
DEFAULT_SENSITIVITY = 0.3
DEFAULT_ALGORITHM = OscillationAlgorithm.SVD_FILTERED


class ConfigurationError(ValueError):
    """Invalid engine configuration or input matrix; raised before any bin is processed."""


class UnsupportedAlgorithmError(ConfigurationError):
    """Requested candidate-pattern algorithm is not available."""


class AnalysisCancelledError(RuntimeError):
    """Caller cancelled an analysis before every bin was processed."""


def parse_algorithm(name: str | OscillationAlgorithm) -> OscillationAlgorithm:
    """Resolve an algorithm name, raising for anything unrecognized."""
    if isinstance(name, OscillationAlgorithm):
        return name
    if not isinstance(name, str):
        raise UnsupportedAlgorithmError(f"algorithm must be a string, got {type(name).__name__}")
    normalized = name.strip().lower()
    try:
        return OscillationAlgorithm(normalized)
    except ValueError as exc:
        supported = ", ".join(algorithm.value for algorithm in OscillationAlgorithm)
        raise UnsupportedAlgorithmError(
            f"unsupported algorithm {name!r}; expected one of: {supported}"
        ) from exc


@dataclass(frozen=True, slots=True)
class OscillationConfig:
    """Immutable parameters for one frequency-by-oscillation analysis."""

    sensitivity: float = DEFAULT_SENSITIVITY
    sample_length: int = DEFAULT_SAMPLE_LENGTH
    algorithm: OscillationAlgorithm = DEFAULT_ALGORITHM
    max_workers: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "algorithm", parse_algorithm(self.algorithm))

        if isinstance(self.sample_length, bool) or not isinstance(self.sample_length, (int, np.integer)):
            raise ConfigurationError("sample_length must be an integer")
        if self.sample_length <= 0:
            raise ConfigurationError("sample_length must be > 0")
        if self.sample_length % 2 != 0:
            raise ConfigurationError("sample_length must be even")
        if isinstance(self.sensitivity, bool) or not isinstance(
            self.sensitivity, (int, float, np.integer, np.floating)
        ):
            raise ConfigurationError("sensitivity must be a number")
        if not np.isfinite(self.sensitivity) or self.sensitivity <= 0.0 or self.sensitivity > 1.0:
            raise ConfigurationError("sensitivity must be in (0, 1]")
        if isinstance(self.max_workers, bool) or not isinstance(self.max_workers, (int, np.integer)):
            raise ConfigurationError("max_workers must be an integer")
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be >= 1")

    @property
    def rate_bin_count(self) -> int:
        """Number of oscillation-rate rows in the output matrix."""
        return self.sample_length // 2

    @classmethod
    def from_mapping(cls, values: Mapping[str, str | int | float]) -> OscillationConfig:
        """Build a config from flat key/value settings; absent keys keep their defaults."""
        kwargs: dict[str, object] = {}
        try:
            if "sensitivity" in values:
                kwargs["sensitivity"] = float(values["sensitivity"])
            if "sample_length" in values:
                kwargs["sample_length"] = int(values["sample_length"])
            if "max_workers" in values:
                kwargs["max_workers"] = int(values["max_workers"])
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"invalid oscillation setting: {exc}") from exc
        if "algorithm" in values:
            kwargs["algorithm"] = parse_algorithm(str(values["algorithm"]))
        return cls(**kwargs)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class OscillationAnalysis:
    """Frequency-by-oscillation matrix and its spectral index for one spectrogram."""

    frequency_by_oscillation: FloatArray
    spectral_index: FloatArray
    algorithm: OscillationAlgorithm
    sample_length: int
    diagnostics: tuple[BinDiagnostic, ...] = ()

    def __post_init__(self) -> None:
        if self.frequency_by_oscillation.ndim != 2:
            raise ValueError("frequency_by_oscillation must be 2D [rate_bins, frequency_bins]")
        if self.frequency_by_oscillation.shape[0] != self.sample_length // 2:
            raise ValueError("frequency_by_oscillation row count must equal sample_length / 2")
        if self.spectral_index.shape != (self.frequency_by_oscillation.shape[1],):
            raise ValueError("spectral_index length must match frequency bin count")

    @property
    def rate_bin_count(self) -> int:
        return int(self.frequency_by_oscillation.shape[0])

    @property
    def bin_count(self) -> int:
        return int(self.frequency_by_oscillation.shape[1])

    @property
    def degenerate_bins(self) -> tuple[int, ...]:
        """Frequency bins whose column was zeroed by a diagnostic."""
        return tuple(sorted({diagnostic.bin_index for diagnostic in self.diagnostics}))
