"""Core domain models for oscillation detection."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class OscillationAlgorithm(StrEnum):
    """Candidate-pattern producers available to the detection engine."""

    DIRECT = "autocorr-fft"
    SVD_FILTERED = "autocorr-svd-fft"


class BinDiagnosticKind(StrEnum):
    """Per-bin conditions that zero a column instead of failing the run."""

    ZERO_VARIANCE = "zero_variance"
    TOO_FEW_FRAMES = "too_few_frames"


@dataclass(frozen=True, slots=True)
class BinDiagnostic:
    """Diagnostic recorded for one frequency bin."""

    bin_index: int
    kind: BinDiagnosticKind
    detail: str = ""

    def __post_init__(self) -> None:
        if self.bin_index < 0:
            raise ValueError("bin_index must be >= 0")

    def describe(self) -> str:
        """Return a one-line human readable description."""
        suffix = f": {self.detail}" if self.detail else ""
        return f"bin {self.bin_index} {self.kind.value}{suffix}"
