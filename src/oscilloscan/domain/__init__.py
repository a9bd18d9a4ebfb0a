"""Domain models for oscillation algorithms and per-bin diagnostics."""

from oscilloscan.domain.models import BinDiagnostic, BinDiagnosticKind, OscillationAlgorithm

__all__ = [
    "BinDiagnostic",
    "BinDiagnosticKind",
    "OscillationAlgorithm",
]
