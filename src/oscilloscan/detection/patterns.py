"""Candidate periodic-pattern producers for one frequency bin."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator

import numpy as np
import numpy.typing as npt

from oscilloscan.domain.models import OscillationAlgorithm


FloatArray = npt.NDArray[np.float64]

SVD_ENERGY_THRESHOLD = 0.9


@dataclass(frozen=True, slots=True)
class CandidatePatterns:
    """Pattern vectors as columns, shape [sample_length, k], plus post-processing flags."""

    vectors: FloatArray
    window_count: int
    normalize_by_window_count: bool

    def __post_init__(self) -> None:
        if self.vectors.ndim != 2:
            raise ValueError("vectors must be a 2D array [sample_length, candidates]")
        if self.window_count <= 0:
            raise ValueError("window_count must be > 0")

    @property
    def count(self) -> int:
        return int(self.vectors.shape[1])

    def iter_vectors(self) -> Iterator[FloatArray]:
        """Yield each candidate pattern as a 1D vector."""
        for idx in range(self.count):
            yield self.vectors[:, idx]


def cumulative_energy_fraction(singular_values: npt.ArrayLike) -> FloatArray:
    """Running share of total squared singular-value energy, in the given order."""
    s = np.asarray(singular_values, dtype=np.float64)
    if s.ndim != 1:
        raise ValueError("singular_values must be 1D")
    energy = np.cumsum(np.square(s))
    if energy.size == 0 or energy[-1] <= 0:
        return np.zeros_like(energy)
    return np.asarray(energy / energy[-1], dtype=np.float64)


def significant_component_count(
    singular_values: npt.ArrayLike,
    *,
    threshold: float = SVD_ENERGY_THRESHOLD,
) -> int:
    """Smallest k whose leading components hold more than ``threshold`` of the energy."""
    if threshold < 0.0 or threshold >= 1.0:
        raise ValueError("threshold must be in [0, 1)")
    fractions = cumulative_energy_fraction(singular_values)
    hits = np.flatnonzero(fractions > threshold)
    if hits.size == 0:
        return 0
    return int(hits[0]) + 1


def direct_candidates(autocorrelations: npt.ArrayLike) -> CandidatePatterns:
    """Every window's autocorrelation is a candidate pattern."""
    a = _as_valid_autocorrelations(autocorrelations)
    return CandidatePatterns(
        vectors=a.copy(),
        window_count=a.shape[1],
        normalize_by_window_count=True,
    )


def svd_candidates(
    autocorrelations: npt.ArrayLike,
    *,
    threshold: float = SVD_ENERGY_THRESHOLD,
) -> CandidatePatterns:
    """Leading left singular vectors that carry the bulk of the autocorrelation energy.

    Singular vectors have arbitrary sign, so each one is flipped to start
    non-negative. Accumulated powers from these candidates are not divided by
    the window count.
    """
    a = _as_valid_autocorrelations(autocorrelations)
    u, singular_values, _ = np.linalg.svd(a, full_matrices=False)
    k = significant_component_count(singular_values, threshold=threshold)

    selected = np.array(u[:, :k], dtype=np.float64)
    if k:
        signs = np.where(selected[0] < 0.0, -1.0, 1.0)
        selected *= signs
    return CandidatePatterns(
        vectors=selected,
        window_count=a.shape[1],
        normalize_by_window_count=False,
    )


_PRODUCERS: dict[OscillationAlgorithm, Callable[[FloatArray], CandidatePatterns]] = {
    OscillationAlgorithm.DIRECT: direct_candidates,
    OscillationAlgorithm.SVD_FILTERED: svd_candidates,
}


def extract_candidates(
    autocorrelations: npt.ArrayLike,
    *,
    algorithm: OscillationAlgorithm,
) -> CandidatePatterns:
    """Produce candidate patterns with the producer registered for ``algorithm``."""
    try:
        producer = _PRODUCERS[algorithm]
    except KeyError as exc:
        raise ValueError(f"no pattern producer registered for {algorithm!r}") from exc
    return producer(np.asarray(autocorrelations, dtype=np.float64))


def _as_valid_autocorrelations(autocorrelations: npt.ArrayLike) -> FloatArray:
    a = np.asarray(autocorrelations, dtype=np.float64)
    if a.ndim != 2:
        raise ValueError("autocorrelations must be 2D [sample_length, windows]")
    if a.shape[0] < 2 or a.shape[1] < 1:
        raise ValueError("autocorrelations must have >= 2 lags and >= 1 window")
    if not np.all(np.isfinite(a)):
        raise ValueError("autocorrelations must contain only finite values")
    return a
