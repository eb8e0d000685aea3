"""
Categorical emission model over the integer symbols 0..n-1.
"""

from typing import Any, Optional, Sequence

import numpy as np

from .base import Opdf, OpdfFactory, normalize_weights, default_rng
from ..exceptions import InvalidModelError


class DiscreteOpdf(Opdf):
    """
    Probability table over a finite alphabet of integer symbols.

    Without explicit probabilities the distribution is uniform. Symbols
    outside the alphabet have probability zero.
    """

    def __init__(self, n_entries: Optional[int] = None, probabilities: Optional[Sequence[float]] = None):
        if probabilities is None:
            if n_entries is None or n_entries <= 0:
                raise InvalidModelError("Number of entries must be strictly positive")
            probabilities = np.ones(n_entries) / n_entries

        probabilities = np.array(probabilities, dtype=float)
        self._validate(probabilities)
        if n_entries is not None and n_entries != len(probabilities):
            raise InvalidModelError(
                f"n_entries={n_entries} doesn't match {len(probabilities)} probabilities"
            )
        self.probabilities = probabilities

    @staticmethod
    def _validate(probabilities: np.ndarray) -> None:
        if probabilities.ndim != 1 or len(probabilities) == 0:
            raise InvalidModelError("Probabilities must be a non-empty vector")
        if np.any(probabilities < 0):
            raise InvalidModelError("Probabilities contain negative values")
        if not np.isclose(probabilities.sum(), 1.0, atol=1e-9):
            raise InvalidModelError(f"Probabilities sum to {probabilities.sum()}, expected 1.0")

    @property
    def n_entries(self) -> int:
        return len(self.probabilities)

    def probability(self, observation: Any) -> float:
        symbol = int(observation)
        # Non-integral values are not symbols of the alphabet
        if symbol != observation or symbol < 0 or symbol >= self.n_entries:
            return 0.0
        return float(self.probabilities[symbol])

    def generate(self, rng: Optional[np.random.Generator] = None) -> int:
        return int(default_rng(rng).choice(self.n_entries, p=self.probabilities))

    def fit(self, observations: Sequence[Any], weights: Optional[Sequence[float]] = None) -> None:
        w = normalize_weights(observations, weights)
        values = np.asarray(observations, dtype=float)
        symbols = values.astype(int)
        if np.any(symbols != values):
            raise InvalidModelError("Observations must be integer symbols")
        if np.any(symbols < 0) or np.any(symbols >= self.n_entries):
            raise InvalidModelError(f"Observations must be in range [0, {self.n_entries - 1}]")

        self.probabilities = np.bincount(symbols, weights=w, minlength=self.n_entries)

    def describe(self) -> str:
        return "Integer distribution --- " + " ".join(f"{p:.4g}" for p in self.probabilities)


class DiscreteOpdfFactory(OpdfFactory):

    def __init__(self, n_entries: int):
        if n_entries <= 0:
            raise InvalidModelError("Number of entries must be strictly positive")
        self.n_entries = n_entries

    def generate(self) -> DiscreteOpdf:
        return DiscreteOpdf(self.n_entries)
