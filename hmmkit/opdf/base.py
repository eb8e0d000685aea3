"""
Observation probability distribution function (Opdf) contract.

Every emission model used by the HMM classes implements this interface.
Calculators and learners only ever call these methods, never anything
specific to a concrete distribution.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import numpy as np

from ..exceptions import DegenerateFitError, InvalidSequenceError


class Opdf(ABC):
    """Emission model attached to a single HMM state."""

    @abstractmethod
    def probability(self, observation: Any) -> float:
        """Probability mass (discrete) or density (continuous) of an observation."""

    def log_probability(self, observation: Any) -> float:
        p = self.probability(observation)
        if p <= 0.0:
            return float('-inf')
        return float(np.log(p))

    @abstractmethod
    def generate(self, rng: Optional[np.random.Generator] = None) -> Any:
        """Draw one observation from the distribution."""

    @abstractmethod
    def fit(self, observations: Sequence[Any], weights: Optional[Sequence[float]] = None) -> None:
        """
        Re-estimate parameters in place from (weighted) observations.

        Weights need not be normalized. On failure the current parameters
        are left unchanged.
        """

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable description of the parameters."""

    def clone(self) -> "Opdf":
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.describe()})"


class OpdfFactory(ABC):
    """Builds fresh emission models with consistent initial hyperparameters."""

    @abstractmethod
    def generate(self) -> Opdf:
        """Return a new, independent Opdf instance."""


def normalize_weights(observations: Sequence[Any], weights: Optional[Sequence[float]] = None) -> np.ndarray:
    """
    Validate fit inputs and return weights summing to 1.

    Raises:
        InvalidSequenceError: If there are no observations or the weight count differs
        DegenerateFitError: If the weights are negative or sum to zero
    """
    n = len(observations)
    if n == 0:
        raise InvalidSequenceError("Cannot fit a distribution to an empty observation set")

    if weights is None:
        return np.full(n, 1.0 / n)

    w = np.asarray(weights, dtype=float)
    if w.shape != (n,):
        raise InvalidSequenceError(f"Expected {n} weights, got shape {w.shape}")
    if np.any(w < 0) or not np.all(np.isfinite(w)):
        raise DegenerateFitError("Weights must be finite and non-negative")

    total = w.sum()
    if total <= 0.0:
        raise DegenerateFitError("Weights sum to zero")
    return w / total


def default_rng(rng: Optional[np.random.Generator] = None) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng()
