"""
Gaussian emission models.

GaussianOpdf handles scalar observations; MultiGaussianOpdf handles real
vectors and relies on the Cholesky helpers in hmmkit.linalg for the
determinant and inverse of its covariance.
"""

import math
from typing import Any, Optional, Sequence

import numpy as np

from .base import Opdf, OpdfFactory, normalize_weights, default_rng
from .. import linalg
from ..config import get_config
from ..exceptions import InvalidModelError, NonPositiveDefiniteError


class GaussianOpdf(Opdf):
    """Normal distribution over real scalars."""

    def __init__(self, mean: float = 0.0, variance: float = 1.0, min_variance: Optional[float] = None):
        if min_variance is None:
            min_variance = get_config('gaussian', 'min_variance') or 0.0
        if min_variance < 0:
            raise InvalidModelError("min_variance must be non-negative")
        if not variance > 0:
            raise NonPositiveDefiniteError(f"Variance must be strictly positive, got {variance}")

        self.mean = float(mean)
        self.variance = float(variance)
        self.min_variance = float(min_variance)

    @property
    def std(self) -> float:
        return math.sqrt(self.variance)

    def probability(self, observation: Any) -> float:
        diff = float(observation) - self.mean
        return math.exp(-0.5 * diff * diff / self.variance) / math.sqrt(2.0 * math.pi * self.variance)

    def log_probability(self, observation: Any) -> float:
        diff = float(observation) - self.mean
        return -0.5 * (math.log(2.0 * math.pi * self.variance) + diff * diff / self.variance)

    def generate(self, rng: Optional[np.random.Generator] = None) -> float:
        return float(default_rng(rng).normal(self.mean, self.std))

    def fit(self, observations: Sequence[Any], weights: Optional[Sequence[float]] = None) -> None:
        w = normalize_weights(observations, weights)
        x = np.asarray(observations, dtype=float)

        mean = float(np.dot(w, x))
        variance = float(np.dot(w, (x - mean) ** 2)) + self.min_variance

        if not variance > 0:
            raise NonPositiveDefiniteError(
                f"Weighted variance {variance} is not strictly positive"
            )

        self.mean = mean
        self.variance = variance

    def describe(self) -> str:
        return f"Gaussian distribution --- Mean: {self.mean:.4g} Variance {self.variance:.4g}"


class MultiGaussianOpdf(Opdf):
    """
    Multivariate normal distribution over real vectors.

    The Cholesky factor of the covariance is cached and recomputed whenever
    the parameters change, so an invalid covariance can never be stored.
    """

    def __init__(self, mean=None, covariance=None, dimension: Optional[int] = None,
                 min_covariance: Optional[float] = None):
        if mean is None:
            if dimension is None or dimension <= 0:
                raise InvalidModelError("Dimension must be strictly positive")
            mean = np.zeros(dimension)
        mean = np.array(mean, dtype=float)
        if mean.ndim != 1 or len(mean) == 0:
            raise InvalidModelError("Mean must be a non-empty vector")
        if dimension is not None and dimension != len(mean):
            raise InvalidModelError(f"dimension={dimension} doesn't match mean length {len(mean)}")

        if covariance is None:
            covariance = np.eye(len(mean))
        covariance = linalg.as_square_matrix(covariance, "covariance")
        if covariance.shape[0] != len(mean):
            raise InvalidModelError(
                f"Covariance shape {covariance.shape} doesn't match mean length {len(mean)}"
            )

        if min_covariance is None:
            min_covariance = get_config('gaussian', 'min_variance') or 0.0
        if min_covariance < 0:
            raise InvalidModelError("min_covariance must be non-negative")

        self._cholesky = linalg.cholesky(covariance)
        self.mean = mean
        self.covariance = covariance
        self.min_covariance = float(min_covariance)

    @property
    def dimension(self) -> int:
        return len(self.mean)

    def _log_density(self, x: np.ndarray) -> float:
        d = self.dimension
        maha = linalg.mahalanobis_squared(x, self.mean, self._cholesky)
        return -0.5 * (d * math.log(2.0 * math.pi) + linalg.log_determinant(self._cholesky) + maha)

    def _as_vector(self, observation: Any) -> np.ndarray:
        x = np.asarray(observation, dtype=float).reshape(-1)
        if x.shape != (self.dimension,):
            raise InvalidModelError(
                f"Observation has dimension {x.shape[0]}, expected {self.dimension}"
            )
        return x

    def probability(self, observation: Any) -> float:
        return math.exp(self._log_density(self._as_vector(observation)))

    def log_probability(self, observation: Any) -> float:
        return self._log_density(self._as_vector(observation))

    def generate(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        z = default_rng(rng).standard_normal(self.dimension)
        return self.mean + self._cholesky @ z

    def fit(self, observations: Sequence[Any], weights: Optional[Sequence[float]] = None) -> None:
        w = normalize_weights(observations, weights)
        x = np.array([self._as_vector(o) for o in observations])

        mean = w @ x
        centered = x - mean
        covariance = (centered * w[:, None]).T @ centered
        covariance = 0.5 * (covariance + covariance.T)
        covariance += self.min_covariance * np.eye(self.dimension)

        # Raises before anything is assigned
        L = linalg.cholesky(covariance)

        self.mean = mean
        self.covariance = covariance
        self._cholesky = L

    def describe(self) -> str:
        mean = " ".join(f"{m:.4g}" for m in self.mean)
        rows = " ".join("[" + " ".join(f"{c:.4g}" for c in row) + "]" for row in self.covariance)
        return f"Multi-variate Gaussian distribution --- Mean: [ {mean} ] Covariance: [ {rows} ]"


class GaussianOpdfFactory(OpdfFactory):

    def __init__(self, mean: float = 0.0, variance: float = 1.0):
        self.mean = mean
        self.variance = variance

    def generate(self) -> GaussianOpdf:
        return GaussianOpdf(self.mean, self.variance)


class MultiGaussianOpdfFactory(OpdfFactory):

    def __init__(self, dimension: int):
        if dimension <= 0:
            raise InvalidModelError("Dimension must be strictly positive")
        self.dimension = dimension

    def generate(self) -> MultiGaussianOpdf:
        return MultiGaussianOpdf(dimension=self.dimension)
