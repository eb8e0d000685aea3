"""
Mixture emission models.

A mixture is a weighted combination of component Opdfs. Fitting performs a
single EM step: component responsibilities are computed under the current
parameters and each component is refitted with the observation weights
scaled by its responsibilities.
"""

from typing import Any, List, Optional, Sequence

import numpy as np
from scipy.special import logsumexp

from .base import Opdf, OpdfFactory, normalize_weights, default_rng
from .gaussian import GaussianOpdf
from ..exceptions import InvalidModelError


class MixtureOpdf(Opdf):

    def __init__(self, components: Sequence[Opdf], weights: Optional[Sequence[float]] = None):
        if not components:
            raise InvalidModelError("A mixture needs at least one component")
        if weights is None:
            weights = np.ones(len(components)) / len(components)
        weights = np.array(weights, dtype=float)

        if weights.shape != (len(components),):
            raise InvalidModelError(
                f"Got {len(weights)} weights for {len(components)} components"
            )
        if np.any(weights < 0) or not np.isclose(weights.sum(), 1.0, atol=1e-9):
            raise InvalidModelError("Mixture weights must be non-negative and sum to 1.0")

        self.components: List[Opdf] = [c.clone() for c in components]
        self.weights = weights

    @property
    def n_components(self) -> int:
        return len(self.components)

    def _component_probabilities(self, observation: Any) -> np.ndarray:
        return np.array([c.probability(observation) for c in self.components])

    def _weighted_log_probabilities(self, observation: Any) -> np.ndarray:
        with np.errstate(divide='ignore'):
            return np.log(self.weights) + np.array([c.log_probability(observation) for c in self.components])

    def probability(self, observation: Any) -> float:
        return float(np.dot(self.weights, self._component_probabilities(observation)))

    def log_probability(self, observation: Any) -> float:
        with np.errstate(divide='ignore'):
            return float(logsumexp(self._weighted_log_probabilities(observation)))

    def generate(self, rng: Optional[np.random.Generator] = None) -> Any:
        rng = default_rng(rng)
        k = rng.choice(self.n_components, p=self.weights)
        return self.components[k].generate(rng)

    def fit(self, observations: Sequence[Any], weights: Optional[Sequence[float]] = None) -> None:
        w = normalize_weights(observations, weights)

        # responsibilities[n, k] = P(component k | observation n)
        log_joint = np.array([self._weighted_log_probabilities(o) for o in observations])
        with np.errstate(divide='ignore'):
            log_totals = logsumexp(log_joint, axis=1, keepdims=True)
        # Observations no component can explain get all-zero responsibilities
        log_totals = np.where(np.isfinite(log_totals), log_totals, 0.0)
        responsibilities = np.exp(log_joint - log_totals)

        component_mass = w @ responsibilities
        if component_mass.sum() <= 0:
            # No observation is explained by any component; spread evenly
            responsibilities = np.ones_like(log_joint) / self.n_components
            component_mass = w @ responsibilities

        new_components = []
        for k, component in enumerate(self.components):
            refitted = component.clone()
            if component_mass[k] > 0:
                refitted.fit(observations, w * responsibilities[:, k])
            new_components.append(refitted)

        self.components = new_components
        self.weights = component_mass / component_mass.sum()

    def describe(self) -> str:
        parts = [f"{wk:.4g} * ({c.describe()})" for wk, c in zip(self.weights, self.components)]
        return "Mixture distribution --- " + " + ".join(parts)


class GaussianMixtureOpdf(MixtureOpdf):
    """Mixture of scalar Gaussians with evenly spread initial means."""

    def __init__(self, n_components: Optional[int] = None, means: Optional[Sequence[float]] = None,
                 variances: Optional[Sequence[float]] = None,
                 weights: Optional[Sequence[float]] = None):
        if means is None:
            if n_components is None or n_components <= 0:
                raise InvalidModelError("Number of components must be strictly positive")
            means = np.arange(n_components) / n_components
        if variances is None:
            variances = np.ones(len(means))
        if len(variances) != len(means):
            raise InvalidModelError("means and variances must have the same length")

        components = [GaussianOpdf(m, v) for m, v in zip(means, variances)]
        super().__init__(components, weights)

    @property
    def means(self) -> np.ndarray:
        return np.array([c.mean for c in self.components])

    @property
    def variances(self) -> np.ndarray:
        return np.array([c.variance for c in self.components])


class GaussianMixtureOpdfFactory(OpdfFactory):

    def __init__(self, n_components: int):
        if n_components <= 0:
            raise InvalidModelError("Number of components must be strictly positive")
        self.n_components = n_components

    def generate(self) -> GaussianMixtureOpdf:
        return GaussianMixtureOpdf(self.n_components)
