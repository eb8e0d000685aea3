"""
Emission models (observation probability distribution functions).
"""

from .base import Opdf, OpdfFactory
from .discrete import DiscreteOpdf, DiscreteOpdfFactory
from .gaussian import GaussianOpdf, GaussianOpdfFactory, MultiGaussianOpdf, MultiGaussianOpdfFactory
from .mixture import MixtureOpdf, GaussianMixtureOpdf, GaussianMixtureOpdfFactory

__all__ = [
    "Opdf",
    "OpdfFactory",
    "DiscreteOpdf",
    "DiscreteOpdfFactory",
    "GaussianOpdf",
    "GaussianOpdfFactory",
    "MultiGaussianOpdf",
    "MultiGaussianOpdfFactory",
    "MixtureOpdf",
    "GaussianMixtureOpdf",
    "GaussianMixtureOpdfFactory",
]
