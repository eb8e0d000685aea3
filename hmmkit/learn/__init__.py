"""
Parameter learning: Baum-Welch (EM) and k-means initialization.
"""

from .baum_welch import BaumWelchLearner, ExpectedCounts, STOP_CONVERGED, STOP_MAX_ITERATIONS
from .kmeans_learner import KMeansLearner

__all__ = [
    "BaumWelchLearner",
    "ExpectedCounts",
    "KMeansLearner",
    "STOP_CONVERGED",
    "STOP_MAX_ITERATIONS",
]
