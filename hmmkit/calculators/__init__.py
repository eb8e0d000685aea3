"""
Inference calculators: scaled Forward-Backward, log-domain Viterbi and K-Means.
"""

from .forward_backward import ForwardBackwardCalculator, compute_probability, compute_log_likelihood
from .viterbi import ViterbiCalculator
from .kmeans import KMeansCalculator, Cluster

__all__ = [
    "ForwardBackwardCalculator",
    "compute_probability",
    "compute_log_likelihood",
    "ViterbiCalculator",
    "KMeansCalculator",
    "Cluster",
]
