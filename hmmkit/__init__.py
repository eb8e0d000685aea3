"""
hmmkit: Hidden Markov Model inference and learning

Scaled Forward-Backward, log-domain Viterbi, Baum-Welch and k-means
initialization over pluggable emission models, for standard and
input-conditioned HMMs.
"""

__version__ = "0.1.0"
__author__ = "hmmkit Development Team"

from .config import get_config, set_config
from .logger import get_logger
from .hmm import Hmm, InputHmm, InputObservation
from .learn import BaumWelchLearner, KMeansLearner

__all__ = [
    "get_config",
    "set_config",
    "get_logger",
    "Hmm",
    "InputHmm",
    "InputObservation",
    "BaumWelchLearner",
    "KMeansLearner",
    "__version__"
]
