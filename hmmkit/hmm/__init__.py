"""
Hidden Markov Model module.

Standard and input-conditioned HMM parameter stores.
"""

from .model import HmmBase, Hmm
from .input_model import InputHmm, InputObservation

__all__ = [
    "HmmBase",
    "Hmm",
    "InputHmm",
    "InputObservation",
]
