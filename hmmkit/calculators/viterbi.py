"""
Log-domain Viterbi decoder.
"""

from typing import Any, Sequence

import numpy as np

from ..exceptions import InvalidSequenceError
from ..logger import get_logger

logger = get_logger(__name__)


class ViterbiCalculator:
    """
    Most likely state path of an observation sequence.

    Works entirely with log-probabilities; zero probabilities become -inf and
    propagate through the max-sum recurrence. Ties are broken in favour of
    the lowest state index.

    Attributes:
        delta: Best-path log-probabilities [T, n_states]
        psi: Best predecessor of each state [T, n_states] (row 0 unused)
        state_sequence: Most likely state path [T]
        ln_probability: Log-probability of that path jointly with the observations
    """

    def __init__(self, hmm, observations: Sequence[Any]):
        observations = list(observations)
        if len(observations) == 0:
            raise InvalidSequenceError("Observation sequence is empty")

        T = len(observations)
        n_states = hmm.n_states

        self.delta = np.zeros((T, n_states))
        self.psi = np.zeros((T, n_states), dtype=int)

        with np.errstate(divide='ignore'):
            self.delta[0] = np.log(np.asarray(hmm.pi)) + hmm.emission_log_probabilities(observations[0])

            for t in range(1, T):
                log_A = np.log(hmm.transition_matrix_for(observations[t]))
                # scores[i, j] = delta[t-1, i] + log A(i, j)
                scores = self.delta[t - 1][:, None] + log_A
                # argmax returns the first maximum, i.e. the lowest state index
                self.psi[t] = np.argmax(scores, axis=0)
                self.delta[t] = scores[self.psi[t], np.arange(n_states)]
                self.delta[t] += hmm.emission_log_probabilities(observations[t])

        path = np.zeros(T, dtype=int)
        path[T - 1] = int(np.argmax(self.delta[T - 1]))
        for t in range(T - 1, 0, -1):
            path[t - 1] = self.psi[t, path[t]]

        self.state_sequence = path
        self.ln_probability = float(self.delta[T - 1, path[T - 1]])

        logger.debug(f"Viterbi completed: T={T}, ln_probability={self.ln_probability:.6f}")

    @property
    def probability(self) -> float:
        return float(np.exp(self.ln_probability))
