"""
Scaled Forward-Backward algorithm.

Works with any model exposing the HMM calculator interface (pi,
emission_log_probabilities, transition_matrix_for), so the standard and the
input-conditioned HMMs share the same recurrences.
"""

from typing import Any, Sequence

import numpy as np
from scipy.special import logsumexp

from ..exceptions import InvalidSequenceError, ZeroLikelihoodError
from ..logger import get_logger

logger = get_logger(__name__)


class ForwardBackwardCalculator:
    """
    Forward and backward tables of one observation sequence.

    alpha[t] is normalized to sum to 1 at every step and c[t] holds the
    normalization constant, so log P(O|model) = sum_t log c[t]. beta is scaled
    with the same constants, which makes gamma[t] = alpha[t] * beta[t] a
    proper distribution.

    Emissions enter through their log-densities: a density that underflows
    to 0.0 in linear space still yields a finite log-likelihood, and only an
    observation that no reachable state can emit is reported as impossible.

    Attributes:
        alpha: Scaled forward probabilities [T, n_states]
        beta: Scaled backward probabilities [T, n_states] (None if not computed)
        log_c_scale: Logarithms of the scaling coefficients [T]
        c_scale: Scaling coefficients [T] (may underflow, log_c_scale does not)
        log_likelihood: Log-likelihood of the observation sequence
    """

    def __init__(self, hmm, observations: Sequence[Any], compute_beta: bool = True):
        """
        Run the forward pass, and the backward pass if requested.

        Args:
            hmm: Model to evaluate (Hmm or InputHmm)
            observations: Observation sequence [T]
            compute_beta: Also compute the backward table (needed for posteriors)

        Raises:
            InvalidSequenceError: If the sequence is empty
            ZeroLikelihoodError: If the sequence is impossible under the model
        """
        self.observations = list(observations)
        if len(self.observations) == 0:
            raise InvalidSequenceError("Observation sequence is empty")

        self.hmm = hmm
        T = len(self.observations)

        # Emission and transition lookups are reused by both passes and by xi
        self._log_emissions = np.array([hmm.emission_log_probabilities(o) for o in self.observations])
        self._transitions = [None] + [hmm.transition_matrix_for(o) for o in self.observations[1:]]
        with np.errstate(divide='ignore'):
            self._log_transitions = [None] + [np.log(A_t) for A_t in self._transitions[1:]]

        self.alpha, self.log_c_scale = self._forward(np.asarray(hmm.pi, dtype=float))
        self.c_scale = np.exp(self.log_c_scale)
        self.log_likelihood = float(np.sum(self.log_c_scale))

        self._log_beta = self._backward() if compute_beta else None
        self.beta = None
        if compute_beta:
            # Unreachable states may carry huge scaled betas; posteriors use the logs
            with np.errstate(over='ignore'):
                self.beta = np.exp(self._log_beta)

        logger.debug(f"Forward-backward completed: T={T}, log_likelihood={self.log_likelihood:.6f}")

    def _forward(self, pi: np.ndarray):
        T, n_states = self._log_emissions.shape
        alpha = np.zeros((T, n_states))
        log_c_scale = np.zeros(T)

        predicted = pi
        for t in range(T):
            if t > 0:
                predicted = alpha[t - 1] @ self._transitions[t]

            with np.errstate(divide='ignore'):
                log_alpha = np.log(predicted) + self._log_emissions[t]

            peak = np.max(log_alpha)
            if peak == -np.inf:
                raise ZeroLikelihoodError(
                    f"Forward probabilities sum to zero at time {t}: "
                    "observation sequence is impossible under this model",
                    time_index=t
                )

            # Shift by the largest term so far outliers do not underflow
            alpha[t] = np.exp(log_alpha - peak)
            total = alpha[t].sum()
            alpha[t] /= total
            log_c_scale[t] = peak + np.log(total)

        return alpha, log_c_scale

    def _backward(self) -> np.ndarray:
        T, n_states = self._log_emissions.shape
        log_beta = np.zeros((T, n_states))

        with np.errstate(divide='ignore'):
            for t in range(T - 2, -1, -1):
                # terms[i, j] = log A(i, j) + log b_j(o_{t+1}) + log beta[t+1][j]
                terms = self._log_transitions[t + 1] + (self._log_emissions[t + 1] + log_beta[t + 1])[None, :]
                log_beta[t] = logsumexp(terms, axis=1) - self.log_c_scale[t + 1]

        return log_beta

    @property
    def probability(self) -> float:
        return float(np.exp(self.log_likelihood))

    @property
    def length(self) -> int:
        return len(self.observations)

    def _require_beta(self) -> None:
        if self.beta is None:
            raise ValueError("Backward table was not computed (compute_beta=False)")

    def gamma(self) -> np.ndarray:
        """Posterior state probabilities gamma[t, i] = P(q_t = i | O) [T, n_states]."""
        self._require_beta()
        with np.errstate(divide='ignore'):
            log_gamma = np.log(self.alpha) + self._log_beta
        return np.exp(log_gamma - logsumexp(log_gamma, axis=1, keepdims=True))

    def xi(self) -> np.ndarray:
        """
        Posterior transition probabilities [T-1, n_states, n_states].

        xi[t, i, j] = P(q_t = i, q_{t+1} = j | O)
        """
        self._require_beta()
        T, n_states = self._log_emissions.shape
        xi = np.zeros((max(T - 1, 0), n_states, n_states))

        with np.errstate(divide='ignore'):
            log_alpha = np.log(self.alpha)
            for t in range(T - 1):
                log_xi = (log_alpha[t][:, None] + self._log_transitions[t + 1]
                          + (self._log_emissions[t + 1] + self._log_beta[t + 1])[None, :])
                xi[t] = np.exp(log_xi - self.log_c_scale[t + 1])

        return xi


def compute_probability(hmm, observations: Sequence[Any]) -> float:
    """Probability of an observation sequence under a model."""
    return ForwardBackwardCalculator(hmm, observations, compute_beta=False).probability


def compute_log_likelihood(hmm, observations: Sequence[Any]) -> float:
    """Log-likelihood of an observation sequence under a model."""
    return ForwardBackwardCalculator(hmm, observations, compute_beta=False).log_likelihood
