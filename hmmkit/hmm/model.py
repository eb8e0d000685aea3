"""
Hidden Markov Model parameter stores.

This module implements the standard HMM (initial probabilities, an N x N
transition matrix and one emission model per state) together with the base
class shared with the input-conditioned variant. Inference is delegated to
the calculators in hmmkit.calculators; re-estimation goes through
set_parameters so that a model is never observed half-updated.
"""

from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from ..calculators.forward_backward import ForwardBackwardCalculator
from ..calculators.viterbi import ViterbiCalculator
from ..exceptions import InvalidModelError, InvalidSequenceError
from ..logger import get_logger
from ..opdf.base import Opdf, OpdfFactory

logger = get_logger(__name__)

STOCHASTIC_TOLERANCE = 1e-9


class HmmBase:
    """
    State shared by every HMM variant: pi, A and the per-state emission models.

    Subclasses define the shape of A and how an observation selects the
    transition matrix of the step that ends at it.
    """

    def __init__(self, pi: np.ndarray, A: np.ndarray, opdfs: Sequence[Opdf]):
        pi = np.array(pi, dtype=float)
        A = np.array(A, dtype=float)
        opdfs = [opdf.clone() for opdf in opdfs]

        self._validate_dimensions(pi, A, opdfs)
        self._check_stochastic(pi, A)

        self._pi = pi
        self._A = A
        self._opdfs = opdfs

    # -- construction and validation --------------------------------------

    def _expected_transition_shape(self, n_states: int, A: np.ndarray) -> Tuple[int, ...]:
        raise NotImplementedError

    def _validate_dimensions(self, pi: np.ndarray, A: np.ndarray, opdfs: Sequence[Opdf]) -> None:
        if pi.ndim != 1 or len(pi) == 0:
            raise InvalidModelError("Number of states must be strictly positive")
        n_states = len(pi)

        expected = self._expected_transition_shape(n_states, A)
        if A.shape != expected:
            raise InvalidModelError(f"A shape {A.shape} doesn't match expected {expected}")

        if len(opdfs) != n_states:
            raise InvalidModelError(f"Got {len(opdfs)} emission models for {n_states} states")
        for i, opdf in enumerate(opdfs):
            if not isinstance(opdf, Opdf):
                raise InvalidModelError(f"Emission model of state {i} is not an Opdf")

    @staticmethod
    def _check_stochastic(pi: np.ndarray, A: np.ndarray) -> None:
        if np.any(pi < 0):
            raise InvalidModelError("Initial probabilities contain negative values")
        if not np.isclose(pi.sum(), 1.0, atol=STOCHASTIC_TOLERANCE):
            raise InvalidModelError(f"Initial probabilities sum to {pi.sum()}, expected 1.0")

        if np.any(A < 0):
            raise InvalidModelError("Transition matrix contains negative values")
        row_sums = A.reshape(A.shape[0], -1).sum(axis=1)
        if not np.allclose(row_sums, 1.0, atol=STOCHASTIC_TOLERANCE):
            raise InvalidModelError(f"Transition matrix rows don't sum to 1.0: {row_sums}")

    def validate_stochastic_matrices(self) -> bool:
        """
        Validate that pi and A satisfy stochastic properties.

        Raises:
            InvalidModelError: If any of them violates stochastic properties
        """
        self._check_stochastic(self._pi, self._A)
        return True

    # -- parameters --------------------------------------------------------

    @property
    def n_states(self) -> int:
        return len(self._pi)

    @property
    def pi(self) -> np.ndarray:
        """Read-only view of the initial state probabilities."""
        view = self._pi.view()
        view.flags.writeable = False
        return view

    @property
    def A(self) -> np.ndarray:
        """Read-only view of the transition array."""
        view = self._A.view()
        view.flags.writeable = False
        return view

    @property
    def opdfs(self) -> List[Opdf]:
        return list(self._opdfs)

    def get_pi(self, state: int) -> float:
        return float(self._pi[state])

    def opdf(self, state: int) -> Opdf:
        return self._opdfs[state]

    def set_opdf(self, state: int, opdf: Opdf) -> None:
        """Replace the emission model of a state with a copy of the given one."""
        if not isinstance(opdf, Opdf):
            raise InvalidModelError("Emission model must be an Opdf")
        self._opdfs[state] = opdf.clone()

    def get_parameters(self) -> Tuple[np.ndarray, np.ndarray, List[Opdf]]:
        """
        Get copies of the current model parameters.

        Returns:
            Tuple of (pi, A, opdfs)
        """
        return self._pi.copy(), self._A.copy(), [opdf.clone() for opdf in self._opdfs]

    def set_parameters(self, pi: np.ndarray, A: np.ndarray, opdfs: Optional[Sequence[Opdf]] = None) -> None:
        """
        Replace all parameters at once after validating them.

        Emission models are copied, so the model never shares them with the
        caller. Nothing is changed if validation fails.

        Raises:
            InvalidModelError: If dimensions mismatch or probabilities are not stochastic
        """
        pi = np.array(pi, dtype=float)
        A = np.array(A, dtype=float)
        opdfs = self._opdfs if opdfs is None else [opdf.clone() for opdf in opdfs]

        self._validate_dimensions(pi, A, opdfs)
        self._check_stochastic(pi, A)

        self._pi = pi
        self._A = A
        self._opdfs = opdfs

        logger.debug("Model parameters updated and validated")

    def clone(self) -> "HmmBase":
        duplicate = object.__new__(type(self))
        HmmBase.__init__(duplicate, self._pi, self._A, self._opdfs)
        return duplicate

    # -- per-observation hooks used by the calculators ---------------------

    def observation_value(self, observation: Any) -> Any:
        """Part of an observation seen by the emission models."""
        return observation

    def emission_probabilities(self, observation: Any) -> np.ndarray:
        value = self.observation_value(observation)
        return np.array([opdf.probability(value) for opdf in self._opdfs])

    def emission_log_probabilities(self, observation: Any) -> np.ndarray:
        """Log-density of an observation under every state, without passing through linear space."""
        value = self.observation_value(observation)
        return np.array([opdf.log_probability(value) for opdf in self._opdfs])

    def transition_matrix_for(self, observation: Any) -> np.ndarray:
        """N x N transition matrix of the step that ends at the given observation."""
        raise NotImplementedError

    def accumulate_transitions(self, accumulator: np.ndarray, xi_t: np.ndarray, observation: Any) -> None:
        """Add the posterior transition mass of one step into an accumulator shaped like A."""
        raise NotImplementedError

    def marginal_transitions(self) -> np.ndarray:
        raise NotImplementedError

    def transition_probability(self, i: int, j: int) -> float:
        return float(self.marginal_transitions()[i, j])

    def reestimate_transitions(self, accumulator: np.ndarray, denominators: np.ndarray,
                               regularization_alpha: float = 0.0,
                               probability_floor: float = 0.0) -> np.ndarray:
        """
        Turn expected transition counts into a new transition array.

        Args:
            accumulator: Expected transition counts, same shape as A
            denominators: Expected number of transitions leaving each state [n_states]
            regularization_alpha: Dirichlet pseudo-count added to every cell
            probability_floor: Minimum probability value

        Returns:
            Row-stochastic array shaped like A. Rows of states that are never
            left keep their current values.
        """
        n_cells = accumulator[0].size
        broadcast = (-1,) + (1,) * (accumulator.ndim - 1)

        numerator = accumulator + regularization_alpha
        denominator = (denominators + n_cells * regularization_alpha).reshape(broadcast)

        visited = denominator > 0
        A_new = np.where(visited, numerator / np.where(visited, denominator, 1.0), self._A)

        if probability_floor > 0:
            A_new = np.maximum(A_new, probability_floor)
        row_sums = A_new.reshape(len(A_new), -1).sum(axis=1).reshape(broadcast)
        return A_new / row_sums

    # -- inference ---------------------------------------------------------

    def probability(self, observations: Sequence[Any]) -> float:
        """Probability of an observation sequence (scaled forward algorithm)."""
        return ForwardBackwardCalculator(self, observations, compute_beta=False).probability

    def ln_probability(self, observations: Sequence[Any]) -> float:
        """Log-likelihood of an observation sequence."""
        return ForwardBackwardCalculator(self, observations, compute_beta=False).log_likelihood

    def most_likely_state_sequence(self, observations: Sequence[Any]) -> np.ndarray:
        """Viterbi state path."""
        return ViterbiCalculator(self, observations).state_sequence

    def ln_probability_of_path(self, observations: Sequence[Any], states: Sequence[int]) -> float:
        """Joint log-probability of an observation sequence and a given state path."""
        observations = list(observations)
        states = np.asarray(states, dtype=int)
        if len(observations) == 0:
            raise InvalidSequenceError("Observation sequence is empty")
        if states.shape != (len(observations),):
            raise InvalidSequenceError(
                f"State path length {len(states)} doesn't match sequence length {len(observations)}"
            )
        if np.any(states < 0) or np.any(states >= self.n_states):
            raise InvalidSequenceError(f"States must be in range [0, {self.n_states - 1}]")

        with np.errstate(divide='ignore'):
            total = np.log(self._pi[states[0]])
            total += self.emission_log_probabilities(observations[0])[states[0]]
            for t in range(1, len(observations)):
                A_t = self.transition_matrix_for(observations[t])
                total += np.log(A_t[states[t - 1], states[t]])
                total += self.emission_log_probabilities(observations[t])[states[t]]
        return float(total)

    def probability_of_path(self, observations: Sequence[Any], states: Sequence[int]) -> float:
        return float(np.exp(self.ln_probability_of_path(observations, states)))

    def fold(self, n: int) -> None:
        """Advance the initial distribution by n transition steps (pi <- pi A^n)."""
        if n < 0:
            raise ValueError("n must be non-negative")
        A = self.marginal_transitions()
        pi = self._pi.copy()
        for _ in range(n):
            pi = pi @ A
        self._pi = pi / pi.sum()

    # -- description -------------------------------------------------------

    def describe(self) -> str:
        """Textual description of the model, one block per state."""
        A = self.marginal_transitions()
        lines = [f"HMM with {self.n_states} state(s)"]
        for i in range(self.n_states):
            lines.append("")
            lines.append(f"State {i}")
            lines.append(f" Pi: {self._pi[i]:.6g}")
            lines.append(" Aij: " + " ".join(f"{a:.6g}" for a in A[i]))
            lines.append(f" Opdf: {self._opdfs[i].describe()}")
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.describe()


class Hmm(HmmBase):
    """
    Standard Hidden Markov Model.

    Observations are whatever the emission models accept. A[i, j] is the
    probability of going from state i to state j.
    """

    def __init__(self, n_states: int, opdf_factory: OpdfFactory):
        """
        Create an HMM with uniform pi and A and one fresh emission model per state.

        Args:
            n_states: Number of hidden states (strictly positive)
            opdf_factory: Factory generating the emission model of each state

        Raises:
            InvalidModelError: If n_states is not strictly positive
        """
        if n_states <= 0:
            raise InvalidModelError("Number of states must be strictly positive")

        pi = np.ones(n_states) / n_states
        A = np.ones((n_states, n_states)) / n_states
        opdfs = [opdf_factory.generate() for _ in range(n_states)]
        super().__init__(pi, A, opdfs)

        logger.debug(f"Initialized Hmm with {n_states} states")

    @classmethod
    def from_parameters(cls, pi, A, opdfs: Sequence[Opdf]) -> "Hmm":
        """Create an HMM from explicit parameters; all of them are copied."""
        hmm = object.__new__(cls)
        HmmBase.__init__(hmm, pi, A, opdfs)
        return hmm

    @classmethod
    def from_kmeans(cls, sequences: Sequence[Sequence[Any]], n_states: int,
                    opdf_factory: OpdfFactory, iterate: bool = False) -> "Hmm":
        """
        Create an HMM whose parameters are seeded by k-means clustering.

        Args:
            sequences: Training observation sequences
            n_states: Number of hidden states (= number of clusters)
            opdf_factory: Factory generating the emission model of each state
            iterate: Also run the Viterbi re-labelling iterations of the k-means learner
        """
        from ..learn.kmeans_learner import KMeansLearner

        learner = KMeansLearner(n_states, opdf_factory, sequences)
        return learner.learn() if iterate else learner.initial_hmm()

    def _expected_transition_shape(self, n_states: int, A: np.ndarray) -> Tuple[int, ...]:
        return (n_states, n_states)

    def transition_matrix_for(self, observation: Any) -> np.ndarray:
        return self._A

    def accumulate_transitions(self, accumulator: np.ndarray, xi_t: np.ndarray, observation: Any) -> None:
        accumulator += xi_t

    def marginal_transitions(self) -> np.ndarray:
        return self._A.copy()

    def get_aij(self, i: int, j: int) -> float:
        return float(self._A[i, j])

    def generate_sequence(self, length: int,
                          rng: Optional[np.random.Generator] = None) -> Tuple[List[Any], np.ndarray]:
        """
        Sample an observation sequence and the state path that produced it.

        Returns:
            Tuple of (observations, states)
        """
        if length <= 0:
            raise InvalidSequenceError("Sequence length must be strictly positive")
        rng = rng if rng is not None else np.random.default_rng()

        observations = []
        states = np.zeros(length, dtype=int)
        state = rng.choice(self.n_states, p=self._pi)
        for t in range(length):
            states[t] = state
            observations.append(self._opdfs[state].generate(rng))
            state = rng.choice(self.n_states, p=self._A[state])
        return observations, states

    def __repr__(self) -> str:
        return f"Hmm(n_states={self.n_states})"
