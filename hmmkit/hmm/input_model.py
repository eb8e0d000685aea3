"""
Input-conditioned Hidden Markov Model.

Transitions additionally depend on an exogenous input symbol. A[i, k, j] is
the joint probability of reading input symbol k and moving from state i to
state j, so for every source state i the entries A[i, :, :] sum to 1 and the
marginal A(i, j) = sum_k A[i, k, j] is an ordinary stochastic matrix. The
input symbol carried by the observation at time t selects the slice used for
the transition from t-1 to t.
"""

from typing import Any, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .model import HmmBase
from ..exceptions import InvalidModelError, InvalidSequenceError
from ..logger import get_logger
from ..opdf.base import Opdf, OpdfFactory

logger = get_logger(__name__)


class InputObservation(NamedTuple):
    """Observation paired with the input symbol active at its time step."""
    input: int
    value: Any


class InputHmm(HmmBase):

    def __init__(self, n_inputs: int, n_states: int, opdf_factory: OpdfFactory):
        """
        Create an input-conditioned HMM with uniform parameters.

        Args:
            n_inputs: Number of input symbols (strictly positive)
            n_states: Number of hidden states (strictly positive)
            opdf_factory: Factory generating the emission model of each state

        Raises:
            InvalidModelError: If n_inputs or n_states is not strictly positive
        """
        if n_inputs <= 0:
            raise InvalidModelError("Number of input symbols must be strictly positive")
        if n_states <= 0:
            raise InvalidModelError("Number of states must be strictly positive")

        pi = np.ones(n_states) / n_states
        A = np.ones((n_states, n_inputs, n_states)) / (n_states * n_inputs)
        opdfs = [opdf_factory.generate() for _ in range(n_states)]
        super().__init__(pi, A, opdfs)

        logger.debug(f"Initialized InputHmm with {n_states} states and {n_inputs} input symbols")

    @classmethod
    def from_parameters(cls, pi, A, opdfs: Sequence[Opdf]) -> "InputHmm":
        """Create an input-conditioned HMM from explicit parameters; all of them are copied."""
        hmm = object.__new__(cls)
        HmmBase.__init__(hmm, pi, A, opdfs)
        return hmm

    def _validate_dimensions(self, pi: np.ndarray, A: np.ndarray, opdfs: Sequence[Opdf]) -> None:
        if A.ndim != 3 or A.shape[1] == 0:
            raise InvalidModelError(f"A must be indexed [state][input][state], got shape {A.shape}")
        super()._validate_dimensions(pi, A, opdfs)

    def _expected_transition_shape(self, n_states: int, A: np.ndarray) -> Tuple[int, ...]:
        current = getattr(self, '_A', None)
        n_inputs = current.shape[1] if current is not None else A.shape[1]
        return (n_states, n_inputs, n_states)

    @property
    def n_inputs(self) -> int:
        return self._A.shape[1]

    def _check_input(self, observation: Any) -> int:
        try:
            symbol = int(observation.input)
        except AttributeError:
            raise InvalidSequenceError(
                f"Input-conditioned models need InputObservation items, got {observation!r}"
            )
        if symbol < 0 or symbol >= self.n_inputs:
            raise InvalidSequenceError(f"Input symbol {symbol} not in range [0, {self.n_inputs - 1}]")
        return symbol

    def observation_value(self, observation: Any) -> Any:
        self._check_input(observation)
        return observation.value

    def transition_matrix_for(self, observation: Any) -> np.ndarray:
        return self._A[:, self._check_input(observation), :]

    def accumulate_transitions(self, accumulator: np.ndarray, xi_t: np.ndarray, observation: Any) -> None:
        accumulator[:, self._check_input(observation), :] += xi_t

    def marginal_transitions(self) -> np.ndarray:
        """Transition matrix regardless of the input: A(i, j) = sum_k A[i, k, j]."""
        return self._A.sum(axis=1)

    def get_aij(self, i: int, j: int, k: Optional[int] = None) -> float:
        if k is None:
            return self.transition_probability(i, j)
        return float(self._A[i, k, j])

    def generate_sequence(self, inputs: Sequence[int],
                          rng: Optional[np.random.Generator] = None) -> Tuple[List[InputObservation], np.ndarray]:
        """
        Sample observations driven by a given input symbol sequence.

        The next state is drawn from A[i, k, :] renormalized, i.e. conditioned
        on the input symbol k of that step.

        Returns:
            Tuple of (observations, states)

        Raises:
            InvalidSequenceError: If inputs is empty or an input cannot occur from the current state
        """
        inputs = [int(k) for k in inputs]
        if not inputs:
            raise InvalidSequenceError("Input sequence is empty")
        rng = rng if rng is not None else np.random.default_rng()

        observations = []
        states = np.zeros(len(inputs), dtype=int)
        state = rng.choice(self.n_states, p=self._pi)
        for t, k in enumerate(inputs):
            if not 0 <= k < self.n_inputs:
                raise InvalidSequenceError(f"Input symbol {k} not in range [0, {self.n_inputs - 1}]")
            if t > 0:
                row = self._A[state, k, :]
                if row.sum() <= 0:
                    raise InvalidSequenceError(f"Input symbol {k} has probability zero from state {state}")
                state = rng.choice(self.n_states, p=row / row.sum())
            states[t] = state
            observations.append(InputObservation(k, self._opdfs[state].generate(rng)))
        return observations, states

    def __repr__(self) -> str:
        return f"InputHmm(n_inputs={self.n_inputs}, n_states={self.n_states})"
