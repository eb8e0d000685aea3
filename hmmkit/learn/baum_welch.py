"""
Baum-Welch (Expectation-Maximization) learner.

Each iteration runs the scaled Forward-Backward calculator on every training
sequence, accumulates the expected counts for pi, A and the emission models
in a fixed sequence order, and swaps the complete re-estimated parameter set
into the model at once.
"""

import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from ..calculators.forward_backward import ForwardBackwardCalculator
from ..config import get_config
from ..exceptions import EmissionFitError, HMMKitError, InvalidSequenceError
from ..logger import get_logger

# Log-likelihood regressions smaller than this are floating-point noise
REGRESSION_TOLERANCE = 1e-7

STOP_CONVERGED = "converged"
STOP_MAX_ITERATIONS = "max_iterations"

IterationCallback = Callable[[int, float, float], None]


class ExpectedCounts(NamedTuple):
    """Sufficient statistics of one E-step over all training sequences."""
    log_likelihood: float
    pi_numerator: np.ndarray
    A_numerator: np.ndarray
    A_denominator: np.ndarray
    observations: List[Any]
    gammas: np.ndarray


class BaumWelchLearner:
    """
    Iteratively re-estimates HMM parameters to (locally) maximize the data
    log-likelihood.
    """

    def __init__(self,
                 max_iterations: Optional[int] = None,
                 tolerance: Optional[float] = None,
                 relative_tolerance: Optional[float] = None,
                 regularization_alpha: Optional[float] = None,
                 probability_floor: Optional[float] = None,
                 logger: Optional[logging.Logger] = None,
                 callback: Optional[IterationCallback] = None):
        """
        Initialize the learner; unset options come from the 'learning' config section.

        Args:
            max_iterations: Hard cap on EM iterations
            tolerance: Stop when the log-likelihood improvement is below this value
            relative_tolerance: Stop when improvement / |log-likelihood| is below this value
            regularization_alpha: Dirichlet pseudo-count for pi and A (0 keeps pure EM)
            probability_floor: Minimum probability for pi and A entries
            logger: Logger receiving progress messages (default: the hmmkit.learn logger)
            callback: Called as callback(iteration, log_likelihood, improvement) after each iteration
        """
        self.max_iterations = self._option(max_iterations, 'max_iterations', 100)
        self.tolerance = self._option(tolerance, 'tolerance', 1e-6)
        self.relative_tolerance = self._option(relative_tolerance, 'relative_tolerance', 0.0)
        self.regularization_alpha = self._option(regularization_alpha, 'regularization_alpha', 0.0)
        self.probability_floor = self._option(probability_floor, 'probability_floor', 0.0)
        self.logger = logger if logger is not None else get_logger(__name__)
        self.callback = callback

        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")
        if self.regularization_alpha < 0 or self.probability_floor < 0:
            raise ValueError("regularization_alpha and probability_floor must be non-negative")

    @staticmethod
    def _option(value, key: str, default):
        if value is not None:
            return value
        configured = get_config('learning', key)
        return default if configured is None else configured

    @staticmethod
    def _materialize(sequences: Sequence[Sequence[Any]]) -> List[List[Any]]:
        sequences = [list(seq) for seq in sequences]
        if not sequences:
            raise InvalidSequenceError("sequences cannot be empty")
        for seq_idx, seq in enumerate(sequences):
            if len(seq) == 0:
                raise InvalidSequenceError(f"Sequence {seq_idx} is empty")
        return sequences

    def expectation(self, hmm, sequences: List[List[Any]]) -> ExpectedCounts:
        """
        E-step: expected counts of the current model over all sequences.

        Raises:
            ZeroLikelihoodError: If a sequence is impossible under the model
        """
        n_states = hmm.n_states
        pi_numerator = np.zeros(n_states)
        A_numerator = np.zeros(np.shape(hmm.A))
        A_denominator = np.zeros(n_states)

        all_observations = []
        all_gammas = []
        total_log_likelihood = 0.0

        # Fixed order keeps the summations reproducible
        for observations in sequences:
            fb = ForwardBackwardCalculator(hmm, observations)
            total_log_likelihood += fb.log_likelihood

            gamma = fb.gamma()
            xi = fb.xi()

            pi_numerator += gamma[0]
            A_denominator += gamma[:-1].sum(axis=0)
            for t in range(len(observations) - 1):
                hmm.accumulate_transitions(A_numerator, xi[t], observations[t + 1])

            all_observations.extend(hmm.observation_value(o) for o in observations)
            all_gammas.append(gamma)

        return ExpectedCounts(
            log_likelihood=total_log_likelihood,
            pi_numerator=pi_numerator,
            A_numerator=A_numerator,
            A_denominator=A_denominator,
            observations=all_observations,
            gammas=np.concatenate(all_gammas, axis=0)
        )

    def maximization(self, hmm, counts: ExpectedCounts, n_sequences: int):
        """
        M-step: new (pi, A, opdfs) from expected counts; the model is not modified.

        Raises:
            EmissionFitError: If a state's emission model cannot be refitted
        """
        n_states = hmm.n_states
        alpha = self.regularization_alpha

        pi_new = (counts.pi_numerator + alpha) / (n_sequences + n_states * alpha)
        if self.probability_floor > 0:
            pi_new = np.maximum(pi_new, self.probability_floor)
        pi_new = pi_new / pi_new.sum()

        A_new = hmm.reestimate_transitions(
            counts.A_numerator, counts.A_denominator,
            regularization_alpha=alpha,
            probability_floor=self.probability_floor
        )

        opdfs_new = []
        for i in range(n_states):
            opdf = hmm.opdf(i).clone()
            try:
                opdf.fit(counts.observations, counts.gammas[:, i])
            except HMMKitError as e:
                raise EmissionFitError(
                    f"Re-estimation of the emission model of state {i} failed: {e}",
                    state=i
                ) from e
            opdfs_new.append(opdf)

        return pi_new, A_new, opdfs_new

    def iterate(self, hmm, sequences: Sequence[Sequence[Any]]) -> Tuple[Any, float]:
        """
        Perform one EM iteration without touching the given model.

        Args:
            hmm: Current model (Hmm or InputHmm)
            sequences: Training observation sequences

        Returns:
            Tuple of (re-estimated model, total log-likelihood under the given model)

        Raises:
            InvalidSequenceError: If there are no sequences or one of them is empty
            ZeroLikelihoodError: If a sequence is impossible under the current model
            EmissionFitError: If a state's emission model cannot be refitted
        """
        sequences = self._materialize(sequences)
        counts = self.expectation(hmm, sequences)

        new_hmm = hmm.clone()
        new_hmm.set_parameters(*self.maximization(hmm, counts, len(sequences)))
        return new_hmm, counts.log_likelihood

    def learn(self, hmm, sequences: Sequence[Sequence[Any]]) -> Dict[str, Any]:
        """
        Train a model in place until convergence or the iteration cap.

        The model is updated with a single set_parameters call per completed
        iteration, so a failing iteration leaves the last valid parameters.

        Args:
            hmm: Model to train (Hmm or InputHmm)
            sequences: Training observation sequences

        Returns:
            Dictionary with training statistics:
            - 'converged': Whether the tolerance criterion stopped training
            - 'stop_reason': 'converged' or 'max_iterations'
            - 'iterations': Number of iterations performed
            - 'final_log_likelihood': Log-likelihood of the final model
            - 'log_likelihood_history': Log-likelihoods, starting with the initial model
            - 'improvement_history': Improvements per iteration
        """
        sequences = self._materialize(sequences)
        log = self.logger

        counts = self.expectation(hmm, sequences)
        log_likelihood_history = [counts.log_likelihood]
        improvement_history = []
        converged = False

        log.info(f"Starting Baum-Welch training with {len(sequences)} sequences")
        log.info(f"Initial log-likelihood: {counts.log_likelihood:.6f}")

        for iteration in range(self.max_iterations):
            hmm.set_parameters(*self.maximization(hmm, counts, len(sequences)))
            counts = self.expectation(hmm, sequences)

            current_log_likelihood = counts.log_likelihood
            improvement = current_log_likelihood - log_likelihood_history[-1]
            log_likelihood_history.append(current_log_likelihood)
            improvement_history.append(improvement)

            log.debug(f"Iteration {iteration + 1}: log_likelihood={current_log_likelihood:.6f}, "
                      f"improvement={improvement:.6f}")
            if self.callback is not None:
                self.callback(iteration + 1, current_log_likelihood, improvement)

            if improvement < -REGRESSION_TOLERANCE:
                log.warning(f"Log-likelihood decreased by {-improvement:.6g} at iteration {iteration + 1}")

            # A real regression is never mistaken for convergence
            relative = abs(improvement) / max(abs(current_log_likelihood), np.finfo(float).tiny)
            settled = improvement < self.tolerance or relative < self.relative_tolerance
            if settled and improvement >= -REGRESSION_TOLERANCE:
                converged = True
                log.info(f"Converged after {iteration + 1} iterations "
                         f"(improvement {improvement:.6g} < tolerance {self.tolerance})")
                break

        if not converged:
            log.info(f"Training stopped after {self.max_iterations} iterations without convergence")

        return {
            'converged': converged,
            'stop_reason': STOP_CONVERGED if converged else STOP_MAX_ITERATIONS,
            'iterations': len(improvement_history),
            'final_log_likelihood': log_likelihood_history[-1],
            'log_likelihood_history': log_likelihood_history,
            'improvement_history': improvement_history
        }
