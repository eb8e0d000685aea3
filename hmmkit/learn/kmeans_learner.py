"""
K-Means based HMM initialization.

Observations of all training sequences are clustered into one cluster per
state. Each state's emission model is fitted on its cluster, pi is estimated
from the clusters of the first observations and A from the label
transitions between consecutive observations. Further iterations re-label
the observations with their Viterbi paths and re-fit, until the labels no
longer change.
"""

from typing import Any, List, Optional, Sequence

import numpy as np

from ..calculators.kmeans import KMeansCalculator
from ..calculators.viterbi import ViterbiCalculator
from ..config import get_config
from ..exceptions import EmissionFitError, HMMKitError, InvalidModelError, InvalidSequenceError
from ..hmm.input_model import InputHmm, InputObservation
from ..hmm.model import Hmm
from ..logger import get_logger
from ..opdf.base import OpdfFactory

logger = get_logger(__name__)


class KMeansLearner:

    def __init__(self, n_states: int, opdf_factory: OpdfFactory,
                 sequences: Sequence[Sequence[Any]], n_inputs: Optional[int] = None,
                 max_iterations: Optional[int] = None):
        """
        Args:
            n_states: Number of hidden states (= number of clusters)
            opdf_factory: Factory generating the emission model of each state
            sequences: Training observation sequences
            n_inputs: Number of input symbols when sequences hold InputObservation
                items (default: largest input symbol + 1)
            max_iterations: Cap on Viterbi re-labelling iterations (default from config 'kmeans')

        Raises:
            InvalidModelError: If n_states is not strictly positive
            InvalidSequenceError: If there are no sequences or one of them is empty
        """
        if n_states <= 0:
            raise InvalidModelError("Number of states must be strictly positive")
        self.sequences = [list(seq) for seq in sequences]
        if not self.sequences:
            raise InvalidSequenceError("sequences cannot be empty")
        if any(len(seq) == 0 for seq in self.sequences):
            raise InvalidSequenceError("Training sequences cannot be empty")

        self.n_states = n_states
        self.opdf_factory = opdf_factory
        self.max_iterations = max_iterations if max_iterations is not None else (
            get_config('kmeans', 'max_iterations') or 100
        )

        self.input_conditioned = isinstance(self.sequences[0][0], InputObservation)
        if self.input_conditioned:
            inputs = [o.input for seq in self.sequences for o in seq]
            self.n_inputs = n_inputs if n_inputs is not None else int(max(inputs)) + 1
        else:
            self.n_inputs = None

        self._values = [o.value if self.input_conditioned else o
                        for seq in self.sequences for o in seq]
        self._labels: Optional[List[np.ndarray]] = None

    def _split(self, flat_labels: np.ndarray) -> List[np.ndarray]:
        bounds = np.cumsum([len(seq) for seq in self.sequences])[:-1]
        return np.split(np.asarray(flat_labels, dtype=int), bounds)

    def _build_hmm(self, labels: List[np.ndarray]):
        n = self.n_states
        flat = np.concatenate(labels)

        opdfs = []
        for i in range(n):
            members = [self._values[idx] for idx in np.flatnonzero(flat == i)]
            opdf = self.opdf_factory.generate()
            if members:
                try:
                    opdf.fit(members)
                except HMMKitError as e:
                    raise EmissionFitError(
                        f"Fitting the emission model of state {i} on its cluster failed: {e}",
                        state=i
                    ) from e
            opdfs.append(opdf)

        pi = np.bincount([seq_labels[0] for seq_labels in labels], minlength=n).astype(float)
        pi /= pi.sum()

        if self.input_conditioned:
            counts = np.zeros((n, self.n_inputs, n))
            for seq, seq_labels in zip(self.sequences, labels):
                for t in range(1, len(seq)):
                    counts[seq_labels[t - 1], seq[t].input, seq_labels[t]] += 1
        else:
            counts = np.zeros((n, n))
            for seq_labels in labels:
                np.add.at(counts, (seq_labels[:-1], seq_labels[1:]), 1)

        row_sums = counts.reshape(n, -1).sum(axis=1)
        A = np.empty_like(counts)
        for i in range(n):
            if row_sums[i] > 0:
                A[i] = counts[i] / row_sums[i]
            else:
                A[i] = 1.0 / counts[i].size

        model_cls = InputHmm if self.input_conditioned else Hmm
        return model_cls.from_parameters(pi, A, opdfs)

    def initial_hmm(self):
        """
        HMM seeded from a k-means clustering of all observations.

        Raises:
            DegenerateClusteringError: If there are fewer distinct observations than states
            EmissionFitError: If an emission model cannot be fitted on its cluster
        """
        kmeans = KMeansCalculator(self.n_states, self._values)
        self._labels = self._split(kmeans.labels)
        hmm = self._build_hmm(self._labels)
        logger.debug(f"K-means seeded HMM with {self.n_states} states")
        return hmm

    def iterate(self, hmm):
        """
        Re-label every observation with its Viterbi state and re-fit.

        Returns:
            Tuple of (new model, whether any label changed)
        """
        labels = [ViterbiCalculator(hmm, seq).state_sequence for seq in self.sequences]
        changed = self._labels is None or any(
            not np.array_equal(new, old) for new, old in zip(labels, self._labels)
        )
        self._labels = labels
        return self._build_hmm(labels), changed

    def learn(self):
        """Seed with k-means, then iterate until the labels are stable or the cap is reached."""
        hmm = self.initial_hmm()
        for iteration in range(self.max_iterations):
            hmm, changed = self.iterate(hmm)
            if not changed:
                logger.debug(f"K-means learner stable after {iteration + 1} iterations")
                break
        else:
            logger.info(f"K-means learner stopped after {self.max_iterations} iterations")
        return hmm
