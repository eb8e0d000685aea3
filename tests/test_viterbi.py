"""
Tests for the log-domain Viterbi decoder.
"""

import itertools

import pytest
import numpy as np

from hmmkit.calculators import ForwardBackwardCalculator, ViterbiCalculator
from hmmkit.exceptions import InvalidSequenceError
from hmmkit.hmm import Hmm
from hmmkit.opdf import DiscreteOpdf, DiscreteOpdfFactory


BASIC_SEQUENCE_VITERBI_PROBABILITY = 4.1152263374485705e-8


class TestViterbiPath:
    """Test the decoded path and its probability."""

    def test_reference_probability(self, basic_integer_hmm, basic_sequence):
        viterbi = ViterbiCalculator(basic_integer_hmm, basic_sequence)

        assert viterbi.probability == pytest.approx(BASIC_SEQUENCE_VITERBI_PROBABILITY, rel=1e-9)
        # state 1 has the widest emission probabilities for symbols 0..5
        np.testing.assert_array_equal(viterbi.state_sequence, [1, 1, 1, 1, 1])

    def test_not_more_probable_than_sequence(self, basic_integer_hmm, basic_sequence):
        viterbi = ViterbiCalculator(basic_integer_hmm, basic_sequence)
        fb = ForwardBackwardCalculator(basic_integer_hmm, basic_sequence, compute_beta=False)

        assert viterbi.probability <= fb.probability

    @pytest.mark.parametrize("sequence", [[0], [1, 2], [0, 0, 2, 1], [2, 1, 0, 0, 1]])
    def test_matches_exhaustive_search(self, weather_hmm, sequence):
        best = max(
            itertools.product(range(2), repeat=len(sequence)),
            key=lambda path: weather_hmm.ln_probability_of_path(sequence, path)
        )
        viterbi = ViterbiCalculator(weather_hmm, sequence)

        np.testing.assert_array_equal(viterbi.state_sequence, best)
        assert viterbi.ln_probability == pytest.approx(weather_hmm.ln_probability_of_path(sequence, best))

    def test_model_shortcut(self, weather_hmm):
        path = weather_hmm.most_likely_state_sequence([2, 2, 0, 0])

        np.testing.assert_array_equal(path, ViterbiCalculator(weather_hmm, [2, 2, 0, 0]).state_sequence)

    def test_ties_go_to_lowest_state(self):
        """Test that identical states decode to state 0 everywhere."""
        hmm = Hmm(3, DiscreteOpdfFactory(2))
        viterbi = ViterbiCalculator(hmm, [0, 1, 1, 0])

        np.testing.assert_array_equal(viterbi.state_sequence, [0, 0, 0, 0])

    def test_zero_probabilities_do_not_produce_nan(self):
        """Test that forbidden transitions are handled as -inf."""
        hmm = Hmm.from_parameters(
            [0.5, 0.5],
            [[1.0, 0.0], [0.0, 1.0]],
            [DiscreteOpdf(probabilities=[0.9, 0.1]), DiscreteOpdf(probabilities=[0.2, 0.8])]
        )
        viterbi = ViterbiCalculator(hmm, [1, 1, 0, 1])

        assert not np.any(np.isnan(viterbi.delta))
        np.testing.assert_array_equal(viterbi.state_sequence, [1, 1, 1, 1])
        assert viterbi.ln_probability == pytest.approx(np.log(0.5 * 0.8 * 0.8 * 0.2 * 0.8))

    def test_impossible_sequence(self):
        """Test that an impossible sequence yields -inf instead of an error."""
        hmm = Hmm.from_parameters(
            [1.0, 0.0],
            [[1.0, 0.0], [0.0, 1.0]],
            [DiscreteOpdf(probabilities=[1.0, 0.0]), DiscreteOpdf(probabilities=[0.0, 1.0])]
        )
        viterbi = ViterbiCalculator(hmm, [0, 1])

        assert viterbi.ln_probability == float('-inf')
        assert viterbi.probability == 0.0
        assert len(viterbi.state_sequence) == 2

    def test_far_outlier_keeps_finite_log_probability(self, outlier_hmm):
        """Test that a density underflowing to 0.0 still contributes its log value."""
        sequence = [0.0, 40.0, 0.0]
        viterbi = ViterbiCalculator(outlier_hmm, sequence)
        best = max(itertools.product(range(2), repeat=len(sequence)),
                   key=lambda path: outlier_hmm.ln_probability_of_path(sequence, path))

        assert np.isfinite(viterbi.ln_probability)
        assert viterbi.ln_probability < -700
        np.testing.assert_array_equal(viterbi.state_sequence, best)
        assert viterbi.ln_probability == pytest.approx(outlier_hmm.ln_probability_of_path(sequence, best))

    def test_empty_sequence(self, weather_hmm):
        with pytest.raises(InvalidSequenceError):
            ViterbiCalculator(weather_hmm, [])
