"""
Unit tests for the scalar and multivariate Gaussian emission models.
"""

import math

import pytest
import numpy as np

from hmmkit.exceptions import InvalidModelError, NonPositiveDefiniteError
from hmmkit.opdf import (
    GaussianOpdf,
    GaussianOpdfFactory,
    MultiGaussianOpdf,
    MultiGaussianOpdfFactory,
)


class TestGaussianOpdf:
    """Test the scalar normal distribution."""

    def test_standard_normal_density(self):
        opdf = GaussianOpdf()

        assert opdf.probability(0.0) == pytest.approx(1.0 / math.sqrt(2.0 * math.pi))
        assert opdf.log_probability(1.0) == pytest.approx(-0.5 * math.log(2.0 * math.pi) - 0.5)

    @pytest.mark.parametrize("variance", [0.0, -1.0])
    def test_non_positive_variance(self, variance):
        with pytest.raises(NonPositiveDefiniteError):
            GaussianOpdf(0.0, variance)

    def test_fit_weighted(self):
        opdf = GaussianOpdf()
        opdf.fit([1.0, 3.0], weights=[1.0, 3.0])

        # mean 2.5, variance 0.25 * 2.25 + 0.75 * 0.25
        assert opdf.mean == pytest.approx(2.5)
        assert opdf.variance == pytest.approx(0.75)

    def test_fit_constant_data_raises_and_keeps_parameters(self):
        """Test that a zero variance estimate is rejected."""
        opdf = GaussianOpdf(1.0, 2.0)
        with pytest.raises(NonPositiveDefiniteError):
            opdf.fit([4.0, 4.0, 4.0])

        assert opdf.mean == 1.0
        assert opdf.variance == 2.0

    def test_min_variance_floor(self):
        """Test that the variance floor makes constant data fittable."""
        opdf = GaussianOpdf(min_variance=0.01)
        opdf.fit([4.0, 4.0])

        assert opdf.mean == pytest.approx(4.0)
        assert opdf.variance == pytest.approx(0.01)

    def test_generate_statistics(self, rng):
        opdf = GaussianOpdf(3.0, 4.0)
        samples = np.array([opdf.generate(rng) for _ in range(5000)])

        assert abs(samples.mean() - 3.0) < 0.15
        assert abs(samples.var() - 4.0) < 0.3

    def test_describe(self):
        assert GaussianOpdf(1.5, 2.0).describe() == "Gaussian distribution --- Mean: 1.5 Variance 2"


class TestMultiGaussianOpdf:
    """Test the multivariate normal distribution."""

    def test_default_is_standard(self):
        opdf = MultiGaussianOpdf(dimension=2)

        np.testing.assert_array_equal(opdf.mean, [0.0, 0.0])
        np.testing.assert_array_equal(opdf.covariance, np.eye(2))
        assert opdf.probability([0.0, 0.0]) == pytest.approx(1.0 / (2.0 * math.pi))

    def test_density_matches_diagonal_product(self):
        """Test that a diagonal covariance factorizes into scalar densities."""
        opdf = MultiGaussianOpdf([1.0, -1.0], [[2.0, 0.0], [0.0, 0.5]])
        expected = GaussianOpdf(1.0, 2.0).probability(2.0) * GaussianOpdf(-1.0, 0.5).probability(0.0)

        assert opdf.probability([2.0, 0.0]) == pytest.approx(expected)

    def test_non_positive_definite_covariance(self):
        with pytest.raises(NonPositiveDefiniteError):
            MultiGaussianOpdf([0.0, 0.0], [[1.0, 2.0], [2.0, 1.0]])

    def test_dimension_mismatch(self):
        with pytest.raises(InvalidModelError):
            MultiGaussianOpdf([0.0, 0.0], np.eye(3))
        opdf = MultiGaussianOpdf(dimension=2)
        with pytest.raises(InvalidModelError, match="dimension"):
            opdf.probability([1.0, 2.0, 3.0])

    def test_fit(self):
        opdf = MultiGaussianOpdf(dimension=2)
        data = [np.array([0.0, 0.0]), np.array([2.0, 0.0]), np.array([0.0, 2.0]), np.array([2.0, 2.0])]
        opdf.fit(data)

        np.testing.assert_array_almost_equal(opdf.mean, [1.0, 1.0])
        np.testing.assert_array_almost_equal(opdf.covariance, np.eye(2))

    def test_fit_singular_covariance_keeps_parameters(self):
        """Test that collinear data is rejected without touching the model."""
        opdf = MultiGaussianOpdf([5.0, 5.0], [[2.0, 0.0], [0.0, 2.0]])
        data = [[0.0, 0.0], [2.0, 2.0]]

        with pytest.raises(NonPositiveDefiniteError):
            opdf.fit(data)

        np.testing.assert_array_equal(opdf.mean, [5.0, 5.0])
        np.testing.assert_array_equal(opdf.covariance, [[2.0, 0.0], [0.0, 2.0]])
        assert opdf.probability([5.0, 5.0]) == pytest.approx(1.0 / (2.0 * math.pi * 2.0))

    def test_generate_shape(self, rng):
        opdf = MultiGaussianOpdf([1.0, 2.0, 3.0])

        assert opdf.generate(rng).shape == (3,)


class TestGaussianFactories:

    def test_gaussian_factory(self):
        opdf = GaussianOpdfFactory(2.0, 3.0).generate()

        assert opdf.mean == 2.0
        assert opdf.variance == 3.0

    def test_multi_gaussian_factory(self):
        factory = MultiGaussianOpdfFactory(3)

        assert factory.generate().dimension == 3
        with pytest.raises(InvalidModelError):
            MultiGaussianOpdfFactory(0)
