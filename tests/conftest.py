"""
Test configuration and fixtures for hmmkit.

This file contains pytest configuration and shared fixtures
for testing the hmmkit package.
"""

import itertools
import tempfile
from pathlib import Path

import pytest
import numpy as np

from hmmkit.config import reset_config
from hmmkit.hmm import Hmm, InputHmm
from hmmkit.opdf import DiscreteOpdf, DiscreteOpdfFactory, GaussianOpdf


@pytest.fixture
def rng():
    """Seeded random generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def clean_config():
    """Restore default configuration after every test."""
    yield
    reset_config()


@pytest.fixture
def basic_integer_hmm():
    """5 states, uniform pi and A, 10-symbol emissions except state 1 with 6 symbols."""
    hmm = Hmm(5, DiscreteOpdfFactory(10))
    hmm.set_opdf(1, DiscreteOpdf(6))
    return hmm


@pytest.fixture
def basic_sequence():
    return [0, 1, 2, 3, 4]


@pytest.fixture
def weather_hmm():
    """Two-state discrete HMM with distinct transition and emission structure."""
    return Hmm.from_parameters(
        pi=[0.6, 0.4],
        A=[[0.7, 0.3],
           [0.4, 0.6]],
        opdfs=[DiscreteOpdf(probabilities=[0.1, 0.4, 0.5]),
               DiscreteOpdf(probabilities=[0.6, 0.3, 0.1])]
    )


@pytest.fixture
def gaussian_hmm():
    """Two well separated scalar Gaussian states."""
    return Hmm.from_parameters(
        pi=[0.5, 0.5],
        A=[[0.9, 0.1],
           [0.2, 0.8]],
        opdfs=[GaussianOpdf(0.0, 1.0), GaussianOpdf(5.0, 1.0)]
    )


@pytest.fixture
def outlier_hmm():
    """Unit Gaussians one apart; an observation at 40 has a density below the float range."""
    return Hmm.from_parameters(
        pi=[0.5, 0.5],
        A=[[0.9, 0.1],
           [0.1, 0.9]],
        opdfs=[GaussianOpdf(0.0, 1.0), GaussianOpdf(1.0, 1.0)]
    )


@pytest.fixture
def input_hmm():
    """Two states, two input symbols, discrete emissions."""
    A = np.array([
        [[0.4, 0.1], [0.1, 0.4]],
        [[0.05, 0.45], [0.3, 0.2]],
    ])
    return InputHmm.from_parameters(
        pi=[0.7, 0.3],
        A=A,
        opdfs=[DiscreteOpdf(probabilities=[0.8, 0.2]),
               DiscreteOpdf(probabilities=[0.3, 0.7])]
    )


def brute_force_probability(hmm, observations):
    """Sum of P(observations, path) over every explicit state path."""
    total = 0.0
    for path in itertools.product(range(hmm.n_states), repeat=len(observations)):
        total += hmm.probability_of_path(observations, path)
    return total


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


@pytest.fixture
def brute_force():
    """Brute-force path enumeration, for cross-checking the calculators."""
    return brute_force_probability
