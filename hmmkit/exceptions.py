"""
Exception hierarchy for hmmkit.
"""


class HMMKitError(Exception):
    """Base exception for hmmkit."""
    pass


class InvalidModelError(HMMKitError, ValueError):
    """Invalid model construction: bad counts, dimensions or probabilities."""
    pass


class InvalidSequenceError(HMMKitError, ValueError):
    """Observation sequence (or state path) unusable for the requested operation."""
    pass


class NumericalDegeneracyError(HMMKitError):
    """A computation hit a mathematically degenerate case."""
    pass


class ZeroLikelihoodError(NumericalDegeneracyError):
    """Observation sequence is impossible under the model."""

    def __init__(self, message: str, time_index: int = None):
        self.time_index = time_index
        super().__init__(message)


class NonPositiveDefiniteError(NumericalDegeneracyError):
    """Covariance (or variance) is not positive-definite."""
    pass


class DegenerateFitError(NumericalDegeneracyError):
    """Emission model cannot be fitted from the given weighted observations."""
    pass


class DegenerateClusteringError(NumericalDegeneracyError):
    """Not enough distinct observations for the requested number of clusters."""
    pass


class EmissionFitError(NumericalDegeneracyError):
    """Re-estimation of a state's emission model failed during learning."""

    def __init__(self, message: str, state: int = None):
        self.state = state
        super().__init__(message)
