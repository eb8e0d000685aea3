"""
Dense matrix helpers for Gaussian emission models.

Determinant, inverse and Mahalanobis distance are all computed from a
Cholesky factor, so a single positive-definiteness check covers them.
"""

import numpy as np
from scipy import linalg as sla

from .exceptions import NonPositiveDefiniteError, InvalidModelError


def as_square_matrix(m, name: str = "matrix") -> np.ndarray:
    """Convert to a float 2-D square array or raise InvalidModelError."""
    m = np.array(m, dtype=float)
    if m.ndim != 2 or m.shape[0] != m.shape[1] or m.shape[0] == 0:
        raise InvalidModelError(f"{name} must be a non-empty square matrix, got shape {m.shape}")
    return m


def is_symmetric(m: np.ndarray, tolerance: float = 1e-10) -> bool:
    return np.allclose(m, m.T, atol=tolerance, rtol=0.0)


def cholesky(m) -> np.ndarray:
    """
    Lower-triangular Cholesky factor L with m = L L^T.

    Raises:
        NonPositiveDefiniteError: If m is not symmetric positive-definite
    """
    m = as_square_matrix(m)
    if not np.all(np.isfinite(m)):
        raise NonPositiveDefiniteError("Matrix contains non-finite values")
    if not is_symmetric(m):
        raise NonPositiveDefiniteError("Matrix is not symmetric")
    try:
        L = np.linalg.cholesky(m)
    except np.linalg.LinAlgError as e:
        raise NonPositiveDefiniteError(f"Matrix is not positive-definite: {e}") from e
    if np.any(np.diag(L) <= 0.0):
        raise NonPositiveDefiniteError("Matrix is singular")
    return L


def log_determinant(L: np.ndarray) -> float:
    """Log-determinant of L L^T given the Cholesky factor L."""
    return 2.0 * float(np.sum(np.log(np.diag(L))))


def determinant(m) -> float:
    return float(np.exp(log_determinant(cholesky(m))))


def inverse(m) -> np.ndarray:
    """Inverse of a symmetric positive-definite matrix."""
    L = cholesky(m)
    return sla.cho_solve((L, True), np.eye(L.shape[0]))


def mahalanobis_squared(x: np.ndarray, mean: np.ndarray, L: np.ndarray) -> float:
    """(x - mean)^T (L L^T)^-1 (x - mean) computed with a triangular solve."""
    z = sla.solve_triangular(L, np.asarray(x, dtype=float) - mean, lower=True)
    return float(np.dot(z, z))
