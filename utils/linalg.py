"""
Small dense linear algebra helpers for the allocation engine.

The engine works with N <= ~10 strategies, so everything here is plain
numpy/scipy on tiny matrices. Degenerate inputs never raise: a matrix
without an informative inverse maps to the zero matrix and callers treat
an all-zero inverse as "no information".
"""

import numpy as np
from scipy.linalg import lu_factor, lu_solve

from config import DETERMINANT_EPSILON, CONDITION_NUMBER_THRESHOLD


def invert2x2(matrix) -> np.ndarray:
    """
    Closed-form inverse of a 2x2 matrix.

    Parameters
    ----------
    matrix : array-like
        [[a, b], [c, d]]

    Returns
    -------
    np.ndarray
        Inverse matrix, or the 2x2 zero matrix if |det| < DETERMINANT_EPSILON
    """
    m = np.asarray(matrix, dtype=float)
    if m.shape != (2, 2):
        raise ValueError(f"invert2x2 expects a 2x2 matrix, got shape {m.shape}")

    (a, b), (c, d) = m
    det = a * d - b * c
    if abs(det) < DETERMINANT_EPSILON:
        return np.zeros((2, 2))

    return np.array([
        [d / det, -b / det],
        [-c / det, a / det],
    ])


def invert_matrix(matrix) -> np.ndarray:
    """
    Inverse of a square matrix with the same zero-matrix fallback as invert2x2.

    2x2 matrices use the closed form. Larger matrices are factorized with
    LU (partial pivoting); an exactly singular or ill-conditioned matrix
    (condition number above CONDITION_NUMBER_THRESHOLD) returns zeros.
    """
    m = np.asarray(matrix, dtype=float)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {m.shape}")

    n = m.shape[0]
    if n == 0:
        return np.zeros((0, 0))
    if n == 1:
        value = m[0, 0]
        return np.array([[1.0 / value]]) if abs(value) >= DETERMINANT_EPSILON else np.zeros((1, 1))
    if n == 2:
        return invert2x2(m)

    with np.errstate(divide='ignore', invalid='ignore'):
        condition_number = np.linalg.cond(m)
    if not np.isfinite(condition_number) or condition_number > CONDITION_NUMBER_THRESHOLD:
        return np.zeros((n, n))

    lu, piv = lu_factor(m)
    return lu_solve((lu, piv), np.eye(n))


def is_zero_matrix(matrix) -> bool:
    return not np.any(np.asarray(matrix))


def multiply_matrix_vector(matrix, vector) -> np.ndarray:
    """Matrix-vector product; `matrix` is a sequence of row vectors."""
    m = np.asarray(matrix, dtype=float)
    v = np.asarray(vector, dtype=float)
    if m.ndim != 2 or v.ndim != 1 or m.shape[1] != v.shape[0]:
        raise ValueError(
            f"Dimension mismatch: matrix {m.shape} cannot multiply vector {v.shape}"
        )
    return m @ v


def normalize(vector) -> np.ndarray:
    """
    Clamp negatives to zero and rescale to sum to 1.

    If nothing positive remains, returns the uniform distribution 1/n.
    (The dashboard this engine replaces used 0.5/n here, which summed to 0.5.)
    """
    v = np.asarray(vector, dtype=float)
    n = v.shape[0]
    if n == 0:
        return v.copy()

    clamped = np.maximum(v, 0.0)
    total = clamped.sum()
    if total <= 0:
        return np.full(n, 1.0 / n)
    return clamped / total
