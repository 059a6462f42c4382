"""
Risk model for the strategy book.

Builds the covariance matrix Σ = D·ρ·D from per-strategy realized
volatilities (D = diag(σ)) and either a single scalar cross-strategy
correlation or a full correlation matrix.
"""

from typing import List, Union

import numpy as np

from models import Strategy


def build_correlation_matrix(n_strategies: int, correlation: float) -> np.ndarray:
    """
    Correlation matrix with `correlation` on every off-diagonal entry.

    Parameters
    ----------
    n_strategies : int
        Number of strategies
    correlation : float
        Pairwise correlation ρ applied between every distinct pair

    Returns
    -------
    np.ndarray
        n x n matrix with unit diagonal
    """
    if n_strategies < 0:
        raise ValueError(f"n_strategies must be >= 0, got {n_strategies}")
    if not -1 <= correlation <= 1:
        raise ValueError(f"Correlation must be in [-1, 1], got {correlation}")

    correlation_matrix = np.full((n_strategies, n_strategies), float(correlation))
    np.fill_diagonal(correlation_matrix, 1.0)
    return correlation_matrix


def validate_correlation_matrix(correlation_matrix, n_strategies: int) -> np.ndarray:
    """Check shape, symmetry, unit diagonal and [-1, 1] range; return a float copy."""
    rho = np.array(correlation_matrix, dtype=float)

    if rho.shape != (n_strategies, n_strategies):
        raise ValueError(
            f"Correlation matrix must be {n_strategies}x{n_strategies}, got {rho.shape}"
        )
    if not np.all(np.isfinite(rho)):
        raise ValueError("Correlation matrix contains non-finite values")
    if not np.allclose(rho, rho.T):
        raise ValueError("Correlation matrix must be symmetric")
    if not np.allclose(np.diag(rho), 1.0):
        raise ValueError("Correlation matrix must have a unit diagonal")
    if np.any(np.abs(rho) > 1.0 + 1e-12):
        raise ValueError("Correlation entries must lie in [-1, 1]")

    return rho


def resolve_correlation(n_strategies: int,
                        correlation: Union[float, np.ndarray]) -> np.ndarray:
    """Expand a scalar ρ into a matrix, or validate a full correlation matrix."""
    if np.ndim(correlation) == 0:
        return build_correlation_matrix(n_strategies, float(correlation))
    return validate_correlation_matrix(correlation, n_strategies)


def build_covariance_matrix(volatilities,
                            correlation: Union[float, np.ndarray]) -> np.ndarray:
    """
    Covariance matrix from volatilities and correlations.

    Cov[i][j] = σ_i · σ_j · ρ_ij, Cov[i][i] = σ_i².

    Parameters
    ----------
    volatilities : array-like
        Annualized volatilities (>= 0)
    correlation : float or np.ndarray
        Scalar pairwise correlation or full correlation matrix

    Returns
    -------
    np.ndarray
        Symmetric positive-semidefinite covariance matrix
    """
    sigma = np.asarray(volatilities, dtype=float)
    if sigma.ndim != 1:
        raise ValueError("volatilities must be a 1-D vector")
    if np.any(sigma < 0):
        raise ValueError("volatilities must be non-negative")

    rho = resolve_correlation(len(sigma), correlation)
    return np.outer(sigma, sigma) * rho


def estimate_covariance_matrix(strategies: List[Strategy],
                               correlation: Union[float, np.ndarray]) -> np.ndarray:
    """Covariance matrix of a strategy book using realized volatilities."""
    volatilities = [s.realized_volatility for s in strategies]
    return build_covariance_matrix(volatilities, correlation)


def average_correlations(correlation_matrix) -> np.ndarray:
    """
    Mean pairwise correlation of each strategy with all others (self excluded).

    A single-strategy book has no pairs and reports 0.
    """
    rho = np.asarray(correlation_matrix, dtype=float)
    n = rho.shape[0]
    if n == 0:
        return np.zeros(0)

    off_diagonal_sums = rho.sum(axis=1) - np.diag(rho)
    return off_diagonal_sums / max(n - 1, 1)

