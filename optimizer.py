"""
Strategy weight blender and risk attribution.

Target weights are built in stages:
1. Inverse-volatility (risk parity) baseline: w ∝ 1/σ
2. Kelly-optimal weights: w ∝ Σ⁻¹·μ with μ = Sharpe·σ
3. α-blend of the two: (1-α)·baseline + α·Kelly
4. Volatility targeting: scale each weight by min(1, σ_target/σ)
5. Pause mask: paused strategies get zero weight

Every stage re-normalizes so weights stay non-negative and sum to 1.
"""

import warnings
from typing import List

import numpy as np

from config import EPSILON
from models import Strategy
from utils.linalg import invert_matrix, is_zero_matrix, multiply_matrix_vector, normalize


def inverse_volatility_weights(volatilities) -> np.ndarray:
    """Risk-parity baseline; zero-volatility strategies get zero raw weight."""
    sigma = np.asarray(volatilities, dtype=float)
    inverse_vol = np.zeros_like(sigma)
    usable = sigma > EPSILON
    inverse_vol[usable] = 1.0 / sigma[usable]
    return normalize(inverse_vol)


def expected_return_proxy(sharpes, volatilities) -> np.ndarray:
    """Implied expected excess return μ_i = Sharpe_i · σ_i."""
    return np.asarray(sharpes, dtype=float) * np.asarray(volatilities, dtype=float)


def kelly_weights(expected_returns, covariance_matrix) -> np.ndarray:
    """
    Kelly-optimal weights w ∝ Σ⁻¹·μ, clamped long-only and normalized.

    Parameters
    ----------
    expected_returns : array-like
        Expected excess returns μ
    covariance_matrix : array-like
        Covariance matrix Σ

    Returns
    -------
    np.ndarray
        Normalized weights. A singular Σ has no informative inverse, so the
        weights fall back to the uniform distribution.
    """
    inverse_cov = invert_matrix(covariance_matrix)
    if len(inverse_cov) and is_zero_matrix(inverse_cov):
        warnings.warn("Covariance matrix is singular; Kelly weights fall back to uniform")

    kelly_raw = multiply_matrix_vector(inverse_cov, expected_returns)
    return normalize(kelly_raw)


def blend_weights(base_weights, kelly_weights_, alpha: float) -> np.ndarray:
    """(1-α)·baseline + α·Kelly, re-normalized."""
    if not 0 <= alpha <= 1:
        raise ValueError(f"Blend factor must be in [0, 1], got {alpha}")
    base = np.asarray(base_weights, dtype=float)
    kelly = np.asarray(kelly_weights_, dtype=float)
    return normalize((1 - alpha) * base + alpha * kelly)


def apply_volatility_target(weights, volatilities, volatility_target: float) -> np.ndarray:
    """Scale each weight by min(1, target/σ) so no strategy alone exceeds the target."""
    sigma = np.maximum(np.asarray(volatilities, dtype=float), EPSILON)
    scale = np.minimum(1.0, volatility_target / sigma)
    return normalize(np.asarray(weights, dtype=float) * scale)


def apply_pause_mask(weights, paused) -> np.ndarray:
    """Zero out paused strategies and re-normalize the rest."""
    mask = np.where(np.asarray(paused, dtype=bool), 0.0, 1.0)
    if len(mask) and not mask.any():
        warnings.warn("All strategies are paused; target weights fall back to uniform")
    return normalize(np.asarray(weights, dtype=float) * mask)


def optimize_strategy_weights(strategies: List[Strategy],
                              covariance_matrix: np.ndarray,
                              kelly_blend_factor: float,
                              volatility_target: float) -> dict:
    """
    Compute the final target weight vector for a strategy book.

    Parameters
    ----------
    strategies : list of Strategy
        Strategy book (order defines vector positions)
    covariance_matrix : np.ndarray
        Covariance of realized strategy returns
    kelly_blend_factor : float
        α in [0, 1]
    volatility_target : float
        Annualized portfolio volatility target

    Returns
    -------
    dict
        Dictionary containing:
        - 'base_weights': inverse-volatility weights
        - 'kelly_weights': Kelly-optimal weights
        - 'expected_returns': μ proxy used for Kelly
        - 'blended_weights': α-blend of the two
        - 'scaled_weights': after volatility targeting
        - 'weights': final weights after the pause mask

    Strategies with realized volatility at or below EPSILON carry no risk
    information: Kelly is solved on the remaining sub-book and they end
    with zero weight (unless nothing else is usable).
    """
    volatilities = np.array([s.realized_volatility for s in strategies], dtype=float)
    sharpes = np.array([s.sharpe for s in strategies], dtype=float)
    paused = [s.paused for s in strategies]

    usable = volatilities > EPSILON

    base = inverse_volatility_weights(volatilities)
    mu = expected_return_proxy(sharpes, volatilities)
    if usable.any():
        cov = np.asarray(covariance_matrix, dtype=float)
        kelly = np.zeros(len(strategies))
        kelly[usable] = kelly_weights(mu[usable], cov[np.ix_(usable, usable)])
    else:
        kelly = normalize(np.zeros(len(strategies)))

    blended = blend_weights(base, kelly, kelly_blend_factor)
    scaled = apply_volatility_target(blended, volatilities, volatility_target)
    if usable.any() and not usable.all():
        scaled = normalize(scaled * usable)
    final_weights = apply_pause_mask(scaled, paused)

    return {
        'base_weights': base,
        'kelly_weights': kelly,
        'expected_returns': mu,
        'blended_weights': blended,
        'scaled_weights': scaled,
        'weights': final_weights,
    }


def analyze_risk_contributions(weights: np.ndarray, covariance_matrix: np.ndarray) -> dict:
    """
    Decompose portfolio variance into per-strategy contributions.

    Parameters
    ----------
    weights : np.ndarray
        Portfolio weights
    covariance_matrix : np.ndarray
        Strategy covariance matrix

    Returns
    -------
    dict
        - 'marginal_risk': Σ·w
        - 'risk_contributions': w_i · (Σ·w)_i
        - 'risk_shares': contributions / their sum (sum treated as 1 if <= 0)
        - 'portfolio_variance', 'portfolio_volatility'
        - 'diversification_ratio': weighted avg vol / portfolio vol
        - 'effective_n_strategies': inverse Herfindahl index of the weights
    """
    w = np.asarray(weights, dtype=float)
    cov = np.asarray(covariance_matrix, dtype=float)

    marginal_risk = multiply_matrix_vector(cov, w)
    risk_contributions = w * marginal_risk

    contribution_sum = risk_contributions.sum()
    if contribution_sum <= 0:
        contribution_sum = 1.0
    risk_shares = risk_contributions / contribution_sum

    portfolio_variance = float(np.dot(w, marginal_risk))
    # Near-singular Σ can leave a tiny negative variance from rounding
    portfolio_volatility = float(np.sqrt(max(portfolio_variance, 0.0)))

    individual_vols = np.sqrt(np.maximum(np.diag(cov), 0.0))
    weighted_avg_vol = float(w @ individual_vols)
    diversification_ratio = weighted_avg_vol / portfolio_volatility if portfolio_volatility > 0 else 1.0

    herfindahl = float(np.sum(w ** 2))
    effective_n = 1.0 / herfindahl if herfindahl > 0 else 0.0

    return {
        'marginal_risk': marginal_risk,
        'risk_contributions': risk_contributions,
        'risk_shares': risk_shares,
        'portfolio_variance': portfolio_variance,
        'portfolio_volatility': portfolio_volatility,
        'diversification_ratio': diversification_ratio,
        'effective_n_strategies': effective_n,
    }
