"""
Tests for the weight blender: inverse-vol baseline, Kelly leg,
α-blend, volatility targeting and the pause mask.
"""

import numpy as np
import pytest

from estimators import build_covariance_matrix
from models import default_strategies
from optimizer import (
    analyze_risk_contributions, apply_pause_mask, apply_volatility_target, blend_weights,
    expected_return_proxy, inverse_volatility_weights, kelly_weights, optimize_strategy_weights,
)


def _default_inputs():
    strategies = default_strategies()
    cov = build_covariance_matrix([s.realized_volatility for s in strategies], 0.2)
    return strategies, cov


def test_inverse_volatility_weights():
    weights = inverse_volatility_weights([0.10, 0.15])
    assert np.allclose(weights, [0.6, 0.4]), f"Unexpected baseline: {weights}"


def test_inverse_volatility_ignores_zero_vol():
    weights = inverse_volatility_weights([0.0, 0.2, 0.2])
    assert np.allclose(weights, [0.0, 0.5, 0.5])


def test_kelly_weights_two_strategies():
    mu = expected_return_proxy([0.8, 1.1], [0.10, 0.15])
    cov = build_covariance_matrix([0.10, 0.15], 0.2)

    weights = kelly_weights(mu, cov)

    # Σ⁻¹·μ ∝ [0.001305, 0.00141]
    assert np.allclose(weights, [0.001305 / 0.002715, 0.00141 / 0.002715])


def test_kelly_weights_match_linear_solve_for_larger_books():
    sigma = np.array([0.10, 0.15, 0.20])
    rho = np.array([
        [1.0, 0.3, 0.1],
        [0.3, 1.0, 0.2],
        [0.1, 0.2, 1.0],
    ])
    cov = build_covariance_matrix(sigma, rho)
    mu = expected_return_proxy([1.0, 0.9, 0.7], sigma)

    raw = np.linalg.solve(cov, mu)
    expected = np.maximum(raw, 0) / np.maximum(raw, 0).sum()

    assert np.allclose(kelly_weights(mu, cov), expected)


def test_kelly_singular_covariance_falls_back_to_uniform():
    cov = build_covariance_matrix([0.1, 0.1], np.array([[1.0, 1.0], [1.0, 1.0]]))

    with pytest.warns(UserWarning, match="singular"):
        weights = kelly_weights([0.08, 0.08], cov)

    assert np.allclose(weights, [0.5, 0.5])


def test_negative_kelly_legs_clamped():
    # Negative Sharpe gives a negative Kelly leg
    mu = expected_return_proxy([-0.5, 1.0], [0.10, 0.10])
    cov = build_covariance_matrix([0.10, 0.10], 0.0)

    weights = kelly_weights(mu, cov)

    assert weights[0] == 0.0
    assert np.isclose(weights[1], 1.0)


@pytest.mark.parametrize("alpha", [0.0, 0.25, 0.3, 0.5, 1.0])
def test_blend_interpolates(alpha):
    base = np.array([0.6, 0.4])
    kelly = np.array([0.2, 0.8])

    blended = blend_weights(base, kelly, alpha)

    assert np.allclose(blended, (1 - alpha) * base + alpha * kelly)


def test_blend_factor_out_of_range():
    with pytest.raises(ValueError):
        blend_weights([0.5, 0.5], [0.5, 0.5], 1.2)


def test_volatility_target_scales_high_vol_strategies():
    weights = apply_volatility_target([0.5, 0.5], [0.10, 0.20], 0.10)

    # Second strategy scaled by 0.5 before renormalizing
    assert np.allclose(weights, [2 / 3, 1 / 3])


def test_volatility_target_leaves_low_vol_untouched():
    weights = apply_volatility_target([0.3, 0.7], [0.05, 0.08], 0.10)
    assert np.allclose(weights, [0.3, 0.7])


def test_pause_mask_zeroes_paused():
    weights = apply_pause_mask([0.5, 0.3, 0.2], [False, True, False])

    assert weights[1] == 0.0
    assert np.allclose(weights, [0.5 / 0.7, 0.0, 0.2 / 0.7])


def test_all_paused_is_uniform_with_warning():
    with pytest.warns(UserWarning, match="paused"):
        weights = apply_pause_mask([0.6, 0.4], [True, True])
    assert np.allclose(weights, [0.5, 0.5])


def test_optimize_default_book():
    strategies, cov = _default_inputs()

    result = optimize_strategy_weights(strategies, cov, kelly_blend_factor=0.3, volatility_target=0.10)

    assert np.allclose(result['base_weights'], [0.6, 0.4])
    assert np.allclose(result['expected_returns'], [0.08, 0.165])
    assert np.allclose(result['weights'], [0.660087, 0.339913], atol=1e-5), result['weights']
    for key in ('base_weights', 'kelly_weights', 'blended_weights', 'scaled_weights', 'weights'):
        assert abs(result[key].sum() - 1.0) < 1e-9, f"{key} does not sum to 1"
        assert np.all(result[key] >= 0), f"{key} has negative entries"


def test_optimize_paused_strategy_gets_zero_weight():
    strategies, cov = _default_inputs()
    strategies[1] = strategies[1].with_updates(paused=True)

    result = optimize_strategy_weights(strategies, cov, 0.3, 0.10)

    assert np.allclose(result['weights'], [1.0, 0.0])


def test_weights_always_valid_for_random_books():
    rng = np.random.default_rng(11)
    for _ in range(25):
        n = rng.integers(1, 7)
        strategies = [
            s.with_updates(code=f"S{i}", realized_volatility=float(v), sharpe=float(sr))
            for i, (s, v, sr) in enumerate(zip(
                default_strategies() * 4,
                rng.uniform(0.02, 0.4, n),
                rng.uniform(-1.0, 2.0, n),
            ))
        ]
        cov = build_covariance_matrix([s.realized_volatility for s in strategies],
                                      float(rng.uniform(-0.1, 0.8)))
        weights = optimize_strategy_weights(strategies, cov, float(rng.uniform()), 0.10)['weights']

        assert np.all(weights >= 0)
        assert abs(weights.sum() - 1.0) < 1e-9


def test_risk_contributions():
    cov = build_covariance_matrix([0.10, 0.15], 0.2)
    weights = np.array([0.6, 0.4])

    risk = analyze_risk_contributions(weights, cov)

    expected_variance = weights @ cov @ weights
    assert np.isclose(risk['portfolio_variance'], expected_variance)
    assert np.isclose(risk['portfolio_volatility'], np.sqrt(expected_variance))
    assert np.isclose(risk['risk_contributions'].sum(), expected_variance)
    assert np.isclose(risk['risk_shares'].sum(), 1.0)
    assert risk['diversification_ratio'] >= 1.0
    assert np.isclose(risk['effective_n_strategies'], 1 / (0.36 + 0.16))


def test_risk_shares_zero_variance():
    risk = analyze_risk_contributions(np.array([1.0, 0.0]), np.zeros((2, 2)))

    assert np.all(risk['risk_shares'] == 0)
    assert risk['portfolio_volatility'] == 0.0
    assert risk['diversification_ratio'] == 1.0
