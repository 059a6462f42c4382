"""
Allocation translator and full plan derivation.

Turns target weights into currency notionals, computes the margin
needed by futures strategies and the margin-safety multiple, then
assembles everything into an AllocationPlan. The whole derivation is a
pure function of (strategies, config) and is recomputed on every change.
"""

import math
from typing import List, Optional

import numpy as np

from config import MARGIN_COVERAGE_MULTIPLE
from estimators import average_correlations, build_covariance_matrix, resolve_correlation
from models import AllocationPlan, PortfolioConfig, Strategy
from optimizer import analyze_risk_contributions, optimize_strategy_weights


def translate_allocation(weights: np.ndarray,
                         strategies: List[Strategy],
                         config: PortfolioConfig) -> dict:
    """
    Convert weights into notionals and margin figures.

    Parameters
    ----------
    weights : np.ndarray
        Target weights (sum to 1)
    strategies : list of Strategy
        Strategy book in weight order
    config : PortfolioConfig
        Capital, cash buffer and futures margin settings

    Returns
    -------
    dict
        - 'deployable_capital': capital · (1 - cash buffer fraction)
        - 'cash_buffer': capital · cash buffer fraction
        - 'notionals': weight_i · deployable capital
        - 'margin_required': Σ futures notional · margin rate
        - 'margin_buffer_multiple': cash buffer / (3 · margin), ∞ without margin
    """
    w = np.asarray(weights, dtype=float)
    if len(w) != len(strategies):
        raise ValueError(f"Got {len(w)} weights for {len(strategies)} strategies")

    deployable = config.deployable_capital
    cash_buffer = config.cash_buffer
    notionals = w * deployable

    futures_mask = np.array([s.is_futures for s in strategies], dtype=bool)
    futures_notional = float(notionals[futures_mask].sum()) if futures_mask.any() else 0.0
    margin_required = futures_notional * config.futures_margin_rate

    if margin_required > 0:
        margin_buffer_multiple = cash_buffer / (MARGIN_COVERAGE_MULTIPLE * margin_required)
    else:
        margin_buffer_multiple = math.inf

    return {
        'deployable_capital': deployable,
        'cash_buffer': cash_buffer,
        'notionals': notionals,
        'margin_required': margin_required,
        'margin_buffer_multiple': margin_buffer_multiple,
    }


def compute_allocation_plan(strategies: List[Strategy],
                            config: PortfolioConfig,
                            correlation: Optional[np.ndarray] = None) -> AllocationPlan:
    """
    Derive the complete allocation plan for a strategy book.

    Parameters
    ----------
    strategies : list of Strategy
        Non-empty strategy book
    config : PortfolioConfig
        Portfolio settings
    correlation : np.ndarray, optional
        Full N x N correlation matrix; defaults to the config's scalar
        cross-strategy correlation applied to every pair

    Returns
    -------
    AllocationPlan
    """
    if not strategies:
        raise ValueError("At least one strategy is required")

    if correlation is None:
        correlation = config.cross_strategy_correlation
    correlation_matrix = resolve_correlation(len(strategies), correlation)

    volatilities = [s.realized_volatility for s in strategies]
    covariance = build_covariance_matrix(volatilities, correlation_matrix)

    weight_result = optimize_strategy_weights(
        strategies,
        covariance,
        kelly_blend_factor=config.kelly_blend_factor,
        volatility_target=config.volatility_target,
    )
    weights = weight_result['weights']

    allocation = translate_allocation(weights, strategies, config)
    risk = analyze_risk_contributions(weights, covariance)

    return AllocationPlan(
        strategy_codes=[s.code for s in strategies],
        deployable_capital=allocation['deployable_capital'],
        cash_buffer=allocation['cash_buffer'],
        covariance=covariance,
        correlation=correlation_matrix,
        base_weights=weight_result['base_weights'],
        kelly_weights=weight_result['kelly_weights'],
        blended_weights=weight_result['blended_weights'],
        weights=weights,
        notionals=allocation['notionals'],
        margin_required=allocation['margin_required'],
        margin_buffer_multiple=allocation['margin_buffer_multiple'],
        risk_contributions=risk['risk_contributions'],
        risk_shares=risk['risk_shares'],
        portfolio_variance=risk['portfolio_variance'],
        portfolio_volatility=risk['portfolio_volatility'],
        average_correlations=average_correlations(correlation_matrix),
        diversification_ratio=risk['diversification_ratio'],
        effective_n_strategies=risk['effective_n_strategies'],
    )
