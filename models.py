"""
Data model for the fund allocation engine.

Strategies, portfolio configuration and rule thresholds are immutable
records validated at construction. Derived results (allocation plans,
decisions, orders) are plain records recomputed from those inputs.
"""

import math
import numbers
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import List, Optional

import numpy as np

from config import (
    DEFAULT_TOTAL_CAPITAL, DEFAULT_CASH_BUFFER_FRACTION, DEFAULT_VOLATILITY_TARGET,
    DEFAULT_KELLY_BLEND_FACTOR, DEFAULT_FUTURES_MARGIN_RATE, DEFAULT_CROSS_CORRELATION,
    DEFAULT_MIN_ADJUSTMENT_UNIT, DEFAULT_MAX_DAILY_GAP_FRACTION,
    DEFAULT_MAX_DAILY_DEPLOY_FRACTION, DEFAULT_STRATEGIES,
    INCREASE_MIN_SHARPE, INCREASE_MAX_VOL_RATIO, INCREASE_MAX_AVG_CORRELATION,
    MAX_IMPACT_BPS, MIN_INCREASE_SIGNALS, DECREASE_MAX_SHARPE, DECREASE_MIN_VOL_RATIO,
    DECREASE_MIN_AVG_CORRELATION, YELLOW_ZONE_DRAWDOWN, RED_ZONE_DRAWDOWN,
    MIN_TRIM_FRACTION, DECREASE_CAP_FRACTION, MARGIN_OK_THRESHOLD,
    ORANGE_LIGHT_DRAWDOWN, RED_LIGHT_DRAWDOWN,
)


class StrategyKind(Enum):
    """Capital usage type. Futures strategies require margin."""
    EQUITY = "equity"
    FUTURES = "futures"


class Action(Enum):
    """Recommended rebalancing action."""
    INCREASE = "increase"
    DECREASE = "decrease"
    HOLD = "hold"


class OrderSide(Enum):
    BUY = "BUY"
    SELL = "SELL"


class RiskLight(Enum):
    """Traffic-light risk status shown next to each strategy."""
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"


def _check_finite(name: str, value: float):
    if (isinstance(value, bool) or not isinstance(value, numbers.Real)
            or not math.isfinite(value)):
        raise ValueError(f"{name} must be a finite number, got {value!r}")


@dataclass(frozen=True)
class Strategy:
    """
    A unit of capital allocation.

    Parameters
    ----------
    code : str
        Unique strategy identifier
    kind : StrategyKind
        EQUITY or FUTURES (string values accepted)
    target_volatility : float
        Nominal design volatility (annualized fraction)
    realized_volatility : float
        Live / simulated volatility estimate (annualized fraction)
    sharpe : float
        Trailing Sharpe ratio estimate
    drawdown : float
        Current drawdown as a fraction of peak
    paused : bool
        Paused strategies get a zero target weight
    current_notional : float
        Capital currently deployed
    impact_cost_bps : float
        Estimated market-impact cost of adjusting the position
    """
    code: str
    kind: StrategyKind
    target_volatility: float
    realized_volatility: float
    sharpe: float
    drawdown: float = 0.0
    paused: bool = False
    current_notional: float = 0.0
    impact_cost_bps: float = 0.0

    def __post_init__(self):
        if not isinstance(self.code, str) or not self.code.strip():
            raise ValueError("Strategy code must be a non-empty string")
        if not isinstance(self.kind, StrategyKind):
            try:
                object.__setattr__(self, 'kind', StrategyKind(self.kind))
            except ValueError:
                raise ValueError(
                    f"Unknown strategy kind {self.kind!r} for {self.code}; "
                    f"expected one of {[k.value for k in StrategyKind]}"
                ) from None

        for name in ('target_volatility', 'realized_volatility', 'sharpe',
                     'drawdown', 'current_notional', 'impact_cost_bps'):
            _check_finite(f"{self.code}.{name}", getattr(self, name))
        if not isinstance(self.paused, (bool, np.bool_)):
            raise ValueError(f"{self.code}: paused must be a bool, got {self.paused!r}")

        if self.target_volatility < 0:
            raise ValueError(f"{self.code}: target_volatility must be >= 0")
        if self.realized_volatility < 0:
            raise ValueError(f"{self.code}: realized_volatility must be >= 0")
        if self.drawdown < 0:
            raise ValueError(f"{self.code}: drawdown must be >= 0")
        if self.current_notional < 0:
            raise ValueError(f"{self.code}: current_notional must be >= 0")
        if self.impact_cost_bps < 0:
            raise ValueError(f"{self.code}: impact_cost_bps must be >= 0")

    @property
    def is_futures(self) -> bool:
        return self.kind is StrategyKind.FUTURES

    def with_updates(self, **changes) -> "Strategy":
        """Return a validated copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class PortfolioConfig:
    """
    Process-wide allocation parameters.

    Instances are immutable; use `with_updates` to change a setting.
    Every field is range-checked on construction.
    """
    total_capital: float = DEFAULT_TOTAL_CAPITAL
    cash_buffer_fraction: float = DEFAULT_CASH_BUFFER_FRACTION
    volatility_target: float = DEFAULT_VOLATILITY_TARGET
    kelly_blend_factor: float = DEFAULT_KELLY_BLEND_FACTOR
    futures_margin_rate: float = DEFAULT_FUTURES_MARGIN_RATE
    cross_strategy_correlation: float = DEFAULT_CROSS_CORRELATION
    min_adjustment_unit: float = DEFAULT_MIN_ADJUSTMENT_UNIT
    max_daily_gap_fraction: float = DEFAULT_MAX_DAILY_GAP_FRACTION
    max_daily_deploy_fraction: float = DEFAULT_MAX_DAILY_DEPLOY_FRACTION

    def __post_init__(self):
        for f in fields(self):
            _check_finite(f.name, getattr(self, f.name))

        if self.total_capital <= 0:
            raise ValueError(f"total_capital must be > 0, got {self.total_capital}")
        if not 0 <= self.cash_buffer_fraction < 1:
            raise ValueError(f"cash_buffer_fraction must be in [0, 1), got {self.cash_buffer_fraction}")
        if self.volatility_target <= 0:
            raise ValueError(f"volatility_target must be > 0, got {self.volatility_target}")
        if not 0 <= self.kelly_blend_factor <= 1:
            raise ValueError(f"kelly_blend_factor must be in [0, 1], got {self.kelly_blend_factor}")
        if not 0 < self.futures_margin_rate <= 1:
            raise ValueError(f"futures_margin_rate must be in (0, 1], got {self.futures_margin_rate}")
        if not -1 < self.cross_strategy_correlation < 1:
            raise ValueError(
                f"cross_strategy_correlation must be in (-1, 1), got {self.cross_strategy_correlation}"
            )
        if self.min_adjustment_unit < 0:
            raise ValueError(f"min_adjustment_unit must be >= 0, got {self.min_adjustment_unit}")
        if not 0 < self.max_daily_gap_fraction <= 1:
            raise ValueError(f"max_daily_gap_fraction must be in (0, 1], got {self.max_daily_gap_fraction}")
        if not 0 < self.max_daily_deploy_fraction <= 1:
            raise ValueError(
                f"max_daily_deploy_fraction must be in (0, 1], got {self.max_daily_deploy_fraction}"
            )

    @property
    def deployable_capital(self) -> float:
        return self.total_capital * (1 - self.cash_buffer_fraction)

    @property
    def cash_buffer(self) -> float:
        return self.total_capital * self.cash_buffer_fraction

    def with_updates(self, **changes) -> "PortfolioConfig":
        """Return a validated copy with the given settings replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class DecisionRules:
    """Thresholds used by the rebalancing decision engine."""
    increase_min_sharpe: float = INCREASE_MIN_SHARPE
    increase_max_vol_ratio: float = INCREASE_MAX_VOL_RATIO
    increase_max_avg_correlation: float = INCREASE_MAX_AVG_CORRELATION
    max_impact_bps: float = MAX_IMPACT_BPS
    min_increase_signals: int = MIN_INCREASE_SIGNALS
    decrease_max_sharpe: float = DECREASE_MAX_SHARPE
    decrease_min_vol_ratio: float = DECREASE_MIN_VOL_RATIO
    decrease_min_avg_correlation: float = DECREASE_MIN_AVG_CORRELATION
    yellow_zone_drawdown: float = YELLOW_ZONE_DRAWDOWN
    red_zone_drawdown: float = RED_ZONE_DRAWDOWN
    min_trim_fraction: float = MIN_TRIM_FRACTION
    decrease_cap_fraction: float = DECREASE_CAP_FRACTION
    margin_ok_threshold: float = MARGIN_OK_THRESHOLD
    orange_light_drawdown: float = ORANGE_LIGHT_DRAWDOWN
    red_light_drawdown: float = RED_LIGHT_DRAWDOWN

    def __post_init__(self):
        if self.yellow_zone_drawdown > self.red_zone_drawdown:
            raise ValueError("yellow_zone_drawdown must not exceed red_zone_drawdown")
        if not self.yellow_zone_drawdown <= self.orange_light_drawdown <= self.red_light_drawdown:
            raise ValueError("Risk-light drawdowns must satisfy yellow <= orange <= red")
        if self.min_increase_signals < 1:
            raise ValueError("min_increase_signals must be >= 1")
        for name in ('min_trim_fraction', 'decrease_cap_fraction'):
            if not 0 <= getattr(self, name) <= 1:
                raise ValueError(f"{name} must be in [0, 1]")


@dataclass(eq=False)
class AllocationPlan:
    """Everything derived from a strategy list and a PortfolioConfig."""
    strategy_codes: List[str]
    deployable_capital: float
    cash_buffer: float
    covariance: np.ndarray
    correlation: np.ndarray
    base_weights: np.ndarray
    kelly_weights: np.ndarray
    blended_weights: np.ndarray
    weights: np.ndarray
    notionals: np.ndarray
    margin_required: float
    margin_buffer_multiple: float
    risk_contributions: np.ndarray
    risk_shares: np.ndarray
    portfolio_variance: float
    portfolio_volatility: float
    average_correlations: np.ndarray
    diversification_ratio: float = 1.0
    effective_n_strategies: float = 0.0

    @property
    def margin_ok(self) -> bool:
        return self.margin_buffer_multiple >= MARGIN_OK_THRESHOLD

    def to_frame(self):
        """Per-strategy view of the plan."""
        import pandas as pd

        return pd.DataFrame({
            'strategy': self.strategy_codes,
            'base_weight': self.base_weights,
            'kelly_weight': self.kelly_weights,
            'weight': self.weights,
            'notional': self.notionals,
            'risk_share': self.risk_shares,
            'avg_correlation': self.average_correlations,
        })


@dataclass
class Decision:
    """Recommended action for one strategy in the current evaluation cycle."""
    strategy_code: str
    action: Action
    recommended_delta: float
    target_notional: float
    current_notional: float
    gap: float
    impact_bps: float
    increase_reasons: List[str] = field(default_factory=list)
    decrease_reasons: List[str] = field(default_factory=list)
    hold_reasons: List[str] = field(default_factory=list)

    @property
    def core_reasons(self) -> List[str]:
        """The two leading reasons behind the final action."""
        if self.action is Action.INCREASE:
            return self.increase_reasons[:2]
        if self.action is Action.DECREASE:
            return self.decrease_reasons[:2]
        return self.hold_reasons[:2]


@dataclass(frozen=True)
class Order:
    """Execution instruction produced when suggested adjustments are applied."""
    strategy_code: str
    side: OrderSide
    amount: float
    new_notional: float


def default_strategies() -> List[Strategy]:
    """Demo strategy book shown when the dashboard starts."""
    return [Strategy(**params) for params in DEFAULT_STRATEGIES]


def default_config(**overrides) -> PortfolioConfig:
    """Default portfolio configuration, optionally with overrides."""
    return PortfolioConfig(**overrides)


def strategies_from_records(records: List[dict]) -> List[Strategy]:
    """Build strategies from plain dicts (e.g. parsed JSON), rejecting duplicate codes."""
    strategies = [Strategy(**record) for record in records]
    codes = [s.code for s in strategies]
    duplicates = sorted({c for c in codes if codes.count(c) > 1})
    if duplicates:
        raise ValueError(f"Duplicate strategy codes: {duplicates}")
    return strategies


def find_strategy(strategies: List[Strategy], code: str) -> Optional[Strategy]:
    for strategy in strategies:
        if strategy.code == code:
            return strategy
    return None
