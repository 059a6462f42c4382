"""
Rule-based rebalancing decisions.

For every strategy the engine compares its target notional (from the
allocation plan) against what is currently deployed, evaluates three
rule families and classifies the result:

- decrease: any single decrease trigger is enough
- increase: needs at least two increase signals and no disqualifier
  (paused, yellow-zone drawdown, high impact cost, unsafe margin)
- hold: everything else

The adjustment step is then capped by the daily gap / deploy limits and
demoted to hold when it falls below the minimum adjustment unit.
"""

from typing import Dict, List, Optional, Tuple

from config import (
    DEFAULT_STRATEGIES, RISK_REDUCTION_FACTOR, MIN_VOLATILITY_TARGET,
)
from models import (
    Action, AllocationPlan, Decision, DecisionRules, Order, OrderSide,
    PortfolioConfig, RiskLight, Strategy,
)
from utils.formatting import fmt_money


def _increase_reasons(strategy: Strategy, avg_corr: float,
                      volatility_target: float, rules: DecisionRules) -> List[str]:
    reasons = []
    if strategy.sharpe > rules.increase_min_sharpe:
        reasons.append(f"Sharpe > {rules.increase_min_sharpe:.1f}")
    if strategy.realized_volatility < volatility_target * rules.increase_max_vol_ratio:
        reasons.append(f"Realized vol < {rules.increase_max_vol_ratio:g}x target")
    if avg_corr < rules.increase_max_avg_correlation:
        reasons.append("Low correlation with the book (diversifier)")
    if strategy.impact_cost_bps <= rules.max_impact_bps:
        reasons.append(f"Impact cost <= {rules.max_impact_bps:g}bps")
    return reasons


def _decrease_reasons(strategy: Strategy, avg_corr: float, volatility_target: float,
                      margin_ok: bool, rules: DecisionRules) -> List[str]:
    reasons = []
    if strategy.sharpe < rules.decrease_max_sharpe:
        reasons.append(f"Sharpe < {rules.decrease_max_sharpe:g}")
    if strategy.realized_volatility > volatility_target * rules.decrease_min_vol_ratio:
        reasons.append(f"Realized vol > {rules.decrease_min_vol_ratio:g}x target")
    if strategy.drawdown >= rules.red_zone_drawdown:
        reasons.append(f"Drawdown >= {rules.red_zone_drawdown:.0%}")
    if avg_corr > rules.decrease_min_avg_correlation:
        reasons.append("Correlation clustering")
    if strategy.is_futures and not margin_ok:
        reasons.append("Margin buffer insufficient")
    return reasons


def decide_for_strategy(index: int,
                        strategies: List[Strategy],
                        plan: AllocationPlan,
                        config: PortfolioConfig,
                        rules: Optional[DecisionRules] = None) -> Decision:
    """
    Evaluate the rule set for one strategy.

    Parameters
    ----------
    index : int
        Position of the strategy in the book
    strategies : list of Strategy
        Strategy book the plan was computed from
    plan : AllocationPlan
        Derived allocation (targets, correlations, margin multiple)
    config : PortfolioConfig
        Volatility target and execution throttling parameters
    rules : DecisionRules, optional
        Rule thresholds; defaults to DecisionRules()

    Returns
    -------
    Decision
    """
    rules = rules or DecisionRules()
    strategy = strategies[index]

    target = float(plan.notionals[index])
    current = float(strategy.current_notional)
    gap = target - current
    avg_corr = float(plan.average_correlations[index])
    margin_ok = plan.margin_buffer_multiple >= rules.margin_ok_threshold

    increase_reasons = _increase_reasons(strategy, avg_corr, config.volatility_target, rules)
    decrease_reasons = _decrease_reasons(strategy, avg_corr, config.volatility_target, margin_ok, rules)
    hold_reasons = []

    yellow_zone = rules.yellow_zone_drawdown <= strategy.drawdown < rules.red_zone_drawdown
    if yellow_zone:
        hold_reasons.append(
            f"Yellow zone: drawdown {rules.yellow_zone_drawdown:.0%}-{rules.red_zone_drawdown:.0%} freezes increases"
        )
    if strategy.paused:
        hold_reasons.append("Strategy paused")

    daily_cap_from_gap = abs(gap) * config.max_daily_gap_fraction
    daily_cap_from_deploy = plan.deployable_capital * config.max_daily_deploy_fraction
    adjustment_cap = min(daily_cap_from_gap, daily_cap_from_deploy)
    if adjustment_cap < config.min_adjustment_unit:
        hold_reasons.append(
            f"Step control: cap below minimum adjustment unit {fmt_money(config.min_adjustment_unit)}"
        )

    impact_ok = strategy.impact_cost_bps <= rules.max_impact_bps
    if decrease_reasons:
        action = Action.DECREASE
    elif (len(increase_reasons) >= rules.min_increase_signals and not strategy.paused
          and not yellow_zone and impact_ok and margin_ok):
        action = Action.INCREASE
    else:
        action = Action.HOLD

    step = 0.0
    if action is Action.INCREASE:
        step = min(max(gap, 0.0), adjustment_cap)
        if step < config.min_adjustment_unit:
            hold_reasons.append("Increase below minimum adjustment unit")
            step, action = 0.0, Action.HOLD
    elif action is Action.DECREASE:
        reduce_base = max(max(-gap, 0.0), current * rules.min_trim_fraction)
        cap = max(adjustment_cap, current * rules.decrease_cap_fraction)
        step = -min(reduce_base, cap)
        if abs(step) < config.min_adjustment_unit:
            hold_reasons.append("Decrease triggered but below minimum adjustment unit")
            step, action = 0.0, Action.HOLD
    else:
        if len(increase_reasons) < rules.min_increase_signals:
            hold_reasons.append(
                f"Not enough increase signals (only {len(increase_reasons)} met)"
            )
        if not decrease_reasons:
            hold_reasons.append("No decrease trigger")

    return Decision(
        strategy_code=strategy.code,
        action=action,
        recommended_delta=step,
        target_notional=target,
        current_notional=current,
        gap=gap,
        impact_bps=strategy.impact_cost_bps,
        increase_reasons=increase_reasons,
        decrease_reasons=decrease_reasons,
        hold_reasons=hold_reasons,
    )


def evaluate_decisions(strategies: List[Strategy],
                       plan: AllocationPlan,
                       config: PortfolioConfig,
                       rules: Optional[DecisionRules] = None) -> List[Decision]:
    """Decisions for the whole book, in strategy order."""
    if [s.code for s in strategies] != list(plan.strategy_codes):
        raise ValueError("Allocation plan was computed for a different strategy book")
    return [decide_for_strategy(i, strategies, plan, config, rules) for i in range(len(strategies))]


def summarize_decisions(decisions: List[Decision], plan: AllocationPlan) -> Dict[str, float]:
    """Aggregate totals shown above the decision table."""
    summary = {
        'total_increase': sum(d.recommended_delta for d in decisions if d.recommended_delta > 0),
        'total_decrease': sum(d.recommended_delta for d in decisions if d.recommended_delta < 0),
        'margin_ok': plan.margin_ok,
    }
    for action in Action:
        summary[f'n_{action.value}'] = sum(1 for d in decisions if d.action is action)
    summary['net_change'] = summary['total_increase'] + summary['total_decrease']
    return summary


def risk_light(strategy: Strategy, volatility_target: float,
               rules: Optional[DecisionRules] = None) -> RiskLight:
    """Traffic-light status from drawdown and realized volatility."""
    rules = rules or DecisionRules()
    if strategy.drawdown > rules.red_light_drawdown:
        return RiskLight.RED
    if strategy.drawdown > rules.orange_light_drawdown:
        return RiskLight.ORANGE
    if strategy.drawdown > rules.yellow_zone_drawdown:
        return RiskLight.YELLOW
    if strategy.realized_volatility > volatility_target * rules.decrease_min_vol_ratio:
        return RiskLight.YELLOW
    return RiskLight.GREEN


def apply_suggested_adjustments(strategies: List[Strategy],
                                decisions: List[Decision]) -> Tuple[List[Order], List[Strategy]]:
    """
    Turn the current decisions into orders and updated strategies.

    Steps are rounded to whole currency units; a zero step produces no
    order. The input list is left untouched.

    Returns
    -------
    tuple
        (orders, updated_strategies)
    """
    if len(strategies) != len(decisions):
        raise ValueError(f"Got {len(decisions)} decisions for {len(strategies)} strategies")

    orders = []
    updated = []
    for strategy, decision in zip(strategies, decisions):
        if decision.strategy_code != strategy.code:
            raise ValueError(
                f"Decision for {decision.strategy_code} does not match strategy {strategy.code}"
            )
        step = round(decision.recommended_delta)
        if step == 0:
            updated.append(strategy)
            continue

        side = OrderSide.BUY if step > 0 else OrderSide.SELL
        new_notional = max(0.0, strategy.current_notional + step)
        orders.append(Order(
            strategy_code=strategy.code,
            side=side,
            amount=abs(step),
            new_notional=new_notional,
        ))
        updated.append(strategy.with_updates(current_notional=new_notional))

    return orders, updated


def reduce_risk(config: PortfolioConfig) -> PortfolioConfig:
    """One-click de-risk: cut the volatility target by 30% (floored at 2%)."""
    new_target = max(MIN_VOLATILITY_TARGET, config.volatility_target * RISK_REDUCTION_FACTOR)
    return config.with_updates(volatility_target=new_target)


def reset_strategies(strategies: List[Strategy]) -> List[Strategy]:
    """
    Restore the demo state: realized vol back to nominal, nothing paused,
    and the demo book's drawdown / Sharpe / impact / notional for known codes.
    """
    demo = {params['code']: params for params in DEFAULT_STRATEGIES}
    restored = []
    for strategy in strategies:
        changes = {'paused': False, 'realized_volatility': strategy.target_volatility}
        if strategy.code in demo:
            params = demo[strategy.code]
            for name in ('drawdown', 'sharpe', 'impact_cost_bps', 'current_notional'):
                changes[name] = params[name]
        restored.append(strategy.with_updates(**changes))
    return restored
