"""
Tests for the rebalancing decision engine and the actions built on it
(apply adjustments, reduce risk, reset).
"""

import pytest

from allocation import compute_allocation_plan
from decisions import (
    apply_suggested_adjustments, decide_for_strategy, evaluate_decisions, reduce_risk,
    reset_strategies, risk_light, summarize_decisions,
)
from models import Action, DecisionRules, OrderSide, RiskLight, default_config, default_strategies


def _decide(strategies, config=None):
    config = config or default_config()
    plan = compute_allocation_plan(strategies, config)
    return evaluate_decisions(strategies, plan, config), plan


def test_default_book_decisions():
    decisions, plan = _decide(default_strategies())
    stock, futures = decisions

    assert stock.action is Action.INCREASE
    # Capped by 5% of deployable capital
    assert stock.recommended_delta == pytest.approx(1_125_000)
    assert stock.increase_reasons == [
        "Low correlation with the book (diversifier)",
        "Impact cost <= 25bps",
    ]

    # 6% drawdown sits in the yellow zone
    assert futures.action is Action.HOLD
    assert futures.recommended_delta == 0.0
    assert futures.hold_reasons[0].startswith("Yellow zone")
    assert "No decrease trigger" in futures.hold_reasons
    assert futures.gap == pytest.approx(plan.notionals[1] - 5_000_000)


def test_summary_totals():
    decisions, plan = _decide(default_strategies())
    summary = summarize_decisions(decisions, plan)

    assert summary['total_increase'] == pytest.approx(1_125_000)
    assert summary['total_decrease'] == 0
    assert summary['n_increase'] == 1
    assert summary['n_hold'] == 1
    assert summary['n_decrease'] == 0
    assert summary['margin_ok'] is True
    assert summary['net_change'] == pytest.approx(1_125_000)


@pytest.mark.parametrize("drawdown", [0.10, 0.12, 0.2, 0.5])
def test_red_zone_drawdown_never_increases(drawdown):
    strategies = [s.with_updates(drawdown=drawdown, sharpe=2.0) for s in default_strategies()]
    decisions, _ = _decide(strategies)

    for decision in decisions:
        assert decision.action is not Action.INCREASE, f"{decision.strategy_code} increased"
        assert "Drawdown >= 10%" in decision.decrease_reasons


@pytest.mark.parametrize("drawdown", [0.05, 0.07, 0.0999])
def test_yellow_zone_drawdown_never_increases(drawdown):
    strategies = [s.with_updates(drawdown=drawdown, sharpe=2.0, realized_volatility=0.05)
                  for s in default_strategies()]
    decisions, _ = _decide(strategies)

    for decision in decisions:
        assert decision.action is Action.HOLD
        assert decision.recommended_delta == 0.0


def test_red_zone_decrease_trims_current_position():
    strategies = default_strategies()
    strategies[1] = strategies[1].with_updates(drawdown=0.12)

    decisions, _ = _decide(strategies)
    futures = decisions[1]

    # Target is above current, so the trim is 10% of current
    assert futures.action is Action.DECREASE
    assert futures.recommended_delta == pytest.approx(-500_000)


def test_decrease_towards_target_is_capped():
    strategies = default_strategies()
    strategies[0] = strategies[0].with_updates(sharpe=-0.5, current_notional=20_000_000)

    decisions, plan = _decide(strategies)
    stock = decisions[0]

    gap = plan.notionals[0] - 20_000_000
    assert gap < 0
    expected_cap = max(min(abs(gap) * 0.20, 22_500_000 * 0.05), 20_000_000 * 0.20)
    assert stock.action is Action.DECREASE
    assert stock.recommended_delta == pytest.approx(-min(abs(gap), expected_cap))
    assert stock.core_reasons == ["Sharpe < 0"]


def test_small_decrease_demoted_to_hold():
    strategies = default_strategies()
    strategies[1] = strategies[1].with_updates(drawdown=0.12, current_notional=200_000)

    decisions, _ = _decide(strategies)
    futures = decisions[1]

    assert futures.action is Action.HOLD
    assert futures.recommended_delta == 0.0
    assert "Decrease triggered but below minimum adjustment unit" in futures.hold_reasons
    assert futures.decrease_reasons == ["Drawdown >= 10%"]


def test_small_increase_demoted_to_hold():
    config = default_config(min_adjustment_unit=2_000_000)
    decisions, _ = _decide(default_strategies(), config)
    stock = decisions[0]

    assert stock.action is Action.HOLD
    assert "Increase below minimum adjustment unit" in stock.hold_reasons
    assert any(r.startswith("Step control") for r in stock.hold_reasons)


def test_step_never_exceeds_daily_caps():
    config = default_config()
    strategies = [s.with_updates(current_notional=0.0, drawdown=0.0) for s in default_strategies()]
    decisions, plan = _decide(strategies, config)

    for decision in decisions:
        cap = min(abs(decision.gap) * config.max_daily_gap_fraction,
                  plan.deployable_capital * config.max_daily_deploy_fraction)
        assert abs(decision.recommended_delta) <= cap + 1e-6


def test_paused_strategy_holds():
    strategies = default_strategies()
    strategies[0] = strategies[0].with_updates(paused=True)

    decisions, plan = _decide(strategies)
    stock = decisions[0]

    assert plan.weights[0] == 0.0
    assert stock.action is not Action.INCREASE
    assert "Strategy paused" in stock.hold_reasons or stock.action is Action.DECREASE


def test_high_impact_blocks_increase():
    strategies = default_strategies()
    strategies[0] = strategies[0].with_updates(impact_cost_bps=40.0, sharpe=1.5,
                                               realized_volatility=0.05)

    decisions, _ = _decide(strategies)

    assert decisions[0].action is Action.HOLD
    assert "Impact cost <= 25bps" not in decisions[0].increase_reasons


def test_margin_shortfall_triggers_futures_decrease_and_blocks_increase():
    decisions, plan = _decide(default_strategies(), default_config(cash_buffer_fraction=0.01))
    stock, futures = decisions

    assert not plan.margin_ok
    assert stock.action is Action.HOLD
    assert futures.action is Action.DECREASE
    assert "Margin buffer insufficient" in futures.decrease_reasons
    assert futures.recommended_delta == pytest.approx(-500_000)


def test_hold_lists_missing_signals():
    strategies = default_strategies()
    strategies[0] = strategies[0].with_updates(impact_cost_bps=30.0)

    decisions, _ = _decide(strategies)

    assert decisions[0].action is Action.HOLD
    assert "Not enough increase signals (only 1 met)" in decisions[0].hold_reasons


def test_decide_for_single_strategy():
    strategies = default_strategies()
    config = default_config()
    plan = compute_allocation_plan(strategies, config)

    decision = decide_for_strategy(0, strategies, plan, config)

    assert decision.strategy_code == "S1-Stock-A"
    assert decision.target_notional == pytest.approx(plan.notionals[0])


def test_plan_for_different_book_rejected():
    config = default_config()
    plan = compute_allocation_plan(default_strategies(), config)
    other = [s.with_updates(code=s.code + "-X") for s in default_strategies()]

    with pytest.raises(ValueError):
        evaluate_decisions(other, plan, config)


def test_apply_suggested_adjustments():
    strategies = default_strategies()
    decisions, _ = _decide(strategies)

    orders, updated = apply_suggested_adjustments(strategies, decisions)

    assert len(orders) == 1
    order = orders[0]
    assert order.strategy_code == "S1-Stock-A"
    assert order.side is OrderSide.BUY
    assert order.amount == 1_125_000
    assert order.new_notional == 2_125_000
    assert updated[0].current_notional == 2_125_000
    assert updated[1] is strategies[1]
    # Inputs untouched
    assert strategies[0].current_notional == 1_000_000


def test_apply_sell_order():
    strategies = default_strategies()
    strategies[1] = strategies[1].with_updates(drawdown=0.12)
    decisions, _ = _decide(strategies)

    orders, updated = apply_suggested_adjustments(strategies, decisions)

    sell = [o for o in orders if o.side is OrderSide.SELL]
    assert len(sell) == 1
    assert sell[0].amount == 500_000
    assert updated[1].current_notional == 4_500_000


def test_apply_length_mismatch():
    strategies = default_strategies()
    decisions, _ = _decide(strategies)
    with pytest.raises(ValueError):
        apply_suggested_adjustments(strategies[:1], decisions)


def test_reduce_risk():
    config = reduce_risk(default_config())
    assert config.volatility_target == pytest.approx(0.07)

    floored = reduce_risk(default_config(volatility_target=0.025))
    assert floored.volatility_target == pytest.approx(0.02)


def test_reset_strategies():
    stressed = [s.with_updates(paused=True, realized_volatility=0.3, drawdown=0.15,
                               current_notional=123.0)
                for s in default_strategies()]

    restored = reset_strategies(stressed)

    assert restored == default_strategies()


def test_risk_light():
    base = default_strategies()[0]

    assert risk_light(base, 0.10) is RiskLight.GREEN
    assert risk_light(base.with_updates(drawdown=0.06), 0.10) is RiskLight.YELLOW
    assert risk_light(base.with_updates(drawdown=0.15), 0.10) is RiskLight.ORANGE
    assert risk_light(base.with_updates(drawdown=0.25), 0.10) is RiskLight.RED
    assert risk_light(base.with_updates(realized_volatility=0.2), 0.10) is RiskLight.YELLOW


def test_risk_light_follows_custom_rules():
    base = default_strategies()[0]
    strict = DecisionRules(yellow_zone_drawdown=0.02, decrease_min_vol_ratio=1.05,
                           orange_light_drawdown=0.03, red_light_drawdown=0.05)

    assert risk_light(base, 0.10) is RiskLight.GREEN
    assert risk_light(base, 0.10, strict) is RiskLight.ORANGE
    assert risk_light(base.with_updates(drawdown=0.025), 0.10, strict) is RiskLight.YELLOW
    assert risk_light(base.with_updates(drawdown=0.06), 0.10, strict) is RiskLight.RED
    assert risk_light(base.with_updates(drawdown=0.0, realized_volatility=0.11), 0.10, strict) \
        is RiskLight.YELLOW


def test_light_thresholds_must_be_ordered():
    with pytest.raises(ValueError):
        DecisionRules(orange_light_drawdown=0.3, red_light_drawdown=0.2)
