"""
Fund Management Dashboard - Streamlit.

Interactive view over the allocation and decision engine: portfolio
settings, per-strategy controls, target weights, risk attribution,
today's rebalancing decisions and a historical replay.
"""

import streamlit as st
import pandas as pd
import numpy as np
import plotly.graph_objects as go
import warnings

from allocation import compute_allocation_plan
from config import (
    DEFAULT_HISTORY_DAYS, MIN_HISTORY_DAYS, MAX_HISTORY_DAYS, MIN_VOLATILITY_TARGET,
)
from decisions import (
    evaluate_decisions, summarize_decisions, risk_light, apply_suggested_adjustments,
    reduce_risk, reset_strategies,
)
from exports import (
    build_decision_rows, decisions_to_csv, decisions_to_json, export_filename,
)
from models import Action, default_config, default_strategies
from replay import generate_history_replay
from utils.formatting import fmt_money, fmt_multiple, pct

LIGHT_ICONS = {'green': '🟢', 'yellow': '🟡', 'orange': '🟠', 'red': '🔴'}
ACTION_LABELS = {
    Action.INCREASE: '⬆️ Increase',
    Action.DECREASE: '⬇️ Decrease',
    Action.HOLD: '⏸️ Hold',
}
STRATEGY_WIDGET_PREFIXES = ("vol", "dd", "impact", "notional", "paused")


def init_session_state():
    """Seed the dashboard with the demo book on first load."""
    if 'config' not in st.session_state:
        st.session_state.config = default_config()
    if 'strategies' not in st.session_state:
        st.session_state.strategies = default_strategies()
    if 'history_days' not in st.session_state:
        st.session_state.history_days = DEFAULT_HISTORY_DAYS
    if 'order_preview' not in st.session_state:
        st.session_state.order_preview = None


def compute_plan_with_warnings(strategies, config):
    """Allocation plan plus the messages of any degeneracy warnings raised while building it."""
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        plan = compute_allocation_plan(strategies, config)
    return plan, [str(w.message) for w in caught]


def create_weights_chart(plan):
    """Target weights with baseline and Kelly legs for comparison."""
    fig = go.Figure()
    fig.add_trace(go.Bar(
        name='Inverse Vol',
        x=plan.strategy_codes,
        y=plan.base_weights * 100,
        marker_color='lightgray'
    ))
    fig.add_trace(go.Bar(
        name='Kelly',
        x=plan.strategy_codes,
        y=plan.kelly_weights * 100,
        marker_color='orange'
    ))
    fig.add_trace(go.Bar(
        name='Final Weight',
        x=plan.strategy_codes,
        y=plan.weights * 100,
        marker_color='steelblue',
        text=[f"{w:.1%}<br>{fmt_money(n)}" for w, n in zip(plan.weights, plan.notionals)],
        textposition='auto'
    ))

    fig.update_layout(
        title="Target Weights",
        xaxis_title="Strategy",
        yaxis_title="Weight (%)",
        barmode='group',
        height=400
    )
    return fig


def create_risk_share_chart(plan):
    """Risk contribution share vs capital weight per strategy."""
    fig = go.Figure()
    fig.add_trace(go.Bar(
        name='Capital Weight',
        x=plan.strategy_codes,
        y=plan.weights * 100,
        marker_color='steelblue'
    ))
    fig.add_trace(go.Bar(
        name='Risk Share',
        x=plan.strategy_codes,
        y=plan.risk_shares * 100,
        marker_color='crimson'
    ))

    fig.update_layout(
        title="Risk Contribution vs Capital Weight",
        xaxis_title="Strategy",
        yaxis_title="Percentage (%)",
        barmode='group',
        height=400,
        legend=dict(yanchor="top", y=0.99, xanchor="left", x=0.01)
    )
    return fig


def create_replay_chart(replay):
    """Target vs realized volatility with decision markers."""
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=replay['day'],
        y=replay['target'],
        mode='lines',
        name='Target Vol',
        line=dict(color='gray', dash='dash')
    ))
    fig.add_trace(go.Scatter(
        x=replay['day'],
        y=replay['realized'],
        mode='lines',
        name='Realized Vol',
        line=dict(color='steelblue', width=2)
    ))

    colors = replay['decision'].map({1: '#10b981', 0: '#94a3b8', -1: '#ef4444'})
    fig.add_trace(go.Scatter(
        x=replay['day'],
        y=replay['realized'],
        mode='markers',
        name='Decision',
        marker=dict(color=colors, size=8),
        text=replay['decision'].map({1: 'Increase', 0: 'Hold', -1: 'Decrease'}),
        hovertemplate="Day %{x}<br>Realized %{y:.2f}%<br>%{text}<extra></extra>"
    ))

    fig.update_layout(
        title="Historical Replay: Target vs Realized Volatility",
        xaxis_title="Day",
        yaxis_title="Volatility (%)",
        height=400
    )
    return fig


def render_sidebar():
    """Portfolio-level controls. Returns the updated config."""
    config = st.session_state.config

    st.sidebar.header("💰 Capital")
    total_capital = st.sidebar.number_input(
        "Total Capital", min_value=1_000_000, max_value=1_000_000_000,
        value=int(config.total_capital), step=1_000_000
    )
    cash_buffer = st.sidebar.slider(
        "Cash Buffer", 0.0, 0.5, float(config.cash_buffer_fraction), 0.01,
        help="Share of capital kept in cash; also backs futures margin"
    )

    st.sidebar.header("⚖️ Weighting")
    vol_target = st.sidebar.slider(
        "Volatility Target", MIN_VOLATILITY_TARGET, 0.20, float(config.volatility_target), 0.005
    )
    kelly_alpha = st.sidebar.slider(
        "Kelly Blend (α)", 0.0, 1.0, float(config.kelly_blend_factor), 0.05,
        help="0 = pure inverse-volatility, 1 = pure Kelly"
    )
    margin_rate = st.sidebar.slider(
        "Futures Margin Rate", 0.05, 0.20, float(config.futures_margin_rate), 0.005
    )
    cross_corr = st.sidebar.slider(
        "Cross-Strategy Correlation", -0.5, 0.95, float(config.cross_strategy_correlation), 0.05
    )

    st.sidebar.header("🧮 Execution Limits")
    min_unit = st.sidebar.slider(
        "Minimum Adjustment Unit", 10_000, 1_000_000, int(config.min_adjustment_unit), 10_000
    )
    max_gap = st.sidebar.slider(
        "Max Daily Share of Gap", 0.05, 0.5, float(config.max_daily_gap_fraction), 0.01
    )
    max_deploy = st.sidebar.slider(
        "Max Daily Share of Deployable", 0.01, 0.2, float(config.max_daily_deploy_fraction), 0.005
    )

    st.sidebar.header("📅 Replay")
    st.session_state.history_days = st.sidebar.slider(
        "Replay Days", MIN_HISTORY_DAYS, MAX_HISTORY_DAYS, st.session_state.history_days, 1
    )

    try:
        st.session_state.config = config.with_updates(
            total_capital=float(total_capital),
            cash_buffer_fraction=cash_buffer,
            volatility_target=vol_target,
            kelly_blend_factor=kelly_alpha,
            futures_margin_rate=margin_rate,
            cross_strategy_correlation=cross_corr,
            min_adjustment_unit=float(min_unit),
            max_daily_gap_fraction=max_gap,
            max_daily_deploy_fraction=max_deploy,
        )
    except ValueError as e:
        st.sidebar.error(f"❌ Invalid setting: {e}")

    return st.session_state.config


def clear_strategy_widgets():
    """Drop per-strategy widget state so sliders re-read the strategy values."""
    for key in list(st.session_state.keys()):
        if key.split("_")[0] in STRATEGY_WIDGET_PREFIXES:
            del st.session_state[key]


def render_strategy_controls():
    """Per-strategy sliders for the simulated live state."""
    if st.session_state.pop("refresh_controls", False):
        clear_strategy_widgets()

    st.subheader("🎛️ Strategy State")
    updated = []
    columns = st.columns(len(st.session_state.strategies))
    for col, strategy in zip(columns, st.session_state.strategies):
        with col:
            st.markdown(f"**{strategy.code}** ({strategy.kind.value})")
            realized = st.slider(
                "Realized Vol", 0.05, 0.30, float(strategy.realized_volatility), 0.005,
                key=f"vol_{strategy.code}"
            )
            drawdown = st.slider(
                "Drawdown", 0.0, 0.30, float(strategy.drawdown), 0.005,
                key=f"dd_{strategy.code}"
            )
            impact = st.slider(
                "Impact Cost (bps)", 0, 60, int(strategy.impact_cost_bps), 1,
                key=f"impact_{strategy.code}"
            )
            notional_max = int(max(st.session_state.config.total_capital, strategy.current_notional))
            current = st.slider(
                "Current Notional", 0, notional_max, int(strategy.current_notional), 100_000,
                key=f"notional_{strategy.code}"
            )
            paused = st.checkbox("Paused", value=strategy.paused, key=f"paused_{strategy.code}")
            updated.append(strategy.with_updates(
                realized_volatility=realized,
                drawdown=drawdown,
                impact_cost_bps=float(impact),
                current_notional=float(current),
                paused=paused,
            ))
    st.session_state.strategies = updated
    return updated


def render_kpis(plan, summary):
    col1, col2, col3, col4, col5 = st.columns(5)
    with col1:
        st.metric("Deployable Capital", fmt_money(plan.deployable_capital))
    with col2:
        st.metric("Cash Buffer", fmt_money(plan.cash_buffer))
    with col3:
        st.metric("Futures Margin", fmt_money(plan.margin_required))
    with col4:
        st.metric("Margin Buffer", fmt_multiple(plan.margin_buffer_multiple),
                  delta="OK" if summary['margin_ok'] else "Below 3x coverage",
                  delta_color="normal" if summary['margin_ok'] else "inverse")
    with col5:
        st.metric("Portfolio Vol", pct(plan.portfolio_volatility, 2))


def decisions_table(strategies, decisions, config, rules=None):
    rows = []
    for strategy, decision in zip(strategies, decisions):
        light = risk_light(strategy, config.volatility_target, rules)
        rows.append({
            'Light': LIGHT_ICONS[light.value],
            'Strategy': strategy.code,
            'Action': ACTION_LABELS[decision.action],
            'Step': fmt_money(decision.recommended_delta),
            'Target': fmt_money(decision.target_notional),
            'Current': fmt_money(decision.current_notional),
            'Gap': fmt_money(decision.gap),
            'Reasons': "; ".join(decision.core_reasons),
        })
    return pd.DataFrame(rows)


def main():
    st.set_page_config(
        page_title="Fund Management - Allocation & Decisions",
        layout="wide",
        initial_sidebar_state="expanded"
    )

    init_session_state()

    st.title("🛡️ Fund Management")
    st.markdown("*Inverse-vol / Kelly blend, volatility targeting and rule-based rebalancing*")

    col1, col2 = st.columns([1, 1])
    with col1:
        if st.button("📉 Reduce Risk (vol target -30%)", use_container_width=True):
            st.session_state.config = reduce_risk(st.session_state.config)
            st.toast("Volatility target reduced by 30%")
    with col2:
        if st.button("🔄 Reset", use_container_width=True):
            st.session_state.config = default_config()
            st.session_state.strategies = reset_strategies(st.session_state.strategies)
            st.session_state.history_days = DEFAULT_HISTORY_DAYS
            st.session_state.order_preview = None
            clear_strategy_widgets()
            st.toast("Parameters reset")

    config = render_sidebar()
    strategies = render_strategy_controls()

    plan, plan_warnings = compute_plan_with_warnings(strategies, config)
    for message in plan_warnings:
        st.warning(f"⚠️ {message}")
    decisions = evaluate_decisions(strategies, plan, config)
    summary = summarize_decisions(decisions, plan)

    st.divider()
    render_kpis(plan, summary)

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(create_weights_chart(plan), use_container_width=True)
    with col2:
        st.plotly_chart(create_risk_share_chart(plan), use_container_width=True)

    st.caption(
        f"Diversification ratio {plan.diversification_ratio:.2f} • "
        f"Effective strategies {plan.effective_n_strategies:.2f}"
    )

    st.divider()
    st.subheader("📋 Today's Decisions")
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total Increase", fmt_money(summary['total_increase']))
    with col2:
        st.metric("Total Decrease", fmt_money(summary['total_decrease']))
    with col3:
        st.metric("Net Change", fmt_money(summary['net_change']))

    st.dataframe(decisions_table(strategies, decisions, config),
                 use_container_width=True, hide_index=True)

    with st.expander("🔍 Rule Details"):
        for decision in decisions:
            st.markdown(f"**{decision.strategy_code}**")
            st.write(f"• Increase signals: {', '.join(decision.increase_reasons) or '—'}")
            st.write(f"• Decrease triggers: {', '.join(decision.decrease_reasons) or '—'}")
            st.write(f"• Hold notes: {', '.join(decision.hold_reasons) or '—'}")

    rows = build_decision_rows(strategies, decisions)
    col1, col2, col3 = st.columns(3)
    with col1:
        st.download_button("⬇️ Export CSV", decisions_to_csv(rows),
                           file_name=export_filename("csv"), mime="text/csv",
                           use_container_width=True)
    with col2:
        st.download_button("⬇️ Export JSON", decisions_to_json(rows),
                           file_name=export_filename("json"), mime="application/json",
                           use_container_width=True)
    with col3:
        has_orders = any(round(d.recommended_delta) != 0 for d in decisions)
        if st.button("▶️ Apply Suggested Adjustments", disabled=not has_orders,
                     use_container_width=True):
            orders, updated = apply_suggested_adjustments(strategies, decisions)
            st.session_state.strategies = updated
            st.session_state.order_preview = orders
            st.session_state.refresh_controls = True
            st.toast(f"Generated {len(orders)} orders")
            st.rerun()

    if st.session_state.order_preview:
        st.write("**Order Preview**")
        st.dataframe(pd.DataFrame([{
            'Strategy': o.strategy_code,
            'Side': o.side.value,
            'Amount': fmt_money(o.amount),
            'New Notional': fmt_money(o.new_notional),
        } for o in st.session_state.order_preview]), use_container_width=True, hide_index=True)

    st.divider()
    replay = generate_history_replay(
        plan.portfolio_volatility, config.volatility_target, days=st.session_state.history_days
    )
    st.plotly_chart(create_replay_chart(replay), use_container_width=True)

    with st.expander("📊 Covariance & Correlation"):
        codes = plan.strategy_codes
        st.write("**Covariance**")
        st.dataframe(pd.DataFrame(plan.covariance, index=codes, columns=codes))
        st.write("**Average correlation with the book**")
        st.dataframe(pd.DataFrame({'Strategy': codes,
                                   'Avg Correlation': np.round(plan.average_correlations, 3)}),
                     hide_index=True)


if __name__ == "__main__":
    main()
