"""
Configuration for the Fund Allocation & Decision Engine.

Default parameters for capital allocation, weight blending, execution
throttling and the rebalancing rule set.
"""

# Capital and risk parameters
DEFAULT_TOTAL_CAPITAL = 30_000_000
DEFAULT_CASH_BUFFER_FRACTION = 0.25
DEFAULT_VOLATILITY_TARGET = 0.10     # Annualized portfolio vol target
DEFAULT_KELLY_BLEND_FACTOR = 0.3     # α: 0 = pure inverse-vol, 1 = pure Kelly
DEFAULT_FUTURES_MARGIN_RATE = 0.10
DEFAULT_CROSS_CORRELATION = 0.2      # Scalar ρ applied to every pair

# Execution throttling
DEFAULT_MIN_ADJUSTMENT_UNIT = 100_000
DEFAULT_MAX_DAILY_GAP_FRACTION = 0.20
DEFAULT_MAX_DAILY_DEPLOY_FRACTION = 0.05

# Margin policy: cash buffer must cover this multiple of the margin requirement
MARGIN_COVERAGE_MULTIPLE = 3.0
MARGIN_OK_THRESHOLD = 1.0

# Increase rules
INCREASE_MIN_SHARPE = 1.0
INCREASE_MAX_VOL_RATIO = 0.9         # realized < 0.9 x target
INCREASE_MAX_AVG_CORRELATION = 0.4
MAX_IMPACT_BPS = 25.0
MIN_INCREASE_SIGNALS = 2

# Decrease rules
DECREASE_MAX_SHARPE = 0.0
DECREASE_MIN_VOL_RATIO = 1.5         # realized > 1.5 x target
DECREASE_MIN_AVG_CORRELATION = 0.8

# Drawdown zones
YELLOW_ZONE_DRAWDOWN = 0.05          # [5%, 10%) freezes increases
RED_ZONE_DRAWDOWN = 0.10             # >= 10% forces a decrease
ORANGE_LIGHT_DRAWDOWN = 0.10
RED_LIGHT_DRAWDOWN = 0.20

# Decrease sizing
MIN_TRIM_FRACTION = 0.10             # Always trim at least 10% of the position
DECREASE_CAP_FRACTION = 0.20         # Decrease cap floor: 20% of the position

# One-click de-risk
RISK_REDUCTION_FACTOR = 0.7
MIN_VOLATILITY_TARGET = 0.02

# Historical replay
DEFAULT_HISTORY_DAYS = 30
MIN_HISTORY_DAYS = 10
MAX_HISTORY_DAYS = 120
DEFAULT_REPLAY_SEED = 42

# Numerical tolerances
EPSILON = 1e-6                       # Volatility floor / zero-vol detection
DETERMINANT_EPSILON = 1e-8           # 2x2 singularity guard
CONDITION_NUMBER_THRESHOLD = 1e12    # NxN singularity guard

# Demo strategy book
DEFAULT_STRATEGIES = [
    {
        'code': 'S1-Stock-A',
        'kind': 'equity',
        'target_volatility': 0.10,
        'realized_volatility': 0.10,
        'sharpe': 0.8,
        'drawdown': 0.04,
        'paused': False,
        'current_notional': 1_000_000,
        'impact_cost_bps': 10.0,
    },
    {
        'code': 'S2-Futures-B',
        'kind': 'futures',
        'target_volatility': 0.15,
        'realized_volatility': 0.15,
        'sharpe': 1.1,
        'drawdown': 0.06,
        'paused': False,
        'current_notional': 5_000_000,
        'impact_cost_bps': 12.0,
    },
]

# Export layout
EXPORT_FIELDS = [
    "date", "strategy", "action", "amount", "reasons",
    "targetNotional", "currentNotional", "gap", "impactBps",
]
EXPORT_FILE_PREFIX = "today_decisions"

# UI defaults
DASHBOARD_PORT = 8503
