"""
Historical replay of target vs realized volatility.

Synthetic, deterministic series used to illustrate how the book's
realized volatility wanders around the target and which days would
have produced an increase (+1), hold (0) or decrease (-1) signal.
Per-day noise comes from a PCG64 generator seeded by (seed, day), so a
given day always gets the same draws regardless of the window length.
"""

import numpy as np
import pandas as pd

from config import (
    DEFAULT_HISTORY_DAYS, DEFAULT_REPLAY_SEED, MIN_HISTORY_DAYS, MAX_HISTORY_DAYS,
)

NOISE_AMPLITUDE = 0.03
SEASONAL_AMPLITUDE = 0.02
SEASONAL_PERIOD = 4.0
REALIZED_VOL_FLOOR = 0.01
SIGNAL_GAIN = 10.0
SIGNAL_THRESHOLD = 0.3


def day_uniforms(t: int, seed: int = DEFAULT_REPLAY_SEED) -> np.ndarray:
    """Two uniform [0, 1) draws for day index t: (volatility noise, signal noise)."""
    rng = np.random.Generator(np.random.PCG64([seed, t]))
    return rng.random(2)


def classify_signal(raw_signal: float, threshold: float = SIGNAL_THRESHOLD) -> int:
    if raw_signal > threshold:
        return 1
    if raw_signal < -threshold:
        return -1
    return 0


def generate_history_replay(portfolio_volatility: float,
                            volatility_target: float,
                            days: int = DEFAULT_HISTORY_DAYS,
                            seed: int = DEFAULT_REPLAY_SEED) -> pd.DataFrame:
    """
    Build the replay series.

    Parameters
    ----------
    portfolio_volatility : float
        Current portfolio volatility, used as the base level
    volatility_target : float
        Annualized volatility target
    days : int
        Window length, between MIN_HISTORY_DAYS and MAX_HISTORY_DAYS
    seed : int
        Generator seed

    Returns
    -------
    pd.DataFrame
        Columns: day (1..days, oldest first), target and realized (percent),
        decision (+1 / 0 / -1)
    """
    if not MIN_HISTORY_DAYS <= days <= MAX_HISTORY_DAYS:
        raise ValueError(
            f"days must be between {MIN_HISTORY_DAYS} and {MAX_HISTORY_DAYS}, got {days}"
        )
    if portfolio_volatility < 0 or volatility_target <= 0:
        raise ValueError("Volatilities must be positive")

    records = []
    # t counts days back from today; the oldest day comes first
    for t in range(days, 0, -1):
        vol_draw, signal_draw = day_uniforms(t, seed)
        noise = (vol_draw - 0.5) * NOISE_AMPLITUDE
        seasonal = SEASONAL_AMPLITUDE * np.sin(t / SEASONAL_PERIOD)
        realized = max(REALIZED_VOL_FLOOR, portfolio_volatility * (1 + noise + seasonal))

        raw_signal = (volatility_target - realized) * SIGNAL_GAIN + (signal_draw - 0.5)
        records.append({
            'day': days - t + 1,
            'target': volatility_target * 100,
            'realized': realized * 100,
            'decision': classify_signal(raw_signal),
        })

    return pd.DataFrame(records, columns=['day', 'target', 'realized', 'decision'])
