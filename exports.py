"""
Export of today's rebalancing decisions.

Rows follow a fixed field order:
date, strategy, action, amount, reasons, targetNotional, currentNotional,
gap, impactBps. Currency fields are rounded to whole units.
"""

import io
import json
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from config import EXPORT_FIELDS, EXPORT_FILE_PREFIX
from models import Decision, Strategy

CSV_DTYPES = {
    'date': str,
    'strategy': str,
    'action': str,
    'amount': 'int64',
    'reasons': str,
    'targetNotional': 'int64',
    'currentNotional': 'int64',
    'gap': 'int64',
    'impactBps': 'float64',
}


def build_decision_rows(strategies: List[Strategy],
                        decisions: List[Decision],
                        as_of: Optional[date] = None) -> List[Dict[str, Any]]:
    """
    Flatten decisions into export rows.

    Parameters
    ----------
    strategies : list of Strategy
        Strategy book, same order as `decisions`
    decisions : list of Decision
        Output of the decision engine
    as_of : date, optional
        Row date; defaults to today

    Returns
    -------
    list of dict
        One row per strategy with keys in EXPORT_FIELDS order
    """
    if len(strategies) != len(decisions):
        raise ValueError(f"Got {len(decisions)} decisions for {len(strategies)} strategies")

    as_of = as_of or date.today()
    rows = []
    for strategy, decision in zip(strategies, decisions):
        rows.append({
            'date': as_of.isoformat(),
            'strategy': strategy.code,
            'action': decision.action.value,
            'amount': int(round(decision.recommended_delta)),
            'reasons': "; ".join(decision.core_reasons),
            'targetNotional': int(round(decision.target_notional)),
            'currentNotional': int(round(strategy.current_notional)),
            'gap': int(round(decision.target_notional - strategy.current_notional)),
            'impactBps': float(strategy.impact_cost_bps),
        })
    return rows


def decisions_to_frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=EXPORT_FIELDS)


def decisions_to_csv(rows: List[Dict[str, Any]]) -> str:
    """Serialize export rows as CSV with a header line."""
    return decisions_to_frame(rows).to_csv(index=False, lineterminator="\n")


def decisions_from_csv(text: str) -> List[Dict[str, Any]]:
    """Parse CSV produced by `decisions_to_csv` back into rows."""
    frame = pd.read_csv(io.StringIO(text), dtype=CSV_DTYPES, keep_default_na=False)
    missing = [f for f in EXPORT_FIELDS if f not in frame.columns]
    if missing:
        raise ValueError(f"CSV is missing columns: {missing}")
    return [_to_native(record) for record in frame[EXPORT_FIELDS].to_dict('records')]


def decisions_to_json(rows: List[Dict[str, Any]]) -> str:
    return json.dumps(rows, indent=2, ensure_ascii=False)


def decisions_from_json(text: str) -> List[Dict[str, Any]]:
    rows = json.loads(text)
    if not isinstance(rows, list):
        raise ValueError("Decision JSON must be a list of rows")
    return rows


def export_filename(extension: str, now: Optional[datetime] = None) -> str:
    """today_decisions_<epoch milliseconds>.<extension>"""
    now = now or datetime.now()
    return f"{EXPORT_FILE_PREFIX}_{int(now.timestamp() * 1000)}.{extension}"


def _to_native(record: Dict[str, Any]) -> Dict[str, Any]:
    native = {}
    for key, value in record.items():
        native[key] = value.item() if hasattr(value, 'item') else value
    return native
