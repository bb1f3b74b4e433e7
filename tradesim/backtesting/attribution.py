"""
Performance attribution.

Splits a run's outcome into signal accuracy, slippage cost and fee cost so
an apparent edge can be checked against the execution assumptions.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from tradesim.backtesting.signals import Direction

if TYPE_CHECKING:
    from tradesim.backtesting.simulator import Trade


@dataclass(frozen=True)
class Attribution:
    signal_accuracy: float     # fraction of trades whose fill moved the signalled way
    slippage_impact: float     # quote currency
    fee_impact: float          # quote currency
    realized_pnl: float
    total_trades: int
    timing_impact: float = 0.0


def is_signal_correct(trade: "Trade") -> bool:
    if trade.type == Direction.BUY:
        return trade.price > trade.signal.current_price
    return trade.price < trade.signal.current_price


def analyze_attribution(trades: Sequence["Trade"]) -> Attribution:
    """Attribute a trade list's results; zeros for an empty list."""
    total = len(trades)
    correct = sum(1 for t in trades if is_signal_correct(t))

    return Attribution(
        signal_accuracy=correct / total if total else 0.0,
        slippage_impact=sum(t.slippage * t.amount * t.price for t in trades),
        fee_impact=sum(t.fees for t in trades),
        realized_pnl=sum(t.pnl for t in trades),
        total_trades=total,
    )
