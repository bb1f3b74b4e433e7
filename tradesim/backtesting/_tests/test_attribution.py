#!/usr/bin/env python3
"""
Unit tests for tradesim/backtesting/attribution.py - Performance attribution
"""

import pytest

from tradesim.backtesting.attribution import analyze_attribution, is_signal_correct
from tradesim.backtesting.signals import Direction, Signal
from tradesim.backtesting.simulator import Trade


def trade(direction, price, current_price=100.0, amount=2.0, pnl=0.0, fees=0.2, slippage=0.001):
    signal = Signal("AVAX/USDT", direction, 0.9, current_price, current_price, 0)
    return Trade(
        id="backtest_1", symbol="AVAX/USDT", type=direction, amount=amount, price=price,
        timestamp=0, pnl=pnl, fees=fees, slippage=slippage, signal=signal
    )


class TestSignalCorrectness:

    def test_buy_filled_above_signal_price(self):
        assert is_signal_correct(trade(Direction.BUY, 100.1))
        assert not is_signal_correct(trade(Direction.BUY, 99.9))

    def test_sell_filled_below_signal_price(self):
        assert is_signal_correct(trade(Direction.SELL, 99.9))
        assert not is_signal_correct(trade(Direction.SELL, 100.0))


class TestAnalyzeAttribution:
    """Test attribution totals."""

    def test_empty_trade_list(self):
        """Test that no trades attribute to zeros."""
        attribution = analyze_attribution([])

        assert attribution.signal_accuracy == 0.0
        assert attribution.slippage_impact == 0.0
        assert attribution.fee_impact == 0.0
        assert attribution.realized_pnl == 0.0
        assert attribution.total_trades == 0
        assert attribution.timing_impact == 0.0

    def test_totals(self):
        trades = [
            trade(Direction.BUY, 100.1, pnl=0.0, fees=0.2),
            trade(Direction.SELL, 100.5, pnl=3.0, fees=0.3),
        ]

        attribution = analyze_attribution(trades)

        assert attribution.total_trades == 2
        assert attribution.signal_accuracy == pytest.approx(0.5)
        assert attribution.fee_impact == pytest.approx(0.5)
        assert attribution.realized_pnl == pytest.approx(3.0)
        assert attribution.slippage_impact == pytest.approx(0.001 * 2.0 * (100.1 + 100.5))


if __name__ == "__main__":
    pytest.main([__file__])
