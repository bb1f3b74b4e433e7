#!/usr/bin/env python3
"""
Virtual Portfolio

Cash and long position bookkeeping for a single simulation run.

Features:
- Weighted average cost per symbol, reset when a position closes
- Buys rejected before any state change when cash is short
- Sells capped at the held quantity, returning realized P&L
- Mark-to-market valuation and immutable snapshots
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional

from tradesim.backtesting.errors import InsufficientCash, NoPosition
from tradesim.utils.logging_config import logger


@dataclass
class Position:
    """Represents a long holding in one symbol."""
    symbol: str
    quantity: float = 0.0
    average_cost: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.quantity > 0


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Point-in-time copy of portfolio state."""
    cash: float
    positions: Dict[str, Position] = field(default_factory=dict)
    total_value: float = 0.0


class Portfolio:
    """
    Cash and per-symbol position bookkeeping for one simulation run.

    Long-only: positions never go below zero and a fully closed position
    resets its cost basis.
    """

    def __init__(self, initial_cash: float):
        """
        Initialize portfolio.

        Args:
            initial_cash: Starting cash in quote currency
        """
        self.initial_cash = initial_cash
        self.cash = initial_cash
        self.positions: Dict[str, Position] = {}
        self.fees_paid: float = 0.0
        self.realized_pnl: float = 0.0

        logger.debug(f"Portfolio initialized with {initial_cash:,.2f} cash")

    def apply_buy(self, symbol: str, quantity: float, price: float, fees: float) -> None:
        """
        Buy quantity at price, paying fees from cash.

        Raises:
            InsufficientCash: if cash would go negative; state is left untouched
        """
        if quantity <= 0:
            raise ValueError(f"Buy quantity must be positive, got {quantity}")

        cost = quantity * price + fees
        if cost > self.cash:
            raise InsufficientCash(symbol, cost, self.cash)

        position = self.positions.get(symbol)
        if position is None:
            position = Position(symbol=symbol)
            self.positions[symbol] = position

        total_quantity = position.quantity + quantity
        position.average_cost = (
            (position.quantity * position.average_cost + quantity * price) / total_quantity
        )
        position.quantity = total_quantity

        self.cash -= cost
        self.fees_paid += fees

        logger.debug(f"BUY {quantity:.8f} {symbol} @ {price:.6f} (fees {fees:.6f})")

    def apply_sell(self, symbol: str, quantity: float, price: float, fees: float) -> float:
        """
        Sell up to quantity at price.

        The sold quantity is capped at what is held.

        Returns:
            Realized P&L of the sale, net of fees

        Raises:
            NoPosition: if nothing is held in symbol
        """
        if quantity <= 0:
            raise ValueError(f"Sell quantity must be positive, got {quantity}")

        position = self.positions.get(symbol)
        if position is None or position.quantity <= 0:
            raise NoPosition(symbol)

        sold = min(quantity, position.quantity)
        pnl = (price - position.average_cost) * sold - fees

        self.cash += sold * price - fees
        self.fees_paid += fees
        self.realized_pnl += pnl

        position.quantity -= sold
        if position.quantity <= 0:
            # Closed position resets its cost basis
            position.quantity = 0.0
            position.average_cost = 0.0

        logger.debug(f"SELL {sold:.8f} {symbol} @ {price:.6f} (pnl {pnl:.6f})")
        return pnl

    def holding_quantity(self, symbol: str) -> float:
        """Quantity currently held in symbol (0 if none)."""
        position = self.positions.get(symbol)
        return position.quantity if position else 0.0

    def get_position(self, symbol: str) -> Optional[Position]:
        """Get position for a symbol."""
        return self.positions.get(symbol)

    def mark_to_market(self, price_by_symbol: Mapping[str, float]) -> float:
        """
        Total value at the given prices; positions are not modified.

        Raises:
            KeyError: if an open position has no price
        """
        total = self.cash
        for symbol, position in self.positions.items():
            if position.quantity != 0:
                total += position.quantity * price_by_symbol[symbol]
        return total

    def snapshot(self, price_by_symbol: Mapping[str, float]) -> PortfolioSnapshot:
        """Immutable copy of the current state valued at the given prices."""
        return PortfolioSnapshot(
            cash=self.cash,
            positions={symbol: replace(pos) for symbol, pos in self.positions.items()},
            total_value=self.mark_to_market(price_by_symbol),
        )
