"""
Backtesting error types.

All errors are local to a single simulation run. Statistical edge cases
(zero variance, no losing trades) are boundary values, not errors.
"""


class BacktestError(Exception):
    """Base class for errors raised by a backtest run."""


class InsufficientCash(BacktestError):
    """A buy would take cash below zero."""

    def __init__(self, symbol: str, required: float, available: float):
        self.symbol = symbol
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient cash to buy {symbol}: need {required:.8f}, have {available:.8f}"
        )


class NoPosition(BacktestError):
    """A sell was attempted on a symbol with nothing held."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"No position held in {symbol}")


class EmptyDataRange(BacktestError):
    """The market data source returned no bars for the requested range."""

    def __init__(self, symbol: str, start_date, end_date):
        self.symbol = symbol
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(f"No bars for {symbol} between {start_date} and {end_date}")


class InvalidMarketData(BacktestError):
    """Bars violate the series invariants (ordering, finiteness, positive prices)."""


class InvalidConfig(BacktestError, ValueError):
    """Strategy or backtest configuration failed validation."""
