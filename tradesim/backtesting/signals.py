#!/usr/bin/env python3
"""
Strategy Signal Interface

The simulator consumes signals through the SignalGenerator contract only, so
any prediction technique (trained model, rule set, test fixture) can be
swapped in. A generator must be a pure function of its inputs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Optional

from tradesim.backtesting.data_stream import Bar

if TYPE_CHECKING:
    from tradesim.backtesting.simulator import StrategyConfig


class Direction(Enum):
    """Trade direction."""
    BUY = "buy"
    SELL = "sell"


class SignalModel(Enum):
    """Prediction model family a strategy is built on."""
    LSTM = "lstm"
    REINFORCEMENT = "reinforcement"
    ENSEMBLE = "ensemble"


@dataclass(frozen=True)
class Signal:
    """A trade signal for one bar. Absence of a signal is None."""
    symbol: str
    direction: Direction
    confidence: float  # 0-1
    predicted_price: float
    current_price: float
    timestamp: int
    features: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        # Recorded signals are read-only
        object.__setattr__(self, 'features', MappingProxyType(dict(self.features)))


class SignalGenerator(ABC):
    """Produces at most one signal per bar from two adjacent bars."""

    @abstractmethod
    def generate_signal(self, symbol: str, prev_bar: Bar, curr_bar: Bar,
                        strategy: "StrategyConfig") -> Optional[Signal]:
        """
        Generate a trading signal.

        Args:
            symbol: Traded symbol
            prev_bar: Bar before the current one
            curr_bar: Current bar
            strategy: Strategy parameters

        Returns:
            Signal, or None when the generator has no view
        """
        pass


# (confidence cap, confidence base, confidence slope, prediction damping)
MODEL_HEURISTICS = {
    SignalModel.LSTM: (0.9, 0.3, 2.0, 0.8),
    SignalModel.REINFORCEMENT: (0.85, 0.4, 1.5, 0.6),
    SignalModel.ENSEMBLE: (0.95, 0.5, 1.8, 0.7),
}


class ModelSignalGenerator(SignalGenerator):
    """
    Deterministic stand-in for the trained model signal sources.

    Confidence grows with the size of the last price move and the
    predicted price extrapolates a damped share of that move. The shape
    of both depends on the strategy's signal model.
    """

    def generate_signal(self, symbol: str, prev_bar: Bar, curr_bar: Bar,
                        strategy: "StrategyConfig") -> Optional[Signal]:
        price_change = (curr_bar.close - prev_bar.close) / prev_bar.close
        cap, base, slope, damping = MODEL_HEURISTICS[strategy.signal_model]

        confidence = min(cap, base + abs(price_change) * slope)
        predicted_price = curr_bar.close * (1 + price_change * damping)

        if confidence < strategy.trading_params.min_confidence:
            return None

        # A flat bar carries no directional view
        if predicted_price == curr_bar.close:
            return None

        direction = Direction.BUY if predicted_price > curr_bar.close else Direction.SELL

        return Signal(
            symbol=symbol,
            direction=direction,
            confidence=confidence,
            predicted_price=predicted_price,
            current_price=curr_bar.close,
            timestamp=curr_bar.timestamp,
            features={
                'price_change': price_change,
                'volatility': abs(price_change),
                'volume': curr_bar.volume,
            }
        )
