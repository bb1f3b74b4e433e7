"""Shared pytest fixtures: bar factories, in-memory data sources, scripted signals."""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import pytest

from tradesim.backtesting.data_stream import Bar, MarketDataSource, to_epoch_seconds
from tradesim.backtesting.errors import EmptyDataRange
from tradesim.backtesting.signals import Direction, Signal, SignalGenerator


DAY = 24 * 60 * 60
START = datetime(2024, 1, 1, tzinfo=timezone.utc)
START_TS = int(START.timestamp())
SYMBOL = "AVAX/USDT"


def make_bars(closes: Sequence[float], start_ts: int = START_TS, step: int = DAY,
              volume: float = 50_000.0, spread: float = 0.01) -> List[Bar]:
    """Bars with the given closes, one per step, opening at the previous close."""
    bars = []
    for i, close in enumerate(closes):
        open_ = closes[i - 1] if i > 0 else close
        bars.append(Bar(
            timestamp=start_ts + i * step,
            open=open_,
            high=max(open_, close) * (1 + spread),
            low=min(open_, close) * (1 - spread),
            close=close,
            volume=volume,
        ))
    return bars


class ListDataSource(MarketDataSource):
    """In-memory source over a fixed bar list."""

    def __init__(self, bars: List[Bar], symbol: str = SYMBOL):
        super().__init__(symbol)
        self.bars = bars

    def get_bars(self, start_date, end_date) -> List[Bar]:
        start_ts = to_epoch_seconds(start_date)
        end_ts = to_epoch_seconds(end_date)
        bars = [b for b in self.bars if start_ts <= b.timestamp <= end_ts]
        if not bars:
            raise EmptyDataRange(self.symbol, start_date, end_date)
        return bars


class ScriptedSignalGenerator(SignalGenerator):
    """Emits preset signals keyed by bar timestamp; None elsewhere."""

    def __init__(self, script: Dict[int, Direction], confidence: float = 0.9,
                 symbol: Optional[str] = None):
        self.script = script
        self.confidence = confidence
        self.symbol = symbol

    def generate_signal(self, symbol, prev_bar, curr_bar, strategy):
        direction = self.script.get(curr_bar.timestamp)
        if direction is None:
            return None
        return Signal(
            symbol=self.symbol or symbol,
            direction=direction,
            confidence=self.confidence,
            predicted_price=curr_bar.close * (1.01 if direction == Direction.BUY else 0.99),
            current_price=curr_bar.close,
            timestamp=curr_bar.timestamp,
        )


class AlwaysSignalGenerator(SignalGenerator):
    """Emits the same direction on every bar."""

    def __init__(self, direction: Direction, confidence: float = 0.9):
        self.direction = direction
        self.confidence = confidence

    def generate_signal(self, symbol, prev_bar, curr_bar, strategy):
        return Signal(
            symbol=symbol,
            direction=self.direction,
            confidence=self.confidence,
            predicted_price=curr_bar.close,
            current_price=curr_bar.close,
            timestamp=curr_bar.timestamp,
        )


@pytest.fixture
def bar_factory():
    return make_bars


@pytest.fixture
def list_source():
    return ListDataSource


@pytest.fixture
def scripted_generator():
    return ScriptedSignalGenerator


@pytest.fixture
def always_generator():
    return AlwaysSignalGenerator
