#!/usr/bin/env python3
"""
Backtesting Data Stream

Supplies ordered OHLCV bars for a symbol and date range to the simulator.

Features:
- Abstract MarketDataSource contract (get_bars)
- pandas-backed source loaded from a DataFrame, CSV or parquet file
- Series validation (ordering, finite values, positive prices)
- Seeded random-walk generator for demos and tests
"""

import bisect
import math
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from tradesim.backtesting.errors import EmptyDataRange, InvalidConfig, InvalidMarketData
from tradesim.config import DATA_DIR, DEFAULT_SYMBOL
from tradesim.utils.logging_config import logger


OHLCV_COLUMNS = ['open', 'high', 'low', 'close', 'volume']

DateLike = Union[datetime, str, pd.Timestamp]


@dataclass(frozen=True)
class Bar:
    """One OHLCV sample; timestamp in integer seconds."""
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


def to_utc_datetime(value: DateLike) -> datetime:
    """Coerce a date string, Timestamp or datetime to an aware UTC datetime."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize('UTC')
    else:
        ts = ts.tz_convert('UTC')
    return ts.to_pydatetime()


def to_epoch_seconds(value: DateLike) -> int:
    """Integer seconds since the epoch for a date-like value."""
    return int(to_utc_datetime(value).timestamp())


@dataclass(frozen=True)
class BacktestConfig:
    """Configuration for one backtest run."""
    start_date: DateLike                  # "YYYY-MM-DD" or datetime
    end_date: DateLike
    initial_capital: float = 10000.0
    symbols: Tuple[str, ...] = (DEFAULT_SYMBOL,)

    def __post_init__(self):
        # Normalise dates so every consumer sees aware UTC datetimes
        object.__setattr__(self, 'start_date', to_utc_datetime(self.start_date))
        object.__setattr__(self, 'end_date', to_utc_datetime(self.end_date))
        object.__setattr__(self, 'symbols', tuple(self.symbols))

    @property
    def start_timestamp(self) -> int:
        return int(self.start_date.timestamp())

    @property
    def end_timestamp(self) -> int:
        return int(self.end_date.timestamp())

    def validate(self) -> None:
        """Raise InvalidConfig if the run cannot start."""
        if not math.isfinite(self.initial_capital) or self.initial_capital <= 0:
            raise InvalidConfig(f"initial_capital must be positive, got {self.initial_capital}")
        if self.end_date <= self.start_date:
            raise InvalidConfig(
                f"end_date {self.end_date.isoformat()} must be after start_date {self.start_date.isoformat()}"
            )
        if not self.symbols:
            raise InvalidConfig("At least one symbol is required")


def validate_bars(bars: List[Bar]) -> None:
    """
    Check the series invariants.

    Raises:
        InvalidMarketData: on non-finite or negative fields, non-positive
            prices, or timestamps that are not strictly increasing
    """
    previous_ts = None
    for bar in bars:
        prices = (bar.open, bar.high, bar.low, bar.close)
        if not all(math.isfinite(v) for v in prices + (bar.volume,)):
            raise InvalidMarketData(f"Non-finite value in bar at {bar.timestamp}")
        if any(p <= 0 for p in prices):
            raise InvalidMarketData(f"Non-positive price in bar at {bar.timestamp}")
        if bar.volume < 0:
            raise InvalidMarketData(f"Negative volume in bar at {bar.timestamp}")
        if previous_ts is not None and bar.timestamp <= previous_ts:
            raise InvalidMarketData(
                f"Timestamps must be strictly increasing: {bar.timestamp} after {previous_ts}"
            )
        previous_ts = bar.timestamp


class MarketDataSource(ABC):
    """
    Supplies ordered bars for one symbol.

    Implementations must raise EmptyDataRange when the range holds no bars.
    """

    def __init__(self, symbol: str):
        self.symbol = symbol

    @abstractmethod
    def get_bars(self, start_date: DateLike, end_date: DateLike) -> List[Bar]:
        """Return bars with start_date <= timestamp <= end_date, oldest first."""
        pass


class DataFrameDataSource(MarketDataSource):
    """
    Historical bars held in memory, loaded from a pandas DataFrame.

    The frame needs OHLCV columns and either a 'timestamp' column or a
    DatetimeIndex. Timestamps may be datetimes or integer epoch seconds.
    """

    def __init__(self, df: pd.DataFrame, symbol: str = DEFAULT_SYMBOL):
        super().__init__(symbol)
        self.bars = self._frame_to_bars(df)
        validate_bars(self.bars)
        self._timestamps = [bar.timestamp for bar in self.bars]

        logger.info(f"DataFrameDataSource loaded {len(self.bars)} bars for {symbol}")

    @classmethod
    def from_csv(cls, path: str, symbol: str = DEFAULT_SYMBOL) -> "DataFrameDataSource":
        """Load bars from a CSV file with a timestamp column."""
        return cls(pd.read_csv(path), symbol)

    @classmethod
    def from_parquet(cls, path: str, symbol: str = DEFAULT_SYMBOL) -> "DataFrameDataSource":
        """Load bars from a parquet file; relative paths resolve against DATA_DIR."""
        if not os.path.isabs(path) and not os.path.exists(path):
            path = os.path.join(DATA_DIR, path)
        return cls(pd.read_parquet(path), symbol)

    def get_bars(self, start_date: DateLike, end_date: DateLike) -> List[Bar]:
        start_ts = to_epoch_seconds(start_date)
        end_ts = to_epoch_seconds(end_date)

        lo = bisect.bisect_left(self._timestamps, start_ts)
        hi = bisect.bisect_right(self._timestamps, end_ts)
        bars = self.bars[lo:hi]

        if not bars:
            raise EmptyDataRange(self.symbol, start_date, end_date)

        logger.debug(f"Serving {len(bars)} bars for {self.symbol}")
        return bars

    @staticmethod
    def _frame_to_bars(df: pd.DataFrame) -> List[Bar]:
        df = df.copy()
        df.columns = [str(c).lower() for c in df.columns]

        if 'timestamp' not in df.columns:
            if isinstance(df.index, pd.DatetimeIndex):
                df = df.rename_axis('timestamp').reset_index()
            else:
                raise InvalidMarketData("DataFrame needs a 'timestamp' column or a DatetimeIndex")

        missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
        if missing:
            raise InvalidMarketData(f"Missing OHLCV columns: {missing}")

        if pd.api.types.is_numeric_dtype(df['timestamp']):
            seconds = df['timestamp'].astype('int64')
        else:
            ts = pd.to_datetime(df['timestamp'], utc=True)
            seconds = (ts - pd.Timestamp(0, tz='UTC')) // pd.Timedelta(seconds=1)

        df['timestamp'] = seconds
        df = df.sort_values('timestamp', kind='mergesort').reset_index(drop=True)

        return [
            Bar(
                timestamp=int(row.timestamp),
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=float(row.volume),
            )
            for row in df[['timestamp'] + OHLCV_COLUMNS].itertuples(index=False)
        ]


def generate_random_walk(start_date: DateLike,
                         periods: int,
                         freq: str = 'D',
                         start_price: float = 30.0,
                         volatility: float = 0.03,
                         drift: float = 0.0,
                         seed: Optional[int] = None) -> pd.DataFrame:
    """
    Build a seeded geometric random-walk OHLCV frame.

    Args:
        start_date: First bar time
        periods: Number of bars
        freq: pandas frequency string
        start_price: First open price
        volatility: Per-bar standard deviation of log returns
        drift: Per-bar mean log return
        seed: Seed for numpy's Generator

    Returns:
        DataFrame with timestamp, open, high, low, close, volume columns
    """
    rng = np.random.default_rng(seed)
    timestamps = pd.date_range(to_utc_datetime(start_date), periods=periods, freq=freq)

    log_returns = rng.normal(drift, volatility, periods)
    close = start_price * np.exp(np.cumsum(log_returns))
    open_ = np.concatenate([[start_price], close[:-1]])
    spread = np.abs(rng.normal(0, volatility / 2, periods))
    high = np.maximum(open_, close) * (1 + spread)
    low = np.minimum(open_, close) * (1 - spread)
    volume = rng.uniform(1_000, 100_000, periods)

    return pd.DataFrame({
        'timestamp': timestamps,
        'open': open_,
        'high': high,
        'low': low,
        'close': close,
        'volume': volume,
    })
