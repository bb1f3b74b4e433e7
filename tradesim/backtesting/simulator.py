#!/usr/bin/env python3
"""
Backtest Simulator

Replays bars through a signal generator, prices each trade with the
execution model, applies it to a virtual portfolio and records equity.

Features:
- Strictly sequential bar loop; deterministic for identical inputs
- Trade sizing capped by position-size fraction and available funds
- Drawdown risk limit that stops the run early with partial results
- Immutable BacktestResult with metrics, drawdown periods and attribution
- Strategy comparison ranked by Sharpe ratio
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from tradesim.backtesting.analytics import (
    DrawdownPeriod, PortfolioMetrics, calculate_drawdown_periods, calculate_metrics
)
from tradesim.backtesting.attribution import Attribution, analyze_attribution
from tradesim.backtesting.data_stream import BacktestConfig, Bar, MarketDataSource, validate_bars
from tradesim.backtesting.errors import InvalidConfig
from tradesim.backtesting.execution import ExecutionModel, SlippageModel
from tradesim.backtesting.portfolio import Portfolio, PortfolioSnapshot
from tradesim.backtesting.signals import Direction, ModelSignalGenerator, Signal, SignalGenerator, SignalModel
from tradesim.config import (
    CASH_BUFFER, MIN_TRADE_SIZE, PERIODS_PER_YEAR, RISK_FREE_RATE, STRATEGY_CONFIG
)
from tradesim.utils.logging_config import logger as default_logger


class SimulationState(Enum):
    """Lifecycle of a single run."""
    INITIALIZED = "initialized"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED_BY_RISK_LIMIT = "stopped_by_risk_limit"


@dataclass(frozen=True)
class RiskParams:
    """Risk limits for a strategy."""
    max_position_size_fraction: float = STRATEGY_CONFIG['max_position_size_fraction']
    stop_loss_fraction: float = STRATEGY_CONFIG['stop_loss_fraction']
    take_profit_fraction: float = STRATEGY_CONFIG['take_profit_fraction']
    max_drawdown_limit: float = STRATEGY_CONFIG['max_drawdown_limit']


@dataclass(frozen=True)
class TradingParams:
    """Signal filtering and execution settings for a strategy."""
    min_confidence: float = STRATEGY_CONFIG['min_confidence']
    rebalance_frequency: int = STRATEGY_CONFIG['rebalance_frequency']
    slippage_model: SlippageModel = SlippageModel.FIXED

    def __post_init__(self):
        object.__setattr__(self, 'slippage_model', SlippageModel(self.slippage_model))


@dataclass(frozen=True)
class StrategyConfig:
    """A named strategy: signal model plus risk and trading parameters."""
    name: str = "default"
    signal_model: SignalModel = SignalModel.LSTM
    risk_params: RiskParams = field(default_factory=RiskParams)
    trading_params: TradingParams = field(default_factory=TradingParams)

    def __post_init__(self):
        object.__setattr__(self, 'signal_model', SignalModel(self.signal_model))

    def validate(self) -> None:
        """Raise InvalidConfig if the strategy cannot be simulated."""
        risk = self.risk_params
        trading = self.trading_params

        if not 0 < risk.max_position_size_fraction <= 1:
            raise InvalidConfig(
                f"max_position_size_fraction must be in (0, 1], got {risk.max_position_size_fraction}"
            )
        if risk.max_drawdown_limit <= 0:
            raise InvalidConfig(f"max_drawdown_limit must be positive, got {risk.max_drawdown_limit}")
        if risk.stop_loss_fraction < 0 or risk.take_profit_fraction < 0:
            raise InvalidConfig("stop_loss_fraction and take_profit_fraction must be non-negative")
        if not 0 <= trading.min_confidence <= 1:
            raise InvalidConfig(f"min_confidence must be in [0, 1], got {trading.min_confidence}")
        if trading.rebalance_frequency <= 0:
            raise InvalidConfig(f"rebalance_frequency must be positive, got {trading.rebalance_frequency}")


@dataclass(frozen=True)
class Trade:
    """Executed simulated trade. Immutable once recorded."""
    id: str
    symbol: str
    type: Direction
    amount: float          # base-asset quantity
    price: float           # execution price after slippage
    timestamp: int
    pnl: float             # realized, 0 for buys
    fees: float
    slippage: float        # fraction
    signal: Signal


@dataclass(frozen=True)
class EquityPoint:
    timestamp: int
    value: float


@dataclass(frozen=True)
class BacktestResult:
    """Everything a run produced. Never mutated after it is returned."""
    strategy: str
    config: BacktestConfig
    state: SimulationState
    trades: Tuple[Trade, ...]
    equity_curve: Tuple[EquityPoint, ...]
    metrics: PortfolioMetrics
    drawdown_periods: Tuple[DrawdownPeriod, ...]
    attribution: Attribution

    @property
    def total_return(self) -> float:
        return self.metrics.total_return


@dataclass(frozen=True)
class StrategyComparison:
    """Results of several strategies on the same config, best Sharpe first."""
    results: Tuple[BacktestResult, ...]
    best_strategy: str
    ranking: Tuple[Tuple[str, float, float], ...]  # (name, sharpe ratio, total return)


BarCallback = Callable[[Bar, PortfolioSnapshot], None]


class Simulator:
    """
    Drives one backtest run at a time.

    The simulator holds only collaborators and settings; all per-run state
    lives inside run(), so one instance can serve concurrent runs.
    """

    def __init__(self,
                 data_source: MarketDataSource,
                 signal_generator: Optional[SignalGenerator] = None,
                 execution_model: Optional[ExecutionModel] = None,
                 min_trade_size: float = MIN_TRADE_SIZE,
                 cash_buffer: float = CASH_BUFFER,
                 risk_free_rate: float = RISK_FREE_RATE,
                 periods_per_year: int = PERIODS_PER_YEAR,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize simulator.

        Args:
            data_source: Bars for the traded symbol
            signal_generator: Signal source (defaults to ModelSignalGenerator)
            execution_model: Slippage and fee model (defaults to ExecutionModel())
            min_trade_size: Trades below this quote value are skipped
            cash_buffer: Share of available cash or holdings a trade may use
            risk_free_rate: Annual risk-free rate for Sharpe/Sortino
            periods_per_year: Bars per year for annualized metrics
            logger: Logger to use (defaults to the package logger)
        """
        self.data_source = data_source
        self.signal_generator = signal_generator or ModelSignalGenerator()
        self.execution_model = execution_model or ExecutionModel()
        self.min_trade_size = min_trade_size
        self.cash_buffer = cash_buffer
        self.risk_free_rate = risk_free_rate
        self.periods_per_year = periods_per_year
        self.logger = logger or default_logger
        self.subscribers: List[BarCallback] = []

    def add_subscriber(self, callback: BarCallback) -> None:
        """Add callback invoked after each bar with the revalued portfolio."""
        self.subscribers.append(callback)

    def run(self, strategy: StrategyConfig, config: BacktestConfig) -> BacktestResult:
        """
        Run one backtest.

        Args:
            strategy: Strategy parameters
            config: Date range, capital and symbols

        Returns:
            BacktestResult (partial if the risk limit stopped the run)

        Raises:
            InvalidConfig: if strategy or config fail validation
            EmptyDataRange: if the source has no bars in range
            InsufficientCash, NoPosition: on a sizing defect
        """
        strategy.validate()
        config.validate()

        symbol = self.data_source.symbol
        if symbol not in config.symbols:
            raise InvalidConfig(f"Data source symbol {symbol} not in configured symbols {config.symbols}")

        bars = self.data_source.get_bars(config.start_date, config.end_date)
        validate_bars(bars)

        state = SimulationState.INITIALIZED
        portfolio = Portfolio(config.initial_capital)
        trades: List[Trade] = []
        equity: List[EquityPoint] = [EquityPoint(config.start_timestamp, config.initial_capital)]
        peak_equity = config.initial_capital
        min_confidence = strategy.trading_params.min_confidence
        drawdown_limit = strategy.risk_params.max_drawdown_limit

        self.logger.info(
            f"Backtest '{strategy.name}' on {symbol}: {len(bars)} bars, "
            f"{config.initial_capital:,.2f} capital"
        )

        state = SimulationState.RUNNING
        for i in range(1, len(bars)):
            prev_bar, bar = bars[i - 1], bars[i]

            signal = self.signal_generator.generate_signal(symbol, prev_bar, bar, strategy)
            if signal is not None and signal.confidence >= min_confidence:
                trade = self._execute_signal(signal, bar, i, portfolio, strategy)
                if trade is not None:
                    trades.append(trade)

            prices = {symbol: bar.close}
            total_value = portfolio.mark_to_market(prices)
            equity.append(EquityPoint(bar.timestamp, total_value))

            if self.subscribers:
                snapshot = portfolio.snapshot(prices)
                for callback in self.subscribers:
                    callback(bar, snapshot)

            peak_equity = max(peak_equity, total_value)
            drawdown = (peak_equity - total_value) / peak_equity
            if drawdown > drawdown_limit:
                state = SimulationState.STOPPED_BY_RISK_LIMIT
                self.logger.warning(
                    f"Risk limit hit at bar {i}: drawdown {drawdown:.2%} > {drawdown_limit:.2%}"
                )
                break
        else:
            state = SimulationState.COMPLETED

        metrics = calculate_metrics(
            equity, trades,
            risk_free_rate=self.risk_free_rate,
            periods_per_year=self.periods_per_year,
        )

        self.logger.info(
            f"Backtest '{strategy.name}' {state.value}: {len(trades)} trades, "
            f"return {metrics.total_return:.2%}, max drawdown {metrics.max_drawdown_pct:.2f}%"
        )

        return BacktestResult(
            strategy=strategy.name,
            config=config,
            state=state,
            trades=tuple(trades),
            equity_curve=tuple(equity),
            metrics=metrics,
            drawdown_periods=tuple(calculate_drawdown_periods(equity)),
            attribution=analyze_attribution(trades),
        )

    def compare_strategies(self, strategies: Sequence[StrategyConfig],
                           config: BacktestConfig) -> StrategyComparison:
        """Run each strategy on the same config and rank by Sharpe ratio."""
        results = tuple(self.run(strategy, config) for strategy in strategies)

        ranking = tuple(sorted(
            ((r.strategy, r.metrics.sharpe_ratio, r.metrics.total_return) for r in results),
            key=lambda entry: entry[1],
            reverse=True
        ))

        return StrategyComparison(
            results=results,
            best_strategy=ranking[0][0] if ranking else "",
            ranking=ranking,
        )

    def _execute_signal(self, signal: Signal, bar: Bar, index: int,
                        portfolio: Portfolio, strategy: StrategyConfig) -> Optional[Trade]:
        """Size, price and apply one signal; None when the trade is skipped."""
        if signal.symbol != self.data_source.symbol:
            self.logger.warning(f"Ignoring signal for {signal.symbol}: no bars for that symbol")
            return None

        total_value = portfolio.mark_to_market({signal.symbol: bar.close})

        if signal.direction == Direction.BUY:
            available = portfolio.cash
        else:
            held = portfolio.holding_quantity(signal.symbol)
            if held <= 0:
                self.logger.debug(f"Skipping sell signal at bar {index}: no {signal.symbol} held")
                return None
            available = held * bar.close

        position_value = min(
            total_value * strategy.risk_params.max_position_size_fraction,
            available * self.cash_buffer
        )
        if position_value < self.min_trade_size:
            return None

        execution_price, slippage = self.execution_model.price(
            signal.direction, bar, strategy.trading_params.slippage_model
        )
        amount = position_value / execution_price

        if signal.direction == Direction.BUY:
            fees = self.execution_model.fee(amount * execution_price)
            portfolio.apply_buy(signal.symbol, amount, execution_price, fees)
            pnl = 0.0
        else:
            amount = min(amount, held)
            fees = self.execution_model.fee(amount * execution_price)
            pnl = portfolio.apply_sell(signal.symbol, amount, execution_price, fees)

        return Trade(
            id=f"backtest_{index}",
            symbol=signal.symbol,
            type=signal.direction,
            amount=amount,
            price=execution_price,
            timestamp=bar.timestamp,
            pnl=pnl,
            fees=fees,
            slippage=slippage,
            signal=signal,
        )
