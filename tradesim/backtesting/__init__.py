"""
Backtesting Module

Provides components for historical trading simulation and strategy validation.

Components:
- MarketDataSource / DataFrameDataSource: Ordered historical bars
- SignalGenerator: Pluggable strategy signal interface
- ExecutionModel: Slippage and fee simulation
- Portfolio: Cash and position bookkeeping
- Simulator: Bar-by-bar backtest loop with drawdown risk limit
- Analytics and attribution: Performance, risk and cost breakdown
- MonteCarloDriver: Start-date jittered return distributions
"""

from .errors import (
    BacktestError,
    InsufficientCash,
    NoPosition,
    EmptyDataRange,
    InvalidMarketData,
    InvalidConfig
)

from .data_stream import (
    Bar,
    BacktestConfig,
    MarketDataSource,
    DataFrameDataSource,
    generate_random_walk
)

from .signals import (
    Direction,
    Signal,
    SignalModel,
    SignalGenerator,
    ModelSignalGenerator
)

from .execution import (
    ExecutionModel,
    SlippageModel
)

from .portfolio import (
    Portfolio,
    Position,
    PortfolioSnapshot
)

from .simulator import (
    Simulator,
    SimulationState,
    StrategyConfig,
    RiskParams,
    TradingParams,
    Trade,
    EquityPoint,
    BacktestResult,
    StrategyComparison
)

from .analytics import (
    PortfolioMetrics,
    DrawdownPeriod,
    calculate_metrics,
    generate_report
)

from .attribution import (
    Attribution,
    analyze_attribution
)

from .monte_carlo import (
    MonteCarloDriver,
    MonteCarloResult,
    RunFailure
)

__all__ = [
    # Errors
    'BacktestError',
    'InsufficientCash',
    'NoPosition',
    'EmptyDataRange',
    'InvalidMarketData',
    'InvalidConfig',

    # Data stream
    'Bar',
    'BacktestConfig',
    'MarketDataSource',
    'DataFrameDataSource',
    'generate_random_walk',

    # Signals
    'Direction',
    'Signal',
    'SignalModel',
    'SignalGenerator',
    'ModelSignalGenerator',

    # Execution and portfolio
    'ExecutionModel',
    'SlippageModel',
    'Portfolio',
    'Position',
    'PortfolioSnapshot',

    # Simulation
    'Simulator',
    'SimulationState',
    'StrategyConfig',
    'RiskParams',
    'TradingParams',
    'Trade',
    'EquityPoint',
    'BacktestResult',
    'StrategyComparison',

    # Analytics
    'PortfolioMetrics',
    'DrawdownPeriod',
    'calculate_metrics',
    'generate_report',
    'Attribution',
    'analyze_attribution',

    # Monte Carlo
    'MonteCarloDriver',
    'MonteCarloResult',
    'RunFailure'
]
