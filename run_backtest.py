#!/usr/bin/env python3
"""
Backtesting Runner Script

Runs a strategy over historical bars and prints the performance report.

Usage:
    python run_backtest.py                         # seeded synthetic data
    python run_backtest.py --data bars.csv         # CSV with timestamp + OHLCV
    python run_backtest.py --monte-carlo 200       # add a Monte Carlo batch
"""

import argparse
import sys

from tradesim.backtesting import (
    BacktestConfig, DataFrameDataSource, MonteCarloDriver, RiskParams, Simulator,
    SlippageModel, StrategyConfig, TradingParams, generate_random_walk, generate_report
)
from tradesim.config import DEFAULT_SYMBOL, RANDOM_SEED
from tradesim.utils.logging_config import logger


def build_source(args) -> DataFrameDataSource:
    """Load bars from file, or generate a seeded random walk."""
    if args.data is None:
        df = generate_random_walk(args.start, periods=args.periods, seed=RANDOM_SEED)
        return DataFrameDataSource(df, args.symbol)
    if args.data.endswith('.parquet'):
        return DataFrameDataSource.from_parquet(args.data, args.symbol)
    return DataFrameDataSource.from_csv(args.data, args.symbol)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run a strategy backtest")
    parser.add_argument('--data', default=None, help="CSV or parquet file of bars")
    parser.add_argument('--symbol', default=DEFAULT_SYMBOL)
    parser.add_argument('--start', default="2024-01-01")
    parser.add_argument('--end', default="2024-12-31")
    parser.add_argument('--periods', type=int, default=366, help="Synthetic bars to generate")
    parser.add_argument('--capital', type=float, default=10000.0)
    parser.add_argument('--model', default="lstm", choices=["lstm", "reinforcement", "ensemble"])
    parser.add_argument('--slippage', default="fixed", choices=[m.value for m in SlippageModel])
    parser.add_argument('--min-confidence', type=float, default=0.4)
    parser.add_argument('--max-position', type=float, default=0.1)
    parser.add_argument('--max-drawdown', type=float, default=0.2)
    parser.add_argument('--monte-carlo', type=int, default=0, help="Monte Carlo iterations (0 = skip)")
    args = parser.parse_args()

    strategy = StrategyConfig(
        name=f"{args.model}-{args.slippage}",
        signal_model=args.model,
        risk_params=RiskParams(
            max_position_size_fraction=args.max_position,
            max_drawdown_limit=args.max_drawdown
        ),
        trading_params=TradingParams(
            min_confidence=args.min_confidence,
            slippage_model=args.slippage
        )
    )
    config = BacktestConfig(
        start_date=args.start,
        end_date=args.end,
        initial_capital=args.capital,
        symbols=[args.symbol]
    )

    try:
        simulator = Simulator(build_source(args))
        result = simulator.run(strategy, config)
    except Exception as e:
        logger.error(f"Backtest failed: {e}")
        return 1

    print(generate_report(result))

    if args.monte_carlo > 0:
        mc = MonteCarloDriver(simulator, iterations=args.monte_carlo).run(strategy, config)

        print("\nMONTE CARLO")
        print(f"Runs:             {mc.successful_runs:>8d} ok, {len(mc.failures)} failed")
        print(f"Mean Return:      {mc.mean_return * 100:>8.2f}%")
        print(f"Std Dev:          {mc.std_dev_return * 100:>8.2f}%")
        print(f"Worst / Best:     {mc.worst_case * 100:>8.2f}% / {mc.best_case * 100:.2f}%")
        for percentile, value in mc.confidence_intervals:
            print(f"P{percentile:<3d}              {value * 100:>8.2f}%")

    return 0


if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code)
