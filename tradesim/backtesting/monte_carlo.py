#!/usr/bin/env python3
"""
Monte Carlo Driver

Re-runs the simulator with the start date jittered per iteration and
summarises the distribution of total returns.

Runs are independent (each builds its own portfolio and trade list), so
they execute on a thread pool and are joined before aggregation. A run
that fails is reported alongside the successful ones instead of aborting
the batch.
"""

import dataclasses
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from tradesim.backtesting.data_stream import BacktestConfig
from tradesim.backtesting.errors import BacktestError
from tradesim.backtesting.simulator import Simulator, StrategyConfig
from tradesim.config import MONTE_CARLO_CONFIG, RANDOM_SEED
from tradesim.utils.logging_config import logger as default_logger


@dataclass(frozen=True)
class RunFailure:
    """A Monte Carlo iteration that raised instead of producing a result."""
    iteration: int
    start_date: datetime
    error_type: str
    message: str


@dataclass(frozen=True)
class MonteCarloResult:
    """Distribution of total returns across jittered runs."""
    iterations: int
    mean_return: float
    std_dev_return: float          # population
    worst_case: float
    best_case: float
    confidence_intervals: Tuple[Tuple[int, float], ...]  # (percentile, return)
    returns: Tuple[float, ...]     # in iteration order
    failures: Tuple[RunFailure, ...]

    @property
    def successful_runs(self) -> int:
        return len(self.returns)


def percentile_bands(returns: Sequence[float],
                     percentiles: Sequence[int]) -> Tuple[Tuple[int, float], ...]:
    """Floor-index percentiles of the sorted returns."""
    if not returns:
        return ()
    sorted_returns = sorted(returns)
    n = len(sorted_returns)
    return tuple(
        (p, sorted_returns[min(n - 1, math.floor(p / 100 * n))])
        for p in percentiles
    )


def summarize_returns(returns: Sequence[float],
                      failures: Sequence[RunFailure],
                      iterations: int,
                      percentiles: Sequence[int]) -> MonteCarloResult:
    """Aggregate per-run total returns into a MonteCarloResult."""
    if returns:
        values = np.asarray(returns, dtype=float)
        mean_return = float(np.mean(values))
        std_dev_return = float(np.std(values))
        worst_case = float(np.min(values))
        best_case = float(np.max(values))
    else:
        mean_return = std_dev_return = worst_case = best_case = 0.0

    return MonteCarloResult(
        iterations=iterations,
        mean_return=mean_return,
        std_dev_return=std_dev_return,
        worst_case=worst_case,
        best_case=best_case,
        confidence_intervals=percentile_bands(returns, percentiles),
        returns=tuple(returns),
        failures=tuple(failures),
    )


class MonteCarloDriver:
    """
    Runs a strategy many times over shifted windows of the same data.

    Only the start date moves; strategy parameters, data source and
    execution model are shared read-only across runs.
    """

    def __init__(self,
                 simulator: Simulator,
                 iterations: int = MONTE_CARLO_CONFIG['iterations'],
                 jitter_days: float = MONTE_CARLO_CONFIG['jitter_days'],
                 percentiles: Sequence[int] = tuple(MONTE_CARLO_CONFIG['percentiles']),
                 max_workers: int = MONTE_CARLO_CONFIG['max_workers'],
                 seed: Optional[int] = RANDOM_SEED,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize Monte Carlo driver.

        Args:
            simulator: Simulator used for every run
            iterations: Number of runs
            jitter_days: Start dates are shifted uniformly within +-jitter_days
            percentiles: Percentile bands to report
            max_workers: Thread pool size; 1 runs sequentially
            seed: Seed for the start-date jitter
            logger: Logger to use (defaults to the package logger)
        """
        if iterations <= 0:
            raise ValueError(f"iterations must be positive, got {iterations}")

        self.simulator = simulator
        self.iterations = iterations
        self.jitter_days = jitter_days
        self.percentiles = tuple(percentiles)
        self.max_workers = max(1, max_workers)
        self.seed = seed
        self.logger = logger or default_logger

    def jittered_start_dates(self, config: BacktestConfig) -> List[datetime]:
        """Start dates for every iteration, drawn up front from the seeded generator."""
        rng = np.random.default_rng(self.seed)
        offsets = rng.uniform(-self.jitter_days, self.jitter_days, self.iterations)
        return [config.start_date + timedelta(days=float(offset)) for offset in offsets]

    def run(self, strategy: StrategyConfig, config: BacktestConfig) -> MonteCarloResult:
        """
        Run the batch and aggregate total returns.

        Args:
            strategy: Strategy parameters, identical for every run
            config: Base config whose start date is jittered

        Returns:
            MonteCarloResult with per-run failures listed separately
        """
        strategy.validate()
        config.validate()

        start_dates = self.jittered_start_dates(config)
        self.logger.info(
            f"Starting Monte Carlo: {self.iterations} runs of '{strategy.name}' "
            f"with {self.max_workers} workers"
        )

        if self.max_workers == 1:
            outcomes = [self._run_once(i, start, strategy, config) for i, start in enumerate(start_dates)]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [
                    executor.submit(self._run_once, i, start, strategy, config)
                    for i, start in enumerate(start_dates)
                ]
                outcomes = [future.result() for future in futures]

        returns = [o for o in outcomes if not isinstance(o, RunFailure)]
        failures = [o for o in outcomes if isinstance(o, RunFailure)]

        if failures:
            self.logger.warning(f"Monte Carlo: {len(failures)}/{self.iterations} runs failed")

        result = summarize_returns(returns, failures, self.iterations, self.percentiles)

        self.logger.info(
            f"Monte Carlo complete: mean return {result.mean_return:.2%}, "
            f"std {result.std_dev_return:.2%}, {result.successful_runs} successful runs"
        )
        return result

    def _run_once(self, iteration: int, start_date: datetime,
                  strategy: StrategyConfig, config: BacktestConfig) -> Union[float, RunFailure]:
        """Total return of one jittered run, or the failure it raised."""
        run_config = dataclasses.replace(config, start_date=start_date)
        try:
            return self.simulator.run(strategy, run_config).total_return
        except BacktestError as e:
            self.logger.debug(f"Monte Carlo run {iteration} failed: {e}")
            return RunFailure(
                iteration=iteration,
                start_date=start_date,
                error_type=type(e).__name__,
                message=str(e),
            )
