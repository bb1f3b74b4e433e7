#!/usr/bin/env python3
"""
Unit tests for tradesim/backtesting/monte_carlo.py - Monte Carlo driver
"""

from datetime import timedelta

import pytest

from tradesim.backtesting.data_stream import BacktestConfig, DataFrameDataSource, generate_random_walk
from tradesim.backtesting.errors import InvalidConfig
from tradesim.backtesting.monte_carlo import (
    MonteCarloDriver, RunFailure, percentile_bands, summarize_returns
)
from tradesim.backtesting.simulator import RiskParams, Simulator, StrategyConfig, TradingParams


SYMBOL = "AVAX/USDT"


@pytest.fixture
def simulator():
    df = generate_random_walk("2024-01-01", periods=120, volatility=0.04, seed=5)
    return Simulator(DataFrameDataSource(df, SYMBOL))


@pytest.fixture
def strategy():
    return StrategyConfig(
        name="mc",
        risk_params=RiskParams(max_drawdown_limit=0.5),
        trading_params=TradingParams(min_confidence=0.35)
    )


@pytest.fixture
def config():
    return BacktestConfig("2024-01-15", "2024-03-15", symbols=[SYMBOL])


class TestPercentileBands:
    """Test percentile extraction."""

    def test_floor_index(self):
        bands = percentile_bands([float(i) for i in range(100)], [5, 25, 50, 75, 95])
        assert bands == ((5, 5.0), (25, 25.0), (50, 50.0), (75, 75.0), (95, 95.0))

    def test_unsorted_input(self):
        assert percentile_bands([3.0, 1.0, 2.0], [50]) == ((50, 2.0),)

    def test_top_percentile_is_clamped(self):
        assert percentile_bands([1.0, 2.0], [100]) == ((100, 2.0),)

    def test_empty(self):
        assert percentile_bands([], [5, 95]) == ()


class TestSummarizeReturns:
    """Test aggregation of per-run returns."""

    def test_statistics(self):
        result = summarize_returns([0.1, -0.1, 0.2, 0.0], [], 4, [50])

        assert result.mean_return == pytest.approx(0.05)
        assert result.worst_case == -0.1
        assert result.best_case == 0.2
        assert result.std_dev_return == pytest.approx(0.1118033988749895)
        assert result.successful_runs == 4
        assert result.confidence_intervals == ((50, 0.1),)

    def test_all_runs_failed(self):
        """Test that a batch without successes reports zeros."""
        failure = RunFailure(0, None, "EmptyDataRange", "no bars")
        result = summarize_returns([], [failure], 1, [5, 95])

        assert result.mean_return == 0.0
        assert result.std_dev_return == 0.0
        assert result.confidence_intervals == ()
        assert result.failures == (failure,)
        assert result.successful_runs == 0


class TestMonteCarloDriver:
    """Test the jittered batch runner."""

    def test_rejects_non_positive_iterations(self, simulator):
        with pytest.raises(ValueError):
            MonteCarloDriver(simulator, iterations=0)

    def test_jitter_within_window(self, simulator, config):
        driver = MonteCarloDriver(simulator, iterations=200, jitter_days=7, seed=1)

        dates = driver.jittered_start_dates(config)

        assert len(dates) == 200
        window = timedelta(days=7)
        assert all(config.start_date - window <= d <= config.start_date + window for d in dates)
        assert len(set(dates)) > 1

    def test_jitter_is_seeded(self, simulator, config):
        a = MonteCarloDriver(simulator, iterations=10, seed=3).jittered_start_dates(config)
        b = MonteCarloDriver(simulator, iterations=10, seed=3).jittered_start_dates(config)
        assert a == b

    def test_hundred_runs(self, simulator, strategy, config):
        """Test that every iteration contributes one return sample."""
        driver = MonteCarloDriver(simulator, iterations=100, max_workers=4, seed=0)

        result = driver.run(strategy, config)

        assert result.iterations == 100
        assert len(result.returns) == 100
        assert result.failures == ()
        assert result.worst_case <= result.mean_return <= result.best_case
        assert [p for p, _ in result.confidence_intervals] == [5, 25, 50, 75, 95]
        values = [v for _, v in result.confidence_intervals]
        assert values == sorted(values)

    def test_thread_pool_matches_sequential(self, simulator, strategy, config):
        sequential = MonteCarloDriver(simulator, iterations=20, max_workers=1, seed=9).run(strategy, config)
        pooled = MonteCarloDriver(simulator, iterations=20, max_workers=4, seed=9).run(strategy, config)

        assert sequential.returns == pooled.returns
        assert sequential.mean_return == pooled.mean_return

    def test_failures_reported_separately(self, strategy):
        """Test that runs jittered past the data are listed as failures."""
        df = generate_random_walk("2024-01-01", periods=6, seed=2)
        simulator = Simulator(DataFrameDataSource(df, SYMBOL))
        config = BacktestConfig("2024-01-05", "2024-02-01", symbols=[SYMBOL])

        result = MonteCarloDriver(simulator, iterations=50, max_workers=2, seed=0).run(strategy, config)

        assert result.successful_runs + len(result.failures) == 50
        assert result.failures
        assert result.successful_runs > 0
        assert all(f.error_type == "EmptyDataRange" for f in result.failures)
        assert [f.iteration for f in result.failures] == sorted(f.iteration for f in result.failures)

    def test_invalid_strategy_raises(self, simulator, config):
        driver = MonteCarloDriver(simulator, iterations=5)
        bad = StrategyConfig(risk_params=RiskParams(max_position_size_fraction=0.0))

        with pytest.raises(InvalidConfig):
            driver.run(bad, config)


if __name__ == "__main__":
    pytest.main([__file__])
