#!/usr/bin/env python3
"""
Backtesting Analytics

Pure functions over an equity curve and trade list. Nothing here holds
state between calls.

Features:
- Per-bar returns, volatility, Sharpe and Sortino ratios
- Maximum drawdown and drawdown period analysis
- Empirical Value at Risk and Conditional VaR
- Trade statistics (win rate, profit factor, average trade)
- Text report and pandas views of results

All ratio functions are per-bar. calculate_metrics also reports annualized
volatility and Sharpe ratio, scaling by sqrt(periods_per_year).
"""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Sequence

import numpy as np
import pandas as pd

from tradesim.config import PERIODS_PER_YEAR, RISK_FREE_RATE, VAR_CONFIDENCE
from tradesim.utils.logging_config import logger

if TYPE_CHECKING:
    from tradesim.backtesting.simulator import BacktestResult, EquityPoint, Trade


SECONDS_PER_YEAR = 365 * 24 * 60 * 60

# Standard deviations below this are treated as zero
_ZERO_STD = 1e-12


@dataclass(frozen=True)
class PortfolioMetrics:
    """Performance and risk statistics for one run."""
    # Returns
    total_value: float
    total_return: float              # fraction
    annualized_return: float         # fraction

    # Risk metrics
    volatility: float                # per-bar
    annualized_volatility: float
    sharpe_ratio: float              # per-bar
    annualized_sharpe_ratio: float
    sortino_ratio: float
    calmar_ratio: float
    max_drawdown_pct: float          # 0-100
    value_at_risk: float             # per-bar return at VAR_CONFIDENCE
    conditional_value_at_risk: float

    # Trade metrics
    total_trades: int
    win_rate: float                  # fraction
    profit_factor: float
    average_trade: float
    total_fees: float


@dataclass(frozen=True)
class DrawdownPeriod:
    """A stretch of the equity curve spent below its running peak."""
    start: int         # timestamp of the first bar below peak
    end: int           # timestamp of the last bar below peak
    depth: float       # fractional loss from peak to trough
    duration: int      # bars


def calculate_returns(values: Sequence[float]) -> List[float]:
    """Simple per-bar returns; steps from a zero value are skipped."""
    returns = []
    for i in range(1, len(values)):
        if values[i - 1] != 0:
            returns.append((values[i] - values[i - 1]) / values[i - 1])
    return returns


def volatility(returns: Sequence[float]) -> float:
    """Population standard deviation of returns (not annualized)."""
    if len(returns) == 0:
        return 0.0
    return float(np.std(returns))


def sharpe_ratio(returns: Sequence[float], risk_free_rate: float = 0.0) -> float:
    """
    Per-bar Sharpe ratio.

    Args:
        returns: Per-bar returns
        risk_free_rate: Per-bar risk-free rate

    Returns:
        (mean - risk_free_rate) / std, or 0.0 when std is zero
    """
    if len(returns) == 0:
        return 0.0

    std_return = np.std(returns)
    if std_return <= _ZERO_STD:
        return 0.0

    return float((np.mean(returns) - risk_free_rate) / std_return)


def sortino_ratio(returns: Sequence[float], risk_free_rate: float = 0.0) -> float:
    """
    Per-bar Sortino ratio.

    Downside deviation is the root mean square of min(0, r - risk_free_rate)
    over all returns, so only bars below the target count as risk.

    Returns:
        (mean - risk_free_rate) / downside deviation, or 0.0 when no
        return falls below the target
    """
    if len(returns) == 0:
        return 0.0

    returns = np.asarray(returns, dtype=float)
    shortfall = np.minimum(0.0, returns - risk_free_rate)
    if not np.any(shortfall < 0):
        return 0.0

    downside_deviation = math.sqrt(float(np.mean(shortfall ** 2)))
    mean_return = float(np.mean(returns))
    if downside_deviation <= _ZERO_STD:
        return 0.0

    return (mean_return - risk_free_rate) / downside_deviation


def max_drawdown(values: Sequence[float]) -> float:
    """
    Largest peak-to-trough decline.

    Returns:
        Percentage in [0, 100]; 0 for a non-decreasing curve
    """
    if len(values) == 0:
        return 0.0

    values = np.asarray(values, dtype=float)
    running_max = np.maximum.accumulate(values)

    with np.errstate(divide='ignore', invalid='ignore'):
        drawdowns = np.where(running_max > 0, (running_max - values) / running_max, 0.0)

    return float(min(100.0, max(0.0, np.max(drawdowns) * 100)))


def _tail_index(n: int, confidence: float) -> int:
    return min(n - 1, max(0, math.floor((1 - confidence) * n)))


def value_at_risk(returns: Sequence[float], confidence: float = VAR_CONFIDENCE) -> float:
    """
    Empirical VaR: negative of the (1 - confidence) percentile return.

    confidence=0.95 reads the 5th percentile of the sorted returns.
    """
    if len(returns) == 0:
        return 0.0

    sorted_returns = sorted(returns)
    return -sorted_returns[_tail_index(len(sorted_returns), confidence)]


def conditional_value_at_risk(returns: Sequence[float], confidence: float = VAR_CONFIDENCE) -> float:
    """Expected shortfall: negative mean of returns at or below the VaR return."""
    if len(returns) == 0:
        return 0.0

    sorted_returns = sorted(returns)
    tail = sorted_returns[:_tail_index(len(sorted_returns), confidence) + 1]
    return -float(np.mean(tail))


def profit_factor(trades: Sequence["Trade"]) -> float:
    """
    Gross profit over gross loss.

    Returns 0.0 when there are no losing trades, since an infinite ratio
    is not useful downstream.
    """
    gross_profit = sum(t.pnl for t in trades if t.pnl > 0)
    gross_loss = abs(sum(t.pnl for t in trades if t.pnl < 0))

    if gross_loss == 0:
        return 0.0

    return gross_profit / gross_loss


def win_rate(trades: Sequence["Trade"]) -> float:
    """Share of trades with positive P&L; 0.0 for no trades."""
    if not trades:
        return 0.0
    return sum(1 for t in trades if t.pnl > 0) / len(trades)


def average_trade(trades: Sequence["Trade"]) -> float:
    """Mean P&L per trade."""
    if not trades:
        return 0.0
    return sum(t.pnl for t in trades) / len(trades)


def annualized_return(total_return: float, start_timestamp: int, end_timestamp: int) -> float:
    """Compound total_return over the wall-clock span between two timestamps."""
    years = (end_timestamp - start_timestamp) / SECONDS_PER_YEAR
    if years <= 0:
        return 0.0
    if total_return <= -1:
        return -1.0

    exponent = math.log1p(total_return) / years
    if exponent > 700:
        return float('inf')
    return math.expm1(exponent)


def calmar_ratio(annual_return: float, max_drawdown_pct: float) -> float:
    """Annualized return over maximum drawdown (as a fraction)."""
    if max_drawdown_pct <= 0:
        return 0.0
    return annual_return / (max_drawdown_pct / 100)


def calculate_drawdown_periods(equity_curve: Sequence["EquityPoint"]) -> List[DrawdownPeriod]:
    """
    Split the equity curve into drawdown periods.

    A period starts at the first point below the running peak and ends at
    the point before a new peak is set. A drawdown still open at the end
    of the curve is reported up to the last point.
    """
    periods: List[DrawdownPeriod] = []
    if not equity_curve:
        return periods

    values = [p.value for p in equity_curve]
    peak = values[0]
    in_drawdown = False
    drawdown_start = 0

    for i in range(1, len(values)):
        if values[i] > peak:
            if in_drawdown:
                trough = min(values[drawdown_start:i])
                periods.append(DrawdownPeriod(
                    start=equity_curve[drawdown_start].timestamp,
                    end=equity_curve[i - 1].timestamp,
                    depth=(peak - trough) / peak,
                    duration=i - drawdown_start,
                ))
                in_drawdown = False
            peak = values[i]
        elif values[i] < peak and not in_drawdown:
            in_drawdown = True
            drawdown_start = i

    if in_drawdown:
        trough = min(values[drawdown_start:])
        periods.append(DrawdownPeriod(
            start=equity_curve[drawdown_start].timestamp,
            end=equity_curve[-1].timestamp,
            depth=(peak - trough) / peak,
            duration=len(values) - drawdown_start,
        ))

    return periods


def calculate_metrics(equity_curve: Sequence["EquityPoint"],
                      trades: Sequence["Trade"],
                      risk_free_rate: float = RISK_FREE_RATE,
                      periods_per_year: int = PERIODS_PER_YEAR,
                      var_confidence: float = VAR_CONFIDENCE) -> PortfolioMetrics:
    """
    Build PortfolioMetrics from a run's equity curve and trades.

    Args:
        equity_curve: Equity points, initial capital first
        trades: Executed trades
        risk_free_rate: Annual risk-free rate, converted to per-bar
        periods_per_year: Bars per year for annualization
        var_confidence: Confidence level for VaR and CVaR

    Returns:
        PortfolioMetrics
    """
    values = [p.value for p in equity_curve]
    returns = calculate_returns(values)

    total_return = (values[-1] - values[0]) / values[0] if len(values) > 1 and values[0] != 0 else 0.0
    annual_return = annualized_return(
        total_return, equity_curve[0].timestamp, equity_curve[-1].timestamp
    ) if len(values) > 1 else 0.0

    bar_risk_free = risk_free_rate / periods_per_year
    bar_volatility = volatility(returns)
    bar_sharpe = sharpe_ratio(returns, bar_risk_free)
    drawdown_pct = max_drawdown(values)

    return PortfolioMetrics(
        total_value=values[-1] if values else 0.0,
        total_return=total_return,
        annualized_return=annual_return,
        volatility=bar_volatility,
        annualized_volatility=bar_volatility * math.sqrt(periods_per_year),
        sharpe_ratio=bar_sharpe,
        annualized_sharpe_ratio=bar_sharpe * math.sqrt(periods_per_year),
        sortino_ratio=sortino_ratio(returns, bar_risk_free),
        calmar_ratio=calmar_ratio(annual_return, drawdown_pct),
        max_drawdown_pct=drawdown_pct,
        value_at_risk=value_at_risk(returns, var_confidence),
        conditional_value_at_risk=conditional_value_at_risk(returns, var_confidence),
        total_trades=len(trades),
        win_rate=win_rate(trades),
        profit_factor=profit_factor(trades),
        average_trade=average_trade(trades),
        total_fees=sum(t.fees for t in trades),
    )


def trades_to_frame(trades: Sequence["Trade"]) -> pd.DataFrame:
    """Trade history as a DataFrame, one row per trade."""
    columns = ['id', 'timestamp', 'symbol', 'type', 'amount', 'price',
               'pnl', 'fees', 'slippage', 'confidence']
    if not trades:
        return pd.DataFrame(columns=columns)

    return pd.DataFrame([{
        'id': t.id,
        'timestamp': pd.Timestamp(t.timestamp, unit='s', tz='UTC'),
        'symbol': t.symbol,
        'type': t.type.value,
        'amount': t.amount,
        'price': t.price,
        'pnl': t.pnl,
        'fees': t.fees,
        'slippage': t.slippage,
        'confidence': t.signal.confidence,
    } for t in trades], columns=columns)


def equity_to_frame(equity_curve: Sequence["EquityPoint"]) -> pd.DataFrame:
    """Equity curve indexed by UTC time, with per-bar returns and drawdown."""
    df = pd.DataFrame({
        'timestamp': pd.to_datetime([p.timestamp for p in equity_curve], unit='s', utc=True),
        'value': [p.value for p in equity_curve],
    }).set_index('timestamp')

    df['return'] = df['value'].pct_change()
    df['drawdown_pct'] = (1 - df['value'] / df['value'].cummax()) * 100
    return df


def generate_report(result: "BacktestResult") -> str:
    """
    Format a run's results as a text report.

    Args:
        result: Completed BacktestResult

    Returns:
        Formatted report string
    """
    m = result.metrics
    a = result.attribution
    deepest = max((p.depth for p in result.drawdown_periods), default=0.0)

    report = f"""
╔══════════════════════════════════════════════════════════════╗
║                    BACKTESTING PERFORMANCE REPORT            ║
╠══════════════════════════════════════════════════════════════╣

STRATEGY: {result.strategy} ({result.state.value})

RETURN ANALYSIS
├─ Final Value:              {m.total_value:>12,.2f}
├─ Total Return:             {m.total_return * 100:>8.2f}%
└─ Annualized Return:        {m.annualized_return * 100:>8.2f}%

RISK METRICS
├─ Volatility (per bar):     {m.volatility * 100:>8.2f}%
├─ Volatility (annual):      {m.annualized_volatility * 100:>8.2f}%
├─ Sharpe Ratio (annual):    {m.annualized_sharpe_ratio:>8.2f}
├─ Sortino Ratio (per bar):  {m.sortino_ratio:>8.2f}
├─ Calmar Ratio:             {m.calmar_ratio:>8.2f}
├─ Max Drawdown:             {m.max_drawdown_pct:>8.2f}%
├─ Drawdown Periods:         {len(result.drawdown_periods):>8d}
├─ Deepest Period:           {deepest * 100:>8.2f}%
├─ VaR (per bar):            {m.value_at_risk * 100:>8.2f}%
└─ CVaR (per bar):           {m.conditional_value_at_risk * 100:>8.2f}%

TRADING ACTIVITY
├─ Total Trades:             {m.total_trades:>8d}
├─ Win Rate:                 {m.win_rate * 100:>8.2f}%
├─ Profit Factor:            {m.profit_factor:>8.2f}
└─ Avg Trade P&L:            {m.average_trade:>8.2f}

ATTRIBUTION
├─ Signal Accuracy:          {a.signal_accuracy * 100:>8.2f}%
├─ Realized P&L:             {a.realized_pnl:>12,.2f}
├─ Slippage Cost:            {a.slippage_impact:>12,.2f}
└─ Fee Cost:                 {a.fee_impact:>12,.2f}

╚══════════════════════════════════════════════════════════════╝
    """.strip()

    logger.debug(f"Report generated for {result.strategy}")
    return report
