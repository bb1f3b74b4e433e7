#!/usr/bin/env python3
"""
Execution Model

Prices a hypothetical trade against a reference bar: slippage by policy,
then a flat fee on notional.
"""

from enum import Enum
from typing import Tuple

from tradesim.backtesting.data_stream import Bar
from tradesim.backtesting.signals import Direction
from tradesim.config import (
    FEE_RATE, FIXED_SLIPPAGE, MAX_VOLUME_SLIPPAGE,
    MAX_VOLATILITY_SLIPPAGE, VOLATILITY_SLIPPAGE_FACTOR
)
from tradesim.utils.logging_config import logger


class SlippageModel(Enum):
    """Slippage policies selectable per strategy."""
    FIXED = "fixed"            # constant fraction
    VOLUME = "volume"          # larger volume => smaller slippage
    VOLATILITY = "volatility"  # wider bar range => larger slippage


class ExecutionModel:
    """
    Computes execution price, slippage and fees for simulated trades.

    Buys fill above the reference close, sells below it.
    """

    def __init__(self,
                 fee_rate: float = FEE_RATE,
                 fixed_slippage: float = FIXED_SLIPPAGE,
                 max_volume_slippage: float = MAX_VOLUME_SLIPPAGE,
                 max_volatility_slippage: float = MAX_VOLATILITY_SLIPPAGE):
        """
        Initialize execution model.

        Args:
            fee_rate: Fee as a fraction of notional
            fixed_slippage: Slippage fraction for the fixed policy
            max_volume_slippage: Cap for the volume policy
            max_volatility_slippage: Cap for the volatility policy
        """
        self.fee_rate = fee_rate
        self.fixed_slippage = fixed_slippage
        self.max_volume_slippage = max_volume_slippage
        self.max_volatility_slippage = max_volatility_slippage

        logger.debug(f"ExecutionModel initialized: fee rate {fee_rate:.4%}")

    def slippage(self, reference_bar: Bar, policy: SlippageModel) -> float:
        """Slippage fraction for a bar under the given policy."""
        if policy == SlippageModel.FIXED:
            return self.fixed_slippage

        if policy == SlippageModel.VOLUME:
            return min(self.max_volume_slippage, 1.0 / max(1.0, reference_bar.volume))

        if policy == SlippageModel.VOLATILITY:
            bar_range = (reference_bar.high - reference_bar.low) / reference_bar.close
            return min(self.max_volatility_slippage, VOLATILITY_SLIPPAGE_FACTOR * abs(bar_range))

        raise ValueError(f"Unknown slippage policy: {policy}")

    def price(self, direction: Direction, reference_bar: Bar,
              policy: SlippageModel) -> Tuple[float, float]:
        """
        Price a trade at the reference bar's close.

        Returns:
            (execution_price, slippage_fraction)
        """
        slippage = self.slippage(reference_bar, policy)

        if direction == Direction.BUY:
            execution_price = reference_bar.close * (1 + slippage)
        else:
            execution_price = reference_bar.close * (1 - slippage)

        return execution_price, slippage

    def fee(self, notional: float) -> float:
        """Fee charged on a trade of the given notional value."""
        return abs(notional) * self.fee_rate
