import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# --- File Paths ---
DATA_DIR = os.getenv("TRADESIM_DATA_DIR") or "data"
LOGS_DIR = os.getenv("TRADESIM_LOGS_DIR") or "logs"
LOG_LEVEL = os.getenv("TRADESIM_LOG_LEVEL") or "INFO"


# --- Random Seed ---
RANDOM_SEED = int(os.getenv("TRADESIM_RANDOM_SEED") or 0)


# --- Market ---
DEFAULT_SYMBOL = "AVAX/USDT"


# --- Execution Costs ---
FEE_RATE = float(os.getenv("TRADESIM_FEE_RATE") or 0.001)          # 0.1% of notional, every trade
FIXED_SLIPPAGE = 0.0005           # 0.05% for the fixed policy
MAX_VOLUME_SLIPPAGE = 0.01        # cap for the volume policy
MAX_VOLATILITY_SLIPPAGE = 0.02    # cap for the volatility policy
VOLATILITY_SLIPPAGE_FACTOR = 0.1  # fraction of the bar range paid as slippage


# --- Trade Sizing ---
MIN_TRADE_SIZE = float(os.getenv("TRADESIM_MIN_TRADE_SIZE") or 10.0)  # quote currency
CASH_BUFFER = 0.95                # never commit more than 95% of what is available


# --- Risk Analytics ---
RISK_FREE_RATE = float(os.getenv("TRADESIM_RISK_FREE_RATE") or 0.02)  # annual
PERIODS_PER_YEAR = int(os.getenv("TRADESIM_PERIODS_PER_YEAR") or 365)  # daily crypto bars
VAR_CONFIDENCE = 0.95


# --- Monte Carlo ---
MONTE_CARLO_CONFIG = {
    'iterations': 1000,
    'jitter_days': 7,                       # start date shifted within +-7 days
    'percentiles': [5, 25, 50, 75, 95],
    'max_workers': int(os.getenv("TRADESIM_MC_WORKERS") or 4),
}


# --- Default Strategy ---
STRATEGY_CONFIG = {
    'max_position_size_fraction': 0.1,  # 10% of portfolio per trade
    'stop_loss_fraction': 0.05,
    'take_profit_fraction': 0.10,
    'max_drawdown_limit': 0.2,          # stop the run at a 20% drawdown
    'min_confidence': 0.6,
    'rebalance_frequency': 1,
}
