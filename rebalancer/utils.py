"""
Utility functions for the Solana rebalancing bot.
"""

import logging
import math
import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler
from solders.keypair import Keypair

from . import config
from .state import PortfolioSnapshot

# Set up rich console
console = Console()


@dataclass(frozen=True)
class SwapOrder:
    """A swap chosen by the rebalance decision."""
    input_mint: str
    output_mint: str
    direction: str
    excess_value: float
    tokens_to_swap: int
    amount: int


@dataclass(frozen=True)
class RebalancePnL:
    """PnL from quantity changes only, valued at the snapshot prices."""
    value_at_initial_prices: float
    baseline_value: float
    profit_usd: float
    profit_percent: float


def setup_logging():
    """Set up logging configuration."""
    log_dir = os.path.dirname(config.LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            RichHandler(console=console, rich_tracebacks=True),
            logging.FileHandler(config.LOG_FILE, mode='a')
        ]
    )

    return logging.getLogger(__name__)


def load_keypair(secret: bytes) -> Keypair:
    """Build the signing keypair from raw secret key bytes."""
    try:
        return Keypair.from_bytes(secret)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid SOLANA_KEYPAIR_SECRET: {e}") from e


def format_currency(amount: float) -> str:
    """Format a USD amount with two decimals."""
    return f"${amount:,.2f}"


def format_percent(value: float) -> str:
    return f"{value:.2f}%"


def calculate_portfolio_value(positions: Dict[str, float], prices: Dict[str, float]) -> float:
    """Calculate total portfolio value in USD."""
    total_value = 0.0

    for mint, quantity in positions.items():
        if mint in prices:
            total_value += quantity * prices[mint]

    return total_value


def calculate_allocations(value_a: float, value_b: float) -> Tuple[float, float]:
    """
    Return the percentage of total value held in each token.

    Token B's share is derived from A's so the pair always sums to 100.
    Callers must not pass an empty portfolio.
    """
    total_value = value_a + value_b
    allocation_a = value_a / total_value * 100
    return allocation_a, 100 - allocation_a


def calculate_deviation(allocation_a: float, allocation_b: float) -> float:
    """How far the larger side sits above the 50% target."""
    return max(allocation_a, allocation_b) - config.TARGET_ALLOCATION_PERCENT


def calculate_token_deltas(
    balances: Dict[str, float],
    prices: Dict[str, float],
    snapshot: Optional[PortfolioSnapshot],
) -> Tuple[Dict[str, float], Dict[str, float], float]:
    """
    Compare current balances with the initial snapshot.

    Returns:
        Tuple of (token_deltas, delta_values, rebalance_value_impact) where
        delta values are quantity changes priced at current prices
    """
    token_deltas = {}
    delta_values = {}

    for mint, balance in balances.items():
        initial = snapshot.tokens.get(mint) if snapshot else None
        token_deltas[mint] = balance - initial.balance if initial else 0.0
        delta_values[mint] = token_deltas[mint] * prices[mint]

    return token_deltas, delta_values, sum(delta_values.values())


def calculate_rebalance_only_pnl(
    balances: Dict[str, float],
    snapshot: Optional[PortfolioSnapshot],
) -> Optional[RebalancePnL]:
    """
    Value current balances at the snapshot prices and compare with the baseline.

    Returns None unless the snapshot covers every token in balances.
    """
    if snapshot is None or any(mint not in snapshot.tokens for mint in balances):
        return None

    value_at_initial_prices = 0.0
    baseline_value = 0.0
    for mint, balance in balances.items():
        initial = snapshot.tokens[mint]
        value_at_initial_prices += balance * initial.price
        baseline_value += initial.balance * initial.price

    profit_usd = value_at_initial_prices - baseline_value
    profit_percent = profit_usd / baseline_value * 100 if baseline_value != 0 else 0.0

    return RebalancePnL(
        value_at_initial_prices=value_at_initial_prices,
        baseline_value=baseline_value,
        profit_usd=profit_usd,
        profit_percent=profit_percent,
    )


def calculate_profit(total_value: float, initial_value: float) -> Tuple[float, float, str]:
    """Return (profit, profit_percent, status) against the initial value."""
    profit = total_value - initial_value
    profit_percent = profit / initial_value * 100 if initial_value != 0 else 0.0
    status = "Profit" if profit >= 0 else "Loss"
    return profit, profit_percent, status


def calculate_swap_amount(excess_value: float, price: float, decimals: int) -> Tuple[int, int]:
    """Convert excess USD value into (whole tokens, smallest-unit amount)."""
    tokens_to_swap = math.floor(excess_value / price)
    return tokens_to_swap, tokens_to_swap * 10 ** decimals


def calculate_rebalance_swap(
    token_a: str,
    token_b: str,
    values: Dict[str, float],
    prices: Dict[str, float],
    decimals: Dict[str, int],
    threshold: float,
) -> Optional[SwapOrder]:
    """
    Decide which side, if any, to sell back toward a 50/50 split.

    A side triggers only when its allocation is strictly above
    50 + threshold. A is checked before B; at most one order is returned.
    The returned amount may be zero, which callers must skip.
    """
    total_value = values[token_a] + values[token_b]
    allocation_a, allocation_b = calculate_allocations(values[token_a], values[token_b])
    target_value = total_value / 2
    limit = config.TARGET_ALLOCATION_PERCENT + threshold

    if allocation_a > limit:
        source, destination, direction = token_a, token_b, "A → B"
    elif allocation_b > limit:
        source, destination, direction = token_b, token_a, "B → A"
    else:
        return None

    excess_value = values[source] - target_value
    tokens_to_swap, amount = calculate_swap_amount(excess_value, prices[source], decimals[source])

    return SwapOrder(
        input_mint=source,
        output_mint=destination,
        direction=direction,
        excess_value=excess_value,
        tokens_to_swap=tokens_to_swap,
        amount=amount,
    )
