"""
Smart Rebalance Bot

Keeps a two-token Solana wallet near a 50/50 USD split, swapping the excess
through Jupiter Ultra whenever one side drifts past a threshold.
"""

from .config import Settings, validate_config
from .state import BaselineState, BaselineStore, PortfolioSnapshot, TokenSnapshot
from .utils import (
    calculate_allocations,
    calculate_deviation,
    calculate_rebalance_swap,
    format_currency,
    setup_logging,
)

__version__ = "1.0.0"

# Expose main functions for external use
__all__ = [
    "Settings",
    "validate_config",
    "BaselineState",
    "BaselineStore",
    "PortfolioSnapshot",
    "TokenSnapshot",
    "calculate_allocations",
    "calculate_deviation",
    "calculate_rebalance_swap",
    "format_currency",
    "setup_logging",
]
