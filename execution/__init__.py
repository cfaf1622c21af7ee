"""
Execution module public API.

This package wraps the external services the bot depends on: the Jupiter
Price and Ultra APIs, Solana JSON-RPC, and the swap flow built on both.
"""

from .jupiter_client import JupiterClient, TokenPrice  # noqa: F401
from .solana_client import SimulationResult, SolanaRpcClient, TokenBalance  # noqa: F401
from .swap_executor import SwapExecutor  # noqa: F401

__all__ = [
    'JupiterClient',
    'TokenPrice',
    'SimulationResult',
    'SolanaRpcClient',
    'TokenBalance',
    'SwapExecutor',
]
